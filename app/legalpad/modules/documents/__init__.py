"""
Legalpad documents module (read layer).

- Documents are paged by id with an opaque seek cursor
- Bodies, contributors and signatures are loaded in one batch per page
- Only signatures of a document's current version count
"""
