"""
Feature modules live under this package.

Each module owns its models, queries and routes, while reusing platform
primitives (auth, RBAC, edges, DB session).
"""
