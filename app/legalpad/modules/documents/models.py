from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.legalpad.errors import AttachmentNotLoadedError
from app.legalpad.models import Base

# Marks an attachment that the query never loaded. Distinct from None, which
# is a loaded-but-absent value (e.g. a body reference that does not resolve).
_UNLOADED = object()


class LegalpadDocument(Base):
    __tablename__ = "legalpad_documents"
    __table_args__ = (
        Index("idx_legalpad_documents_creator", "creator_phid"),
        Index("idx_legalpad_documents_created", "date_created"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    creator_phid: Mapped[str] = mapped_column(String(64), nullable=False)
    document_body_phid: Mapped[str] = mapped_column(String(64), nullable=False)

    # Bumped on every content edit; only signatures of this version count.
    versions: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    contributor_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    date_modified: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    # Query-time attachments (not columns). Loaded instances skip __init__,
    # so the unloaded marker lives on the class.
    _document_body = _UNLOADED
    _contributors = _UNLOADED
    _signatures = _UNLOADED

    def __repr__(self) -> str:
        return f"<LegalpadDocument id={self.id} phid={self.phid} v{self.versions}>"

    def _attached(self, name: str) -> Any:
        value = getattr(self, f"_{name}")
        if value is _UNLOADED:
            raise AttachmentNotLoadedError(self, name)
        return value

    def attach_document_body(self, body: "LegalpadDocumentBody | None") -> "LegalpadDocument":
        self._document_body = body
        return self

    def attach_contributors(self, contributor_phids: list[str]) -> "LegalpadDocument":
        self._contributors = list(contributor_phids)
        return self

    def attach_signatures(self, signatures: list["LegalpadDocumentSignature"]) -> "LegalpadDocument":
        self._signatures = list(signatures)
        return self

    @property
    def document_body(self) -> "LegalpadDocumentBody | None":
        return self._attached("document_body")

    @property
    def contributors(self) -> list[str]:
        return self._attached("contributors")

    @property
    def signatures(self) -> list["LegalpadDocumentSignature"]:
        return self._attached("signatures")

    def reset_attachments(self) -> "LegalpadDocument":
        """Forget anything an earlier query attached to this identity-mapped instance."""
        self._document_body = _UNLOADED
        self._contributors = _UNLOADED
        self._signatures = _UNLOADED
        return self

    def has_attached(self, name: str) -> bool:
        return getattr(self, f"_{name}", _UNLOADED) is not _UNLOADED


class LegalpadDocumentBody(Base):
    __tablename__ = "legalpad_document_bodies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    creator_phid: Mapped[str] = mapped_column(String(64), nullable=False)
    document_phid: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class LegalpadDocumentSignature(Base):
    """
    Append-only signature log. A row records which version of the document
    the signer agreed to; it is never updated when the document changes.
    """

    __tablename__ = "legalpad_document_signatures"
    __table_args__ = (
        Index("idx_legalpad_signatures_document", "document_phid", "document_version"),
        Index("idx_legalpad_signatures_signer", "signer_phid"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    document_phid: Mapped[str] = mapped_column(String(64), nullable=False)
    document_version: Mapped[int] = mapped_column(Integer, nullable=False)
    signer_phid: Mapped[str] = mapped_column(String(64), nullable=False)

    signature_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string (name, email, ...)

    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    @property
    def signature_data(self) -> dict[str, Any]:
        if not self.signature_json:
            return {}
        return json.loads(self.signature_json)

    def __repr__(self) -> str:
        return f"<LegalpadDocumentSignature {self.signer_phid} on {self.document_phid} v{self.document_version}>"
