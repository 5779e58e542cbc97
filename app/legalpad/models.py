from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    phid: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "PHID-USER-..."
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list["Role"]] = relationship(
        secondary="user_roles",
        back_populates="users",
        lazy="selectin",
    )


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "admin"
    name: Mapped[str] = mapped_column(String(128), nullable=False)  # display name
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list[User]] = relationship(secondary="user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)  # e.g. "legalpad.view"
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class RelationKind(str, enum.Enum):
    """
    Edge types understood by the relation store.
    Every kind has an inverse so an edge can be walked from either end.
    """

    DOCUMENT_HAS_CONTRIBUTOR = "legalpad.document.contributor"
    CONTRIBUTED_TO_DOCUMENT = "legalpad.contributor.document"

    @property
    def inverse(self) -> "RelationKind":
        return _INVERSE_KINDS[self]


_INVERSE_KINDS = {
    RelationKind.DOCUMENT_HAS_CONTRIBUTOR: RelationKind.CONTRIBUTED_TO_DOCUMENT,
    RelationKind.CONTRIBUTED_TO_DOCUMENT: RelationKind.DOCUMENT_HAS_CONTRIBUTOR,
}


class Edge(Base):
    """
    Directed many-to-many association between two object PHIDs.
    The primary key is (src, type, dst): an edge exists at most once.
    """

    __tablename__ = "edges"
    __table_args__ = (
        Index("idx_edges_dst_type", "dst", "type"),
    )

    src: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[RelationKind] = mapped_column(
        Enum(
            RelationKind,
            native_enum=False,
            length=64,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        primary_key=True,
    )
    dst: Mapped[str] = mapped_column(String(64), primary_key=True)

    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # insertion order within (src, type)


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.legalpad.modules.documents.models import (  # noqa: E402,F401
    LegalpadDocument,
    LegalpadDocumentBody,
    LegalpadDocumentSignature,
)
