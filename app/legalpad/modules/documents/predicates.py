"""
Typed filter predicates for document queries.

Each predicate is built from one optional constraint and contributes a WHERE
clause (and, for relation filters, a join). ``build_predicates`` skips
constraints that are None or empty, so an unset filter never turns into
"match nothing".
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import ColumnElement, Select, and_

from app.legalpad.models import Edge, RelationKind
from app.legalpad.modules.documents.models import LegalpadDocument


class Predicate:
    needs_distinct = False

    def clause(self) -> ColumnElement[bool]:
        raise NotImplementedError

    def apply_join(self, stmt: Select) -> Select:
        return stmt


@dataclass(frozen=True)
class IdIn(Predicate):
    ids: tuple[int, ...]

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.id.in_(self.ids)


@dataclass(frozen=True)
class PhidIn(Predicate):
    phids: tuple[str, ...]

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.phid.in_(self.phids)


@dataclass(frozen=True)
class CreatorIn(Predicate):
    phids: tuple[str, ...]

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.creator_phid.in_(self.phids)


@dataclass(frozen=True)
class CreatedAfter(Predicate):
    """Inclusive lower bound on creation time."""

    at: datetime

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.date_created >= self.at


@dataclass(frozen=True)
class CreatedBefore(Predicate):
    """Inclusive upper bound on creation time."""

    at: datetime

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.date_created <= self.at


@dataclass(frozen=True)
class ContributorIn(Predicate):
    """
    Documents with a contributor edge to any of ``phids``. Adds an inner join
    on the edge store, and forces DISTINCT because one document can match
    several contributors.
    """

    needs_distinct = True

    phids: tuple[str, ...]

    def clause(self) -> ColumnElement[bool]:
        return and_(Edge.type == RelationKind.DOCUMENT_HAS_CONTRIBUTOR, Edge.dst.in_(self.phids))

    def apply_join(self, stmt: Select) -> Select:
        return stmt.join(Edge, Edge.src == LegalpadDocument.phid)


@dataclass(frozen=True)
class SeekAfter(Predicate):
    """Pagination seek: rows strictly after the cursor's sort key."""

    sort_key: int

    def clause(self) -> ColumnElement[bool]:
        return LegalpadDocument.id > self.sort_key


def _collected(values: Collection | None) -> tuple | None:
    if not values:
        return None
    # Duplicates collapse; sorted so equal filters build identical statements.
    return tuple(sorted(set(values)))


def build_predicates(
    *,
    ids: Collection[int] | None = None,
    phids: Collection[str] | None = None,
    creator_phids: Collection[str] | None = None,
    contributor_phids: Collection[str] | None = None,
    date_created_after: datetime | None = None,
    date_created_before: datetime | None = None,
) -> list[Predicate]:
    predicates: list[Predicate] = []
    for values, cls in (
        (ids, IdIn),
        (phids, PhidIn),
        (creator_phids, CreatorIn),
        (contributor_phids, ContributorIn),
    ):
        collected = _collected(values)
        if collected is not None:
            predicates.append(cls(collected))
    if date_created_after is not None:
        predicates.append(CreatedAfter(date_created_after))
    if date_created_before is not None:
        predicates.append(CreatedBefore(date_created_before))
    return predicates


def apply_predicates(stmt: Select, predicates: list[Predicate]) -> Select:
    """Add every predicate's join and AND its clauses into ``stmt``."""
    for p in predicates:
        stmt = p.apply_join(stmt)
    clauses = [p.clause() for p in predicates]
    if clauses:
        stmt = stmt.where(*clauses)
    if any(p.needs_distinct for p in predicates):
        stmt = stmt.distinct()
    return stmt
