"""
Read access to the relation (edge) store.

Edges are directed (src, kind, dst) triples between object PHIDs. Results are
grouped as ``{phid: {kind: [other_phid, ...]}}`` so a caller holding a page of
objects can attach related PHIDs with a single statement per lookup.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.legalpad.models import Edge, RelationKind


EdgeMap = dict[str, dict[RelationKind, list[str]]]


def _empty_map(phids: Iterable[str], kinds: Collection[RelationKind]) -> EdgeMap:
    return {phid: {kind: [] for kind in kinds} for phid in phids}


class EdgeRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_by_source(self, src_phids: Collection[str], kinds: Collection[RelationKind]) -> EdgeMap:
        """
        Edges leaving any of ``src_phids`` with one of ``kinds``.
        Every requested source appears in the result, with empty lists when it has no edges.
        """
        out = _empty_map(src_phids, kinds)
        if not src_phids or not kinds:
            return out
        stmt = (
            select(Edge)
            .where(Edge.src.in_(list(src_phids)), Edge.type.in_(list(kinds)))
            .order_by(Edge.src.asc(), Edge.type.asc(), Edge.seq.asc(), Edge.dst.asc())
        )
        for edge in self._session.execute(stmt).scalars():
            out[edge.src][edge.type].append(edge.dst)
        return out

    def list_by_destination(self, dst_phids: Collection[str], kinds: Collection[RelationKind]) -> EdgeMap:
        """
        Edges arriving at any of ``dst_phids`` with one of ``kinds``, keyed by destination.
        """
        out = _empty_map(dst_phids, kinds)
        if not dst_phids or not kinds:
            return out
        stmt = (
            select(Edge)
            .where(Edge.dst.in_(list(dst_phids)), Edge.type.in_(list(kinds)))
            .order_by(Edge.dst.asc(), Edge.type.asc(), Edge.seq.asc(), Edge.src.asc())
        )
        for edge in self._session.execute(stmt).scalars():
            out[edge.dst][edge.type].append(edge.src)
        return out

