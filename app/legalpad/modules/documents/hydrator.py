from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.legalpad.edges import EdgeRepository
from app.legalpad.models import RelationKind
from app.legalpad.modules.documents.models import (
    LegalpadDocument,
    LegalpadDocumentBody,
    LegalpadDocumentSignature,
)

logger = logging.getLogger(__name__)


class RelationHydrator:
    """
    Loads related rows for an already-fetched page.

    Each loader issues one statement keyed by every identifier in the page,
    so the number of statements does not depend on the page size. An empty
    page issues nothing.
    """

    def __init__(self, session: Session, edges: EdgeRepository | None = None) -> None:
        self._session = session
        self._edges = edges or EdgeRepository(session)

    def load_document_bodies(self, documents: Sequence[LegalpadDocument]) -> list[LegalpadDocument]:
        if not documents:
            return []
        body_phids = sorted({d.document_body_phid for d in documents})
        rows = self._session.execute(
            select(LegalpadDocumentBody).where(LegalpadDocumentBody.phid.in_(body_phids))
        ).scalars()
        bodies = {b.phid: b for b in rows}
        for d in documents:
            body = bodies.get(d.document_body_phid)
            if body is None:
                logger.warning("Document %s references missing body %s", d.phid, d.document_body_phid)
            d.attach_document_body(body)
        return list(documents)

    def load_contributors(self, documents: Sequence[LegalpadDocument]) -> list[LegalpadDocument]:
        if not documents:
            return []
        kind = RelationKind.DOCUMENT_HAS_CONTRIBUTOR
        edge_map = self._edges.list_by_source([d.phid for d in documents], [kind])
        for d in documents:
            d.attach_contributors(edge_map[d.phid][kind])
        return list(documents)

    def load_signatures(self, documents: Sequence[LegalpadDocument]) -> dict[str, list[LegalpadDocumentSignature]]:
        """
        All signatures of the page's documents, grouped by document PHID and
        in signing order. Nothing is attached: the caller decides which of
        them are still valid.
        """
        grouped: dict[str, list[LegalpadDocumentSignature]] = defaultdict(list)
        if not documents:
            return grouped
        rows = self._session.execute(
            select(LegalpadDocumentSignature)
            .where(LegalpadDocumentSignature.document_phid.in_(sorted({d.phid for d in documents})))
            .order_by(LegalpadDocumentSignature.id.asc())
        ).scalars()
        for sig in rows:
            grouped[sig.document_phid].append(sig)
        return grouped
