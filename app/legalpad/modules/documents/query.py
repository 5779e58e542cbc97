"""
Paged, policy-filtered document query.

    docs = (
        LegalpadDocumentQuery(s)
        .with_creator_phids([user.phid])
        .with_signer_phids([signer.phid])
        .need_document_bodies(True)
        .set_limit(50)
        .execute()
    )

One page costs one SELECT on ``legalpad_documents`` plus at most one SELECT
per requested relation (bodies, contributors, signatures). The whole page is
built under a single deadline; on timeout or storage failure nothing is
returned. On PostgreSQL the remaining budget is also applied as a
transaction-local ``statement_timeout``, set back to its default once the page
is built.

Known limitation: the required-signer filter runs after the page is fetched,
so a page can hold fewer than ``limit`` documents even when more exist. The
next cursor still points past every fetched row and no refill is attempted.
"""

from __future__ import annotations

import copy
import logging
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from datetime import datetime

from sqlalchemy import Select, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.legalpad.edges import EdgeRepository
from app.legalpad.errors import QueryExecutionError, QueryTimeoutError
from app.legalpad.modules.documents.hydrator import RelationHydrator
from app.legalpad.modules.documents.models import LegalpadDocument
from app.legalpad.modules.documents.pager import Page, Pager
from app.legalpad.modules.documents.predicates import Predicate, SeekAfter, apply_predicates, build_predicates
from app.legalpad.modules.documents.reconcile import reconcile_page
from app.legalpad.rbac import allow_all

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
DEFAULT_TIMEOUT_SECONDS = 10.0

Policy = Callable[[Sequence[LegalpadDocument]], list[LegalpadDocument]]


class Deadline:
    """Wall-clock budget shared by every stage of one page load."""

    def __init__(self, seconds: float | None) -> None:
        self.seconds = seconds if seconds and seconds > 0 else None
        self._expires_at = time.monotonic() + self.seconds if self.seconds else None

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def check(self, stage: str) -> None:
        if self._expires_at is not None and time.monotonic() >= self._expires_at:
            raise QueryTimeoutError(f"Document query exceeded {self.seconds}s (at stage {stage!r})")


class LegalpadDocumentQuery:
    def __init__(
        self,
        session: Session,
        *,
        edges: EdgeRepository | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._hydrator = RelationHydrator(session, edges)
        self._max_page_size = max_page_size
        self._limit = page_size
        self._timeout = timeout
        self._after_cursor: str | None = None
        self._policy: Policy = allow_all

        self._ids: list[int] | None = None
        self._phids: list[str] | None = None
        self._creator_phids: list[str] | None = None
        self._contributor_phids: list[str] | None = None
        self._signer_phids: list[str] | None = None
        self._date_created_after: datetime | None = None
        self._date_created_before: datetime | None = None

        self._need_document_bodies = False
        self._need_contributors = False
        self._need_signatures = False

    # -- filters -----------------------------------------------------------

    def with_ids(self, ids: Iterable[int] | None) -> "LegalpadDocumentQuery":
        self._ids = list(ids) if ids is not None else None
        return self

    def with_phids(self, phids: Iterable[str] | None) -> "LegalpadDocumentQuery":
        self._phids = list(phids) if phids is not None else None
        return self

    def with_creator_phids(self, phids: Iterable[str] | None) -> "LegalpadDocumentQuery":
        self._creator_phids = list(phids) if phids is not None else None
        return self

    def with_contributor_phids(self, phids: Iterable[str] | None) -> "LegalpadDocumentQuery":
        self._contributor_phids = list(phids) if phids is not None else None
        return self

    def with_signer_phids(self, phids: Iterable[str] | None) -> "LegalpadDocumentQuery":
        """Keep only documents signed at their current version by every one of ``phids``."""
        self._signer_phids = list(phids) if phids is not None else None
        return self

    def with_date_created_after(self, value: datetime | None) -> "LegalpadDocumentQuery":
        self._date_created_after = value
        return self

    def with_date_created_before(self, value: datetime | None) -> "LegalpadDocumentQuery":
        self._date_created_before = value
        return self

    # -- relations ---------------------------------------------------------

    def need_document_bodies(self, need: bool) -> "LegalpadDocumentQuery":
        self._need_document_bodies = bool(need)
        return self

    def need_contributors(self, need: bool) -> "LegalpadDocumentQuery":
        self._need_contributors = bool(need)
        return self

    def need_signatures(self, need: bool) -> "LegalpadDocumentQuery":
        self._need_signatures = bool(need)
        return self

    # -- paging / execution options ----------------------------------------

    def set_limit(self, limit: int) -> "LegalpadDocumentQuery":
        if limit <= 0:
            raise ValueError(f"Page limit must be positive, got {limit}")
        self._limit = limit
        return self

    def set_after_cursor(self, cursor: str | None) -> "LegalpadDocumentQuery":
        self._after_cursor = cursor or None
        return self

    def set_policy(self, policy: Policy) -> "LegalpadDocumentQuery":
        self._policy = policy
        return self

    def set_timeout(self, seconds: float | None) -> "LegalpadDocumentQuery":
        self._timeout = seconds
        return self

    @property
    def limit(self) -> int:
        return min(self._limit, self._max_page_size)

    # -- statement building ------------------------------------------------

    def predicates(self) -> list[Predicate]:
        return build_predicates(
            ids=self._ids,
            phids=self._phids,
            creator_phids=self._creator_phids,
            contributor_phids=self._contributor_phids,
            date_created_after=self._date_created_after,
            date_created_before=self._date_created_before,
        )

    def build_statement(self, after: int | None, fetch_size: int) -> Select:
        predicates = self.predicates()
        if after is not None:
            predicates.append(SeekAfter(after))
        stmt = apply_predicates(select(LegalpadDocument), predicates)
        return stmt.order_by(LegalpadDocument.id.asc()).limit(fetch_size)

    # -- execution -----------------------------------------------------------

    def execute(self) -> list[LegalpadDocument]:
        return self.execute_page().documents

    def execute_one(self) -> LegalpadDocument | None:
        # Two rows are enough to tell "one" from "many".
        single = copy.copy(self)
        single._limit = 2
        docs = single.execute()
        if len(docs) > 1:
            raise QueryExecutionError(f"Expected at most one document, query matched {len(docs)}")
        return docs[0] if docs else None

    def execute_page(self) -> Page[LegalpadDocument]:
        pager = Pager(limit=self.limit, cursor=self._after_cursor)
        documents = self._load_page(pager)
        return Page(documents=documents, next_cursor=pager.cursor, requested_limit=pager.limit, state=pager.state)

    def iter_pages(self) -> Iterator[Page[LegalpadDocument]]:
        """Walk every page from the configured cursor until the result set is exhausted."""
        pager = Pager(limit=self.limit, cursor=self._after_cursor)
        while True:
            documents = self._load_page(pager)
            yield Page(documents=documents, next_cursor=pager.cursor, requested_limit=pager.limit, state=pager.state)
            if not pager.cursor:
                return

    def _load_page(self, pager: Pager) -> list[LegalpadDocument]:
        deadline = Deadline(self._timeout)
        try:
            try:
                documents = self._run_stages(pager, deadline)
            except QueryTimeoutError:
                self._reset_statement_timeout(deadline)
                raise
            self._reset_statement_timeout(deadline)
            return documents
        except QueryTimeoutError:
            pager.fail()
            logger.warning("Document query timed out after %ss", deadline.seconds)
            raise
        except SQLAlchemyError as e:
            pager.fail()
            logger.exception("Document query failed")
            raise QueryExecutionError(f"Document query failed: {e}") from e

    def _run_stages(self, pager: Pager, deadline: Deadline) -> list[LegalpadDocument]:
        after = pager.begin()

        deadline.check("fetch")
        self._apply_statement_timeout(deadline)
        stmt = self.build_statement(after, pager.fetch_size).execution_options(populate_existing=True)
        rows = list(self._session.execute(stmt).scalars())
        page = pager.complete(rows, lambda d: d.id)
        for row in rows:
            row.reset_attachments()
        logger.debug("Fetched %d documents (limit=%d, has_more=%s)", len(page), pager.limit, pager.cursor is not None)

        try:
            return self._hydrate(page, deadline)
        except (QueryTimeoutError, SQLAlchemyError):
            for row in rows:
                row.reset_attachments()
            raise

    def _hydrate(self, page: list[LegalpadDocument], deadline: Deadline) -> list[LegalpadDocument]:
        deadline.check("policy")
        documents = self._policy(page)

        if self._need_signatures or self._signer_phids:
            deadline.check("signatures")
            signatures = self._hydrator.load_signatures(documents)
            documents = reconcile_page(
                documents,
                signatures,
                required_signer_phids=self._signer_phids,
                attach=self._need_signatures,
            )
            if len(documents) < len(page):
                logger.debug("Signer filter kept %d of %d fetched documents", len(documents), len(page))

        if self._need_document_bodies:
            deadline.check("bodies")
            documents = self._hydrator.load_document_bodies(documents)

        if self._need_contributors:
            deadline.check("contributors")
            documents = self._hydrator.load_contributors(documents)

        deadline.check("complete")
        return documents

    def _uses_statement_timeout(self, deadline: Deadline) -> bool:
        return deadline.remaining() is not None and self._session.get_bind().dialect.name == "postgresql"

    def _apply_statement_timeout(self, deadline: Deadline) -> None:
        if not self._uses_statement_timeout(deadline):
            return
        remaining = deadline.remaining() or 0.0
        self._session.execute(
            select(func.set_config("statement_timeout", str(max(1, int(remaining * 1000))), True))
        )

    def _reset_statement_timeout(self, deadline: Deadline) -> None:
        # Later statements in the same transaction must not inherit the page budget.
        if self._uses_statement_timeout(deadline):
            self._session.execute(text("SET LOCAL statement_timeout TO DEFAULT"))
