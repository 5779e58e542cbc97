from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.legalpad.errors import InvalidCursorError, QueryExecutionError, QueryTimeoutError
from app.legalpad.modules.documents import query as query_module
from app.legalpad.modules.documents.pager import PagerState
from app.legalpad.modules.documents.query import LegalpadDocumentQuery

T0 = datetime(2026, 1, 1, 9, 0, 0)


def _ids(docs):
    return [d.id for d in docs]


def test_no_constraints_returns_full_ordered_scan(session, factory):
    for n in (3, 1, 2):
        factory.document(n)
    assert _ids(LegalpadDocumentQuery(session).execute()) == [1, 2, 3]


def test_empty_database_returns_empty_page(session):
    page = LegalpadDocumentQuery(session).execute_page()
    assert page.documents == []
    assert page.next_cursor is None
    assert page.state is PagerState.EXHAUSTED


def test_with_ids(session, factory):
    factory.documents(5)
    assert _ids(LegalpadDocumentQuery(session).with_ids([4, 2]).execute()) == [2, 4]


def test_with_phids(session, factory):
    factory.documents(5)
    docs = LegalpadDocumentQuery(session).with_phids(["PHID-LEGD-0003", "PHID-LEGD-0005"]).execute()
    assert _ids(docs) == [3, 5]


def test_with_creator_phids(session, factory):
    factory.document(1, creator="PHID-USER-alice")
    factory.document(2, creator="PHID-USER-bob")
    factory.document(3, creator="PHID-USER-carol")
    docs = LegalpadDocumentQuery(session).with_creator_phids(["PHID-USER-bob", "PHID-USER-carol"]).execute()
    assert _ids(docs) == [2, 3]


def test_date_bounds_are_inclusive(session, factory):
    factory.documents(5)  # created T0 + n days
    docs = (
        LegalpadDocumentQuery(session)
        .with_date_created_after(T0 + timedelta(days=2))
        .with_date_created_before(T0 + timedelta(days=4))
        .execute()
    )
    assert _ids(docs) == [2, 3, 4]


def test_with_contributor_phids_joins_edges_once_per_document(session, factory):
    d1, d2, d3 = factory.documents(3)
    factory.contributor(d1, "PHID-USER-bob")
    factory.contributor(d1, "PHID-USER-carol")
    factory.contributor(d3, "PHID-USER-carol")

    docs = LegalpadDocumentQuery(session).with_contributor_phids(["PHID-USER-bob", "PHID-USER-carol"]).execute()

    assert _ids(docs) == [1, 3]


def test_contributor_filter_ignores_inverse_edges(session, factory):
    d1 = factory.document(1)
    factory.contributor(d1, "PHID-USER-bob")
    # The inverse edge has the user as source; it must not match a document lookup by contributor.
    assert LegalpadDocumentQuery(session).with_contributor_phids([d1.phid]).execute() == []


def test_constraints_are_anded(session, factory):
    factory.document(1, creator="PHID-USER-alice")
    factory.document(2, creator="PHID-USER-bob")
    factory.document(3, creator="PHID-USER-alice")
    docs = LegalpadDocumentQuery(session).with_creator_phids(["PHID-USER-alice"]).with_ids([2, 3]).execute()
    assert _ids(docs) == [3]


@pytest.mark.parametrize("empty", [None, [], set()])
def test_empty_constraint_is_no_restriction(session, factory, empty):
    factory.documents(3)
    docs = (
        LegalpadDocumentQuery(session)
        .with_ids(empty)
        .with_phids(empty)
        .with_creator_phids(empty)
        .with_contributor_phids(empty)
        .with_signer_phids(empty)
        .execute()
    )
    assert _ids(docs) == [1, 2, 3]


def test_configuration_order_does_not_matter(session, factory):
    factory.documents(6)
    a = LegalpadDocumentQuery(session).with_ids([1, 2, 3, 4]).set_limit(2).with_creator_phids(["PHID-USER-alice"])
    b = LegalpadDocumentQuery(session).set_limit(2).with_creator_phids(["PHID-USER-alice"]).with_ids([4, 3, 2, 1])
    assert _ids(a.execute()) == _ids(b.execute()) == [1, 2]


def test_pages_walk_without_repeats_or_gaps(session, factory):
    factory.documents(7)
    seen = []
    cursor = None
    pages = 0
    while True:
        page = LegalpadDocumentQuery(session).set_limit(3).set_after_cursor(cursor).execute_page()
        assert len(page.documents) <= 3
        seen.extend(_ids(page.documents))
        pages += 1
        cursor = page.next_cursor
        if cursor is None:
            break
    assert seen == [1, 2, 3, 4, 5, 6, 7]
    assert pages == 3


def test_same_cursor_same_page(session, factory):
    factory.documents(6)
    first = LegalpadDocumentQuery(session).set_limit(2).execute_page()

    again = LegalpadDocumentQuery(session).set_limit(2).set_after_cursor(first.next_cursor).execute_page()
    once_more = LegalpadDocumentQuery(session).set_limit(2).set_after_cursor(first.next_cursor).execute_page()

    assert _ids(again.documents) == _ids(once_more.documents) == [3, 4]
    assert again.next_cursor == once_more.next_cursor


def test_insert_behind_cursor_does_not_shift_next_page(session, factory):
    for n in (10, 20, 30, 40):
        factory.document(n)
    first = LegalpadDocumentQuery(session).set_limit(2).execute_page()
    factory.document(5)  # sorts before everything already paged

    second = LegalpadDocumentQuery(session).set_limit(2).set_after_cursor(first.next_cursor).execute_page()

    assert _ids(first.documents) == [10, 20]
    assert _ids(second.documents) == [30, 40]


def test_limit_capped_by_max_page_size(session, factory):
    factory.documents(5)
    q = LegalpadDocumentQuery(session, max_page_size=2).set_limit(50)
    assert q.limit == 2
    assert len(q.execute()) == 2


def test_non_positive_limit_rejected(session):
    with pytest.raises(ValueError):
        LegalpadDocumentQuery(session).set_limit(0)


def test_invalid_cursor_rejected(session):
    with pytest.raises(InvalidCursorError):
        LegalpadDocumentQuery(session).set_after_cursor("nope").execute()


def test_iter_pages_visits_everything(session, factory):
    factory.documents(5)
    pages = list(LegalpadDocumentQuery(session).set_limit(2).iter_pages())
    assert [_ids(p.documents) for p in pages] == [[1, 2], [3, 4], [5]]
    assert [p.state for p in pages] == [PagerState.HAS_MORE, PagerState.HAS_MORE, PagerState.EXHAUSTED]


def test_execute_one(session, factory):
    factory.documents(2)
    assert LegalpadDocumentQuery(session).with_ids([2]).execute_one().id == 2
    assert LegalpadDocumentQuery(session).with_ids([99]).execute_one() is None
    with pytest.raises(QueryExecutionError):
        LegalpadDocumentQuery(session).execute_one()


def test_signer_filter_shrinks_page_without_backfill(session, factory):
    docs = factory.documents(4, versions=2)
    # Only documents 2 and 4 carry a current signature from bob.
    factory.signature(docs[0], "PHID-USER-bob", version=1)
    factory.signature(docs[1], "PHID-USER-bob", version=2)
    factory.signature(docs[3], "PHID-USER-bob", version=2)

    page = LegalpadDocumentQuery(session).with_signer_phids(["PHID-USER-bob"]).set_limit(3).execute_page()

    assert _ids(page.documents) == [2]
    assert page.requested_limit == 3
    # Cursor points past every fetched row, including the ones filtered out.
    rest = LegalpadDocumentQuery(session).with_signer_phids(["PHID-USER-bob"]).set_limit(3).set_after_cursor(page.next_cursor).execute()
    assert _ids(rest) == [4]


def test_signer_filter_requires_every_signer(session, factory):
    d = factory.document(1, versions=3)
    factory.signature(d, "PHID-USER-alice", version=2)
    factory.signature(d, "PHID-USER-bob", version=3)

    both = LegalpadDocumentQuery(session).with_signer_phids(["PHID-USER-alice", "PHID-USER-bob"]).execute()
    bob = LegalpadDocumentQuery(session).with_signer_phids(["PHID-USER-bob"]).execute()

    assert both == []
    assert _ids(bob) == [1]


def test_policy_filters_page_in_order(session, factory):
    factory.documents(6)
    page = (
        LegalpadDocumentQuery(session)
        .set_limit(4)
        .set_policy(lambda docs: [d for d in docs if d.id % 2])
        .execute_page()
    )
    assert _ids(page.documents) == [1, 3]
    assert page.has_more


def test_storage_failure_raises_query_error(session, factory, monkeypatch):
    factory.documents(2)

    def _boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection lost"))

    monkeypatch.setattr(session, "execute", _boom)
    with pytest.raises(QueryExecutionError) as exc:
        LegalpadDocumentQuery(session).execute()
    assert isinstance(exc.value.__cause__, OperationalError)


def test_hydration_failure_returns_nothing(session, factory, monkeypatch):
    factory.documents(2)
    real_execute = session.execute
    calls = []

    def _fail_second(*args, **kwargs):
        calls.append(1)
        if len(calls) > 1:
            raise OperationalError("SELECT", {}, Exception("replica went away"))
        return real_execute(*args, **kwargs)

    monkeypatch.setattr(session, "execute", _fail_second)
    with pytest.raises(QueryExecutionError):
        LegalpadDocumentQuery(session).need_document_bodies(True).execute()


def test_timeout_anywhere_returns_nothing(session, factory, monkeypatch):
    factory.documents(3)
    clock = SimpleNamespace(now=1000.0)
    monkeypatch.setattr(query_module, "time", SimpleNamespace(monotonic=lambda: clock.now))

    def _slow_policy(docs):
        clock.now += 60
        return list(docs)

    q = LegalpadDocumentQuery(session, timeout=5).set_policy(_slow_policy).need_document_bodies(True)
    with pytest.raises(QueryTimeoutError):
        q.execute()


def test_timeout_disabled(session, factory, monkeypatch):
    factory.documents(1)
    clock = SimpleNamespace(now=1000.0)
    monkeypatch.setattr(query_module, "time", SimpleNamespace(monotonic=lambda: clock.now))

    def _slow_policy(docs):
        clock.now += 3600
        return list(docs)

    assert _ids(LegalpadDocumentQuery(session, timeout=None).set_policy(_slow_policy).execute()) == [1]


def test_execute_one_fetches_at_most_three_rows(session, factory, monkeypatch):
    factory.documents(5)
    fetch_sizes = []
    real_build = LegalpadDocumentQuery.build_statement

    def _build(self, after, fetch_size):
        fetch_sizes.append(fetch_size)
        return real_build(self, after, fetch_size)

    monkeypatch.setattr(LegalpadDocumentQuery, "build_statement", _build)
    q = LegalpadDocumentQuery(session)
    with pytest.raises(QueryExecutionError):
        q.execute_one()

    assert fetch_sizes == [3]
    assert q.limit == 100


def test_statement_timeout_is_released_after_the_page(session, factory, monkeypatch):
    factory.documents(2)
    monkeypatch.setattr(LegalpadDocumentQuery, "_uses_statement_timeout", lambda self, deadline: True)
    real_execute = session.execute
    sent = []

    def _execute(stmt, *args, **kwargs):
        sql = str(stmt)
        if "set_config" in sql or "statement_timeout" in sql:
            sent.append(sql)
            return None
        return real_execute(stmt, *args, **kwargs)

    monkeypatch.setattr(session, "execute", _execute)
    assert _ids(LegalpadDocumentQuery(session).execute()) == [1, 2]

    assert len(sent) == 2
    assert "set_config" in sent[0]
    assert sent[1] == "SET LOCAL statement_timeout TO DEFAULT"
