from datetime import datetime, timedelta

import pytest
from sqlalchemy import event

from app.legalpad import create_app
from app.legalpad.models import Base, Edge, Permission, RelationKind, Role, User
from app.legalpad.modules.documents.models import (
    LegalpadDocument,
    LegalpadDocumentBody,
    LegalpadDocumentSignature,
)

T0 = datetime(2026, 1, 1, 9, 0, 0)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    for k in ("DATABASE_REPLICA_URL", "LEGALPAD_PAGE_SIZE", "LEGALPAD_MAX_PAGE_SIZE", "LEGALPAD_QUERY_TIMEOUT_SECONDS"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app


@pytest.fixture()
def session(app):
    s = app.extensions["sqlalchemy_sessionmaker"]()
    yield s
    s.close()


@pytest.fixture()
def statements(app):
    """SQL statements sent to the database while the test runs (SELECTs only)."""
    engine = app.extensions["sqlalchemy_engine"]
    captured: list[str] = []

    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("SELECT"):
            captured.append(statement)

    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    yield captured
    event.remove(engine, "before_cursor_execute", _before_cursor_execute)


class Factory:
    """Inserts rows directly; the read layer under test never writes."""

    def __init__(self, s):
        self.s = s

    def user(self, name: str, *, permissions: tuple[str, ...] = ()) -> User:
        u = User(phid=f"PHID-USER-{name}", email=f"{name}@example.com", is_active=True)
        if permissions:
            r = Role(key=f"role-{name}", name=f"Role {name}")
            for key in permissions:
                p = self.s.query(Permission).filter(Permission.key == key).one_or_none()
                if p is None:
                    p = Permission(key=key, name=key)
                r.permissions.append(p)
            u.roles.append(r)
        self.s.add(u)
        self.s.commit()
        return u

    def document(
        self,
        doc_id: int,
        *,
        creator: str = "PHID-USER-alice",
        versions: int = 1,
        created: datetime | None = None,
        with_body: bool = True,
    ) -> LegalpadDocument:
        phid = f"PHID-LEGD-{doc_id:04d}"
        body_phid = f"PHID-LEGB-{doc_id:04d}"
        d = LegalpadDocument(
            id=doc_id,
            phid=phid,
            title=f"Document {doc_id}",
            creator_phid=creator,
            document_body_phid=body_phid,
            versions=versions,
            date_created=created or T0 + timedelta(days=doc_id),
            date_modified=created or T0 + timedelta(days=doc_id),
        )
        self.s.add(d)
        if with_body:
            self.s.add(
                LegalpadDocumentBody(
                    phid=body_phid,
                    creator_phid=creator,
                    document_phid=phid,
                    version=versions,
                    title=f"Document {doc_id}",
                    text=f"Terms of document {doc_id}, version {versions}.",
                    date_created=T0,
                )
            )
        self.s.commit()
        return d

    def documents(self, count: int, **kwargs) -> list[LegalpadDocument]:
        return [self.document(i, **kwargs) for i in range(1, count + 1)]

    def contributor(self, doc: LegalpadDocument, user_phid: str, *, seq: int = 0) -> None:
        self.s.add(Edge(src=doc.phid, type=RelationKind.DOCUMENT_HAS_CONTRIBUTOR, dst=user_phid, seq=seq, date_created=T0))
        self.s.add(Edge(src=user_phid, type=RelationKind.CONTRIBUTED_TO_DOCUMENT, dst=doc.phid, seq=seq, date_created=T0))
        doc.contributor_count += 1
        self.s.commit()

    def signature(self, doc: LegalpadDocument, signer_phid: str, *, version: int) -> LegalpadDocumentSignature:
        sig = LegalpadDocumentSignature(
            document_phid=doc.phid,
            document_version=version,
            signer_phid=signer_phid,
            signature_json='{"name": "%s"}' % signer_phid.rsplit("-", 1)[-1],
            date_created=T0,
        )
        self.s.add(sig)
        self.s.commit()
        return sig


@pytest.fixture()
def factory(session):
    return Factory(session)
