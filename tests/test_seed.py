from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.legalpad.models import Base, Permission, User
from app.legalpad.rbac import user_has_permission
from scripts.init_db import seed_only


def test_seed_is_idempotent(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path/'seed.db'}"
    engine = create_engine(db_url, future=True)
    Base.metadata.create_all(bind=engine)
    monkeypatch.setenv("ADMIN_EMAIL", "Owner@Example.com")

    seed_only(database_url=db_url)
    seed_only(database_url=db_url)

    with Session(engine) as s:
        keys = sorted(p.key for p in s.query(Permission).all())
        admin = s.query(User).filter(User.email == "owner@example.com").one()
        assert keys == ["legalpad.view", "legalpad.view_all"]
        assert admin.phid.startswith("PHID-USER-")
        assert user_has_permission(admin, "legalpad.view_all")
    engine.dispose()
