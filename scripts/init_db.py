import os
import sys
import uuid
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.legalpad.models import Permission, Role, User  # noqa: E402


@contextmanager
def _seed_session(database_url: str):
    engine = create_engine(database_url, future=True, pool_pre_ping=True)
    s: Session = sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False, future=True)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Schema comes from `alembic upgrade head`; this only inserts reference rows.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@legalpad.local").strip().lower()
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///legalpad.db").strip()

    with _seed_session(db_url) as s:
        def ensure_perm(key: str, name: str) -> Permission:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            return p

        def ensure_role(key: str, name: str) -> Role:
            r = s.query(Role).filter(Role.key == key).one_or_none()
            if not r:
                r = Role(key=key, name=name)
                s.add(r)
            return r

        p_view = ensure_perm("legalpad.view", "Legalpad: list documents")
        p_view_all = ensure_perm("legalpad.view_all", "Legalpad: see every document")

        admin = ensure_role("admin", "Administrator")
        reader = ensure_role("reader", "Reader")
        for role, perms in ((admin, (p_view, p_view_all)), (reader, (p_view,))):
            for p in perms:
                if p not in role.permissions:
                    role.permissions.append(p)

        u = s.query(User).filter(User.email == admin_email).one_or_none()
        if not u:
            u = User(email=admin_email, phid=f"PHID-USER-{uuid.uuid4().hex[:20]}", is_active=True)
            s.add(u)
        if admin not in u.roles:
            u.roles.append(admin)

    print(f"Seed complete (admin={admin_email}).")


if __name__ == "__main__":
    seed_only()
