from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager

from flask import Flask, g
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker


def _make_engine(app: Flask, db_url: str) -> Engine:
    engine_kwargs: dict[str, object] = {
        "future": True,
        "pool_pre_ping": True,
    }
    if db_url.startswith("postgres"):
        engine_kwargs.update(
            {
                "pool_recycle": 1800,
                "pool_size": 5,
                "max_overflow": 10,
                "pool_timeout": 30,
            }
        )
    engine = create_engine(db_url, **engine_kwargs)
    if app.config.get("ENV") != "production":
        @event.listens_for(engine, "checkout")
        def _receive_checkout(dbapi_connection, connection_record, connection_proxy):  # type: ignore[no-redef]
            app.logger.debug("DB connection checkout from pool (%s)", engine.url.render_as_string(hide_password=True))
    return engine


def _make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def init_db(app: Flask) -> None:
    """
    Primary engine plus an optional read replica. Document queries only read,
    so they may run against DATABASE_REPLICA_URL when it is configured.
    """
    engine = _make_engine(app, app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = _make_sessionmaker(engine)

    replica_url = app.config.get("DATABASE_REPLICA_URL")
    read_engine = _make_engine(app, replica_url) if replica_url else engine
    app.extensions["sqlalchemy_read_engine"] = read_engine
    app.extensions["sqlalchemy_read_sessionmaker"] = (
        _make_sessionmaker(read_engine) if replica_url else app.extensions["sqlalchemy_sessionmaker"]
    )


def db_session(app: Flask | None = None, *, readonly: bool = False) -> Session:
    """
    Request-scoped session. Use inside request handlers.
    ``readonly`` sessions come from the replica when one is configured.
    """
    attr = "db_read_session" if readonly else "db_session"
    existing: Session | None = getattr(g, attr, None)
    if existing is not None:
        return existing
    if app is None:
        from flask import current_app

        app = current_app
    sm = app.extensions["sqlalchemy_read_sessionmaker" if readonly else "sqlalchemy_sessionmaker"]
    s: Session = sm()
    setattr(g, attr, s)
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    for attr in ("db_session", "db_read_session"):
        s: Session | None = getattr(g, attr, None)
        if s is None:
            continue
        try:
            s.close()
        finally:
            setattr(g, attr, None)



@contextmanager
def session_scope(app: Flask, *, readonly: bool = False) -> Generator[Session, None, None]:
    """
    Session outside a request (scripts, tests). Commits on success; a
    ``readonly`` scope is bound like ``db_session(readonly=True)`` and never commits.
    """
    s: Session = app.extensions["sqlalchemy_read_sessionmaker" if readonly else "sqlalchemy_sessionmaker"]()
    try:
        yield s
        if not readonly:
            s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
