import logging
from datetime import timedelta

from flask import Flask, g, jsonify
from dotenv import load_dotenv

from app.legalpad.config import load_config
from app.legalpad.db import init_db, teardown_db_session
from app.legalpad.routes import bp as routes_bp
from app.legalpad.auth import load_current_user
from app.legalpad.modules.documents.api import bp as documents_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    if app.config["LEGALPAD_PAGE_SIZE"] <= 0 or app.config["LEGALPAD_MAX_PAGE_SIZE"] <= 0:
        raise RuntimeError("LEGALPAD_PAGE_SIZE and LEGALPAD_MAX_PAGE_SIZE must be positive.")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                for key in ("sqlalchemy_engine", "sqlalchemy_read_engine"):
                    engine = app.extensions.get(key)
                    if engine:
                        engine.dispose()
                app.logger.info("Disposed DB engines after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(documents_bp, url_prefix="/api/legalpad")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    def _error(code: str, message: str, status: int):
        return jsonify({"error": {"code": code, "message": message}}), status

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return _error("INTERNAL_ERROR", "Internal server error.", 500)

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        return _error("UNAUTHENTICATED", "Sign in required.", 401)

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return _error("FORBIDDEN", f"Missing permission: {missing}" if missing else "Forbidden.", 403)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
