from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request

from app.legalpad.db import db_session
from app.legalpad.errors import InvalidCursorError, QueryExecutionError, QueryTimeoutError
from app.legalpad.modules.documents.models import LegalpadDocument, LegalpadDocumentSignature
from app.legalpad.modules.documents.query import LegalpadDocumentQuery
from app.legalpad.rbac import require_permission, viewer_policy

bp = Blueprint("legalpad_documents", __name__)

_NEED_FLAGS = ("body", "contributors", "signatures")


class _BadRequest(ValueError):
    pass


def _error(code: str, message: str, status: int):
    return jsonify({"error": {"code": code, "message": message}}), status


def _list_arg(name: str) -> list[str] | None:
    # Accept both ?x=a&x=b and ?x=a,b
    values = [v.strip() for raw in request.args.getlist(name) for v in raw.split(",") if v.strip()]
    return values or None


def _int_list_arg(name: str) -> list[int] | None:
    values = _list_arg(name)
    if values is None:
        return None
    try:
        return [int(v) for v in values]
    except ValueError as e:
        raise _BadRequest(f"{name} must be integers") from e


def _datetime_arg(name: str) -> datetime | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise _BadRequest(f"{name} must be an ISO-8601 date or datetime") from e


def _limit_arg() -> int | None:
    raw = (request.args.get("limit") or "").strip()
    if not raw:
        return None
    try:
        limit = int(raw)
    except ValueError as e:
        raise _BadRequest("limit must be an integer") from e
    if limit <= 0:
        raise _BadRequest("limit must be positive")
    return limit


def _need_args() -> set[str]:
    needs = set(_list_arg("need") or ())
    unknown = needs - set(_NEED_FLAGS)
    if unknown:
        raise _BadRequest(f"Unknown need flag(s): {', '.join(sorted(unknown))}")
    return needs


def _signature_json(sig: LegalpadDocumentSignature) -> dict[str, Any]:
    return {
        "signer_phid": sig.signer_phid,
        "document_version": sig.document_version,
        "signed_at": sig.date_created.isoformat(),
        "data": sig.signature_data,
    }


def _document_json(d: LegalpadDocument) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": d.id,
        "phid": d.phid,
        "title": d.title,
        "creator_phid": d.creator_phid,
        "version": d.versions,
        "contributor_count": d.contributor_count,
        "date_created": d.date_created.isoformat(),
    }
    if d.has_attached("document_body"):
        body = d.document_body
        out["body"] = None if body is None else {"phid": body.phid, "title": body.title, "text": body.text}
    if d.has_attached("contributors"):
        out["contributors"] = d.contributors
    if d.has_attached("signatures"):
        out["signatures"] = [_signature_json(sig) for sig in d.signatures]
    return out


@bp.get("/documents")
@require_permission("legalpad.view")
def list_documents():
    try:
        needs = _need_args()
        query = (
            LegalpadDocumentQuery(
                db_session(readonly=True),
                page_size=current_app.config["LEGALPAD_PAGE_SIZE"],
                max_page_size=current_app.config["LEGALPAD_MAX_PAGE_SIZE"],
                timeout=current_app.config["LEGALPAD_QUERY_TIMEOUT_SECONDS"],
            )
            .with_ids(_int_list_arg("id"))
            .with_phids(_list_arg("phid"))
            .with_creator_phids(_list_arg("creator"))
            .with_contributor_phids(_list_arg("contributor"))
            .with_signer_phids(_list_arg("signer"))
            .with_date_created_after(_datetime_arg("after"))
            .with_date_created_before(_datetime_arg("before"))
            .need_document_bodies("body" in needs)
            .need_contributors("contributors" in needs)
            .need_signatures("signatures" in needs)
            .set_after_cursor(request.args.get("cursor"))
            .set_policy(viewer_policy(g.current_user))
        )
        limit = _limit_arg()
        if limit is not None:
            query.set_limit(limit)
        page = query.execute_page()
    except (_BadRequest, InvalidCursorError) as e:
        return _error("BAD_REQUEST", str(e), 400)
    except QueryTimeoutError:
        return _error("QUERY_TIMEOUT", "Document query timed out.", 504)
    except QueryExecutionError:
        current_app.logger.error("Document list failed (request_id=%s)", getattr(g, "request_id", None))
        return _error("QUERY_FAILED", "Document query failed.", 503)

    return jsonify(
        {
            "documents": [_document_json(d) for d in page.documents],
            "next_cursor": page.next_cursor,
            "limit": page.requested_limit,
        }
    )
