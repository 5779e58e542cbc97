from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import wraps
from typing import TYPE_CHECKING, Any

from flask import abort, g

from app.legalpad.models import User

if TYPE_CHECKING:
    from app.legalpad.modules.documents.models import LegalpadDocument


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated → 401; authenticated but unauthorized → 403
            if not user or not user.is_active:
                abort(401)
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


# Access policies: given a candidate page in order, return the visible subset
# in the same order.


def allow_all(documents: Sequence["LegalpadDocument"]) -> list["LegalpadDocument"]:
    return list(documents)


def viewer_policy(user: User | None) -> Callable[[Sequence["LegalpadDocument"]], list["LegalpadDocument"]]:
    """
    Holders of ``legalpad.view_all`` see every document; anyone else sees
    the documents they created.
    """
    # Resolved once so filtering a page never touches the database.
    sees_all = user_has_permission(user, "legalpad.view_all")
    viewer_phid = user.phid if user is not None and user.is_active else None

    def policy(documents: Sequence["LegalpadDocument"]) -> list["LegalpadDocument"]:
        if sees_all:
            return list(documents)
        if viewer_phid is None:
            return []
        return [d for d in documents if d.creator_phid == viewer_phid]

    return policy
