"""Request helpers shared by the storefront views."""

from typing import Optional

SESSION_HEADER = "X-Session-Id"


def session_id_from(request) -> Optional[str]:
    value = (request.headers.get(SESSION_HEADER) or "").strip()
    return value[:64] or None


def owner_from(request) -> dict:
    """Cart owner keys for a request: the authenticated user and/or the guest session."""

    user = getattr(request, "user", None)
    user_id = user.id if user is not None and user.is_authenticated else None
    return {"user_id": user_id, "session_id": session_id_from(request)}
