from typing import Optional

from flask import current_app, request, session
from flask_login import current_user

from core.models.authenticatable import Capability, SERVER_CAPABILITIES
from core.models.user import User


AUTH_CAPABILITIES_EXTENSION = "auth_capabilities"


def enabled_capabilities() -> frozenset[Capability]:
    """Capabilities switched on for the running application."""
    return current_app.extensions.get(AUTH_CAPABILITIES_EXTENSION, SERVER_CAPABILITIES)


def capability_enabled(capability: Capability) -> bool:
    return capability in enabled_capabilities()


def acting_user_id() -> Optional[str]:
    """Return the signed-in user's identifier from the session, if any."""
    # current_user の解決で remember cookie からの復元と無効なセッションの破棄を行う
    current_user._get_current_object()
    identifier, _token = User.split_session_id(session.get("_user_id"))
    return identifier


def resolve_current_user() -> User:
    return User.current(acting_user_id())


def safe_next_target(default: str = "/") -> str:
    """resolve a safe relative redirect target, falling back to *default*"""
    candidate = request.values.get("next")
    if candidate and candidate.startswith("/") and not candidate.startswith("//"):
        return candidate
    return default


def safe_next_value() -> Optional[str]:
    candidate = request.values.get("next")
    if candidate and candidate.startswith("/") and not candidate.startswith("//"):
        return candidate
    return None
