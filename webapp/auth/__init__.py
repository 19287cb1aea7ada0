from typing import Iterable

from flask import Blueprint

from core.models.authenticatable import Capability


# 登録途中の入力内容を保持するセッションキー（/users/cancel で破棄）
PENDING_REGISTRATION_SESSION_KEY = "pending_registration"


def create_blueprint(capabilities: Iterable[Capability]) -> Blueprint:
    """Build the ``/users`` route set for the enabled *capabilities*."""
    from .routes import ROUTE_TABLE

    enabled = frozenset(capabilities)
    bp = Blueprint("users", __name__, template_folder="templates")
    for capability, rule, view_func, methods in ROUTE_TABLE:
        if capability in enabled:
            bp.add_url_rule(rule, view_func=view_func, methods=methods)
    return bp


__all__ = ["create_blueprint", "PENDING_REGISTRATION_SESSION_KEY"]
