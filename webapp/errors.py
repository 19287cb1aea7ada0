"""Error pages and the sign-in requirement response."""

import hashlib
import json
from collections.abc import Mapping, Sequence

from flask import (
    abort,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_babel import gettext as _
from werkzeug.exceptions import HTTPException

from core.models.authenticatable import Capability
from .auth.utils import capability_enabled


SENSITIVE_KEYWORDS = ("password", "passwd", "secret", "token", "remember")
MASK = "***"


def mask_sensitive(data):
    """キー名に機密語を含む値を *** に置き換える（ネストも対象）"""
    if isinstance(data, Mapping):
        return {
            key: MASK if _looks_sensitive(key) else mask_sensitive(value)
            for key, value in data.items()
        }
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes, bytearray)):
        return [mask_sensitive(item) for item in data]
    return data


def _looks_sensitive(key) -> bool:
    return isinstance(key, str) and any(word in key.lower() for word in SENSITIVE_KEYWORDS)


def _request_summary(status: int) -> dict:
    summary = {
        "method": request.method,
        "path": request.path,
        "full_path": request.full_path,
        "ua": request.user_agent.string,
        "status": status,
    }
    if request.query_string:
        summary["query_string"] = request.query_string.decode()
    form = request.form.to_dict()
    if form:
        summary["form"] = mask_sensitive(form)
    return summary


def handle_exception(error):
    """HTTP エラーはそのコードで、それ以外は 500 で error.html を返す"""
    status = error.code if isinstance(error, HTTPException) else 500
    client_error = isinstance(error, HTTPException) and 400 <= status < 500

    message = json.dumps(_request_summary(status), ensure_ascii=False)
    request_id = getattr(g, "request_id", None)
    if client_error:
        current_app.logger.warning(message, extra={"event": "http_4xx", "request_id": request_id})
        public_message = error.description
    else:
        # 5xx は詳細を利用者に見せずスタックトレース付きで記録
        current_app.logger.exception(message, extra={"event": "http_5xx", "request_id": request_id})
        public_message = _("Internal Server Error")

    return render_template("error.html", code=status, message=public_message), status


def handle_unauthorized():
    """``login_required`` で弾かれたリクエストをサインイン画面へ送る。"""
    session_user = session.get("_user_id")
    current_app.logger.warning(
        "Redirected to sign in due to unauthorized access.",
        extra={
            "event": "auth.unauthorized",
            "path": request.path,
            "request_id": getattr(g, "request_id", None),
            "user_id_hash": (
                hashlib.sha256(str(session_user).encode("utf-8")).hexdigest()
                if session_user is not None
                else None
            ),
        },
    )

    if not capability_enabled(Capability.DATABASE_AUTHENTICATABLE):
        abort(401)

    flash(_("You need to sign in or sign up before continuing."), "error")
    return_to = request.full_path if request.query_string else request.path
    return redirect(url_for("users.new_session", next=return_to))


def register_error_handlers(app, login_manager):
    app.register_error_handler(Exception, handle_exception)
    login_manager.unauthorized_handler(handle_unauthorized)
