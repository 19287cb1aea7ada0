from core.db import db
from flask_migrate import Migrate
from flask_login import LoginManager, user_logged_in, user_loaded_from_cookie
from flask_babel import Babel
from flask_babel import lazy_gettext as _l
from flask_mail import Mail
from flask import current_app, has_request_context, request, session

migrate = Migrate()
login_manager = LoginManager()
login_manager.login_view = "users.new_session"  # 未ログイン時のリダイレクト先
login_manager.login_message = _l("You need to sign in or sign up before continuing.")
login_manager.login_message_category = "error"
babel = Babel()
mail = Mail()


def _drop_session_identity():
    """Forget the rejected identity so the request is handled as anonymous."""
    if not has_request_context():
        return
    session.pop("_user_id", None)
    session.pop("_fresh", None)
    if current_app.config.get("REMEMBER_COOKIE_NAME", "remember_token") in request.cookies:
        session["_remember"] = "clear"


@login_manager.user_loader
def load_user(session_id):
    """Resolve ``"<id>:<session_token>"`` from the session or the remember cookie."""
    from core.models.user import User

    identifier, token = User.split_session_id(session_id)
    try:
        numeric_id = int(identifier)
    except (TypeError, ValueError):
        return None

    user = db.session.get(User, numeric_id)
    if user is None:
        # 削除済みユーザーの ID はセッションに残し、User.current で 404 にする
        return None
    if not user.is_active or not user.session_token_matches(token):
        _drop_session_identity()
        current_app.logger.info(
            "Rejected stored session identity",
            extra={"event": "auth.session_rejected", "user_id": user.id, "active": user.is_active},
        )
        return None
    return user


def _remote_ip():
    if not has_request_context():
        return None
    return request.remote_addr


@user_logged_in.connect
@user_loaded_from_cookie.connect
def track_sign_in(sender, user=None, **extra):
    """Update the trackable columns whenever a user signs in."""
    from core.models.authenticatable import Capability
    from webapp.auth.utils import capability_enabled

    if user is None or not capability_enabled(Capability.TRACKABLE):
        return
    user.update_tracked_fields(_remote_ip())
    db.session.add(user)
    db.session.commit()
    current_app.logger.info(
        "Tracked sign-in",
        extra={
            "event": "auth.trackable",
            "user_id": user.id,
            "sign_in_count": user.sign_in_count,
        },
    )
