import logging

from flask import (
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_babel import gettext as _
from flask_login import current_user, login_required, login_user, logout_user

from core.logging_config import log_auth_event
from core.models.authenticatable import Capability
from core.models.user import User
from . import PENDING_REGISTRATION_SESSION_KEY
from .utils import capability_enabled, safe_next_target, safe_next_value
from .validation import validate_email, validate_password, validate_registration
from ..extensions import db
from ..services.password_reset_service import PasswordResetService


_BOOL_TRUE = {"1", "true", "yes", "on"}


def _flash_errors(errors):
    for message in errors:
        flash(message, "error")


def _sign_in(user, redirect_target, *, remember=False):
    """セッションを確立し、リダイレクトレスポンスを返す。"""
    login_user(user, remember=remember)
    if remember:
        user.remember_me()
        db.session.commit()
    log_auth_event(
        current_app.logger,
        "User signed in",
        "auth.sign_in",
        user_id=user.id,
        remember=remember,
        path=request.path,
    )
    return redirect(redirect_target)


def _refresh_session_identity(user):
    """パスワード変更後も現在のセッションを維持する"""
    session["_user_id"] = user.get_id()
    if current_app.config.get("REMEMBER_COOKIE_NAME", "remember_token") in request.cookies:
        session["_remember"] = "set"


def _after_sign_out_path():
    return url_for("index")


def _sign_in_path():
    if capability_enabled(Capability.DATABASE_AUTHENTICATABLE):
        return url_for("users.new_session")
    return url_for("index")


def _render_sign_in(email=None):
    return render_template(
        "users/sessions/new.html",
        email=email,
        next_value=safe_next_value(),
        rememberable=capability_enabled(Capability.REMEMBERABLE),
    )


# ---- sessions (database_authenticatable) ----

def new_session():
    if current_user.is_authenticated:
        return redirect(url_for("index"))
    return _render_sign_in()


def create_session():
    email = request.form.get("email")
    password = request.form.get("password")
    user = User.find_by_email(email)
    if not user or not user.is_active or not user.check_password(password):
        log_auth_event(
            current_app.logger,
            "Sign-in rejected",
            "auth.sign_in.failed",
            level=logging.WARNING,
            path=request.path,
        )
        flash(_("Invalid email or password."), "error")
        return _render_sign_in(email=email)

    remember = (
        capability_enabled(Capability.REMEMBERABLE)
        and (request.form.get("remember_me") or "").strip().lower() in _BOOL_TRUE
    )
    flash(_("Signed in successfully."), "success")
    return _sign_in(user, safe_next_target(url_for("index")), remember=remember)


def destroy_session():
    if current_user.is_authenticated:
        user = current_user._get_current_object()
        if capability_enabled(Capability.REMEMBERABLE):
            user.forget_me()
        # 他のセッションと発行済みの remember cookie を無効にする
        user.rotate_session_token()
        db.session.commit()
        log_auth_event(
            current_app.logger,
            "User signed out",
            "auth.sign_out",
            user_id=user.id,
            path=request.path,
        )
        logout_user()
    flash(_("Signed out successfully."), "success")
    return redirect(_after_sign_out_path())


# ---- registrations (registerable) ----

def new_registration():
    pending = session.get(PENDING_REGISTRATION_SESSION_KEY) or {}
    return render_template("users/registrations/new.html", email=pending.get("email"))


def create_registration():
    email = request.form.get("email")
    password = request.form.get("password")
    confirmation = request.form.get("password_confirmation")

    errors = validate_registration(email, password, confirmation)
    if errors:
        session[PENDING_REGISTRATION_SESSION_KEY] = {"email": email or ""}
        _flash_errors(errors)
        return render_template("users/registrations/new.html", email=email)

    user = User(email=User.normalize_email(email))
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    session.pop(PENDING_REGISTRATION_SESSION_KEY, None)

    log_auth_event(
        current_app.logger,
        "User registered",
        "auth.registration",
        user_id=user.id,
        path=request.path,
    )
    flash(_("Welcome! You have signed up successfully."), "success")
    if capability_enabled(Capability.DATABASE_AUTHENTICATABLE):
        return _sign_in(user, url_for("index"))
    return redirect(url_for("index"))


@login_required
def edit_registration():
    return render_template("users/registrations/edit.html", user=current_user)


@login_required
def update_registration():
    user = current_user._get_current_object()
    email = request.form.get("email")
    password = request.form.get("password")
    confirmation = request.form.get("password_confirmation")
    current_password = request.form.get("current_password")

    errors = []
    if not user.check_password(current_password):
        errors.append(_("Current password is invalid"))
    normalized = User.normalize_email(email) if email is not None else user.email
    if normalized != user.email:
        errors.extend(validate_email(normalized, user=user))
    errors.extend(validate_password(password, confirmation, required=False))

    if errors:
        _flash_errors(errors)
        return render_template("users/registrations/edit.html", user=user)

    user.email = normalized
    if password:
        user.set_password(password)
    db.session.commit()
    if password:
        _refresh_session_identity(user)

    log_auth_event(
        current_app.logger,
        "User updated account",
        "auth.registration.update",
        user_id=user.id,
        password_changed=bool(password),
        path=request.path,
    )
    flash(_("Your account has been updated successfully."), "success")
    return redirect(url_for("index"))


@login_required
def destroy_registration():
    user = current_user._get_current_object()
    user_id = user.id
    logout_user()
    db.session.delete(user)
    db.session.commit()

    log_auth_event(
        current_app.logger,
        "User cancelled account",
        "auth.registration.destroy",
        user_id=user_id,
        path=request.path,
    )
    flash(_("Bye! Your account has been successfully cancelled. We hope to see you again soon."), "success")
    return redirect(_after_sign_out_path())


def cancel_registration():
    session.pop(PENDING_REGISTRATION_SESSION_KEY, None)
    return redirect(url_for("users.new_registration"))


# ---- passwords (recoverable) ----

def new_password():
    return render_template("users/passwords/new.html")


def create_password():
    PasswordResetService.create_reset_request(request.form.get("email"))
    flash(
        _(
            "If your email address exists in our database, you will receive a "
            "password recovery link at your email address in a few minutes."
        ),
        "success",
    )
    return redirect(_sign_in_path())


def edit_password():
    token = request.args.get("reset_password_token")
    if not token:
        flash(
            _(
                "You can't access this page without coming from a password reset "
                "email. If you do come from a password reset email, please make sure "
                "you used the full URL provided."
            ),
            "error",
        )
        return redirect(_sign_in_path())
    return render_template("users/passwords/edit.html", reset_password_token=token)


def update_password():
    token = request.form.get("reset_password_token")
    password = request.form.get("password")
    confirmation = request.form.get("password_confirmation")

    errors = validate_password(password, confirmation)
    if errors:
        _flash_errors(errors)
        return render_template("users/passwords/edit.html", reset_password_token=token)

    user = PasswordResetService.reset_password(token, password)
    if user is None:
        flash(_("Reset password token is invalid"), "error")
        return render_template("users/passwords/edit.html", reset_password_token=token)

    if capability_enabled(Capability.DATABASE_AUTHENTICATABLE):
        flash(_("Your password has been changed successfully. You are now signed in."), "success")
        return _sign_in(user, url_for("index"))
    flash(_("Your password has been changed successfully."), "success")
    return redirect(url_for("index"))


# (capability, rule, view, methods): /users 配下に登録される
ROUTE_TABLE = [
    (Capability.DATABASE_AUTHENTICATABLE, "/sign_in", new_session, ["GET"]),
    (Capability.DATABASE_AUTHENTICATABLE, "/sign_in", create_session, ["POST"]),
    (Capability.DATABASE_AUTHENTICATABLE, "/sign_out", destroy_session, ["DELETE", "POST"]),
    (Capability.REGISTERABLE, "/sign_up", new_registration, ["GET"]),
    (Capability.REGISTERABLE, "", create_registration, ["POST"]),
    (Capability.REGISTERABLE, "/edit", edit_registration, ["GET"]),
    (Capability.REGISTERABLE, "", update_registration, ["PUT", "PATCH"]),
    (Capability.REGISTERABLE, "", destroy_registration, ["DELETE"]),
    (Capability.REGISTERABLE, "/cancel", cancel_registration, ["GET"]),
    (Capability.RECOVERABLE, "/password/new", new_password, ["GET"]),
    (Capability.RECOVERABLE, "/password", create_password, ["POST"]),
    (Capability.RECOVERABLE, "/password/edit", edit_password, ["GET"]),
    (Capability.RECOVERABLE, "/password", update_password, ["PUT", "PATCH"]),
]
