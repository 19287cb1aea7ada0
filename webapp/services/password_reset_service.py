"""Issue, mail and redeem password reset tokens."""
import secrets
from datetime import timedelta
from typing import Optional

from flask import current_app, render_template, url_for
from flask_babel import gettext as _
from flask_mail import Message

from core.db import db
from core.models.user import User
from webapp.extensions import mail


class PasswordResetService:
    """recoverable: トークン発行・メール送信・パスワード再設定"""

    TOKEN_BYTES = 32
    DEFAULT_VALIDITY_SECONDS = 6 * 60 * 60

    @classmethod
    def generate_reset_token(cls) -> str:
        """URL に埋め込めるランダムトークンを生成する。"""
        return secrets.token_urlsafe(cls.TOKEN_BYTES)

    @classmethod
    def validity(cls) -> timedelta:
        seconds = current_app.config.get("RESET_PASSWORD_WITHIN", cls.DEFAULT_VALIDITY_SECONDS)
        return timedelta(seconds=int(seconds))

    @classmethod
    def _secret_key(cls) -> str:
        return str(current_app.config["SECRET_KEY"])

    @classmethod
    def create_reset_request(cls, email: Optional[str]) -> bool:
        """有効なアカウントならトークンを発行してメールを送る。

        結果は常に True（アカウントの有無を呼び出し側に漏らさない）。
        """
        user = User.find_by_email(email)

        if user and user.is_active:
            raw_token = cls.generate_reset_token()
            # 既存のトークンは上書きされ無効になる
            user.set_reset_password_token(raw_token, cls._secret_key())
            db.session.add(user)
            db.session.commit()

            try:
                cls._send_reset_email(user.email, raw_token)
            except Exception:
                current_app.logger.exception(
                    "Could not deliver password reset instructions",
                    extra={"event": "password_reset.email_failed", "user_id": user.id},
                )
        else:
            current_app.logger.info(
                "Password reset requested for unknown or inactive account",
                extra={"event": "password_reset.unknown_account"},
            )

        return True

    @classmethod
    def _send_reset_email(cls, email: str, token: str) -> None:
        reset_url = url_for(
            "users.edit_password",
            reset_password_token=token,
            _external=True,
        )
        validity_hours = int(cls.validity().total_seconds() // 3600)

        msg = Message(
            subject=_("Reset password instructions"),
            recipients=[email],
            body=render_template(
                "users/mailer/reset_password_instructions.txt",
                email=email,
                reset_url=reset_url,
                validity_hours=validity_hours,
            ),
            html=render_template(
                "users/mailer/reset_password_instructions.html",
                email=email,
                reset_url=reset_url,
                validity_hours=validity_hours,
            ),
        )
        mail.send(msg)

        current_app.logger.info(
            "Password reset instructions sent",
            extra={"event": "password_reset.email_sent"},
        )

    @classmethod
    def find_user_by_token(cls, token: Optional[str]) -> Optional[User]:
        """トークンを検証し、対応する有効なユーザーを返す。

        Args:
            token: 検証するトークン（平文）

        Returns:
            有効な場合はユーザー、無効または期限切れの場合は None
        """
        if not token:
            return None
        digest = User.digest_reset_token(token, cls._secret_key())
        user = db.session.query(User).filter_by(reset_password_token=digest).first()
        if user is None or not user.is_active:
            return None
        if not user.reset_password_period_valid(cls.validity()):
            return None
        return user

    @classmethod
    def reset_password(cls, token: Optional[str], new_password: str) -> Optional[User]:
        """*token* が有効ならパスワードを更新し、トークンを破棄する。

        Args:
            token: リセットトークン（平文）
            new_password: 新しいパスワード（検証済みであること）

        Returns:
            成功した場合は更新したユーザー、失敗した場合は None
        """
        user = cls.find_user_by_token(token)
        if user is None:
            current_app.logger.warning(
                "Password reset rejected: invalid or expired token",
                extra={"event": "password_reset.invalid_token"},
            )
            return None

        user.set_password(new_password)
        user.clear_reset_password_token()
        db.session.commit()

        current_app.logger.info(
            "Password changed with reset token",
            extra={"event": "password_reset.success", "user_id": user.id},
        )

        return user
