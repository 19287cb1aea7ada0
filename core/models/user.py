from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import ClassVar, Optional

from flask_login import UserMixin
from sqlalchemy import inspect
from sqlalchemy.orm import Mapped, mapped_column
from werkzeug.exceptions import NotFound
from werkzeug.security import check_password_hash, generate_password_hash

from core.db import BigInt, db
from core.models.authenticatable import Capability, SERVER_CAPABILITIES
from core.time import as_utc, utc_now


SESSION_ID_SEPARATOR = ":"


class User(db.Model, UserMixin):
    __tablename__ = "user"

    # モデルが実装している認証機能（有効化はアプリ生成時の設定で決まる）
    auth_capabilities: ClassVar[frozenset[Capability]] = SERVER_CAPABILITIES

    id: Mapped[int] = mapped_column(BigInt, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(db.String(255), unique=True, index=True, nullable=False)
    encrypted_password: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(db.Boolean, default=True, nullable=False)
    # get_id() に含まれる。サインアウトとパスワード変更で更新する
    session_token: Mapped[str] = mapped_column(db.String(64), nullable=False, default=lambda: secrets.token_hex(16))

    # recoverable
    reset_password_token: Mapped[str | None] = mapped_column(db.String(64), unique=True, nullable=True)
    reset_password_sent_at: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)

    # rememberable
    remember_created_at: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)

    # trackable
    sign_in_count: Mapped[int] = mapped_column(db.Integer, default=0, nullable=False)
    current_sign_in_at: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(db.DateTime, nullable=True)
    current_sign_in_ip: Mapped[str | None] = mapped_column(db.String(45), nullable=True)
    last_sign_in_ip: Mapped[str | None] = mapped_column(db.String(45), nullable=True)

    created_at: Mapped[datetime] = mapped_column(db.DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        db.DateTime, default=utc_now, onupdate=utc_now, nullable=False
    )

    def __init__(self, **kwargs):
        # 未保存のインスタンスでもカラムのデフォルト値が読めるようにする
        kwargs.setdefault("encrypted_password", "")
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("sign_in_count", 0)
        kwargs.setdefault("session_token", secrets.token_hex(16))
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        return f"<User id={self.id!r} email={self.email!r}>"

    @classmethod
    def current(cls, acting_user_id=None) -> "User":
        """Resolve the user acting on the current request.

        ``acting_user_id`` is supplied by the caller (normally read from the
        session).  A missing record raises :class:`~werkzeug.exceptions.NotFound`;
        no identifier yields a fresh, unsaved ``User``.
        """
        if acting_user_id is None or acting_user_id == "":
            return cls()
        identifier = cls._parse_identifier(acting_user_id)
        if identifier is None:
            raise NotFound(f"User {acting_user_id!r} not found")
        return db.get_or_404(cls, identifier, description=f"User {identifier} not found")

    @staticmethod
    def _parse_identifier(value) -> Optional[int]:
        # int（bool 以外）と ASCII 数字だけの文字列のみ ID とみなす
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isascii() and value.isdigit():
            return int(value)
        return None

    @classmethod
    def find_by_email(cls, email: Optional[str]) -> Optional["User"]:
        normalized = cls.normalize_email(email)
        if not normalized:
            return None
        return db.session.query(cls).filter_by(email=normalized).first()

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        if email is None:
            return None
        return email.strip().lower()

    # Flask-Login session id: "<id>:<session_token>"
    def get_id(self) -> Optional[str]:
        if self.id is None:
            return None
        return f"{self.id}{SESSION_ID_SEPARATOR}{self.session_token}"

    @staticmethod
    def split_session_id(session_id) -> tuple[Optional[str], Optional[str]]:
        """Split a stored session id into its user id and token parts."""
        if session_id is None:
            return None, None
        identifier, _, token = str(session_id).partition(SESSION_ID_SEPARATOR)
        return identifier, token or None

    def session_token_matches(self, token: Optional[str]) -> bool:
        if not token or not self.session_token:
            return False
        return hmac.compare_digest(token, self.session_token)

    def rotate_session_token(self) -> None:
        self.session_token = secrets.token_hex(16)

    @property
    def persisted(self) -> bool:
        state = inspect(self)
        return state.has_identity and not state.was_deleted

    # database_authenticatable
    def set_password(self, raw: str) -> None:
        self.encrypted_password = generate_password_hash(raw)
        self.rotate_session_token()

    def check_password(self, raw: Optional[str]) -> bool:
        if not raw or not self.encrypted_password:
            return False
        return check_password_hash(self.encrypted_password, raw)

    # recoverable
    @staticmethod
    def digest_reset_token(raw_token: str, secret_key: str) -> str:
        return hmac.new(
            secret_key.encode("utf-8"), raw_token.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def set_reset_password_token(self, raw_token: str, secret_key: str) -> None:
        self.reset_password_token = self.digest_reset_token(raw_token, secret_key)
        self.reset_password_sent_at = utc_now()

    def clear_reset_password_token(self) -> None:
        self.reset_password_token = None
        self.reset_password_sent_at = None

    def reset_password_period_valid(self, within: timedelta) -> bool:
        sent_at = as_utc(self.reset_password_sent_at)
        if sent_at is None:
            return False
        return sent_at + within > utc_now()

    # rememberable
    def remember_me(self) -> None:
        self.remember_created_at = utc_now()

    def forget_me(self) -> None:
        self.remember_created_at = None

    # trackable
    def update_tracked_fields(self, remote_ip: Optional[str]) -> None:
        now = utc_now()
        self.last_sign_in_at = self.current_sign_in_at or now
        self.current_sign_in_at = now
        self.last_sign_in_ip = self.current_sign_in_ip or remote_ip
        self.current_sign_in_ip = remote_ip
        self.sign_in_count = (self.sign_in_count or 0) + 1

    @property
    def display_name(self) -> str:
        if self.email:
            return self.email.split("@")[0]
        return "world"


__all__ = ["User"]
