"""Default values for the application configuration."""
from __future__ import annotations

DEFAULT_APPLICATION_SETTINGS: dict[str, object] = {
    "SECRET_KEY": "default-secret-key",
    "SESSION_COOKIE_SECURE": False,
    "SESSION_COOKIE_HTTPONLY": True,
    "SESSION_COOKIE_SAMESITE": "Lax",
    "PERMANENT_SESSION_LIFETIME": 1800,
    "PREFERRED_URL_SCHEME": "",
    "LANGUAGES": ["en", "ja"],
    "BABEL_DEFAULT_LOCALE": "en",
    "BABEL_DEFAULT_TIMEZONE": "UTC",
    # "server" はフル機能、"client" は認証機能なしのビルド
    "AUTH_BUILD_TARGET": "server",
    "AUTH_CAPABILITIES": None,
    "PASSWORD_LENGTH_MIN": 6,
    "PASSWORD_LENGTH_MAX": 128,
    "RESET_PASSWORD_WITHIN": 6 * 60 * 60,
    "REMEMBER_COOKIE_DURATION": 14 * 24 * 60 * 60,
    "HYPERLOOP_ENGINE": None,
    "HYPERLOOP_MOUNT_PATH": "/hyperloop",
    "MAIL_SERVER": "localhost",
    "MAIL_PORT": 25,
    "MAIL_USE_TLS": False,
    "MAIL_USERNAME": None,
    "MAIL_PASSWORD": None,
    "MAIL_DEFAULT_SENDER": "please-change-me@example.com",
}

__all__ = ["DEFAULT_APPLICATION_SETTINGS"]
