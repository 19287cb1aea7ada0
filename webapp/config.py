import os
from datetime import timedelta

from dotenv import load_dotenv

from core.system_settings_defaults import DEFAULT_APPLICATION_SETTINGS

load_dotenv()


_BOOL_TRUE = {"1", "true", "yes", "on"}


def _default(name: str):
    """Return the environment override for *name*, coerced to the default's type."""
    default = DEFAULT_APPLICATION_SETTINGS.get(name)
    raw = os.environ.get(name)
    if raw is None:
        return default
    if isinstance(default, bool):
        return raw.strip().lower() in _BOOL_TRUE
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return default
    if isinstance(default, (list, tuple)) or name == "AUTH_CAPABILITIES":
        return [segment.strip() for segment in raw.split(",") if segment.strip()]
    return raw


class BaseApplicationSettings:
    """Base Flask application configuration."""

    SECRET_KEY = _default("SECRET_KEY")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    db_uri = os.environ.get("DATABASE_URI", "sqlite:///hyperloop.db")
    SQLALCHEMY_DATABASE_URI = db_uri

    # Session settings
    PERMANENT_SESSION_LIFETIME = _default("PERMANENT_SESSION_LIFETIME")
    SESSION_COOKIE_SECURE = _default("SESSION_COOKIE_SECURE")
    SESSION_COOKIE_HTTPONLY = _default("SESSION_COOKIE_HTTPONLY")
    SESSION_COOKIE_SAMESITE = _default("SESSION_COOKIE_SAMESITE")
    PREFERRED_URL_SCHEME = _default("PREFERRED_URL_SCHEME") or "http"

    # Remember-me cookie follows the session cookie flags
    REMEMBER_COOKIE_DURATION = timedelta(seconds=_default("REMEMBER_COOKIE_DURATION"))
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = SESSION_COOKIE_SAMESITE

    # Authentication
    AUTH_BUILD_TARGET = _default("AUTH_BUILD_TARGET")
    AUTH_CAPABILITIES = _default("AUTH_CAPABILITIES")
    PASSWORD_LENGTH_MIN = _default("PASSWORD_LENGTH_MIN")
    PASSWORD_LENGTH_MAX = _default("PASSWORD_LENGTH_MAX")
    RESET_PASSWORD_WITHIN = _default("RESET_PASSWORD_WITHIN")

    # Reactive UI engine
    HYPERLOOP_ENGINE = _default("HYPERLOOP_ENGINE")
    HYPERLOOP_MOUNT_PATH = _default("HYPERLOOP_MOUNT_PATH")

    # Mail (password recovery)
    MAIL_SERVER = _default("MAIL_SERVER")
    MAIL_PORT = _default("MAIL_PORT")
    MAIL_USE_TLS = _default("MAIL_USE_TLS")
    MAIL_USERNAME = _default("MAIL_USERNAME")
    MAIL_PASSWORD = _default("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _default("MAIL_DEFAULT_SENDER")

    # Internationalisation
    LANGUAGES = list(_default("LANGUAGES") or ["en", "ja"])
    BABEL_DEFAULT_LOCALE = _default("BABEL_DEFAULT_LOCALE")
    BABEL_DEFAULT_TIMEZONE = _default("BABEL_DEFAULT_TIMEZONE")

    # Database stability
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }

    if not db_uri.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({
            "pool_size": 10,
            "max_overflow": 20,
        })
        if db_uri.startswith("mysql"):
            SQLALCHEMY_ENGINE_OPTIONS["connect_args"] = {"connect_timeout": 10}


class Config(BaseApplicationSettings):
    pass


class TestConfig(BaseApplicationSettings):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_SUPPRESS_SEND = True
