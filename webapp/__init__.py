# webapp/__init__.py
import logging
import os
import time
from uuid import uuid4

from flask import Flask, current_app, g, has_request_context, render_template, request

from flask_babel import get_locale
from sqlalchemy.engine import make_url

from .extensions import db, migrate, login_manager, babel, mail
from core.db_log_handler import DBLogHandler
from core.logging_config import ensure_appdb_file_logging, ensure_console_logging


_TRUTHY = {"1", "true", "yes", "on"}


def _is_testing(app) -> bool:
    if app.config.get("TESTING"):
        return True
    return os.environ.get("TESTING", "").strip().lower() in _TRUTHY


def _is_memory_sqlite(uri) -> bool:
    if not uri:
        return False
    url = make_url(uri)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


def _configure_logging(app):
    app.logger.setLevel(logging.DEBUG if app.debug else logging.INFO)
    if app.debug:
        ensure_console_logging(app.logger)
    if _is_testing(app):
        return

    ensure_appdb_file_logging(app.logger)
    detach = _is_memory_sqlite(app.config.get("SQLALCHEMY_DATABASE_URI"))
    for handler in [h for h in app.logger.handlers if isinstance(h, DBLogHandler)]:
        # インメモリ SQLite ではログテーブルを共有できない
        if detach:
            app.logger.removeHandler(handler)
        else:
            handler.bind_to_app(app)


def _configure_capabilities(app):
    from core.models.authenticatable import resolve_capabilities
    from core.models.user import User
    from .auth.utils import AUTH_CAPABILITIES_EXTENSION

    capabilities = resolve_capabilities(
        app.config.get("AUTH_BUILD_TARGET", "server"),
        app.config.get("AUTH_CAPABILITIES"),
        supported=User.auth_capabilities,
    )
    app.extensions[AUTH_CAPABILITIES_EXTENSION] = capabilities
    app.logger.info(
        "Authentication capabilities configured",
        extra={
            "event": "auth.capabilities",
            "capabilities": sorted(capability.value for capability in capabilities),
        },
    )
    return capabilities


def _register_request_hooks(app):
    @app.before_request
    def start_timer():
        g.start_time = time.perf_counter()
        g.request_id = str(uuid4())

    @app.after_request
    def add_server_timing(response):
        started = getattr(g, "start_time", None)
        if started is not None:
            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["Server-Timing"] = f"app;dur={elapsed_ms:.2f}"
        return response


def create_app(config_object=None, ui_engine=None):
    """Build the application.

    ``ui_engine`` is the WSGI application served under
    ``HYPERLOOP_MOUNT_PATH``; when omitted ``HYPERLOOP_ENGINE`` is used.
    """
    from dotenv import load_dotenv
    from werkzeug.middleware.proxy_fix import ProxyFix

    from .auth import create_blueprint
    from .config import Config
    from .errors import register_error_handlers
    from .hyperloop import mount_engine
    from .method_override import MethodOverrideMiddleware

    # 既存の環境変数は .env で上書きしない
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
    app.wsgi_app = MethodOverrideMiddleware(app.wsgi_app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    babel.init_app(app, locale_selector=_select_locale)
    mail.init_app(app)

    _configure_logging(app)
    capabilities = _configure_capabilities(app)

    app.jinja_env.globals["get_locale"] = get_locale

    @app.context_processor
    def inject_auth_capabilities():
        from .auth.utils import enabled_capabilities

        return {"auth_capabilities": {capability.value for capability in enabled_capabilities()}}

    # Alembic の autogenerate 用にモデルを読み込む
    from core.models import Log, User  # noqa: F401

    app.register_blueprint(create_blueprint(capabilities), url_prefix="/users")
    register_cli_commands(app)
    _register_request_hooks(app)
    register_error_handlers(app, login_manager)

    @app.route("/")
    def index():
        from .auth.utils import resolve_current_user

        # セッションのユーザーが消えていれば NotFound (404)
        return render_template("helloworld.html", user=resolve_current_user())

    # マウントは最後：配下のリクエストは Flask を通らない
    mount_engine(app, ui_engine)

    if app.config.get("SQLALCHEMY_DATABASE_URI", "").startswith("sqlite"):
        with app.app_context():
            db.create_all()

    return app


def _select_locale():
    """Cookie ``lang``, then Accept-Language, then ``BABEL_DEFAULT_LOCALE``."""
    default = current_app.config.get("BABEL_DEFAULT_LOCALE", "en")
    if not has_request_context():
        return default

    languages = current_app.config["LANGUAGES"]
    chosen = request.cookies.get("lang")
    if chosen in languages:
        return chosen
    return request.accept_languages.best_match(languages) or default


def register_cli_commands(app):
    import click
    from core.models.user import User
    from .auth.validation import validate_registration

    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True,
                  help="Initial password for the account")
    def create_user(email, password):
        """Create an account with EMAIL, applying the sign-up validation."""
        errors = validate_registration(email, password)
        if errors:
            raise click.ClickException("; ".join(str(error) for error in errors))

        user = User(email=User.normalize_email(email))
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        app.logger.info(
            "User created from CLI",
            extra={"event": "auth.registration.cli", "user_id": user.id},
        )
        click.echo(f"Created user {user.id} <{user.email}>")
