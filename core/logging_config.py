"""Handler wiring for ``app.logger`` and the auth event helper."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable

from flask import current_app, has_app_context


_DB_HANDLER_MARK = "_is_auth_db_log_handler"
_CONSOLE_HANDLER_MARK = "_is_console_log_handler"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _attach_once(logger: logging.Logger, mark: str, factory: Callable[[], logging.Handler]) -> logging.Handler:
    for handler in logger.handlers:
        if getattr(handler, mark, False):
            return handler
    handler = factory()
    setattr(handler, mark, True)
    logger.addHandler(handler)
    return handler


def _new_db_handler() -> logging.Handler:
    from core.db_log_handler import DBLogHandler

    handler = DBLogHandler(app=current_app._get_current_object() if has_app_context() else None)
    handler.setLevel(logging.INFO)
    return handler


def ensure_appdb_file_logging(logger: logging.Logger) -> None:
    """Persist *logger*'s records to the ``log`` table, attaching the handler only once."""

    from core.db_log_handler import DBLogHandler

    # 手動で追加済みの DBLogHandler もマーク付きとして扱う
    for handler in logger.handlers:
        if isinstance(handler, DBLogHandler):
            setattr(handler, _DB_HANDLER_MARK, True)
    _attach_once(logger, _DB_HANDLER_MARK, _new_db_handler)

    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)


def ensure_console_logging(logger: logging.Logger, level: int = logging.DEBUG) -> None:
    def _new_console_handler() -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        return handler

    _attach_once(logger, _CONSOLE_HANDLER_MARK, _new_console_handler)


def log_auth_event(logger: logging.Logger, message: str, event: str, *, level: int = logging.INFO, **extra_attrs: Any) -> None:
    """Log an authentication event with its structured context.

    Args:
        logger: Logger instance to use.
        message: Human readable message.
        event: Event identifier, e.g. ``auth.sign_in``.
        level: Logging level.
        **extra_attrs: Stored under ``_extra`` by the DB handler.
    """
    logger.log(level, message, extra={"event": event, **extra_attrs})
