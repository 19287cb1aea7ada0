"""Persist ``app.logger`` records to the ``log`` table."""

import json
import logging
import sys
import traceback
from typing import TYPE_CHECKING, Any, Dict, Optional

from flask import has_app_context
from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DataError, OperationalError

from .db import db

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask


# LogRecord の標準属性（extra 以外）
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

# 専用カラムに保存する extra 属性
_COLUMN_ATTRS = frozenset({"event", "path", "request_id"})

_EVENT_MAX = 50
_PATH_MAX = 255
_REQUEST_ID_MAX = 36


def _truncate(value: Any, limit: int) -> Optional[str]:
    if value is None:
        return None
    return str(value)[:limit]


class DBLogHandler(logging.Handler):
    """Logging handler that writes each record as one ``log`` row.

    The engine is taken from ``engine`` when given, otherwise from the bound
    application's ``db.engine``.  Without either the record is dropped.
    """

    def __init__(self, app: Optional["Flask"] = None, *, engine: Optional[Engine] = None) -> None:
        super().__init__()
        self._app = app
        self._engine = engine
        self._table_ready = False

    def bind_to_app(self, app: "Flask") -> None:
        self._app = app
        self._engine = None
        self._table_ready = False

    def _get_engine(self) -> Optional[Engine]:
        if self._engine is None:
            if has_app_context():
                self._engine = db.engine
            elif self._app is not None:
                with self._app.app_context():
                    self._engine = db.engine
        return self._engine

    def _prepare_table(self, engine: Engine) -> None:
        if self._table_ready:
            return
        from .models.log import Log

        Log.__table__.create(bind=engine, checkfirst=True)
        self._table_ready = True

    def build_payload(self, record: logging.LogRecord) -> Dict[str, Any]:
        """JSON メッセージはそのまま展開し、メタ情報と extra を付与する"""
        text = record.getMessage()
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = {"message": text}

        payload["_meta"] = {
            "logger": record.name,
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key not in _COLUMN_ATTRS and not key.startswith("_")
        }
        if extras:
            payload["_extra"] = extras
        return payload

    def emit(self, record: logging.LogRecord) -> None:
        engine = self._get_engine()
        if engine is None:
            return

        trace = None
        if record.exc_info:
            trace = logging.Formatter().formatException(record.exc_info)

        values = {
            "level": record.levelname,
            "event": _truncate(getattr(record, "event", None) or record.name or "general", _EVENT_MAX),
            "message": json.dumps(self.build_payload(record), ensure_ascii=False, default=str),
            "trace": trace,
            "path": _truncate(getattr(record, "path", None) or record.pathname, _PATH_MAX),
            "request_id": _truncate(getattr(record, "request_id", None), _REQUEST_ID_MAX),
        }

        from .models.log import Log

        try:
            self._prepare_table(engine)
            with engine.begin() as conn:
                conn.execute(insert(Log).values(**values))
        except (DataError, OperationalError) as exc:
            # ログ出力の失敗でリクエストを落とさない
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
