"""Mounting of the reactive UI engine under ``HYPERLOOP_MOUNT_PATH``."""

from __future__ import annotations

from typing import Any, Callable, Optional

from flask import Flask
from werkzeug.exceptions import NotFound
from werkzeug.middleware.dispatcher import DispatcherMiddleware
from werkzeug.utils import import_string

WSGIApplication = Callable[..., Any]


def _placeholder_engine() -> WSGIApplication:
    # エンジン未設定時はマウント配下をすべて 404 にする
    return NotFound("No UI engine is mounted at this path.")


def resolve_engine(app: Flask, engine: Optional[WSGIApplication | str] = None) -> WSGIApplication:
    """Pick the engine: explicit argument, then ``HYPERLOOP_ENGINE``, then a 404 placeholder."""
    candidate = engine if engine is not None else app.config.get("HYPERLOOP_ENGINE")
    if not candidate:
        return _placeholder_engine()
    if isinstance(candidate, str):
        candidate = import_string(candidate)
    if not callable(candidate):
        raise TypeError(f"UI engine must be a WSGI callable, got {type(candidate).__name__}")
    return candidate


def normalize_mount_path(path: Optional[str]) -> str:
    value = (path or "/hyperloop").strip()
    if not value.startswith("/"):
        value = "/" + value
    value = value.rstrip("/")
    if not value:
        raise ValueError("HYPERLOOP_MOUNT_PATH cannot be the application root")
    return value


def mount_engine(app: Flask, engine: Optional[WSGIApplication | str] = None) -> str:
    """Dispatch requests under the mount path to the engine; everything else stays with Flask."""
    mount_path = normalize_mount_path(app.config.get("HYPERLOOP_MOUNT_PATH"))
    resolved = resolve_engine(app, engine)
    app.wsgi_app = DispatcherMiddleware(app.wsgi_app, {mount_path: resolved})
    app.extensions["hyperloop"] = {"mount_path": mount_path, "engine": resolved}
    app.logger.info(
        "UI engine mounted",
        extra={
            "event": "hyperloop.mount",
            "mount_path": mount_path,
            "engine": getattr(resolved, "__name__", type(resolved).__name__),
        },
    )
    return mount_path
