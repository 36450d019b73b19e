"""Fire-and-forget side effects that must never block or fail the response."""
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from flask import current_app

_EXT_KEY = "orgcms.background"


def init_background(app) -> None:
    app.extensions[_EXT_KEY] = ThreadPoolExecutor(
        max_workers=app.config.get("BACKGROUND_MAX_WORKERS", 4),
        thread_name_prefix="orgcms-bg",
    )


def fire_and_forget(fn: Callable, *args, **kwargs) -> Optional[Future]:
    """
    Run ``fn`` in its own app context off the request path.
    Exceptions are logged here and never reach the caller.
    """
    app = current_app._get_current_object()

    def _call():
        try:
            fn(*args, **kwargs)
        except Exception:
            app.logger.exception("background task %s failed", getattr(fn, "__name__", fn))

    if app.config.get("BACKGROUND_TASKS_INLINE"):
        # Same app context (and session) as the caller
        _call()
        return None

    def _run():
        with app.app_context():
            _call()

    return app.extensions[_EXT_KEY].submit(_run)
