"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy and the password-hashing worker pool as module-level
objects so they can be imported anywhere without creating circular
dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `hashing_pool` from here wherever needed.

    from hrdesk.app.extensions import db, hashing_pool

Do not pass the app object directly to SQLAlchemy() at import time — that
would prevent running tests with a separate test app instance.
"""

from __future__ import annotations

import atexit
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class HashingPool:
    """
    Bounded worker pool for bcrypt work.

    bcrypt is CPU-bound and releases the GIL, so running it on a fixed set of
    worker threads keeps concurrent login/register/reset requests from
    serialising on hashing while capping total CPU spent on it.

    Opened by the first init_app() and shared by every app created in the
    process afterwards. Shut down once, at interpreter exit.
    """

    def __init__(self) -> None:
        self._executor: ThreadPoolExecutor | None = None
        self._exit_hook_registered = False

    def init_app(self, app) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("HASH_WORKERS", 4),
                thread_name_prefix="hrdesk-hash",
            )
        if not self._exit_hook_registered:
            atexit.register(self.shutdown)
            self._exit_hook_registered = True
        app.extensions["hashing_pool"] = self

    def submit(self, fn: Callable, *args) -> Future:
        if self._executor is None:
            raise RuntimeError("HashingPool used before init_app().")
        return self._executor.submit(fn, *args)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


hashing_pool = HashingPool()
