"""
stores/common.py — Shared plumbing for the store classes.

Stores receive the request's SQLAlchemy session (the store handle) from the
caller; they never reach for ambient state. Connectivity failures surface as
StoreUnavailable so the service layer never sees driver exceptions.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError

from hrdesk.app.errors import StoreUnavailable

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def store_call(fn: F) -> F:
    """
    Translates driver connectivity errors into StoreUnavailable.

    Only the exception class is logged: the statement parameters may contain
    fingerprints or reset tokens.
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, InterfaceError) as exc:
            logger.error(
                "Store call %s failed: %s",
                fn.__qualname__,
                type(exc.orig).__name__ if exc.orig is not None else type(exc).__name__,
            )
            raise StoreUnavailable() from exc

    return wrapper  # type: ignore[return-value]
