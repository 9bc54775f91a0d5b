"""
Retry/backoff helper for ledger transactions.
SQLite reports contention as an OperationalError ("database is locked"/"busy");
those are retried with exponential backoff and jitter, anything else propagates.
"""

import os
import time
import random
import logging
import sqlite3
from typing import Optional, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

# retry/backoff defaults from environment
DEFAULT_MAX_RETRIES = int(os.getenv("CONTRIB_MAX_RETRIES", "3"))
DEFAULT_BACKOFF_BASE = float(os.getenv("CONTRIB_BACKOFF_BASE", "0.05"))
_env_jitter = os.getenv("CONTRIB_BACKOFF_JITTER")
DEFAULT_BACKOFF_JITTER = float(_env_jitter) if _env_jitter is not None and _env_jitter != "" else None
DEFAULT_MAX_BACKOFF = float(os.getenv("CONTRIB_MAX_BACKOFF", "2.0"))

_TRANSIENT_MARKERS = ('locked', 'busy')

# runtime-overrides
_runtime_max_retries: Optional[int] = None
_runtime_backoff_base: Optional[float] = None
_runtime_backoff_jitter: Optional[float] = None
_runtime_max_backoff: Optional[float] = None


def configure_retry(
    max_retries: Optional[int] = None, backoff_base: Optional[float] = None, backoff_jitter: Optional[float] = None, max_backoff: Optional[float] = None
):
    """Configure retry/backoff defaults at runtime (e.g. from CLI or config file)."""
    global _runtime_max_retries, _runtime_backoff_base, _runtime_backoff_jitter, _runtime_max_backoff
    if max_retries is not None:
        _runtime_max_retries = int(max_retries)
    if backoff_base is not None:
        _runtime_backoff_base = float(backoff_base)
    if backoff_jitter is not None:
        _runtime_backoff_jitter = float(backoff_jitter)
    if max_backoff is not None:
        _runtime_max_backoff = float(max_backoff)


def _resolve_backoff_params():
    if _runtime_backoff_base is not None:
        base = float(_runtime_backoff_base)
    else:
        base = float(DEFAULT_BACKOFF_BASE)

    if _runtime_backoff_jitter is not None:
        jitter = float(_runtime_backoff_jitter)
    elif DEFAULT_BACKOFF_JITTER is not None:
        jitter = float(DEFAULT_BACKOFF_JITTER)
    else:
        jitter = base

    if _runtime_max_backoff is not None:
        max_backoff = float(_runtime_max_backoff)
    else:
        max_backoff = float(DEFAULT_MAX_BACKOFF)

    return base, jitter, max_backoff


def is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    msg = str(exc).lower()
    return any(marker in msg for marker in _TRANSIENT_MARKERS)


def _compute_wait_seconds(backoff: float, jitter: float, max_backoff: float) -> float:
    return min(backoff + random.uniform(0, jitter), max_backoff)


def run_with_retries(operation: Callable[[], T], max_retries: Optional[int] = None, description: str = 'transaction') -> T:
    """Run operation(), retrying transient SQLite contention errors.

    The operation must be safe to repeat: it is expected to roll back its own
    partial state before the error reaches this helper.
    """
    base, jitter, max_backoff = _resolve_backoff_params()
    if max_retries is not None:
        attempts = int(max_retries)
    elif _runtime_max_retries is not None:
        attempts = int(_runtime_max_retries)
    else:
        attempts = int(DEFAULT_MAX_RETRIES)
    attempts = max(1, attempts)

    backoff = base
    for attempt in range(attempts):
        try:
            return operation()
        except sqlite3.OperationalError as ex:
            if not is_transient(ex) or attempt == attempts - 1:
                raise
            wait = _compute_wait_seconds(backoff, jitter, max_backoff)
            logger.warning("%s failed (%s); retrying in %.2fs (attempt %d/%d)", description, ex, wait, attempt + 1, attempts)
            time.sleep(wait)
            backoff = min(backoff * 2, max_backoff)
    # attempts >= 1 so the loop always returns or raises
    raise RuntimeError('unreachable')


__all__ = ["configure_retry", "run_with_retries", "is_transient"]
