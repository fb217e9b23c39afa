from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, TypeVar

from toggles.core.errors import BackendError, BackendTimeoutError, ToggleError
from toggles.core.persistence.models import Snapshot

T = TypeVar("T")

# Shared by all stores; a hung backend call keeps its worker until it returns.
_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="toggles-backend")


class Persistence:
    """
    Stores and retrieves one snapshot.

    Implementations must be safe to retry: `load` has no side effects and
    `save` replaces the stored snapshot as a whole. Failures should raise
    `BackendError` (anything else is wrapped by `call_with_timeout`).
    """

    def load(self) -> Optional[Snapshot]:
        raise NotImplementedError

    def save(self, snapshot: Snapshot) -> None:
        raise NotImplementedError


class NoPersistence(Persistence):
    """Keeps nothing: every load finds no data and every save is dropped."""

    def load(self) -> Optional[Snapshot]:
        return None

    def save(self, snapshot: Snapshot) -> None:
        return None

    def __repr__(self) -> str:
        return "NoPersistence()"


def call_with_timeout(fn: Callable[[], T], timeout_seconds: Optional[float], operation: str) -> T:
    """
    Run a backend call on a worker thread and wait at most `timeout_seconds`.
    The call itself is not interrupted on timeout; only the caller stops waiting.
    """
    fut = _executor.submit(fn)
    try:
        return fut.result(timeout=timeout_seconds)
    except FutureTimeout as e:
        raise BackendTimeoutError(
            f"Backend {operation} did not finish within {timeout_seconds}s.",
            operation=operation,
            timeout_seconds=timeout_seconds,
        ) from e
    except ToggleError:
        raise
    except Exception as e:  # noqa: BLE001
        raise BackendError(f"Backend {operation} failed: {e}", operation=operation) from e
