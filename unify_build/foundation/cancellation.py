from __future__ import annotations

import threading

from unify_build.foundation.errors import ResolutionCancelledError


class CancellationToken:
    """Cooperative cancellation signal checked at directory and group boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            suffix = f" ({where})" if where else ""
            raise ResolutionCancelledError(f"Build config resolution cancelled{suffix}")
