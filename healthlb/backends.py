import threading
from typing import Iterable, Sequence

import httpx

from .errors import ConfigError

NO_HEALTHY_BACKEND = -1


def normalize_address(url: str) -> str:
    """Validate a backend base address and return it without a trailing slash."""
    try:
        parsed = httpx.URL(url.strip())
    except httpx.InvalidURL as exc:
        raise ConfigError(f"invalid backend address {url!r}: {exc}") from exc
    if parsed.scheme not in ("http", "https"):
        raise ConfigError(f"backend address {url!r} must use http or https")
    if not parsed.host:
        raise ConfigError(f"backend address {url!r} has no host")
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        raise ConfigError(f"backend address {url!r} must not carry a path or query")
    return str(parsed).rstrip("/")


class BackendRegistry:
    """
    Ordered backend addresses, their health flags and the rotation cursor.

    Flags and cursor are only touched while holding ``_lock``. The cursor is
    NO_HEALTHY_BACKEND (-1) while no backend is known healthy; otherwise it is
    the index the next dispatch starts scanning from.
    """

    def __init__(self, addresses: Sequence[str]):
        if not addresses:
            raise ConfigError("at least one backend address is required")
        self._addresses = tuple(normalize_address(a) for a in addresses)
        self._health: list[bool] = [False] * len(self._addresses)
        self._cursor = NO_HEALTHY_BACKEND
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._addresses)

    @property
    def addresses(self) -> tuple:
        return self._addresses

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    def address(self, index: int) -> str:
        return self._addresses[index]

    def health_snapshot(self) -> list[bool]:
        with self._lock:
            return list(self._health)

    def set_health(self, index: int, healthy: bool) -> bool:
        """Record a probe result. Returns True if the flag changed."""
        with self._lock:
            changed = self._health[index] != healthy
            self._health[index] = healthy
            # first recovery wins
            if healthy and self._cursor == NO_HEALTHY_BACKEND:
                self._cursor = index
            return changed

    def any_healthy(self) -> bool:
        with self._lock:
            return any(self._health)

    def recompute_cursor_if_all_down(self) -> bool:
        """Reset the cursor when nothing is healthy. Returns True if it was reset."""
        with self._lock:
            if any(self._health) or self._cursor == NO_HEALTHY_BACKEND:
                return False
            self._cursor = NO_HEALTHY_BACKEND
            return True

    def next_healthy_from(self, start: int, exclude: Iterable[int] = ()) -> int | None:
        with self._lock:
            return self._next_healthy_from(start, frozenset(exclude))

    def claim_next(self) -> int | None:
        """
        Pick the backend for a new request and rotate the cursor past it.

        Returns None when no backend is known healthy. Read and advance
        happen under one lock acquisition.
        """
        with self._lock:
            if self._cursor == NO_HEALTHY_BACKEND:
                return None
            target = self._next_healthy_from(self._cursor, frozenset())
            if target is None:
                return None
            self._cursor = (target + 1) % len(self._addresses)
            return target

    def _next_healthy_from(self, start: int, exclude: frozenset) -> int | None:
        # caller holds _lock; one full circle at most
        n = len(self._addresses)
        for step in range(n):
            index = (start + step) % n
            if self._health[index] and index not in exclude:
                return index
        return None
