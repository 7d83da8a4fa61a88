"""
Key-value store contract used by the catalog store and the service layer.

Any backend works as long as it offers string keys, JSON-serializable values,
an optional per-key TTL, and prefix scans. ``SqliteKeyValueStore`` is the
shipped implementation.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


class StoreUnavailableError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` if missing or expired."""
        ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Store ``value`` under ``key``; ``ttl_seconds=None`` never expires."""
        ...

    def delete(self, key: str) -> bool:
        """Remove ``key``; return True if something was deleted."""
        ...

    def scan_prefix(self, prefix: str) -> list[str]:
        """Return live keys starting with ``prefix``, sorted."""
        ...
