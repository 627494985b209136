from __future__ import annotations

from typing import Any, Optional, Protocol


class CachePort(Protocol):
    """Keyed cache with a TTL chosen by entry kind ("details", "search", ...)."""

    def get(self, kind: str, key: str) -> Optional[Any]:
        ...

    def set(self, kind: str, key: str, value: Any) -> None:
        ...

    def delete(self, kind: str, key: str) -> bool:
        ...

    def cleanup_expired(self) -> int:
        ...
