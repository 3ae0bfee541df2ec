"""Abstract key/value storage and the in-memory backend.

The engine persists a handful of independent blobs (settings, history,
currency list, rate cache, chart cache). Backends only need get/set/remove
by key; JSON serialization is handled here so callers pass plain
JSON-compatible values.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from fxsync.exceptions import StorageError


def encode_value(value: Any) -> str:
    """Serialize a JSON-compatible value. Raises StorageError otherwise."""
    try:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise StorageError(f"value is not serializable: {e}") from e


def decode_value(raw: str) -> Any:
    """Deserialize a stored blob. Raises StorageError on corrupt data."""
    try:
        return json.loads(raw)
    except ValueError as e:
        raise StorageError(f"corrupt stored value: {e}") from e


class KeyValueStorage(ABC):
    """Abstract base class for key → serialized blob storage."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the decoded value for `key`, or None if absent."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Serialize and store `value` under `key`, replacing any previous value."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete `key`. Removing a missing key is not an error."""
        ...

    @abstractmethod
    async def usage_bytes(self) -> int:
        """Return the UTF-8 byte length of every key plus its serialized value."""
        ...


class MemoryStorage(KeyValueStorage):
    """Process-local storage. Values are kept serialized so reads hand out copies."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Any | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return decode_value(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = encode_value(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def usage_bytes(self) -> int:
        return sum(
            len(key.encode("utf-8")) + len(raw.encode("utf-8"))
            for key, raw in self._data.items()
        )
