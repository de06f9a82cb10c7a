"""Read-only snapshots of audit details.

Details are converted to plain JSON values when an entry is created (sorted
keys, ISO dates, finite numbers only) and then frozen, so later changes to the
caller's mapping never reach a recorded entry.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator

from procgov.core.time import canonical_datetime


def to_json_value(value: Any, path: str = "details") -> Any:
    """Convert ``value`` into JSON-compatible data; ``path`` names it in errors."""

    if isinstance(value, Enum):
        return to_json_value(value.value, path)
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, (float, Decimal)):
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"{path}: non-finite number {value!r}")
        return number
    if isinstance(value, datetime):
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return canonical_datetime(aware)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): to_json_value(value[key], f"{path}.{key}") for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item, f"{path}[{index}]") for index, item in enumerate(value)]
    raise TypeError(f"{path}: cannot record value of type {type(value).__name__}")


class FrozenPayload(Mapping):
    """Immutable mapping holding JSON values; nested lists become tuples."""

    __slots__ = ("_items",)

    def __init__(self, items: Mapping[str, Any]) -> None:
        self._items = dict(items)

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FrozenPayload({materialize(self)!r})"


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return FrozenPayload({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    return value


def snapshot_payload(payload: Mapping[str, Any]) -> FrozenPayload:
    if not isinstance(payload, Mapping):
        raise TypeError("Audit details must be a mapping")
    return _freeze(to_json_value(payload))


def materialize(value: Any) -> Any:
    """Turn a snapshot back into plain ``dict``/``list`` values for storage."""

    if isinstance(value, Mapping):
        return {str(key): materialize(item) for key, item in value.items()}
    if isinstance(value, (tuple, list)):
        return [materialize(item) for item in value]
    return value


__all__ = ["FrozenPayload", "materialize", "snapshot_payload", "to_json_value"]
