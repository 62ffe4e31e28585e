"""Identifier normalization.

Every identifier that enters the system (a mark action, a remote snapshot
item, a removal request, a queued task) passes through
:func:`normalize_identifier` so all components share one key space.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def normalize_identifier(raw: Any) -> str:
    """Return the canonical form of *raw*: surrounding whitespace trimmed, uppercased.

    ``None`` normalizes to ``""``. The function is idempotent.
    """
    if raw is None:
        return ""
    return str(raw).strip().upper()


def is_valid_identifier(raw: Any) -> bool:
    return bool(normalize_identifier(raw))


def normalize_identifiers(raw_ids: Iterable[Any]) -> list[str]:
    """Normalize *raw_ids*, dropping blanks and duplicates while keeping order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in raw_ids:
        key = normalize_identifier(raw)
        if key and key not in seen:
            seen.add(key)
            result.append(key)
    return result
