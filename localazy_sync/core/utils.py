"""
Shared utility functions for the sync package.

This module contains the dictionary helpers used by the content
flattener and the write-back path.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Mapping


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


async def sleep(seconds: float) -> None:
    """Suspend the current task. Patched out in tests."""
    await asyncio.sleep(seconds)


def merge_with_arrays(target: dict[str, Any], source: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Deep-merge ``source`` into ``target`` in place and return ``target``.

    Nested mappings are merged recursively, lists are concatenated
    (target items first), and every other value from ``source``
    overwrites the one in ``target``. A ``None`` source is a no-op.
    """
    if not source:
        return target

    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, list) and isinstance(value, list):
            target[key] = existing + value
        elif isinstance(existing, dict) and isinstance(value, Mapping):
            merge_with_arrays(existing, value)
        elif isinstance(value, Mapping):
            target[key] = merge_with_arrays({}, value)
        elif isinstance(value, list):
            target[key] = list(value)
        else:
            target[key] = value
    return target

