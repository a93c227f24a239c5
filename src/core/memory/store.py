"""Memory flag store

The permanent flag set is the single gate primitive: membership only.
found_this_loop records flags that were new during the current loop and is
used for loop validation, never for gating.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, Iterator

logger = logging.getLogger(__name__)


class MemoryStore:
    def __init__(self, flags: Iterable[str] = ()) -> None:
        self._flags: set[str] = set()
        self._found_this_loop: set[str] = set()
        for flag in flags:
            if flag:
                self._flags.add(flag)

    # ── queries ───────────────────────────────────────────────

    @property
    def flags(self) -> AbstractSet[str]:
        """Read-only view of the held flags."""
        return frozenset(self._flags)

    @property
    def found_this_loop(self) -> AbstractSet[str]:
        return frozenset(self._found_this_loop)

    def has_flag(self, flag_id: str) -> bool:
        return flag_id in self._flags

    def has_all(self, flag_ids: Iterable[str]) -> bool:
        return all(f in self._flags for f in flag_ids)

    def snapshot(self) -> list[str]:
        return sorted(self._flags)

    def __contains__(self, flag_id: object) -> bool:
        return flag_id in self._flags

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._flags))

    def __len__(self) -> int:
        return len(self._flags)

    # ── mutation ──────────────────────────────────────────────

    def add_flag(self, flag_id: str) -> bool:
        """True only if the flag is new. Re-adding is a no-op."""
        if not flag_id:
            return False
        if flag_id in self._flags:
            logger.debug("Memory already held: %s", flag_id)
            return False
        self._flags.add(flag_id)
        self._found_this_loop.add(flag_id)
        logger.info("Memory added: %s", flag_id)
        return True

    def remove_flag(self, flag_id: str) -> bool:
        if flag_id not in self._flags:
            return False
        self._flags.discard(flag_id)
        self._found_this_loop.discard(flag_id)
        logger.info("Memory removed: %s", flag_id)
        return True

    def clear(self) -> None:
        count = len(self._flags)
        self._flags.clear()
        self._found_this_loop.clear()
        logger.info("Memory cleared (%d flags)", count)

    def reset_loop_tracking(self) -> None:
        self._found_this_loop.clear()
