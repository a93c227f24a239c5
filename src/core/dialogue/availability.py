"""Availability checks and best-entry selection

Gating is two additive checks: the loop threshold and flag membership.
Adding flags or advancing the loop can only unlock more, never less.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, Optional, Sequence

from .models import Choice, DialogueEntry


def is_entry_available(
    entry: DialogueEntry, loop: int, flags: AbstractSet[str]
) -> bool:
    """loop >= min_loop and every required flag is held"""
    if loop < entry.min_loop:
        return False
    return all(flag in flags for flag in entry.required_flags)


def is_choice_available(choice: Choice, flags: AbstractSet[str]) -> bool:
    """Choices have no loop gate of their own; the owning entry's applies."""
    return all(flag in flags for flag in choice.required_flags)


def filter_available(
    entries: Iterable[DialogueEntry], loop: int, flags: AbstractSet[str]
) -> list[DialogueEntry]:
    """Available entries in source order."""
    return [e for e in entries if is_entry_available(e, loop, flags)]


def _rank(entry: DialogueEntry) -> tuple[int, int]:
    return entry.min_loop, len(entry.required_flags)


def select_best_entry(
    candidates: Sequence[DialogueEntry], loop: int, flags: AbstractSet[str]
) -> Optional[DialogueEntry]:
    """Most evolved dialogue wins.

    Among entries with text that are available, pick the highest min_loop.
    Ties: more required flags wins, then first in source order.
    None means "no narration left, go straight to choices".
    """
    best: Optional[DialogueEntry] = None
    for entry in candidates:
        if not entry.has_text or not is_entry_available(entry, loop, flags):
            continue
        # strict > keeps the earliest entry on a full tie
        if best is None or _rank(entry) > _rank(best):
            best = entry
    return best
