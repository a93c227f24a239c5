"""Choice waiting queue

The queue is a view, not a stored structure: it is rebuilt from the entries,
the held flags and each Choice.consumed on every call. The UI shows the first
few slots; the rest wait and move up as choices are consumed.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Optional, Sequence

from src.core.diagnostics import DiagnosticKind, DiagnosticLog
from src.core.memory.store import MemoryStore
from .availability import is_choice_available, is_entry_available
from .models import ChoiceOutcome, ChoiceRef, DialogueEntry

logger = logging.getLogger(__name__)

DEFAULT_SLOT_LIMIT = 3


def collect_available(
    entries: Sequence[DialogueEntry], loop: int, flags: AbstractSet[str]
) -> list[ChoiceRef]:
    """Every offerable choice, ordered by (entry position, choice index)."""
    queue: list[ChoiceRef] = []
    for position, entry in enumerate(entries):
        if not entry.choices or not is_entry_available(entry, loop, flags):
            continue
        for index, choice in enumerate(entry.choices):
            if choice.consumed or not is_choice_available(choice, flags):
                continue
            queue.append(
                ChoiceRef(entry=entry, choice_index=index, entry_position=position)
            )
    return queue


def visible_slots(
    queue: Sequence[ChoiceRef], limit: int = DEFAULT_SLOT_LIMIT
) -> list[ChoiceRef]:
    """The refs that get a button right now."""
    if limit < 0:
        raise ValueError(f"slot limit must be >= 0, got {limit}")
    return list(queue[:limit])


def waiting_count(queue: Sequence[ChoiceRef], limit: int = DEFAULT_SLOT_LIMIT) -> int:
    return max(0, len(queue) - limit)


def select_choice(
    ref: Optional[ChoiceRef],
    store: MemoryStore,
    log: Optional[DiagnosticLog] = None,
) -> ChoiceOutcome:
    """Consume a choice and apply its effects.

    Already consumed (or missing) refs are a reported no-op, so effects
    can never be applied twice.
    """
    log = log if log is not None else DiagnosticLog()

    if ref is None:
        log.report(
            DiagnosticKind.INVALID_CHOICE_SELECTION,
            "no choice reference given",
        )
        return ChoiceOutcome(accepted=False)

    choice = ref.choice
    if choice.consumed:
        log.report(
            DiagnosticKind.INVALID_CHOICE_SELECTION,
            f"choice {ref.key} was already chosen",
            collection=ref.entry.collection or None,
            subject=ref.key,
        )
        return ChoiceOutcome(accepted=False, ref=ref)

    choice.consumed = True
    new_flags = [flag for flag in choice.added_flags if store.add_flag(flag)]
    logger.info(
        "Choice %s selected: '%s' (+%d flags)",
        ref.key,
        choice.prompt_text,
        len(new_flags),
    )
    return ChoiceOutcome(
        accepted=True,
        ref=ref,
        new_flags=new_flags,
        response_text=choice.response_text,
    )
