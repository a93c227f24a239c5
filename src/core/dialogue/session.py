"""Dialogue session: presentation-agnostic conversation state machine

Phases:
    NARRATION  best entry text is on screen, waiting for a click
    CHOICES    up to slot_limit choices offered, the rest wait in the queue
    ANSWER     response text of the picked choice, waiting for a click
    ENDED      queue exhausted or closed from outside

The UI holds only a slot index into the current queue view and calls
select(index); no per-button state lives here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from src.core.diagnostics import DiagnosticKind, DiagnosticLog
from src.core.memory.loop import LoopState
from src.core.memory.store import MemoryStore
from .availability import select_best_entry
from .choice_queue import (
    DEFAULT_SLOT_LIMIT,
    collect_available,
    select_choice,
    visible_slots,
    waiting_count,
)
from .models import ChoiceOutcome, ChoiceRef, DialogueEntry

logger = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "???"


class SessionPhase(str, Enum):
    NARRATION = "narration"
    CHOICES = "choices"
    ANSWER = "answer"
    ENDED = "ended"


@dataclass
class DialogueView:
    """What the presentation layer should show right now."""

    phase: SessionPhase
    speaker: str
    text: str = ""
    slots: list[ChoiceRef] = field(default_factory=list)
    waiting: int = 0

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "speaker": self.speaker,
            "text": self.text,
            "slots": [ref.to_dict() for ref in self.slots],
            "waiting": self.waiting,
        }


class DialogueSession:
    def __init__(
        self,
        entries: Sequence[DialogueEntry],
        store: MemoryStore,
        loop: LoopState,
        speaker: str = UNKNOWN_SPEAKER,
        slot_limit: int = DEFAULT_SLOT_LIMIT,
        log: Optional[DiagnosticLog] = None,
        narrate: bool = True,
    ) -> None:
        self._entries = list(entries)
        self._store = store
        self._loop = loop
        self._speaker = speaker
        self._slot_limit = slot_limit
        self._log = log if log is not None else DiagnosticLog()
        self._narrate = narrate

        self.phase = SessionPhase.ENDED
        self.shown_speaker = UNKNOWN_SPEAKER
        self.text = ""
        self.slots: list[ChoiceRef] = []
        self.waiting = 0
        self.narrated: Optional[DialogueEntry] = None
        self.last_new_flags: list[str] = []
        self.last_outcome: Optional[ChoiceOutcome] = None

    @property
    def speaker(self) -> str:
        return self._speaker

    @property
    def is_active(self) -> bool:
        return self.phase != SessionPhase.ENDED

    def view(self) -> DialogueView:
        return DialogueView(
            phase=self.phase,
            speaker=self.shown_speaker,
            text=self.text,
            slots=list(self.slots),
            waiting=self.waiting,
        )

    # ── transitions ───────────────────────────────────────────

    def start(self) -> DialogueView:
        self.last_new_flags = []
        self.last_outcome = None
        if not self._entries:
            logger.info("Dialogue with %s has no entries", self._speaker)
            return self.end()

        best = (
            select_best_entry(self._entries, self._loop.current, self._store.flags)
            if self._narrate
            else None
        )
        if best is not None:
            self.narrated = best
            self.last_new_flags = [f for f in best.added_flags if self._store.add_flag(f)]
            self.phase = SessionPhase.NARRATION
            self.shown_speaker = self._speaker
            self.text = best.text
            self.slots = []
            self.waiting = 0
            logger.info("Narrating '%s' for %s", best.id, self._speaker)
            return self.view()

        return self.refresh()

    def refresh(self) -> DialogueView:
        """Recompute the queue and offer the first slots, or end."""
        queue = collect_available(self._entries, self._loop.current, self._store.flags)
        if not queue:
            return self.end()
        self.phase = SessionPhase.CHOICES
        self.shown_speaker = UNKNOWN_SPEAKER
        self.text = ""
        self.slots = visible_slots(queue, self._slot_limit)
        self.waiting = waiting_count(queue, self._slot_limit)
        if self.waiting:
            logger.debug("%d choice(s) waiting behind the visible slots", self.waiting)
        return self.view()

    def select(self, slot_index: int) -> ChoiceOutcome:
        self.last_new_flags = []
        if self.phase != SessionPhase.CHOICES or not 0 <= slot_index < len(self.slots):
            self._log.report(
                DiagnosticKind.INVALID_CHOICE_SELECTION,
                f"slot {slot_index} is not selectable in phase {self.phase.value}",
                subject=str(slot_index),
            )
            outcome = ChoiceOutcome(accepted=False)
            self.last_outcome = outcome
            return outcome

        outcome = select_choice(self.slots[slot_index], self._store, self._log)
        self.last_outcome = outcome
        self.last_new_flags = list(outcome.new_flags)

        if outcome.shows_response:
            self.phase = SessionPhase.ANSWER
            self.shown_speaker = self._speaker
            self.text = outcome.response_text
            self.slots = []
            self.waiting = 0
        else:
            self.refresh()
        return outcome

    def acknowledge(self) -> DialogueView:
        """Player clicked through narration or an answer."""
        if self.phase in (SessionPhase.NARRATION, SessionPhase.ANSWER):
            self.last_new_flags = []
            return self.refresh()
        return self.view()

    def end(self) -> DialogueView:
        if self.phase != SessionPhase.ENDED:
            logger.info("Dialogue with %s ended", self._speaker)
        self.phase = SessionPhase.ENDED
        self.shown_speaker = UNKNOWN_SPEAKER
        self.text = ""
        self.slots = []
        self.waiting = 0
        return self.view()
