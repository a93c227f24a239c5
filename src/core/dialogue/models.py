"""Dialogue domain model

One DialogueEntry is one narrative beat loaded from a CSV row. It owns up to
three Choices. Everything is fixed at load time except Choice.consumed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

MAX_CHOICES = 3


def ordered_flags(flags: Iterable[str]) -> tuple[str, ...]:
    """Drop empties and duplicates, keep first-seen order."""
    seen: dict[str, None] = {}
    for flag in flags:
        if flag and flag not in seen:
            seen[flag] = None
    return tuple(seen)


@dataclass(eq=False)
class Choice:
    """A branch option inside one entry. Consumable exactly once per session."""

    required_flags: tuple[str, ...] = ()
    prompt_text: str = ""
    response_text: str = ""
    added_flags: tuple[str, ...] = ()
    consumed: bool = False

    def __post_init__(self) -> None:
        self.required_flags = ordered_flags(self.required_flags)
        self.added_flags = ordered_flags(self.added_flags)

    @property
    def has_response(self) -> bool:
        return bool(self.response_text)

    def to_dict(self) -> dict:
        return {
            "required_flags": list(self.required_flags),
            "prompt_text": self.prompt_text,
            "response_text": self.response_text,
            "added_flags": list(self.added_flags),
            "consumed": self.consumed,
        }


@dataclass(eq=False)
class DialogueEntry:
    """A dialogue line keyed by memory id (unique within its collection)."""

    id: str
    min_loop: int = 1
    required_flags: tuple[str, ...] = ()
    text: str = ""
    added_flags: tuple[str, ...] = ()
    choices: tuple[Choice, ...] = ()

    # provenance
    collection: str = ""
    row: int = 0

    def __post_init__(self) -> None:
        self.required_flags = ordered_flags(self.required_flags)
        self.added_flags = ordered_flags(self.added_flags)
        self.choices = tuple(self.choices)
        if len(self.choices) > MAX_CHOICES:
            raise ValueError(
                f"Entry '{self.id}' has {len(self.choices)} choices (max {MAX_CHOICES})"
            )

    @property
    def has_text(self) -> bool:
        return bool(self.text)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "min_loop": self.min_loop,
            "required_flags": list(self.required_flags),
            "text": self.text,
            "added_flags": list(self.added_flags),
            "choices": [c.to_dict() for c in self.choices],
            "collection": self.collection,
        }


@dataclass(frozen=True)
class ChoiceRef:
    """Pointer into a collection: which entry, which choice slot.

    entry_position is the entry's index in its source collection and
    is the primary sort key of the choice queue.
    """

    entry: DialogueEntry
    choice_index: int
    entry_position: int

    @property
    def choice(self) -> Choice:
        return self.entry.choices[self.choice_index]

    @property
    def key(self) -> str:
        return f"{self.entry.id}#{self.choice_index}"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "entry_id": self.entry.id,
            "choice_index": self.choice_index,
            "prompt_text": self.choice.prompt_text,
        }


@dataclass
class ChoiceOutcome:
    """Result of selecting a choice.

    accepted=False means nothing changed (already consumed / unknown ref).
    response_text is shown next when non-empty; otherwise the caller
    recomputes the queue right away.
    """

    accepted: bool
    ref: Optional[ChoiceRef] = None
    new_flags: list[str] = field(default_factory=list)
    response_text: str = ""

    @property
    def shows_response(self) -> bool:
        return self.accepted and bool(self.response_text)

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "choice": self.ref.to_dict() if self.ref else None,
            "new_flags": list(self.new_flags),
            "response_text": self.response_text,
        }
