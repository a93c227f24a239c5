"""Loop counter and loop-boundary validation

The counter only moves on an explicit loop-boundary request from the scene
collaborator. A loop is valid when every loop-relevant flag assigned to it
was found during that loop; otherwise the player stays in the same loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from .store import MemoryStore

logger = logging.getLogger(__name__)

FIRST_LOOP = 1


@dataclass
class LoopState:
    current: int = FIRST_LOOP

    def next_loop(self) -> int:
        self.current += 1
        return self.current

    def reset(self) -> None:
        self.current = FIRST_LOOP


@dataclass
class LoopAdvanceResult:
    advanced: bool
    from_loop: int
    to_loop: int
    missing: list[str] = field(default_factory=list)
    unconditional: bool = False

    def to_dict(self) -> dict:
        return {
            "advanced": self.advanced,
            "from_loop": self.from_loop,
            "to_loop": self.to_loop,
            "missing": list(self.missing),
            "unconditional": self.unconditional,
        }


class LoopProgressionValidator:
    """Decides at loop rollover whether the loop counter may advance.

    Args:
        store: flag store (its found_this_loop is checked and reset)
        state: loop counter
        required_per_loop: loop number -> loop-relevant flags granted there
        unconditional_loops: loops that always count as valid
    """

    def __init__(
        self,
        store: MemoryStore,
        state: LoopState,
        required_per_loop: Optional[Mapping[int, Iterable[str]]] = None,
        unconditional_loops: Iterable[int] = (1, 2),
    ) -> None:
        self._store = store
        self._state = state
        self._required: dict[int, frozenset[str]] = {}
        self._unconditional = frozenset(unconditional_loops)
        self.set_requirements(required_per_loop or {})

    @property
    def loop(self) -> int:
        return self._state.current

    def set_requirements(self, required_per_loop: Mapping[int, Iterable[str]]) -> None:
        self._required = {
            int(loop): frozenset(flags) for loop, flags in required_per_loop.items()
        }

    def required_for(self, loop: int) -> frozenset[str]:
        return self._required.get(loop, frozenset())

    def is_unconditional(self, loop: int) -> bool:
        return loop in self._unconditional

    def missing_flags(self) -> list[str]:
        """Loop-relevant flags of the current loop not yet found in it."""
        loop = self._state.current
        if self.is_unconditional(loop):
            return []
        return sorted(self.required_for(loop) - self._store.found_this_loop)

    def is_valid(self) -> bool:
        return not self.missing_flags()

    def request_advance(self) -> LoopAdvanceResult:
        from_loop = self._state.current
        unconditional = self.is_unconditional(from_loop)
        missing = self.missing_flags()

        if missing:
            logger.info(
                "Loop %d not complete, %d flag(s) missing: %s",
                from_loop,
                len(missing),
                ", ".join(missing),
            )
            return LoopAdvanceResult(
                advanced=False,
                from_loop=from_loop,
                to_loop=from_loop,
                missing=missing,
            )

        to_loop = self._state.next_loop()
        self._store.reset_loop_tracking()
        logger.info(
            "Loop %d -> %d%s", from_loop, to_loop, " (unconditional)" if unconditional else ""
        )
        return LoopAdvanceResult(
            advanced=True,
            from_loop=from_loop,
            to_loop=to_loop,
            unconditional=unconditional,
        )

    def reset(self) -> None:
        """Back to loop 1. Permanent flags are kept."""
        self._state.reset()
        self._store.reset_loop_tracking()
        logger.info("Loop reset to %d", FIRST_LOOP)


def loop_dialogue_for(loop: int, mapping: Mapping[str, str]) -> Optional[str]:
    """Scripted dialogue id for a freshly reached loop.

    Keys are loop numbers ("3") or open ranges ("9+"). Exact keys win.
    """
    exact = mapping.get(str(loop))
    if exact:
        return exact

    best_floor: Optional[int] = None
    best_id: Optional[str] = None
    for key, dialogue_id in mapping.items():
        if not key.endswith("+"):
            continue
        try:
            floor = int(key[:-1])
        except ValueError:
            logger.warning("Ignoring loop dialogue key '%s'", key)
            continue
        if loop >= floor and (best_floor is None or floor > best_floor):
            best_floor, best_id = floor, dialogue_id
    return best_id
