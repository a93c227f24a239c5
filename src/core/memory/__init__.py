"""Memory flags and loop progression"""

from src.core.memory.store import MemoryStore
from src.core.memory.loop import (
    FIRST_LOOP,
    LoopAdvanceResult,
    LoopProgressionValidator,
    LoopState,
    loop_dialogue_for,
)

__all__ = [
    "MemoryStore",
    "FIRST_LOOP",
    "LoopAdvanceResult",
    "LoopProgressionValidator",
    "LoopState",
    "loop_dialogue_for",
]
