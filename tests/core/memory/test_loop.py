"""Loop counter, loop-boundary validation and scripted loop dialogues"""

from src.core.memory.loop import (
    FIRST_LOOP,
    LoopProgressionValidator,
    LoopState,
    loop_dialogue_for,
)
from src.core.memory.store import MemoryStore


def _validator(required=None, unconditional=()) -> tuple[LoopProgressionValidator, MemoryStore, LoopState]:
    store = MemoryStore()
    state = LoopState()
    validator = LoopProgressionValidator(
        store, state, required or {}, unconditional_loops=unconditional
    )
    return validator, store, state


class TestAdvance:
    def test_no_requirements_is_trivially_valid(self) -> None:
        validator, _, state = _validator()
        result = validator.request_advance()
        assert result.advanced
        assert (result.from_loop, result.to_loop) == (1, 2)
        assert state.current == 2

    def test_missing_flags_keep_the_loop(self) -> None:
        validator, store, state = _validator({1: {"a", "b"}})
        store.add_flag("a")
        result = validator.request_advance()
        assert not result.advanced
        assert result.missing == ["b"]
        assert state.current == 1
        assert store.found_this_loop == {"a"}

    def test_complete_loop_advances_and_resets_tracking(self) -> None:
        validator, store, state = _validator({1: {"a"}})
        store.add_flag("a")
        assert validator.request_advance().advanced
        assert state.current == 2
        assert store.found_this_loop == frozenset()
        assert store.has_flag("a")

    def test_flags_from_earlier_loops_do_not_count(self) -> None:
        validator, store, state = _validator({2: {"a"}})
        store.add_flag("a")
        validator.request_advance()
        assert state.current == 2
        # "a" is held but was not found during loop 2
        result = validator.request_advance()
        assert not result.advanced
        assert result.missing == ["a"]

    def test_unconditional_loops(self) -> None:
        validator, _, state = _validator({1: {"a"}, 2: {"b"}}, unconditional=(1, 2))
        first = validator.request_advance()
        assert first.advanced and first.unconditional
        assert validator.request_advance().advanced
        assert state.current == 3

    def test_requirements_can_be_replaced(self) -> None:
        validator, _, _ = _validator({1: {"a"}})
        validator.set_requirements({})
        assert validator.is_valid()
        assert validator.required_for(1) == frozenset()


class TestReset:
    def test_reset_keeps_permanent_flags(self) -> None:
        validator, store, state = _validator()
        validator.request_advance()
        store.add_flag("kept")
        validator.reset()
        assert state.current == FIRST_LOOP
        assert store.has_flag("kept")
        assert store.found_this_loop == frozenset()


class TestLoopDialogue:
    MAPPING = {"2": "loop_intro", "3": "loop_two", "9+": "loop_last"}

    def test_exact_keys(self) -> None:
        assert loop_dialogue_for(2, self.MAPPING) == "loop_intro"
        assert loop_dialogue_for(3, self.MAPPING) == "loop_two"

    def test_open_range(self) -> None:
        assert loop_dialogue_for(9, self.MAPPING) == "loop_last"
        assert loop_dialogue_for(42, self.MAPPING) == "loop_last"

    def test_no_dialogue(self) -> None:
        assert loop_dialogue_for(1, self.MAPPING) is None
        assert loop_dialogue_for(5, self.MAPPING) is None

    def test_highest_floor_wins(self) -> None:
        mapping = {"4+": "mid", "8+": "late", "bad+": "x"}
        assert loop_dialogue_for(5, mapping) == "mid"
        assert loop_dialogue_for(8, mapping) == "late"
