"""Dialogue session state machine"""

from src.core.diagnostics import DiagnosticKind, DiagnosticLog
from src.core.dialogue.models import Choice, DialogueEntry
from src.core.dialogue.session import UNKNOWN_SPEAKER, DialogueSession, SessionPhase
from src.core.memory.loop import LoopState
from src.core.memory.store import MemoryStore


def _entries() -> list[DialogueEntry]:
    return [
        DialogueEntry(
            id="greet",
            text="Evening.",
            added_flags=("met",),
            choices=(
                Choice(prompt_text="Who are you?", response_text="Nobody.", added_flags=("asked",)),
                Choice(prompt_text="Bye", added_flags=("left",)),
            ),
        ),
        DialogueEntry(
            id="later",
            required_flags=("asked",),
            choices=(Choice(prompt_text="Really nobody?", response_text="Really."),),
        ),
    ]


def _session(**kwargs) -> tuple[DialogueSession, MemoryStore]:
    store = MemoryStore()
    session = DialogueSession(
        kwargs.pop("entries", _entries()), store, LoopState(), speaker="Conductor", **kwargs
    )
    return session, store


class TestStart:
    def test_narrates_best_entry_first(self) -> None:
        session, store = _session()
        view = session.start()
        assert view.phase == SessionPhase.NARRATION
        assert view.speaker == "Conductor"
        assert view.text == "Evening."
        assert store.has_flag("met")
        assert session.last_new_flags == ["met"]

    def test_without_narration_goes_to_choices(self) -> None:
        session, _ = _session(narrate=False)
        view = session.start()
        assert view.phase == SessionPhase.CHOICES
        assert view.speaker == UNKNOWN_SPEAKER
        assert [r.choice.prompt_text for r in view.slots] == ["Who are you?", "Bye"]

    def test_empty_dialogue_ends(self) -> None:
        session, _ = _session(entries=[])
        assert session.start().phase == SessionPhase.ENDED
        assert not session.is_active


class TestFlow:
    def test_answer_then_unlocked_choice(self) -> None:
        session, store = _session()
        session.start()
        session.acknowledge()
        assert session.phase == SessionPhase.CHOICES

        outcome = session.select(0)
        assert outcome.accepted
        assert session.phase == SessionPhase.ANSWER
        assert session.text == "Nobody."
        assert session.shown_speaker == "Conductor"

        view = session.acknowledge()
        assert view.phase == SessionPhase.CHOICES
        assert [r.choice.prompt_text for r in view.slots] == ["Bye", "Really nobody?"]

    def test_choice_without_response_refreshes_immediately(self) -> None:
        session, store = _session(narrate=False)
        session.start()
        session.select(1)  # "Bye"
        assert session.phase == SessionPhase.CHOICES
        assert store.has_flag("left")
        assert [r.choice.prompt_text for r in session.slots] == ["Who are you?"]

    def test_ends_when_queue_is_exhausted(self) -> None:
        session, _ = _session(narrate=False)
        session.start()
        session.select(1)
        session.select(0)
        session.acknowledge()
        session.select(0)
        view = session.acknowledge()
        assert view.phase == SessionPhase.ENDED

    def test_slot_limit_and_waiting(self) -> None:
        entries = [
            DialogueEntry(id="e", choices=tuple(Choice(prompt_text=str(i)) for i in range(3)))
        ]
        session, _ = _session(entries=entries, slot_limit=2)
        view = session.start()
        assert len(view.slots) == 2
        assert view.waiting == 1


class TestInvalidSelection:
    def test_out_of_range_slot(self) -> None:
        log = DiagnosticLog()
        session, _ = _session(narrate=False, log=log)
        session.start()
        outcome = session.select(7)
        assert not outcome.accepted
        assert session.phase == SessionPhase.CHOICES
        assert log.of_kind(DiagnosticKind.INVALID_CHOICE_SELECTION)

    def test_select_during_narration(self) -> None:
        session, _ = _session()
        session.start()
        assert not session.select(0).accepted
        assert session.phase == SessionPhase.NARRATION

    def test_end_forces_ended(self) -> None:
        session, _ = _session()
        session.start()
        assert session.end().phase == SessionPhase.ENDED
        assert session.acknowledge().phase == SessionPhase.ENDED
