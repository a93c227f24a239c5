"""
Loop Engine - Main Entry Point
==============================
Ties the dialogue corpus, the memory store and loop progression together.

The engine is an explicit state object: everything a playthrough needs
(repository, flags, loop counter, classification, event bus) hangs off one
LoopEngine instance. Nothing here talks to a renderer; collaborators call
the methods below and listen on the event bus.
"""

import threading
from typing import Any, Optional

from src.config import Settings, settings as default_settings
from src.core.analysis import DependencyClassification, DependencyGraphAnalyzer
from src.core.diagnostics import DiagnosticLog
from src.core.dialogue import (
    ChoiceOutcome,
    ChoiceRef,
    DialogueEntry,
    DialogueRepository,
    DialogueSession,
    DialogueView,
    ItemHierarchyEntry,
    ParsedCollection,
    base_id,
    build_item_hierarchy,
    collect_available,
    parse_collection,
    select_best_entry,
    select_choice,
    select_item_variant,
    visible_slots,
)
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.memory import (
    LoopAdvanceResult,
    LoopProgressionValidator,
    LoopState,
    MemoryStore,
    loop_dialogue_for,
)

logger = get_logger(__name__)

EVENT_SOURCE = "loop_engine"


class LoopEngine:
    """
    Loop-based dialogue engine

    Owns one playthrough. Not thread-safe by itself: callers that share an
    instance across threads hold ``engine.lock`` around every call.
    """

    VERSION = "0.1.0"

    def __init__(
        self,
        config: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            config: settings to use (defaults to the module-level settings)
            event_bus: shared bus; a private one is created when omitted
        """
        self.settings = config or default_settings
        logger.info("Initializing v%s...", self.VERSION)

        self.lock = threading.Lock()
        self.log = DiagnosticLog()
        self.event_bus = event_bus or EventBus()

        self.repository = DialogueRepository(self.log)
        self.memory = MemoryStore()
        self.loop_state = LoopState()
        self.validator = LoopProgressionValidator(
            self.memory,
            self.loop_state,
            unconditional_loops=self.settings.UNCONDITIONAL_LOOPS,
        )
        self.classification = DependencyClassification()
        self.session: Optional[DialogueSession] = None
        self.last_advance: Optional[LoopAdvanceResult] = None

    # === State ===

    @property
    def loop(self) -> int:
        return self.loop_state.current

    @property
    def flags(self) -> frozenset[str]:
        return frozenset(self.memory.flags)

    @property
    def player_name(self) -> str:
        return self.settings.PLAYER_NAME

    def _publish(self, *events: tuple[str, dict[str, Any]]) -> None:
        """Emit one action's events, then close the chain."""
        try:
            for event_type, data in events:
                self.event_bus.emit(
                    GameEvent(event_type=event_type, data=data, source=EVENT_SOURCE)
                )
        finally:
            self.event_bus.reset_chain()

    # === Corpus ===

    def load_collection(self, name: str, text: str) -> ParsedCollection:
        """Parse CSV text and register it as a collection (load order matters)."""
        parsed = parse_collection(
            name, text, delimiter=self.settings.CSV_DELIMITER, log=self.log
        )
        self.repository.add_collection(name, parsed.entries)
        return parsed

    def analyze(self) -> DependencyClassification:
        """Re-run the dependency analysis over everything loaded so far."""
        analyzer = DependencyGraphAnalyzer(
            ephemeral_prefix=self.settings.EPHEMERAL_FLAG_PREFIX,
            notebook_collection=self.settings.NOTEBOOK_COLLECTION,
            log=self.log,
        )
        self.classification = analyzer.analyze(list(self.repository.iter_collections()))
        self.validator.set_requirements(self.classification.required_flags_per_loop)
        self._publish(
            (
                EventTypes.CORPUS_ANALYZED,
                {
                    "collections": self.repository.collection_names,
                    "loop_relevant": len(self.classification.loop_relevant_flags),
                    "notebook": self.classification.notebook_collection,
                },
            )
        )
        return self.classification

    # === Entries ===

    def get_available_entries(self, collection_id: str) -> list[DialogueEntry]:
        return self.repository.get_available_entries(
            collection_id, self.loop, self.memory.flags
        )

    def select_best_entry(self, collection_id: str) -> Optional[DialogueEntry]:
        return select_best_entry(
            self.repository.get_collection(collection_id), self.loop, self.memory.flags
        )

    def show_entry(self, entry: DialogueEntry) -> list[str]:
        """The entry was displayed: grant its added flags. Returns the new ones."""
        new_flags = [f for f in entry.added_flags if self.memory.add_flag(f)]
        events: list[tuple[str, dict[str, Any]]] = [
            (
                EventTypes.ENTRY_SHOWN,
                {"collection": entry.collection, "entry_id": entry.id},
            )
        ]
        if new_flags:
            events.append((EventTypes.MEMORY_ADDED, {"flags": new_flags}))
        self._publish(*events)
        return new_flags

    # === Choices ===

    def collect_available_choices(self, collection_id: str) -> list[ChoiceRef]:
        return collect_available(
            self.repository.get_collection(collection_id), self.loop, self.memory.flags
        )

    def visible_choices(self, collection_id: str) -> list[ChoiceRef]:
        return visible_slots(
            self.collect_available_choices(collection_id),
            self.settings.CHOICE_SLOT_LIMIT,
        )

    def select_choice(self, collection_id: str, queue_index: int) -> ChoiceOutcome:
        """Pick the choice at queue_index of the freshly computed queue."""
        queue = self.collect_available_choices(collection_id)
        ref = queue[queue_index] if 0 <= queue_index < len(queue) else None
        if ref is None:
            logger.warning(
                "Queue index %d out of range for '%s' (%d waiting)",
                queue_index,
                collection_id,
                len(queue),
            )
        outcome = select_choice(ref, self.memory, self.log)
        if outcome.accepted:
            self._publish_choice(outcome)
        return outcome

    def _publish_choice(self, outcome: ChoiceOutcome) -> None:
        assert outcome.ref is not None
        events: list[tuple[str, dict[str, Any]]] = [
            (
                EventTypes.CHOICE_SELECTED,
                {
                    "collection": outcome.ref.entry.collection,
                    "entry_id": outcome.ref.entry.id,
                    "choice_index": outcome.ref.choice_index,
                },
            )
        ]
        if outcome.new_flags:
            events.append((EventTypes.MEMORY_ADDED, {"flags": list(outcome.new_flags)}))
        self._publish(*events)

    # === Memory ===

    def has_flag(self, flag_id: str) -> bool:
        return self.memory.has_flag(flag_id)

    def add_flag(self, flag_id: str) -> bool:
        added = self.memory.add_flag(flag_id)
        if added:
            self._publish((EventTypes.MEMORY_ADDED, {"flags": [flag_id]}))
        return added

    def remove_flag(self, flag_id: str) -> bool:
        removed = self.memory.remove_flag(flag_id)
        if removed:
            self._publish((EventTypes.MEMORY_REMOVED, {"flags": [flag_id]}))
        return removed

    def clear_flags(self) -> None:
        self.memory.clear()
        self._publish((EventTypes.MEMORY_CLEARED, {}))

    # === Loop ===

    def request_loop_advance(self) -> bool:
        """Loop boundary reached. True if the counter moved on."""
        result = self.validator.request_advance()
        self.last_advance = result
        if not result.advanced:
            self._publish(
                (
                    EventTypes.LOOP_REJECTED,
                    {"loop": result.from_loop, "missing": list(result.missing)},
                )
            )
            return False

        events: list[tuple[str, dict[str, Any]]] = [
            (
                EventTypes.LOOP_ADVANCED,
                {"from_loop": result.from_loop, "to_loop": result.to_loop},
            )
        ]
        dialogue_id = self.loop_dialogue()
        if dialogue_id:
            events.append(
                (
                    EventTypes.LOOP_DIALOGUE_DUE,
                    {"loop": result.to_loop, "dialogue_id": dialogue_id},
                )
            )
        self._publish(*events)
        return True

    def loop_dialogue(self) -> Optional[str]:
        """Scripted dialogue id for the current loop, if any."""
        return loop_dialogue_for(self.loop, self.settings.LOOP_DIALOGUES)

    def missing_flags(self) -> list[str]:
        return self.validator.missing_flags()

    def get_loop_relevant_flags_for(self, loop: int) -> frozenset[str]:
        return self.classification.loop_relevant_for(loop)

    def reset_loop(self) -> None:
        self.validator.reset()
        self._publish((EventTypes.LOOP_RESET, {"loop": self.loop}))

    def reset(self) -> None:
        """New playthrough: no flags, loop 1, every choice offerable again."""
        self.end_session()
        self.memory.clear()
        self.validator.reset()
        for _, entries in self.repository.iter_collections():
            for entry in entries:
                for choice in entry.choices:
                    choice.consumed = False
        self.last_advance = None
        logger.info("Playthrough reset")
        self._publish(
            (EventTypes.MEMORY_CLEARED, {}),
            (EventTypes.LOOP_RESET, {"loop": self.loop}),
        )

    # === Items ===

    def item_variant(self, item_base_id: str) -> Optional[str]:
        """Which registered variant of an evolving scene object to show."""
        members = [i for i in self.repository.item_ids if base_id(i) == item_base_id]
        return select_item_variant(
            members, self.repository, self.loop, self.memory.flags
        )

    def item_hierarchy(self) -> dict[str, list[ItemHierarchyEntry]]:
        """Every item group with its variants ordered earliest state first."""
        return build_item_hierarchy(self.repository.item_ids, self.repository)

    # === Sessions ===

    def start_session(self, target: str) -> Optional[DialogueView]:
        """Open a conversation with an NPC id or a bare collection id."""
        self.end_session()
        npc = self.repository.npc(target)
        collection = npc.collection if npc else target
        speaker = npc.display_name if npc else target
        entries = self.repository.get_collection(collection)
        if not entries:
            return None

        self.session = DialogueSession(
            entries,
            self.memory,
            self.loop_state,
            speaker=speaker,
            slot_limit=self.settings.CHOICE_SLOT_LIMIT,
            log=self.log,
        )
        view = self.session.start()
        events: list[tuple[str, dict[str, Any]]] = [
            (EventTypes.DIALOGUE_STARTED, {"collection": collection, "speaker": speaker})
        ]
        if self.session.narrated is not None:
            events.append(
                (
                    EventTypes.ENTRY_SHOWN,
                    {"collection": collection, "entry_id": self.session.narrated.id},
                )
            )
        events.extend(self._session_events())
        self._publish(*events)
        return view

    def session_select(self, slot_index: int) -> ChoiceOutcome:
        if self.session is None:
            return ChoiceOutcome(accepted=False)
        outcome = self.session.select(slot_index)
        if outcome.accepted:
            self._publish_choice(outcome)
            if not self.session.is_active:
                self._publish((EventTypes.DIALOGUE_ENDED, {"speaker": self.session.speaker}))
        return outcome

    def session_acknowledge(self) -> Optional[DialogueView]:
        if self.session is None:
            return None
        view = self.session.acknowledge()
        self._publish(*self._session_events())
        return view

    def end_session(self) -> None:
        if self.session is None:
            return
        was_active = self.session.is_active
        self.session.end()
        if was_active:
            self._publish((EventTypes.DIALOGUE_ENDED, {"speaker": self.session.speaker}))
        self.session = None

    def _session_events(self) -> list[tuple[str, dict[str, Any]]]:
        assert self.session is not None
        events: list[tuple[str, dict[str, Any]]] = []
        if self.session.last_new_flags:
            events.append(
                (EventTypes.MEMORY_ADDED, {"flags": list(self.session.last_new_flags)})
            )
        if not self.session.is_active:
            events.append((EventTypes.DIALOGUE_ENDED, {"speaker": self.session.speaker}))
        return events

    # === Info ===

    def get_state(self) -> dict[str, Any]:
        return {
            "player_name": self.player_name,
            "loop": self.loop,
            "flags": self.memory.snapshot(),
            "found_this_loop": sorted(self.memory.found_this_loop),
            "missing_for_loop": self.missing_flags(),
            "loop_dialogue": self.loop_dialogue(),
            "session": self.session.view().to_dict() if self.session else None,
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "engine_version": self.VERSION,
            "collections": self.repository.stats(),
            "entries": self.repository.entry_count(),
            "flags_held": len(self.memory),
            "loop_relevant_flags": len(self.classification.loop_relevant_flags),
            "diagnostics": len(self.log),
        }


def run_cli():
    """Small debugging REPL over the configured corpus."""
    from src.core.logging import setup_logging
    from src.services.corpus_loader import load_corpus_dir

    setup_logging(default_settings.LOG_LEVEL)

    print("\n" + "=" * 50)
    print("  LOOPTALE - CLI Demo")
    print("=" * 50)

    engine = LoopEngine()
    load_corpus_dir(default_settings.DIALOGUE_DIR, engine)

    print("\nCommands: talk <npc|collection>, pick <n>, next, flags, add <flag>,")
    print("          loop, advance, stats, quit\n")

    def show(view: Optional[DialogueView]) -> None:
        if view is None:
            print("(nothing to say)")
            return
        if view.text:
            print(f"\n{view.speaker}: {view.text}")
        for number, ref in enumerate(view.slots, start=1):
            print(f"  {number}. {ref.choice.prompt_text}")
        if view.waiting:
            print(f"  (+{view.waiting} more)")
        if view.phase.value == "ended":
            print("(conversation over)")

    while True:
        try:
            cmd = input(f"\n[Loop {engine.loop} | {len(engine.memory)} memories] > ").strip()
            if not cmd:
                continue

            parts = cmd.split()
            action = parts[0].lower()

            if action in ("quit", "q"):
                print("Bye.")
                break

            elif action == "talk":
                if len(parts) < 2:
                    print("Who? (e.g. talk conductor)")
                    continue
                show(engine.start_session(parts[1]))

            elif action == "pick":
                if engine.session is None or len(parts) < 2:
                    print("Start a conversation first, then pick <n>.")
                    continue
                outcome = engine.session_select(int(parts[1]) - 1)
                if not outcome.accepted:
                    print("That choice is not on offer.")
                show(engine.session.view() if engine.session else None)

            elif action == "next":
                show(engine.session_acknowledge())

            elif action == "flags":
                print(", ".join(engine.memory.snapshot()) or "(no memories)")

            elif action == "add":
                if len(parts) < 2:
                    print("add <flag>")
                    continue
                print("added" if engine.add_flag(parts[1]) else "already held")

            elif action == "loop":
                missing = engine.missing_flags()
                print(f"Loop {engine.loop}; missing: {', '.join(missing) or 'nothing'}")

            elif action == "advance":
                if engine.request_loop_advance():
                    print(f"Now in loop {engine.loop}.")
                    dialogue_id = engine.loop_dialogue()
                    if dialogue_id:
                        print(f"(scripted dialogue: {dialogue_id})")
                else:
                    missing = engine.last_advance.missing if engine.last_advance else []
                    print(f"Loop repeats. Missing: {', '.join(missing)}")

            elif action == "stats":
                for key, value in engine.get_stats().items():
                    print(f"  {key}: {value}")

            else:
                print(f"Unknown command: {action}")

        except KeyboardInterrupt:
            print("\n\nBye.")
            break
        except ValueError as e:
            print(f"\nError: {e}")


# === Entry point ===

if __name__ == "__main__":
    run_cli()
