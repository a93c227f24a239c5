"""Dialogue core package

Pure domain code: parsing, availability, choice queue, repository,
item evolution and the conversation state machine. No I/O.
"""

from src.core.dialogue.models import (
    MAX_CHOICES,
    Choice,
    ChoiceOutcome,
    ChoiceRef,
    DialogueEntry,
)
from src.core.dialogue.parser import (
    ParsedCollection,
    parse_collection,
    parse_flag_list,
    parse_row,
    split_fields,
    split_records,
)
from src.core.dialogue.availability import (
    filter_available,
    is_choice_available,
    is_entry_available,
    select_best_entry,
)
from src.core.dialogue.choice_queue import (
    DEFAULT_SLOT_LIMIT,
    collect_available,
    select_choice,
    visible_slots,
)
from src.core.dialogue.repository import DialogueRepository, ItemRecord, NPCRecord
from src.core.dialogue.evolution import (
    ItemHierarchyEntry,
    base_id,
    build_item_hierarchy,
    select_item_variant,
)
from src.core.dialogue.session import (
    UNKNOWN_SPEAKER,
    DialogueSession,
    DialogueView,
    SessionPhase,
)

__all__ = [
    "MAX_CHOICES",
    "Choice",
    "ChoiceOutcome",
    "ChoiceRef",
    "DialogueEntry",
    "ParsedCollection",
    "parse_collection",
    "parse_flag_list",
    "parse_row",
    "split_fields",
    "split_records",
    "filter_available",
    "is_choice_available",
    "is_entry_available",
    "select_best_entry",
    "DEFAULT_SLOT_LIMIT",
    "collect_available",
    "select_choice",
    "visible_slots",
    "DialogueRepository",
    "ItemRecord",
    "NPCRecord",
    "ItemHierarchyEntry",
    "base_id",
    "build_item_hierarchy",
    "select_item_variant",
    "UNKNOWN_SPEAKER",
    "DialogueSession",
    "DialogueView",
    "SessionPhase",
]
