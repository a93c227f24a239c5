"""Dialogue repository: loaded collections plus NPC/item lookup

Collections keep their load order; the last loaded one is the notebook by
convention. NPCs point at a whole collection, items point at the entries of
a collection whose id equals the item id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Iterator, Optional

from src.core.diagnostics import DiagnosticKind, DiagnosticLog
from .availability import filter_available
from .models import DialogueEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NPCRecord:
    npc_id: str
    display_name: str
    collection: str


@dataclass(frozen=True)
class ItemRecord:
    item_id: str  # equals the entry id in its collection
    collection: str


class DialogueRepository:
    def __init__(self, log: Optional[DiagnosticLog] = None) -> None:
        self._collections: dict[str, list[DialogueEntry]] = {}
        self._npcs: dict[str, NPCRecord] = {}
        self._items: dict[str, ItemRecord] = {}
        self._log = log if log is not None else DiagnosticLog()

    # ── collections ───────────────────────────────────────────

    def add_collection(self, name: str, entries: list[DialogueEntry]) -> None:
        """Register a parsed collection. Re-adding a name replaces its entries."""
        if name in self._collections:
            logger.warning("Replacing collection: %s", name)
        self._collections[name] = list(entries)
        logger.info("Collection registered: %s (%d entries)", name, len(entries))

    @property
    def collection_names(self) -> list[str]:
        """Names in load order."""
        return list(self._collections)

    @property
    def last_collection(self) -> Optional[str]:
        return self.collection_names[-1] if self._collections else None

    def has_collection(self, name: str) -> bool:
        return name in self._collections

    def get_collection(self, name: str) -> list[DialogueEntry]:
        """All entries of a collection regardless of state. Unknown -> []."""
        entries = self._collections.get(name)
        if entries is None:
            self._log.report(
                DiagnosticKind.MISSING_COLLECTION,
                f"unknown collection '{name}'",
                subject=name,
            )
            return []
        return list(entries)

    def iter_collections(self) -> Iterator[tuple[str, list[DialogueEntry]]]:
        for name, entries in self._collections.items():
            yield name, list(entries)

    def get_available_entries(
        self, name: str, loop: int, flags: AbstractSet[str]
    ) -> list[DialogueEntry]:
        return filter_available(self.get_collection(name), loop, flags)

    def get_all_available_entries(
        self, loop: int, flags: AbstractSet[str]
    ) -> list[DialogueEntry]:
        result: list[DialogueEntry] = []
        for entries in self._collections.values():
            result.extend(filter_available(entries, loop, flags))
        return result

    def entry_count(self) -> int:
        return sum(len(e) for e in self._collections.values())

    def stats(self) -> dict[str, int]:
        """Entry count per collection."""
        return {name: len(entries) for name, entries in self._collections.items()}

    # ── NPCs ──────────────────────────────────────────────────

    def register_npc(self, npc_id: str, display_name: str, collection: str) -> None:
        if not npc_id:
            return
        if collection not in self._collections:
            logger.warning("NPC '%s' points at unknown collection '%s'", npc_id, collection)
        self._npcs[npc_id] = NPCRecord(npc_id, display_name or npc_id, collection)

    def npc(self, npc_id: str) -> Optional[NPCRecord]:
        return self._npcs.get(npc_id)

    def npc_name(self, npc_id: str) -> str:
        record = self._npcs.get(npc_id)
        return record.display_name if record else npc_id

    def get_entries_for_npc(
        self, npc_id: str, loop: int, flags: AbstractSet[str]
    ) -> list[DialogueEntry]:
        record = self._npcs.get(npc_id)
        if record is None:
            logger.warning("Unknown NPC: %s", npc_id)
            return []
        return self.get_available_entries(record.collection, loop, flags)

    # ── items ─────────────────────────────────────────────────

    def register_item(self, item_id: str, collection: str) -> None:
        if not item_id:
            return
        if collection not in self._collections:
            logger.warning("Item '%s' points at unknown collection '%s'", item_id, collection)
        self._items[item_id] = ItemRecord(item_id, collection)

    def item(self, item_id: str) -> Optional[ItemRecord]:
        return self._items.get(item_id)

    @property
    def item_ids(self) -> list[str]:
        return list(self._items)

    def item_entries(self, item_id: str) -> list[DialogueEntry]:
        """Every entry for the item, locked or not."""
        record = self._items.get(item_id)
        if record is None:
            return []
        return [e for e in self.get_collection(record.collection) if e.id == item_id]
