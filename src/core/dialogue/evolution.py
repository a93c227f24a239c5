"""Item evolution groups

Scene objects that change across loops share a base id: "mirror_broken",
"mirror_fixed" and "mirror_face" all belong to "mirror". Exactly one
variant per group is shown, the most advanced one the player qualifies for.
Variants without any dialogue are purely visual and only used as fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable, Optional

from .availability import is_entry_available
from .repository import DialogueRepository

NO_DIALOGUE_MIN_LOOP = 0


def base_id(item_id: str) -> str:
    """'mirror_broken' -> 'mirror'. No underscore (or leading one) -> unchanged."""
    index = item_id.find("_")
    return item_id[:index] if index > 0 else item_id


def group_by_base_id(item_ids: Iterable[str]) -> dict[str, list[str]]:
    groups: dict[str, list[str]] = {}
    for item_id in item_ids:
        groups.setdefault(base_id(item_id), []).append(item_id)
    return groups


@dataclass(frozen=True)
class ItemHierarchyEntry:
    hierarchy_key: str  # "mirror1", "mirror2", ...
    base_id: str
    item_id: str
    min_loop: int
    required_flags: tuple[str, ...]
    priority: int  # 1 = earliest state


def build_item_hierarchy(
    item_ids: Iterable[str], repository: DialogueRepository
) -> dict[str, list[ItemHierarchyEntry]]:
    """Order every group by (min_loop, number of required flags).

    Uses each item's first entry as authored, independent of game state.
    """
    hierarchy: dict[str, list[ItemHierarchyEntry]] = {}
    for base, members in group_by_base_id(item_ids).items():
        rows: list[tuple[int, int, str, tuple[str, ...]]] = []
        for position, item_id in enumerate(members):
            entries = repository.item_entries(item_id)
            if entries:
                first = entries[0]
                rows.append(
                    (first.min_loop, len(first.required_flags), item_id, first.required_flags)
                )
            else:
                rows.append((NO_DIALOGUE_MIN_LOOP, 0, item_id, ()))

        # sort is stable, so equal keys keep registration order
        rows.sort(key=lambda r: (r[0], r[1]))
        hierarchy[base] = [
            ItemHierarchyEntry(
                hierarchy_key=f"{base}{rank}",
                base_id=base,
                item_id=item_id,
                min_loop=min_loop,
                required_flags=required,
                priority=rank,
            )
            for rank, (min_loop, _, item_id, required) in enumerate(rows, start=1)
        ]
    return hierarchy


def select_item_variant(
    item_ids: Iterable[str],
    repository: DialogueRepository,
    loop: int,
    flags: AbstractSet[str],
) -> Optional[str]:
    """The variant of one group to show for the current state.

    Highest unlocked min_loop wins; first registered wins a tie. A variant
    with no dialogue at all is used only when no other variant qualifies.
    """
    best: Optional[str] = None
    best_loop = -1
    fallback: Optional[str] = None

    for item_id in item_ids:
        entries = repository.item_entries(item_id)
        if not entries:
            if fallback is None:
                fallback = item_id
            continue
        for entry in entries:
            if is_entry_available(entry, loop, flags):
                if entry.min_loop > best_loop:
                    best, best_loop = item_id, entry.min_loop
                break

    return best if best is not None else fallback
