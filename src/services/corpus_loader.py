"""Corpus loader - reads dialogue CSV files and the registry into an engine

Directory layout:
    <dir>/*.csv          one collection per file, named after the file stem
    <dir>/registry.json  optional: load order, NPCs and scene items

Load order decides which collection is the notebook (the last one), so it is
taken from, in order: the explicit ``files`` argument / DIALOGUE_FILES
setting, the registry's "load_order", sorted file names.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

from src.core.diagnostics import CorpusLoadError, DiagnosticKind
from src.core.engine import LoopEngine
from src.core.logging import get_logger

logger = get_logger(__name__)

REGISTRY_FILE = "registry.json"
CSV_SUFFIX = ".csv"


@dataclass
class CorpusLoadResult:
    collections: list[str] = field(default_factory=list)
    entries: int = 0
    npcs: int = 0
    items: int = 0
    diagnostics: int = 0

    def to_dict(self) -> dict:
        return {
            "collections": list(self.collections),
            "entries": self.entries,
            "npcs": self.npcs,
            "items": self.items,
            "diagnostics": self.diagnostics,
        }


def _collection_name(file_name: str) -> str:
    return file_name[: -len(CSV_SUFFIX)] if file_name.endswith(CSV_SUFFIX) else file_name


def read_registry(path: Path) -> dict[str, Any]:
    """registry.json as a dict; missing file -> {}."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise CorpusLoadError(f"{path} must contain a JSON object")
    return raw


def resolve_load_order(
    directory: Path,
    files: Optional[Sequence[str]] = None,
    registry: Optional[dict[str, Any]] = None,
) -> list[str]:
    """Collection names in load order."""
    if files:
        return [_collection_name(f) for f in files]
    if registry and registry.get("load_order"):
        return [_collection_name(str(f)) for f in registry["load_order"]]
    return sorted(p.stem for p in directory.glob(f"*{CSV_SUFFIX}"))


def load_collection_text(engine: LoopEngine, name: str, path: Path) -> int:
    """Parse one CSV file into the engine. Returns the number of entries."""
    # BOM stripped
    text = path.read_text(encoding="utf-8-sig")
    parsed = engine.load_collection(name, text)
    logger.info(
        "Loaded collection %s: %d entries from %d rows",
        name,
        len(parsed.entries),
        parsed.rows_seen,
    )
    return len(parsed.entries)


def register_scene_objects(engine: LoopEngine, registry: dict[str, Any]) -> tuple[int, int]:
    """NPC and item records from the registry. Bad records are skipped."""
    npcs = 0
    for raw in registry.get("npcs", []):
        try:
            engine.repository.register_npc(
                raw["npc_id"],
                raw.get("display_name", ""),
                raw.get("collection", raw["npc_id"]),
            )
            npcs += 1
        except (KeyError, TypeError) as e:
            logger.warning("Failed to register NPC: %s (%s)", raw, e)

    items = 0
    for raw in registry.get("items", []):
        try:
            engine.repository.register_item(raw["item_id"], raw["collection"])
            items += 1
        except (KeyError, TypeError) as e:
            logger.warning("Failed to register item: %s (%s)", raw, e)
    return npcs, items


def load_corpus_dir(
    path: str | Path,
    engine: LoopEngine,
    files: Optional[Sequence[str]] = None,
) -> CorpusLoadResult:
    """Load every collection, register NPCs/items, then analyze.

    Raises:
        CorpusLoadError: directory missing, no CSV files, or no entries at all
    """
    directory = Path(path)
    if not directory.is_dir():
        raise CorpusLoadError(f"dialogue directory not found: {directory}")

    registry = read_registry(directory / REGISTRY_FILE)
    order = resolve_load_order(
        directory, files or engine.settings.DIALOGUE_FILES, registry
    )
    if not order:
        raise CorpusLoadError(f"no {CSV_SUFFIX} files in {directory}")

    before = len(engine.log)
    result = CorpusLoadResult()
    for name in order:
        csv_path = directory / f"{name}{CSV_SUFFIX}"
        if not csv_path.exists():
            engine.log.report(
                DiagnosticKind.MISSING_COLLECTION,
                f"listed collection file {csv_path.name} does not exist",
                subject=name,
            )
            continue
        result.entries += load_collection_text(engine, name, csv_path)
        result.collections.append(name)

    if result.entries == 0:
        raise CorpusLoadError(f"no dialogue entries could be loaded from {directory}")

    result.npcs, result.items = register_scene_objects(engine, registry)
    engine.analyze()
    result.diagnostics = len(engine.log) - before

    logger.info(
        "Corpus loaded: %d collections, %d entries, %d NPCs, %d items, %d diagnostics",
        len(result.collections),
        result.entries,
        result.npcs,
        result.items,
        result.diagnostics,
    )
    return result
