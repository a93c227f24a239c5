"""Memory dependency graph analysis

Runs once after the whole corpus is loaded and decides which added flags
gate loop progression ("loop-relevant") and which only feed optional
notebook content or lead nowhere.

Pipeline:
1. scan every entry/choice for added and required flag occurrences
2. fulfillers: identity match only (flag X satisfies requirement X)
3. notebook-only requirements: every usage sits in the notebook collection
4. direct relevance: fulfills a non-notebook-only requirement, not ephemeral
5. chain tracing: a flag that gates choices is relevant if any flag those
   choices (or their entries) grant is relevant; cycles count as relevant
6. loop_relevant = added - ephemeral - dead ends
7. per-loop table keyed by the min_loop of each granting entry/choice

The result only feeds loop validation. Runtime gating never looks at it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from src.core.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from src.core.dialogue.models import DialogueEntry

logger = logging.getLogger(__name__)

DEFAULT_EPHEMERAL_PREFIX = "newdraw"


class FlagClass(str, Enum):
    LOOP_RELEVANT = "loop_relevant"  # fulfills a non-notebook requirement
    CHAIN_RELEVANT = "chain_relevant"  # reaches a loop-relevant flag via choices
    NOTEBOOK_ONLY = "notebook_only"  # required, but only by notebook content
    ORPHANED = "orphaned"  # granted, never usefully required
    EPHEMERAL = "ephemeral"  # reserved prefix, always excluded
    UNKNOWN = "unknown"  # never granted anywhere


@dataclass(frozen=True)
class FlagOccurrence:
    flag: str
    collection: str
    entry_id: str
    min_loop: int
    choice_index: Optional[int] = None  # None = the entry itself


@dataclass
class DependencyClassification:
    """Read-only result of the corpus analysis."""

    all_added_flags: frozenset[str] = frozenset()
    all_required_flags: frozenset[str] = frozenset()
    fulfillers: dict[str, frozenset[str]] = field(default_factory=dict)
    notebook_collection: Optional[str] = None
    notebook_only_flags: frozenset[str] = frozenset()
    ephemeral_flags: frozenset[str] = frozenset()
    directly_relevant_flags: frozenset[str] = frozenset()
    dead_end_flags: frozenset[str] = frozenset()
    loop_relevant_flags: frozenset[str] = frozenset()
    required_flags_per_loop: dict[int, frozenset[str]] = field(default_factory=dict)
    unsatisfiable_flags: frozenset[str] = frozenset()
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def loop_relevant_for(self, loop: int) -> frozenset[str]:
        return self.required_flags_per_loop.get(loop, frozenset())

    def classify(self, flag: str) -> FlagClass:
        if flag not in self.all_added_flags:
            return FlagClass.UNKNOWN
        if flag in self.ephemeral_flags:
            return FlagClass.EPHEMERAL
        if flag in self.directly_relevant_flags:
            return FlagClass.LOOP_RELEVANT
        if flag in self.loop_relevant_flags:
            return FlagClass.CHAIN_RELEVANT
        if flag in self.notebook_only_flags:
            return FlagClass.NOTEBOOK_ONLY
        return FlagClass.ORPHANED

    def to_dict(self) -> dict:
        return {
            "notebook_collection": self.notebook_collection,
            "all_added_flags": sorted(self.all_added_flags),
            "all_required_flags": sorted(self.all_required_flags),
            "notebook_only_flags": sorted(self.notebook_only_flags),
            "ephemeral_flags": sorted(self.ephemeral_flags),
            "dead_end_flags": sorted(self.dead_end_flags),
            "loop_relevant_flags": sorted(self.loop_relevant_flags),
            "required_flags_per_loop": {
                str(loop): sorted(flags)
                for loop, flags in sorted(self.required_flags_per_loop.items())
            },
            "unsatisfiable_flags": sorted(self.unsatisfiable_flags),
        }


class DependencyGraphAnalyzer:
    """Static flag classification over the full corpus.

    Args:
        ephemeral_prefix: case-insensitive prefix of flags that never count
        notebook_collection: explicit notebook name; default is the last
            loaded collection when more than one is loaded
    """

    def __init__(
        self,
        ephemeral_prefix: str = DEFAULT_EPHEMERAL_PREFIX,
        notebook_collection: Optional[str] = None,
        log: Optional[DiagnosticLog] = None,
    ) -> None:
        self._prefix = ephemeral_prefix.lower()
        self._notebook_override = notebook_collection
        self._log = log if log is not None else DiagnosticLog()

    def is_ephemeral(self, flag: str) -> bool:
        return bool(self._prefix) and flag.lower().startswith(self._prefix)

    # ── pipeline ──────────────────────────────────────────────

    def analyze(
        self, collections: Sequence[tuple[str, Sequence[DialogueEntry]]]
    ) -> DependencyClassification:
        """collections: (name, entries) pairs in load order."""
        before = len(self._log)
        added, required, links = self._scan(collections)

        all_added = frozenset(o.flag for o in added)
        all_required = frozenset(o.flag for o in required)

        fulfillers = {flag: frozenset({flag}) for flag in all_required if flag in all_added}
        unsatisfiable = all_required - fulfillers.keys()
        self._report_unsatisfiable(unsatisfiable, required)

        notebook = self._pick_notebook([name for name, _ in collections])
        notebook_only = self._notebook_only(required, notebook)

        ephemeral = frozenset(f for f in all_added if self.is_ephemeral(f))
        direct = frozenset(
            flag
            for flag in all_added - ephemeral
            if flag in fulfillers and flag not in notebook_only
        )

        dead_ends = self._trace_dead_ends(
            candidates=all_added - ephemeral - direct,
            links=links,
            direct=direct,
            ephemeral=ephemeral,
        )
        loop_relevant = all_added - ephemeral - dead_ends

        per_loop = self._per_loop(added, loop_relevant)

        result = DependencyClassification(
            all_added_flags=all_added,
            all_required_flags=all_required,
            fulfillers=fulfillers,
            notebook_collection=notebook,
            notebook_only_flags=notebook_only,
            ephemeral_flags=ephemeral,
            directly_relevant_flags=direct,
            dead_end_flags=dead_ends,
            loop_relevant_flags=loop_relevant,
            required_flags_per_loop=per_loop,
            unsatisfiable_flags=frozenset(unsatisfiable),
            diagnostics=list(self._log)[before:],
        )
        logger.info(
            "Dependency analysis: %d added, %d required, %d loop-relevant "
            "(%d direct), %d dead ends, %d ephemeral, notebook=%s",
            len(all_added),
            len(all_required),
            len(loop_relevant),
            len(direct),
            len(dead_ends),
            len(ephemeral),
            notebook,
        )
        return result

    # ── steps ─────────────────────────────────────────────────

    def _scan(
        self, collections: Sequence[tuple[str, Sequence[DialogueEntry]]]
    ) -> tuple[list[FlagOccurrence], list[FlagOccurrence], dict[str, list[str]]]:
        added: list[FlagOccurrence] = []
        required: list[FlagOccurrence] = []
        # flag -> flags granted by the choices it gates (plus their entries)
        links: dict[str, list[str]] = {}

        for name, entries in collections:
            for entry in entries:
                for flag in entry.added_flags:
                    added.append(FlagOccurrence(flag, name, entry.id, entry.min_loop))
                for flag in entry.required_flags:
                    required.append(FlagOccurrence(flag, name, entry.id, entry.min_loop))

                for index, choice in enumerate(entry.choices):
                    for flag in choice.added_flags:
                        added.append(
                            FlagOccurrence(flag, name, entry.id, entry.min_loop, index)
                        )
                    granted = list(choice.added_flags) + list(entry.added_flags)
                    for flag in choice.required_flags:
                        required.append(
                            FlagOccurrence(flag, name, entry.id, entry.min_loop, index)
                        )
                        targets = links.setdefault(flag, [])
                        for target in granted:
                            # an entry granting the flag its own choice needs is not a chain
                            if target != flag and target not in targets:
                                targets.append(target)
        return added, required, links

    def _report_unsatisfiable(
        self, flags: Iterable[str], required: list[FlagOccurrence]
    ) -> None:
        first_use: dict[str, FlagOccurrence] = {}
        for occurrence in required:
            first_use.setdefault(occurrence.flag, occurrence)
        for flag in sorted(flags):
            use = first_use[flag]
            self._log.report(
                DiagnosticKind.UNSATISFIABLE_REQUIREMENT,
                f"'{flag}' is required by '{use.entry_id}' but never granted",
                collection=use.collection,
                subject=flag,
            )

    def _pick_notebook(self, names: list[str]) -> Optional[str]:
        if self._notebook_override:
            if self._notebook_override in names:
                return self._notebook_override
            logger.warning(
                "Configured notebook collection '%s' is not loaded, using convention",
                self._notebook_override,
            )
        # a single collection cannot be auxiliary to itself
        if len(names) < 2:
            return None
        return names[-1]

    @staticmethod
    def _notebook_only(
        required: list[FlagOccurrence], notebook: Optional[str]
    ) -> frozenset[str]:
        if notebook is None:
            return frozenset()
        outside: set[str] = set()
        inside: set[str] = set()
        for occurrence in required:
            if occurrence.collection == notebook:
                inside.add(occurrence.flag)
            else:
                outside.add(occurrence.flag)
        return frozenset(inside - outside)

    @staticmethod
    def _trace_dead_ends(
        candidates: frozenset[str],
        links: dict[str, list[str]],
        direct: frozenset[str],
        ephemeral: frozenset[str],
    ) -> frozenset[str]:
        """Iterative DFS over the chain links with per-flag memoization.

        A flag is a dead end when it is not directly relevant and none of
        the flags it links to is alive. Ephemeral links are dead. Meeting a
        flag already on the current path is a cycle and counts as alive.
        """
        memo: dict[str, bool] = {}  # flag -> is dead end

        def known(flag: str) -> Optional[bool]:
            if flag in direct:
                return False
            if flag in ephemeral:
                return True
            return memo.get(flag)

        for origin in sorted(candidates):
            if known(origin) is not None:
                continue

            on_path = {origin}
            # frame: [flag, links, next index, alive]
            stack: list[list] = [[origin, links.get(origin, []), 0, False]]
            while stack:
                frame = stack[-1]
                flag, targets, index, alive = frame
                if alive or index >= len(targets):
                    memo[flag] = not alive
                    on_path.discard(flag)
                    stack.pop()
                    if alive and stack:
                        stack[-1][3] = True
                    continue

                target = targets[index]
                frame[2] = index + 1
                if target in on_path:
                    frame[3] = True
                    continue
                verdict = known(target)
                if verdict is not None:
                    if not verdict:
                        frame[3] = True
                    continue
                on_path.add(target)
                stack.append([target, links.get(target, []), 0, False])

        return frozenset(flag for flag, dead in memo.items() if dead)

    @staticmethod
    def _per_loop(
        added: list[FlagOccurrence], loop_relevant: frozenset[str]
    ) -> dict[int, frozenset[str]]:
        table: dict[int, set[str]] = {}
        loops_of: dict[str, set[int]] = {}
        for occurrence in added:
            if occurrence.flag not in loop_relevant:
                continue
            table.setdefault(occurrence.min_loop, set()).add(occurrence.flag)
            loops_of.setdefault(occurrence.flag, set()).add(occurrence.min_loop)

        for flag, loops in sorted(loops_of.items()):
            if len(loops) > 1:
                # found_this_loop never sees an already held flag again
                logger.warning(
                    "Flag '%s' is granted in loops %s and is required by each; "
                    "once found, the later loops cannot be completed",
                    flag,
                    sorted(loops),
                )
        return {loop: frozenset(flags) for loop, flags in sorted(table.items())}
