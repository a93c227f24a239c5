"""Recoverable problems found while loading, analyzing or playing the corpus

Nothing here raises during play. Parser, analyzer and queue record a
Diagnostic and carry on with a safe default; the worst visible outcome is
fewer dialogue options than the author intended.
The only hard failure is CorpusLoadError (empty or entirely unparseable corpus).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    MALFORMED_RECORD = "malformed_record"
    FIELD_COERCION = "field_coercion"
    INVALID_CHOICE_SELECTION = "invalid_choice_selection"
    MISSING_COLLECTION = "missing_collection"
    UNSATISFIABLE_REQUIREMENT = "unsatisfiable_requirement"


class CorpusLoadError(ValueError):
    """No usable dialogue entries at all."""


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    collection: Optional[str] = None
    row: Optional[int] = None  # 1-based line number of the record start
    subject: Optional[str] = None  # entry id, flag name, ...

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "collection": self.collection,
            "row": self.row,
            "subject": self.subject,
        }


class DiagnosticLog:
    """Append-only list of diagnostics, logged as they arrive."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def report(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        collection: Optional[str] = None,
        row: Optional[int] = None,
        subject: Optional[str] = None,
        level: int = logging.WARNING,
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            kind=kind,
            message=message,
            collection=collection,
            row=row,
            subject=subject,
        )
        self._items.append(diagnostic)
        where = f"{collection}:{row}" if row is not None else (collection or "-")
        logger.log(level, "[%s] %s (%s)", kind.value, message, where)
        return diagnostic

    def extend(self, diagnostics: list[Diagnostic]) -> None:
        self._items.extend(diagnostics)

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def clear(self) -> None:
        self._items.clear()

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)
