"""CSV record parser: rows of text to DialogueEntry

Column layout (header row is always discarded):

    id, minLoop, requiredFlags, text, addedFlags,
    [choiceRequired, choiceText, answerText, choiceAdded] x 3

Flag columns are comma-separated sub-lists inside one (quoted) field.
Parsing never aborts the corpus: bad rows are skipped, bad numbers fall
back to defaults, and each case is reported to the DiagnosticLog.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from src.core.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from .models import MAX_CHOICES, Choice, DialogueEntry

logger = logging.getLogger(__name__)

QUOTE = '"'
FLAG_SEPARATOR = ","

# --- column layout ---
MIN_FIELDS = 5
CHOICE_START = 5
CHOICE_WIDTH = 4
DEFAULT_MIN_LOOP = 1


@dataclass
class ParsedCollection:
    """One CSV source after parsing."""

    name: str
    entries: list[DialogueEntry] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    rows_seen: int = 0


def split_records(text: str) -> Iterator[tuple[int, str]]:
    """Split raw text into logical records.

    A newline inside a quoted span belongs to the field, not the record
    boundary. Yields (starting line number, record text).
    """
    buf: list[str] = []
    in_quotes = False
    line_no = 1
    start_line = 1
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == QUOTE:
            in_quotes = not in_quotes
            buf.append(c)
        elif c in "\r\n" and not in_quotes:
            # \r\n counts as one break
            if c == "\r" and i + 1 < n and text[i + 1] == "\n":
                i += 1
            yield start_line, "".join(buf)
            buf = []
            line_no += 1
            start_line = line_no
        else:
            if c == "\n":
                line_no += 1
            buf.append(c)
        i += 1
    if buf:
        yield start_line, "".join(buf)


def split_fields(row: str, delimiter: str = ",") -> list[str]:
    """Split one record on delimiter, honouring double-quoted spans.

    Inside quotes a doubled quote is a literal quote. Each field is
    trimmed after unquoting.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0
    n = len(row)
    while i < n:
        c = row[i]
        if c == QUOTE:
            if in_quotes and i + 1 < n and row[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
        elif c == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(c)
        i += 1
    fields.append("".join(current).strip())
    return fields


def parse_flag_list(value: str) -> tuple[str, ...]:
    """'a, b,,c' -> ('a', 'b', 'c'). Whitespace-only -> ()."""
    if not value or not value.strip():
        return ()
    parts = (part.strip() for part in value.split(FLAG_SEPARATOR))
    return tuple(part for part in parts if part)


def parse_min_loop(
    value: str,
    log: DiagnosticLog,
    *,
    collection: Optional[str] = None,
    row: Optional[int] = None,
    subject: Optional[str] = None,
) -> int:
    if not value:
        return DEFAULT_MIN_LOOP
    try:
        min_loop = int(value)
    except ValueError:
        problem = "is not an integer"
    else:
        if min_loop >= DEFAULT_MIN_LOOP:
            return min_loop
        problem = f"is below {DEFAULT_MIN_LOOP}"
    log.report(
        DiagnosticKind.FIELD_COERCION,
        f"minLoop '{value}' {problem}, using {DEFAULT_MIN_LOOP}",
        collection=collection,
        row=row,
        subject=subject,
    )
    return DEFAULT_MIN_LOOP


def _parse_choices(
    fields: list[str],
    log: DiagnosticLog,
    *,
    collection: Optional[str],
    row: Optional[int],
    entry_id: str,
) -> list[Choice]:
    choices: list[Choice] = []
    for group in range(MAX_CHOICES):
        base = CHOICE_START + group * CHOICE_WIDTH
        remaining = len(fields) - base
        if remaining <= 0:
            break
        if remaining < CHOICE_WIDTH:
            # a short group ends choice parsing for this row
            log.report(
                DiagnosticKind.MALFORMED_RECORD,
                f"choice group {group + 1} truncated "
                f"({remaining} of {CHOICE_WIDTH} fields)",
                collection=collection,
                row=row,
                subject=entry_id,
            )
            break

        prompt = fields[base + 1]
        if not prompt:
            continue

        choices.append(
            Choice(
                required_flags=parse_flag_list(fields[base]),
                prompt_text=prompt,
                response_text=fields[base + 2],
                added_flags=parse_flag_list(fields[base + 3]),
            )
        )
    return choices


def parse_fields(
    fields: list[str],
    log: Optional[DiagnosticLog] = None,
    *,
    collection: str = "",
    row: Optional[int] = None,
) -> Optional[DialogueEntry]:
    """Build a DialogueEntry from already split fields. None = rejected."""
    log = log if log is not None else DiagnosticLog()

    if len(fields) < MIN_FIELDS:
        log.report(
            DiagnosticKind.MALFORMED_RECORD,
            f"expected at least {MIN_FIELDS} fields, got {len(fields)}",
            collection=collection,
            row=row,
        )
        return None

    entry_id = fields[0]
    if not entry_id:
        log.report(
            DiagnosticKind.MALFORMED_RECORD,
            "row has no id",
            collection=collection,
            row=row,
        )
        return None

    return DialogueEntry(
        id=entry_id,
        min_loop=parse_min_loop(
            fields[1], log, collection=collection, row=row, subject=entry_id
        ),
        required_flags=parse_flag_list(fields[2]),
        text=fields[3],
        added_flags=parse_flag_list(fields[4]),
        choices=tuple(
            _parse_choices(
                fields, log, collection=collection, row=row, entry_id=entry_id
            )
        ),
        collection=collection,
        row=row or 0,
    )


def parse_row(
    row_text: str,
    log: Optional[DiagnosticLog] = None,
    *,
    delimiter: str = ",",
    collection: str = "",
    row: Optional[int] = None,
) -> Optional[DialogueEntry]:
    """parse(row) -> DialogueEntry | None (rejected and reported)."""
    return parse_fields(
        split_fields(row_text, delimiter), log, collection=collection, row=row
    )


def parse_collection(
    name: str,
    text: str,
    *,
    delimiter: str = ",",
    log: Optional[DiagnosticLog] = None,
) -> ParsedCollection:
    """Parse a whole CSV source. The first record is the header and is dropped."""
    log = log if log is not None else DiagnosticLog()
    before = len(log)
    result = ParsedCollection(name=name)

    records = split_records(text)
    header = next(records, None)
    if header is None:
        logger.warning("Collection '%s' is empty", name)
        return result
    logger.debug("Collection '%s' header: %s", name, header[1])

    seen_ids: set[str] = set()
    for line_no, record in records:
        if not record.strip():
            continue
        fields = split_fields(record, delimiter)
        if not any(fields):
            # spreadsheet padding row (",,,,")
            continue
        result.rows_seen += 1

        entry = parse_fields(fields, log, collection=name, row=line_no)
        if entry is None:
            continue
        if entry.id in seen_ids:
            logger.debug("Collection '%s': another version of '%s'", name, entry.id)
        seen_ids.add(entry.id)
        result.entries.append(entry)

    result.diagnostics = list(log)[before:]
    logger.info(
        "Parsed %d entries from '%s' (%d rows, %d diagnostics)",
        len(result.entries),
        name,
        result.rows_seen,
        len(result.diagnostics),
    )
    return result
