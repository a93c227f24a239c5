"""CSV record parser tests"""

from src.core.diagnostics import DiagnosticKind, DiagnosticLog
from src.core.dialogue.parser import (
    parse_collection,
    parse_flag_list,
    parse_row,
    split_fields,
    split_records,
)


# ── parse_row ──


class TestParseRow:
    def test_minimal_row(self) -> None:
        entry = parse_row("a1,1,,Hello,flagX")
        assert entry is not None
        assert entry.id == "a1"
        assert entry.min_loop == 1
        assert entry.required_flags == ()
        assert entry.text == "Hello"
        assert entry.added_flags == ("flagX",)
        assert entry.choices == ()

    def test_single_choice_group(self) -> None:
        entry = parse_row("a2,2,,Pick,, ,Go left,You went left,flagLeft")
        assert entry is not None
        assert entry.min_loop == 2
        assert len(entry.choices) == 1
        choice = entry.choices[0]
        assert choice.required_flags == ()
        assert choice.prompt_text == "Go left"
        assert choice.response_text == "You went left"
        assert choice.added_flags == ("flagLeft",)
        assert choice.consumed is False

    def test_three_choice_groups(self) -> None:
        row = "c,1,,Text,,r1,One,A1,f1,r2,Two,A2,f2,r3,Three,A3,f3"
        entry = parse_row(row)
        assert entry is not None
        assert [c.prompt_text for c in entry.choices] == ["One", "Two", "Three"]
        assert entry.choices[2].required_flags == ("r3",)

    def test_empty_choice_text_is_skipped_but_later_groups_parse(self) -> None:
        row = "c,1,,Text,,,,,,,Second,,f2"
        entry = parse_row(row)
        assert entry is not None
        assert [c.prompt_text for c in entry.choices] == ["Second"]

    def test_too_few_fields_rejected(self) -> None:
        log = DiagnosticLog()
        assert parse_row("a1,1,,Hello", log) is None
        assert log.of_kind(DiagnosticKind.MALFORMED_RECORD)

    def test_empty_id_rejected(self) -> None:
        log = DiagnosticLog()
        assert parse_row(",1,,Hello,", log) is None
        assert len(log) == 1

    def test_bad_min_loop_defaults_to_one(self) -> None:
        log = DiagnosticLog()
        entry = parse_row("a1,soon,,Hello,", log)
        assert entry is not None
        assert entry.min_loop == 1
        assert log.of_kind(DiagnosticKind.FIELD_COERCION)

    def test_min_loop_below_one_is_coerced(self) -> None:
        log = DiagnosticLog()
        zero = parse_row("x,0,,Hi,key", log)
        negative = parse_row("y,-4,,Yo,", log)
        assert (zero.min_loop, negative.min_loop) == (1, 1)
        coerced = log.of_kind(DiagnosticKind.FIELD_COERCION)
        assert [d.subject for d in coerced] == ["x", "y"]
        assert "below 1" in coerced[0].message

    def test_empty_min_loop_defaults_silently(self) -> None:
        log = DiagnosticLog()
        entry = parse_row("a1,,,Hello,", log)
        assert entry is not None
        assert entry.min_loop == 1
        assert len(log) == 0

    def test_truncated_group_stops_choice_parsing(self) -> None:
        log = DiagnosticLog()
        entry = parse_row("c,1,,Text,,r1,One,A1,f1,r2,Two", log)
        assert entry is not None
        assert [c.prompt_text for c in entry.choices] == ["One"]
        assert log.of_kind(DiagnosticKind.MALFORMED_RECORD)

    def test_flag_lists_inside_quotes(self) -> None:
        entry = parse_row('a,1,"x, y",Hi,"p,,q"')
        assert entry is not None
        assert entry.required_flags == ("x", "y")
        assert entry.added_flags == ("p", "q")


# ── quoting ──


class TestQuoting:
    def test_quoted_commas_and_escaped_quotes(self) -> None:
        fields = split_fields('id,1,,"She said ""wait, please"" twice",')
        assert fields[3] == 'She said "wait, please" twice'

    def test_fields_are_trimmed_after_unquoting(self) -> None:
        assert split_fields('  a ," b ",c') == ["a", "b", "c"]

    def test_doubled_quote_outside_quotes_is_not_a_literal(self) -> None:
        # opening and closing an empty quoted span
        assert split_fields('a,"",b') == ["a", "", "b"]

    def test_round_trip_of_original_text(self) -> None:
        original = 'Tickets, "please", and hurry'
        quoted = '"' + original.replace('"', '""') + '"'
        entry = parse_row(f"t,1,,{quoted},")
        assert entry is not None
        assert entry.text == original

    def test_custom_delimiter(self) -> None:
        assert split_fields("a;b;c", ";") == ["a", "b", "c"]


class TestSplitRecords:
    def test_newline_inside_quotes_stays_in_record(self) -> None:
        text = 'h\na,1,,"line one\nline two",\nb,1,,x,'
        records = list(split_records(text))
        assert len(records) == 3
        assert records[1][1] == 'a,1,,"line one\nline two",'
        assert records[2][0] == 4  # line numbers count the embedded newline

    def test_crlf_is_one_break(self) -> None:
        records = list(split_records("h\r\na,1,,x,\r\nb,1,,y,"))
        assert [r for _, r in records] == ["h", "a,1,,x,", "b,1,,y,"]


class TestParseFlagList:
    def test_whitespace_only_is_empty(self) -> None:
        assert parse_flag_list("   ") == ()

    def test_drops_empty_parts(self) -> None:
        assert parse_flag_list(" a, ,b,") == ("a", "b")


# ── parse_collection ──


class TestParseCollection:
    def test_header_is_dropped(self) -> None:
        text = "id,minLoop,req,text,add\na1,1,,Hello,flagX\n"
        parsed = parse_collection("c", text)
        assert [e.id for e in parsed.entries] == ["a1"]
        assert parsed.entries[0].collection == "c"
        assert parsed.entries[0].row == 2

    def test_bad_rows_do_not_abort_the_corpus(self) -> None:
        text = "header\nbroken,1\na1,1,,Hello,\n,,,,\n\na2,x,,Again,\n"
        log = DiagnosticLog()
        parsed = parse_collection("c", text, log=log)
        assert [e.id for e in parsed.entries] == ["a1", "a2"]
        assert parsed.rows_seen == 3
        kinds = [d.kind for d in parsed.diagnostics]
        assert kinds == [DiagnosticKind.MALFORMED_RECORD, DiagnosticKind.FIELD_COERCION]

    def test_duplicate_ids_are_kept_as_versions(self) -> None:
        text = "header\ng,1,,old,\ng,3,,new,\n"
        parsed = parse_collection("c", text)
        assert [(e.id, e.min_loop) for e in parsed.entries] == [("g", 1), ("g", 3)]

    def test_empty_text(self) -> None:
        parsed = parse_collection("c", "")
        assert parsed.entries == []
