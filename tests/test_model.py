"""
Tests for the program model: parsing, ordering, lookup and statement splitting.
"""

from basicv2.model import (
    Line,
    format_program,
    map_outside_quotes,
    numbered_lines,
    parse_program,
    split_raw_statements,
    split_statements,
    strip_strings,
)


def test_parse_sorts_lines_and_builds_index():
    program = parse_program("30 END\n10 PRINT \"A\"\n\n20 GOTO 30\n")

    assert program.numbers == [10, 20, 30]
    assert program.position_of(20) == 1
    assert program.position_of(99) is None
    assert program.get_line(10) == Line(number=10, body='PRINT "A"')


def test_unnumbered_lines_are_dropped_silently():
    program = parse_program("PRINT \"NO NUMBER\"\n10 END\nhello")

    assert len(program) == 1
    assert program.lines[0].number == 10


def test_bodies_are_trimmed_and_crlf_is_accepted():
    program = parse_program("10   PRINT \"A\"   \r\n20 END")

    assert [line.body for line in program] == ['PRINT "A"', "END"]


def test_duplicate_numbers_are_kept_last_wins_in_index():
    program = parse_program("10 PRINT \"FIRST\"\n10 PRINT \"SECOND\"")

    assert len(program) == 2
    assert program.get_line(10).body == 'PRINT "SECOND"'


def test_empty_text_gives_empty_program():
    assert len(parse_program("")) == 0
    assert len(parse_program(None)) == 0


def test_to_text_renders_sorted_lines():
    assert parse_program("20 END\n10 A=1").to_text() == "10 A=1\n20 END"


class TestSplitStatements:
    """Colon splitting with the IF...THEN exception."""

    def test_plain_colons_split(self):
        assert split_statements('PRINT "A":PRINT "B"') == ['PRINT "A"', 'PRINT "B"']

    def test_colon_inside_quotes_does_not_split(self):
        assert split_statements('PRINT "A:B":END') == ['PRINT "A:B"', "END"]

    def test_colon_after_if_then_stays_in_statement(self):
        assert split_statements('IF A=1 THEN PRINT "X":GOTO 10') == ['IF A=1 THEN PRINT "X":GOTO 10']

    def test_if_then_after_top_level_statement(self):
        assert split_statements("A=1:IF A=1 THEN B=2:C=3") == ["A=1", "IF A=1 THEN B=2:C=3"]

    def test_exception_disabled_for_then_clause(self):
        parts = split_statements("IF A=1 THEN B=2:C=3", preserve_if_then_colon=False)
        assert parts == ["IF A=1 THEN B=2", "C=3"]

    def test_empty_pieces_are_dropped(self):
        assert split_statements("A=1::B=2:") == ["A=1", "B=2"]


def test_split_raw_statements_keeps_inner_empty_pieces():
    assert split_raw_statements("A=1::B=2") == ["A=1", "", "B=2"]
    assert split_raw_statements("IF A THEN B:ELSE C") == ["IF A THEN B", "ELSE C"]


def test_strip_strings_removes_literals():
    assert strip_strings('PRINT "A(1)";X(2)') == "PRINT ;X(2)"


def test_map_outside_quotes_leaves_literals_alone():
    result = map_outside_quotes('cls:PRINT "cls"', str.upper)
    assert result == 'CLS:PRINT "cls"'


def test_numbered_lines_keeps_source_order():
    assert numbered_lines("20 B\nX\n10 A") == [(20, "B"), (10, "A")]


def test_format_program():
    assert format_program([(10, "A=1"), (20, "END")]) == "10 A=1\n20 END"
