"""
Tests for the PRG backend and the token table.

Tests verify:
    - The byte layout (load address, links, line numbers, terminators)
    - Keyword tokenization with word-boundary rules
    - Quoted text and REM tails stay literal
    - decode_program lists an encoded program back
"""

import struct

import pytest

from basicv2.backends import LOAD_ADDRESS, decode_program, encode_line_body, encode_program, save_prg_file
from basicv2.errors import InvalidProgram
from basicv2.tokens import BASIC_V2_TOKENS, FIRST_TOKEN, LAST_TOKEN, spelling_for, token_for


def test_header_and_end_marker():
    data = encode_program('10 PRINT CHR$(147)\n20 PRINT "HI"\n30 END')

    assert data[:2] == b"\x01\x08"
    assert data[-2:] == b"\x00\x00"


def test_chr_dollar_token_followed_by_paren():
    data = encode_program("10 PRINT CHR$(147)")
    assert bytes([0xC7, 0x28]) in data


def test_single_line_layout():
    data = encode_program("10 END")

    # load address, link, line number, END token, terminator, end marker
    assert data == struct.pack("<HHH", 0x0801, 0x0801 + 4 + 2, 10) + b"\x80\x00" + b"\x00\x00"


def test_links_point_at_next_line():
    data = encode_program('10 PRINT "A"\n20 END')

    (first_link,) = struct.unpack_from("<H", data, 2)
    first_line_len = 4 + len(encode_line_body('PRINT "A"'))
    assert first_link == LOAD_ADDRESS + first_line_len
    (second_number,) = struct.unpack_from("<H", data, 2 + first_line_len + 2)
    assert second_number == 20


def test_lines_are_written_sorted():
    data = encode_program("20 END\n10 END")
    (number,) = struct.unpack_from("<H", data, 4)
    assert number == 10


def test_no_numbered_lines_raises():
    with pytest.raises(InvalidProgram):
        encode_program("PRINT 1\n\n")


class TestTokenization:
    def test_tab_spc_and_print_alias(self):
        data = encode_program('10 PRINT TAB(10):PRINT SPC(2):?"OK"\n20 END')

        assert 0xA3 in data
        assert 0xA6 in data
        assert data.count(0x99) == 3

    def test_goto_inside_identifier_is_not_tokenized(self):
        body = encode_line_body("GOTOKEN=1")
        assert 0x89 not in body
        assert body.startswith(b"GOTOKEN")

    def test_to_inside_stop_and_tom(self):
        assert encode_line_body("STOP") == b"\x90\x00"
        assert 0xA4 not in encode_line_body("TOM=1")

    def test_longest_match_wins(self):
        assert encode_line_body("GOTO 10")[0] == 0x89
        assert encode_line_body("INPUT#1,A")[0] == 0x84

    def test_operators_are_tokens(self):
        body = encode_line_body("A=B+1")
        assert body == bytes([ord("A"), 0xB2, ord("B"), 0xAA, ord("1"), 0x00])

    def test_quoted_text_is_literal(self):
        body = encode_line_body('PRINT "GOTO END"')
        assert body == b'\x99 "GOTO END"\x00'

    def test_rem_tail_is_literal(self):
        body = encode_line_body("REM PRINT THIS")
        assert body == b"\x8f PRINT THIS\x00"

    def test_lowercase_keywords(self):
        assert encode_line_body("print 1")[0] == 0x99

    def test_non_ascii_becomes_blank(self):
        assert encode_line_body('PRINT "É"') == b'\x99 " "\x00'


def test_every_keyword_byte_is_reachable():
    values = {value for _, value in BASIC_V2_TOKENS}
    assert set(range(FIRST_TOKEN, LAST_TOKEN + 1)) <= values


def test_token_lookups():
    assert token_for("print") == 0x99
    assert token_for("?") == 0x99
    assert spelling_for(0x99) == "PRINT"
    assert spelling_for(0x41) is None


def test_decode_lists_program_back():
    source = '10 PRINT "HI":GOTO 10\n20 REM GOTO END\n30 POKE 53280,2'
    assert decode_program(encode_program(source)) == source


def test_decode_truncated_raises():
    data = encode_program("10 END")
    with pytest.raises(InvalidProgram):
        decode_program(data[:-3])


def test_line_number_wraps_to_sixteen_bits():
    data = encode_program("70000 END")

    (number,) = struct.unpack_from("<H", data, 4)
    assert number == 70000 - 65536
    assert decode_program(data) == "4464 END"


def test_save_prg_file(tmp_path):
    out = tmp_path / "hello.prg"
    save_prg_file('10 PRINT "HI"', str(out))
    assert out.read_bytes() == encode_program('10 PRINT "HI"')
