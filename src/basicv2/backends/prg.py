"""
PRG backend: tokenized on-disk layout for BASIC V2 programs.

Converts program text into the byte layout the C64 loads at $0801:

    load address (2 bytes, little-endian)
    per line:
        address of the next line (2 bytes, LE)
        line number (2 bytes, LE)
        tokenized body
        0x00
    0x00 0x00 end marker

Keywords are replaced by single-byte tokens using longest-match with
word-boundary rules, so GOTO inside GOTOKEN or TO inside STOP/TOM is
left alone. Quoted text and everything after REM is copied verbatim.
"""

import logging
import re
import struct
from typing import List

from basicv2.errors import InvalidProgram
from basicv2.model import parse_program
from basicv2.tokens import REM_SPELLING, TOKENS_BY_LENGTH, is_token_byte, spelling_for

logger = logging.getLogger(__name__)

LOAD_ADDRESS = 0x0801
END_OF_PROGRAM = b"\x00\x00"

_ALPHA_RE = re.compile(r"[A-Z]")
_WORD_END_RE = re.compile(r"[A-Z$]")
_ALNUM_RE = re.compile(r"[A-Z0-9]")


def _upper_aligned(text: str) -> str:
    """Uppercase without changing the length (so indexes stay aligned)."""
    return "".join(ch.upper() if len(ch.upper()) == 1 else ch for ch in text)


def to_petscii_byte(ch: str) -> int:
    """Code point for the low 7-bit range, blank (0x20) for anything else."""
    code = ord(ch)
    return code if code < 128 else 0x20


def _boundaries_hold(upper: str, start: int, spelling: str) -> bool:
    end = start + len(spelling)
    prev = upper[start - 1] if start > 0 else " "
    nxt = upper[end] if end < len(upper) else " "
    if _ALPHA_RE.match(spelling[0]) and _ALNUM_RE.match(prev):
        return False
    if _WORD_END_RE.match(spelling[-1]) and _ALNUM_RE.match(nxt):
        return False
    return True


def encode_line_body(body: str) -> bytes:
    """
    Tokenize one line body, including the trailing 0x00 terminator.

    Args:
        body: Line text after the line number

    Returns:
        Encoded bytes
    """
    out = bytearray()
    upper = _upper_aligned(body)
    in_quote = False
    rem_mode = False
    i = 0

    while i < len(body):
        raw = body[i]

        if raw == '"':
            in_quote = not in_quote
            out.append(to_petscii_byte(raw))
            i += 1
            continue

        if not in_quote and not rem_mode:
            matched = False
            for spelling, token in TOKENS_BY_LENGTH:
                if not upper.startswith(spelling, i):
                    continue
                if not _boundaries_hold(upper, i, spelling):
                    continue
                out.append(token)
                i += len(spelling)
                matched = True
                if spelling == REM_SPELLING:
                    rem_mode = True
                break
            if matched:
                continue

        out.append(to_petscii_byte(raw))
        i += 1

    out.append(0x00)
    return bytes(out)


def encode_program(source: str) -> bytes:
    """
    Encode program text as PRG bytes.

    Lines that are not `<digits> <body>` are skipped, as everywhere else.
    Line numbers and link addresses are stored as 16-bit words, so a line
    number above 65535 is written modulo 65536 (the listing then shows the
    wrapped number). Zero numbered lines is the only hard failure.

    Args:
        source: Program text

    Returns:
        PRG file contents

    Raises:
        InvalidProgram: If no numbered lines exist
    """
    program = parse_program(source)
    if not program.lines:
        raise InvalidProgram("No numbered BASIC lines to export.")

    prg = bytearray(struct.pack("<H", LOAD_ADDRESS))
    cursor = LOAD_ADDRESS
    for line in program.lines:
        body = encode_line_body(line.body)
        next_address = cursor + 4 + len(body)
        prg.extend(struct.pack("<HH", next_address & 0xFFFF, line.number & 0xFFFF))
        prg.extend(body)
        cursor = next_address

    prg.extend(END_OF_PROGRAM)
    logger.debug("Encoded %d lines into %d bytes", len(program.lines), len(prg))
    return bytes(prg)


def decode_line_body(data: bytes) -> str:
    """Turn a tokenized body (without terminator) back into text."""
    out: List[str] = []
    in_quote = False
    rem_mode = False
    for value in data:
        if value == ord('"'):
            in_quote = not in_quote
            out.append('"')
            continue
        if not in_quote and not rem_mode and is_token_byte(value):
            spelling = spelling_for(value) or " "
            out.append(spelling)
            if spelling == REM_SPELLING:
                rem_mode = True
            continue
        out.append(chr(value) if value < 128 else " ")
    return "".join(out)


def decode_program(data: bytes) -> str:
    """
    List a PRG file back to program text.

    Follows the line bodies (terminator-delimited) rather than trusting the
    next-line pointers, and stops at the 0x00 0x00 marker.

    Raises:
        InvalidProgram: If the data is truncated
    """
    if len(data) < 2:
        raise InvalidProgram("PRG data is too short to hold a load address.")

    lines = []
    pos = 2
    while True:
        if pos + 2 > len(data):
            raise InvalidProgram("PRG data ends without an end-of-program marker.")
        (link,) = struct.unpack_from("<H", data, pos)
        if link == 0:
            break
        if pos + 4 > len(data):
            raise InvalidProgram("PRG data ends inside a line header.")
        (number,) = struct.unpack_from("<H", data, pos + 2)
        end = data.find(b"\x00", pos + 4)
        if end < 0:
            raise InvalidProgram(f"Line {number} has no terminator.")
        lines.append(f"{number} {decode_line_body(data[pos + 4:end])}")
        pos = end + 1
    return "\n".join(lines)


def save_prg_file(source: str, filename: str) -> None:
    """
    Encode a program and save it to file.

    Args:
        source: Program text
        filename: Output file path (.prg extension recommended)
    """
    data = encode_program(source)
    with open(filename, "wb") as f:
        f.write(data)


__all__ = [
    "LOAD_ADDRESS",
    "encode_line_body",
    "encode_program",
    "decode_program",
    "save_prg_file",
]
