"""
BASIC V2 Token Table

Fixed mapping from keyword / operator spelling to its single-byte token,
as stored in PRG files.

Keyword tokens occupy 0x80-0xCB; operators reuse bytes inside that range.
`?` is the PRINT shorthand and shares PRINT's byte, which is the only
byte with two spellings.

ARCHITECTURAL RULE:
    This table is immutable and defined once.
    The encoder matches against TOKENS_BY_LENGTH (longest spelling first);
    the analyzer and repair engine only read from it.
"""

from typing import Dict, Optional, Tuple

PRINT_ALIAS = "?"
FIRST_TOKEN = 0x80
LAST_TOKEN = 0xCB

BASIC_V2_TOKENS: Tuple[Tuple[str, int], ...] = (
    ("END", 0x80), ("FOR", 0x81), ("NEXT", 0x82), ("DATA", 0x83),
    ("INPUT#", 0x84), ("INPUT", 0x85), ("DIM", 0x86), ("READ", 0x87),
    ("LET", 0x88), ("GOTO", 0x89), ("RUN", 0x8A), ("IF", 0x8B),
    ("RESTORE", 0x8C), ("GOSUB", 0x8D), ("RETURN", 0x8E), ("REM", 0x8F),
    ("STOP", 0x90), ("ON", 0x91), ("WAIT", 0x92), ("LOAD", 0x93),
    ("SAVE", 0x94), ("VERIFY", 0x95), ("DEF", 0x96), ("POKE", 0x97),
    ("PRINT#", 0x98), ("PRINT", 0x99), ("CONT", 0x9A), ("LIST", 0x9B),
    ("CLR", 0x9C), ("CMD", 0x9D), ("SYS", 0x9E), ("OPEN", 0x9F),
    ("CLOSE", 0xA0), ("GET", 0xA1), ("NEW", 0xA2), ("TAB(", 0xA3),
    ("TO", 0xA4), ("FN", 0xA5), ("SPC(", 0xA6), ("THEN", 0xA7),
    ("NOT", 0xA8), ("STEP", 0xA9), ("+", 0xAA), ("-", 0xAB),
    ("*", 0xAC), ("/", 0xAD), ("^", 0xAE), ("AND", 0xAF),
    ("OR", 0xB0), (">", 0xB1), ("=", 0xB2), ("<", 0xB3),
    ("SGN", 0xB4), ("INT", 0xB5), ("ABS", 0xB6), ("USR", 0xB7),
    ("FRE", 0xB8), ("POS", 0xB9), ("SQR", 0xBA), ("RND", 0xBB),
    ("LOG", 0xBC), ("EXP", 0xBD), ("COS", 0xBE), ("SIN", 0xBF),
    ("TAN", 0xC0), ("ATN", 0xC1), ("PEEK", 0xC2), ("LEN", 0xC3),
    ("STR$", 0xC4), ("VAL", 0xC5), ("ASC", 0xC6), ("CHR$", 0xC7),
    ("LEFT$", 0xC8), ("RIGHT$", 0xC9), ("MID$", 0xCA), ("GO", 0xCB),
    (PRINT_ALIAS, 0x99),
)

# Longest spelling first so that e.g. INPUT# wins over INPUT and GOTO over GO.
TOKENS_BY_LENGTH: Tuple[Tuple[str, int], ...] = tuple(
    sorted(BASIC_V2_TOKENS, key=lambda item: -len(item[0]))
)

_BYTE_BY_SPELLING: Dict[str, int] = dict(BASIC_V2_TOKENS)
_SPELLING_BY_BYTE: Dict[int, str] = {
    value: spelling for spelling, value in BASIC_V2_TOKENS if spelling != PRINT_ALIAS
}

REM_SPELLING = "REM"


def token_for(spelling: str) -> Optional[int]:
    """Byte for a keyword/operator spelling (case-insensitive), or None."""
    return _BYTE_BY_SPELLING.get(spelling.upper())


def spelling_for(value: int) -> Optional[str]:
    """Canonical spelling for a token byte, or None for non-token bytes."""
    return _SPELLING_BY_BYTE.get(value)


def is_token_byte(value: int) -> bool:
    return FIRST_TOKEN <= value <= LAST_TOKEN
