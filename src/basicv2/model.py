"""
Core Program Model

Turns raw program text into an ordered sequence of numbered lines and
splits line bodies into statements.

These are the objects every other layer works from:
    - Line (one numbered source line)
    - Program (sorted lines plus a number -> position index)

ARCHITECTURAL RULE:
    The model holds text, not structure.
    Statements stay untyped strings; each layer (interpreter, analyzer,
    repair engine, encoder) re-derives what it needs from the text.
    Control-flow targets are plain integers resolved through the index,
    never references between Line objects.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

LINE_RE = re.compile(r"^(\d+)\s+(.*)$")
_THEN_RE = re.compile(r"\bTHEN\b")
_STRING_LITERAL_RE = re.compile(r'"[^"]*"')


@dataclass(frozen=True)
class Line:
    """
    One numbered source line.

    Properties:
        number:
            Line number (non-negative). This is the external identity
            used by GOTO/GOSUB/IF...THEN targets.

        body:
            Everything after the line number, trimmed.
            Example: 'PRINT "HI":GOTO 10'
    """

    number: int
    body: str


@dataclass
class Program:
    """
    Ordered sequence of numbered lines.

    Lines are sorted ascending by number. Duplicate numbers are NOT
    removed: each occurrence is kept in sorted (stable) order, and the
    lookup table points at the last one.

    Properties:
        lines:
            Sorted Line objects

        index_by_number:
            Line number -> position in `lines`, for O(1) jump resolution

    INVARIANTS:
        - lines are sorted by number
        - every number in index_by_number is a valid position
    """

    lines: List[Line] = field(default_factory=list)
    index_by_number: Dict[int, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[Line]:
        return iter(self.lines)

    @property
    def numbers(self) -> List[int]:
        """Line numbers in program order."""
        return [line.number for line in self.lines]

    def position_of(self, number: int) -> Optional[int]:
        """
        Resolve a line number to its position.

        Returns:
            Position index or None if no such line exists
        """
        return self.index_by_number.get(number)

    def get_line(self, number: int) -> Optional[Line]:
        """
        Retrieve a line by number.

        Args:
            number: Line number

        Returns:
            Line object or None if not found
        """
        position = self.position_of(number)
        if position is None:
            return None
        return self.lines[position]

    def to_text(self) -> str:
        return format_program((line.number, line.body) for line in self.lines)


def parse_line(raw: str) -> Optional[Line]:
    """Parse one trimmed source line, or None if it is not `<digits> <body>`."""
    match = LINE_RE.match(raw)
    if not match:
        return None
    return Line(number=int(match.group(1)), body=match.group(2).strip())


def source_lines(text: str) -> List[str]:
    """Split text into trimmed, non-blank raw lines."""
    return [raw.strip() for raw in re.split(r"\r?\n", text or "") if raw.strip()]


def parse_program(text: str) -> Program:
    """
    Parse raw text into a Program.

    Blank lines are skipped. Lines that are not `<digits><space><rest>`
    are dropped silently; the analyzer is the layer that reports them.

    Args:
        text: Program source

    Returns:
        Program with sorted lines and a number -> position index
    """
    lines: List[Line] = []
    for raw in source_lines(text):
        line = parse_line(raw)
        if line is None:
            logger.debug("Dropping unnumbered line: %r", raw)
            continue
        lines.append(line)

    lines.sort(key=lambda line: line.number)
    index_by_number = {line.number: position for position, line in enumerate(lines)}
    return Program(lines=lines, index_by_number=index_by_number)


def split_statements(body: str, preserve_if_then_colon: bool = True) -> List[str]:
    """
    Split a line body into statements on unquoted colons.

    One exception: once the statement so far is an `IF ... THEN`, further
    colons belong to the THEN clause and stay in the current statement.

        IF A=1 THEN PRINT "X":GOTO 10   -> one statement
        A=1:IF A=1 THEN B=2:C=3         -> ["A=1", "IF A=1 THEN B=2:C=3"]

    Args:
        body: Line body
        preserve_if_then_colon:
            Pass False when splitting an already-extracted THEN clause,
            so that its colons separate statements.

    Returns:
        Non-empty, trimmed statements in source order
    """
    parts: List[str] = []
    current = ""
    in_quote = False

    for ch in body:
        if ch == '"':
            in_quote = not in_quote

        if ch == ":" and not in_quote:
            probe = current.strip().upper()
            if preserve_if_then_colon and probe.startswith("IF ") and _THEN_RE.search(probe):
                current += ch
                continue
            if current.strip():
                parts.append(current.strip())
            current = ""
            continue
        current += ch

    if current.strip():
        parts.append(current.strip())
    return parts


def split_raw_statements(body: str) -> List[str]:
    """Quote-aware split on every unquoted colon (no IF/THEN exception)."""
    parts: List[str] = []
    current = ""
    in_quote = False
    for ch in body:
        if ch == '"':
            in_quote = not in_quote
        if ch == ":" and not in_quote:
            parts.append(current.strip())
            current = ""
            continue
        current += ch
    if current.strip():
        parts.append(current.strip())
    return parts


def strip_strings(text: str) -> str:
    """Remove every double-quoted literal from text."""
    return _STRING_LITERAL_RE.sub("", text)


def map_outside_quotes(text: str, mapper: Callable[[str], str]) -> str:
    """
    Apply `mapper` to the unquoted segments of text only.

    Quoted segments (quotes included) pass through untouched. An
    unterminated trailing quote leaves the rest of the text untouched.
    """
    out = ""
    chunk = ""
    in_quote = False
    for ch in text or "":
        if ch == '"':
            out += chunk if in_quote else mapper(chunk)
            chunk = ""
            out += ch
            in_quote = not in_quote
            continue
        chunk += ch
    out += chunk if in_quote else mapper(chunk)
    return out


def numbered_lines(text: str) -> List[Tuple[int, str]]:
    """
    Parse text into `(number, body)` pairs in source order.

    Unlike parse_program this does not sort; repair stages that insert
    lines sort explicitly.
    """
    pairs = []
    for raw in source_lines(text):
        line = parse_line(raw)
        if line is not None:
            pairs.append((line.number, line.body))
    return pairs


def format_program(lines: Iterable[Tuple[int, str]]) -> str:
    """Render `(number, body)` pairs back to program text."""
    return "\n".join(f"{number} {body}" for number, body in lines)
