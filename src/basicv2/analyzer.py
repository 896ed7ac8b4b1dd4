"""
Program Analyzer: static dialect checks ("lint") for BASIC V2 programs.

This module walks program text and reports findings:
    - Line structure (format, ordering, quotes, parentheses)
    - Constructs that do not exist in BASIC V2 (WHILE, ELSE, ==, STRING$ ...)
    - Incomplete statements (IF without THEN, FOR without TO)
    - Invalid assignment targets and unknown statements
    - Arrays used without DIM
    - GOTO / GOSUB / IF...THEN targets that do not exist

IMPORTANT: This is the analysis layer. It does NOT modify the program.
It is the only authority on whether a program is valid; the repair
engine pattern-matches the exact message shapes produced here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from basicv2.model import parse_line, source_lines, split_raw_statements, strip_strings

# Statements that may start a statement without being an assignment.
STATEMENT_KEYWORDS: Tuple[str, ...] = (
    "FOR", "IF", "PRINT", "POKE", "NEXT", "GOTO", "GOSUB", "DATA", "READ",
    "REM", "INPUT", "ON", "RETURN", "STOP", "END", "DIM", "LET",
    "GET", "RESTORE", "DEF", "SYS", "CLR", "WAIT", "OPEN", "CLOSE", "CMD",
    "CONT", "LIST", "RUN", "NEW", "LOAD", "SAVE", "VERIFY",
)

# Names followed by "(" that are functions, not arrays.
BUILTIN_FUNCTIONS = frozenset({
    "NOT", "RND", "INT", "ABS", "SQR", "SIN", "COS", "TAN", "ATN", "LOG",
    "EXP", "SGN", "CHR$", "ASC", "LEN", "VAL", "STR$", "LEFT$", "RIGHT$",
    "MID$", "SPC", "TAB", "FRE", "PEEK", "POS", "USR",
})

BANNED_KEYWORDS = ("WHILE", "WEND", "TRUE", "FALSE", "DO", "LOOP", "ELSE")

STATEMENT_KEYWORD_RE = re.compile(
    r"^\s*(" + "|".join(STATEMENT_KEYWORDS) + r")\b", re.IGNORECASE
)
_BANNED_RE = re.compile(r"\b(" + "|".join(BANNED_KEYWORDS) + r")\b")
_DIM_RE = re.compile(r"\bDIM\b\s+(.+)$", re.IGNORECASE)
_DIM_ENTRY_RE = re.compile(r"^([A-Z][A-Z0-9]*)\s*\(", re.IGNORECASE)
_ARRAY_USE_RE = re.compile(r"\b([A-Z][A-Z0-9]*)\s*\(", re.IGNORECASE)
_FN_BEFORE_RE = re.compile(r"\bFN\s*$", re.IGNORECASE)
_ASSIGN_RE = re.compile(r"^\s*(?:LET\s+)?([^=]+?)\s*=\s*.+$", re.IGNORECASE)
_ASSIGN_TARGET_RE = re.compile(r"^[A-Z][A-Z0-9$]*(\([^)]*\))?$", re.IGNORECASE)
_LEADING_TOKEN_RE = re.compile(r"^([A-Z][A-Z0-9$]*)", re.IGNORECASE)

_GOTO_RE = re.compile(r"^\s*GOTO\s+(\d+)\s*$")
_GOSUB_RE = re.compile(r"^\s*GOSUB\s+(\d+)\s*$")
_IF_THEN_LINE_RE = re.compile(r"^\s*IF\s+.+\s+THEN\s+(\d+)\s*$")
_IF_THEN_JUMP_RE = re.compile(r"^\s*IF\s+.+\s+THEN\s+(GOTO|GOSUB)\s+(\d+)\s*$")

# Finding shapes the repair engine relies on.
FORMAT_INVALID = "Line format invalid: '{raw}'"
NON_INCREASING = "Line numbers must increase (saw {number} after {previous})."
UNMATCHED_QUOTE = "Line {line}: unmatched quote."
UNBALANCED_PARENS = "Line {line}: unbalanced parentheses."
DOUBLE_EQUALS = "Line {line}: use '=' (not '==')."
CONTROL_SYNTAX = "Line {line}: non-BASIC-V2 control syntax detected."
STRING_FN = "Line {line}: STRING$ is not available in C64 BASIC V2."
SPACE_FN = "Line {line}: use SPC(n) in PRINT, not SPACE$/SPACES$."
IF_WITHOUT_THEN = "Line {line}: IF without THEN."
FOR_WITHOUT_TO = "Line {line}: FOR without TO."
INVALID_TARGET = "Line {line}: invalid assignment target '{lhs}'."
UNKNOWN_STATEMENT = "Line {line}: unknown or unsupported statement '{token}'."
ARRAY_WITHOUT_DIM = "Line {line}: array {name}() used without DIM."
GOTO_MISSING = "Line {line}: GOTO target {target} not found."
GOSUB_MISSING = "Line {line}: GOSUB target {target} not found."
IF_TARGET_MISSING = "Line {line}: IF THEN target {target} not found."


@dataclass
class LintReport:
    """Findings for one program plus a couple of summary counts."""

    findings: List[str] = field(default_factory=list)
    line_count: int = 0

    @property
    def clean(self) -> bool:
        return not self.findings


def declared_arrays(code: str) -> Set[str]:
    """Array names declared by a DIM statement in this line (upper-cased)."""
    names: Set[str] = set()
    dim_match = _DIM_RE.search(strip_strings(code))
    if dim_match:
        for part in dim_match.group(1).split(","):
            entry = _DIM_ENTRY_RE.match(part.strip())
            if entry:
                names.add(entry.group(1).upper())
    return names


def array_uses(stmt_no_strings: str) -> List[str]:
    """
    Names used as `NAME(` that are neither builtins nor FN definitions.

    Returns:
        Upper-cased names in order of appearance
    """
    uses = []
    for match in _ARRAY_USE_RE.finditer(stmt_no_strings):
        name = match.group(1).upper()
        if name == "FN" or name in BUILTIN_FUNCTIONS:
            continue
        if name.startswith("FN") or _FN_BEFORE_RE.search(stmt_no_strings[:match.start()]):
            continue
        uses.append(name)
    return uses


def _check_statement(stmt: str, line: int, findings: List[str]) -> None:
    stmt_no_strings = strip_strings(stmt)
    upper = stmt_no_strings.upper()

    if "==" in upper:
        findings.append(DOUBLE_EQUALS.format(line=line))
    if _BANNED_RE.search(upper):
        findings.append(CONTROL_SYNTAX.format(line=line))
    if re.search(r"\bSTRING\$\s*\(", upper):
        findings.append(STRING_FN.format(line=line))
    if re.search(r"\bSPACE\$?\s*\(", upper) or re.search(r"\bSPACES\$\s*\(", upper):
        findings.append(SPACE_FN.format(line=line))
    if re.match(r"^\s*IF\b", upper) and not re.search(r"\bTHEN\b", upper):
        findings.append(IF_WITHOUT_THEN.format(line=line))
    if re.match(r"^\s*FOR\b", upper) and not re.search(r"\bTO\b", upper):
        findings.append(FOR_WITHOUT_TO.format(line=line))

    if STATEMENT_KEYWORD_RE.match(stmt_no_strings):
        return

    assign = _ASSIGN_RE.match(stmt_no_strings)
    if assign:
        lhs = assign.group(1).strip()
        if not _ASSIGN_TARGET_RE.match(lhs):
            findings.append(INVALID_TARGET.format(line=line, lhs=lhs))
        return

    token = _LEADING_TOKEN_RE.match(stmt_no_strings.strip())
    if token:
        findings.append(UNKNOWN_STATEMENT.format(line=line, token=token.group(1)))


def _check_targets(bodies: List[Tuple[int, str]], numbers: Set[int]) -> List[str]:
    findings = []
    for line, code in bodies:
        for stmt in split_raw_statements(code):
            upper = stmt.upper()

            goto = _GOTO_RE.match(upper)
            if goto and int(goto.group(1)) not in numbers:
                findings.append(GOTO_MISSING.format(line=line, target=goto.group(1)))

            gosub = _GOSUB_RE.match(upper)
            if gosub and int(gosub.group(1)) not in numbers:
                findings.append(GOSUB_MISSING.format(line=line, target=gosub.group(1)))

            if_line = _IF_THEN_LINE_RE.match(upper)
            if if_line and int(if_line.group(1)) not in numbers:
                findings.append(IF_TARGET_MISSING.format(line=line, target=if_line.group(1)))

            if_jump = _IF_THEN_JUMP_RE.match(upper)
            if if_jump and int(if_jump.group(2)) not in numbers:
                template = GOTO_MISSING if if_jump.group(1) == "GOTO" else GOSUB_MISSING
                findings.append(template.format(line=line, target=if_jump.group(2)))
    return findings


def lint_program(text: str) -> List[str]:
    """
    Statically check a program.

    Findings come in three groups, in this order:
        1. per-line and per-statement findings, in source order
        2. unresolved GOTO / GOSUB / IF...THEN targets
        3. arrays used without DIM (one per array, at its first use)

    Args:
        text: Program source

    Returns:
        Human-readable findings; empty when the program is clean
    """
    findings: List[str] = []
    previous = -1
    numbers: Set[int] = set()
    bodies: List[Tuple[int, str]] = []
    dimmed: Set[str] = set()
    first_use: Dict[str, int] = {}

    for raw in source_lines(text):
        parsed = parse_line(raw)
        if parsed is None:
            findings.append(FORMAT_INVALID.format(raw=raw))
            continue

        line, code = parsed.number, parsed.body
        numbers.add(line)
        bodies.append((line, code))
        dimmed.update(declared_arrays(code))

        if line <= previous:
            findings.append(NON_INCREASING.format(number=line, previous=previous))
        previous = line

        if code.count('"') % 2 != 0:
            findings.append(UNMATCHED_QUOTE.format(line=line))

        code_no_strings = strip_strings(code)
        if code_no_strings.count("(") != code_no_strings.count(")"):
            findings.append(UNBALANCED_PARENS.format(line=line))

        for stmt in split_raw_statements(code):
            if re.match(r"^\s*REM\b", strip_strings(stmt).upper()):
                continue
            for name in array_uses(strip_strings(stmt)):
                first_use.setdefault(name, line)
            _check_statement(stmt, line, findings)

    findings.extend(_check_targets(bodies, numbers))

    for name, line in first_use.items():
        if name not in dimmed:
            findings.append(ARRAY_WITHOUT_DIM.format(line=line, name=name))

    return findings


def analyze_program(text: str) -> LintReport:
    """Lint a program and wrap the findings in a LintReport."""
    return LintReport(findings=lint_program(text), line_count=len(source_lines(text)))


def looks_like_basic_v2(text: str) -> bool:
    """
    Quick gate: every line is numbered and no banned token appears anywhere.

    This is coarser than lint_program (it also looks inside strings) and is
    meant for screening candidate programs before a full lint.
    """
    lines = source_lines(text)
    if not lines:
        return False
    if any(not re.match(r"^\d+\s+", line) for line in lines):
        return False

    upper = f" {text.upper()} "
    banned = (" WHILE ", " WEND ", " TRUE", " FALSE", " DO ", " LOOP ", " ELSEIF ", " ENDIF", " ELSE ")
    return not any(token in upper for token in banned)
