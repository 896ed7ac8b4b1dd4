"""
Deterministic Repair Engine.

Rewrites common deviations from BASIC V2 into valid dialect without any
generative model. Repairs run as an ordered pipeline of stages:

    1. normalize_common_typos       : GTO/PRNIT/..., smart quotes, dashes
    2. rewrite_unsupported_builtins : STRING$ -> FOR loop, SPACE$ -> SPC
    3. apply_policy_repairs         : ELSE splitting, CLS, RANDOMIZE,
                                      foreign operators, +=, underscores ...
    4. ensure_missing_targets       : placeholder lines for missing jumps
    5. auto_dimension_arrays        : DIM for arrays used without one

Every stage is a pure text -> text function that returns a RepairResult
(program plus policy notes) and is idempotent: running a stage on its own
output changes nothing.

Notes have the shape "[policy:<rule>] <message>"; the collected notes of
one repair pass are the audit trail.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from basicv2.analyzer import (
    BANNED_KEYWORDS,
    STATEMENT_KEYWORD_RE,
    array_uses,
    declared_arrays,
    lint_program,
)
from basicv2.model import (
    format_program,
    map_outside_quotes,
    numbered_lines,
    source_lines,
    split_raw_statements,
    strip_strings,
)

logger = logging.getLogger(__name__)

INTENTS = ("general", "game", "animation", "converter", "text_ui", "math")
BARE_LITERAL_INTENTS = frozenset({"general", "game", "text_ui"})
LOOP_VAR_CANDIDATES = ("ZZ", "QZ", "J9", "K9")
LETTER_INPUT_VARS = frozenset({"L", "CH", "LETTER"})
DEFAULT_ARRAY_SIZE = 40
MIN_ARRAY_SIZE = 12

_LINE_RE = re.compile(r"^(\d+)\s+(.*)$")
_POLICY_RE = re.compile(r"^\[policy:([a-z0-9_:-]+)\]", re.IGNORECASE)


@dataclass
class RepairContext:
    """
    What the repair engine knows about the request.

    Properties:
        intent:
            One of INTENTS; gates intent-specific policy rules
        original_prompt:
            The user's request text (carried for reporting only)
    """

    intent: str = "general"
    original_prompt: str = ""


@dataclass
class RepairResult:
    """Output of a repair stage: the (possibly unchanged) program plus notes."""

    program: str
    notes: List[str] = field(default_factory=list)
    ops: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.notes)


def policy_note(rule: str, message: str) -> str:
    return f"[policy:{rule}] {message}"


def extract_policy_hits(notes: Iterable[str]) -> List[str]:
    """Distinct policy rule names in first-seen order."""
    hits: List[str] = []
    for note in notes:
        match = _POLICY_RE.match(str(note or ""))
        if not match:
            continue
        key = match.group(1).lower()
        if key not in hits:
            hits.append(key)
    return hits


def _rewrite_statements(program: str,
                        rewrite: Callable[[str, List[str], List[str]], List[str]]) -> RepairResult:
    """Split every numbered line into statements, rewrite them, re-join with ':'."""
    notes: List[str] = []
    out = []
    for raw in source_lines(program):
        match = _LINE_RE.match(raw)
        if not match:
            out.append(raw)
            continue
        line_no, code = match.group(1), match.group(2)
        statements = rewrite(line_no, split_raw_statements(code), notes)
        out.append(f"{line_no} {':'.join(statements)}")
    return RepairResult(program="\n".join(out), notes=notes)


def _sub_outside_quotes(stmt: str, pattern, replacement) -> str:
    return map_outside_quotes(stmt, lambda segment: re.sub(pattern, replacement, segment))


def choose_loop_var(text: str) -> str:
    """First candidate counter variable that does not already appear in text."""
    upper = text.upper()
    for candidate in LOOP_VAR_CANDIDATES:
        if not re.search(rf"\b{candidate}\b", upper):
            return candidate
    return LOOP_VAR_CANDIDATES[0]


# =============================================================================
# STAGE 1: TYPOS
# =============================================================================

_CHARACTER_FIXES = (
    (re.compile("[\u2018\u2019]"), "'"),
    (re.compile("[\u201c\u201d]"), '"'),
    (re.compile("[\u2013\u2014]"), "-"),
    (re.compile("[\u2190\u27f5\u2794]"), "="),
    (re.compile("\u00a0"), " "),
)

KEYWORD_TYPOS = (
    (re.compile(r"\bGTO\b", re.IGNORECASE), "GOTO"),
    (re.compile(r"\bGOSB\b", re.IGNORECASE), "GOSUB"),
    (re.compile(r"\bPRNIT\b", re.IGNORECASE), "PRINT"),
    (re.compile(r"\bINPT\b", re.IGNORECASE), "INPUT"),
    (re.compile(r"\bRETUNR?\b", re.IGNORECASE), "RETURN"),
)


def normalize_common_typos(program: str) -> RepairResult:
    """
    Fix literal keyword misspellings and typographic characters.

    Applies to the whole text (quoted text included), line by line.
    """
    notes: List[str] = []
    out = []
    for raw in source_lines(program):
        fixed = raw
        for pattern, replacement in _CHARACTER_FIXES:
            fixed = pattern.sub(replacement, fixed)
        fixed = fixed.strip()
        for pattern, replacement in KEYWORD_TYPOS:
            fixed = pattern.sub(replacement, fixed)
        if fixed != raw:
            label = _LINE_RE.match(fixed)
            where = f"Line {label.group(1)}" if label else "Unnumbered line"
            notes.append(policy_note("normalize_typos", f"{where}: corrected typos and typographic characters."))
        if fixed:
            out.append(fixed)
    return RepairResult(program="\n".join(out), notes=notes)


# =============================================================================
# STAGE 2: UNSUPPORTED BUILTINS
# =============================================================================

_SPACE_FN_RE = re.compile(r"\b(?:SPACES\$|SPACE\$?)\s*\(\s*([^)]+)\)", re.IGNORECASE)
_PRINT_RE = re.compile(r"^PRINT\s+(.+)$", re.IGNORECASE)
_STRING_FN_PROBE_RE = re.compile(r"\bSTRING\$\s*\(", re.IGNORECASE)
_STRING_FN_RE = re.compile(
    r'^(.*?)(?:;\s*)?STRING\$\(\s*([^,]+)\s*,\s*"([^"]*)"\s*\)\s*(;?)\s*$', re.IGNORECASE
)


def rewrite_unsupported_builtins(program: str) -> RepairResult:
    """
    Rewrite builtins BASIC V2 does not have.

        SPACE$(n) / SPACES$(n)          -> SPC(n)
        PRINT "A";STRING$(5,"*")        -> PRINT "A";:FOR ZZ=1 TO 5:PRINT "*";:NEXT ZZ:PRINT
    """
    loop_var = choose_loop_var(program)

    def rewrite(line_no: str, statements: List[str], notes: List[str]) -> List[str]:
        rewritten = []
        for stmt in statements:
            updated = stmt

            before = updated
            updated = _sub_outside_quotes(updated, _SPACE_FN_RE, r"SPC(\1)")
            if updated != before:
                notes.append(policy_note("rewrite_space_fn", f"Line {line_no}: rewrote SPACE$/SPACES$ to SPC()."))

            print_match = _PRINT_RE.match(updated)
            if print_match and _STRING_FN_PROBE_RE.search(print_match.group(1)):
                rendered = _STRING_FN_RE.match(print_match.group(1))
                if rendered:
                    prefix = rendered.group(1).strip()
                    count = rendered.group(2).strip()
                    repeat_char = (rendered.group(3) or " ")[0]
                    prefix_part = f"PRINT {prefix};:" if prefix else ""
                    loop_part = f'FOR {loop_var}=1 TO {count}:PRINT "{repeat_char}";:NEXT {loop_var}'
                    tail_part = "" if rendered.group(4) == ";" else ":PRINT"
                    updated = f"{prefix_part}{loop_part}{tail_part}"
                    notes.append(policy_note("rewrite_string_fn", f"Line {line_no}: rewrote STRING$() to looped PRINT output."))

            rewritten.append(updated)
        return rewritten

    return _rewrite_statements(program, rewrite)


# =============================================================================
# STAGE 3: POLICY REPAIRS
# =============================================================================

_IF_THEN_RE = re.compile(r"^\s*IF\s+(.+?)\s+THEN\s+(.+)\s*$", re.IGNORECASE)
_ELSE_ONLY_RE = re.compile(r"^\s*ELSE\s+(.+)\s*$", re.IGNORECASE)
_ELSE_KEYWORD_RE = re.compile(r"\s+ELSE\s+", re.IGNORECASE)
_IF_MISSING_THEN_RE = re.compile(r"^\s*IF\s+(.+?)\s+(PRINT\b.+)$", re.IGNORECASE)
_THEN_RE = re.compile(r"\bTHEN\b", re.IGNORECASE)
_REM_RE = re.compile(r"^REM\b", re.IGNORECASE)
_BARE_WORDS_RE = re.compile(r"^[A-Z][A-Z0-9]*(\s*,\s*[A-Z][A-Z0-9]*)*$", re.IGNORECASE)
_RANDOMIZE_RE = re.compile(r"\bRANDOMIZE(?:\s+TIMER\b|\s*\([^)]*\))?", re.IGNORECASE)
_CLS_RE = re.compile(r"\bCLS\b", re.IGNORECASE)
_RANDOM_RANGE_RE = re.compile(r"\bRANDOM\s*\(\s*([^,()]+?)\s*,\s*([^)]+?)\s*\)", re.IGNORECASE)
_END_IF_RE = re.compile(r"^\s*END\s+IF\s*$", re.IGNORECASE)
_PLUS_ASSIGN_RE = re.compile(r"^\s*(?:LET\s+)?([A-Z][A-Z0-9_]*)\s*\+=\s*(.+)$", re.IGNORECASE)
_MINUS_ASSIGN_RE = re.compile(r"^\s*(?:LET\s+)?([A-Z][A-Z0-9_]*)\s*-=\s*(.+)$", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"\b([A-Z][A-Z0-9_]*)\b", re.IGNORECASE)
_DIM_LIST_RE = re.compile(r"^\s*DIM\s+(.+)$", re.IGNORECASE)
_DIM_NAME_RE = re.compile(r"^([A-Z][A-Z0-9$]*)\s*\(", re.IGNORECASE)
_INPUT_VAR_RE = re.compile(r"^\s*INPUT\s+([A-Z][A-Z0-9]*)\s*$", re.IGNORECASE)
_WALRUS_RE = re.compile(r"\b([A-Z][A-Z0-9$]*)\s*:=\s*", re.IGNORECASE)
_ARROW_ASSIGN_RE = re.compile(r"^(\s*(?:LET\s+)?)([A-Z][A-Z0-9$]*)\s*<-\s*", re.IGNORECASE)

_FOREIGN_OPERATORS = (
    (re.compile(r"\bELSEIF\b", re.IGNORECASE), "IF"),
    (re.compile(r"\bENDIF\b", re.IGNORECASE), "END"),
    (re.compile(r"!=="), "<>"),
    (re.compile(r"!="), "<>"),
    (re.compile(r"==="), "="),
    (re.compile(r"=="), "="),
    (re.compile(r"\s*&&\s*"), " AND "),
    (re.compile(r"\s*\|\|\s*"), " OR "),
    (re.compile(r"!\s*\("), "NOT("),
)

_GAME_NAMES = (
    (re.compile(r"\bREMAINING_GUESSES\b", re.IGNORECASE), "RG"),
    (re.compile(r"\bGUESSES_LEFT\b", re.IGNORECASE), "RG"),
    (re.compile(r"\bASCII\s+CODE\s*\(\s*65\s*-\s*90\s*\)", re.IGNORECASE), "LETTER (A-Z)"),
    (re.compile(r"\bASCII\s+CODE\b", re.IGNORECASE), "LETTER"),
)


def _normalize_operators(segment: str) -> str:
    for pattern, replacement in _FOREIGN_OPERATORS:
        segment = pattern.sub(replacement, segment)
    return segment


def _strip_underscores(segment: str) -> str:
    def clean(match: re.Match) -> str:
        name = match.group(1)
        if "_" not in name:
            return match.group(0)
        return name.replace("_", "") or match.group(0)
    return _IDENTIFIER_RE.sub(clean, segment)


def _expand_compound(segment: str) -> str:
    segment = _PLUS_ASSIGN_RE.sub(lambda m: f"{m.group(1)}={m.group(1)}+({m.group(2).strip()})", segment)
    return _MINUS_ASSIGN_RE.sub(lambda m: f"{m.group(1)}={m.group(1)}-({m.group(2).strip()})", segment)


def _is_bare_literal(stmt: str) -> bool:
    trimmed = stmt.strip()
    if not _BARE_WORDS_RE.match(trimmed) or STATEMENT_KEYWORD_RE.match(trimmed):
        return False
    return trimmed.split(",")[0].strip().upper() not in BANNED_KEYWORDS


def _apply_statement_policies(stmt: str, line_no: str, context: RepairContext,
                              seed_vars: Sequence[str], notes: List[str]) -> str:
    def note(rule: str, message: str) -> None:
        notes.append(policy_note(rule, f"Line {line_no}: {message}"))

    updated = stmt

    before = updated
    counter, sink = seed_vars
    updated = _sub_outside_quotes(updated, _RANDOMIZE_RE, f"FOR {counter}=1 TO 64:{sink}=RND(1):NEXT {counter}")
    if updated != before:
        note("rewrite_randomize", "rewrote RANDOMIZE to RND warmup loop.")

    before = updated
    updated = _sub_outside_quotes(updated, _CLS_RE, "PRINT CHR$(147)")
    if updated != before:
        note("rewrite_cls", "rewrote CLS to PRINT CHR$(147).")

    before = updated
    updated = _sub_outside_quotes(
        updated, _RANDOM_RANGE_RE, r"INT(RND(1)*((\2)-(\1)+1))+(\1)"
    )
    if updated != before:
        note("rewrite_random_fn", "rewrote RANDOM(a,b) to C64 RND formula.")

    before = updated
    updated = map_outside_quotes(updated, _normalize_operators)
    updated = map_outside_quotes(updated, lambda segment: _ARROW_ASSIGN_RE.sub(r"\1\2=", segment))
    if updated != before:
        note("normalize_ops", "normalized non-BASIC operators/tokens.")

    split_else = _rewrite_inline_else(updated)
    if split_else is not None:
        updated = split_else
        note("rewrite_if_else", "rewrote IF...THEN...ELSE into BASIC V2-safe IF clauses.")

    missing_then = _IF_MISSING_THEN_RE.match(updated)
    if missing_then and not _THEN_RE.search(strip_strings(updated)):
        updated = f"IF {missing_then.group(1).strip()} THEN {missing_then.group(2).strip()}"
        note("insert_then", "inserted missing THEN in IF statement.")

    if _END_IF_RE.match(updated):
        updated = "END"
        note("normalize_end_if", "normalized END IF to END.")

    before = updated
    updated = map_outside_quotes(updated, _expand_compound)
    if updated != before:
        note("rewrite_compound_assign", "rewrote compound assignment to BASIC form.")

    if context.intent == "game":
        before = updated
        updated = map_outside_quotes(updated, lambda segment: _apply_all(segment, _GAME_NAMES))
        if updated != before:
            note("normalize_game_vars", "normalized game counter variable names.")

    before = updated
    updated = map_outside_quotes(updated, _strip_underscores)
    if updated != before:
        note("normalize_identifiers", "normalized identifiers with underscores.")

    dim_match = _DIM_LIST_RE.match(updated)
    if dim_match:
        parts = [part.strip() for part in dim_match.group(1).split(",")]
        kept = [part for part in parts if _dim_name(part) != "NOT"]
        if kept and len(kept) != len(parts):
            updated = f"DIM {','.join(kept)}"
            note("sanitize_dim_reserved", "removed reserved DIM identifiers.")

    if context.intent == "game":
        input_var = _INPUT_VAR_RE.match(updated)
        if input_var and input_var.group(1).upper() in LETTER_INPUT_VARS:
            name = input_var.group(1).upper()
            updated = f"INPUT A$:{name}=ASC(A$)"
            note("rewrite_letter_input", "rewrote numeric letter input to A$ + ASC.")

    if context.intent in BARE_LITERAL_INTENTS and _is_bare_literal(updated):
        words = [f'"{word.strip()}"' for word in updated.split(",") if word.strip()]
        updated = f"DATA {','.join(words)}"
        note("rewrite_bare_literals", "converted bare literal statement to DATA.")

    return updated


def _mask_quoted(text: str) -> str:
    """Blank out string-literal contents, keeping offsets and the quotes."""
    out = []
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
            out.append(ch)
        else:
            out.append("_" if in_quote else ch)
    return "".join(out)


def _rewrite_inline_else(stmt: str) -> Optional[str]:
    """
    Split every unquoted ELSE of an inline IF into guarded IF clauses.

        IF C THEN A ELSE B               -> IF C THEN A:IF NOT(C) THEN B
        IF C THEN A ELSE B ELSE D        -> ...:IF NOT(C) THEN B:IF NOT(C) THEN D
        IF C THEN A ELSE IF E THEN B ELSE D
            -> IF C THEN A:IF NOT(C) THEN IF E THEN B:IF NOT(E) THEN D

    Returns None when the statement has no ELSE outside string literals.
    """
    masked = _mask_quoted(stmt)
    head = _IF_THEN_RE.match(masked)
    if not head:
        return None
    elses = list(_ELSE_KEYWORD_RE.finditer(masked, head.start(2)))
    if not elses:
        return None

    cond = stmt[head.start(1):head.end(1)].strip()
    then_part = stmt[head.start(2):elses[0].start()].strip()
    rest = stmt[elses[0].end():].strip()
    if not then_part or not rest:
        return None

    if _IF_THEN_RE.match(_mask_quoted(rest)):
        nested = _rewrite_inline_else(rest) or rest
        return f"IF {cond} THEN {then_part}:IF NOT({cond}) THEN {nested}"

    segments = []
    start = 0
    for match in _ELSE_KEYWORD_RE.finditer(_mask_quoted(rest)):
        segments.append(rest[start:match.start()].strip())
        start = match.end()
    segments.append(rest[start:].strip())
    clauses = [f"IF {cond} THEN {then_part}"]
    clauses.extend(f"IF NOT({cond}) THEN {segment}" for segment in segments if segment)
    return ":".join(clauses)


def _apply_all(segment: str, rules) -> str:
    for pattern, replacement in rules:
        segment = pattern.sub(replacement, segment)
    return segment


def _dim_name(part: str):
    match = _DIM_NAME_RE.match(part)
    return match.group(1).upper() if match else None


def _seed_vars(program: str):
    counter = choose_loop_var(program)
    sink = choose_loop_var(f"{program} {counter}")
    return counter, sink


def apply_policy_repairs(program: str, context: RepairContext = None) -> RepairResult:
    """
    Rewrite foreign constructs into BASIC V2 idioms, statement by statement.

    Intent-gated rules:
        - bare word lists become DATA only for general / game / text_ui
        - game variable names and letter INPUT rewrite only for game

    Args:
        program: Program text
        context: RepairContext (defaults to general intent)

    Returns:
        RepairResult with the rewritten program and policy notes
    """
    context = context or RepairContext()
    seed_vars = _seed_vars(program)

    def rewrite(line_no: str, statements: List[str], notes: List[str]) -> List[str]:
        rewritten = []
        i = 0
        while i < len(statements):
            stmt = statements[i]
            next_stmt = statements[i + 1] if i + 1 < len(statements) else ""
            if_then = _IF_THEN_RE.match(stmt)
            else_only = _ELSE_ONLY_RE.match(next_stmt)
            if if_then and else_only:
                cond = if_then.group(1).strip()
                stmt = (
                    f"IF {cond} THEN {if_then.group(2).strip()}:"
                    f"IF NOT({cond}) THEN {else_only.group(1).strip()}"
                )
                i += 1
                notes.append(policy_note("rewrite_if_else_split", f"Line {line_no}: rewrote split IF...THEN:ELSE pattern."))
            i += 1

            if _REM_RE.match(stmt.strip()):
                rewritten.append(stmt)
                continue
            rewritten.append(_apply_statement_policies(stmt, line_no, context, seed_vars, notes))
        return rewritten

    # ":=" would be taken apart by the statement splitter, so fold it first.
    folded = []
    walrus_notes = []
    for raw in source_lines(program):
        fixed = map_outside_quotes(raw, lambda segment: _WALRUS_RE.sub(r"\1=", segment))
        if fixed != raw:
            label = _LINE_RE.match(fixed)
            where = f"Line {label.group(1)}" if label else "Unnumbered line"
            walrus_notes.append(policy_note("normalize_ops", f"{where}: normalized ':=' assignment."))
        folded.append(fixed)

    result = _rewrite_statements("\n".join(folded), rewrite)
    result.notes = walrus_notes + result.notes
    for note in result.notes:
        logger.debug(note)
    return result


# =============================================================================
# STAGE 4: MISSING TARGETS
# =============================================================================

_MISSING_TARGET_RULES = (
    (re.compile(r"GOTO target (\d+) not found", re.IGNORECASE), "END", "ensure_goto_target"),
    (re.compile(r"GOSUB target (\d+) not found", re.IGNORECASE), "RETURN", "ensure_gosub_target"),
    (re.compile(r"IF THEN target (\d+) not found", re.IGNORECASE), "REM AUTO-INSERTED TARGET", "ensure_if_target"),
)


def ensure_missing_targets(program: str, findings: Sequence[str] = ()) -> RepairResult:
    """
    Insert placeholder lines for jump targets the analyzer could not resolve.

        GOTO target     -> END
        GOSUB target    -> RETURN
        IF THEN target  -> REM AUTO-INSERTED TARGET

    An existing line number is never overwritten.
    """
    parsed = numbered_lines(program)
    if not parsed:
        return RepairResult(program=program or "")

    existing = {number for number, _ in parsed}
    additions = []
    notes: List[str] = []
    for finding in findings:
        for pattern, placeholder, rule in _MISSING_TARGET_RULES:
            match = pattern.search(str(finding))
            if not match:
                continue
            target = int(match.group(1))
            if target in existing:
                continue
            existing.add(target)
            additions.append((target, placeholder))
            notes.append(policy_note(rule, f"Inserted missing target line {target}."))

    if not additions:
        return RepairResult(program=program or "")
    merged = sorted(parsed + additions, key=lambda pair: pair[0])
    return RepairResult(program=format_program(merged), notes=notes)


# =============================================================================
# STAGE 5: AUTO-DIMENSIONING
# =============================================================================

_FOR_BOUND_RE = re.compile(r"\bFOR\s+([A-Z][A-Z0-9]*)\s*=\s*.+?\bTO\b\s*([0-9]+)", re.IGNORECASE)
_INDEXED_USE_RE = re.compile(r"\b([A-Z][A-Z0-9]*)\s*\(\s*([A-Z][A-Z0-9]*|\d+)", re.IGNORECASE)


def auto_dimension_arrays(program: str) -> RepairResult:
    """
    Declare arrays that are used without DIM.

    Size per array (largest over all uses):
        literal index n         -> max(12, n + 2)
        index is a FOR counter  -> max(12, upper bound + 2)
        anything else           -> 40

    One DIM line is inserted at the first free number after the first line.
    """
    parsed = numbered_lines(program)
    if not parsed:
        return RepairResult(program=program or "")

    dimmed: Set[str] = set()
    loop_bounds: Dict[str, int] = {}
    uses = []
    for _, code in parsed:
        dimmed.update(declared_arrays(code))
        for_match = _FOR_BOUND_RE.search(strip_strings(code))
        if for_match:
            key = for_match.group(1).upper()
            loop_bounds[key] = max(loop_bounds.get(key, 0), int(for_match.group(2)))

        for stmt in split_raw_statements(code):
            stmt_no_strings = strip_strings(stmt)
            if _REM_RE.match(stmt_no_strings.strip()):
                continue
            names = set(array_uses(stmt_no_strings))
            sized = set()
            for match in _INDEXED_USE_RE.finditer(stmt_no_strings):
                name = match.group(1).upper()
                if name in names:
                    uses.append((name, match.group(2).upper()))
                    sized.add(name)
            # X((2)), X(-1): no simple index, default size
            uses.extend((name, "") for name in sorted(names - sized))

    inferred: Dict[str, int] = {}
    for name, index in uses:
        if name in dimmed:
            continue
        size = DEFAULT_ARRAY_SIZE
        if index.isdigit():
            size = max(MIN_ARRAY_SIZE, int(index) + 2)
        if index in loop_bounds:
            size = max(MIN_ARRAY_SIZE, loop_bounds[index] + 2)
        inferred[name] = max(inferred.get(name, 0), size)

    if not inferred:
        return RepairResult(program=program or "")

    used_numbers = {number for number, _ in parsed}
    insert_at = parsed[0][0] + 1
    while insert_at in used_numbers:
        insert_at += 1

    dim_body = "DIM " + ",".join(f"{name}({size})" for name, size in sorted(inferred.items()))
    merged = sorted(parsed + [(insert_at, dim_body)], key=lambda pair: pair[0])
    note = policy_note("autodim", f"Inserted {insert_at} {dim_body} for inferred array usage.")
    logger.debug(note)
    return RepairResult(program=format_program(merged), notes=[note])


# =============================================================================
# DRIVERS
# =============================================================================

_FINDING_OPS = (
    (re.compile(r"non-BASIC-V2 control syntax detected", re.IGNORECASE), "normalize_control"),
    (re.compile(r"STRING\$ is not available", re.IGNORECASE), "rewrite_string_fn"),
    (re.compile(r"use SPC\(n\)", re.IGNORECASE), "rewrite_space_fn"),
    (re.compile(r"use '=' \(not '=='\)", re.IGNORECASE), "normalize_ops"),
    (re.compile(r"IF without THEN", re.IGNORECASE), "insert_then"),
    (re.compile(r"invalid assignment target", re.IGNORECASE), "normalize_identifiers"),
    (re.compile(r"unknown or unsupported statement 'CLS'", re.IGNORECASE), "rewrite_cls"),
    (re.compile(r"unknown or unsupported statement 'RANDOMIZE'", re.IGNORECASE), "rewrite_randomize"),
    (re.compile(r"unknown or unsupported statement '[A-Z][A-Z0-9$]*'", re.IGNORECASE), "rewrite_bare_literals"),
    (re.compile(r"array .* used without DIM", re.IGNORECASE), "autodim"),
    (re.compile(r"GOTO target (\d+) not found", re.IGNORECASE), "ensure_goto_target"),
    (re.compile(r"GOSUB target (\d+) not found", re.IGNORECASE), "ensure_gosub_target"),
    (re.compile(r"IF THEN target (\d+) not found", re.IGNORECASE), "ensure_if_target"),
)

_POLICY_OPS = frozenset({
    "normalize_control", "normalize_ops", "insert_then", "rewrite_cls",
    "rewrite_randomize", "rewrite_bare_literals", "normalize_identifiers",
})
_BUILTIN_OPS = frozenset({"rewrite_string_fn", "rewrite_space_fn"})
_TARGET_OPS = frozenset({"ensure_goto_target", "ensure_gosub_target", "ensure_if_target"})


def infer_repair_ops(finding: str) -> List[str]:
    """Names of the repair operations a single finding calls for."""
    text = str(finding or "")
    return [op for pattern, op in _FINDING_OPS if pattern.search(text)]


def apply_lint_driven_repairs(program: str, findings: Sequence[str] = (),
                              context: RepairContext = None) -> RepairResult:
    """
    Run only the stages the findings ask for.

    Order: policy repairs, builtin rewrites, missing targets, auto-DIM.
    The returned RepairResult.ops lists the inferred operations.
    """
    ops: List[str] = []
    for finding in findings:
        for op in infer_repair_ops(finding):
            if op not in ops:
                ops.append(op)

    current = program or ""
    notes: List[str] = []
    if not current.strip():
        return RepairResult(program=current, notes=notes, ops=ops)

    op_set = set(ops)
    if op_set & _POLICY_OPS:
        result = apply_policy_repairs(current, context)
        current, notes = result.program, notes + result.notes
    if op_set & _BUILTIN_OPS:
        result = rewrite_unsupported_builtins(current)
        current, notes = result.program, notes + result.notes
    if op_set & _TARGET_OPS:
        result = ensure_missing_targets(current, findings)
        current, notes = result.program, notes + result.notes
    if "autodim" in op_set:
        result = auto_dimension_arrays(current)
        current, notes = result.program, notes + result.notes
    return RepairResult(program=current, notes=notes, ops=ops)


def normalize_generated_program(program: str, context: RepairContext = None) -> RepairResult:
    """
    Full normalization pass over a candidate program.

    typos -> unsupported builtins -> policy repairs -> missing targets -> auto-DIM

    Missing targets are resolved against a fresh lint of the policy output.
    """
    typos = normalize_common_typos(program)
    builtins = rewrite_unsupported_builtins(typos.program)
    policy = apply_policy_repairs(builtins.program, context)
    targets = ensure_missing_targets(policy.program, lint_program(policy.program))
    dimmed = auto_dimension_arrays(targets.program)
    return RepairResult(
        program=dimmed.program,
        notes=typos.notes + builtins.notes + policy.notes + targets.notes + dimmed.notes,
    )


REPAIR_STAGES = (
    ("normalize_common_typos", normalize_common_typos),
    ("rewrite_unsupported_builtins", rewrite_unsupported_builtins),
    ("apply_policy_repairs", apply_policy_repairs),
    ("ensure_missing_targets", ensure_missing_targets),
    ("auto_dimension_arrays", auto_dimension_arrays),
)
