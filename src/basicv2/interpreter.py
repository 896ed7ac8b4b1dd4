"""
Simulated Interpreter

Executes a program against a small virtual machine:
    - 40x25 text screen with a cursor row
    - border / background colour registers
    - flat numeric variable store

Execution is bounded by a fixed step budget (one step = one line),
so every program terminates.

ARCHITECTURAL RULE:
    The interpreter never raises on program content.
    Problems become log lines; unresolved jumps halt with a message.
    GOSUB/RETURN are not executed (they are logged as unsupported).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from basicv2.expressions import evaluate, evaluate_condition, format_number
from basicv2.model import Program, parse_program, split_statements

logger = logging.getLogger(__name__)

SCREEN_WIDTH = 40
SCREEN_HEIGHT = 25
MAX_STEPS = 2200
DEFAULT_BORDER = 6
DEFAULT_BACKGROUND = 14
BORDER_ADDRESS = 53280
BACKGROUND_ADDRESS = 53281

_POKE_RE = re.compile(r"^POKE\s+(\d+)\s*,\s*(.+)$")
_INPUT_RE = re.compile(r'^INPUT\s+(?:"[^"]*"\s*;)?\s*([A-Z])$', re.IGNORECASE)
_LET_RE = re.compile(r"^LET\s+([A-Z])\s*=\s*(.+)$", re.IGNORECASE)
_ASSIGN_PROBE_RE = re.compile(r"^[A-Z]\s*=")
_ASSIGN_RE = re.compile(r"^([A-Z])\s*=\s*(.+)$", re.IGNORECASE)
_IF_RE = re.compile(r"^IF\s+(.+)\s+THEN\s+(.+)$", re.IGNORECASE)
_DIGITS_RE = re.compile(r"[0-9]+")


# =============================================================================
# STEP OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class Continue:
    """Statement finished; fall through to the next one."""
    pass


@dataclass(frozen=True)
class Jump:
    """Statement transferred control to the line at `position`."""
    position: int


@dataclass(frozen=True)
class Halt:
    """Statement stopped the program."""
    pass


StepOutcome = Union[Continue, Jump, Halt]

CONTINUE = Continue()
HALT = Halt()


# =============================================================================
# MACHINE PARTS
# =============================================================================

@dataclass
class InputRequest:
    """
    What an INPUT statement asks the input provider for.

    Properties:
        variable_name: Target variable (single letter)
        line_number: Line the INPUT sits on
        variables: Snapshot of the variable store (a copy)
    """

    variable_name: str
    line_number: int
    variables: Dict[str, float]


InputProvider = Callable[[InputRequest], str]


class Screen:
    """Fixed-size text screen; every row is exactly SCREEN_WIDTH characters."""

    def __init__(self, width: int = SCREEN_WIDTH, height: int = SCREEN_HEIGHT):
        self.width = width
        self.height = height
        self.rows = [" " * width for _ in range(height)]

    def write_line(self, row: int, text: str) -> None:
        if row < 0 or row >= self.height:
            return
        self.rows[row] = (text + " " * self.width)[: self.width]

    def clear(self) -> None:
        for row in range(self.height):
            self.write_line(row, "")

    def scroll(self) -> None:
        self.rows.pop(0)
        self.rows.append(" " * self.width)


@dataclass
class RunResult:
    """
    Final machine state after a run.

    Properties:
        screen: Screen rows (top to bottom)
        logs: Diagnostics in the order they happened
        border / background: Colour codes
        halted: True when execution is no longer running
        steps: Number of line-steps executed
        variables: Final variable store
    """

    screen: List[str]
    logs: List[str]
    border: int = DEFAULT_BORDER
    background: int = DEFAULT_BACKGROUND
    halted: bool = True
    steps: int = 0
    variables: Dict[str, float] = field(default_factory=dict)


def _split_print_parts(content: str) -> List[tuple]:
    parts = []
    current = ""
    in_quote = False
    for ch in content:
        if ch == '"':
            in_quote = not in_quote
        if not in_quote and ch in ";,":
            parts.append((current.strip(), ch))
            current = ""
            continue
        current += ch
    if current.strip() or parts:
        parts.append((current.strip(), ""))
    return parts


def _parse_input_value(reply) -> float:
    text = str(reply if reply is not None else "").strip()
    if not text:
        return 0
    try:
        value = float(text)
    except ValueError:
        return 0
    return value if value == value and abs(value) != float("inf") else 0


# =============================================================================
# INTERPRETER
# =============================================================================

class Interpreter:
    """
    Runs one program once.

    A fresh Interpreter is built per run; nothing is shared between runs.
    """

    def __init__(self, program: Program, input_provider: Optional[InputProvider] = None,
                 max_steps: int = MAX_STEPS):
        self.program = program
        self.input_provider = input_provider
        self.max_steps = max_steps

        self.screen = Screen()
        self.variables: Dict[str, float] = {}
        self.logs: List[str] = []
        self.border = DEFAULT_BORDER
        self.background = DEFAULT_BACKGROUND
        self.cursor_row = 0
        self.pc = 0
        self.steps = 0
        self.running = True

    def log(self, message: str) -> None:
        self.logs.append(message)

    def run(self) -> RunResult:
        lines = self.program.lines
        if not lines:
            return RunResult(
                screen=list(self.screen.rows),
                logs=["No runnable numbered BASIC lines were found."],
                border=self.border,
                background=self.background,
                halted=True,
            )

        while self.running and 0 <= self.pc < len(lines) and self.steps < self.max_steps:
            line = lines[self.pc]
            self.steps += 1

            jumped = False
            for statement in split_statements(line.body):
                outcome = self.execute_statement(statement, line.number)
                if isinstance(outcome, Jump):
                    self.pc = outcome.position
                    jumped = True
                    break
                if isinstance(outcome, Halt):
                    self.running = False
                    break

            if not self.running:
                break
            if not jumped:
                self.pc += 1

        if self.steps >= self.max_steps:
            logger.debug("Step budget of %d exhausted", self.max_steps)
            self.log("Execution halted after too many steps. Possible infinite loop.")

        return RunResult(
            screen=list(self.screen.rows),
            logs=list(self.logs),
            border=self.border,
            background=self.background,
            halted=not self.running or self.steps >= self.max_steps or self.pc >= len(lines),
            steps=self.steps,
            variables=dict(self.variables),
        )

    def _jump_to(self, target: int, number: int, label: str) -> StepOutcome:
        position = self.program.position_of(target)
        if position is not None:
            return Jump(position)
        logger.debug("Line %d: unresolved jump to %d", number, target)
        self.log(f"Line {number}: missing {label} {target}.")
        return HALT

    def execute_statement(self, stmt: str, number: int) -> StepOutcome:
        """
        Execute one statement.

        Returns:
            CONTINUE, Jump(position) or HALT
        """
        upper = stmt.upper()

        if upper.startswith("REM"):
            return CONTINUE

        if upper in ("END", "STOP"):
            self.log(f"Line {number}: program halted.")
            return HALT

        if upper in ("CLS", "PRINT CHR$(147)"):
            self.screen.clear()
            self.cursor_row = 0
            return CONTINUE

        if upper.startswith("POKE"):
            return self._poke(upper, number)

        if upper.startswith("INPUT"):
            return self._input(stmt, number)

        if upper.startswith("LET "):
            match = _LET_RE.match(stmt)
            if match:
                self.variables[match.group(1).upper()] = evaluate(match.group(2), self.variables)
            return CONTINUE

        if _ASSIGN_PROBE_RE.match(upper):
            match = _ASSIGN_RE.match(stmt)
            if match:
                self.variables[match.group(1).upper()] = evaluate(match.group(2), self.variables)
            return CONTINUE

        if upper.startswith("PRINT"):
            self._print(stmt[5:].strip())
            return CONTINUE

        if upper.startswith("GOTO"):
            target_text = upper.replace("GOTO", "", 1).strip()
            if not _DIGITS_RE.fullmatch(target_text):
                self.log(f"Line {number}: missing target line {target_text}.")
                return HALT
            return self._jump_to(int(target_text), number, "target line")

        if upper.startswith("IF "):
            return self._if(stmt, number)

        self.log(f"Line {number}: unsupported statement '{stmt}'.")
        return CONTINUE

    def _poke(self, upper: str, number: int) -> StepOutcome:
        match = _POKE_RE.match(upper)
        if not match:
            self.log(f"Line {number}: invalid POKE syntax.")
            return CONTINUE
        address = int(match.group(1))
        value = int(evaluate(match.group(2), self.variables))
        if address == BORDER_ADDRESS:
            self.border = value
        if address == BACKGROUND_ADDRESS:
            self.background = value
        self.log(f"Line {number}: poke {address},{value}")
        return CONTINUE

    def _input(self, stmt: str, number: int) -> StepOutcome:
        match = _INPUT_RE.match(stmt)
        if not match:
            self.log(f"Line {number}: unsupported INPUT syntax.")
            return CONTINUE
        name = match.group(1).upper()
        if self.input_provider is None:
            reply = "0"
        else:
            reply = self.input_provider(InputRequest(name, number, dict(self.variables)))
        self.variables[name] = _parse_input_value(reply)
        return CONTINUE

    def _print(self, content: str) -> None:
        out = ""
        for text, separator in _split_print_parts(content):
            if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
                out += text[1:-1]
            elif text:
                out += format_number(evaluate(text, self.variables))
            if separator == ",":
                out += " "

        self.screen.write_line(self.cursor_row, out)
        self.cursor_row += 1
        if self.cursor_row >= self.screen.height:
            self.screen.scroll()
            self.cursor_row = self.screen.height - 1

    def _if(self, stmt: str, number: int) -> StepOutcome:
        match = _IF_RE.match(stmt)
        if not match:
            self.log(f"Line {number}: invalid IF syntax.")
            return CONTINUE
        if not evaluate_condition(match.group(1), self.variables):
            return CONTINUE

        then_part = match.group(2).strip()
        if _DIGITS_RE.fullmatch(then_part):
            return self._jump_to(int(then_part), number, "IF target line")

        for nested in split_statements(then_part, preserve_if_then_colon=False):
            outcome = self.execute_statement(nested, number)
            if not isinstance(outcome, Continue):
                return outcome
        return CONTINUE


def execute_program(source: str, input_provider: Optional[InputProvider] = None,
                    max_steps: int = MAX_STEPS) -> RunResult:
    """
    Parse and run a program.

    Args:
        source: Program text
        input_provider: Answers INPUT statements; "0" when omitted
        max_steps: Line-step ceiling

    Returns:
        RunResult with screen, logs, colours and halt flag
    """
    return Interpreter(parse_program(source), input_provider=input_provider, max_steps=max_steps).run()
