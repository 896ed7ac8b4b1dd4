"""
Example programs and prompt helpers.

Builds small, known-good BASIC V2 programs for common requests
(hello world, border colours, counting loop, scroller, bouncing ball,
two-way unit converters) and classifies a free-text prompt into one of
the repair intents.

Every template here lints clean and runs to a halt (or to the step
ceiling, for the deliberately endless ones) in the simulator.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from basicv2.expressions import format_number

FALLBACK_PROGRAM = '10 PRINT "C64 BASIC V2 READY"\n20 END'


@dataclass
class GeneratedProgram:
    """A program picked for a prompt, with a one-line reason."""

    rationale: str
    code: str


@dataclass(frozen=True)
class ConverterSpec:
    """
    Linear unit conversion: to = from * mul + add.

    Properties:
        from_label / to_label: Unit names shown in prompts (upper case)
        from_abbr / to_abbr: Short unit names used in results
        mul: Forward multiplier
        add: Forward offset (0 for pure scaling)
    """

    from_label: str
    to_label: str
    from_abbr: str
    to_abbr: str
    mul: float
    add: float = 0


TEMPERATURE_C_F = ConverterSpec("CELSIUS", "FAHRENHEIT", "C", "F", 1.8, 32)
DISTANCE_KM_MI = ConverterSpec("KILOMETERS", "MILES", "KM", "MI", 0.62137)
MASS_KG_LB = ConverterSpec("KILOGRAMS", "POUNDS", "KG", "LB", 2.20462)
LENGTH_CM_IN = ConverterSpec("CENTIMETERS", "INCHES", "CM", "IN", 0.393701)

# (spec, unit words) - a prompt needs two unit-word hits to select a spec.
CONVERTER_UNITS = (
    (TEMPERATURE_C_F, ("celsius", "centigrade", "fahrenheit")),
    (DISTANCE_KM_MI, ("kilometer", "kilometers", "kilometre", "kilometres", "km", "mile", "miles", "mi")),
    (MASS_KG_LB, ("kilogram", "kilograms", "kg", "pound", "pounds", "lb", "lbs")),
    (LENGTH_CM_IN, ("centimeter", "centimeters", "cm", "inch", "inches", "in")),
)

_CONVERSION_WORDS_RE = re.compile(r"\b(?:convert|converter|conversion|to|from|into)\b|\bhow many\b")

INTENT_PATTERNS = (
    ("animation", re.compile(r"\b(?:bounce|ball|animate|animation|move|sprite|starfield|scroll)")),
    ("converter", re.compile(r"\b(?:convert|converter|celsius|fahrenheit|km|miles|pounds|kg|inch|cm)")),
    ("game", re.compile(r"\b(?:game|snake|pong|maze|shoot|play)")),
    ("text_ui", re.compile(r"\b(?:print|text|banner|title|menu|pyramid|pattern)")),
    ("math", re.compile(r"\b(?:math|random|calc|equation|formula)")),
)


# =============================================================================
# TEMPLATES
# =============================================================================

def hello_program() -> str:
    return '10 PRINT "*** C64 VIBE CODER ***"\n20 PRINT "HELLO FROM BASIC V2"\n30 END'


def rainbow_program() -> str:
    return '10 POKE 53280,2\n20 POKE 53281,6\n30 PRINT "BORDER COLOR: RED"\n40 END'


def loop_program() -> str:
    return "\n".join([
        "10 LET A=1",
        '20 PRINT "FRAME" : PRINT A',
        "30 A=A+1",
        "40 IF A<8 THEN 20",
        '50 PRINT "DONE"',
        "60 END",
    ])


def scroller_program() -> str:
    return '10 PRINT "WELCOME TO THE C64 LAB"\n20 PRINT "MAKE SOMETHING FUN"\n30 GOTO 10'


def bouncing_ball_program() -> str:
    """Ball bouncing up and down column 20 via screen-memory POKEs."""
    return "\n".join([
        "10 POKE 53280,0:POKE 53281,0",
        "20 Y=0:D=1",
        "30 POKE 1024+40*Y+20,81",
        "40 FOR T=1 TO 220:NEXT T",
        "50 POKE 1024+40*Y+20,32",
        "60 Y=Y+D",
        "70 IF Y=0 THEN D=1",
        "80 IF Y=23 THEN D=-1",
        "90 GOTO 30",
    ])


def build_two_way_converter(spec: ConverterSpec) -> str:
    """
    Build a menu-driven converter for both directions of `spec`.

    Option 1 converts from -> to, option 2 converts back; -999 exits
    from either the menu or a value prompt.

    Args:
        spec: ConverterSpec

    Returns:
        Program text
    """
    mul = format_number(float(spec.mul))
    add = format_number(float(spec.add))
    reverse_mul = format_number(1 / spec.mul)
    forward = f"R=V*{mul}" if spec.add == 0 else f"R=V*{mul}+{add}"
    reverse = f"R=V*{reverse_mul}" if spec.add == 0 else f"R=(V-{add})*{reverse_mul}"

    return "\n".join([
        f'10 PRINT "{spec.from_label} TO {spec.to_label} CONVERTER"',
        f'20 PRINT "1={spec.from_abbr}->{spec.to_abbr}, 2={spec.to_abbr}->{spec.from_abbr}, -999=EXIT"',
        "30 INPUT C",
        "40 IF C=-999 THEN END",
        "50 IF C=1 THEN GOTO 80",
        "60 IF C=2 THEN GOTO 110",
        '70 PRINT "INVALID OPTION": GOTO 20',
        f'80 PRINT "ENTER {spec.from_label}"',
        "90 INPUT V",
        "100 IF V=-999 THEN END",
        f'105 {forward}: PRINT V;" {spec.from_abbr} = ";R;" {spec.to_abbr}": GOTO 20',
        f'110 PRINT "ENTER {spec.to_label}"',
        "120 INPUT V",
        "130 IF V=-999 THEN END",
        f'140 {reverse}: PRINT V;" {spec.to_abbr} = ";R;" {spec.from_abbr}"',
        "150 GOTO 20",
    ])


# =============================================================================
# PROMPT HELPERS
# =============================================================================

def _padded_words(prompt: str) -> str:
    return f" {' '.join(re.split(r'[^a-z0-9]+', (prompt or '').lower()))} "


def detect_converter_spec(prompt: str) -> Optional[ConverterSpec]:
    """
    Pick a ConverterSpec for a prompt, or None.

    The prompt must read like a conversion request and mention at least
    two unit words of the same spec.
    """
    words = _padded_words(prompt)
    if not _CONVERSION_WORDS_RE.search(words):
        return None
    for spec, units in CONVERTER_UNITS:
        hits = sum(1 for unit in units if f" {unit} " in words)
        if hits >= 2:
            return spec
    return None


def detect_prompt_intent(prompt: str) -> str:
    """Classify a prompt as animation, converter, game, text_ui, math or general."""
    text = f" {(prompt or '').lower()} "
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return "general"


def _has_any(prompt: str, keywords: Sequence[str]) -> bool:
    return any(keyword in prompt for keyword in keywords)


def generate_program_from_prompt(prompt: str) -> GeneratedProgram:
    """
    Choose a template program for a free-text request.

    Checked in order: unit converter, bouncing ball, scroller, colours,
    counting loop; anything else gets the hello-world baseline.
    """
    spec = detect_converter_spec(prompt)
    if spec is not None:
        return GeneratedProgram(
            rationale=f"Built a two-way {spec.from_label}/{spec.to_label} converter with a -999 exit.",
            code=build_two_way_converter(spec),
        )

    text = (prompt or "").lower()
    if _has_any(text, ("bounce", "bouncing", "ball")):
        return GeneratedProgram(
            rationale="Built a true bouncing ball animation using screen-memory POKE and velocity flip.",
            code=bouncing_ball_program(),
        )
    if _has_any(text, ("scroll", "scroller", "loop forever", "infinite")):
        return GeneratedProgram(
            rationale="Built a simple scrolling loop with a deliberate GOTO for repeated output.",
            code=scroller_program(),
        )
    if _has_any(text, ("rainbow", "border", "color", "poke")):
        return GeneratedProgram(
            rationale="Used POKE to set classic C64 border/background colors.",
            code=rainbow_program(),
        )
    if _has_any(text, ("count", "counter", "loop", "frame")):
        return GeneratedProgram(
            rationale="Added a finite loop with IF/THEN and a simple counter.",
            code=loop_program(),
        )
    return GeneratedProgram(
        rationale="Started with a clean hello-world program as a safe baseline.",
        code=hello_program(),
    )


def fallback_program(current_code: str = "") -> GeneratedProgram:
    """Keep the caller's program when a candidate cannot be repaired."""
    preserved = (current_code or "").strip() or FALLBACK_PROGRAM
    return GeneratedProgram(
        rationale=(
            "Candidate was not valid C64 BASIC V2 after multiple repair attempts, "
            "so the previous valid program was preserved."
        ),
        code=preserved,
    )
