"""
Tests for template programs and prompt helpers.
"""

import pytest

from basicv2.analyzer import lint_program
from basicv2.examples import (
    DISTANCE_KM_MI,
    FALLBACK_PROGRAM,
    LENGTH_CM_IN,
    MASS_KG_LB,
    TEMPERATURE_C_F,
    bouncing_ball_program,
    build_two_way_converter,
    detect_converter_spec,
    detect_prompt_intent,
    fallback_program,
    generate_program_from_prompt,
    hello_program,
    loop_program,
    rainbow_program,
    scroller_program,
)
from basicv2.interpreter import execute_program


@pytest.mark.parametrize("spec", [TEMPERATURE_C_F, DISTANCE_KM_MI, MASS_KG_LB, LENGTH_CM_IN])
def test_converters_lint_clean(spec):
    assert lint_program(build_two_way_converter(spec)) == []


def test_converter_formulas():
    temperature = build_two_way_converter(TEMPERATURE_C_F)
    assert "105 R=V*1.8+32:" in temperature
    assert "140 R=(V-32)*0.5555555555555556:" in temperature

    distance = build_two_way_converter(DISTANCE_KM_MI)
    assert "105 R=V*0.62137:" in distance


@pytest.mark.parametrize("prompt,expected", [
    ("convert celsius to fahrenheit", TEMPERATURE_C_F),
    ("Make a km to miles converter", DISTANCE_KM_MI),
    ("how many pounds in a kilogram", MASS_KG_LB),
    ("convert cm to inches", LENGTH_CM_IN),
])
def test_detect_converter_spec(prompt, expected):
    assert detect_converter_spec(prompt) == expected


def test_converter_needs_two_unit_words():
    assert detect_converter_spec("convert celsius") is None
    assert detect_converter_spec("draw a bouncing ball") is None


@pytest.mark.parametrize("prompt,intent", [
    ("make a bouncing ball", "animation"),
    ("celsius converter", "converter"),
    ("a snake game", "game"),
    ("show a menu banner", "text_ui"),
    ("solve an equation", "math"),
    ("something else entirely", "general"),
    ("", "general"),
])
def test_detect_prompt_intent(prompt, intent):
    assert detect_prompt_intent(prompt) == intent


@pytest.mark.parametrize("prompt,builder", [
    ("a bouncing ball please", bouncing_ball_program),
    ("scroll some text", scroller_program),
    ("change the border color", rainbow_program),
    ("count to seven", loop_program),
    ("hi", hello_program),
])
def test_generate_program_from_prompt(prompt, builder):
    generated = generate_program_from_prompt(prompt)

    assert generated.code == builder()
    assert generated.rationale


def test_generate_converter_from_prompt():
    generated = generate_program_from_prompt("convert celsius to fahrenheit")
    assert generated.code == build_two_way_converter(TEMPERATURE_C_F)


def test_loop_template_runs_to_done():
    result = execute_program(loop_program())

    assert result.screen[0].strip() == "FRAME"
    assert "DONE" in [row.strip() for row in result.screen]
    assert "Line 60: program halted." in result.logs


def test_rainbow_template_sets_colours():
    result = execute_program(rainbow_program())
    assert (result.border, result.background) == (2, 6)


def test_fallback_program():
    assert fallback_program("").code == FALLBACK_PROGRAM
    assert fallback_program("  10 END \n").code == "10 END"
    assert lint_program(FALLBACK_PROGRAM) == []
