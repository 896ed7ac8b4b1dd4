"""
Tests for the deterministic repair engine.

Tests verify that each stage:
    - Rewrites the construct it owns into valid BASIC V2
    - Leaves quoted text and REM lines alone
    - Tags what it did with a [policy:<rule>] note
    - Is idempotent (a second run changes nothing)
"""

import pytest

from basicv2.analyzer import lint_program
from basicv2.repair import (
    REPAIR_STAGES,
    RepairContext,
    apply_lint_driven_repairs,
    apply_policy_repairs,
    auto_dimension_arrays,
    choose_loop_var,
    ensure_missing_targets,
    extract_policy_hits,
    infer_repair_ops,
    normalize_common_typos,
    normalize_generated_program,
    rewrite_unsupported_builtins,
)

MESSY = "\n".join([
    "10 CLS",
    "20 RANDOMIZE TIMER",
    '30 IF A==1 THEN PRINT "Y" ELSE PRINT "N"',
    "40 S+=1",
    '50 PRINT STRING$(5,"*")',
    "60 MY_VAR=RANDOM(1,6)",
    "70 GTO 99",
    "80 X(5)=1",
])

GAME = RepairContext(intent="game")
ANIMATION = RepairContext(intent="animation")


def policy(program, context=None):
    return apply_policy_repairs(program, context).program


class TestTypos:
    def test_keyword_misspellings(self):
        result = normalize_common_typos('10 GTO 20\n20 PRNIT "HI"\n30 GOSB 50\n40 INPT A\n50 RETUN')

        assert result.program == '10 GOTO 20\n20 PRINT "HI"\n30 GOSUB 50\n40 INPUT A\n50 RETURN'
        assert len(result.notes) == 5
        assert all(note.startswith("[policy:normalize_typos]") for note in result.notes)

    def test_smart_quotes_and_dashes(self):
        result = normalize_common_typos("10 PRINT “HI”\n20 A=5–2")
        assert result.program == '10 PRINT "HI"\n20 A=5-2'

    def test_correct_keywords_untouched(self):
        result = normalize_common_typos("10 RETURN\n20 GOTO 10")

        assert result.program == "10 RETURN\n20 GOTO 10"
        assert result.notes == []


class TestUnsupportedBuiltins:
    def test_space_function(self):
        result = rewrite_unsupported_builtins('10 PRINT SPACE$(5);"X"')

        assert result.program == '10 PRINT SPC(5);"X"'
        assert extract_policy_hits(result.notes) == ["rewrite_space_fn"]

    def test_spaces_function(self):
        assert rewrite_unsupported_builtins("10 PRINT SPACES$(N)").program == "10 PRINT SPC(N)"

    def test_string_function_with_prefix(self):
        result = rewrite_unsupported_builtins('10 PRINT "A";STRING$(5,"*")')

        assert result.program == '10 PRINT "A";:FOR ZZ=1 TO 5:PRINT "*";:NEXT ZZ:PRINT'
        assert extract_policy_hits(result.notes) == ["rewrite_string_fn"]

    def test_string_function_trailing_semicolon(self):
        result = rewrite_unsupported_builtins('10 PRINT STRING$(3,"-");')
        assert result.program == '10 FOR ZZ=1 TO 3:PRINT "-";:NEXT ZZ'

    def test_loop_variable_avoids_existing_names(self):
        result = rewrite_unsupported_builtins('10 ZZ=1\n20 PRINT STRING$(3,"-")')
        assert result.program.splitlines()[1] == '20 FOR QZ=1 TO 3:PRINT "-";:NEXT QZ:PRINT'

    def test_rewritten_program_lints_clean(self):
        result = rewrite_unsupported_builtins('10 PRINT "A";STRING$(5,"*")\n20 PRINT SPACE$(2)')
        assert lint_program(result.program) == []

    def test_quoted_text_untouched(self):
        source = '10 PRINT "SPACE$(5)"'
        assert rewrite_unsupported_builtins(source).program == source


def test_choose_loop_var():
    assert choose_loop_var("10 PRINT 1") == "ZZ"
    assert choose_loop_var("10 ZZ=1:QZ=2") == "J9"


class TestPolicyRepairs:
    def test_cls(self):
        result = apply_policy_repairs("10 CLS")

        assert result.program == "10 PRINT CHR$(147)"
        assert result.notes == ["[policy:rewrite_cls] Line 10: rewrote CLS to PRINT CHR$(147)."]

    def test_randomize(self):
        assert policy("10 RANDOMIZE TIMER") == "10 FOR ZZ=1 TO 64:QZ=RND(1):NEXT ZZ"
        assert policy("10 RANDOMIZE(42)") == "10 FOR ZZ=1 TO 64:QZ=RND(1):NEXT ZZ"

    def test_random_range(self):
        assert policy("10 X=RANDOM(1,6)") == "10 X=INT(RND(1)*((6)-(1)+1))+(1)"

    def test_foreign_operators(self):
        result = policy('10 IF A==1 && B!=2 THEN PRINT "OK"')
        assert result == '10 IF A=1 AND B<>2 THEN PRINT "OK"'

    def test_or_and_not(self):
        assert policy("10 IF A=1 || !(B=2) THEN 10") == "10 IF A=1 OR NOT(B=2) THEN 10"

    def test_walrus_and_arrow_assignment(self):
        assert policy("10 A:=5") == "10 A=5"
        assert policy("10 X<-3") == "10 X=3"

    def test_less_than_negative_is_not_assignment(self):
        assert policy("10 IF A<-5 THEN 10") == "10 IF A<-5 THEN 10"

    def test_inline_else(self):
        result = apply_policy_repairs('10 IF A=1 THEN PRINT "Y" ELSE PRINT "N"')

        assert result.program == '10 IF A=1 THEN PRINT "Y":IF NOT(A=1) THEN PRINT "N"'
        assert extract_policy_hits(result.notes) == ["rewrite_if_else"]
        assert lint_program(result.program) == []

    def test_split_else(self):
        result = apply_policy_repairs('10 IF A=1 THEN PRINT "Y":ELSE PRINT "N"')

        assert result.program == '10 IF A=1 THEN PRINT "Y":IF NOT(A=1) THEN PRINT "N"'
        assert extract_policy_hits(result.notes) == ["rewrite_if_else_split"]

    def test_else_inside_quotes_is_text(self):
        source = '20 IF A=1 THEN PRINT "YES ELSE NO"'
        result = apply_policy_repairs(source)

        assert result.program == source
        assert result.notes == []

    def test_quoted_else_next_to_real_else(self):
        result = policy('10 IF A=1 THEN PRINT "X ELSE Y" ELSE PRINT "Z"')
        assert result == '10 IF A=1 THEN PRINT "X ELSE Y":IF NOT(A=1) THEN PRINT "Z"'

    def test_chained_else(self):
        result = policy("10 IF A=1 THEN B=1 ELSE C=1 ELSE D=1")
        assert result == "10 IF A=1 THEN B=1:IF NOT(A=1) THEN C=1:IF NOT(A=1) THEN D=1"

    def test_else_if_chain(self):
        result = policy("10 IF A=1 THEN B=1 ELSE IF A=2 THEN B=2 ELSE B=3")
        assert result == "10 IF A=1 THEN B=1:IF NOT(A=1) THEN IF A=2 THEN B=2:IF NOT(A=2) THEN B=3"

    def test_missing_then(self):
        assert policy('10 IF A=1 PRINT "X"') == '10 IF A=1 THEN PRINT "X"'

    def test_end_if(self):
        assert policy("10 END IF") == "10 END"
        assert policy("10 ENDIF") == "10 END"

    def test_compound_assignment(self):
        assert policy("10 S+=5") == "10 S=S+(5)"
        assert policy("10 S-=1") == "10 S=S-(1)"

    def test_underscores(self):
        result = apply_policy_repairs("10 MY_VAR=1\n20 PRINT MY_VAR")

        assert result.program == "10 MYVAR=1\n20 PRINT MYVAR"
        assert extract_policy_hits(result.notes) == ["normalize_identifiers"]

    def test_dim_not_removed(self):
        assert policy("10 DIM A(10),NOT(5)") == "10 DIM A(10)"

    def test_rem_and_quotes_untouched(self):
        source = '10 REM CLS && RANDOMIZE\n20 PRINT "CLS == X"'
        result = apply_policy_repairs(source)

        assert result.program == source
        assert result.notes == []


class TestIntentGating:
    def test_bare_literals_become_data(self):
        assert policy("10 RED, GREEN, BLUE") == '10 DATA "RED","GREEN","BLUE"'

    def test_bare_literals_kept_for_animation(self):
        assert policy("10 RED, GREEN", ANIMATION) == "10 RED, GREEN"

    def test_banned_words_are_not_hidden_in_data(self):
        assert policy("10 WEND") == "10 WEND"

    def test_game_letter_input(self):
        assert policy("10 INPUT L", GAME) == "10 INPUT A$:L=ASC(A$)"
        assert policy("10 INPUT L") == "10 INPUT L"

    def test_game_variable_names(self):
        result = apply_policy_repairs("10 REMAINING_GUESSES=5", GAME)

        assert result.program == "10 RG=5"
        assert extract_policy_hits(result.notes) == ["normalize_game_vars"]
        assert policy("10 REMAINING_GUESSES=5") == "10 REMAININGGUESSES=5"


class TestMissingTargets:
    def test_goto_and_gosub(self):
        source = "10 GOTO 50\n20 GOSUB 70"
        result = ensure_missing_targets(source, lint_program(source))

        assert result.program == "10 GOTO 50\n20 GOSUB 70\n50 END\n70 RETURN"
        assert extract_policy_hits(result.notes) == ["ensure_goto_target", "ensure_gosub_target"]
        assert lint_program(result.program) == []

    def test_if_then_target(self):
        source = "10 IF A=1 THEN 40\n20 END"
        result = ensure_missing_targets(source, lint_program(source))

        assert result.program == "10 IF A=1 THEN 40\n20 END\n40 REM AUTO-INSERTED TARGET"
        assert result.notes == ["[policy:ensure_if_target] Inserted missing target line 40."]

    def test_existing_line_is_never_overwritten(self):
        source = "10 END"
        result = ensure_missing_targets(source, ["Line 5: GOTO target 10 not found."])

        assert result.program == source
        assert result.notes == []

    def test_no_findings_no_change(self):
        assert ensure_missing_targets("10 GOTO 50").program == "10 GOTO 50"


class TestAutoDim:
    def test_literal_index(self):
        result = auto_dimension_arrays("10 X(5)=1\n20 PRINT X(5)")

        assert result.program == "10 X(5)=1\n11 DIM X(12)\n20 PRINT X(5)"
        assert result.notes == ["[policy:autodim] Inserted 11 DIM X(12) for inferred array usage."]

    def test_loop_bound_index(self):
        result = auto_dimension_arrays("10 FOR I=1 TO 20\n20 A(I)=I\n30 NEXT I")
        assert result.program == "10 FOR I=1 TO 20\n11 DIM A(22)\n20 A(I)=I\n30 NEXT I"

    def test_sizes_and_sorted_names(self):
        result = auto_dimension_arrays("10 B(3)=1\n20 A(50)=2\n30 C(N)=1")
        assert "11 DIM A(52),B(12),C(40)" in result.program.splitlines()

    def test_insert_skips_used_numbers(self):
        result = auto_dimension_arrays("10 X(1)=1\n11 END")
        assert "12 DIM X(12)" in result.program.splitlines()

    def test_declared_arrays_are_left_alone(self):
        source = "10 DIM A(5)\n20 A(1)=1"
        result = auto_dimension_arrays(source)

        assert result.program == source
        assert result.notes == []

    def test_result_lints_clean(self):
        result = auto_dimension_arrays("10 PRINT X(5)")
        assert lint_program(result.program) == []

    @pytest.mark.parametrize("use", ["X((2))", "X(-1)", "X( (I))"])
    def test_unusual_index_gets_default_size(self, use):
        result = auto_dimension_arrays(f"10 PRINT {use}\n20 END")

        assert "11 DIM X(40)" in result.program.splitlines()
        assert lint_program(result.program) == []

    def test_simple_index_wins_over_default(self):
        result = auto_dimension_arrays("10 X(3)=X((2))")
        assert "11 DIM X(12)" in result.program.splitlines()


class TestLintDriven:
    def test_infer_repair_ops(self):
        assert "rewrite_cls" in infer_repair_ops("Line 10: unknown or unsupported statement 'CLS'.")
        assert infer_repair_ops("Line 10: array X() used without DIM.") == ["autodim"]
        assert infer_repair_ops("Line 10: GOTO target 50 not found.") == ["ensure_goto_target"]
        assert infer_repair_ops("Line 10: use SPC(n) in PRINT, not SPACE$/SPACES$.") == ["rewrite_space_fn"]
        assert infer_repair_ops("Line 10: FOR without TO.") == []

    def test_runs_only_inferred_stages(self):
        source = "10 CLS\n20 GOTO 99"
        result = apply_lint_driven_repairs(source, lint_program(source))

        assert result.program == "10 PRINT CHR$(147)\n20 GOTO 99\n99 END"
        assert "ensure_goto_target" in result.ops
        assert lint_program(result.program) == []

    def test_no_findings_no_change(self):
        result = apply_lint_driven_repairs("10 GTO 10", [])

        assert result.program == "10 GTO 10"
        assert result.ops == []


class TestNormalizeGeneratedProgram:
    def test_messy_program_comes_out_clean(self):
        result = normalize_generated_program(MESSY)
        lines = result.program.splitlines()

        assert lint_program(result.program) == []
        assert "10 PRINT CHR$(147)" in lines
        assert "11 DIM X(12)" in lines
        assert "99 END" in lines
        assert "70 GOTO 99" in lines

    def test_already_clean_program_is_unchanged(self):
        source = '10 PRINT "HI"\n20 GOTO 10'
        result = normalize_generated_program(source)

        assert result.program == source
        assert result.notes == []

    def test_quoted_else_survives_normalization(self):
        source = '10 A=1\n20 IF A=1 THEN PRINT "YES ELSE NO"\n30 END'
        result = normalize_generated_program(source)

        assert result.program == source
        assert result.notes == []


IDEMPOTENCE_INPUTS = [
    MESSY,
    '20 IF A=1 THEN PRINT "YES ELSE NO"',
    "10 IF A=1 THEN B=1 ELSE C=1 ELSE D=1",
    "10 IF A=1 THEN B=1 ELSE IF A=2 THEN B=2 ELSE B=3\n20 GOTO 50",
]


def run_stage(stage, program):
    if stage is ensure_missing_targets:
        return stage(program, lint_program(program))
    return stage(program)


@pytest.mark.parametrize("source", IDEMPOTENCE_INPUTS)
@pytest.mark.parametrize("name,stage", REPAIR_STAGES)
def test_every_stage_is_idempotent(name, stage, source):
    once = run_stage(stage, source).program
    twice = run_stage(stage, once)

    assert twice.program == once
    assert twice.notes == []


def test_target_stage_does_work_on_messy_input():
    assert run_stage(ensure_missing_targets, MESSY).program != MESSY


def test_normalization_is_idempotent():
    once = normalize_generated_program(MESSY, GAME).program
    assert normalize_generated_program(once, GAME).program == once


def test_extract_policy_hits():
    notes = [
        "[policy:rewrite_cls] a",
        "[policy:rewrite_cls] b",
        "plain note",
        "[policy:autodim] c",
    ]
    assert extract_policy_hits(notes) == ["rewrite_cls", "autodim"]
