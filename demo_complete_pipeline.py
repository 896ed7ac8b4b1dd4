#!/usr/bin/env python3
"""
Complete Pipeline Demo: prompt → template → repair → run → PRG

Shows the full workflow:
1. Pick a template program for a request
2. Break it the way generated code usually breaks, then repair it
3. Run the repaired program in the simulator
4. Export it as a PRG file
"""

import sys

from basicv2.analyzer import lint_program
from basicv2.backends import decode_program, save_prg_file
from basicv2.examples import detect_prompt_intent, generate_program_from_prompt
from basicv2.interpreter import execute_program
from basicv2.pipeline import build_validator_report, repair_until_clean
from basicv2.repair import RepairContext


def main():
    prompt = " ".join(sys.argv[1:]) or "count to ten and show each frame"

    print("=" * 80)
    print("COMPLETE PIPELINE DEMO: prompt → template → repair → run → PRG")
    print("=" * 80)

    # =========================================================================
    # STEP 1: Template
    # =========================================================================
    print("\n1. CHOOSING TEMPLATE...")
    generated = generate_program_from_prompt(prompt)
    intent = detect_prompt_intent(prompt)
    print(f"   ✓ Prompt: {prompt}")
    print(f"   ✓ Intent: {intent}")
    print(f"   ✓ Rationale: {generated.rationale}")

    # =========================================================================
    # STEP 2: Repair
    # =========================================================================
    print("\n2. REPAIRING A DAMAGED COPY...")
    damaged = "5 CLS\n" + generated.code.replace("PRINT", "PRNIT", 1).replace("GOTO", "GTO")
    print(f"   ✓ Findings before repair: {len(lint_program(damaged))}")
    result = repair_until_clean(damaged, RepairContext(intent=intent, original_prompt=prompt))
    report = build_validator_report(result)
    print(f"   ✓ Status: {report['status']}")
    print(f"   ✓ Confidence: {report['confidence_score']}")
    print(f"   ✓ Policy hits: {', '.join(report['policy_hits']) or '-'}")
    for finding in result.final_findings[:5]:
        print(f"      - {finding}")

    # =========================================================================
    # STEP 3: Run
    # =========================================================================
    print("\n3. RUNNING...")
    run = execute_program(result.program)
    rows = [row.rstrip() for row in run.screen if row.strip()]
    for row in rows[:10]:
        print(f"   | {row}")
    if len(rows) > 10:
        print(f"   ... ({len(rows) - 10} more rows)")
    print(f"   ✓ Steps: {run.steps}")
    print(f"   ✓ Border/background: {run.border}/{run.background}")

    # =========================================================================
    # STEP 4: Export
    # =========================================================================
    print("\n4. EXPORTING...")
    filename = "program.prg"
    save_prg_file(result.program, filename)
    print(f"   ✓ Saved {filename}")
    with open(filename, "rb") as f:
        listed = decode_program(f.read())
    print(f"   ✓ Listing matches: {listed == result.program}")

    print("\n" + "=" * 80)
    print("PIPELINE COMPLETE!")
    print("\nTo load it in VICE:")
    print(f"  x64sc -autostart {filename}")
    print("=" * 80)


if __name__ == "__main__":
    main()
