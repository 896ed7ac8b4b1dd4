"""
Serialization helpers for toolkit results (RunResult, LintReport,
ConfidenceSummary, PipelineResult) and for programs.

Everything goes through an explicit dict representation first, then to
JSON or YAML. The dict layout is kept stable so reports can be diffed.
"""
from __future__ import annotations

import json
from typing import Any, Dict

import yaml

from basicv2.analyzer import LintReport
from basicv2.confidence import ConfidenceSummary
from basicv2.errors import SerializationError
from basicv2.interpreter import RunResult
from basicv2.model import Program, parse_program
from basicv2.pipeline import PipelineResult, build_validator_report


def run_result_to_dict(result: RunResult) -> Dict[str, Any]:
    return {
        "screen": list(result.screen),
        "logs": list(result.logs),
        "border": result.border,
        "background": result.background,
        "halted": result.halted,
        "steps": result.steps,
        "variables": dict(result.variables),
    }


def lint_report_to_dict(report: LintReport) -> Dict[str, Any]:
    return {
        "clean": report.clean,
        "line_count": report.line_count,
        "findings": list(report.findings),
    }


def confidence_to_dict(summary: ConfidenceSummary | None) -> Dict[str, Any] | None:
    if summary is None:
        return None
    return {
        "score": summary.score,
        "accepted": summary.accepted,
        "drift": summary.drift,
        "lint_gain": summary.lint_gain,
        "lint_penalty": summary.lint_penalty,
        "policy_count": summary.policy_count,
    }


def pipeline_result_to_dict(result: PipelineResult) -> Dict[str, Any]:
    """Program, notes and the validator report for one pipeline run."""
    return {
        "program": result.program,
        "attempts": result.attempts,
        "notes": list(result.notes),
        "confidence": confidence_to_dict(result.confidence),
        "report": build_validator_report(result),
    }


def program_to_dict(program: Program) -> Dict[str, Any]:
    return {"lines": [{"number": line.number, "body": line.body} for line in program.lines]}


def program_from_dict(d: Any) -> Program:
    """
    Rebuild a Program from {"lines": [{"number": int, "body": str}, ...]}.

    The lines go back through parse_program so ordering and the
    number index follow the usual rules.

    Raises:
        SerializationError: If the document does not have that shape
    """
    if not isinstance(d, dict) or not isinstance(d.get("lines"), list):
        raise SerializationError("program document needs a 'lines' list")
    rendered = []
    for entry in d["lines"]:
        try:
            number = int(entry["number"])
            body = str(entry.get("body", ""))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"invalid line entry: {entry!r}") from e
        if number < 0:
            raise SerializationError(f"line number must be non-negative: {number}")
        rendered.append(f"{number} {body}")
    return parse_program("\n".join(rendered))


def to_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, sort_keys=True)


def to_yaml(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False)


def pipeline_result_to_json(result: PipelineResult) -> str:
    return to_json(pipeline_result_to_dict(result))


def pipeline_result_to_yaml(result: PipelineResult) -> str:
    return to_yaml(pipeline_result_to_dict(result))


def program_from_json(s: str) -> Program:
    try:
        data = json.loads(s)
    except json.JSONDecodeError as e:
        raise SerializationError(f"invalid JSON: {e}") from e
    return program_from_dict(data)


def program_from_yaml(s: str) -> Program:
    try:
        data = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise SerializationError(f"invalid YAML: {e}") from e
    return program_from_dict(data)
