"""
Normalization pipeline.

Glues the analyzer, the repair engine and confidence scoring together:

    program
      -> lint (initial findings)
      -> normalize_generated_program (full pass)
      -> lint -> apply_lint_driven_repairs -> lint ... (bounded retries)
      -> estimate_confidence
      -> PipelineResult

Also hosts the patch-operation interface used by callers that edit a
program incrementally (replace_file / replace_line_range / append_lines).

ARCHITECTURAL RULE:
    Each attempt is a fresh call into the repair engine.
    Nothing is carried between attempts except program text and findings.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from basicv2.analyzer import lint_program
from basicv2.confidence import DEFAULT_THRESHOLD, ConfidenceSummary, estimate_confidence
from basicv2.repair import (
    RepairContext,
    apply_lint_driven_repairs,
    extract_policy_hits,
    normalize_generated_program,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
STRATEGY = "deterministic_repair"

STATUS_ACCEPTED = "accepted"
STATUS_LOW_CONFIDENCE = "low_confidence"
STATUS_UNRESOLVED = "unresolved"


@dataclass
class PipelineResult:
    """
    Outcome of repair_until_clean.

    Properties:
        original: Program text as given
        program: Normalized program text
        initial_findings / final_findings: Lint before and after
        notes: Every repair note, in the order produced
        ops: Lint-driven repair operations that were inferred
        attempts: Number of lint-driven repair rounds
        confidence: ConfidenceSummary for (original, program)
        status: accepted | low_confidence | unresolved
    """

    original: str
    program: str
    initial_findings: List[str] = field(default_factory=list)
    final_findings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    ops: List[str] = field(default_factory=list)
    attempts: int = 0
    confidence: Optional[ConfidenceSummary] = None
    status: str = STATUS_UNRESOLVED

    @property
    def changed(self) -> bool:
        return self.original.strip() != self.program.strip()

    @property
    def policy_hits(self) -> List[str]:
        return extract_policy_hits(self.notes)


def repair_until_clean(program: str, context: Optional[RepairContext] = None,
                       max_attempts: int = DEFAULT_MAX_ATTEMPTS,
                       threshold: float = DEFAULT_THRESHOLD) -> PipelineResult:
    """
    Normalize a program and keep repairing until lint is clean.

    Stops early when lint is clean or when a round changes nothing.

    Args:
        program: Candidate program text
        context: RepairContext (general intent when omitted)
        max_attempts: Upper bound on lint-driven repair rounds
        threshold: Confidence acceptance threshold

    Returns:
        PipelineResult
    """
    context = context or RepairContext()
    original = program or ""
    initial_findings = lint_program(original)

    normalized = normalize_generated_program(original, context)
    current = normalized.program
    notes = list(normalized.notes)
    ops: List[str] = []

    attempts = 0
    findings = lint_program(current)
    while findings and attempts < max_attempts:
        attempts += 1
        logger.debug("Repair attempt %d with %d findings", attempts, len(findings))
        result = apply_lint_driven_repairs(current, findings, context)
        for op in result.ops:
            if op not in ops:
                ops.append(op)
        notes.extend(result.notes)
        if result.program == current:
            break
        current = result.program
        findings = lint_program(current)

    confidence = estimate_confidence(original, current, initial_findings, findings, notes, threshold)
    if findings:
        status = STATUS_UNRESOLVED
    elif confidence.accepted:
        status = STATUS_ACCEPTED
    else:
        status = STATUS_LOW_CONFIDENCE

    logger.info("Pipeline finished: status=%s score=%.2f attempts=%d", status, confidence.score, attempts)
    return PipelineResult(
        original=original,
        program=current,
        initial_findings=initial_findings,
        final_findings=findings,
        notes=notes,
        ops=ops,
        attempts=attempts,
        confidence=confidence,
        status=status,
    )


def build_validator_report(result: PipelineResult, strategy: str = STRATEGY,
                           fallback_reason: str = "") -> Dict[str, Any]:
    """Flat, JSON-ready summary of a pipeline run."""
    confidence = result.confidence
    return {
        "status": result.status,
        "strategy": strategy,
        "normalized_changed": result.changed,
        "initial_issues": list(result.initial_findings),
        "final_issues": list(result.final_findings),
        "fallback_reason": fallback_reason,
        "confidence_score": confidence.score if confidence else 0,
        "confidence_accepted": confidence.accepted if confidence else False,
        "policy_hits": result.policy_hits,
        "lint_repair_ops": list(result.ops),
    }


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def apply_operations(code: str, operations: Iterable[Mapping[str, Any]]) -> str:
    """
    Apply patch operations to program text.

    Supported operations (anything else is ignored):
        {"op": "replace_file", "content": ...}
        {"op": "replace_line_range", "startLine": s, "endLine": e, "content": ...}
            lines s..e (1-based, inclusive) are replaced by content
        {"op": "append_lines", "content": ...}

    Args:
        code: Current program text
        operations: Sequence of operation mappings

    Returns:
        Patched program text
    """
    for op in operations or ():
        if not isinstance(op, Mapping):
            continue
        kind = op.get("op")
        content = str(op.get("content") or "")

        if kind == "replace_file":
            code = content
        elif kind == "replace_line_range":
            start = _as_int(op.get("startLine") or 1, 1)
            end = _as_int(op.get("endLine") or start, start)
            lines = re.split(r"\r?\n", code)
            prefix = lines[:max(0, start - 1)]
            suffix = lines[max(start, end):]
            code = "\n".join(prefix + re.split(r"\r?\n", content) + suffix)
        elif kind == "append_lines":
            code = f"{code.rstrip()}\n{content}"
        else:
            logger.debug("Ignoring unknown patch operation %r", kind)
    return code
