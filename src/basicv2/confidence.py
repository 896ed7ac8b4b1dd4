"""
Confidence scoring for a (raw, normalized) program pair.

The score starts from a base and is adjusted by:
    + clean final lint, clean raw lint, low drift, unchanged text
    + findings resolved by the repair
    - findings introduced by the repair
    - text-length drift
    - an excess of policy notes (more than 10)

and is clamped to [0, 1]. A threshold decides whether the normalized
program is accepted.
"""

import re
from dataclasses import dataclass
from typing import Sequence

DEFAULT_THRESHOLD = 0.45

BASE_SCORE = 0.25
CLEAN_FINAL_BONUS = 0.35
CLEAN_RAW_BONUS = 0.15
LOW_DRIFT_BONUS = 0.15
LOW_DRIFT_LIMIT = 0.2
UNCHANGED_BONUS = 0.10
LINT_GAIN_WEIGHT = 0.12
LINT_PENALTY_WEIGHT = 0.20
DRIFT_WEIGHT = 0.35
POLICY_ALLOWANCE = 10
POLICY_WEIGHT = 0.02

_POLICY_NOTE_RE = re.compile(r"^\[policy:")


@dataclass
class ConfidenceSummary:
    """
    Acceptance metrics for one normalization.

    Properties:
        score: Clamped score, rounded to 2 decimals
        accepted: score >= threshold (decided on the unrounded score)
        drift: |len(normalized) - len(raw)| / len(raw), rounded to 3 decimals
        lint_gain: Findings resolved
        lint_penalty: Findings introduced
        policy_count: Number of policy-tagged notes
    """

    score: float
    accepted: bool
    drift: float
    lint_gain: int
    lint_penalty: int
    policy_count: int


def estimate_confidence(raw: str, normalized: str,
                        raw_findings: Sequence[str] = (),
                        final_findings: Sequence[str] = (),
                        notes: Sequence[str] = (),
                        threshold: float = DEFAULT_THRESHOLD) -> ConfidenceSummary:
    """
    Score how much the normalized program can be trusted.

    Lengths are floored at 1 so an empty raw program does not divide by zero.

    Args:
        raw: Program before repair
        normalized: Program after repair
        raw_findings: Lint findings of `raw`
        final_findings: Lint findings of `normalized`
        notes: Repair notes produced on the way
        threshold: Minimum score for acceptance

    Returns:
        ConfidenceSummary
    """
    raw = raw or ""
    normalized = normalized or ""
    raw_len = max(1, len(raw))
    norm_len = max(1, len(normalized))
    drift = abs(norm_len - raw_len) / raw_len

    raw_count = len(raw_findings)
    final_count = len(final_findings)
    lint_gain = max(0, raw_count - final_count)
    lint_penalty = max(0, final_count - raw_count)
    policy_count = sum(1 for note in notes if _POLICY_NOTE_RE.match(str(note)))

    score = BASE_SCORE
    if final_count == 0:
        score += CLEAN_FINAL_BONUS
    if raw_count == 0:
        score += CLEAN_RAW_BONUS
    if drift <= LOW_DRIFT_LIMIT:
        score += LOW_DRIFT_BONUS
    if raw.strip() == normalized.strip():
        score += UNCHANGED_BONUS
    score += lint_gain * LINT_GAIN_WEIGHT
    score -= lint_penalty * LINT_PENALTY_WEIGHT
    score -= drift * DRIFT_WEIGHT
    score -= max(0, policy_count - POLICY_ALLOWANCE) * POLICY_WEIGHT
    score = max(0.0, min(1.0, score))

    return ConfidenceSummary(
        score=round(score, 2),
        accepted=score >= threshold,
        drift=round(drift, 3),
        lint_gain=lint_gain,
        lint_penalty=lint_penalty,
        policy_count=policy_count,
    )
