"""
Admission probability scoring: converts a student's summary grade and a
department's cutoff/competition data into a bounded probability.

This is a deterministic heuristic, not a trained model.

Grade convention
----------------
Grades run 1 (best) to 9, so ``diff = student_value - target_cutoff`` is
negative when the student is better than the department's bar.

Formula (per track)
-------------------
    base      = step(diff)                         # first bound with diff <= bound
    factor    = min(rate / normalizer, 1.0)
    adjusted  = base * (1 - factor * dampening)
    adjusted += bonus  if recruitment_count > threshold
    result    = round_half_up(clamp(adjusted, floor, ceiling))

Default constants
-----------------
                      susi (rolling)          jungsi (exam-based)
    diff <= -1.5           90                        85
    diff <= -1.0           80                        75
    diff <= -0.5           65                        60
    diff <=  0.0           50                        45
    diff <=  0.5           35                        30
    diff <=  1.0           20                        15
    otherwise              10                         8
    rate field        competition_rate        real_competition_rate
    normalizer / damp      10 / 0.3                  15 / 0.4
    recruitment bonus  +5 if count > 10               none
    clamp                 [5, 95]                   [3, 92]

Rolling admission uses the gentler curve because it also weighs holistic
factors this model does not see.

Missing data
------------
``student_value <= 0`` or ``target_cutoff <= 0`` returns the neutral default
(30) instead of a computed score.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from admission_forecaster.config import ScoringConfig, TrackScoringConfig
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack

_DEFAULT_SCORING = ScoringConfig()

DEFAULT_TRACK_PARAMS: dict[AdmissionTrack, TrackScoringConfig] = {
    AdmissionTrack.SUSI: _DEFAULT_SCORING.susi,
    AdmissionTrack.JUNGSI: _DEFAULT_SCORING.jungsi,
}


@dataclass(frozen=True)
class ProbabilityBreakdown:
    """Intermediate values behind one probability.

    Attributes:
        probability:        Final integer probability (0–100).
        diff:               student_value − target_cutoff (``None`` if missing data).
        base_probability:   Step-function output before penalties.
        competition_factor: min(rate / normalizer, 1.0).
        recruitment_bonus:  Flat bonus applied (0 if none).
        is_neutral_default: True when inputs were insufficient.
    """

    probability:        int
    diff:               Optional[float]
    base_probability:   float
    competition_factor: float
    recruitment_bonus:  float
    is_neutral_default: bool


def params_for(
    track: AdmissionTrack,
    scoring: Optional[ScoringConfig] = None,
) -> TrackScoringConfig:
    """Return the scoring constants for ``track`` (config or defaults)."""
    if scoring is None:
        return DEFAULT_TRACK_PARAMS[track]
    return scoring.susi if track == AdmissionTrack.SUSI else scoring.jungsi


def explain_probability(
    track:             AdmissionTrack,
    student_value:     float,
    target_cutoff:     float,
    competition_rate:  float,
    recruitment_count: int,
    params:            Optional[TrackScoringConfig] = None,
) -> ProbabilityBreakdown:
    """Compute a probability and keep every intermediate value.

    Args:
        track:             Admission track (selects default constants).
        student_value:     Student's average grade for this track.
        target_cutoff:     Department cutoff on the same grade scale.
        competition_rate:  Applicants per seat (the track's configured field).
        recruitment_count: Seats offered.
        params:            Override constants; defaults to the track's.

    Returns:
        ProbabilityBreakdown with the final probability in ``probability``.
    """
    p = params or DEFAULT_TRACK_PARAMS[track]

    if student_value <= 0 or target_cutoff <= 0:
        return ProbabilityBreakdown(
            probability=p.neutral_default,
            diff=None,
            base_probability=float(p.neutral_default),
            competition_factor=0.0,
            recruitment_bonus=0.0,
            is_neutral_default=True,
        )

    diff = student_value - target_cutoff
    base = step_probability(diff, p)

    competition_factor = min(max(competition_rate, 0.0) / p.competition_normalizer, 1.0)
    adjusted = base * (1.0 - competition_factor * p.competition_dampening)

    bonus = p.recruitment_bonus if recruitment_count > p.recruitment_threshold else 0.0
    adjusted += bonus

    clamped = _clamp(adjusted, p.floor, p.ceiling)

    return ProbabilityBreakdown(
        probability=_round_half_up(clamped),
        diff=round(diff, 4),
        base_probability=base,
        competition_factor=round(competition_factor, 4),
        recruitment_bonus=bonus,
        is_neutral_default=False,
    )


def score_probability(
    track:             AdmissionTrack,
    student_value:     float,
    target_cutoff:     float,
    competition_rate:  float,
    recruitment_count: int,
    params:            Optional[TrackScoringConfig] = None,
) -> int:
    """Return the admission probability (integer percent, 0–100).

    Pure and total for in-range numeric input; see ``explain_probability``.
    """
    return explain_probability(
        track=track,
        student_value=student_value,
        target_cutoff=target_cutoff,
        competition_rate=competition_rate,
        recruitment_count=recruitment_count,
        params=params,
    ).probability


def step_probability(diff: float, params: TrackScoringConfig) -> float:
    """Map a grade difference to the base probability (non-increasing in diff)."""
    for bound, probability in zip(params.step_bounds, params.step_probabilities):
        if diff <= bound:
            return float(probability)
    return float(params.fallback_probability)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
