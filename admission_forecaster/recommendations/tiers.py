"""
Tier classification: maps a probability to S/A/B/C.

Thresholds are closed on the lower bound:

    probability >= 80  → S  (안전권)
    probability >= 50  → A  (적정권)
    probability >= 20  → B  (소신권)
    otherwise          → C  (도전권)
"""

from __future__ import annotations

from admission_forecaster.taxonomy.admission_taxonomy import TIER_LABELS, TIER_RANK, Tier

TIER_THRESHOLDS: tuple[tuple[float, Tier], ...] = (
    (80, Tier.S),
    (50, Tier.A),
    (20, Tier.B),
)


def classify_tier(probability: float) -> Tier:
    """Return the tier for ``probability``."""
    for threshold, tier in TIER_THRESHOLDS:
        if probability >= threshold:
            return tier
    return Tier.C


def tier_rank(tier: Tier) -> int:
    """Sort rank for ``tier``: S=4 > A=3 > B=2 > C=1."""
    return TIER_RANK[tier]


def tier_label(tier: Tier) -> str:
    return TIER_LABELS[tier]
