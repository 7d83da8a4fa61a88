"""
Recommendation ranker: scores a whole catalog against one student profile,
orders candidates, and caps the result sets per track.

Usage flow
----------
1. score_catalog(catalog, profile, track)
   -> list[ScoredCandidate]   (one per usable catalog row)

2. sort_candidates(scored)
   -> sorted by (tier rank desc, probability desc); stable otherwise

3a. susi:   ranked[:limit_total]
3b. jungsi: partition_by_sub_group(ranked, limits)
            -> fill_underfilled_groups(groups, ranked, limits)

``rank()`` runs the whole flow and returns a ``RecommendationResult``.

Ordering
--------
Tier dominates and probability breaks ties within a tier, so an A-tier
candidate at 40% ranks above a B-tier candidate at 95%. Candidates equal on
both keep catalog order.

Exclusions
----------
- A profile value of 0 for the track (no data entered) → nothing is scored.
- Rows with neither a 50% nor a 70% cutoff are skipped.

Underfilled sub-groups
----------------------
``fill_underfilled_groups`` is a heuristic fallback, not an optimal
assignment. When the three windows together hold fewer candidates than their
combined quota, the top ``sum(quotas)`` overall candidates that were not
placed are handed out in rank order, cycling A → B → C and skipping windows
that are already full. Those candidates are marked ``is_fallback=True`` and
appended after the window's natural matches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from admission_forecaster.config import RankingConfig, ScoringConfig
from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.models.grades import StudentProfile
from admission_forecaster.models.recommendation import RecommendationResult, ScoredCandidate
from admission_forecaster.recommendations.history import (
    DEFAULT_HISTORY_LIMIT,
    build_history_index,
)
from admission_forecaster.recommendations.scorer import params_for, score_probability
from admission_forecaster.recommendations.tiers import classify_tier, tier_rank
from admission_forecaster.taxonomy.admission_taxonomy import (
    SUB_GROUP_ORDER,
    AdmissionTrack,
    SubGroup,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankingOptions:
    """Result-set sizes and policy switches for one ranking call.

    Attributes:
        limit_total:       Cap for the single susi list.
        sub_group_limit:   Default cap per jungsi window.
        sub_group_limits:  Per-window overrides of ``sub_group_limit``.
        fill_underfilled:  Apply ``fill_underfilled_groups`` to jungsi results.
        history_limit:     Years of history attached to each candidate.
        latest_year_only:  Score only the newest row per (university, department).
    """

    limit_total:      int = 20
    sub_group_limit:  int = 5
    sub_group_limits: Optional[Mapping[SubGroup, int]] = None
    fill_underfilled: bool = True
    history_limit:    int = DEFAULT_HISTORY_LIMIT
    latest_year_only: bool = False

    @classmethod
    def from_config(cls, ranking: RankingConfig) -> "RankingOptions":
        return cls(
            limit_total=ranking.rolling_limit,
            sub_group_limit=ranking.sub_group_limit,
            fill_underfilled=ranking.fill_underfilled_groups,
            history_limit=ranking.history_limit,
            latest_year_only=ranking.latest_year_only,
        )

    def limits(self) -> dict[SubGroup, int]:
        """Quota per window, in A, B, C order."""
        overrides = self.sub_group_limits or {}
        return {g: overrides.get(g, self.sub_group_limit) for g in SUB_GROUP_ORDER}


def score_catalog(
    catalog:       Sequence[CatalogEntry],
    profile:       StudentProfile,
    track:         AdmissionTrack,
    scoring:       Optional[ScoringConfig] = None,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
    candidates:    Optional[Sequence[CatalogEntry]] = None,
) -> list[ScoredCandidate]:
    """Score every usable catalog row for ``track``.

    Args:
        catalog:       Full catalog for the track (used for history).
        profile:       Student summary.
        track:         Admission track being ranked.
        scoring:       Scoring constants; defaults when ``None``.
        history_limit: Years of history attached per candidate.
        candidates:    Subset of ``catalog`` to score; all rows when ``None``.

    Returns:
        Unsorted list of ScoredCandidate (empty when the profile has no data
        for ``track``).
    """
    student_value = profile.value_for(track)
    if student_value <= 0:
        logger.debug("No %s data in profile; nothing to score.", track)
        return []

    params  = params_for(track, scoring)
    history = build_history_index(catalog, history_limit)
    pool    = catalog if candidates is None else candidates

    scored: list[ScoredCandidate] = []
    skipped = 0
    for entry in pool:
        if entry.admission_track != track or not entry.has_cutoff:
            skipped += 1
            continue

        probability = score_probability(
            track=track,
            student_value=student_value,
            target_cutoff=entry.primary_cutoff,
            competition_rate=getattr(entry, params.competition_field),
            recruitment_count=entry.recruitment_count,
            params=params,
        )
        scored.append(
            ScoredCandidate(
                entry=entry,
                probability=probability,
                tier=classify_tier(probability),
                recent_history=history.get(entry.key, ()),
            )
        )

    if skipped:
        logger.debug("Skipped %d %s rows without a usable cutoff.", skipped, track)
    return scored


def sort_candidates(scored: Sequence[ScoredCandidate]) -> list[ScoredCandidate]:
    """Order by tier rank descending, then probability descending (stable)."""
    return sorted(scored, key=lambda c: (-tier_rank(c.tier), -c.probability))


def latest_rows(catalog: Sequence[CatalogEntry]) -> list[CatalogEntry]:
    """Keep only the newest row per (university, department), in catalog order."""
    newest: dict[tuple[str, str], CatalogEntry] = {}
    for e in catalog:
        current = newest.get(e.key)
        if current is None or e.year > current.year:
            newest[e.key] = e
    keep = {id(e) for e in newest.values()}
    return [e for e in catalog if id(e) in keep]


def rank_candidates(
    catalog:    Sequence[CatalogEntry],
    profile:    StudentProfile,
    track:      AdmissionTrack,
    options:    Optional[RankingOptions] = None,
    scoring:    Optional[ScoringConfig] = None,
    candidates: Optional[Sequence[CatalogEntry]] = None,
) -> list[ScoredCandidate]:
    """Score and sort the catalog; susi results are capped to ``limit_total``.

    Jungsi results are returned uncapped so they can be partitioned per window.
    """
    opts = options or RankingOptions()
    pool = candidates if candidates is not None else catalog
    if opts.latest_year_only:
        pool = latest_rows(pool)

    ranked = sort_candidates(
        score_catalog(
            catalog=catalog,
            profile=profile,
            track=track,
            scoring=scoring,
            history_limit=opts.history_limit,
            candidates=pool,
        )
    )
    if track == AdmissionTrack.SUSI:
        return ranked[:opts.limit_total]
    return ranked


def partition_by_sub_group(
    ranked: Sequence[ScoredCandidate],
    limits: Mapping[SubGroup, int],
) -> dict[SubGroup, list[ScoredCandidate]]:
    """Split ranked candidates by window, keeping the top ``limits[g]`` each.

    Candidates without a window, or whose window is not in ``limits``, are
    left out.
    """
    groups: dict[SubGroup, list[ScoredCandidate]] = {
        g: [] for g in SUB_GROUP_ORDER if g in limits
    }
    for c in ranked:
        g = c.entry.sub_group
        if g in groups and len(groups[g]) < limits[g]:
            groups[g].append(c)
    return groups


def fill_underfilled_groups(
    groups: Mapping[SubGroup, Sequence[ScoredCandidate]],
    ranked: Sequence[ScoredCandidate],
    limits: Mapping[SubGroup, int],
) -> dict[SubGroup, list[ScoredCandidate]]:
    """Distribute leftover top candidates across windows below their quota.

    Args:
        groups: Output of ``partition_by_sub_group`` (not mutated).
        ranked: The full sorted candidate list the groups were built from.
        limits: Quota per window.

    Returns:
        New dict of window → candidates. Unchanged copies when the combined
        quota is already met.
    """
    order  = [g for g in SUB_GROUP_ORDER if g in limits]
    result = {g: list(groups.get(g, ())) for g in order}

    total_quota = sum(limits[g] for g in order)
    if sum(len(v) for v in result.values()) >= total_quota:
        return result

    placed = {id(c) for items in result.values() for c in items}
    pool   = [c for c in ranked[:total_quota] if id(c) not in placed]

    cursor = 0
    filled = 0
    for candidate in pool:
        target = None
        for step in range(len(order)):
            g = order[(cursor + step) % len(order)]
            if len(result[g]) < limits[g]:
                target = g
                cursor = (cursor + step + 1) % len(order)
                break
        if target is None:
            break
        result[target].append(candidate.model_copy(update={"is_fallback": True}))
        filled += 1

    if filled:
        logger.info("Filled %d underfilled sub-group slot(s) from leftover candidates.", filled)
    return result


def rank_exam_groups(
    catalog:    Sequence[CatalogEntry],
    profile:    StudentProfile,
    options:    Optional[RankingOptions] = None,
    scoring:    Optional[ScoringConfig] = None,
    candidates: Optional[Sequence[CatalogEntry]] = None,
    only_group: Optional[SubGroup] = None,
) -> dict[SubGroup, list[ScoredCandidate]]:
    """Rank jungsi rows into capped per-window lists.

    When ``only_group`` is given, only that window is returned and the
    underfilled-group policy is not applied (other windows' candidates are
    never moved into an explicitly requested window).
    """
    opts   = options or RankingOptions()
    ranked = rank_candidates(
        catalog, profile, AdmissionTrack.JUNGSI, opts, scoring, candidates
    )
    limits = opts.limits()
    if only_group is not None:
        limits = {only_group: limits[only_group]}

    groups = partition_by_sub_group(ranked, limits)
    if opts.fill_underfilled and only_group is None:
        groups = fill_underfilled_groups(groups, ranked, limits)
    return groups


def rank(
    catalog:    Sequence[CatalogEntry],
    profile:    StudentProfile,
    track:      AdmissionTrack,
    options:    Optional[RankingOptions] = None,
    scoring:    Optional[ScoringConfig] = None,
    candidates: Optional[Sequence[CatalogEntry]] = None,
    only_group: Optional[SubGroup] = None,
) -> RecommendationResult:
    """Run the full ranking flow for one track.

    Returns:
        RecommendationResult with ``candidates`` (susi) or ``groups`` (jungsi).
        An empty catalog or an empty profile yields an empty result.
    """
    if track == AdmissionTrack.SUSI:
        ranked = rank_candidates(catalog, profile, track, options, scoring, candidates)
        logger.info("Ranked %d susi candidate(s).", len(ranked))
        return RecommendationResult(track=track, profile=profile, candidates=ranked)

    groups = rank_exam_groups(catalog, profile, options, scoring, candidates, only_group)
    logger.info(
        "Ranked jungsi candidates per window: %s",
        {g.value: len(items) for g, items in groups.items()},
    )
    return RecommendationResult(track=track, profile=profile, groups=groups)
