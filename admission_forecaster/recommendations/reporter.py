"""
Recommendation report writer: CSV and JSON exports of a
``RecommendationResult``.

Pure file I/O; no store access. Ranks restart at 1 inside each jungsi
window and run across the whole list for susi.

Output files
------------
  data/outputs/recommendations/
    recommendations_{track}_{date}.csv
    recommendations_{track}_{date}.json
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from admission_forecaster.models.recommendation import RecommendationResult, ScoredCandidate
from admission_forecaster.taxonomy.admission_taxonomy import SUB_GROUP_LABELS, SubGroup

logger = logging.getLogger(__name__)

CSV_FIELDNAMES = [
    "rank", "group", "university", "department", "year", "cutoff",
    "probability", "tier", "tier_label", "is_fallback", "history_years",
]


def _ranked_rows(result: RecommendationResult) -> list[tuple[int, Optional[SubGroup], ScoredCandidate]]:
    rows = []
    counters: dict[Optional[SubGroup], int] = {}
    for group, candidate in result.all_candidates():
        counters[group] = counters.get(group, 0) + 1
        rows.append((counters[group], group, candidate))
    return rows


def write_recommendation_csv(
    result: RecommendationResult,
    output_dir: Path,
    run_date: date | None = None,
) -> Path:
    """Write one row per recommended candidate.

    Columns: rank, group, university, department, year, cutoff, probability,
             tier, tier_label, is_fallback, history_years.

    Args:
        result:     Ranked result to export.
        output_dir: Target directory (created if missing).
        run_date:   Date label for the filename. Defaults to today.

    Returns:
        Path to the written CSV file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    csv_path = output_dir / f"recommendations_{result.track.value}_{run_date}.csv"

    rows = _ranked_rows(result)
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
        writer.writeheader()
        for rank, group, sc in rows:
            writer.writerow(
                {
                    "rank":          rank,
                    "group":         SUB_GROUP_LABELS[group] if group else "",
                    "university":    sc.entry.university,
                    "department":    sc.entry.department,
                    "year":          sc.entry.year,
                    "cutoff":        sc.entry.primary_cutoff,
                    "probability":   sc.probability,
                    "tier":          sc.tier.value,
                    "tier_label":    sc.tier_label,
                    "is_fallback":   int(sc.is_fallback),
                    "history_years": ";".join(str(h.year) for h in sc.recent_history),
                }
            )

    logger.info("Recommendation CSV written: %s (%d rows)", csv_path, len(rows))
    return csv_path


def write_recommendation_json(
    result: RecommendationResult,
    output_dir: Path,
    run_date: date | None = None,
) -> Path:
    """Write the result as structured JSON, grouped by window for jungsi.

    Returns:
        Path to the written JSON file.
    """
    if run_date is None:
        run_date = date.today()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / f"recommendations_{result.track.value}_{run_date}.json"

    sections: dict[str, list[dict]] = {}
    for rank, group, sc in _ranked_rows(result):
        sections.setdefault(group.value if group else "all", []).append(
            {
                "rank":           rank,
                "university":     sc.entry.university,
                "department":     sc.entry.department,
                "year":           sc.entry.year,
                "cutoff_50":      sc.entry.cutoff_at_50pct,
                "cutoff_70":      sc.entry.cutoff_at_70pct,
                "probability":    sc.probability,
                "tier":           sc.tier.value,
                "tier_label":     sc.tier_label,
                "is_fallback":    sc.is_fallback,
                "recent_history": [
                    {
                        "year":             h.year,
                        "cutoff_50":        h.cutoff_at_50pct,
                        "cutoff_70":        h.cutoff_at_70pct,
                        "competition_rate": h.competition_rate,
                    }
                    for h in sc.recent_history
                ],
            }
        )

    payload = {
        "track":        result.track.value,
        "generated_at": run_date.isoformat(),
        "profile":      result.profile.model_dump(),
        "cached":       result.cached,
        "message":      result.message,
        "sections":     sections,
    }

    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Recommendation JSON written: %s", json_path)
    return json_path
