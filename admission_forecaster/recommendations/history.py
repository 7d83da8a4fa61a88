"""
Historical trend grouping: the most recent years of data for one
(university, department).

Rows are matched exactly on university and department, sorted by year
descending, and truncated. ``sorted`` is stable, so rows sharing a year
(which should not happen, one row per year is expected) keep their input
order.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Sequence

from admission_forecaster.models.catalog import CatalogEntry

DEFAULT_HISTORY_LIMIT = 3


def group_history(
    catalog: Iterable[CatalogEntry],
    university: str,
    department: str,
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> list[CatalogEntry]:
    """Return up to ``limit`` rows for one department, newest first.

    Args:
        catalog:    Full catalog (current and historical rows).
        university: Exact university name.
        department: Exact department name.
        limit:      Maximum number of rows returned.

    Returns:
        Matching rows sorted by ``year`` descending; empty if none match.
    """
    matches = [
        e for e in catalog
        if e.university == university and e.department == department
    ]
    return sorted(matches, key=lambda e: -e.year)[:limit]


def build_history_index(
    catalog: Sequence[CatalogEntry],
    limit: int = DEFAULT_HISTORY_LIMIT,
) -> dict[tuple[str, str], tuple[CatalogEntry, ...]]:
    """Precompute ``group_history`` for every (university, department) key.

    One pass over the catalog instead of one scan per scored row. Each value
    equals ``tuple(group_history(catalog, *key, limit=limit))``.
    """
    by_key: dict[tuple[str, str], list[CatalogEntry]] = defaultdict(list)
    for e in catalog:
        by_key[e.key].append(e)
    return {
        key: tuple(sorted(rows, key=lambda e: -e.year)[:limit])
        for key, rows in by_key.items()
    }
