"""
CSV reader for catalog uploads.

The file is read with ``csv.DictReader`` (UTF-8, a leading BOM tolerated).
Rows whose first column is blank are skipped, which drops the trailing empty
lines and section separators that spreadsheet exports tend to carry. Cells
are stripped of surrounding whitespace and stray quotes; normalization into
``CatalogEntry`` happens later in ``normalizer.normalize_rows``.

``chunk_rows`` splits the rows into upload-sized batches.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Iterator, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def read_catalog_csv(path: Path) -> list[dict[str, str]]:
    """Read a catalog CSV into raw row dicts.

    Args:
        path: CSV file with a header row.

    Returns:
        One dict per non-blank row, header → stripped cell text.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If the file has no header row.
    """
    if not path.exists():
        raise FileNotFoundError(f"Catalog CSV file not found: {path}")

    with open(path, encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames:
            raise ValueError(f"CSV file is empty or has no header row: {path}")

        headers = [_clean(h) for h in reader.fieldnames]
        first = reader.fieldnames[0]

        rows: list[dict[str, str]] = []
        skipped = 0
        for raw in reader:
            if not _clean(raw.get(first)):
                skipped += 1
                continue
            rows.append({
                header: _clean(raw.get(original))
                for header, original in zip(headers, reader.fieldnames)
            })

    if skipped:
        logger.debug("Skipped %d blank row(s) in %s", skipped, path.name)
    logger.info("Read %d catalog row(s) from %s", len(rows), path.name)
    return rows


def chunk_rows(rows: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of ``rows`` with at most ``size`` items.

    Raises:
        ValueError: If ``size`` is not positive.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}.")
    for start in range(0, len(rows), size):
        yield list(rows[start:start + size])


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return value.strip().strip('"').strip()
