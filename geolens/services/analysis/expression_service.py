"""
Expression statistics and gene lookup over the retained Series Matrix rows.

All functions work on the bounded row set held by a SeriesMatrixDocument;
nothing here re-reads the file, so genes beyond the row cap are not visible.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from geolens.core.schemas.documents import (
    GeneQueryResult,
    MatrixRow,
    SampleStatistic,
    SoftDocument,
    StatisticsReport,
)
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

SEARCH_PREVIEW_FIELDS = 4


def _column(rows: Sequence[MatrixRow], index: int) -> np.ndarray:
    values = np.fromiter(
        (row.values[index] for row in rows if index < len(row.values)),
        dtype=float,
    )
    return values[np.isfinite(values)]


def compute_sample_statistics(
    rows: Sequence[MatrixRow], sample_ids: Sequence[str]
) -> List[SampleStatistic]:
    """
    Descriptive statistics per sample column.

    Non-numeric and non-finite cells are skipped. Samples without a single
    valid value are left out of the result. The median is the element at
    index ``n // 2`` of the sorted values (no interpolation between the two
    middle elements).

    Args:
        rows: Retained matrix rows
        sample_ids: Sample ids in column order

    Returns:
        list: One SampleStatistic per sample with data, in sample order
    """
    statistics: List[SampleStatistic] = []
    for index, sample_id in enumerate(sample_ids):
        values = _column(rows, index)
        if values.size == 0:
            continue
        ordered = np.sort(values)
        statistics.append(
            SampleStatistic(
                sample_name=sample_id,
                valid_count=int(values.size),
                mean=float(values.mean()),
                median=float(ordered[values.size // 2]),
                min=float(ordered[0]),
                max=float(ordered[-1]),
            )
        )
    return statistics


def build_statistics_report(
    rows: Sequence[MatrixRow], sample_ids: Sequence[str]
) -> Optional[StatisticsReport]:
    """Statistics for all samples, or None when there are no rows."""
    if not rows:
        return None
    return StatisticsReport(
        sample_count=len(sample_ids),
        gene_count=len(rows),
        samples=compute_sample_statistics(rows, sample_ids),
    )


def gene_matches(gene_id: str, query: str) -> bool:
    """Case-insensitive substring match in either direction."""
    gene_upper = gene_id.upper()
    query_upper = query.upper()
    return query_upper in gene_upper or gene_upper in query_upper


def query_gene(
    rows: Sequence[MatrixRow],
    gene_name: str,
    sample_ids: Optional[Sequence[str]] = None,
) -> GeneQueryResult:
    """
    Find the first row whose id matches ``gene_name``.

    A short symbol matches a longer probe id (``BRCA1`` in ``BRCA1-001``)
    and a long query matches a shorter id. The first match in row order
    wins. Blank queries and rows with an empty id never match.

    Args:
        rows: Retained matrix rows
        gene_name: Gene symbol or probe id, any case
        sample_ids: When given, the hit also maps each sample to its value

    Returns:
        GeneQueryResult: ``found`` is False when no retained row matches
    """
    query = (gene_name or "").strip()
    if not query:
        return GeneQueryResult(found=False, searched=gene_name or "")

    for row in rows:
        if row.gene_id and gene_matches(row.gene_id, query):
            result = GeneQueryResult(
                found=True,
                searched=gene_name,
                gene_id=row.gene_id,
                values=list(row.values),
                raw_row=list(row.raw),
            )
            if sample_ids is not None:
                result.expression_by_sample = dict(zip(sample_ids, row.values))
            return result

    logger.debug(f"Gene {gene_name!r} not found in {len(rows)} retained rows")
    return GeneQueryResult(found=False, searched=gene_name)


def search_in_dataset(
    query: str,
    preview_rows: Sequence[MatrixRow] = (),
    soft: Optional[SoftDocument] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Case-insensitive text search over gene ids and SOFT samples.

    Args:
        query: Text to look for
        preview_rows: Rows searched for gene ids (the preview window)
        soft: Parsed SOFT document whose samples are searched

    Returns:
        dict: ``genes`` hits with a short preview, ``samples`` hits with the
        characteristic keys that matched
    """
    results: Dict[str, List[Dict[str, Any]]] = {"genes": [], "samples": []}
    needle = (query or "").strip().lower()
    if not needle:
        return results

    for row in preview_rows:
        if needle in row.gene_id.lower():
            results["genes"].append(
                {
                    "gene_id": row.gene_id,
                    "preview": ", ".join(row.raw[:SEARCH_PREVIEW_FIELDS]),
                }
            )

    if soft is not None:
        for sample in soft.samples:
            texts = [sample.id or ""]
            texts.extend(sample.characteristics.keys())
            texts.extend(sample.characteristics.values())
            texts.extend(sample.other_fields.values())
            if not any(needle in text.lower() for text in texts):
                continue
            results["samples"].append(
                {
                    "id": sample.id,
                    "matched": [
                        key
                        for key, value in sample.characteristics.items()
                        if needle in key.lower() or needle in value.lower()
                    ],
                }
            )

    return results

