"""
Generators for synthetic GEO files.

Produce SOFT family text and Series Matrix text shaped like the files served
by GEO, plus gzip helpers to write them where a downloaded dataset would be.
"""

import gzip
from pathlib import Path
from typing import List, Optional

import numpy as np

from .base import MEDIUM_DATASET_CONFIG, MockDataConfig


def generate_expression_matrix(config: MockDataConfig = MEDIUM_DATASET_CONFIG) -> np.ndarray:
    """Genes x samples matrix of log-scale expression values."""
    rng = np.random.default_rng(config.seed)
    matrix = rng.normal(
        config.mean_expression,
        config.expression_variance,
        size=(config.gene_count, config.sample_count),
    )
    return np.round(matrix, 4)


def generate_soft_text(config: MockDataConfig = MEDIUM_DATASET_CONFIG) -> str:
    """SOFT family file with database, series, platform and sample sections."""
    lines: List[str] = [
        "^DATABASE = GeoMiame",
        "!Database_name = Gene Expression Omnibus (GEO)",
        f"^SERIES = {config.series_id}",
        f"!Series_title = Synthetic study {config.series_id}",
        "!Series_summary = Expression profiling; formula: a = b",
        f"!Series_platform_id = {config.platform_id}",
        f"^PLATFORM = {config.platform_id}",
        "!Platform_title = Synthetic array",
        f"!Platform_organism = {config.organism}",
    ]
    for index, sample_id in enumerate(config.sample_ids):
        treatment = config.treatments[index % len(config.treatments)]
        lines.extend(
            [
                f"^SAMPLE = {sample_id}",
                f"!Sample_title = Sample {index + 1}",
                f"!Sample_source_name_ch1 = blood",
                f"!Sample_organism_ch1 = {config.organism}",
                f"!Sample_characteristics_ch1 = drug: {treatment}",
                f"!Sample_characteristics_ch1 = replicate: {index + 1}",
                "!Sample_treatment_protocol_ch1 = 24h exposure",
                "!sample_table_begin",
                "ID_REF\tVALUE",
                "GENE1_at\t1.0",
                "!sample_table_end",
            ]
        )
    return "\n".join(lines) + "\n"


def generate_series_matrix_text(
    config: MockDataConfig = MEDIUM_DATASET_CONFIG,
    matrix: Optional[np.ndarray] = None,
) -> str:
    """Series Matrix file with quoted metadata, sentinels and a quoted table."""
    if matrix is None:
        matrix = generate_expression_matrix(config)
    rng = np.random.default_rng(config.seed + 1)

    def quoted(values: List[str]) -> str:
        return "\t".join(f'"{value}"' for value in values)

    samples = config.sample_ids
    lines: List[str] = [
        f'!Series_title\t"Synthetic study {config.series_id}"',
        f'!Series_geo_accession\t"{config.series_id}"',
        f'!Series_platform_id\t"{config.platform_id}"',
        f"!Sample_title\t{quoted([f'Sample {i + 1}' for i in range(len(samples))])}",
        f"!Sample_geo_accession\t{quoted(samples)}",
        f"!Sample_organism_ch1\t{quoted([config.organism] * len(samples))}",
        "!Sample_characteristics_ch1\t"
        + quoted(
            [
                f"drug: {config.treatments[i % len(config.treatments)]}"
                for i in range(len(samples))
            ]
        ),
        "!Sample_characteristics_ch1\t"
        + quoted([f"replicate: {i + 1}" for i in range(len(samples))]),
        "!series_matrix_table_begin",
        quoted(["ID_REF"] + samples),
    ]
    for gene_id, values in zip(config.gene_ids, matrix):
        cells = []
        for value in values:
            if config.missing_data_rate and rng.random() < config.missing_data_rate:
                cells.append("null")
            else:
                cells.append(repr(float(value)))
        lines.append(f'"{gene_id}"\t' + "\t".join(cells))
    lines.append("!series_matrix_table_end")
    return "\n".join(lines) + "\n"


def write_gzip(path: Path, text: str) -> Path:
    """Write ``text`` gzip-compressed to ``path`` (parents created)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(path, "wt", encoding="utf-8") as handle:
        handle.write(text)
    return path


def gzip_bytes(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def write_downloaded_dataset(
    data_dir: Path, config: MockDataConfig = MEDIUM_DATASET_CONFIG
) -> Path:
    """Lay out ``<data_dir>/<id>/`` as the downloader would leave it."""
    dataset_dir = data_dir / config.series_id
    write_gzip(dataset_dir / "series_matrix.txt.gz", generate_series_matrix_text(config))
    write_gzip(dataset_dir / "family.soft.gz", generate_soft_text(config))
    return dataset_dir
