"""
Mock data generation for geolens tests.

Provides synthetic SOFT and Series Matrix files with reproducible content.
"""

from .base import (
    LARGE_DATASET_CONFIG,
    MEDIUM_DATASET_CONFIG,
    SMALL_DATASET_CONFIG,
    SPARSE_DATASET_CONFIG,
    MockDataConfig,
)
from .generators import (
    generate_expression_matrix,
    generate_series_matrix_text,
    generate_soft_text,
    gzip_bytes,
    write_downloaded_dataset,
    write_gzip,
)

__all__ = [
    "MockDataConfig",
    "SMALL_DATASET_CONFIG",
    "MEDIUM_DATASET_CONFIG",
    "LARGE_DATASET_CONFIG",
    "SPARSE_DATASET_CONFIG",
    "generate_expression_matrix",
    "generate_soft_text",
    "generate_series_matrix_text",
    "write_gzip",
    "gzip_bytes",
    "write_downloaded_dataset",
]
