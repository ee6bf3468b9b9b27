"""
GEO (Gene Expression Omnibus) data access package.

This package provides modular access to GEO series files with clean
separation of concerns:
- constants: Remote layout, file names and URL construction
- downloader: Sequential streaming download with progress events
- decompressor: Constant-memory gzip decompression with atomic writes
- soft_parser: SOFT family file decoding
- matrix_parser: Series Matrix decoding with a bounded row buffer
- workspace: On-disk dataset inspection

Usage:
    from geolens.services.data_access.geo.downloader import GEOStreamDownloader
    from geolens.services.data_access.geo.matrix_parser import MatrixParser

    downloader = GEOStreamDownloader(data_dir="./data")
    result = downloader.download_dataset("GSE12345")
    matrix = MatrixParser(row_cap=1000).parse_file(
        "./data/GSE12345/series_matrix.txt"
    )
"""

from geolens.services.data_access.geo.constants import (
    SERIES_MATRIX_FILE,
    SOFT_FAMILY_FILE,
    build_remote_files,
    normalize_dataset_id,
    series_bucket,
)
from geolens.services.data_access.geo.decompressor import decompress_file
from geolens.services.data_access.geo.downloader import GEOStreamDownloader
from geolens.services.data_access.geo.matrix_parser import MatrixParser
from geolens.services.data_access.geo.soft_parser import SoftParser
from geolens.services.data_access.geo.workspace import DatasetWorkspace

__all__ = [
    "SERIES_MATRIX_FILE",
    "SOFT_FAMILY_FILE",
    "build_remote_files",
    "normalize_dataset_id",
    "series_bucket",
    "decompress_file",
    "GEOStreamDownloader",
    "MatrixParser",
    "SoftParser",
    "DatasetWorkspace",
]
