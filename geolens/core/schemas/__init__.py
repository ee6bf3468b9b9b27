"""Schema definitions for download events and parsed GEO documents."""

from geolens.core.schemas.documents import (
    CachedDataset,
    GeneQueryResult,
    MatrixRow,
    ParsedPlatform,
    ParsedSample,
    ParsedSeries,
    SampleStatistic,
    SeriesMatrixDocument,
    SoftDocument,
    StatisticsReport,
)
from geolens.core.schemas.download import (
    DownloadedFile,
    DownloadProgress,
    DownloadResult,
    DownloadStage,
    RemoteFile,
    RemoteFileKind,
)

__all__ = [
    "RemoteFile",
    "RemoteFileKind",
    "DownloadStage",
    "DownloadProgress",
    "DownloadedFile",
    "DownloadResult",
    "ParsedPlatform",
    "ParsedSeries",
    "ParsedSample",
    "SoftDocument",
    "MatrixRow",
    "SeriesMatrixDocument",
    "SampleStatistic",
    "StatisticsReport",
    "GeneQueryResult",
    "CachedDataset",
]
