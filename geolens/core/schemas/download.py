"""
Download schema definitions for the GEO streaming pipeline.

This module defines Pydantic schemas for the remote files of a dataset,
the progress events emitted while fetching them, and the batch result
returned to callers.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RemoteFileKind(str, Enum):
    """What a remote file contains."""

    SERIES_MATRIX = "series_matrix"
    SOFT_FAMILY = "soft_family"


class DownloadStage(str, Enum):
    """Stage of a progress event. Events for one dataset follow this order."""

    DOWNLOADING = "downloading"
    DECOMPRESSING = "decompressing"
    COMPLETE = "complete"


class RemoteFile(BaseModel):
    """
    One remote file belonging to a dataset.

    Attributes:
        name: Local file name inside the dataset directory
        url: Remote location
        kind: Content of the file
    """

    name: str = Field(..., description="Local file name, e.g. family.soft.gz")
    url: str = Field(..., description="Remote URL")
    kind: RemoteFileKind = Field(..., description="File content kind")

    @property
    def compressed(self) -> bool:
        return self.name.endswith(".gz")


class DownloadProgress(BaseModel):
    """
    Progress event emitted by the stream downloader.

    Only the fields relevant to a stage are populated; ``to_event()``
    drops the unset ones for consumers that expect a sparse mapping.
    """

    stage: DownloadStage
    file_name: Optional[str] = None
    file_index: Optional[int] = None
    total_files: Optional[int] = None
    percent: Optional[int] = Field(None, ge=0, le=100)
    received_bytes: Optional[int] = None
    total_bytes: Optional[int] = None
    downloaded_files: Optional[int] = None
    error_count: Optional[int] = None

    def to_event(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DownloadedFile(BaseModel):
    """Information about one successfully downloaded file."""

    name: str
    path: str
    size: int
    kind: RemoteFileKind
    decompressed_path: Optional[str] = None
    decompressed_size: Optional[int] = None
    decompress_error: Optional[str] = Field(
        None, description="Warning recorded when decompression failed"
    )

    @property
    def size_kb(self) -> str:
        return f"{self.size / 1024:.2f}"

    @property
    def decompressed_size_kb(self) -> Optional[str]:
        if self.decompressed_size is None:
            return None
        return f"{self.decompressed_size / 1024:.2f}"


class DownloadResult(BaseModel):
    """
    Outcome of downloading all remote files of one dataset.

    ``success`` is true when at least one file was downloaded; per-file
    failures are listed in ``errors`` (None when there were none).
    """

    dataset_id: str
    dataset_dir: Optional[str] = None
    success: bool = False
    files: List[DownloadedFile] = Field(default_factory=list)
    errors: Optional[List[str]] = None
    cancelled: bool = False
