"""
GEO dataset downloader.

This module fetches the Series Matrix and SOFT family archives of a GEO
series over HTTP, streaming each body to disk while emitting progress
events, and decompresses each archive as soon as it has arrived.
"""

import random
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import requests

from geolens.core.concurrency import CancellationToken
from geolens.core.exceptions import DecompressionError, NetworkError
from geolens.core.file_storage import atomic_binary_writer
from geolens.core.schemas.download import (
    DownloadedFile,
    DownloadProgress,
    DownloadResult,
    DownloadStage,
    RemoteFile,
)
from geolens.services.data_access.geo.constants import (
    build_remote_files,
    normalize_dataset_id,
)
from geolens.services.data_access.geo.decompressor import decompress_file
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[DownloadProgress], None]

# Transport failures worth another attempt; HTTP error statuses are not retried
RETRYABLE_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


class GEOStreamDownloader:
    """
    Handles downloading the remote files of GEO series.

    Files of one dataset are fetched one after another so that progress
    events stay strictly ordered. A failed file is recorded and the batch
    moves on to the next one.
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        chunk_size: int = 32768,
        timeout: tuple = (30.0, 60.0),
        max_retries: int = 2,
        verify: bool = True,
    ):
        """
        Initialize the downloader.

        Args:
            data_dir: Root directory; each dataset goes to ``<data_dir>/<id>/``
            session: requests session to use (a new one is created if None)
            base_url: Root of the GEO series tree
            chunk_size: Bytes per streamed chunk
            timeout: (connect, read) timeout in seconds for every request
            max_retries: Extra attempts after a transport failure
            verify: Verify TLS certificates
        """
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.max_retries = max_retries
        self.verify = verify

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": "Mozilla/5.0 (compatible; geolens/1.0)",
                # Progress is computed against Content-Length of the raw body
                "Accept-Encoding": "identity",
            }
        )

        self._progress_callbacks: Dict[str, ProgressCallback] = {}
        self._callbacks_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Progress listeners
    # ------------------------------------------------------------------

    def on_progress(self, dataset_id: str, callback: ProgressCallback) -> None:
        """Register a progress listener for downloads of ``dataset_id``."""
        with self._callbacks_lock:
            self._progress_callbacks[normalize_dataset_id(dataset_id)] = callback

    def remove_progress_callback(self, dataset_id: str) -> None:
        with self._callbacks_lock:
            self._progress_callbacks.pop(normalize_dataset_id(dataset_id), None)

    def _emit(
        self,
        dataset_id: str,
        progress: DownloadProgress,
        extra: Optional[ProgressCallback] = None,
    ) -> None:
        with self._callbacks_lock:
            registered = self._progress_callbacks.get(dataset_id)
        for callback in (registered, extra):
            if callback is not None:
                callback(progress)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def dataset_dir(self, dataset_id: str) -> Path:
        return self.data_dir / normalize_dataset_id(dataset_id)

    def download_dataset(
        self,
        dataset_id: str,
        progress_callback: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DownloadResult:
        """
        Download and decompress all remote files of a dataset.

        Args:
            dataset_id: GEO series accession
            progress_callback: Receives every progress event of this call
            cancel_token: Checked between chunks and between files

        Returns:
            DownloadResult: success is true when at least one file arrived

        Raises:
            InvalidDatasetIdError: If ``dataset_id`` is not a series accession
            OperationCancelledError: If ``cancel_token`` was cancelled
        """
        dataset_id = normalize_dataset_id(dataset_id)
        remote_files = build_remote_files(dataset_id, self.base_url)
        dataset_dir = self.dataset_dir(dataset_id)
        dataset_dir.mkdir(parents=True, exist_ok=True)

        total_files = len(remote_files)
        downloaded: List[DownloadedFile] = []
        errors: List[str] = []

        for index, remote in enumerate(remote_files, start=1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            logger.info(f"Downloading {remote.name} for {dataset_id}...")
            self._emit(
                dataset_id,
                DownloadProgress(
                    stage=DownloadStage.DOWNLOADING,
                    file_name=remote.name,
                    file_index=index,
                    total_files=total_files,
                    percent=0,
                ),
                progress_callback,
            )

            local_path = dataset_dir / remote.name
            try:
                size = self._download_with_retry(
                    remote,
                    local_path,
                    on_chunk=lambda received, total, _i=index, _r=remote: self._emit(
                        dataset_id,
                        self._chunk_progress(_r, _i, total_files, received, total),
                        progress_callback,
                    ),
                    cancel_token=cancel_token,
                )
            except NetworkError as e:
                logger.warning(f"Failed to download {remote.url}: {e}")
                errors.append(f"{remote.name}: {e}")
                continue
            except OSError as e:
                logger.warning(f"Could not write {local_path}: {e}")
                errors.append(f"{remote.name}: {e}")
                continue

            file_info = DownloadedFile(
                name=remote.name, path=str(local_path), size=size, kind=remote.kind
            )
            logger.info(f"Downloaded {remote.name} ({file_info.size_kb} KB)")

            if remote.compressed:
                self._emit(
                    dataset_id,
                    DownloadProgress(
                        stage=DownloadStage.DECOMPRESSING,
                        file_name=remote.name,
                        file_index=index,
                        total_files=total_files,
                    ),
                    progress_callback,
                )
                try:
                    output = decompress_file(
                        local_path,
                        chunk_size=self.chunk_size,
                        cancel_token=cancel_token,
                    )
                    file_info.decompressed_path = str(output)
                    file_info.decompressed_size = output.stat().st_size
                except DecompressionError as e:
                    logger.warning(f"Could not decompress {remote.name}: {e}")
                    file_info.decompress_error = e.message

            downloaded.append(file_info)

        self._emit(
            dataset_id,
            DownloadProgress(
                stage=DownloadStage.COMPLETE,
                total_files=total_files,
                downloaded_files=len(downloaded),
                error_count=len(errors),
            ),
            progress_callback,
        )

        return DownloadResult(
            dataset_id=dataset_id,
            dataset_dir=str(dataset_dir),
            success=len(downloaded) > 0,
            files=downloaded,
            errors=errors or None,
        )

    @staticmethod
    def _chunk_progress(
        remote: RemoteFile,
        index: int,
        total_files: int,
        received: int,
        total: Optional[int],
    ) -> DownloadProgress:
        if total:
            return DownloadProgress(
                stage=DownloadStage.DOWNLOADING,
                file_name=remote.name,
                file_index=index,
                total_files=total_files,
                percent=min(100, received * 100 // total),
                received_bytes=received,
                total_bytes=total,
            )
        return DownloadProgress(
            stage=DownloadStage.DOWNLOADING,
            file_name=remote.name,
            file_index=index,
            total_files=total_files,
            received_bytes=received,
        )

    def _download_with_retry(
        self,
        remote: RemoteFile,
        local_path: Path,
        on_chunk: Callable[[int, Optional[int]], None],
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Stream one file to disk, retrying transport failures.

        Implements exponential backoff with jitter between attempts. Progress
        is reported to ``on_chunk`` only when it moves forward, so a retried
        transfer does not make the percentage go backwards.

        Returns:
            int: Number of bytes written

        Raises:
            NetworkError: On an HTTP error status, or when every attempt failed
        """
        best = {"received": -1}

        def forward_only(received: int, total: Optional[int]) -> None:
            if received > best["received"]:
                best["received"] = received
                on_chunk(received, total)

        for attempt in range(1, self.max_retries + 2):
            if attempt > 1:
                base_delay = 2 ** (attempt - 1)
                jitter = base_delay * 0.2 * (2 * random.random() - 1)
                wait_time = base_delay + jitter
                logger.info(
                    f"Retry attempt {attempt}/{self.max_retries + 1} for {remote.name} "
                    f"after {wait_time:.1f}s delay"
                )
                time.sleep(wait_time)

            try:
                return self._stream_to_file(
                    remote.url, local_path, forward_only, cancel_token
                )
            except RETRYABLE_ERRORS as e:
                logger.warning(
                    f"Download attempt {attempt}/{self.max_retries + 1} failed "
                    f"for {remote.url}: {e}"
                )
                if attempt == self.max_retries + 1:
                    raise NetworkError(
                        f"transport failure: {e}",
                        details={"url": remote.url, "status_code": None},
                    ) from e
            except requests.exceptions.RequestException as e:
                raise NetworkError(
                    f"request failed: {e}",
                    details={"url": remote.url, "status_code": None},
                ) from e

        raise NetworkError(
            "no download attempt was made",
            details={"url": remote.url, "status_code": None},
        )

    def _stream_to_file(
        self,
        url: str,
        local_path: Path,
        on_chunk: Callable[[int, Optional[int]], None],
        cancel_token: Optional[CancellationToken] = None,
    ) -> int:
        logger.debug(f"Downloading from: {url}")
        with self.session.get(
            url, stream=True, timeout=self.timeout, verify=self.verify
        ) as response:
            if not response.ok:
                raise NetworkError(
                    f"HTTP {response.status_code}",
                    details={"url": url, "status_code": response.status_code},
                )

            content_length = response.headers.get("content-length")
            total = (
                int(content_length)
                if content_length and content_length.isdigit()
                else None
            )

            received = 0
            with atomic_binary_writer(local_path) as handle:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    if not chunk:
                        continue
                    handle.write(chunk)
                    received += len(chunk)
                    on_chunk(received, total)

        return received
