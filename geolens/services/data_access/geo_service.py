"""
GEO dataset service.

Facade tying the pipeline together: download -> decompress -> parse ->
cache -> statistics / gene queries. Every public method returns a
structured result (a pydantic model or a plain dict with an ``error`` key)
instead of raising, so callers can report "data not available" and move on.
"""

import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from geolens.config.settings import Settings, get_settings
from geolens.core.concurrency import CancellationToken, SingleFlight
from geolens.core.dataset_cache import DatasetCache
from geolens.core.exceptions import (
    ConfigurationError,
    DecompressionError,
    GeolensCoreError,
    OperationCancelledError,
    ParseError,
)
from geolens.core.schemas.documents import CachedDataset
from geolens.core.schemas.download import DownloadProgress, DownloadResult
from geolens.services.analysis.expression_service import (
    build_statistics_report,
    query_gene,
    search_in_dataset,
)
from geolens.services.data_access.geo.constants import normalize_dataset_id
from geolens.services.data_access.geo.decompressor import decompress_file
from geolens.services.data_access.geo.downloader import (
    GEOStreamDownloader,
    ProgressCallback,
)
from geolens.services.data_access.geo.matrix_parser import MatrixParser
from geolens.services.data_access.geo.soft_parser import SoftParser
from geolens.services.data_access.geo.workspace import DatasetWorkspace
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_DETAIL_LIMIT = 10


class GEOService:
    """
    Download, parse and query GEO series.

    One pipeline runs per dataset id at a time: concurrent downloads of the
    same id share a single transfer, concurrent reads share a single parse.
    Different ids never wait on each other.
    """

    def __init__(
        self,
        data_dir: Optional[Union[str, Path]] = None,
        settings: Optional[Settings] = None,
        downloader: Optional[GEOStreamDownloader] = None,
        cache: Optional[DatasetCache] = None,
    ):
        """
        Initialize the service.

        Args:
            data_dir: Dataset root (defaults to settings.DATA_DIR)
            settings: Settings instance (defaults to the process singleton)
            downloader: Preconfigured downloader, mainly for tests
            cache: Preconfigured cache; its loader should be ``load_dataset``

        Raises:
            ConfigurationError: If the settings fail validation (for example a
                non-positive row cap or cache size)
        """
        self.settings = settings or get_settings()
        if self.settings.config_error:
            raise ConfigurationError(
                f"Invalid geolens configuration: {self.settings.config_error}",
                details={"problems": self.settings.config_error},
            )
        self.data_dir = Path(data_dir or self.settings.DATA_DIR)
        self.workspace = DatasetWorkspace(self.data_dir)
        self.downloader = downloader or GEOStreamDownloader(
            data_dir=self.data_dir,
            base_url=self.settings.GEO_BASE_URL,
            chunk_size=self.settings.CHUNK_SIZE,
            timeout=self.settings.timeout,
            max_retries=self.settings.MAX_RETRIES,
            verify=self.settings.SSL_VERIFY,
        )
        self.cache = cache or DatasetCache(
            loader=self.load_dataset,
            ttl_seconds=self.settings.CACHE_TTL_SECONDS,
            max_entries=self.settings.CACHE_MAX_ENTRIES,
        )

        self._download_flight = SingleFlight()
        # Every running pipeline (download or parse) holds its own token
        self._tokens: Dict[str, List[CancellationToken]] = {}
        self._lock = threading.Lock()
        self._progress_listeners: Dict[str, List[ProgressCallback]] = {}

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, dataset_id: str) -> bool:
        """
        Ask the in-flight pipeline for ``dataset_id`` to stop.

        Partial files may stay on disk. Returns False when nothing was running.
        """
        try:
            key = normalize_dataset_id(dataset_id)
        except GeolensCoreError:
            return False
        with self._lock:
            tokens = list(self._tokens.get(key, []))
        if not tokens:
            return False
        logger.info(f"Cancelling {len(tokens)} pipeline(s) for {key}")
        for token in tokens:
            token.cancel()
        return True

    def _acquire_token(self, key: str) -> CancellationToken:
        token = CancellationToken(label=key)
        with self._lock:
            self._tokens.setdefault(key, []).append(token)
        return token

    def _release_token(self, key: str, token: CancellationToken) -> None:
        with self._lock:
            tokens = self._tokens.get(key, [])
            if token in tokens:
                tokens.remove(token)
            if not tokens:
                self._tokens.pop(key, None)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def download_dataset(
        self,
        dataset_id: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> DownloadResult:
        """
        Download and decompress the Series Matrix and SOFT files of a series.

        A call made while a download of the same id is already running joins
        it instead of starting a second transfer. The joiner's callback
        receives the events emitted from the moment it joined; earlier events
        are not replayed.

        Args:
            dataset_id: GEO series accession
            progress_callback: Receives progress events of this download

        Returns:
            DownloadResult: never raises; invalid ids, cancellation and
            per-file failures are reported in the result
        """
        try:
            key = normalize_dataset_id(dataset_id)
        except GeolensCoreError as e:
            return DownloadResult(dataset_id=str(dataset_id), errors=[e.message])

        def broadcast(event: DownloadProgress) -> None:
            with self._lock:
                listeners = list(self._progress_listeners.get(key, []))
            for listener in listeners:
                listener(event)

        def run() -> DownloadResult:
            token = self._acquire_token(key)
            try:
                return self.downloader.download_dataset(
                    key, progress_callback=broadcast, cancel_token=token
                )
            except OperationCancelledError as e:
                logger.info(f"Download of {key} cancelled")
                return DownloadResult(
                    dataset_id=key,
                    dataset_dir=str(self.workspace.dataset_dir(key)),
                    errors=[e.message],
                    cancelled=True,
                )
            finally:
                self._release_token(key, token)

        if progress_callback is not None:
            with self._lock:
                self._progress_listeners.setdefault(key, []).append(progress_callback)
        try:
            result = self._download_flight.do(key, run)
        finally:
            if progress_callback is not None:
                self._remove_listener(key, progress_callback)
        if result.success:
            # Fresh files on disk supersede any earlier parse
            self.cache.invalidate(key)
        return result

    def _remove_listener(self, key: str, callback: ProgressCallback) -> None:
        with self._lock:
            listeners = self._progress_listeners.get(key, [])
            if callback in listeners:
                listeners.remove(callback)
            if not listeners:
                self._progress_listeners.pop(key, None)

    # ------------------------------------------------------------------
    # Workspace
    # ------------------------------------------------------------------

    def is_downloaded(self, dataset_id: str) -> bool:
        try:
            return self.workspace.is_downloaded(dataset_id)
        except GeolensCoreError:
            return False

    def analyze_dataset(self, dataset_id: str) -> Dict[str, Any]:
        try:
            return self.workspace.analyze_dataset(dataset_id)
        except GeolensCoreError as e:
            return {"status": "error", "error": e.message}

    def get_dataset_summary(self, dataset_id: str) -> Dict[str, Any]:
        try:
            return self.workspace.get_dataset_summary(dataset_id)
        except GeolensCoreError as e:
            return {"status": "error", "error": e.message}

    def delete_dataset(self, dataset_id: str) -> Dict[str, Any]:
        try:
            result = self.workspace.delete_dataset(dataset_id)
        except GeolensCoreError as e:
            return {"success": False, "error": e.message}
        self.cache.invalidate(dataset_id)
        return result

    # ------------------------------------------------------------------
    # Parse pipeline
    # ------------------------------------------------------------------

    def load_dataset(self, dataset_id: str) -> CachedDataset:
        """
        Decompress and parse the files of a downloaded dataset.

        This is the loader behind the dataset cache; use ``get_dataset`` for
        the cached, non-raising variant.

        Raises:
            CacheMiss: If the dataset has not been downloaded
            ParseError: If neither file could be parsed
            OperationCancelledError: If cancelled through ``cancel``
        """
        key = normalize_dataset_id(dataset_id)
        token = self._acquire_token(key)
        try:
            files = self.workspace.require_files(key)

            matrix = None
            if files["matrix"] is not None:
                logger.info(f"Decompressing and parsing matrix for {key}...")
                matrix = self._parse_part(
                    files["matrix"],
                    MatrixParser(
                        row_cap=self.settings.ROW_CAP,
                        preview_rows=self.settings.PREVIEW_ROWS,
                        cancel_token=token,
                    ).parse_file,
                    token,
                )

            soft = None
            if files["soft"] is not None:
                logger.info(f"Decompressing and parsing SOFT for {key}...")
                soft = self._parse_part(
                    files["soft"],
                    SoftParser(
                        raw_preview_lines=self.settings.RAW_PREVIEW_LINES,
                        cancel_token=token,
                    ).parse_file,
                    token,
                )

            summary = self.workspace.get_dataset_summary(key)
        finally:
            self._release_token(key, token)

        if matrix is None and soft is None:
            raise ParseError(
                f"No parsable Series Matrix or SOFT file for {key}",
                details={"dataset_id": key},
            )

        return CachedDataset(id=key, summary=summary, matrix=matrix, soft=soft)

    def _parse_part(self, path: Path, parse: Callable, token: CancellationToken):
        try:
            if path.name.endswith(".gz"):
                path = decompress_file(
                    path, chunk_size=self.settings.CHUNK_SIZE, cancel_token=token
                )
            return parse(path)
        except (DecompressionError, ParseError) as e:
            logger.error(f"Error parsing {path.name}: {e}")
            return None

    def get_dataset(
        self, dataset_id: str
    ) -> Tuple[Optional[CachedDataset], Optional[str]]:
        """
        Cached parse result of a dataset.

        Returns:
            tuple: (dataset, None) on success, (None, error message) otherwise
        """
        try:
            return self.cache.get(normalize_dataset_id(dataset_id)), None
        except GeolensCoreError as e:
            return None, e.message

    def invalidate(self, dataset_id: str) -> bool:
        return self.cache.invalidate(dataset_id)

    def invalidate_all(self) -> None:
        self.cache.invalidate_all()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_statistics(self, dataset_id: str) -> Dict[str, Any]:
        """Per-sample statistics of the retained expression rows."""
        dataset, error = self.get_dataset(dataset_id)
        if error:
            return {"error": error}
        if dataset.matrix is None:
            return {"error": "No expression matrix available"}

        report = build_statistics_report(dataset.matrix.rows, dataset.matrix.sample_ids)
        result: Dict[str, Any] = {"dataset_id": dataset.id}
        if report is not None:
            result.update(report.as_display())
            result["report"] = report
        result["metadata"] = dataset.matrix.metadata
        return result

    def query_gene(self, dataset_id: str, gene_name: str) -> Dict[str, Any]:
        """Expression values of the first retained row matching ``gene_name``."""
        dataset, error = self.get_dataset(dataset_id)
        if error:
            return {"error": error}
        if dataset.matrix is None or not dataset.matrix.rows:
            return {"error": "No expression data available"}

        result = query_gene(
            dataset.matrix.rows, gene_name, sample_ids=dataset.matrix.sample_ids
        )
        payload = result.as_dict()
        if result.found:
            payload["samples"] = list(dataset.matrix.sample_ids)
        elif dataset.matrix.truncated:
            payload["note"] = (
                f"Only the first {len(dataset.matrix.rows)} of "
                f"{dataset.matrix.total_rows_seen} rows were searched"
            )
        return payload

    def get_sample_details(self, dataset_id: str) -> Dict[str, Any]:
        """Sample ids from the matrix merged with SOFT sample annotations."""
        dataset, error = self.get_dataset(dataset_id)
        if error:
            return {"error": error}

        details: Dict[str, Any] = {"dataset_id": dataset.id, "samples": []}
        if dataset.matrix is not None:
            details["sample_count"] = dataset.matrix.sample_count
            details["sample_names"] = list(dataset.matrix.sample_ids)

        if dataset.soft is not None:
            details["samples"] = [
                {
                    "id": sample.id,
                    "title": sample.get("Sample_title"),
                    "source": sample.get("Sample_source_name_ch1"),
                    "organism": sample.get("Sample_organism_ch1"),
                    "characteristics": dict(sample.characteristics),
                    "treatment": sample.get("Sample_treatment_protocol_ch1"),
                }
                for sample in dataset.soft.samples
            ]
        return details

    def get_full_analysis(self, dataset_id: str) -> Dict[str, Any]:
        """Overview, sample excerpt, statistics and data quality flags."""
        dataset, error = self.get_dataset(dataset_id)
        if error:
            return {"error": error}

        matrix, soft = dataset.matrix, dataset.soft
        analysis: Dict[str, Any] = {
            "dataset_id": dataset.id,
            "overview": {},
            "samples": {},
            "statistics": {},
            "data_quality": {},
        }

        if matrix is not None:
            analysis["overview"] = matrix.summary()
            report = build_statistics_report(matrix.rows, matrix.sample_ids)
            if report is not None:
                analysis["statistics"] = report.as_display()

        if soft is not None and soft.samples:
            analysis["samples"] = {
                "count": len(soft.samples),
                "details": [
                    {"id": sample.id, "characteristics": dict(sample.characteristics)}
                    for sample in soft.samples[:SAMPLE_DETAIL_LIMIT]
                ],
            }

        analysis["data_quality"] = {
            "matrix_available": matrix is not None,
            "metadata_available": soft is not None,
            "sample_info_complete": bool(soft is not None and soft.samples),
            "expression_data_parsed": bool(matrix is not None and matrix.rows),
        }
        return analysis

    def search_in_dataset(self, dataset_id: str, query: str) -> Dict[str, Any]:
        """Search gene ids in the preview window and SOFT sample text."""
        dataset, error = self.get_dataset(dataset_id)
        if error:
            return {"error": error}

        preview = dataset.matrix.preview if dataset.matrix is not None else []
        return search_in_dataset(query, preview_rows=preview, soft=dataset.soft)
