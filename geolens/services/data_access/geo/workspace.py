"""
On-disk dataset workspace.

Each dataset lives in ``<data_dir>/<id>/`` holding the downloaded archives
and their decompressed twins. This module answers what is on disk without
parsing anything.
"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from geolens.core.exceptions import CacheMiss
from geolens.services.data_access.geo.constants import (
    COMPRESSION_SUFFIX,
    SERIES_MATRIX_FILE,
    SOFT_FAMILY_FILE,
    normalize_dataset_id,
)
from geolens.utils.logger import get_logger

logger = get_logger(__name__)


class DatasetWorkspace:
    """
    Inspect and clean dataset directories under a data root.

    Attributes:
        data_dir: Root directory containing one folder per dataset
    """

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)

    def dataset_dir(self, dataset_id: str) -> Path:
        return self.data_dir / normalize_dataset_id(dataset_id)

    def is_downloaded(self, dataset_id: str) -> bool:
        """True when the dataset directory exists and is not empty."""
        dataset_dir = self.dataset_dir(dataset_id)
        return dataset_dir.is_dir() and any(dataset_dir.iterdir())

    def analyze_dataset(self, dataset_id: str) -> Dict[str, Any]:
        """
        List the files of a dataset with their sizes.

        Returns:
            dict: ``status`` is ``not_downloaded``, ``downloaded`` or ``error``
        """
        dataset_dir = self.dataset_dir(dataset_id)
        if not dataset_dir.is_dir():
            return {"status": "not_downloaded", "message": "Dataset not downloaded yet"}

        try:
            files = []
            for path in sorted(dataset_dir.iterdir()):
                if not path.is_file():
                    continue
                stats = path.stat()
                files.append(
                    {
                        "name": path.name,
                        "size": stats.st_size,
                        "size_kb": f"{stats.st_size / 1024:.2f}",
                        "size_mb": f"{stats.st_size / (1024 * 1024):.2f}",
                        "modified": datetime.fromtimestamp(stats.st_mtime),
                    }
                )
        except OSError as e:
            logger.warning(f"Could not inspect {dataset_dir}: {e}")
            return {"status": "error", "error": str(e)}

        return {
            "status": "downloaded",
            "dataset_dir": str(dataset_dir),
            "files": files,
            "total_size": sum(f["size"] for f in files),
            "file_count": len(files),
        }

    def get_dataset_summary(self, dataset_id: str) -> Dict[str, Any]:
        """
        Describe which kinds of data a downloaded dataset offers.

        Returns:
            dict: The ``analyze_dataset`` result when the dataset is not
            downloaded, otherwise location, files, total size and
            ``available_data`` entries
        """
        analysis = self.analyze_dataset(dataset_id)
        if analysis["status"] != "downloaded":
            return analysis

        available_data: List[Dict[str, str]] = []
        for file in analysis["files"]:
            if "matrix" in file["name"]:
                available_data.append(
                    {
                        "type": "Expression Matrix",
                        "description": "Sample expression data",
                        "file": file["name"],
                        "size": f"{file['size_mb']} MB",
                    }
                )
            elif "soft" in file["name"]:
                available_data.append(
                    {
                        "type": "Metadata",
                        "description": "Sample and platform information",
                        "file": file["name"],
                        "size": f"{file['size_mb']} MB",
                    }
                )

        return {
            "status": "downloaded",
            "dataset_id": normalize_dataset_id(dataset_id),
            "location": analysis["dataset_dir"],
            "files": analysis["files"],
            "total_size_mb": f"{analysis['total_size'] / (1024 * 1024):.2f}",
            "available_data": available_data,
        }

    def locate_file(self, dataset_id: str, compressed_name: str) -> Optional[Path]:
        """
        Find a dataset file, preferring the archive over a bare decompressed copy.

        Returns:
            Path: The ``.gz`` archive if present, else the decompressed file,
            else None
        """
        dataset_dir = self.dataset_dir(dataset_id)
        archive = dataset_dir / compressed_name
        if archive.is_file():
            return archive
        plain = dataset_dir / compressed_name[: -len(COMPRESSION_SUFFIX)]
        return plain if plain.is_file() else None

    def require_files(self, dataset_id: str) -> Dict[str, Optional[Path]]:
        """
        Locate the matrix and SOFT files of a downloaded dataset.

        Raises:
            CacheMiss: If the dataset has not been downloaded
        """
        if not self.is_downloaded(dataset_id):
            raise CacheMiss(
                f"Dataset {normalize_dataset_id(dataset_id)} not downloaded",
                details={"dataset_id": dataset_id},
            )
        return {
            "matrix": self.locate_file(dataset_id, SERIES_MATRIX_FILE),
            "soft": self.locate_file(dataset_id, SOFT_FAMILY_FILE),
        }

    def delete_dataset(self, dataset_id: str) -> Dict[str, Any]:
        """Remove a dataset directory and everything in it."""
        dataset_dir = self.dataset_dir(dataset_id)
        try:
            shutil.rmtree(dataset_dir)
        except FileNotFoundError:
            return {"success": True}
        except OSError as e:
            logger.error(f"Could not delete {dataset_dir}: {e}")
            return {"success": False, "error": str(e)}
        logger.info(f"Deleted dataset directory {dataset_dir}")
        return {"success": True}
