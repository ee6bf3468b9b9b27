"""
GEO remote layout constants.

Contains the fixed file names of a downloaded dataset and the helpers that
derive remote URLs from a series accession:
- normalisation/validation of GSE identifiers
- the ``GSEnnn`` directory bucket used by the GEO FTP mirror
- the ordered list of remote files fetched for every dataset
"""

import re
from typing import List, Optional

from geolens.core.exceptions import InvalidDatasetIdError
from geolens.core.schemas.download import RemoteFile, RemoteFileKind

DEFAULT_GEO_BASE_URL = "https://ftp.ncbi.nlm.nih.gov/geo/series"

SERIES_MATRIX_FILE = "series_matrix.txt.gz"
SOFT_FAMILY_FILE = "family.soft.gz"
COMPRESSION_SUFFIX = ".gz"

SERIES_ID_PATTERN = re.compile(r"^GSE(\d+)$")


def normalize_dataset_id(dataset_id: str) -> str:
    """
    Upper-case and validate a GEO series accession.

    Args:
        dataset_id: Identifier such as ``gse12345`` or ``GSE12345``

    Returns:
        str: Normalised identifier

    Raises:
        InvalidDatasetIdError: If the identifier is not ``GSE`` followed by digits
    """
    normalized = (dataset_id or "").strip().upper()
    if not SERIES_ID_PATTERN.match(normalized):
        raise InvalidDatasetIdError(
            f"Invalid GEO series id: {dataset_id!r} (expected GSE followed by digits)",
            details={"dataset_id": dataset_id},
        )
    return normalized


def series_bucket(dataset_id: str) -> str:
    """
    Directory bucket of a series on the GEO mirror.

    The last three digits are replaced with ``nnn``:
    GSE109564 -> GSE109nnn, GSE1234 -> GSE1nnn, GSE12 -> GSEnnn.
    """
    normalized = normalize_dataset_id(dataset_id)
    digits = SERIES_ID_PATTERN.match(normalized).group(1)
    return f"GSE{digits[:-3]}nnn"


def build_remote_files(
    dataset_id: str, base_url: Optional[str] = None
) -> List[RemoteFile]:
    """
    Remote files fetched for a dataset, in download order.

    Args:
        dataset_id: GEO series accession
        base_url: Root of the series tree (defaults to the NCBI mirror)

    Returns:
        list: Series Matrix archive first, SOFT family archive second
    """
    normalized = normalize_dataset_id(dataset_id)
    root = (base_url or DEFAULT_GEO_BASE_URL).rstrip("/")
    series_url = f"{root}/{series_bucket(normalized)}/{normalized}"

    return [
        RemoteFile(
            name=SERIES_MATRIX_FILE,
            url=f"{series_url}/matrix/{normalized}_series_matrix.txt.gz",
            kind=RemoteFileKind.SERIES_MATRIX,
        ),
        RemoteFile(
            name=SOFT_FAMILY_FILE,
            url=f"{series_url}/soft/{normalized}_family.soft.gz",
            kind=RemoteFileKind.SOFT_FAMILY,
        ),
    ]
