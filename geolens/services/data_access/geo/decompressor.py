"""
Gzip decompression of downloaded GEO archives.

Decompression streams in fixed-size chunks so memory use does not depend on
file size, and writes through a temp file + rename so that two workers
decompressing the same archive can never leave a half-written output.
"""

import gzip
import zlib
from pathlib import Path
from typing import Optional, Union

from geolens.core.concurrency import CancellationToken
from geolens.core.exceptions import DecompressionError
from geolens.core.file_storage import atomic_binary_writer
from geolens.services.data_access.geo.constants import COMPRESSION_SUFFIX
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 32768


def decompressed_path_for(compressed_path: Union[str, Path]) -> Path:
    """Output path for an archive: the input with its ``.gz`` suffix removed."""
    compressed_path = Path(compressed_path)
    if not compressed_path.name.endswith(COMPRESSION_SUFFIX):
        raise DecompressionError(
            f"Not a gzip archive: {compressed_path.name}",
            details={"path": str(compressed_path)},
        )
    return compressed_path.with_name(compressed_path.name[: -len(COMPRESSION_SUFFIX)])


def decompress_file(
    compressed_path: Union[str, Path],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_token: Optional[CancellationToken] = None,
) -> Path:
    """
    Decompress a ``.gz`` file next to itself.

    If the output already exists it is returned untouched.

    Args:
        compressed_path: Path to the gzip archive
        chunk_size: Bytes read per iteration
        cancel_token: Checked between chunks

    Returns:
        Path: Path to the decompressed file

    Raises:
        DecompressionError: If the archive is missing, corrupt or truncated,
            or the output cannot be written
    """
    compressed_path = Path(compressed_path)
    output_path = decompressed_path_for(compressed_path)

    if output_path.exists():
        logger.info(f"File already decompressed: {output_path}")
        return output_path

    try:
        with gzip.open(compressed_path, "rb") as source:
            with atomic_binary_writer(output_path) as target:
                while chunk := source.read(chunk_size):
                    if cancel_token is not None:
                        cancel_token.raise_if_cancelled()
                    target.write(chunk)
    except (OSError, EOFError, zlib.error) as e:
        # gzip.BadGzipFile is an OSError
        logger.error(f"Error decompressing {compressed_path}: {e}")
        raise DecompressionError(
            f"Could not decompress {compressed_path.name}: {e}",
            details={"path": str(compressed_path)},
        ) from e

    logger.info(
        f"Decompressed: {output_path.name} ({output_path.stat().st_size / 1024:.2f} KB)"
    )
    return output_path
