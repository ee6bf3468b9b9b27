"""
Series Matrix parser.

A Series Matrix file starts with tab separated metadata lines

    !Series_title	"A study"
    !Sample_geo_accession	"GSM1"	"GSM2"

followed by the expression table, usually framed by
``!series_matrix_table_begin`` / ``!series_matrix_table_end`` and starting
with a header row. Without the sentinels the header is found by its
``"ID_REF"`` label. Tables can be very large, so the
file is streamed and only the first ``row_cap`` data rows are kept; the rest
are counted and discarded.
"""

import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from geolens.core.concurrency import CancellationToken
from geolens.core.exceptions import ParseError
from geolens.core.schemas.documents import MatrixRow, SeriesMatrixDocument
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_ROW_CAP = 1000
DEFAULT_PREVIEW_ROWS = 100
CANCEL_CHECK_INTERVAL = 4096

TABLE_BEGIN = "!series_matrix_table_begin"
TABLE_END = "!series_matrix_table_end"
HEADER_LABEL = "ID_REF"


def unquote(field: str) -> str:
    """Strip whitespace and surrounding double quotes."""
    return field.strip().strip('"')


def split_fields(line: str) -> List[str]:
    return [unquote(field) for field in line.split("\t")]


def parse_value(field: str) -> float:
    """Parse a table cell; anything that is not a number becomes NaN."""
    try:
        return float(field)
    except ValueError:
        return math.nan


def parse_metadata_line(line: str) -> Optional[Tuple[str, str, List[str]]]:
    """
    Split ``!<Category>_<key>\\t<v1>\\t<v2>...``.

    Returns:
        tuple: (category, key, values), or None for lines that do not follow
        the grammar (no underscore, no tab, or empty key)
    """
    head, tab, rest = line[1:].partition("\t")
    if not tab:
        return None
    category, underscore, key = head.partition("_")
    if not underscore or not category or not key:
        return None
    return category, key, split_fields(rest)


class MatrixParser:
    """
    Streaming Series Matrix decoder with a bounded row buffer.

    Attributes:
        row_cap: Maximum number of data rows retained
        preview_rows: Size of the preview window exposed on the document
    """

    def __init__(
        self,
        row_cap: int = DEFAULT_ROW_CAP,
        preview_rows: int = DEFAULT_PREVIEW_ROWS,
        cancel_token: Optional[CancellationToken] = None,
    ):
        if row_cap <= 0:
            raise ValueError("row_cap must be positive")
        self.row_cap = row_cap
        self.preview_rows = preview_rows
        self.cancel_token = cancel_token

    def parse_lines(self, lines: Iterable[str]) -> SeriesMatrixDocument:
        """
        Decode Series Matrix text given as an iterable of lines.

        Args:
            lines: Lines with or without trailing newlines

        Returns:
            SeriesMatrixDocument: metadata, sample ids, retained rows and counts
        """
        document = SeriesMatrixDocument(
            row_cap=self.row_cap, preview_rows=self.preview_rows
        )
        key_occurrences: Dict[Tuple[str, str], int] = {}
        in_table = False
        header_seen = False
        malformed = 0

        for line_number, raw_line in enumerate(lines):
            if (
                self.cancel_token is not None
                and line_number % CANCEL_CHECK_INTERVAL == 0
            ):
                self.cancel_token.raise_if_cancelled()

            line = raw_line.rstrip("\r\n")
            if not line.strip():
                continue

            lowered = line.lower()
            if lowered.startswith(TABLE_BEGIN):
                in_table = True
                continue
            if lowered.startswith(TABLE_END):
                in_table = False
                continue

            if line.startswith("!"):
                parsed = parse_metadata_line(line)
                if parsed is None:
                    malformed += 1
                    continue
                self._store_metadata(document, key_occurrences, *parsed)
                continue

            fields = split_fields(line)
            # Inside the sentinels the first row is the header whatever its label
            if not header_seen and (in_table or fields[0] == HEADER_LABEL):
                document.sample_ids = fields[1:]
                header_seen = True
                in_table = True
                continue

            if not in_table:
                malformed += 1
                continue

            row = self._build_row(fields, len(document.sample_ids))
            if row is None:
                malformed += 1
                continue

            document.total_rows_seen += 1
            if len(document.rows) < self.row_cap:
                document.rows.append(row)

        if malformed:
            logger.debug(f"Skipped {malformed} malformed Series Matrix lines")
        self._check_alignment(document)
        return document

    @staticmethod
    def _store_metadata(
        document: SeriesMatrixDocument,
        key_occurrences: Dict[Tuple[str, str], int],
        category: str,
        key: str,
        values: List[str],
    ) -> None:
        # Repeated keys (e.g. several characteristics_ch1 lines) get .1, .2, ...
        seen = key_occurrences.get((category, key), 0)
        key_occurrences[(category, key)] = seen + 1
        stored_key = key if seen == 0 else f"{key}.{seen}"
        document.metadata.setdefault(category, {})[stored_key] = values

    @staticmethod
    def _build_row(fields: List[str], sample_count: int) -> Optional[MatrixRow]:
        gene_id = fields[0]
        cells = fields[1:]
        while len(cells) > sample_count and cells[-1] == "":
            cells.pop()
        if not gene_id or len(cells) > sample_count:
            return None
        values = [parse_value(cell) for cell in cells]
        values.extend([math.nan] * (sample_count - len(values)))
        return MatrixRow(gene_id=gene_id, values=values, raw=fields)

    @staticmethod
    def _check_alignment(document: SeriesMatrixDocument) -> None:
        expected = len(document.sample_ids)
        for key, values in document.metadata.get("Sample", {}).items():
            if expected and len(values) != expected:
                logger.debug(
                    f"Sample metadata '{key}' has {len(values)} values "
                    f"for {expected} samples"
                )

    def parse_file(self, file_path: Union[str, Path]) -> SeriesMatrixDocument:
        """
        Decode a decompressed Series Matrix file.

        Raises:
            ParseError: If the file cannot be opened or read
        """
        file_path = Path(file_path)
        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
                document = self.parse_lines(handle)
        except OSError as e:
            logger.error(f"Error parsing series matrix {file_path}: {e}")
            raise ParseError(
                f"Cannot read Series Matrix file {file_path.name}: {e}",
                details={"path": str(file_path)},
            ) from e

        logger.debug(
            f"Parsed {file_path.name}: {document.sample_count} samples, "
            f"{document.total_rows_seen} rows ({len(document.rows)} retained)"
        )
        return document


def parse_series_matrix(
    file_path: Union[str, Path],
    row_cap: int = DEFAULT_ROW_CAP,
    preview_rows: int = DEFAULT_PREVIEW_ROWS,
) -> SeriesMatrixDocument:
    """Convenience wrapper around ``MatrixParser().parse_file``."""
    return MatrixParser(row_cap=row_cap, preview_rows=preview_rows).parse_file(
        file_path
    )
