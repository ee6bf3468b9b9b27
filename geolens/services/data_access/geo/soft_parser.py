"""
SOFT format parser.

SOFT (Simple Omnibus Format in Text) files are line oriented:

    ^SERIES = GSE12345
    !Series_title = A study
    ^SAMPLE = GSM1
    !Sample_characteristics_ch1 = drug: Metformin

``^`` lines open a section, ``!`` lines carry ``key = value`` attributes of
the open section, everything else (sample data tables, comments) is ignored.
The file is consumed line by line and never loaded whole.
"""

from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from geolens.core.concurrency import CancellationToken
from geolens.core.exceptions import ParseError
from geolens.core.schemas.documents import (
    ParsedPlatform,
    ParsedSample,
    ParsedSeries,
    SoftDocument,
)
from geolens.utils.logger import get_logger

logger = get_logger(__name__)

RAW_PREVIEW_LINES = 100
CANCEL_CHECK_INTERVAL = 4096


class SoftSection(Enum):
    """Section a SOFT attribute line belongs to."""

    NONE = "none"
    PLATFORM = "platform"
    SAMPLE = "sample"
    SERIES = "series"


_SECTION_KEYWORDS = {
    "PLATFORM": SoftSection.PLATFORM,
    "SAMPLE": SoftSection.SAMPLE,
    "SERIES": SoftSection.SERIES,
}


def parse_section_marker(line: str) -> Tuple[SoftSection, Optional[str]]:
    """
    Transition function for ``^`` lines.

    Args:
        line: A line starting with ``^``

    Returns:
        tuple: (new section, entity id or None). Unknown keywords such as
        ``^DATABASE`` close the current section.
    """
    keyword, _, entity_id = line[1:].partition("=")
    section = _SECTION_KEYWORDS.get(keyword.strip().upper(), SoftSection.NONE)
    return section, entity_id.strip() or None


def parse_attribute(line: str) -> Optional[Tuple[str, str]]:
    """
    Split a ``!key = value`` line on its first ``=``.

    Returns:
        tuple: (key, value), or None when the line has no ``=``
    """
    key, sep, value = line[1:].partition("=")
    if not sep:
        return None
    key = key.strip()
    if not key:
        return None
    return key, value.strip()


def parse_characteristic(value: str) -> Optional[Tuple[str, str]]:
    """
    Split a characteristics value ``label: content`` on its first colon.

    Returns:
        tuple: (label, content), or None when there is no colon or no label
    """
    label, sep, content = value.partition(":")
    label = label.strip()
    if not sep or not label:
        return None
    return label, content.strip()


class SoftParser:
    """
    Stateful SOFT decoder.

    The parser holds an explicit ``section`` state updated by
    ``parse_section_marker``; attribute lines are routed to the record of
    the open section.
    """

    def __init__(
        self,
        raw_preview_lines: int = RAW_PREVIEW_LINES,
        cancel_token: Optional[CancellationToken] = None,
    ):
        self.raw_preview_lines = raw_preview_lines
        self.cancel_token = cancel_token

    def parse_lines(self, lines: Iterable[str]) -> SoftDocument:
        """
        Decode SOFT text given as an iterable of lines.

        Args:
            lines: Lines with or without trailing newlines

        Returns:
            SoftDocument: platform, series, samples and raw preview
        """
        document = SoftDocument()
        section = SoftSection.NONE
        platform: Optional[ParsedPlatform] = None
        sample: Optional[ParsedSample] = None
        dropped_characteristics = 0

        for line_number, raw_line in enumerate(lines):
            if (
                self.cancel_token is not None
                and line_number % CANCEL_CHECK_INTERVAL == 0
            ):
                self.cancel_token.raise_if_cancelled()

            line = raw_line.rstrip("\r\n")
            if len(document.raw_preview) < self.raw_preview_lines:
                document.raw_preview.append(line)

            if line.startswith("^"):
                section, entity_id = parse_section_marker(line)
                if section is SoftSection.PLATFORM:
                    platform = ParsedPlatform(id=entity_id)
                    document.platforms.append(platform)
                    if len(document.platforms) == 1:
                        document.platform = platform
                elif section is SoftSection.SAMPLE:
                    sample = ParsedSample(id=entity_id)
                    document.samples.append(sample)
                elif section is SoftSection.SERIES:
                    document.series.id = entity_id
                continue

            if not line.startswith("!") or section is SoftSection.NONE:
                continue

            attribute = parse_attribute(line)
            if attribute is None:
                continue
            key, value = attribute

            if section is SoftSection.SAMPLE:
                if "characteristics" in key:
                    characteristic = parse_characteristic(value)
                    if characteristic is None:
                        dropped_characteristics += 1
                        continue
                    label, content = characteristic
                    sample.characteristics[label] = content
                else:
                    sample.other_fields[key] = value
            elif section is SoftSection.PLATFORM:
                platform.fields[key] = value
            elif section is SoftSection.SERIES:
                document.series.fields[key] = value

        if dropped_characteristics:
            logger.debug(
                f"Dropped {dropped_characteristics} characteristics lines without a label"
            )
        return document

    def parse_file(self, file_path: Union[str, Path]) -> SoftDocument:
        """
        Decode a decompressed SOFT file.

        Raises:
            ParseError: If the file cannot be opened or read
        """
        file_path = Path(file_path)
        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as handle:
                document = self.parse_lines(handle)
        except OSError as e:
            logger.error(f"Error parsing SOFT file {file_path}: {e}")
            raise ParseError(
                f"Cannot read SOFT file {file_path.name}: {e}",
                details={"path": str(file_path)},
            ) from e

        logger.debug(
            f"Parsed SOFT {file_path.name}: {len(document.samples)} samples, "
            f"{len(document.platforms)} platforms"
        )
        return document


def parse_soft_file(
    file_path: Union[str, Path], raw_preview_lines: int = RAW_PREVIEW_LINES
) -> SoftDocument:
    """Convenience wrapper around ``SoftParser().parse_file``."""
    return SoftParser(raw_preview_lines=raw_preview_lines).parse_file(file_path)
