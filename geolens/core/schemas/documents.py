"""
Parsed GEO document structures.

Plain dataclasses holding what the SOFT and Series Matrix parsers produce,
plus the derived statistics and gene lookup results. GEO metadata has no
fixed schema, so all metadata is kept as string-keyed mappings.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd

# category -> key -> one value per sample, ordered like sample_ids
MatrixMetadata = Dict[str, Dict[str, List[str]]]


@dataclass
class ParsedPlatform:
    """A ``^PLATFORM`` block of a SOFT file."""

    id: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class ParsedSeries:
    """The ``^SERIES`` block of a SOFT file."""

    id: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)


@dataclass
class ParsedSample:
    """A ``^SAMPLE`` block with its characteristics split out."""

    id: Optional[str] = None
    characteristics: Dict[str, str] = field(default_factory=dict)
    other_fields: Dict[str, str] = field(default_factory=dict)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.other_fields.get(key, default)


@dataclass
class SoftDocument:
    """
    Result of parsing a SOFT family file.

    ``platform`` is the first platform block; files describing more than one
    platform keep every block in ``platforms``.
    """

    platform: ParsedPlatform = field(default_factory=ParsedPlatform)
    series: ParsedSeries = field(default_factory=ParsedSeries)
    samples: List[ParsedSample] = field(default_factory=list)
    raw_preview: List[str] = field(default_factory=list)
    platforms: List[ParsedPlatform] = field(default_factory=list)

    def find_sample(self, sample_id: str) -> Optional[ParsedSample]:
        for sample in self.samples:
            if sample.id == sample_id:
                return sample
        return None


@dataclass
class MatrixRow:
    """
    One data row of a Series Matrix table.

    Attributes:
        gene_id: Probe or gene identifier (first column)
        values: Parsed values aligned to the document's sample_ids, NaN when
            a field is not a number
        raw: All fields of the row as read, gene_id included
    """

    gene_id: str
    values: List[float]
    raw: List[str]


@dataclass
class SeriesMatrixDocument:
    """
    Result of parsing a Series Matrix file.

    Only the first ``row_cap`` data rows are retained; ``total_rows_seen``
    counts every data row in the file.
    """

    metadata: MatrixMetadata = field(default_factory=dict)
    sample_ids: List[str] = field(default_factory=list)
    rows: List[MatrixRow] = field(default_factory=list)
    total_rows_seen: int = 0
    row_cap: int = 1000
    preview_rows: int = 100

    @property
    def truncated(self) -> bool:
        return self.total_rows_seen > self.row_cap

    @property
    def sample_count(self) -> int:
        return len(self.sample_ids)

    @property
    def preview(self) -> List[MatrixRow]:
        """The first ``preview_rows`` retained rows."""
        return self.rows[: self.preview_rows]

    def first_metadata_value(self, category: str, key: str) -> Optional[str]:
        values = self.metadata.get(category, {}).get(key)
        return values[0] if values else None

    def summary(self) -> Dict[str, Any]:
        """Headline facts about the matrix: counts plus title/organism/platform."""
        return {
            "total_samples": self.sample_count,
            "total_genes": self.total_rows_seen,
            "retained_genes": len(self.rows),
            "has_more_data": self.truncated,
            "title": self.first_metadata_value("Series", "title"),
            "organism": self.first_metadata_value("Sample", "organism_ch1"),
            "platform": self.first_metadata_value("Series", "platform_id"),
        }

    def to_dataframe(self) -> pd.DataFrame:
        """Retained rows as a genes x samples frame (NaN for invalid values)."""
        return pd.DataFrame(
            [row.values for row in self.rows],
            index=pd.Index([row.gene_id for row in self.rows], name="ID_REF"),
            columns=self.sample_ids,
            dtype=float,
        )

    def sample_metadata_frame(self) -> pd.DataFrame:
        """``Sample`` metadata as a samples x keys frame.

        Keys whose value count does not match the sample count are left out.
        """
        sample_meta = self.metadata.get("Sample", {})
        columns = {
            key: values
            for key, values in sample_meta.items()
            if len(values) == len(self.sample_ids)
        }
        return pd.DataFrame(columns, index=pd.Index(self.sample_ids, name="sample"))


@dataclass
class SampleStatistic:
    """
    Descriptive statistics of one sample column.

    Values are kept unrounded; ``as_display()`` formats them to two decimals.
    """

    sample_name: str
    valid_count: int
    mean: float
    median: float
    min: float
    max: float

    @property
    def range(self) -> float:
        return self.max - self.min

    def as_display(self) -> Dict[str, Any]:
        return {
            "name": self.sample_name,
            "value_count": self.valid_count,
            "mean": f"{self.mean:.2f}",
            "median": f"{self.median:.2f}",
            "min": f"{self.min:.2f}",
            "max": f"{self.max:.2f}",
            "range": f"{self.range:.2f}",
        }


@dataclass
class StatisticsReport:
    """Statistics for every sample with at least one valid value."""

    sample_count: int
    gene_count: int
    samples: List[SampleStatistic] = field(default_factory=list)

    def as_display(self) -> Dict[str, Any]:
        return {
            "sample_count": self.sample_count,
            "gene_count": self.gene_count,
            "samples": [stat.as_display() for stat in self.samples],
        }


@dataclass
class GeneQueryResult:
    """Outcome of looking up one gene in the retained rows."""

    found: bool
    searched: str
    gene_id: Optional[str] = None
    values: List[float] = field(default_factory=list)
    raw_row: List[str] = field(default_factory=list)
    expression_by_sample: Dict[str, float] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        if not self.found:
            return {"found": False, "searched": self.searched}
        return {
            "found": True,
            "searched": self.searched,
            "gene_id": self.gene_id,
            "values": [None if math.isnan(v) else v for v in self.values],
            "raw_row": self.raw_row,
            "expression_by_sample": {
                sample: (None if math.isnan(v) else v)
                for sample, v in self.expression_by_sample.items()
            },
        }


@dataclass
class CachedDataset:
    """Full parse result of one dataset as held by the dataset cache."""

    id: str
    summary: Dict[str, Any]
    matrix: Optional[SeriesMatrixDocument]
    soft: Optional[SoftDocument]
    parsed_at: datetime = field(default_factory=datetime.now)
