"""
Unit tests for the Series Matrix parser.

Covers the metadata grammar, header/sample ordering, the bounded row
buffer and tolerance to malformed lines.
"""

import math
from pathlib import Path

import pytest

from geolens.core.exceptions import ParseError
from geolens.services.data_access.geo.matrix_parser import (
    MatrixParser,
    parse_metadata_line,
    parse_series_matrix,
    split_fields,
)
from tests.mock_data import (
    MEDIUM_DATASET_CONFIG,
    MockDataConfig,
    generate_series_matrix_text,
)


def _table(n_rows: int, samples=("GSM1", "GSM2")):
    header = "\t".join(f'"{s}"' for s in ("ID_REF",) + tuple(samples))
    lines = ["!series_matrix_table_begin", header]
    for i in range(n_rows):
        lines.append(f'"G{i}"\t' + "\t".join(str(i + j) for j in range(len(samples))))
    lines.append("!series_matrix_table_end")
    return lines


class TestMetadataGrammar:
    """Test metadata line splitting."""

    def test_category_key_and_values(self):
        assert parse_metadata_line('!Sample_title\t"A"\t"B"') == (
            "Sample",
            "title",
            ["A", "B"],
        )

    def test_key_keeps_later_underscores(self):
        category, key, _ = parse_metadata_line('!Sample_organism_ch1\t"Homo sapiens"')
        assert (category, key) == ("Sample", "organism_ch1")

    def test_lines_without_tab_are_rejected(self):
        assert parse_metadata_line("!Series_title") is None

    def test_split_fields_unquotes(self):
        assert split_fields('"ID_REF"\t"GSM1"\t2.5') == ["ID_REF", "GSM1", "2.5"]


class TestMatrixParser:
    """Test document decoding."""

    def test_header_defines_sample_order(self):
        document = MatrixParser().parse_lines(_table(2, samples=("GSM9", "GSM3", "GSM5")))
        assert document.sample_ids == ["GSM9", "GSM3", "GSM5"]

    def test_rows_align_values_to_samples(self):
        document = MatrixParser().parse_lines(
            ['"ID_REF"\t"GSM1"\t"GSM2"', '"GENE1"\t1.0\t3.0']
        )
        assert len(document.rows) == 1
        row = document.rows[0]
        assert row.gene_id == "GENE1"
        assert row.values == [1.0, 3.0]
        assert row.raw == ["GENE1", "1.0", "3.0"]

    def test_header_without_sentinels_is_recognized(self):
        document = MatrixParser().parse_lines(
            ['!Series_title\t"x"', "ID_REF\tGSM1", "P1\t4"]
        )
        assert document.sample_ids == ["GSM1"]
        assert document.total_rows_seen == 1

    def test_metadata_grouped_by_category_and_key(self):
        text = generate_series_matrix_text(MEDIUM_DATASET_CONFIG)
        document = MatrixParser().parse_lines(text.splitlines())

        assert document.metadata["Series"]["title"] == ["Synthetic study GSE12345"]
        assert document.metadata["Sample"]["geo_accession"] == document.sample_ids
        assert len(document.metadata["Sample"]["title"]) == len(document.sample_ids)

    def test_repeated_metadata_keys_are_kept(self):
        text = generate_series_matrix_text(MEDIUM_DATASET_CONFIG)
        document = MatrixParser().parse_lines(text.splitlines())

        sample_meta = document.metadata["Sample"]
        assert sample_meta["characteristics_ch1"][0] == "drug: Metformin"
        assert sample_meta["characteristics_ch1.1"][0] == "replicate: 1"

    def test_row_cap_bounds_retained_rows(self):
        document = MatrixParser(row_cap=10).parse_lines(_table(25))

        assert document.total_rows_seen == 25
        assert document.truncated is True
        assert len(document.rows) == 10
        assert document.rows[-1].gene_id == "G9"

    def test_not_truncated_at_exact_cap(self):
        document = MatrixParser(row_cap=10).parse_lines(_table(10))
        assert document.total_rows_seen == 10
        assert document.truncated is False

    def test_large_file_respects_default_cap(self):
        config = MockDataConfig(sample_count=3, gene_count=1500)
        text = generate_series_matrix_text(config)
        document = MatrixParser().parse_lines(text.splitlines())

        assert document.total_rows_seen == 1500
        assert len(document.rows) == 1000
        assert document.truncated is True

    def test_preview_is_view_over_retained_rows(self):
        document = MatrixParser(row_cap=50, preview_rows=5).parse_lines(_table(60))
        assert len(document.preview) == 5
        assert document.preview[0] is document.rows[0]

    def test_non_numeric_cells_become_nan(self):
        document = MatrixParser().parse_lines(
            ['"ID_REF"\t"A"\t"B"', '"P1"\tnull\t2']
        )
        values = document.rows[0].values
        assert math.isnan(values[0])
        assert values[1] == 2.0

    def test_short_rows_padded_long_rows_skipped(self):
        document = MatrixParser().parse_lines(
            ['"ID_REF"\t"A"\t"B"', '"P1"\t1', '"P2"\t1\t2\t3', '"P3"\t1\t2\t']
        )
        assert [row.gene_id for row in document.rows] == ["P1", "P3"]
        assert math.isnan(document.rows[0].values[1])
        assert document.total_rows_seen == 2

    def test_rows_before_header_are_skipped(self):
        document = MatrixParser().parse_lines(
            ['"P0"\t1', '"ID_REF"\t"A"', '"P1"\t1']
        )
        assert [row.gene_id for row in document.rows] == ["P1"]
        assert document.total_rows_seen == 1

    def test_first_row_inside_sentinels_is_header(self):
        document = MatrixParser().parse_lines(
            [
                "!series_matrix_table_begin",
                '"ID"\t"GSM1"\t"GSM2"',
                "G1\t1.0\t2.0",
                "!series_matrix_table_end",
            ]
        )
        assert document.sample_ids == ["GSM1", "GSM2"]
        assert document.total_rows_seen == 1
        assert document.rows[0].gene_id == "G1"
        assert document.rows[0].values == [1.0, 2.0]

    def test_blank_and_trailing_lines_ignored(self):
        lines = _table(3) + ["", "   "]
        document = MatrixParser().parse_lines(lines)
        assert document.total_rows_seen == 3

    def test_lines_after_table_end_are_not_rows(self):
        lines = _table(2) + ['"STRAY"\t1\t2']
        document = MatrixParser().parse_lines(lines)
        assert document.total_rows_seen == 2

    def test_summary_fields(self):
        text = generate_series_matrix_text(MEDIUM_DATASET_CONFIG)
        summary = MatrixParser().parse_lines(text.splitlines()).summary()

        assert summary["title"] == "Synthetic study GSE12345"
        assert summary["platform"] == "GPL570"
        assert summary["organism"] == "Homo sapiens"
        assert summary["total_samples"] == MEDIUM_DATASET_CONFIG.sample_count
        assert summary["has_more_data"] is False

    def test_dataframe_views(self):
        text = generate_series_matrix_text(MEDIUM_DATASET_CONFIG)
        document = MatrixParser().parse_lines(text.splitlines())

        frame = document.to_dataframe()
        assert frame.shape == (MEDIUM_DATASET_CONFIG.gene_count, MEDIUM_DATASET_CONFIG.sample_count)
        assert list(frame.columns) == document.sample_ids

        meta = document.sample_metadata_frame()
        assert list(meta.index) == document.sample_ids
        assert meta.loc[document.sample_ids[1], "characteristics_ch1"] == "drug: Placebo"

    def test_invalid_row_cap(self):
        with pytest.raises(ValueError):
            MatrixParser(row_cap=0)


class TestMatrixParserFiles:
    """Test file-level entry points."""

    def test_parse_file(self, temp_workspace: Path):
        path = temp_workspace / "series_matrix.txt"
        path.write_text("\n".join(_table(5)) + "\n", encoding="utf-8")

        document = parse_series_matrix(path, row_cap=3)
        assert document.total_rows_seen == 5
        assert len(document.rows) == 3

    def test_unreadable_file_raises_parse_error(self, temp_workspace: Path):
        with pytest.raises(ParseError):
            MatrixParser().parse_file(temp_workspace / "nope.txt")
