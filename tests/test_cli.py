"""
Tests for the geolens command line interface.

Commands run through typer's CliRunner against synthetic datasets written
into a temporary data directory.
"""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from geolens.cli import app
from geolens.core.schemas.download import (
    DownloadedFile,
    DownloadResult,
    RemoteFileKind,
)
from geolens.version import __version__

runner = CliRunner()


def invoke(data_dir: Path, *args: str):
    return runner.invoke(app, ["--data-dir", str(data_dir), *args])


class TestCliCommands:
    """Test read-only commands against a downloaded dataset."""

    def test_version(self, data_dir):
        result = invoke(data_dir, "version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_status(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "status", "gse12345")
        assert result.exit_code == 0
        assert "series_matrix.txt.gz" in result.output
        assert "family.soft.gz" in result.output

    def test_status_not_downloaded(self, data_dir):
        result = invoke(data_dir, "status", "GSE999")
        assert result.exit_code == 1
        assert "not downloaded" in result.output

    def test_summary(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "summary", "GSE12345")
        assert result.exit_code == 0
        assert "Synthetic study GSE12345" in result.output
        assert "matrix_available: yes" in result.output

    def test_stats(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "stats", "GSE12345")
        assert result.exit_code == 0
        assert "GSM1001" in result.output
        assert "GSM1006" in result.output

    def test_stats_missing_dataset(self, data_dir):
        result = invoke(data_dir, "stats", "GSE999")
        assert result.exit_code == 1

    def test_gene(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "gene", "GSE12345", "gene3_at")
        assert result.exit_code == 0
        assert "GENE3_at" in result.output
        assert "GSM1001" in result.output

    def test_gene_json(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "gene", "GSE12345", "GENE3_at", "--json")
        assert result.exit_code == 0
        assert '"found": true' in result.output

    def test_gene_not_found(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "gene", "GSE12345", "EGFR")
        assert result.exit_code == 1
        assert "Gene EGFR not found" in result.output

    def test_samples(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "samples", "GSE12345")
        assert result.exit_code == 0
        assert "Metformin" in result.output
        assert "Placebo" in result.output

    def test_search(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "search", "GSE12345", "placebo")
        assert result.exit_code == 0
        assert "GSM1002" in result.output
        assert "GSM1001" not in result.output

    def test_delete(self, data_dir, downloaded_dataset):
        result = invoke(data_dir, "delete", "GSE12345", "--force")
        assert result.exit_code == 0
        assert not downloaded_dataset.exists()

    def test_delete_requires_confirmation(self, data_dir, downloaded_dataset):
        result = runner.invoke(
            app, ["--data-dir", str(data_dir), "delete", "GSE12345"], input="n\n"
        )
        assert result.exit_code == 1
        assert downloaded_dataset.exists()


class TestCliDownload:
    """Test the download command with the service mocked out."""

    @pytest.fixture
    def download_result(self, data_dir):
        return DownloadResult(
            dataset_id="GSE12345",
            dataset_dir=str(data_dir / "GSE12345"),
            success=True,
            files=[
                DownloadedFile(
                    name="family.soft.gz",
                    path=str(data_dir / "GSE12345" / "family.soft.gz"),
                    size=4096,
                    kind=RemoteFileKind.SOFT_FAMILY,
                )
            ],
            errors=["series_matrix.txt.gz: HTTP 404"],
        )

    def test_download_reports_files_and_errors(self, data_dir, download_result, mocker):
        mocker.patch(
            "geolens.cli.GEOService.download_dataset", return_value=download_result
        )
        result = invoke(data_dir, "download", "GSE12345")

        assert result.exit_code == 0
        assert "family.soft.gz (4.00 KB)" in result.output
        assert "HTTP 404" in result.output

    def test_download_failure_exit_code(self, data_dir, mocker):
        mocker.patch(
            "geolens.cli.GEOService.download_dataset",
            return_value=DownloadResult(dataset_id="GSE12345", errors=["boom"]),
        )
        result = invoke(data_dir, "download", "GSE12345")
        assert result.exit_code == 1
