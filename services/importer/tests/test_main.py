"""Tests for the click command-line interface."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from teal_importer import main
from teal_importer.exceptions import MissingAuthenticationError
from teal_importer.publisher import PublishResult
from teal_importer.sweeper import SweepResult


@pytest.fixture
def service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Replace ImportService in the CLI with a mock and keep logging untouched."""
    mock = MagicMock()
    mock.run_import = AsyncMock(return_value=PublishResult(success_count=3))
    mock.run_dedupe = AsyncMock(return_value=SweepResult(total_duplicate_records=2, records_removed=2))
    monkeypatch.setattr(main, "ImportService", MagicMock(return_value=mock))
    monkeypatch.setattr(main, "configure_logging", MagicMock())
    return mock


@pytest.fixture
def export_file(tmp_path: Path) -> Path:
    path = tmp_path / "scrobbles.csv"
    path.write_text("uts,utc_time,artist,artist_mbid,album,album_mbid,track,track_mbid\n")
    return path


def test_import_command(service: MagicMock, export_file: Path) -> None:
    """The import command runs the service and prints the counts."""
    result = CliRunner().invoke(main.cli, ["import", str(export_file), "--batch-delay", "2.0"])

    assert result.exit_code == 0, result.output
    assert "Published: 3  Failed: 0  Cancelled: False" in result.output
    service.run_import.assert_awaited_once_with(export_file, dry_run=False, batch_delay=2.0)


def test_import_command_dry_run(service: MagicMock, export_file: Path) -> None:
    result = CliRunner().invoke(main.cli, ["import", str(export_file), "--dry-run"])

    assert result.exit_code == 0, result.output
    service.run_import.assert_awaited_once_with(export_file, dry_run=True, batch_delay=None)


def test_import_command_failures_exit_nonzero(service: MagicMock, export_file: Path) -> None:
    """Any failed record makes the command exit with status 1."""
    service.run_import.return_value = PublishResult(success_count=1, error_count=2)

    result = CliRunner().invoke(main.cli, ["import", str(export_file)])

    assert result.exit_code == 1


def test_import_command_cancelled_suggests_resume(service: MagicMock, export_file: Path) -> None:
    service.run_import.return_value = PublishResult(success_count=1, cancelled=True)

    result = CliRunner().invoke(main.cli, ["import", str(export_file)])

    assert result.exit_code == 0
    assert "Run the same command again to resume." in result.output


def test_import_command_importer_error(service: MagicMock, export_file: Path) -> None:
    """Importer errors become a clean CLI error."""
    service.run_import.side_effect = MissingAuthenticationError("ATPROTO_APP_PASSWORD must be set")

    result = CliRunner().invoke(main.cli, ["import", str(export_file)])

    assert result.exit_code == 1
    assert "ATPROTO_APP_PASSWORD must be set" in result.output


def test_import_command_missing_path(service: MagicMock, tmp_path: Path) -> None:
    """A non-existent export path is rejected before anything runs."""
    result = CliRunner().invoke(main.cli, ["import", str(tmp_path / "missing.csv")])

    assert result.exit_code == 2
    service.run_import.assert_not_awaited()


def test_dedupe_command(service: MagicMock) -> None:
    result = CliRunner().invoke(main.cli, ["dedupe", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "Duplicates: 2  Removed: 2" in result.output
    service.run_dedupe.assert_awaited_once_with(dry_run=True)


def test_invalid_configuration(service: MagicMock) -> None:
    """Bad environment values are reported instead of raising."""
    result = CliRunner().invoke(main.cli, ["dedupe"], env={"DAILY_WRITE_LIMIT": "0"})

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output
