"""
Unit tests for the employee-sync command-line interface.

Database access is replaced with mocks; the commands themselves are
exercised against PostgreSQL in the integration suite.
"""

import json
from unittest import mock

import pytest

from employee_sync.cli import sync_cli
from employee_sync.config import Settings
from employee_sync.core.exceptions import BatchNotFoundError
from employee_sync.core.models import DeltaSummary, IngestResult, IngestStatus


@pytest.fixture
def parser():
    return sync_cli.build_parser()


class TestParser:
    """Tests for argument parsing"""

    def test_ingest_arguments(self, parser):
        args = parser.parse_args(["--config", "c.yaml", "ingest", "--dir", "/in", "--processed-dir", "/done"])
        assert args.command == "ingest"
        assert args.config == "c.yaml"
        assert args.dir == "/in"
        assert args.processed_dir == "/done"

    def test_summary_batch_is_optional(self, parser):
        assert parser.parse_args(["summary"]).batch_id is None
        assert parser.parse_args(["summary", "b1"]).batch_id == "b1"

    def test_batches_limit(self, parser):
        assert parser.parse_args(["batches"]).limit == 20
        assert parser.parse_args(["batches", "--limit", "5"]).limit == 5

    def test_every_command_has_a_handler(self, parser):
        for command in ("init-db", "ingest", "detect", "summary", "extract", "batches"):
            argv = [command, "b1"] if command == "detect" else [command]
            assert parser.parse_args(argv).command in sync_cli.COMMANDS
        assert parser.parse_args(["ingest-file", "x.csv"]).command in sync_cli.COMMANDS

    def test_db_flags_override_settings(self, parser):
        args = parser.parse_args(["--db-host", "cli-host", "--db-port", "6000", "batches"])
        with mock.patch.object(sync_cli, "SettingsLoader") as loader:
            loader.return_value.load.return_value = Settings()
            settings = sync_cli.load_cli_settings(args)

        assert settings.database.host == "cli-host"
        assert settings.database.port == 6000
        assert settings.database.name == "employees"


class TestMain:
    """Tests for main() exit codes"""

    def test_no_command_prints_help(self, capsys):
        assert sync_cli.main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_missing_config_file(self, tmp_path):
        assert sync_cli.main(["--config", str(tmp_path / "missing.yaml"), "batches"]) == 1

    def test_dispatches_to_command(self):
        pool = mock.MagicMock()
        batches = mock.Mock(return_value=0)
        with mock.patch.object(sync_cli.DatabaseConnectionPool, "from_settings") as from_settings, \
                mock.patch.dict(sync_cli.COMMANDS, {"batches": batches}):
            from_settings.return_value.__enter__.return_value = pool
            code = sync_cli.main(["--db-password", "x", "batches"])

        assert code == 0
        batches.assert_called_once()
        assert batches.call_args.args[2] is pool

    def test_sync_errors_return_one(self):
        failing = mock.Mock(side_effect=BatchNotFoundError("b404"))
        with mock.patch.object(sync_cli.DatabaseConnectionPool, "from_settings"), \
                mock.patch.dict(sync_cli.COMMANDS, {"detect": failing}):
            assert sync_cli.main(["--db-password", "x", "detect", "b404"]) == 1


class TestCommands:
    """Tests for individual command handlers"""

    def test_ingest_command_exit_code(self, parser, capsys):
        args = parser.parse_args(["ingest"])
        pipeline = mock.Mock()
        pipeline.is_ready.return_value = True
        pipeline.ingest_directory.return_value = [
            IngestResult(batch_id="b1", status=IngestStatus.COMPLETED, total_records=2, new_records=2),
            IngestResult(batch_id="b2", status=IngestStatus.FAILED, error_message="CsvReadError: empty"),
        ]

        with mock.patch.object(sync_cli.IngestPipeline, "from_pool", return_value=pipeline):
            code = sync_cli.ingest_command(args, Settings(), mock.Mock())

        assert code == 1
        printed = json.loads(capsys.readouterr().out)
        assert [r["status"] for r in printed] == ["COMPLETED", "FAILED"]

    def test_ingest_command_not_ready(self, parser):
        pipeline = mock.Mock()
        pipeline.is_ready.return_value = False
        with mock.patch.object(sync_cli.IngestPipeline, "from_pool", return_value=pipeline):
            assert sync_cli.ingest_command(parser.parse_args(["ingest"]), Settings(), mock.Mock()) == 1
        pipeline.ingest_directory.assert_not_called()

    def test_summary_defaults_to_latest_batch(self, parser, capsys):
        pipeline = mock.Mock()
        pipeline.delta_detector.most_recent_batch.return_value = mock.Mock(batch_id="b7")
        pipeline.delta_detector.delta_summary.return_value = DeltaSummary(batch_id="b7", new_employees=2)

        with mock.patch.object(sync_cli.IngestPipeline, "from_pool", return_value=pipeline):
            code = sync_cli.summary_command(parser.parse_args(["summary"]), Settings(), mock.Mock())

        assert code == 0
        pipeline.delta_detector.delta_summary.assert_called_once_with("b7")
        printed = json.loads(capsys.readouterr().out)
        assert printed["total_deltas"] == 2

    def test_summary_without_batches(self, parser):
        pipeline = mock.Mock()
        pipeline.delta_detector.most_recent_batch.return_value = None
        with mock.patch.object(sync_cli.IngestPipeline, "from_pool", return_value=pipeline):
            assert sync_cli.summary_command(parser.parse_args(["summary"]), Settings(), mock.Mock()) == 1
