"""Tests for CLI parser options and exit codes."""

from types import SimpleNamespace

import pytest

import cli
import config
from fakes import FakeCaplenaClient, FakeIntercomClient, conversation_detail, destination_row


def test_sync_parser_defaults():
    args = cli.build_parser().parse_args(["sync"])
    assert args.command == "sync"
    assert args.hours == config.LOOKBACK_HOURS
    assert args.test is False
    assert args.project == config.CAPLENA_PROJECT_NAME


def test_sync_parser_accepts_flags():
    args = cli.build_parser().parse_args(["sync", "--hours", "6", "--test", "--project", "Demo"])
    assert args.hours == 6
    assert args.test is True
    assert args.project == "Demo"


def test_export_parser_accepts_limit():
    args = cli.build_parser().parse_args(["export", "--limit", "100", "--output", "out.csv"])
    assert args.limit == 100
    assert args.output == "out.csv"


def test_dedup_parser_accepts_dry_run():
    args = cli.build_parser().parse_args(["dedup", "--dry-run"])
    assert args.command == "dedup"
    assert args.dry_run is True


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


class TestMain:
    @pytest.fixture
    def caplena(self, monkeypatch, credentials):
        client = FakeCaplenaClient(
            projects=[{"id": "p1", "name": "Demo"}],
            rows=[destination_row("R1", "a", "x"), destination_row("R2", "a", "x")],
        )
        monkeypatch.setattr(cli, "CaplenaClient", SimpleNamespace(from_config=lambda: client))
        intercom = FakeIntercomClient([conversation_detail("c1", ["Pregunta"])])
        monkeypatch.setattr(cli, "IntercomClient", SimpleNamespace(from_config=lambda: intercom))
        return client

    def test_sync_success(self, caplena, capsys):
        assert cli.main(["sync", "--project", "Demo"]) == 0
        assert "Uploaded: 1 rows" in capsys.readouterr().out

    def test_sync_upload_failure_exits_1(self, caplena):
        caplena.failing_batches = {0}
        assert cli.main(["sync", "--project", "Demo"]) == 1

    def test_dedup_failed_deletions_exit_1(self, caplena):
        caplena.failing_deletes = {"R2"}
        assert cli.main(["dedup", "--project", "Demo"]) == 1

    def test_dedup_dry_run(self, caplena, capsys):
        assert cli.main(["dedup", "--project", "Demo", "--dry-run"]) == 0
        assert caplena.delete_calls == []
        assert "Row R2 duplicates R1" in capsys.readouterr().out

    def test_unknown_project_exits_1(self, caplena):
        assert cli.main(["empty", "--project", "otro"]) == 1

    def test_missing_credentials_exit_1(self, monkeypatch):
        monkeypatch.delenv("USE_SECRET_MANAGER", raising=False)
        monkeypatch.setattr(config, "INTERCOM_ACCESS_TOKEN_ENV", None)
        assert cli.main(["sync"]) == 1
