"""
Unit tests for the roster-sync command line entry point.
"""

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError

from google_drive.sheets.sheets_api import GoogleSheetsAdapter
from roster.exceptions import SourceUnavailable
from scripts.sync import roster_sync
from sync.config import SyncConfig
from sync.report import SyncReport

READY = SyncConfig(
    domain="example.org",
    roster_dir="/data/roster",
    service_account_file="/keys/sa.json",
    admin_subject="admin@example.org",
)


@pytest.fixture
def wiring():
    with patch.object(roster_sync.SyncConfig, "from_env", return_value=READY), patch.object(
        roster_sync.GoogleWorkspaceFacade, "from_service_account"
    ) as facade_factory, patch.object(roster_sync, "SyncRunner") as runner_cls, patch.object(
        roster_sync, "create_store"
    ):
        runner_cls.return_value.run.return_value = [SyncReport(job="member-sync")]
        yield facade_factory, runner_cls


class TestMain:
    def test_successful_run(self, wiring):
        facade_factory, runner_cls = wiring

        assert roster_sync.main(["all", "--dry-run"]) == roster_sync.EXIT_OK

        assert facade_factory.call_args.kwargs["dry_run"] is True
        run_kwargs = runner_cls.return_value.run.call_args
        assert tuple(run_kwargs.args[0]) == ("members", "lifecycle", "groups")
        assert run_kwargs.kwargs["confirm_deletions"] is None

    def test_confirm_delete_wires_prompt(self, wiring):
        _, runner_cls = wiring

        roster_sync.main(["lifecycle", "--confirm-delete"])

        run_kwargs = runner_cls.return_value.run.call_args
        assert run_kwargs.args[0] == ("lifecycle",)
        assert run_kwargs.kwargs["confirm_deletions"] is roster_sync.prompt_for_deletion

    def test_item_errors_give_nonzero_exit(self, wiring):
        _, runner_cls = wiring
        report = SyncReport(job="group-sync")
        report.error("a@example.org", "boom", "400")
        runner_cls.return_value.run.return_value = [report]

        assert roster_sync.main(["groups"]) == roster_sync.EXIT_ITEM_ERRORS

    def test_unavailable_roster_aborts(self, wiring):
        _, runner_cls = wiring
        runner_cls.return_value.run.side_effect = SourceUnavailable("no export")

        assert roster_sync.main(["members"]) == roster_sync.EXIT_ABORTED

    def test_missing_configuration_aborts(self):
        with patch.object(roster_sync.SyncConfig, "from_env", return_value=SyncConfig()):
            assert roster_sync.main(["members"]) == roster_sync.EXIT_ABORTED

    def test_webhook_receives_reports(self, wiring):
        ready = replace(READY, report_webhook="https://hooks.example.org/sync")
        with patch.object(roster_sync.SyncConfig, "from_env", return_value=ready), patch.object(
            roster_sync, "ReportNotifier"
        ) as notifier_cls:
            roster_sync.main(["members"])

        notifier_cls.return_value.send.assert_called_once()

    def test_rejected_sheet_credentials_abort(self, wiring):
        _, runner_cls = wiring
        service = MagicMock()
        service.spreadsheets.return_value.values.return_value.get.return_value.execute.side_effect = RefreshError(
            "invalid_grant"
        )
        with_sheet = replace(READY, config_spreadsheet_id="sheet-123")
        with patch.object(roster_sync.SyncConfig, "from_env", return_value=with_sheet), patch.object(
            roster_sync.GoogleSheetsAdapter, "from_service_account", return_value=GoogleSheetsAdapter(service)
        ):
            assert roster_sync.main(["all"]) == roster_sync.EXIT_ABORTED

        runner_cls.return_value.run.assert_not_called()

    def test_unusable_service_account_aborts(self, wiring):
        facade_factory, runner_cls = wiring
        facade_factory.side_effect = DefaultCredentialsError("malformed key file")

        assert roster_sync.main(["members"]) == roster_sync.EXIT_ABORTED
        runner_cls.return_value.run.assert_not_called()


class TestPromptForDeletion:
    @pytest.mark.parametrize("answer, expected", [("DELETE", True), ("delete", False), ("", False)])
    def test_requires_typed_confirmation(self, answer, expected):
        with patch("builtins.input", return_value=answer):
            assert roster_sync.prompt_for_deletion(["old@example.org"]) is expected

    def test_closed_stdin_declines(self):
        with patch("builtins.input", side_effect=EOFError):
            assert roster_sync.prompt_for_deletion(["old@example.org"]) is False


def test_parser_rejects_unknown_command():
    with pytest.raises(SystemExit):
        roster_sync.build_parser().parse_args(["payroll"])
