#!/usr/bin/env python3
"""
Roster Sync

Reconciles the membership roster into the Google Workspace directory:
creates and updates member accounts, walks departed members through the
suspend/archive/delete lifecycle and keeps derived groups in step with the
roster. Designed to be invoked on a schedule; each invocation stops before
its time quota and the next one resumes from the saved checkpoint.
"""

import argparse
import functools
import logging
import os
import sys
from dataclasses import replace
from typing import List, Sequence

from google.auth.exceptions import GoogleAuthError

from google_drive.sheets.sheets_api import GoogleSheetsAdapter, SheetsConfigStore
from google_workspace.exceptions import FatalDirectoryError
from google_workspace.facade.workspace_facade import GoogleWorkspaceFacade
from roster.adapters.csv_roster_adapter import CsvRosterAdapter
from roster.exceptions import SourceUnavailable
from sync.config import SyncConfig
from sync.exceptions import ConfigurationError
from sync.group_rules import GroupDefinition
from sync.report import ReportNotifier, SyncReport
from sync.runner import JOB_ORDER, SyncRunner
from sync.storage import StorageError, create_store

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ITEM_ERRORS = 1
EXIT_ABORTED = 2

COMMAND_JOBS = {
    "members": ("members",),
    "groups": ("groups",),
    "lifecycle": ("lifecycle",),
    "all": JOB_ORDER,
}


def handle_keyboard_interrupt(exit_message="Sync interrupted by user"):
    """Decorator to handle KeyboardInterrupt and exit gracefully."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                logger.info(f"\n{exit_message}")
                sys.exit(0)

        return wrapper

    return decorator


def setup_logging(log_file, log_level):
    level = getattr(logging, log_level)
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.insert(0, logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    if log_file:
        logger.info(f"Logging to file: {log_file}")


def prompt_for_deletion(addresses: Sequence[str]) -> bool:
    """Ask the operator to type DELETE before any account is removed."""
    print(f"\n⚠️  {len(addresses)} archived account(s) are due for PERMANENT deletion:")
    for address in addresses[:20]:
        print(f"   - {address}")
    if len(addresses) > 20:
        print(f"   ... and {len(addresses) - 20} more")

    try:
        answer = input("\nType DELETE to confirm: ")
    except EOFError:
        return False
    return answer.strip() == "DELETE"


def build_parser():
    parser = argparse.ArgumentParser(
        description="Roster Sync - reconcile the membership roster into Google Workspace"
    )
    parser.add_argument(
        "command",
        choices=sorted(COMMAND_JOBS),
        help="Which job(s) to run; 'all' runs members, lifecycle, then groups",
    )
    parser.add_argument("--dry-run", action="store_true", help="Log every change without applying it")
    parser.add_argument(
        "--full-sync",
        action="store_true",
        help="Ignore roster fingerprints and re-check every active member",
    )
    parser.add_argument(
        "--confirm-delete",
        action="store_true",
        help="Prompt for confirmation and permanently delete eligible archived accounts "
        "(also requires SYNC_DELETE_ENABLED)",
    )
    parser.add_argument("--roster-dir", help="Directory of roster CSV exports (default: ROSTER_DIR env var)")
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    parser.add_argument(
        "--log",
        nargs="?",
        const="roster_sync.log",
        help="Enable logging to file (default: roster_sync.log)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser


def load_remote_configuration(config: SyncConfig):
    """Apply spreadsheet thresholds and read group definitions, if a spreadsheet is configured."""
    if not config.config_spreadsheet_id:
        logger.info("No configuration spreadsheet; using environment thresholds and no group definitions")
        return config, []

    adapter = GoogleSheetsAdapter.from_service_account(
        config.service_account_file, config.admin_subject, retry_policy=config.retry_policy()
    )
    sheets = SheetsConfigStore(adapter, config.config_spreadsheet_id)
    config = config.with_thresholds(sheets.load_thresholds())
    definitions: List[GroupDefinition] = sheets.load_group_definitions()
    return config, definitions


def exit_code_for(reports: Sequence[SyncReport]) -> int:
    return EXIT_ITEM_ERRORS if any(r.counts.get("errored") for r in reports) else EXIT_OK


@handle_keyboard_interrupt("Sync interrupted by user")
def main(argv=None):
    """Main entry point for roster sync."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log, args.log_level)

    if args.dry_run:
        logger.info("*** DRY RUN MODE - No changes will be made ***")

    try:
        logger.info("Loading configuration...")
        config = SyncConfig.from_env(args.env_file)
        if args.roster_dir:
            config = replace(config, roster_dir=args.roster_dir)

        missing = [
            name
            for name, value in (
                ("WORKSPACE_DOMAIN", config.domain),
                ("ROSTER_DIR", config.roster_dir),
                ("GOOGLE_SERVICE_ACCOUNT_FILE", config.service_account_file),
                ("WORKSPACE_ADMIN_SUBJECT", config.admin_subject),
            )
            if not value
        ]
        if missing:
            logger.error(f"Missing required configuration: {', '.join(missing)}")
            return EXIT_ABORTED

        config, definitions = load_remote_configuration(config)
        logger.info(f"Settings: {config.describe()}")

        facade = GoogleWorkspaceFacade.from_service_account(
            config.service_account_file,
            config.admin_subject,
            config.domain,
            customer_id=config.customer_id,
            retry_policy=config.retry_policy(),
            page_size=config.max_batch_size,
            dry_run=args.dry_run,
        )
        store = create_store(config.checkpoint_path, config.database_url)

        runner = SyncRunner(
            config,
            facade,
            CsvRosterAdapter(config.roster_dir),
            store,
            group_definitions=definitions,
            dry_run=args.dry_run,
        )
        confirm = prompt_for_deletion if args.confirm_delete else None
        reports = runner.run(COMMAND_JOBS[args.command], full_sync=args.full_sync, confirm_deletions=confirm)

    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_ABORTED
    except SourceUnavailable as e:
        logger.error(f"❌ Roster unavailable, nothing was changed: {e}")
        return EXIT_ABORTED
    except FatalDirectoryError as e:
        logger.error(f"❌ Directory rejected our credentials [{e.code}]: {e}")
        return EXIT_ABORTED
    except GoogleAuthError as e:
        logger.error(f"❌ Service account credentials could not be used: {e}")
        return EXIT_ABORTED
    except StorageError as e:
        logger.error(f"❌ State store error: {e}")
        return EXIT_ABORTED

    if config.report_webhook:
        notifier = ReportNotifier(config.report_webhook)
        for report in reports:
            notifier.send(report)

    code = exit_code_for(reports)
    logger.info("✅ Sync finished" if code == EXIT_OK else "⚠️  Sync finished with item errors")
    return code


if __name__ == "__main__":
    sys.exit(main())
