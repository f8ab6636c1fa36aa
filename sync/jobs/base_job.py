"""
Base class for sync jobs.

A job turns the roster snapshot and the directory's current state into an
ordered work list, then hands that list to the batch executor. Subclasses
provide the work list and the per-item processing; the base class wires in
checkpointing, error collection and the run report.
"""

import logging
from abc import ABC, abstractmethod
from functools import cached_property
from typing import Any, Dict, List, Optional, Set

from google_workspace.facade.workspace_facade import GoogleWorkspaceFacade
from roster.snapshot import RosterSnapshot

from ..batch_executor import BatchExecutor, BatchSummary
from ..config import SyncConfig
from ..diff_engine import normalize_address
from ..lifecycle import external_id_of
from ..report import SyncReport

logger = logging.getLogger(__name__)


class DirectoryAccounts:
    """Index of directory accounts by roster cross-reference and by address."""

    def __init__(self, users: List[Dict[str, Any]]):
        self.users = users
        self.by_external_id: Dict[str, Dict[str, Any]] = {}
        self.addresses: Set[str] = set()

        for user in users:
            address = normalize_address(user.get("primaryEmail", ""))
            if address:
                self.addresses.add(address)
            external_id = external_id_of(user)
            if external_id:
                if external_id in self.by_external_id:
                    logger.warning(
                        f"Member {external_id} is linked to more than one account; "
                        f"using {self.by_external_id[external_id].get('primaryEmail')}"
                    )
                    continue
                self.by_external_id[external_id] = user

    def user_for(self, member_id: Any) -> Optional[Dict[str, Any]]:
        return self.by_external_id.get(str(member_id))

    def address_for(self, member_id: Any) -> Optional[str]:
        user = self.user_for(member_id)
        return normalize_address(user["primaryEmail"]) if user and user.get("primaryEmail") else None


class BaseSyncJob(ABC):
    """
    Abstract base class for all sync jobs.

    Each job must implement:
    - build_work_items(): Return the ordered work list for this run
    - process_item(): Apply the directory changes for one item

    Attributes:
        job_name (str): Checkpoint key and report label.
    """

    job_name = "job"

    def __init__(
        self,
        facade: GoogleWorkspaceFacade,
        snapshot: RosterSnapshot,
        config: SyncConfig,
        executor: BatchExecutor,
        dry_run: bool = False,
    ):
        self.facade = facade
        self.snapshot = snapshot
        self.config = config
        self.executor = executor
        self.dry_run = dry_run
        self.report = SyncReport(job=self.job_name, dry_run=dry_run)

    @cached_property
    def accounts(self) -> DirectoryAccounts:
        users = self.facade.users.list_users(domain=self.config.domain or None)
        logger.info(f"{self.job_name}: {len(users)} directory accounts loaded")
        return DirectoryAccounts(users)

    @abstractmethod
    def build_work_items(self) -> List[Any]:
        pass

    @abstractmethod
    def process_item(self, item: Any) -> Any:
        pass

    def describe_item(self, item: Any) -> str:
        return str(item)

    def on_complete(self, summary: BatchSummary) -> None:
        """Hook run only when the whole work list has been processed."""
        pass

    def run(self) -> SyncReport:
        logger.info(f"\n{'=' * 70}")
        logger.info(f"Starting {self.job_name}{' (dry run)' if self.dry_run else ''}")
        logger.info(f"{'=' * 70}")

        work_items = self.build_work_items()
        summary = self.executor.run_batch(
            self.job_name,
            work_items,
            self.process_item,
            describe=self.describe_item,
        )

        for error in summary.errors:
            self.report.error(error.label, error.message, error.code)
        self.report.timed_out = summary.timed_out

        if summary.completed:
            self.on_complete(summary)

        self.report.log_summary()
        return self.report
