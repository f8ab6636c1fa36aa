"""
Invocation runner.

Loads the roster snapshot once, verifies directory access, then runs the
requested jobs in order under a single shared time quota. Each job borrows
the same snapshot; nothing is re-read mid-run.
"""

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence

from google_workspace.facade.workspace_facade import GoogleWorkspaceFacade
from roster.adapters.base_roster_adapter import BaseRosterAdapter
from roster.snapshot import RosterSnapshot, load_snapshot

from .batch_executor import BatchExecutor
from .change_cache import ChangeDetectionCache
from .checkpoint import CheckpointStore
from .config import SyncConfig
from .exceptions import ConfigurationError
from .group_rules import GroupDefinition
from .jobs.group_sync import GroupSyncJob
from .jobs.lifecycle_sync import ConfirmDeletions, LifecycleJob
from .jobs.member_sync import MemberSyncJob
from .report import SyncReport
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

# Lifecycle runs before groups so reactivated accounts are back before they are re-added.
JOB_ORDER = ("members", "lifecycle", "groups")


class SyncRunner:
    """
    Wires configuration, state, the directory facade and the roster source
    into one invocation.
    """

    def __init__(
        self,
        config: SyncConfig,
        facade: GoogleWorkspaceFacade,
        roster_source: BaseRosterAdapter,
        store: KeyValueStore,
        group_definitions: Sequence[GroupDefinition] = (),
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.facade = facade
        self.roster_source = roster_source
        self.store = store
        self.group_definitions = list(group_definitions)
        self.dry_run = dry_run
        self.clock = clock
        self.executor = BatchExecutor(CheckpointStore(store), config, clock=clock, sleep=sleep)

    def run(
        self,
        jobs: Iterable[str] = JOB_ORDER,
        full_sync: bool = False,
        confirm_deletions: Optional[ConfirmDeletions] = None,
    ) -> List[SyncReport]:
        """
        Run the requested jobs in their fixed order.

        Raises:
            ConfigurationError: For an unknown job name.
            SourceUnavailable: If the roster cannot be loaded; nothing is mutated.
            FatalDirectoryError: If directory credentials are rejected.
        """
        requested = set(jobs)
        unknown = requested - set(JOB_ORDER)
        if unknown:
            raise ConfigurationError(f"Unknown job(s): {sorted(unknown)}. Available: {list(JOB_ORDER)}")

        # Every job of this invocation draws on one quota measured from here.
        self.executor.started_at = self.clock()
        snapshot = load_snapshot(self.roster_source)
        self.facade.verify_access()

        reports = []
        for name in JOB_ORDER:
            if name not in requested:
                continue
            report = self._build_job(name, snapshot, full_sync, confirm_deletions).run()
            reports.append(report)
            if report.timed_out:
                remaining = [n for n in JOB_ORDER[JOB_ORDER.index(name) + 1:] if n in requested]
                if remaining:
                    logger.info(f"Time quota spent; deferring {', '.join(remaining)} to the next invocation")
                break
        return reports

    def _build_job(self, name: str, snapshot: RosterSnapshot, full_sync: bool, confirm_deletions):
        common = dict(
            facade=self.facade,
            snapshot=snapshot,
            config=self.config,
            executor=self.executor,
            dry_run=self.dry_run,
        )
        if name == "members":
            return MemberSyncJob(change_cache=ChangeDetectionCache(self.store), full_sync=full_sync, **common)
        if name == "lifecycle":
            return LifecycleJob(confirm_deletions=confirm_deletions, **common)
        return GroupSyncJob(definitions=self.group_definitions, **common)
