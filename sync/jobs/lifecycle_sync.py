"""
Account lifecycle sync.

Walks every roster-managed directory account through the lifecycle state
machine and applies the resulting transition. Accounts without a roster
cross-reference id and administrator accounts are never touched.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from ..lifecycle import (
    AccountState,
    LifecycleStage,
    LifecycleStateMachine,
    Transition,
    log_transition,
)
from .base_job import BaseSyncJob

logger = logging.getLogger(__name__)

ConfirmDeletions = Callable[[Sequence[str]], bool]


class LifecycleJob(BaseSyncJob):
    job_name = "lifecycle-sync"

    def __init__(
        self,
        *args: Any,
        now: Optional[datetime] = None,
        confirm_deletions: Optional[ConfirmDeletions] = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.machine = LifecycleStateMachine(self.config)
        self.now = now or datetime.now(timezone.utc)
        self.confirm_deletions = confirm_deletions
        self.deletions_confirmed = False

    def managed_states(self) -> List[AccountState]:
        states = []
        for user in self.accounts.users:
            if user.get("isAdmin"):
                continue
            state = AccountState.from_directory_user(user)
            if not state.address or state.external_id is None:
                logger.debug(f"Skipping unmanaged account {state.address or user.get('id')}")
                continue
            states.append(state)
        return sorted(states, key=lambda s: s.address)

    def evaluate(self, state: AccountState) -> Optional[Transition]:
        return self.machine.evaluate(state, self.snapshot.active_ids, self.now)

    def build_work_items(self) -> List[AccountState]:
        states = self.managed_states()
        pending = [s.address for s in states if self._is_deletion(self.evaluate(s))]

        if pending:
            logger.warning(f"⚠️  {len(pending)} archived account(s) are due for permanent deletion")
            if self.dry_run:
                self.deletions_confirmed = True
            elif self.confirm_deletions is not None:
                self.deletions_confirmed = bool(self.confirm_deletions(pending))
            if not self.deletions_confirmed:
                logger.warning("Deletion not confirmed; archived accounts will be kept")

        logger.info(f"{self.job_name}: {len(states)} managed account(s) to evaluate")
        return states

    @staticmethod
    def _is_deletion(transition: Optional[Transition]) -> bool:
        return transition is not None and transition.to_stage == LifecycleStage.DELETED

    def describe_item(self, item: AccountState) -> str:
        return item.address

    def process_item(self, state: AccountState) -> Optional[Transition]:
        transition = self.evaluate(state)
        if transition is None:
            self.report.count("noop")
            return None

        if self._is_deletion(transition) and not self.deletions_confirmed:
            self.report.record("skipped", state.address, "deletion not confirmed", code="unconfirmed_delete")
            return None

        log_transition(transition, dry_run=self.dry_run)
        users = self.facade.users

        if transition.is_reactivation:
            users.reactivate_user(state.address)
            action = "reactivated"
        elif transition.to_stage == LifecycleStage.SUSPENDED:
            users.suspend_user(state.address)
            action = "suspended"
        elif transition.to_stage == LifecycleStage.ARCHIVED:
            users.archive_user(state.address)
            action = "archived"
        else:
            users.delete_user(state.address)
            action = "deleted"

        self.report.record(action, state.address, transition.reason)
        return transition
