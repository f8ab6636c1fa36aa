"""
Account lifecycle state machine.

    ACTIVE -> SUSPENDED -> ARCHIVED -> DELETED
       ^          |           |
       +----------+-----------+   (member reappears in the active roster)

Dwell time is measured from a proxy timestamp: the directory does not expose
when an account entered its current state, so the most recent activity marker
(last login, falling back to account creation) stands in for it. Every stage
threshold is therefore "days since the account was last active".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from .config import SyncConfig
from .diff_engine import normalize_address

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Google reports "never logged in" as the epoch.
NEVER_LOGGED_IN = "1970-01-01T00:00:00.000Z"


class LifecycleStage(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value or value == NEVER_LOGGED_IN:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable directory timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class AccountState:
    """
    Lifecycle view of one directory account.

    Attributes:
        address: Primary address, normalized.
        stage: Current lifecycle stage.
        last_active_at: Proxy timestamp for dwell time (last activity).
        external_id: Roster member id cross-reference, if the account has one.
        created_at: Account creation, used when no activity was ever recorded.
    """

    address: str
    stage: LifecycleStage
    last_active_at: Optional[datetime] = None
    external_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def activity_marker(self) -> Optional[datetime]:
        return self.last_active_at or self.created_at

    @classmethod
    def from_directory_user(cls, user: Dict[str, Any], id_type: str = "organization") -> "AccountState":
        """Build the lifecycle view of a Directory API user resource."""
        if user.get("archived"):
            stage = LifecycleStage.ARCHIVED
        elif user.get("suspended"):
            stage = LifecycleStage.SUSPENDED
        else:
            stage = LifecycleStage.ACTIVE

        return cls(
            address=normalize_address(user.get("primaryEmail", "")),
            stage=stage,
            last_active_at=parse_timestamp(user.get("lastLoginTime")),
            external_id=external_id_of(user, id_type),
            created_at=parse_timestamp(user.get("creationTime")),
        )


def external_id_of(user: Dict[str, Any], id_type: str = "organization") -> Optional[str]:
    """Roster member id stored in a directory user's ``externalIds``."""
    for entry in user.get("externalIds") or []:
        if entry.get("type") == id_type and entry.get("value"):
            return str(entry["value"]).strip()
    return None


@dataclass(frozen=True)
class Transition:
    address: str
    from_stage: LifecycleStage
    to_stage: LifecycleStage
    dwell_days: Optional[float]
    reason: str

    @property
    def is_reactivation(self) -> bool:
        return self.to_stage == LifecycleStage.ACTIVE

    def log_context(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "from_stage": self.from_stage.value,
            "to_stage": self.to_stage.value,
            "dwell_days": None if self.dwell_days is None else round(self.dwell_days, 2),
        }


class LifecycleStateMachine:
    """
    Decides the next lifecycle step of an account.

    ``evaluate`` is pure: it never touches the directory. At most one
    transition is emitted per evaluation, so an account always passes through
    SUSPENDED and ARCHIVED on its way out.
    """

    def __init__(self, config: SyncConfig):
        self.config = config

    def dwell_days(self, state: AccountState, now: datetime) -> Optional[float]:
        marker = state.activity_marker
        if marker is None:
            return None
        return (now - marker).total_seconds() / SECONDS_PER_DAY

    def _elapsed(self, dwell: Optional[float], threshold_days: int) -> bool:
        # Inclusive boundary; an account with no activity marker at all has
        # nothing to measure against and only moves once a marker exists,
        # except when the threshold is zero.
        if threshold_days == 0:
            return True
        return dwell is not None and dwell >= threshold_days

    def evaluate(
        self,
        state: AccountState,
        active_ids: FrozenSet[str],
        now: datetime,
    ) -> Optional[Transition]:
        """
        Compute the transition for one account, or None if it stays put.

        Args:
            state: Current lifecycle view of the account.
            active_ids: Member ids currently active in the roster.
            now: Evaluation time (timezone-aware).
        """
        if state.stage == LifecycleStage.DELETED:
            return None

        in_roster = state.external_id is not None and state.external_id in active_ids
        dwell = self.dwell_days(state, now)

        if state.stage == LifecycleStage.ACTIVE:
            if not in_roster and self._elapsed(dwell, self.config.grace_days):
                return Transition(
                    state.address,
                    state.stage,
                    LifecycleStage.SUSPENDED,
                    dwell,
                    f"not in active roster; inactive >= {self.config.grace_days} days",
                )
            return None

        if in_roster:
            return Transition(
                state.address,
                state.stage,
                LifecycleStage.ACTIVE,
                dwell,
                f"member {state.external_id} renewed",
            )

        if state.stage == LifecycleStage.SUSPENDED:
            if self._elapsed(dwell, self.config.archive_days):
                return Transition(
                    state.address,
                    state.stage,
                    LifecycleStage.ARCHIVED,
                    dwell,
                    f"suspended and inactive >= {self.config.archive_days} days",
                )
            return None

        # ARCHIVED
        if self._elapsed(dwell, self.config.delete_days):
            if not self.config.delete_enabled:
                logger.debug(f"{state.address} is eligible for deletion but deletion is disabled")
                return None
            return Transition(
                state.address,
                state.stage,
                LifecycleStage.DELETED,
                dwell,
                f"archived and inactive >= {self.config.delete_days} days",
            )
        return None


def log_transition(transition: Transition, dry_run: bool = False) -> None:
    """Record a transition before the directory mutation is attempted."""
    dwell = "unknown" if transition.dwell_days is None else f"{transition.dwell_days:.1f}"
    prefix = "[DRY RUN] " if dry_run else ""
    logger.info(
        f"{prefix}Lifecycle transition {transition.address}: "
        f"{transition.from_stage.value} -> {transition.to_stage.value} "
        f"(dwell {dwell} days; {transition.reason})",
        extra=transition.log_context(),
    )
