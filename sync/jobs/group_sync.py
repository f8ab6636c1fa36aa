"""
Group membership sync.

For every group derived from the configured definitions, compare the desired
member set with the directory's actual membership and apply only the
difference. Owners and managers are left alone; only plain members are
managed.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from google_workspace.exceptions import (
    FatalDirectoryError,
    PermanentDirectoryError,
    TransientDirectoryError,
)
from roster.models.member import MemberRecord

from ..diff_engine import MembershipAction, MembershipDelta, normalize_addresses
from ..group_rules import GroupDefinition, TargetGroup, build_target_groups
from .base_job import BaseSyncJob

logger = logging.getLogger(__name__)

MANAGED_ROLE = "MEMBER"


class GroupSyncJob(BaseSyncJob):
    job_name = "group-sync"

    def __init__(self, *args: Any, definitions: Iterable[GroupDefinition], **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.definitions = list(definitions)
        self.delta = MembershipDelta()
        self.targets: Dict[str, TargetGroup] = {}
        self.held: Set[str] = set()

    def _address_for(self, member: MemberRecord) -> Optional[str]:
        return self.accounts.address_for(member.member_id)

    def build_work_items(self) -> List[str]:
        if not self.definitions:
            logger.warning("No group definitions configured; nothing to sync")
            return []

        self.targets = build_target_groups(
            self.definitions, self.snapshot, self.config.domain, self._address_for
        )
        held = (self.accounts.address_for(member_id) for member_id in self.snapshot.held_ids)
        self.held = {address for address in held if address}
        logger.info(f"{self.job_name}: {len(self.targets)} target group(s) from {len(self.definitions)} definition(s)")
        return sorted(self.targets)

    def actual_members(self, group_address: str) -> Optional[Set[str]]:
        """Managed members of a group, or None when the group does not exist."""
        try:
            entries = self.facade.members.list_members(group_address)
        except PermanentDirectoryError as e:
            if e.is_not_found:
                return None
            raise
        return normalize_addresses(
            entry.get("email", "")
            for entry in entries
            if entry.get("role", MANAGED_ROLE) == MANAGED_ROLE
        )

    def process_item(self, group_address: str) -> Dict[str, int]:
        target = self.targets[group_address]
        actual = self.actual_members(group_address)

        if actual is None:
            if not target.members:
                self.report.count("noop")
                return {}
            self.facade.groups.create_group(group_address, target.name, target.description)
            self.report.record("created", group_address, f"new group for {len(target.members)} member(s)")
            actual = set()

        # Held members stay wherever they already are; they are never added.
        kept = (self.held & actual) - target.members
        for address in sorted(kept):
            self.report.record("held", address, f"roster row rejected; membership in {group_address} kept")

        delta = self.delta.set_group(group_address, target.members | kept, actual)
        to_add = self.delta.actions(group_address, MembershipAction.ADD)
        to_remove = self.delta.actions(group_address, MembershipAction.REMOVE)
        unchanged = len(delta) - len(to_add) - len(to_remove) - len(kept)
        self.report.count("noop", unchanged)

        if to_add or to_remove:
            logger.info(
                f"{group_address}: +{len(to_add)} -{len(to_remove)} ={unchanged}",
                extra={"group": group_address, "added": len(to_add), "removed": len(to_remove)},
            )

        for address in to_add:
            self._apply(group_address, address, MembershipAction.ADD)
        for address in to_remove:
            self._apply(group_address, address, MembershipAction.REMOVE)

        return {"added": len(to_add), "removed": len(to_remove), "unchanged": unchanged}

    def _apply(self, group_address: str, address: str, action: MembershipAction) -> None:
        """Apply one membership change; a failure here never blocks the rest of the group."""
        try:
            if action == MembershipAction.ADD:
                self.facade.members.add_member(group_address, address)
            else:
                self.facade.members.remove_member(group_address, address)
        except FatalDirectoryError:
            raise
        except PermanentDirectoryError as e:
            # Someone else already made the same change.
            if action == MembershipAction.ADD and e.is_duplicate:
                logger.info(f"{address} is already in {group_address}")
                self.report.count("noop")
                return
            if action == MembershipAction.REMOVE and e.is_not_found:
                logger.info(f"{address} was already removed from {group_address}")
                self.report.count("noop")
                return
            self._item_failed(group_address, address, action, e)
            return
        except TransientDirectoryError as e:
            self._item_failed(group_address, address, action, e)
            return

        verb = "added" if action == MembershipAction.ADD else "removed"
        self.report.record(verb, address, f"{verb} {'to' if verb == 'added' else 'from'} {group_address}")

    def _item_failed(self, group_address: str, address: str, action: MembershipAction, error: Exception) -> None:
        code = getattr(error, "code", type(error).__name__)
        logger.error(
            f"❌ Could not {action.value.lower()} {address} in {group_address} [{code}]: {error}",
            extra={"group": group_address, "address": address, "code": code},
        )
        self.report.error(address, f"{action.value.lower()} {group_address}: {error}", code)
