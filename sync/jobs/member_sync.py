"""
Member account sync.

Creates directory accounts for new roster members and updates accounts whose
roster data changed. Unchanged members are skipped using the change-detection
cache; the cache baseline only moves forward once the whole work list has
been processed, so a resumed invocation rebuilds exactly the same list.
"""

import logging
import re
import secrets
import unicodedata
from typing import Any, Dict, List, Optional

from google_workspace.exceptions import PermanentDirectoryError
from roster.models.member import MemberRecord

from ..batch_executor import ITEM_ERRORS, BatchSummary
from ..change_cache import ChangeDetectionCache
from ..diff_engine import normalize_address
from ..exceptions import SyncItemError
from .base_job import BaseSyncJob

logger = logging.getLogger(__name__)

EXTERNAL_ID_TYPE = "organization"


def address_local_part(member: MemberRecord) -> str:
    """``first.last`` with accents stripped and only address-safe characters kept."""

    def clean(text: str) -> str:
        ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
        return re.sub(r"[^a-z0-9-]", "", ascii_text.lower())

    return f"{clean(member.first_name)}.{clean(member.last_name)}".strip(".")


class MemberSyncJob(BaseSyncJob):
    job_name = "member-sync"

    def __init__(self, *args: Any, change_cache: ChangeDetectionCache, full_sync: bool = False, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.change_cache = change_cache
        self.full_sync = full_sync

    def build_work_items(self) -> List[MemberRecord]:
        for gap in self.snapshot.config_gaps:
            self.report.record("skipped", f"org:{gap.org_id}", f"{gap.name}: {gap.reason}", code="config_gap")
        for rejected in self.snapshot.rejected:
            label = rejected.row.get("member_id") or rejected.row.get("org_id") or "?"
            self.report.record("skipped", f"{rejected.table}:{label}", rejected.reason, code="malformed")

        if self.full_sync:
            logger.info("Full sync requested - ignoring roster fingerprints")
            candidates = list(self.snapshot.members)
        else:
            candidates = self.change_cache.changed_members(self.snapshot)

        items = [m for m in candidates if m.is_active]
        logger.info(f"{self.job_name}: {len(items)} active member(s) need a directory write")
        return items

    def describe_item(self, item: MemberRecord) -> str:
        return self.accounts.address_for(item.member_id) or f"member:{item.member_id}"

    def choose_address(self, member: MemberRecord) -> str:
        local = address_local_part(member) or str(member.member_id)
        address = normalize_address(f"{local}@{self.config.domain}")
        if address in self.accounts.addresses:
            address = normalize_address(f"{local}{member.member_id}@{self.config.domain}")
        return address

    def desired_profile(self, member: MemberRecord) -> Dict[str, Any]:
        profile: Dict[str, Any] = {
            "name": {"givenName": member.first_name, "familyName": member.last_name},
            "orgUnitPath": self.snapshot.path_for(member),
            "externalIds": [{"type": EXTERNAL_ID_TYPE, "value": str(member.member_id)}],
        }
        if member.email:
            profile["recoveryEmail"] = member.email
        return profile

    @staticmethod
    def profile_differs(user: Dict[str, Any], profile: Dict[str, Any]) -> bool:
        name = user.get("name") or {}
        if name.get("givenName") != profile["name"]["givenName"]:
            return True
        if name.get("familyName") != profile["name"]["familyName"]:
            return True
        if user.get("orgUnitPath") != profile["orgUnitPath"]:
            return True
        wanted_recovery = profile.get("recoveryEmail")
        return bool(wanted_recovery) and normalize_address(user.get("recoveryEmail", "")) != wanted_recovery

    def process_item(self, member: MemberRecord) -> Optional[str]:
        try:
            return self.sync_member(member)
        except ITEM_ERRORS:
            if not self.dry_run:
                self.change_cache.mark_failed(member.member_id)
            raise

    def sync_member(self, member: MemberRecord) -> Optional[str]:
        profile = self.desired_profile(member)
        user = self.accounts.user_for(member.member_id)

        if user is not None:
            address = normalize_address(user["primaryEmail"])
            if not self.profile_differs(user, profile):
                self.report.count("noop")
                return None
            self.facade.users.update_user(address, profile)
            self.report.record("updated", address, f"roster data changed for member {member.member_id}")
            return "updated"

        address = self.choose_address(member)
        body = dict(
            profile,
            primaryEmail=address,
            password=secrets.token_urlsafe(24),
            changePasswordAtNextLogin=True,
        )
        try:
            self.facade.users.create_user(body)
        except PermanentDirectoryError as e:
            if e.is_duplicate:
                raise SyncItemError(
                    f"address {address} already exists for another account", address, "duplicate_address"
                ) from e
            raise
        self.accounts.addresses.add(address)
        self.report.record("created", address, f"new member {member.member_id}")
        return "created"

    def on_complete(self, summary: BatchSummary) -> None:
        if self.dry_run:
            logger.info("[DRY RUN] Roster fingerprints not saved")
            return
        self.change_cache.commit(self.snapshot)
