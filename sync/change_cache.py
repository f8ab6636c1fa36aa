"""
Change detection for roster members.

The roster gives no reliable change feed, so each member is reduced to a
SHA-256 content fingerprint and compared with the fingerprints persisted at
the end of the previous successful run. Only new or changed members need a
directory write.
"""

import hashlib
import json
import logging
from enum import Enum
from typing import Dict, List, Set

from roster.models.member import MemberRecord
from roster.snapshot import RosterSnapshot

from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class ChangeDetectionCache:
    """Compares a snapshot against the fingerprints of the previous run."""

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "roster:member-hashes",
        failures_key: str = "roster:member-failures",
    ):
        self.store = store
        self.key = key
        self.failures_key = failures_key

    @staticmethod
    def content_hash(member: MemberRecord, org_path: str = "") -> str:
        """
        Fingerprint of everything that ends up in the directory for a member.

        The organization path is included because moving a member between
        units changes their account even when the roster row looks the same.
        """
        payload = dict(member.to_dict(), org_path=org_path)
        normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()

    def load_previous(self) -> Dict[str, str]:
        raw = self.store.get(self.key)
        if raw is None:
            logger.info("No previous roster fingerprints found; every member counts as new")
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt roster fingerprint cache under {self.key}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Corrupt roster fingerprint cache under {self.key}")
        return data

    def current_hashes(self, snapshot: RosterSnapshot) -> Dict[str, str]:
        return {
            str(member.member_id): self.content_hash(member, snapshot.path_for(member))
            for member in snapshot.members
        }

    def classify(self, snapshot: RosterSnapshot) -> Dict[int, ChangeKind]:
        previous = self.load_previous()
        result: Dict[int, ChangeKind] = {}
        for member_id, current in self.current_hashes(snapshot).items():
            existing = previous.get(member_id)
            if existing is None:
                result[int(member_id)] = ChangeKind.NEW
            elif existing != current:
                result[int(member_id)] = ChangeKind.CHANGED
            else:
                result[int(member_id)] = ChangeKind.UNCHANGED

        counts = {kind.value: 0 for kind in ChangeKind}
        for kind in result.values():
            counts[kind.value] += 1
        logger.info(
            f"Change detection: {counts['new']} new, {counts['changed']} changed, "
            f"{counts['unchanged']} unchanged"
        )
        return result

    def changed_members(self, snapshot: RosterSnapshot) -> List[MemberRecord]:
        """Members classified NEW or CHANGED, in snapshot order."""
        kinds = self.classify(snapshot)
        return [m for m in snapshot.members if kinds.get(m.member_id) != ChangeKind.UNCHANGED]

    def failed_ids(self) -> Set[str]:
        raw = self.store.get(self.failures_key)
        if raw is None:
            return set()
        try:
            return set(json.loads(raw))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Corrupt failure list under {self.failures_key}") from e

    def mark_failed(self, member_id: int) -> None:
        """Remember a member whose directory write failed, so it is retried next run."""
        failed = self.failed_ids()
        failed.add(str(member_id))
        self.store.put(self.failures_key, json.dumps(sorted(failed)))

    def commit(self, snapshot: RosterSnapshot) -> None:
        """
        Persist the snapshot's fingerprints as the baseline for the next run.

        Members that failed during this work list are left out so they count
        as new next time.
        """
        failed = self.failed_ids()
        hashes = {k: v for k, v in self.current_hashes(snapshot).items() if k not in failed}
        self.store.put(self.key, json.dumps(hashes, sort_keys=True))
        self.store.delete(self.failures_key)
        logger.info(f"Saved fingerprints for {len(hashes)} roster members ({len(failed)} left for retry)")
