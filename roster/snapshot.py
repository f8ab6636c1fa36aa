"""
Roster snapshot.

A snapshot is the immutable, in-memory view of the roster for one run. It is
built by ``load_snapshot`` with exactly one read of the roster source; every
lookup after that is served from indexes memoized on the instance.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cached_property
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import pandas as pd

from .adapters.base_roster_adapter import BaseRosterAdapter
from .exceptions import MalformedRecord
from .models.member import MemberRecord, MemberStatus, OrganizationUnit, OrgScope

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class RejectedRecord:
    """A roster row skipped during loading and the reason it was skipped."""

    table: str
    reason: str
    row: Dict[str, Any]


@dataclass(frozen=True)
class ConfigurationGap:
    """An organization that cannot be synchronized until it is mapped."""

    org_id: int
    name: str
    scope: OrgScope
    reason: str


@dataclass(frozen=True)
class RosterSnapshot:
    members: Tuple[MemberRecord, ...]
    organizations: Mapping[int, OrganizationUnit]
    rejected: Tuple[RejectedRecord, ...] = ()
    config_gaps: Tuple[ConfigurationGap, ...] = ()
    # Listed as ACTIVE but rejected during validation; their accounts and
    # memberships are held as they are until the row is fixed.
    held_ids: FrozenSet[int] = frozenset()
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @cached_property
    def _members_by_id(self) -> Dict[int, MemberRecord]:
        return {m.member_id: m for m in self.members}

    @cached_property
    def _members_by_org(self) -> Dict[int, Tuple[MemberRecord, ...]]:
        grouped: Dict[int, List[MemberRecord]] = {}
        for member in self.members:
            grouped.setdefault(member.org_id, []).append(member)
        return {org_id: tuple(items) for org_id, items in grouped.items()}

    @cached_property
    def _ancestors(self) -> Dict[Tuple[int, OrgScope], Optional[OrganizationUnit]]:
        return {}

    @cached_property
    def active_members(self) -> Tuple[MemberRecord, ...]:
        return tuple(m for m in self.members if m.is_active)

    @cached_property
    def active_ids(self) -> FrozenSet[str]:
        """
        Identifiers of roster-active members, as strings so they compare
        directly with directory cross-reference ids. Held members count as
        active: a rejected row is not a departure.
        """
        ids = {m.member_id for m in self.active_members} | set(self.held_ids)
        return frozenset(str(member_id) for member_id in ids)

    def member(self, member_id: int) -> Optional[MemberRecord]:
        return self._members_by_id.get(int(member_id))

    def members_in_org(self, org_id: int) -> Tuple[MemberRecord, ...]:
        return self._members_by_org.get(org_id, ())

    def org(self, org_id: Optional[int]) -> Optional[OrganizationUnit]:
        if org_id is None:
            return None
        return self.organizations.get(org_id)

    def ancestor(self, org_id: int, scope: OrgScope) -> Optional[OrganizationUnit]:
        """
        Find the nearest organization of ``scope`` at or above ``org_id``.

        Returns:
            The matching organization, or None if the chain ends first.
        """
        key = (org_id, scope)
        if key in self._ancestors:
            return self._ancestors[key]

        found = None
        seen = set()
        current = self.org(org_id)
        while current is not None and current.org_id not in seen:
            if current.scope == scope:
                found = current
                break
            seen.add(current.org_id)
            current = self.org(current.parent_id)

        self._ancestors[key] = found
        return found

    def path_for(self, member: MemberRecord) -> str:
        org = self.org(member.org_id)
        return org.path if org else ""


def _clean(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def _parse_int(value: Any) -> Optional[int]:
    text = _clean(value)
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _codes_by_member(df: pd.DataFrame) -> Dict[int, FrozenSet[str]]:
    if df.empty or "member_id" not in df.columns or "code" not in df.columns:
        return {}

    codes: Dict[int, set] = {}
    for row in df.to_dict("records"):
        member_id = _parse_int(row.get("member_id"))
        code = _clean(row.get("code"))
        if member_id is None or not code:
            continue
        codes.setdefault(member_id, set()).add(code)
    return {member_id: frozenset(values) for member_id, values in codes.items()}


def _emails_by_member(df: pd.DataFrame) -> Dict[int, str]:
    """Pick one email per member, preferring contacts marked PRIMARY."""
    if df.empty or "member_id" not in df.columns or "contact" not in df.columns:
        return {}

    emails = df
    if "contact_type" in emails.columns:
        emails = emails[emails["contact_type"].str.strip().str.upper() == "EMAIL"]
    if "priority" in emails.columns:
        emails = emails.assign(
            _primary=emails["priority"].str.strip().str.upper() != "PRIMARY"
        ).sort_values("_primary", kind="stable")

    result: Dict[int, str] = {}
    for row in emails.to_dict("records"):
        member_id = _parse_int(row.get("member_id"))
        contact = _clean(row.get("contact"))
        if member_id is None or not contact or member_id in result:
            continue
        result[member_id] = contact
    return result


def _parse_status(row: Dict[str, Any]) -> MemberStatus:
    return MemberStatus.ACTIVE if _clean(row.get("status")).upper() == "ACTIVE" else MemberStatus.INACTIVE


def _parse_scope(value: Any) -> OrgScope:
    text = _clean(value).upper()
    try:
        return OrgScope(text)
    except ValueError:
        return OrgScope.UNIT


def _build_organizations(df: pd.DataFrame) -> Tuple[Dict[int, OrganizationUnit], List[RejectedRecord]]:
    organizations: Dict[int, OrganizationUnit] = {}
    rejected: List[RejectedRecord] = []

    for row in df.to_dict("records"):
        org_id = _parse_int(row.get("org_id"))
        if org_id is None:
            rejected.append(RejectedRecord("organizations", "missing organization id", row))
            logger.warning(f"Skipping organization row without id: {row}")
            continue

        organizations[org_id] = OrganizationUnit(
            org_id=org_id,
            scope=_parse_scope(row.get("scope")),
            name=_clean(row.get("name")) or str(org_id),
            parent_id=_parse_int(row.get("parent_id")),
            path=_clean(row.get("path")),
        )

    return organizations, rejected


def _find_config_gaps(organizations: Mapping[int, OrganizationUnit]) -> List[ConfigurationGap]:
    gaps = []
    for org in organizations.values():
        if org.scope == OrgScope.UNIT and not org.path:
            gaps.append(
                ConfigurationGap(
                    org_id=org.org_id,
                    name=org.name,
                    scope=org.scope,
                    reason="unit has no directory org-unit path",
                )
            )
    return gaps


def _build_member(
    row: Dict[str, Any],
    organizations: Mapping[int, OrganizationUnit],
    emails: Dict[int, str],
    duty_positions: Dict[int, FrozenSet[str]],
    achievements: Dict[int, FrozenSet[str]],
) -> MemberRecord:
    """
    Validate one member row and build its record.

    Raises:
        MalformedRecord: If the row is missing an id or a name, carries an
            invalid email address, or its organization has no path.
    """
    member_id = _parse_int(row.get("member_id"))
    if member_id is None:
        raise MalformedRecord("missing member id", row)

    first_name = _clean(row.get("first_name"))
    last_name = _clean(row.get("last_name"))
    if not first_name or not last_name:
        raise MalformedRecord("missing name", row)

    email = emails.get(member_id)
    if email is not None and not EMAIL_PATTERN.match(email):
        raise MalformedRecord(f"invalid email syntax: {email!r}", row)

    org_id = _parse_int(row.get("org_id"))
    org = organizations.get(org_id) if org_id is not None else None
    if org is None or not org.path:
        raise MalformedRecord("missing organizational path", row)

    return MemberRecord(
        member_id=member_id,
        first_name=first_name,
        last_name=last_name,
        org_id=org_id,
        member_type=_clean(row.get("member_type")).upper(),
        rank=_clean(row.get("rank")),
        duty_positions=duty_positions.get(member_id, frozenset()),
        achievements=achievements.get(member_id, frozenset()),
        email=email.lower() if email else None,
        status=_parse_status(row),
        modified=_clean(row.get("modified")) or None,
    )


def load_snapshot(source: BaseRosterAdapter, loaded_at: Optional[datetime] = None) -> RosterSnapshot:
    """
    Build a roster snapshot, reading the source exactly once.

    Args:
        source: Roster source adapter.
        loaded_at: Timestamp recorded on the snapshot (defaults to now, UTC).

    Returns:
        RosterSnapshot: The immutable snapshot for this run.

    Raises:
        SourceUnavailable: If the roster source cannot be read.
    """
    logger.info(f"Loading roster snapshot from {source.describe()}")
    tables = source.load_tables()

    organizations, rejected = _build_organizations(tables.get("organizations", pd.DataFrame()))
    config_gaps = _find_config_gaps(organizations)
    for gap in config_gaps:
        logger.warning(
            f"Configuration gap: organization {gap.org_id} ({gap.name}) {gap.reason}",
            extra={"org_id": gap.org_id, "scope": gap.scope.value},
        )

    emails = _emails_by_member(tables.get("contacts", pd.DataFrame()))
    duty_positions = _codes_by_member(tables.get("duty_positions", pd.DataFrame()))
    achievements = _codes_by_member(tables.get("achievements", pd.DataFrame()))

    members: Dict[int, MemberRecord] = {}
    held = set()
    for row in tables.get("members", pd.DataFrame()).to_dict("records"):
        try:
            member = _build_member(row, organizations, emails, duty_positions, achievements)
        except MalformedRecord as e:
            logger.warning(
                f"Skipping malformed member row: {e.reason}",
                extra={"table": "members", "member_id": row.get("member_id")},
            )
            rejected.append(RejectedRecord("members", e.reason, dict(e.row)))
            member_id = _parse_int(row.get("member_id"))
            if member_id is not None and _parse_status(row) == MemberStatus.ACTIVE:
                logger.warning(
                    f"Member {member_id} is ACTIVE but its row was rejected; holding its account and groups",
                    extra={"table": "members", "member_id": member_id},
                )
                held.add(member_id)
            continue

        if member.member_id in members:
            logger.warning(f"Duplicate member id {member.member_id}; keeping the last row")
        members[member.member_id] = member

    snapshot = RosterSnapshot(
        members=tuple(sorted(members.values(), key=lambda m: m.member_id)),
        organizations=dict(organizations),
        rejected=tuple(rejected),
        config_gaps=tuple(config_gaps),
        held_ids=frozenset(held - set(members)),
        loaded_at=loaded_at or datetime.now(timezone.utc),
    )

    logger.info(
        f"Roster snapshot loaded: {len(snapshot.members)} members "
        f"({len(snapshot.active_members)} active), "
        f"{len(organizations)} organizations, {len(rejected)} rejected rows, "
        f"{len(config_gaps)} configuration gaps, {len(snapshot.held_ids)} held members"
    )
    return snapshot
