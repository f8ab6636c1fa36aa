"""
Group definitions and the predicates that select members into groups.

Each definition names a member attribute and a set of matching values. The
attribute is looked up in a registry of named predicate functions, so new
selection attributes are added with ``@register_predicate`` rather than by
editing a central dispatch.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from roster.models.member import MemberRecord, OrganizationUnit, OrgScope
from roster.snapshot import RosterSnapshot

from .diff_engine import normalize_address
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Predicate = Callable[[MemberRecord, FrozenSet[str], RosterSnapshot], bool]

_PREDICATES: Dict[str, Predicate] = {}


def register_predicate(name: str) -> Callable[[Predicate], Predicate]:
    """Register a selection predicate under an attribute name."""

    def decorator(func: Predicate) -> Predicate:
        _PREDICATES[name.lower()] = func
        return func

    return decorator


def get_predicate(name: str) -> Predicate:
    """
    Raises:
        ConfigurationError: If no predicate is registered for ``name``.
    """
    try:
        return _PREDICATES[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown group selection attribute '{name}'. "
            f"Available: {sorted(_PREDICATES)}"
        )


def registered_attributes() -> List[str]:
    return sorted(_PREDICATES)


@register_predicate("all")
def _select_all(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    return True


@register_predicate("member_type")
def _select_member_type(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    return member.member_type.upper() in values


@register_predicate("rank")
def _select_rank(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    return member.rank.upper() in values


@register_predicate("duty_position")
def _select_duty_position(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    return any(code.upper() in values for code in member.duty_positions)


@register_predicate("achievement")
def _select_achievement(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    return any(code.upper() in values for code in member.achievements)


@register_predicate("org")
def _select_org(member: MemberRecord, values: FrozenSet[str], snapshot: RosterSnapshot) -> bool:
    """Member's own organization or any organization above it."""
    seen = set()
    org = snapshot.org(member.org_id)
    while org is not None and org.org_id not in seen:
        if str(org.org_id) in values:
            return True
        seen.add(org.org_id)
        org = snapshot.org(org.parent_id)
    return False


@dataclass(frozen=True)
class GroupDefinition:
    category: str
    base_name: str
    attribute: str
    values: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        normalized = frozenset(str(v).strip().upper() for v in self.values if str(v).strip())
        object.__setattr__(self, "values", normalized)
        object.__setattr__(self, "base_name", self.base_name.strip().lower())
        if not self.base_name:
            raise ConfigurationError("Group definition requires a base name")
        get_predicate(self.attribute)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "GroupDefinition":
        """Build a definition from a configuration row; values are comma-separated."""
        raw_values = str(row.get("values", "") or "")
        return cls(
            category=str(row.get("category", "") or "").strip(),
            base_name=str(row.get("base_name", "") or ""),
            attribute=str(row.get("attribute", "") or ""),
            values=frozenset(v for v in raw_values.split(",")),
        )

    def matches(self, member: MemberRecord, snapshot: RosterSnapshot) -> bool:
        return get_predicate(self.attribute)(member, self.values, snapshot)

    def wing_address(self, domain: str) -> str:
        return normalize_address(f"{self.base_name}@{domain}")

    def sub_unit_address(self, sub_unit: OrganizationUnit, domain: str) -> str:
        return normalize_address(f"{self.base_name}.{sub_unit.slug}@{domain}")


@dataclass
class TargetGroup:
    """One directory group derived from a definition, with its desired members."""

    address: str
    name: str
    description: str
    definition: GroupDefinition
    members: Set[str] = field(default_factory=set)


def build_target_groups(
    definitions: Iterable[GroupDefinition],
    snapshot: RosterSnapshot,
    domain: str,
    address_for: Callable[[MemberRecord], Optional[str]],
) -> Dict[str, TargetGroup]:
    """
    Evaluate every definition against every active member.

    A selected member lands in the definition's wing-level group and, when
    the member's organization sits under a GROUP-scope organization, in that
    sub-unit's group as well. Every GROUP-scope organization yields a target
    group even when nobody is selected, so stale members still get removed.

    Args:
        definitions: Group definitions from configuration.
        snapshot: Roster snapshot for this run.
        domain: Directory domain for group addresses.
        address_for: Resolves a member to their directory address, or None
            when the member has no account yet.

    Returns:
        Dict mapping group address to its target group.
    """
    sub_units = [org for org in snapshot.organizations.values() if org.scope == OrgScope.GROUP]
    targets: Dict[str, TargetGroup] = {}

    for definition in definitions:
        label = f"{definition.category} {definition.base_name}".strip()
        wing = TargetGroup(
            address=definition.wing_address(domain),
            name=label,
            description=f"{label} ({definition.attribute})",
            definition=definition,
        )
        targets[wing.address] = wing

        by_sub_unit: Dict[int, TargetGroup] = {}
        for sub_unit in sub_units:
            target = TargetGroup(
                address=definition.sub_unit_address(sub_unit, domain),
                name=f"{label} - {sub_unit.name}",
                description=f"{label} ({definition.attribute}) for {sub_unit.name}",
                definition=definition,
            )
            by_sub_unit[sub_unit.org_id] = target
            targets[target.address] = target

        selected = 0
        for member in snapshot.active_members:
            if not definition.matches(member, snapshot):
                continue
            address = address_for(member)
            if not address:
                logger.debug(f"Member {member.member_id} selected for {wing.address} has no account")
                continue

            address = normalize_address(address)
            wing.members.add(address)
            sub_unit = snapshot.ancestor(member.org_id, OrgScope.GROUP)
            if sub_unit is not None:
                by_sub_unit[sub_unit.org_id].members.add(address)
            selected += 1

        logger.debug(f"Definition {definition.base_name}: {selected} members selected")

    return targets
