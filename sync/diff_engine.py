"""
Group membership diff engine.

Computes, per group, the minimal set of add/remove operations that turns the
directory's actual membership into the desired membership. Addresses are
always normalized before comparison; ``Jane@X.com`` and ``jane@x.com`` are the
same member.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Set

logger = logging.getLogger(__name__)


class MembershipAction(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"
    NOOP = "NOOP"


def normalize_address(address: str) -> str:
    """Trim and lower-case an email address for comparison."""
    return (address or "").strip().lower()


def normalize_addresses(addresses: Iterable[str]) -> Set[str]:
    """Normalize a collection of addresses, dropping blanks."""
    return {a for a in (normalize_address(x) for x in addresses) if a}


def compute_delta(desired: Iterable[str], actual: Iterable[str]) -> Dict[str, MembershipAction]:
    """
    Diff desired against actual membership.

    Every address in ``actual`` is NOOP if also desired and REMOVE otherwise;
    every desired address missing from ``actual`` is ADD. Runs in
    O(|desired| + |actual|).

    Args:
        desired: Addresses that should be members.
        actual: Addresses that currently are members.

    Returns:
        Dict mapping each normalized address to exactly one action.
    """
    desired_set = normalize_addresses(desired)
    actual_set = normalize_addresses(actual)

    delta: Dict[str, MembershipAction] = {}
    for address in actual_set:
        delta[address] = MembershipAction.NOOP if address in desired_set else MembershipAction.REMOVE
    for address in desired_set:
        if address not in actual_set:
            delta[address] = MembershipAction.ADD
    return delta


def apply_delta(actual: Iterable[str], delta: Dict[str, MembershipAction]) -> Set[str]:
    """Return the membership that results from applying ``delta`` to ``actual``."""
    result = normalize_addresses(actual)
    for address, action in delta.items():
        if action == MembershipAction.ADD:
            result.add(address)
        elif action == MembershipAction.REMOVE:
            result.discard(address)
    return result


@dataclass
class MembershipDelta:
    """Per-group deltas: group id -> address -> action."""

    groups: Dict[str, Dict[str, MembershipAction]] = field(default_factory=dict)

    def set_group(self, group_id: str, desired: Iterable[str], actual: Iterable[str]) -> Dict[str, MembershipAction]:
        group_key = normalize_address(group_id)
        self.groups[group_key] = compute_delta(desired, actual)
        return self.groups[group_key]

    def actions(self, group_id: str, action: MembershipAction) -> List[str]:
        """Sorted addresses with ``action`` in one group."""
        group = self.groups.get(normalize_address(group_id), {})
        return sorted(address for address, a in group.items() if a == action)

    def counts(self) -> Dict[str, int]:
        totals = {action.value: 0 for action in MembershipAction}
        for group in self.groups.values():
            for action in group.values():
                totals[action.value] += 1
        return totals

    def is_noop(self) -> bool:
        return all(a == MembershipAction.NOOP for group in self.groups.values() for a in group.values())
