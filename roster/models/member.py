from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional


class MemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class OrgScope(str, Enum):
    """Level of an organization in the roster hierarchy."""

    UNIT = "UNIT"
    GROUP = "GROUP"
    WING = "WING"


@dataclass(frozen=True)
class OrganizationUnit:
    """
    A roster organization and the directory org-unit path it maps to.

    An empty ``path`` means the organization has no configured place in the
    directory hierarchy yet.
    """

    org_id: int
    scope: OrgScope
    name: str
    parent_id: Optional[int] = None
    path: str = ""

    @property
    def slug(self) -> str:
        """Lower-case, separator-free name used in group addresses."""
        return "".join(ch for ch in self.name.lower() if ch.isalnum())


@dataclass(frozen=True)
class MemberRecord:
    """Standardized, immutable roster member."""

    member_id: int
    first_name: str
    last_name: str
    org_id: int
    member_type: str = ""
    rank: str = ""
    duty_positions: FrozenSet[str] = field(default_factory=frozenset)
    achievements: FrozenSet[str] = field(default_factory=frozenset)
    email: Optional[str] = None
    status: MemberStatus = MemberStatus.ACTIVE
    modified: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    def to_dict(self) -> Dict[str, object]:
        """
        Plain representation with multi-valued attributes sorted, suitable for
        stable JSON serialization and content hashing.
        """
        return {
            "member_id": self.member_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "org_id": self.org_id,
            "member_type": self.member_type,
            "rank": self.rank,
            "duty_positions": sorted(self.duty_positions),
            "achievements": sorted(self.achievements),
            "email": self.email,
            "status": self.status.value,
            "modified": self.modified,
        }
