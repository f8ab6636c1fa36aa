from .adapters.base_roster_adapter import BaseRosterAdapter
from .adapters.csv_roster_adapter import CsvRosterAdapter
from .exceptions import MalformedRecord, RosterError, SourceUnavailable
from .models.member import MemberRecord, MemberStatus, OrganizationUnit, OrgScope
from .snapshot import ConfigurationGap, RejectedRecord, RosterSnapshot, load_snapshot

__all__ = [
    'BaseRosterAdapter',
    'ConfigurationGap',
    'CsvRosterAdapter',
    'MalformedRecord',
    'MemberRecord',
    'MemberStatus',
    'OrgScope',
    'OrganizationUnit',
    'RejectedRecord',
    'RosterError',
    'RosterSnapshot',
    'SourceUnavailable',
    'load_snapshot',
]
