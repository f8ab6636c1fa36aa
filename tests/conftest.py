"""
Shared fixtures: an in-memory roster source, an in-memory state store and
builders for roster tables and directory users.
"""

from typing import Dict, List, Optional

import pandas as pd
import pytest

from roster.adapters.base_roster_adapter import BaseRosterAdapter
from roster.snapshot import load_snapshot
from sync.storage import KeyValueStore

DOMAIN = "example.org"

ORGANIZATIONS = [
    {"org_id": "1", "scope": "WING", "name": "Lakeside Wing", "parent_id": "", "path": "/Wing"},
    {"org_id": "10", "scope": "GROUP", "name": "Group Ten", "parent_id": "1", "path": "/Wing/G10"},
    {"org_id": "100", "scope": "UNIT", "name": "Squadron 100", "parent_id": "10", "path": "/Wing/G10/S100"},
    {"org_id": "101", "scope": "UNIT", "name": "Squadron 101", "parent_id": "10", "path": ""},
    {"org_id": "200", "scope": "UNIT", "name": "Squadron 200", "parent_id": "1", "path": "/Wing/S200"},
]


def member_row(member_id, first="Jane", last="Doe", org_id="100", status="ACTIVE", **extra) -> Dict[str, str]:
    row = {
        "member_id": str(member_id),
        "first_name": first,
        "last_name": last,
        "org_id": str(org_id),
        "member_type": extra.pop("member_type", "SENIOR"),
        "rank": extra.pop("rank", "Capt"),
        "status": status,
        "modified": extra.pop("modified", "2026-01-01"),
    }
    row.update({k: str(v) for k, v in extra.items()})
    return row


class FrameRosterAdapter(BaseRosterAdapter):
    """Roster source serving prepared DataFrames; counts how often it is read."""

    def __init__(self, tables: Dict[str, pd.DataFrame]):
        self.tables = tables
        self.calls = 0

    def load_tables(self) -> Dict[str, pd.DataFrame]:
        self.calls += 1
        return self.tables

    def describe(self) -> str:
        return "in-memory roster"


class MemoryStore(KeyValueStore):
    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


def build_tables(
    members: List[Dict[str, str]],
    organizations: Optional[List[Dict[str, str]]] = None,
    contacts: Optional[List[Dict[str, str]]] = None,
    duty_positions: Optional[List[Dict[str, str]]] = None,
    achievements: Optional[List[Dict[str, str]]] = None,
) -> Dict[str, pd.DataFrame]:
    return {
        "members": pd.DataFrame(members),
        "organizations": pd.DataFrame(organizations if organizations is not None else ORGANIZATIONS),
        "contacts": pd.DataFrame(contacts or [], columns=["member_id", "contact_type", "contact", "priority"]),
        "duty_positions": pd.DataFrame(duty_positions or [], columns=["member_id", "code"]),
        "achievements": pd.DataFrame(achievements or [], columns=["member_id", "code"]),
    }


def directory_user(address, member_id=None, suspended=False, archived=False, last_login=None, created=None, **extra):
    user = {
        "primaryEmail": address,
        "suspended": suspended,
        "archived": archived,
        "lastLoginTime": last_login or "1970-01-01T00:00:00.000Z",
        "creationTime": created or "2020-01-01T00:00:00.000Z",
    }
    if member_id is not None:
        user["externalIds"] = [{"type": "organization", "value": str(member_id)}]
    user.update(extra)
    return user


@pytest.fixture
def make_snapshot():
    """Build a snapshot through the real loader from member rows (and optional extra tables)."""

    def factory(members, **tables):
        return load_snapshot(FrameRosterAdapter(build_tables(members, **tables)))

    return factory


@pytest.fixture
def memory_store():
    return MemoryStore()
