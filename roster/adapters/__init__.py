from .base_roster_adapter import ROSTER_TABLES, BaseRosterAdapter
from .csv_roster_adapter import CsvRosterAdapter

__all__ = ['BaseRosterAdapter', 'CsvRosterAdapter', 'ROSTER_TABLES']
