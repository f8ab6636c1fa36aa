from abc import ABC, abstractmethod
from typing import Dict

import pandas as pd

# Logical tables every roster source must provide.
ROSTER_TABLES = (
    "members",
    "organizations",
    "contacts",
    "duty_positions",
    "achievements",
)


class BaseRosterAdapter(ABC):
    """Abstract base class for roster sources."""

    @abstractmethod
    def load_tables(self) -> Dict[str, pd.DataFrame]:
        """
        Read every roster table in one pass.

        Returns:
            Mapping of table name (see ``ROSTER_TABLES``) to a DataFrame whose
            columns are already in the standardized snake_case layout.

        Raises:
            SourceUnavailable: If the source cannot be read.
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Short human-readable description of the source, used in logs."""
        pass
