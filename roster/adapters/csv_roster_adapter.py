import logging
import os
from typing import Dict, Optional

import pandas as pd

from ..exceptions import SourceUnavailable
from .base_roster_adapter import ROSTER_TABLES, BaseRosterAdapter

logger = logging.getLogger(__name__)

DEFAULT_FILENAMES = {table: f"{table}.csv" for table in ROSTER_TABLES}

# Tables the snapshot cannot be built without. The rest may be absent.
REQUIRED_TABLES = ("members", "organizations")


class CsvRosterAdapter(BaseRosterAdapter):
    """
    Roster source backed by a directory of CSV exports.

    Every file is read as strings so identifiers keep their exact textual
    form; type coercion and validation happen in the snapshot loader.
    """

    def __init__(
        self,
        roster_dir: str,
        filenames: Optional[Dict[str, str]] = None,
        encoding: str = "utf-8",
    ):
        """
        Args:
            roster_dir: Directory holding the exported roster files.
            filenames: Optional override of the file name per logical table.
            encoding: Text encoding of the exports.
        """
        self.roster_dir = roster_dir
        self.filenames = {**DEFAULT_FILENAMES, **(filenames or {})}
        self.encoding = encoding

    def describe(self) -> str:
        return f"CSV roster at {self.roster_dir}"

    def load_tables(self) -> Dict[str, pd.DataFrame]:
        if not os.path.isdir(self.roster_dir):
            raise SourceUnavailable(f"Roster directory not found: {self.roster_dir}")

        tables = {}
        for table in ROSTER_TABLES:
            path = os.path.join(self.roster_dir, self.filenames[table])
            if not os.path.exists(path):
                if table in REQUIRED_TABLES:
                    raise SourceUnavailable(f"Required roster file missing: {path}")
                logger.warning(f"Optional roster file missing, using empty table: {path}")
                tables[table] = pd.DataFrame()
                continue

            try:
                df = pd.read_csv(
                    path,
                    dtype=str,
                    keep_default_na=False,
                    encoding=self.encoding,
                )
            except (
                OSError,
                UnicodeDecodeError,
                pd.errors.ParserError,
                pd.errors.EmptyDataError,
            ) as e:
                raise SourceUnavailable(f"Could not read roster file {path}: {e}") from e

            df.columns = [str(col).strip().lower() for col in df.columns]
            tables[table] = df
            logger.debug(f"Loaded {len(df)} rows from {path}")

        return tables
