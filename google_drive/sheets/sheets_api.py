import logging
from typing import Any, Dict, List, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build

from google_workspace.exceptions import PermanentDirectoryError, TransientDirectoryError
from google_workspace.retry import RetryPolicy, with_retry
from sync.exceptions import ConfigurationError
from sync.group_rules import GroupDefinition

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class GoogleSheetsAdapter:
    SCOPES = SCOPES

    def __init__(self, service: Any, retry_policy: Optional[RetryPolicy] = None):
        self.service = service
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_service_account(
        cls,
        service_account_file: str,
        subject: Optional[str] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> "GoogleSheetsAdapter":
        creds = service_account.Credentials.from_service_account_file(service_account_file, scopes=cls.SCOPES)
        if subject:
            creds = creds.with_subject(subject)
        return cls(build("sheets", "v4", credentials=creds, cache_discovery=False), retry_policy)

    def fetch_data(self, spreadsheet_id: str, range_name: str) -> Optional[List[List[Any]]]:
        """
        Read one range, retrying transient failures.

        Returns:
            The cell values, or None when the range cannot be read.

        Raises:
            FatalDirectoryError: If the credentials are rejected.
        """
        request = self.service.spreadsheets().values().get(spreadsheetId=spreadsheet_id, range=range_name)
        try:
            result = with_retry(request.execute, self.retry_policy, f"read {range_name}")
        except (PermanentDirectoryError, TransientDirectoryError) as err:
            logger.error(f"Error reading {range_name} from {spreadsheet_id}: {err}")
            return None
        return result.get("values", [])


def rows_as_dicts(values: List[List[Any]]) -> List[Dict[str, str]]:
    """
    Turn sheet values into dicts keyed by the header row.

    Header names are lower-cased with spaces replaced by underscores. Short
    rows are padded with empty strings and fully blank rows are dropped.
    """
    if not values:
        return []

    header = [str(h).strip().lower().replace(" ", "_") for h in values[0]]
    rows = []
    for row in values[1:]:
        cells = [str(c).strip() for c in row] + [""] * (len(header) - len(row))
        if not any(cells):
            continue
        rows.append(dict(zip(header, cells)))
    return rows


class SheetsConfigStore:
    """
    Reads operator-maintained configuration from a spreadsheet.

    Two tabs are expected:
    - thresholds: ``name | value`` rows (grace_days, archive_days, ...)
    - groups: ``category | base_name | attribute | values`` rows
    """

    def __init__(
        self,
        adapter: GoogleSheetsAdapter,
        spreadsheet_id: str,
        thresholds_range: str = "Thresholds",
        groups_range: str = "Groups",
    ):
        self.adapter = adapter
        self.spreadsheet_id = spreadsheet_id
        self.thresholds_range = thresholds_range
        self.groups_range = groups_range

    def _rows(self, range_name: str) -> List[Dict[str, str]]:
        values = self.adapter.fetch_data(self.spreadsheet_id, range_name)
        if values is None:
            raise ConfigurationError(f"Could not read '{range_name}' from configuration spreadsheet")
        return rows_as_dicts(values)

    def load_thresholds(self) -> Dict[str, str]:
        thresholds = {}
        for row in self._rows(self.thresholds_range):
            name = row.get("name", "")
            if name:
                thresholds[name.lower()] = row.get("value", "")
        logger.info(f"Loaded {len(thresholds)} threshold(s) from configuration spreadsheet")
        return thresholds

    def load_group_definitions(self) -> List[GroupDefinition]:
        """
        Raises:
            ConfigurationError: If the tab is unreadable or a row names an
                unknown attribute or has no base name.
        """
        definitions = []
        for index, row in enumerate(self._rows(self.groups_range), start=2):
            try:
                definitions.append(GroupDefinition.from_row(row))
            except ConfigurationError as e:
                raise ConfigurationError(f"{self.groups_range} row {index}: {e}") from e
        logger.info(f"Loaded {len(definitions)} group definition(s)")
        return definitions
