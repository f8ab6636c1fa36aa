import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

from google_workspace.retry import RetryPolicy

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Thresholds that can be overridden from the configuration store.
THRESHOLD_NAMES = ("grace_days", "archive_days", "delete_days", "batch_size", "max_batch_size")

TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_number(name: str, default: Any, cast: type) -> Any:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a {cast.__name__}, got {value!r}")


@dataclass(frozen=True)
class SyncConfig:
    """
    Explicit configuration value handed to every sync component.

    Attributes:
        domain: Workspace domain for new accounts and groups.
        customer_id: Workspace customer id.
        grace_days: Days after leaving the active roster before suspension.
        archive_days: Days of inactivity before a suspended account is archived.
        delete_days: Days of inactivity before an archived account may be deleted.
        delete_enabled: Opt-in for the irreversible ARCHIVED -> DELETED step.
        batch_size: Max work items per invocation (0 = limited by time only).
        max_batch_size: Page size for directory listing calls (API max 200 for members).
        quota_seconds: Wall-clock budget of one invocation.
        safety_margin_seconds: Budget kept in reserve before starting another item.
        item_delay_seconds: Pause between work items to respect rate limits.
    """

    domain: str = ""
    customer_id: str = "my_customer"
    grace_days: int = 7
    archive_days: int = 365
    delete_days: int = 1825
    delete_enabled: bool = False
    batch_size: int = 0
    max_batch_size: int = 200
    quota_seconds: float = 330.0
    safety_margin_seconds: float = 30.0
    item_delay_seconds: float = 0.1
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 32.0
    roster_dir: str = ""
    checkpoint_path: str = ".roster_sync_state.json"
    database_url: Optional[str] = None
    service_account_file: Optional[str] = None
    admin_subject: Optional[str] = None
    report_webhook: Optional[str] = None
    config_spreadsheet_id: Optional[str] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If any threshold is out of range.
        """
        for name in ("grace_days", "archive_days", "delete_days", "batch_size"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if self.max_batch_size < 1:
            raise ConfigurationError("max_batch_size must be >= 1")
        if self.quota_seconds <= 0:
            raise ConfigurationError("quota_seconds must be > 0")
        if self.safety_margin_seconds < 0 or self.item_delay_seconds < 0:
            raise ConfigurationError("safety_margin_seconds and item_delay_seconds must be >= 0")
        if self.retry_max_attempts < 1:
            raise ConfigurationError("retry_max_attempts must be >= 1")
        if self.archive_days < self.grace_days:
            logger.warning(
                f"archive_days ({self.archive_days}) is shorter than grace_days ({self.grace_days})"
            )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SyncConfig":
        """Build configuration from environment variables (and a ``.env`` file)."""
        load_dotenv(env_file)
        defaults = cls()
        return cls(
            domain=os.getenv("WORKSPACE_DOMAIN", defaults.domain),
            customer_id=os.getenv("WORKSPACE_CUSTOMER_ID", defaults.customer_id),
            grace_days=_env_number("SYNC_GRACE_DAYS", defaults.grace_days, int),
            archive_days=_env_number("SYNC_ARCHIVE_DAYS", defaults.archive_days, int),
            delete_days=_env_number("SYNC_DELETE_DAYS", defaults.delete_days, int),
            delete_enabled=_env_bool("SYNC_DELETE_ENABLED", defaults.delete_enabled),
            batch_size=_env_number("SYNC_BATCH_SIZE", defaults.batch_size, int),
            max_batch_size=_env_number("SYNC_MAX_BATCH_SIZE", defaults.max_batch_size, int),
            quota_seconds=_env_number("SYNC_QUOTA_SECONDS", defaults.quota_seconds, float),
            safety_margin_seconds=_env_number(
                "SYNC_SAFETY_MARGIN_SECONDS", defaults.safety_margin_seconds, float
            ),
            item_delay_seconds=_env_number("SYNC_ITEM_DELAY_SECONDS", defaults.item_delay_seconds, float),
            retry_max_attempts=_env_number("SYNC_RETRY_MAX_ATTEMPTS", defaults.retry_max_attempts, int),
            retry_base_delay=_env_number("SYNC_RETRY_BASE_DELAY", defaults.retry_base_delay, float),
            retry_max_delay=_env_number("SYNC_RETRY_MAX_DELAY", defaults.retry_max_delay, float),
            roster_dir=os.getenv("ROSTER_DIR", defaults.roster_dir),
            checkpoint_path=os.getenv("CHECKPOINT_PATH", defaults.checkpoint_path),
            database_url=os.getenv("DATABASE_URL") or None,
            service_account_file=os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE") or None,
            admin_subject=os.getenv("WORKSPACE_ADMIN_SUBJECT") or None,
            report_webhook=os.getenv("SYNC_REPORT_WEBHOOK") or None,
            config_spreadsheet_id=os.getenv("CONFIG_SPREADSHEET_ID") or None,
        )

    def with_thresholds(self, thresholds: Mapping[str, Any]) -> "SyncConfig":
        """
        Return a copy with named thresholds overridden.

        Unknown names are ignored with a warning; values are coerced to int.

        Raises:
            ConfigurationError: If a value is not an integer.
        """
        overrides: Dict[str, int] = {}
        for name, value in thresholds.items():
            key = str(name).strip().lower()
            if key not in THRESHOLD_NAMES:
                logger.warning(f"Ignoring unknown threshold '{name}'")
                continue
            try:
                overrides[key] = int(float(str(value).strip()))
            except ValueError:
                raise ConfigurationError(f"Threshold {key} must be a number, got {value!r}")

        if overrides:
            logger.info(f"Applying threshold overrides: {overrides}")
        return replace(self, **overrides)

    def describe(self) -> Dict[str, Any]:
        """Settings safe to log (no credentials or endpoints)."""
        hidden = {"service_account_file", "database_url", "report_webhook"}
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in hidden}

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )
