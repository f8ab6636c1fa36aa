"""
Run report: per-item records plus aggregate counts for operators.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import requests

logger = logging.getLogger(__name__)

COUNTED_ACTIONS = (
    "created",
    "updated",
    "suspended",
    "archived",
    "deleted",
    "reactivated",
    "added",
    "removed",
    "noop",
    "skipped",
    "held",
    "errored",
)


@dataclass(frozen=True)
class ReportRecord:
    action: str
    address: str
    reason: str
    timestamp: str
    code: Optional[str] = None


@dataclass
class SyncReport:
    job: str
    dry_run: bool = False
    records: List[ReportRecord] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=lambda: {a: 0 for a in COUNTED_ACTIONS})
    timed_out: bool = False
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def record(self, action: str, address: str, reason: str = "", code: Optional[str] = None) -> ReportRecord:
        entry = ReportRecord(
            action=action,
            address=address,
            reason=reason,
            timestamp=datetime.now(timezone.utc).isoformat(),
            code=code,
        )
        self.records.append(entry)
        self.counts[action] = self.counts.get(action, 0) + 1
        return entry

    def count(self, action: str, amount: int = 1) -> None:
        """Bump a count without a per-item record (used for no-ops)."""
        self.counts[action] = self.counts.get(action, 0) + amount

    def error(self, address: str, reason: str, code: str) -> ReportRecord:
        return self.record("errored", address, reason, code)

    def failures_by_address(self) -> Dict[str, List[str]]:
        """Error codes per address, for triaging repeat failures."""
        failures: Dict[str, List[str]] = {}
        for entry in self.records:
            if entry.action == "errored":
                failures.setdefault(entry.address, []).append(entry.code or "unknown")
        return failures

    def to_dataframe(self) -> pd.DataFrame:
        columns = ["action", "address", "reason", "timestamp", "code"]
        return pd.DataFrame([asdict(r) for r in self.records], columns=columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "dry_run": self.dry_run,
            "started_at": self.started_at,
            "timed_out": self.timed_out,
            "counts": dict(self.counts),
            "failures": self.failures_by_address(),
            "records": [asdict(r) for r in self.records],
        }

    def log_summary(self) -> None:
        nonzero = {k: v for k, v in self.counts.items() if v}
        logger.info(f"\n{'=' * 70}")
        logger.info(f"Report for {self.job}{' (dry run)' if self.dry_run else ''}")
        logger.info(f"Counts: {nonzero or 'nothing to do'}")
        if self.timed_out:
            logger.info("Stopped before the time quota; the next run resumes from the checkpoint")
        for address, codes in sorted(self.failures_by_address().items()):
            logger.info(f"  ✗ {address}: {', '.join(codes)}")
        logger.info(f"{'=' * 70}\n")


class ReportNotifier:
    """Delivers a run report as JSON to an operator webhook."""

    def __init__(self, webhook_url: str, timeout: int = 30):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def send(self, report: SyncReport) -> bool:
        """
        Returns:
            bool: True if the webhook accepted the report. Delivery failures
            are logged, never raised; the sync itself already finished.
        """
        try:
            response = requests.post(self.webhook_url, json=report.to_dict(), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Could not deliver report for {report.job}: {e}")
            return False

        if response.status_code >= 300:
            logger.error(f"Report webhook returned {response.status_code}: {response.text[:200]}")
            return False

        logger.info(f"Report for {report.job} delivered ({response.status_code})")
        return True
