import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    """
    Resume position of a batch job.

    Attributes:
        job: Logical job name the checkpoint belongs to.
        cursor: Number of fully processed items, i.e. index of the next item.
        total: Length of the work list when the checkpoint was taken.
        last_key: Label of the last processed item, used to realign the
            cursor when the work list changed between invocations.
        updated_at: ISO-8601 UTC timestamp of the last update.
    """

    job: str
    cursor: int = 0
    total: int = 0
    last_key: str = ""
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def advance(self, cursor: int, last_key: Optional[str] = None) -> "Checkpoint":
        key = self.last_key if last_key is None else last_key
        return Checkpoint(job=self.job, cursor=cursor, total=self.total, last_key=key)

    def to_json(self) -> str:
        return json.dumps(asdict(self), sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "Checkpoint":
        """
        Raises:
            StorageError: If the stored value is not a valid checkpoint.
        """
        try:
            data = json.loads(raw)
            cursor = int(data["cursor"])
            total = int(data["total"])
            job = str(data["job"])
        except (TypeError, ValueError, KeyError) as e:
            raise StorageError(f"Invalid checkpoint value: {raw!r}") from e
        if cursor < 0 or total < 0:
            raise StorageError(f"Invalid checkpoint value: {raw!r}")
        return cls(
            job=job,
            cursor=cursor,
            total=total,
            last_key=str(data.get("last_key", "")),
            updated_at=str(data.get("updated_at", "")),
        )


class CheckpointStore:
    """Typed checkpoint persistence on top of a key/value store."""

    KEY_PREFIX = "checkpoint:"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _key(self, job: str) -> str:
        return f"{self.KEY_PREFIX}{job}"

    def load(self, job: str) -> Optional[Checkpoint]:
        raw = self.store.get(self._key(job))
        if raw is None:
            return None
        return Checkpoint.from_json(raw)

    def save(self, checkpoint: Checkpoint) -> None:
        self.store.put(self._key(checkpoint.job), checkpoint.to_json())
        logger.debug(f"Checkpoint saved: {checkpoint.job} at {checkpoint.cursor}/{checkpoint.total}")

    def clear(self, job: str) -> None:
        self.store.delete(self._key(job))
        logger.debug(f"Checkpoint cleared: {job}")
