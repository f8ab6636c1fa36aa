"""
Checkpointed, time-boxed batch executor.

The execution environment kills an invocation once its wall-clock quota is
spent, so long jobs run as a series of short invocations. The executor
persists a cursor after every item, refuses to start an item it might not
finish, and clears the cursor once the whole work list has been processed.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from google_workspace.exceptions import (
    FatalDirectoryError,
    PermanentDirectoryError,
    TransientDirectoryError,
)

from .checkpoint import Checkpoint, CheckpointStore
from .config import SyncConfig
from .exceptions import SyncItemError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures that skip one item; anything else aborts the batch.
ITEM_ERRORS = (PermanentDirectoryError, TransientDirectoryError, SyncItemError)


@dataclass(frozen=True)
class ItemError:
    index: int
    label: str
    code: str
    message: str


@dataclass
class BatchSummary(Generic[T]):
    job: str
    total: int
    start_cursor: int
    end_cursor: int = 0
    processed: int = 0
    timed_out: bool = False
    completed: bool = False
    stop_reason: str = ""
    elapsed_seconds: float = 0.0
    results: List[Any] = field(default_factory=list)
    errors: List[ItemError] = field(default_factory=list)


def _error_code(error: Exception) -> str:
    code = getattr(error, "code", None)
    return str(code) if code else type(error).__name__


class BatchExecutor:
    """
    Drives a work list item by item under a wall-clock quota.

    Attributes:
        store (CheckpointStore): Where cursors are persisted between invocations.
        config (SyncConfig): Supplies quota, safety margin, item delay and batch size.
    """

    def __init__(
        self,
        store: CheckpointStore,
        config: SyncConfig,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        started_at: Optional[float] = None,
    ):
        self.store = store
        self.config = config
        self.clock = clock
        self.sleep = sleep
        # Shared start time when several jobs split one invocation's quota.
        self.started_at = started_at

    def _starting_checkpoint(
        self, job: str, work_items: Sequence[T], describe: Callable[[T], str]
    ) -> Checkpoint:
        total = len(work_items)
        checkpoint = self.store.load(job)
        if checkpoint is None:
            logger.info(f"{job}: no checkpoint, starting from the beginning ({total} items)")
            return Checkpoint(job=job, cursor=0, total=total)

        cursor = checkpoint.cursor
        if checkpoint.total != total:
            logger.warning(
                f"{job}: work list changed since the checkpoint "
                f"({checkpoint.total} -> {total} items)"
            )

        # Items may have been added or removed ahead of the cursor; find the
        # last processed item again and resume right after it.
        if cursor > 0 and checkpoint.last_key:
            if cursor > total or describe(work_items[cursor - 1]) != checkpoint.last_key:
                labels = [describe(item) for item in work_items]
                if checkpoint.last_key in labels:
                    cursor = labels.index(checkpoint.last_key) + 1
                    logger.warning(f"{job}: realigned cursor after {checkpoint.last_key} (item {cursor})")
                else:
                    logger.warning(f"{job}: last processed item {checkpoint.last_key} is gone; restarting")
                    cursor = 0

        if cursor >= total:
            logger.warning(f"{job}: checkpoint cursor {cursor} is past the end; restarting")
            cursor = 0

        if cursor:
            logger.info(f"{job}: resuming from checkpoint at item {cursor + 1}/{total}")
        return Checkpoint(job=job, cursor=cursor, total=total, last_key=checkpoint.last_key if cursor else "")

    def _out_of_time(self, started: float, longest_item: float) -> bool:
        elapsed = self.clock() - started
        needed = max(self.config.safety_margin_seconds, longest_item)
        return elapsed + needed >= self.config.quota_seconds

    def run_batch(
        self,
        job: str,
        work_items: Sequence[T],
        process: Callable[[T], Any],
        describe: Callable[[T], str] = str,
        cancel_requested: Optional[Callable[[], bool]] = None,
    ) -> BatchSummary:
        """
        Process ``work_items`` from the persisted cursor onward.

        Args:
            job: Logical job name; keys the checkpoint.
            work_items: Ordered work list. Must be derived deterministically
                so resumed invocations see the same order.
            process: Called once per item.
            describe: Label for an item in logs and error records.
            cancel_requested: Optional callable checked before each item.

        Returns:
            BatchSummary of this invocation.

        Raises:
            FatalDirectoryError: Propagated after checkpointing at the failing
                item; no further items are attempted.
        """
        started = self.started_at if self.started_at is not None else self.clock()
        total = len(work_items)
        checkpoint = self._starting_checkpoint(job, work_items, describe)
        cursor = checkpoint.cursor
        summary = BatchSummary(job=job, total=total, start_cursor=cursor, end_cursor=cursor)

        if total == 0:
            self.store.clear(job)
            summary.completed = True
            summary.stop_reason = "empty"
            return summary

        self.store.save(checkpoint)

        longest_item = 0.0
        index = cursor
        while index < total:
            if cancel_requested is not None and cancel_requested():
                summary.stop_reason = "cancelled"
                logger.info(f"{job}: cancellation requested; stopping at item {index + 1}/{total}")
                break
            if self._out_of_time(started, longest_item):
                summary.timed_out = True
                summary.stop_reason = "quota"
                logger.info(
                    f"{job}: time quota nearly spent; checkpointing at item {index + 1}/{total}"
                )
                break
            if self.config.batch_size and summary.processed >= self.config.batch_size:
                summary.stop_reason = "batch_size"
                logger.info(f"{job}: batch size {self.config.batch_size} reached; checkpointing")
                break

            item = work_items[index]
            key = describe(item)
            label = key
            item_started = self.clock()
            try:
                summary.results.append(process(item))
            except FatalDirectoryError:
                self.store.save(checkpoint.advance(index))
                logger.error(f"{job}: fatal directory error at item {index + 1}/{total} ({label}); aborting")
                raise
            except ITEM_ERRORS as e:
                code = _error_code(e)
                label = getattr(e, "address", "") or label
                logger.error(
                    f"{job}: item {index + 1}/{total} ({label}) failed [{code}]: {e}",
                    extra={"job": job, "item": label, "code": code},
                )
                summary.errors.append(ItemError(index=index, label=label, code=code, message=str(e)))

            longest_item = max(longest_item, self.clock() - item_started)
            index += 1
            summary.processed += 1
            checkpoint = checkpoint.advance(index, key)
            self.store.save(checkpoint)

            if index < total and self.config.item_delay_seconds:
                self.sleep(self.config.item_delay_seconds)

        summary.end_cursor = index
        summary.elapsed_seconds = self.clock() - started
        if index >= total:
            self.store.clear(job)
            summary.completed = True
            summary.stop_reason = summary.stop_reason or "completed"

        logger.info(
            f"{job}: processed {summary.processed} item(s) "
            f"[{summary.start_cursor + 1}..{summary.end_cursor}] of {total} "
            f"in {summary.elapsed_seconds:.1f}s; {len(summary.errors)} error(s); "
            f"{'completed' if summary.completed else 'stopped: ' + summary.stop_reason}"
        )
        return summary
