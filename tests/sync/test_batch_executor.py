"""
Unit tests for the checkpointed batch executor.
"""

import pytest

from google_workspace.exceptions import FatalDirectoryError, PermanentDirectoryError
from sync.batch_executor import BatchExecutor
from sync.checkpoint import Checkpoint, CheckpointStore
from sync.config import SyncConfig


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def config(**overrides):
    settings = dict(quota_seconds=1000.0, safety_margin_seconds=3.0, item_delay_seconds=0.0)
    settings.update(overrides)
    return SyncConfig(**settings)


@pytest.fixture
def checkpoints(memory_store):
    return CheckpointStore(memory_store)


class TestQuotaAndResume:
    def test_stops_before_quota_and_resumes_at_next_item(self, checkpoints):
        clock = FakeClock()
        processed = []

        def process(item):
            clock.advance(1.0)
            processed.append(item)

        items = list(range(100))
        first = BatchExecutor(checkpoints, config(quota_seconds=40.0), clock=clock).run_batch("job", items, process)

        assert first.processed == 37
        assert first.timed_out
        assert not first.completed
        assert processed == list(range(37))
        assert checkpoints.load("job").cursor == 37

        processed.clear()
        second = BatchExecutor(checkpoints, config(), clock=clock).run_batch("job", items, process)

        assert processed[0] == 37
        assert processed == list(range(37, 100))
        assert second.completed
        assert checkpoints.load("job") is None

    def test_long_items_raise_the_reserve(self, checkpoints):
        clock = FakeClock()

        def process(item):
            clock.advance(10.0)

        summary = BatchExecutor(checkpoints, config(quota_seconds=35.0), clock=clock).run_batch(
            "job", list(range(10)), process
        )

        # After three 10s items, 30s + 10s reserve would exceed 35s.
        assert summary.processed == 3
        assert summary.timed_out

    def test_shared_start_time_counts_earlier_jobs(self, checkpoints):
        clock = FakeClock()
        executor = BatchExecutor(checkpoints, config(quota_seconds=40.0), clock=clock, started_at=0.0)
        clock.advance(38.0)

        summary = executor.run_batch("late", [1, 2, 3], lambda item: None)

        assert summary.processed == 0
        assert summary.timed_out
        assert checkpoints.load("late").cursor == 0


class TestItemOutcomes:
    def test_item_errors_are_recorded_and_skipped(self, checkpoints):
        def process(item):
            if item == 2:
                raise PermanentDirectoryError("bad address", status=400, reason="invalid")
            return item * 10

        summary = BatchExecutor(checkpoints, config()).run_batch(
            "job", [1, 2, 3], process, describe=lambda item: f"item-{item}"
        )

        assert summary.completed
        assert summary.results == [10, 30]
        assert len(summary.errors) == 1
        assert summary.errors[0].label == "item-2"
        assert summary.errors[0].code == "400:invalid"

    def test_fatal_error_checkpoints_failing_item_and_aborts(self, checkpoints):
        calls = []

        def process(item):
            calls.append(item)
            if item == "c":
                raise FatalDirectoryError("token revoked", status=401)

        with pytest.raises(FatalDirectoryError):
            BatchExecutor(checkpoints, config()).run_batch("job", ["a", "b", "c", "d"], process)

        assert calls == ["a", "b", "c"]
        assert checkpoints.load("job").cursor == 2

    def test_unexpected_error_propagates_with_cursor_at_item(self, checkpoints):
        def process(item):
            if item == 1:
                raise KeyError("primaryEmail")

        with pytest.raises(KeyError):
            BatchExecutor(checkpoints, config()).run_batch("job", [0, 1, 2], process)

        assert checkpoints.load("job").cursor == 1

    def test_delay_between_items_only(self, checkpoints):
        sleeps = []

        BatchExecutor(checkpoints, config(item_delay_seconds=0.5), sleep=sleeps.append).run_batch(
            "job", [1, 2, 3], lambda item: None
        )

        assert sleeps == [0.5, 0.5]


class TestStopping:
    def test_batch_size_limit(self, checkpoints):
        summary = BatchExecutor(checkpoints, config(batch_size=2)).run_batch("job", list(range(5)), lambda item: None)

        assert summary.processed == 2
        assert summary.stop_reason == "batch_size"
        assert checkpoints.load("job").cursor == 2

    def test_cancellation(self, checkpoints):
        seen = []

        summary = BatchExecutor(checkpoints, config()).run_batch(
            "job", [1, 2, 3], seen.append, cancel_requested=lambda: len(seen) >= 1
        )

        assert seen == [1]
        assert summary.stop_reason == "cancelled"

    def test_empty_work_list_completes_and_clears(self, checkpoints):
        checkpoints.save(Checkpoint(job="job", cursor=3, total=5))

        summary = BatchExecutor(checkpoints, config()).run_batch("job", [], lambda item: None)

        assert summary.completed
        assert checkpoints.load("job") is None

    def test_cursor_past_end_restarts(self, checkpoints):
        checkpoints.save(Checkpoint(job="job", cursor=9, total=9))
        seen = []

        BatchExecutor(checkpoints, config()).run_batch("job", [1, 2], seen.append)

        assert seen == [1, 2]


class TestChangedWorkList:
    def test_checkpoint_remembers_last_processed_item(self, checkpoints):
        BatchExecutor(checkpoints, config(batch_size=2)).run_batch("job", ["a", "b", "c"], lambda item: None)

        saved = checkpoints.load("job")
        assert saved.cursor == 2
        assert saved.last_key == "b"

    def test_shrunk_list_resumes_after_last_processed_item(self, checkpoints):
        BatchExecutor(checkpoints, config(batch_size=2)).run_batch(
            "job", ["a@x.org", "b@x.org", "c@x.org", "d@x.org"], lambda item: None
        )
        seen = []

        # a@x.org was deleted between invocations.
        BatchExecutor(checkpoints, config()).run_batch("job", ["b@x.org", "c@x.org", "d@x.org"], seen.append)

        assert seen == ["c@x.org", "d@x.org"]

    def test_grown_list_resumes_after_last_processed_item(self, checkpoints):
        BatchExecutor(checkpoints, config(batch_size=2)).run_batch("job", ["b", "d", "f"], lambda item: None)
        seen = []

        BatchExecutor(checkpoints, config()).run_batch("job", ["a", "b", "c", "d", "e", "f"], seen.append)

        assert seen == ["e", "f"]

    def test_missing_last_item_restarts(self, checkpoints):
        checkpoints.save(Checkpoint(job="job", cursor=2, total=3, last_key="gone"))
        seen = []

        BatchExecutor(checkpoints, config()).run_batch("job", ["a", "b"], seen.append)

        assert seen == ["a", "b"]

    def test_fatal_error_keeps_key_of_last_finished_item(self, checkpoints):
        def process(item):
            if item == "c":
                raise FatalDirectoryError("token revoked", status=401)

        with pytest.raises(FatalDirectoryError):
            BatchExecutor(checkpoints, config()).run_batch("job", ["a", "b", "c"], process)

        saved = checkpoints.load("job")
        assert (saved.cursor, saved.last_key) == (2, "b")
