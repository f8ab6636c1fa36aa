"""
Unit tests for roster change detection.
"""

import pytest

from conftest import member_row
from sync.change_cache import ChangeDetectionCache, ChangeKind
from sync.storage import StorageError


@pytest.fixture
def cache(memory_store):
    return ChangeDetectionCache(memory_store)


class TestChangeDetectionCache:
    def test_first_run_everything_is_new(self, cache, make_snapshot):
        snapshot = make_snapshot([member_row(1), member_row(2)])

        assert cache.classify(snapshot) == {1: ChangeKind.NEW, 2: ChangeKind.NEW}

    def test_unchanged_after_commit(self, cache, make_snapshot):
        snapshot = make_snapshot([member_row(1), member_row(2)])
        cache.commit(snapshot)

        assert cache.changed_members(make_snapshot([member_row(1), member_row(2)])) == []

    def test_only_modified_member_is_changed(self, cache, make_snapshot):
        cache.commit(make_snapshot([member_row(1), member_row(2)]))

        kinds = cache.classify(make_snapshot([member_row(1, rank="Maj"), member_row(2), member_row(3)]))

        assert kinds == {1: ChangeKind.CHANGED, 2: ChangeKind.UNCHANGED, 3: ChangeKind.NEW}

    def test_moving_unit_changes_fingerprint(self, make_snapshot):
        before = make_snapshot([member_row(1, org_id="100")])
        after = make_snapshot([member_row(1, org_id="200")])

        assert ChangeDetectionCache.content_hash(before.member(1), before.path_for(before.member(1))) != (
            ChangeDetectionCache.content_hash(after.member(1), after.path_for(after.member(1)))
        )

    def test_code_order_does_not_change_fingerprint(self, make_snapshot):
        first = make_snapshot([member_row(1)], duty_positions=[
            {"member_id": "1", "code": "CC"}, {"member_id": "1", "code": "PAO"},
        ])
        second = make_snapshot([member_row(1)], duty_positions=[
            {"member_id": "1", "code": "PAO"}, {"member_id": "1", "code": "CC"},
        ])

        assert ChangeDetectionCache.content_hash(first.member(1)) == ChangeDetectionCache.content_hash(second.member(1))

    def test_failed_members_are_retried_next_run(self, cache, make_snapshot):
        snapshot = make_snapshot([member_row(1), member_row(2)])
        cache.mark_failed(2)
        cache.commit(snapshot)

        assert [m.member_id for m in cache.changed_members(snapshot)] == [2]
        assert cache.failed_ids() == set()

    def test_corrupt_cache_raises(self, memory_store, make_snapshot):
        memory_store.put("roster:member-hashes", "[not a dict]")

        with pytest.raises(StorageError):
            ChangeDetectionCache(memory_store).classify(make_snapshot([member_row(1)]))
