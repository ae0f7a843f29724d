from __future__ import annotations

import threading
import time

import pytest

from drivecache.errors import MetadataError
from drivecache.remote import MemoryRemoteStore
from drivecache.storage import LocalMirror, MemoryMetadataStore
from drivecache.sync import EvictionSweeper, Synchronizer

FILE_CONTENT = b"file number one"
PATHS = [
    "fileone.txt",
    "folder/filetwo.txt",
    "folder/filethree.txt",
    "folder/filefour.txt",
    "folder/filefive.txt",
]


class FailingDeleteMetadata(MemoryMetadataStore):
    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    def delete(self, relative_path: str) -> None:
        if relative_path == self.fail_on:
            raise MetadataError("backend unavailable", {"path": relative_path})
        super().delete(relative_path)


class FlakyTotalMetadata(MemoryMetadataStore):
    def __init__(self) -> None:
        super().__init__()
        self.failures_left = 2

    def total_size(self) -> int:
        if self.failures_left > 0:
            self.failures_left -= 1
            raise MetadataError("backend unavailable")
        return super().total_size()


def _setup(tmp_path, clock, *, max_size: int = 60, batch_size: int = 10, metadata=None):
    metadata = metadata if metadata is not None else MemoryMetadataStore()
    mirror = LocalMirror(tmp_path / "mirror")
    sync = Synchronizer(
        remote=MemoryRemoteStore(),
        metadata=metadata,
        mirror=mirror,
        remote_folder="roottestworker",
        clock=clock,
    )
    sweeper = EvictionSweeper(
        metadata=metadata,
        mirror=mirror,
        max_total_bytes=max_size,
        batch_size=batch_size,
        idle_interval_seconds=0.05,
        drain_interval_seconds=0.01,
    )
    return sync, sweeper


def _tracked_bytes(metadata: MemoryMetadataStore) -> int:
    return sum(record.size_bytes for record in metadata.list_records())


def _store_all(sync: Synchronizer) -> int:
    total = 0
    for path in PATHS:
        sync.store(path, FILE_CONTENT)
        total += len(FILE_CONTENT)
    return total


def test_sweep_under_budget_does_nothing(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=1_000)
    _store_all(sync)

    result = sweeper.sweep()

    assert result.removed == []
    assert result.drain is False
    assert sync.metadata.total_size() == len(FILE_CONTENT) * len(PATHS)


def test_sweep_evicts_least_recently_used_until_under_budget(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=60)
    total = _store_all(sync)
    assert sync.metadata.total_size() == total

    result = sweeper.sweep()

    assert sync.metadata.total_size() < 60
    assert result.removed == ["fileone.txt", "folder/filetwo.txt"]
    assert result.excess == total - 60
    assert result.drain is False
    assert not sync.mirror.exists("fileone.txt")
    assert not sync.mirror.exists("folder/filetwo.txt")
    for path in PATHS[2:]:
        assert sync.mirror.exists(path)


def test_sweep_never_touches_remote(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=60)
    _store_all(sync)

    sweeper.sweep()

    for path in PATHS:
        assert sync.find_remote(path) is not None


def test_sweep_is_stable_once_under_budget(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=60)
    _store_all(sync)
    sweeper.sweep()
    after_first = sync.metadata.total_size()

    result = sweeper.sweep()

    assert result.removed == []
    assert sync.metadata.total_size() == after_first


def test_touched_files_are_protected_from_eviction(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=60)
    _store_all(sync)
    sweeper.sweep()

    assert sync.fetch_or_touch(PATHS[0]) is True
    assert sync.fetch_or_touch(PATHS[1]) is True
    assert sync.mirror.exists(PATHS[0])
    assert sync.mirror.exists(PATHS[1])

    sweeper.sweep()

    assert sync.metadata.total_size() < 60
    assert not sync.mirror.exists(PATHS[2])
    assert sync.mirror.exists(PATHS[0])
    assert sync.mirror.exists(PATHS[1])


def test_touching_oldest_local_files_before_sweep_protects_them(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=60)
    _store_all(sync)

    assert sync.fetch_or_touch(PATHS[0]) is False
    assert sync.fetch_or_touch(PATHS[1]) is False

    result = sweeper.sweep()

    assert result.removed == [PATHS[2], PATHS[3]]
    assert sync.metadata.total_size() < 60
    assert not sync.mirror.exists(PATHS[2])
    assert not sync.mirror.exists(PATHS[3])
    for path in (PATHS[0], PATHS[1], PATHS[4]):
        assert sync.mirror.exists(path)
        assert sync.metadata.get(path) is not None

def test_sweep_keeps_strict_lru_order_among_candidates(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=40)
    _store_all(sync)
    sync.fetch_or_touch(PATHS[0])
    before = {record.relative_path: record for record in sync.metadata.list_records()}

    result = sweeper.sweep()

    assert result.removed == PATHS[1:4]
    kept = [before[record.relative_path] for record in sync.metadata.list_records()]
    assert [record.relative_path for record in kept] == [PATHS[4], PATHS[0]]
    newest_removed = max(before[path].last_access for path in result.removed)
    assert all(record.last_access > newest_removed for record in kept)


def test_sweep_switches_to_draining_when_batch_is_exhausted(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=0, batch_size=2)
    total = _store_all(sync)

    result = sweeper.sweep()

    assert result.removed == PATHS[:2]
    assert result.removed_bytes == 2 * len(FILE_CONTENT)
    assert result.removed_bytes <= result.excess
    assert result.drain is True
    assert sync.metadata.total_size() == total - result.removed_bytes


def test_sweep_aborts_on_first_failure_without_rollback(tmp_path, clock) -> None:
    metadata = FailingDeleteMetadata(fail_on="folder/filetwo.txt")
    sync, sweeper = _setup(tmp_path, clock, max_size=40, metadata=metadata)
    _store_all(sync)

    with pytest.raises(MetadataError):
        sweeper.sweep()

    assert metadata.get("fileone.txt") is None
    assert not sync.mirror.exists("fileone.txt")
    assert metadata.get("folder/filetwo.txt") is not None
    assert sync.mirror.exists("folder/filetwo.txt")
    assert metadata.get("folder/filethree.txt") is not None


def test_run_drains_in_background_and_stops_on_event(tmp_path, clock) -> None:
    sync, sweeper = _setup(tmp_path, clock, max_size=20, batch_size=1)
    _store_all(sync)
    stop_event = threading.Event()

    thread = sweeper.start(stop_event)
    deadline = time.monotonic() + 5.0
    while sync.metadata.total_size() > 20 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop_event.set()
    thread.join(timeout=2.0)

    assert not thread.is_alive()
    assert sync.metadata.total_size() <= 20
    assert sync.mirror.exists(PATHS[-1])


def test_run_survives_failing_cycles(tmp_path, clock) -> None:
    metadata = FlakyTotalMetadata()
    sync, sweeper = _setup(tmp_path, clock, max_size=60, metadata=metadata)
    _store_all(sync)
    stop_event = threading.Event()

    thread = sweeper.start(stop_event)
    deadline = time.monotonic() + 5.0
    while _tracked_bytes(metadata) > 60 and time.monotonic() < deadline:
        time.sleep(0.01)
    stop_event.set()
    thread.join(timeout=2.0)

    assert not thread.is_alive()
    assert metadata.failures_left == 0
    assert not sync.mirror.exists(PATHS[0])


def test_sweeper_rejects_invalid_settings(tmp_path) -> None:
    mirror = LocalMirror(tmp_path / "mirror")
    with pytest.raises(ValueError):
        EvictionSweeper(metadata=MemoryMetadataStore(), mirror=mirror, max_total_bytes=-1)
    with pytest.raises(ValueError):
        EvictionSweeper(metadata=MemoryMetadataStore(), mirror=mirror, max_total_bytes=1, batch_size=0)
