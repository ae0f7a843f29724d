from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from drivecache.schemas import FileRecord
from drivecache.storage import LocalMirror, MetadataStore

logger = logging.getLogger(__name__)

IDLE_INTERVAL_SECONDS = 60.0
DRAIN_INTERVAL_SECONDS = 1.0
DEFAULT_BATCH_SIZE = 10


@dataclass(slots=True)
class SweepResult:
    total_before: int
    excess: int = 0
    removed: list[str] = field(default_factory=list)
    removed_bytes: int = 0
    drain: bool = False


class EvictionSweeper:
    """Keeps the tracked mirror size under budget by evicting LRU files.

    Only the local copy and its record are removed; the remote object stays
    and can be fetched again.
    """

    def __init__(
        self,
        *,
        metadata: MetadataStore,
        mirror: LocalMirror,
        max_total_bytes: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
        idle_interval_seconds: float = IDLE_INTERVAL_SECONDS,
        drain_interval_seconds: float = DRAIN_INTERVAL_SECONDS,
    ) -> None:
        if max_total_bytes < 0:
            raise ValueError("max_total_bytes must be >= 0.")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1.")
        if idle_interval_seconds <= 0 or drain_interval_seconds <= 0:
            raise ValueError("sweep intervals must be > 0.")

        self.metadata = metadata
        self.mirror = mirror
        self.max_total_bytes = max_total_bytes
        self.batch_size = batch_size
        self.idle_interval_seconds = idle_interval_seconds
        self.drain_interval_seconds = drain_interval_seconds

    def sweep(self) -> SweepResult:
        """Run one cycle. Errors abort the cycle and propagate; earlier removals stay."""
        total = self.metadata.total_size()
        result = SweepResult(total_before=total)
        if total <= self.max_total_bytes:
            return result

        result.excess = total - self.max_total_bytes
        logger.debug(
            "total size exceeded total=%s max_size=%s",
            total,
            self.max_total_bytes,
        )
        candidates = self.metadata.query_oldest(self.batch_size)
        victims = _select_victims(candidates, result.excess)

        for record in victims:
            self.metadata.delete(record.relative_path)
            self.mirror.delete(record.relative_path)
            result.removed.append(record.relative_path)
            result.removed_bytes += record.size_bytes
            logger.info(
                "evicted path=%s size=%s last_access=%s",
                record.relative_path,
                record.size_bytes,
                record.last_access.isoformat(),
            )

        result.drain = result.removed_bytes <= result.excess
        return result

    def run(self, stop_event: threading.Event) -> None:
        """Tick until ``stop_event`` is set."""
        interval = self.idle_interval_seconds
        logger.info(
            "sweeper started max_size=%s idle=%ss drain=%ss",
            self.max_total_bytes,
            self.idle_interval_seconds,
            self.drain_interval_seconds,
        )
        while not stop_event.wait(interval):
            interval = self.drain_interval_seconds if self._tick() else self.idle_interval_seconds
        logger.info("sweeper stopped")

    def start(self, stop_event: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self.run,
            args=(stop_event,),
            name="drivecache-sweeper",
            daemon=True,
        )
        thread.start()
        return thread

    def _tick(self) -> bool:
        try:
            return self.sweep().drain
        except Exception:
            logger.exception("sweep cycle aborted")
            return False


def _select_victims(candidates: list[FileRecord], excess: int) -> list[FileRecord]:
    selected: list[FileRecord] = []
    accumulated = 0
    for record in candidates:
        selected.append(record)
        accumulated += record.size_bytes
        if accumulated > excess:
            break
    return selected
