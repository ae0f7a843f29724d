from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from drivecache.schemas import FileRecord

from .synchronizer import Synchronizer

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 10


@dataclass(slots=True)
class UploadOutcome:
    path: str
    record: FileRecord | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BulkUploadReport:
    outcomes: list[UploadOutcome] = field(default_factory=list)

    @property
    def uploaded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> list[UploadOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]


class BulkUploader:
    """Seeds the remote store from every file under the mirror root."""

    def __init__(self, *, synchronizer: Synchronizer, max_workers: int = DEFAULT_MAX_WORKERS) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1.")
        self.synchronizer = synchronizer
        self.max_workers = max_workers

    def upload_all(self) -> BulkUploadReport:
        report = BulkUploadReport()
        mirror = self.synchronizer.mirror
        # A missing parent folder would fail every task, so resolve it up front.
        self.synchronizer.init()

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="drivecache-upload") as pool:
            futures: dict[Future[UploadOutcome], str] = {}
            for relative_path in mirror.walk():
                futures[pool.submit(self._upload_one, relative_path)] = relative_path

            for future in as_completed(futures):
                report.outcomes.append(future.result())

        report.outcomes.sort(key=lambda outcome: outcome.path)
        logger.info(
            "upload_all finished uploaded=%s failed=%s",
            report.uploaded,
            len(report.failed),
        )
        return report

    def _upload_one(self, relative_path: str) -> UploadOutcome:
        try:
            relative_path = self.synchronizer.mirror.normalize(relative_path)
            content = self.synchronizer.mirror.read(relative_path)
            logger.debug("uploading from upload_all path=%s", relative_path)
            remote_obj = self.synchronizer.upload_to_remote(relative_path, content, replace=False)
            record = self.synchronizer.record(relative_path, remote_obj, size_bytes=len(content))
        except Exception as exc:
            logger.exception("failed to upload path=%s in upload_all", relative_path)
            return UploadOutcome(path=relative_path, error=exc)
        return UploadOutcome(path=relative_path, record=record)
