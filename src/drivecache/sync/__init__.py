"""Synchronizer, eviction sweeper and bulk uploader."""

from .bulk import BulkUploader, BulkUploadReport, UploadOutcome
from .sweeper import EvictionSweeper, SweepResult
from .synchronizer import Synchronizer

__all__ = [
    "BulkUploadReport",
    "BulkUploader",
    "EvictionSweeper",
    "SweepResult",
    "Synchronizer",
    "UploadOutcome",
]
