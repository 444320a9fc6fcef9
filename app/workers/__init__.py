"""
Workers module
Background workers for scheduled sync
"""

from .sync_worker import SyncWorker, get_sync_worker, start_sync_worker, stop_sync_worker

__all__ = [
    "SyncWorker",
    "get_sync_worker",
    "start_sync_worker",
    "stop_sync_worker",
]
