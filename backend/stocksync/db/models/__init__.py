"""Database models for stocksync."""

from stocksync.db.models.enums import ImportStatus, LinkIssueReason, RemoteTaskStatus
from stocksync.db.models.imported_file import ImportedFile
from stocksync.db.models.kv_entry import KVEntry
from stocksync.db.models.link_issue import LinkIssue
from stocksync.db.models.remote_product import RemoteProduct
from stocksync.db.models.remote_task import RemoteTask
from stocksync.db.models.staging import StagingProduct, StagingStock

__all__ = [
    # Models
    "ImportedFile",
    "KVEntry",
    "LinkIssue",
    "RemoteProduct",
    "RemoteTask",
    "StagingProduct",
    "StagingStock",
    # Enums
    "ImportStatus",
    "LinkIssueReason",
    "RemoteTaskStatus",
]
