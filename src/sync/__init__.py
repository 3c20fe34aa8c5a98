"""
Remote record store adapter and session/prompt sync operations.
"""

from .manager import RecordSync
from .s3_records import OptimisticLockError, S3RecordStore

__all__ = ["OptimisticLockError", "RecordSync", "S3RecordStore"]
