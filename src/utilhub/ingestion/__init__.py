"""
Upload ingestion: row model, upload versioning and tabular row reading.
"""

from .models import RawFeedRecord
from .versioner import UploadResult, UploadVersioner

__all__ = ["RawFeedRecord", "UploadResult", "UploadVersioner"]
