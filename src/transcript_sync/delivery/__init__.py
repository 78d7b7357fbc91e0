"""Delivery targets -- interchangeable destinations for rendered transcripts.

Provides the DeliveryTarget ABC, the DeliveryReceipt model, the four
backends (Google Drive API, locally-synced Drive folder, plain local
storage, Dropbox) and the start-up builder that picks one of them.
"""

from src.transcript_sync.delivery.base import DeliveryReceipt, DeliveryTarget
from src.transcript_sync.delivery.dropbox import DropboxTarget
from src.transcript_sync.delivery.factory import build_delivery_target
from src.transcript_sync.delivery.google_drive import DriveAuthManager, GoogleDriveTarget
from src.transcript_sync.delivery.local_storage import LocalStorageTarget
from src.transcript_sync.delivery.synced_folder import SyncedFolderTarget

__all__ = [
    "DeliveryReceipt",
    "DeliveryTarget",
    "DriveAuthManager",
    "DropboxTarget",
    "GoogleDriveTarget",
    "LocalStorageTarget",
    "SyncedFolderTarget",
    "build_delivery_target",
]
