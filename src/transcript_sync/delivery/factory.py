"""Selects the single delivery target for this process from settings."""

from __future__ import annotations

import structlog

from src.transcript_sync.config import DeliveryTargetKind, Settings
from src.transcript_sync.core.errors import ConfigurationError
from src.transcript_sync.delivery.base import DeliveryTarget
from src.transcript_sync.delivery.dropbox import DropboxTarget
from src.transcript_sync.delivery.google_drive import DriveAuthManager, GoogleDriveTarget
from src.transcript_sync.delivery.local_storage import LocalStorageTarget
from src.transcript_sync.delivery.synced_folder import SyncedFolderTarget

logger = structlog.get_logger(__name__)


def build_delivery_target(settings: Settings) -> DeliveryTarget:
    """Build the configured target once at start-up.

    Raises:
        ConfigurationError: the selected target is missing credentials.
    """
    kind = settings.DELIVERY_TARGET

    if kind == DeliveryTargetKind.google_drive:
        sa_path = settings.get_service_account_path()
        if not sa_path:
            raise ConfigurationError(["google_drive target needs service account credentials"])
        target: DeliveryTarget = GoogleDriveTarget(
            auth_manager=DriveAuthManager(service_account_file=sa_path),
            folder_id=settings.GOOGLE_DRIVE_FOLDER_ID or None,
        )
    elif kind == DeliveryTargetKind.synced_folder:
        target = SyncedFolderTarget(
            base_path=settings.GOOGLE_DRIVE_LOCAL_PATH or None,
            target_folder=settings.GOOGLE_DRIVE_TARGET_FOLDER,
        )
    elif kind == DeliveryTargetKind.local:
        target = LocalStorageTarget(base_path=settings.LOCAL_STORAGE_PATH)
    elif kind == DeliveryTargetKind.dropbox:
        if not settings.DROPBOX_ACCESS_TOKEN:
            raise ConfigurationError(["dropbox target needs DROPBOX_ACCESS_TOKEN"])
        target = DropboxTarget(
            access_token=settings.DROPBOX_ACCESS_TOKEN,
            folder_path=settings.DROPBOX_FOLDER_PATH,
        )
    else:
        raise ConfigurationError([f"unknown delivery target: {kind}"])

    logger.info("delivery.target_selected", target=target.kind.value)
    return target
