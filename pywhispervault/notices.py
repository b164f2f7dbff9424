"""User-facing notices raised by session actions."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    """A single message for the user, like a toast in a web UI."""

    level: NoticeLevel
    message: str

    @property
    def is_error(self) -> bool:
        return self.level is NoticeLevel.ERROR


Notifier = Callable[[Notice], None]


@dataclass
class NoticeLog:
    """Notifier that records notices and optionally forwards them."""

    forward: Optional[Notifier] = None
    notices: list[Notice] = field(default_factory=list)

    def __call__(self, notice: Notice) -> None:
        logger.debug(f"Notice ({notice.level.value}): {notice.message}")
        self.notices.append(notice)
        if self.forward is not None:
            self.forward(notice)

    @property
    def last(self) -> Optional[Notice]:
        return self.notices[-1] if self.notices else None

    def clear(self) -> None:
        self.notices.clear()


# Messages shown for each action outcome
FETCH_FAILED = "Failed to fetch items"
FAVORITE_UPDATED = "Favorite status updated"
FAVORITE_REMOVED = "Removed from favorites"
FAVORITE_FAILED = "Failed to update favorite status"
FAVORITE_REMOVE_FAILED = "Failed to remove from favorites"
DELETE_OK = "Item deleted successfully"
DELETE_FAILED = "Failed to delete item"
RESTORE_OK = "Item restored successfully"
RESTORE_FAILED = "Failed to restore item"
RENAME_OK = "Item renamed successfully"
RENAME_FAILED = "Failed to rename item"
FOLDER_CREATED = "Folder created successfully"
FOLDER_CREATE_FAILED = "Failed to create folder"
UPLOAD_OK = "File uploaded successfully"
UPLOAD_FAILED = "Failed to upload file"
DOWNLOAD_OK = "File downloaded successfully"
DOWNLOAD_FAILED = "Failed to download file"
ENCRYPT_KEY_MISSING = "Please enter an encryption key"
DECRYPT_KEY_MISSING = "Please enter the encryption key"
ENCRYPT_OK = "Item encrypted successfully"
ENCRYPT_FAILED = "Failed to encrypt item"
DECRYPT_OK = "Item decrypted successfully"
DECRYPT_FAILED = "Failed to decrypt item. Please check your encryption key."
