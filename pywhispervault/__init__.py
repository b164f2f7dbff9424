"""WhisperVault client - browse, star and lock files and folders."""

from .api import WhisperClient, WhisperGateway
from .exceptions import (
    WhisperAPIError,
    WhisperAuthError,
    WhisperConfigError,
    WhisperDownloadError,
    WhisperFileNotFoundError,
    WhisperInvalidResponseError,
    WhisperNetworkError,
    WhisperNotFoundError,
    WhisperPermissionError,
    WhisperRateLimitError,
    WhisperValidationError,
    WhisperWrongKeyError,
)
from .models import (
    EncryptionAlgorithm,
    File,
    Folder,
    Item,
    ItemCollection,
    ItemKind,
    merge_collection,
)
from .selection import MenuState, SelectionState, VaultAction, VaultDraft
from .session import ActionResult, ItemSession
from .store import ItemStore
from .views import (
    Presentation,
    all_view,
    build_view,
    favorites_view,
    recent_view,
    vault_view,
)

__all__ = [
    "WhisperClient",
    "WhisperGateway",
    "WhisperAPIError",
    "WhisperAuthError",
    "WhisperConfigError",
    "WhisperDownloadError",
    "WhisperFileNotFoundError",
    "WhisperInvalidResponseError",
    "WhisperNetworkError",
    "WhisperNotFoundError",
    "WhisperPermissionError",
    "WhisperRateLimitError",
    "WhisperValidationError",
    "WhisperWrongKeyError",
    "EncryptionAlgorithm",
    "File",
    "Folder",
    "Item",
    "ItemCollection",
    "ItemKind",
    "merge_collection",
    "MenuState",
    "SelectionState",
    "VaultAction",
    "VaultDraft",
    "ActionResult",
    "ItemSession",
    "ItemStore",
    "Presentation",
    "all_view",
    "build_view",
    "favorites_view",
    "recent_view",
    "vault_view",
]
