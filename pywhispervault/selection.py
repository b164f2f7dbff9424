"""Selection and contextual-menu state.

Tracks which item a menu or vault dialog is open for::

    Closed --open_menu--> MenuOpen(item) --open_dialog--> DialogOpen(item, draft)
       ^                      |                                |
       +------- close --------+------------- close ------------+

Opening a menu from any state replaces the previous target, so there is
never more than one.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import DEFAULT_ALGORITHM, EncryptionAlgorithm, Item

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when a menu or dialog transition is not allowed.

    This is a local state error, not a server error, so it is not a
    :class:`WhisperAPIError`.
    """


class SelectionState(str, Enum):
    CLOSED = "closed"
    MENU_OPEN = "menu_open"
    DIALOG_OPEN = "dialog_open"


class VaultAction(str, Enum):
    ENCRYPT = "encrypt"
    DECRYPT = "decrypt"


KEY_HINTS = {
    VaultAction.ENCRYPT: (
        "Choose an encryption type and enter a key to encrypt this item."
    ),
    VaultAction.DECRYPT: "Enter the encryption key to decrypt this item.",
}


@dataclass
class VaultDraft:
    """Input of an in-progress encrypt or decrypt dialog.

    Never persisted. :meth:`discard` wipes the key once the dialog closes.
    """

    key: str = ""
    algorithm: EncryptionAlgorithm = DEFAULT_ALGORITHM

    def discard(self) -> None:
        self.key = ""
        self.algorithm = DEFAULT_ALGORITHM

    def __repr__(self) -> str:
        # Keep keys out of logs and tracebacks
        masked = "***" if self.key else ""
        return f"VaultDraft(key={masked!r}, algorithm={self.algorithm.value!r})"


class MenuState:
    """State machine for the contextual menu and the vault dialog."""

    def __init__(self) -> None:
        self._state = SelectionState.CLOSED
        self._target: Optional[Item] = None
        self._draft: Optional[VaultDraft] = None

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def target(self) -> Optional[Item]:
        """The item the menu or dialog is open for."""
        return self._target

    @property
    def draft(self) -> Optional[VaultDraft]:
        return self._draft

    @property
    def is_closed(self) -> bool:
        return self._state is SelectionState.CLOSED

    @property
    def vault_action(self) -> Optional[VaultAction]:
        """The only vault action allowed for the current target."""
        if self._target is None:
            return None
        if self._target.is_encrypted:
            return VaultAction.DECRYPT
        return VaultAction.ENCRYPT

    @property
    def key_hint(self) -> Optional[str]:
        action = self.vault_action
        return KEY_HINTS[action] if action is not None else None

    def open_menu(self, item: Item) -> None:
        """Open the menu for ``item``, replacing any previous selection."""
        if self._draft is not None:
            self._draft.discard()
            self._draft = None
        self._target = item
        self._state = SelectionState.MENU_OPEN
        logger.debug(f"Menu opened for {item.kind.value} {item.id}")

    def open_dialog(self) -> VaultDraft:
        """Move from the open menu to the vault dialog with an empty draft.

        Raises:
            InvalidTransitionError: If no menu is open
        """
        if self._state is not SelectionState.MENU_OPEN:
            raise InvalidTransitionError(
                f"Cannot open the vault dialog from state '{self._state.value}'"
            )
        self._draft = VaultDraft()
        self._state = SelectionState.DIALOG_OPEN
        return self._draft

    def close(self) -> None:
        """Return to Closed, wiping any draft."""
        if self._draft is not None:
            self._draft.discard()
        self._draft = None
        self._target = None
        self._state = SelectionState.CLOSED

    def require_target(self) -> Item:
        """Return the target or fail when nothing is selected."""
        if self._target is None:
            raise InvalidTransitionError("No item selected")
        return self._target

    def require_draft(self) -> VaultDraft:
        if self._state is not SelectionState.DIALOG_OPEN or self._draft is None:
            raise InvalidTransitionError("The vault dialog is not open")
        return self._draft
