"""Item session: the view model behind every item listing.

An :class:`ItemSession` owns the item store, the menu/dialog state and the
active presentation. Front ends call its transition methods in response to
user input; the session talks to the gateway, refreshes the store after
every mutation and reports the outcome as a single notice.

Failures never leave a menu or dialog half open: every action ends in the
Closed state, and the vault draft (with its key) is wiped whether the
request succeeded or not. Mutations are never retried. There is no version
token, so concurrent edits from another session resolve as last write wins.
"""

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .api import WhisperGateway
from .exceptions import WhisperAPIError, WhisperValidationError
from .models import EncryptionAlgorithm, Item, ItemCollection, ItemKind
from .notices import (
    DECRYPT_FAILED,
    DECRYPT_KEY_MISSING,
    DECRYPT_OK,
    DELETE_FAILED,
    DELETE_OK,
    DOWNLOAD_FAILED,
    DOWNLOAD_OK,
    ENCRYPT_FAILED,
    ENCRYPT_KEY_MISSING,
    ENCRYPT_OK,
    FAVORITE_FAILED,
    FAVORITE_REMOVE_FAILED,
    FAVORITE_REMOVED,
    FAVORITE_UPDATED,
    FETCH_FAILED,
    FOLDER_CREATE_FAILED,
    FOLDER_CREATED,
    RENAME_FAILED,
    RENAME_OK,
    RESTORE_FAILED,
    RESTORE_OK,
    UPLOAD_FAILED,
    UPLOAD_OK,
    Notice,
    NoticeLevel,
    NoticeLog,
    Notifier,
)
from .selection import InvalidTransitionError, MenuState, VaultAction, VaultDraft
from .store import ItemStore
from .views import Presentation, View, build_view

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a session action."""

    ok: bool
    notice: Optional[Notice] = None
    error: Optional[Exception] = None
    value: Any = None


class ItemSession:
    """Drives listing, menu actions and the vault dialog for one user."""

    def __init__(
        self,
        gateway: WhisperGateway,
        store: Optional[ItemStore] = None,
        notifier: Optional[Notifier] = None,
        presentation: Presentation = Presentation.ALL,
    ):
        self.gateway = gateway
        self.store = store if store is not None else ItemStore(gateway)
        self.notifier: Notifier = notifier if notifier is not None else NoticeLog()
        self.presentation = Presentation(presentation)
        self.menu = MenuState()
        self.search_query = ""

    # =========================
    # Collection and views
    # =========================

    @property
    def collection(self) -> ItemCollection:
        return self.store.snapshot

    def view(self, search_query: Optional[str] = None) -> View:
        """The active presentation of the current snapshot."""
        query = self.search_query if search_query is None else search_query
        return build_view(self.presentation, self.store.snapshot, query)

    def set_search(self, query: str) -> View:
        self.search_query = query or ""
        return self.view()

    async def load(self) -> ActionResult:
        """Fetch the collection, keeping the previous one on failure."""
        try:
            await self.store.refresh()
        except WhisperAPIError as e:
            logger.warning(f"Failed to fetch items: {e}")
            return self._fail(FETCH_FAILED, e)
        return ActionResult(ok=True)

    def resolve(self, identifier: Union[Item, str]) -> Item:
        """Look an item up in the current snapshot by id or name."""
        if isinstance(identifier, Item):
            return identifier
        return self.store.snapshot.find(identifier)

    # =========================
    # Menu transitions
    # =========================

    def open_menu(self, item: Union[Item, str]) -> Item:
        """Open the contextual menu for an item (replacing any other)."""
        target = self.resolve(item)
        self.menu.open_menu(target)
        return target

    def close_menu(self) -> None:
        """Dismiss the menu or dialog without acting."""
        self.menu.close()

    def open_vault_dialog(
        self, expected: Optional[VaultAction] = None
    ) -> VaultDraft:
        """Open the encrypt/decrypt dialog for the menu's item.

        Args:
            expected: The action the caller intends. If it is not the one
                the item allows (encrypting an encrypted item, or
                decrypting a plain one) the menu closes and
                :class:`InvalidTransitionError` is raised.
        """
        target = self.menu.require_target()
        if expected is not None and self.menu.vault_action is not expected:
            self.menu.close()
            state = "encrypted" if target.is_encrypted else "not encrypted"
            raise InvalidTransitionError(
                f"Cannot {VaultAction(expected).value} '{target.name}': "
                f"item is {state}"
            )
        return self.menu.open_dialog()

    def set_key(self, key: str) -> None:
        self.menu.require_draft().key = key

    def set_algorithm(self, algorithm: Union[str, EncryptionAlgorithm]) -> None:
        self.menu.require_draft().algorithm = EncryptionAlgorithm.parse(algorithm)

    def cancel_dialog(self) -> None:
        self.menu.close()

    # =========================
    # Menu actions
    # =========================

    async def toggle_favorite(self) -> ActionResult:
        """Star or unstar the selected item."""
        item = self.menu.require_target()
        if self.presentation is Presentation.FAVORITES and item.is_favorite:
            success, failure = FAVORITE_REMOVED, FAVORITE_REMOVE_FAILED
        else:
            success, failure = FAVORITE_UPDATED, FAVORITE_FAILED
        return await self._menu_action(
            lambda: self.gateway.toggle_favorite(item.kind, item.id),
            success,
            failure,
        )

    async def delete(self) -> ActionResult:
        """Delete the selected item."""
        item = self.menu.require_target()
        return await self._menu_action(
            lambda: self.gateway.delete_item(item.kind, item.id),
            DELETE_OK,
            DELETE_FAILED,
        )

    async def rename(self, new_name: str) -> ActionResult:
        """Rename the selected item."""
        item = self.menu.require_target()
        return await self._menu_action(
            lambda: self.gateway.rename_item(item.kind, item.id, new_name),
            RENAME_OK,
            RENAME_FAILED,
        )

    async def share(self, expires_at: Optional[str] = None) -> ActionResult:
        """Create a share link for the selected file.

        Sharing changes nothing that the listing shows, so no refresh.
        """
        item = self.menu.require_target()
        try:
            if not item.is_file:
                error = WhisperValidationError("Only files can be shared")
                return self._fail(str(error), error)
            try:
                link = await self.gateway.share_file(item.id, expires_at)
            except WhisperAPIError as e:
                logger.warning(f"Share failed for {item.id}: {e}")
                return self._fail("Failed to share item", e)
            result = self._succeed("Share link created")
            return ActionResult(ok=True, notice=result.notice, value=link)
        finally:
            self.menu.close()

    async def download(self, output_path: Optional[Path] = None) -> ActionResult:
        """Save the selected file locally. A read, so no refresh."""
        item = self.menu.require_target()
        try:
            if not item.is_file:
                error = WhisperValidationError("Only files can be downloaded")
                return self._fail(str(error), error)
            try:
                saved = await self.gateway.download_file(item.id, output_path)
            except WhisperAPIError as e:
                logger.warning(f"Download failed for {item.id}: {e}")
                return self._fail(DOWNLOAD_FAILED, e)
            result = self._succeed(DOWNLOAD_OK)
            return ActionResult(ok=True, notice=result.notice, value=saved)
        finally:
            self.menu.close()

    async def submit_vault_dialog(self) -> ActionResult:
        """Submit the open encrypt/decrypt dialog.

        Encrypted items can only be decrypted and plain items only
        encrypted. An empty key fails without contacting the server.
        """
        item = self.menu.require_target()
        draft = self.menu.require_draft()
        action = self.menu.vault_action
        try:
            if not draft.key:
                message = (
                    DECRYPT_KEY_MISSING
                    if action is VaultAction.DECRYPT
                    else ENCRYPT_KEY_MISSING
                )
                return self._fail(message, WhisperValidationError(message))

            if action is VaultAction.DECRYPT:
                call = self.gateway.decrypt_item(item.kind, item.id, draft.key)
                success, failure = DECRYPT_OK, DECRYPT_FAILED
            else:
                call = self.gateway.encrypt_item(
                    item.kind, item.id, draft.key, draft.algorithm
                )
                success, failure = ENCRYPT_OK, ENCRYPT_FAILED

            return await self._mutation(lambda: call, success, failure)
        finally:
            self.menu.close()

    # =========================
    # Actions without a selection
    # =========================

    async def restore(self, kind: ItemKind, item_id: str) -> ActionResult:
        """Restore a deleted item (it is not part of the listing yet)."""
        return await self._mutation(
            lambda: self.gateway.restore_item(kind, item_id),
            RESTORE_OK,
            RESTORE_FAILED,
        )

    async def create_folder(
        self, name: str, parent_id: Optional[str] = None
    ) -> ActionResult:
        return await self._mutation(
            lambda: self.gateway.create_folder(name, parent_id),
            FOLDER_CREATED,
            FOLDER_CREATE_FAILED,
        )

    async def upload(
        self, file_path: Path, parent_id: Optional[str] = None
    ) -> ActionResult:
        """Upload a local file; the new file shows up after the refresh."""
        return await self._mutation(
            lambda: self.gateway.upload_file(file_path, parent_id),
            UPLOAD_OK,
            UPLOAD_FAILED,
        )

    # =========================
    # Internals
    # =========================

    async def _menu_action(
        self,
        call: Callable[[], Awaitable[Any]],
        success: str,
        failure: str,
    ) -> ActionResult:
        try:
            return await self._mutation(call, success, failure)
        finally:
            self.menu.close()

    async def _mutation(
        self,
        call: Callable[[], Awaitable[Any]],
        success: str,
        failure: str,
    ) -> ActionResult:
        """Run one gateway mutation, then refresh whatever the outcome."""
        try:
            value = await call()
        except WhisperAPIError as e:
            logger.warning(f"{failure}: {e}")
            await self._refresh_after_mutation()
            return self._fail(failure, e)

        await self._refresh_after_mutation()
        result = self._succeed(success)
        return ActionResult(ok=True, notice=result.notice, value=value)

    async def _refresh_after_mutation(self) -> None:
        try:
            await self.store.refresh()
        except WhisperAPIError as e:
            # The last snapshot stays visible
            logger.warning(f"Refresh after mutation failed: {e}")

    def _succeed(self, message: str) -> ActionResult:
        notice = Notice(NoticeLevel.SUCCESS, message)
        self.notifier(notice)
        return ActionResult(ok=True, notice=notice)

    def _fail(self, message: str, error: Exception) -> ActionResult:
        notice = Notice(NoticeLevel.ERROR, message)
        self.notifier(notice)
        return ActionResult(ok=False, notice=notice, error=error)
