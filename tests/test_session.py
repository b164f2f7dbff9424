"""Tests for ItemSession: menu actions, the vault dialog and refreshes."""

import pytest

from pywhispervault.exceptions import (
    WhisperAPIError,
    WhisperNetworkError,
    WhisperNotFoundError,
    WhisperValidationError,
    WhisperWrongKeyError,
)
from pywhispervault.models import EncryptionAlgorithm, ItemKind
from pywhispervault.notices import (
    DECRYPT_FAILED,
    DECRYPT_KEY_MISSING,
    DECRYPT_OK,
    DELETE_FAILED,
    DELETE_OK,
    DOWNLOAD_FAILED,
    DOWNLOAD_OK,
    ENCRYPT_KEY_MISSING,
    ENCRYPT_OK,
    FAVORITE_REMOVED,
    FAVORITE_UPDATED,
    FETCH_FAILED,
    UPLOAD_FAILED,
    UPLOAD_OK,
    NoticeLevel,
    NoticeLog,
)
from pywhispervault.selection import (
    InvalidTransitionError,
    SelectionState,
    VaultAction,
)
from pywhispervault.session import ItemSession
from pywhispervault.views import Presentation


async def _loaded_session(gateway, presentation=Presentation.ALL):
    session = ItemSession(gateway, notifier=NoticeLog(), presentation=presentation)
    result = await session.load()
    assert result.ok
    gateway.calls.clear()
    return session


def _list_calls(gateway):
    return [call for call in gateway.calls if call[0] == "list_items"]


class TestLoad:
    """Tests for the initial fetch."""

    @pytest.mark.asyncio
    async def test_load_populates_view(self, gateway):
        session = await _loaded_session(gateway)

        assert [item.name for item in session.view()] == [
            "Taxes",
            "photo.png",
            "diary.txt",
        ]

    @pytest.mark.asyncio
    async def test_load_failure_notice(self, gateway):
        gateway.fail["list_items"] = WhisperNetworkError("offline")
        notices = NoticeLog()
        session = ItemSession(gateway, notifier=notices)

        result = await session.load()

        assert not result.ok
        assert isinstance(result.error, WhisperNetworkError)
        assert notices.last.message == FETCH_FAILED
        assert notices.last.level is NoticeLevel.ERROR
        assert session.view() == ()

    @pytest.mark.asyncio
    async def test_view_follows_presentation_and_search(self, gateway):
        session = await _loaded_session(gateway, Presentation.VAULT)
        assert [item.id for item in session.view()] == ["3"]

        session.presentation = Presentation.FAVORITES
        assert [item.id for item in session.view()] == ["2"]

        session.presentation = Presentation.ALL
        assert [item.id for item in session.set_search("TAX")] == ["1"]


class TestFavorite:
    """Tests for toggling favorites."""

    @pytest.mark.asyncio
    async def test_toggle_refreshes_and_closes(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("Taxes")

        result = await session.toggle_favorite()

        assert result.ok
        assert result.notice.message == FAVORITE_UPDATED
        assert session.menu.state is SelectionState.CLOSED
        assert ("toggle_favorite", ItemKind.FOLDER, "1") in gateway.calls
        assert len(_list_calls(gateway)) == 2
        assert session.collection.get("1").is_favorite is True

    @pytest.mark.asyncio
    async def test_toggle_twice_restores_flag(self, gateway):
        """Two toggles and two refreshes bring the flag back."""
        session = await _loaded_session(gateway)
        original = session.collection.get("2").is_favorite

        session.open_menu("2")
        await session.toggle_favorite()
        assert session.collection.get("2").is_favorite is not original

        session.open_menu("2")
        await session.toggle_favorite()
        assert session.collection.get("2").is_favorite is original
        assert len(_list_calls(gateway)) == 4

    @pytest.mark.asyncio
    async def test_dispatches_on_kind(self, gateway):
        session = await _loaded_session(gateway)

        session.open_menu("photo.png")
        await session.toggle_favorite()

        assert ("toggle_favorite", ItemKind.FILE, "2") in gateway.calls

    @pytest.mark.asyncio
    async def test_unstar_from_favorites_view(self, gateway):
        session = await _loaded_session(gateway, Presentation.FAVORITES)
        session.open_menu("photo.png")

        result = await session.toggle_favorite()

        assert result.notice.message == FAVORITE_REMOVED
        assert session.view() == ()

    @pytest.mark.asyncio
    async def test_failure_closes_and_keeps_snapshot(self, gateway):
        gateway.fail["toggle_favorite"] = WhisperNetworkError("timeout")
        session = await _loaded_session(gateway)
        before = session.collection.get("1")
        session.open_menu("1")

        result = await session.toggle_favorite()

        assert not result.ok
        assert result.notice.level is NoticeLevel.ERROR
        assert session.menu.is_closed
        assert session.collection.get("1") == before

    @pytest.mark.asyncio
    async def test_requires_selection(self, gateway):
        session = await _loaded_session(gateway)
        with pytest.raises(InvalidTransitionError):
            await session.toggle_favorite()


class TestDelete:
    """Tests for deleting items."""

    @pytest.mark.asyncio
    async def test_delete_removes_after_refresh(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")

        result = await session.delete()

        assert result.ok
        assert result.notice.message == DELETE_OK
        assert session.collection.get("2") is None
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_delete_failure(self, gateway):
        gateway.fail["delete_item"] = WhisperAPIError("boom")
        notices = NoticeLog()
        session = ItemSession(gateway, notifier=notices)
        await session.load()
        session.open_menu("Taxes")

        result = await session.delete()

        assert not result.ok
        assert [n.message for n in notices.notices] == [DELETE_FAILED]
        assert session.collection.get("1") is not None
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_refresh_failure_after_delete_keeps_last_view(self, gateway):
        """A failed refresh leaves the last-known-good snapshot visible."""
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")
        gateway.fail["list_items"] = WhisperNetworkError("offline")

        result = await session.delete()

        assert result.ok
        assert session.collection.get("2") is not None


class TestVaultDialog:
    """Tests for the encrypt/decrypt dialog."""

    @pytest.mark.asyncio
    async def test_encrypt_success(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")
        draft = session.open_vault_dialog()
        session.set_key("s3cret")
        session.set_algorithm("chacha20-poly1305")

        result = await session.submit_vault_dialog()

        assert result.ok
        assert result.notice.message == ENCRYPT_OK
        assert gateway.algorithms["2"] == "chacha20-poly1305"
        assert session.collection.get("2").is_encrypted is True
        assert draft.key == ""
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_flag_not_flipped_before_refresh(self, gateway):
        """is_encrypted only changes when the refresh reports it."""
        session = await _loaded_session(gateway)
        gateway.fail["list_items"] = WhisperNetworkError("offline")
        session.open_menu("photo.png")
        session.open_vault_dialog()
        session.set_key("s3cret")

        result = await session.submit_vault_dialog()

        assert result.ok
        assert gateway.server[ItemKind.FILE][0]["isEncrypted"] is True
        assert session.collection.get("2").is_encrypted is False

    @pytest.mark.asyncio
    async def test_scenario_b_empty_key(self, gateway):
        """Empty key: no request, validation notice, item unchanged, closed."""
        session = await _loaded_session(gateway)
        session.open_menu("2")
        draft = session.open_vault_dialog()

        result = await session.submit_vault_dialog()

        assert not result.ok
        assert isinstance(result.error, WhisperValidationError)
        assert result.notice.message == ENCRYPT_KEY_MISSING
        assert gateway.calls == []
        assert session.collection.get("2").is_encrypted is False
        assert session.menu.state is SelectionState.CLOSED
        assert draft.key == ""

    @pytest.mark.asyncio
    async def test_empty_key_on_decrypt(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("3")
        session.open_vault_dialog()

        result = await session.submit_vault_dialog()

        assert result.notice.message == DECRYPT_KEY_MISSING
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_scenario_c_wrong_key(self, gateway):
        """Wrong key: request sent, generic notice, still encrypted after refresh."""
        session = await _loaded_session(gateway)
        session.open_menu("3")
        draft = session.open_vault_dialog()
        session.set_key("wrong")

        result = await session.submit_vault_dialog()

        assert not result.ok
        assert isinstance(result.error, WhisperWrongKeyError)
        assert result.notice.message == DECRYPT_FAILED
        assert ("decrypt_item", ItemKind.FILE, "3") in gateway.calls
        assert len(_list_calls(gateway)) == 2
        assert session.collection.get("3").is_encrypted is True
        assert draft.key == ""
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_decrypt_success(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("diary.txt")
        session.open_vault_dialog()
        session.set_key("correct horse")

        result = await session.submit_vault_dialog()

        assert result.ok
        assert result.notice.message == DECRYPT_OK
        assert session.collection.get("3").is_encrypted is False

    @pytest.mark.asyncio
    async def test_encrypted_item_is_never_encrypted_again(self, gateway):
        """Submitting the dialog on an encrypted item decrypts it."""
        session = await _loaded_session(gateway)
        session.open_menu("3")
        session.open_vault_dialog()
        session.set_key("correct horse")
        session.set_algorithm(EncryptionAlgorithm.CHACHA20_POLY1305)

        await session.submit_vault_dialog()

        actions = [call[0] for call in gateway.mutation_calls()]
        assert actions == ["decrypt_item"]

    @pytest.mark.asyncio
    async def test_expected_action_mismatch(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")

        with pytest.raises(InvalidTransitionError, match="not encrypted"):
            session.open_vault_dialog(expected=VaultAction.DECRYPT)

        assert session.menu.is_closed
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_cancel_discards_draft(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")
        draft = session.open_vault_dialog()
        session.set_key("typed")

        session.cancel_dialog()

        assert draft.key == ""
        assert session.menu.is_closed
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_invalid_algorithm_rejected_before_submit(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")
        session.open_vault_dialog()

        with pytest.raises(WhisperValidationError):
            session.set_algorithm("des")

    @pytest.mark.asyncio
    async def test_submit_requires_dialog(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")

        with pytest.raises(InvalidTransitionError):
            await session.submit_vault_dialog()


class TestOtherActions:
    """Tests for rename, share, restore and create folder."""

    @pytest.mark.asyncio
    async def test_rename(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("Taxes")

        result = await session.rename("Taxes 2025")

        assert result.ok
        assert session.collection.get("1").name == "Taxes 2025"
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_share_file(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")

        result = await session.share("2025-12-31T00:00:00Z")

        assert result.ok
        assert result.value["url"] == "https://share.test/2"
        assert _list_calls(gateway) == []
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_share_folder_rejected(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("Taxes")

        result = await session.share()

        assert not result.ok
        assert isinstance(result.error, WhisperValidationError)
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_delete_then_restore(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")
        await session.delete()

        result = await session.restore(ItemKind.FILE, "2")

        assert result.ok
        assert session.collection.get("2") is not None

    @pytest.mark.asyncio
    async def test_restore_unknown(self, gateway):
        session = await _loaded_session(gateway)

        result = await session.restore(ItemKind.FILE, "404")

        assert not result.ok
        assert isinstance(result.error, WhisperNotFoundError)

    @pytest.mark.asyncio
    async def test_create_folder(self, gateway):
        session = await _loaded_session(gateway)

        result = await session.create_folder("Archive")

        assert result.ok
        assert "Archive" in [item.name for item in session.collection.folders]

    @pytest.mark.asyncio
    async def test_open_menu_unknown_item(self, gateway):
        session = await _loaded_session(gateway)
        with pytest.raises(WhisperNotFoundError):
            session.open_menu("ghost")
        assert session.menu.is_closed


class TestFileTransfer:
    """Tests for upload and download."""

    @pytest.mark.asyncio
    async def test_upload_shows_after_refresh(self, gateway, tmp_path):
        local = tmp_path / "notes.md"
        local.write_text("hello")
        session = await _loaded_session(gateway)

        result = await session.upload(local, parent_id="1")

        assert result.ok
        assert result.notice.message == UPLOAD_OK
        assert ("upload_file", "notes.md", "1") in gateway.calls
        assert len(_list_calls(gateway)) == 2
        assert "notes.md" in [item.name for item in session.collection.files]

    @pytest.mark.asyncio
    async def test_upload_failure_still_refreshes(self, gateway, tmp_path):
        local = tmp_path / "notes.md"
        local.write_text("hello")
        gateway.fail["upload_file"] = WhisperNetworkError("reset")
        session = await _loaded_session(gateway)

        result = await session.upload(local)

        assert not result.ok
        assert result.notice.message == UPLOAD_FAILED
        assert len(_list_calls(gateway)) == 2

    @pytest.mark.asyncio
    async def test_download_selected_file(self, gateway, tmp_path):
        session = await _loaded_session(gateway)
        session.open_menu("photo.png")

        result = await session.download(tmp_path)

        assert result.ok
        assert result.notice.message == DOWNLOAD_OK
        assert result.value == tmp_path / "photo.png"
        assert result.value.read_text() == "contents of photo.png"
        assert _list_calls(gateway) == []
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_download_folder_rejected(self, gateway):
        session = await _loaded_session(gateway)
        session.open_menu("Taxes")

        result = await session.download()

        assert not result.ok
        assert isinstance(result.error, WhisperValidationError)
        assert gateway.calls == []
        assert session.menu.is_closed

    @pytest.mark.asyncio
    async def test_download_failure(self, gateway, tmp_path):
        gateway.fail["download_file"] = WhisperNotFoundError("gone")
        session = await _loaded_session(gateway)
        session.open_menu("2")

        result = await session.download(tmp_path)

        assert not result.ok
        assert result.notice.message == DOWNLOAD_FAILED
        assert session.menu.is_closed
