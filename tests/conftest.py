"""Shared fixtures: an in-memory stand-in for the WhisperVault server."""

import copy
from pathlib import Path
from typing import Any, Optional

import pytest

from pywhispervault.exceptions import WhisperNotFoundError, WhisperWrongKeyError
from pywhispervault.models import DEFAULT_ALGORITHM, Item, ItemKind


class FakeGateway:
    """Gateway double that keeps server-side state in plain dicts.

    ``fail`` maps an operation name to the exception it should raise,
    e.g. ``gateway.fail["delete_item"] = WhisperNetworkError("down")``.
    List failures can target one kind with ``"list_items:file"``.
    """

    def __init__(
        self,
        folders: Optional[list[dict[str, Any]]] = None,
        files: Optional[list[dict[str, Any]]] = None,
    ):
        self.server: dict[ItemKind, list[dict[str, Any]]] = {
            ItemKind.FOLDER: copy.deepcopy(folders or []),
            ItemKind.FILE: copy.deepcopy(files or []),
        }
        self.trash: dict[ItemKind, list[dict[str, Any]]] = {
            ItemKind.FOLDER: [],
            ItemKind.FILE: [],
        }
        self.keys: dict[str, str] = {}
        self.algorithms: dict[str, str] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.fail: dict[str, Exception] = {}
        self.closed = False

    def _check(self, operation: str) -> None:
        if operation in self.fail:
            raise self.fail[operation]

    def _find(self, kind: ItemKind, item_id: str) -> dict[str, Any]:
        for entry in self.server[kind]:
            if str(entry["_id"]) == str(item_id):
                return entry
        raise WhisperNotFoundError("Resource not found")

    def mutation_calls(self) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] != "list_items"]

    async def list_items(self, kind: ItemKind) -> list[Item]:
        self.calls.append(("list_items", kind))
        self._check("list_items")
        self._check(f"list_items:{kind.value}")
        return [Item.from_api(entry, kind) for entry in self.server[kind]]

    async def toggle_favorite(self, kind: ItemKind, item_id: str) -> Item:
        self.calls.append(("toggle_favorite", kind, item_id))
        self._check("toggle_favorite")
        entry = self._find(kind, item_id)
        entry["isFavorite"] = not entry.get("isFavorite", False)
        return Item.from_api(entry, kind)

    async def delete_item(self, kind: ItemKind, item_id: str) -> None:
        self.calls.append(("delete_item", kind, item_id))
        self._check("delete_item")
        entry = self._find(kind, item_id)
        self.server[kind].remove(entry)
        self.trash[kind].append(entry)

    async def restore_item(self, kind: ItemKind, item_id: str) -> None:
        self.calls.append(("restore_item", kind, item_id))
        self._check("restore_item")
        for entry in self.trash[kind]:
            if str(entry["_id"]) == str(item_id):
                self.trash[kind].remove(entry)
                self.server[kind].append(entry)
                return
        raise WhisperNotFoundError("Resource not found")

    async def rename_item(self, kind: ItemKind, item_id: str, name: str) -> Item:
        self.calls.append(("rename_item", kind, item_id, name))
        self._check("rename_item")
        entry = self._find(kind, item_id)
        entry["name"] = name
        return Item.from_api(entry, kind)

    async def create_folder(self, name: str, parent_id: Optional[str] = None) -> Item:
        self.calls.append(("create_folder", name, parent_id))
        self._check("create_folder")
        entry = {"_id": f"new-{len(self.server[ItemKind.FOLDER]) + 1}", "name": name}
        if parent_id:
            entry["parent"] = parent_id
        self.server[ItemKind.FOLDER].append(entry)
        return Item.from_api(entry, ItemKind.FOLDER)

    async def share_file(self, item_id: str, expires_at: Optional[str] = None) -> Any:
        self.calls.append(("share_file", item_id, expires_at))
        self._check("share_file")
        self._find(ItemKind.FILE, item_id)
        return {"url": f"https://share.test/{item_id}", "expiresAt": expires_at}

    async def upload_file(self, file_path: Path, parent_id: Optional[str] = None) -> Item:
        file_path = Path(file_path)
        self.calls.append(("upload_file", file_path.name, parent_id))
        self._check("upload_file")
        entry = {
            "_id": f"up-{len(self.server[ItemKind.FILE]) + 1}",
            "name": file_path.name,
            "size": file_path.stat().st_size,
        }
        if parent_id:
            entry["parent"] = parent_id
        self.server[ItemKind.FILE].append(entry)
        return Item.from_api(entry, ItemKind.FILE)

    async def download_file(
        self, item_id: str, output_path: Optional[Path] = None
    ) -> Path:
        self.calls.append(("download_file", item_id, output_path))
        self._check("download_file")
        entry = self._find(ItemKind.FILE, item_id)
        target = Path(output_path) if output_path else Path(entry["name"])
        if target.is_dir():
            target = target / entry["name"]
        target.write_text(f"contents of {entry['name']}")
        return target

    async def encrypt_item(
        self, kind: ItemKind, item_id: str, key: str, algorithm=DEFAULT_ALGORITHM
    ) -> None:
        self.calls.append(("encrypt_item", kind, item_id))
        self._check("encrypt_item")
        entry = self._find(kind, item_id)
        entry["isEncrypted"] = True
        self.keys[str(item_id)] = key
        self.algorithms[str(item_id)] = getattr(algorithm, "value", algorithm)

    async def decrypt_item(self, kind: ItemKind, item_id: str, key: str) -> None:
        self.calls.append(("decrypt_item", kind, item_id))
        self._check("decrypt_item")
        entry = self._find(kind, item_id)
        if self.keys.get(str(item_id)) != key:
            raise WhisperWrongKeyError()
        entry["isEncrypted"] = False
        self.keys.pop(str(item_id), None)

    async def aclose(self) -> None:
        self.closed = True


SCENARIO_FOLDERS = [
    {
        "_id": "1",
        "name": "Taxes",
        "isFavorite": False,
        "isEncrypted": False,
        "lastAccessed": "2025-01-10T09:00:00.000Z",
    },
]

SCENARIO_FILES = [
    {
        "_id": "2",
        "name": "photo.png",
        "isFavorite": True,
        "isEncrypted": False,
        "lastAccessed": "2025-01-12T09:00:00.000Z",
        "size": 2048,
        "mimeType": "image/png",
    },
    {
        "_id": "3",
        "name": "diary.txt",
        "isFavorite": False,
        "isEncrypted": True,
        "lastAccessed": "2025-01-11T09:00:00.000Z",
        "size": 512,
    },
]


@pytest.fixture
def gateway():
    """Fake server holding the folder 'Taxes', 'photo.png' and 'diary.txt'."""
    fake = FakeGateway(folders=SCENARIO_FOLDERS, files=SCENARIO_FILES)
    fake.keys["3"] = "correct horse"
    return fake


def make_file(item_id: str, name: str, **fields: Any) -> Item:
    return Item.from_api({"_id": item_id, "name": name, **fields}, ItemKind.FILE)


def make_folder(item_id: str, name: str, **fields: Any) -> Item:
    return Item.from_api({"_id": item_id, "name": name, **fields}, ItemKind.FOLDER)
