"""Data models for WhisperVault items.

Files and folders come from two different endpoints but are shown side by
side, so both are represented by the :class:`Item` base class. The
concrete variant is :class:`File` or :class:`Folder`, and ``item.kind``
tells callers which endpoint family owns the item.
"""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional

from .exceptions import (
    WhisperInvalidResponseError,
    WhisperNotFoundError,
    WhisperValidationError,
)
from .utils import parse_iso_timestamp

logger = logging.getLogger(__name__)


class ItemKind(str, Enum):
    """Discriminant of the item union."""

    FILE = "file"
    FOLDER = "folder"


class EncryptionAlgorithm(str, Enum):
    """Algorithms the server can encrypt an item with."""

    AES_256_GCM = "aes-256-gcm"
    CHACHA20_POLY1305 = "chacha20-poly1305"

    @classmethod
    def parse(cls, value: "str | EncryptionAlgorithm") -> "EncryptionAlgorithm":
        """Parse an algorithm name (case-insensitive).

        Raises:
            WhisperValidationError: If the algorithm is not supported
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for algorithm in cls:
            if algorithm.value == normalized:
                return algorithm
        choices = ", ".join(a.value for a in cls)
        raise WhisperValidationError(
            f"Unsupported encryption algorithm '{value}' (choose from: {choices})"
        )


DEFAULT_ALGORITHM = EncryptionAlgorithm.AES_256_GCM

# Wire fields interpreted by the client; everything else goes to Item.extra
_CORE_FIELDS = frozenset(
    {"_id", "id", "name", "type", "kind", "isFavorite", "isEncrypted", "lastAccessed"}
)


@dataclass(frozen=True)
class Item:
    """A file or folder as last reported by the server."""

    kind: ClassVar[ItemKind]

    id: str
    """Opaque identifier, unique across files and folders"""

    name: str
    """Display name, used for search"""

    is_favorite: bool = False
    """Whether the item is starred"""

    is_encrypted: bool = False
    """Whether the item is currently locked in the vault"""

    last_accessed: Optional[datetime] = None
    """Last access time maintained by the server"""

    extra: dict[str, Any] = field(default_factory=dict, compare=False)
    """Server fields the client does not interpret (size, parent, ...)"""

    @property
    def is_file(self) -> bool:
        return self.kind is ItemKind.FILE

    @property
    def is_folder(self) -> bool:
        return self.kind is ItemKind.FOLDER

    @staticmethod
    def from_api(data: dict[str, Any], kind: ItemKind) -> "Item":
        """Build the item variant matching ``kind`` from an API object.

        Args:
            data: JSON object returned by the list or get endpoints
            kind: Which endpoint family the object came from

        Returns:
            A :class:`File` or :class:`Folder`

        Raises:
            WhisperInvalidResponseError: If the object has no identifier
        """
        if not isinstance(data, dict):
            raise WhisperInvalidResponseError(
                f"Expected an object for {kind.value}, got {type(data).__name__}"
            )

        raw_id = data.get("_id", data.get("id"))
        if raw_id is None or raw_id == "":
            raise WhisperInvalidResponseError(f"{kind.value} entry without an id")

        item_cls = _variant_for(kind)
        return item_cls(
            id=str(raw_id),
            name=str(data.get("name") or ""),
            is_favorite=bool(data.get("isFavorite", False)),
            is_encrypted=bool(data.get("isEncrypted", False)),
            last_accessed=parse_iso_timestamp(data.get("lastAccessed")),
            extra={k: v for k, v in data.items() if k not in _CORE_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary in the server's field names."""
        return {
            **self.extra,
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "isFavorite": self.is_favorite,
            "isEncrypted": self.is_encrypted,
            "lastAccessed": (
                self.last_accessed.isoformat() if self.last_accessed else None
            ),
        }


@dataclass(frozen=True)
class File(Item):
    """A file entry."""

    kind: ClassVar[ItemKind] = ItemKind.FILE

    @property
    def size(self) -> int:
        """File size in bytes (0 if the server did not report it)."""
        try:
            return int(self.extra.get("size") or 0)
        except (TypeError, ValueError):
            return 0

    @property
    def mime_type(self) -> Optional[str]:
        return self.extra.get("mimeType") or self.extra.get("mimetype")


@dataclass(frozen=True)
class Folder(Item):
    """A folder entry."""

    kind: ClassVar[ItemKind] = ItemKind.FOLDER

    @property
    def parent_id(self) -> Optional[str]:
        parent = self.extra.get("parent")
        if isinstance(parent, dict):
            parent = parent.get("_id", parent.get("id"))
        return str(parent) if parent else None


def _variant_for(kind: ItemKind) -> type[Item]:
    if kind is ItemKind.FILE:
        return File
    if kind is ItemKind.FOLDER:
        return Folder
    raise ValueError(f"Unknown item kind: {kind!r}")


class ItemCollection:
    """Immutable snapshot of every item the server reported.

    Items keep the order they were merged in. Identifiers are unique
    regardless of kind; a repeated identifier keeps its first occurrence.
    """

    def __init__(self, items: Iterable[Item] = ()):
        unique: list[Item] = []
        by_id: dict[str, Item] = {}
        for item in items:
            if item.id in by_id:
                logger.warning(
                    f"Duplicate item id {item.id} ({item.kind.value} "
                    f"'{item.name}'), keeping the first occurrence"
                )
                continue
            by_id[item.id] = item
            unique.append(item)
        self._items: tuple[Item, ...] = tuple(unique)
        self._by_id = by_id

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, Item) and self._by_id.get(item.id) == item

    def __repr__(self) -> str:
        return f"ItemCollection({len(self._items)} items)"

    @property
    def items(self) -> tuple[Item, ...]:
        return self._items

    @property
    def files(self) -> tuple[Item, ...]:
        return tuple(item for item in self._items if item.is_file)

    @property
    def folders(self) -> tuple[Item, ...]:
        return tuple(item for item in self._items if item.is_folder)

    def get(self, item_id: str) -> Optional[Item]:
        """Return the item with this id, or None."""
        return self._by_id.get(str(item_id))

    def find(self, identifier: str) -> Item:
        """Resolve an id or a name to an item.

        Exact ids win, then exact names, then case-insensitive names.

        Raises:
            WhisperNotFoundError: If nothing matches or a name is ambiguous
        """
        by_id = self.get(identifier)
        if by_id is not None:
            return by_id

        for matches in (
            [item for item in self._items if item.name == identifier],
            [
                item
                for item in self._items
                if item.name.lower() == identifier.lower()
            ],
        ):
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                ids = ", ".join(f"{m.id} ({m.kind.value})" for m in matches)
                raise WhisperNotFoundError(
                    f"'{identifier}' matches several items: {ids}. Use an id."
                )

        raise WhisperNotFoundError(f"Item '{identifier}' not found")


def merge_collection(
    folders: Iterable[Item], files: Iterable[Item]
) -> ItemCollection:
    """Merge folder and file listings, folders first."""
    return ItemCollection([*folders, *files])
