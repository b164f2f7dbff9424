"""Client-side cache of the server's items."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from .api import WhisperGateway
from .models import ItemCollection, ItemKind, merge_collection

logger = logging.getLogger(__name__)


class ItemStore:
    """Owns the current item snapshot and re-fetches it on demand.

    The server is the source of truth: every refresh replaces the snapshot
    wholesale with what the server reports. No local edits are ever made.
    """

    def __init__(self, gateway: WhisperGateway):
        """Initialize the store.

        Args:
            gateway: Remote API used to list files and folders
        """
        self.gateway = gateway
        self._snapshot = ItemCollection()
        self._last_refreshed: Optional[datetime] = None

    @property
    def snapshot(self) -> ItemCollection:
        """The last collection successfully fetched (empty before loading)."""
        return self._snapshot

    @property
    def loaded(self) -> bool:
        return self._last_refreshed is not None

    @property
    def last_refreshed(self) -> Optional[datetime]:
        return self._last_refreshed

    async def refresh(self) -> ItemCollection:
        """Fetch files and folders and install the merged collection.

        Both listings run concurrently. The snapshot is replaced only when
        both succeed; otherwise the previous one stays and the error
        propagates. A listing still in flight when the other fails is
        cancelled and awaited before this returns.

        Returns:
            The newly installed collection
        """
        tasks = [
            asyncio.ensure_future(self.gateway.list_items(ItemKind.FOLDER)),
            asyncio.ensure_future(self.gateway.list_items(ItemKind.FILE)),
        ]
        try:
            folders, files = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        self._snapshot = merge_collection(folders, files)
        self._last_refreshed = datetime.now(timezone.utc)
        logger.debug(
            f"Refreshed collection: {len(folders)} folders, {len(files)} files"
        )
        return self._snapshot
