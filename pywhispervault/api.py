"""Async API client for the WhisperVault service."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import random
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import unquote

import httpx

from .config import config
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
from .models import DEFAULT_ALGORITHM, EncryptionAlgorithm, Item, ItemKind
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

# Status codes the decrypt endpoint uses to reject a key
_WRONG_KEY_STATUSES = frozenset({400, 403, 422})

# Keys a list endpoint may wrap its array in
_LIST_ENVELOPE_KEYS = ("data", "items", "files", "folders")


def collection_path(kind: ItemKind) -> str:
    """Return the endpoint family for an item kind.

    Raises:
        ValueError: If ``kind`` is not an :class:`ItemKind`
    """
    if kind is ItemKind.FILE:
        return "/files"
    if kind is ItemKind.FOLDER:
        return "/folders"
    raise ValueError(f"Unknown item kind: {kind!r}")


class WhisperGateway(Protocol):
    """Remote operations the item session depends on."""

    async def list_items(self, kind: ItemKind) -> list[Item]: ...

    async def toggle_favorite(self, kind: ItemKind, item_id: str) -> Item | None: ...

    async def delete_item(self, kind: ItemKind, item_id: str) -> None: ...

    async def encrypt_item(
        self,
        kind: ItemKind,
        item_id: str,
        key: str,
        algorithm: EncryptionAlgorithm = DEFAULT_ALGORITHM,
    ) -> None: ...

    async def decrypt_item(self, kind: ItemKind, item_id: str, key: str) -> None: ...

    async def restore_item(self, kind: ItemKind, item_id: str) -> None: ...

    async def rename_item(
        self, kind: ItemKind, item_id: str, name: str
    ) -> Item | None: ...

    async def create_folder(
        self, name: str, parent_id: str | None = None
    ) -> Item | None: ...

    async def share_file(self, item_id: str, expires_at: str | None = None) -> Any: ...

    async def upload_file(
        self, file_path: Path, parent_id: str | None = None
    ) -> Item | None: ...

    async def download_file(
        self, item_id: str, output_path: Path | None = None
    ) -> Path: ...


class WhisperClient:
    """Client for interacting with the WhisperVault API."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        require_token: bool = True,
    ):
        """Initialize the WhisperVault API client.

        Args:
            token: Optional bearer token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum retry attempts for idempotent requests
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
            require_token: Set to False for the auth endpoints, which are
                called before a token exists
        """
        self.token = token or config.token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        if require_token and not self.token:
            raise WhisperConfigError(
                "Token not configured. Please set WHISPERVAULT_TOKEN "
                "or run 'whispervault login'."
            )

        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            # Content-Type is set per request (JSON bodies or multipart uploads)
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> WhisperClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # =========================
    # Request plumbing
    # =========================

    def _should_retry(self, exception: Exception, method: str, attempt: int) -> bool:
        """Determine if a request should be retried.

        Only idempotent reads are retried. Mutations are attempted once so
        a failure is reported instead of being silently repeated.
        """
        if method.upper() != "GET":
            return False

        if attempt >= self.max_retries:
            return False

        # Network errors and throttling are transient
        if isinstance(exception, (WhisperNetworkError, WhisperRateLimitError)):
            return True

        # So are server errors
        return isinstance(exception, _ServerError)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Exponential backoff with +/- 25% jitter."""
        base_delay = self.retry_delay * (2**attempt)
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _map_http_error(self, e: httpx.HTTPStatusError) -> WhisperAPIError:
        """Translate an HTTP error response into a client exception."""
        status_code = e.response.status_code

        if status_code == 401:
            return WhisperAuthError("Invalid token or unauthorized access")
        if status_code == 403:
            return WhisperPermissionError("Access forbidden - check your permissions")
        if status_code == 404:
            return WhisperNotFoundError("Resource not found")
        if status_code == 429:
            return WhisperRateLimitError("Rate limit exceeded - please try again later")

        error_msg = f"API request failed with status {status_code}"
        detail = _error_detail(e.response)
        if detail:
            error_msg = f"{error_msg}: {detail}"

        if 500 <= status_code < 600:
            return _ServerError(error_msg)
        return WhisperAPIError(error_msg)

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Parsed JSON body, or None for an empty body

        Raises:
            WhisperAPIError: If the request fails
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        attempt = 0

        while True:
            logger.debug(f"{method} {url} (attempt {attempt + 1})")
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return _parse_body(response)
            except httpx.HTTPStatusError as e:
                error = self._map_http_error(e)
                cause: Exception = e
            except httpx.RequestError as e:
                error = WhisperNetworkError(f"Network error: {e}")
                cause = e

            if not self._should_retry(error, method, attempt):
                if isinstance(error, _ServerError):
                    raise WhisperAPIError(str(error)) from cause
                raise error from cause

            delay = self._calculate_retry_delay(attempt)
            if isinstance(error, WhisperRateLimitError) and isinstance(
                cause, httpx.HTTPStatusError
            ):
                retry_after = cause.response.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    delay = float(retry_after)
            logger.debug(f"Retrying {method} {url} in {delay:.2f}s: {error}")
            await asyncio.sleep(delay)
            attempt += 1

    # =========================
    # Listing
    # =========================

    async def list_items(self, kind: ItemKind) -> list[Item]:
        """List every item of one kind.

        Args:
            kind: Files or folders

        Returns:
            Items in the order the server returned them
        """
        result = await self._request("GET", collection_path(kind))
        return [Item.from_api(entry, kind) for entry in _unwrap_list(result, kind)]

    async def list_files(self) -> list[Item]:
        return await self.list_items(ItemKind.FILE)

    async def list_folders(self) -> list[Item]:
        return await self.list_items(ItemKind.FOLDER)

    # =========================
    # Mutations
    # =========================

    async def toggle_favorite(self, kind: ItemKind, item_id: str) -> Item | None:
        """Flip the favorite flag of an item.

        Returns:
            The updated item when the server sends it back, else None
        """
        result = await self._request(
            "PATCH", f"{collection_path(kind)}/{item_id}/favorite"
        )
        return _maybe_item(result, kind)

    async def delete_item(self, kind: ItemKind, item_id: str) -> None:
        """Delete an item (the server decides between trash and purge)."""
        await self._request("DELETE", f"{collection_path(kind)}/{item_id}")

    async def restore_item(self, kind: ItemKind, item_id: str) -> None:
        """Restore a deleted item."""
        await self._request("POST", f"{collection_path(kind)}/{item_id}/restore")

    async def rename_item(self, kind: ItemKind, item_id: str, name: str) -> Item | None:
        """Rename an item.

        Raises:
            WhisperValidationError: If the new name is blank
        """
        if not name or not name.strip():
            raise WhisperValidationError("Name must not be empty")
        result = await self._request(
            "PATCH", f"{collection_path(kind)}/{item_id}", json={"name": name.strip()}
        )
        return _maybe_item(result, kind)

    async def create_folder(self, name: str, parent_id: str | None = None) -> Item | None:
        """Create a folder, optionally inside another folder."""
        if not name or not name.strip():
            raise WhisperValidationError("Folder name must not be empty")
        payload: dict[str, Any] = {"name": name.strip()}
        if parent_id:
            payload["parent"] = parent_id
        result = await self._request("POST", "/folders", json=payload)
        return _maybe_item(result, ItemKind.FOLDER)

    async def share_file(self, item_id: str, expires_at: str | None = None) -> Any:
        """Create a share link for a file.

        Args:
            item_id: File id
            expires_at: Optional ISO expiration timestamp

        Returns:
            Link object returned by the server
        """
        return await self._request(
            "POST", f"/files/{item_id}/share", json={"expiresAt": expires_at}
        )

    # =========================
    # File Transfer
    # =========================

    def _detect_mime_type(self, file_path: Path) -> str:
        mime_type, _ = mimetypes.guess_type(str(file_path))
        return mime_type or "application/octet-stream"

    async def upload_file(
        self, file_path: Path, parent_id: str | None = None
    ) -> Item | None:
        """Upload a local file as a multipart form.

        Args:
            file_path: Local path to the file
            parent_id: Optional folder to upload into

        Returns:
            The new file when the server sends it back, else None

        Raises:
            WhisperFileNotFoundError: If the local file does not exist
        """
        file_path = Path(file_path)
        if not file_path.is_file():
            raise WhisperFileNotFoundError(f"File not found: {file_path}")

        data = {"parent": parent_id} if parent_id else None
        with open(file_path, "rb") as f:
            result = await self._request(
                "POST",
                "/files/upload",
                files={"file": (file_path.name, f, self._detect_mime_type(file_path))},
                data=data,
            )
        return _maybe_item(result, ItemKind.FILE)

    async def download_file(
        self, item_id: str, output_path: Path | None = None
    ) -> Path:
        """Stream a file to disk.

        Args:
            item_id: File id
            output_path: Target file or directory. The server-provided
                filename is used inside a directory or when omitted.

        Returns:
            Path where the file was saved

        Raises:
            WhisperDownloadError: If the download or the write fails
        """
        url = f"{self.api_url}/files/{item_id}/download"
        client = self._get_client()
        logger.debug(f"GET {url} (download)")

        try:
            async with client.stream("GET", url) as response:
                if response.is_error:
                    # Error bodies are small; read them for the message
                    await response.aread()
                response.raise_for_status()

                filename = _content_disposition_filename(
                    response.headers.get("Content-Disposition", "")
                ) or f"whispervault_{item_id}"
                if output_path is None:
                    save_path = Path(filename)
                elif Path(output_path).is_dir():
                    save_path = Path(output_path) / filename
                else:
                    save_path = Path(output_path)

                with open(save_path, "wb") as f:
                    async for chunk in response.aiter_bytes(chunk_size=8192):
                        f.write(chunk)
                return save_path

        except httpx.HTTPStatusError as e:
            error = self._map_http_error(e)
            if isinstance(error, _ServerError):
                raise WhisperDownloadError(f"Download failed: {error}") from e
            raise error from e
        except httpx.RequestError as e:
            raise WhisperNetworkError(f"Network error during download: {e}") from e
        except OSError as e:
            raise WhisperDownloadError(f"Failed to write file: {e}") from e

    # =========================
    # Vault Operations
    # =========================

    async def encrypt_item(
        self,
        kind: ItemKind,
        item_id: str,
        key: str,
        algorithm: EncryptionAlgorithm = DEFAULT_ALGORITHM,
    ) -> None:
        """Ask the server to encrypt an item with a key.

        The key is sent in the request body and not kept anywhere else.

        Raises:
            WhisperValidationError: If the key is empty or the algorithm unknown
        """
        if not key:
            raise WhisperValidationError("Encryption key must not be empty")
        algorithm = EncryptionAlgorithm.parse(algorithm)
        await self._request(
            "POST",
            f"{collection_path(kind)}/{item_id}/encrypt",
            json={"key": key, "type": algorithm.value},
        )

    async def decrypt_item(self, kind: ItemKind, item_id: str, key: str) -> None:
        """Ask the server to decrypt an item.

        Raises:
            WhisperValidationError: If the key is empty
            WhisperWrongKeyError: If the server rejects the key
        """
        if not key:
            raise WhisperValidationError("Encryption key must not be empty")
        try:
            await self._request(
                "POST",
                f"{collection_path(kind)}/{item_id}/decrypt",
                json={"key": key},
            )
        except WhisperAPIError as e:
            cause = e.__cause__
            if (
                isinstance(cause, httpx.HTTPStatusError)
                and cause.response.status_code in _WRONG_KEY_STATUSES
            ):
                raise WhisperWrongKeyError() from None
            raise

    # =========================
    # Authentication
    # =========================

    async def login(self, email: str, password: str) -> Any:
        """Exchange credentials for a token.

        Returns:
            Response with 'token' and 'user' keys
        """
        return await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )

    async def register(self, name: str, email: str, password: str) -> Any:
        """Create an account."""
        return await self._request(
            "POST",
            "/auth/register",
            json={"name": name, "email": email, "password": password},
        )

    async def reset_password(self, email: str) -> Any:
        """Request a password reset e-mail."""
        return await self._request(
            "POST", "/auth/reset-password", json={"email": email}
        )


class _ServerError(WhisperAPIError):
    """5xx response; retryable for reads, reported as WhisperAPIError."""


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None

    content_type = response.headers.get("Content-Type", "")
    if "application/json" not in content_type:
        # An HTML page here is usually a login redirect
        if "text/html" in content_type:
            raise WhisperAuthError(
                "Invalid token - server returned HTML instead of JSON"
            )
        raise WhisperInvalidResponseError(f"Unexpected response type: {content_type}")

    try:
        return response.json()
    except ValueError as e:
        raise WhisperInvalidResponseError("Invalid JSON response from server") from e


def _error_detail(response: httpx.Response) -> str | None:
    try:
        if response.content:
            error_data = response.json()
            if isinstance(error_data, dict):
                return (
                    error_data.get("message")
                    or error_data.get("error")
                    or error_data.get("detail")
                )
    except ValueError:
        pass
    return None


def _content_disposition_filename(header: str) -> str | None:
    """Extract a bare filename from a Content-Disposition header."""
    filename = None
    if "filename*=" in header:
        # RFC 5987: filename*=UTF-8''name.txt
        encoded = header.split("filename*=", 1)[1].split(";")[0].strip()
        if "''" in encoded:
            filename = unquote(encoded.split("''", 1)[1])
    elif "filename=" in header:
        filename = header.split("filename=", 1)[1].split(";")[0].strip().strip("\"'")
    if not filename:
        return None
    # Never let the server pick a directory
    return Path(filename).name or None


def _unwrap_list(result: Any, kind: ItemKind) -> list[Any]:
    if result is None:
        return []
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        for key in _LIST_ENVELOPE_KEYS:
            value = result.get(key)
            if isinstance(value, list):
                return value
    raise WhisperInvalidResponseError(
        f"Unexpected response when listing {kind.value}s: {type(result).__name__}"
    )


def _unwrap_item(result: Any) -> Any:
    if isinstance(result, dict):
        for key in ("data", "item", "file", "folder"):
            value = result.get(key)
            if isinstance(value, dict):
                return value
    return result


def _maybe_item(result: Any, kind: ItemKind) -> Item | None:
    data = _unwrap_item(result)
    if isinstance(data, dict) and ("_id" in data or "id" in data):
        return Item.from_api(data, kind)
    return None
