"""Exceptions raised by the WhisperVault client."""


class WhisperAPIError(Exception):
    """Base exception for all WhisperVault client errors."""


class WhisperConfigError(WhisperAPIError):
    """Raised when the client is missing required configuration."""


class WhisperNetworkError(WhisperAPIError):
    """Raised on transport failures (connection errors, timeouts)."""


class WhisperAuthError(WhisperAPIError):
    """Raised when the server rejects the bearer token."""


class WhisperPermissionError(WhisperAuthError):
    """Raised when the token is valid but access is forbidden."""


class WhisperValidationError(WhisperAPIError):
    """Raised when input is rejected before a request is sent."""


class WhisperWrongKeyError(WhisperAPIError):
    """Raised when the server rejects a decryption key.

    The message is kept generic on purpose so it does not tell a caller
    anything about why the key failed.
    """

    def __init__(self, message: str = "Decryption failed") -> None:
        super().__init__(message)


class WhisperNotFoundError(WhisperAPIError):
    """Raised when an item or resource does not exist."""


class WhisperRateLimitError(WhisperAPIError):
    """Raised when the server throttles the client (HTTP 429)."""


class WhisperInvalidResponseError(WhisperAPIError):
    """Raised when the server returns something that is not valid JSON."""


class WhisperFileNotFoundError(WhisperAPIError):
    """Raised when a local file to upload does not exist."""


class WhisperDownloadError(WhisperAPIError):
    """Raised when a download fails or cannot be written to disk."""
