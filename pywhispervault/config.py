"""Configuration management for the WhisperVault client."""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"

TOKEN_ENV_VAR = "WHISPERVAULT_TOKEN"
API_URL_ENV_VAR = "WHISPERVAULT_API_URL"
CONFIG_DIR_ENV_VAR = "WHISPERVAULT_CONFIG_DIR"

_TOKEN_KEY = "WHISPERVAULT_TOKEN"
_API_URL_KEY = "WHISPERVAULT_API_URL"


class Config:
    """Reads settings from the environment and the user config file.

    Environment variables always win over the config file. The config
    file is a plain ``KEY=value`` file stored in
    ``~/.config/pywhispervault/config``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self._config_dir = config_dir

    @property
    def config_dir(self) -> Path:
        if self._config_dir is not None:
            return self._config_dir
        override = os.environ.get(CONFIG_DIR_ENV_VAR)
        if override:
            return Path(override)
        return Path.home() / ".config" / "pywhispervault"

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / "config"

    def _read_file(self) -> dict[str, str]:
        path = self.get_config_path()
        if not path.exists():
            return {}

        values: dict[str, str] = {}
        try:
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, _, value = line.partition("=")
                    values[key.strip()] = value.strip().strip("'\"")
        except OSError as e:
            logger.warning(f"Failed to read config file {path}: {e}")
        return values

    def _write_value(self, key: str, value: str) -> None:
        values = self._read_file()
        values[key] = value

        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            for k, v in values.items():
                f.write(f"{k}={v}\n")
        # The file holds a bearer token
        path.chmod(0o600)
        logger.debug(f"Saved {key} to {path}")

    @property
    def token(self) -> Optional[str]:
        """Bearer token used to authenticate requests."""
        return os.environ.get(TOKEN_ENV_VAR) or self._read_file().get(_TOKEN_KEY)

    @property
    def api_url(self) -> str:
        """Base URL of the WhisperVault API."""
        url = (
            os.environ.get(API_URL_ENV_VAR)
            or self._read_file().get(_API_URL_KEY)
            or DEFAULT_API_URL
        )
        return url.rstrip("/")

    def is_configured(self) -> bool:
        """Check whether a token is available."""
        return bool(self.token)

    def save_token(self, token: str) -> None:
        """Store the bearer token in the config file."""
        self._write_value(_TOKEN_KEY, token)

    def save_api_url(self, api_url: str) -> None:
        """Store the API base URL in the config file."""
        self._write_value(_API_URL_KEY, api_url.rstrip("/"))


config = Config()
