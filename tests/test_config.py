"""Unit tests for configuration handling."""

import stat

import pytest

from pywhispervault.config import DEFAULT_API_URL, Config


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("WHISPERVAULT_TOKEN", "WHISPERVAULT_API_URL", "WHISPERVAULT_CONFIG_DIR"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, tmp_path, clean_env):
        cfg = Config(config_dir=tmp_path)

        assert cfg.token is None
        assert cfg.api_url == DEFAULT_API_URL
        assert cfg.is_configured() is False

    def test_save_and_read_token(self, tmp_path, clean_env):
        cfg = Config(config_dir=tmp_path)

        cfg.save_token("abc123")

        assert cfg.token == "abc123"
        assert cfg.is_configured() is True
        assert Config(config_dir=tmp_path).token == "abc123"

    def test_config_file_is_private(self, tmp_path, clean_env):
        cfg = Config(config_dir=tmp_path)
        cfg.save_token("abc123")

        mode = stat.S_IMODE(cfg.get_config_path().stat().st_mode)
        assert mode == 0o600

    def test_saving_keeps_other_values(self, tmp_path, clean_env):
        cfg = Config(config_dir=tmp_path)
        cfg.save_token("abc123")
        cfg.save_api_url("https://vault.example/api/")

        assert cfg.token == "abc123"
        assert cfg.api_url == "https://vault.example/api"

    def test_env_overrides_file(self, tmp_path, clean_env):
        cfg = Config(config_dir=tmp_path)
        cfg.save_token("from-file")
        clean_env.setenv("WHISPERVAULT_TOKEN", "from-env")
        clean_env.setenv("WHISPERVAULT_API_URL", "https://env.test/api/")

        assert cfg.token == "from-env"
        assert cfg.api_url == "https://env.test/api"

    def test_config_dir_from_env(self, tmp_path, clean_env):
        clean_env.setenv("WHISPERVAULT_CONFIG_DIR", str(tmp_path / "custom"))
        cfg = Config()

        assert cfg.get_config_path() == tmp_path / "custom" / "config"

    def test_ignores_comments_and_quotes(self, tmp_path, clean_env):
        (tmp_path / "config").write_text(
            "# saved by whispervault\n\nWHISPERVAULT_TOKEN='quoted'\nnonsense\n"
        )
        assert Config(config_dir=tmp_path).token == "quoted"
