"""Tests for config loading and saving."""

import stat
from pathlib import Path

import pytest

from mastodon_bookmarks.config import (
    TOKEN_ENV_VAR,
    AppConfig,
    AuthConfig,
    load_config,
    save_config,
)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.toml"


class TestConfig:
    def test_save_and_load(self, config_path):
        save_config(
            AppConfig(
                auth=AuthConfig(instance_domain="mastodon.social", access_token="tok"),
                state_dir=Path("cache"),
                fetch_delay=0.5,
            ),
            config_path,
        )

        config = load_config(config_path)
        assert config.auth.instance_domain == "mastodon.social"
        assert config.auth.access_token == "tok"
        assert config.state_dir == Path("cache")
        assert config.fetch_delay == 0.5
        assert config.timeout == 30.0

    def test_file_is_private(self, config_path):
        save_config(AppConfig(auth=AuthConfig("mastodon.social", "tok")), config_path)
        assert stat.S_IMODE(config_path.stat().st_mode) == 0o600

    def test_missing_file(self, config_path):
        with pytest.raises(FileNotFoundError):
            load_config(config_path)

    def test_missing_auth(self, config_path, monkeypatch):
        monkeypatch.delenv(TOKEN_ENV_VAR, raising=False)
        config_path.write_text('[auth]\ninstance_domain = "mastodon.social"\n')
        with pytest.raises(ValueError, match="access_token"):
            load_config(config_path)

    def test_domain_is_normalized(self, config_path):
        config_path.write_text(
            '[auth]\ninstance_domain = "https://mastodon.social/"\naccess_token = "t"\n'
        )
        assert load_config(config_path).auth.instance_domain == "mastodon.social"

    def test_token_env_override(self, config_path, monkeypatch):
        config_path.write_text('[auth]\ninstance_domain = "mastodon.social"\n')
        monkeypatch.setenv(TOKEN_ENV_VAR, "from-env")
        assert load_config(config_path).auth.access_token == "from-env"
