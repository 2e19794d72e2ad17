"""Configuration loading and saving.

Config file location: ~/.config/mastodon-bookmarks/config.toml

Schema:
    [auth]
    instance_domain = "mastodon.social"
    access_token = "..."

    [state]
    state_dir = ".state"

    [fetch]
    delay = 0.1
    timeout = 30.0

The MASTODON_BOOKMARKS_TOKEN environment variable, when set, takes the place
of the stored access token.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w

from .client import normalize_domain

CONFIG_DIR = Path.home() / ".config" / "mastodon-bookmarks"
CONFIG_FILE = CONFIG_DIR / "config.toml"

TOKEN_ENV_VAR = "MASTODON_BOOKMARKS_TOKEN"


@dataclass
class AuthConfig:
    instance_domain: str
    access_token: str


@dataclass
class AppConfig:
    auth: AuthConfig
    state_dir: Path = Path(".state")
    fetch_delay: float = 0.1
    timeout: float = 30.0


def load_config(config_path: Path = CONFIG_FILE) -> AppConfig:
    """Load and validate config from TOML file."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    auth_data = data.get("auth", {})
    instance_domain = normalize_domain(auth_data.get("instance_domain", ""))
    access_token = os.environ.get(TOKEN_ENV_VAR) or auth_data.get("access_token", "")

    if not instance_domain or not access_token:
        raise ValueError(
            "Config missing required auth.instance_domain and auth.access_token"
        )

    state_data = data.get("state", {})
    fetch_data = data.get("fetch", {})

    return AppConfig(
        auth=AuthConfig(instance_domain=instance_domain, access_token=access_token),
        state_dir=Path(state_data.get("state_dir", ".state")),
        fetch_delay=float(fetch_data.get("delay", 0.1)),
        timeout=float(fetch_data.get("timeout", 30.0)),
    )


def save_config(config: AppConfig, config_path: Path = CONFIG_FILE) -> None:
    """Write config to TOML file with restricted permissions."""
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "auth": {
            "instance_domain": config.auth.instance_domain,
            "access_token": config.auth.access_token,
        },
        "state": {
            "state_dir": str(config.state_dir),
        },
        "fetch": {
            "delay": config.fetch_delay,
            "timeout": config.timeout,
        },
    }

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)

    # Restrict permissions, the file holds an access token
    os.chmod(config_path, 0o600)


def config_exists(config_path: Path = CONFIG_FILE) -> bool:
    """Check if config file exists."""
    return config_path.exists()
