"""Key-value JSON store backing every local cache.

Each key is kept in its own file under the state directory:

    .state/
        cachedBookmarks.json
        lastBookmarksFetchDate.json
        cachedCustomEmoji_mastodon.social.json
        cachedCustomEmojiTime_mastodon.social.json
        cachedEmojiDomains.json
        savedFolders.json

Writes go to a temporary file in the same directory and are moved into place
with os.replace, so a reader never sees a partially written value.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

BOOKMARKS_KEY = "cachedBookmarks"
LAST_FETCH_KEY = "lastBookmarksFetchDate"
EMOJI_DOMAINS_KEY = "cachedEmojiDomains"
FOLDERS_KEY = "savedFolders"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def emoji_cache_key(domain: str) -> str:
    return f"cachedCustomEmoji_{domain}"


def emoji_time_key(domain: str) -> str:
    return f"cachedCustomEmojiTime_{domain}"


class StoreCorrupt(ValueError):
    """A stored value exists but cannot be decoded."""


class JsonStore:
    def __init__(self, state_dir: Path = Path(".state")):
        self.state_dir = Path(state_dir)

    def _path(self, key: str) -> Path:
        if not key:
            raise ValueError("Store key must not be empty")
        return self.state_dir / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def load(self, key: str, default=None):
        """Return the value stored under key, or default when absent.

        Raises StoreCorrupt when the file exists but is not valid JSON.
        """
        path = self._path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return default
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreCorrupt(f"Stored value for {key!r} is corrupt: {e}") from e

    def save(self, key: str, value) -> None:
        """Persist value under key atomically."""
        path = self._path(key)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.state_dir, prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Saved %s", path.name)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)
