"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from mastodon_bookmarks.client import BookmarksPage
from mastodon_bookmarks.models import Account, CustomEmoji, Status
from mastodon_bookmarks.store import JsonStore

FIXTURES_DIR = Path(__file__).parent / "fixtures"

SOURCE_URL = "https://example.social/api/v1/bookmarks"


def _make_status(status_id: str, username: str = "alice", domain: str = "mastodon.social", **kwargs) -> Status:
    kwargs.setdefault("content", f"<p>post {status_id}</p>")
    return Status(
        id=status_id,
        account=Account(
            username=username,
            display_name=username.title(),
            acct=username,
            url=f"https://{domain}/@{username}",
        ),
        **kwargs,
    )


class FakeBookmarkSource:
    """Serves a fixed list of pages; an Exception in the list is raised instead.

    Page N (N > 0) is addressed as ``SOURCE_URL?page=N``, the first page by
    ``url=None``. The last page carries no next URL.
    """

    def __init__(self, pages):
        self.pages = pages
        self.calls: list[str | None] = []

    def fetch_bookmarks_page(self, url=None):
        self.calls.append(url)
        index = 0 if url is None else int(url.rsplit("=", 1)[1])
        page = self.pages[index]
        if isinstance(page, Exception):
            raise page
        next_url = f"{SOURCE_URL}?page={index + 1}" if index + 1 < len(self.pages) else None
        return BookmarksPage(statuses=list(page), next_url=next_url)


class FakeEmojiSource:
    def __init__(self, emojis=None, error=None):
        self.emojis = emojis or []
        self.error = error
        self.calls: list[str] = []

    def fetch_custom_emojis(self, domain):
        self.calls.append(domain)
        if self.error is not None:
            raise self.error
        return list(self.emojis)


@pytest.fixture
def make_status():
    return _make_status


@pytest.fixture
def fake_source():
    return FakeBookmarkSource


@pytest.fixture
def fake_emoji_source():
    return FakeEmojiSource


@pytest.fixture
def store(tmp_path) -> JsonStore:
    return JsonStore(tmp_path / ".state")


@pytest.fixture
def bookmarks_payload() -> list[dict]:
    """Load the sample /api/v1/bookmarks response."""
    with open(FIXTURES_DIR / "bookmarks_page.json") as f:
        return json.load(f)


@pytest.fixture
def emojis_payload() -> list[dict]:
    """Load the sample /api/v1/custom_emojis response (with a duplicate 'blob')."""
    with open(FIXTURES_DIR / "custom_emojis.json") as f:
        return json.load(f)


@pytest.fixture
def sample_emojis() -> list[CustomEmoji]:
    return [
        CustomEmoji(shortcode="blob", url="https://mastodon.social/emoji/blob_first.png"),
        CustomEmoji(shortcode="blobcat", url="https://mastodon.social/emoji/blobcat.png"),
        CustomEmoji(shortcode="blob", url="https://mastodon.social/emoji/blob_second.png"),
    ]
