"""Data models for Mastodon bookmarks, custom emoji and folders.

Field names follow the Mastodon REST API so that ``dataclasses.asdict`` of a
model produces the same JSON shape the server returns. The local cache is
therefore readable by the same parser as live responses.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


class InvalidInput(ValueError):
    """Raised for user input the registry refuses (e.g. an empty folder name)."""


@dataclass
class Account:
    username: str
    display_name: str = ""
    avatar: str = ""  # avatar image URL
    acct: str = ""  # user@domain for remote accounts, user for local ones
    url: str = ""  # profile URL, used for origin-domain extraction


@dataclass
class Mention:
    id: str
    username: str
    url: str = ""
    acct: str = ""


@dataclass
class MediaAttachment:
    id: str
    type: str  # "image", "video", "gifv", "audio", "unknown"
    url: str
    preview_url: str | None = None


@dataclass
class Status:
    """A bookmarked post. ``id`` is the only identity used for deduplication."""

    id: str
    account: Account
    content: str = ""  # raw HTML as returned by the server
    media_attachments: list[MediaAttachment] = field(default_factory=list)
    mentions: list[Mention] | None = None
    reblog: "Status | None" = None
    url: str | None = None


@dataclass
class CustomEmoji:
    shortcode: str
    url: str
    static_url: str | None = None
    visible_in_picker: bool | None = None


def _new_folder_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Folder:
    name: str
    id: str = field(default_factory=_new_folder_id)
    bookmark_ids: list[str] = field(default_factory=list)  # Status ids
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_empty(self) -> bool:
        return not self.bookmark_ids
