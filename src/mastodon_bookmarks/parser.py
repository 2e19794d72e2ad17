"""Parse Mastodon API JSON into model objects and back.

The same functions read live API responses and the local cache, since the
cache is written in the API's own shape. Decoding is strict about the fields
that identify a post (``id`` and ``account``) and lenient about the rest:

    content            -> "" when missing or not a string
    media_attachments  -> [] when missing or malformed
    mentions / reblog  -> None when malformed

A single malformed post fails the whole page so a truncated list is never
mistaken for a complete one.
"""

import logging
from dataclasses import asdict
from datetime import datetime, timezone

from .errors import DecodeError
from .models import Account, CustomEmoji, Folder, MediaAttachment, Mention, Status

logger = logging.getLogger(__name__)


def parse_statuses(payload) -> list[Status]:
    """Parse a JSON array of statuses. Raises DecodeError on any bad record."""
    if not isinstance(payload, list):
        raise DecodeError(f"expected a JSON array, got {type(payload).__name__}")
    return [parse_status(item) for item in payload]


def parse_status(data) -> Status:
    if not isinstance(data, dict):
        raise DecodeError(f"expected a status object, got {type(data).__name__}")

    status_id = data.get("id")
    if not isinstance(status_id, (str, int)) or status_id == "":
        raise DecodeError("status is missing 'id'")
    status_id = str(status_id)

    account = _parse_account(data.get("account"), status_id)

    content = data.get("content")
    if not isinstance(content, str):
        logger.debug("status %s: missing content, using empty string", status_id)
        content = ""

    try:
        media = [_parse_media(m) for m in data.get("media_attachments") or []]
    except (KeyError, TypeError, AttributeError) as e:
        logger.warning("status %s: dropping malformed media_attachments: %s", status_id, e)
        media = []

    mentions = None
    if data.get("mentions") is not None:
        try:
            mentions = [_parse_mention(m) for m in data["mentions"]]
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning("status %s: dropping malformed mentions: %s", status_id, e)

    reblog = None
    if data.get("reblog") is not None:
        try:
            reblog = parse_status(data["reblog"])
        except DecodeError as e:
            logger.warning("status %s: dropping malformed reblog: %s", status_id, e)

    url = data.get("url")
    return Status(
        id=status_id,
        account=account,
        content=content,
        media_attachments=media,
        mentions=mentions,
        reblog=reblog,
        url=url if isinstance(url, str) else None,
    )


def _parse_account(data, status_id: str) -> Account:
    if not isinstance(data, dict) or not data.get("username"):
        raise DecodeError(f"status {status_id} has no usable 'account'")
    return Account(
        username=data["username"],
        display_name=data.get("display_name") or "",
        avatar=data.get("avatar") or "",
        acct=data.get("acct") or "",
        url=data.get("url") or "",
    )


def _parse_media(data: dict) -> MediaAttachment:
    return MediaAttachment(
        id=str(data["id"]),
        type=data.get("type") or "unknown",
        url=data["url"],
        preview_url=data.get("preview_url"),
    )


def _parse_mention(data: dict) -> Mention:
    return Mention(
        id=str(data["id"]),
        username=data["username"],
        url=data.get("url") or "",
        acct=data.get("acct") or "",
    )


def status_to_dict(status: Status) -> dict:
    return asdict(status)


def parse_custom_emojis(payload) -> list[CustomEmoji]:
    """Parse the custom_emojis endpoint, keeping the first of duplicate shortcodes."""
    if not isinstance(payload, list):
        raise DecodeError(f"expected a JSON array, got {type(payload).__name__}")

    emojis: list[CustomEmoji] = []
    seen: set[str] = set()
    for item in payload:
        if not isinstance(item, dict) or not item.get("shortcode") or not item.get("url"):
            raise DecodeError("custom emoji entry is missing 'shortcode' or 'url'")
        shortcode = item["shortcode"]
        if shortcode in seen:
            logger.debug("Dropping duplicate emoji shortcode %r", shortcode)
            continue
        seen.add(shortcode)
        emojis.append(
            CustomEmoji(
                shortcode=shortcode,
                url=item["url"],
                static_url=item.get("static_url"),
                visible_in_picker=item.get("visible_in_picker"),
            )
        )
    return emojis


def emoji_to_dict(emoji: CustomEmoji) -> dict:
    return asdict(emoji)


def parse_folders(payload) -> list[Folder]:
    if not isinstance(payload, list):
        raise DecodeError(f"expected a JSON array, got {type(payload).__name__}")
    folders = []
    for item in payload:
        try:
            folders.append(
                Folder(
                    id=item["id"],
                    name=item["name"],
                    bookmark_ids=list(item.get("bookmark_ids", [])),
                    created_at=parse_timestamp(item["created_at"]),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"malformed folder entry: {e}") from e
    return folders


def folder_to_dict(folder: Folder) -> dict:
    return {
        "id": folder.id,
        "name": folder.name,
        "bookmark_ids": list(folder.bookmark_ids),
        "created_at": folder.created_at.isoformat(),
    }


def parse_timestamp(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp, assuming UTC when naive."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
