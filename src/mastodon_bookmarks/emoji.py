"""Per-domain cache of custom emoji with a one-day freshness window.

Every origin server has its own emoji set. Sets are fetched on demand,
stored under the domain's keys in the store, and considered stale once a
whole day has passed since they were last refreshed. The list of domains
seen so far is persisted too, so all sets are reloaded on startup.
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from .client import normalize_domain
from .errors import DecodeError
from .models import CustomEmoji
from .parser import emoji_to_dict, parse_custom_emojis, parse_timestamp
from .store import (
    EMOJI_DOMAINS_KEY,
    JsonStore,
    StoreCorrupt,
    emoji_cache_key,
    emoji_time_key,
)

logger = logging.getLogger(__name__)

# Value a fresh install carries before the user has picked an instance
PLACEHOLDER_DOMAIN = "your-default-instance.com"

STALE_AFTER = timedelta(days=1)

_SHORTCODE = re.compile(r":([A-Za-z0-9_]{2,}):")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EmojiTracker:
    """Fetches, caches and expires custom emoji sets keyed by origin domain.

    ``source`` is anything with ``fetch_custom_emojis(domain)``, normally a
    MastodonClient. ``now`` is injectable for tests.
    """

    def __init__(
        self,
        source,
        store: JsonStore,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.source = source
        self.store = store
        self._now = now
        self._emojis: dict[str, dict[str, CustomEmoji]] = {}
        self._last_refreshed: dict[str, datetime] = {}
        self._load_all()

    def _load_all(self) -> None:
        try:
            domains = self.store.load(EMOJI_DOMAINS_KEY, default=[])
        except StoreCorrupt as e:
            logger.warning("Ignoring emoji domain list: %s", e)
            domains = []
        for domain in domains:
            self._load_domain(domain)

    def _load_domain(self, domain: str) -> None:
        try:
            payload = self.store.load(emoji_cache_key(domain))
            stamp = self.store.load(emoji_time_key(domain))
            if payload is None:
                return
            emojis = parse_custom_emojis(payload)
            refreshed_at = parse_timestamp(stamp) if stamp else None
        except (StoreCorrupt, DecodeError, TypeError, ValueError) as e:
            logger.warning("Discarding cached emoji for %s: %s", domain, e)
            return

        self._emojis[domain] = {e.shortcode: e for e in emojis}
        if refreshed_at is not None:
            self._last_refreshed[domain] = refreshed_at
        logger.debug("Loaded %d cached emoji for %s", len(emojis), domain)

    @property
    def known_domains(self) -> list[str]:
        return sorted(self._emojis)

    def last_refreshed(self, domain: str) -> datetime | None:
        return self._last_refreshed.get(normalize_domain(domain))

    def emojis_for(self, domain: str) -> dict[str, CustomEmoji]:
        """Cached emoji of a domain keyed by shortcode (possibly stale)."""
        return dict(self._emojis.get(normalize_domain(domain), {}))

    def is_stale(self, domain: str) -> bool:
        refreshed_at = self._last_refreshed.get(normalize_domain(domain))
        if refreshed_at is None:
            return True
        # whole days only: 23h59m is fresh, 24h is stale
        return (self._now() - refreshed_at).days >= STALE_AFTER.days

    def ensure_fresh(self, domain: str) -> bool:
        """Refresh the domain's set if stale. Returns True when a fetch succeeded.

        Never raises for fetch failures: the previous entry is left in place
        and the failure is logged.
        """
        domain = normalize_domain(domain or "")
        if not _is_valid_domain(domain):
            return False
        if not self.is_stale(domain):
            logger.debug("Using cached emoji for %s", domain)
            return False
        return self.refresh(domain)

    def refresh(self, domain: str) -> bool:
        """Fetch the domain's set unconditionally, keeping the old one on failure."""
        domain = normalize_domain(domain or "")
        if not _is_valid_domain(domain):
            return False
        logger.info("Fetching custom emoji from %s", domain)
        try:
            emojis = self.source.fetch_custom_emojis(domain)
        except RuntimeError as e:
            logger.warning("Error fetching emoji from %s: %s", domain, e)
            return False

        emojis = _unique_by_shortcode(emojis)
        now = self._now()
        self._emojis[domain] = {e.shortcode: e for e in emojis}
        self._last_refreshed[domain] = now
        self._save(domain, emojis, now)
        logger.info("Cached %d emoji for %s", len(emojis), domain)
        return True

    def _save(self, domain: str, emojis: list[CustomEmoji], refreshed_at: datetime) -> None:
        self.store.save(emoji_cache_key(domain), [emoji_to_dict(e) for e in emojis])
        self.store.save(emoji_time_key(domain), refreshed_at.isoformat())
        try:
            known = self.store.load(EMOJI_DOMAINS_KEY, default=[])
        except StoreCorrupt:
            known = []
        if domain not in known:
            known.append(domain)
            self.store.save(EMOJI_DOMAINS_KEY, known)

    def find(self, shortcode: str, domain: str | None = None) -> tuple[str, CustomEmoji] | None:
        """Look up a shortcode, preferring ``domain`` and then any cached domain."""
        if domain:
            domain = normalize_domain(domain)
            emoji = self._emojis.get(domain, {}).get(shortcode)
            if emoji is not None:
                return domain, emoji
        for other, emojis in self._emojis.items():
            if shortcode in emojis:
                return other, emojis[shortcode]
        return None


def _is_valid_domain(domain: str) -> bool:
    if not domain or domain == PLACEHOLDER_DOMAIN:
        logger.warning("Skipping invalid emoji domain: %r", domain)
        return False
    return True


def _unique_by_shortcode(emojis: list[CustomEmoji]) -> list[CustomEmoji]:
    unique: dict[str, CustomEmoji] = {}
    for emoji in emojis:
        unique.setdefault(emoji.shortcode, emoji)
    return list(unique.values())


def split_shortcodes(text: str) -> list[tuple[str, bool]]:
    """Split text into (segment, is_emoji) pieces around ``:shortcode:`` tokens.

    >>> split_shortcodes("hi :blob: there")
    [('hi ', False), ('blob', True), (' there', False)]
    """
    pieces: list[tuple[str, bool]] = []
    pos = 0
    for match in _SHORTCODE.finditer(text):
        if match.start() > pos:
            pieces.append((text[pos:match.start()], False))
        pieces.append((match.group(1), True))
        pos = match.end()
    if pos < len(text):
        pieces.append((text[pos:], False))
    return pieces
