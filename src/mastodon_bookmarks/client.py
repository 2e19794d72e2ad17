"""Mastodon REST client for bookmarks and custom emoji.

Bookmarks are read from ``GET /api/v1/bookmarks`` with a bearer token. The
endpoint paginates through the ``Link`` response header:

    Link: <https://host/api/v1/bookmarks?max_id=5>; rel="next",
          <https://host/api/v1/bookmarks?min_id=9>; rel="prev"

The client follows the ``next`` URL verbatim rather than building cursors
itself. Custom emoji come from ``GET https://{domain}/api/v1/custom_emojis``,
a public endpoint that is requested without the token since the domain is
usually not the user's own instance.
"""

import logging
from dataclasses import dataclass, field

import httpx

from .errors import DecodeError, NetworkError, ServerError
from .models import CustomEmoji, Status
from .parser import parse_custom_emojis, parse_statuses

logger = logging.getLogger(__name__)

USER_AGENT = "mastodon-bookmarks/0.1 (+https://joinmastodon.org)"


def normalize_domain(domain: str) -> str:
    """Strip a scheme prefix, path and surrounding whitespace from a domain."""
    domain = domain.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
            break
    return domain.split("/", 1)[0]


def instance_url(domain: str) -> str:
    return f"https://{normalize_domain(domain)}"


def extract_next_url(link_header: str | None) -> str | None:
    """Return the URL of the ``rel="next"`` entry of a Link header, if any."""
    if not link_header:
        return None
    for link in link_header.split(","):
        parts = link.split(";")
        if len(parts) < 2:
            continue
        url = parts[0].strip().lstrip("<").rstrip(">")
        if any("next" in param for param in parts[1:]):
            return url or None
    return None


@dataclass
class BookmarksPage:
    """A single page of bookmark results."""

    statuses: list[Status] = field(default_factory=list)
    next_url: str | None = None


class MastodonClient:
    """Client for a single Mastodon instance, authenticated with a bearer token."""

    def __init__(self, instance_domain: str, access_token: str, timeout: float = 30.0):
        self.instance_url = instance_url(instance_domain)
        self.bookmarks_url = f"{self.instance_url}/api/v1/bookmarks"
        self._auth_headers = {"Authorization": f"Bearer {access_token}"}
        self._client = httpx.Client(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            follow_redirects=True,
        )

    def fetch_bookmarks_page(self, url: str | None = None) -> BookmarksPage:
        """Fetch one page of bookmarks; ``url=None`` means the newest page."""
        response = self._get(url or self.bookmarks_url, headers=self._auth_headers)
        statuses = parse_statuses(self._json(response))
        next_url = extract_next_url(response.headers.get("link"))
        logger.debug(
            "Page has %d statuses, next=%s", len(statuses), next_url or "none"
        )
        return BookmarksPage(statuses=statuses, next_url=next_url)

    def fetch_custom_emojis(self, domain: str) -> list[CustomEmoji]:
        """Fetch the public custom emoji list of ``domain``."""
        url = f"{instance_url(domain)}/api/v1/custom_emojis"
        return parse_custom_emojis(self._json(self._get(url)))

    def _get(self, url: str, headers: dict | None = None) -> httpx.Response:
        logger.debug("GET %s", url)
        try:
            response = self._client.get(url, headers=headers)
        except httpx.RequestError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        if response.is_success:
            return response
        raise ServerError.from_status(
            response.status_code,
            url,
            rate_limit_reset=response.headers.get("x-ratelimit-reset"),
        )

    @staticmethod
    def _json(response: httpx.Response):
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(str(e)) from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
