"""Error kinds raised while talking to a Mastodon instance.

All of them derive from RuntimeError so callers can surface any failure of a
fetch with a single ``except RuntimeError`` and show ``str(exc)`` to the user.
"""

from datetime import datetime, timezone


class MastodonError(RuntimeError):
    """Base class for remote fetch failures."""


class NetworkError(MastodonError):
    """Transport-level failure (DNS, connect, timeout, TLS)."""

    def __init__(self, detail: str):
        super().__init__(f"Network error: {detail}")


class ServerError(MastodonError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, url: str, message: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message or f"Server returned status code: {status_code}")

    @classmethod
    def from_status(
        cls, status_code: int, url: str, rate_limit_reset: str | None = None
    ) -> "ServerError":
        """Build an error with a helpful message for well-known statuses."""
        if status_code in (401, 403):
            message = (
                f"Authentication failed ({status_code}). Your access token may "
                "be expired or revoked. Run `mastodon-bookmarks setup` again."
            )
        elif status_code == 404:
            message = (
                f"Endpoint not found (404): {url}. Check that the instance "
                "domain points at a Mastodon-compatible server."
            )
        elif status_code == 429:
            wait_msg = ""
            wait_seconds = _seconds_until(rate_limit_reset)
            if wait_seconds:
                wait_msg = f" Retry in {wait_seconds}s."
            message = f"Rate limited by the instance.{wait_msg}"
        else:
            message = None
        return cls(status_code, url, message)


class DecodeError(MastodonError):
    """The response body was not JSON or did not have the expected shape."""

    def __init__(self, detail: str):
        super().__init__(f"Failed to decode data: {detail}")


def _seconds_until(reset: str | None) -> int | None:
    # Mastodon sends X-RateLimit-Reset as an ISO-8601 timestamp
    if not reset:
        return None
    try:
        reset_at = datetime.fromisoformat(reset.replace("Z", "+00:00"))
    except ValueError:
        return None
    if reset_at.tzinfo is None:
        reset_at = reset_at.replace(tzinfo=timezone.utc)
    seconds = int((reset_at - datetime.now(timezone.utc)).total_seconds())
    return seconds if seconds > 0 else None
