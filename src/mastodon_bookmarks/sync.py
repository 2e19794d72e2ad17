"""Keep a local, deduplicated copy of the user's bookmarks in sync.

Two strategies are used:

full sync
    Walk every page of ``/api/v1/bookmarks`` from the newest one, following
    the ``next`` links, and replace the local collection with the result.
    Any failure discards everything fetched so far; the previous collection
    and cache stay as they were.

incremental refresh
    Fetch only the newest page and prepend the posts whose ids are not
    already known, in the order the server returned them. Nothing is
    written when there is nothing new.

Only one operation runs at a time per synchronizer. A request made while
another is running raises SyncInProgress and leaves the running one alone.
The loading and refreshing flags are cleared however an operation ends.
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urlsplit

from .errors import DecodeError, MastodonError
from .models import Status
from .parser import parse_statuses, parse_timestamp, status_to_dict
from .store import BOOKMARKS_KEY, LAST_FETCH_KEY, JsonStore, StoreCorrupt

logger = logging.getLogger(__name__)

# Progress shown while paginating never reaches this until the sync is done
MAX_PARTIAL_PROGRESS = 0.9


class SyncInProgress(RuntimeError):
    """A sync was requested while another one was still running."""


@dataclass
class SyncState:
    is_loading: bool = False  # full sync running
    is_refreshing: bool = False  # user-visible refresh running
    is_fully_loaded: bool = False
    progress: float = 0.0
    error_message: str | None = None


def extract_origin_domains(statuses: Iterable[Status]) -> set[str]:
    """Hosts of every author, mention and (nested) reblog author profile URL."""
    domains: set[str] = set()

    def visit(status: Status) -> None:
        _add_host(domains, status.account.url)
        for mention in status.mentions or []:
            _add_host(domains, mention.url)
        if status.reblog is not None:
            visit(status.reblog)

    for status in statuses:
        visit(status)
    return domains


def _add_host(domains: set[str], url: str | None) -> None:
    if not url:
        return
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return
    if host:
        domains.add(host)


def estimate_progress(accumulated: int, last_page_size: int) -> float:
    if last_page_size <= 0:
        return MAX_PARTIAL_PROGRESS
    return min(MAX_PARTIAL_PROGRESS, accumulated / (accumulated + last_page_size))


class BookmarkSynchronizer:
    """Owns the bookmark collection and its cache.

    ``source`` provides ``fetch_bookmarks_page(url)`` (normally a
    MastodonClient). ``emoji_tracker``, when given, is asked to refresh the
    emoji of every origin domain seen after each successful fetch.

    Observers registered with ``subscribe`` are called with the synchronizer
    after every state change, on whatever thread runs the operation.
    """

    def __init__(
        self,
        source,
        store: JsonStore,
        emoji_tracker=None,
        delay: float = 0.0,
    ):
        self.source = source
        self.store = store
        self.emoji_tracker = emoji_tracker
        self.delay = delay
        self.bookmarks: list[Status] = []
        self.state = SyncState()
        self.last_fetched_at: datetime | None = None
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._listeners: list[Callable[["BookmarkSynchronizer"], None]] = []

    # ── Observation ──

    def subscribe(self, callback: Callable[["BookmarkSynchronizer"], None]) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> None:
        """Ask a running full sync to stop before fetching its next page."""
        self._cancelled.set()

    @contextmanager
    def _exclusive(self, operation: str):
        if not self._lock.acquire(blocking=False):
            raise SyncInProgress(f"Cannot start {operation}: a sync is already running")
        self._cancelled.clear()
        try:
            yield
        finally:
            self._lock.release()

    # ── Public operations ──

    def load_or_fetch(self) -> bool:
        """Show cached bookmarks and refresh them silently, or do a full sync.

        Runs on the calling thread and holds the sync lock until the refresh
        is done. Interactive callers should use ``start_load_or_fetch``.
        Returns True when a collection is available afterwards.
        """
        with self._exclusive("load"):
            if self._load_cache():
                logger.info("Loaded %d bookmarks from cache", len(self.bookmarks))
                self.state.is_fully_loaded = True
                self._notify()
                self._refresh(silent=True)
                return True
            logger.info("No usable cache, fetching all bookmarks")
            return self._full_sync()

    def load_cache(self) -> bool:
        """Load the cached collection without touching the network."""
        with self._exclusive("cache load"):
            loaded = self._load_cache()
            if loaded:
                self._notify()
            return loaded

    def full_sync(self) -> bool:
        with self._exclusive("full sync"):
            return self._full_sync()

    def incremental_refresh(self, silent: bool = False) -> bool:
        with self._exclusive("refresh"):
            return self._refresh(silent=silent)

    def pull_to_refresh(self) -> bool:
        return self.incremental_refresh(silent=False)

    def start_load_or_fetch(self) -> threading.Thread:
        """Run ``load_or_fetch`` on a daemon worker thread and return it.

        Observers are notified from that thread; a UI has to hand the
        updates over to its own event loop.
        """
        worker = threading.Thread(
            target=self._load_or_fetch_logged,
            name="bookmark-sync",
            daemon=True,
        )
        worker.start()
        return worker

    def _load_or_fetch_logged(self) -> None:
        try:
            self.load_or_fetch()
        except SyncInProgress as e:
            logger.warning("%s", e)

    # ── Cache ──

    def _load_cache(self) -> bool:
        try:
            payload = self.store.load(BOOKMARKS_KEY)
            if payload is None:
                logger.info("No cached bookmarks found")
                return False
            statuses = parse_statuses(payload)
        except (StoreCorrupt, DecodeError) as e:
            logger.warning("Failed to decode cached bookmarks: %s", e)
            return False

        self.bookmarks = _unique_by_id(statuses)
        try:
            stamp = self.store.load(LAST_FETCH_KEY)
            self.last_fetched_at = parse_timestamp(stamp) if stamp else None
        except (StoreCorrupt, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable last fetch date: %s", e)
            self.last_fetched_at = None
        return True

    def _save_cache(self, statuses: list[Status]) -> None:
        now = datetime.now(timezone.utc)
        self.store.save(BOOKMARKS_KEY, [status_to_dict(s) for s in statuses])
        self.store.save(LAST_FETCH_KEY, now.isoformat())
        self.last_fetched_at = now
        logger.info("Saved %d bookmarks to cache", len(statuses))

    # ── Strategies ──

    def _full_sync(self) -> bool:
        self.state.is_loading = True
        self.state.is_fully_loaded = False
        self.state.progress = 0.0
        self._notify()

        accumulated: list[Status] = []
        seen: set[str] = set()
        url: str | None = None
        page_num = 0

        try:
            while True:
                if page_num > 0 and self.delay > 0:
                    logger.debug("Sleeping %.1fs before next request...", self.delay)
                    time.sleep(self.delay)
                if self._cancelled.is_set():
                    logger.info("Full sync cancelled after %d pages", page_num)
                    return False

                page_num += 1
                logger.info("Fetching bookmarks page %d...", page_num)
                page = self.source.fetch_bookmarks_page(url)

                for status in page.statuses:
                    if status.id not in seen:
                        seen.add(status.id)
                        accumulated.append(status)
                logger.info(
                    "Fetched %d bookmarks (total: %d)",
                    len(page.statuses),
                    len(accumulated),
                )

                progress = estimate_progress(len(accumulated), len(page.statuses))
                self.state.progress = max(self.state.progress, progress)
                self._notify()

                if not page.statuses or not page.next_url:
                    break
                url = page.next_url

            self._save_cache(accumulated)
            self.bookmarks = accumulated
            self.state.is_fully_loaded = True
            self.state.progress = 1.0
            self.state.error_message = None
            logger.info("Finished loading all %d bookmarks", len(accumulated))
        except MastodonError as e:
            logger.error("Full sync failed on page %d: %s", page_num, e)
            self.state.error_message = str(e)
            return False
        except OSError as e:
            logger.error("Could not save bookmarks cache: %s", e)
            self.state.error_message = f"Could not save bookmarks: {e}"
            return False
        finally:
            self.state.is_loading = False
            self._notify()

        self._prefetch_emoji(accumulated)
        return True

    def _refresh(self, silent: bool) -> bool:
        if not silent:
            self.state.is_refreshing = True
            self._notify()

        try:
            page = self.source.fetch_bookmarks_page()

            known = {s.id for s in self.bookmarks}
            new: list[Status] = []
            for status in page.statuses:
                if status.id not in known:
                    known.add(status.id)
                    new.append(status)

            if new:
                merged = new + self.bookmarks
                self._save_cache(merged)
                self.bookmarks = merged
                logger.info("Found %d new bookmarks", len(new))
            else:
                logger.info("No new bookmarks found during refresh")
            self.state.error_message = None
        except (MastodonError, OSError) as e:
            if silent:
                logger.warning("Background refresh failed: %s", e)
            else:
                logger.error("Refresh failed: %s", e)
                self.state.error_message = str(e)
            return False
        finally:
            self.state.is_refreshing = False
            self._notify()

        self._prefetch_emoji(page.statuses)
        return True

    def _prefetch_emoji(self, statuses: list[Status]) -> None:
        if self.emoji_tracker is None:
            return
        domains = extract_origin_domains(statuses)
        logger.debug("Found %d origin domains: %s", len(domains), sorted(domains))
        for domain in sorted(domains):
            try:
                self.emoji_tracker.ensure_fresh(domain)
            except (RuntimeError, OSError) as e:
                logger.warning("Emoji prefetch for %s failed: %s", domain, e)


def _unique_by_id(statuses: list[Status]) -> list[Status]:
    seen: set[str] = set()
    unique = []
    for status in statuses:
        if status.id not in seen:
            seen.add(status.id)
            unique.append(status)
    return unique
