"""CLI interface for mastodon-bookmarks.

Commands:
    setup     - Configure instance domain and access token
    sync      - Load cached bookmarks and refresh them, or fetch everything
    refresh   - Fetch the newest bookmarks and prepend the new ones
    status    - Show current cache status
    accounts  - Bookmark counts per author
    folders   - Manage bookmark folders
    emoji     - Inspect and refresh custom emoji caches
"""

import sys
from pathlib import Path

import click

from .config import (
    CONFIG_FILE,
    AppConfig,
    AuthConfig,
    config_exists,
    load_config,
    save_config,
)
from .logging_config import setup_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Only log warnings and errors")
@click.option("--config", type=click.Path(), default=None, help="Config file path")
@click.pass_context
def main(ctx, verbose, quiet, config):
    """Mastodon Bookmarks — Keep your bookmarks and folders locally."""
    setup_logging(debug=verbose, quiet=quiet)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else CONFIG_FILE


def _require_config(ctx) -> AppConfig:
    config_path = ctx.obj["config_path"]
    if not config_exists(config_path):
        click.echo(
            "Error: No config found. Run 'mastodon-bookmarks setup' first.",
            err=True,
        )
        sys.exit(1)
    try:
        return load_config(config_path)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _cached_synchronizer(config: AppConfig):
    """A synchronizer with the cache loaded, for commands that stay offline."""
    from .store import JsonStore
    from .sync import BookmarkSynchronizer

    syncer = BookmarkSynchronizer(None, JsonStore(config.state_dir))
    syncer.load_cache()
    return syncer


def _format_status(status) -> str:
    author = status.account.acct or status.account.username
    return f"{status.id}  @{author}  {status.url or ''}".rstrip()


@main.command()
@click.pass_context
def setup(ctx):
    """Configure the Mastodon instance and access token."""
    config_path = ctx.obj["config_path"]

    click.echo("Mastodon Bookmarks — Setup")
    click.echo("=" * 40)
    click.echo()
    click.echo("You need an access token with the 'read:bookmarks' scope.")
    click.echo("To create one:")
    click.echo("  1. Open your instance in a browser and log in")
    click.echo("  2. Go to Preferences -> Development -> New application")
    click.echo("  3. Grant 'read:bookmarks' and copy 'Your access token'")
    click.echo()

    instance_domain = click.prompt("instance_domain (e.g. mastodon.social)")
    access_token = click.prompt("access_token", hide_input=True)

    from .client import normalize_domain

    config = AppConfig(
        auth=AuthConfig(
            instance_domain=normalize_domain(instance_domain),
            access_token=access_token,
        ),
    )

    save_config(config, config_path)
    click.echo(f"\nConfig saved to {config_path}")
    click.echo("Run 'mastodon-bookmarks sync' to download your bookmarks.")


@main.command()
@click.option("--full", is_flag=True, help="Re-fetch every page and replace the cache")
@click.pass_context
def sync(ctx, full):
    """Load bookmarks from cache and refresh, or fetch them all."""
    config = _require_config(ctx)

    # Lazy imports so --help stays fast
    from .client import MastodonClient
    from .emoji import EmojiTracker
    from .store import JsonStore
    from .sync import BookmarkSynchronizer

    store = JsonStore(config.state_dir)
    with MastodonClient(
        config.auth.instance_domain,
        config.auth.access_token,
        timeout=config.timeout,
    ) as client:
        syncer = BookmarkSynchronizer(
            client,
            store,
            emoji_tracker=EmojiTracker(client, store),
            delay=config.fetch_delay,
        )
        if full:
            click.echo("Full sync — fetching every page of bookmarks...")
            ok = syncer.full_sync()
        else:
            ok = syncer.load_or_fetch()

    if not ok:
        click.echo(f"Error: {syncer.state.error_message or 'sync did not finish'}", err=True)
        sys.exit(1)

    click.echo(f"{len(syncer.bookmarks)} bookmarks cached in {config.state_dir}")


@main.command()
@click.pass_context
def refresh(ctx):
    """Fetch the newest bookmarks and prepend any new ones."""
    config = _require_config(ctx)

    from .client import MastodonClient
    from .emoji import EmojiTracker
    from .store import JsonStore
    from .sync import BookmarkSynchronizer

    store = JsonStore(config.state_dir)
    with MastodonClient(
        config.auth.instance_domain,
        config.auth.access_token,
        timeout=config.timeout,
    ) as client:
        syncer = BookmarkSynchronizer(
            client, store, emoji_tracker=EmojiTracker(client, store)
        )
        syncer.load_cache()
        before = len(syncer.bookmarks)
        ok = syncer.pull_to_refresh()

    if not ok:
        click.echo(f"Error: {syncer.state.error_message}", err=True)
        sys.exit(1)

    added = len(syncer.bookmarks) - before
    if added:
        click.echo(f"Prepended {added} new bookmarks ({len(syncer.bookmarks)} total).")
    else:
        click.echo("No new bookmarks since last fetch.")


@main.command()
@click.pass_context
def status(ctx):
    """Show current cache status."""
    config_path = ctx.obj["config_path"]
    has_config = config_exists(config_path)

    click.echo("Mastodon Bookmarks — Status")
    click.echo("=" * 40)
    click.echo(f"Config: {'Found' if has_config else 'Not configured'} ({config_path})")

    if not has_config:
        click.echo("\nRun 'mastodon-bookmarks setup' to get started.")
        return

    config = _require_config(ctx)

    from .emoji import EmojiTracker
    from .folders import FolderRegistry
    from .store import JsonStore

    syncer = _cached_synchronizer(config)
    store = JsonStore(config.state_dir)
    click.echo(f"Instance: {config.auth.instance_domain}")
    click.echo(f"Cached bookmarks: {len(syncer.bookmarks)}")
    if syncer.last_fetched_at:
        click.echo(f"Last fetch: {syncer.last_fetched_at.strftime('%Y-%m-%d %H:%M UTC')}")
    else:
        click.echo("Last fetch: never")
    click.echo(f"Folders: {len(FolderRegistry(store).folders)}")
    domains = EmojiTracker(None, store).known_domains
    click.echo(f"Emoji domains: {len(domains)}")


@main.command()
@click.option(
    "--sort",
    "sort_option",
    type=click.Choice(["name-asc", "name-desc", "posts-desc", "posts-asc"]),
    default="name-asc",
    show_default=True,
    help="Ordering of authors",
)
@click.pass_context
def accounts(ctx, sort_option):
    """List authors of cached bookmarks with their bookmark counts."""
    config = _require_config(ctx)

    from .grouping import SortOption, group_by_account, sort_groups

    syncer = _cached_synchronizer(config)
    if not syncer.bookmarks:
        click.echo("No cached bookmarks. Run 'mastodon-bookmarks sync' first.")
        return

    groups = sort_groups(group_by_account(syncer.bookmarks), SortOption(sort_option))
    for group in groups:
        name = group.account.display_name or group.account.username
        handle = group.account.acct or group.account.username
        click.echo(f"{len(group.statuses):5d}  {name} (@{handle})")


# ── Folders ──


@main.group()
@click.pass_context
def folders(ctx):
    """Manage bookmark folders."""
    config = _require_config(ctx)

    from .folders import FolderRegistry
    from .store import JsonStore

    ctx.obj["config"] = config
    ctx.obj["registry"] = FolderRegistry(JsonStore(config.state_dir))


@folders.command("list")
@click.pass_context
def folders_list(ctx):
    """List folders in order with their positions."""
    registry = ctx.obj["registry"]
    if not registry.folders:
        click.echo("No folders yet. Create one with 'folders create NAME'.")
        return
    for position, folder in enumerate(registry.folders):
        count = len(folder.bookmark_ids)
        click.echo(f"{position:3d}. {folder.id}  {folder.name} ({count} bookmarks)")


@folders.command("create")
@click.argument("name")
@click.pass_context
def folders_create(ctx, name):
    """Create a folder called NAME."""
    from .models import InvalidInput

    try:
        folder = ctx.obj["registry"].create(name)
    except InvalidInput as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Created folder {folder.name!r} ({folder.id})")


@folders.command("rename")
@click.argument("folder_id")
@click.argument("name")
@click.pass_context
def folders_rename(ctx, folder_id, name):
    """Rename folder FOLDER_ID to NAME."""
    from .models import InvalidInput

    try:
        renamed = ctx.obj["registry"].rename(folder_id, name)
    except InvalidInput as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if not renamed:
        click.echo(f"No folder with id {folder_id}.")
        return
    click.echo(f"Renamed folder to {name.strip()!r}")


@folders.command("delete")
@click.argument("positions", nargs=-1, type=int, required=True)
@click.pass_context
def folders_delete(ctx, positions):
    """Delete the folders at POSITIONS (as shown by 'folders list')."""
    removed = ctx.obj["registry"].delete(positions)
    for folder in removed:
        click.echo(f"Deleted folder {folder.name!r}")
    if not removed:
        click.echo("Nothing deleted.")


@folders.command("add")
@click.argument("folder_id")
@click.argument("bookmark_id")
@click.pass_context
def folders_add(ctx, folder_id, bookmark_id):
    """Add bookmark BOOKMARK_ID to folder FOLDER_ID."""
    if not ctx.obj["registry"].add_bookmark(folder_id, bookmark_id):
        click.echo(f"No folder with id {folder_id}.")
        return
    click.echo(f"Added {bookmark_id} to folder.")


@folders.command("remove")
@click.argument("folder_id")
@click.argument("bookmark_id")
@click.pass_context
def folders_remove(ctx, folder_id, bookmark_id):
    """Remove bookmark BOOKMARK_ID from folder FOLDER_ID."""
    if not ctx.obj["registry"].remove_bookmark(folder_id, bookmark_id):
        click.echo(f"No folder with id {folder_id}.")
        return
    click.echo(f"Removed {bookmark_id} from folder.")


@folders.command("show")
@click.argument("folder_id")
@click.pass_context
def folders_show(ctx, folder_id):
    """Show the cached bookmarks of folder FOLDER_ID."""
    from .folders import members_of

    folder = ctx.obj["registry"].get(folder_id)
    if folder is None:
        click.echo(f"No folder with id {folder_id}.")
        return

    syncer = _cached_synchronizer(ctx.obj["config"])
    members = members_of(folder, syncer.bookmarks)
    click.echo(f"{folder.name} — {len(members)} bookmarks")
    for status in members:
        click.echo(_format_status(status))

    missing = len(folder.bookmark_ids) - len(members)
    if missing:
        click.echo(f"({missing} bookmarks no longer in the local cache)")


# ── Emoji ──


@main.group()
@click.pass_context
def emoji(ctx):
    """Inspect and refresh custom emoji caches."""
    config = _require_config(ctx)
    ctx.obj["config"] = config


@emoji.command("refresh")
@click.argument("domain")
@click.option("--force", is_flag=True, help="Fetch even if the cache is fresh")
@click.pass_context
def emoji_refresh(ctx, domain, force):
    """Fetch the custom emoji of DOMAIN if the cached set is stale."""
    from .client import MastodonClient
    from .emoji import EmojiTracker
    from .store import JsonStore

    config = ctx.obj["config"]
    store = JsonStore(config.state_dir)
    with MastodonClient(
        config.auth.instance_domain,
        config.auth.access_token,
        timeout=config.timeout,
    ) as client:
        tracker = EmojiTracker(client, store)
        if not force and not tracker.is_stale(domain):
            click.echo(f"Emoji for {domain} are fresh.")
            return
        fetched = tracker.refresh(domain) if force else tracker.ensure_fresh(domain)

    if not fetched:
        click.echo(f"Error: could not fetch emoji for {domain}.", err=True)
        sys.exit(1)
    click.echo(f"Cached {len(tracker.emojis_for(domain))} emoji for {domain}.")


@emoji.command("show")
@click.argument("domain")
@click.pass_context
def emoji_show(ctx, domain):
    """List the cached custom emoji of DOMAIN."""
    from .emoji import EmojiTracker
    from .store import JsonStore

    tracker = EmojiTracker(None, JsonStore(ctx.obj["config"].state_dir))
    emojis = tracker.emojis_for(domain)
    if not emojis:
        click.echo(f"No cached emoji for {domain}.")
        return
    refreshed = tracker.last_refreshed(domain)
    stale = " (stale)" if tracker.is_stale(domain) else ""
    when = refreshed.strftime("%Y-%m-%d %H:%M UTC") if refreshed else "unknown"
    click.echo(f"{domain}: {len(emojis)} emoji, refreshed {when}{stale}")
    for shortcode in sorted(emojis):
        click.echo(f"  :{shortcode}:  {emojis[shortcode].url}")
