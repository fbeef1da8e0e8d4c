"""CLI commands for fluxreader."""

import logging
from pathlib import Path
from typing import Optional

import click

from .api import MinifluxClient, MinifluxError
from .cache import TTLCache
from .config import CACHE_INVALIDATING_KEYS, ConfigError, Settings, load_settings, save_settings
from .controllers import (
    EntryNotDownloadedError,
    EntryOpener,
    OpenOutcome,
    delete_local_entry,
    mark_category_read,
    mark_feed_read,
    set_entry_status,
)
from .direction import NavigationIntent
from .models import BrowsingContext, Entry
from .navigation import NavigationSession, NavigationStatus, Navigator
from .render import summarize
from .services import CollectionService
from .store import LocalEntryStore


class App:
    """Per-invocation resources, created lazily and closed on exit."""

    def __init__(self, config_path: Optional[Path]):
        self.config_path = config_path
        self._cache: Optional[TTLCache] = None

    def settings(self) -> Settings:
        try:
            return load_settings(self.config_path)
        except ConfigError as e:
            _fail(str(e))

    def client(self, settings: Settings) -> MinifluxClient:
        if not settings.is_configured:
            _fail("Server address and API token are not configured. Run 'fluxreader configure'.")
        return MinifluxClient.from_settings(settings)

    def store(self, settings: Settings) -> LocalEntryStore:
        return LocalEntryStore(settings.download_path)

    def cache(self, settings: Settings) -> TTLCache:
        if self._cache is None:
            self._cache = TTLCache(settings.cache_file, default_ttl=settings.api_cache_ttl)
        return self._cache

    def collections(self, settings: Settings) -> CollectionService:
        return CollectionService(self.client(settings), self.cache(settings), settings)

    def opener(self, settings: Settings, client: Optional[MinifluxClient]) -> EntryOpener:
        cache = self.cache(settings)
        return EntryOpener(
            self.store(settings),
            client,
            settings,
            viewer=_launch,
            on_status_change=CollectionService(client, cache, settings).invalidate_all,
        )

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None


pass_app = click.make_pass_decorator(App)


@click.group()
@click.version_option()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default ~/.fluxreader/config.toml)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """fluxreader - Read a Miniflux server from the command line."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App(config_path)
    ctx.obj = app
    ctx.call_on_close(app.close)


@cli.command()
@click.option("--server", help="Miniflux server address")
@click.option("--token", help="Miniflux API token")
@click.option("--limit", type=click.IntRange(1, 1000), help="Entries per list")
@click.option("--order", help="Sort order (published_at, id, status, category_title, category_id)")
@click.option("--direction", type=click.Choice(["asc", "desc"]), help="Sort direction")
@click.option("--hide-read/--show-read", default=None, help="Hide read entries")
@click.option("--mark-read-on-open/--no-mark-read-on-open", default=None, help="Mark entries read when opened")
@click.option("--download-dir", help="Where downloaded entries are stored")
@pass_app
def configure(app: App, server, token, limit, order, direction, hide_read, mark_read_on_open, download_dir):
    """Update and save settings."""
    current = app.settings()
    updated = Settings(**vars(current))
    changes = {
        "server_address": server,
        "api_token": token,
        "limit": limit,
        "order": order,
        "direction": direction,
        "hide_read_entries": hide_read,
        "mark_as_read_on_open": mark_read_on_open,
        "download_dir": download_dir,
    }
    for key, value in changes.items():
        if value is not None:
            setattr(updated, key, value)

    try:
        path = save_settings(updated, app.config_path)
    except ConfigError as e:
        _fail(str(e))

    changed = updated.changed_keys(current)
    if any(key in CACHE_INVALIDATING_KEYS for key in changed):
        app.cache(updated).clear()

    click.echo(click.style(f"Saved settings to {path}", fg="green"))
    for key in changed:
        shown = "********" if key == "api_token" else getattr(updated, key)
        click.echo(f"  {key}: {shown}")


@cli.command("test-connection")
@pass_app
def test_connection(app: App):
    """Check the server address and API token."""
    settings = app.settings()
    try:
        me = app.client(settings).get_me()
    except MinifluxError as e:
        _fail(f"Connection failed: {e}")
    click.echo(click.style(f"Connected as {me.get('username', 'unknown')}", fg="green"))


@cli.command()
@pass_app
def unread(app: App):
    """List unread entries."""
    settings = app.settings()
    collections = app.collections(settings)
    try:
        count = collections.get_unread_count()
        entries = collections.get_unread_entries()
    except MinifluxError as e:
        _fail(str(e))

    if not entries:
        click.echo(click.style("No unread entries!", fg="green"))
        return
    click.echo(click.style(f"Unread entries ({count}):", fg="cyan", bold=True))
    click.echo()
    _print_entries(entries, app.store(settings))


@cli.command()
@pass_app
def feeds(app: App):
    """List feeds with unread counts."""
    settings = app.settings()
    try:
        feed_list, counters = app.collections(settings).get_feeds_with_counters()
    except MinifluxError as e:
        _fail(str(e))

    if not feed_list:
        click.echo("No feeds on the server.")
        return

    click.echo(click.style(f"Feeds ({len(feed_list)}):", fg="cyan", bold=True))
    click.echo()
    for feed in sorted(feed_list, key=lambda f: f.title.lower()):
        unread_count = counters.unreads.get(feed.id, 0)
        id_str = click.style(f"[{feed.id}]", fg="cyan")
        count_str = click.style(f"({unread_count} unread)", fg="yellow" if unread_count else "white")
        click.echo(f"  {id_str} {feed.title} {count_str}")
        if feed.category:
            click.echo(f"       Category: {feed.category.title}")
        if feed.parsing_error_message:
            click.echo(click.style(f"       Error: {feed.parsing_error_message}", fg="red"))


@cli.command()
@pass_app
def categories(app: App):
    """List categories with unread counts."""
    settings = app.settings()
    try:
        category_list = app.collections(settings).get_categories()
    except MinifluxError as e:
        _fail(str(e))

    if not category_list:
        click.echo("No categories on the server.")
        return

    click.echo(click.style(f"Categories ({len(category_list)}):", fg="cyan", bold=True))
    click.echo()
    for category in category_list:
        id_str = click.style(f"[{category.id}]", fg="cyan")
        click.echo(f"  {id_str} {category.title} ({category.total_unread or 0} unread)")


@cli.command()
@click.option("--feed", "feed_id", type=int, help="Entries of this feed")
@click.option("--category", "category_id", type=int, help="Entries of this category")
@pass_app
def entries(app: App, feed_id: Optional[int], category_id: Optional[int]):
    """List entries of a feed or category."""
    if (feed_id is None) == (category_id is None):
        _fail("Use exactly one of --feed or --category")

    settings = app.settings()
    collections = app.collections(settings)
    try:
        if feed_id is not None:
            entry_list = collections.get_feed_entries(feed_id)
        else:
            entry_list = collections.get_category_entries(category_id)
    except MinifluxError as e:
        _fail(str(e))

    if not entry_list:
        click.echo("No entries found.")
        return
    _print_entries(entry_list, app.store(settings))


@cli.command()
@click.argument("entry_id", type=int)
@click.option("--feed", "feed_id", type=int, help="Browse the entry's feed when navigating")
@click.option("--category", "category_id", type=int, help="Browse the entry's category when navigating")
@pass_app
def download(app: App, entry_id: int, feed_id: Optional[int], category_id: Optional[int]):
    """Download an entry and open it.

    The --feed and --category options set the scope that next/previous
    navigate within, starting from this entry.
    """
    if feed_id is not None and category_id is not None:
        _fail("Use at most one of --feed or --category")

    if feed_id is not None:
        context = BrowsingContext.feed(feed_id)
    elif category_id is not None:
        context = BrowsingContext.category(category_id)
    else:
        context = BrowsingContext.global_()

    settings = app.settings()
    client = app.client(settings)
    try:
        entry = client.get_entry(entry_id)
    except MinifluxError as e:
        _fail(f"Failed to fetch entry: {e}")

    _print_outcome(app.opener(settings, client).download_and_open(entry, context))


@cli.command("local")
@pass_app
def local_entries(app: App):
    """List downloaded entries."""
    settings = app.settings()
    local = app.store(settings).local_entries(settings.order, settings.direction)
    if not local:
        click.echo("No downloaded entries.")
        return

    click.echo(click.style(f"Downloaded entries ({len(local)}):", fg="cyan", bold=True))
    click.echo()
    for metadata in local:
        status = click.style("[read]", fg="bright_black") if metadata.status == "read" else click.style("[new]", fg="yellow")
        id_str = click.style(f"[{metadata.entry_id}]", fg="cyan")
        click.echo(f"  {id_str} {status} {metadata.title}")
        if metadata.feed_title:
            click.echo(f"       Feed: {metadata.feed_title}")
        if metadata.browsing_context:
            click.echo(f"       Scope: {_describe_context(metadata.browsing_context)}")


@cli.command("open")
@click.argument("entry_id", type=int)
@click.option("--local-scope", is_flag=True, help="Navigate only between downloaded entries from here")
@pass_app
def open_entry(app: App, entry_id: int, local_scope: bool):
    """Open a downloaded entry."""
    settings = app.settings()
    client = MinifluxClient.from_settings(settings) if settings.is_configured else None
    context = BrowsingContext.local() if local_scope else None
    _print_outcome(app.opener(settings, client).open_local(entry_id, context))


@cli.command("next")
@click.argument("entry_id", type=int)
@pass_app
def next_entry(app: App, entry_id: int):
    """Open the entry after ENTRY_ID."""
    _navigate(app, entry_id, NavigationIntent.NEXT)


@cli.command("previous")
@click.argument("entry_id", type=int)
@pass_app
def previous_entry(app: App, entry_id: int):
    """Open the entry before ENTRY_ID."""
    _navigate(app, entry_id, NavigationIntent.PREVIOUS)


def _navigate(app: App, entry_id: int, intent: NavigationIntent):
    settings = app.settings()
    client = MinifluxClient.from_settings(settings) if settings.is_configured else None
    navigator = Navigator(
        app.store(settings),
        client,
        app.settings,
        progress=lambda message: click.echo(click.style(message, fg="cyan")),
    )

    result = navigator.resolve_adjacent(NavigationSession(entry_id), intent)
    if result.status is NavigationStatus.NO_ADJACENT_ENTRY:
        click.echo(click.style(result.message, fg="yellow"))
        return
    if not result.found:
        _fail(result.message)

    _print_outcome(app.opener(settings, client).open_target(result))


@cli.command()
@click.argument("entry_id", type=int)
@pass_app
def read(app: App, entry_id: int):
    """Mark an entry as read."""
    _change_status(app, entry_id, "read")


@cli.command("unread-entry")
@click.argument("entry_id", type=int)
@pass_app
def unread_entry(app: App, entry_id: int):
    """Mark an entry as unread."""
    _change_status(app, entry_id, "unread")


def _change_status(app: App, entry_id: int, status: str):
    settings = app.settings()
    client = app.client(settings)
    collections = CollectionService(client, app.cache(settings), settings)
    try:
        set_entry_status(
            app.store(settings), client, entry_id, status, on_status_change=collections.invalidate_all
        )
    except MinifluxError as e:
        _fail(f"Failed to update entry {entry_id}: {e}")
    click.echo(click.style(f"Marked entry {entry_id} as {status}", fg="green"))


@cli.command()
@click.argument("entry_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@pass_app
def delete(app: App, entry_id: int, yes: bool):
    """Delete a downloaded entry."""
    settings = app.settings()
    if not yes:
        click.confirm(f"Delete downloaded entry {entry_id}?", abort=True)
    try:
        delete_local_entry(app.store(settings), entry_id)
    except EntryNotDownloadedError as e:
        _fail(str(e))
    click.echo(click.style(f"Deleted entry {entry_id}", fg="green"))


@cli.command("mark-feed-read")
@click.argument("feed_id", type=int)
@pass_app
def mark_feed_read_cmd(app: App, feed_id: int):
    """Mark every entry of a feed as read."""
    settings = app.settings()
    collections = app.collections(settings)
    try:
        mark_feed_read(collections.client, feed_id, on_status_change=collections.invalidate_all)
    except MinifluxError as e:
        _fail(str(e))
    click.echo(click.style(f"Marked feed {feed_id} as read", fg="green"))


@cli.command("mark-category-read")
@click.argument("category_id", type=int)
@pass_app
def mark_category_read_cmd(app: App, category_id: int):
    """Mark every entry of a category as read."""
    settings = app.settings()
    collections = app.collections(settings)
    try:
        mark_category_read(collections.client, category_id, on_status_change=collections.invalidate_all)
    except MinifluxError as e:
        _fail(str(e))
    click.echo(click.style(f"Marked category {category_id} as read", fg="green"))


@cli.command("clear-cache")
@pass_app
def clear_cache(app: App):
    """Drop cached feeds, categories and counts."""
    settings = app.settings()
    app.cache(settings).clear()
    click.echo(click.style("Cache cleared", fg="green"))


def _launch(path: Path) -> None:
    click.launch(str(path))


def _fail(message: str):
    click.echo(click.style(f"Error: {message}", fg="red"))
    raise SystemExit(1)


def _describe_context(context: BrowsingContext) -> str:
    if context.scope_id is not None:
        return f"{context.kind.value} {context.scope_id}"
    return context.kind.value


def _print_entries(entry_list: list[Entry], store: LocalEntryStore):
    """Print a list of remote entries."""
    for entry in entry_list:
        status = click.style("[read]", fg="bright_black") if entry.status == "read" else click.style("[new]", fg="yellow")
        id_str = click.style(f"[{entry.id}]", fg="cyan")
        local = click.style(" [local]", fg="green") if store.has_completed_render(entry.id) else ""
        click.echo(f"  {id_str} {status}{local} {entry.title}")
        if entry.feed_title:
            click.echo(f"       Feed: {entry.feed_title}")
        excerpt = summarize(entry.content)
        if excerpt:
            click.echo(f"       {excerpt}")
        click.echo()


def _print_outcome(outcome: OpenOutcome):
    """Print the result of opening an entry."""
    for warning in outcome.warnings:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"))
    if not outcome.opened:
        _fail(outcome.error)
    action = "Downloaded and opened" if outcome.downloaded else "Opened"
    click.echo(click.style(f"{action} entry {outcome.entry_id}", fg="green"))
    click.echo(f"  {outcome.path}")


if __name__ == "__main__":
    cli()
