"""CLI interface for radiomap."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import fields
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress
from rich.table import Table

from radiomap import __version__
from radiomap.api import DirectoryClient
from radiomap.config import Config
from radiomap.display import compute_display_time, station_location, truncate
from radiomap.exceptions import ConfigError, RadioMapError
from radiomap.favorites import FavoritesStore
from radiomap.models import SearchParams, Station, Theme
from radiomap.storage import JsonFileStore
from radiomap.store import StationStore
from radiomap.theme import ThemeStore

console = Console()
err_console = Console(stderr=True)


def _get_client(config: Config) -> DirectoryClient:
    if config.user_agent:
        return DirectoryClient(base_url=config.api_url, user_agent=config.user_agent)
    return DirectoryClient(base_url=config.api_url)


def _get_favorites(config: Config) -> FavoritesStore:
    return FavoritesStore(JsonFileStore(config.data_dir))


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a coroutine, turning library errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except RadioMapError as e:
        raise click.ClickException(str(e)) from e


def _print_station(station: Station, is_favorite: bool = False) -> None:
    table = Table(title=station.name, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    star = " [yellow]★ favorite[/yellow]" if is_favorite else ""
    table.add_row("ID", station.id + star)
    table.add_row("Location", station_location(station))
    table.add_row("Local time", compute_display_time(datetime.now().astimezone(), station.lon))
    table.add_row("Stream", station.resolved_stream_url or station.stream_url or "—")
    table.add_row("Homepage", station.homepage_url or "—")
    table.add_row("Tags", ", ".join(station.tags) or "—")
    table.add_row("Language", station.language or "—")
    codec = f"{station.codec} {station.bitrate} kbps" if station.bitrate else station.codec
    table.add_row("Codec", codec or "—")
    table.add_row("Votes", str(station.votes))
    table.add_row("Healthy", "yes" if station.is_healthy else "[red]no[/red]")

    console.print(table)


def _stations_table(title: str, stations: list[Station]) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Country", style="green")
    table.add_column("Tags", max_width=40)
    table.add_column("Votes", justify="right")

    for station in stations:
        table.add_row(
            station.id,
            truncate(station.name, 40),
            station.country_code or station.country or "—",
            truncate(", ".join(station.tags), 37),
            str(station.votes),
        )
    return table


@click.group()
@click.version_option(version=__version__, prog_name="radiomap")
@click.option("-v", "--verbose", is_flag=True, help="Show debug logs.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """Browse internet radio stations from the Radio Browser directory."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=err_console)],
        )
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = Config.load()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.option("--limit", type=int, default=None, help="Number of stations to load.")
@click.option("--show", "show_n", type=int, default=20, show_default=True, help="Rows to print.")
@click.pass_context
def top(ctx: click.Context, limit: int | None, show_n: int) -> None:
    """Load the map index: the most voted stations with a location."""
    config = ctx.obj["config"]
    store = StationStore(_get_client(config))

    with Progress(
        "[progress.description]{task.description}",
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        disable=not console.is_terminal,
    ) as progress:
        task = progress.add_task("[cyan]Placing markers", total=None)

        def on_progress(loaded: int, total: int) -> None:
            progress.update(task, total=total, completed=loaded)

        _run(store.load_initial_index(limit or config.initial_limit, progress_callback=on_progress))

    if not len(store):
        console.print("[yellow]No stations found.[/yellow]")
        return

    table = Table(title=f"{store.total_count} stations on the map")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Country", style="green")
    table.add_column("Lat/Lon", justify="right")
    table.add_column("Votes", justify="right")

    for placement in store.placements()[:show_n]:
        table.add_row(
            placement.id,
            truncate(placement.name, 40),
            placement.country or "—",
            f"{placement.lat:.2f}, {placement.lon:.2f}",
            str(placement.votes),
        )
    console.print(table)


@main.command()
@click.argument("station_id")
@click.pass_context
def info(ctx: click.Context, station_id: str) -> None:
    """Show full details of a station."""
    config = ctx.obj["config"]
    store = StationStore(_get_client(config))
    station = _run(store.resolve_full(station_id))
    _print_station(station, _get_favorites(config).is_favorite(station.id))


@main.command()
@click.option("--name", default=None)
@click.option("--country", default=None)
@click.option("--countrycode", default=None, help="ISO 3166-1 alpha-2 code.")
@click.option("--tag", default=None)
@click.option("--language", default=None)
@click.option("--order", default="votes", show_default=True)
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def search(
    ctx: click.Context,
    name: str | None,
    country: str | None,
    countrycode: str | None,
    tag: str | None,
    language: str | None,
    order: str,
    limit: int,
) -> None:
    """Search the directory."""
    config = ctx.obj["config"]
    client = _get_client(config)
    params = SearchParams(
        name=name,
        country=country,
        countrycode=countrycode,
        tag=tag,
        language=language,
        order=order,
        reverse=order in ("votes", "clickcount", "clicktrend", "bitrate"),
        limit=limit,
        hidebroken=True,
    )
    stations = _run(client.search_advanced(params))

    if not stations:
        console.print("[yellow]No stations found.[/yellow]")
        return

    console.print(_stations_table("Search results", stations))


@main.command("random")
@click.option("--limit", type=int, default=None, help="Size of the index to pick from.")
@click.pass_context
def random_cmd(ctx: click.Context, limit: int | None) -> None:
    """Pick a random station from the map index."""
    config = ctx.obj["config"]
    store = StationStore(_get_client(config))

    async def pick() -> Station | None:
        await store.load_initial_index(limit or config.initial_limit)
        light = store.pick_random()
        if light is None:
            return None
        return await store.resolve_full(light.id)

    station = _run(pick())
    if station is None:
        console.print("[yellow]No stations available.[/yellow]")
        return
    _print_station(station, _get_favorites(config).is_favorite(station.id))


@main.group()
def favorites() -> None:
    """Manage favorite stations."""


@favorites.command("list")
@click.pass_context
def favorites_list(ctx: click.Context) -> None:
    """List favorite stations."""
    favs = _get_favorites(ctx.obj["config"])
    if not len(favs):
        console.print("[yellow]No favorites yet.[/yellow]")
        return
    console.print(_stations_table("Favorites", favs.favorites))


@favorites.command("add")
@click.argument("station_id")
@click.pass_context
def favorites_add(ctx: click.Context, station_id: str) -> None:
    """Add a station to favorites."""
    config = ctx.obj["config"]
    favs = _get_favorites(config)
    station = _run(StationStore(_get_client(config)).resolve_full(station_id))
    if favs.add(station):
        console.print(f"[green]Added {station.name} to favorites.[/green]")
    else:
        console.print(f"[dim]{station.name} is already a favorite.[/dim]")


@favorites.command("remove")
@click.argument("station_id")
@click.pass_context
def favorites_remove(ctx: click.Context, station_id: str) -> None:
    """Remove a station from favorites."""
    favs = _get_favorites(ctx.obj["config"])
    if not favs.remove(station_id):
        raise click.ClickException(f"{station_id} is not a favorite.")
    console.print("[green]Removed from favorites.[/green]")


@favorites.command("toggle")
@click.argument("station_id")
@click.pass_context
def favorites_toggle(ctx: click.Context, station_id: str) -> None:
    """Add a station to favorites, or remove it if already there."""
    config = ctx.obj["config"]
    favs = _get_favorites(config)
    station = favs.get(station_id)
    if station is None:
        station = _run(StationStore(_get_client(config)).resolve_full(station_id))
    if favs.toggle(station):
        console.print(f"[green]Added {station.name} to favorites.[/green]")
    else:
        console.print(f"[green]Removed {station.name} from favorites.[/green]")


@favorites.command("export")
@click.option("-o", "--output", "output", type=click.Path(dir_okay=False), default=None,
              help="Write to a file instead of stdout.")
@click.pass_context
def favorites_export(ctx: click.Context, output: str | None) -> None:
    """Export favorites as JSON."""
    blob = _get_favorites(ctx.obj["config"]).export_all()
    if output is None:
        click.echo(blob)
        return
    try:
        Path(output).write_text(blob + "\n", encoding="utf-8")
    except OSError as e:
        raise click.ClickException(f"Failed to write {output}: {e}") from e
    console.print(f"[green]Favorites exported to {output}.[/green]")


@favorites.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def favorites_import(ctx: click.Context, path: str) -> None:
    """Replace favorites with the contents of an exported JSON file."""
    favs = _get_favorites(ctx.obj["config"])
    try:
        count = favs.import_all(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise click.ClickException(f"Failed to read {path}: {e}") from e
    except RadioMapError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]Imported {count} favorite(s).[/green]")


@favorites.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def favorites_clear(ctx: click.Context, yes: bool) -> None:
    """Remove all favorites."""
    if not yes:
        click.confirm("Remove all favorites?", abort=True)
    _get_favorites(ctx.obj["config"]).clear_all()
    console.print("[green]Favorites cleared.[/green]")


@main.group()
def theme() -> None:
    """Manage the color theme preference."""


def _get_theme(ctx: click.Context) -> ThemeStore:
    return ThemeStore(JsonFileStore(ctx.obj["config"].data_dir))


@theme.command("show")
@click.pass_context
def theme_show(ctx: click.Context) -> None:
    store = _get_theme(ctx)
    source = "saved" if store.saved() else "system"
    console.print(f"{store.current} [dim]({source})[/dim]")


@theme.command("set")
@click.argument("value", type=click.Choice([t.value for t in Theme]))
@click.pass_context
def theme_set(ctx: click.Context, value: str) -> None:
    _get_theme(ctx).set(Theme(value))
    console.print(f"[green]Theme set to {value}.[/green]")


@theme.command("toggle")
@click.pass_context
def theme_toggle(ctx: click.Context) -> None:
    new = _get_theme(ctx).toggle()
    console.print(f"[green]Theme set to {new}.[/green]")


@theme.command("reset")
@click.pass_context
def theme_reset(ctx: click.Context) -> None:
    """Forget the saved theme and follow the system."""
    _get_theme(ctx).clear_saved()
    console.print("[green]Theme reset to system default.[/green]")


@main.group()
def config() -> None:
    """Manage configuration."""


@config.command("show")
def show_config() -> None:
    """Display current configuration."""
    try:
        cfg = Config.load()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for f in fields(cfg):
        table.add_row(f.name, str(getattr(cfg, f.name)) or "—")

    console.print(table)


@config.command("set")
@click.argument("key", type=click.Choice([f.name for f in fields(Config)]))
@click.argument("value")
def set_config(key: str, value: str) -> None:
    """Set a configuration value."""
    try:
        cfg = Config.load()
        setattr(cfg, key, value)
        cfg.validated()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    except ValueError as e:
        raise click.ClickException(f"Invalid value for {key}: {e}") from e
    try:
        cfg.save()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]{key} saved.[/green]")
