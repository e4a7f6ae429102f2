"""CLI interface for reelledger."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from reelledger.assets import ContentAsset, ContentType, LineageStore, VersionService
from reelledger.audio import (
    HttpAudioFeed,
    PageAudioIndex,
    PageAudioResolver,
    ReconciliationScheduler,
    RunStatus,
    StoreAudioFeed,
)
from reelledger.audio.feeds import AudioFeed
from reelledger.config import LedgerConfig, load_config, merge_cli_overrides
from reelledger.errors import LedgerError
from reelledger.pages import SCRIPT_LINES_PER_PAGE, Page, split_pages

app = typer.Typer(
    name="reelledger",
    help="Versioned generative-asset ledger for film production.",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from reelledger import __version__

        console.print(f"reelledger {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config(ctx: typer.Context) -> LedgerConfig:
    return ctx.obj["config"]


def _service(ctx: typer.Context) -> VersionService:
    config = _config(ctx)
    store = LineageStore(config.store_dir)
    return VersionService(store, max_conflict_retries=config.versions.max_conflict_retries)


def _fail(exc: LedgerError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {exc}")
    return typer.Exit(1)


def _versions_table(title: str, assets: list[ContentAsset]) -> Table:
    table = Table(title=title)
    table.add_column("Version", justify="right")
    table.add_column("Latest")
    table.add_column("Label")
    table.add_column("Type")
    table.add_column("Id")
    table.add_column("Created")
    for asset in assets:
        table.add_row(
            str(asset.version),
            "*" if asset.is_latest else "",
            asset.version_label or "",
            str(asset.content_type),
            asset.id,
            asset.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def _print_asset(asset: ContentAsset) -> None:
    console.print(
        f"[bold]{asset.version_label or 'Version ' + str(asset.version)}[/bold] "
        f"(v{asset.version}{', latest' if asset.is_latest else ''})"
    )
    console.print(f"  id:      {asset.id}")
    console.print(f"  lineage: {asset.lineage_root_id}")
    console.print(f"  type:    {asset.content_type}")
    if asset.title:
        console.print(f"  title:   {asset.title}")


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", "-s", help="Directory holding the asset store."),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .reelledger.toml file."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
) -> None:
    """reelledger - track generated content versions and page audio."""
    _configure_logging(verbose)
    config = merge_cli_overrides(load_config(config_path), store_dir=store_dir)
    ctx.obj = {"config": config}


@app.command()
def create(
    ctx: typer.Context,
    content_type: Annotated[
        ContentType,
        typer.Option("--type", "-t", help="Content type of the version."),
    ] = ContentType.SCRIPT,
    lineage: Annotated[
        Optional[str],
        typer.Option("--lineage", "-l", help="Lineage root id; omit to start a new lineage."),
    ] = None,
    body: Annotated[
        Optional[str],
        typer.Option("--body", "-b", help="Inline script text or media URL."),
    ] = None,
    body_file: Annotated[
        Optional[Path],
        typer.Option("--body-file", "-f", help="Read the body from a file.", exists=True),
    ] = None,
    label: Annotated[Optional[str], typer.Option("--label", help="Display label.")] = None,
    project: Annotated[Optional[str], typer.Option("--project", help="Project id.")] = None,
    scene: Annotated[Optional[str], typer.Option("--scene", help="Scene id.")] = None,
    title: Annotated[str, typer.Option("--title", help="Asset title.")] = "",
    page: Annotated[
        Optional[int],
        typer.Option("--page", help="Script page narrated by an audio asset."),
    ] = None,
    prompt: Annotated[Optional[str], typer.Option("--prompt", help="Source prompt.")] = None,
    model: Annotated[Optional[str], typer.Option("--model", help="Generation model.")] = None,
) -> None:
    """Create a new version (or a new lineage)."""
    if body_file is not None:
        body = body_file.read_text(encoding="utf-8")
    if body is None:
        console.print("[red]Error:[/red] provide --body or --body-file")
        raise typer.Exit(1)

    service = _service(ctx)
    try:
        asset = service.create_version(
            lineage,
            content_type,
            body,
            label,
            project_id=project,
            scene_id=scene,
            title=title,
            page_number=page,
            source_prompt=prompt,
            generation_model=model,
        )
    except LedgerError as exc:
        raise _fail(exc) from exc
    _print_asset(asset)


@app.command()
def versions(
    ctx: typer.Context,
    lineage: Annotated[str, typer.Argument(help="Lineage root id.")],
) -> None:
    """List every version of a lineage."""
    assets = _service(ctx).list_versions(lineage)
    if not assets:
        console.print(f"[yellow]No versions for lineage {lineage}[/yellow]")
        raise typer.Exit(1)
    console.print(_versions_table(f"Lineage {lineage}", assets))


@app.command()
def latest(
    ctx: typer.Context,
    lineage: Annotated[str, typer.Argument(help="Lineage root id.")],
) -> None:
    """Show the latest version of a lineage."""
    try:
        asset = _service(ctx).get_latest(lineage)
    except LedgerError as exc:
        raise _fail(exc) from exc
    _print_asset(asset)


@app.command()
def compare(
    ctx: typer.Context,
    asset_a: Annotated[str, typer.Argument(help="First asset id.")],
    asset_b: Annotated[str, typer.Argument(help="Second asset id.")],
) -> None:
    """Show two versions of the same lineage side by side."""
    try:
        comparison = _service(ctx).compare(asset_a, asset_b)
    except LedgerError as exc:
        raise _fail(exc) from exc
    console.print(
        _versions_table(f"Lineage {comparison.a.lineage_root_id}", [comparison.a, comparison.b])
    )


@app.command()
def relabel(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset id.")],
    label: Annotated[str, typer.Argument(help="New display label.")],
) -> None:
    """Change the display label of a version."""
    try:
        asset = _service(ctx).relabel(asset_id, label)
    except LedgerError as exc:
        raise _fail(exc) from exc
    _print_asset(asset)


@app.command()
def delete(
    ctx: typer.Context,
    asset_id: Annotated[str, typer.Argument(help="Asset id.")],
) -> None:
    """Delete one version, promoting the next-highest if it was latest."""
    try:
        promoted = _service(ctx).delete_version(asset_id)
    except LedgerError as exc:
        raise _fail(exc) from exc
    console.print(f"Deleted {asset_id}")
    if promoted is not None:
        console.print(f"Promoted version {promoted.version} ({promoted.id}) to latest")


@app.command()
def paginate(
    file: Annotated[Path, typer.Argument(help="Script text file.", exists=True)],
    lines_per_page: Annotated[
        int,
        typer.Option("--lines-per-page", "-n", help="Lines per page."),
    ] = SCRIPT_LINES_PER_PAGE,
    page: Annotated[
        Optional[int],
        typer.Option("--page", "-p", help="Print only this page."),
    ] = None,
) -> None:
    """Split a script file into pages."""
    try:
        pages = split_pages(file.read_text(encoding="utf-8"), lines_per_page)
    except LedgerError as exc:
        raise _fail(exc) from exc
    _print_pages(pages, page)


@app.command()
def pages(
    ctx: typer.Context,
    lineage: Annotated[str, typer.Argument(help="Lineage root id of a script.")],
    page: Annotated[
        Optional[int],
        typer.Option("--page", "-p", help="Print only this page."),
    ] = None,
) -> None:
    """Paginate the latest version of a script lineage."""
    try:
        asset = _service(ctx).get_latest(lineage)
    except LedgerError as exc:
        raise _fail(exc) from exc
    if asset.content_type != ContentType.SCRIPT:
        console.print(f"[red]Error:[/red] lineage {lineage} holds {asset.content_type}")
        raise typer.Exit(1)
    _print_pages(
        split_pages(asset.body, scene_id=asset.scene_id, source_asset_id=asset.id), page
    )


def _print_pages(pages: list[Page], only: int | None) -> None:
    console.print(f"{len(pages)} page(s)")
    for p in pages:
        if only is not None and p.page_number != only:
            continue
        console.rule(f"Page {p.page_number}")
        console.print(p.content, markup=False, highlight=False)


@app.command("resolve-audio")
def resolve_audio(
    ctx: typer.Context,
    scene: Annotated[str, typer.Argument(help="Scene id to reconcile.")],
    page: Annotated[
        Optional[list[int]],
        typer.Option("--page", "-p", help="Limit the run to these pages (repeatable)."),
    ] = None,
    feed_url: Annotated[
        Optional[str],
        typer.Option("--feed-url", help="Remote audio feed; default reads the local store."),
    ] = None,
) -> None:
    """Match a scene's audio to its script pages and update the page-audio index."""
    config = merge_cli_overrides(_config(ctx), feed_url=feed_url)
    store = LineageStore(config.store_dir)
    feed: AudioFeed
    if config.resolver.feed_url:
        feed = HttpAudioFeed(config.resolver.feed_url, timeout=config.resolver.feed_timeout)
    else:
        feed = StoreAudioFeed(store)

    index = PageAudioIndex.load(config.index_path)
    resolver = PageAudioResolver(store, feed)
    with ReconciliationScheduler(
        resolver, index, max_workers=config.scheduler.max_workers
    ) as scheduler:
        outcome = scheduler.run_now(scene, page_numbers=page or None)

    if outcome.status == RunStatus.FAILED:
        console.print(f"[red]Error:[/red] {outcome.error}")
        raise typer.Exit(1)
    index.save(config.index_path)

    table = Table(title=f"Scene {scene} page audio")
    table.add_column("Page", justify="right")
    table.add_column("Audio")
    table.add_column("URL")
    for page_number, refs in index.scene_entries(scene).items():
        for ref in refs:
            table.add_row(str(page_number), ref.title or ref.asset_id, ref.url)
    console.print(table)
    if outcome.result is not None and outcome.result.unresolved:
        console.print(f"[dim]{len(outcome.result.unresolved)} audio asset(s) unresolved[/dim]")
