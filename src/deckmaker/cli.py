"""CLI interface for deckmaker."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from deckmaker import __version__
from deckmaker.config import Settings, get_settings
from deckmaker.database.collection import (
    CollectionLockedError,
    CollectionNotFoundError,
    CollectionRepository,
)
from deckmaker.models.card import CardKind, GenerationMode
from deckmaker.services.deck_generator import DeckGenerator, GenerationResult
from deckmaker.services.progress import (
    ProgressFilters,
    ProgressService,
    SnapshotError,
    default_collection_path,
    load_snapshot,
    save_snapshot,
)
from deckmaker.services.tsv_reader import SourceFolderNotFoundError

app = typer.Typer(
    name="deckmaker",
    help="Build Anki packages from TSV glossary and cloze files.",
    no_args_is_help=True,
)
progress_app = typer.Typer(
    name="progress",
    help="Snapshot and restore card progress in a live Anki profile.",
    no_args_is_help=True,
)
app.add_typer(progress_app, name="progress")

console = Console()


def get_generator(
    settings: Settings,
    data_dir: Optional[Path] = None,
    output_dir: Optional[Path] = None,
) -> DeckGenerator:
    """Build a generator from settings, with command line overrides."""
    return DeckGenerator(
        data_dir=data_dir or settings.data_dir,
        output_dir=output_dir or settings.output_dir,
        debug_dir=settings.debug_dir,
        root_deck_name=settings.root_deck_name,
        glossary_note_type=settings.glossary_note_type,
        cloze_note_type=settings.cloze_note_type,
        extensions=settings.source_extensions,
        max_term_length=settings.max_term_length,
    )


def _resolve_folder(folder_arg: Optional[str], folder_opt: Optional[str]) -> Optional[str]:
    if folder_arg and folder_opt and folder_arg != folder_opt:
        console.print(
            f'[red]Conflicting folders: "{folder_arg}" and --folder "{folder_opt}"[/red]'
        )
        raise typer.Exit(2)
    return folder_opt or folder_arg


def _print_deck_table(result: GenerationResult) -> None:
    unit = "Notes" if result.mode == GenerationMode.CLOZE else "Cards"
    table = Table(title="Decks")
    table.add_column("Deck", style="cyan")
    table.add_column(unit, justify="right", style="green")
    for deck, count in result.deck_counts().items():
        table.add_row(deck, str(count))
    console.print(table)


@app.command()
def generate(
    folder_arg: Optional[str] = typer.Argument(
        None, metavar="[FOLDER]", help="Top-level folder of the data directory to build"
    ),
    folder: Optional[str] = typer.Option(
        None, "--folder", "-f", help="Same as FOLDER"
    ),
    mode: GenerationMode = typer.Option(
        GenerationMode.GLOSSARY, "--mode", "-m", case_sensitive=False, help="Card type to build"
    ),
    cloze: bool = typer.Option(False, "--cloze", help="Shortcut for --mode cloze"),
    direction_labels: bool = typer.Option(
        False, "--direction-labels", "-d", help="Show header labels above each card"
    ),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Source folder"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Package folder"),
):
    """
    Generate an .apkg package from TSV source files.

    Glossary mode builds a Recognition and a Production card per row.
    Cloze mode builds one cloze note per row.
    """
    settings = get_settings()
    target = _resolve_folder(folder_arg, folder)
    if cloze:
        mode = GenerationMode.CLOZE
    if direction_labels and mode == GenerationMode.CLOZE:
        console.print("[yellow]Direction labels are ignored in cloze mode.[/yellow]")

    generator = get_generator(settings, data_dir, output_dir)

    console.print(f"[bold blue]Generating {mode.value} package...[/bold blue]")
    console.print(f"  Data folder: {generator.data_dir}")
    if target:
        console.print(f"  Folder: {target}")
    console.print()

    try:
        result = generator.run(mode=mode, folder=target, include_direction_labels=direction_labels)
    except SourceFolderNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not result.files:
        console.print("[yellow]No source files found.[/yellow]")
        raise typer.Exit(0)

    if result.output_path is None:
        console.print("[yellow]No cards generated; no package written.[/yellow]")
        raise typer.Exit(0)

    _print_deck_table(result)

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Source files: [green]{len(result.files)}[/green]")
    console.print(f"  Entries: [green]{result.total_entries}[/green]")
    if result.mode == GenerationMode.CLOZE:
        console.print(f"  Cloze notes: [green]{result.stats.notes}[/green]")
        if result.stats.skipped_notes:
            console.print(
                f"  Skipped (no cloze marker): [yellow]{result.stats.skipped_notes}[/yellow]"
            )
    else:
        console.print(
            f"  Recognition cards: [green]{result.count_kind(CardKind.RECOGNITION)}[/green]"
        )
        console.print(
            f"  Production cards: [green]{result.count_kind(CardKind.PRODUCTION)}[/green]"
        )
    console.print(f"  Cards: [green]{result.stats.cards}[/green]")
    console.print(f"  Decks: [green]{result.stats.decks}[/green]")
    if result.issues:
        console.print(
            f"  Quality warnings: [yellow]{len(result.issues)}[/yellow] "
            "(run 'deckmaker check' for details)"
        )
    console.print(f"\n[dim]Debug dump: {result.debug_path}[/dim]")
    console.print(f"[green]✓ Package written:[/green] {result.output_path}")


@app.command()
def check(
    folder_arg: Optional[str] = typer.Argument(
        None, metavar="[FOLDER]", help="Top-level folder of the data directory to check"
    ),
    folder: Optional[str] = typer.Option(None, "--folder", "-f", help="Same as FOLDER"),
    mode: GenerationMode = typer.Option(
        GenerationMode.GLOSSARY, "--mode", "-m", case_sensitive=False, help="Source format"
    ),
    cloze: bool = typer.Option(False, "--cloze", help="Shortcut for --mode cloze"),
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Source folder"),
):
    """Report duplicates, suspicious rows and missing cloze markers without writing anything."""
    settings = get_settings()
    target = _resolve_folder(folder_arg, folder)
    if cloze:
        mode = GenerationMode.CLOZE

    generator = get_generator(settings, data_dir)
    try:
        result = generator.collect(mode=mode, folder=target)
    except SourceFolderNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"Checked [cyan]{result.total_entries}[/cyan] entries in "
        f"[cyan]{len(result.files)}[/cyan] file(s)"
    )

    if not result.issues:
        console.print("[green]✓ No issues found[/green]")
        return

    table = Table(title="Quality Issues")
    table.add_column("Deck", style="cyan")
    table.add_column("Line", justify="right")
    table.add_column("Issue", style="yellow")
    table.add_column("Details")
    for issue in result.issues:
        table.add_row(issue.source, str(issue.line), issue.kind.value, issue.message)
    console.print(table)
    console.print(f"[yellow]{len(result.issues)} issue(s) found[/yellow]")


@app.command()
def config():
    """Show current configuration."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="deckmaker Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Data Folder", str(settings.data_dir))
    table.add_row("Output Folder", str(settings.output_dir))
    table.add_row("Debug Folder", str(settings.debug_dir))
    table.add_row("Source Extensions", ", ".join(settings.source_extensions))
    table.add_row("Root Deck", settings.root_deck_name)
    table.add_row("Glossary Note Type", settings.glossary_note_type)
    table.add_row("Cloze Note Type", settings.cloze_note_type)
    table.add_row("Max Term Length", str(settings.max_term_length))
    table.add_row("Anki Profile", settings.anki_profile)
    table.add_row(
        "Anki Collection",
        str(default_collection_path(settings.anki_profile, settings.anki_base_dir)),
    )
    table.add_row("Snapshot File", str(settings.snapshot_path))
    table.add_row("UID Field", str(settings.uid_field_index))

    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"deckmaker v{__version__}")


# ==================== Progress ====================


def get_progress_service(
    settings: Settings, profile: Optional[str], collection: Optional[Path]
) -> ProgressService:
    """Open the live collection of a profile, or an explicit collection file."""
    profile = profile or settings.anki_profile
    path = collection or default_collection_path(profile, settings.anki_base_dir)
    try:
        repository = CollectionRepository(path)
    except CollectionNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Use --profile or --collection to point at an existing collection.")
        raise typer.Exit(1)
    return ProgressService(repository, profile=None if collection else profile)


@progress_app.command("list-decks")
def list_decks(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Anki profile name"),
    collection: Optional[Path] = typer.Option(
        None, "--collection", "-c", help="Path to collection.anki2"
    ),
):
    """List all decks of the collection."""
    service = get_progress_service(get_settings(), profile, collection)
    try:
        decks = service.list_decks()
    finally:
        service.repository.close()

    table = Table(title="Decks")
    table.add_column("Deck", style="cyan")
    for name in decks:
        table.add_row(name)
    console.print(table)
    console.print(f"[dim]{len(decks)} deck(s)[/dim]")


@progress_app.command()
def snapshot(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Anki profile name"),
    collection: Optional[Path] = typer.Option(
        None, "--collection", "-c", help="Path to collection.anki2"
    ),
    deck: Optional[str] = typer.Option(None, "--deck", help="Deck name, subdecks included"),
    note_type: Optional[str] = typer.Option(None, "--note-type", help="Note type name"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only notes carrying this tag"),
    uid_field: Optional[int] = typer.Option(
        None, "--uid-field", min=0, help="Index of the note field holding the UID"
    ),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Snapshot file to write"),
):
    """Save the scheduling state of matching cards to a JSON file."""
    settings = get_settings()
    filters = ProgressFilters(
        deck=deck,
        note_type=note_type,
        tag=tag,
        uid_field=settings.uid_field_index if uid_field is None else uid_field,
    )
    service = get_progress_service(settings, profile, collection)
    try:
        result = service.snapshot(filters)
    finally:
        service.repository.close()

    path = save_snapshot(result, out or settings.snapshot_path)

    table = Table(title="Snapshot")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Cards scanned", str(result.counts.total_rows))
    table.add_row("Cards saved", str(result.counts.matched_cards))
    table.add_row("Skipped (no UID)", str(result.counts.skipped_missing_uid))
    table.add_row("Skipped (tag filter)", str(result.counts.skipped_tag_filter))
    console.print(table)
    console.print(f"[green]✓ Snapshot written:[/green] {path}")


@progress_app.command()
def restore(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Anki profile name"),
    collection: Optional[Path] = typer.Option(
        None, "--collection", "-c", help="Path to collection.anki2"
    ),
    deck: Optional[str] = typer.Option(None, "--deck", help="Deck name, subdecks included"),
    note_type: Optional[str] = typer.Option(None, "--note-type", help="Note type name"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Only notes carrying this tag"),
    uid_field: Optional[int] = typer.Option(
        None, "--uid-field", min=0, help="Index of the note field holding the UID"
    ),
    in_path: Optional[Path] = typer.Option(None, "--in", "-i", help="Snapshot file to read"),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Report matches without modifying the collection"
    ),
    no_backup: bool = typer.Option(
        False, "--no-backup", help="Skip the collection backup before writing"
    ),
):
    """
    Restore scheduling state from a snapshot onto matching cards.

    Quit Anki first; the collection is modified in place.
    """
    settings = get_settings()
    try:
        saved = load_snapshot(in_path or settings.snapshot_path)
    except SnapshotError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    filters = ProgressFilters(
        deck=deck,
        note_type=note_type,
        tag=tag,
        uid_field=settings.uid_field_index if uid_field is None else uid_field,
    )

    if dry_run:
        console.print("[yellow]Dry run mode - no changes will be made[/yellow]\n")

    service = get_progress_service(settings, profile, collection)
    try:
        report = service.restore(saved, filters, dry_run=dry_run, backup=not no_backup)
    except CollectionLockedError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    finally:
        service.repository.close()

    table = Table(title="Restore")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")
    table.add_row("Cards scanned", str(report.scanned))
    table.add_row("Eligible", str(report.eligible))
    table.add_row("Matched", str(report.matched))
    table.add_row("Missing from snapshot", str(report.missing))
    table.add_row("Skipped (no UID)", str(report.skipped_missing_uid))
    table.add_row("Skipped (tag filter)", str(report.skipped_tag_filter))
    table.add_row("Snapshot entries unused", str(report.unmatched_snapshot))
    table.add_row("Written", str(report.written))
    console.print(table)

    if report.dry_run:
        if report.examples:
            console.print("\n[bold]Example matches:[/bold]")
            for cid, key in report.examples:
                console.print(f"  [dim]{cid}[/dim] {key}")
        console.print("\n[yellow]Dry run complete. Nothing was written.[/yellow]")
        return

    if report.backup_path:
        console.print(f"[dim]Backup: {report.backup_path}[/dim]")
    console.print(f"[green]✓ Restored {report.written} card(s)[/green]")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    deckmaker - Anki package builder.

    Turns folders of TSV files into glossary or cloze decks with stable
    identities, and carries review progress across regenerated packages.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


if __name__ == "__main__":
    app()
