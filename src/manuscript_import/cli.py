"""Main CLI application."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from manuscript_import.config import get_settings
from manuscript_import.core.decoder_factory import DecoderFactory
from manuscript_import.core.paste_segmenter import CHAPTER_MARKER
from manuscript_import.errors import ManuscriptImportError

app = typer.Typer(
    name="manuscript-import",
    help=(
        "Split EPUB, DOCX or pasted manuscripts into chapters and import them as drafts. "
        f"In pasted text and DOCX files a line containing only {CHAPTER_MARKER} starts a new chapter."
    ),
    add_completion=False,
)

console = Console()


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, get_settings().log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose", "-v",
            help="Show debug logging",
        ),
    ] = False,
) -> None:
    """Split manuscripts into chapters and import them as drafts."""
    configure_logging(verbose)


def _check_supported(path: Path, as_paste: bool) -> None:
    if not as_paste and not DecoderFactory.is_supported(path):
        console.print(f"[red]Unsupported file format: {path.suffix}[/]")
        console.print("[dim]Supported formats: .epub, .docx, .txt, .md (or use --paste)[/]")
        raise typer.Exit(1)


@app.command()
def preview(
    path: Annotated[
        Path,
        typer.Argument(
            help="Path to the manuscript (EPUB, DOCX or text file)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    paste: Annotated[
        bool,
        typer.Option(
            "--paste",
            help=f"Treat the file as pasted text split on {CHAPTER_MARKER} lines",
        ),
    ] = False,
    json_out: Annotated[
        Optional[Path],
        typer.Option(
            "--json",
            help="Also write the decoded chapters to this JSON file",
        ),
    ] = None,
) -> None:
    """Decode a manuscript and show the chapters it would import."""
    _check_supported(path, paste)

    try:
        from manuscript_import.commands.preview import execute_preview

        execute_preview(
            path=path,
            as_paste=paste,
            json_out=json_out,
            settings=get_settings(),
            console=console,
        )
    except (ManuscriptImportError, ValueError, OSError) as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command(name="import")
def import_(
    path: Annotated[
        Path,
        typer.Argument(
            help="Path to the manuscript (EPUB, DOCX or text file)",
            exists=True,
            file_okay=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    story: Annotated[
        str,
        typer.Option(
            "--story",
            help="Id of the story receiving the chapters",
        ),
    ],
    title: Annotated[
        str,
        typer.Option(
            "--title",
            help="Story title shown in the summary",
        ),
    ] = "",
    chapters: Annotated[
        Optional[str],
        typer.Option(
            "--chapters",
            "-c",
            help="Chapters to import by preview index: '1,3,5-7' or 'all' (default: all)",
        ),
    ] = None,
    paste: Annotated[
        bool,
        typer.Option(
            "--paste",
            help=f"Treat the file as pasted text split on {CHAPTER_MARKER} lines",
        ),
    ] = False,
    store_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--store-dir",
            help="Chapter store directory (default: MANUSCRIPT_IMPORT_STORE_DIR or .manuscript_import)",
        ),
    ] = None,
) -> None:
    """Import a manuscript's chapters into a story as unpublished drafts."""
    _check_supported(path, paste)
    settings = get_settings()

    try:
        from manuscript_import.commands.commit import execute_import

        execute_import(
            path=path,
            story_id=story,
            story_title=title,
            chapters=chapters,
            as_paste=paste,
            store_dir=store_dir or settings.store_dir,
            settings=settings,
            console=console,
        )
    except (ManuscriptImportError, ValueError, OSError) as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


@app.command()
def story(
    story_id: Annotated[
        str,
        typer.Argument(help="Id of the story to show"),
    ],
    store_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--store-dir",
            help="Chapter store directory (default: MANUSCRIPT_IMPORT_STORE_DIR or .manuscript_import)",
        ),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Print the stored story as JSON",
        ),
    ] = False,
) -> None:
    """Show the chapters and public counters stored for a story."""
    try:
        from manuscript_import.commands.story import execute_story

        execute_story(
            story_id=story_id,
            store_dir=store_dir or get_settings().store_dir,
            as_json=as_json,
            console=console,
        )
    except ManuscriptImportError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
