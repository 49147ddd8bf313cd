"""Preview command implementation."""

import asyncio
import json
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from manuscript_import.config import ImportSettings
from manuscript_import.core.decode_job import open_session
from manuscript_import.core.decoder_factory import DecoderFactory, PasteSource
from manuscript_import.session.state import ChapterPreview, ImportSession


def load_session(
    path: Path,
    story_id: str,
    settings: ImportSettings,
    console: Console,
    as_paste: bool = False,
    story_title: str = "",
) -> ImportSession:
    """Decode ``path`` into a parsed session, showing a spinner while it runs."""
    source = DecoderFactory.source_from_path(path, as_paste=as_paste)
    fmt = "paste" if isinstance(source, PasteSource) else DecoderFactory.detect_format(path)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Decoding {fmt.upper()}...", total=None)
        return asyncio.run(open_session(source, story_id, story_title, settings=settings))


def display_preview(rows: list[ChapterPreview], console: Console) -> None:
    """Display the chapter table."""
    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="white", max_width=50)
    table.add_column("Words", justify="right", style="green")
    table.add_column("Warnings", style="yellow")

    for row in rows:
        title = row.title if row.title.strip() else "[dim](untitled)[/]"
        words = f"[yellow]{row.word_count:,}[/]" if row.low_content else f"{row.word_count:,}"
        warnings = "\n".join(f"⚠ {w.message}" for w in row.warnings)
        table.add_row(str(row.index + 1), title, words, warnings)

    console.print(table)


def execute_preview(
    path: Path,
    as_paste: bool,
    json_out: Path | None,
    settings: ImportSettings,
    console: Console,
) -> None:
    """Execute the preview command."""
    session = load_session(path, story_id="preview", settings=settings, console=console, as_paste=as_paste)
    rows = session.preview()

    console.print()
    low = session.low_content_indices()
    info_lines = [
        f"[bold]{path.name}[/]",
        f"[dim]Chapters:[/] {len(session)}",
        f"[dim]Total words:[/] {session.total_word_count:,}",
    ]
    if low:
        info_lines.append(
            f"[yellow]{len(low)} chapter(s) under {settings.low_word_threshold} words "
            "(often front matter; remove them before importing if so)[/]"
        )
    console.print(Panel("\n".join(info_lines), title="Manuscript", border_style="green"))
    console.print()
    display_preview(rows, console)

    if json_out is not None:
        payload = [
            {
                "title": chapter.title,
                "word_count": row.word_count,
                "warnings": [w.model_dump(mode="json") for w in row.warnings],
                "content": chapter.content.model_dump(mode="json"),
            }
            for chapter, row in zip(session.chapters, rows)
        ]
        json_out.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        console.print(f"\n[dim]Chapters written to {json_out}[/]")
