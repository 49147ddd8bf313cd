"""Story command implementation."""

import json
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from manuscript_import.store.json_store import JsonChapterStore


def display_story(store: JsonChapterStore, story_id: str, console: Console) -> None:
    """Display stored chapters and counters of one story."""
    chapters = store.list_chapters(story_id)
    aggregate = store.get_story_aggregate(story_id)
    drafts = sum(1 for c in chapters if not c.is_published)

    console.print()
    console.print(
        Panel(
            f"[bold]{story_id}[/]\n\n"
            f"[dim]Stored chapters:[/] {len(chapters)} ({drafts} draft)\n"
            f"[dim]Published chapters:[/] {aggregate.chapter_count}\n"
            f"[dim]Published words:[/] {aggregate.total_word_count:,}",
            title="Story",
            border_style="green",
        )
    )

    if not chapters:
        return

    console.print()
    table = Table(title="Chapters", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Title", style="white", max_width=40)
    table.add_column("Words", justify="right", style="green")
    table.add_column("Status", justify="center")

    for chapter in chapters:
        title = chapter.title[:37] + "..." if len(chapter.title) > 40 else chapter.title
        status = "[green]Published[/]" if chapter.is_published else "[dim]Draft[/]"
        table.add_row(str(chapter.chapter_number), title, f"{chapter.word_count:,}", status)

    console.print(table)


def execute_story(
    story_id: str,
    store_dir: Path,
    as_json: bool,
    console: Console,
) -> None:
    """Execute the story command."""
    store = JsonChapterStore(store_dir)

    if story_id not in store.list_stories():
        console.print(f"[red]Story {story_id} not found in {store_dir}[/]")
        console.print("[dim]Make sure you've run 'manuscript-import import' first.[/]")
        return

    if as_json:
        console.print_json(json.dumps(store.export_story(story_id)))
        return

    display_story(store, story_id, console)
