"""Import command implementation."""

import re
from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from manuscript_import.commands.preview import display_preview, load_session
from manuscript_import.config import ImportSettings
from manuscript_import.core.committer import BatchCommitter
from manuscript_import.store.json_store import JsonChapterStore

# "3" or "5-7", 1-based
SELECTION_PART_RE = re.compile(r"^(\d+)(?:\s*-\s*(\d+))?$")


def parse_selection(selection: str, total: int) -> list[int]:
    """Turn a selection like "1,3,5-7" or "all" into 0-based session indices.

    Raises:
        ValueError: If a part is malformed, runs backwards or falls outside 1..total
    """
    if selection.strip().lower() == "all":
        return list(range(total))

    indices: set[int] = set()
    for part in (p.strip() for p in selection.split(",")):
        if not part:
            continue
        match = SELECTION_PART_RE.match(part)
        if match is None:
            raise ValueError(f"Invalid chapter selection '{part}'. Use numbers and ranges like 1,3,5-7.")
        first = int(match.group(1))
        last = int(match.group(2) or first)
        if first > last:
            raise ValueError(f"Chapter range '{part}' runs backwards.")
        if first < 1 or last > total:
            raise ValueError(f"Chapter selection '{part}' is outside 1-{total}.")
        indices.update(range(first - 1, last))
    return sorted(indices)


def execute_import(
    path: Path,
    story_id: str,
    story_title: str,
    chapters: str | None,
    as_paste: bool,
    store_dir: Path,
    settings: ImportSettings,
    console: Console,
) -> None:
    """Decode ``path``, keep the selected chapters and commit them as drafts."""
    session = load_session(
        path,
        story_id=story_id,
        settings=settings,
        console=console,
        as_paste=as_paste,
        story_title=story_title,
    )

    if chapters is not None:
        keep = set(parse_selection(chapters, len(session)))
        if not keep:
            console.print("[yellow]No chapters selected. Exiting.[/]")
            return
        # Remove from the end so earlier indices stay valid
        for index in reversed(range(len(session))):
            if index not in keep:
                session.remove_at(index)

    console.print()
    display_preview(session.preview(), console)

    store = JsonChapterStore(store_dir)
    before = store.get_story_aggregate(story_id)
    result = BatchCommitter(store, settings).run(session)
    plan = result.plan

    summary_lines = [
        f"[green]Imported {len(plan.chapters)} chapter(s) as drafts[/]",
        "",
        f"[dim]Story:[/] {story_title or story_id}",
        f"[dim]Chapter numbers:[/] {plan.chapter_numbers[0]}-{plan.chapter_numbers[-1]}",
        f"[dim]Words imported:[/] {plan.total_word_count:,}",
        f"[dim]Store:[/] {store_dir}",
    ]
    if result.attempts > 1:
        summary_lines.append(f"[yellow]Renumbered after a conflict ({result.attempts} attempts)[/]")
    if result.aggregate is not None:
        summary_lines.append(
            f"[dim]Published chapters:[/] {result.aggregate.chapter_count} "
            f"(was {before.chapter_count}), "
            f"{result.aggregate.total_word_count:,} words"
        )
    if not result.aggregate_refreshed:
        summary_lines.append("[yellow]Story counters could not be refreshed; run the import again later.[/]")

    console.print()
    console.print(Panel("\n".join(summary_lines), title="Complete", border_style="green"))
