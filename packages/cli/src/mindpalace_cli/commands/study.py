"""study command — review sections one at a time in priority order."""

from __future__ import annotations

import click
from rich.console import Console
from rich.rule import Rule

from mindpalace_cli.services import build_scheduler, get_store
from mindpalace_core.utils.outline import content_with_children, parent_section, table_of_contents

console = Console()

_PROMPT = "Rate 0-5 (Enter = 3), [s]kip, [i]gnore, [f]avorite, [t]oc, [p]arent, [q]uit"


def _show(store, section) -> None:
    document = store.get_document_by_id(section.document_id)
    repository = store.get_repository(document.repository_id) if document else None
    location = f"{repository.full_name}:{document.path}" if repository and document else ""
    parent = parent_section(section, store.list_sections(section.document_id))
    if parent is not None:
        location += f" › {parent.title}"
    star = " [yellow]★[/yellow]" if section.favorite else ""

    console.print(Rule(f"[dim]{location}[/dim]"))
    console.print(f"[bold cyan]{'#' * section.level} {section.title}[/bold cyan]{star}\n")
    console.print(section.body, markup=False, highlight=False)
    console.print()


@click.command("study")
@click.option("--once", is_flag=True, help="Show a single section and exit without rating it.")
@click.pass_context
def study_cmd(ctx, once: bool):
    """Study the next due sections.

    New sections come first, then the ones reviewed longest ago. Favorite
    sections and sections under favorite folders are boosted.
    """
    store = get_store(ctx)
    scheduler = build_scheduler(ctx)
    reviewed = 0

    while True:
        section = scheduler.next_section()
        if section is None:
            console.print("[yellow]Nothing to review. Add a repository and run `mindpalace sync`.[/yellow]")
            return
        _show(store, section)
        if once:
            return

        while True:
            answer = click.prompt(_PROMPT, default="3", show_default=False).strip().lower()
            if answer.isdigit() and 0 <= int(answer) <= 5:
                scheduler.mark_reviewed(section, quality=int(answer))
                reviewed += 1
                break
            if answer == "s":
                break
            if answer == "i":
                store.set_section_flags(section.id, ignored=True)
                scheduler.invalidate()
                console.print("[dim]Section ignored.[/dim]")
                break
            if answer == "f":
                section.favorite = not section.favorite
                store.set_section_flags(section.id, favorite=section.favorite)
                scheduler.invalidate()
                console.print("[dim]Favorite on.[/dim]" if section.favorite else "[dim]Favorite off.[/dim]")
                continue
            if answer == "t":
                console.print(table_of_contents(store.list_sections(section.document_id)), markup=False, highlight=False)
                continue
            if answer == "p":
                doc_sections = store.list_sections(section.document_id)
                chapter = parent_section(section, doc_sections) or section
                console.print(content_with_children(chapter, doc_sections), markup=False, highlight=False)
                continue
            if answer == "q":
                console.print(f"[green]{reviewed} section(s) reviewed this session.[/green]")
                return
            console.print("[red]Unknown answer.[/red]")
