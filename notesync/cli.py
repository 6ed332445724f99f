"""
CLI interface for notesync.

Usage:
    notesync add "<p>Meeting notes ...</p>" --title "Standup"
    notesync list
    notesync find "standup" --semantic
"""

import asyncio
import json
import os
import shutil
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from .api import Notebook
from .errors import AccessDenied, NotFound
from .logging_config import configure_quiet_mode, enable_debug_mode
from .search import SearchHit
from .types import Note, NoteUpdate, Version

# Set NOTESYNC_VERBOSE=1 to enable debug mode via environment
if os.environ.get("NOTESYNC_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)

DEFAULT_USER = "local"


def _output_width() -> int:
    """Terminal width for summary truncation. Use generous default when not a TTY."""
    if not sys.stdout.isatty():
        return 200
    return shutil.get_terminal_size((120, 24)).columns


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"notesync {version('notesync')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None
_user_override: Optional[str] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


def _user_callback(value: Optional[str]):
    global _user_override
    _user_override = value


def _get_user() -> str:
    return _user_override or os.environ.get("USER") or DEFAULT_USER


app = typer.Typer(
    name="notesync",
    help="Notes with sync and AI enrichment.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="NOTESYNC_STORE_PATH",
        help="Path to the store directory (default: ~/.notesync/)",
        callback=_store_callback,
        is_eager=True,
    )] = None,
    user: Annotated[Optional[str], typer.Option(
        "--user", "-u",
        envvar="NOTESYNC_USER",
        help="Identity to act as (default: $USER)",
        callback=_user_callback,
        is_eager=True,
    )] = None,
):
    """Notes with sync and AI enrichment."""


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

LimitOption = Annotated[
    int,
    typer.Option(
        "--limit", "-n",
        help="Maximum results to return"
    )
]

TagOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--tag", "-t",
        help="Tag to add (repeatable)"
    )
]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_notebook() -> Notebook:
    """Open the notebook, reporting setup errors cleanly."""
    try:
        return Notebook(_store_override)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _run(coro_fn, *args: Any) -> Any:
    """Run `coro_fn(notebook, *args)` on a fresh event loop and close the notebook."""
    nb = _get_notebook()
    try:
        return asyncio.run(coro_fn(nb, *args))
    except (NotFound, AccessDenied) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    finally:
        nb.close()


def _read_content(content: Optional[str]) -> str:
    if content == "-":
        return sys.stdin.read()
    return content or ""


def _note_json(note: Note) -> dict[str, Any]:
    data = note.to_dict()
    # Vectors are noise on a terminal
    data.pop("embedding", None)
    data["has_embedding"] = note.embedding is not None
    return data


def _format_note_line(note: Note, score: Optional[float] = None) -> str:
    width = _output_width()
    prefix = f"{note.id}  {note.updated_at[:19]}  "
    if score is not None:
        prefix += f"[{score:.2f}]  "
    line = prefix + (note.title or "Untitled")
    if note.tags:
        line += "  #" + " #".join(note.tags)
    if note.summary:
        line += f"  {note.summary}"
    if len(line) > width:
        line = line[:width - 3] + "..."
    return line


def _format_note(note: Note) -> str:
    lines = [
        f"id: {note.id}",
        f"title: {note.title}",
        f"owner: {note.owner_id}",
        f"updated: {note.updated_at}",
        f"tags: {', '.join(note.tags)}",
    ]
    if note.shared_with:
        lines.append(f"shared_with: {', '.join(note.shared_with)}")
    lines.append(f"summary: {note.summary}")
    lines.append("")
    lines.append(note.plain_text)
    return "\n".join(lines)


def _echo_note(note: Note) -> None:
    if _json_output:
        typer.echo(json.dumps(_note_json(note), indent=2, ensure_ascii=False))
    else:
        typer.echo(_format_note(note))


def _echo_notes(notes: list[Note]) -> None:
    if _json_output:
        typer.echo(json.dumps([_note_json(n) for n in notes], indent=2, ensure_ascii=False))
        return
    for note in notes:
        typer.echo(_format_note_line(note))


def _echo_hits(hits: list[SearchHit]) -> None:
    if _json_output:
        typer.echo(json.dumps(
            [{**_note_json(h.note), "score": h.score} for h in hits],
            indent=2, ensure_ascii=False,
        ))
        return
    for hit in hits:
        typer.echo(_format_note_line(hit.note, hit.score))


def _echo_versions(versions: list[Version]) -> None:
    if _json_output:
        typer.echo(json.dumps(
            [{"title": v.title, "content": v.content, "timestamp": v.timestamp} for v in versions],
            indent=2, ensure_ascii=False,
        ))
        return
    for i, version in enumerate(versions, start=1):
        typer.echo(f"@V{{{i}}}  {version.timestamp[:19]}  {version.title or 'Untitled'}")


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    content: Annotated[Optional[str], typer.Argument(
        help="Note content (markup allowed), or '-' to read stdin"
    )] = None,
    title: Annotated[str, typer.Option("--title", "-T", help="Note title")] = "",
    tag: TagOption = None,
):
    """
    Add a note. Summary, tags and embedding are generated on save.

    \b
    Examples:
        notesync add "<p>Buy flour and eggs</p>" -T Groceries
        cat notes.html | notesync add - -T Imported -t work
    """
    text = _read_content(content)
    if not text and not title:
        typer.echo("Error: Provide content or --title", err=True)
        raise typer.Exit(1)

    async def _add(nb: Notebook) -> Optional[Note]:
        session = nb.open_session(_get_user(), restore_draft=False)
        try:
            session.edit(title=title, content=text)
            for t in tag or []:
                session.add_tag(t)
            return await session.save()
        finally:
            await session.close()

    note = _run(_add)
    _echo_note(note)


@app.command()
def edit(
    id: Annotated[str, typer.Argument(help="Note ID")],
    content: Annotated[Optional[str], typer.Option(
        "--content", "-c", help="New content, or '-' to read stdin"
    )] = None,
    title: Annotated[Optional[str], typer.Option("--title", "-T", help="New title")] = None,
    tag: TagOption = None,
):
    """Update a note you own. Tags are added to the existing ones."""
    updates = NoteUpdate(
        title=title,
        content=_read_content(content) if content is not None else None,
        tags=tag or None,
    )

    async def _edit(nb: Notebook) -> Note:
        return await nb.gateway.update(id, updates, _get_user())

    _echo_note(_run(_edit))


@app.command()
def get(
    id: Annotated[str, typer.Argument(help="Note ID")],
):
    """Show a note."""
    async def _get(nb: Notebook) -> Optional[Note]:
        return await nb.gateway.read(id, _get_user())

    note = _run(_get)
    if note is None:
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    _echo_note(note)


@app.command("list")
def list_notes():
    """List your notes, most recently updated first."""
    async def _list(nb: Notebook) -> list[Note]:
        return await nb.gateway.list_notes(_get_user())

    _echo_notes(_run(_list))


@app.command()
def rm(
    id: Annotated[str, typer.Argument(help="Note ID")],
):
    """Delete a note you own."""
    async def _rm(nb: Notebook) -> bool:
        return await nb.gateway.delete(id, _get_user())

    if not _run(_rm):
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted {id}")


@app.command()
def share(
    id: Annotated[str, typer.Argument(help="Note ID")],
    users: Annotated[list[str], typer.Argument(help="Identities to share with")],
):
    """Share a note you own (replaces the current share list)."""
    async def _share(nb: Notebook) -> bool:
        return await nb.gateway.share(id, users, _get_user())

    if not _run(_share):
        typer.echo(f"Not found: {id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Shared {id} with {', '.join(users)}")


@app.command()
def find(
    query: Annotated[str, typer.Argument(help="Search query text")],
    semantic: Annotated[bool, typer.Option(
        "--semantic", "-S", help="Rank by embedding similarity instead of text match"
    )] = False,
    limit: LimitOption = 10,
):
    """
    Search your notes.

    \b
    Examples:
        notesync find budget
        notesync find "trip planning" --semantic -n 5
    """
    async def _find(nb: Notebook) -> list[SearchHit]:
        return await nb.find(query, _get_user(), semantic=semantic, limit=limit)

    _echo_hits(_run(_find))


@app.command()
def history(
    id: Annotated[str, typer.Argument(help="Note ID")],
):
    """Show a note's version history, oldest first."""
    async def _history(nb: Notebook) -> list[Version]:
        return await nb.gateway.history(id, _get_user())

    _echo_versions(_run(_history))


@app.command()
def sync():
    """Push notes saved locally while offline to the remote store."""
    async def _sync(nb: Notebook) -> tuple[bool, dict[str, int]]:
        return nb.remote_configured, await nb.gateway.reconcile(_get_user())

    configured, counts = _run(_sync)
    if _json_output:
        typer.echo(json.dumps(counts))
        return
    if not configured:
        typer.echo("No remote store configured; notes stay local.", err=True)
    typer.echo(
        f"pushed {counts['pushed']}, discarded {counts['discarded']}, "
        f"deleted {counts['deleted']}, remaining {counts['remaining']}"
    )


@app.command()
def status():
    """Show store location, backend configuration and note counts."""
    nb = _get_notebook()
    try:
        user = _get_user()
        info = {
            "store": str(nb.store_path),
            "user": user,
            "enrichment": "openai" if nb.engine.backend_enabled else "offline",
            "remote": nb.config.remote.url or None,
            "local_notes": nb.local.count(user),
            "pending_deletions": len(nb.local.list_tombstones(user)),
        }
    finally:
        nb.close()

    if _json_output:
        typer.echo(json.dumps(info, indent=2))
        return
    for key, value in info.items():
        typer.echo(f"{key}: {value if value is not None else '-'}")


def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="notesync CLI", store_path=_store_override)
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
