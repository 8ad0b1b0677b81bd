"""CLI entry point using Typer."""

import getpass
import mimetypes
from collections.abc import Callable
from dataclasses import replace
from functools import wraps
from pathlib import Path
from typing import Annotated, Any

import typer
import uvicorn

from notecase.backends.local import LocalBackend
from notecase.config import Settings
from notecase.errors import NotecaseError
from notecase.logging_utils import setup_logging
from notecase.models import (
    DEFAULT_CATEGORY_COLOR,
    CategoryUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    SelectionState,
)
from notecase.search import count_tags
from notecase.server import create_app
from notecase.session import Session, create_session

app = typer.Typer(help="Notecase CLI - personal notes by category and tag")
category_app = typer.Typer(help="Category commands")
subcategory_app = typer.Typer(help="Subcategory commands")
note_app = typer.Typer(help="Note commands")
image_app = typer.Typer(help="Image commands")
source_app = typer.Typer(help="Data source commands")

app.add_typer(category_app, name="category")
app.add_typer(subcategory_app, name="subcategory")
app.add_typer(note_app, name="note")
app.add_typer(image_app, name="image")
app.add_typer(source_app, name="source")


def handle_cli_errors[R](func: Callable[..., R]) -> Callable[..., R]:
    """Echo domain and value errors to stderr and exit with code 1."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> R:  # noqa: ANN401
        try:
            return func(*args, **kwargs)
        except NotecaseError as e:
            typer.echo(f"Error: {e.message}", err=True)
            raise typer.Exit(code=1) from e
        except (OSError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1) from e

    return wrapper


def _open(ctx: typer.Context, *, load: bool = True) -> Session:
    setup_logging()
    settings: Settings = ctx.obj or Settings.from_env()
    session = create_session(settings)
    if settings.data_source != session.selector.active.value:
        # an explicitly requested source must not silently fall back
        session.selector.select(settings.data_source)
    if load:
        session.store.load()
    return session


def _echo_note(note: Note) -> None:
    tags = f" [{', '.join(note.tags)}]" if note.tags else ""
    typer.echo(f"- {note.id}: {note.title}{tags}")


def _echo_notes(notes: list[Note]) -> None:
    if not notes:
        typer.echo("No notes found.")
    for note in notes:
        _echo_note(note)


@app.callback()
def main_callback(
    ctx: typer.Context,
    root: Annotated[
        str | None,
        typer.Option(help="Local store path or fsspec URL (NOTECASE_ROOT)"),
    ] = None,
    source: Annotated[
        str | None,
        typer.Option(help="Data source: local, hosted or rest"),
    ] = None,
) -> None:
    """Resolve settings shared by every command."""
    settings = Settings.from_env()
    if root:
        settings = replace(settings, local_root=root)
    if source:
        settings = replace(settings, data_source=source.lower())
    ctx.obj = settings


# -- categories ---------------------------------------------------------


@category_app.command("list")
@handle_cli_errors
def cmd_category_list(ctx: typer.Context) -> None:
    """List categories and their subcategories."""
    session = _open(ctx)
    if not session.store.categories:
        typer.echo("No categories found.")
    for category in session.store.categories:
        typer.echo(f"- {category.id}: {category.name} ({category.color})")
        for subcategory in category.subcategories:
            typer.echo(f"    - {subcategory.id}: {subcategory.name}")


@category_app.command("create")
@handle_cli_errors
def cmd_category_create(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Category name")],
    color: Annotated[str, typer.Option(help="Display color")] = DEFAULT_CATEGORY_COLOR,
) -> None:
    """Create a category."""
    session = _open(ctx)
    category = session.store.create_category(name, color)
    typer.echo(f"Category '{category.name}' created with id {category.id}.")


@category_app.command("rename")
@handle_cli_errors
def cmd_category_rename(
    ctx: typer.Context,
    category_id: Annotated[str, typer.Argument(help="Category id")],
    name: Annotated[str, typer.Argument(help="New name")],
) -> None:
    """Rename a category."""
    session = _open(ctx)
    category = session.store.update_category(category_id, CategoryUpdate(name=name))
    typer.echo(f"Category {category.id} renamed to '{category.name}'.")


@category_app.command("delete")
@handle_cli_errors
def cmd_category_delete(
    ctx: typer.Context,
    category_id: Annotated[str, typer.Argument(help="Category id")],
) -> None:
    """Delete a category with its subcategories and notes."""
    session = _open(ctx)
    session.store.delete_category(category_id)
    typer.echo(f"Category {category_id} deleted.")


# -- subcategories ------------------------------------------------------


@subcategory_app.command("create")
@handle_cli_errors
def cmd_subcategory_create(
    ctx: typer.Context,
    category_id: Annotated[str, typer.Argument(help="Parent category id")],
    name: Annotated[str, typer.Argument(help="Subcategory name")],
) -> None:
    """Create a subcategory."""
    session = _open(ctx)
    subcategory = session.store.create_subcategory(name, category_id)
    typer.echo(f"Subcategory '{subcategory.name}' created with id {subcategory.id}.")


@subcategory_app.command("delete")
@handle_cli_errors
def cmd_subcategory_delete(
    ctx: typer.Context,
    subcategory_id: Annotated[str, typer.Argument(help="Subcategory id")],
) -> None:
    """Delete a subcategory and its notes."""
    session = _open(ctx)
    session.store.delete_subcategory(subcategory_id)
    typer.echo(f"Subcategory {subcategory_id} deleted.")


# -- notes --------------------------------------------------------------


@note_app.command("list")
@handle_cli_errors
def cmd_note_list(
    ctx: typer.Context,
    category: Annotated[str | None, typer.Option(help="Category id")] = None,
    subcategory: Annotated[str | None, typer.Option(help="Subcategory id")] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option(help="Tag filter; repeat for any-of matching"),
    ] = None,
) -> None:
    """List notes, newest first."""
    session = _open(ctx)
    selection = SelectionState(
        selected_category_id=category,
        selected_subcategory_id=subcategory,
        selected_tags=tag or [],
    )
    _echo_notes(session.store.visible_notes(selection))


@note_app.command("create")
@handle_cli_errors
def cmd_note_create(
    ctx: typer.Context,
    subcategory_id: Annotated[str, typer.Argument(help="Subcategory id")],
    title: Annotated[str, typer.Argument(help="Note title")],
    content: Annotated[str, typer.Option(help="Note body")] = "",
    tag: Annotated[list[str] | None, typer.Option(help="Tag; repeatable")] = None,
) -> None:
    """Create a note."""
    session = _open(ctx)
    note = session.store.create_note(
        NoteCreate(
            title=title,
            content=content,
            subcategory_id=subcategory_id,
            tags=tag or [],
        ),
    )
    typer.echo(f"Note '{note.title}' created with id {note.id}.")


@note_app.command("update")
@handle_cli_errors
def cmd_note_update(
    ctx: typer.Context,
    note_id: Annotated[str, typer.Argument(help="Note id")],
    title: Annotated[str | None, typer.Option(help="New title")] = None,
    content: Annotated[str | None, typer.Option(help="New body")] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option(help="Replacement tags; repeatable"),
    ] = None,
) -> None:
    """Update a note's title, body or tags."""
    session = _open(ctx)
    changes = NoteUpdate(title=title, content=content, tags=tag)
    note = session.store.update_note(note_id, changes)
    typer.echo(f"Note {note.id} updated at {note.updated_at.isoformat()}.")


@note_app.command("delete")
@handle_cli_errors
def cmd_note_delete(
    ctx: typer.Context,
    note_id: Annotated[str, typer.Argument(help="Note id")],
) -> None:
    """Delete a note."""
    session = _open(ctx)
    session.store.delete_note(note_id)
    typer.echo(f"Note {note_id} deleted.")


@note_app.command("search")
@handle_cli_errors
def cmd_note_search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to look for")],
    category: Annotated[str | None, typer.Option(help="Restrict to a category")] = None,
) -> None:
    """Search titles, bodies and tags."""
    session = _open(ctx)
    _echo_notes(session.store.search_notes(query, category))


@note_app.command("tags")
@handle_cli_errors
def cmd_note_tags(ctx: typer.Context) -> None:
    """List every tag with its usage count."""
    session = _open(ctx)
    counts = count_tags(session.store.notes)
    if not counts:
        typer.echo("No tags found.")
    for entry in counts:
        typer.echo(f"{entry.tag}\t{entry.count}")


# -- images -------------------------------------------------------------


@image_app.command("attach")
@handle_cli_errors
def cmd_image_attach(
    ctx: typer.Context,
    note_id: Annotated[str, typer.Argument(help="Note id")],
    path: Annotated[Path, typer.Argument(help="Image file", exists=True, dir_okay=False)],
    content_type: Annotated[
        str | None,
        typer.Option(help="MIME type; guessed from the file name by default"),
    ] = None,
) -> None:
    """Attach an image file to a note."""
    session = _open(ctx)
    declared = content_type or mimetypes.guess_type(path.name)[0]
    note = session.store.attach_image(note_id, path.read_bytes(), path.name, declared)
    typer.echo(f"Image attached: {note.images[-1]}")


@image_app.command("remove")
@handle_cli_errors
def cmd_image_remove(
    ctx: typer.Context,
    note_id: Annotated[str, typer.Argument(help="Note id")],
    reference: Annotated[str, typer.Argument(help="Image id or URL")],
) -> None:
    """Delete an image and detach it from the note."""
    session = _open(ctx)
    session.store.remove_image(note_id, reference)
    typer.echo(f"Image {reference} removed.")


# -- data source --------------------------------------------------------


@source_app.command("show")
@handle_cli_errors
def cmd_source_show(ctx: typer.Context) -> None:
    """Show the active and the selectable data sources."""
    session = _open(ctx, load=False)
    available = ", ".join(s.value for s in session.selector.available_sources())
    typer.echo(f"Active: {session.selector.active.value}")
    typer.echo(f"Available: {available}")


@source_app.command("use")
@handle_cli_errors
def cmd_source_use(
    ctx: typer.Context,
    source: Annotated[str, typer.Argument(help="local, hosted or rest")],
) -> None:
    """Switch to a data source and load its data."""
    session = _open(ctx, load=False)
    selected = session.selector.select(source)
    session.store.load()
    typer.echo(
        f"Using {selected.value}: {len(session.store.categories)} categories, "
        f"{len(session.store.notes)} notes.",
    )


@source_app.command("toggle")
@handle_cli_errors
def cmd_source_toggle(ctx: typer.Context) -> None:
    """Flip between local storage and the configured network source."""
    session = _open(ctx, load=False)
    selected = session.selector.toggle()
    session.store.load()
    typer.echo(f"Switched to {selected.value}.")


# -- account ------------------------------------------------------------


@app.command("login")
@handle_cli_errors
def cmd_login(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Account name")],
    password: Annotated[
        str | None,
        typer.Option(help="Password; prompted when omitted"),
    ] = None,
) -> None:
    """Log in and keep the session for 24 hours."""
    session = _open(ctx, load=False)
    secret = password if password is not None else getpass.getpass("Password: ")
    user = session.authenticator.login(username, secret)
    typer.echo(f"Logged in as {user.username} ({user.source}).")


@app.command("logout")
@handle_cli_errors
def cmd_logout(ctx: typer.Context) -> None:
    """End the current session."""
    session = _open(ctx, load=False)
    session.authenticator.logout()
    typer.echo("Logged out.")


# -- maintenance --------------------------------------------------------


@app.command("seed")
@handle_cli_errors
def cmd_seed(ctx: typer.Context) -> None:
    """Load sample categories and notes into an empty local store."""
    session = _open(ctx, load=False)
    backend = session.selector.backend()
    if not isinstance(backend, LocalBackend):
        typer.echo("Error: sample data can only be seeded into local storage.", err=True)
        raise typer.Exit(code=1)
    if backend.seed_sample_data():
        typer.echo("Sample data loaded.")
    else:
        typer.echo("Local storage already holds data; nothing seeded.")


@app.command("serve")
@handle_cli_errors
def cmd_serve(
    ctx: typer.Context,
    host: Annotated[str, typer.Option(help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port")] = 3000,
) -> None:
    """Run the REST service on the hosted database."""
    setup_logging()
    settings: Settings = ctx.obj or Settings.from_env()
    uvicorn.run(create_app(settings=settings), host=host, port=port)


def main() -> None:
    """Entry point for the notecase CLI."""
    app()


if __name__ == "__main__":
    main()
