from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from formforge.config import Settings
from formforge.errors import FormForgeError
from formforge.pipeline import SubmissionsView, export_date, export_filename
from formforge.spam import get_spam_classifier
from formforge.storage import init_storage, storage_operation
from formforge.submissions import load_form

cli = typer.Typer(add_completion=False)


def run_server(host: str | None, port: int | None) -> None:
    import uvicorn

    from formforge.app import create_app

    settings = Settings()
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port if port is not None else settings.port,
    )


@cli.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
    log_level: str = typer.Option("INFO", help="Logging level"),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"host": host, "port": port}
    if ctx.invoked_subcommand is None:
        run_server(host, port)


@cli.command()
def run(
    ctx: typer.Context,
    host: str | None = typer.Option(None, help="Address to bind"),
    port: int | None = typer.Option(None, help="Port to bind"),
) -> None:
    """Serve the web application."""
    base = ctx.obj or {}
    run_server(host or base.get("host"), port if port is not None else base.get("port"))


@cli.command()
def export(
    form_id: str,
    output: Path | None = typer.Option(None, "--output", "-o", help="Destination file"),
    search: str = typer.Option("", "--search", "-q", help="Only rows containing this text"),
    spam: str = typer.Option("all", help="all, spam or valid"),
) -> None:
    """Write a form's submissions as CSV."""
    settings = Settings()
    storage = init_storage(settings)
    try:
        form = load_form(storage, form_id)
        view = SubmissionsView(
            storage,
            form,
            get_spam_classifier(settings),
            export_timezone=settings.export_timezone,
        )
        view.refresh()
        asyncio.run(view.classify())
        view.set_search(search)
        view.set_spam_gate(spam)
        content = view.export()
    except (FormForgeError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    destination = output or Path(export_filename(form_id, export_date(settings.export_timezone)))
    destination.write_text(content, encoding="utf-8")
    typer.echo(f"Wrote {len(view.filtered())} submissions to {destination}")


@cli.command()
def forms(owner_id: str) -> None:
    """List the forms owned by OWNER_ID."""
    storage = init_storage(Settings())
    try:
        with storage_operation("list_forms"):
            owned = storage.forms.list_forms_by_owner(owner_id)
    except FormForgeError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    if not owned:
        typer.echo("No forms found")
        return
    for form in owned:
        state = "published" if form.get("published") else "draft"
        typer.echo(f"{form['id']}\t{state}\t{form.get('title', '')}")
