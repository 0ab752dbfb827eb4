import typer
from rich import print

from fido2keys import operations as ops
from fido2keys.utils import confirmer, open_store, reporting_errors, settings_of


def delete_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., metavar="ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a stored key."""
    settings = settings_of(ctx)
    with reporting_errors():
        deleted = ops.delete_secret(open_store(settings), key_id, confirmer(yes))
    if not deleted:
        typer.secho("Operation cancelled.", fg="yellow", err=True)
        return
    print(f"[green]✓[/green] Deleted [bold]{key_id}[/bold]")
