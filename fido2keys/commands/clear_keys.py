import typer
from rich import print

from fido2keys import operations as ops
from fido2keys.utils import confirmer, open_store, reporting_errors, settings_of


def clear_keys(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete every stored key. Irreversible."""
    settings = settings_of(ctx)
    with reporting_errors():
        count = ops.clear_secrets(open_store(settings), confirmer(yes))
    if count is None:
        typer.secho("Operation cancelled.", fg="yellow", err=True)
        return
    print(f"[green]✓[/green] Cleared {count} key(s)")
