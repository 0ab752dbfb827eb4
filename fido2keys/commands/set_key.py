import sys

import typer
from rich import print

from fido2keys import operations as ops
from fido2keys.config import Settings
from fido2keys.pinentry import PinentryError, read_secret_value
from fido2keys.utils import confirmer, open_gate, open_store, reporting_errors, settings_of


def ask_value(key_id: str, label: str) -> str:
    try:
        return read_secret_value("Key value:", desc=f"Value for {label} ({key_id})")
    except PinentryError as err:
        typer.secho(str(err), fg="red", err=True)
        raise typer.Abort() from err


def store_value(settings: Settings, key_id: str, label: str, value: str, yes: bool):
    if not value:
        typer.secho("Refusing to store an empty value.", fg="red", err=True)
        raise typer.Exit(1)

    with reporting_errors():
        record = ops.set_secret(
            open_store(settings),
            open_gate(settings),
            settings,
            key_id,
            label,
            value,
            confirmer(yes),
        )
    if record is None:
        typer.secho("Operation cancelled.", fg="yellow", err=True)
        return

    print(f"[green]✓[/green] Stored [bold]{key_id}[/bold] (credential {record.credential_id})")
    print(f"Store: {settings.store_path}")
    print("Reference it from the host configuration as:")
    print(
        f'  [green]{{ source: "exec", provider: "{settings.provider_id}", id: "{key_id}" }}[/green]'
    )


def set_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., metavar="ID", help="Key id used in resolver requests"),
    label: str = typer.Argument(..., help="Human-readable label"),
    stdin: bool = typer.Option(False, "--stdin", help="Read the value from stdin"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Replace an existing key without asking"),
):
    """Store a new key, bound to a freshly enrolled FIDO2 credential."""
    settings = settings_of(ctx)
    if stdin:
        value = sys.stdin.read().rstrip("\r\n")
    else:
        value = ask_value(key_id, label)
    store_value(settings, key_id, label, value, yes)
