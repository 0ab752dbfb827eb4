import typer
from rich import print
from rich.table import Table

from fido2keys import operations as ops
from fido2keys.utils import format_timestamp, open_store, reporting_errors, settings_of


def list_keys(ctx: typer.Context):
    """List stored keys (metadata only, nothing is decrypted)."""
    settings = settings_of(ctx)
    with reporting_errors():
        items = ops.list_secrets(open_store(settings))

    if not items:
        print("[yellow]No keys stored.[/yellow]")
        print('Use [cyan]fido2-keys set <id> <label>[/cyan] to add one.')
        return

    table = Table(title="Stored keys")
    table.add_column("ID", style="green")
    table.add_column("Label")
    table.add_column("Created")
    table.add_column("Credential ID", overflow="fold")
    for item in items:
        table.add_row(
            item["id"],
            item["label"],
            format_timestamp(item["createdAt"]),
            item["credentialId"] or "N/A",
        )
    print(table)
    print(f"Store: {settings.store_path}")
    print(f"Total: [green]{len(items)}[/green] key(s)")
