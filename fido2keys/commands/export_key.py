import typer
from rich import print
from rich.panel import Panel

from fido2keys import operations as ops
from fido2keys.store import find_by_id
from fido2keys.utils import open_gate, open_store, reporting_errors, settings_of


def export_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., metavar="ID"),
):
    """Decrypt a key and show it with its metadata."""
    settings = settings_of(ctx)
    store = open_store(settings)
    with reporting_errors():
        value = ops.get_secret(store, open_gate(settings), settings, key_id)
        record = find_by_id(store.load(), key_id)
    title = f"{record.label} ({key_id})" if record else key_id
    print(Panel(value, title=title, border_style="cyan", expand=False))
