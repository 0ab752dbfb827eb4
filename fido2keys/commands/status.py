from rich import print
import typer

from fido2keys import operations as ops
from fido2keys.utils import open_gate, open_store, settings_of


def status(ctx: typer.Context):
    """Show authenticator availability and store state."""
    settings = settings_of(ctx)
    st = ops.store_status(open_store(settings), open_gate(settings))

    print(f"[cyan]Authenticator:[/cyan] {st['gate']}")
    if st["available"]:
        print("[green]✓ available[/green]")
    else:
        print("[yellow]⚠ not available[/yellow]")
    print(f"[cyan]Store:[/cyan] {st['store']}")
    if not st["initialized"]:
        print("Store file: not initialized")
    elif st["corrupt"]:
        print("[red]Store file is unreadable or corrupt[/red]")
    else:
        print(f"Stored keys: {st['count']}")
