import typer

from fido2keys import operations as ops
from fido2keys.utils import open_gate, open_store, reporting_errors, settings_of


def get_key(
    ctx: typer.Context,
    key_id: str = typer.Argument(..., metavar="ID"),
):
    """Verify with the authenticator and print the decrypted value."""
    settings = settings_of(ctx)
    with reporting_errors():
        value = ops.get_secret(open_store(settings), open_gate(settings), settings, key_id)
    typer.echo(value)
