import typer

from fido2keys.constants import IMPORT_ID_RE
from fido2keys.utils import settings_of

from .set_key import ask_value, store_value


def import_key(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Replace an existing key without asking"),
):
    """Interactively import a new key."""
    settings = settings_of(ctx)
    while True:
        key_id = typer.prompt("Key id (e.g. openai-api-key)", err=True).strip()
        if IMPORT_ID_RE.match(key_id):
            break
        typer.secho(
            "Ids may only contain lowercase letters, digits and hyphens.", fg="red", err=True
        )
    label = typer.prompt("Label", default=key_id, err=True)
    store_value(settings, key_id, label, ask_value(key_id, label), yes)
