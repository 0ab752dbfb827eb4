import contextlib
import typing as t
from datetime import datetime

import typer

from .config import Settings
from .errors import Fido2KeysError
from .gate import CredentialGate, create_gate
from .store import SecretStore


def settings_of(ctx: typer.Context) -> Settings:
    settings = ctx.find_root().obj
    if settings is None:
        settings = Settings.from_env()
    return settings


def open_store(settings: Settings) -> SecretStore:
    return SecretStore(settings.store_path)


def open_gate(settings: Settings) -> CredentialGate:
    return create_gate(settings)


def confirmer(yes: bool) -> t.Callable[[str], bool]:
    if yes:
        return lambda message: True
    return lambda message: typer.confirm(message, default=False, err=True)


@contextlib.contextmanager
def reporting_errors():
    """Turn domain errors into a red stderr line and exit code 1."""
    try:
        yield
    except Fido2KeysError as err:
        typer.secho(f"Error: {err}", fg="red", err=True)
        raise typer.Exit(1) from err


def format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")
