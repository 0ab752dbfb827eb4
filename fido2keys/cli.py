import sys
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path

import typer
from rich import print

import fido2keys.commands as commands
from fido2keys import resolver
from fido2keys.config import GATES, Settings
from fido2keys.constants import PROVIDER_ID
from fido2keys.errors import ConfigError
from fido2keys.log import get_logger

try:
    __version__ = version("fido2-keys")
except PackageNotFoundError:
    __version__ = "unknown"

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def main(
    ctx: typer.Context,
    store: Path = typer.Option(None, help="Store file (default: ~/.openclaw/fido2-keys.json)"),
    gate: str = typer.Option(None, help=f"Authenticator backend: {', '.join(GATES)}"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Manage API keys protected by a FIDO2 authenticator."""
    try:
        settings = Settings.from_env().override(store_path=store, gate=gate)
    except ConfigError as err:
        typer.secho(f"Error: {err}", fg="red", err=True)
        raise typer.Exit(1) from err
    get_logger(level="DEBUG" if verbose else settings.log_level)
    ctx.obj = settings


for name, cmd in commands.COMMANDS.items():
    app.command(name)(cmd)
for name, cmd in commands.ALIASES.items():
    app.command(name, hidden=True)(cmd)


@app.command("version")
def show_version():
    """Print version."""
    print(f"fido2-keys version: {__version__}")


resolver_app = typer.Typer(add_completion=False)


@resolver_app.command()
def resolve_request(
    store: Path = typer.Option(None, help="Store file"),
    provider: str = typer.Option(None, help="Provider id this resolver answers to"),
    timeout: float = typer.Option(None, help="Overall deadline for the request, in seconds"),
    gate: str = typer.Option(None, help=f"Authenticator backend: {', '.join(GATES)}"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Exec-provider resolver: one JSON request on stdin, one JSON response on stdout."""
    try:
        settings = Settings.from_env().override(
            store_path=store, provider_id=provider, request_timeout=timeout, gate=gate
        )
    except ConfigError as err:
        # the host still gets a parseable response
        resolver.write_response(sys.stdout, resolver.fatal_response(err, provider or PROVIDER_ID))
        raise typer.Exit(1) from err
    get_logger(level="DEBUG" if verbose else settings.log_level)
    raise typer.Exit(resolver.run(sys.stdin, sys.stdout, settings))


if __name__ == "__main__":
    app()
