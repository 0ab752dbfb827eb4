import sys

import typer

from fido2keys import resolver
from fido2keys.utils import settings_of


def resolve(ctx: typer.Context):
    """Answer one exec-provider request from stdin (JSON in, JSON out)."""
    code = resolver.run(sys.stdin, sys.stdout, settings_of(ctx))
    raise typer.Exit(code)
