import logging

from rich.console import Console
from rich.logging import RichHandler

# stdout belongs to the resolver protocol, everything human-facing goes here
stderr = Console(stderr=True)


def get_logger(name="fido2keys", level=None):
    """Logger writing through rich to stderr; handlers are installed once."""
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level.upper() if isinstance(level, str) else level)

    root = logging.getLogger("fido2keys")
    if not root.handlers:
        handler = RichHandler(
            console=stderr,
            show_path=False,
            show_time=False,
            markup=False,
            rich_tracebacks=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.propagate = False

    return logger


def prompt(message: str):
    """Show a user-facing prompt on stderr."""
    stderr.print(message)
