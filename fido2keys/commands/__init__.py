from .set_key import set_key
from .get_key import get_key
from .export_key import export_key
from .list_keys import list_keys
from .delete_key import delete_key
from .clear_keys import clear_keys
from .import_key import import_key
from .status import status
from .resolve import resolve

# command name -> handler
COMMANDS = {
    "set": set_key,
    "get": get_key,
    "export": export_key,
    "list": list_keys,
    "delete": delete_key,
    "clear": clear_keys,
    "import": import_key,
    "status": status,
    "resolve": resolve,
}

ALIASES = {
    "ls": list_keys,
    "rm": delete_key,
    "del": delete_key,
}

__all__ = [
    "COMMANDS",
    "ALIASES",
    "set_key",
    "get_key",
    "export_key",
    "list_keys",
    "delete_key",
    "clear_keys",
    "import_key",
    "status",
    "resolve",
]
