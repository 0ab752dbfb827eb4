import os
import shutil
import subprocess
import sys
from getpass import getpass


# Assuan protocol notes: https://velvetcache.org/2023/03/26/a-peek-inside-pinentry/


class PinentryError(RuntimeError):
    pass


def _escape(text: str) -> str:
    # Assuan percent-escapes %, CR and LF in arguments
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _unescape(text: str) -> str:
    return text.replace("%0A", "\n").replace("%0D", "\r").replace("%25", "%")


def call_pinentry(
    prompt: str,
    desc: str | None = None,
    title: str | None = None,
    program: str | None = None,
) -> str:
    """Ask for a hidden value through the user's pinentry program."""
    program = program or os.environ.get("PINENTRY", "pinentry")
    if shutil.which(program) is None:
        raise FileNotFoundError(f"{program} not found in PATH")

    p = subprocess.Popen(
        [program],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
        text=True,
        bufsize=1,
    )

    def read_reply():
        data = None
        for line in p.stdout:
            line = line.rstrip("\n")
            if line.startswith("D "):
                data = _unescape(line[2:])
            elif line.startswith("OK"):
                return data
            elif line.startswith("ERR") or line.startswith("CANCEL"):
                raise PinentryError(line)
        raise PinentryError("pinentry closed the connection")

    def command(cmd: str):
        p.stdin.write(cmd + "\n")
        p.stdin.flush()
        return read_reply()

    try:
        read_reply()  # greeting
        if sys.stdin.isatty():
            command(f"OPTION ttyname={os.ttyname(sys.stdin.fileno())}")
        command(f"OPTION ttytype={os.environ.get('TERM', 'vt100')}")
        if title:
            command(f"SETTITLE {_escape(title)}")
        if desc:
            command(f"SETDESC {_escape(desc)}")
        command(f"SETPROMPT {_escape(prompt)}")
        value = command("GETPIN")
        try:
            command("BYE")
        except PinentryError:
            pass
    finally:
        p.stdin.close()
        p.wait()

    if value is None:
        raise PinentryError("no value returned")
    return value


def read_secret_value(prompt: str, desc: str | None = None) -> str:
    """pinentry when installed, a terminal getpass otherwise."""
    try:
        return call_pinentry(prompt, desc=desc, title="FIDO2 Keys")
    except FileNotFoundError:
        return getpass(f"{prompt} ")
