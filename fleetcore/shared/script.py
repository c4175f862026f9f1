"""Portable POSIX shell fragment builders.

Plain string arguments are quoted with :func:`shlex.quote`. A
:class:`Fragment` is shell text that is already meant to be evaluated (a
command substitution, say) and is wrapped in double quotes instead so it
still expands on the remote side.
"""

from __future__ import annotations

import shlex
from typing import Union


class Fragment(str):
    """Shell text that is evaluated remotely rather than quoted literally."""

    def __add__(self, other: str) -> "Fragment":
        return Fragment(str.__add__(self, other))

    def __radd__(self, other: str) -> "Fragment":
        return Fragment(str.__add__(other, self))


Arg = Union[str, Fragment]


def quote(value: Arg) -> str:
    """Quote an argument for use in a shell command line."""
    if isinstance(value, Fragment):
        return f'"{value}"'
    return shlex.quote(str(value))


def mkdir(path: Arg, parents: bool = False) -> str:
    if parents:
        return f"mkdir -p {quote(path)}"
    return f"mkdir {quote(path)}"


def chmod(mode: str, path: Arg) -> str:
    return f"chmod {quote(mode)} {quote(path)}"


def chown(owner: str, path: Arg) -> str:
    return f"chown {quote(owner)} {quote(path)}"


def chgrp(group: str, path: Arg) -> str:
    return f"chgrp {quote(group)} {quote(path)}"


def dirname(path: Arg) -> Fragment:
    return Fragment(f"$(dirname {quote(path)})")


def user_home(username: str) -> Fragment:
    """Home directory of ``username`` as reported by the passwd database."""
    return Fragment(f"$(getent passwd {shlex.quote(username)} | cut -d: -f6)")


def exit_status(code: Union[int, str] = "$?") -> str:
    return f"exit {code}"


def chain(*fragments: str) -> str:
    """Join fragments into a script, one command per line."""
    return "\n".join(fragments) + "\n"
