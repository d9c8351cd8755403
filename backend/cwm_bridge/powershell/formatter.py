# =============================
# backend/cwm_bridge/powershell/formatter.py
# =============================
"""
Parameter handling for ConnectWise Manage cmdlets.

- ``normalize_params`` turns a mapping or an ordered list of (name, value) pairs
  into the ordered pairs that are splatted into the cmdlet inside PowerShell.
- ``format_params`` / ``render_command`` produce the familiar command-line text
  (``Get-CWMTicket -Condition "status='Open'"``). That text is only ever logged;
  it is never executed.
"""
from __future__ import annotations
import re
from typing import Any, Iterable, Mapping, Sequence, Tuple, Union

from ..errors import InvalidCommand, redact

Params = Union[Mapping[str, Any], Sequence[Tuple[str, Any]], None]

_COMMAND_RE = re.compile(r"^[A-Za-z]+-[A-Za-z0-9]+$")
_PARAM_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _pairs(params: Params) -> list[tuple[str, Any]]:
    if not params:
        return []
    if isinstance(params, Mapping):
        return list(params.items())
    pairs: list[tuple[str, Any]] = []
    for item in params:
        if isinstance(item, (str, bytes)) or len(item) != 2:
            raise InvalidCommand("params must be an object or a list of [name, value] pairs")
        pairs.append((item[0], item[1]))
    return pairs


def format_params(params: Params) -> str:
    """
    Render parameters as PowerShell argument text, in the order given:
    strings are quoted verbatim, True becomes a bare switch, False is dropped,
    anything else is written as a literal.
    """
    parts: list[str] = []
    for key, value in _pairs(params):
        if isinstance(value, str):
            parts.append(f'-{key} "{value}"')
        elif isinstance(value, bool):
            if value:
                parts.append(f"-{key}")
        elif value is None:
            continue
        else:
            parts.append(f"-{key} {value}")
    return " ".join(parts)


def render_command(command: str, params: Params = None, secrets: Iterable[str | None] = ()) -> str:
    args = format_params(params)
    text = f"{command} {args}" if args else command
    return redact(text, secrets)


def validate_command_name(command: str) -> str:
    if not isinstance(command, str) or not _COMMAND_RE.match(command):
        raise InvalidCommand(f"Invalid command name: {command!r}")
    return command


def normalize_params(params: Params) -> list[list[Any]]:
    """Ordered ``[name, value]`` pairs for splatting; False/None switches are omitted."""
    out: list[list[Any]] = []
    for key, value in _pairs(params):
        if not isinstance(key, str) or not _PARAM_RE.match(key):
            raise InvalidCommand(f"Invalid parameter name: {key!r}")
        if value is None or value is False:
            continue
        out.append([key, value])
    return out


__all__ = ["format_params", "render_command", "validate_command_name", "normalize_params"]
