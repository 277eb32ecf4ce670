"""A small text template engine for output paths and Vagrantfiles."""

from __future__ import annotations

import json
import re
import time
from typing import Any, Mapping

_ACTION = re.compile(r"\{\{(?P<ltrim>-[ \t\r\n])?(?P<body>.*?)(?P<rtrim>[ \t\r\n]-)?\}\}", re.S)
_SPACE = re.compile(r"[ \t\r\n]*")
_FIELDS = re.compile(r"(?:\.[A-Za-z_][A-Za-z0-9_]*)+")
_USER = re.compile(r'user\s+(`[^`]*`|"(?:[^"\\]|\\.)*")')
_NO_VALUE = "<no value>"
_MISSING = object()


class TemplateError(ValueError):
    """Raised when a template cannot be parsed or evaluated."""


def render(
    template: str,
    data: Any = None,
    user_variables: Mapping[str, str] | None = None,
) -> str:
    """Render ``template`` with ``data`` as the dot value.

    Supported actions are field lookups (``{{ .Name }}``), ``user`` variable
    lookups, ``timestamp`` and comments, with ``{{-`` / ``-}}`` trimming.
    """
    variables = user_variables or {}
    parts: list[str] = []
    pos = 0
    while True:
        start = template.find("{{", pos)
        if start < 0:
            parts.append(template[pos:])
            break
        match = _ACTION.match(template, start)
        if match is None:
            raise TemplateError(f"unclosed action in template: {template!r}")
        text = template[pos:start]
        if match["ltrim"]:
            text = text.rstrip(" \t\r\n")
        parts.append(text)
        parts.append(_evaluate(match["body"].strip(), data, variables))
        pos = match.end()
        if match["rtrim"]:
            pos = _SPACE.match(template, pos).end()
    return "".join(parts)


def _evaluate(body: str, data: Any, variables: Mapping[str, str]) -> str:
    if body.startswith("/*") and body.endswith("*/"):
        return ""
    if body == ".":
        return _format(data)
    if _FIELDS.fullmatch(body):
        return _lookup(body, data)
    user = _USER.fullmatch(body)
    if user:
        return str(variables.get(_unquote(user.group(1)), ""))
    if body == "timestamp":
        return str(int(time.time()))
    raise TemplateError(f"unsupported template action: {{{{{body}}}}}")


def _lookup(chain: str, data: Any) -> str:
    value = {} if data is None else data
    for name in chain[1:].split("."):
        if value is None:
            return _NO_VALUE
        if isinstance(value, Mapping):
            value = value.get(name, _MISSING)
            if value is _MISSING:
                return _NO_VALUE
        elif hasattr(value, name):
            value = getattr(value, name)
        else:
            raise TemplateError(f"can't evaluate field {name} in {type(value).__name__}")
    return _format(value)


def _unquote(literal: str) -> str:
    if literal.startswith("`"):
        return literal[1:-1]
    try:
        return json.loads(literal)
    except json.JSONDecodeError as exc:
        raise TemplateError(f"bad string literal {literal}") from exc


def _format(value: Any) -> str:
    if value is None:
        return _NO_VALUE
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)