"""Canonical text and source-literal rendering of snapshot values."""

from __future__ import annotations

import re
from typing import Any, assert_never

from snapkeeper.core.values import (
    ValueKind,
    is_nan,
    kind_of,
    record_items,
    sequence_items,
)

_INDENT = "  "
_FIRST_INDENTATION = re.compile(r"^([^\S\n]*)\S", re.MULTILINE)
_QUOTE_RUN = re.compile(r'"(?="|\Z)')


def serialize(value: Any) -> str:
    """Render ``value`` as canonical, deterministic text."""
    return _serialize(value, "")


def _serialize(value: Any, indentation: str) -> str:
    kind = kind_of(value)
    if kind is ValueKind.UNDEFINED:
        return "undefined"
    if kind is ValueKind.NULL:
        return "None"
    if kind is ValueKind.BOOLEAN or kind is ValueKind.NUMBER or kind is ValueKind.OTHER:
        return repr(value)
    if kind is ValueKind.STRING:
        return _quote(value)
    if kind is ValueKind.SYMBOL:
        return str(value)
    if kind is ValueKind.FUNCTION:
        return f"[Function {_function_name(value)}]"
    if kind is ValueKind.SEQUENCE:
        inner = indentation + _INDENT
        lines = [_serialize(item, inner) for item in sequence_items(value)]
        return _block(type(value).__name__, "[", "]", lines, indentation)
    if kind is ValueKind.RECORD:
        inner = indentation + _INDENT
        entries = sorted(
            (_serialize(key, inner), _serialize(item, inner))
            for key, item in record_items(value)
        )
        lines = [f"{key}: {item}" for key, item in entries]
        return _block(type(value).__name__, "{", "}", lines, indentation)
    assert_never(kind)


def _block(name: str, opener: str, closer: str, lines: list[str], indentation: str) -> str:
    if not lines:
        return f"{name} {opener}{closer}"
    inner = indentation + _INDENT
    body = "".join(f"{inner}{line},\n" for line in lines)
    return f"{name} {opener}\n{body}{indentation}{closer}"


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _function_name(value: Any) -> str:
    name = getattr(value, "__name__", None)
    if not name or name == "<lambda>":
        return "anonymous"
    return name


def _is_well_known_symbol(value: Any) -> bool:
    # Members of module-level enums can be referenced from the test source.
    return "<locals>" not in type(value).__qualname__


def to_literal(value: Any) -> str:
    """Python source for an expression that mirrors ``value``'s shape.

    Tuples and frozensets keep their own literal so they stay usable as dict
    keys. Values of kind OTHER and ``Decimal`` numbers are written as their
    ``repr()``; the test module must import the names that repr refers to.
    """
    kind = kind_of(value)
    if kind is ValueKind.UNDEFINED:
        return "expect.undefined"
    if kind is ValueKind.NULL:
        return "None"
    if kind is ValueKind.BOOLEAN or kind is ValueKind.STRING or kind is ValueKind.OTHER:
        return repr(value)
    if kind is ValueKind.NUMBER:
        if is_nan(value):
            return 'float("nan")'
        if value in (float("inf"), float("-inf")):
            return 'float("inf")' if value > 0 else 'float("-inf")'
        return repr(value)
    if kind is ValueKind.SYMBOL:
        if _is_well_known_symbol(value):
            return f"{type(value).__qualname__}.{value.name}"
        return repr(str(value))
    if kind is ValueKind.FUNCTION:
        return "expect.any_function()"
    if kind is ValueKind.SEQUENCE:
        items = [to_literal(item) for item in sequence_items(value)]
        if isinstance(value, tuple):
            return "(" + ", ".join(items) + ("," if len(items) == 1 else "") + ")"
        if isinstance(value, frozenset):
            return "frozenset({" + ", ".join(items) + "})" if items else "frozenset()"
        return "[" + ", ".join(items) + "]"
    if kind is ValueKind.RECORD:
        entries = (f"{to_literal(key)}: {to_literal(item)}" for key, item in record_items(value))
        return "{" + ", ".join(entries) + "}"
    assert_never(kind)


def to_template(text: str) -> str:
    """Python string literal carrying serialized snapshot ``text``.

    Backslashes are escaped, and so is every quote that could close the
    literal early. Multi-line text uses a triple-quoted literal.
    """
    escaped = text.replace("\\", "\\\\").replace("\r", "\\r").replace("\x00", "\\x00")
    if "\n" in text:
        # Within a run of quotes only the last stays bare; a final quote is
        # escaped so it cannot merge with the closing delimiter.
        return '"""' + _QUOTE_RUN.sub(r'\\"', escaped) + '"""'
    if '"' in text and "'" not in text:
        return f"'{escaped}'"
    return '"' + escaped.replace('"', '\\"') + '"'


def add_extra_line_breaks(text: str) -> str:
    return f"\n{text}\n" if "\n" in text else text


def remove_extra_line_breaks(text: str) -> str:
    if len(text) > 2 and text.startswith("\n") and text.endswith("\n"):
        return text[1:-1]
    return text


def indent_snapshot(text: str, indentation: str, unit: str) -> str:
    """Indent a multi-line snapshot one level deeper than its call site.

    The first line is left alone, blank lines stay blank and the last line
    lines up with the call so the closing quotes sit at its indentation.
    """
    lines = text.split("\n")
    if len(lines) == 1:
        return text
    indented = [lines[0]]
    for line in lines[1:-1]:
        indented.append(line if line == "" else indentation + unit + line)
    indented.append(indentation + lines[-1])
    return "\n".join(indented)


def strip_added_indentation(snapshot: str) -> str:
    """Undo :func:`indent_snapshot` for a snapshot read back from source."""
    match = _FIRST_INDENTATION.search(snapshot)
    if not match or not match.group(1):
        return snapshot
    indentation = match.group(1)
    lines = snapshot.split("\n")
    if len(lines) <= 2:
        return snapshot
    if lines[0].strip() or lines[-1].strip():
        return snapshot
    for index in range(1, len(lines) - 1):
        if lines[index] == "":
            continue
        if not lines[index].startswith(indentation):
            # Mixed indentation: leave the snapshot untouched.
            return snapshot
        lines[index] = lines[index][len(indentation):]
    lines[-1] = ""
    return "\n".join(lines)
