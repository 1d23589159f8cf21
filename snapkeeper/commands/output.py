"""CLI output: a stable JSON envelope or plain human-readable lines."""

from __future__ import annotations

import json
from typing import Callable, Iterable

SCHEMA_VERSION = "v1"


def render_output(
    *,
    command: str,
    payload: dict,
    json_output: bool,
    human_lines: Iterable[str] = (),
    status: str = "ok",
) -> list[str]:
    """Render a command result; JSON keys are sorted so output diffs cleanly."""
    if not json_output:
        return list(human_lines)
    envelope = {
        "schema_version": SCHEMA_VERSION,
        "command": command,
        "status": status,
        "data": payload,
    }
    return [json.dumps(envelope, sort_keys=True, separators=(",", ":"), ensure_ascii=False)]


def emit_output(
    *,
    command: str,
    payload: dict,
    json_output: bool,
    output_sink: Callable[[str], object] = print,
    human_lines: Iterable[str] = (),
    status: str = "ok",
) -> None:
    for line in render_output(
        command=command,
        payload=payload,
        json_output=json_output,
        human_lines=human_lines,
        status=status,
    ):
        output_sink(line)
