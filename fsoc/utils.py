"""Shared utility functions for the fsoc CLI."""

import json
import sys
from typing import Any, Dict, Iterable, Tuple

import click


class ExitCodes:
    """Standard exit codes for CLI operations."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    INVALID_INPUT = 2
    NOT_FOUND = 3
    NOT_CONFIGURED = 6


def format_success(message: str, data=None) -> None:
    """Format success messages consistently.

    Args:
        message: Success message to display
        data: Optional data to display with the message
    """
    click.echo(f"✓ {message}")
    if data:
        for key, value in data.items():
            click.echo(f"  {key}: {value}")


def exit_with_error(message: str, code: int = ExitCodes.GENERAL_ERROR) -> None:
    """Print an error to stderr and exit with the given code."""
    click.echo(f"✗ {message}", err=True)
    sys.exit(code)


def quote_arguments(args: Iterable[str]) -> str:
    """Render an argument list with each argument individually quoted.

    ``["a", "b c"]`` renders as ``["a" "b c"]`` so embedded whitespace stays
    unambiguous in the log.
    """
    return "[" + " ".join(json.dumps(str(arg)) for arg in args) + "]"


def format_flags(flags: Iterable[Tuple[str, Any]]) -> str:
    """Render flag assignments as ``[name="value" ...]``."""
    parts = []
    for name, value in flags:
        if isinstance(value, bool):
            value = "true" if value else "false"
        parts.append(f"{name}={json.dumps(str(value))}")
    return "[" + " ".join(parts) + "]"


def mask_secret(value: str, visible: int = 4) -> str:
    """Mask all but the last few characters of a secret."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


def project_fields(item: Dict[str, Any], fields: str) -> Dict[str, Any]:
    """Keep only the comma-separated top-level keys named in ``fields``."""
    wanted = [name.strip() for name in fields.split(",") if name.strip()]
    if not wanted:
        return item
    return {name: item[name] for name in wanted if name in item}
