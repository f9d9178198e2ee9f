"""Version information for fsoc."""

import platform
import sys
from pathlib import Path
from typing import Dict

import tomllib


def get_version() -> str:
    """Get version from _version.py (built binary) or pyproject.toml (development)."""
    try:
        from ._version import __version__  # type: ignore[import-not-found]

        return __version__
    except ImportError:
        try:
            pyproject_path = Path(__file__).parent.parent / "pyproject.toml"

            with open(pyproject_path, "rb") as f:
                pyproject_data = tomllib.load(f)

            return pyproject_data["project"]["version"]
        except (OSError, KeyError, tomllib.TOMLDecodeError):
            return "unknown"


def get_version_fields() -> Dict[str, str]:
    """Version fields attached to the first record of every invocation."""
    return {
        "version": get_version(),
        "python": platform.python_version(),
        "platform": sys.platform,
    }
