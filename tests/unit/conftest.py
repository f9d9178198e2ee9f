"""Unit test configuration.

Points HOME at a temporary directory and strips FSOC_* variables so tests
never read or rewrite the developer's real ~/.fsoc, and sends the log file
to a temporary path instead of the shared temp-dir default.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import pytest
import yaml


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Give every test its own home directory and a clean environment."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in list(os.environ):
        if name.startswith("FSOC_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FSOC_LOG", str(tmp_path / "fsoc.log"))
    return home


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    """Location of the log file written by CLI invocations."""
    return tmp_path / "fsoc.log"


@pytest.fixture
def config_file(isolated_environment: Path) -> Path:
    """Default config file location inside the isolated home."""
    return isolated_environment / ".fsoc"



@pytest.fixture
def write_config() -> Callable[..., Path]:
    """Return a helper that writes a registry file with the given contexts."""

    def _write(
        path: Path,
        contexts: Dict[str, Dict[str, Any]],
        current: Optional[str] = None,
    ) -> Path:
        data: Dict[str, Any] = {
            "contexts": [{"name": name, **values} for name, values in contexts.items()],
        }
        if current:
            data["current_context"] = current
        path.write_text(yaml.safe_dump(data))
        path.chmod(0o600)
        return path

    return _write


@pytest.fixture
def read_config() -> Callable[[Path], Dict[str, Any]]:
    """Return a helper that reads a registry file back."""
    return lambda path: yaml.safe_load(path.read_text())
