"""Unit tests for the invocation gate."""

import io
import json
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pytest

from fsoc.diagnostics import Diagnostics, setup_diagnostics
from fsoc.gate import (
    CommandInfo,
    ConfigStatus,
    GateState,
    InvocationContext,
    evaluate_gate,
    requires_profile,
)
from fsoc.profiles import ConfigReadError, Profile, ProfileConfig, ProfileFlag


class FakeStore:
    """In-memory ProfileStore."""

    def __init__(self, status: str, current: Optional[str] = "P1") -> None:
        self.path = Path("/nonexistent/.fsoc")
        self.status = status
        self.current = current
        self.persisted: List[str] = []

    def current_profile_name(self) -> Optional[str]:
        return None if self.status == "unreadable" else self.current

    def set_current_profile(self, name: str) -> bool:
        if self.status == "unreadable":
            return False
        self.current = name
        self.persisted.append(name)
        return True

    def load(self) -> ProfileConfig:
        if self.status == "unreadable":
            raise ConfigReadError("config file /nonexistent/.fsoc not found")
        cfg = ProfileConfig(current_profile=self.current)
        if self.status == "ok":
            for name in ("P1", "P2"):
                cfg.profiles[name] = Profile(name=name, url=f"https://{name.lower()}.example.com")
        return cfg


@pytest.fixture
def diagnostics(tmp_path: Path) -> Iterator[Diagnostics]:
    diag = setup_diagnostics(str(tmp_path / "fsoc.log"), verbose=True, stream=io.StringIO())
    yield diag
    diag.close()


def invocation(
    command: CommandInfo,
    profile: Optional[str] = None,
    supplied: bool = False,
    **kwargs: Any,
) -> InvocationContext:
    return InvocationContext(
        command=command,
        profile_flag=ProfileFlag.from_command_line(profile, supplied=supplied),
        **kwargs,
    )


def run(inv: InvocationContext, store: FakeStore, diagnostics: Diagnostics, **kwargs: Any):
    return evaluate_gate(inv, diagnostics, store_factory=lambda path: store, environ={}, **kwargs)


def file_records(diagnostics: Diagnostics) -> List[Dict[str, Any]]:
    for handler in diagnostics.logger.handlers:
        handler.flush()
    assert diagnostics.log_file is not None
    return [json.loads(line) for line in diagnostics.log_file.read_text().splitlines()]


EXEMPT_COMMANDS = {
    "annotated": CommandInfo(name="set", parent="config", bypass_config=True),
    "help": CommandInfo(name="help", parent="fsoc"),
    "completion": CommandInfo(name="bash", parent="completion"),
}
REGULAR_COMMAND = CommandInfo(name="show", parent="config", path=("fsoc", "config", "show"))


class TestBypassPolicy:
    def test_annotated_command_is_exempt(self) -> None:
        assert not requires_profile(EXEMPT_COMMANDS["annotated"])

    def test_help_is_exempt(self) -> None:
        assert not requires_profile(EXEMPT_COMMANDS["help"])

    def test_completion_children_are_exempt(self) -> None:
        assert not requires_profile(EXEMPT_COMMANDS["completion"])

    def test_completion_grandchild_is_not_exempt(self) -> None:
        assert requires_profile(CommandInfo(name="install", parent="bash"))

    def test_regular_command_requires_profile(self) -> None:
        assert requires_profile(REGULAR_COMMAND)


@pytest.mark.parametrize("reason", sorted(EXEMPT_COMMANDS))
@pytest.mark.parametrize("status", ["ok", "absent", "unreadable"])
def test_exempt_commands_always_admitted(
    reason: str, status: str, diagnostics: Diagnostics
) -> None:
    result = run(invocation(EXEMPT_COMMANDS[reason]), FakeStore(status), diagnostics)

    assert result.admitted
    assert result.config_status is ConfigStatus(status)
    assert result.history[-1] is GateState.ADMITTED


@pytest.mark.parametrize("status", ["absent", "unreadable"])
def test_regular_command_rejected_without_config(status: str, diagnostics: Diagnostics) -> None:
    result = run(invocation(REGULAR_COMMAND), FakeStore(status), diagnostics)

    assert not result.admitted
    assert result.state is GateState.REJECTED
    assert result.message is not None
    assert "fsoc config set" in result.message

    critical = [r for r in file_records(diagnostics) if r["level"] == "critical"]
    assert [r["event"] for r in critical] == [result.message]


def test_rejection_messages_are_distinct(diagnostics: Diagnostics) -> None:
    absent = run(invocation(REGULAR_COMMAND), FakeStore("absent"), diagnostics)
    unreadable = run(invocation(REGULAR_COMMAND), FakeStore("unreadable"), diagnostics)

    assert absent.message == (
        'fsoc is not fully configured: missing profile "P1"; '
        'please use "fsoc config set" to configure it'
    )
    assert unreadable.message is not None
    assert "initial context" in unreadable.message


def test_regular_command_admitted_with_config(diagnostics: Diagnostics) -> None:
    result = run(invocation(REGULAR_COMMAND), FakeStore("ok"), diagnostics)

    assert result.admitted
    assert result.profile_name == "P1"
    assert result.profile is not None
    assert result.profile.url == "https://p1.example.com"
    assert result.history == (
        GateState.START,
        GateState.DIAGNOSTICS_READY,
        GateState.PROFILE_RESOLVED,
        GateState.CONFIG_LOADED,
        GateState.ADMITTED,
    )


def test_entry_without_url_is_absent(diagnostics: Diagnostics) -> None:
    store = FakeStore("absent")
    store.load = lambda: ProfileConfig(  # type: ignore[method-assign]
        current_profile="P1", profiles={"P1": Profile(name="P1", auth_method="oauth")}
    )
    result = run(invocation(REGULAR_COMMAND), store, diagnostics)
    assert result.config_status is ConfigStatus.ABSENT
    assert not result.admitted


def test_environment_supplies_missing_url(diagnostics: Diagnostics) -> None:
    store = FakeStore("absent")
    store.load = lambda: ProfileConfig(  # type: ignore[method-assign]
        current_profile="P1", profiles={"P1": Profile(name="P1", auth_method="oauth")}
    )
    result = evaluate_gate(
        invocation(REGULAR_COMMAND),
        diagnostics,
        store_factory=lambda path: store,
        environ={"FSOC_URL": "https://env.example.com"},
    )
    assert result.admitted
    assert result.profile is not None
    assert result.profile.url == "https://env.example.com"


class TestProfileOverride:
    def test_empty_flag_keeps_current(self, diagnostics: Diagnostics) -> None:
        store = FakeStore("ok")
        result = run(invocation(REGULAR_COMMAND, "", supplied=True), store, diagnostics)
        assert result.profile_name == "P1"
        assert store.persisted == []

    def test_value_flag_overrides_and_persists(self, diagnostics: Diagnostics) -> None:
        store = FakeStore("ok")
        result = run(invocation(REGULAR_COMMAND, "P2", supplied=True), store, diagnostics)
        assert result.profile_name == "P2"
        assert store.persisted == ["P2"]
        assert store.current == "P2"

    def test_no_flag_uses_current(self, diagnostics: Diagnostics) -> None:
        store = FakeStore("ok")
        result = run(invocation(REGULAR_COMMAND), store, diagnostics)
        assert result.profile_name == "P1"
        assert store.persisted == []

    def test_override_on_unreadable_config_applies_once(self, diagnostics: Diagnostics) -> None:
        store = FakeStore("unreadable")
        result = run(
            invocation(EXEMPT_COMMANDS["annotated"], "P2", supplied=True), store, diagnostics
        )
        assert result.admitted
        assert result.profile_name == "P2"
        assert store.persisted == []
        events = [r["event"] for r in file_records(diagnostics)]
        assert "profile override applies to this invocation only" in events


def test_gate_is_idempotent(diagnostics: Diagnostics) -> None:
    store = FakeStore("ok")
    inv = invocation(REGULAR_COMMAND, "P2", supplied=True)
    first = run(inv, store, diagnostics)
    second = run(inv, store, diagnostics)
    assert (first.state, first.profile_name) == (second.state, second.profile_name)

    rejected = FakeStore("absent")
    assert run(invocation(REGULAR_COMMAND), rejected, diagnostics).state is GateState.REJECTED
    assert run(invocation(REGULAR_COMMAND), rejected, diagnostics).state is GateState.REJECTED


def test_home_directory_failure_rejects_even_exempt_commands(
    diagnostics: Diagnostics, monkeypatch: Any
) -> None:
    def no_home() -> Path:
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr("fsoc.profiles.Path.home", staticmethod(no_home))
    result = evaluate_gate(invocation(EXEMPT_COMMANDS["help"]), diagnostics, environ={})

    assert result.state is GateState.REJECTED
    assert result.message is not None
    assert "--config" in result.message


def test_command_line_record(diagnostics: Diagnostics) -> None:
    inv = invocation(
        REGULAR_COMMAND,
        arguments=("one", "two words"),
        supplied_flags=(("profile", "P1"), ("verbose", True)),
    )
    run(inv, FakeStore("ok"), diagnostics)

    records = {r["event"]: r for r in file_records(diagnostics)}
    assert "version" in records["fsoc version"]
    line = records["fsoc command line"]
    assert line["command"] == "show"
    assert line["arguments"] == '["one" "two words"]'
    assert line["flags"] == '[profile="P1" verbose="true"]'
    context = records["fsoc context"]
    assert context["profile"] == "P1"
    assert context["existing"] is True
