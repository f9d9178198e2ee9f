"""Pre-execution gate run once per fsoc invocation.

Before a command handler runs, the gate sets up diagnostics, resolves the
active profile, loads its configuration and decides whether the command may
run. Commands that must work on an unconfigured machine opt out with
``bypass_config=True`` at registration time; everything else is refused when
no usable profile exists.
"""

import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Tuple

import click
from click.core import ParameterSource

from .diagnostics import Diagnostics, setup_diagnostics
from .profiles import (
    ConfigReadError,
    HomeDirectoryError,
    Profile,
    ProfileFlag,
    ProfileResolution,
    ProfileStore,
    YamlProfileStore,
    resolve_config_path,
    resolve_profile,
)
from .utils import ExitCodes, format_flags, quote_arguments
from .version import get_version_fields

HELP_COMMAND = "help"
COMPLETION_COMMAND = "completion"

MSG_UNREADABLE = (
    'fsoc is not configured, please use "fsoc config set" to configure an initial context'
)
MSG_ABSENT = (
    'fsoc is not fully configured: missing profile "{profile}"; '
    'please use "fsoc config set" to configure it'
)
MSG_NO_HOME = (
    "unable to determine the home directory to locate the config file; "
    "use --config <path> to specify it"
)


class GateState(Enum):
    START = "start"
    DIAGNOSTICS_READY = "diagnostics-ready"
    PROFILE_RESOLVED = "profile-resolved"
    CONFIG_LOADED = "config-loaded"
    ADMITTED = "admitted"
    REJECTED = "rejected"


class ConfigStatus(Enum):
    OK = "ok"
    ABSENT = "absent"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class CommandInfo:
    """Identity of the command being invoked."""

    name: str
    parent: Optional[str] = None
    path: Tuple[str, ...] = ()
    bypass_config: bool = False


def requires_profile(command: CommandInfo) -> bool:
    """Whether ``command`` needs a configured profile to run.

    Exempt are commands registered with ``bypass_config=True``, the help
    command, and the per-shell subcommands of the completion command.
    """
    if command.bypass_config:
        return False
    if command.name == HELP_COMMAND:
        return False
    if command.parent == COMPLETION_COMMAND:
        return False
    return True


@dataclass(frozen=True)
class InvocationContext:
    """Everything the gate knows about one invocation."""

    command: CommandInfo
    arguments: Tuple[str, ...] = ()
    supplied_flags: Tuple[Tuple[str, Any], ...] = ()
    profile_flag: ProfileFlag = ProfileFlag.from_command_line(None, supplied=False)
    env_profile: Optional[str] = None
    config_file: Optional[str] = None
    log_file: Optional[str] = None
    verbose: bool = False
    output: str = "auto"
    fields: Optional[str] = None


@dataclass
class GateResult:
    """Decision reached by the gate."""

    state: GateState
    history: Tuple[GateState, ...]
    profile_name: Optional[str] = None
    config_status: Optional[ConfigStatus] = None
    profile: Optional[Profile] = None
    store: Optional[ProfileStore] = None
    resolution: Optional[ProfileResolution] = None
    message: Optional[str] = None

    @property
    def admitted(self) -> bool:
        return self.state is GateState.ADMITTED


@dataclass
class ExecutionContext:
    """Per-invocation state handed to command handlers through ``ctx.obj``."""

    invocation: InvocationContext
    log: Any
    profile_name: str
    config_status: ConfigStatus
    profile: Optional[Profile]
    store: ProfileStore

    @property
    def output(self) -> str:
        return self.invocation.output

    @property
    def fields(self) -> Optional[str]:
        return self.invocation.fields

    @property
    def config_path(self) -> Path:
        return self.store.path


pass_execution = click.make_pass_decorator(ExecutionContext)


def evaluate_gate(
    invocation: InvocationContext,
    diagnostics: Diagnostics,
    store_factory: Callable[[Path], ProfileStore] = YamlProfileStore,
    environ: Optional[Mapping[str, str]] = None,
) -> GateResult:
    """Run the gate for an invocation whose diagnostics are already set up.

    Returns:
        GateResult in state ADMITTED or REJECTED. A rejection has already been
        logged at CRITICAL level; exiting the process is left to the caller.
    """
    environ = os.environ if environ is None else environ
    log = diagnostics.log
    history = [GateState.START, GateState.DIAGNOSTICS_READY]

    log.info("fsoc version", **get_version_fields())
    log.info(
        "fsoc command line",
        command=invocation.command.name,
        arguments=quote_arguments(invocation.arguments),
        flags=format_flags(invocation.supplied_flags),
    )

    try:
        config_path = resolve_config_path(invocation.config_file)
    except HomeDirectoryError as e:
        log.critical(MSG_NO_HOME, error=str(e))
        history.append(GateState.REJECTED)
        return GateResult(GateState.REJECTED, tuple(history), message=MSG_NO_HOME)

    store = store_factory(config_path)
    resolution = resolve_profile(
        invocation.profile_flag, store.current_profile_name(), invocation.env_profile
    )
    if resolution.overridden:
        try:
            persisted = store.set_current_profile(resolution.name)
        except RuntimeError as e:
            log.warning("failed to persist profile override", profile=resolution.name, error=str(e))
            persisted = False
        if not persisted:
            log.info("profile override applies to this invocation only", profile=resolution.name)
    history.append(GateState.PROFILE_RESOLVED)

    profile_name = resolution.name
    profile: Optional[Profile] = None
    read_error: Optional[str] = None
    try:
        config = store.load()
    except ConfigReadError as e:
        status = ConfigStatus.UNREADABLE
        read_error = str(e)
    else:
        entry = config.get_profile(profile_name)
        if entry is not None:
            profile = entry.with_env_overrides(environ)
        status = ConfigStatus.OK if profile and profile.is_usable() else ConfigStatus.ABSENT
    history.append(GateState.CONFIG_LOADED)

    bypass = not requires_profile(invocation.command)
    result = GateResult(
        GateState.ADMITTED,
        tuple(history),
        profile_name=profile_name,
        config_status=status,
        profile=profile,
        store=store,
        resolution=resolution,
    )

    if status is ConfigStatus.OK or bypass:
        if status is ConfigStatus.UNREADABLE:
            log.info(
                f"Unable to read config file ({read_error}), proceeding without a config",
                profile=profile_name,
                existing=False,
                profile_source=resolution.source,
            )
        else:
            log.info(
                "fsoc context",
                config_file=str(config_path),
                profile=profile_name,
                existing=profile is not None,
                profile_source=resolution.source,
                bypass=bypass,
            )
        result.history += (GateState.ADMITTED,)
        return result

    if status is ConfigStatus.UNREADABLE:
        message = MSG_UNREADABLE
    else:
        message = MSG_ABSENT.format(profile=profile_name)
    log.critical(message, config_file=str(config_path), profile=profile_name)
    result.state = GateState.REJECTED
    result.history += (GateState.REJECTED,)
    result.message = message
    return result


def _context_chain(ctx: click.Context) -> Tuple[click.Context, ...]:
    chain = []
    current: Optional[click.Context] = ctx
    while current is not None:
        chain.append(current)
        current = current.parent
    return tuple(reversed(chain))


def _flag_name(param: click.Option) -> str:
    """The long flag name as typed, without leading dashes."""
    for opt in param.opts:
        if opt.startswith("--"):
            return opt[2:]
    return (param.name or "").replace("_", "-")


def build_invocation(ctx: click.Context) -> InvocationContext:
    """Build the InvocationContext for the leaf command context ``ctx``."""
    chain = _context_chain(ctx)
    root = chain[0]

    command = CommandInfo(
        name=ctx.command.name or ctx.info_name or "",
        parent=chain[-2].command.name if len(chain) > 1 else None,
        path=tuple(c.command.name or c.info_name or "" for c in chain),
        bypass_config=getattr(ctx.command, "bypass_config", False),
    )

    # Only flags typed on the command line, not defaults or environment
    supplied = []
    for c in chain:
        for param in c.command.params:
            if not isinstance(param, click.Option) or param.name is None:
                continue
            if c.get_parameter_source(param.name) is ParameterSource.COMMANDLINE:
                supplied.append((_flag_name(param), c.params.get(param.name)))

    arguments = []
    for param in ctx.command.params:
        if isinstance(param, click.Argument) and param.name is not None:
            value = ctx.params.get(param.name)
            if value is None:
                continue
            if isinstance(value, (list, tuple)):
                arguments.extend(str(v) for v in value)
            else:
                arguments.append(str(value))

    params = root.params
    profile_source = root.get_parameter_source("profile")
    return InvocationContext(
        command=command,
        arguments=tuple(arguments),
        supplied_flags=tuple(supplied),
        profile_flag=ProfileFlag.from_command_line(
            params.get("profile"), supplied=profile_source is ParameterSource.COMMANDLINE
        ),
        env_profile=(
            params.get("profile") or None
            if profile_source is ParameterSource.ENVIRONMENT
            else None
        ),
        config_file=params.get("config"),
        log_file=params.get("log"),
        verbose=bool(params.get("verbose")),
        output=params.get("output") or "auto",
        fields=params.get("fields"),
    )


def run_invocation_gate(ctx: click.Context) -> ExecutionContext:
    """Gate the leaf command of ``ctx``; exits the process on rejection."""
    invocation = build_invocation(ctx)
    diagnostics = setup_diagnostics(invocation.log_file, invocation.verbose)
    ctx.find_root().call_on_close(diagnostics.close)

    result = evaluate_gate(invocation, diagnostics)
    if not result.admitted:
        sys.exit(ExitCodes.NOT_CONFIGURED)

    assert result.store is not None and result.profile_name is not None
    assert result.config_status is not None
    execution = ExecutionContext(
        invocation=invocation,
        log=diagnostics.log,
        profile_name=result.profile_name,
        config_status=result.config_status,
        profile=result.profile,
        store=result.store,
    )
    ctx.obj = execution
    return execution


class GatedCommand(click.Command):
    """A command whose invocation passes through the gate first.

    Pass ``bypass_config=True`` at registration for commands that must run
    without a configured profile.
    """

    def __init__(self, *args: Any, bypass_config: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.bypass_config = bypass_config

    def invoke(self, ctx: click.Context) -> Any:
        run_invocation_gate(ctx)
        return super().invoke(ctx)


class GatedGroup(click.Group):
    """Group whose subcommands are gated commands and groups."""

    command_class = GatedCommand
    group_class = type
