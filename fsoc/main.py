"""fsoc entry points."""

import os
import tempfile
from typing import Optional, Tuple

import click

from .completion_click import register_completion_command
from .config_click import register_config_commands
from .gate import ExecutionContext, GatedGroup, pass_execution
from .output import OUTPUT_FORMATS, output_detail
from .profiles import DEFAULT_CONFIG_FILE
from .version import get_version_fields

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"], auto_envvar_prefix="FSOC")

DEFAULT_LOG_FILE = os.path.join(tempfile.gettempdir(), "fsoc.log")


@click.group(
    name="fsoc",
    cls=GatedGroup,
    context_settings=CONTEXT_SETTINGS,
    invoke_without_command=True,
)
@click.option(
    "--config",
    type=click.Path(dir_okay=False),
    help=f"config file (default is {DEFAULT_CONFIG_FILE})",
)
@click.option("--profile", help='access profile (default is current or "default")')
@click.option(
    "--output",
    "-o",
    type=click.Choice(OUTPUT_FORMATS, case_sensitive=False),
    default="auto",
    show_default=True,
    help="output format",
)
@click.option("--fields", help="comma-separated fields to keep in the output")
@click.option("--verbose", "-v", is_flag=True, help="Enable detailed output")
@click.option(
    "--log",
    type=click.Path(dir_okay=False),
    default=DEFAULT_LOG_FILE,
    show_default=True,
    help="location of the fsoc log file",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    profile: Optional[str],
    output: str,
    fields: Optional[str],
    verbose: bool,
    log: str,
) -> None:
    """fsoc - platform control tool.

    Examples:

        fsoc config set --auth oauth --url https://mytenant.observe.example.com

        fsoc --profile prod config show

        fsoc -o json config list
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(bypass_config=True)
@pass_execution
def version(execution: ExecutionContext) -> None:
    """Show fsoc version information."""
    output_detail(get_version_fields(), execution.output, execution.fields)


@cli.command(name="help")
@click.argument("command_path", nargs=-1)
@click.pass_context
def help_command(ctx: click.Context, command_path: Tuple[str, ...]) -> None:
    """Show help for a command, e.g. "fsoc help config set"."""
    target: click.Command = ctx.find_root().command
    target_ctx = ctx.find_root()
    for name in command_path:
        if not isinstance(target, click.Group):
            raise click.UsageError(f"'{target.name}' has no subcommands")
        sub = target.get_command(target_ctx, name)
        if sub is None:
            raise click.UsageError(f"Unknown command '{name}'")
        target_ctx = click.Context(sub, info_name=name, parent=target_ctx)
        target = sub
    click.echo(target.get_help(target_ctx))


register_config_commands(cli)
register_completion_command(cli)
