"""Shell completion functionality for fsoc."""

from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
from click.shell_completion import get_completion_class

from .gate import ExecutionContext, pass_execution

PROG_NAME = "fsoc"
COMPLETE_VAR = "_FSOC_COMPLETE"


def generate_completion_script(cli: click.Command, shell: str) -> Optional[str]:
    """Generate the completion script for ``shell`` using click's completion classes."""
    completion_class = get_completion_class(shell)
    if completion_class is None:
        return None
    return completion_class(cli, {}, PROG_NAME, COMPLETE_VAR).source()


def install_bash_completion(completion_script: str) -> Path:
    """Install bash completion script."""
    completion_dir = Path.home() / ".bash_completion.d"
    completion_dir.mkdir(exist_ok=True)
    completion_file = completion_dir / PROG_NAME
    completion_file.write_text(completion_script)

    click.echo(f"✓ Bash completion installed to {completion_file}")
    click.echo("To activate, reload your shell or run:")
    click.echo(f"  source {completion_file}")
    return completion_file


def install_zsh_completion(completion_script: str) -> Path:
    """Install zsh completion script."""
    completion_dir = Path.home() / ".zsh_completions"
    completion_dir.mkdir(exist_ok=True)
    completion_file = completion_dir / f"_{PROG_NAME}"
    completion_file.write_text(completion_script)

    click.echo(f"✓ Zsh completion installed to {completion_file}")
    click.echo("To activate, add this to your ~/.zshrc:")
    click.echo("  fpath=(~/.zsh_completions $fpath)")
    click.echo("  autoload -U compinit && compinit")
    return completion_file


def install_fish_completion(completion_script: str) -> Path:
    """Install fish completion script."""
    completion_dir = Path.home() / ".config" / "fish" / "completions"
    completion_dir.mkdir(parents=True, exist_ok=True)
    completion_file = completion_dir / f"{PROG_NAME}.fish"
    completion_file.write_text(completion_script)

    click.echo(f"✓ Fish completion installed to {completion_file}")
    click.echo("Completion is now active (restart fish if needed)")
    return completion_file


INSTALLERS: Dict[str, Callable[[str], Path]] = {
    "bash": install_bash_completion,
    "zsh": install_zsh_completion,
    "fish": install_fish_completion,
}


def register_completion_command(cli: Any) -> None:
    """Register the completion command group with the CLI.

    The per-shell subcommands run without a configured profile.
    """

    @cli.group()
    def completion() -> None:
        """Generate and optionally install shell completion scripts.

        Examples:
            # Print the bash completion script
            fsoc completion bash

            # Install completion for zsh
            fsoc completion zsh --install
        """
        pass

    def make_shell_command(shell: str) -> None:
        @completion.command(name=shell, help=f"Generate the {shell} completion script.")
        @click.option("--install", is_flag=True, help="Install completion script for the shell")
        @pass_execution
        def shell_command(execution: ExecutionContext, install: bool) -> None:
            ctx = click.get_current_context()
            script = generate_completion_script(ctx.find_root().command, shell)
            if not script:
                raise click.ClickException(f"Unsupported shell: {shell}")
            if install:
                path = INSTALLERS[shell](script)
                execution.log.info("completion installed", shell=shell, path=str(path))
            else:
                click.echo(script)

    for shell in INSTALLERS:
        make_shell_command(shell)
