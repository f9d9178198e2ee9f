"""CLI commands for managing fsoc configuration profiles."""

import sys
from typing import Any, Dict, Optional

import click

from .gate import ExecutionContext, pass_execution
from .output import output_detail, output_formatted_list
from .profiles import Profile, ProfileConfig, check_config_file_permissions
from .utils import ExitCodes, exit_with_error, format_success, mask_secret

AUTH_METHODS = ["oauth", "service-principal", "agent-principal", "local", "jwt"]


def _profile_row(profile: Profile, current: Optional[str]) -> Dict[str, Any]:
    return {
        "name": profile.name,
        "current": profile.name == current,
        "auth_method": profile.auth_method,
        "url": profile.url,
        "tenant": profile.tenant,
    }


def register_config_commands(cli: Any) -> None:
    """Register the 'config' command group and its subcommands."""

    @cli.group()
    def config() -> None:
        """Manage fsoc configuration profiles.

        Profiles let you keep access settings for several tenants and
        switch between them with "fsoc config use" or --profile.
        """
        pass

    @config.command(name="set", bypass_config=True)
    @click.option(
        "--auth",
        "auth_method",
        type=click.Choice(AUTH_METHODS, case_sensitive=False),
        help="Authentication method",
    )
    @click.option("--url", help="Tenant URL, e.g. https://mytenant.observe.example.com")
    @click.option("--tenant", help="Tenant ID")
    @click.option("--user", help="User name for local authentication")
    @click.option("--token", help="Access token")
    @click.option("--secret-file", type=click.Path(dir_okay=False), help="Credentials file")
    @pass_execution
    def set_context(
        execution: ExecutionContext,
        auth_method: Optional[str],
        url: Optional[str],
        tenant: Optional[str],
        user: Optional[str],
        token: Optional[str],
        secret_file: Optional[str],
    ) -> None:
        """Create or update the active profile.

        The profile is the one selected with --profile, else the current one.
        The first profile created becomes current.

        Examples:
            fsoc config set --auth oauth --url https://mytenant.observe.example.com
            fsoc --profile prod config set --auth service-principal --secret-file creds.json
        """
        if url is not None:
            url = url.strip()
            if not url:
                raise click.ClickException("URL cannot be empty.")
            if url.startswith("http://"):
                click.echo("⚠️  Warning: Converting HTTP to HTTPS for security.")
                url = url.replace("http://", "https://", 1)
            elif not url.startswith("https://"):
                url = f"https://{url}"

        cfg = ProfileConfig.load_or_empty(execution.config_path)
        name = execution.profile_name
        profile = cfg.get_profile(name) or Profile(name=name)

        updates = {
            "auth_method": auth_method.lower() if auth_method else None,
            "url": url,
            "tenant": tenant,
            "user": user,
            "token": token,
            "secret_file": secret_file,
        }
        changed = {key: value for key, value in updates.items() if value is not None}
        if not changed:
            exit_with_error("Nothing to set; specify at least one option.", ExitCodes.INVALID_INPUT)

        for key, value in changed.items():
            setattr(profile, key, value)
        cfg.add_profile(profile)
        cfg.save(execution.config_path)

        execution.log.info("profile updated", profile=name, fields=sorted(changed))
        format_success(f"Profile '{name}' saved to {execution.config_path}")

    @config.command(name="use", bypass_config=True)
    @click.argument("name")
    @pass_execution
    def use_profile(execution: ExecutionContext, name: str) -> None:
        """Switch to a different profile."""
        cfg = ProfileConfig.load_or_empty(execution.config_path)

        if name not in cfg.profiles:
            if cfg.profiles:
                click.echo(f"Available profiles: {', '.join(cfg.profiles.keys())}", err=True)
            exit_with_error(
                f'Profile "{name}" not found; use "fsoc config set" to create it.',
                ExitCodes.NOT_FOUND,
            )

        cfg.set_current_profile(name)
        cfg.save(execution.config_path)
        execution.log.info("current profile changed", profile=name)
        click.echo(f"✓ Switched to profile '{name}'")

    @config.command(name="list", bypass_config=True)
    @pass_execution
    def list_profiles(execution: ExecutionContext) -> None:
        """List all configured profiles."""
        cfg = ProfileConfig.load_or_empty(execution.config_path)
        items = [_profile_row(p, cfg.current_profile) for p in cfg.list_profiles()]

        warning = check_config_file_permissions(execution.config_path)
        if warning:
            execution.log.warning(warning)

        def format_row(item: Dict[str, Any]) -> list:
            return [
                "*" if item["current"] else "",
                item["name"],
                item["auth_method"] or "-",
                item["url"] or "-",
            ]

        output_formatted_list(
            items=items,
            output_format=execution.output,
            headers=["", "NAME", "AUTH", "URL"],
            column_widths=[1, 15, 18, 45],
            row_formatter_func=format_row,
            empty_message='No profiles configured. Run "fsoc config set" to create one.',
            total_label="profile(s)",
            fields=execution.fields,
        )

    @config.command(name="show")
    @click.option("--show-secrets", is_flag=True, help="Do not mask tokens")
    @pass_execution
    def show(execution: ExecutionContext, show_secrets: bool) -> None:
        """Show the active profile."""
        assert execution.profile is not None
        data = execution.profile.to_dict()
        if not show_secrets:
            for key in ("token", "refresh_token"):
                if key in data:
                    data[key] = mask_secret(data[key])
        output_detail(data, execution.output, execution.fields)

    @config.command(name="delete", bypass_config=True)
    @click.argument("name")
    @click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
    @pass_execution
    def delete_profile(execution: ExecutionContext, name: str, force: bool) -> None:
        """Delete a profile."""
        cfg = ProfileConfig.load_or_empty(execution.config_path)

        if name not in cfg.profiles:
            exit_with_error(f"Profile '{name}' not found.", ExitCodes.NOT_FOUND)

        if not force:
            if not click.confirm(f"Delete profile '{name}'?"):
                click.echo("Aborted.")
                sys.exit(ExitCodes.GENERAL_ERROR)

        was_current = cfg.current_profile == name
        cfg.delete_profile(name)
        cfg.save(execution.config_path)

        execution.log.info("profile deleted", profile=name)
        click.echo(f"✓ Profile '{name}' deleted.")
        if was_current and cfg.current_profile:
            click.echo(f"  Current profile is now: {cfg.current_profile}")
