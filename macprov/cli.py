"""
macprov CLI - Bulk local account provisioning for macOS.
"""

import logging
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console

from .directory import DsclDirectory
from .errors import ConfigurationError, MacProvError
from .filesystem import LocalFilesystem
from .formatters import ProvisioningFormatter
from .models import ProvisioningRequest, ProvisioningStatus
from .policy import PrivilegePolicy
from .preferences import DefaultsPreferenceStore, detect_system_version
from .prompts import RequestPrompter
from .provisioner import AccountProvisioner
from .settings import MacProvSettings, get_settings
from .shell import CommandRunner, ensure_privileged

# Setup
app = typer.Typer(
    name="macprov",
    help="Bulk local account provisioning for macOS",
    add_completion=False,
)
console = Console()
formatter = ProvisioningFormatter(console)


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


def _require_root() -> None:
    """Exit unless running with an effective UID of 0.

    Raises:
        SystemExit: If not running as root
    """
    try:
        ensure_privileged()
    except ConfigurationError as e:
        console.print(f"[bold red]✗ Error:[/bold red] {e}")
        console.print("[dim]Hint: run again with sudo[/dim]")
        raise typer.Exit(code=1)


def _resolve_settings(
    run_all: bool = False, default_yes: bool = False, verbose: Optional[bool] = None
) -> MacProvSettings:
    """Apply command-line overrides on top of the loaded settings."""
    settings = get_settings()
    overrides = {}
    if run_all:
        overrides["run_all"] = True
    if default_yes:
        overrides["default_yes"] = True
    if verbose is not None:
        overrides["verbose"] = verbose
        logging.getLogger().setLevel(logging.DEBUG if verbose else logging.WARNING)
    return settings.model_copy(update=overrides) if overrides else settings


def _initialize_provisioner(settings: MacProvSettings) -> AccountProvisioner:
    """Wire the provisioner to the real macOS collaborators."""
    runner = CommandRunner(verbose=settings.verbose)
    filesystem = LocalFilesystem()
    return AccountProvisioner(
        directory=DsclDirectory(runner),
        filesystem=filesystem,
        preferences=DefaultsPreferenceStore(runner),
        policy=PrivilegePolicy(settings.sudoers_dir, settings.pam_dir, filesystem),
        settings=settings,
        version_provider=lambda: detect_system_version(runner),
    )


def _handle_command_error(e: Exception, command_type: str) -> None:
    """Print a failure line and exit.

    Raises:
        SystemExit: Always exits with code 1
    """
    console.print(f"\n[bold red]✗ {command_type.capitalize()} failed:[/bold red] {e}")
    raise typer.Exit(code=1)


@app.command()
def provision(
    count: Optional[int] = typer.Option(
        None, "--count", "-n", help="Number of users to create (prompted if omitted)"
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="Username prefix; usernames are <prefix><uid>"
    ),
    shell: Optional[str] = typer.Option(None, "--shell", help="Login shell for every user"),
    group_id: Optional[int] = typer.Option(None, "--group-id", help="Primary group ID"),
    create_homes: Optional[bool] = typer.Option(
        None, "--create-homes/--no-create-homes", help="Create home directories"
    ),
    disable_spotlight: Optional[bool] = typer.Option(
        None, "--disable-spotlight/--no-disable-spotlight", help="Disable Spotlight per user"
    ),
    password: Optional[str] = typer.Option(
        None, "--password", help="Password for all users (empty for none)"
    ),
    disable_passwords: Optional[bool] = typer.Option(
        None, "--disable-passwords/--no-disable-passwords",
        help="Relax PAM so passwords are not required (INSECURE)",
    ),
    all_sudoers: Optional[bool] = typer.Option(
        None, "--all-sudoers/--no-all-sudoers",
        help="Grant every user passwordless sudo (EXTREMELY INSECURE)",
    ),
    run_all: bool = typer.Option(False, "--all", help="Answer yes to every question"),
    default_yes: bool = typer.Option(False, "--yes", help="Default to 'yes' for all prompts"),
    verbose: Optional[bool] = typer.Option(
        None, "--verbose/--quiet", help="Show or hide detailed command output"
    ),
):
    """Create local users in bulk with sequential UIDs."""
    _require_root()
    settings = _resolve_settings(run_all, default_yes, verbose)
    formatter.section_header("👥", "Bulk User Creation")

    prompter = RequestPrompter(settings)
    if count is None and not prompter.confirm("Create multiple users in bulk?"):
        console.print("Skipping bulk user creation.")
        return

    try:
        request = prompter.collect(
            count=count,
            prefix=prefix,
            shell=shell,
            group_id=group_id,
            create_homes=create_homes,
            disable_spotlight=disable_spotlight,
            password=password,
            disable_passwords=disable_passwords,
            all_sudoers=all_sudoers,
        )
    except (MacProvError, PydanticValidationError) as e:
        _handle_command_error(e, "bulk user creation")

    try:
        provisioner = _initialize_provisioner(settings)
        with console.status(f"Creating {request.count} users with prefix '{request.name_prefix}'..."):
            result = provisioner.provision(request)
    except MacProvError as e:
        _handle_command_error(e, "bulk user creation")

    formatter.print_result(result)
    if result.status == ProvisioningStatus.VALIDATION_FAILED:
        raise typer.Exit(code=1)


@app.command()
def plan(
    count: int = typer.Option(..., "--count", "-n", help="Number of users to create"),
    prefix: Optional[str] = typer.Option(None, "--prefix", help="Username prefix"),
):
    """Preview the UIDs and usernames a run would use, without changes."""
    settings = get_settings()
    console.print(
        formatter.command_panel("macprov Plan", "cyan", f"Users root: {settings.users_root}")
    )

    try:
        request = ProvisioningRequest(
            count=count, name_prefix=prefix or settings.default_prefix
        )
        provisioner = _initialize_provisioner(settings)
        result = provisioner.plan(request)
    except (MacProvError, PydanticValidationError) as e:
        _handle_command_error(e, "plan")

    formatter.print_plan(result)
    console.print("\n[dim]Run 'sudo macprov provision' to create these users.[/dim]")


@app.command()
def version():
    """Show macprov version."""
    from . import __version__

    console.print(f"macprov version: [bold]{__version__}[/bold]")


if __name__ == "__main__":
    app()
