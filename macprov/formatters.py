"""
Console output formatting for macprov operations.

Plans are shown with `+` markers for accounts that would be created; results
list every allocated account with a success or failure marker.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import AccountState, ProvisioningPlan, ProvisioningResult, ProvisioningStatus


class ProvisioningFormatter:
    """Rich formatter for plan and provision output."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize formatter with Rich console."""
        self.console = console or Console()

        self.colors = {
            'create': 'green',
            'fail': 'red',
            'warn': 'yellow',
            'header': 'bold blue',
            'comment': 'dim',
        }

        self.symbols = {
            'success': '✓',
            'failure': '✗',
            'warning': '⚠',
        }

    def section_header(self, emoji: str, title: str) -> None:
        """Print a section title underlined to its own length."""
        self.console.print(f"\n{emoji} {title}", style=self.colors['header'])
        self.console.print("-" * (len(title) + 4), style=self.colors['comment'])

    def command_panel(self, title: str, color: str, detail: str) -> Panel:
        return Panel.fit(
            f"[bold {color}]{title}[/bold {color}]\n{detail}",
            border_style=color,
        )

    def status(self, ok: bool, message: str, task_name: str = "") -> None:
        """Print a one-line success or failure marker."""
        if ok:
            self.console.print(f"[bold green]{self.symbols['success']}[/bold green] {message}")
        else:
            where = f" in {task_name}" if task_name else ""
            self.console.print(
                f"[bold red]{self.symbols['failure']} Error{where}:[/bold red] {message}"
            )

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]{self.symbols['warning']} {message}[/yellow]")

    def format_plan(self, plan: ProvisioningPlan) -> Table:
        """Build a table of the accounts a run would create."""
        table = Table(title=f"Planned accounts ({plan.count})", title_style=self.colors['header'])
        table.add_column("", style=self.colors['create'])
        table.add_column("Username")
        table.add_column("UID", justify="right")
        for offset, username in enumerate(plan.usernames):
            table.add_row("+", username, str(plan.uid_start + offset))
        return table

    def print_plan(self, plan: ProvisioningPlan) -> None:
        existing = "unknown" if plan.existing_max_uid is None else str(plan.existing_max_uid)
        self.console.print(f"[dim]Highest existing UID: {existing}[/dim]")
        self.console.print(f"[dim]Starting from UID: {plan.uid_start}[/dim]")
        self.console.print(f"[dim]Ending at UID: {plan.uid_end}[/dim]")
        self.console.print(self.format_plan(plan))

        if plan.preexisting_matches:
            self.warning(
                "These existing home directories match the name pattern and "
                "would also be configured:"
            )
            for username in plan.preexisting_matches:
                self.console.print(f"  [dim]• {username}[/dim]")

    def format_result(self, result: ProvisioningResult) -> Table:
        """Build a table with one row per allocated account."""
        table = Table(title="Accounts", title_style=self.colors['header'])
        table.add_column("")
        table.add_column("Username")
        table.add_column("UID", justify="right")
        table.add_column("Method")
        table.add_column("State")
        table.add_column("Warnings", style=self.colors['comment'])

        for account in result.accounts:
            failed = account.state == AccountState.FAILED
            symbol = self.symbols['failure'] if failed else self.symbols['success']
            color = self.colors['fail'] if failed else self.colors['create']
            table.add_row(
                f"[{color}]{symbol}[/{color}]",
                account.username,
                str(account.uid),
                account.creation_method.value if account.creation_method else "-",
                account.state.value,
                "; ".join(account.warnings),
            )
        return table

    def print_result(self, result: ProvisioningResult) -> None:
        if result.status == ProvisioningStatus.VALIDATION_FAILED:
            self.status(False, result.message or "Invalid request", "bulk_user_creation")
            return

        self.console.print(self.format_result(result))

        if result.sudo_grants:
            self.warning(f"Passwordless sudo granted to {len(result.sudo_grants)} user(s)")
        if result.authentication_relaxed:
            self.warning("Authentication policy relaxed globally")

        self.status(True, result.message or f"Created {result.created} users.")
        if result.failed:
            self.console.print(f"[dim]Failed: {result.failed}[/dim]")
