"""Interactive collection of a ProvisioningRequest.

Yes/no questions follow these rules:
- with run_all every question is answered yes without asking
- without a terminal on stdin every question is answered no
- otherwise the user is asked, defaulting to default_yes
"""

import logging
import sys
from typing import Optional

import typer

from .errors import RequestValidationError
from .models import ProvisioningRequest
from .settings import MacProvSettings, get_settings

logger = logging.getLogger(__name__)


def ask_yes_no(
    question: str,
    default_yes: bool = False,
    run_all: bool = False,
    interactive: Optional[bool] = None,
) -> bool:
    """Ask a yes/no question.

    Args:
        question: Prompt text without the [y/N] suffix
        default_yes: Answer used when the user just presses enter
        run_all: Answer yes without asking
        interactive: Whether stdin is a terminal (detected when None)

    Returns:
        The answer
    """
    if run_all:
        return True

    if interactive is None:
        interactive = sys.stdin.isatty()
    if not interactive:
        logger.debug(f"Non-interactive session, answering no to: {question}")
        return False

    return typer.confirm(question, default=default_yes)


def parse_count(text: str) -> int:
    """Parse the user count; blank or non-numeric input counts as 0."""
    try:
        return int(text.strip() or "0")
    except ValueError:
        return 0


def parse_group_id(text: str) -> Optional[int]:
    """Parse an optional group ID.

    Raises:
        RequestValidationError: If the input is not blank and not an integer
    """
    text = text.strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        raise RequestValidationError(f"Invalid group ID {text!r}") from None


class RequestPrompter:
    """Builds a ProvisioningRequest, asking only for values not already given."""

    def __init__(
        self,
        settings: Optional[MacProvSettings] = None,
        interactive: Optional[bool] = None,
    ):
        self.settings = settings or get_settings()
        self.interactive = interactive

    def confirm(self, question: str) -> bool:
        return ask_yes_no(
            question,
            default_yes=self.settings.default_yes,
            run_all=self.settings.run_all,
            interactive=self.interactive,
        )

    def _text(self, prompt: str, hide_input: bool = False) -> str:
        return typer.prompt(prompt, default="", show_default=False, hide_input=hide_input)

    def _flag(self, value: Optional[bool], question: str) -> bool:
        return value if value is not None else self.confirm(question)

    def collect(
        self,
        count: Optional[int] = None,
        prefix: Optional[str] = None,
        shell: Optional[str] = None,
        group_id: Optional[int] = None,
        create_homes: Optional[bool] = None,
        disable_spotlight: Optional[bool] = None,
        password: Optional[str] = None,
        disable_passwords: Optional[bool] = None,
        all_sudoers: Optional[bool] = None,
    ) -> ProvisioningRequest:
        """Collect every request field, prompting for the missing ones.

        An invalid count stops prompting; the returned request is then
        rejected by the provisioner. The optional group ID is only asked for
        when the count was not given up front.
        """
        ask_group = count is None and group_id is None

        if count is None:
            count = parse_count(self._text("Enter number of users to create"))
        if prefix is None:
            prefix = self._text(
                f"Enter username prefix (default: {self.settings.default_prefix})"
            )
        if shell is None:
            shell = self._text(f"Enter shell path (default: {self.settings.default_shell})")
        if ask_group:
            group_id = parse_group_id(self._text("Enter group ID (optional)"))

        prefix = prefix or self.settings.default_prefix
        shell = shell or self.settings.default_shell

        if count <= 0:
            return ProvisioningRequest(count=count, name_prefix=prefix, shell=shell)

        create_homes = self._flag(create_homes, "Create home directories for users?")
        disable_spotlight = self._flag(disable_spotlight, "Disable Spotlight for new users?")
        if password is None:
            password = self._text(
                "Set password for all users (leave empty for no password)", hide_input=True
            )
        disable_passwords = self._flag(disable_passwords, "Disable passwords globally? (INSECURE)")
        all_sudoers = self._flag(all_sudoers, "Make all users sudoers? (EXTREMELY INSECURE)")

        return ProvisioningRequest(
            count=count,
            name_prefix=prefix,
            shell=shell,
            group_id=group_id,
            create_home_directories=create_homes,
            disable_search_indexing_per_user=disable_spotlight,
            password=password or None,
            disable_authentication_globally=disable_passwords,
            grant_all_sudo=all_sudoers,
        )
