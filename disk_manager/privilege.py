"""
privilege.py
------------
Runs OS primitives that need root through sudo, authenticated with a
password supplied at call time rather than ambient process privilege.

The protocol is two steps:
  1. try `sudo -n` (works with passwordless sudo rules or when running as root)
  2. if sudo wants a password and the caller supplied one, retry once with
     `sudo -S`, feeding the password on stdin

Without a password the caller gets PrivilegeRequiredError and nothing ran.
A rejected password raises AuthenticationError so the caller can tell
"ask the user" apart from "the user typed it wrong".
"""
import logging
from typing import List, Optional, Tuple

from .exceptions import AuthenticationError, PrivilegeRequiredError
from .utils import run_command

logger = logging.getLogger(__name__)

PASSWORD_REQUIRED_MARKERS = (
    'a password is required',
    'a terminal is required',
    'no tty present',
)
WRONG_PASSWORD_MARKERS = (
    'sorry, try again',
    'incorrect password',
    'incorrect password attempt',
    'authentication failure',
    'no password was provided',
)


def needs_password(message: str) -> bool:
    message = (message or '').lower()
    return any(marker in message for marker in PASSWORD_REQUIRED_MARKERS)


def is_wrong_password(message: str) -> bool:
    message = (message or '').lower()
    return any(marker in message for marker in WRONG_PASSWORD_MARKERS)


class PrivilegedRunner:
    """Executes commands via sudo using the two-step password protocol."""

    def __init__(self, sudo: str = 'sudo', timeout: float = 60):
        self.sudo = sudo
        self.timeout = timeout

    def run(self, args: List[str], password: Optional[str] = None,
            timeout: Optional[float] = None) -> Tuple[bool, str]:
        """
        Returns (success, output) for ordinary command failures so callers can
        inspect the message (e.g. "already mounted").
        Raises PrivilegeRequiredError / AuthenticationError for sudo failures.
        """
        timeout = timeout or self.timeout

        success, output = run_command([self.sudo, '-n', *args], timeout=timeout)
        if success or not needs_password(output):
            return success, output

        if not password:
            logger.info(f"Privilege required for '{args[0]}', no password supplied")
            raise PrivilegeRequiredError()

        # -p '' keeps the prompt out of stderr
        success, output = run_command(
            [self.sudo, '-S', '-p', '', *args],
            input_text=password + '\n',
            timeout=timeout,
        )
        if not success and (is_wrong_password(output) or needs_password(output)):
            logger.warning(f"sudo rejected the supplied password for '{args[0]}'")
            raise AuthenticationError()
        return success, output
