"""
Command validation for task execution.

A command is safe when it has no shell metacharacters and its base
command is on the allow-list. Both checks must pass; either one alone
still keeps chaining, substitution and redirection out of the pod.
"""

import re
from typing import FrozenSet, Optional

ALLOWED_BASE_COMMANDS: FrozenSet[str] = frozenset(
    {"echo", "date", "uname", "whoami", "ls", "pwd", "cat", "uptime"}
)

# ; & | ` $ < > \ and newline
FORBIDDEN_CHARACTERS: FrozenSet[str] = frozenset(";&|`$<>\\\n")

_FORBIDDEN_PATTERN = re.compile(r"[;&|`$<>\\\n]")

# sh separates words on these only; other Unicode or control blanks stay
# inside the word
SHELL_WHITESPACE = " \t\n"

_TOKEN_SEPARATOR = re.compile(r"[ \t\n]+")


def base_command(command: Optional[str]) -> Optional[str]:
    """Return the first token as sh would split it, or None for blank input."""
    if command is None:
        return None
    stripped = command.strip(SHELL_WHITESPACE)
    if not stripped:
        return None
    return _TOKEN_SEPARATOR.split(stripped, maxsplit=1)[0]


def is_safe(command: Optional[str]) -> bool:
    """
    Decide whether a command may be executed.

    Args:
        command: Raw command string as stored on the task

    Returns:
        True only if the command is non-blank, free of forbidden
        characters, and starts with an allow-listed base command
    """
    if not isinstance(command, str) or not command.strip(SHELL_WHITESPACE):
        return False
    if _FORBIDDEN_PATTERN.search(command):
        return False
    return base_command(command) in ALLOWED_BASE_COMMANDS


__all__ = ["ALLOWED_BASE_COMMANDS", "FORBIDDEN_CHARACTERS", "base_command", "is_safe"]
