"""
Tests for the command validator.
"""

import pytest

from kubetask.modules.executor.command_validator import (
    ALLOWED_BASE_COMMANDS,
    FORBIDDEN_CHARACTERS,
    base_command,
    is_safe,
)


class TestIsSafe:
    """Test is_safe decisions."""

    @pytest.mark.parametrize("command", sorted(ALLOWED_BASE_COMMANDS))
    def test_bare_allowed_commands(self, command):
        assert is_safe(command)

    @pytest.mark.parametrize(
        "command",
        [
            "echo hello",
            "echo hello world",
            "ls -la /tmp",
            "cat /etc/hostname",
            "uname -a",
            "date +%Y-%m-%d",
            "  echo padded  ",
            "echo\thello",
        ],
    )
    def test_allowed_commands_with_safe_arguments(self, command):
        assert is_safe(command)

    @pytest.mark.parametrize("command", [None, "", " ", "\t", "   \t  "])
    def test_blank_input_is_unsafe(self, command):
        assert not is_safe(command)

    @pytest.mark.parametrize("forbidden", sorted(FORBIDDEN_CHARACTERS))
    @pytest.mark.parametrize("base", ["echo", "ls", "rm", "python"])
    def test_forbidden_characters_rejected_for_any_base(self, base, forbidden):
        assert not is_safe(f"{base} a{forbidden}b")

    @pytest.mark.parametrize(
        "command",
        [
            "echo hi; rm -rf /",
            "echo hi && whoami",
            "echo hi || true",
            "ls | sh",
            "echo `id`",
            "echo $(id)",
            "echo ${HOME}",
            "cat < /etc/passwd",
            "echo hi > /tmp/out",
            "echo hi\\ there",
            "echo hi\nrm -rf /",
            "echo hi &",
        ],
    )
    def test_injection_attempts_rejected(self, command):
        assert not is_safe(command)

    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf /",
            "sh -c ls",
            "bash",
            "curl http://example.com",
            "ECHO hi",
            "echoes hi",
            "/bin/echo hi",
            "wget -q example.com",
            "echo\xa0hi",
            "cat\x1c/etc/shadow",
            "ls\u2028-la",
            "echo\x85hi",
            "uname\x0b-a",
            "\u3000ls",
        ],
    )
    def test_base_command_not_on_allow_list(self, command):
        assert not is_safe(command)

    def test_non_string_input_is_unsafe(self):
        assert not is_safe(42)

    def test_allow_list_is_fixed(self):
        assert ALLOWED_BASE_COMMANDS == {
            "echo", "date", "uname", "whoami", "ls", "pwd", "cat", "uptime"
        }


class TestBaseCommand:
    """Test base command extraction."""

    def test_first_token(self):
        assert base_command("ls -la /tmp") == "ls"

    def test_surrounding_whitespace(self):
        assert base_command("   uptime  ") == "uptime"

    def test_blank(self):
        assert base_command("   ") is None
        assert base_command(None) is None

    @pytest.mark.parametrize(
        "command, expected",
        [
            ("echo\xa0hi", "echo\xa0hi"),
            ("cat\x1c/etc/shadow", "cat\x1c/etc/shadow"),
            ("ls\u2028-la", "ls\u2028-la"),
            ("echo \xa0hi", "echo"),
            ("\tdate  +%s", "date"),
        ],
    )
    def test_splits_only_where_sh_splits(self, command, expected):
        assert base_command(command) == expected
