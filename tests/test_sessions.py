"""会话后端测试"""

import subprocess
from unittest.mock import patch

import pytest

from termfling.errors import ConfigurationError, SessionBackendUnavailable
from termfling.sessions import (
    AbducoSessionProvider,
    TmuxSessionProvider,
    get_provider,
    resolve_command,
    session_id_for,
)


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess([], returncode, stdout, stderr)


class TestSessionId:
    """会话 ID 生成"""

    def test_prefix(self):
        assert session_id_for("shell") == "tfling-shell"

    def test_unsafe_characters_replaced(self):
        assert session_id_for("a.b:c d") == "tfling-a-b-c-d"

    def test_custom_prefix(self):
        assert session_id_for("x", prefix="my-") == "my-x"


class TestTmuxSessionProvider:
    """tmux 会话后端"""

    @patch("termfling.sessions.subprocess.run")
    def test_attach_existing(self, mock_run):
        mock_run.return_value = _completed(0)
        command = TmuxSessionProvider().create_or_attach("tfling-shell", "bash")
        assert command == "tmux attach -t tfling-shell"
        args = mock_run.call_args[0][0]
        assert args == ["tmux", "has-session", "-t", "tfling-shell"]

    @patch("termfling.sessions.subprocess.run")
    def test_new_session(self, mock_run):
        mock_run.return_value = _completed(1, stderr="can't find session")
        command = TmuxSessionProvider().create_or_attach("tfling-shell", "htop -d 5")
        assert command == "tmux new-session -s tfling-shell htop -d 5"

    @patch("termfling.sessions.subprocess.run")
    def test_timeout_is_unavailable(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["tmux"], 2.0)
        with pytest.raises(SessionBackendUnavailable) as exc:
            TmuxSessionProvider().create_or_attach("tfling-shell", "bash")
        assert exc.value.backend == "tmux"

    @patch("termfling.sessions.subprocess.run")
    def test_missing_binary_is_unavailable(self, mock_run):
        mock_run.side_effect = FileNotFoundError("tmux")
        with pytest.raises(SessionBackendUnavailable):
            TmuxSessionProvider().has_session("tfling-shell")

    @patch("termfling.sessions.subprocess.run")
    def test_timeout_passed(self, mock_run):
        mock_run.return_value = _completed(0)
        TmuxSessionProvider(timeout=0.5).has_session("x")
        assert mock_run.call_args[1]["timeout"] == 0.5

    @patch("termfling.sessions.subprocess.run")
    def test_kill_session(self, mock_run):
        mock_run.return_value = _completed(0)
        assert TmuxSessionProvider().kill_session("tfling-shell") is True
        mock_run.return_value = _completed(1, stderr="no session")
        assert TmuxSessionProvider().kill_session("tfling-shell") is False

    @patch("termfling.sessions.subprocess.run")
    def test_is_available(self, mock_run):
        mock_run.return_value = _completed(0, stdout="tmux 3.3a\n")
        assert TmuxSessionProvider().is_available() == (True, "tmux 3.3a")
        mock_run.side_effect = FileNotFoundError("tmux")
        ok, _ = TmuxSessionProvider().is_available()
        assert ok is False


class TestAbducoSessionProvider:
    """abduco 会话后端"""

    @patch("termfling.sessions.subprocess.run")
    def test_no_probe(self, mock_run):
        command = AbducoSessionProvider().create_or_attach("tfling-shell", "bash")
        assert command == "abduco -e '^Q' -A tfling-shell bash"
        mock_run.assert_not_called()

    def test_custom_exit_key(self):
        command = AbducoSessionProvider(exit_key="^X").create_or_attach("s", "bash")
        assert "'^X'" in command


class TestProviders:
    """后端选择与命令解析"""

    def test_get_provider(self):
        assert isinstance(get_provider("tmux"), TmuxSessionProvider)
        assert get_provider("abduco", exit_key="^Z").exit_key == "^Z"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            get_provider("screen")

    def test_no_provider_runs_raw(self):
        assert resolve_command(None, "shell", "bash") == "bash"

    @patch("termfling.sessions.subprocess.run")
    def test_unavailable_raises_by_default(self, mock_run):
        mock_run.side_effect = FileNotFoundError("tmux")
        with pytest.raises(SessionBackendUnavailable):
            resolve_command(TmuxSessionProvider(), "shell", "bash")

    @patch("termfling.sessions.subprocess.run")
    def test_fallback_to_raw(self, mock_run):
        mock_run.side_effect = FileNotFoundError("tmux")
        command = resolve_command(TmuxSessionProvider(), "shell", "bash", fallback_to_raw=True)
        assert command == "bash"

    def test_prefix_applied(self):
        command = resolve_command(AbducoSessionProvider(), "my shell", "bash", prefix="x-")
        assert "-A x-my-shell bash" in command
