"""Tests for sandbox launch control.

Process creation is mocked; nothing here starts bwrap or slirp4netns.
"""

import os
import signal
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from environment import Environment
from launcher import (
    EXIT_CONFIG_ERROR,
    PREVIEW_DIR,
    PREVIEW_INFO_FD,
    READINESS_SCRIPT,
    ExecutorNotFoundError,
    Launcher,
    SessionState,
    exit_code_from_status,
    read_child_pid,
    sandbox_environment,
)
from agents import AgentSpec
from model import MountKind, NetworkMode
from net.policy import resolve_network


@pytest.fixture
def bwrap_installed():
    with patch("launcher.shutil.which", return_value="/usr/bin/bwrap"):
        yield


@pytest.fixture
def child():
    """A sandbox process that exits cleanly."""
    proc = MagicMock()
    proc.wait.return_value = 0
    proc.poll.return_value = 0
    return proc


def helper_handle(alive=True):
    handle = MagicMock()
    handle.pid = 999
    handle.is_alive.return_value = alive
    return handle


class TestSandboxEnvironment:
    """Test sandbox_environment()."""

    def test_base_variables(self):
        env = Environment(home="/home/u", cwd="/proj", variables={"TERM": "screen"})
        assert sandbox_environment(env) == {
            "HOME": "/home/u",
            "PWD": "/proj",
            "TERM": "screen",
            "PATH": "/home/u/.local/bin:/usr/local/bin:/usr/bin:/bin",
        }

    def test_term_default(self):
        env = Environment(home="/home/u", cwd="/proj")
        assert sandbox_environment(env)["TERM"] == "xterm-256color"

    def test_ssh_agent_not_forwarded(self, fake_env):
        assert "SSH_AUTH_SOCK" not in sandbox_environment(fake_env)

    def test_agent_passthrough(self):
        env = Environment(home="/h", cwd="/p", variables={"ANTHROPIC_API_KEY": "k", "LANG": "C.UTF-8"})
        spec = AgentSpec(name="x", executable="/bin/true", env_passthrough=("ANTHROPIC_API_KEY", "MISSING"))
        result = sandbox_environment(env, spec)
        assert result["ANTHROPIC_API_KEY"] == "k"
        assert result["LANG"] == "C.UTF-8"
        assert "MISSING" not in result

    def test_passthrough_cannot_override_home(self):
        env = Environment(home="/h", cwd="/p", variables={"HOME": "/other"})
        spec = AgentSpec(name="x", executable="/bin/true", env_passthrough=("HOME",))
        assert sandbox_environment(env, spec)["HOME"] == "/h"


class TestExitCodeFromStatus:
    """Test exit_code_from_status()."""

    @pytest.mark.parametrize("returncode,expected", [(0, 0), (3, 3), (-9, 137), (-15, 143)])
    def test_mapping(self, returncode, expected):
        assert exit_code_from_status(returncode) == expected

    def test_reserved_code_distinct(self):
        assert EXIT_CONFIG_ERROR not in (0, 1, 126, 127)


class TestReadChildPid:
    """Test read_child_pid() on a real pipe."""

    def test_reads_pid(self):
        r, w = os.pipe()
        os.write(w, b'{\n    "child-pid": 4321\n}\n')
        os.close(w)
        try:
            assert read_child_pid(r) == 4321
        finally:
            os.close(r)

    def test_extra_fields(self):
        r, w = os.pipe()
        os.write(w, b'{"child-pid": 17, "cgroup-namespace": 4026531835}')
        try:
            assert read_child_pid(r) == 17
        finally:
            os.close(w)
            os.close(r)

    def test_closed_without_data(self):
        r, w = os.pipe()
        os.close(w)
        try:
            assert read_child_pid(r) is None
        finally:
            os.close(r)

    def test_timeout(self):
        r, w = os.pipe()
        try:
            assert read_child_pid(r, timeout=0.01) is None
        finally:
            os.close(w)
            os.close(r)


class TestReadinessScript:
    """The in-sandbox wait for the helper's interface."""

    def test_polls_for_tap_device(self):
        assert "tap0:" in READINESS_SCRIPT
        assert "/proc/net/dev" in READINESS_SCRIPT

    def test_bounded(self):
        assert '-lt 50' in READINESS_SCRIPT
        assert "sleep 0.1" in READINESS_SCRIPT

    def test_execs_target(self):
        assert READINESS_SCRIPT.rstrip().endswith('exec "$@"')


class TestPrepare:
    """Configuring: ephemeral files and plan additions."""

    def test_restricted_materializes_files(self, restricted_config, tmp_path):
        launcher = Launcher(restricted_config, base_dir=str(tmp_path))
        session = launcher.prepare()
        try:
            file_map = session.files.get_file_map()
            assert set(file_map) >= {"/etc/resolv.conf", "/etc/hosts"}
            assert "10.0.2.3" in open(file_map["/etc/resolv.conf"]).read()
            for dest, src in file_map.items():
                assert restricted_config.plan.index_of(MountKind.BIND_RO, dest) >= 0
        finally:
            session.cleanup()

    def test_restricted_wraps_command_in_readiness_script(self, restricted_config, tmp_path):
        launcher = Launcher(restricted_config, base_dir=str(tmp_path))
        session = launcher.prepare()
        try:
            command = restricted_config.command
            assert command[0] == "/bin/sh"
            assert command[1].endswith("wait-for-net.sh")
            assert command[2:] == ["/usr/bin/claude", "--resume"]
            assert os.access(command[1], os.X_OK)
        finally:
            session.cleanup()

    def test_full_leaves_plan_alone(self, minimal_config, tmp_path):
        """Host files for full networking are already part of the resolved plan."""
        minimal_config.network = resolve_network(NetworkMode.FULL, False)
        session = Launcher(minimal_config, base_dir=str(tmp_path)).prepare()

        assert len(minimal_config.plan) == 0
        assert session.files.files == []
        assert minimal_config.command == ["bash"]

    def test_isolated_has_nothing_to_do(self, minimal_config, tmp_path):
        session = Launcher(minimal_config, base_dir=str(tmp_path)).prepare()
        assert session.files.tmp_dir is None
        assert len(minimal_config.plan) == 0

    def test_network_warnings_carried(self, minimal_config, tmp_path):
        minimal_config.network = resolve_network(NetworkMode.RESTRICTED, False)
        session = Launcher(minimal_config, base_dir=str(tmp_path)).prepare()
        assert session.warnings == ["slirp4netns not found: falling back to no network access"]


class TestPreview:
    """What --dry-run and --review show before anything is written."""

    def test_restricted_uses_placeholders(self, restricted_config, tmp_path):
        launcher = Launcher(restricted_config, base_dir=str(tmp_path))
        preview = launcher.preview()

        assert preview.command == ["/bin/sh", f"{PREVIEW_DIR}/wait-for-net.sh", "/usr/bin/claude", "--resume"]
        assert preview.plan.index_of(MountKind.BIND_RO, "/etc/resolv.conf") >= 0
        hosts = preview.plan[preview.plan.index_of(MountKind.BIND_RO, "/etc/hosts")]
        assert hosts.host_path == f"{PREVIEW_DIR}/hosts"
        assert list(tmp_path.iterdir()) == []

    def test_original_config_untouched(self, restricted_config, tmp_path):
        Launcher(restricted_config, base_dir=str(tmp_path)).preview()
        assert restricted_config.command == ["/usr/bin/claude", "--resume"]
        assert len(restricted_config.plan) == 0

    def test_preview_command_matches_prepared_shape(self, restricted_config, tmp_path):
        """Same argv as the launch, except for the ephemeral paths and the fd number."""
        launcher = Launcher(restricted_config, base_dir=str(tmp_path))
        previewed = launcher.preview_command()
        session = launcher.prepare()
        try:
            launched = launcher.build_command(info_fd=7)
            tmp_dir = str(session.files.tmp_dir)
            normalized = [arg.replace(tmp_dir, PREVIEW_DIR) for arg in launched]
            normalized[normalized.index("--info-fd") + 1] = PREVIEW_INFO_FD
        finally:
            session.cleanup()
        assert previewed == normalized

    def test_no_info_fd_without_helper(self, minimal_config):
        assert "--info-fd" not in Launcher(minimal_config).preview_command()


class TestRunForeground:
    """Without a helper bwrap replaces the launcher."""

    @patch("launcher.os.execvp")
    def test_execs_bwrap(self, mock_execvp, minimal_config, bwrap_installed, tmp_path):
        Launcher(minimal_config, base_dir=str(tmp_path), quiet=True).run()

        name, cmd = mock_execvp.call_args[0]
        assert name == "bwrap"
        assert cmd[0] == "bwrap"
        assert cmd[-1] == "bash"
        assert "--info-fd" not in cmd

    @patch("launcher.os.execvp")
    def test_missing_bwrap(self, mock_execvp, minimal_config):
        with patch("launcher.shutil.which", return_value=None), patch(
            "hostdistro.install_hint", return_value="sudo apt install bubblewrap"
        ):
            with pytest.raises(ExecutorNotFoundError) as exc:
                Launcher(minimal_config, quiet=True).run()
        assert exc.value.hint == "sudo apt install bubblewrap"
        mock_execvp.assert_not_called()


class TestRunWithHelper:
    """Restricted network: supervise bwrap and slirp4netns."""

    def run(self, config, tmp_path, child, pid=4321, attach=None):
        with patch("launcher.subprocess.Popen", return_value=child) as mock_popen, patch(
            "launcher.read_child_pid", return_value=pid
        ), patch("net.attach", **(attach or {"return_value": helper_handle()})) as mock_attach, patch(
            "net.terminate"
        ) as mock_terminate:
            launcher = Launcher(config, base_dir=str(tmp_path), quiet=True)
            code = launcher.run()
        return launcher, code, mock_popen, mock_attach, mock_terminate

    def test_attaches_helper_to_reported_pid(self, restricted_config, tmp_path, child, bwrap_installed):
        launcher, code, mock_popen, mock_attach, _ = self.run(restricted_config, tmp_path, child)

        assert code == 0
        mock_attach.assert_called_once_with(4321)
        cmd = mock_popen.call_args[0][0]
        assert "--info-fd" in cmd
        fd = int(cmd[cmd.index("--info-fd") + 1])
        assert mock_popen.call_args[1]["pass_fds"] == (fd,)

    def test_cleanup_after_exit(self, restricted_config, tmp_path, child, bwrap_installed):
        launcher, _, _, _, mock_terminate = self.run(restricted_config, tmp_path, child)

        session = launcher.session
        assert session.state is SessionState.DONE
        assert not os.path.exists(session.files.tmp_dir)
        mock_terminate.assert_called_once_with(session.helper)

    def test_child_exit_code_propagated(self, restricted_config, tmp_path, child, bwrap_installed):
        child.wait.return_value = 3
        _, code, _, _, _ = self.run(restricted_config, tmp_path, child)
        assert code == 3

    def test_killed_child(self, restricted_config, tmp_path, child, bwrap_installed):
        child.wait.return_value = -signal.SIGKILL
        _, code, _, _, _ = self.run(restricted_config, tmp_path, child)
        assert code == 128 + signal.SIGKILL

    def test_attach_failure_continues_without_network(
        self, restricted_config, tmp_path, child, bwrap_installed, capsys
    ):
        from net import HelperAttachError

        launcher, code, _, _, _ = self.run(
            restricted_config, tmp_path, child, attach={"side_effect": HelperAttachError("no slirp4netns")}
        )

        assert code == 0
        assert launcher.session.helper is None
        assert any("continuing without network" in w for w in launcher.session.warnings)
        assert "Warning:" in capsys.readouterr().err

    def test_unknown_pid_skips_attach(self, restricted_config, tmp_path, child, bwrap_installed):
        launcher, _, _, mock_attach, _ = self.run(restricted_config, tmp_path, child, pid=None)
        mock_attach.assert_not_called()
        assert any("sandbox PID" in w for w in launcher.session.warnings)

    def test_helper_death_warns_once(self, restricted_config, tmp_path, child, bwrap_installed):
        child.wait.side_effect = [
            subprocess.TimeoutExpired("bwrap", 0.5),
            subprocess.TimeoutExpired("bwrap", 0.5),
            0,
        ]
        launcher, code, _, _, _ = self.run(
            restricted_config, tmp_path, child, attach={"return_value": helper_handle(alive=False)}
        )

        assert code == 0
        lost = [w for w in launcher.session.warnings if "lost network access" in w]
        assert len(lost) == 1

    def test_signal_handlers_restored(self, restricted_config, tmp_path, child, bwrap_installed):
        before = signal.getsignal(signal.SIGTERM)
        self.run(restricted_config, tmp_path, child)
        assert signal.getsignal(signal.SIGTERM) == before


class TestSessionTeardown:
    """Stop requests and idempotent cleanup."""

    def test_cleanup_runs_once(self, restricted_config, tmp_path):
        session = Launcher(restricted_config, base_dir=str(tmp_path)).prepare()
        session.helper = helper_handle()
        with patch("net.terminate") as mock_terminate:
            session.cleanup()
            session.cleanup()
        mock_terminate.assert_called_once()

    def test_cleanup_terminates_running_child(self, minimal_config):
        from launcher import SandboxSession

        session = SandboxSession(config=minimal_config)
        session.child = MagicMock()
        session.child.poll.return_value = None
        session.cleanup()
        session.child.terminate.assert_called_once()

    def test_cleanup_kills_stubborn_child(self, minimal_config):
        from launcher import SandboxSession

        session = SandboxSession(config=minimal_config)
        session.child = MagicMock()
        session.child.poll.return_value = None
        session.child.wait.side_effect = [subprocess.TimeoutExpired("bwrap", 3.0), -9]
        session.cleanup()
        session.child.kill.assert_called_once()

    def test_request_stop_signals_both(self, minimal_config):
        from launcher import SandboxSession

        session = SandboxSession(config=minimal_config)
        session.child = MagicMock()
        session.child.poll.return_value = None
        helper = helper_handle()
        helper.process.poll.return_value = None
        session.helper = helper

        session.request_stop(signal.SIGTERM)

        session.child.send_signal.assert_called_once_with(signal.SIGTERM)
        helper.process.send_signal.assert_called_once_with(signal.SIGTERM)
        assert session.interrupted_by == signal.SIGTERM
        assert session.state is SessionState.TERMINATING
