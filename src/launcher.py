"""Sandbox launch control.

A session moves through Configuring -> Launching -> Running -> Terminating -> Done.

Without a network helper bwrap simply replaces this process (os.execvp). With
one, bwrap is started as a child that reports its sandbox PID on --info-fd,
slirp4netns is attached to that PID, and the sandboxed entrypoint waits for
tap0 before exec'ing the agent:

    bwrap --unshare-all --info-fd N ... -- /bin/sh wait-for-net.sh agent args...
    slirp4netns --configure --disable-host-loopback --userns-path=... PID tap0
"""

from __future__ import annotations

import json
import logging
import os
import select
import shutil
import signal
import subprocess
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

import net
from bwrap import BWRAP_BINARY, BubblewrapSerializer
from model.mount_operation import MountOperation, MountPlan
from model.sandbox_config import DEFAULT_TERM
from virtual_files import VirtualFileManager

if TYPE_CHECKING:
    from agents import AgentSpec
    from environment import Environment
    from model.sandbox_config import SandboxConfig

logger = logging.getLogger(__name__)

# Reserved for failures before anything was launched
EXIT_CONFIG_ERROR = 125

READINESS_SCRIPT_NAME = "wait-for-net.sh"
READINESS_ATTEMPTS = 50
READINESS_INTERVAL = 0.1

READINESS_SCRIPT = f"""\
#!/bin/sh
# Wait for the network helper to bring up {net.slirp4netns.TAP_DEVICE}, then run the agent
i=0
while [ "$i" -lt {READINESS_ATTEMPTS} ]; do
    if grep -q '{net.slirp4netns.TAP_DEVICE}:' /proc/net/dev 2>/dev/null; then
        break
    fi
    sleep {READINESS_INTERVAL}
    i=$((i + 1))
done
exec "$@"
"""

# How long to wait for bwrap to report the sandbox PID
INFO_FD_TIMEOUT = 5.0
# Child poll interval while running (helper liveness is checked between polls)
POLL_INTERVAL = 0.5
# Grace period between SIGTERM and SIGKILL for the child
TERMINATE_TIMEOUT = 3.0

SANDBOX_PATH = "/usr/local/bin:/usr/bin:/bin"
LOCALE_VARS = ("LANG", "LC_ALL", "COLORTERM")


class ExecutorNotFoundError(Exception):
    """bwrap is not installed."""

    def __init__(self, hint: str = "") -> None:
        super().__init__(f"{BWRAP_BINARY} (bubblewrap) is not installed")
        self.hint = hint


class SessionState(Enum):
    CONFIGURING = "configuring"
    LAUNCHING = "launching"
    RUNNING = "running"
    TERMINATING = "terminating"
    DONE = "done"


def sandbox_environment(env: Environment, agent: AgentSpec | None = None) -> dict[str, str]:
    """Variables the sandboxed process starts with."""
    variables = {
        "HOME": env.home,
        "PWD": env.cwd,
        "TERM": env.get("TERM", DEFAULT_TERM),
        "PATH": f"{env.home}/.local/bin:{SANDBOX_PATH}",
    }
    names = LOCALE_VARS + (agent.env_passthrough if agent else ())
    for name, value in env.passthrough(names).items():
        variables.setdefault(name, value)
    return variables


def exit_code_from_status(returncode: int) -> int:
    """Map a Popen returncode to a shell-style exit code (signal N -> 128+N)."""
    if returncode < 0:
        return 128 - returncode
    return returncode


def read_child_pid(fd: int, timeout: float = INFO_FD_TIMEOUT) -> int | None:
    """Read the sandbox PID bwrap writes as JSON on its --info-fd.

    Returns:
        The child PID, or None if bwrap closed the pipe (or timed out) first.
    """
    decoder = json.JSONDecoder()
    buf = ""
    while True:
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            logger.debug("Timed out waiting for bwrap --info-fd")
            return None
        chunk = os.read(fd, 4096)
        if not chunk:
            return None
        buf += chunk.decode(errors="replace")
        try:
            info, _ = decoder.raw_decode(buf.lstrip())
        except ValueError:
            continue
        pid = info.get("child-pid") if isinstance(info, dict) else None
        return int(pid) if pid is not None else None


# Stands in for ephemeral paths and the --info-fd number when previewing
PREVIEW_DIR = "<ephemeral>"
PREVIEW_INFO_FD = "<fd>"


def check_executor() -> None:
    """Raise ExecutorNotFoundError unless bwrap is on PATH."""
    if shutil.which(BWRAP_BINARY) is None:
        from hostdistro import install_hint

        raise ExecutorNotFoundError(hint=install_hint(BWRAP_BINARY))


def _placeholder_file(content: str, dest_path: str, description: str) -> str:
    return f"{PREVIEW_DIR}/{os.path.basename(dest_path)}"


def _placeholder_script(content: str, name: str, description: str) -> str:
    return f"{PREVIEW_DIR}/{name}"


def _stage_session_files(config: SandboxConfig, add_file, add_script) -> None:
    """Bind the synthetic network files and wrap the command for the helper.

    add_file and add_script have the VirtualFileManager signatures and return
    the host path of what they staged.
    """
    for aux in config.network.aux_files:
        if aux.is_synthetic:
            host_path = add_file(aux.content, aux.sandbox_path, aux.description)
            config.plan.add(MountOperation.bind(host_path, sandbox_path=aux.sandbox_path))

    if config.network.requires_helper:
        script = add_script(READINESS_SCRIPT, READINESS_SCRIPT_NAME, "Network readiness wait")
        config.plan.add(MountOperation.bind(script))
        config.command = ["/bin/sh", script, *config.command]


@dataclass
class SandboxSession:
    """State of one launch: the processes it owns and the files it wrote."""

    config: SandboxConfig
    files: VirtualFileManager = field(default_factory=VirtualFileManager)
    state: SessionState = SessionState.CONFIGURING
    child: subprocess.Popen | None = None
    child_pid: int | None = None
    helper: net.HelperHandle | None = None
    exit_code: int | None = None
    warnings: list[str] = field(default_factory=list)
    interrupted_by: int | None = None
    _cleaned: bool = False

    @property
    def requires_helper(self) -> bool:
        return self.config.network.requires_helper

    def request_stop(self, signum: int) -> None:
        """Ask both processes to exit. Only sends signals, so it is safe in a handler."""
        self.interrupted_by = signum
        self.state = SessionState.TERMINATING
        for process in (self.helper.process if self.helper else None, self.child):
            if process is not None and process.poll() is None:
                process.send_signal(signal.SIGTERM)

    def cleanup(self) -> None:
        """Stop the helper and child and remove ephemeral files. Runs once."""
        if self._cleaned:
            return
        self._cleaned = True
        self.state = SessionState.TERMINATING

        net.terminate(self.helper)
        if self.child is not None and self.child.poll() is None:
            self.child.terminate()
            try:
                self.child.wait(timeout=TERMINATE_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.debug("Sandbox ignored SIGTERM, killing")
                self.child.kill()
                self.child.wait()
        self.files.cleanup()
        self.state = SessionState.DONE


class Launcher:
    """Runs a SandboxConfig under bwrap, supervising the network helper if needed."""

    def __init__(self, config: SandboxConfig, base_dir: str | None = None, quiet: bool = False) -> None:
        self.config = config
        self.base_dir = base_dir
        self.quiet = quiet
        self.session: SandboxSession | None = None

    def check_executor(self) -> None:
        check_executor()

    def prepare(self) -> SandboxSession:
        """Configuring: materialize auxiliary files and the readiness script.

        Raises:
            OSError: If an ephemeral file cannot be written
        """
        session = SandboxSession(
            config=self.config,
            files=VirtualFileManager(base_dir=self.base_dir),
        )
        session.warnings.extend(self.config.network.warnings)
        _stage_session_files(self.config, session.files.add_file, session.files.add_script)
        self.session = session
        return session

    def preview(self) -> SandboxConfig:
        """The config prepare() would produce, with placeholders for ephemeral paths.

        Nothing is written; self.config is left untouched.
        """
        config = replace(self.config, command=list(self.config.command), plan=MountPlan(list(self.config.plan)))
        _stage_session_files(config, _placeholder_file, _placeholder_script)
        return config

    def preview_command(self) -> list[str]:
        """The bwrap argv run() would use, for --dry-run."""
        info_fd = PREVIEW_INFO_FD if self.config.network.requires_helper else None
        return BubblewrapSerializer(self.preview()).serialize(info_fd=info_fd)

    def build_command(self, info_fd: int | None = None) -> list[str]:
        return BubblewrapSerializer(self.config).serialize(info_fd=info_fd)

    def run(self) -> int:
        """Launch the sandbox and return the exit code to exit with.

        Does not return when no supervision is needed (bwrap replaces us).

        Raises:
            ExecutorNotFoundError: If bwrap is not installed
        """
        self.check_executor()
        session = self.session or self.prepare()
        for warning in session.warnings:
            logger.warning(warning)
            print(f"Warning: {warning}", file=sys.stderr)

        if not session.requires_helper and not session.files.files:
            return self._exec_foreground(session)
        try:
            return self._run_supervised(session)
        finally:
            session.cleanup()

    def _print_header(self, cmd: list[str], session: SandboxSession) -> None:
        if self.quiet:
            return
        from commandoutput import print_execution_header

        print_execution_header(cmd, network=self.config.network, virtual_files=session.files.get_summary())

    def _exec_foreground(self, session: SandboxSession) -> int:
        """No helper and nothing to clean up: become bwrap."""
        session.state = SessionState.LAUNCHING
        cmd = self.build_command()
        self._print_header(cmd, session)
        logger.info(f"Exec: {' '.join(cmd)}")
        sys.stdout.flush()
        sys.stderr.flush()
        os.execvp(BWRAP_BINARY, cmd)
        return 0  # Never reached

    def _run_supervised(self, session: SandboxSession) -> int:
        session.state = SessionState.LAUNCHING
        info_r = info_w = None
        if session.requires_helper:
            info_r, info_w = os.pipe()
        cmd = self.build_command(info_fd=info_w)
        self._print_header(cmd, session)
        logger.info(f"Launching: {' '.join(cmd)}")

        try:
            session.child = subprocess.Popen(cmd, pass_fds=(info_w,) if info_w is not None else ())
        except OSError:
            if info_r is not None:
                os.close(info_r)
            raise
        finally:
            if info_w is not None:
                os.close(info_w)

        # Installed after the fork so the child does not inherit SIG_IGN for SIGINT
        previous = self._install_signal_handlers(session)
        try:
            if info_r is not None:
                try:
                    session.child_pid = read_child_pid(info_r)
                finally:
                    os.close(info_r)
                self._attach_helper(session)

            session.state = SessionState.RUNNING
            returncode = self._wait(session)
        finally:
            self._restore_signal_handlers(previous)

        if session.interrupted_by is not None:
            logger.info(f"Stopped by signal {session.interrupted_by}")
        session.exit_code = exit_code_from_status(returncode)
        logger.info(f"Sandbox exited with {session.exit_code}")
        return session.exit_code

    def _attach_helper(self, session: SandboxSession) -> None:
        """Attach slirp4netns; on failure the sandbox keeps running without network."""
        if session.child_pid is None:
            self._warn(session, "Could not determine sandbox PID: continuing without network access")
            return
        try:
            session.helper = net.attach(session.child_pid)
        except net.HelperAttachError as e:
            self._warn(session, f"{e}: continuing without network access")
            return
        logger.debug(f"Network helper {session.helper.pid} attached to {session.child_pid}")

    def _wait(self, session: SandboxSession) -> int:
        helper_reported = False
        while True:
            try:
                return session.child.wait(timeout=POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                pass
            if session.helper is None or helper_reported or session.interrupted_by is not None:
                continue
            if not session.helper.is_alive():
                helper_reported = True
                self._warn(session, "Network helper exited: the sandbox has lost network access")

    def _warn(self, session: SandboxSession, message: str) -> None:
        session.warnings.append(message)
        logger.warning(message)
        print(f"Warning: {message}", file=sys.stderr)

    def _install_signal_handlers(self, session: SandboxSession) -> dict[int, object]:
        def _terminate(signum, frame):
            session.request_stop(signum)

        previous = {}
        for signum, handler in (
            (signal.SIGTERM, _terminate),
            (signal.SIGHUP, _terminate),
            # The sandbox shares our terminal and gets ^C itself
            (signal.SIGINT, signal.SIG_IGN),
        ):
            previous[signum] = signal.signal(signum, handler)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: dict[int, object]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
