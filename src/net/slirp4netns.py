"""slirp4netns network helper.

slirp4netns (a user-mode TCP/IP stack) attaches to the network namespace of
an already running process and gives it a tap0 interface with NAT to the
outside world. With --disable-host-loopback the sandbox cannot reach services
listening on the host's loopback, which is what makes "restricted" mode
internet-only.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HELPER_BINARY = "slirp4netns"
DEFAULT_MTU = 65520
TAP_DEVICE = "tap0"


class HelperAttachError(Exception):
    """Raised when the network helper cannot be started."""

    pass


@dataclass
class HelperHandle:
    """A running slirp4netns process attached to a sandbox."""

    process: subprocess.Popen
    target_pid: int

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_alive(self) -> bool:
        return self.process.poll() is None


def available() -> bool:
    """Check if slirp4netns is installed."""
    return shutil.which(HELPER_BINARY) is not None


def generate_helper_args(pid: int | str, mtu: int = DEFAULT_MTU, disable_host_loopback: bool = True) -> list[str]:
    """Build the slirp4netns command line for attaching to pid.

    Args:
        pid: Process whose network namespace to attach to
        mtu: MTU of the tap device
        disable_host_loopback: Block access to the host's 127.0.0.0/8

    Returns:
        Full argv for slirp4netns.
    """
    args = [
        HELPER_BINARY,
        "--configure",  # Bring up tap0 with address, route and DNS
        f"--mtu={mtu}",
    ]
    if disable_host_loopback:
        args.append("--disable-host-loopback")
    # Unprivileged namespaces are owned by the sandbox's user namespace
    args.append(f"--userns-path=/proc/{pid}/ns/user")
    args.extend([str(pid), TAP_DEVICE])
    return args


def attach(pid: int, mtu: int = DEFAULT_MTU, disable_host_loopback: bool = True) -> HelperHandle:
    """Start slirp4netns attached to pid's network namespace.

    Raises:
        HelperAttachError: If the helper binary cannot be executed
    """
    cmd = generate_helper_args(pid, mtu, disable_host_loopback)
    logger.debug(f"Starting network helper: {' '.join(cmd)}")
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        raise HelperAttachError(f"Failed to start {HELPER_BINARY}: {e}") from e
    return HelperHandle(process=process, target_pid=pid)


def terminate(handle: HelperHandle | None, timeout: float = 2.0) -> None:
    """Stop the helper if it is still running. Safe to call repeatedly."""
    if handle is None or not handle.is_alive():
        return
    handle.process.terminate()
    try:
        handle.process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.debug(f"{HELPER_BINARY} ignored SIGTERM, killing")
        handle.process.kill()
        handle.process.wait()
