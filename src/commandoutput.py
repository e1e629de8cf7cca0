"""Command output formatting for sandbox execution."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from model.mount_operation import MountKind

if TYPE_CHECKING:
    from config_loader import LoadedPolicy
    from model.mount_operation import MountPlan
    from model.network_policy import NetworkPolicy

RULE = "=" * 60


def print_warnings(warnings: list[str]) -> None:
    for warning in warnings:
        print(f"Warning: {warning}", file=sys.stderr)


def print_configuration_summary(
    working_dir: str,
    policy: LoadedPolicy,
    plan: MountPlan,
    network: NetworkPolicy,
    agent: str,
) -> None:
    """Summarize what the sandbox is built from, before launching it."""
    binds = sum(1 for op in plan if op.kind.is_bind)
    rw = sum(1 for op in plan if op.kind is MountKind.BIND_RW)
    hides = sum(1 for op in plan if op.kind.is_hide)

    out = sys.stderr
    print(RULE, file=out)
    print(f"Agent:       {agent}", file=out)
    print(f"Working dir: {working_dir} (read-write)", file=out)
    print(f"Allow from:  {', '.join(policy.allow_sources) or 'none'}", file=out)
    print(f"Deny from:   {', '.join(policy.deny_sources) or 'none'}", file=out)
    print(f"Network:     {network.mode.value}", file=out)
    print(f"Mounts:      {binds} bind(s), {rw} writable, {hides} hidden", file=out)
    for path in policy.created_files:
        print(f"Created:     {path}", file=out)
    print(RULE, file=out)


def print_execution_header(
    cmd: list[str],
    network: NetworkPolicy | None = None,
    virtual_files: list[str] | None = None,
) -> None:
    """Print the execution header with command and optional details.

    Args:
        cmd: The bwrap command to display
        network: Network policy (shows the helper command when one is used)
        virtual_files: Summary lines of files injected into the sandbox
    """
    print(RULE, file=sys.stderr)

    if network and network.requires_helper:
        print("Executing (with restricted network):", file=sys.stderr)
    else:
        print("Executing:", file=sys.stderr)

    print(" ".join(cmd), file=sys.stderr)

    if network and network.requires_helper:
        from net.slirp4netns import generate_helper_args

        # PID is only known once bwrap has started
        print("", file=sys.stderr)
        print(" ".join(generate_helper_args("<pid>")), file=sys.stderr)

    if virtual_files:
        print("\nInjected files:", file=sys.stderr)
        for line in virtual_files:
            print(f"  {line}", file=sys.stderr)

    print(RULE + "\n", file=sys.stderr)
