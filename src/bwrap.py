"""Bubblewrap command serialization and summarization."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from rich.markup import escape

from model.mount_operation import MountKind

if TYPE_CHECKING:
    from model.sandbox_config import SandboxConfig

BWRAP_BINARY = "bwrap"

# Rich markup colors per operation kind (used by the review screen)
KIND_COLORS: dict[MountKind, str] = {
    MountKind.BIND_RO: "green",
    MountKind.BIND_RW: "yellow",
    MountKind.TMPFS_HIDE: "red",
    MountKind.NULL_HIDE: "red",
    MountKind.PROC: "cyan",
    MountKind.DEV: "cyan",
}
DEFAULT_COLOR = "white"


class BubblewrapSerializer:
    """Serializes SandboxConfig to bwrap command-line arguments."""

    def __init__(self, config: SandboxConfig) -> None:
        self.config = config

    def _namespace_args(self) -> list[str]:
        args = ["--unshare-all"]
        if self.config.share_net:
            args.append("--share-net")
        args.append("--die-with-parent")
        return args

    def _environment_args(self) -> list[str]:
        args = ["--clearenv"]
        for name, value in self.config.env_vars.items():
            args.extend(["--setenv", name, value])
        return args

    def serialize(self, info_fd: int | str | None = None) -> list[str]:
        """Build the complete bwrap command.

        Args:
            info_fd: File descriptor bwrap should report the child PID on (a
                placeholder string when previewing)
        """
        args = [BWRAP_BINARY]
        args.extend(self._namespace_args())

        # Mount plan, strictly in order (later operations win)
        args.extend(self.config.plan.to_args())

        args.extend(self._environment_args())
        args.extend(["--chdir", self.config.working_dir])

        if info_fd is not None:
            args.extend(["--info-fd", str(info_fd)])

        args.append("--")
        args.extend(self.config.command)
        return args

    def serialize_colored(self) -> str:
        """Build the command with Rich color markup, one color per operation kind."""
        parts = [f"[bold]{BWRAP_BINARY}[/bold]"]
        parts.extend(f"[dim]{arg}[/]" for arg in self._namespace_args())

        for op in self.config.plan:
            color = KIND_COLORS.get(op.kind, DEFAULT_COLOR)
            for arg in op.to_args():
                parts.append(f"[{color}]{escape(shlex.quote(arg))}[/]")

        parts.append("[dim]--clearenv[/]")
        for name in self.config.env_vars:
            parts.append(f"[dim]--setenv {name} …[/]")
        parts.append(f"[dim]--chdir {escape(shlex.quote(self.config.working_dir))}[/]")

        # Command (white, not colored - it's what the user asked to run)
        parts.append("[dim]--[/]")
        parts.extend(escape(shlex.quote(arg)) for arg in self.config.command)
        return " ".join(parts)


class BubblewrapSummarizer:
    """Generates human-readable summaries of SandboxConfig."""

    def __init__(self, config: SandboxConfig) -> None:
        self.config = config

    def summarize(self) -> str:
        """Generate a human-readable explanation of the sandbox."""
        plan = self.config.plan
        lines: list[str] = []

        ro = [op.sandbox_path for op in plan if op.kind is MountKind.BIND_RO]
        rw = [op.sandbox_path for op in plan if op.kind is MountKind.BIND_RW]
        hidden_dirs = [op.sandbox_path for op in plan if op.kind is MountKind.TMPFS_HIDE]
        hidden_files = [op.sandbox_path for op in plan if op.kind is MountKind.NULL_HIDE]

        if ro:
            lines.append(f"• Read-only ({len(ro)}): {', '.join(ro)}")
        if rw:
            lines.append(f"• Read-write ({len(rw)}): {', '.join(rw)} (sandbox can modify these)")
        if hidden_dirs:
            lines.append(f"• Emptied (tmpfs): {', '.join(hidden_dirs)}")
        if hidden_files:
            lines.append(f"• Hidden files: {', '.join(hidden_files)}")

        network = self.config.network
        lines.append(f"• Network: {network.mode.value}")
        for aux in network.aux_files:
            source = "host" if aux.host_path else "synthetic"
            lines.append(f"  - {aux.sandbox_path} ({source})")

        if self.config.env_vars:
            lines.append(f"• Environment: {', '.join(sorted(self.config.env_vars))}")

        lines.append(f"• Running: {' '.join(self.config.command)}")
        return "\n".join(lines)
