"""Mount operation and mount plan model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MountKind(Enum):
    """Filesystem operation applied by the sandbox executor."""

    BIND_RW = "bind-rw"
    BIND_RO = "bind-ro"
    TMPFS_HIDE = "tmpfs"
    NULL_HIDE = "null"
    PROC = "proc"
    DEV = "dev"

    @property
    def is_bind(self) -> bool:
        return self in (MountKind.BIND_RW, MountKind.BIND_RO)

    @property
    def is_hide(self) -> bool:
        return self in (MountKind.TMPFS_HIDE, MountKind.NULL_HIDE)


@dataclass(frozen=True)
class MountOperation:
    """One element of a mount plan.

    host_path is the path on the host the operation was derived from. For
    hides it is the hidden path itself; the executor never reads from it.
    """

    kind: MountKind
    host_path: str
    sandbox_path: str

    @classmethod
    def bind(cls, path: str, read_write: bool = False, sandbox_path: str | None = None) -> MountOperation:
        kind = MountKind.BIND_RW if read_write else MountKind.BIND_RO
        return cls(kind, path, sandbox_path or path)

    @classmethod
    def tmpfs(cls, path: str) -> MountOperation:
        return cls(MountKind.TMPFS_HIDE, path, path)

    @classmethod
    def null(cls, path: str) -> MountOperation:
        return cls(MountKind.NULL_HIDE, path, path)

    def __str__(self) -> str:
        if self.kind.is_bind and self.host_path != self.sandbox_path:
            return f"{self.kind.value} {self.host_path} -> {self.sandbox_path}"
        return f"{self.kind.value} {self.sandbox_path}"

    def to_args(self) -> list[str]:
        """Convert to bwrap arguments."""
        if self.kind is MountKind.BIND_RW:
            return ["--bind", self.host_path, self.sandbox_path]
        if self.kind is MountKind.BIND_RO:
            return ["--ro-bind", self.host_path, self.sandbox_path]
        if self.kind is MountKind.TMPFS_HIDE:
            return ["--tmpfs", self.sandbox_path]
        if self.kind is MountKind.NULL_HIDE:
            # Shadow exactly one file, leaving its siblings visible
            return ["--ro-bind", "/dev/null", self.sandbox_path]
        if self.kind is MountKind.PROC:
            return ["--proc", self.sandbox_path]
        return ["--dev", self.sandbox_path]


@dataclass
class MountPlan:
    """Ordered list of mount operations.

    Order is significant: the executor applies operations in sequence, so a
    later operation on a path supersedes an earlier one. Only one bind per
    sandbox path is kept; adding a bind drops any earlier bind of the same
    target (last wins).
    """

    operations: list[MountOperation] = field(default_factory=list)

    def __iter__(self):
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    def __getitem__(self, index: int) -> MountOperation:
        return self.operations[index]

    def add(self, op: MountOperation) -> None:
        if op.kind.is_bind:
            self.operations = [
                existing
                for existing in self.operations
                if not (existing.kind.is_bind and existing.sandbox_path == op.sandbox_path)
            ]
        self.operations.append(op)

    def extend(self, ops) -> None:
        for op in ops:
            self.add(op)

    def binds(self) -> list[MountOperation]:
        return [op for op in self.operations if op.kind.is_bind]

    def hides(self) -> list[MountOperation]:
        return [op for op in self.operations if op.kind.is_hide]

    def index_of(self, kind: MountKind, sandbox_path: str) -> int:
        """Position of the first operation of kind targeting sandbox_path, or -1."""
        for i, op in enumerate(self.operations):
            if op.kind is kind and op.sandbox_path == sandbox_path:
                return i
        return -1

    def to_args(self) -> list[str]:
        args: list[str] = []
        for op in self.operations:
            args.extend(op.to_args())
        return args
