"""Mount plan construction from layered directives.

Plan layout, in the order the executor applies it:

    baseline        --proc /proc, --dev /dev, --tmpfs /tmp, --ro-bind /sys, --tmpfs $HOME
    directives      allow -> bind, deny -> hide, in merged layer order, with the
                    working directory bind spliced in just before the first deny
    extra           network auxiliary files, then the agent's own binds

Later operations on a path win, exactly like stacked mounts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

import patterns
from config_loader import LoadedPolicy, NoAllowSourceError
from model.directive import Directive, DirectiveKind
from model.mount_operation import MountKind, MountOperation, MountPlan

logger = logging.getLogger(__name__)

__all__ = [
    "NoAllowSourceError",
    "PolicyResult",
    "baseline_operations",
    "is_path_covered",
    "resolve_directive",
    "resolve_plan",
]


@dataclass
class PolicyResult:
    """A resolved mount plan plus what produced it."""

    plan: MountPlan
    warnings: list[str] = field(default_factory=list)
    derived: list[tuple[Directive, list[MountOperation]]] = field(default_factory=list)

    def operations_for(self, directive: Directive) -> list[MountOperation]:
        for d, ops in self.derived:
            if d is directive:
                return ops
        return []


def baseline_operations(home: str | None) -> list[MountOperation]:
    """Fixed operations every sandbox starts with."""
    ops = [
        MountOperation(MountKind.PROC, "proc", "/proc"),
        MountOperation(MountKind.DEV, "dev", "/dev"),
        MountOperation.tmpfs("/tmp"),
        MountOperation.bind("/sys"),
    ]
    # Blank home so only allowed paths under it show through
    if home and home != "/":
        ops.append(MountOperation.tmpfs(home))
    return ops


def resolve_directive(directive: Directive, working_dir: str) -> list[MountOperation]:
    """Expand one directive into mount operations (empty when nothing matches)."""
    if directive.is_allow:
        matches = patterns.resolve_absolute(directive.pattern)
        return [MountOperation.bind(str(p), read_write=directive.read_write) for p in matches]

    ops = []
    for match in patterns.resolve(working_dir, directive.pattern):
        if match.is_dir():
            ops.append(MountOperation.tmpfs(str(match)))
        else:
            ops.append(MountOperation.null(str(match)))
    return ops


def _describe_miss(directive: Directive) -> str:
    where = f" ({directive.origin})" if directive.origin else ""
    if directive.is_allow:
        return f"Skipping non-existent allowlist path: {directive.raw_pattern}{where}"
    return f"No matches for denylist pattern: {directive.raw_pattern}{where}"


def resolve_plan(
    policy: LoadedPolicy,
    working_dir: str,
    home: str | None = None,
    extra_operations: Sequence[MountOperation] = (),
    include_baseline: bool = True,
) -> PolicyResult:
    """Build the mount plan for a loaded policy.

    Args:
        policy: Directives of every layer
        working_dir: Absolute working directory (always bound read-write)
        home: Home directory to blank with a tmpfs (None to leave it alone)
        extra_operations: Appended after all directives, in order
        include_baseline: Prepend the fixed proc/dev/tmp/sys operations

    Raises:
        NoAllowSourceError: If the policy has no allow source and no allow directive
    """
    directives = policy.directives()
    if not policy.allow_sources and not any(d.is_allow for d in directives):
        raise NoAllowSourceError()

    result = PolicyResult(plan=MountPlan())
    plan = result.plan

    if include_baseline:
        plan.extend(baseline_operations(home))

    cwd_op = MountOperation.bind(str(Path(working_dir)), read_write=True)
    cwd_placed = False

    for directive in directives:
        if directive.kind is DirectiveKind.DENY and not cwd_placed:
            plan.add(cwd_op)
            cwd_placed = True

        ops = resolve_directive(directive, working_dir)
        if not ops:
            result.warnings.append(_describe_miss(directive))
        # The working directory keeps its read-write bind, ahead of every hide
        ops = [op for op in ops if not (op.kind.is_bind and op.sandbox_path == cwd_op.sandbox_path)]
        plan.extend(ops)
        result.derived.append((directive, ops))

    if not cwd_placed:
        plan.add(cwd_op)

    plan.extend(extra_operations)

    logger.debug(
        f"Resolved {len(directives)} directive(s) into {len(plan)} operation(s), "
        f"{len(result.warnings)} warning(s)"
    )
    return result


def is_path_covered(path: Path | str, operations: Iterable[MountOperation]) -> bool:
    """Check whether path is visible through a bind in operations.

    Only binds count; a later hide covering the path makes it invisible again.
    """
    path = Path(path)
    covered = False
    for op in operations:
        target = Path(op.sandbox_path)
        if path != target and target not in path.parents:
            continue
        if op.kind.is_bind:
            covered = True
        elif op.kind.is_hide:
            covered = False
    return covered
