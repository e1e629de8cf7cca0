"""Agents that can be launched in the sandbox.

Each agent declares its executable, the paths it needs bound (its own state
and config), and the environment variables it needs forwarded. Agents are
registered by name with the @register_agent decorator.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from model.mount_operation import MountOperation

if TYPE_CHECKING:
    from environment import Environment

logger = logging.getLogger(__name__)


class AgentNotFoundError(Exception):
    """Raised for an unknown agent name or a missing agent executable."""

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.hint = hint


@dataclass(frozen=True)
class AgentBind:
    """A path the agent needs inside the sandbox."""

    path: str
    read_write: bool = False
    create_if_missing: bool = False  # Touch an empty file so the agent can write it


@dataclass
class AgentSpec:
    """Resolved description of one agent for one invocation."""

    name: str
    executable: Path
    binds: list[AgentBind] = field(default_factory=list)
    env_passthrough: tuple[str, ...] = ()


AgentFactory = Callable[["Environment"], AgentSpec]

_agent_registry: dict[str, AgentFactory] = {}
_agent_install_hints: dict[str, str] = {}


def register_agent(name: str, install_hint: str = "") -> Callable[[AgentFactory], AgentFactory]:
    """Decorator registering an agent factory under name."""

    def decorator(factory: AgentFactory) -> AgentFactory:
        _agent_registry[name] = factory
        if install_hint:
            _agent_install_hints[name] = install_hint
        return factory

    return decorator


def list_agents() -> list[str]:
    return sorted(_agent_registry)


def find_executable(name: str, env: Environment) -> Path | None:
    """Resolve an executable name against the snapshot's PATH.

    Args:
        name: Bare command name or absolute path

    Returns:
        Resolved Path to executable, or None if not found
    """
    if os.path.isabs(name):
        if os.path.isfile(name) and os.access(name, os.X_OK):
            return Path(name).resolve()
        return None

    resolved = shutil.which(name, path=env.get("PATH", os.defpath))
    return Path(resolved).resolve() if resolved else None


def get_agent(name: str, env: Environment) -> AgentSpec:
    """Look up and resolve an agent.

    Raises:
        AgentNotFoundError: If the name is unknown or its executable is missing
    """
    factory = _agent_registry.get(name)
    if factory is None:
        raise AgentNotFoundError(
            f"Unknown agent: {name}",
            hint=f"Available agents: {', '.join(list_agents())}",
        )
    return factory(env)


def prepare_binds(spec: AgentSpec) -> tuple[list[MountOperation], list[str]]:
    """Turn the agent's declared binds into mount operations.

    Missing paths are skipped unless create_if_missing asks for an empty
    file to be created first.

    Returns:
        (operations, human-readable notes)
    """
    ops: list[MountOperation] = []
    notes: list[str] = []
    for bind in spec.binds:
        path = Path(bind.path)
        mode = "read-write" if bind.read_write else "read-only"
        if not path.exists():
            if not bind.create_if_missing:
                logger.debug(f"Agent path {path} not present, not binding")
                continue
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch()
            except OSError as e:
                notes.append(f"Could not create {path}: {e}")
                continue
            notes.append(f"Created and mounted {path} ({mode})")
        else:
            notes.append(f"Mounted {path} ({mode})")
        ops.append(MountOperation.bind(str(path), read_write=bind.read_write))
    return ops, notes


@register_agent("claude", install_hint="Install it from: https://docs.claude.com/en/docs/claude-code")
def claude_agent(env: Environment) -> AgentSpec:
    executable = find_executable("claude", env)
    if executable is None:
        raise AgentNotFoundError(
            "claude is not installed",
            hint=_agent_install_hints["claude"],
        )
    home = env.home
    return AgentSpec(
        name="claude",
        executable=executable,
        binds=[
            AgentBind(f"{home}/.local/bin/claude"),
            AgentBind(f"{home}/.claude", read_write=True),
            AgentBind(f"{home}/.claude.json", read_write=True, create_if_missing=True),
            AgentBind(f"{home}/.claude.json.backup", read_write=True),
        ],
        env_passthrough=("CLAUDECODE", "CLAUDE_CODE_ENTRYPOINT", "ANTHROPIC_API_KEY"),
    )


@register_agent("shell")
def shell_agent(env: Environment) -> AgentSpec:
    """Interactive shell, for inspecting what a sandbox can see."""
    shell = env.get("SHELL", "/bin/bash")
    executable = find_executable(shell, env)
    if executable is None:
        raise AgentNotFoundError(f"Shell not found: {shell}", hint="Set SHELL to an installed shell")
    return AgentSpec(name="shell", executable=executable)
