"""Sandbox configuration model."""

from __future__ import annotations

from dataclasses import dataclass, field

from model.mount_operation import MountPlan
from model.network_policy import NetworkMode, NetworkPolicy

DEFAULT_TERM = "xterm-256color"


@dataclass
class SandboxConfig:
    """Everything the executor needs to start one sandbox.

    The environment inside the sandbox is built from scratch: env_vars is the
    complete set of variables the sandboxed process sees.
    """

    command: list[str]
    working_dir: str
    plan: MountPlan = field(default_factory=MountPlan)
    network: NetworkPolicy = field(default_factory=lambda: NetworkPolicy(mode=NetworkMode.ISOLATED))
    env_vars: dict[str, str] = field(default_factory=dict)

    @property
    def share_net(self) -> bool:
        return self.network.shares_host_network
