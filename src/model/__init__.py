"""Model classes for agent-sandbox."""

from model.directive import AccessMode, Directive, DirectiveKind, Layer
from model.mount_operation import MountKind, MountOperation, MountPlan
from model.network_policy import AuxFile, NetworkMode, NetworkPolicy
from model.sandbox_config import SandboxConfig

__all__ = [
    "AccessMode",
    "Directive",
    "DirectiveKind",
    "Layer",
    "MountKind",
    "MountOperation",
    "MountPlan",
    "AuxFile",
    "NetworkMode",
    "NetworkPolicy",
    "SandboxConfig",
]
