"""Network policy model."""

from dataclasses import dataclass, field
from enum import Enum


class NetworkMode(Enum):
    """Network posture of the sandbox.

    Modes:
        full: Share the host network namespace (local network reachable)
        restricted: Private namespace with internet via the user-mode helper
        isolated: Private namespace with loopback only
    """

    FULL = "full"
    RESTRICTED = "restricted"
    ISOLATED = "isolated"


@dataclass(frozen=True)
class AuxFile:
    """A file placed at sandbox_path inside the sandbox.

    Exactly one of content (synthetic, written to ephemeral storage) or
    host_path (an existing host file bound read-only) is set.
    """

    sandbox_path: str
    content: str | None = None
    host_path: str | None = None
    description: str = ""

    @property
    def is_synthetic(self) -> bool:
        return self.content is not None


@dataclass(frozen=True)
class NetworkPolicy:
    """Resolved network strategy for one invocation."""

    mode: NetworkMode
    aux_files: tuple[AuxFile, ...] = ()
    requires_helper: bool = False
    warnings: tuple[str, ...] = field(default=(), compare=False)

    @property
    def shares_host_network(self) -> bool:
        return self.mode is NetworkMode.FULL
