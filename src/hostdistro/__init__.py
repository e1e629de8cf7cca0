"""Distribution-specific configuration module.

Provides distro-aware install hints for missing tools and the system paths
used when generating a default allowlist.

Usage:
    from hostdistro import get_current_distro

    distro = get_current_distro()
    print(distro.get_tool_install_command("bwrap"))
"""

# Import distro modules to trigger registration
from hostdistro import (  # noqa: F401
    alpine,
    arch,
    debian,
    fedora,
    generic,
    nix,
    opensuse,
)
from hostdistro.base import DistroConfig
from hostdistro.detector import (
    detect_distro_id,
    get_current_distro,
    get_distro_by_id,
    install_hint,
)

__all__ = [
    "DistroConfig",
    "detect_distro_id",
    "get_current_distro",
    "get_distro_by_id",
    "install_hint",
]
