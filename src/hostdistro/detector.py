"""Distribution detection and registry."""

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hostdistro.base import DistroConfig

# Registry of all distribution configs
_distro_registry: dict[str, type["DistroConfig"]] = {}


def register_distro(cls: type["DistroConfig"]) -> type["DistroConfig"]:
    """Decorator to register a distribution config class.

    Registers the class under its primary name and all aliases.
    """
    _distro_registry[cls.name] = cls
    for alias in cls.aliases:
        _distro_registry[alias] = cls
    return cls


def detect_distro_id(os_release: Path = Path("/etc/os-release")) -> str | None:
    """Detect Linux distribution from /etc/os-release.

    Returns:
        Distribution ID (e.g., 'fedora', 'ubuntu', 'arch') or None if not detected.
    """
    if not os_release.exists():
        return None

    try:
        content = os_release.read_text()
        for line in content.splitlines():
            if line.startswith("ID="):
                return line.split("=", 1)[1].strip().strip('"').lower()
    except OSError:
        pass
    return None


def get_distro_by_id(distro_id: str) -> "DistroConfig | None":
    """Get a distro config instance by ID, or None if unknown."""
    cls = _distro_registry.get(distro_id.lower())
    if cls:
        return cls()
    return None


def get_current_distro() -> "DistroConfig":
    """Detect and return the current distribution's config.

    Falls back to GenericDistro for unknown systems.
    """
    from hostdistro.generic import GenericDistro

    distro_id = detect_distro_id()
    if distro_id:
        distro = get_distro_by_id(distro_id)
        if distro:
            return distro

    return GenericDistro()


def install_hint(tool: str) -> str:
    """One-line install command for the package providing tool."""
    return get_current_distro().get_tool_install_command(tool)
