"""Base class for distribution-specific configuration."""

from abc import ABC, abstractmethod
from typing import ClassVar


class DistroConfig(ABC):
    """Abstract base class for distribution-specific configuration.

    Subclasses implement distro-specific install hints and the system paths
    that go into a freshly generated default allowlist.
    """

    name: ClassVar[str]  # Primary distro identifier (e.g., "fedora")
    aliases: ClassVar[list[str]] = []  # Alternative IDs (e.g., ["rhel", "centos"])
    package_manager: ClassVar[str]  # Package manager name (e.g., "dnf")

    # Tool binary -> package providing it, where they differ
    package_names: ClassVar[dict[str, str]] = {"bwrap": "bubblewrap"}

    @abstractmethod
    def get_install_command(self, package: str) -> str:
        """Get the command to install a package.

        Args:
            package: Package name to install

        Returns:
            Full install command string (e.g., "sudo dnf install bubblewrap")
        """
        ...

    def get_tool_install_command(self, tool: str) -> str:
        """Install command for the package that provides a binary."""
        return self.get_install_command(self.package_names.get(tool, tool))

    def get_ssl_cert_paths(self) -> list[str]:
        """Get SSL certificate paths for this distribution."""
        return ["/etc/ssl/certs"]

    def get_system_paths(self) -> list[str]:
        """Get system paths a sandboxed agent needs read-only."""
        return [
            "/usr/bin",
            "/usr/lib",
            "/usr/lib64",
            "/usr/share",
            "/lib",
            "/lib64",
            "/bin",
            "/sbin",
        ]

    def get_default_allowlist(self) -> str:
        """Render the baseline allowlist written when none exists."""
        lines = [
            "# agent-sandbox allowlist",
            "# Paths (one per line) the sandboxed agent may read.",
            "# Append :rw to allow writes. ~, $HOME and other $VARS are expanded.",
            "# Relative entries are resolved against the working directory.",
            "# Lines starting with # are ignored",
            "",
            "# Essential system directories",
            *self.get_system_paths(),
            "",
            "# Common development tools locations",
            "/usr/local/bin",
            "/usr/local/lib",
            "",
            "# Node.js (if installed via package manager)",
            "/usr/lib/node_modules",
            "",
            "# System configuration that's generally safe",
            "/etc/alternatives",
            *self.get_ssl_cert_paths(),
            "",
        ]
        return "\n".join(lines)
