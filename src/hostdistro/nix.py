"""NixOS distribution configuration."""

from hostdistro.base import DistroConfig
from hostdistro.detector import register_distro


@register_distro
class NixOSDistro(DistroConfig):
    """Configuration for NixOS.

    Almost every binary lives in the Nix store and is reached through
    /run/current-system, so both must be visible for anything to start.
    """

    name = "nixos"
    aliases = []
    package_manager = "nix"

    def get_install_command(self, package: str) -> str:
        return f"nix-env -iA nixpkgs.{package}"

    def get_ssl_cert_paths(self) -> list[str]:
        return ["/etc/ssl/certs", "/etc/static/ssl"]

    def get_system_paths(self) -> list[str]:
        return ["/nix/store", "/run/current-system", "/usr/bin", "/bin"]
