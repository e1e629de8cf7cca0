"""openSUSE distribution configuration."""

from hostdistro.base import DistroConfig
from hostdistro.detector import register_distro


@register_distro
class OpenSUSEDistro(DistroConfig):
    """Configuration for openSUSE Leap and Tumbleweed."""

    name = "opensuse"
    aliases = ["opensuse-leap", "opensuse-tumbleweed", "sles"]
    package_manager = "zypper"

    def get_install_command(self, package: str) -> str:
        return f"sudo zypper install {package}"

    def get_ssl_cert_paths(self) -> list[str]:
        return ["/etc/ssl/certs", "/var/lib/ca-certificates"]
