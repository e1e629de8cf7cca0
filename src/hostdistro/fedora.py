"""Fedora and RHEL-based distribution configuration."""

from hostdistro.base import DistroConfig
from hostdistro.detector import register_distro


@register_distro
class FedoraDistro(DistroConfig):
    """Configuration for Fedora and RHEL-based distributions."""

    name = "fedora"
    aliases = ["rhel", "centos", "rocky", "almalinux", "ol"]  # Oracle Linux
    package_manager = "dnf"

    def get_install_command(self, package: str) -> str:
        return f"sudo dnf install {package}"

    def get_ssl_cert_paths(self) -> list[str]:
        # /etc/ssl/certs is a symlink into /etc/pki on Fedora
        return ["/etc/pki/tls/certs", "/etc/pki/ca-trust/extracted", "/etc/ssl/certs"]
