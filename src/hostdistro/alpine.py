"""Alpine Linux distribution configuration."""

from hostdistro.base import DistroConfig
from hostdistro.detector import register_distro


@register_distro
class AlpineDistro(DistroConfig):
    """Configuration for Alpine Linux."""

    name = "alpine"
    aliases = []
    package_manager = "apk"

    def get_install_command(self, package: str) -> str:
        return f"sudo apk add {package}"

    def get_system_paths(self) -> list[str]:
        # musl layout: no lib64
        return ["/usr/bin", "/usr/lib", "/usr/share", "/lib", "/bin", "/sbin"]
