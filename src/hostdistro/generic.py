"""Generic fallback distribution configuration."""

import shutil

from hostdistro.base import DistroConfig
from hostdistro.detector import register_distro

# Probed in order; the first package manager found on PATH wins
INSTALL_TEMPLATES = (
    ("apt", "sudo apt install {}"),
    ("dnf", "sudo dnf install {}"),
    ("pacman", "sudo pacman -S {}"),
    ("zypper", "sudo zypper install {}"),
    ("apk", "sudo apk add {}"),
    ("nix-env", "nix-env -iA nixpkgs.{}"),
)


@register_distro
class GenericDistro(DistroConfig):
    """Fallback for unrecognised distributions.

    The package manager is guessed from what is installed.
    """

    name = "generic"
    aliases = []
    package_manager = "unknown"

    def get_install_command(self, package: str) -> str:
        for binary, template in INSTALL_TEMPLATES:
            if shutil.which(binary):
                return template.format(package)
        return f"Install {package} using your package manager"
