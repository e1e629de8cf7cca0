"""Environment snapshot for agent-sandbox.

Everything that depends on the invoking process environment (home directory,
working directory, variables) is read once into an Environment and passed
around explicitly, so tests can inject a fake one.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

_VAR_RE = re.compile(r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))")


@dataclass(frozen=True)
class Environment:
    """Immutable view of the invoking environment."""

    home: str
    cwd: str
    variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @classmethod
    def from_os(cls) -> Environment:
        """Capture the current process environment."""
        home = os.environ.get("HOME") or str(Path.home())
        return cls(home=home, cwd=os.getcwd(), variables=dict(os.environ))

    def get(self, name: str, default: str | None = None) -> str | None:
        value = self.variables.get(name)
        return value if value else default

    def expand_vars(self, text: str) -> str:
        """Substitute $VAR and ${VAR}; unknown variables are left verbatim.

        HOME always resolves to the snapshot's home directory.
        """

        def _sub(match: re.Match) -> str:
            name = match.group("braced") or match.group("bare")
            if name == "HOME":
                return self.home
            value = self.variables.get(name)
            return value if value is not None else match.group(0)

        return _VAR_RE.sub(_sub, text)

    def expand_user(self, text: str) -> str:
        """Substitute a leading ~ (only the bare form, not ~user)."""
        if text == "~" or text.startswith("~/"):
            return self.home + text[1:]
        return text

    def passthrough(self, names: list[str] | tuple[str, ...]) -> dict[str, str]:
        """Return the subset of names present (and non-empty) in the snapshot."""
        return {name: self.variables[name] for name in names if self.variables.get(name)}

    @property
    def config_home(self) -> Path:
        xdg = self.get("XDG_CONFIG_HOME")
        return Path(xdg) if xdg else Path(self.home) / ".config"

    @property
    def state_home(self) -> Path:
        xdg = self.get("XDG_STATE_HOME")
        return Path(xdg) if xdg else Path(self.home) / ".local" / "state"
