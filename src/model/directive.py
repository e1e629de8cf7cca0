"""Allow/deny directive model."""

from dataclasses import dataclass
from enum import Enum, IntEnum


class DirectiveKind(Enum):
    """Whether a directive exposes or hides paths."""

    ALLOW = "allow"
    DENY = "deny"


class AccessMode(Enum):
    """How an allowed path is bound into the sandbox."""

    READ_ONLY = "ro"
    READ_WRITE = "rw"


class Layer(IntEnum):
    """Precedence tier of a configuration source (later tiers win)."""

    DEFAULT = 0
    PROJECT = 1
    EXPLICIT = 2
    DIRECT = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Directive:
    """One line of sandbox policy.

    raw_pattern is the text as written (comment and suffix stripped).
    pattern is the normalized form the resolver matches against: absolute
    for allow entries, relative to the working directory for deny entries.
    """

    kind: DirectiveKind
    raw_pattern: str
    pattern: str
    layer: Layer
    ordinal: int
    access_mode: AccessMode = AccessMode.READ_ONLY
    origin: str = ""  # "file:line" or "--allow" for messages

    @property
    def is_allow(self) -> bool:
        return self.kind is DirectiveKind.ALLOW

    @property
    def read_write(self) -> bool:
        return self.access_mode is AccessMode.READ_WRITE

    def __str__(self) -> str:
        suffix = ":rw" if self.read_write else ""
        return f"{self.kind.value} {self.raw_pattern}{suffix} ({self.layer.label})"
