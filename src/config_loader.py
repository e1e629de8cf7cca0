"""Allowlist/denylist loading.

Turns layered configuration sources into an ordered list of Directives:

    default files  ->  project files  ->  --allowlist/--denylist  ->  --allow/--deny

Loading is pure apart from reading the source files (and writing the default
files when they are missing): nothing is printed, warnings are returned.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from model.directive import AccessMode, Directive, DirectiveKind, Layer

if TYPE_CHECKING:
    from hostdistro.base import DistroConfig
    from environment import Environment

logger = logging.getLogger(__name__)

APP_NAME = "agent-sandbox"
PROJECT_DIR_NAME = ".agent-sandbox"
ALLOWLIST_NAME = "allowlist.txt"
DENYLIST_NAME = "denylist.txt"

ALLOWLIST_ENV = "AGENT_SANDBOX_ALLOWLIST"
DENYLIST_ENV = "AGENT_SANDBOX_DENYLIST"

RW_SUFFIX = ":rw"

DEFAULT_DENYLIST = """\
# agent-sandbox denylist
# Paths relative to the working directory the agent must NOT see.
# Globs (*.pem) match one level; **/name matches at any depth.
# Lines starting with # are ignored

# Common sensitive files
.env
.env.local
.env.production
secrets.*
.secrets.*
*token*.json

# SSH and crypto keys
.ssh
*.pem
*.key
id_rsa
id_ed25519
*.p12
*.pfx

# AWS credentials
.aws/credentials

# Docker and Kubernetes secrets
docker-compose.override.yml
.kube/config

# Password managers
*.kdbx
*.agilekeychain
.vault_password
"""


class ConfigError(Exception):
    """Base for configuration problems detected before launch."""

    hint: str = ""


class ConfigNotFoundError(ConfigError):
    """A required configuration file does not exist."""

    def __init__(self, path: Path | str, hint: str = "") -> None:
        super().__init__(f"Configuration file not found: {path}")
        self.path = Path(path)
        self.hint = hint


class MalformedDirectiveError(ConfigError):
    """A line that cannot be classified as a valid directive."""

    def __init__(self, origin: str, line: str, reason: str) -> None:
        super().__init__(f"{origin}: {reason}: {line!r}")
        self.origin = origin
        self.line = line
        self.hint = "Fix or remove the offending line"


class NoAllowSourceError(ConfigError):
    """No allowlist source is usable, so there is nothing to mount."""

    def __init__(self, default_path: Path | str | None = None) -> None:
        where = f" (default allowlist {default_path} is missing)" if default_path else ""
        super().__init__(f"No usable allowlist source{where}")
        self.hint = "Create the default allowlist, or pass --allowlist FILE or --allow PATH"


@dataclass(frozen=True)
class ConfigSource:
    """One origin of directives: a file, or a single entry given on the command line."""

    kind: DirectiveKind
    path: Path | None = None
    entry: str | None = None
    required: bool = False

    @classmethod
    def file(cls, kind: DirectiveKind, path: Path | str, required: bool = False) -> ConfigSource:
        return cls(kind=kind, path=Path(path), required=required)

    @classmethod
    def direct(cls, kind: DirectiveKind, entry: str) -> ConfigSource:
        return cls(kind=kind, entry=entry)

    @property
    def is_file(self) -> bool:
        return self.path is not None

    def exists(self) -> bool:
        return self.path is None or self.path.is_file()

    def describe(self) -> str:
        if self.path is not None:
            return str(self.path)
        flag = "--allow" if self.kind is DirectiveKind.ALLOW else "--deny"
        return f"{flag} {self.entry}"


def strip_comment(line: str) -> str:
    r"""Remove everything from the first unescaped # and trim whitespace.

    A backslash-escaped \# is kept as a literal #.
    """
    out: list[str] = []
    i = 0
    while i < len(line):
        c = line[i]
        if c == "\\" and i + 1 < len(line) and line[i + 1] == "#":
            out.append("#")
            i += 2
            continue
        if c == "#":
            break
        out.append(c)
        i += 1
    return "".join(out).strip()


def normalize_allow(text: str, env: Environment) -> str:
    """Expand ~/$HOME/$VARS and anchor relative entries at the working directory."""
    expanded = env.expand_user(env.expand_vars(text))
    if not expanded.startswith("/"):
        expanded = os.path.join(env.cwd, expanded)
    return os.path.normpath(expanded)


def normalize_deny(text: str) -> str:
    """Deny entries are always relative to the working directory."""
    stripped = text.lstrip("/")
    while stripped.startswith("./"):
        stripped = stripped[2:]
    return stripped


def parse_entry(
    text: str,
    kind: DirectiveKind,
    layer: Layer,
    ordinal: int,
    env: Environment,
    origin: str,
) -> Directive:
    """Build a Directive from one comment-free, non-empty entry."""
    access = AccessMode.READ_ONLY
    raw = text
    if text.endswith(RW_SUFFIX):
        if kind is DirectiveKind.DENY:
            raise MalformedDirectiveError(origin, text, "':rw' is only valid on allowlist entries")
        raw = text[: -len(RW_SUFFIX)].rstrip()
        access = AccessMode.READ_WRITE

    if not raw:
        raise MalformedDirectiveError(origin, text, "empty path")

    if kind is DirectiveKind.ALLOW:
        pattern = normalize_allow(raw, env)
    else:
        pattern = normalize_deny(raw)
        if not pattern:
            raise MalformedDirectiveError(origin, text, "denying the working directory itself is not supported")

    return Directive(
        kind=kind,
        raw_pattern=raw,
        pattern=pattern,
        layer=layer,
        ordinal=ordinal,
        access_mode=access,
        origin=origin,
    )


def load(source: ConfigSource, layer: Layer, start_ordinal: int, env: Environment) -> list[Directive]:
    """Convert one source into directives.

    Args:
        source: File or direct entry
        layer: Layer the directives belong to
        start_ordinal: Ordinal of the first directive produced
        env: Environment snapshot used for expansion

    Returns:
        Directives in line order. A missing optional file yields [].

    Raises:
        ConfigNotFoundError: If a required file is missing
        MalformedDirectiveError: If a line cannot be classified
    """
    if source.entry is not None:
        text = source.entry.strip()
        flag = "--allow" if source.kind is DirectiveKind.ALLOW else "--deny"
        return [parse_entry(text, source.kind, layer, start_ordinal, env, flag)]

    path = source.path
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if source.required:
            raise ConfigNotFoundError(path, hint="Create it, or pass --allowlist FILE or --allow PATH")
        logger.debug(f"Optional source {path} not found")
        return []

    directives: list[Directive] = []
    for lineno, line in enumerate(content.splitlines(), 1):
        text = strip_comment(line)
        if not text:
            continue
        directives.append(
            parse_entry(
                text,
                source.kind,
                layer,
                start_ordinal + len(directives),
                env,
                f"{path}:{lineno}",
            )
        )
    logger.debug(f"Loaded {len(directives)} {source.kind.value} directive(s) from {path}")
    return directives


def default_paths(env: Environment) -> tuple[Path, Path]:
    """Default (allowlist, denylist) locations, honoring the override variables."""
    config_dir = env.config_home / APP_NAME
    allow = env.get(ALLOWLIST_ENV) or str(config_dir / ALLOWLIST_NAME)
    deny = env.get(DENYLIST_ENV) or str(config_dir / DENYLIST_NAME)
    return Path(env.expand_user(allow)), Path(env.expand_user(deny))


def project_paths(env: Environment) -> tuple[Path, Path]:
    """Project-local (allowlist, denylist) locations under the working directory."""
    project_dir = Path(env.cwd) / PROJECT_DIR_NAME
    return project_dir / ALLOWLIST_NAME, project_dir / DENYLIST_NAME


def write_default_file(path: Path, content: str) -> None:
    """Create a default list file (and its directory)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "x", encoding="utf-8") as f:
        f.write(content)
    logger.info(f"Created default list {path}")


@dataclass
class LoadedPolicy:
    """Directives of every layer plus bookkeeping about where they came from."""

    layers: dict[Layer, list[Directive]] = field(default_factory=dict)
    allow_sources: list[str] = field(default_factory=list)
    deny_sources: list[str] = field(default_factory=list)
    created_files: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add(self, layer: Layer, directives: list[Directive]) -> None:
        self.layers.setdefault(layer, []).extend(directives)

    def directives(self) -> list[Directive]:
        """All directives, strictly in layer order, each layer in its own order."""
        merged: list[Directive] = []
        for layer in sorted(self.layers):
            merged.extend(self.layers[layer])
        return merged

    def next_ordinal(self, layer: Layer) -> int:
        return len(self.layers.get(layer, []))


@dataclass
class PolicyRequest:
    """What the operator asked for on the command line.

    lists and entries keep the order the flags were given in, so a later
    --allow can re-expose what an earlier --deny hid (and vice versa).
    """

    lists: list[tuple[DirectiveKind, str]] = field(default_factory=list)
    entries: list[tuple[DirectiveKind, str]] = field(default_factory=list)
    auto_create: bool = True
    use_project: bool = True

    @property
    def has_allow(self) -> bool:
        return any(kind is DirectiveKind.ALLOW for kind, _ in self.lists + self.entries)


def _load_into(policy: LoadedPolicy, source: ConfigSource, layer: Layer, env: Environment) -> None:
    directives = load(source, layer, policy.next_ordinal(layer), env)
    policy.add(layer, directives)
    if source.kind is DirectiveKind.ALLOW:
        policy.allow_sources.append(source.describe())
    else:
        policy.deny_sources.append(source.describe())


def _ensure_default(
    policy: LoadedPolicy, path: Path, content: str, create: bool, label: str
) -> bool:
    """Make sure a default list exists, creating it when allowed. Returns existence."""
    if path.is_file():
        return True
    if not create:
        policy.warnings.append(f"Default {label} not found at {path}, skipping")
        return False
    try:
        write_default_file(path, content)
    except OSError as e:
        policy.warnings.append(f"Could not create default {label} at {path}: {e}")
        return False
    policy.created_files.append(path)
    policy.warnings.append(f"Created default {label} at {path}; please review and customize it")
    return True


def load_policy(
    env: Environment,
    request: PolicyRequest | None = None,
    distro: DistroConfig | None = None,
) -> LoadedPolicy:
    """Load every layer for an invocation.

    Raises:
        NoAllowSourceError: If no allowlist source at all is usable
        ConfigNotFoundError: If the default allowlist is needed but could not be created
        MalformedDirectiveError: If any line cannot be classified
    """
    request = request or PolicyRequest()
    policy = LoadedPolicy()

    create = request.auto_create and not request.has_allow

    # Default layer
    default_allow, default_deny = default_paths(env)
    if distro is None:
        from hostdistro import get_current_distro

        distro = get_current_distro()
    if _ensure_default(policy, default_allow, distro.get_default_allowlist(), create, "allowlist") or create:
        # With nothing else to allow from, this is the one list that must exist
        source = ConfigSource.file(DirectiveKind.ALLOW, default_allow, required=create)
        _load_into(policy, source, Layer.DEFAULT, env)
    if _ensure_default(policy, default_deny, DEFAULT_DENYLIST, create, "denylist"):
        _load_into(policy, ConfigSource.file(DirectiveKind.DENY, default_deny), Layer.DEFAULT, env)

    # Project layer (never created, silently absent)
    if request.use_project:
        project_allow, project_deny = project_paths(env)
        for kind, path in ((DirectiveKind.ALLOW, project_allow), (DirectiveKind.DENY, project_deny)):
            if path.is_file():
                _load_into(policy, ConfigSource.file(kind, path), Layer.PROJECT, env)
            else:
                logger.debug(f"No project {kind.value}list at {path}")

    # Explicit layer
    for kind, raw in request.lists:
        path = Path(env.expand_user(raw))
        if not path.is_absolute():
            path = Path(env.cwd) / path
        if not path.is_file():
            policy.warnings.append(f"{kind.value.capitalize()}list file not found: {path}, skipping")
            continue
        _load_into(policy, ConfigSource.file(kind, path), Layer.EXPLICIT, env)

    # Direct layer
    for kind, entry in request.entries:
        _load_into(policy, ConfigSource.direct(kind, entry), Layer.DIRECT, env)

    if not policy.allow_sources:
        raise NoAllowSourceError(default_allow)

    return policy
