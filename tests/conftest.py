"""Shared fixtures for agent-sandbox tests."""

from pathlib import Path

import pytest

from config_loader import LoadedPolicy
from hostdistro.generic import GenericDistro
from environment import Environment
from model import Directive, DirectiveKind, Layer, MountPlan, NetworkMode, NetworkPolicy, SandboxConfig
from model.directive import AccessMode


@pytest.fixture
def home_dir(tmp_path):
    """Fake home directory."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def project_dir(tmp_path):
    """Fake working directory with a few sensitive files."""
    proj = tmp_path / "proj"
    (proj / "src").mkdir(parents=True)
    (proj / "sub" / "deeper").mkdir(parents=True)
    (proj / "src" / "main.py").write_text("print('hi')\n")
    (proj / ".env").write_text("SECRET=1\n")
    (proj / "server.pem").write_text("cert\n")
    (proj / "sub" / "wallet.dat").write_text("coins\n")
    return proj


@pytest.fixture
def fake_env(home_dir, project_dir):
    """Environment snapshot pointing at the fake home and project."""
    return Environment(
        home=str(home_dir),
        cwd=str(project_dir),
        variables={
            "HOME": str(home_dir),
            "PATH": "/usr/bin:/bin",
            "TERM": "xterm",
            "SSH_AUTH_SOCK": "/run/user/1000/ssh-agent",
        },
    )


@pytest.fixture
def generic_distro():
    """Distro with the plain baseline allowlist."""
    return GenericDistro()


def make_directive(kind, pattern, layer=Layer.DEFAULT, ordinal=0, rw=False, raw=None):
    """Build a Directive directly, bypassing file parsing."""
    return Directive(
        kind=kind,
        raw_pattern=raw if raw is not None else pattern,
        pattern=pattern,
        layer=layer,
        ordinal=ordinal,
        access_mode=AccessMode.READ_WRITE if rw else AccessMode.READ_ONLY,
    )


def make_policy(*directives, allow_sources=("test",)):
    """LoadedPolicy holding the given directives in their own layers."""
    policy = LoadedPolicy(allow_sources=list(allow_sources))
    for d in directives:
        policy.add(d.layer, [d])
    return policy


@pytest.fixture
def allow():
    def _allow(pattern, **kwargs):
        return make_directive(DirectiveKind.ALLOW, pattern, **kwargs)

    return _allow


@pytest.fixture
def deny():
    def _deny(pattern, **kwargs):
        return make_directive(DirectiveKind.DENY, pattern, **kwargs)

    return _deny


@pytest.fixture
def minimal_config(project_dir):
    """SandboxConfig with command only (isolated network, empty plan)."""
    return SandboxConfig(command=["bash"], working_dir=str(project_dir))


@pytest.fixture
def restricted_config(project_dir):
    """SandboxConfig that needs the network helper."""
    from net.policy import resolve_network

    return SandboxConfig(
        command=["/usr/bin/claude", "--resume"],
        working_dir=str(project_dir),
        plan=MountPlan(),
        network=resolve_network(NetworkMode.RESTRICTED, helper_available=True),
        env_vars={"HOME": "/home/user", "TERM": "xterm"},
    )


@pytest.fixture
def full_network():
    return NetworkPolicy(mode=NetworkMode.FULL)


def write_list(path: Path, *lines: str) -> Path:
    """Write a list file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n")
    return path
