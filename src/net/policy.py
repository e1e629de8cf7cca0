"""Network policy resolution.

resolve_network is a pure function of the requested mode and helper
availability. Host-backed auxiliary files become plan operations through
host_file_operations; synthetic ones are materialized by the launcher.
"""

from __future__ import annotations

import logging
import os

from model.mount_operation import MountOperation
from model.network_policy import AuxFile, NetworkMode, NetworkPolicy

logger = logging.getLogger(__name__)

# slirp4netns built-in DNS forwarder inside the 10.0.2.0/24 guest network
HELPER_DNS_ADDRESS = "10.0.2.3"

RESOLV_CONF = "/etc/resolv.conf"
HOSTS = "/etc/hosts"

RESTRICTED_RESOLV_CONF = f"""\
# DNS handled by the slirp4netns relay
nameserver {HELPER_DNS_ADDRESS}
"""

LOOPBACK_HOSTS = """\
# Localhost only
127.0.0.1 localhost
::1 localhost ip6-localhost ip6-loopback
"""


def resolve_network(requested: NetworkMode, helper_available: bool) -> NetworkPolicy:
    """Decide the network strategy for a launch.

    Args:
        requested: Mode the operator asked for
        helper_available: Whether the user-mode network helper is installed

    Returns:
        NetworkPolicy; restricted mode degrades to isolated (with a warning)
        when the helper is missing.
    """
    if requested is NetworkMode.FULL:
        return NetworkPolicy(
            mode=NetworkMode.FULL,
            aux_files=(
                AuxFile(RESOLV_CONF, host_path=RESOLV_CONF, description="Host DNS configuration"),
                AuxFile(HOSTS, host_path=HOSTS, description="Host hosts file"),
            ),
            requires_helper=False,
        )

    if requested is NetworkMode.RESTRICTED:
        if helper_available:
            return NetworkPolicy(
                mode=NetworkMode.RESTRICTED,
                aux_files=(
                    AuxFile(RESOLV_CONF, content=RESTRICTED_RESOLV_CONF, description="DNS via network helper"),
                    AuxFile(HOSTS, content=LOOPBACK_HOSTS, description="Loopback-only hosts"),
                ),
                requires_helper=True,
            )
        return NetworkPolicy(
            mode=NetworkMode.ISOLATED,
            aux_files=(),
            requires_helper=False,
            warnings=("slirp4netns not found: falling back to no network access",),
        )

    return NetworkPolicy(mode=NetworkMode.ISOLATED, aux_files=(), requires_helper=False)


def host_file_operations(policy: NetworkPolicy) -> list[MountOperation]:
    """Read-only binds for the auxiliary files taken from the host.

    Files missing on the host are left out.
    """
    ops = []
    for aux in policy.aux_files:
        if aux.is_synthetic:
            continue
        if not os.path.exists(aux.host_path):
            logger.debug(f"Host file {aux.host_path} missing, not binding")
            continue
        ops.append(MountOperation.bind(aux.host_path, sandbox_path=aux.sandbox_path))
    return ops
