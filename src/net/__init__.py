"""Network module for sandbox connectivity.

Three postures are supported:
- FULL: the host network namespace is shared
- RESTRICTED: a private namespace reaches the internet through slirp4netns,
  without access to the host loopback
- ISOLATED: a private namespace with loopback only

Architecture (restricted):
    bwrap --unshare-all --info-fd N ... -- /bin/sh wait-for-net.sh agent ...
    slirp4netns --configure --disable-host-loopback <child pid> tap0
"""

from net.policy import HELPER_DNS_ADDRESS, host_file_operations, resolve_network
from net.slirp4netns import (
    HelperAttachError,
    HelperHandle,
    attach,
    available,
    generate_helper_args,
    terminate,
)

__all__ = [
    "HELPER_DNS_ADDRESS",
    "host_file_operations",
    "resolve_network",
    # slirp4netns
    "HelperAttachError",
    "HelperHandle",
    "attach",
    "available",
    "generate_helper_args",
    "terminate",
]
