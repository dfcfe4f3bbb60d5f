"""Conversion of discovered hostnames into broker node names."""

from __future__ import annotations

import ipaddress

from ..config import NodeNameConfig


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def node_name(hostname: str, prefix: str = "rabbit", use_longname: bool = False) -> str:
    """Return '<prefix>@<host>'; values already containing '@' are passed through.

    With short names only the first DNS label of the host is kept. IP addresses
    are never shortened.
    """
    if "@" in hostname:
        return hostname
    host = hostname
    if not use_longname and not _is_ip_address(host):
        host = host.split(".", 1)[0]
    return f"{prefix}@{host}"


class NodeNameMapper:
    """Applies node_name() with the configured prefix and naming mode."""

    def __init__(self, config: NodeNameConfig | None = None):
        config = config or NodeNameConfig()
        self._prefix = config.prefix
        self._use_longname = config.use_longname

    def __call__(self, hostname: str) -> str:
        return node_name(hostname, self._prefix, self._use_longname)

    def map_all(self, hostnames: list[str]) -> list[str]:
        return [self(h) for h in hostnames]
