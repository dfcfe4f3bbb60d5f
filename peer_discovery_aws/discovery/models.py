"""Data models for parsed AWS API records and the discovery result."""

from __future__ import annotations

from dataclasses import dataclass, field

NODE_TYPE_DISC = "disc"


@dataclass(frozen=True)
class AutoscalingInstance:
    """One item of a DescribeAutoScalingInstances response."""

    instance_id: str
    group_name: str | None = None
    availability_zone: str | None = None
    lifecycle_state: str | None = None


@dataclass(frozen=True)
class AutoscalingPage:
    """One page of the autoscaling inventory plus the continuation cursor, if any."""

    instances: list[AutoscalingInstance] = field(default_factory=list)
    next_token: str | None = None


@dataclass(frozen=True)
class DescribedInstance:
    """One instance item of a DescribeInstances response."""

    instance_id: str
    private_dns_name: str = ""
    private_ip_address: str = ""

    def hostname(self, use_private_ip: bool) -> str:
        """The address field selected by the private-IP policy ("" when absent)."""
        return self.private_ip_address if use_private_ip else self.private_dns_name


@dataclass(frozen=True)
class PeerResult:
    """Cluster node identifiers discovered for this node, all of one node type."""

    nodes: list[str] = field(default_factory=list)
    node_type: str = NODE_TYPE_DISC

    @classmethod
    def empty(cls) -> PeerResult:
        return cls()

    def __len__(self) -> int:
        return len(self.nodes)
