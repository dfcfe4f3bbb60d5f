"""AWS peer discovery backend: autoscaling-group or tag-based node listing."""

from __future__ import annotations

import logging
from typing import Callable, Mapping

from .config import AppConfig, DiscoveryOptions, HTTPConfig, resolve_options
from .discovery.api_client import AWSApiClient, ClientContext
from .discovery.autoscaling import AutoscalingInventory, find_owning_group, members_of
from .discovery.hostnames import HostnameResolver
from .discovery.metadata import INSTANCE_ID_URL, MetadataClient
from .discovery.models import PeerResult
from .discovery.node_names import NodeNameMapper
from .discovery.query import describe_instances_args
from .exceptions import AWSAPIError, MetadataError, PeerDiscoveryError

logger = logging.getLogger(__name__)

ApiClientFactory = Callable[[ClientContext, HTTPConfig], AWSApiClient]


class AWSPeerDiscoveryBackend:
    """Answers "which nodes should I cluster with" from EC2 / Auto Scaling data.

    Options are resolved again on every list_nodes() call, and every call builds
    its own API client from that run's region and credentials.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        environ: Mapping[str, str] | None = None,
        api_factory: ApiClientFactory = AWSApiClient,
        metadata_client: MetadataClient | None = None,
    ):
        self._config = config or AppConfig()
        self._environ = environ
        self._api_factory = api_factory
        self._metadata = metadata_client or MetadataClient()
        self._node_names = NodeNameMapper(self._config.node_name)

    def init(self) -> None:
        logger.debug("Peer discovery AWS: initialising...")

    def list_nodes(self) -> PeerResult:
        """Return the discovered peers. Raises PeerDiscoveryError if the AWS APIs fail."""
        options = resolve_options(self._config.peer_discovery_aws, self._environ)
        logger.debug("Will use AWS access key of '%s'", options.aws_access_key)
        context = ClientContext.from_options(options)

        if options.aws_autoscaling:
            return self._autoscaling_group_nodes(context, options)
        return self._tagged_nodes(context, options)

    # ── Autoscaling group discovery ─────────────────────────────────

    def _autoscaling_group_nodes(self, context: ClientContext, options: DiscoveryOptions) -> PeerResult:
        try:
            instance_id = self._metadata.local_instance_id()
        except MetadataError:
            logger.warning(
                "Cannot discover any nodes: failed to fetch this node's EC2 instance id from %s",
                INSTANCE_ID_URL,
            )
            return PeerResult.empty()

        try:
            api = self._api_factory(context, self._config.http)
        except AWSAPIError as exc:
            msg = "Cannot discover any nodes because the AWS API client could not be set up"
            logger.error("%s: %s", msg, exc)
            raise PeerDiscoveryError(msg) from exc

        with api:
            return self._group_nodes(api, instance_id, options)

    def _group_nodes(self, api: AWSApiClient, instance_id: str, options: DiscoveryOptions) -> PeerResult:
        try:
            instances = AutoscalingInventory(api).list_all()
        except AWSAPIError as exc:
            msg = "Cannot discover any nodes because AWS autoscaling group description API call failed"
            logger.warning("%s: %s", msg, exc)
            raise PeerDiscoveryError(msg) from exc

        group = find_owning_group(instances, instance_id)
        if group is None:
            logger.warning(
                "Cannot discover any nodes because no AWS autoscaling group could be found in "
                "the instance description. Make sure that this instance belongs to an autoscaling group.",
                extra={"instance_id": instance_id},
            )
            return PeerResult.empty()

        logger.debug("Performing autoscaling group discovery, group: %s", group, extra={"group": group})
        members = members_of(instances, group)
        logger.debug("Performing autoscaling group discovery, found instances: %s", members)

        resolver = HostnameResolver(api, use_private_ip=options.aws_use_private_ip)
        try:
            hostnames = resolver.resolve(describe_instances_args(members, options.aws_ec2_tags))
        except AWSAPIError as exc:
            msg = "Cannot discover any nodes: DescribeInstances API call failed"
            logger.error(msg)
            raise PeerDiscoveryError(msg) from exc

        logger.debug("Performing autoscaling group-based discovery, hostnames: %s", hostnames)
        return self._result(hostnames, strategy="autoscaling")

    # ── Tag-based discovery ─────────────────────────────────────────

    def _tagged_nodes(self, context: ClientContext, options: DiscoveryOptions) -> PeerResult:
        tags = options.aws_ec2_tags
        if not tags:
            logger.warning("Cannot discover any nodes because AWS tags are not configured!")
            return PeerResult.empty()

        try:
            with self._api_factory(context, self._config.http) as api:
                resolver = HostnameResolver(api, use_private_ip=options.aws_use_private_ip)
                hostnames = resolver.resolve(describe_instances_args(tags=tags))
        except AWSAPIError as exc:
            logger.warning(
                "Cannot discover any nodes because AWS instance description with tags %s failed: %s", tags, exc
            )
            return PeerResult.empty()

        return self._result(hostnames, strategy="tags")

    def _result(self, hostnames: list[str], strategy: str) -> PeerResult:
        nodes = self._node_names.map_all(hostnames)
        logger.info(
            "AWS peer discovery found %d node(s)",
            len(nodes),
            extra={"strategy": strategy, "total_nodes": len(nodes)},
        )
        return PeerResult(nodes=nodes)

    # ── Registration (not needed: peers are found through AWS) ──────

    def supports_registration(self) -> bool:
        return True

    def register(self) -> None:
        pass

    def unregister(self) -> None:
        pass

    def post_registration(self) -> None:
        pass

    def lock(self, node: str) -> str | None:
        return "not_supported"

    def unlock(self, data: object) -> None:
        pass
