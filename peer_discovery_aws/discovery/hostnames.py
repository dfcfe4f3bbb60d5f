"""Resolves instance filters into hostnames via DescribeInstances."""

from __future__ import annotations

import logging

from ..exceptions import AWSAPIError
from .api_client import AWSApiClient
from .parsers import parse_described_instances
from .query import QueryArgs, build_path

logger = logging.getLogger(__name__)

EC2_SERVICE = "ec2"


class HostnameResolver:
    """Reads the private IP or private DNS name of every instance matching a filter."""

    def __init__(self, api: AWSApiClient, use_private_ip: bool = False):
        self._api = api
        self._use_private_ip = use_private_ip

    @property
    def address_field(self) -> str:
        return "privateIpAddress" if self._use_private_ip else "privateDnsName"

    def resolve(self, args: QueryArgs) -> list[str]:
        """Issue one DescribeInstances request; instances with a blank address are skipped.

        Raises AWSAPIError if the request or response parsing fails.
        """
        try:
            instances = parse_described_instances(self._api.get(EC2_SERVICE, args))
        except AWSAPIError as exc:
            logger.error(
                "Error fetching node list via EC2 API, request path: %s, error: %s", build_path(args), exc
            )
            raise

        hostnames: list[str] = []
        for inst in instances:
            hostname = inst.hostname(self._use_private_ip)
            if not hostname:
                logger.debug("Instance %s has no %s, skipping", inst.instance_id, self.address_field)
                continue
            hostnames.append(hostname)
        return hostnames
