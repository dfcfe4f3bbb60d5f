"""Mapping of botocore-parsed AWS responses into typed discovery records."""

from __future__ import annotations

import logging
from typing import Any

from .models import AutoscalingInstance, AutoscalingPage, DescribedInstance

logger = logging.getLogger(__name__)


def parse_autoscaling_page(response: dict[str, Any]) -> AutoscalingPage:
    """Parse one DescribeAutoScalingInstances result.

    Entries without an InstanceId are skipped.
    """
    instances: list[AutoscalingInstance] = []
    for raw in response.get("AutoScalingInstances", []):
        instance_id = raw.get("InstanceId")
        if not instance_id:
            logger.debug("Skipping autoscaling instance entry without InstanceId")
            continue
        instances.append(
            AutoscalingInstance(
                instance_id=instance_id,
                group_name=raw.get("AutoScalingGroupName") or None,
                availability_zone=raw.get("AvailabilityZone") or None,
                lifecycle_state=raw.get("LifecycleState") or None,
            )
        )
    return AutoscalingPage(instances=instances, next_token=response.get("NextToken") or None)


def parse_described_instances(response: dict[str, Any]) -> list[DescribedInstance]:
    """Flatten Reservations[].Instances[] into DescribedInstance records."""
    instances: list[DescribedInstance] = []
    for reservation in response.get("Reservations", []):
        for raw in reservation.get("Instances", []):
            instances.append(
                DescribedInstance(
                    instance_id=raw.get("InstanceId", ""),
                    private_dns_name=raw.get("PrivateDnsName") or "",
                    private_ip_address=raw.get("PrivateIpAddress") or "",
                )
            )
    return instances
