"""Autoscaling inventory enumeration and owning-group resolution."""

from __future__ import annotations

import logging

from ..exceptions import AWSAPIError
from .api_client import AWSApiClient
from .models import AutoscalingInstance, AutoscalingPage
from .parsers import parse_autoscaling_page
from .query import describe_autoscaling_instances_args

logger = logging.getLogger(__name__)

AUTOSCALING_SERVICE = "autoscaling"


class AutoscalingInventory:
    """Lists every autoscaling instance visible to the caller, following NextToken."""

    def __init__(self, api: AWSApiClient):
        self._api = api

    def fetch_page(self, next_token: str | None = None) -> AutoscalingPage:
        args = describe_autoscaling_instances_args(next_token)
        return parse_autoscaling_page(self._api.get(AUTOSCALING_SERVICE, args))

    def list_all(self) -> list[AutoscalingInstance]:
        """Return the full inventory across all pages.

        Any failing page raises AWSAPIError and nothing accumulated so far is returned.
        """
        instances: list[AutoscalingInstance] = []
        next_token: str | None = None
        pages = 0
        while True:
            try:
                page = self.fetch_page(next_token)
            except AWSAPIError:
                logger.error("Error fetching autoscaling group instance list (page %d)", pages + 1)
                raise
            pages += 1
            instances.extend(page.instances)
            if page.next_token is None:
                break
            next_token = page.next_token

        logger.debug("Fetched %d autoscaling instances in %d page(s)", len(instances), pages)
        return instances


def find_owning_group(instances: list[AutoscalingInstance], instance_id: str) -> str | None:
    """Group name of the first record for `instance_id`, or None if it is not in the inventory."""
    for inst in instances:
        if inst.instance_id == instance_id:
            return inst.group_name
    return None


def members_of(instances: list[AutoscalingInstance], group_name: str) -> list[str]:
    """Instance ids of every record belonging to `group_name`."""
    return [inst.instance_id for inst in instances if inst.group_name == group_name]
