"""Client for the EC2 instance metadata service."""

from __future__ import annotations

import logging

import requests

from ..exceptions import MetadataError

logger = logging.getLogger(__name__)

INSTANCE_ID_URL = "http://169.254.169.254/latest/meta-data/instance-id"

# Used as both connect and read timeout; must stay well under the broker's
# 5s synchronous call timeout.
INSTANCE_ID_TIMEOUT = 2.25


class MetadataClient:
    """Fetches facts about the local instance from the link-local metadata endpoint."""

    def __init__(self, session: requests.Session | None = None, timeout: float = INSTANCE_ID_TIMEOUT):
        self._session = session or requests.Session()
        self._timeout = timeout

    def local_instance_id(self) -> str:
        """Return this instance's EC2 id. Raises MetadataError on any failure."""
        try:
            resp = self._session.get(INSTANCE_ID_URL, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.error("Failed to fetch EC2 instance ID from %s: %s", INSTANCE_ID_URL, exc)
            raise MetadataError(f"Request to {INSTANCE_ID_URL} failed: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                "Failed to fetch EC2 instance ID from %s: HTTP %d", INSTANCE_ID_URL, resp.status_code
            )
            raise MetadataError(f"HTTP {resp.status_code} from {INSTANCE_ID_URL}")

        instance_id = resp.text.strip()
        logger.debug("Fetched EC2 instance ID from %s: %s", INSTANCE_ID_URL, instance_id)
        return instance_id
