"""Signed GET requests against the AWS query APIs (EC2, Auto Scaling)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError
from botocore.model import OperationNotFoundError, ServiceModel
from botocore.parsers import ResponseParserError, create_parser

from ..config import UNDEFINED, DiscoveryOptions, HTTPConfig
from ..exceptions import AWSAPIError
from .query import QueryArgs, build_path

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class ClientContext:
    """Region and static credentials for one discovery run.

    None means "not configured": the default boto3 chain (environment, shared
    files, instance profile) is used instead.
    """

    region: str | None = None
    access_key: str | None = None
    secret_key: str | None = None

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)

    @classmethod
    def from_options(cls, options: DiscoveryOptions) -> ClientContext:
        def _configured(value: str) -> str | None:
            return None if value == UNDEFINED else value

        access_key = _configured(options.aws_access_key)
        secret_key = _configured(options.aws_secret_key)
        if access_key is None or secret_key is None:
            access_key = secret_key = None
        return cls(region=_configured(options.aws_ec2_region), access_key=access_key, secret_key=secret_key)


class AWSApiClient:
    """Issues SigV4-signed query-API GETs and returns the botocore-parsed response.

    botocore supplies the endpoint, the service model and the response parser;
    the request itself goes out over requests so the exact query string is ours.
    Use as a context manager, or call close(), to release pooled connections.
    """

    def __init__(self, context: ClientContext, http_config: HTTPConfig | None = None):
        http_config = http_config or HTTPConfig()

        session_kwargs: dict[str, Any] = {}
        if context.region:
            logger.debug("Setting AWS region to %s", context.region)
            session_kwargs["region_name"] = context.region
        if context.has_static_credentials:
            logger.debug("Setting AWS credentials, access key: '%s'", context.access_key)
            session_kwargs["aws_access_key_id"] = context.access_key
            session_kwargs["aws_secret_access_key"] = context.secret_key

        try:
            self._session = boto3.Session(**session_kwargs)
            self._region = self._session.region_name or DEFAULT_REGION
            self._credentials = self._session.get_credentials()
        except BotoCoreError as exc:
            raise AWSAPIError(f"Unable to set up AWS session: {exc}") from exc

        self._clients: dict[str, Any] = {}
        self._http = requests.Session()
        self._http.verify = http_config.verify_ssl
        self._timeout = http_config.timeout

    def __enter__(self) -> AWSApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    @property
    def region(self) -> str:
        return self._region

    def endpoint_url(self, service: str) -> str:
        """Endpoint botocore resolves for `service` (partition, FIPS and AWS_ENDPOINT_URL* aware)."""
        return self._service_client(service).meta.endpoint_url

    def get(self, service: str, args: QueryArgs) -> dict[str, Any]:
        """GET the query built from `args` on the service endpoint and parse the response.

        Raises AWSAPIError on botocore, transport, HTTP and parse failures.
        """
        client = self._service_client(service)
        action = dict(args)["Action"]
        path = build_path(args)
        url = f"{client.meta.endpoint_url.rstrip('/')}{path}"

        request = AWSRequest(method="GET", url=url)
        self._sign(request, client.meta.service_model, client.meta.region_name, action)

        logger.debug("AWS request: %s %s", service, path, extra={"service": service, "action": action})
        try:
            resp = self._http.get(url, headers=dict(request.headers.items()), timeout=self._timeout)
        except requests.RequestException as exc:
            raise AWSAPIError(f"Request to {service} failed: {exc}") from exc

        parsed = self._parse(client.meta.service_model, action, resp)
        error = parsed.get("Error")
        if resp.status_code >= 300 or error:
            error = error or {}
            raise AWSAPIError(
                f"HTTP {resp.status_code} on {action}: {error.get('Code', '')} {error.get('Message', '')}".rstrip(),
                status_code=resp.status_code,
                response_body=resp.text,
            )
        return parsed

    # ── botocore plumbing ───────────────────────────────────────────

    def _service_client(self, service: str) -> Any:
        # Only the client's metadata (endpoint, model, region) is used; it never sends requests.
        if service not in self._clients:
            try:
                self._clients[service] = self._session.client(service, region_name=self._region)
            except BotoCoreError as exc:
                raise AWSAPIError(f"Unable to set up AWS {service} client: {exc}") from exc
        return self._clients[service]

    def _sign(self, request: AWSRequest, service_model: ServiceModel, region: str, action: str) -> None:
        if self._credentials is None:
            logger.warning("No AWS credentials available, sending unsigned %s request", action)
            return
        try:
            credentials = self._credentials.get_frozen_credentials()
            SigV4Auth(credentials, service_model.signing_name, region).add_auth(request)
        except BotoCoreError as exc:
            raise AWSAPIError(f"Unable to sign {action} request: {exc}") from exc

    @staticmethod
    def _parse(service_model: ServiceModel, action: str, resp: requests.Response) -> dict[str, Any]:
        try:
            output_shape = service_model.operation_model(action).output_shape
        except OperationNotFoundError as exc:
            raise AWSAPIError(f"Unknown {service_model.service_name} action: {action}") from exc

        parser = create_parser(service_model.protocol)
        raw = {"body": resp.content, "headers": resp.headers, "status_code": resp.status_code}
        try:
            return parser.parse(raw, output_shape)
        except (ResponseParserError, KeyError, TypeError, ValueError) as exc:
            raise AWSAPIError(
                f"Malformed {action} response (HTTP {resp.status_code}): {exc}",
                status_code=resp.status_code,
                response_body=resp.text,
            ) from exc
