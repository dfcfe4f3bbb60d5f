"""Tests for the signed AWS query-API client."""

from unittest.mock import MagicMock, patch

import pytest
import requests
import responses
from botocore.exceptions import CredentialRetrievalError, ProfileNotFound

from aws_responses import autoscaling_xml, describe_instances_xml, ec2_instance
from peer_discovery_aws.config import DiscoveryOptions, HTTPConfig
from peer_discovery_aws.discovery.api_client import AWSApiClient, ClientContext
from peer_discovery_aws.discovery.query import describe_autoscaling_instances_args, describe_instances_args
from peer_discovery_aws.exceptions import AWSAPIError

EC2_URL = "https://ec2.eu-west-1.amazonaws.com/"
AUTOSCALING_URL = "https://autoscaling.eu-west-1.amazonaws.com/"
ARGS = describe_instances_args()
BODY = describe_instances_xml([ec2_instance("i-1", "ip-10-0-0-1.eu-west-1.compute.internal", "10.0.0.1")])

EC2_ERROR = (
    "<Response><Errors><Error><Code>UnauthorizedOperation</Code>"
    "<Message>You are not authorized to perform this operation.</Message></Error></Errors>"
    "<RequestID>req-9</RequestID></Response>"
)
AUTOSCALING_ERROR = (
    '<ErrorResponse xmlns="https://autoscaling.amazonaws.com/doc/2011-01-01/">'
    "<Error><Type>Sender</Type><Code>Throttling</Code><Message>Rate exceeded</Message></Error>"
    "<RequestId>req-10</RequestId></ErrorResponse>"
)


@pytest.fixture(autouse=True)
def isolated_aws_environment(tmp_path, monkeypatch):
    """Keep the developer's AWS profile, endpoint overrides and credentials out of the tests."""
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))
    for var in (
        "AWS_PROFILE", "AWS_DEFAULT_PROFILE", "AWS_REGION", "AWS_DEFAULT_REGION", "AWS_ENDPOINT_URL",
        "AWS_ENDPOINT_URL_EC2", "AWS_ENDPOINT_URL_AUTO_SCALING", "AWS_USE_FIPS_ENDPOINT",
        "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def client():
    with AWSApiClient(ClientContext(region="eu-west-1", access_key="AKIDEXAMPLE", secret_key="secret")) as c:
        yield c


def _client_for(region: str) -> AWSApiClient:
    return AWSApiClient(ClientContext(region=region, access_key="AK", secret_key="SK"))


class TestClientContext:
    def test_undefined_values_are_not_applied(self):
        ctx = ClientContext.from_options(DiscoveryOptions())
        assert ctx == ClientContext()
        assert not ctx.has_static_credentials

    def test_configured_values(self):
        ctx = ClientContext.from_options(
            DiscoveryOptions(aws_access_key="AK", aws_secret_key="SK", aws_ec2_region="ap-south-1")
        )
        assert ctx == ClientContext(region="ap-south-1", access_key="AK", secret_key="SK")
        assert ctx.has_static_credentials

    def test_access_key_without_secret_is_ignored(self):
        ctx = ClientContext.from_options(DiscoveryOptions(aws_access_key="AK"))
        assert ctx.access_key is None
        assert ctx.secret_key is None


class TestSession:
    def test_static_credentials_and_region_passed_to_boto3(self):
        with patch("boto3.Session") as MockSession:
            MockSession.return_value = MagicMock(region_name="eu-west-1")
            AWSApiClient(ClientContext(region="eu-west-1", access_key="AK", secret_key="SK"))
            MockSession.assert_called_once_with(
                region_name="eu-west-1", aws_access_key_id="AK", aws_secret_access_key="SK"
            )

    def test_default_chain_when_nothing_configured(self):
        with patch("boto3.Session") as MockSession:
            MockSession.return_value = MagicMock(region_name=None)
            client = AWSApiClient(ClientContext())
            MockSession.assert_called_once_with()
        assert client.region == "us-east-1"

    def test_missing_profile_becomes_api_error(self, monkeypatch):
        monkeypatch.setenv("AWS_PROFILE", "does-not-exist")
        with pytest.raises(AWSAPIError, match="does-not-exist") as exc_info:
            AWSApiClient(ClientContext())
        assert isinstance(exc_info.value.__cause__, ProfileNotFound)

    def test_credential_chain_failure_becomes_api_error(self):
        with patch("boto3.Session") as MockSession:
            MockSession.return_value.region_name = "us-east-1"
            MockSession.return_value.get_credentials.side_effect = CredentialRetrievalError(
                provider="container-role", error_msg="connection refused"
            )
            with pytest.raises(AWSAPIError, match="container-role"):
                AWSApiClient(ClientContext())


class TestEndpoints:
    def test_standard_partition(self):
        assert _client_for("eu-west-1").endpoint_url("ec2") == "https://ec2.eu-west-1.amazonaws.com"

    def test_china_partition(self):
        assert _client_for("cn-north-1").endpoint_url("autoscaling").endswith(".amazonaws.com.cn")

    def test_iso_partition(self):
        assert "c2s.ic.gov" in _client_for("us-iso-east-1").endpoint_url("ec2")

    def test_endpoint_override_from_environment(self, monkeypatch):
        monkeypatch.setenv("AWS_ENDPOINT_URL_EC2", "http://localhost:4566")
        assert _client_for("us-east-1").endpoint_url("ec2") == "http://localhost:4566"


class TestGet:
    @responses.activate
    def test_signs_request_and_parses_response(self, client):
        responses.add(responses.GET, EC2_URL, body=BODY)
        parsed = client.get("ec2", ARGS)
        instance = parsed["Reservations"][0]["Instances"][0]
        assert instance["InstanceId"] == "i-1"
        assert instance["PrivateDnsName"] == "ip-10-0-0-1.eu-west-1.compute.internal"
        assert instance["PrivateIpAddress"] == "10.0.0.1"

        request = responses.calls[0].request
        assert request.url == EC2_URL + "?Action=DescribeInstances&Version=2015-10-01"
        auth = request.headers["Authorization"]
        assert auth.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
        assert "/eu-west-1/ec2/aws4_request" in auth
        assert "X-Amz-Date" in request.headers

    @responses.activate
    def test_parses_autoscaling_page(self, client):
        responses.add(responses.GET, AUTOSCALING_URL, body=autoscaling_xml([("i-1", "mq")], next_token="tok"))
        parsed = client.get("autoscaling", describe_autoscaling_instances_args())
        assert parsed["AutoScalingInstances"][0]["AutoScalingGroupName"] == "mq"
        assert parsed["NextToken"] == "tok"
        assert "/eu-west-1/autoscaling/aws4_request" in responses.calls[0].request.headers["Authorization"]

    @responses.activate
    def test_unsigned_without_credentials(self, client):
        client._credentials = None
        responses.add(responses.GET, EC2_URL, body=BODY)
        client.get("ec2", ARGS)
        assert "Authorization" not in responses.calls[0].request.headers

    @responses.activate
    def test_credential_refresh_failure_raises_before_sending(self, client):
        client._credentials = MagicMock()
        client._credentials.get_frozen_credentials.side_effect = CredentialRetrievalError(
            provider="sso", error_msg="token expired"
        )
        with pytest.raises(AWSAPIError, match="token expired"):
            client.get("ec2", ARGS)
        assert len(responses.calls) == 0

    @responses.activate
    def test_ec2_error_response(self, client):
        responses.add(responses.GET, EC2_URL, body=EC2_ERROR, status=403)
        with pytest.raises(AWSAPIError, match="UnauthorizedOperation") as exc_info:
            client.get("ec2", ARGS)
        assert exc_info.value.status_code == 403
        assert "not authorized" in exc_info.value.response_body

    @responses.activate
    def test_autoscaling_error_response(self, client):
        responses.add(responses.GET, AUTOSCALING_URL, body=AUTOSCALING_ERROR, status=400)
        with pytest.raises(AWSAPIError, match="Throttling"):
            client.get("autoscaling", describe_autoscaling_instances_args())

    @responses.activate
    def test_generic_server_error(self, client):
        responses.add(responses.GET, EC2_URL, body="<html><body>Service Unavailable</body></html>", status=503)
        with pytest.raises(AWSAPIError) as exc_info:
            client.get("ec2", ARGS)
        assert exc_info.value.status_code == 503

    @responses.activate
    def test_transport_error_raises(self, client):
        responses.add(responses.GET, EC2_URL, body=requests.ConnectionError("refused"))
        with pytest.raises(AWSAPIError, match="refused"):
            client.get("ec2", ARGS)

    @responses.activate
    def test_malformed_body_raises(self, client):
        responses.add(responses.GET, EC2_URL, body="not xml <")
        with pytest.raises(AWSAPIError, match="Malformed"):
            client.get("ec2", ARGS)

    @responses.activate
    def test_unexpected_document_raises(self, client):
        responses.add(responses.GET, AUTOSCALING_URL, body="<SomethingElse/>")
        with pytest.raises(AWSAPIError, match="Malformed"):
            client.get("autoscaling", describe_autoscaling_instances_args())

    def test_uses_configured_timeout(self):
        client = AWSApiClient(ClientContext(region="us-east-1", access_key="AK", secret_key="SK"), HTTPConfig(timeout=3))
        client._http = MagicMock()
        client._http.get.return_value = MagicMock(status_code=200, content=BODY.encode(), headers={}, text=BODY)
        client.get("ec2", ARGS)
        assert client._http.get.call_args.kwargs["timeout"] == 3


class TestClose:
    def test_context_manager_closes_http_session(self):
        client = _client_for("us-east-1")
        client._http = MagicMock()
        with client as entered:
            assert entered is client
        client._http.close.assert_called_once_with()
