"""
Unit tests for CLI HTTP client error handling, retry logic and envelope unwrapping.

Tests the APIClient class in urbanscope/cli/client.py for network errors, timeouts,
HTTP status codes, and retry mechanisms.
"""

from unittest.mock import Mock, patch

import httpx
import pytest

from urbanscope.cli.client import (
    APIClient,
    BusinessError,
    HTTPStatusError,
    JSONParseError,
    NetworkError,
    TimeoutError as ClientTimeoutError,
    mask_headers,
    unwrap_envelope,
)


class TestHTTPClientInitialization:
    """Test APIClient initialization and configuration."""

    def test_client_initialization_defaults(self) -> None:
        client = APIClient()

        assert client.base_url == "http://127.0.0.1:8000"
        assert client.timeout == 30.0
        assert client.retry_times == 1
        assert "authorization" not in client._client.headers

        client.close()

    def test_client_token_header(self) -> None:
        with APIClient(token="secret") as client:
            assert client._client.headers["authorization"] == "Bearer secret"

    def test_retry_times_floor(self) -> None:
        with APIClient(retry_times=0) as client:
            assert client.retry_times == 1


class TestHTTPClientNetworkErrors:
    """Test network error handling and retries."""

    def test_connection_refused_error(self) -> None:
        client = APIClient(base_url="http://127.0.0.1:9999", retry_times=1)

        with patch.object(client._client, "request") as mock_request:
            mock_request.side_effect = httpx.ConnectError("Connection refused")

            with pytest.raises(NetworkError):
                client.get("/test")

        client.close()

    def test_retry_on_network_error(self) -> None:
        client = APIClient(retry_times=3)

        with patch.object(client._client, "request") as mock_request:
            mock_request.side_effect = httpx.ConnectError("Connection refused")

            with pytest.raises(NetworkError):
                client.get("/test")

            assert mock_request.call_count == 3

        client.close()

    def test_retry_success_on_third_attempt(self) -> None:
        client = APIClient(retry_times=3)

        mock_response = Mock(spec=httpx.Response)
        mock_response.status_code = 200
        mock_response.json.return_value = {"status": "ok"}

        with patch.object(client._client, "request") as mock_request:
            mock_request.side_effect = [
                httpx.ConnectError("Connection refused"),
                httpx.ConnectError("Connection refused"),
                mock_response,
            ]

            result = client.get("/test")

            assert result == {"status": "ok"}
            assert mock_request.call_count == 3

        client.close()


class TestHTTPClientTimeoutErrors:
    """Test timeout error handling."""

    def test_connect_timeout(self) -> None:
        client = APIClient(timeout=5.0, retry_times=1)

        with patch.object(client._client, "request") as mock_request:
            mock_request.side_effect = httpx.ConnectTimeout("Connection timed out")

            with pytest.raises(NetworkError):
                client.get("/test")

        client.close()

    def test_read_timeout(self) -> None:
        client = APIClient(timeout=5.0, retry_times=2)

        with patch.object(client._client, "request") as mock_request:
            mock_request.side_effect = httpx.ReadTimeout("Read timed out")

            with pytest.raises(ClientTimeoutError):
                client.get("/test")

            assert mock_request.call_count == 2

        client.close()


class TestHTTPClientResponses:
    """Test status, JSON and envelope handling through a mock transport."""

    def test_404_not_found(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404, text="Not found"))
        with APIClient(transport=transport) as client:
            with pytest.raises(HTTPStatusError) as exc_info:
                client.get("/test")

        assert exc_info.value.status_code == 404
        assert "404" in exc_info.value.user_friendly_message()

    def test_invalid_json(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="not json"))
        with APIClient(transport=transport) as client:
            with pytest.raises(JSONParseError):
                client.get("/test")

    def test_get_data_unwraps_envelope(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"code": 10000, "msg": "成功", "data": {"year": 2023}})

        with APIClient(transport=httpx.MockTransport(handler)) as client:
            data = client.get_data("/score/detail", params={"countryId": "CHN", "year": 2023})

        assert data == {"year": 2023}
        assert seen[0].url.params["countryId"] == "CHN"

    def test_get_data_business_error(self) -> None:
        body = {"code": 20002, "msg": "未找到该国家该年份的评分数据", "data": None}
        with APIClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=body))) as client:
            with pytest.raises(BusinessError) as exc_info:
                client.get_data("/score/detail")

        assert exc_info.value.code == 20002
        assert "20002" in exc_info.value.user_friendly_message()


class TestHelpers:
    def test_unwrap_passes_non_envelope_through(self) -> None:
        assert unwrap_envelope({"status": "ok"}) == {"status": "ok"}
        assert unwrap_envelope([1, 2]) == [1, 2]

    def test_mask_headers(self) -> None:
        masked = mask_headers({"Authorization": "Bearer x", "X-API-Key": "k", "Accept": "text/event-stream"})
        assert masked == {"Authorization": "***", "X-API-Key": "***", "Accept": "text/event-stream"}
        assert mask_headers(None) == {}
