"""
HTTP Client for CLI
Wraps httpx Client with unified error handling, retry logic and envelope unwrapping.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urljoin

import httpx

logger = logging.getLogger("urbanscope.cli.client")

ENVELOPE_SUCCESS_CODE = 10000
SENSITIVE_HEADERS = ("authorization", "x-api-key")


# ============================================================================
# Error Classes
# ============================================================================


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ""):
        self.message = message
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(self.message)

    def user_friendly_message(self) -> str:
        """Returns a user-friendly error message."""
        return self.message


class NetworkError(APIError):
    """Network connectivity errors (connection refused, DNS failure, etc.)."""

    def user_friendly_message(self) -> str:
        return (
            f"[ERROR] Unable to connect to server\n\n"
            f"Error: {self.message}\n\n"
            f"Suggestions:\n"
            f"  1. 检查后端服务是否已启动 (uvicorn urbanscope.main:app ...)\n"
            f"  2. 检查 --api-base 参数是否正确\n"
            f"  3. 检查网络连接是否正常"
        )


class TimeoutError(APIError):
    """Request timeout errors."""

    def user_friendly_message(self) -> str:
        return (
            f"[TIMEOUT] Request timed out\n\n"
            f"Error: {self.message}\n\n"
            f"Suggestions:\n"
            f"  1. 检查网络连接\n"
            f"  2. 检查后端服务是否响应缓慢\n"
            f"  3. 尝试增加超时时间 (--timeout 参数)"
        )


class HTTPStatusError(APIError):
    """HTTP status code errors (4xx, 5xx)."""

    def user_friendly_message(self) -> str:
        status = self.status_code or "Unknown"
        return (
            f"[SERVER ERROR] (HTTP {status})\n\n"
            f"Error: {self.message}\n\n"
            f"Response: {self.response_text[:200]}"
        )


class JSONParseError(APIError):
    """JSON parsing errors in response."""

    def user_friendly_message(self) -> str:
        return (
            f"[JSON ERROR] Failed to parse JSON\n\n"
            f"Error: {self.message}\n\n"
            f"原始Response: {self.response_text[:200]}"
        )


class BusinessError(APIError):
    """Envelope answered with a non-success ``code``."""

    def __init__(self, message: str, code: int, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    def user_friendly_message(self) -> str:
        return f"[BUSINESS ERROR] ({self.code}) {self.message}"


class SummaryStreamError(APIError):
    """Base class for failures of a streamed summary session."""


class TransportError(SummaryStreamError):
    """Connection failure, non-success status or non-stream body before any data was parsed."""


class StreamReadError(SummaryStreamError):
    """Failure while reading chunks after the stream was established."""


def mask_headers(headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """Copy of ``headers`` safe for logging."""
    if not headers:
        return {}
    return {k: ("***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def auth_headers(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


def unwrap_envelope(body: Any) -> Any:
    """
    Return ``data`` from a ``{code, msg, data}`` envelope.

    Bodies that are not envelopes pass through unchanged.

    Raises:
        BusinessError: envelope code is not the success code
    """
    if not isinstance(body, dict) or "code" not in body or "msg" not in body:
        return body
    code = body.get("code")
    if code != ENVELOPE_SUCCESS_CODE:
        raise BusinessError(str(body.get("msg") or "业务处理失败"), code=code, data=body.get("data"))
    return body.get("data")


# ============================================================================
# HTTP Client
# ============================================================================


class APIClient:
    """
    HTTP Client wrapper around httpx.Client with unified error handling.

    Features:
    - Configurable base_url, timeout, retry strategy
    - Unified error handling for network, timeout, HTTP status, JSON parse errors
    - Envelope unwrapping for ``{code, msg, data}`` responses
    - Sensitive header masking in logs
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        timeout: float = 30.0,
        retry_times: int = 1,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: Base URL for API server (e.g., http://127.0.0.1:8000)
            timeout: Request timeout in seconds
            retry_times: Number of retries on network errors (not on 4xx/5xx)
            token: Optional bearer token sent on every request
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.retry_times = max(1, retry_times)

        headers = {"Content-Type": "application/json"}
        headers.update(auth_headers(token))
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            trust_env=False,  # Prevent SOCKS proxy detection
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the underlying httpx client."""
        if self._client:
            self._client.close()

    def _log_request(self, method: str, url: str, **kwargs):
        """Log request details (without sensitive headers)."""
        safe_headers = mask_headers(self._client.headers)
        safe_headers.update(mask_headers(kwargs.get("headers")))
        logger.debug(f"{method} {url} | headers: {safe_headers}")

    def _handle_error(self, error: Exception, attempt: int) -> None:
        """Handle different error types and log them."""
        logger.error(f"Request failed (attempt {attempt}): {type(error).__name__}: {str(error)}")

    def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Make a request and return the parsed JSON body.

        Raises:
            NetworkError: Connection failure
            TimeoutError: Request timeout
            HTTPStatusError: Non-2xx HTTP status
            JSONParseError: JSON parsing failure
        """
        url = urljoin(self.base_url, path)
        self._log_request(method, url, **kwargs)

        for attempt in range(1, self.retry_times + 1):
            try:
                response = self._client.request(method, path, **kwargs)
                return self._process_response(response)
            except httpx.ConnectTimeout as e:
                self._handle_error(e, attempt)
                if attempt >= self.retry_times:
                    raise NetworkError(
                        "Connection timeout: server may be unreachable",
                    ) from e
            except httpx.TimeoutException as e:
                self._handle_error(e, attempt)
                if attempt >= self.retry_times:
                    raise TimeoutError(
                        f"Request timeout after {self.retry_times} attempts",
                    ) from e
            except (httpx.ConnectError, httpx.NetworkError) as e:
                self._handle_error(e, attempt)
                if attempt >= self.retry_times:
                    raise NetworkError(
                        str(e),
                    ) from e
            except httpx.HTTPError as e:
                self._handle_error(e, attempt)
                if attempt >= self.retry_times:
                    raise NetworkError(
                        f"HTTP error: {str(e)}",
                    ) from e

    def get(self, path: str, **kwargs) -> Any:
        """Make GET request."""
        return self.request("GET", path, **kwargs)

    def get_data(self, path: str, **kwargs) -> Any:
        """GET an envelope endpoint and return its ``data``.

        Raises:
            BusinessError: envelope code is not success
        """
        return unwrap_envelope(self.get(path, **kwargs))

    def _process_response(self, response: httpx.Response) -> Any:
        """
        Process HTTP response.

        Handles:
        - Non-2xx status codes -> HTTPStatusError
        - JSON parse errors -> JSONParseError

        Returns:
            Parsed JSON response
        """
        if response.status_code >= 400:
            response_text = response.text
            raise HTTPStatusError(
                f"HTTP {response.status_code}: {response_text[:100]}",
                status_code=response.status_code,
                response_text=response_text,
            )

        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            response_text = response.text
            raise JSONParseError(
                f"Failed to parse JSON response: {str(e)}",
                response_text=response_text,
            ) from e
