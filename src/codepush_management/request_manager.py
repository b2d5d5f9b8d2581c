"""
HTTP request executor for the CodePush management API.

This module issues authenticated calls against the backend and normalizes
every failure into a :class:`~codepush_management.exceptions.CodePushError`
carrying a message and a status code.
"""

import logging
from typing import Any, Dict, NamedTuple, Optional

import requests
from ratelimit import limits, sleep_and_retry

from .exceptions import (
    ERROR_CONFLICT,
    ERROR_GATEWAY_TIMEOUT,
    ERROR_INTERNAL_SERVER,
    ERROR_NOT_FOUND,
    ERROR_UNAUTHORIZED,
    GatewayTimeoutError,
    ServerError,
    UnauthorizedError,
    error_for_status,
)

logger = logging.getLogger(__name__)

# Client-side pacing for bursts such as listing many apps at once.
RATE_LIMIT_CALLS = 100
RATE_LIMIT_PERIOD = 10


class JsonResponse(NamedTuple):
    headers: Dict[str, str]
    body: Any = None


class RequestManager:
    """
    Thin requests wrapper that injects the access key and normalizes errors.

    Args:
        access_key: API token sent as ``x-api-token`` on every request
        custom_headers: Optional extra headers sent on every request
        server_url: Base URL of the management API
        proxy: Optional proxy URL used for both http and https
        timeout: Seconds to wait for the server before giving up
    """

    SERVER_URL = "https://api.appcenter.ms/v0.1"
    TIMEOUT = 30
    JSON_CONTENT_TYPE = "application/json;charset=UTF-8"

    ERROR_GATEWAY_TIMEOUT = ERROR_GATEWAY_TIMEOUT
    ERROR_INTERNAL_SERVER = ERROR_INTERNAL_SERVER
    ERROR_NOT_FOUND = ERROR_NOT_FOUND
    ERROR_CONFLICT = ERROR_CONFLICT
    ERROR_UNAUTHORIZED = ERROR_UNAUTHORIZED

    def __init__(
        self,
        access_key: str,
        custom_headers: Optional[Dict[str, str]] = None,
        server_url: Optional[str] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        if not access_key:
            raise UnauthorizedError("A token must be specified.")

        self._access_key = access_key
        self._custom_headers = dict(custom_headers or {})
        self.server_url = (server_url or self.SERVER_URL).rstrip("/")
        self._proxy = proxy
        self._timeout = timeout or self.TIMEOUT

    def get(self, endpoint: str, expect_body: bool = True) -> JsonResponse:
        return self._make_request("GET", endpoint, None, expect_body)

    def post(
        self, endpoint: str, body: Any = None, expect_body: bool = False
    ) -> JsonResponse:
        return self._make_request("POST", endpoint, body, expect_body)

    def patch(
        self, endpoint: str, body: Any = None, expect_body: bool = False
    ) -> JsonResponse:
        return self._make_request("PATCH", endpoint, body, expect_body)

    def delete(self, endpoint: str, expect_body: bool = False) -> JsonResponse:
        return self._make_request("DELETE", endpoint, None, expect_body)

    def _get_headers(self, has_body: bool) -> Dict[str, str]:
        """Get headers for API requests."""
        headers = dict(self._custom_headers)
        if has_body:
            headers["Content-Type"] = self.JSON_CONTENT_TYPE
        headers["x-api-token"] = self._access_key
        return headers

    def _make_request_raw(
        self, method: str, endpoint: str, body: Any, expect_body: bool
    ) -> JsonResponse:
        """Make a single request and translate the outcome."""
        url = f"{self.server_url}{endpoint}"
        logger.info(f"_make_request: {method} {url}")

        request_kwargs: Dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": self._get_headers(body is not None),
            "timeout": self._timeout,
        }
        if body is not None:
            request_kwargs["json"] = body
        if self._proxy:
            request_kwargs["proxies"] = {"http": self._proxy, "https": self._proxy}

        try:
            response = requests.request(**request_kwargs)
        except requests.exceptions.ConnectionError as e:
            logger.error(f"_make_request: Connection failed: {e}")
            raise GatewayTimeoutError(
                "Unable to connect to the CodePush server. Are you offline, "
                f"or behind a firewall or proxy?\n({e})"
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"_make_request: Request failed: {e}")
            raise GatewayTimeoutError(f"Request failed: {e}")

        logger.info(f"_make_request: Response received - status={response.status_code}")

        parsed = self._parse_body(response)

        if not response.ok:
            message = response.text
            if isinstance(parsed, dict) and parsed.get("message"):
                message = parsed["message"]
            logger.error(f"API Error {response.status_code}: {message}")
            raise error_for_status(response.status_code, message)

        if expect_body and parsed is None:
            raise ServerError(f"Could not parse response: {response.text}")

        return JsonResponse(headers=dict(response.headers), body=parsed)

    @sleep_and_retry
    @limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
    def _make_request(
        self, method: str, endpoint: str, body: Any, expect_body: bool
    ) -> JsonResponse:
        """Rate-limited wrapper for _make_request_raw."""
        return self._make_request_raw(method, endpoint, body, expect_body)

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        if not response.text:
            return None
        try:
            return response.json()
        except ValueError:
            return None
