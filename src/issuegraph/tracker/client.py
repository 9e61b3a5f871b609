"""Jira REST client.

Async httpx client for the Jira REST API v2 and the Structure plug-in.
Handles Basic/Bearer authentication, cookie sessions for Structure
endpoints, a minimum interval between requests, error decoding and the
Structure endpoint-version probing.
"""

from __future__ import annotations

import asyncio
import base64
import re
import time
from typing import Any

import httpx
import structlog

from issuegraph import __version__
from issuegraph.exceptions import IssueNotFoundError, TopologyUnavailableError, TrackerError

logger = structlog.get_logger()

API_PATH = "/rest/api/2"
SESSION_PATH = "/rest/auth/1/session"
DEFAULT_TIMEOUT = 30.0
DEFAULT_REQUESTS_PER_SECOND = 10.0

# (API version, resource) pairs tried in order for the Structure hierarchy
STRUCTURE_ENDPOINTS = (
    ("latest", "tree"),
    ("1", "tree"),
    ("1.0", "tree"),
    ("2.0", "tree"),
    ("latest", "hierarchy"),
    ("2.0", "hierarchy"),
    ("latest", "element"),
    ("2.0", "element"),
)

_XSRF_COOKIE = re.compile(r"atlassian\.xsrf\.token=([^;]+)")


class RateLimiter:
    """Spaces requests at least ``1 / requests_per_second`` apart.

    A non-positive rate disables limiting.
    """

    def __init__(self, requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND) -> None:
        self._interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    async def wait(self) -> None:
        """Suspend until the next request slot is free."""
        if not self._interval:
            return
        async with self._lock:
            now = time.monotonic()
            delay = self._next_slot - now
            if delay > 0:
                await asyncio.sleep(delay)
            self._next_slot = max(now, self._next_slot) + self._interval


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes and whitespace from the tracker URL."""
    return base_url.strip().rstrip("/")


def decode_error_detail(response: httpx.Response) -> str:
    """Extract the error text of a failed response.

    Prefers Jira's ``errorMessages`` list, then ``message``, then the raw
    body.
    """
    text = response.text
    try:
        payload = response.json()
    except ValueError:
        return text.strip()
    if isinstance(payload, dict):
        messages = payload.get("errorMessages") or []
        if messages:
            return ", ".join(str(m) for m in messages)
        errors = payload.get("errors") or {}
        if errors:
            return ", ".join(f"{k}: {v}" for k, v in errors.items())
        if payload.get("message"):
            return str(payload["message"])
    return text.strip()


def _looks_like_html(text: str) -> bool:
    return text.lstrip().startswith("<")


class JiraClient:
    """Async client for one Jira server.

    Args:
        base_url: Server URL, e.g. ``https://jira.example.com``.
        email: User name for Basic auth and session login.
        api_token: API token (or password) for Basic auth and session login.
        bearer_token: Personal access token; takes precedence over Basic auth.
        session_cookies: Pre-negotiated ``Cookie`` header for Structure calls.
        timeout: Per-request timeout in seconds.
        requests_per_second: Request rate cap; 0 disables it.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        *,
        email: str = "",
        api_token: str = "",
        bearer_token: str = "",
        session_cookies: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = normalize_base_url(base_url)
        self._email = email
        self._api_token = api_token
        self._bearer_token = bearer_token
        self._manual_cookies = bool(session_cookies.strip())
        self._session_cookies = session_cookies.strip()
        self._session_initialized = False
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._limiter = RateLimiter(requests_per_second)
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, config: dict[str, Any], transport: httpx.AsyncBaseTransport | None = None
    ) -> JiraClient:
        """Build a client from the ``[tracker]`` config section."""
        tracker = config.get("tracker", {})
        return cls(
            str(tracker.get("base_url") or ""),
            email=str(tracker.get("email") or ""),
            api_token=str(tracker.get("api_token") or ""),
            bearer_token=str(tracker.get("bearer_token") or ""),
            session_cookies=str(tracker.get("session_cookies") or ""),
            timeout=float(tracker.get("timeout", DEFAULT_TIMEOUT)),
            requests_per_second=float(
                tracker.get("requests_per_second", DEFAULT_REQUESTS_PER_SECOND)
            ),
            transport=transport,
        )

    async def __aenter__(self) -> JiraClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def auth_method(self) -> str:
        """Name of the authentication in use, for diagnostics."""
        if self._bearer_token:
            return "bearer"
        if self._email and self._api_token:
            return "basic"
        if self._session_cookies:
            return "cookies"
        return "none"

    # ─────────────────────────────────────────────────────────────────────────
    # Transport
    # ─────────────────────────────────────────────────────────────────────────

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"issuegraph/{__version__}",
                },
            )
        return self._client

    def _authorization(self) -> str | None:
        if self._bearer_token:
            return f"Bearer {self._bearer_token}"
        if self._email and self._api_token:
            raw = f"{self._email}:{self._api_token}".encode()
            return f"Basic {base64.b64encode(raw).decode('ascii')}"
        return None

    def _headers(self, structure: bool = False, with_auth: bool = True) -> dict[str, str]:
        headers: dict[str, str] = {}
        authorization = self._authorization()
        if authorization and with_auth:
            headers["Authorization"] = authorization
        if structure and self._session_cookies:
            headers["Cookie"] = self._session_cookies
            if _XSRF_COOKIE.search(self._session_cookies):
                headers["X-Atlassian-Token"] = "no-check"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        await self._limiter.wait()
        logger.debug("tracker_request", method=method, path=path)
        try:
            return await self._http().request(
                method,
                path,
                params=params,
                json=json,
                headers=headers,
                follow_redirects=follow_redirects,
            )
        except httpx.HTTPError as e:
            logger.warning("tracker_network_error", method=method, path=path, error=str(e))
            raise TrackerError(
                "Network error occurred while making API request", 0, str(e)
            ) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = decode_error_detail(response)
        logger.debug(
            "tracker_request_failed",
            url=str(response.request.url),
            status=response.status_code,
            detail=detail,
        )
        raise TrackerError(
            f"Jira API error: {response.status_code} {response.reason_phrase}",
            response.status_code,
            detail,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise TrackerError(
                "Invalid JSON in tracker response", response.status_code, response.text[:200]
            ) from e

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send an authenticated REST request and decode the JSON reply.

        Raises:
            TrackerError: On transport failures and non-2xx responses.
        """
        response = await self._send(
            method, path, params=params, json=json, headers=self._headers()
        )
        self._raise_for_status(response)
        return self._decode(response)

    # ─────────────────────────────────────────────────────────────────────────
    # Sessions (Structure endpoints)
    # ─────────────────────────────────────────────────────────────────────────

    async def initialize_session(self) -> bool:
        """Negotiate a cookie session for Structure endpoints.

        Manually supplied cookies are used as-is. Otherwise logs in via
        ``/rest/auth/1/session`` with the Basic credentials.

        Returns:
            True when session cookies are available afterwards.
        """
        if self._manual_cookies or self._session_initialized:
            return bool(self._session_cookies)
        self._session_initialized = True
        if not (self._email and self._api_token):
            logger.debug("session_login_skipped", reason="no basic credentials")
            return bool(self._session_cookies)

        response = await self._send(
            "POST",
            SESSION_PATH,
            json={"username": self._email, "password": self._api_token},
        )
        if not response.is_success:
            logger.warning(
                "session_login_failed",
                status=response.status_code,
                detail=decode_error_detail(response),
            )
            return bool(self._session_cookies)

        self._merge_cookies(response)
        logger.debug("session_initialized", has_cookies=bool(self._session_cookies))
        return bool(self._session_cookies)

    def _merge_cookies(self, response: httpx.Response) -> None:
        cookies: dict[str, str] = {}
        for part in self._session_cookies.split(";"):
            name, sep, value = part.strip().partition("=")
            if sep:
                cookies[name] = value
        for name, value in response.cookies.items():
            cookies[name] = value
        self._session_cookies = "; ".join(f"{name}={value}" for name, value in cookies.items())

    # ─────────────────────────────────────────────────────────────────────────
    # Endpoints
    # ─────────────────────────────────────────────────────────────────────────

    async def get_issue(self, key: str, fields: list[str] | None = None) -> dict[str, Any]:
        """Fetch one issue.

        Raises:
            IssueNotFoundError: If the issue does not exist or is hidden.
            TrackerError: On any other failure.
        """
        params = {"fields": ",".join(fields)} if fields else None
        try:
            return await self.request("GET", f"{API_PATH}/issue/{key}", params=params)
        except TrackerError as e:
            if e.status_code == 404:
                raise IssueNotFoundError(key, e.detail) from e
            raise

    async def search_issues(
        self, jql: str, fields: list[str] | None = None, max_results: int = 50
    ) -> dict[str, Any]:
        """Run a JQL search; returns the raw ``{"issues", "total"}`` payload."""
        params: dict[str, Any] = {"jql": jql, "maxResults": max_results}
        if fields:
            params["fields"] = ",".join(fields)
        return await self.request("GET", f"{API_PATH}/search", params=params)

    async def get_myself(self) -> dict[str, Any]:
        """Fetch the authenticated user."""
        return await self.request("GET", f"{API_PATH}/myself")

    async def get_structure_hierarchy(
        self, structure_id: str, max_results: int = 1000
    ) -> dict[str, Any]:
        """Fetch the elements of a Structure, probing endpoint versions.

        Each candidate in STRUCTURE_ENDPOINTS is tried in order. A 404 or
        an HTML reply (login page, proxy error) moves on to the next
        candidate; any other failure is raised.

        Raises:
            TopologyUnavailableError: If no candidate answered with JSON.
            TrackerError: On any other failed response.
        """
        params = {"maxResults": max_results}
        last_reason = "no endpoint answered"
        all_not_found = True

        for version, resource in STRUCTURE_ENDPOINTS:
            path = f"/rest/structure/{version}/structure/{structure_id}/{resource}"
            response = await self._structure_get(path, params)

            if response.status_code == 404:
                last_reason = f"404 Not Found at {path}"
                logger.debug("structure_endpoint_not_found", path=path)
                continue
            if _looks_like_html(response.text) or response.is_redirect:
                all_not_found = False
                last_reason = f"Received HTML instead of JSON (status: {response.status_code})"
                logger.debug("structure_endpoint_html", path=path, status=response.status_code)
                continue

            self._raise_for_status(response)
            payload = self._decode(response)
            logger.debug("structure_endpoint_ok", path=path)
            if isinstance(payload, list):
                return {"elements": payload}
            return payload or {"elements": []}

        raise TopologyUnavailableError(
            f"Structure {structure_id} unavailable: {last_reason}", not_found=all_not_found
        )

    async def _structure_get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        response = await self._send(
            "GET",
            path,
            params=params,
            headers=self._headers(structure=True),
            follow_redirects=False,
        )
        if response.status_code in (302, 401) and not self._session_initialized:
            logger.debug("structure_session_retry", path=path, status=response.status_code)
            if await self.initialize_session():
                response = await self._send(
                    "GET",
                    path,
                    params=params,
                    headers=self._headers(structure=True, with_auth=False),
                    follow_redirects=False,
                )
        if response.is_redirect:
            location = response.headers.get("location", "")
            if location and "login.jsp" not in location:
                response = await self._send(
                    "GET", location, headers=self._headers(structure=True)
                )
        return response
