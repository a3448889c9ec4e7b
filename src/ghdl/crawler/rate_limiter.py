"""GitHub API client that surfaces rate-limit state.

GitHub Rate Limits:
- Core API: 60 requests/hour anonymous, 5000 requests/hour per token
- Search API: 30 requests/minute authenticated

The client never waits or retries on its own. Every listing response comes
back with its :class:`RateLimitState` so the discovery worker can stop an
owner as soon as the quota is gone.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ghdl.crawler.models import RepoDescriptor

USER_AGENT = "gh-dl/1.0"


@dataclass
class RateLimitState:
    """Rate-limit headers of a single response."""

    remaining: Optional[int] = None
    limit: Optional[int] = None
    reset_at: Optional[datetime] = None

    @property
    def exhausted(self) -> bool:
        # A response carrying remaining=0 counts as exhausted even when it
        # has a listing; the owner is abandoned and that page is not used.
        return self.remaining is not None and self.remaining <= 0

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> "RateLimitState":
        reset_at = None
        reset = _int_header(headers, "X-RateLimit-Reset")
        if reset is not None:
            reset_at = datetime.fromtimestamp(reset, tz=timezone.utc)
        return cls(
            remaining=_int_header(headers, "X-RateLimit-Remaining"),
            limit=_int_header(headers, "X-RateLimit-Limit"),
            reset_at=reset_at,
        )


@dataclass
class ListingPage:
    """One page of an owner's repository listing."""

    page: int
    repos: List[RepoDescriptor]
    last_page: Optional[int] = None


def _int_header(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def last_page_from_links(response: httpx.Response) -> Optional[int]:
    """Read the page number out of the ``rel="last"`` Link entry."""
    last = response.links.get("last")
    if not last or "url" not in last:
        return None
    page = httpx.URL(last["url"]).params.get("page")
    if page is None or not page.isdigit():
        return None
    return int(page)


class RateLimitedClient:
    """Async GitHub REST client for repository listings.

    Anonymous clients list ``/users/{owner}/repos``. With a token, listings go
    through the search API (``user:{owner}``) which also returns private
    repositories the token can see.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        per_page: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.per_page = per_page
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    async def __aenter__(self) -> "RateLimitedClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._client is None:
            headers = {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": USER_AGENT,
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """GET request. Status codes are left to the caller."""
        client = await self._ensure_client()
        return await client.get(endpoint, params=params)

    def listing_request(self, owner: str, page: int) -> Tuple[str, Dict[str, Any]]:
        """Endpoint and query parameters for one listing page."""
        params: Dict[str, Any] = {"per_page": self.per_page, "page": page}
        if self.authenticated:
            params["q"] = f'user:"{owner}"'
            return "/search/repositories", params
        return f"/users/{owner}/repos", params

    async def fetch_listing(self, owner: str, page: int) -> httpx.Response:
        endpoint, params = self.listing_request(owner, page)
        return await self.get(endpoint, params=params)

    @staticmethod
    def rate_limit(response: httpx.Response) -> RateLimitState:
        return RateLimitState.from_headers(response.headers)

    @staticmethod
    def parse_listing(response: httpx.Response, owner: str, page: int) -> ListingPage:
        """Turn a successful listing response into descriptors.

        Raises:
            httpx.HTTPStatusError: non-2xx response.
            ValueError: body is not a listing.
        """
        response.raise_for_status()
        data = response.json()

        if isinstance(data, dict) and "items" in data:
            # Search API returns {items: [...], total_count: ...}
            items = data["items"]
        elif isinstance(data, list):
            items = data
        else:
            raise ValueError(f"{owner}: unexpected listing payload on page {page}")

        try:
            repos = [RepoDescriptor.from_api(item, owner) for item in items]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"{owner}: malformed repository entry on page {page}") from exc
        return ListingPage(page=page, repos=repos, last_page=last_page_from_links(response))
