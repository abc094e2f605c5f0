"""
GitHub REST Client
==================

Thin async wrapper over the GitHub REST API endpoints the tools use.

GitHub API Notes:
- Uses httpx for async HTTP requests
- Authenticated with a Personal Access Token (public data only is needed)
- Rate limits: 5000 requests/hour authenticated, 30/minute for search;
  exhausted limits come back as 403
"""

from typing import Any

import httpx

from oss_advisor.utils.errors import GitHubAPIError
from oss_advisor.utils.logger import Logger

logger = Logger("GitHub")

GITHUB_API = "https://api.github.com"
USER_AGENT = "OpenSourceAdvisorBot/1.0"


class GitHubClient:
    """
    Async GitHub API client.

    Every method raises GitHubAPIError for responses with status >= 400,
    and lets httpx transport errors propagate; the tools decide how to
    describe them.

    Example:
        client = GitHubClient(token="ghp_...")
        data = await client.search_repositories("react language:typescript")
        repo = await client.get_repository("facebook", "react")
    """

    def __init__(
        self,
        token: str,
        base_url: str = GITHUB_API,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0
    ):
        """
        Args:
            token: Personal Access Token
            base_url: API root (overridable for GitHub Enterprise)
            transport: Custom httpx transport, e.g. httpx.MockTransport in tests
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        self._transport = transport
        self._timeout = timeout

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET an endpoint and return the decoded JSON body.

        Parameters with a None value are dropped.
        """
        query = {k: v for k, v in (params or {}).items() if v is not None}

        async with httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers,
            transport=self._transport,
            timeout=self._timeout
        ) as client:
            response = await client.get(endpoint, params=query)

        logger.debug(f"GET {endpoint} -> {response.status_code}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get("message") if isinstance(body, dict) else response.text
            raise GitHubAPIError(response.status_code, message or response.reason_phrase)

        return response.json()

    async def search_repositories(
        self,
        query: str,
        sort: str | None = "stars",
        order: str = "desc",
        per_page: int = 5
    ) -> dict:
        return await self._get("/search/repositories", {
            "q": query,
            "sort": sort,
            "order": order,
            "per_page": per_page,
            "page": 1,
        })

    async def get_repository(self, owner: str, repo: str) -> dict:
        return await self._get(f"/repos/{owner}/{repo}")

    async def list_issues(
        self,
        owner: str,
        repo: str,
        state: str | None = None,
        labels: str | None = None,
        per_page: int = 10
    ) -> list[dict]:
        """Most recently updated issues (and pull requests) of a repository."""
        return await self._get(f"/repos/{owner}/{repo}/issues", {
            "state": state,
            "labels": labels,
            "per_page": per_page,
            "page": 1,
            "sort": "updated",
            "direction": "desc",
        })

    async def get_user(self, username: str) -> dict:
        return await self._get(f"/users/{username}")

    async def list_user_repositories(
        self,
        username: str,
        sort: str = "updated",
        per_page: int = 5
    ) -> list[dict]:
        return await self._get(f"/users/{username}/repos", {
            "sort": sort,
            "per_page": per_page,
        })
