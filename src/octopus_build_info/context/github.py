"""GitHub API client for resolving refs and comparing commits.

The action needs two things from GitHub:
- GET /repos/{owner}/{repo}/git/ref/{ref} - map a release tag to a SHA
- GET /repos/{owner}/{repo}/compare/{base}...{head} - commits between two SHAs

Design notes:
- Uses httpx for async HTTP requests
- The compare endpoint is paginated; pages are yielded as they arrive so a
  failure part way through still leaves the caller with earlier pages
- Uses a Protocol so discovery code and tests don't depend on the concrete
  implementation

GitHub API docs: https://docs.github.com/en/rest
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol
from urllib.parse import quote

import httpx

from octopus_build_info.context.actions import DEFAULT_API_URL
from octopus_build_info.schemas import Commit, ComparePage

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class GitHubClientProtocol(Protocol):
    """Interface for the GitHub lookups the action performs."""

    async def get_ref(self, owner: str, repo: str, ref: str) -> str:
        """Resolve a git ref such as "tags/v1.2.0" to a commit SHA."""
        ...

    def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> AsyncIterator[list[Commit]]:
        """Yield pages of commits between base and head."""
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class GitHubClient:
    """Real GitHub API client using httpx.

    Usage:
        client = GitHubClient(token="ghp_...")
        sha = await client.get_ref("myorg", "api", "tags/v1.2.0")
        async for page in client.compare_commits("myorg", "api", sha, "HEAD"):
            ...
    """

    PER_PAGE = 100

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub token. Requests are anonymous if not provided.
            base_url: REST API root (differs on GitHub Enterprise Server)
            timeout: Seconds before a request gives up. None disables timeouts.
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def get_ref(self, owner: str, repo: str, ref: str) -> str:
        """Resolve a git ref to the SHA it points at.

        Args:
            owner: Repository owner
            repo: Repository name
            ref: Fully qualified ref without the "refs/" prefix (e.g. "tags/v1.0.0")

        Returns:
            The SHA of the object the ref points at

        Raises:
            httpx.HTTPStatusError: If the ref does not exist or the call fails
        """
        async with self._client() as client:
            resp = await client.get(f"/repos/{owner}/{repo}/git/ref/{quote(ref)}")
            resp.raise_for_status()
            return resp.json()["object"]["sha"]

    async def compare_commits(
        self, owner: str, repo: str, base: str, head: str
    ) -> AsyncIterator[list[Commit]]:
        """Yield each page of commits in the comparison of base...head.

        Follows the Link header until there is no "next" page.

        Raises:
            httpx.HTTPStatusError: If any page fails to load
            pydantic.ValidationError: If a page body is not a compare result
        """
        next_url: str | None = f"/repos/{owner}/{repo}/compare/{base}...{head}"
        params: dict[str, int] | None = {"per_page": self.PER_PAGE}

        async with self._client() as client:
            while next_url:
                resp = await client.get(next_url, params=params)
                resp.raise_for_status()
                yield ComparePage.model_validate(resp.json()).commits
                next_url = self._parse_next_link(resp.headers.get("link", ""))
                # the next link already carries the query string
                params = None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the 'next' URL from a GitHub Link header."""
        if not link_header:
            return None
        for part in link_header.split(","):
            if 'rel="next"' in part:
                return part.split(";")[0].strip().strip("<>")
        return None
