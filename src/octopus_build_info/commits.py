"""Collect the commits between the previous release and the current build."""

from __future__ import annotations

import httpx

from octopus_build_info.context.github import GitHubClientProtocol
from octopus_build_info.logging_config import get_logger
from octopus_build_info.schemas import Commit

logger = get_logger(__name__)


async def fetch_commits(
    github: GitHubClientProtocol,
    owner: str,
    repo: str,
    base: str | None,
    head: str,
) -> list[Commit]:
    """Fetch every commit in base...head, in the order GitHub returns them.

    Never raises for API failures: a failed page is logged as a warning and
    the commits gathered from earlier pages are returned.

    Args:
        github: GitHub client
        owner: Repository owner
        repo: Repository name
        base: Previous release SHA. No request is made when this is empty.
        head: Current commit SHA

    Returns:
        The commits in the range, possibly partial
    """
    if not base:
        return []

    commits: list[Commit] = []
    try:
        async for page in github.compare_commits(owner, repo, base, head):
            commits.extend(page)
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.warning(
            "compare_commits_failed",
            base=base,
            head=head,
            collected=len(commits),
            error=str(e),
        )
    return commits
