"""Previous-release discovery.

Works out which commit was live in the target environment before this
build, so the build information can list what changed since then:

1. Resolve the Octopus space, project and environment
2. Find the most recent successful deployment of the project there
3. Extract a commit SHA from that deployment's recorded changes

Step 3 tries a fixed, ordered list of extraction strategies and the first
one to produce a SHA wins:
- build information for one of the packages this run pushes
- build information for any package
- the release version mapped to a git tag through the GitHub API

Every failure here is recoverable. It is logged as a warning and discovery
returns None, so the run still produces build information, just without a
commit history.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass, field

import httpx

from octopus_build_info.context.github import GitHubClientProtocol
from octopus_build_info.context.octopus import OctopusClient
from octopus_build_info.errors import BuildInfoError
from octopus_build_info.logging_config import get_logger
from octopus_build_info.schemas import BuildInformationEntry, Deployment

logger = get_logger(__name__)

# Errors a discovery stage recovers from; ValueError covers malformed payloads
RECOVERABLE_ERRORS = (BuildInfoError, httpx.HTTPError, ValueError)


@dataclass
class ExtractionContext:
    """What the extraction strategies need besides the deployment.

    Attributes:
        github: Client used to map a version tag to a SHA
        owner: Repository owner
        repo: Repository name
        package_ids: Packages this run pushes build information for
        tag_prefix: Prepended to a version to form the tag name
    """

    github: GitHubClientProtocol
    owner: str
    repo: str
    package_ids: Sequence[str] = field(default_factory=tuple)
    tag_prefix: str = ""


ExtractionStrategy = Callable[[Deployment, ExtractionContext], Awaitable[str | None]]


# ---------------------------------------------------------------------------
# Extraction Strategies
# ---------------------------------------------------------------------------


def newest_build_information(deployment: Deployment) -> Iterator[BuildInformationEntry]:
    """Build information across all changes, most recent change first."""
    for change in reversed(deployment.changes):
        yield from change.build_information


def last_version(deployment: Deployment) -> str | None:
    """The last non-empty change version, in recorded order."""
    versions = [change.version for change in deployment.changes if change.version]
    return versions[-1] if versions else None


async def commit_from_pushed_package(
    deployment: Deployment, ctx: ExtractionContext
) -> str | None:
    """Commit recorded for one of the packages this run pushes."""
    for build in newest_build_information(deployment):
        if build.package_id in ctx.package_ids and build.vcs_commit_number:
            logger.info(
                "previous_build_found",
                package_id=build.package_id,
                sha=build.vcs_commit_number,
            )
            return build.vcs_commit_number
    return None


async def commit_from_any_build(
    deployment: Deployment, ctx: ExtractionContext
) -> str | None:
    """Commit recorded for any package."""
    for build in newest_build_information(deployment):
        if build.vcs_commit_number:
            logger.info(
                "previous_build_found",
                package_id=build.package_id,
                sha=build.vcs_commit_number,
            )
            return build.vcs_commit_number
    return None


async def commit_from_version_tag(
    deployment: Deployment, ctx: ExtractionContext
) -> str | None:
    """Commit the release version's git tag points at."""
    version = last_version(deployment)
    if not version:
        logger.warning("no_build_information", deployment_id=deployment.id)
        return None

    tag = f"{ctx.tag_prefix}{version}"
    logger.info("previous_version_found", version=version, tag=tag)
    try:
        sha = await ctx.github.get_ref(ctx.owner, ctx.repo, f"tags/{tag}")
    except RECOVERABLE_ERRORS as e:
        logger.warning("ref_lookup_failed", tag=tag, error=str(e))
        return None
    except (KeyError, TypeError) as e:
        logger.warning("ref_lookup_failed", tag=tag, error=f"unexpected payload: {e}")
        return None

    logger.info("tag_mapped", tag=tag, sha=sha)
    return sha


EXTRACTION_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    commit_from_pushed_package,
    commit_from_any_build,
    commit_from_version_tag,
)


async def extract_previous_commit(
    deployment: Deployment,
    ctx: ExtractionContext,
    strategies: Sequence[ExtractionStrategy] = EXTRACTION_STRATEGIES,
) -> str | None:
    """Run the strategies in order and return the first SHA produced."""
    if not deployment.changes:
        logger.warning("no_changes_in_deployment", deployment_id=deployment.id)
        return None

    for strategy in strategies:
        sha = await strategy(deployment, ctx)
        if sha:
            return sha
    return None


# ---------------------------------------------------------------------------
# Discovery Pipeline
# ---------------------------------------------------------------------------


async def find_previous_deployment(
    octopus: OctopusClient,
    project_name: str,
    environment_name: str | None,
    space_name: str | None = None,
) -> Deployment | None:
    """Resolve the space, project and environment, then the last deployment.

    Returns None (after logging a warning) if any lookup fails.
    """
    try:
        space = await octopus.resolve_space(space_name)
    except RECOVERABLE_ERRORS as e:
        logger.warning("space_lookup_failed", space=space_name, error=str(e))
        return None
    logger.info("space_found", name=space.name, id=space.id)

    try:
        project = await octopus.resolve_project(space.id, project_name)
    except RECOVERABLE_ERRORS as e:
        logger.warning("project_lookup_failed", project=project_name, error=str(e))
        return None
    logger.info("project_found", name=project.name, id=project.id)

    try:
        environment = await octopus.resolve_environment(space.id, environment_name)
    except RECOVERABLE_ERRORS as e:
        logger.warning("environment_lookup_failed", environment=environment_name, error=str(e))
        return None
    logger.info("environment_found", name=environment.name, id=environment.id)

    try:
        deployment = await octopus.find_previous_deployment(space, project, environment)
    except RECOVERABLE_ERRORS as e:
        logger.warning("deployment_lookup_failed", error=str(e))
        return None

    if deployment is None:
        logger.info("no_previous_deployment", project=project.name, environment=environment.name)
        return None

    logger.info("previous_deployment_found", id=deployment.id, created=str(deployment.created))
    return deployment


async def find_previous_commit(
    octopus: OctopusClient,
    ctx: ExtractionContext,
    project_name: str | None,
    environment_name: str | None,
    space_name: str | None = None,
) -> str | None:
    """Find the commit of the last successful deployment, if possible.

    Args:
        octopus: Octopus API client
        ctx: Extraction settings and GitHub client
        project_name: Octopus project; discovery is skipped when empty
        environment_name: Octopus environment
        space_name: Octopus space, or None for the default space

    Returns:
        The previous release's commit SHA, or None
    """
    if not project_name:
        logger.info("discovery_skipped", reason="no Octopus project configured")
        return None

    deployment = await find_previous_deployment(
        octopus, project_name, environment_name, space_name
    )
    if deployment is None:
        return None
    return await extract_previous_commit(deployment, ctx)
