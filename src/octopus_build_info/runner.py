"""Pipeline orchestrator and command-line entry point.

The run follows this flow:
1. Discover the commit of the last successful Octopus deployment
2. Fetch the commits between it and the current build from GitHub
3. Assemble the build information document and write it to disk
4. Publish the `output_file` and `previous_release_sha` outputs
5. Push the document to Octopus for each configured package

Steps 1 and 2 are best effort; a failure there only means an empty commit
list. Configuration errors and failed pushes fail the run.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from octopus_build_info.build_info import assemble, write_build_information
from octopus_build_info.commits import fetch_commits
from octopus_build_info.config import ActionInputs, load_inputs
from octopus_build_info.context.actions import ActionsContext, set_failed, set_output
from octopus_build_info.context.github import GitHubClient, GitHubClientProtocol
from octopus_build_info.context.octopus import OctopusClient, SpaceCache
from octopus_build_info.discovery import ExtractionContext, find_previous_commit
from octopus_build_info.errors import ConfigurationError
from octopus_build_info.logging_config import LOG_FORMATS, get_logger, setup_logging
from octopus_build_info.publisher import publish
from octopus_build_info.schemas import BuildInformationDocument

logger = get_logger(__name__)


@dataclass
class RunResult:
    """What a run produced.

    Attributes:
        output_file: Path of the written build information document
        previous_sha: Commit of the previous release, if discovered
        document: The assembled build information
        responses: Octopus push responses keyed by package id
    """

    output_file: Path
    previous_sha: str | None
    document: BuildInformationDocument
    responses: dict[str, Any] = field(default_factory=dict)


async def run(
    inputs: ActionInputs,
    context: ActionsContext,
    *,
    octopus: OctopusClient | None = None,
    github: GitHubClientProtocol | None = None,
    environ: Mapping[str, str] | None = None,
) -> RunResult:
    """Run the whole pipeline once.

    Args:
        inputs: Validated action configuration
        context: The workflow run being described
        octopus: Octopus client. Built from inputs if not provided.
        github: GitHub client. Built from inputs if not provided.
        environ: Environment used to locate GITHUB_OUTPUT

    Returns:
        A RunResult describing what was written and pushed

    Raises:
        ConfigurationError: On missing required configuration
        UpstreamError: If pushing build information fails
    """
    if inputs.push_package_ids and not inputs.push_version:
        raise ConfigurationError("push_version is required when push_package_ids is set")

    if octopus is None:
        octopus = OctopusClient(
            inputs.octopus_api_key,
            inputs.octopus_server,
            space_cache=SpaceCache(),
            timeout=inputs.http_timeout,
        )
    if github is None:
        github = GitHubClient(
            inputs.github_token,
            base_url=context.api_url,
            timeout=inputs.http_timeout,
        )

    extraction = ExtractionContext(
        github=github,
        owner=context.owner,
        repo=context.repo,
        package_ids=tuple(inputs.push_package_ids),
        tag_prefix=inputs.version_tag_prefix,
    )
    previous_sha = await find_previous_commit(
        octopus,
        extraction,
        project_name=inputs.octopus_project,
        environment_name=inputs.octopus_environment,
        space_name=inputs.octopus_space,
    )

    commits = await fetch_commits(github, context.owner, context.repo, previous_sha, context.sha)
    logger.info("commits_collected", count=len(commits), base=previous_sha, head=context.sha)

    document = assemble(
        commits,
        context.owner,
        context.repo,
        context.sha,
        context.run_id,
        server_url=context.server_url,
    )

    logger.info("writing_build_information", output_path=str(inputs.output_path))
    output_file = await write_build_information(document, inputs.output_path)
    set_output("output_file", str(output_file), environ)
    if previous_sha:
        set_output("previous_release_sha", previous_sha, environ)

    result = RunResult(output_file=output_file, previous_sha=previous_sha, document=document)
    if not inputs.push_package_ids:
        return result

    space = await octopus.resolve_space(inputs.octopus_space)
    result.responses = await publish(
        octopus,
        space.id,
        inputs.push_package_ids,
        inputs.push_version,
        document,
        inputs.push_overwrite_mode,
        output_dir=inputs.output_path,
    )
    logger.info("build_information_pushed", packages=len(result.responses), space=space.id)
    return result


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point, used as the action's step command.

    Usage:
        octopus-build-info
        octopus-build-info --config build-info.yml

    Inputs are read from the INPUT_* variables the runner sets; the config
    file supplies lower-precedence values for local runs.
    """
    parser = argparse.ArgumentParser(
        description="Publish Octopus Deploy build information from GitHub Actions"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to a YAML file with input values",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (defaults to LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Log output format (defaults to LOG_FORMAT or console)",
    )
    args = parser.parse_args(argv)

    setup_logging(log_format=args.log_format, log_level=args.log_level)

    try:
        inputs = load_inputs(config_path=args.config)
        context = ActionsContext.from_env()
        asyncio.run(run(inputs, context))
    except Exception as e:
        logger.error("run_failed", error=str(e), exc_info=True)
        set_failed(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
