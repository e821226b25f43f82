"""Assemble and persist the build information document."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import aiofiles
import aiofiles.os

from octopus_build_info.context.actions import DEFAULT_SERVER_URL
from octopus_build_info.errors import ConfigurationError
from octopus_build_info.schemas import (
    BuildInformationCommit,
    BuildInformationDocument,
    Commit,
)

BUILD_INFORMATION_FILENAME = "buildInformation.json"


def assemble(
    commits: Sequence[Commit],
    repo_owner: str,
    repo_name: str,
    current_sha: str,
    run_id: str | int,
    server_url: str = DEFAULT_SERVER_URL,
) -> BuildInformationDocument:
    """Build the document for this workflow run.

    Commits keep the order they were fetched in.

    Raises:
        ConfigurationError: If the repository, sha or run id is missing
    """
    if not repo_owner or not repo_name:
        raise ConfigurationError("Repository owner and name are required")
    if not current_sha:
        raise ConfigurationError("The current commit SHA is required")
    if run_id in (None, ""):
        raise ConfigurationError("The workflow run id is required")

    repo_uri = f"{server_url.rstrip('/')}/{repo_owner}/{repo_name}"
    return BuildInformationDocument(
        build_number=str(run_id),
        build_url=f"{repo_uri}/actions/runs/{run_id}",
        vcs_root=f"{repo_uri}.git",
        vcs_commit_number=current_sha,
        commits=tuple(
            BuildInformationCommit(id=c.sha, comment=c.commit.message) for c in commits
        ),
    )


async def write_json(path: Path, payload: object) -> Path:
    """Write a JSON payload, creating parent directories as needed."""
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(payload))
    return path


async def write_build_information(
    document: BuildInformationDocument, output_dir: Path
) -> Path:
    """Write the document to `buildInformation.json` in output_dir."""
    return await write_json(output_dir / BUILD_INFORMATION_FILENAME, document.to_wire())
