"""Thin wrapper around the GitHub Actions runner interface.

The runner talks to actions through environment variables and files:
- Inputs arrive as INPUT_<NAME> environment variables
- Outputs are appended to the file named by GITHUB_OUTPUT
- Workflow commands (::error::) are written to stdout
- The run context (repository, sha, run id) lives in GITHUB_* variables

Runner docs: https://docs.github.com/en/actions/using-workflows/workflow-commands-for-github-actions
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from octopus_build_info.errors import ConfigurationError
from octopus_build_info.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_SERVER_URL = "https://github.com"
DEFAULT_API_URL = "https://api.github.com"


def get_input(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Read an action input the way the runner exposes it.

    Returns an empty string when the input is unset.
    """
    env = os.environ if environ is None else environ
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return env.get(key, "").strip()


def _escape_command(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def set_output(
    name: str, value: str, environ: Mapping[str, str] | None = None
) -> None:
    """Publish a named output for later workflow steps.

    Values containing newlines use the heredoc form of the GITHUB_OUTPUT file.
    """
    env = os.environ if environ is None else environ
    output_file = env.get("GITHUB_OUTPUT")
    if not output_file:
        logger.info("output_not_published", name=name, value=value)
        return

    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        line = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
    else:
        line = f"{name}={value}\n"
    with Path(output_file).open("a", encoding="utf-8") as f:
        f.write(line)
    logger.debug("output_published", name=name, value=value)


def set_failed(message: str) -> None:
    """Report the step failure as an error annotation."""
    print(f"::error::{_escape_command(message)}", flush=True)


@dataclass(frozen=True)
class ActionsContext:
    """The workflow run we are building information for.

    Attributes:
        owner: Repository owner (user or organization)
        repo: Repository name
        sha: Commit SHA that triggered the run
        run_id: Unique id of the workflow run
        server_url: GitHub web URL (differs on GitHub Enterprise Server)
        api_url: GitHub REST API URL
    """

    owner: str
    repo: str
    sha: str
    run_id: str
    server_url: str = DEFAULT_SERVER_URL
    api_url: str = DEFAULT_API_URL

    @property
    def repo_uri(self) -> str:
        return f"{self.server_url.rstrip('/')}/{self.owner}/{self.repo}"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ActionsContext:
        """Read the run context from the runner environment.

        Raises:
            ConfigurationError: If the repository, sha or run id is missing
        """
        env = os.environ if environ is None else environ

        repository = env.get("GITHUB_REPOSITORY", "")
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise ConfigurationError(
                f"GITHUB_REPOSITORY must be 'owner/repo', got '{repository}'"
            )

        sha = env.get("GITHUB_SHA", "")
        if not sha:
            raise ConfigurationError("GITHUB_SHA is not set")

        run_id = env.get("GITHUB_RUN_ID", "")
        if not run_id:
            raise ConfigurationError("GITHUB_RUN_ID is not set")

        return cls(
            owner=owner,
            repo=repo,
            sha=sha,
            run_id=run_id,
            server_url=env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL,
            api_url=env.get("GITHUB_API_URL") or DEFAULT_API_URL,
        )
