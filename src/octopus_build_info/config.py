"""Action configuration.

Each setting is resolved from, in order:
1. The action input (INPUT_<NAME>, set by the runner from `with:`)
2. A fallback environment variable, where one exists (the same variables
   the Octopus CLI reads, so existing workflows need no extra inputs)
3. An optional YAML config file
4. The default declared on ActionInputs

Empty strings count as unset at every level.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from octopus_build_info.context.actions import get_input
from octopus_build_info.errors import ConfigurationError

# input name -> fallback environment variable
ENV_FALLBACKS: dict[str, str] = {
    "github_token": "GITHUB_TOKEN",
    "octopus_api_key": "OCTOPUS_CLI_API_KEY",
    "octopus_server": "OCTOPUS_CLI_SERVER",
    "octopus_environment": "OCTOPUS_ENVIRONMENT",
    "octopus_project": "OCTOPUS_PROJECT",
    "octopus_space": "OCTOPUS_SPACE",
}


class ActionInputs(BaseModel):
    """Validated action configuration.

    Attributes:
        github_token: Token for the GitHub REST API
        octopus_api_key: Octopus Deploy API key
        octopus_server: Octopus Deploy server URL
        octopus_environment: Environment whose last deployment is the baseline
        octopus_project: Project name, slug or id; discovery is skipped if unset
        octopus_space: Space name, slug or id; the default space if unset
        output_path: Directory the JSON files are written to
        push_overwrite_mode: Passed through to Octopus as `overwriteMode`
        push_package_ids: Packages to push build information for
        push_version: Package version to push build information under
        version_tag_prefix: Prepended to a release version to form a git tag
        http_timeout: Seconds before an HTTP request gives up (None = never)
    """

    github_token: str = Field(..., min_length=1)
    octopus_api_key: str | None = None
    octopus_server: str | None = None
    octopus_environment: str = "Production"
    octopus_project: str | None = None
    octopus_space: str | None = None
    output_path: Path = Path(".")
    push_overwrite_mode: str = "FailIfExists"
    push_package_ids: list[str] = Field(default_factory=list)
    push_version: str | None = None
    version_tag_prefix: str = "v"
    http_timeout: float | None = Field(None, gt=0)

    @field_validator("push_package_ids", mode="before")
    @classmethod
    def split_package_ids(cls, value: Any) -> Any:
        """Accept the space separated form used by action inputs."""
        if isinstance(value, str):
            return value.split()
        return value


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load a YAML config file of input names to values.

    Raises:
        ConfigurationError: If the file is missing or not a YAML mapping.
    """
    config_path = Path(path)
    try:
        raw = yaml.safe_load(config_path.read_text()) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return raw


def load_inputs(
    environ: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
) -> ActionInputs:
    """Resolve and validate the action configuration.

    Args:
        environ: Environment to read from. Defaults to os.environ.
        config_path: Optional YAML file supplying lower-precedence values.

    Returns:
        Validated ActionInputs

    Raises:
        ConfigurationError: If a required setting is missing or invalid.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    if config_path:
        values.update(
            {k: v for k, v in load_config_file(config_path).items() if v not in (None, "")}
        )

    for name in ActionInputs.model_fields:
        value = get_input(name, env)
        if not value and name in ENV_FALLBACKS:
            value = env.get(ENV_FALLBACKS[name], "").strip()
        if value:
            values[name] = value

    try:
        return ActionInputs.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid action configuration: {exc}") from exc
