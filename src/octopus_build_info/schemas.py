"""Pydantic models for the Octopus Deploy and GitHub payloads we read and write.

Octopus speaks PascalCase on the wire (`Id`, `VcsCommitNumber`, ...). The
models keep those names as aliases and expose snake_case attributes, so
payloads validate straight from the API and serialize back with
`model_dump(by_alias=True)`.

Key design decisions:
- Records read from Octopus keep unknown fields (`extra="allow"`); the API
  returns far more than we use and nothing here should reject it
- The build information document is frozen once assembled
- GitHub payloads are already snake_case and need no aliases
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

BUILD_ENVIRONMENT = "GitHub Actions"
VCS_TYPE = "Git"


class OctopusModel(BaseModel):
    """Base for payloads read from the Octopus Deploy API."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


# ---------------------------------------------------------------------------
# Octopus Records
# ---------------------------------------------------------------------------


class OctopusResource(OctopusModel):
    """A space, project or environment record.

    Attributes:
        id: Octopus identifier (e.g., "Spaces-1", "Projects-12")
        name: Display name
        slug: URL slug, not present on every resource type
        is_default: Whether this is the default space (spaces only)
    """

    id: str = Field(..., alias="Id", description="Octopus identifier")
    name: str = Field(..., alias="Name", description="Display name")
    slug: str | None = Field(None, alias="Slug", description="URL slug")
    is_default: bool = Field(False, alias="IsDefault", description="Default space flag")

    def matches(self, search: str | None) -> bool:
        """Exact, case-sensitive match on any of name, id or slug."""
        if not search:
            return False
        return self.name == search or self.id == search or self.slug == search


class Space(OctopusResource):
    """An Octopus Deploy space."""


class Project(OctopusResource):
    """An Octopus Deploy project."""


class Environment(OctopusResource):
    """An Octopus Deploy environment."""


class BuildInformationEntry(OctopusModel):
    """Build information recorded against a deployed package."""

    package_id: str = Field("", alias="PackageId")
    vcs_commit_number: str | None = Field(None, alias="VcsCommitNumber")


class Change(OctopusModel):
    """What moved between the previous release and the deployed one."""

    build_information: list[BuildInformationEntry] = Field(
        default_factory=list, alias="BuildInformation"
    )
    version: str | None = Field(None, alias="Version")


class Deployment(OctopusModel):
    """A recorded deployment of a release to an environment."""

    id: str = Field(..., alias="Id")
    created: datetime | None = Field(None, alias="Created")
    changes: list[Change] = Field(default_factory=list, alias="Changes")


class DeploymentCollection(OctopusModel):
    """One page of the `deployments` resource."""

    total_results: int = Field(0, alias="TotalResults")
    items: list[Deployment] = Field(default_factory=list, alias="Items")


# ---------------------------------------------------------------------------
# GitHub Payloads
# ---------------------------------------------------------------------------


class CommitDetail(BaseModel):
    """The `commit` object nested in a compare API commit."""

    model_config = ConfigDict(extra="allow")

    message: str = ""


class Commit(BaseModel):
    """A commit as returned by the GitHub compare API."""

    model_config = ConfigDict(extra="allow")

    sha: str
    commit: CommitDetail = Field(default_factory=CommitDetail)


class ComparePage(BaseModel):
    """One page of the GitHub compare API response."""

    model_config = ConfigDict(extra="allow")

    commits: list[Commit] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Build Information
# ---------------------------------------------------------------------------


class BuildInformationCommit(OctopusModel):
    """A single commit entry in the build information document."""

    id: str = Field(..., alias="Id", description="Commit SHA")
    comment: str = Field("", alias="Comment", description="Commit message")


class BuildInformationDocument(OctopusModel):
    """The build information produced for this workflow run.

    Attributes:
        build_environment: Always "GitHub Actions"
        build_number: The workflow run id
        build_url: Link to the workflow run
        vcs_type: Always "Git"
        vcs_root: Clone URL of the repository
        vcs_commit_number: SHA of the commit being built
        commits: Commits since the previous release, in compare API order
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    build_environment: str = Field(BUILD_ENVIRONMENT, alias="BuildEnvironment")
    build_number: str = Field(..., alias="BuildNumber")
    build_url: str = Field(..., alias="BuildUrl")
    vcs_type: str = Field(VCS_TYPE, alias="VcsType")
    vcs_root: str = Field(..., alias="VcsRoot")
    vcs_commit_number: str = Field(..., alias="VcsCommitNumber")
    commits: tuple[BuildInformationCommit, ...] = Field((), alias="Commits")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with Octopus field names."""
        return self.model_dump(by_alias=True, mode="json")


class BuildInformationPush(OctopusModel):
    """Request body for `POST build-information`."""

    package_id: str = Field(..., alias="PackageId")
    version: str = Field(..., alias="Version")
    octopus_build_information: BuildInformationDocument = Field(
        ..., alias="OctopusBuildInformation"
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with Octopus field names."""
        return self.model_dump(by_alias=True, mode="json")
