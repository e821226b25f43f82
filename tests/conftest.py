"""Shared fixtures: a recording Octopus API stub and a fake GitHub client."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from octopus_build_info.context.actions import ActionsContext
from octopus_build_info.context.octopus import OctopusClient
from octopus_build_info.schemas import Commit

OCTOPUS_SERVER = "https://octopus.example.com"

SPACES = [
    {"Id": "Spaces-1", "Name": "Default", "Slug": "default", "IsDefault": True},
    {"Id": "Spaces-2", "Name": "Platform", "Slug": "platform", "IsDefault": False},
]
PROJECTS = [
    {"Id": "Projects-1", "Name": "Web API", "Slug": "web-api"},
    {"Id": "Projects-2", "Name": "Worker", "Slug": "worker"},
]
ENVIRONMENTS = [
    {"Id": "Environments-1", "Name": "Staging", "Slug": "staging"},
    {"Id": "Environments-2", "Name": "Production", "Slug": "production"},
]


# ---------------------------------------------------------------------------
# Octopus API Stub
# ---------------------------------------------------------------------------


class OctopusRecorder:
    """httpx handler that serves canned responses and records requests.

    Routes map (method, path) to either a JSON payload, an httpx.Response,
    or a callable taking the request and returning an httpx.Response.
    Unknown routes answer 404.
    """

    def __init__(self, routes: dict[tuple[str, str], Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"ErrorMessage": "Not found"})
        if callable(route):
            return route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    def json_bodies(self) -> list[Any]:
        return [json.loads(r.content) for r in self.requests if r.content]


def default_routes(deployments: dict[str, Any] | None = None) -> dict[tuple[str, str], Any]:
    """Routes for a server with two spaces, two projects and two environments."""
    return {
        ("GET", "/api/spaces/all"): SPACES,
        ("GET", "/api/Spaces-1/projects/all"): PROJECTS,
        ("GET", "/api/Spaces-1/environments/all"): ENVIRONMENTS,
        ("GET", "/api/Spaces-1/deployments"): deployments
        if deployments is not None
        else {"TotalResults": 0, "Items": []},
        ("POST", "/api/Spaces-1/build-information"): lambda request: httpx.Response(
            201, json={"Id": "BuildInformation-1", **json.loads(request.content)}
        ),
    }


@pytest.fixture
def octopus_api() -> Callable[..., tuple[OctopusClient, OctopusRecorder]]:
    """Factory building an OctopusClient wired to an OctopusRecorder."""

    def make(
        routes: dict[tuple[str, str], Any] | None = None,
        api_key: str | None = "API-TESTKEY",
        server: str | None = OCTOPUS_SERVER,
    ) -> tuple[OctopusClient, OctopusRecorder]:
        recorder = OctopusRecorder(routes if routes is not None else default_routes())
        client = OctopusClient(api_key, server, transport=httpx.MockTransport(recorder))
        return client, recorder

    return make


# ---------------------------------------------------------------------------
# GitHub Fake
# ---------------------------------------------------------------------------


class FakeGitHub:
    """In-memory stand-in for GitHubClient.

    Args:
        refs: ref ("tags/v1.0.0") -> SHA
        pages: compare pages to yield, in order
        fail_after: raise a connection error instead of yielding this page index
    """

    def __init__(
        self,
        refs: dict[str, str] | None = None,
        pages: list[list[Commit]] | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.refs = refs or {}
        self.pages = pages or []
        self.fail_after = fail_after
        self.ref_calls: list[tuple[str, str, str]] = []
        self.compare_calls: list[tuple[str, str, str, str]] = []

    async def get_ref(self, owner: str, repo: str, ref: str) -> str:
        self.ref_calls.append((owner, repo, ref))
        if ref not in self.refs:
            request = httpx.Request(
                "GET", f"https://api.github.com/repos/{owner}/{repo}/git/ref/{ref}"
            )
            raise httpx.HTTPStatusError(
                "Not Found", request=request, response=httpx.Response(404, request=request)
            )
        return self.refs[ref]

    async def compare_commits(self, owner: str, repo: str, base: str, head: str):
        self.compare_calls.append((owner, repo, base, head))
        for index, page in enumerate(self.pages):
            if self.fail_after is not None and index >= self.fail_after:
                raise httpx.ConnectError("connection reset by peer")
            yield page


@pytest.fixture
def fake_github() -> type[FakeGitHub]:
    return FakeGitHub


def make_commit(sha: str, message: str = "") -> Commit:
    return Commit.model_validate({"sha": sha, "commit": {"message": message or f"commit {sha}"}})


@pytest.fixture
def commit() -> Callable[..., Commit]:
    return make_commit


@pytest.fixture
def actions_context() -> ActionsContext:
    return ActionsContext(owner="myorg", repo="api", sha="head123", run_id="4242")


@pytest.fixture
def octopus_routes() -> Callable[..., dict[tuple[str, str], Any]]:
    return default_routes
