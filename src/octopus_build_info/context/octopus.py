"""Octopus Deploy API client.

Covers everything the action needs from an Octopus server:
- Resolving a space, project and environment from a name, slug or id
- Finding the most recent successful deployment of a project
- Pushing build information for a package version

Design notes:
- Uses httpx for async HTTP requests, one client per request
- Every request carries the X-Octopus-ApiKey header
- A non-2xx response raises UpstreamError; there is no retry
- Space lookups are memoized in a SpaceCache owned by the caller, so one
  run resolves each space once

Octopus API docs: https://octopus.com/docs/octopus-rest-api
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import TypeAdapter

from octopus_build_info.errors import ConfigurationError, NotFoundError, UpstreamError
from octopus_build_info.logging_config import get_logger
from octopus_build_info.schemas import (
    BuildInformationDocument,
    BuildInformationPush,
    Deployment,
    DeploymentCollection,
    Environment,
    Project,
    Space,
)

logger = get_logger(__name__)

API_KEY_HEADER = "X-Octopus-ApiKey"

_SPACES = TypeAdapter(list[Space])
_PROJECTS = TypeAdapter(list[Project])
_ENVIRONMENTS = TypeAdapter(list[Environment])


class SpaceCache:
    """Resolved spaces keyed by the search term used to find them.

    An empty or missing search term (meaning "the default space") shares a
    single slot. Entries are never invalidated; create one cache per run.
    """

    def __init__(self) -> None:
        self._spaces: dict[str | None, Space] = {}

    @staticmethod
    def _key(search: str | None) -> str | None:
        return search or None

    def get(self, search: str | None) -> Space | None:
        return self._spaces.get(self._key(search))

    def set(self, search: str | None, space: Space) -> None:
        self._spaces[self._key(search)] = space


class OctopusClient:
    """Async client for the Octopus Deploy REST API.

    Usage:
        client = OctopusClient(api_key="API-...", server="https://octopus.example.com")
        space = await client.resolve_space("Default")
        project = await client.resolve_project(space.id, "my-project")
    """

    def __init__(
        self,
        api_key: str | None,
        server: str | None,
        *,
        space_cache: SpaceCache | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Octopus client.

        Configuration is checked lazily: a client without an API key or
        server can be built, but every request made through it fails.

        Args:
            api_key: Octopus API key
            server: Base URL of the Octopus server
            space_cache: Memo for resolved spaces. A fresh one if not provided.
            timeout: Seconds before a request gives up. None disables timeouts.
            transport: Optional httpx transport (used by tests)
        """
        self._api_key = api_key
        self._server = server
        self._timeout = timeout
        self._transport = transport
        self.space_cache = space_cache if space_cache is not None else SpaceCache()

    def _resource_url(self, space_id: str | None, resource: str) -> str:
        base = (self._server or "").rstrip("/")
        if space_id:
            return f"{base}/api/{space_id}/{resource}"
        return f"{base}/api/{resource}"

    async def request(
        self,
        space_id: str | None,
        resource: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request to an Octopus API resource.

        Args:
            space_id: Octopus space id (e.g. "Spaces-1"), or None for
                      resources outside any space
            resource: Resource path relative to the API root
            method: HTTP method
            headers: Extra headers, merged over the defaults
            body: JSON-serializable request body
            params: Query parameters

        Returns:
            The de-serialized response JSON

        Raises:
            ConfigurationError: If the API key or server is not configured
            UpstreamError: If the server answers with a non-2xx status
            httpx.HTTPError: On transport failures
        """
        if not self._api_key:
            raise ConfigurationError("Octopus API key is not configured")
        if not self._server:
            raise ConfigurationError("Octopus server URL is not configured")

        url = self._resource_url(space_id, resource)
        merged_headers = {API_KEY_HEADER: self._api_key, "Accept": "application/json"}
        merged_headers.update(headers or {})

        logger.debug("octopus_request", method=method, url=url, params=params)
        async with httpx.AsyncClient(
            headers=merged_headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(method, url, params=params, json=body)

        logger.debug(
            "octopus_response",
            status=response.status_code,
            reason=response.reason_phrase,
            content_type=response.headers.get("content-type"),
        )
        if not response.is_success:
            raise UpstreamError(response.reason_phrase, status_code=response.status_code)
        return response.json()

    async def get(
        self,
        space_id: str | None,
        resource: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET an Octopus API resource."""
        return await self.request(space_id, resource, method="GET", params=params)

    # -----------------------------------------------------------------------
    # Resolution
    # -----------------------------------------------------------------------

    async def resolve_space(self, search: str | None = None) -> Space:
        """Find a space by name, slug or id, or the default space.

        Results are memoized per search term in `self.space_cache`.

        Raises:
            NotFoundError: If no space matches
        """
        cached = self.space_cache.get(search)
        if cached is not None:
            return cached

        payload = await self.get(None, "spaces/all")
        spaces = _SPACES.validate_python(payload)
        if search:
            space = next((s for s in spaces if s.matches(search)), None)
        else:
            space = next((s for s in spaces if s.is_default), None)
        if space is None:
            raise NotFoundError(f"No space named '{search or 'Default'}' was found")

        self.space_cache.set(search, space)
        return space

    async def resolve_project(self, space_id: str, search: str) -> Project:
        """Find a project by name, slug or id.

        Raises:
            NotFoundError: If no project matches
        """
        payload = await self.get(space_id, "projects/all")
        for project in _PROJECTS.validate_python(payload):
            if project.matches(search):
                return project
        raise NotFoundError(f"No project named '{search}' was found")

    async def resolve_environment(self, space_id: str, search: str | None) -> Environment:
        """Find an environment by name, slug or id.

        Falls back to the last environment in the server's sort order when
        nothing matches.

        Raises:
            NotFoundError: If the space has no environments at all
        """
        payload = await self.get(space_id, "environments/all")
        environments = _ENVIRONMENTS.validate_python(payload)
        if not environments:
            raise NotFoundError("No environments found")

        for environment in environments:
            if environment.matches(search):
                return environment
        return environments[-1]

    # -----------------------------------------------------------------------
    # Deployments
    # -----------------------------------------------------------------------

    async def find_previous_deployment(
        self, space: Space, project: Project, environment: Environment
    ) -> Deployment | None:
        """Return the most recent successful deployment, if there is one."""
        payload = await self.get(
            space.id,
            "deployments",
            params={
                "take": 1,
                "projects": project.id,
                "environments": environment.id,
                "taskState": "Success",
            },
        )
        collection = DeploymentCollection.model_validate(payload)

        # there should be 0 or 1 deployments in the payload
        if collection.total_results < 1 or not collection.items:
            return None
        return collection.items[0]

    # -----------------------------------------------------------------------
    # Build Information
    # -----------------------------------------------------------------------

    async def push_build_information(
        self,
        space_id: str,
        package_id: str,
        version: str,
        document: BuildInformationDocument,
        overwrite_mode: str,
    ) -> Any:
        """Push build information for one package version.

        Args:
            space_id: Octopus space id
            package_id: Package the build information describes
            version: Package version
            document: The assembled build information
            overwrite_mode: Sent as `overwriteMode`; interpreted by the server

        Returns:
            The de-serialized response JSON
        """
        push = BuildInformationPush(
            package_id=package_id,
            version=version,
            octopus_build_information=document,
        )
        return await self.request(
            space_id,
            "build-information",
            method="POST",
            headers={"Content-Type": "application/json"},
            body=push.to_wire(),
            params={"overwriteMode": overwrite_mode},
        )
