"""Exception hierarchy for octopus-build-info."""

from __future__ import annotations


class BuildInfoError(Exception):
    """Base exception for octopus-build-info."""


class ConfigurationError(BuildInfoError, ValueError):
    """Required configuration is missing or invalid."""


class UpstreamError(BuildInfoError):
    """The Octopus Deploy API answered with a non-2xx status.

    The message is the response's reason phrase, e.g. "Unauthorized".
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BuildInfoError):
    """No space, project or environment matched the search term."""
