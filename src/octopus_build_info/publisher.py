"""Push build information to Octopus Deploy, one package at a time.

Pushes are awaited one after another so a failure is attributable to a
single package and log output stays in package order. Response files are
written in the background while the next push goes out; all writes finish
before `publish` returns.

Unlike discovery, publishing is not best effort: the first failed push
propagates and fails the run.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from octopus_build_info.build_info import write_json
from octopus_build_info.context.octopus import OctopusClient
from octopus_build_info.errors import ConfigurationError
from octopus_build_info.logging_config import get_logger
from octopus_build_info.schemas import BuildInformationDocument

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.-]")


def sanitize_package_id(package_id: str) -> str:
    """Make a package id safe to use in a filename."""
    return _UNSAFE_FILENAME_CHARS.sub("_", package_id)


def response_filename(package_id: str) -> str:
    return f"buildInformationMapped-{sanitize_package_id(package_id)}.json"


async def publish(
    octopus: OctopusClient,
    space_id: str,
    package_ids: Sequence[str],
    version: str | None,
    document: BuildInformationDocument,
    overwrite_mode: str,
    output_dir: Path | None = None,
) -> dict[str, Any]:
    """Push the document for every package id.

    Args:
        octopus: Octopus API client
        space_id: Space to push into
        package_ids: Packages to push, in order
        version: Package version the build information belongs to
        document: Assembled build information
        overwrite_mode: Passed through as the `overwriteMode` query parameter
        output_dir: Where to save each response. Responses are not saved if None.

    Returns:
        Response JSON keyed by package id

    Raises:
        ConfigurationError: If package ids are given without a version
        UpstreamError: If Octopus rejects a push
        OSError: If a response file cannot be written and every push succeeded
    """
    if not package_ids:
        return {}
    if not version:
        raise ConfigurationError("push_version is required when push_package_ids is set")

    responses: dict[str, Any] = {}
    writes: list[asyncio.Task[Path]] = []
    try:
        for package_id in package_ids:
            logger.info(
                "pushing_build_information",
                package_id=package_id,
                version=version,
                overwrite_mode=overwrite_mode,
            )
            response = await octopus.push_build_information(
                space_id, package_id, version, document, overwrite_mode
            )
            responses[package_id] = response

            if output_dir is not None:
                path = output_dir / response_filename(package_id)
                writes.append(asyncio.create_task(write_json(path, response)))
    except BaseException:
        # the push failure is what gets reported, not a write failure
        await _finish_writes(writes)
        raise

    write_errors = await _finish_writes(writes)
    if write_errors:
        raise write_errors[0]
    return responses


async def _finish_writes(writes: Sequence[asyncio.Task[Path]]) -> list[BaseException]:
    """Wait for every response write and return the ones that failed."""
    errors: list[BaseException] = []
    for result in await asyncio.gather(*writes, return_exceptions=True):
        if isinstance(result, BaseException):
            logger.error("response_write_failed", error=str(result))
            errors.append(result)
        else:
            logger.debug("response_written", path=str(result))
    return errors
