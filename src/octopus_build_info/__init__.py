"""Octopus Deploy build information for GitHub Actions.

Assembles a build information document (commits since the last successful
deployment, build URL, VCS metadata) for the current workflow run and
optionally pushes it to an Octopus Deploy server for one or more packages.
"""

__version__ = "0.1.0"
