"""Clients for the systems the action reads from and writes to.

These modules talk to the GitHub Actions runner, the GitHub REST API and
the Octopus Deploy REST API, and hand back the typed payloads defined in
`octopus_build_info.schemas`.
"""
