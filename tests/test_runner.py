"""End-to-end tests for the pipeline and the CLI entry point.

Run with: pytest tests/test_runner.py -v
"""

from __future__ import annotations

import json

import httpx
import pytest

from octopus_build_info import runner
from octopus_build_info.config import ActionInputs
from octopus_build_info.errors import ConfigurationError, UpstreamError
from octopus_build_info.runner import main, run

PREVIOUS_DEPLOYMENT = {
    "TotalResults": 1,
    "Items": [
        {
            "Id": "Deployments-7",
            "Created": "2024-03-01T10:00:00.000+00:00",
            "Changes": [
                {
                    "Version": "1.3.0",
                    "BuildInformation": [{"PackageId": "pkg.a", "VcsCommitNumber": "prev123"}],
                }
            ],
        }
    ],
}


@pytest.fixture
def github_output(tmp_path):
    path = tmp_path / "github_output"
    path.touch()
    return path


def read_outputs(path) -> dict[str, str]:
    return dict(line.split("=", 1) for line in path.read_text().splitlines())


def make_inputs(tmp_path, **overrides) -> ActionInputs:
    values = {
        "github_token": "ghp_test",
        "octopus_api_key": "API-TESTKEY",
        "octopus_server": "https://octopus.example.com",
        "octopus_project": "web-api",
        "output_path": tmp_path / "out",
    }
    values.update(overrides)
    return ActionInputs(**values)


class TestRun:
    """Tests for run()."""

    @pytest.mark.asyncio
    async def test_full_run(
        self, tmp_path, github_output, octopus_api, octopus_routes, fake_github, commit, actions_context
    ) -> None:
        octopus, recorder = octopus_api(octopus_routes(PREVIOUS_DEPLOYMENT))
        github = fake_github(pages=[[commit("c1", "fix: one")], [commit("c2", "feat: two")]])
        inputs = make_inputs(tmp_path, push_package_ids=["pkg.a"], push_version="2.0.0")

        result = await run(
            inputs,
            actions_context,
            octopus=octopus,
            github=github,
            environ={"GITHUB_OUTPUT": str(github_output)},
        )

        assert result.previous_sha == "prev123"
        assert github.compare_calls == [("myorg", "api", "prev123", "head123")]
        assert [c.id for c in result.document.commits] == ["c1", "c2"]

        written = json.loads(result.output_file.read_text())
        assert written["BuildUrl"] == "https://github.com/myorg/api/actions/runs/4242"
        assert written["Commits"] == [
            {"Id": "c1", "Comment": "fix: one"},
            {"Id": "c2", "Comment": "feat: two"},
        ]

        assert read_outputs(github_output) == {
            "output_file": str(tmp_path / "out" / "buildInformation.json"),
            "previous_release_sha": "prev123",
        }

        # the space is resolved once and reused for the push
        assert recorder.paths().count("/api/spaces/all") == 1
        push = recorder.json_bodies()[-1]
        assert push["PackageId"] == "pkg.a"
        assert push["Version"] == "2.0.0"
        assert push["OctopusBuildInformation"] == written
        assert (tmp_path / "out" / "buildInformationMapped-pkg.a.json").exists()

    @pytest.mark.asyncio
    async def test_no_previous_deployment(
        self, tmp_path, github_output, octopus_api, fake_github, actions_context
    ) -> None:
        octopus, recorder = octopus_api()
        github = fake_github()
        inputs = make_inputs(tmp_path, push_package_ids=["pkg.a"], push_version="2.0.0")

        result = await run(
            inputs,
            actions_context,
            octopus=octopus,
            github=github,
            environ={"GITHUB_OUTPUT": str(github_output)},
        )

        assert result.previous_sha is None
        assert result.document.commits == ()
        assert github.compare_calls == []
        assert "previous_release_sha" not in read_outputs(github_output)
        assert json.loads(result.output_file.read_text())["Commits"] == []
        assert recorder.requests[-1].method == "POST"

    @pytest.mark.asyncio
    async def test_discovery_failure_still_writes(
        self, tmp_path, github_output, octopus_api, fake_github, actions_context
    ) -> None:
        octopus, _ = octopus_api({("GET", "/api/spaces/all"): httpx.Response(500)})
        inputs = make_inputs(tmp_path)

        result = await run(
            inputs,
            actions_context,
            octopus=octopus,
            github=fake_github(),
            environ={"GITHUB_OUTPUT": str(github_output)},
        )

        assert result.previous_sha is None
        assert result.output_file.exists()
        assert result.responses == {}

    @pytest.mark.asyncio
    async def test_push_failure_is_fatal(
        self, tmp_path, octopus_api, octopus_routes, fake_github, actions_context
    ) -> None:
        routes = octopus_routes()
        routes[("POST", "/api/Spaces-1/build-information")] = httpx.Response(400)
        octopus, _ = octopus_api(routes)
        inputs = make_inputs(tmp_path, push_package_ids=["pkg.a"], push_version="2.0.0")

        with pytest.raises(UpstreamError, match="Bad Request"):
            await run(inputs, actions_context, octopus=octopus, github=fake_github(), environ={})

        assert (tmp_path / "out" / "buildInformation.json").exists()

    @pytest.mark.asyncio
    async def test_packages_without_version(
        self, tmp_path, octopus_api, fake_github, actions_context
    ) -> None:
        octopus, recorder = octopus_api()
        inputs = make_inputs(tmp_path, push_package_ids=["pkg.a"])

        with pytest.raises(ConfigurationError, match="push_version"):
            await run(inputs, actions_context, octopus=octopus, github=fake_github(), environ={})
        assert recorder.requests == []


class TestMain:
    """Tests for the CLI entry point."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch) -> None:
        monkeypatch.setattr(runner, "setup_logging", lambda **kwargs: None)

    def test_writes_build_information(self, tmp_path, monkeypatch, github_output) -> None:
        for name in ("OCTOPUS_PROJECT", "OCTOPUS_CLI_API_KEY", "OCTOPUS_CLI_SERVER", "OCTOPUS_SPACE"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("INPUT_GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("INPUT_OUTPUT_PATH", str(tmp_path / "out"))
        monkeypatch.setenv("INPUT_PUSH_PACKAGE_IDS", "")
        monkeypatch.setenv("INPUT_OCTOPUS_PROJECT", "")
        monkeypatch.setenv("GITHUB_REPOSITORY", "myorg/api")
        monkeypatch.setenv("GITHUB_SHA", "head123")
        monkeypatch.setenv("GITHUB_RUN_ID", "99")
        monkeypatch.setenv("GITHUB_OUTPUT", str(github_output))

        main([])

        written = json.loads((tmp_path / "out" / "buildInformation.json").read_text())
        assert written["BuildNumber"] == "99"
        assert written["Commits"] == []
        assert read_outputs(github_output) == {
            "output_file": str(tmp_path / "out" / "buildInformation.json")
        }

    def test_failure_exits_nonzero(self, monkeypatch, capsys) -> None:
        for name in ("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"):
            monkeypatch.delenv(name, raising=False)

        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        assert "::error::Invalid action configuration" in capsys.readouterr().out

    def test_log_options_reach_logging_setup(self, monkeypatch) -> None:
        calls: list[dict] = []
        monkeypatch.setattr(runner, "setup_logging", lambda **kwargs: calls.append(kwargs))
        for name in ("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"):
            monkeypatch.delenv(name, raising=False)

        with pytest.raises(SystemExit):
            main(["--log-format", "json", "--log-level", "DEBUG"])

        assert calls == [{"log_format": "json", "log_level": "DEBUG"}]
