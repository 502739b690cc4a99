"""Tests for the launcher."""

from unittest.mock import patch

import pytest

from git_archaeologist import cli
from git_archaeologist import settings as settings_module
from git_archaeologist.analysis import AnalysisClient
from git_archaeologist.settings import Settings


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_module, "get_default_config_path", lambda: tmp_path / "absent.yml")
    monkeypatch.delenv(settings_module.API_BASE_ENV, raising=False)
    monkeypatch.delenv(settings_module.API_PATH_ENV, raising=False)


def test_main_launches_browser_with_merged_settings():
    with patch("git_archaeologist.browser.browse_repository", return_value=0) as browse:
        code = cli.main(
            [
                "https://github.com/owner/repo",
                "--api-base",
                "http://svc:9000",
                "--legacy-path",
                "--no-topic-model",
                "--min-cluster-size",
                "5",
            ]
        )

    assert code == 0
    client, settings = browse.call_args.args
    assert isinstance(client, AnalysisClient)
    assert client.endpoint == "http://svc:9000/analyze/"
    assert settings == Settings(
        api_base="http://svc:9000",
        api_path="/analyze/",
        use_topic_model=False,
        min_cluster_size=5,
    )
    assert browse.call_args.kwargs == {"initial_url": "https://github.com/owner/repo"}


def test_invalid_settings_exit_with_usage_error(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--min-cluster-size", "0"])
    assert excinfo.value.code == 2
    assert "min_cluster_size" in capsys.readouterr().err


def test_malformed_api_base_exits_with_usage_error(capsys):
    with patch("git_archaeologist.browser.browse_repository") as browse:
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["--api-base", "http://[::1"])
    assert excinfo.value.code == 2
    assert "Invalid analysis service URL" in capsys.readouterr().err
    browse.assert_not_called()


def test_api_path_and_legacy_path_are_exclusive():
    with pytest.raises(SystemExit):
        cli.main(["--api-path", "/x/", "--legacy-path"])


def test_cli_overrides_leave_unset_options_as_none():
    args = cli.build_parser().parse_args([])
    overrides = cli.cli_overrides(args)
    assert overrides["api_base"] is None
    assert overrides["api_path"] is None
    assert "use_topic_model" not in overrides
