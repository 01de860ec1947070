"""Pytest fixtures for Build Tree tests."""

import pytest

from buildtree import settings


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep machine and user config files on the test machine out of every test."""
    config_dir = tmp_path_factory.mktemp("config")
    monkeypatch.setattr(settings, "get_machine_config_path", lambda: config_dir / "machine.yml")
    monkeypatch.setattr(settings, "get_user_config_path", lambda: config_dir / "user.yml")
    for name in ("APPVEYOR_BUILD_NUMBER", "GITHUB_RUN_NUMBER", "BUILD_NUMBER", "APPVEYOR_REPO_BRANCH", "GITHUB_REF"):
        monkeypatch.delenv(name, raising=False)
