"""Shared fixtures."""

import pytest

from camscout_cli import credentials


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real credentials file and CAMSCOUT_* settings."""
    for name in (
        "CAMSCOUT_API_URL",
        "CAMSCOUT_TOKEN",
        "CAMSCOUT_SCHOOL_ID",
        "CAMSCOUT_DEPLOY_ENABLED",
        "CAMSCOUT_DEPLOY_ALLOW_RESTART",
    ):
        monkeypatch.delenv(name, raising=False)
    config_dir = tmp_path / ".camscout"
    monkeypatch.setattr(credentials, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(credentials, "CREDENTIALS_FILE", config_dir / "credentials.json")
    return config_dir
