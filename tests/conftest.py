"""
Shared fixtures.
Every HTTP call is mocked; no credentials or network access needed.
"""

import os
import tempfile

import pytest

# Keep log files out of the real home directory; must run before gg_deploy is imported
os.environ["GG_DEPLOY_HOME"] = tempfile.mkdtemp(prefix="gg-deploy-tests-")

ENV_VARS = (
    "GODADDY_API_KEY",
    "GODADDY_API_SECRET",
    "GODADDY_ENV",
    "CLOUDFLARE_API_TOKEN",
    "NAMECHEAP_API_USER",
    "NAMECHEAP_API_KEY",
    "NAMECHEAP_CLIENT_IP",
    "NAMECHEAP_SANDBOX",
    "GITHUB_TOKEN",
    "DNS_PROVIDER",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Ignore credentials from the developer's environment"""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Retry backoff sleeps are recorded instead of waited for"""
    from unittest.mock import MagicMock
    mock_sleep = MagicMock()
    monkeypatch.setattr("time.sleep", mock_sleep)
    return mock_sleep


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings rooted in tmp_path, ignoring any .env file"""
    from gg_deploy.utils.config import Settings

    def _make(**overrides):
        overrides.setdefault("gg_deploy_home", tmp_path / "home")
        return Settings(_env_file=None, **overrides)

    return _make
