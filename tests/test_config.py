"""
Tests for settings, the credential file and DNS provider selection.

Run:
    python -m pytest tests/test_config.py -v
"""

import json
import os
import subprocess
from unittest.mock import patch, MagicMock

import pytest
from pydantic import ValidationError

from gg_deploy.api.cloudflare_client import CloudflareClient
from gg_deploy.api.exceptions import ProviderConfigError
from gg_deploy.api.godaddy_client import GoDaddyClient
from gg_deploy.api.namecheap_client import NamecheapClient, SANDBOX_URL
from gg_deploy.api.provider_factory import configured_providers, detect_provider, get_dns_provider
from gg_deploy.utils.config import (
    CloudflareCredentials,
    GoDaddyCredentials,
    NamecheapCredentials,
    StoredConfig,
    get_settings,
    reset_settings,
)
from gg_deploy.utils.logger import logs_dir, setup_logger


GODADDY_ENV = {"godaddy_api_key": "gd-key", "godaddy_api_secret": "gd-secret"}
CLOUDFLARE_ENV = {"cloudflare_api_token": "cf-token"}
NAMECHEAP_ENV = {
    "namecheap_api_user": "nc-user",
    "namecheap_api_key": "nc-key",
    "namecheap_client_ip": "203.0.113.7",
}


# ===========================================================================
# 1. Settings
# ===========================================================================

class TestSettings:

    def test_defaults(self, make_settings):
        settings = make_settings()
        assert settings.godaddy_env == "production"
        assert settings.log_level == "INFO"
        assert settings.dns_provider is None
        assert settings.config_file.name == "config.json"
        assert settings.deployments_file.name == "deployments.json"
        assert settings.backup_dir.name == "backups"

    def test_reads_environment(self, make_settings, monkeypatch):
        monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "from-env")
        monkeypatch.setenv("GODADDY_ENV", "OTE")
        settings = make_settings()
        assert settings.cloudflare_api_token == "from-env"
        assert settings.godaddy_env == "ote"

    def test_log_level_is_validated(self, make_settings):
        assert make_settings(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            make_settings(log_level="LOUD")

    def test_empty_provider_means_unset(self, make_settings):
        assert make_settings(dns_provider="").dns_provider is None
        assert make_settings(dns_provider=" Cloudflare ").dns_provider == "cloudflare"

    def test_singleton_reset(self):
        reset_settings()
        first = get_settings()
        assert get_settings() is first
        reset_settings()
        assert get_settings() is not first
        reset_settings()

    def test_log_files_follow_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GG_DEPLOY_HOME", str(tmp_path / "custom"))
        assert logs_dir() == tmp_path / "custom" / "logs"

        logger = setup_logger("gg_deploy.tests.log_home", log_file="home.log", console=False)
        try:
            assert (tmp_path / "custom" / "logs" / "home.log").exists()
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_log_home_from_dotenv(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GG_DEPLOY_HOME")
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text(f"GG_DEPLOY_HOME={tmp_path / 'from-dotenv'}\n")

        assert logs_dir() == tmp_path / "from-dotenv" / "logs"


# ===========================================================================
# 2. Credential file
# ===========================================================================

class TestCredentialFile:

    def test_missing_file_reads_empty(self, make_settings):
        assert make_settings().read_stored_config() == StoredConfig()

    def test_corrupt_file_reads_empty(self, make_settings):
        settings = make_settings()
        settings.gg_deploy_home.mkdir(parents=True)
        settings.config_file.write_text("{not json")
        assert settings.read_stored_config() == StoredConfig()

    def test_write_uses_camel_case_and_owner_only_mode(self, make_settings):
        settings = make_settings()
        settings.write_stored_config(StoredConfig(
            dns_provider="namecheap",
            namecheap=NamecheapCredentials(api_user="u", api_key="k", client_ip="198.51.100.1"),
        ))

        data = json.loads(settings.config_file.read_text())
        assert data == {
            "dnsProvider": "namecheap",
            "namecheap": {"apiUser": "u", "apiKey": "k", "clientIP": "198.51.100.1", "sandbox": False},
        }
        assert os.stat(settings.config_file).st_mode & 0o777 == 0o600
        assert os.stat(settings.gg_deploy_home).st_mode & 0o777 == 0o700

    def test_reads_camel_case_file(self, make_settings):
        settings = make_settings()
        settings.gg_deploy_home.mkdir(parents=True)
        settings.config_file.write_text(json.dumps({
            "godaddy": {"apiKey": "file-key", "apiSecret": "file-secret", "environment": "ote"},
        }))

        creds = settings.godaddy_credentials()
        assert creds.api_key == "file-key"
        assert creds.base_url == "https://api.ote-godaddy.com"

    def test_file_wins_over_environment(self, make_settings):
        settings = make_settings(**CLOUDFLARE_ENV)
        settings.write_stored_config(StoredConfig(cloudflare=CloudflareCredentials(api_token="file-token")))
        assert settings.cloudflare_credentials().api_token == "file-token"

    def test_environment_used_when_file_lacks_provider(self, make_settings):
        settings = make_settings(**GODADDY_ENV)
        settings.write_stored_config(StoredConfig(cloudflare=CloudflareCredentials(api_token="t")))
        creds = settings.godaddy_credentials()
        assert creds == GoDaddyCredentials(api_key="gd-key", api_secret="gd-secret", environment="production")

    def test_incomplete_credentials_are_none(self, make_settings):
        settings = make_settings(godaddy_api_key="only-key", namecheap_api_user="u", namecheap_api_key="k")
        assert settings.godaddy_credentials() is None
        assert settings.namecheap_credentials() is None
        assert settings.cloudflare_credentials() is None


# ===========================================================================
# 3. GitHub token resolution
# ===========================================================================

class TestGitHubToken:

    def test_environment_token(self, make_settings):
        assert make_settings(github_token="env-token").resolve_github_token() == "env-token"

    def test_file_token_first(self, make_settings):
        settings = make_settings(github_token="env-token")
        settings.gg_deploy_home.mkdir(parents=True)
        settings.config_file.write_text(json.dumps({"github": {"token": "file-token"}}))
        assert settings.resolve_github_token() == "file-token"

    def test_falls_back_to_gh_cli(self, make_settings):
        completed = MagicMock(stdout="gho_cli_token\n")
        with patch("gg_deploy.utils.config.subprocess.run", return_value=completed) as mock_run:
            assert make_settings().resolve_github_token() == "gho_cli_token"
        assert mock_run.call_args[0][0] == ["gh", "auth", "token"]

    @pytest.mark.parametrize("error", [
        FileNotFoundError("gh"),
        subprocess.CalledProcessError(1, ["gh", "auth", "token"]),
    ])
    def test_no_token_anywhere(self, make_settings, error):
        with patch("gg_deploy.utils.config.subprocess.run", side_effect=error):
            assert make_settings().resolve_github_token() is None


# ===========================================================================
# 4. Provider selection
# ===========================================================================

class TestProviderSelection:

    def test_none_configured(self, make_settings):
        with pytest.raises(ProviderConfigError, match="No DNS provider configured"):
            detect_provider(make_settings())

    def test_single_provider_detected(self, make_settings):
        assert detect_provider(make_settings(**NAMECHEAP_ENV)) == "namecheap"

    def test_ambiguous_without_selection(self, make_settings):
        settings = make_settings(**GODADDY_ENV, **CLOUDFLARE_ENV)
        assert configured_providers(settings) == ["godaddy", "cloudflare"]
        with pytest.raises(ProviderConfigError, match="Multiple DNS providers"):
            detect_provider(settings)

    def test_explicit_selection_resolves_ambiguity(self, make_settings):
        settings = make_settings(dns_provider="cloudflare", **GODADDY_ENV, **CLOUDFLARE_ENV)
        assert detect_provider(settings) == "cloudflare"

    def test_file_selection_wins(self, make_settings):
        settings = make_settings(dns_provider="cloudflare", **GODADDY_ENV, **CLOUDFLARE_ENV)
        settings.write_stored_config(StoredConfig(dns_provider="godaddy"))
        assert detect_provider(settings) == "godaddy"

    def test_builds_each_client(self, make_settings):
        settings = make_settings(**GODADDY_ENV, **CLOUDFLARE_ENV, **NAMECHEAP_ENV, namecheap_sandbox=True)

        assert isinstance(get_dns_provider("godaddy", settings), GoDaddyClient)
        assert isinstance(get_dns_provider("CLOUDFLARE", settings), CloudflareClient)

        namecheap = get_dns_provider("namecheap", settings)
        assert isinstance(namecheap, NamecheapClient)
        assert namecheap.backup_dir == settings.backup_dir
        assert namecheap.base_url == SANDBOX_URL

    def test_detected_provider_is_built(self, make_settings):
        provider = get_dns_provider(config=make_settings(**CLOUDFLARE_ENV))
        assert provider.get_provider_name() == "cloudflare"

    def test_unknown_provider(self, make_settings):
        with pytest.raises(ProviderConfigError, match="Unknown DNS provider"):
            get_dns_provider("route53", make_settings(**GODADDY_ENV))

    def test_selected_provider_without_credentials(self, make_settings):
        with pytest.raises(ProviderConfigError, match="Cloudflare not configured"):
            get_dns_provider("cloudflare", make_settings(**GODADDY_ENV))
