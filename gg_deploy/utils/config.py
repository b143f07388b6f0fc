"""
Configuration management using Pydantic Settings
Loads credentials from environment variables / .env and the local credential file
"""

import json
import os
import subprocess
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from gg_deploy.models import ProviderName


# ---------------------------------------------------------------------------
# Credential bundles handed to the provider clients
# ---------------------------------------------------------------------------

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GoDaddyCredentials(_CamelModel):
    api_key: str
    api_secret: str
    environment: Literal["production", "ote"] = "production"

    @property
    def base_url(self) -> str:
        """GoDaddy API base URL for the selected environment"""
        if self.environment == "ote":
            return "https://api.ote-godaddy.com"
        return "https://api.godaddy.com"


class CloudflareCredentials(_CamelModel):
    api_token: str


class NamecheapCredentials(_CamelModel):
    api_user: str
    api_key: str
    client_ip: str = Field(alias="clientIP")
    sandbox: bool = False


class GitHubCredentials(_CamelModel):
    token: str


class StoredConfig(_CamelModel):
    """Layout of ~/.gg-deploy/config.json"""

    dns_provider: Optional[ProviderName] = None
    godaddy: Optional[GoDaddyCredentials] = None
    cloudflare: Optional[CloudflareCredentials] = None
    namecheap: Optional[NamecheapCredentials] = None
    github: Optional[GitHubCredentials] = None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Credentials saved in the credential file win over environment variables,
    provider by provider.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # GoDaddy API Configuration
    godaddy_api_key: str = Field(default="", description="GoDaddy API Key")
    godaddy_api_secret: str = Field(default="", description="GoDaddy API Secret")
    godaddy_env: Literal["production", "ote"] = Field(
        default="production",
        description="GoDaddy environment: production or ote (sandbox)"
    )

    # Cloudflare API Configuration
    cloudflare_api_token: str = Field(default="", description="Cloudflare API token")

    # Namecheap API Configuration
    namecheap_api_user: str = Field(default="", description="Namecheap API user")
    namecheap_api_key: str = Field(default="", description="Namecheap API key")
    namecheap_client_ip: str = Field(default="", description="Whitelisted client IP")
    namecheap_sandbox: bool = Field(default=False, description="Use the Namecheap sandbox")

    # GitHub
    github_token: str = Field(default="", description="GitHub token with repo scope")

    # Explicit provider selection (only needed when several are configured)
    dns_provider: Optional[ProviderName] = Field(default=None, description="DNS provider to use")

    # Local state
    gg_deploy_home: Path = Field(
        default=Path.home() / ".gg-deploy",
        description="Directory holding config.json, deployments.json and backups"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("godaddy_env", mode="before")
    @classmethod
    def lowercase_environment(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("dns_provider", mode="before")
    @classmethod
    def lowercase_provider(cls, v):
        if isinstance(v, str):
            return v.strip().lower() or None
        return v

    @field_validator("gg_deploy_home")
    @classmethod
    def expand_home(cls, v: Path) -> Path:
        return v.expanduser()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def config_file(self) -> Path:
        return self.gg_deploy_home / "config.json"

    @property
    def deployments_file(self) -> Path:
        return self.gg_deploy_home / "deployments.json"

    @property
    def backup_dir(self) -> Path:
        return self.gg_deploy_home / "backups"

    @property
    def logs_dir(self) -> Path:
        return self.gg_deploy_home / "logs"

    # ------------------------------------------------------------------
    # Credential file
    # ------------------------------------------------------------------

    def read_stored_config(self) -> StoredConfig:
        """
        Read the credential file.

        Returns:
            Parsed config; empty when the file is missing or unreadable
        """
        if not self.config_file.exists():
            return StoredConfig()
        try:
            return StoredConfig.model_validate_json(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return StoredConfig()

    def write_stored_config(self, stored: StoredConfig) -> None:
        """
        Write the credential file with owner-only permissions.

        Args:
            stored: Config to persist
        """
        self.gg_deploy_home.mkdir(parents=True, exist_ok=True, mode=0o700)
        payload = stored.model_dump(mode="json", by_alias=True, exclude_none=True)
        fd = os.open(self.config_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.chmod(self.config_file, 0o600)

    # ------------------------------------------------------------------
    # Credential accessors
    # ------------------------------------------------------------------

    def selected_provider(self) -> Optional[ProviderName]:
        """Explicitly configured provider, if any"""
        return self.read_stored_config().dns_provider or self.dns_provider

    def godaddy_credentials(self) -> Optional[GoDaddyCredentials]:
        stored = self.read_stored_config().godaddy
        if stored and stored.api_key and stored.api_secret:
            return stored
        if self.godaddy_api_key and self.godaddy_api_secret:
            return GoDaddyCredentials(
                api_key=self.godaddy_api_key,
                api_secret=self.godaddy_api_secret,
                environment=self.godaddy_env
            )
        return None

    def cloudflare_credentials(self) -> Optional[CloudflareCredentials]:
        stored = self.read_stored_config().cloudflare
        if stored and stored.api_token:
            return stored
        if self.cloudflare_api_token:
            return CloudflareCredentials(api_token=self.cloudflare_api_token)
        return None

    def namecheap_credentials(self) -> Optional[NamecheapCredentials]:
        stored = self.read_stored_config().namecheap
        if stored and stored.api_user and stored.api_key and stored.client_ip:
            return stored
        if self.namecheap_api_user and self.namecheap_api_key and self.namecheap_client_ip:
            return NamecheapCredentials(
                api_user=self.namecheap_api_user,
                api_key=self.namecheap_api_key,
                client_ip=self.namecheap_client_ip,
                sandbox=self.namecheap_sandbox
            )
        return None

    def resolve_github_token(self) -> Optional[str]:
        """
        Find a GitHub token: credential file, GITHUB_TOKEN, then `gh auth token`.

        Returns:
            Token string or None
        """
        stored = self.read_stored_config().github
        if stored and stored.token:
            return stored.token
        if self.github_token:
            return self.github_token
        try:
            completed = subprocess.run(
                ["gh", "auth", "token"],
                capture_output=True,
                text=True,
                check=True,
                timeout=10
            )
        except (OSError, subprocess.SubprocessError):
            return None
        return completed.stdout.strip() or None


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the settings singleton instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables are invalid
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reset_settings():
    """
    Reset the settings singleton (useful for testing)
    """
    global _settings
    _settings = None
