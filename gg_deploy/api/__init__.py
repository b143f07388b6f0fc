"""
API Layer - DNS provider implementations and the GitHub client
Supports multiple DNS providers with unified interface
"""

# Base Provider
from gg_deploy.api.base_provider import BaseDNSProvider, GITHUB_PAGES_IPS

# Provider Implementations
from gg_deploy.api.godaddy_client import GoDaddyClient
from gg_deploy.api.cloudflare_client import CloudflareClient
from gg_deploy.api.namecheap_client import NamecheapClient

# Provider Factory
from gg_deploy.api.provider_factory import detect_provider, get_dns_provider

# GitHub
from gg_deploy.api.github_client import GitHubClient

# Exceptions
from gg_deploy.api.exceptions import (
    APIError,
    ProviderErrorCode,
    DNSProviderError,
    AuthenticationError,
    DomainNotFoundError,
    RateLimitError,
    ValidationError,
    NetworkError,
    ServerError,
    ProviderConfigError,
    GitHubAPIError,
    GitHubConfigError,
    SyncError
)

__all__ = [
    # Base
    "BaseDNSProvider",
    "GITHUB_PAGES_IPS",

    # Providers
    "GoDaddyClient",
    "CloudflareClient",
    "NamecheapClient",

    # Factory
    "detect_provider",
    "get_dns_provider",

    # GitHub
    "GitHubClient",

    # Exceptions
    "APIError",
    "ProviderErrorCode",
    "DNSProviderError",
    "AuthenticationError",
    "DomainNotFoundError",
    "RateLimitError",
    "ValidationError",
    "NetworkError",
    "ServerError",
    "ProviderConfigError",
    "GitHubAPIError",
    "GitHubConfigError",
    "SyncError"
]
