"""
DNS Provider Factory
Creates DNS provider instances based on configuration
"""

from typing import List, Optional

from gg_deploy.api.base_provider import BaseDNSProvider
from gg_deploy.api.cloudflare_client import CloudflareClient
from gg_deploy.api.exceptions import ProviderConfigError
from gg_deploy.api.godaddy_client import GoDaddyClient
from gg_deploy.api.namecheap_client import NamecheapClient
from gg_deploy.models import PROVIDER_NAMES, ProviderName
from gg_deploy.utils.config import get_settings, Settings
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)


def configured_providers(config: Settings) -> List[ProviderName]:
    """Providers with a complete credential set, in a fixed order"""
    found: List[ProviderName] = []
    if config.godaddy_credentials():
        found.append("godaddy")
    if config.cloudflare_credentials():
        found.append("cloudflare")
    if config.namecheap_credentials():
        found.append("namecheap")
    return found


def detect_provider(config: Optional[Settings] = None) -> ProviderName:
    """
    Work out which DNS provider to use.

    An explicit selection (credential file or DNS_PROVIDER) wins. Otherwise
    exactly one provider may have credentials.

    Args:
        config: Optional Settings instance. Uses default if None.

    Returns:
        Provider name

    Raises:
        ProviderConfigError: If no provider, or more than one, is configured
    """
    if config is None:
        config = get_settings()

    selected = config.selected_provider()
    if selected:
        return selected

    found = configured_providers(config)

    if not found:
        raise ProviderConfigError(
            "No DNS provider configured. Set credentials for GoDaddy, "
            "Cloudflare or Namecheap."
        )

    if len(found) > 1:
        raise ProviderConfigError(
            f"Multiple DNS providers configured ({', '.join(found)}). "
            "Set DNS_PROVIDER to choose one."
        )

    return found[0]


def get_dns_provider(
    provider_name: Optional[str] = None,
    config: Optional[Settings] = None
) -> BaseDNSProvider:
    """
    Factory function to create DNS provider instances.

    Args:
        provider_name: Optional provider name ("godaddy", "cloudflare" or
                      "namecheap"). If None, detected from config.
        config: Optional Settings instance. Uses default if None.

    Returns:
        DNS provider instance

    Raises:
        ProviderConfigError: If the provider is unknown or has no credentials

    Example:
        # Use configured provider
        provider = get_dns_provider()

        # Explicitly use Cloudflare
        provider = get_dns_provider("cloudflare")
    """
    if config is None:
        config = get_settings()

    if provider_name is None:
        provider_name = detect_provider(config)

    provider_name = provider_name.strip().lower()

    if provider_name not in PROVIDER_NAMES:
        raise ProviderConfigError(
            f"Unknown DNS provider: {provider_name}. "
            f"Valid options are: {', '.join(PROVIDER_NAMES)}"
        )

    logger.info(f"Creating DNS provider: {provider_name}")

    if provider_name == "godaddy":
        credentials = config.godaddy_credentials()
        if credentials is None:
            raise ProviderConfigError("GoDaddy not configured. Set GODADDY_API_KEY and GODADDY_API_SECRET.")
        return GoDaddyClient(credentials)

    if provider_name == "cloudflare":
        credentials = config.cloudflare_credentials()
        if credentials is None:
            raise ProviderConfigError("Cloudflare not configured. Set CLOUDFLARE_API_TOKEN.")
        return CloudflareClient(credentials)

    credentials = config.namecheap_credentials()
    if credentials is None:
        raise ProviderConfigError(
            "Namecheap not configured. Set NAMECHEAP_API_USER, NAMECHEAP_API_KEY and NAMECHEAP_CLIENT_IP."
        )
    return NamecheapClient(credentials, backup_dir=config.backup_dir)
