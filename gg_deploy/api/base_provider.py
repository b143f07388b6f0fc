"""
Base DNS Provider Interface
Abstract base class for DNS provider implementations
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential
)

from gg_deploy.api.exceptions import DNSProviderError
from gg_deploy.models import DNSRecord, DomainInfo, ProviderName
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)


# GitHub Pages apex addresses
GITHUB_PAGES_IPS = (
    "185.199.108.153",
    "185.199.109.153",
    "185.199.110.153",
    "185.199.111.153",
)

GITHUB_PAGES_CNAME_SUFFIX = ".github.io"

MAX_ATTEMPTS = 3


def github_pages_target(github_user: str) -> str:
    """CNAME target for a user's Pages site"""
    return f"{github_user.lower()}{GITHUB_PAGES_CNAME_SUFFIX}"


def github_pages_records(github_user: str, ttl: int) -> List[DNSRecord]:
    """The five records every provider converges a domain to"""
    records = [DNSRecord(type="A", name="@", data=ip, ttl=ttl) for ip in GITHUB_PAGES_IPS]
    records.append(DNSRecord(type="CNAME", name="www", data=github_pages_target(github_user), ttl=ttl))
    return records


def is_github_pages_record(record: DNSRecord) -> bool:
    """True for an apex A record at a Pages IP or a www CNAME to *.github.io"""
    if record.type == "A" and record.name == "@":
        return record.data in GITHUB_PAGES_IPS
    if record.type == "CNAME" and record.name == "www":
        return record.data.lower().rstrip(".").endswith(GITHUB_PAGES_CNAME_SUFFIX)
    return False


def _is_retriable(exc: BaseException) -> bool:
    return isinstance(exc, DNSProviderError) and exc.retriable


# Up to 3 attempts, sleeping 1s then 2s; terminal errors propagate at once
with_retry = retry(
    stop=stop_after_attempt(MAX_ATTEMPTS),
    wait=wait_exponential(multiplier=1, max=10),
    retry=retry_if_exception(_is_retriable),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True
)


class BaseDNSProvider(ABC):
    """
    Abstract base class for DNS providers.
    All DNS provider implementations must inherit this class.
    """

    name: ProviderName
    record_ttl: int = 3600

    @abstractmethod
    def list_domains(self) -> List[DomainInfo]:
        """
        Enumerate domains visible under the configured credentials.

        Returns:
            List of DomainInfo, across every page the backend returns
        """
        pass

    @abstractmethod
    def get_dns_records(self, domain: str) -> List[DNSRecord]:
        """
        Get the A, CNAME and TXT records of a domain.

        Args:
            domain: Domain name

        Returns:
            Records with host names relative to the domain ("@" for the apex)
        """
        pass

    @abstractmethod
    def set_github_pages_records(self, domain: str, github_user: str) -> None:
        """
        Converge a domain to the four GitHub Pages A records at the apex
        plus a `www` CNAME to `{github_user}.github.io`.

        Args:
            domain: Domain name
            github_user: GitHub account owning the Pages site
        """
        pass

    def verify_domain(self, domain: str) -> bool:
        """
        Check that the domain is listed and active for this account.

        Advisory only: any error is logged and reported as False.

        Args:
            domain: Domain name

        Returns:
            True if the domain is present and active
        """
        try:
            domains = self.list_domains()
        except Exception as e:
            logger.warning(f"Could not verify {domain} with {self.name}: {e}")
            return False

        wanted = domain.lower()
        return any(d.domain.lower() == wanted and d.status.upper() == "ACTIVE" for d in domains)

    def get_provider_name(self) -> str:
        """
        Get provider name.

        Returns:
            Provider name string
        """
        return self.name
