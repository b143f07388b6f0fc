"""
Namecheap DNS API Client
Handles all interactions with the Namecheap XML API
"""

import html
import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import requests

from gg_deploy.api.base_provider import (
    BaseDNSProvider,
    GITHUB_PAGES_CNAME_SUFFIX,
    GITHUB_PAGES_IPS,
    github_pages_records,
    with_retry
)
from gg_deploy.api.exceptions import (
    AuthenticationError,
    DomainNotFoundError,
    NetworkError,
    RateLimitError
)
from gg_deploy.models import DNSRecord, DomainInfo
from gg_deploy.utils.config import NamecheapCredentials
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)

PROVIDER = "namecheap"
PRODUCTION_URL = "https://api.namecheap.com/xml.response"
SANDBOX_URL = "https://api.sandbox.namecheap.com/xml.response"
RECORD_TTL = 1800
SUPPORTED_TYPES = ("A", "CNAME", "TXT")
PAGE_SIZE = 100

MULTI_PART_TLDS = ("co.uk", "com.au", "co.nz", "com.br", "co.jp", "org.uk", "net.au")

AUTH_ERROR_CODES = {"1011150"}
RATE_LIMIT_ERROR_CODES = {"500000", "500001"}
NOT_FOUND_ERROR_CODES = {"2030166"}

# Targeted extraction; the responses are small and regular
_STATUS_RE = re.compile(r'<ApiResponse[^>]*\bStatus="([^"]*)"', re.IGNORECASE)
_ERROR_RE = re.compile(r'<Error\b[^>]*\bNumber="([^"]*)"[^>]*>(.*?)</Error>', re.IGNORECASE | re.DOTALL)
_ATTR_RE = re.compile(r'([A-Za-z_][\w.-]*)="([^"]*)"')
_HOST_RE = re.compile(r'<host\s([^>]*?)/?>', re.IGNORECASE)
_DOMAIN_RE = re.compile(r'<Domain\s([^>]*?)/?>')
_HOSTS_RESULT_RE = re.compile(r'<DomainDNSGetHostsResult\s([^>]*?)/?>', re.IGNORECASE)
_SET_RESULT_RE = re.compile(r'<DomainDNSSetHostsResult\s([^>]*?)/?>', re.IGNORECASE)
_TOTAL_ITEMS_RE = re.compile(r'<TotalItems>(\d+)</TotalItems>', re.IGNORECASE)


def _attributes(fragment: str) -> Dict[str, str]:
    return {key: html.unescape(value) for key, value in _ATTR_RE.findall(fragment)}


def split_domain(domain: str) -> Tuple[str, str]:
    """
    Split a domain into Namecheap's (SLD, TLD) pair.

    Args:
        domain: Domain name, e.g. "example.co.uk"

    Returns:
        ("example", "co.uk")

    Raises:
        ValueError: If the domain has no TLD
    """
    labels = domain.lower().split(".")
    if len(labels) < 2:
        raise ValueError(f"Invalid domain: {domain}")

    last_two = ".".join(labels[-2:])
    if last_two in MULTI_PART_TLDS and len(labels) >= 3:
        return labels[-3], last_two

    return labels[-2], labels[-1]


class NamecheapClient(BaseDNSProvider):
    """
    Namecheap API client for DNS operations.

    setHosts replaces the whole zone, so every mutation reads the full host
    list first, writes a local backup, and resubmits the preserved records
    together with the GitHub Pages records.
    """

    name = PROVIDER
    record_ttl = RECORD_TTL

    def __init__(self, credentials: NamecheapCredentials, backup_dir: Path):
        """
        Initialize Namecheap client.

        Args:
            credentials: API user, key and whitelisted client IP
            backup_dir: Directory receiving zone backups
        """
        self.credentials = credentials
        self.base_url = SANDBOX_URL if credentials.sandbox else PRODUCTION_URL
        self.backup_dir = Path(backup_dir)

        logger.info(f"Namecheap client initialized - {'sandbox' if credentials.sandbox else 'production'}")

    def _base_params(self, command: str) -> Dict[str, str]:
        return {
            "ApiUser": self.credentials.api_user,
            "ApiKey": self.credentials.api_key,
            "UserName": self.credentials.api_user,
            "ClientIp": self.credentials.client_ip,
            "Command": command
        }

    def _make_request(self, command: str, params: Optional[Dict[str, Any]] = None, method: str = "GET") -> str:
        """
        Call a Namecheap API command.

        Reads go in the query string; setHosts is sent as a form POST since a
        full zone can exceed URL length limits.

        Args:
            command: API command, e.g. namecheap.domains.getList
            params: Command parameters
            method: GET or POST

        Returns:
            Raw XML body of a successful response

        Raises:
            DNSProviderError subclasses
        """
        payload = self._base_params(command)
        payload.update(params or {})

        logger.debug(f"{method} {self.base_url} {command}")

        try:
            response = requests.request(
                method=method,
                url=self.base_url,
                params=payload if method == "GET" else None,
                data=payload if method != "GET" else None,
                timeout=30
            )
        except requests.exceptions.Timeout:
            raise NetworkError(PROVIDER, "Request timed out after 30 seconds")
        except requests.exceptions.RequestException as e:
            raise NetworkError(PROVIDER, f"Connection error: {str(e)}")

        if response.status_code != 200:
            raise NetworkError(
                PROVIDER,
                f"Namecheap returned HTTP {response.status_code} - {command}",
                status_code=response.status_code
            )

        xml = response.text
        status = _STATUS_RE.search(xml)
        if not status:
            raise NetworkError(PROVIDER, f"Unrecognised Namecheap response - {command}")

        if status.group(1).upper() == "ERROR":
            self._handle_api_error(xml, command)

        return xml

    def _handle_api_error(self, xml: str, command: str) -> None:
        """
        Map Namecheap error numbers to the shared taxonomy.

        Raises:
            DNSProviderError subclasses, always
        """
        match = _ERROR_RE.search(xml)
        number = match.group(1) if match else ""
        message = html.unescape(match.group(2).strip()) if match else "Unknown error"
        details = {"number": number, "message": message}

        if number in AUTH_ERROR_CODES:
            raise AuthenticationError(
                PROVIDER,
                "API access denied - client IP is not whitelisted",
                suggestion=(
                    f"Whitelist {self.credentials.client_ip} at "
                    "ap.www.namecheap.com/settings/tools/apiaccess"
                ),
                response_data=details
            )

        if number in RATE_LIMIT_ERROR_CODES:
            raise RateLimitError(
                PROVIDER,
                "Rate limited by Namecheap API",
                suggestion="Wait a moment and try again",
                response_data=details
            )

        if number in NOT_FOUND_ERROR_CODES:
            raise DomainNotFoundError(
                PROVIDER,
                "Domain not found in Namecheap account",
                suggestion="Verify the domain is registered with this Namecheap account",
                response_data=details
            )

        raise NetworkError(
            PROVIDER,
            f"Namecheap API error: {message} ({number}) - {command}",
            response_data=details
        )

    # ------------------------------------------------------------------
    # Domains
    # ------------------------------------------------------------------

    @with_retry
    def list_domains(self) -> List[DomainInfo]:
        """
        List every domain in the account, following pagination.

        Returns:
            List of DomainInfo; expired domains have status EXPIRED
        """
        logger.info("Fetching Namecheap domains")

        domains: List[DomainInfo] = []
        page = 1

        while True:
            xml = self._make_request(
                "namecheap.domains.getList",
                {"Page": page, "PageSize": PAGE_SIZE}
            )

            batch = [_attributes(fragment) for fragment in _DOMAIN_RE.findall(xml)]
            for attrs in batch:
                if not attrs.get("Name"):
                    continue
                expired = attrs.get("IsExpired", "false").lower() == "true"
                domains.append(DomainInfo(domain=attrs["Name"], status="EXPIRED" if expired else "ACTIVE"))

            total = _TOTAL_ITEMS_RE.search(xml)
            if not batch or not total or page * PAGE_SIZE >= int(total.group(1)):
                break
            page += 1

        logger.info(f"Found {len(domains)} domains in Namecheap account")
        return domains

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    def _fetch_hosts(self, domain: str) -> Tuple[List[Dict[str, str]], Optional[str]]:
        """
        Read the complete host list of a domain.

        Returns:
            (host attribute dicts of every record type, zone EmailType)
        """
        sld, tld = split_domain(domain)
        xml = self._make_request("namecheap.domains.dns.getHosts", {"SLD": sld, "TLD": tld})

        result = _HOSTS_RESULT_RE.search(xml)
        email_type = _attributes(result.group(1)).get("EmailType") if result else None

        hosts = [_attributes(fragment) for fragment in _HOST_RE.findall(xml)]
        return [h for h in hosts if h.get("Type")], email_type

    @with_retry
    def get_dns_records(self, domain: str) -> List[DNSRecord]:
        """
        Get the A, CNAME and TXT records of a domain.

        Args:
            domain: Domain name

        Returns:
            List of DNSRecord
        """
        hosts, _ = self._fetch_hosts(domain)

        return [
            DNSRecord(
                type=h["Type"].upper(),
                name=h.get("Name") or "@",
                data=h.get("Address", ""),
                ttl=int(h.get("TTL") or RECORD_TTL)
            )
            for h in hosts
            if h["Type"].upper() in SUPPORTED_TYPES
        ]

    def backup_hosts(self, domain: str, hosts: List[Dict[str, str]], email_type: Optional[str]) -> Path:
        """
        Write the current zone to a timestamped backup file (mode 0600).

        Args:
            domain: Domain name
            hosts: Host records as returned by getHosts
            email_type: Zone EmailType

        Returns:
            Path of the backup file
        """
        self.backup_dir.mkdir(parents=True, exist_ok=True, mode=0o700)

        now = datetime.now()
        stamp = re.sub(r"[:.]", "-", now.isoformat())
        path = self.backup_dir / f"{domain}-{stamp}.json"
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{domain}-{stamp}-{counter}.json"
            counter += 1

        payload = {
            "domain": domain,
            "provider": PROVIDER,
            "timestamp": now.isoformat(),
            "emailType": email_type,
            "hosts": hosts
        }

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)

        logger.info(f"Backed up {len(hosts)} Namecheap records for {domain} to {path}")
        return path

    @staticmethod
    def _replaced_by_github_pages(host: Dict[str, str]) -> bool:
        record_type = host.get("Type", "").upper()
        name = host.get("Name") or "@"
        address = host.get("Address", "")

        if record_type == "A" and (name == "@" or address in GITHUB_PAGES_IPS):
            return True
        if record_type == "CNAME" and (
            name == "www" or address.lower().rstrip(".").endswith(GITHUB_PAGES_CNAME_SUFFIX)
        ):
            return True
        return False

    @with_retry
    def set_github_pages_records(self, domain: str, github_user: str) -> None:
        """
        Replace the zone with the preserved records plus the GitHub Pages records.

        The current zone is backed up before setHosts is sent.

        Args:
            domain: Domain name
            github_user: GitHub account owning the Pages site
        """
        hosts, email_type = self._fetch_hosts(domain)

        self.backup_hosts(domain, hosts, email_type)

        preserved = [h for h in hosts if not self._replaced_by_github_pages(h)]
        logger.info(f"Preserving {len(preserved)} of {len(hosts)} existing records on {domain}")

        sld, tld = split_domain(domain)
        params: Dict[str, Any] = {"SLD": sld, "TLD": tld}
        if email_type:
            params["EmailType"] = email_type

        entries = [
            {
                "name": h.get("Name") or "@",
                "type": h["Type"].upper(),
                "address": h.get("Address", ""),
                "ttl": h.get("TTL") or RECORD_TTL,
                "mx_pref": h.get("MXPref")
            }
            for h in preserved
        ]
        entries.extend(
            {"name": r.name, "type": r.type, "address": r.data, "ttl": r.ttl, "mx_pref": None}
            for r in github_pages_records(github_user, RECORD_TTL)
        )

        for index, entry in enumerate(entries, start=1):
            params[f"HostName{index}"] = entry["name"]
            params[f"RecordType{index}"] = entry["type"]
            params[f"Address{index}"] = entry["address"]
            params[f"TTL{index}"] = entry["ttl"]
            if entry["type"] == "MX":
                params[f"MXPref{index}"] = entry["mx_pref"] or "10"

        xml = self._make_request("namecheap.domains.dns.setHosts", params, method="POST")

        result = _SET_RESULT_RE.search(xml)
        if result and _attributes(result.group(1)).get("IsSuccess", "").lower() != "true":
            raise NetworkError(PROVIDER, f"Namecheap did not apply the host records for {domain}")

        logger.info(f"Namecheap zone for {domain} now has {len(entries)} records")
