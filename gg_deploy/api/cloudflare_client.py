"""
Cloudflare DNS API Client
Handles all interactions with the Cloudflare v4 API
"""

import requests
from typing import Dict, Any, List, Optional

from gg_deploy.api.base_provider import BaseDNSProvider, github_pages_records, with_retry
from gg_deploy.api.exceptions import (
    AuthenticationError,
    DomainNotFoundError,
    NetworkError,
    RateLimitError
)
from gg_deploy.models import DNSRecord, DomainInfo
from gg_deploy.utils.config import CloudflareCredentials
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)

PROVIDER = "cloudflare"
API_BASE = "https://api.cloudflare.com/client/v4"
RECORD_TTL = 3600
SUPPORTED_TYPES = ("A", "CNAME", "TXT")

AUTH_ERROR_CODES = {6003, 9109}
NOT_FOUND_ERROR_CODES = {1001, 1049}
RATE_LIMIT_ERROR_CODES = {10000}

ZONES_PER_PAGE = 50
RECORDS_PER_PAGE = 100


class CloudflareClient(BaseDNSProvider):
    """
    Cloudflare API client for DNS operations.

    Every record operation needs the zone ID of the domain; lookups are
    cached for the lifetime of the client.

    Documentation: https://developers.cloudflare.com/api/
    """

    name = PROVIDER
    record_ttl = RECORD_TTL

    def __init__(self, credentials: CloudflareCredentials):
        """
        Initialize Cloudflare client.

        Args:
            credentials: API token with Zone:Read and DNS:Edit permissions
        """
        self.base_url = API_BASE
        self.headers = {
            "Authorization": f"Bearer {credentials.api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        self._zone_cache: Dict[str, str] = {}

        logger.info("Cloudflare client initialized")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None,
        context: str = ""
    ) -> Dict[str, Any]:
        """
        Make HTTP request to Cloudflare API.

        Cloudflare wraps every response in {success, errors, result,
        result_info}; failures are mapped from the first error code.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            json_data: JSON body
            context: Operation name used in error messages

        Returns:
            Response envelope

        Raises:
            DNSProviderError subclasses
        """
        url = f"{self.base_url}{endpoint}"

        logger.debug(f"{method} {url}")

        try:
            response = requests.request(
                method=method,
                url=url,
                headers=self.headers,
                params=params,
                json=json_data,
                timeout=30
            )
        except requests.exceptions.Timeout:
            raise NetworkError(PROVIDER, "Request timed out after 30 seconds")
        except requests.exceptions.RequestException as e:
            raise NetworkError(PROVIDER, f"Connection error: {str(e)}")

        if response.status_code == 429:
            raise RateLimitError(
                PROVIDER,
                "Rate limited by Cloudflare API",
                suggestion="Wait a moment and try again",
                status_code=429
            )

        try:
            data = response.json()
        except ValueError:
            raise NetworkError(
                PROVIDER,
                f"Cloudflare returned a non-JSON response (HTTP {response.status_code}) - {context}",
                status_code=response.status_code
            )

        if not data.get("success"):
            self._handle_api_error(data.get("errors") or [], context, response.status_code)

        return data

    def _handle_api_error(self, errors: List[Dict[str, Any]], context: str, status_code: int = None) -> None:
        """
        Map Cloudflare error codes to the shared taxonomy.

        Raises:
            DNSProviderError subclasses, always
        """
        error = errors[0] if errors else {"code": 0, "message": "Unknown error"}
        code = error.get("code", 0)
        message = error.get("message", "Unknown error")

        if code in AUTH_ERROR_CODES:
            raise AuthenticationError(
                PROVIDER,
                "Invalid API token",
                suggestion="Check your API token at dash.cloudflare.com/profile/api-tokens",
                status_code=status_code,
                response_data={"errors": errors}
            )

        if code in NOT_FOUND_ERROR_CODES:
            raise DomainNotFoundError(
                PROVIDER,
                "Zone not found",
                suggestion="Verify the domain is added to your Cloudflare account",
                status_code=status_code,
                response_data={"errors": errors}
            )

        if code in RATE_LIMIT_ERROR_CODES:
            raise RateLimitError(
                PROVIDER,
                "Rate limited by Cloudflare API",
                suggestion="Wait a moment and try again",
                status_code=status_code,
                response_data={"errors": errors}
            )

        raise NetworkError(
            PROVIDER,
            f"Cloudflare API error: {message} ({code}) - {context}",
            status_code=status_code,
            response_data={"errors": errors}
        )

    def _get_all_pages(self, endpoint: str, per_page: int, context: str, params: Optional[Dict] = None) -> List[Dict[str, Any]]:
        """Collect `result` across every page of a listing endpoint"""
        items: List[Dict[str, Any]] = []
        page = 1

        while True:
            query = dict(params or {})
            query.update({"page": page, "per_page": per_page})
            data = self._make_request("GET", endpoint, params=query, context=context)

            items.extend(data.get("result") or [])

            result_info = data.get("result_info")
            if not result_info or page >= result_info.get("total_pages", 1):
                break
            page += 1

        return items

    @with_retry
    def get_zone_id(self, domain: str) -> str:
        """Look up the zone ID for a domain."""
        return self._get_zone_id(domain)

    def _get_zone_id(self, domain: str) -> str:
        """
        Look up (and cache) the zone ID for a domain. Not retried on its own;
        callers are the retried public methods.

        Args:
            domain: Domain name

        Returns:
            Zone ID

        Raises:
            DomainNotFoundError: If the domain is not a zone in this account
        """
        if domain in self._zone_cache:
            return self._zone_cache[domain]

        data = self._make_request("GET", "/zones", params={"name": domain}, context=f"get_zone_id({domain})")
        zones = data.get("result") or []

        if not zones or not zones[0].get("id"):
            raise DomainNotFoundError(
                PROVIDER,
                f"Domain {domain} not found in Cloudflare",
                suggestion="Add this domain to your Cloudflare account first"
            )

        zone_id = zones[0]["id"]
        self._zone_cache[domain] = zone_id
        logger.debug(f"Zone ID for {domain}: {zone_id}")
        return zone_id

    @with_retry
    def list_domains(self) -> List[DomainInfo]:
        """
        List every zone in the account, following pagination.

        Returns:
            List of DomainInfo
        """
        logger.info("Fetching Cloudflare zones")

        zones = self._get_all_pages("/zones", ZONES_PER_PAGE, "list_domains")

        domains = [
            DomainInfo(domain=zone["name"], status=str(zone.get("status", "")).upper())
            for zone in zones
        ]

        logger.info(f"Found {len(domains)} zones in Cloudflare account")
        return domains

    def _list_raw_records(self, zone_id: str, context: str) -> List[Dict[str, Any]]:
        return self._get_all_pages(f"/zones/{zone_id}/dns_records", RECORDS_PER_PAGE, context)

    @staticmethod
    def _relative_name(fqdn: str, domain: str) -> str:
        if fqdn == domain:
            return "@"
        suffix = f".{domain}"
        if fqdn.endswith(suffix):
            return fqdn[: -len(suffix)]
        return fqdn

    @with_retry
    def get_dns_records(self, domain: str) -> List[DNSRecord]:
        """
        Get the A, CNAME and TXT records of a domain.

        Args:
            domain: Domain name

        Returns:
            List of DNSRecord with names relative to the zone
        """
        zone_id = self._get_zone_id(domain)

        raw_records = self._list_raw_records(zone_id, f"get_dns_records({domain})")

        return [
            DNSRecord(
                type=r["type"],
                name=self._relative_name(r["name"], domain),
                data=r["content"],
                ttl=int(r.get("ttl") or RECORD_TTL)
            )
            for r in raw_records
            if r.get("type") in SUPPORTED_TYPES
        ]

    @with_retry
    def set_github_pages_records(self, domain: str, github_user: str) -> None:
        """
        Delete the apex A records and the www CNAME, then create the five
        GitHub Pages records.

        Args:
            domain: Domain name
            github_user: GitHub account owning the Pages site
        """
        zone_id = self._get_zone_id(domain)

        existing = self._list_raw_records(zone_id, "fetch_existing_records")
        to_delete = [
            r for r in existing
            if (r.get("type") == "A" and r.get("name") == domain)
            or (r.get("type") == "CNAME" and r.get("name") == f"www.{domain}")
        ]

        for record in to_delete:
            logger.info(f"Deleting {record['type']} {record['name']} -> {record.get('content')}")
            self._make_request(
                "DELETE",
                f"/zones/{zone_id}/dns_records/{record['id']}",
                context=f"delete_record({record['id']})"
            )

        for record in github_pages_records(github_user, RECORD_TTL):
            logger.info(f"Creating {record.type} {record.name} -> {record.data}")
            self._make_request(
                "POST",
                f"/zones/{zone_id}/dns_records",
                json_data={
                    "type": record.type,
                    "name": record.name,
                    "content": record.data,
                    "ttl": record.ttl,
                    "proxied": False
                },
                context=f"create_{record.type.lower()}_record({record.data})"
            )
