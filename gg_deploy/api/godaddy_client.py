"""
GoDaddy DNS API Client
Handles all interactions with the GoDaddy Domains API
"""

import requests
from typing import Dict, Any, List, Optional

from gg_deploy.api.base_provider import BaseDNSProvider, github_pages_records, with_retry
from gg_deploy.api.exceptions import (
    AuthenticationError,
    DomainNotFoundError,
    NetworkError,
    RateLimitError,
    ServerError,
    ValidationError
)
from gg_deploy.models import DNSRecord, DomainInfo
from gg_deploy.utils.config import GoDaddyCredentials
from gg_deploy.utils.logger import get_logger


logger = get_logger(__name__)

PROVIDER = "godaddy"
RECORD_TTL = 600
SUPPORTED_TYPES = ("A", "CNAME", "TXT")


class GoDaddyClient(BaseDNSProvider):
    """
    GoDaddy API Client for DNS operations.
    Supports both production and OTE (sandbox) environments.
    """

    name = PROVIDER
    record_ttl = RECORD_TTL

    def __init__(self, credentials: GoDaddyCredentials):
        """
        Initialize GoDaddy API client.

        Args:
            credentials: API key, secret and environment
        """
        self.credentials = credentials
        self.base_url = credentials.base_url
        self.headers = {
            "Authorization": f"sso-key {credentials.api_key}:{credentials.api_secret}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

        logger.info(f"GoDaddy Client initialized - Environment: {credentials.environment}")
        logger.debug(f"Base URL: {self.base_url}")

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Any] = None
    ) -> Any:
        """
        Make an HTTP request to GoDaddy API with error handling.

        Args:
            method: HTTP method (GET, PUT, ...)
            endpoint: API endpoint (e.g., '/v1/domains')
            params: Query parameters
            json_data: JSON body for PUT requests

        Returns:
            Decoded response body ({} when empty)

        Raises:
            DNSProviderError subclasses based on the HTTP status
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
            raise NetworkError(PROVIDER, f"Network error: {str(e)}")

        if response.status_code in (200, 201, 204):
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                raise NetworkError(PROVIDER, "GoDaddy returned a malformed response", status_code=response.status_code)

        error_data = self._parse_error_response(response)
        message = error_data.get("message") or response.reason or "Unknown error"

        if response.status_code == 401:
            raise AuthenticationError(
                PROVIDER,
                "Authentication failed. Check your GoDaddy API key and secret.",
                suggestion="Create a production key at https://developer.godaddy.com/keys",
                status_code=401,
                response_data=error_data
            )

        if response.status_code == 403:
            raise AuthenticationError(
                PROVIDER,
                f"Access forbidden: {message}",
                suggestion="GoDaddy only grants DNS API access to accounts with 10 or more domains",
                status_code=403,
                response_data=error_data
            )

        if response.status_code == 404:
            raise DomainNotFoundError(
                PROVIDER,
                f"Resource not found: {message}",
                suggestion="Verify the domain is registered in this GoDaddy account",
                status_code=404,
                response_data=error_data
            )

        if response.status_code == 422:
            raise ValidationError(
                PROVIDER,
                f"Request rejected: {message}",
                status_code=422,
                response_data=error_data
            )

        if response.status_code == 429:
            raise RateLimitError(
                PROVIDER,
                "API rate limit exceeded. Please wait before retrying.",
                suggestion="Wait a moment and try again",
                status_code=429,
                response_data=error_data
            )

        if 500 <= response.status_code < 600:
            raise ServerError(
                PROVIDER,
                f"GoDaddy server error: {message}",
                status_code=response.status_code,
                response_data=error_data
            )

        raise NetworkError(
            PROVIDER,
            f"Unexpected error: {message}",
            status_code=response.status_code,
            response_data=error_data
        )

    def _parse_error_response(self, response: requests.Response) -> Dict[str, Any]:
        """
        Parse error response from GoDaddy API.

        Args:
            response: Response object

        Returns:
            Error data dictionary
        """
        try:
            error_data = response.json()
        except ValueError:
            return {
                "message": response.text or "Unknown error",
                "code": response.status_code
            }
        if isinstance(error_data, dict):
            return error_data
        return {"message": str(error_data), "code": response.status_code}

    @with_retry
    def list_domains(self) -> List[DomainInfo]:
        """
        Get list of domains owned by the account.

        Returns:
            List of DomainInfo
        """
        logger.info("Fetching GoDaddy domains")

        response = self._make_request("GET", "/v1/domains")

        if not isinstance(response, list):
            return []

        domains = [
            DomainInfo(domain=item.get("domain", ""), status=str(item.get("status", "")).upper())
            for item in response
            if item.get("domain")
        ]

        logger.info(f"Found {len(domains)} domains in account")

        return domains

    @with_retry
    def get_dns_records(self, domain: str) -> List[DNSRecord]:
        """
        Get the A, CNAME and TXT records of a domain.

        Args:
            domain: Domain name

        Returns:
            List of DNSRecord
        """
        logger.info(f"Fetching GoDaddy DNS records for {domain}")

        response = self._make_request("GET", f"/v1/domains/{domain}/records")

        if not isinstance(response, list):
            return []

        return [
            DNSRecord(
                type=item["type"],
                name=item.get("name", "@"),
                data=item.get("data", ""),
                ttl=int(item.get("ttl") or RECORD_TTL)
            )
            for item in response
            if item.get("type") in SUPPORTED_TYPES
        ]

    @with_retry
    def set_github_pages_records(self, domain: str, github_user: str) -> None:
        """
        Replace the apex A records and the www CNAME with GitHub Pages targets.

        Each PUT replaces every record of that type and name, so repeating
        the call converges to the same state.

        Args:
            domain: Domain name
            github_user: GitHub account owning the Pages site
        """
        records = github_pages_records(github_user, RECORD_TTL)
        a_records = [{"data": r.data, "ttl": r.ttl} for r in records if r.type == "A"]
        cname_records = [{"data": r.data, "ttl": r.ttl} for r in records if r.type == "CNAME"]

        logger.info(f"Setting {len(a_records)} A records on {domain}")
        self._make_request("PUT", f"/v1/domains/{domain}/records/A/@", json_data=a_records)

        logger.info(f"Pointing www.{domain} at {cname_records[0]['data']}")
        self._make_request("PUT", f"/v1/domains/{domain}/records/CNAME/www", json_data=cname_records)

    def get_environment(self) -> str:
        """Get current environment (production or ote)"""
        return self.credentials.environment

    def is_production(self) -> bool:
        """Check if client is configured for production environment"""
        return self.credentials.environment == "production"
