"""
Custom exceptions for DNS provider and GitHub API operations
"""

from enum import Enum
from typing import Optional


class APIError(Exception):
    """Base exception for all API errors"""

    def __init__(self, message: str, status_code: int = None, response_data: dict = None):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(self.message)

    def __str__(self):
        if self.status_code:
            return f"APIError (HTTP {self.status_code}): {self.message}"
        return f"APIError: {self.message}"


# ---------------------------------------------------------------------------
# DNS providers
# ---------------------------------------------------------------------------

class ProviderErrorCode(str, Enum):
    """Error taxonomy shared by every DNS provider"""

    AUTH_ERROR = "AUTH_ERROR"
    DOMAIN_NOT_FOUND = "DOMAIN_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class DNSProviderError(APIError):
    """
    Error raised by a DNS provider backend.

    Only RATE_LIMITED errors (and GoDaddy 5xx responses) are retriable.
    """

    code: ProviderErrorCode = ProviderErrorCode.NETWORK_ERROR
    default_retriable: bool = False

    def __init__(
        self,
        provider: str,
        message: str,
        suggestion: Optional[str] = None,
        retriable: Optional[bool] = None,
        status_code: int = None,
        response_data: dict = None
    ):
        super().__init__(message, status_code=status_code, response_data=response_data)
        self.provider = provider
        self.suggestion = suggestion
        self.retriable = self.default_retriable if retriable is None else retriable

    def __str__(self):
        return f"[{self.provider}] {self.code.value}: {self.message}"


class AuthenticationError(DNSProviderError):
    """Raised when API authentication fails"""
    code = ProviderErrorCode.AUTH_ERROR


class DomainNotFoundError(DNSProviderError):
    """Raised when a domain is not found in the provider account"""
    code = ProviderErrorCode.DOMAIN_NOT_FOUND


class RateLimitError(DNSProviderError):
    """Raised when API rate limit is exceeded"""
    code = ProviderErrorCode.RATE_LIMITED
    default_retriable = True


class ValidationError(DNSProviderError):
    """Raised when request validation fails"""
    code = ProviderErrorCode.VALIDATION_ERROR


class NetworkError(DNSProviderError):
    """Raised when network/connection errors occur"""
    code = ProviderErrorCode.NETWORK_ERROR


class ServerError(NetworkError):
    """Raised when GoDaddy returns 5xx errors"""
    default_retriable = True


class ProviderConfigError(Exception):
    """Raised when no usable DNS provider can be selected"""
    pass


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

class GitHubAPIError(APIError):
    """Raised when a GitHub REST call fails"""

    def __str__(self):
        if self.status_code:
            return f"GitHub API error (HTTP {self.status_code}): {self.message}"
        return f"GitHub API error: {self.message}"

    @property
    def retriable(self) -> bool:
        """Transport failures, throttling and server errors may succeed later"""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class GitHubConfigError(GitHubAPIError):
    """Raised when no GitHub token can be found"""

    @property
    def retriable(self) -> bool:
        return False


class SyncError(GitHubAPIError):
    """Raised when a file sync stops part-way; `changes` holds what was written"""

    def __init__(self, message: str, changes=None, status_code: int = None, response_data: dict = None):
        super().__init__(message, status_code=status_code, response_data=response_data)
        self.changes = list(changes or [])
