"""
Input validation utilities for domains and repositories
"""

import re


class ValidationError(Exception):
    """Custom exception for validation errors"""
    pass


class DomainValidator:
    """Validator and normalizer for domain names"""

    # RFC-compliant domain regex
    DOMAIN_REGEX = re.compile(
        r'^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$'
    )

    @classmethod
    def normalize(cls, domain: str) -> str:
        """
        Canonicalize a user-supplied domain.

        Strips whitespace, protocol, a leading "www.", any path, query,
        fragment, port and trailing dot, and lowercases the result:
        "https://WWW.Example.com:443/path" becomes "example.com".

        Args:
            domain: Raw domain string

        Returns:
            Normalized domain (may be empty if nothing usable was given)
        """
        value = (domain or "").strip().lower()

        value = re.sub(r'^[a-z][a-z0-9+.-]*://', '', value)

        # Cut path, query and fragment
        value = re.split(r'[/?#]', value, maxsplit=1)[0]

        # Drop credentials and port
        value = value.rsplit('@', 1)[-1]
        value = value.split(':', 1)[0]

        value = value.rstrip('.')

        while value.startswith('www.') and '.' in value[4:]:
            value = value[4:]

        return value

    @classmethod
    def validate(cls, domain: str) -> str:
        """
        Normalize and validate a domain name.

        Args:
            domain: Domain name to validate

        Returns:
            Normalized domain name

        Raises:
            ValidationError: If domain is invalid
        """
        if not domain or not domain.strip():
            raise ValidationError("Domain name cannot be empty")

        normalized = cls.normalize(domain)

        # Check length
        if len(normalized) > 253:  # RFC 1035
            raise ValidationError("Domain name too long (max 253 characters)")

        if not cls.DOMAIN_REGEX.match(normalized):
            raise ValidationError(
                f"Invalid domain format: {domain}. "
                "Domain must contain only letters, numbers, and hyphens, with a TLD."
            )

        return normalized


class RepoValidator:
    """Validator for GitHub repository references ("owner/name")"""

    REPO_REGEX = re.compile(r'^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})/[A-Za-z0-9._-]{1,100}$')

    @classmethod
    def validate(cls, repo: str) -> str:
        """
        Validate a repository reference.

        Accepts "owner/name", a github.com URL, or either with a ".git" suffix.

        Args:
            repo: Repository reference

        Returns:
            Cleaned "owner/name"

        Raises:
            ValidationError: If the reference is invalid
        """
        if not repo or not repo.strip():
            raise ValidationError("Repository cannot be empty")

        value = repo.strip()
        value = re.sub(r'^(?:https?://)?(?:www\.)?github\.com/', '', value, flags=re.IGNORECASE)
        value = value.rstrip('/')
        if value.endswith('.git'):
            value = value[:-4]

        if not cls.REPO_REGEX.match(value):
            raise ValidationError(
                f"Invalid repository: {repo}. Expected the form owner/name"
            )

        return value

    @classmethod
    def owner(cls, repo: str) -> str:
        """Owner part of an "owner/name" reference"""
        return repo.split('/', 1)[0]


def normalize_domain(domain: str) -> str:
    """Convenience function for domain normalization"""
    return DomainValidator.normalize(domain)


def validate_domain(domain: str) -> str:
    """Convenience function for domain validation"""
    return DomainValidator.validate(domain)


def validate_repo(repo: str) -> str:
    """Convenience function for repository validation"""
    return RepoValidator.validate(repo)
