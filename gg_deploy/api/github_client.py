"""
GitHub REST API Client
Repository access checks and GitHub Pages configuration
"""

import base64
from typing import Dict, Any, Optional

import requests

from gg_deploy.api.exceptions import GitHubAPIError, GitHubConfigError
from gg_deploy.models import PagesStatus
from gg_deploy.utils.config import get_settings, Settings
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)

API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
CNAME_PATH = "CNAME"


class GitHubClient:
    """
    GitHub API client used for Pages settings and by the file sync engine.

    Authenticates with a bearer token; errors surface the JSON `message`
    GitHub returns.
    """

    def __init__(self, token: str):
        """
        Initialize GitHub client.

        Args:
            token: Personal access token (or `gh auth token` output) with repo scope
        """
        self.base_url = API_BASE
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION
        }

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "GitHubClient":
        """
        Build a client from the configured token.

        Raises:
            GitHubConfigError: If no token can be found
        """
        if config is None:
            config = get_settings()

        token = config.resolve_github_token()
        if not token:
            raise GitHubConfigError(
                "GitHub not configured. Set GITHUB_TOKEN or run `gh auth login`."
            )
        return cls(token)

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        json_data: Optional[Dict] = None
    ) -> Any:
        """
        Make an HTTP request to the GitHub API.

        Args:
            method: HTTP method
            endpoint: Path below the API root, e.g. '/repos/o/r'
            params: Query parameters
            json_data: JSON body

        Returns:
            Decoded response body ({} when empty)

        Raises:
            GitHubAPIError: On transport failure or a non-2xx response
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
            raise GitHubAPIError("Request timed out after 30 seconds")
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f"Connection error: {str(e)}")

        if 200 <= response.status_code < 300:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError:
                return {}

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"message": response.text or response.reason}
        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        raise GitHubAPIError(
            error_data.get("message") or f"HTTP {response.status_code}",
            status_code=response.status_code,
            response_data=error_data
        )

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def get_repo(self, repo: str) -> Dict[str, Any]:
        """Repository metadata"""
        return self.request("GET", f"/repos/{repo}")

    def verify_repo(self, repo: str) -> bool:
        """
        Check the token can see the repository.

        Args:
            repo: "owner/name"

        Returns:
            True if the repository is accessible
        """
        try:
            self.get_repo(repo)
        except GitHubAPIError as e:
            logger.warning(f"Repository {repo} not accessible: {e}")
            return False
        return True

    def is_repo_public(self, repo: str) -> bool:
        data = self.get_repo(repo)
        if "visibility" in data:
            return data["visibility"] == "public"
        return not data.get("private", True)

    def get_default_branch(self, repo: str) -> str:
        return self.get_repo(repo).get("default_branch") or "main"

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def enable_pages(self, repo: str, branch: str = "main", path: str = "/") -> None:
        """
        Enable GitHub Pages from a branch.

        Pages that are already enabled (409 / 422) count as success.
        """
        try:
            self.request(
                "POST",
                f"/repos/{repo}/pages",
                json_data={"source": {"branch": branch, "path": path}}
            )
        except GitHubAPIError as e:
            if e.status_code in (409, 422):
                logger.info(f"GitHub Pages already enabled for {repo}")
                return
            raise
        logger.info(f"GitHub Pages enabled for {repo} ({branch}{path})")

    def set_custom_domain(self, repo: str, domain: str) -> None:
        self.request("PUT", f"/repos/{repo}/pages", json_data={"cname": domain})
        logger.info(f"Custom domain for {repo} set to {domain}")

    def enable_https(self, repo: str) -> None:
        self.request("PUT", f"/repos/{repo}/pages", json_data={"https_enforced": True})
        logger.info(f"HTTPS enforced for {repo}")

    def get_pages_status(self, repo: str) -> Optional[PagesStatus]:
        """
        Current Pages configuration.

        Returns:
            PagesStatus, or None when Pages is not configured for the repo

        Raises:
            GitHubAPIError: For any failure other than 404
        """
        try:
            data = self.request("GET", f"/repos/{repo}/pages")
        except GitHubAPIError as e:
            if e.status_code == 404:
                return None
            raise

        certificate = data.get("https_certificate") or {}
        return PagesStatus(
            url=data.get("html_url") or data.get("url"),
            status=data.get("status"),
            cname=data.get("cname"),
            https_enforced=bool(data.get("https_enforced")),
            https_certificate_state=certificate.get("state")
        )

    def _get_cname_entry(self, repo: str) -> Optional[Dict[str, Any]]:
        try:
            return self.request("GET", f"/repos/{repo}/contents/{CNAME_PATH}")
        except GitHubAPIError as e:
            if e.status_code != 404:
                raise
            return None

    def get_cname_file(self, repo: str) -> Optional[str]:
        """
        Read the CNAME file at the repository root.

        Returns:
            The domain it holds (stripped), or None when the file is missing
        """
        existing = self._get_cname_entry(repo)
        if not existing:
            return None
        return base64.b64decode(existing.get("content") or "").decode("utf-8", errors="replace").strip()

    def add_cname_file(self, repo: str, domain: str) -> str:
        """
        Create or update the CNAME file at the repository root.

        Args:
            repo: "owner/name"
            domain: Custom domain

        Returns:
            "create", "update" or "unchanged"
        """
        sha = None
        existing = self._get_cname_entry(repo)

        if existing:
            sha = existing.get("sha")
            current = base64.b64decode(existing.get("content") or "").decode("utf-8", errors="replace")
            if current.strip() == domain:
                logger.info(f"CNAME file in {repo} already points at {domain}")
                return "unchanged"

        body = {
            "message": f"Add CNAME for {domain}",
            "content": base64.b64encode(f"{domain}\n".encode("utf-8")).decode("ascii")
        }
        if sha:
            body["sha"] = sha

        try:
            self.request("PUT", f"/repos/{repo}/contents/{CNAME_PATH}", json_data=body)
        except GitHubAPIError as e:
            text = e.message.lower()
            if e.status_code == 422 and ("already exists" in text or "sha" in text):
                logger.info(f"CNAME file in {repo} already exists")
                return "unchanged"
            raise

        action = "update" if sha else "create"
        logger.info(f"CNAME file in {repo}: {action} -> {domain}")
        return action
