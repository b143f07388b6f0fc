"""
Deployment Orchestrator
Sequences DNS provider, GitHub Pages and file sync operations into the
plan / apply / status / push / forget workflows.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from gg_deploy.api.base_provider import (
    BaseDNSProvider,
    GITHUB_PAGES_CNAME_SUFFIX,
    GITHUB_PAGES_IPS,
    github_pages_records
)
from gg_deploy.api.exceptions import (
    DNSProviderError,
    GitHubAPIError,
    ProviderConfigError,
    SyncError
)
from gg_deploy.api.github_client import GitHubClient
from gg_deploy.api.provider_factory import detect_provider, get_dns_provider
from gg_deploy.models import (
    CommandResult,
    Deployment,
    DNSChange,
    DNSRecord,
    FailedStep,
    GitHubChange,
    PagesStatus,
    PlanResult,
    PROVIDER_NAMES,
    PushResult,
    StatusResult
)
from gg_deploy.services.deployment_store import DeploymentStore
from gg_deploy.services.sync_service import ProgressCallback, SyncService
from gg_deploy.utils.config import get_settings, Settings
from gg_deploy.utils.logger import get_logger
from gg_deploy.utils.validators import (
    RepoValidator,
    ValidationError as InputValidationError,
    normalize_domain,
    validate_domain,
    validate_repo
)

logger = get_logger(__name__)


DNS_PROPAGATION_SECONDS = 3600
DEFAULT_PUSH_MESSAGE = "GitHub Pages Push by gg-deploy"
SSL_ERROR_STATES = ("errored", "bad_authz")
SSL_ACTIVE_STATES = ("approved",)


class StepFailed(Exception):
    """A verification step returned a negative answer"""

    def __init__(self, message: str, suggestion: Optional[str] = None, retriable: bool = False):
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.retriable = retriable


def failed_step(step: str, exc: Exception) -> FailedStep:
    """Convert any step exception into a structured failure entry"""
    if isinstance(exc, DNSProviderError):
        return FailedStep(step=step, error=str(exc), retriable=exc.retriable, suggestion=exc.suggestion)

    if isinstance(exc, GitHubAPIError):
        suggestion = None
        if exc.status_code in (401, 403):
            suggestion = "Check that your GitHub token is valid and has the repo scope"
        elif exc.status_code == 404:
            suggestion = "Check the repository name and that your token can access it"
        return FailedStep(step=step, error=str(exc), retriable=exc.retriable, suggestion=suggestion)

    if isinstance(exc, StepFailed):
        return FailedStep(step=step, error=exc.message, retriable=exc.retriable, suggestion=exc.suggestion)

    if isinstance(exc, ProviderConfigError):
        return FailedStep(
            step=step,
            error=str(exc),
            retriable=False,
            suggestion="Add DNS provider credentials or set DNS_PROVIDER"
        )

    return FailedStep(step=step, error=str(exc), retriable=False)


def finish(result: CommandResult) -> CommandResult:
    """Derive the overall status from completed and failed steps"""
    if not result.failed_steps:
        result.status = "success"
    elif result.completed_steps:
        result.status = "partial_success"
    else:
        result.status = "failure"
    return result


class DeploymentOrchestrator:
    """
    Runs the multi-step deployment workflows.

    apply:
    1. verify_domain      - domain is listed and active at the DNS provider
    2. verify_repo        - repository is visible to the GitHub token
    3. configure_dns      - 4 apex A records + www CNAME to <owner>.github.io
    4. add_cname          - CNAME file in the repository root
    5. enable_pages       - Pages served from main /
    6. set_custom_domain  - Pages custom domain
    7. save_deployment    - local deployment record

    Each step runs once; the first failure stops the sequence and completed
    steps are left in place.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[DeploymentStore] = None,
        provider: Optional[BaseDNSProvider] = None,
        provider_name: Optional[str] = None,
        github: Optional[GitHubClient] = None,
        sync_service: Optional[SyncService] = None
    ):
        """
        Initialize the orchestrator.

        Collaborators not given are built on first use from `config`.

        Args:
            config: Optional Settings object. Defaults to get_settings().
            store: Deployment record store
            provider: DNS provider instance
            provider_name: Provider to build when `provider` is not given
            github: GitHub client
            sync_service: File sync engine
        """
        self.config = config or get_settings()
        self.store = store or DeploymentStore(config=self.config)
        self.provider_name = provider_name
        self._provider = provider
        self._github = github
        self._sync_service = sync_service

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def provider(self) -> BaseDNSProvider:
        if self._provider is None:
            self._provider = get_dns_provider(self.provider_name, self.config)
        return self._provider

    @property
    def github(self) -> GitHubClient:
        if self._github is None:
            self._github = GitHubClient.from_settings(self.config)
        return self._github

    @property
    def sync_service(self) -> SyncService:
        if self._sync_service is None:
            self._sync_service = SyncService(self.github)
        return self._sync_service

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _validate(self, domain: str, repo: str, result: CommandResult) -> Optional[Tuple[str, str]]:
        try:
            return validate_domain(domain), validate_repo(repo)
        except InputValidationError as e:
            result.failed_steps.append(FailedStep(step="validate_input", error=str(e), retriable=False))
            return None

    def _resolve(self, result: CommandResult) -> bool:
        """Build provider and GitHub client, recording a failed step if either is missing"""
        for step, getter in (("resolve_provider", lambda: self.provider), ("resolve_github", lambda: self.github)):
            try:
                getter()
            except (ProviderConfigError, GitHubAPIError) as e:
                logger.error(f"❌ {step} failed: {e}")
                result.failed_steps.append(failed_step(step, e))
                return False
        return True

    def _verify_domain(self, domain: str) -> None:
        if not self.provider.verify_domain(domain):
            raise StepFailed(
                f"Domain {domain} not found or not active in {self.provider.name}",
                suggestion=f"Check that {domain} is registered in your {self.provider.name} account"
            )

    def _verify_repo(self, repo: str) -> None:
        if not self.github.verify_repo(repo):
            raise StepFailed(
                f"Repository {repo} not found or not accessible",
                suggestion="Check the repository name and that your GitHub token has the repo scope"
            )

    def _run_steps(self, steps: List[Tuple[str, Callable[[], None]]], result: CommandResult) -> bool:
        total = len(steps)
        for index, (name, action) in enumerate(steps, start=1):
            logger.info(f"── Step {index}/{total}: {name}")
            try:
                action()
            except Exception as e:
                logger.error(f"❌ Step {name} failed: {e}")
                result.failed_steps.append(failed_step(name, e))
                return False
            result.completed_steps.append(name)
        return True

    # ------------------------------------------------------------------
    # apply
    # ------------------------------------------------------------------

    def apply(self, domain: str, repo: str, local_path: Optional[Path] = None) -> CommandResult:
        """
        Point a domain at a repository's GitHub Pages site.

        Args:
            domain: Domain (any form the normalizer accepts)
            repo: "owner/name"
            local_path: Directory to track for `push` (default: current directory)

        Returns:
            CommandResult; partial_success when a later step failed
        """
        result = CommandResult()

        validated = self._validate(domain, repo, result)
        if validated is None or not self._resolve(result):
            return finish(result)
        domain, repo = validated

        owner = RepoValidator.owner(repo)
        local_path = Path(local_path or os.getcwd())

        logger.info(f"🚀 Deploying {domain} -> {repo} via {self.provider.name}")

        def configure_dns():
            self.provider.set_github_pages_records(domain, owner)
            result.resources_modified.append(f"dns:{domain}:A:@")
            result.resources_modified.append(f"dns:{domain}:CNAME:www")

        def add_cname():
            action = self.github.add_cname_file(repo, domain)
            if action == "create":
                result.resources_created.append(f"github:{repo}:CNAME")
            elif action == "update":
                result.resources_modified.append(f"github:{repo}:CNAME")

        def enable_pages():
            self.github.enable_pages(repo)
            result.resources_modified.append(f"github:{repo}:pages")

        def set_custom_domain():
            self.github.set_custom_domain(repo, domain)
            result.resources_modified.append(f"github:{repo}:pages:cname")

        def save_deployment():
            existed = self.store.get(domain) is not None
            self.store.upsert(domain, repo, local_path, self.provider.name)
            target = result.resources_modified if existed else result.resources_created
            target.append(f"deployment:{domain}")

        completed = self._run_steps([
            ("verify_domain", lambda: self._verify_domain(domain)),
            ("verify_repo", lambda: self._verify_repo(repo)),
            ("configure_dns", configure_dns),
            ("add_cname", add_cname),
            ("enable_pages", enable_pages),
            ("set_custom_domain", set_custom_domain),
            ("save_deployment", save_deployment),
        ], result)

        if completed:
            result.next_action = "wait_for_dns"
            result.estimated_wait_seconds = DNS_PROPAGATION_SECONDS
            result.notes.append("DNS changes usually propagate within an hour but can take up to 48 hours")
            result.notes.append(f"Run `gg-deploy status {domain}` to check progress")
            logger.info(f"🎉 {domain} is configured for GitHub Pages")
            return finish(result)

        if "configure_dns" in result.completed_steps:
            result.rollback_available = True
            result.notes.append(
                f"DNS for {domain} already points at GitHub Pages; re-run apply once the failure is fixed"
            )
            if self.provider.name == "namecheap":
                result.notes.append(f"The previous Namecheap zone was backed up to {self.config.backup_dir}")
        result.notes.append("Completed steps were not rolled back")
        result.next_action = "apply"

        return finish(result)

    # ------------------------------------------------------------------
    # plan
    # ------------------------------------------------------------------

    def _plan_dns(self, domain: str, owner: str, result: PlanResult) -> None:
        targets = github_pages_records(owner, self.provider.record_ttl)

        try:
            current = self.provider.get_dns_records(domain)
        except Exception as e:
            logger.warning(f"Could not read current DNS for {domain}: {e}")
            result.warnings.append(f"Could not read current DNS records: {e}")
            result.dns_changes = [DNSChange(action="CREATE", record=r) for r in targets]
            return

        apex_a = [r for r in current if r.type == "A" and r.name == "@"]
        www_cname = [r for r in current if r.type == "CNAME" and r.name == "www"]
        present_ips = {r.data for r in apex_a}

        changes: List[DNSChange] = []
        for record in targets:
            if record.type == "A":
                action = "KEEP" if record.data in present_ips else "CREATE"
                changes.append(DNSChange(action=action, record=record))
                continue

            if not www_cname:
                changes.append(DNSChange(action="CREATE", record=record))
            elif www_cname[0].data.lower().rstrip(".") == record.data:
                changes.append(DNSChange(action="KEEP", record=record))
            else:
                changes.append(DNSChange(action="MODIFY", record=record, current=www_cname[0].data))

        for record in apex_a:
            if record.data not in GITHUB_PAGES_IPS:
                changes.append(DNSChange(action="DELETE", record=record, current=record.data))

        result.dns_changes = changes

    def _plan_cname_file(self, domain: str, repo: str, result: PlanResult) -> GitHubChange:
        try:
            current = self.github.get_cname_file(repo)
        except GitHubAPIError as e:
            result.warnings.append(f"Could not read CNAME file: {e}")
            current = None

        if current is None:
            return GitHubChange(action="CREATE", resource="CNAME file", details=f"Write {domain} to CNAME in {repo}")
        if current == domain:
            return GitHubChange(action="KEEP", resource="CNAME file", details=f"CNAME in {repo} already holds {domain}")
        return GitHubChange(action="MODIFY", resource="CNAME file", details=f"Replace {current or '(empty)'} with {domain} in CNAME")

    def _plan_github(self, domain: str, repo: str, result: PlanResult) -> None:
        try:
            if not self.github.is_repo_public(repo):
                result.warnings.append(
                    f"{repo} is private; GitHub Pages on private repositories needs a paid plan"
                )
        except GitHubAPIError as e:
            result.warnings.append(f"Could not read visibility of {repo}: {e}")

        pages: Optional[PagesStatus] = None
        try:
            pages = self.github.get_pages_status(repo)
        except GitHubAPIError as e:
            result.warnings.append(f"Could not read GitHub Pages settings: {e}")

        changes = [self._plan_cname_file(domain, repo, result)]
        if pages is None:
            changes.append(GitHubChange(action="CREATE", resource="GitHub Pages", details=f"Enable Pages for {repo} from main /"))
        if pages is None or (pages.cname or "").lower() != domain:
            changes.append(GitHubChange(action="MODIFY", resource="Custom domain", details=f"Set custom domain to {domain}"))

        result.github_changes = changes

    def plan(self, domain: str, repo: str) -> PlanResult:
        """
        Verify inputs and describe what apply would change, without changing anything.

        Args:
            domain: Domain
            repo: "owner/name"

        Returns:
            PlanResult with DNS and GitHub change lists and warnings
        """
        result = PlanResult(domain=normalize_domain(domain), repo=repo)

        validated = self._validate(domain, repo, result)
        if validated is None or not self._resolve(result):
            return finish(result)
        domain, repo = validated
        result.domain, result.repo, result.provider = domain, repo, self.provider.name

        owner = RepoValidator.owner(repo)

        self._run_steps([
            ("verify_domain", lambda: self._verify_domain(domain)),
            ("verify_repo", lambda: self._verify_repo(repo)),
            ("plan_dns", lambda: self._plan_dns(domain, owner, result)),
            ("plan_github", lambda: self._plan_github(domain, repo, result)),
        ], result)

        if not result.failed_steps:
            result.next_action = "apply"

        return finish(result)

    # ------------------------------------------------------------------
    # status
    # ------------------------------------------------------------------

    @staticmethod
    def dns_configured(records: List[DNSRecord]) -> bool:
        """All four Pages IPs at the apex and a www CNAME to *.github.io"""
        apex_ips = {r.data for r in records if r.type == "A" and r.name == "@"}
        www_ok = any(
            r.type == "CNAME" and r.name == "www"
            and r.data.lower().rstrip(".").endswith(GITHUB_PAGES_CNAME_SUFFIX)
            for r in records
        )
        return set(GITHUB_PAGES_IPS) <= apex_ips and www_ok

    @staticmethod
    def ssl_status(pages: Optional[PagesStatus]) -> str:
        if pages is None:
            return "unknown"
        state = (pages.https_certificate_state or "").lower()
        if state in SSL_ERROR_STATES:
            return "error"
        if pages.https_enforced or state in SSL_ACTIVE_STATES:
            return "active"
        return "pending"

    def status(self, domain: str, repo: str) -> StatusResult:
        """
        Re-derive deployment health from DNS and GitHub, ignoring local records.

        Args:
            domain: Domain
            repo: "owner/name"

        Returns:
            StatusResult; each check that fails is reported and the other still runs
        """
        result = StatusResult(domain=normalize_domain(domain), repo=repo)

        validated = self._validate(domain, repo, result)
        if validated is None:
            return finish(result)
        domain, repo = validated
        result.domain, result.repo = domain, repo

        def check_dns():
            records = self.provider.get_dns_records(domain)
            result.provider = self.provider.name
            result.dns_records = [
                r for r in records
                if (r.type == "A" and r.name == "@") or (r.type == "CNAME" and r.name == "www")
            ]
            result.dns_configured = self.dns_configured(result.dns_records)

        def check_github():
            pages = self.github.get_pages_status(repo)
            result.github_pages_enabled = pages is not None
            result.github_pages_url = pages.url if pages else None
            result.ssl_status = self.ssl_status(pages)

        for name, check in (("check_dns", check_dns), ("check_github", check_github)):
            try:
                check()
            except Exception as e:
                logger.error(f"❌ {name} failed: {e}")
                result.failed_steps.append(failed_step(name, e))
                continue
            result.completed_steps.append(name)

        if result.dns_configured and result.github_pages_enabled and result.ssl_status == "active":
            result.health = "healthy"
        elif result.dns_configured or result.github_pages_enabled:
            result.health = "degraded"
        else:
            result.health = "error"

        if not result.dns_configured or not result.github_pages_enabled:
            result.next_action = "apply"
        elif result.ssl_status == "pending":
            result.next_action = "wait_for_ssl"
            result.estimated_wait_seconds = DNS_PROPAGATION_SECONDS

        return finish(result)

    # ------------------------------------------------------------------
    # push / forget / track / list
    # ------------------------------------------------------------------

    def resolve_deployment(self, domain: Optional[str] = None, cwd: Optional[Path] = None) -> Optional[Deployment]:
        """Deployment by explicit domain, else by current directory"""
        if domain:
            return self.store.get(domain)
        return self.store.find_for_directory(Path(cwd or os.getcwd()))

    def push(
        self,
        domain: Optional[str] = None,
        message: Optional[str] = None,
        cwd: Optional[Path] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> PushResult:
        """
        Sync a tracked deployment's local files to its repository.

        Args:
            domain: Tracked domain; resolved from `cwd` when omitted
            message: Commit message prefix
            cwd: Directory used for resolution (default: current directory)
            on_progress: Forwarded sync progress callback

        Returns:
            PushResult; on failure `files_changed` holds what was written
        """
        message = message or DEFAULT_PUSH_MESSAGE
        deployment = self.resolve_deployment(domain, cwd)

        if deployment is None:
            where = normalize_domain(domain) if domain else str(Path(cwd or os.getcwd()).resolve())
            return PushResult(
                domain=normalize_domain(domain) if domain else "",
                message=message,
                error=f"No tracked deployment for {where}. Run `gg-deploy apply` or `gg-deploy track` first."
            )

        result = PushResult(domain=deployment.domain, repo=deployment.repo, message=message)

        local_path = Path(deployment.local_path)
        if not local_path.is_dir():
            result.error = f"Local path no longer exists: {local_path}"
            return result

        def progress(path: str, action: str) -> None:
            if action == "skip-large":
                result.skipped_large.append(path)
            elif action == "warn-large":
                result.warned_large.append(path)
            if on_progress:
                on_progress(path, action)

        try:
            changes = self.sync_service.sync_files(deployment.repo, local_path, message, on_progress=progress)
        except SyncError as e:
            result.files_changed = e.changes
            result.error = e.message
            return result
        except GitHubAPIError as e:
            result.error = str(e)
            return result

        result.files_changed = changes
        result.success = True
        try:
            self.store.touch(deployment.domain)
        except OSError as e:
            logger.warning(f"⚠️  Could not record push time for {deployment.domain}: {e}")
            result.error = f"Files were pushed but the last push time was not saved: {e}"

        logger.info(f"✅ Pushed {len(changes)} files to {deployment.repo}")
        return result

    def forget(self, domain: str) -> CommandResult:
        """
        Stop tracking a domain. DNS and GitHub Pages are left untouched.

        Args:
            domain: Tracked domain

        Returns:
            CommandResult; failure with a find_deployment step when untracked
        """
        result = CommandResult()
        normalized = normalize_domain(domain)
        deployment = self.store.get(normalized)

        if deployment is None:
            result.failed_steps.append(FailedStep(
                step="find_deployment",
                error=f"{normalized} is not tracked",
                retriable=False,
                suggestion="Run `gg-deploy list` to see tracked deployments"
            ))
            return finish(result)

        self.store.remove(normalized)
        result.completed_steps.append("remove_deployment")
        result.resources_modified.append(f"deployment:{normalized}")
        result.notes.append("Only local tracking was removed; DNS records and GitHub Pages settings are unchanged")
        result.notes.append(
            f"To take the site down, remove the GitHub Pages records at {deployment.provider} "
            f"and disable Pages for {deployment.repo}"
        )
        return finish(result)

    def track(
        self,
        domain: str,
        repo: str,
        local_path: Optional[Path] = None,
        provider_name: Optional[str] = None
    ) -> CommandResult:
        """
        Record an existing deployment without calling any external API.

        Args:
            domain: Domain
            repo: "owner/name"
            local_path: Directory to track (default: current directory)
            provider_name: DNS provider (default: configured provider)

        Returns:
            CommandResult
        """
        result = CommandResult()

        validated = self._validate(domain, repo, result)
        if validated is None:
            return finish(result)
        domain, repo = validated

        name = provider_name or self.provider_name
        if name is None and self._provider is not None:
            name = self._provider.name
        try:
            name = (name or detect_provider(self.config)).lower()
            if name not in PROVIDER_NAMES:
                raise ProviderConfigError(f"Unknown DNS provider: {name}")
        except ProviderConfigError as e:
            result.failed_steps.append(failed_step("resolve_provider", e))
            return finish(result)

        existed = self.store.get(domain) is not None
        try:
            self.store.upsert(domain, repo, Path(local_path or os.getcwd()), name)
        except OSError as e:
            logger.error(f"❌ Could not save deployment {domain}: {e}")
            result.failed_steps.append(failed_step("save_deployment", e))
            return finish(result)
        result.completed_steps.append("save_deployment")
        target = result.resources_modified if existed else result.resources_created
        target.append(f"deployment:{domain}")
        return finish(result)

    def list_deployments(self) -> List[Deployment]:
        return self.store.list()
