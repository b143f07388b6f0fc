"""
Tests for the deployment orchestrator workflows:
apply, plan, status, push, forget, track.

The DNS provider, GitHub client and sync engine are mocks; the deployment
store is real and lives in tmp_path.

Run:
    python -m pytest tests/test_orchestrator.py -v
"""

import shutil
from unittest.mock import MagicMock, patch

import pytest

from gg_deploy.api.base_provider import GITHUB_PAGES_IPS, github_pages_records
from gg_deploy.api.exceptions import AuthenticationError, GitHubAPIError, NetworkError, SyncError
from gg_deploy.models import DNSRecord, FileChange, PagesStatus
from gg_deploy.services.deployment_orchestrator import DEFAULT_PUSH_MESSAGE, DeploymentOrchestrator
from gg_deploy.services.deployment_store import DeploymentStore


DOMAIN = "example.com"
REPO = "octocat/site"

APPLY_STEPS = [
    "verify_domain",
    "verify_repo",
    "configure_dns",
    "add_cname",
    "enable_pages",
    "set_custom_domain",
    "save_deployment",
]


def _provider(name: str = "godaddy") -> MagicMock:
    provider = MagicMock()
    provider.name = name
    provider.record_ttl = 600
    provider.verify_domain.return_value = True
    provider.get_dns_records.return_value = []
    return provider


def _github() -> MagicMock:
    github = MagicMock()
    github.verify_repo.return_value = True
    github.is_repo_public.return_value = True
    github.get_pages_status.return_value = None
    github.add_cname_file.return_value = "create"
    github.get_cname_file.return_value = None
    return github


@pytest.fixture
def store(tmp_path):
    return DeploymentStore(tmp_path / "home" / "deployments.json")


@pytest.fixture
def site(tmp_path):
    path = tmp_path / "site"
    path.mkdir()
    (path / "index.html").write_text("<h1>Hello</h1>\n")
    return path


@pytest.fixture
def provider():
    return _provider()


@pytest.fixture
def github():
    return _github()


@pytest.fixture
def sync():
    sync = MagicMock()
    sync.sync_files.return_value = []
    return sync


@pytest.fixture
def orchestrator(make_settings, store, provider, github, sync):
    return DeploymentOrchestrator(
        config=make_settings(),
        store=store,
        provider=provider,
        github=github,
        sync_service=sync
    )


# ===========================================================================
# 1. apply
# ===========================================================================

class TestApply:

    def test_success(self, orchestrator, provider, github, store, site):
        result = orchestrator.apply("https://WWW.Example.com/", REPO, local_path=site)

        assert result.status == "success"
        assert result.completed_steps == APPLY_STEPS
        assert result.failed_steps == []
        assert result.next_action == "wait_for_dns"
        assert result.estimated_wait_seconds == 3600

        provider.set_github_pages_records.assert_called_once_with(DOMAIN, "octocat")
        github.add_cname_file.assert_called_once_with(REPO, DOMAIN)
        github.enable_pages.assert_called_once_with(REPO)
        github.set_custom_domain.assert_called_once_with(REPO, DOMAIN)

        assert f"github:{REPO}:CNAME" in result.resources_created
        assert f"deployment:{DOMAIN}" in result.resources_created
        assert f"dns:{DOMAIN}:A:@" in result.resources_modified

        record = store.get(DOMAIN)
        assert record.repo == REPO
        assert record.provider == "godaddy"
        assert record.local_path == str(site.resolve())

    def test_reapply_updates_record(self, orchestrator, github, store, site):
        orchestrator.apply(DOMAIN, REPO, local_path=site)
        first = store.get(DOMAIN)
        github.add_cname_file.return_value = "unchanged"

        result = orchestrator.apply(DOMAIN, REPO, local_path=site)

        assert result.status == "success"
        assert f"deployment:{DOMAIN}" in result.resources_modified
        assert f"github:{REPO}:CNAME" not in result.resources_created + result.resources_modified
        assert store.get(DOMAIN).id == first.id
        assert len(store.list()) == 1

    def test_dns_failure_stops_after_verification(self, orchestrator, provider, github, store, site):
        provider.set_github_pages_records.side_effect = AuthenticationError(
            "godaddy", "Access forbidden", suggestion="Use a production key"
        )

        result = orchestrator.apply(DOMAIN, REPO, local_path=site)

        assert result.status == "partial_success"
        assert result.completed_steps == ["verify_domain", "verify_repo"]
        assert len(result.failed_steps) == 1
        failed = result.failed_steps[0]
        assert failed.step == "configure_dns"
        assert failed.retriable is False
        assert failed.suggestion == "Use a production key"
        assert result.rollback_available is False
        assert result.next_action == "apply"

        github.add_cname_file.assert_not_called()
        github.enable_pages.assert_not_called()
        assert store.get(DOMAIN) is None

    def test_github_failure_after_dns(self, make_settings, store, github, site):
        provider = _provider("namecheap")
        github.enable_pages.side_effect = GitHubAPIError("Resource not accessible", status_code=403)
        orchestrator = DeploymentOrchestrator(
            config=make_settings(), store=store, provider=provider, github=github, sync_service=MagicMock()
        )

        result = orchestrator.apply(DOMAIN, REPO, local_path=site)

        assert result.status == "partial_success"
        assert result.completed_steps == APPLY_STEPS[:4]
        assert result.failed_steps[0].step == "enable_pages"
        assert "token" in result.failed_steps[0].suggestion
        assert result.rollback_available is True
        assert any("backed up" in note for note in result.notes)
        github.set_custom_domain.assert_not_called()

    def test_unverified_domain_is_a_failure(self, orchestrator, provider, github, site):
        provider.verify_domain.return_value = False

        result = orchestrator.apply(DOMAIN, REPO, local_path=site)

        assert result.status == "failure"
        assert result.completed_steps == []
        assert result.failed_steps[0].step == "verify_domain"
        github.verify_repo.assert_not_called()
        provider.set_github_pages_records.assert_not_called()

    @pytest.mark.parametrize("domain,repo", [("not a domain", REPO), (DOMAIN, "no-slash")])
    def test_invalid_input(self, orchestrator, provider, domain, repo):
        result = orchestrator.apply(domain, repo)

        assert result.status == "failure"
        assert result.failed_steps[0].step == "validate_input"
        provider.verify_domain.assert_not_called()

    def test_missing_provider_configuration(self, make_settings, store, github):
        orchestrator = DeploymentOrchestrator(config=make_settings(), store=store, github=github)

        result = orchestrator.apply(DOMAIN, REPO)

        assert result.status == "failure"
        assert result.failed_steps[0].step == "resolve_provider"
        assert "No DNS provider configured" in result.failed_steps[0].error
        github.verify_repo.assert_not_called()


# ===========================================================================
# 2. plan
# ===========================================================================

class TestPlan:

    def test_plan_labels_changes_without_mutating(self, orchestrator, provider, github, store):
        provider.get_dns_records.return_value = [
            DNSRecord(type="A", name="@", data="1.2.3.4", ttl=600),
            DNSRecord(type="A", name="@", data=GITHUB_PAGES_IPS[0], ttl=600),
            DNSRecord(type="CNAME", name="www", data="old.example.net.", ttl=600),
            DNSRecord(type="TXT", name="@", data="v=spf1 -all", ttl=600),
        ]
        github.is_repo_public.return_value = False

        result = orchestrator.plan(DOMAIN, REPO)

        assert result.status == "success"
        assert result.next_action == "apply"
        assert result.provider == "godaddy"

        labels = [(c.action, c.record.type, c.record.data) for c in result.dns_changes]
        assert labels == [
            ("KEEP", "A", GITHUB_PAGES_IPS[0]),
            ("CREATE", "A", GITHUB_PAGES_IPS[1]),
            ("CREATE", "A", GITHUB_PAGES_IPS[2]),
            ("CREATE", "A", GITHUB_PAGES_IPS[3]),
            ("MODIFY", "CNAME", "octocat.github.io"),
            ("DELETE", "A", "1.2.3.4"),
        ]
        assert result.dns_changes[4].current == "old.example.net."
        assert any("private" in w for w in result.warnings)
        assert [c.resource for c in result.github_changes] == ["CNAME file", "GitHub Pages", "Custom domain"]

        provider.set_github_pages_records.assert_not_called()
        github.add_cname_file.assert_not_called()
        github.enable_pages.assert_not_called()
        github.set_custom_domain.assert_not_called()
        assert store.list() == []

    def test_already_deployed_plan_keeps_everything(self, orchestrator, provider, github):
        provider.get_dns_records.return_value = github_pages_records("octocat", 600)
        github.get_pages_status.return_value = PagesStatus(url="https://example.com/", cname=DOMAIN)
        github.get_cname_file.return_value = DOMAIN

        result = orchestrator.plan(DOMAIN, REPO)

        assert {c.action for c in result.dns_changes} == {"KEEP"}
        assert [(c.action, c.resource) for c in result.github_changes] == [("KEEP", "CNAME file")]
        assert result.warnings == []

    @pytest.mark.parametrize("current,action", [
        (None, "CREATE"),
        (DOMAIN, "KEEP"),
        ("old.example.org", "MODIFY"),
        ("", "MODIFY"),
    ])
    def test_cname_file_is_labelled_from_repository(self, orchestrator, github, current, action):
        github.get_cname_file.return_value = current

        result = orchestrator.plan(DOMAIN, REPO)

        cname_change = result.github_changes[0]
        assert (cname_change.resource, cname_change.action) == ("CNAME file", action)
        github.add_cname_file.assert_not_called()

    def test_unreadable_cname_file_plans_create(self, orchestrator, github):
        github.get_cname_file.side_effect = GitHubAPIError("Server Error", status_code=500)

        result = orchestrator.plan(DOMAIN, REPO)

        assert result.status == "success"
        assert result.github_changes[0].action == "CREATE"
        assert any("Could not read CNAME file" in w for w in result.warnings)

    def test_unreadable_dns_plans_creates(self, orchestrator, provider):
        provider.get_dns_records.side_effect = NetworkError("godaddy", "boom")

        result = orchestrator.plan(DOMAIN, REPO)

        assert result.status == "success"
        assert [c.action for c in result.dns_changes] == ["CREATE"] * 5
        assert any("Could not read current DNS" in w for w in result.warnings)

    def test_failed_verification_halts(self, orchestrator, github):
        github.verify_repo.return_value = False

        result = orchestrator.plan(DOMAIN, REPO)

        assert result.status == "partial_success"
        assert result.completed_steps == ["verify_domain"]
        assert result.failed_steps[0].step == "verify_repo"
        assert result.next_action is None
        assert result.dns_changes == []


# ===========================================================================
# 3. status
# ===========================================================================

class TestStatus:

    def test_healthy(self, orchestrator, provider, github):
        provider.get_dns_records.return_value = github_pages_records("octocat", 600) + [
            DNSRecord(type="TXT", name="@", data="other", ttl=600)
        ]
        github.get_pages_status.return_value = PagesStatus(url="https://example.com/", https_enforced=True)

        result = orchestrator.status(DOMAIN, REPO)

        assert result.status == "success"
        assert result.health == "healthy"
        assert result.dns_configured is True
        assert len(result.dns_records) == 5
        assert result.github_pages_url == "https://example.com/"
        assert result.ssl_status == "active"
        assert result.next_action is None

    def test_degraded_without_pages(self, orchestrator, provider, github):
        provider.get_dns_records.return_value = github_pages_records("octocat", 600)

        result = orchestrator.status(DOMAIN, REPO)

        assert result.health == "degraded"
        assert result.github_pages_enabled is False
        assert result.ssl_status == "unknown"
        assert result.next_action == "apply"

    def test_waiting_for_certificate(self, orchestrator, provider, github):
        provider.get_dns_records.return_value = github_pages_records("octocat", 600)
        github.get_pages_status.return_value = PagesStatus(https_certificate_state="authorization_pending")

        result = orchestrator.status(DOMAIN, REPO)

        assert result.health == "degraded"
        assert result.ssl_status == "pending"
        assert result.next_action == "wait_for_ssl"

    def test_checks_run_independently(self, orchestrator, provider, github):
        provider.get_dns_records.side_effect = NetworkError("godaddy", "unreachable")
        github.get_pages_status.return_value = PagesStatus(https_enforced=True)

        result = orchestrator.status(DOMAIN, REPO)

        assert result.status == "partial_success"
        assert result.completed_steps == ["check_github"]
        assert result.failed_steps[0].step == "check_dns"
        assert result.health == "degraded"

    def test_both_checks_failing(self, orchestrator, provider, github):
        provider.get_dns_records.side_effect = NetworkError("godaddy", "unreachable")
        github.get_pages_status.side_effect = GitHubAPIError("Server Error", status_code=500)

        result = orchestrator.status(DOMAIN, REPO)

        assert result.status == "failure"
        assert result.health == "error"
        assert [f.retriable for f in result.failed_steps] == [False, True]

    @pytest.mark.parametrize("records,expected", [
        (github_pages_records("octocat", 600), True),
        (github_pages_records("octocat", 600)[:3] + github_pages_records("octocat", 600)[4:], False),
        (github_pages_records("octocat", 600)[:4], False),
        (github_pages_records("octocat", 600)[:4] + [DNSRecord(type="CNAME", name="www", data="x.net", ttl=1)], False),
    ])
    def test_dns_configured(self, records, expected):
        assert DeploymentOrchestrator.dns_configured(records) is expected

    @pytest.mark.parametrize("pages,expected", [
        (None, "unknown"),
        (PagesStatus(), "pending"),
        (PagesStatus(https_certificate_state="approved"), "active"),
        (PagesStatus(https_enforced=True), "active"),
        (PagesStatus(https_certificate_state="errored"), "error"),
        (PagesStatus(https_certificate_state="bad_authz", https_enforced=True), "error"),
    ])
    def test_ssl_status(self, pages, expected):
        assert DeploymentOrchestrator.ssl_status(pages) == expected


# ===========================================================================
# 4. push
# ===========================================================================

class TestPush:

    def test_push_by_domain(self, orchestrator, store, sync, site):
        store.upsert(DOMAIN, REPO, site, "godaddy")
        changes = [FileChange(path="index.html", action="update", size=15)]
        sync.sync_files.return_value = changes

        result = orchestrator.push("www.example.com")

        assert result.success is True
        assert result.files_changed == changes
        assert result.message == DEFAULT_PUSH_MESSAGE
        args = sync.sync_files.call_args
        assert args.args[:3] == (REPO, site.resolve(), DEFAULT_PUSH_MESSAGE)

    def test_push_resolves_from_working_directory(self, orchestrator, store, sync, site):
        nested = site / "assets"
        nested.mkdir()
        store.upsert(DOMAIN, REPO, site, "godaddy")

        result = orchestrator.push(message="Update copy", cwd=nested)

        assert result.success is True
        assert result.domain == DOMAIN
        assert sync.sync_files.call_args.args[2] == "Update copy"

    def test_push_touches_record(self, orchestrator, store, site):
        created = store.upsert(DOMAIN, REPO, site, "godaddy")
        orchestrator.push(DOMAIN)
        assert store.get(DOMAIN).last_activity >= created.last_activity

    def test_push_reports_unsaved_push_time(self, orchestrator, store, sync, site):
        store.upsert(DOMAIN, REPO, site, "godaddy")
        sync.sync_files.return_value = [FileChange(path="index.html", action="update")]

        with patch.object(store, "touch", side_effect=OSError("Read-only file system")):
            result = orchestrator.push(DOMAIN)

        assert result.success is True
        assert result.files_changed == [FileChange(path="index.html", action="update")]
        assert "Read-only file system" in result.error

    def test_progress_collects_large_files(self, orchestrator, store, sync, site):
        store.upsert(DOMAIN, REPO, site, "godaddy")
        seen = []

        def fake_sync(repo, local_path, message, on_progress=None):
            on_progress("video.mp4", "skip-large")
            on_progress("photo.raw", "warn-large")
            on_progress("photo.raw", "create")
            return [FileChange(path="photo.raw", action="create")]

        sync.sync_files.side_effect = fake_sync

        result = orchestrator.push(DOMAIN, on_progress=lambda p, a: seen.append((p, a)))

        assert result.skipped_large == ["video.mp4"]
        assert result.warned_large == ["photo.raw"]
        assert seen[-1] == ("photo.raw", "create")

    def test_untracked(self, orchestrator, sync, tmp_path):
        result = orchestrator.push("nowhere.com")
        assert result.success is False
        assert "No tracked deployment for nowhere.com" in result.error

        result = orchestrator.push(cwd=tmp_path)
        assert "No tracked deployment" in result.error
        sync.sync_files.assert_not_called()

    def test_missing_local_path(self, orchestrator, store, sync, site):
        store.upsert(DOMAIN, REPO, site, "godaddy")
        shutil.rmtree(site)

        result = orchestrator.push(DOMAIN)

        assert result.success is False
        assert "no longer exists" in result.error
        sync.sync_files.assert_not_called()

    def test_sync_failure_reports_partial_changes(self, orchestrator, store, sync, site):
        created = store.upsert(DOMAIN, REPO, site, "godaddy")
        written = [FileChange(path="a.html", action="create")]
        sync.sync_files.side_effect = SyncError("Failed to upload b.html: Server Error", changes=written, status_code=502)

        result = orchestrator.push(DOMAIN)

        assert result.success is False
        assert result.files_changed == written
        assert "b.html" in result.error
        assert store.get(DOMAIN).last_activity == created.last_activity


# ===========================================================================
# 5. forget / track / list
# ===========================================================================

class TestForget:

    def test_forget_tracked(self, orchestrator, store, provider, github, site):
        store.upsert(DOMAIN, REPO, site, "cloudflare")

        result = orchestrator.forget("WWW.example.com")

        assert result.status == "success"
        assert result.completed_steps == ["remove_deployment"]
        assert store.get(DOMAIN) is None
        assert any("unchanged" in note for note in result.notes)
        provider.set_github_pages_records.assert_not_called()
        assert github.method_calls == []

    def test_forget_untracked(self, orchestrator):
        result = orchestrator.forget(DOMAIN)

        assert result.status == "failure"
        assert result.failed_steps[0].step == "find_deployment"


class TestTrack:

    def test_track_with_explicit_provider(self, orchestrator, store, provider, github, site):
        result = orchestrator.track(DOMAIN, REPO, local_path=site, provider_name="Cloudflare")

        assert result.status == "success"
        assert result.resources_created == [f"deployment:{DOMAIN}"]
        assert store.get(DOMAIN).provider == "cloudflare"
        assert provider.method_calls == []
        assert github.method_calls == []

    def test_track_detects_configured_provider(self, make_settings, store, site):
        orchestrator = DeploymentOrchestrator(config=make_settings(cloudflare_api_token="cf"), store=store)

        result = orchestrator.track(DOMAIN, REPO, local_path=site)

        assert result.status == "success"
        assert store.get(DOMAIN).provider == "cloudflare"

    def test_track_unknown_provider(self, orchestrator, store, site):
        result = orchestrator.track(DOMAIN, REPO, local_path=site, provider_name="route53")

        assert result.status == "failure"
        assert result.failed_steps[0].step == "resolve_provider"
        assert store.list() == []

    def test_track_unwritable_store(self, orchestrator, store, site):
        with patch.object(store, "upsert", side_effect=OSError("Permission denied")):
            result = orchestrator.track(DOMAIN, REPO, local_path=site, provider_name="godaddy")

        assert result.status == "failure"
        assert result.completed_steps == []
        assert result.failed_steps[0].step == "save_deployment"
        assert "Permission denied" in result.failed_steps[0].error

    def test_list_deployments(self, orchestrator, store, site):
        orchestrator.track(DOMAIN, REPO, local_path=site, provider_name="godaddy")
        orchestrator.track("example.org", "octocat/org", local_path=site, provider_name="namecheap")

        assert [d.domain for d in orchestrator.list_deployments()] == [DOMAIN, "example.org"]
