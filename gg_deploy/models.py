"""
Data model shared by providers, GitHub services and the orchestrator
"""

import uuid
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


ProviderName = Literal["godaddy", "cloudflare", "namecheap"]
PROVIDER_NAMES = ("godaddy", "cloudflare", "namecheap")

RecordType = Literal["A", "CNAME", "TXT"]
FileAction = Literal["create", "update", "delete"]
ProgressAction = Literal["create", "update", "skip-large", "warn-large"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# DNS
# ---------------------------------------------------------------------------

class DNSRecord(BaseModel):
    """A single DNS record; `name` is the host label, "@" for the apex."""

    model_config = ConfigDict(frozen=True)

    type: RecordType
    name: str
    data: str
    ttl: int


class DomainInfo(BaseModel):
    """Read-only projection of a provider's domain listing"""

    domain: str
    status: str


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------

class PagesStatus(BaseModel):
    """GitHub Pages configuration of a repository"""

    url: Optional[str] = None
    status: Optional[str] = None
    cname: Optional[str] = None
    https_enforced: bool = False
    https_certificate_state: Optional[str] = None


class FileChange(BaseModel):
    """One file written (or to be written) by the sync engine"""

    path: str
    action: FileAction
    size: Optional[int] = None


# ---------------------------------------------------------------------------
# Deployment records
# ---------------------------------------------------------------------------

class Deployment(BaseModel):
    """
    Persistent record of a domain deployed to GitHub Pages.

    `domain` is the natural key and is always stored normalized.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    domain: str
    repo: str
    local_path: str
    provider: ProviderName
    created_at: datetime = Field(default_factory=utc_now)
    last_activity: datetime = Field(default_factory=utc_now)


class DeploymentsStore(BaseModel):
    """On-disk layout of the deployment record file"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: Literal[1] = 1
    deployments: List[Deployment] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Command results
# ---------------------------------------------------------------------------

class FailedStep(BaseModel):
    step: str
    error: str
    retriable: bool
    suggestion: Optional[str] = None


class CommandResult(BaseModel):
    """Structured outcome of a multi-step command"""

    status: Literal["success", "partial_success", "failure"] = "success"
    completed_steps: List[str] = Field(default_factory=list)
    failed_steps: List[FailedStep] = Field(default_factory=list)
    resources_created: List[str] = Field(default_factory=list)
    resources_modified: List[str] = Field(default_factory=list)
    next_action: Optional[str] = None
    estimated_wait_seconds: Optional[int] = None
    rollback_available: bool = False
    notes: List[str] = Field(default_factory=list)


class DNSChange(BaseModel):
    action: Literal["CREATE", "MODIFY", "DELETE", "KEEP"]
    record: DNSRecord
    current: Optional[str] = None


class GitHubChange(BaseModel):
    action: Literal["CREATE", "MODIFY", "KEEP"]
    resource: str
    details: str


class PlanResult(CommandResult):
    domain: str
    repo: str
    provider: Optional[ProviderName] = None
    dns_changes: List[DNSChange] = Field(default_factory=list)
    github_changes: List[GitHubChange] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class StatusResult(CommandResult):
    domain: str
    repo: str
    provider: Optional[ProviderName] = None
    dns_configured: bool = False
    dns_records: List[DNSRecord] = Field(default_factory=list)
    github_pages_enabled: bool = False
    github_pages_url: Optional[str] = None
    ssl_status: Literal["pending", "active", "error", "unknown"] = "unknown"
    health: Literal["healthy", "degraded", "error"] = "error"


class PushResult(BaseModel):
    domain: str = ""
    repo: str = ""
    message: str = ""
    success: bool = False
    files_changed: List[FileChange] = Field(default_factory=list)
    skipped_large: List[str] = Field(default_factory=list)
    warned_large: List[str] = Field(default_factory=list)
    error: Optional[str] = None
