"""
Business logic and service layer
"""

from gg_deploy.services.deployment_store import DeploymentStore
from gg_deploy.services.sync_service import SyncService, git_blob_sha, is_ignored, load_ignore_patterns
from gg_deploy.services.deployment_orchestrator import DeploymentOrchestrator, DEFAULT_PUSH_MESSAGE

__all__ = [
    # Deployment records
    "DeploymentStore",
    # File sync
    "SyncService",
    "git_blob_sha",
    "is_ignored",
    "load_ignore_patterns",
    # Orchestrator
    "DeploymentOrchestrator",
    "DEFAULT_PUSH_MESSAGE",
]
