"""
Deployment Record Store
Persists tracked deployments in <home>/deployments.json
"""

import json
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from gg_deploy.models import Deployment, DeploymentsStore, ProviderName, utc_now
from gg_deploy.utils.config import get_settings, Settings
from gg_deploy.utils.logger import get_logger
from gg_deploy.utils.validators import normalize_domain

logger = get_logger(__name__)


class DeploymentStore:
    """
    Durable mapping from normalized domain to its deployment record.

    Every call loads the file fresh and writes it back whole; a missing or
    corrupt file reads as empty. There is no locking between processes.
    """

    def __init__(self, path: Optional[Path] = None, config: Optional[Settings] = None):
        """
        Args:
            path: File to use. Defaults to the configured deployments file.
            config: Optional Settings object. Defaults to get_settings().
        """
        if path is None:
            path = (config or get_settings()).deployments_file
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> DeploymentsStore:
        if not self.path.exists():
            return DeploymentsStore()
        try:
            return DeploymentsStore.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable deployment store {self.path}: {e}")
            return DeploymentsStore()

    def save(self, store: DeploymentsStore) -> None:
        """Write atomically with owner-only permissions"""
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        payload = store.model_dump(mode="json", by_alias=True)

        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".deployments-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self) -> List[Deployment]:
        return self.load().deployments

    def get(self, domain: str) -> Optional[Deployment]:
        wanted = normalize_domain(domain)
        for deployment in self.list():
            if deployment.domain == wanted:
                return deployment
        return None

    def get_by_path(self, local_path: Path) -> Optional[Deployment]:
        wanted = str(Path(local_path).resolve())
        for deployment in self.list():
            if deployment.local_path == wanted:
                return deployment
        return None

    def find_for_directory(self, cwd: Path) -> Optional[Deployment]:
        """
        Deployment for a working directory.

        An exact path match wins; otherwise the deepest tracked directory
        containing `cwd`.
        """
        exact = self.get_by_path(cwd)
        if exact:
            return exact

        current = Path(cwd).resolve()
        best: Optional[Deployment] = None
        best_depth = -1

        for deployment in self.list():
            tracked = Path(deployment.local_path)
            if tracked == current or tracked not in current.parents:
                continue
            depth = len(tracked.parts)
            if depth > best_depth:
                best, best_depth = deployment, depth

        return best

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert(self, domain: str, repo: str, local_path: Path, provider: ProviderName) -> Deployment:
        """
        Create the record for a domain, or update the existing one in place.

        `id` and `created_at` survive updates.
        """
        normalized = normalize_domain(domain)
        resolved = str(Path(local_path).resolve())
        store = self.load()

        for index, existing in enumerate(store.deployments):
            if existing.domain == normalized:
                updated = existing.model_copy(update={
                    "repo": repo,
                    "local_path": resolved,
                    "provider": provider,
                    "last_activity": utc_now()
                })
                store.deployments[index] = updated
                self.save(store)
                logger.info(f"Updated deployment record for {normalized}")
                return updated

        deployment = Deployment(domain=normalized, repo=repo, local_path=resolved, provider=provider)
        store.deployments.append(deployment)
        self.save(store)
        logger.info(f"Tracking new deployment {normalized} -> {repo}")
        return deployment

    def touch(self, domain: str) -> Optional[Deployment]:
        """Bump last_activity; returns None for an untracked domain"""
        normalized = normalize_domain(domain)
        store = self.load()

        for index, existing in enumerate(store.deployments):
            if existing.domain == normalized:
                updated = existing.model_copy(update={"last_activity": utc_now()})
                store.deployments[index] = updated
                self.save(store)
                return updated
        return None

    def remove(self, domain: str) -> bool:
        """Delete the record for a domain; False when it was not tracked"""
        normalized = normalize_domain(domain)
        store = self.load()

        remaining = [d for d in store.deployments if d.domain != normalized]
        if len(remaining) == len(store.deployments):
            return False

        store.deployments = remaining
        self.save(store)
        logger.info(f"Stopped tracking {normalized}")
        return True
