"""
GitHub File Sync Service
Pushes a local directory to a repository through the REST API, without git.

Local and remote files are compared by Git blob SHA, so unchanged files are
never re-uploaded. Remote files missing locally are left in place.
"""

import base64
import fnmatch
import hashlib
import os
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from pydantic import BaseModel

from gg_deploy.api.exceptions import GitHubAPIError, SyncError
from gg_deploy.api.github_client import GitHubClient
from gg_deploy.models import FileChange, ProgressAction
from gg_deploy.utils.logger import get_logger

logger = get_logger(__name__)


DEFAULT_IGNORES = (
    ".git",
    ".git/",
    "node_modules",
    "node_modules/",
    ".DS_Store",
    "*.log",
    ".env",
    ".env.*",
    "CNAME",
)

IGNORE_FILES = (".gg-ignore", ".gitignore")

# Size thresholds (bytes)
CONTENTS_API_LIMIT = 1 * 1024 * 1024
BLOB_API_LIMIT = 50 * 1024 * 1024
MAX_FILE_SIZE = 100 * 1024 * 1024
WARN_FILE_SIZE = 10 * 1024 * 1024

BINARY_SAMPLE_SIZE = 8000

ProgressCallback = Callable[[str, ProgressAction], None]


def git_blob_sha(content: bytes) -> str:
    """
    Git blob hash of a byte string, as GitHub reports it in `sha`.

    Args:
        content: Raw file bytes

    Returns:
        40-character hex SHA-1 of b"blob <len>\\0" + content
    """
    header = f"blob {len(content)}\0".encode("ascii")
    return hashlib.sha1(header + content).hexdigest()


def is_binary(sample: bytes) -> bool:
    """A NUL byte in the first 8000 bytes marks a file as binary"""
    return b"\0" in sample[:BINARY_SAMPLE_SIZE]


# ---------------------------------------------------------------------------
# Ignore patterns
# ---------------------------------------------------------------------------

class IgnorePattern:
    """
    One ignore pattern.

    Supported forms: "name" (any path segment), "dir/" (directories only),
    "/name" (anchored at the root), "a/b" (path prefix), "*.ext" and other
    globs.
    """

    def __init__(self, raw: str):
        self.raw = raw
        body = raw
        self.anchored = body.startswith("/")
        body = body.lstrip("/")
        self.dir_only = body.endswith("/")
        body = body.rstrip("/")
        self.body = body
        self.depth = body.count("/") + 1
        self.regex = re.compile(fnmatch.translate(body))

    def matches(self, parts: List[str], is_dir: bool) -> bool:
        if not self.body:
            return False

        if self.anchored or self.depth > 1:
            if len(parts) < self.depth:
                return False
            if not self.regex.match("/".join(parts[: self.depth])):
                return False
            return not self.dir_only or is_dir or len(parts) > self.depth

        last = len(parts) - 1
        for index, segment in enumerate(parts):
            if self.regex.match(segment):
                if not self.dir_only or is_dir or index < last:
                    return True
        return False


def load_ignore_patterns(root: Path) -> List[str]:
    """
    Default patterns plus those listed in .gg-ignore and .gitignore.

    Blank lines, comments and negations ("!") are skipped.
    """
    patterns = list(DEFAULT_IGNORES)

    for name in IGNORE_FILES:
        ignore_file = Path(root) / name
        if not ignore_file.is_file():
            continue
        for line in ignore_file.read_text(encoding="utf-8", errors="replace").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or line.startswith("!"):
                continue
            patterns.append(line)

    return patterns


def is_ignored(rel_path: str, patterns: List[str], is_dir: bool = False) -> bool:
    """
    Check a forward-slash relative path against ignore patterns.

    Args:
        rel_path: Path relative to the sync root
        patterns: Raw pattern strings
        is_dir: Whether the path is a directory

    Returns:
        True if any pattern matches
    """
    parts = [p for p in rel_path.split("/") if p]
    return any(IgnorePattern(p).matches(parts, is_dir) for p in patterns)


# ---------------------------------------------------------------------------
# File models
# ---------------------------------------------------------------------------

class LocalFile(BaseModel):
    path: str
    abs_path: Path
    size: int
    binary: bool

    def read(self) -> bytes:
        return self.abs_path.read_bytes()


class RemoteFile(BaseModel):
    path: str
    sha: str
    size: int = 0
    type: str = "file"


class SyncService:
    """
    Service that mirrors a local directory onto a GitHub repository.

    Files are processed one at a time; a failure stops the sync and the
    raised SyncError carries the changes already written.
    """

    def __init__(self, github: GitHubClient):
        self.github = github
        self._default_branches: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Local tree
    # ------------------------------------------------------------------

    def scan_local(
        self,
        root: Path,
        patterns: Optional[List[str]] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> List[LocalFile]:
        """
        Walk the local tree, pruning ignored directories.

        Files above MAX_FILE_SIZE are reported as skip-large and left out;
        files above WARN_FILE_SIZE are reported as warn-large and kept.

        Args:
            root: Directory to scan
            patterns: Ignore patterns (loaded from root if None)
            on_progress: Progress callback

        Returns:
            Files to consider, sorted by path
        """
        root = Path(root)
        if patterns is None:
            patterns = load_ignore_patterns(root)

        files: List[LocalFile] = []

        def walk(directory: Path, prefix: str) -> None:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)

            for entry in entries:
                rel_path = f"{prefix}{entry.name}"

                if entry.is_dir(follow_symlinks=False):
                    if is_ignored(rel_path, patterns, is_dir=True):
                        logger.debug(f"Ignoring directory {rel_path}/")
                        continue
                    walk(Path(entry.path), f"{rel_path}/")
                    continue

                if not entry.is_file():
                    continue

                if is_ignored(rel_path, patterns):
                    logger.debug(f"Ignoring {rel_path}")
                    continue

                size = entry.stat().st_size

                if size > MAX_FILE_SIZE:
                    logger.warning(f"Skipping {rel_path}: {size} bytes exceeds the 100MB limit")
                    if on_progress:
                        on_progress(rel_path, "skip-large")
                    continue

                if size > WARN_FILE_SIZE:
                    logger.warning(f"Large file {rel_path}: {size} bytes")
                    if on_progress:
                        on_progress(rel_path, "warn-large")

                with open(entry.path, "rb") as f:
                    sample = f.read(BINARY_SAMPLE_SIZE)

                files.append(LocalFile(
                    path=rel_path,
                    abs_path=Path(entry.path),
                    size=size,
                    binary=is_binary(sample)
                ))

        walk(root, "")
        return files

    # ------------------------------------------------------------------
    # Remote tree
    # ------------------------------------------------------------------

    def list_remote(self, repo: str, path: str = "") -> Dict[str, RemoteFile]:
        """
        Recursively list repository files through the contents API.

        A missing directory (or an empty repository) yields no entries.

        Args:
            repo: "owner/name"
            path: Directory to start from

        Returns:
            Files keyed by path
        """
        endpoint = f"/repos/{repo}/contents/{quote(path)}" if path else f"/repos/{repo}/contents"

        try:
            listing = self.github.request("GET", endpoint)
        except GitHubAPIError as e:
            if e.status_code == 404:
                return {}
            raise

        if isinstance(listing, dict):
            listing = [listing]

        files: Dict[str, RemoteFile] = {}
        for item in listing:
            if item.get("type") == "dir":
                files.update(self.list_remote(repo, item["path"]))
            elif item.get("type") == "file":
                files[item["path"]] = RemoteFile(
                    path=item["path"],
                    sha=item["sha"],
                    size=item.get("size") or 0
                )

        return files

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    def _default_branch(self, repo: str) -> str:
        if repo not in self._default_branches:
            self._default_branches[repo] = self.github.get_default_branch(repo)
        return self._default_branches[repo]

    def upload_small(self, repo: str, path: str, content: bytes, message: str, sha: Optional[str] = None) -> None:
        """Single contents-API write; `sha` is required to update an existing file"""
        body = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii")
        }
        if sha:
            body["sha"] = sha

        self.github.request("PUT", f"/repos/{repo}/contents/{quote(path)}", json_data=body)

    def upload_large(self, repo: str, path: str, content: bytes, message: str, binary: bool) -> None:
        """
        Write one file through the git data API.

        Creates a blob, layers it onto the branch head's tree, commits, and
        fast-forwards the branch.
        """
        branch = self._default_branch(repo)

        blob_body = None
        if not binary:
            try:
                blob_body = {"content": content.decode("utf-8"), "encoding": "utf-8"}
            except UnicodeDecodeError:
                blob_body = None
        if blob_body is None:
            blob_body = {"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"}

        blob = self.github.request("POST", f"/repos/{repo}/git/blobs", json_data=blob_body)

        ref = self.github.request("GET", f"/repos/{repo}/git/ref/heads/{branch}")
        head_sha = ref["object"]["sha"]

        commit = self.github.request("GET", f"/repos/{repo}/git/commits/{head_sha}")
        base_tree = commit["tree"]["sha"]

        tree = self.github.request(
            "POST",
            f"/repos/{repo}/git/trees",
            json_data={
                "base_tree": base_tree,
                "tree": [{"path": path, "mode": "100644", "type": "blob", "sha": blob["sha"]}]
            }
        )

        new_commit = self.github.request(
            "POST",
            f"/repos/{repo}/git/commits",
            json_data={"message": message, "tree": tree["sha"], "parents": [head_sha]}
        )

        self.github.request(
            "PATCH",
            f"/repos/{repo}/git/refs/heads/{branch}",
            json_data={"sha": new_commit["sha"]}
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def plan_changes(self, local_files: List[LocalFile], remote: Dict[str, RemoteFile]) -> List[Tuple[LocalFile, FileChange, Optional[str]]]:
        """
        Compare local files to the remote tree.

        Returns:
            (local file, change, remote sha) for every file that differs
        """
        planned = []
        for local in local_files:
            existing = remote.get(local.path)
            if existing is None:
                planned.append((local, FileChange(path=local.path, action="create", size=local.size), None))
                continue
            if git_blob_sha(local.read()) != existing.sha:
                planned.append((local, FileChange(path=local.path, action="update", size=local.size), existing.sha))
        return planned

    def sync_files(
        self,
        repo: str,
        local_path: Path,
        message: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> List[FileChange]:
        """
        Upload new and changed files from `local_path` to `repo`.

        Args:
            repo: "owner/name"
            local_path: Directory to push
            message: Commit message prefix
            on_progress: Called with (path, action) before each upload and
                for large-file notices

        Returns:
            Changes written; empty when nothing differs

        Raises:
            SyncError: If listing or an upload fails (with changes so far)
        """
        root = Path(local_path)
        if not root.is_dir():
            raise SyncError(f"Local path not found: {root}")

        logger.info(f"Syncing {root} -> {repo}")

        try:
            local_files = self.scan_local(root, on_progress=on_progress)
        except OSError as e:
            raise SyncError(f"Could not read {root}: {e}") from e

        try:
            remote = self.list_remote(repo)
        except GitHubAPIError as e:
            raise SyncError(f"Could not list files in {repo}: {e.message}", status_code=e.status_code) from e

        logger.info(f"{len(local_files)} local files, {len(remote)} remote files")

        try:
            planned = self.plan_changes(local_files, remote)
        except OSError as e:
            raise SyncError(f"Could not read {root}: {e}") from e

        changes: List[FileChange] = []

        for local, change, remote_sha in planned:
            verb = "add" if change.action == "create" else "update"
            commit_message = f"{message} ({verb} {change.path})"

            if on_progress:
                on_progress(change.path, change.action)

            try:
                content = local.read()
                if local.size <= CONTENTS_API_LIMIT:
                    self.upload_small(repo, change.path, content, commit_message, sha=remote_sha)
                else:
                    if local.size > BLOB_API_LIMIT:
                        logger.warning(f"{change.path} is over 50MB; GitHub may reject it")
                    self.upload_large(repo, change.path, content, commit_message, local.binary)
            except GitHubAPIError as e:
                logger.error(f"❌ Upload failed for {change.path}: {e.message}")
                raise SyncError(
                    f"Failed to upload {change.path}: {e.message}",
                    changes=changes,
                    status_code=e.status_code
                ) from e
            except OSError as e:
                logger.error(f"❌ Could not read {change.path}: {e}")
                raise SyncError(f"Failed to read {change.path}: {e}", changes=changes) from e

            logger.info(f"{change.action}: {change.path}")
            changes.append(change)

        logger.info(f"✅ Sync complete: {len(changes)} files changed")
        return changes
