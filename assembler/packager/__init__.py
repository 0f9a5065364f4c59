"""Boilerplate Assembler packager module.

Owns the per-build workspace directory and delivers the finished project
either as a zip archive or as a push to a GitHub repository.

Key classes:
    Workspace       - Uniquely named build directory, removed exactly once
    Packager        - Routes a workspace to its output target
    ArchiveStorage  - Zip creation, download URLs, stale archive cleanup
    GitPublisher    - init / commit / push via the git CLI
    GitHubClient    - Token login lookup and repository creation (httpx)
"""

from .git import GitError, GitPublisher
from .github import GitHubClient, GitHubError, GitHubRepository
from .packager import (
    ArchiveTarget,
    GitHubTarget,
    OutputTarget,
    PackageOutcome,
    Packager,
    PackagingError,
)
from .storage import ArchiveStorage, StorageError
from .workspace import Workspace, WorkspaceError

__all__ = [
    # Workspace
    "Workspace",
    "WorkspaceError",
    # Packaging
    "Packager",
    "PackageOutcome",
    "PackagingError",
    "ArchiveTarget",
    "GitHubTarget",
    "OutputTarget",
    # Archive storage
    "ArchiveStorage",
    "StorageError",
    # Git / GitHub
    "GitPublisher",
    "GitError",
    "GitHubClient",
    "GitHubError",
    "GitHubRepository",
]
