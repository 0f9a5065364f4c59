"""Output packaging: turn a finished workspace into a deliverable.

Two targets are supported:

* ``zip`` -- the workspace is archived into the storage directory and a
  download URL is returned.
* ``github`` -- the workspace is committed and pushed to a GitHub
  repository (optionally created first) and the repository URL is returned.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Annotated, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, Field
from rich.console import Console

from assembler.config import Config, GitConfig, StorageConfig
from assembler.utils import sanitize_name

from .git import GitError, GitPublisher, redact
from .github import GitHubClient, GitHubError
from .storage import ARCHIVE_SUFFIX, ArchiveStorage, StorageError

console = Console()


# ---------------------------------------------------------------------------
# Output targets
# ---------------------------------------------------------------------------

class ArchiveTarget(BaseModel):
    """Deliver the project as a zip archive."""

    type: Literal["zip"] = "zip"
    file_name: Optional[str] = Field(
        default=None,
        pattern=r"^[\w][\w.-]*$",
        description="Archive name stem; the build id is always appended",
    )


class GitHubTarget(BaseModel):
    """Deliver the project by pushing it to a GitHub repository."""

    type: Literal["github"] = "github"
    repository_name: str = Field(..., pattern=r"^[\w.-]+$")
    token: str = Field(..., min_length=1, repr=False)
    owner: Optional[str] = Field(default=None, description="Defaults to the token's user")
    create_repository: bool = False
    private: bool = False
    description: Optional[str] = None
    commit_message: Optional[str] = None
    branch: str = Field(default="main", min_length=1)


OutputTarget = Annotated[Union[ArchiveTarget, GitHubTarget], Field(discriminator="type")]


class PackageOutcome(BaseModel):
    """Where the packaged project ended up."""

    output_url: str
    file_name: Optional[str] = None


class PackagingError(Exception):
    """Raised when the workspace cannot be delivered to its target."""

    def __init__(self, message: str, target: str = ""):
        self.target = target
        super().__init__(message)


# ---------------------------------------------------------------------------
# Packager
# ---------------------------------------------------------------------------

class Packager:
    """Delivers workspaces to archive storage or to GitHub.

    ``github_factory`` builds the API client for a token; tests swap it for
    one backed by ``httpx.MockTransport``.
    """

    def __init__(
        self,
        storage: ArchiveStorage,
        git: GitConfig | None = None,
        *,
        publisher: GitPublisher | None = None,
        github_factory: Callable[[str], GitHubClient] | None = None,
        max_archive_age: int = 3600,
    ) -> None:
        self.storage = storage
        self.git = git or GitConfig()
        self.publisher = publisher or GitPublisher(
            author_name=self.git.author_name,
            author_email=self.git.author_email,
            timeout=self.git.push_timeout,
        )
        self.github_factory = github_factory or (
            lambda token: GitHubClient(token, base_url=self.git.github_api_url)
        )
        self.max_archive_age = max_archive_age

    @classmethod
    def from_config(cls, config: Config) -> "Packager":
        storage_cfg: StorageConfig = config.storage
        return cls(
            ArchiveStorage(storage_cfg.output_path, storage_cfg.public_base_url),
            config.git,
            max_archive_age=storage_cfg.max_archive_age,
        )

    async def package(
        self,
        workspace_dir: str | Path,
        target: ArchiveTarget | GitHubTarget,
        *,
        project_name: str,
        build_id: str,
    ) -> PackageOutcome:
        """Deliver *workspace_dir* to *target*.

        Raises:
            PackagingError: On archive, GitHub API or git failures.
        """
        if isinstance(target, GitHubTarget):
            return await self._package_github(Path(workspace_dir), target, project_name)
        return await self._package_zip(Path(workspace_dir), target, project_name, build_id)

    # ------------------------------------------------------------------
    # Zip
    # ------------------------------------------------------------------

    @staticmethod
    def archive_name(project_name: str, build_id: str, stem: str | None = None) -> str:
        """``<stem>-<build_id>.zip``; *stem* defaults to the sanitized project name."""
        if stem:
            stem = stem.removesuffix(ARCHIVE_SUFFIX)
        else:
            stem = sanitize_name(project_name) or "project"
        return f"{stem}-{build_id}{ARCHIVE_SUFFIX}"

    async def _package_zip(
        self, workspace_dir: Path, target: ArchiveTarget, project_name: str, build_id: str
    ) -> PackageOutcome:
        file_name = self.archive_name(project_name, build_id, target.file_name)

        await asyncio.to_thread(self.storage.cleanup, self.max_archive_age)
        try:
            await self.storage.create_zip(workspace_dir, file_name)
        except StorageError as exc:
            raise PackagingError(str(exc), target="zip") from exc

        return PackageOutcome(output_url=self.storage.download_url(file_name), file_name=file_name)

    # ------------------------------------------------------------------
    # GitHub
    # ------------------------------------------------------------------

    def remote_url(self, token: str, owner: str, repository: str) -> str:
        """Authenticated HTTPS push URL for ``owner/repository``."""
        web = urlsplit(self.git.github_web_url)
        return f"{web.scheme}://{token}@{web.netloc}/{owner}/{repository}.git"

    async def _package_github(
        self, workspace_dir: Path, target: GitHubTarget, project_name: str
    ) -> PackageOutcome:
        secrets = (target.token,)
        client = self.github_factory(target.token)
        try:
            owner = target.owner
            if owner is None or target.create_repository:
                login = await client.get_authenticated_user()
                owner = owner or login
            if target.create_repository:
                org = owner if owner != login else None
                repo = await client.create_repository(
                    target.repository_name,
                    private=target.private,
                    description=target.description,
                    org=org,
                )
                console.print(f"[green]Created repository[/green] {repo.full_name or repo.name}")

            await self.publisher.publish(
                workspace_dir,
                self.remote_url(target.token, owner, target.repository_name),
                branch=target.branch,
                commit_message=target.commit_message or f"Initial commit: {project_name}",
                secrets=secrets,
            )
        except (GitHubError, GitError) as exc:
            raise PackagingError(redact(str(exc), secrets), target="github") from None

        web = self.git.github_web_url.rstrip("/")
        return PackageOutcome(output_url=f"{web}/{owner}/{target.repository_name}")
