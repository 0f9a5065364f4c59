"""Publishing a workspace to a git remote.

Wraps the ``git`` CLI in asyncio subprocesses. A workspace is turned into
(or reused as) a repository, committed, pointed at ``origin`` and pushed.
Remote URLs may embed an access token; every command line and stderr that
ends up in an exception or on the console has such secrets masked.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

from rich.console import Console

console = Console()

REDACTED = "***"


class GitError(Exception):
    """Raised when a git command fails or times out."""

    def __init__(self, message: str, command: str = "", stderr: str = "", stdout: str = ""):
        self.command = command
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(message)


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every non-empty secret in *text* with ``***``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


async def _run_git(
    *args: str,
    cwd: str | Path | None = None,
    timeout: float = 60.0,
    secrets: Iterable[str] = (),
) -> tuple[str, str]:
    """Run a git command asynchronously and return (stdout, stderr).

    Raises GitError if the command exits with a non-zero code or times out.
    """
    secrets = tuple(secrets)
    cmd = ["git"] + list(args)
    cmd_str = redact(" ".join(cmd), secrets)

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found on PATH", command=cmd_str) from exc

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise GitError(
            f"Git command timed out after {timeout}s: {cmd_str}",
            command=cmd_str,
        )
    except asyncio.CancelledError:
        process.kill()
        await process.wait()
        raise

    stdout = redact(stdout_bytes.decode("utf-8", errors="replace").strip(), secrets)
    stderr = redact(stderr_bytes.decode("utf-8", errors="replace").strip(), secrets)

    if process.returncode != 0:
        raise GitError(
            f"Git command failed (exit {process.returncode}): {cmd_str}\n{stderr or stdout}",
            command=cmd_str,
            stderr=stderr,
            stdout=stdout,
        )

    return stdout, stderr


class GitPublisher:
    """Commits a directory and pushes it to a remote branch.

    Commits are made with a fixed identity passed via ``-c`` options, so
    publishing works on hosts without a global git configuration.
    """

    def __init__(
        self,
        author_name: str = "Boilerplate Assembler",
        author_email: str = "assembler@localhost",
        timeout: float = 120.0,
    ) -> None:
        self.author_name = author_name
        self.author_email = author_email
        self.timeout = timeout

    def _identity(self) -> tuple[str, ...]:
        return (
            "-c", f"user.name={self.author_name}",
            "-c", f"user.email={self.author_email}",
            "-c", "commit.gpgsign=false",
        )

    async def _init(self, repo_dir: Path) -> None:
        if (repo_dir / ".git").exists():
            console.print(f"[dim]Reusing existing repository in {repo_dir}[/dim]")
            return
        await _run_git("init", cwd=repo_dir, timeout=self.timeout)

    async def _commit(self, repo_dir: Path, message: str) -> bool:
        await _run_git("add", ".", cwd=repo_dir, timeout=self.timeout)
        try:
            await _run_git(
                *self._identity(), "commit", "-m", message,
                cwd=repo_dir,
                timeout=self.timeout,
            )
        except GitError as exc:
            output = f"{exc.stdout}\n{exc.stderr}".lower()
            if "nothing to commit" in output or "nothing added to commit" in output:
                console.print("[yellow]Nothing to commit; pushing existing history.[/yellow]")
                return False
            raise
        return True

    async def _set_origin(self, repo_dir: Path, remote_url: str, secrets: tuple[str, ...]) -> None:
        try:
            await _run_git(
                "remote", "add", "origin", remote_url,
                cwd=repo_dir,
                timeout=self.timeout,
                secrets=secrets,
            )
        except GitError as exc:
            if "already exists" not in exc.stderr.lower():
                raise
            await _run_git("remote", "remove", "origin", cwd=repo_dir, timeout=self.timeout)
            await _run_git(
                "remote", "add", "origin", remote_url,
                cwd=repo_dir,
                timeout=self.timeout,
                secrets=secrets,
            )

    async def publish(
        self,
        repo_dir: str | Path,
        remote_url: str,
        *,
        branch: str = "main",
        commit_message: str = "Initial commit",
        secrets: Iterable[str] = (),
    ) -> bool:
        """Commit everything in *repo_dir* and push it to *remote_url*.

        Steps: init (or reuse an existing repository), ``add .``, commit
        (an empty tree is tolerated), point ``origin`` at *remote_url*
        (replacing an existing origin), rename the current branch to
        *branch* and ``push -u origin <branch>``.

        Args:
            repo_dir: Directory to publish.
            remote_url: Push URL, possibly with an embedded token.
            branch: Target branch name.
            commit_message: Message for the commit.
            secrets: Strings to mask in any error output (tokens).

        Returns:
            ``True`` if a new commit was created.

        Raises:
            GitError: If any git step fails.
        """
        path = Path(repo_dir)
        secrets = tuple(secrets)

        await self._init(path)
        committed = await self._commit(path, commit_message)
        await self._set_origin(path, remote_url, secrets)
        await _run_git("branch", "-M", branch, cwd=path, timeout=self.timeout)

        console.print(f"[cyan]Pushing[/cyan] to [bold]{redact(remote_url, secrets)}[/bold] ({branch})...")
        await _run_git(
            "push", "-u", "origin", branch,
            cwd=path,
            timeout=self.timeout,
            secrets=secrets,
        )
        return committed
