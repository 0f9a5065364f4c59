"""Minimal async client for the GitHub REST API (v3).

Only what publishing a generated project needs: resolving the login behind
a token and creating a repository for it.

Typical usage::

    client = GitHubClient(token)
    login = await client.get_authenticated_user()
    repo = await client.create_repository("my-app", private=True)
"""

from __future__ import annotations

import httpx
from pydantic import BaseModel, Field

from .git import redact


class GitHubError(Exception):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class GitHubRepository(BaseModel):
    """The subset of the repository resource the packager uses."""

    name: str
    full_name: str = ""
    html_url: str = ""
    clone_url: str = ""
    private: bool = False
    default_branch: str = Field(default="main")


class GitHubClient:
    """Async client for ``api.github.com`` authenticated with a token.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` carrying auth headers."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as exc:
            detail = ""
            try:
                detail = exc.response.json().get("message", "")
            except ValueError:
                detail = exc.response.text[:300]
            raise GitHubError(
                redact(
                    f"GitHub API {method} {path} returned HTTP "
                    f"{exc.response.status_code}: {detail}",
                    [self.token],
                ),
                status_code=exc.response.status_code,
            ) from None
        except httpx.TimeoutException:
            raise GitHubError(
                f"GitHub API {method} {path} timed out after {self.timeout}s"
            ) from None
        except httpx.HTTPError as exc:
            raise GitHubError(
                redact(f"GitHub API {method} {path} failed: {exc}", [self.token])
            ) from None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_authenticated_user(self) -> str:
        """Return the login of the account that owns the token."""
        data = await self._request("GET", "/user")
        login = data.get("login")
        if not login:
            raise GitHubError("GitHub API /user response has no login")
        return login

    async def create_repository(
        self,
        name: str,
        *,
        private: bool = False,
        description: str | None = None,
        org: str | None = None,
    ) -> GitHubRepository:
        """Create an empty repository for the authenticated user, or in *org*.

        ``auto_init`` is off so the first push defines the history.
        """
        payload: dict = {"name": name, "private": private, "auto_init": False}
        if description:
            payload["description"] = description
        path = f"/orgs/{org}/repos" if org else "/user/repos"
        data = await self._request("POST", path, json=payload)
        return GitHubRepository.model_validate(data)
