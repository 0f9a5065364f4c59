"""Boilerplate Assembler configuration.

Centralised, typed configuration for the assembly pipeline. All settings use
Pydantic v2 models so they can be validated at construction time and serialised
to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

# 1 MiB: files above this size are never decoded for placeholder substitution.
DEFAULT_MAX_RENDER_BYTES = 1024 * 1024


class StorageConfig(BaseModel):
    """Where finished archives are written and how they are addressed."""

    output_path: Path = Field(default=Path("./tmp/output"))
    public_base_url: str = Field(
        default="",
        description="Base URL archives are served from; empty means file:// URIs",
    )
    max_archive_age: int = Field(
        default=3600, ge=0, description="Seconds before an archive counts as stale"
    )


class RenderConfig(BaseModel):
    """Template rendering limits."""

    max_render_bytes: int = Field(default=DEFAULT_MAX_RENDER_BYTES, ge=0)


class GitConfig(BaseModel):
    """Identity and endpoints used when publishing to a git host."""

    author_name: str = Field(default="Boilerplate Assembler")
    author_email: str = Field(default="assembler@localhost")
    github_api_url: str = Field(default="https://api.github.com")
    github_web_url: str = Field(default="https://github.com")
    push_timeout: float = Field(default=120.0, gt=0, description="Seconds per git command")


class BuildConfig(BaseModel):
    """Tuning knobs for a single build."""

    timeout: float = Field(
        default=300.0, gt=0, description="Wall-clock limit for one build in seconds"
    )
    default_author: str = Field(default="Generated User")


class Config(BaseModel):
    """Global assembler configuration.

    Instances are typically created once by the CLI entry point (or the host
    service) and then passed to the ``AssemblyCoordinator`` together with the
    loaded catalog.
    """

    templates_dir: Path = Field(default=Path("./boiler-templates"))
    work_dir: Path | None = Field(
        default=None, description="Parent of per-build workspaces; system temp dir when unset"
    )
    storage: StorageConfig = Field(default_factory=StorageConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return path

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            ASSEMBLER_TEMPLATES_DIR, ASSEMBLER_WORK_DIR, ASSEMBLER_STORAGE_PATH
            (or STORAGE_PATH), ASSEMBLER_PUBLIC_URL, ASSEMBLER_BUILD_TIMEOUT,
            ASSEMBLER_MAX_RENDER_BYTES, ASSEMBLER_GIT_AUTHOR_NAME,
            ASSEMBLER_GIT_AUTHOR_EMAIL, ASSEMBLER_GITHUB_API_URL.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("ASSEMBLER_TEMPLATES_DIR"):
            kwargs["templates_dir"] = Path(os.environ["ASSEMBLER_TEMPLATES_DIR"])
        if os.environ.get("ASSEMBLER_WORK_DIR"):
            kwargs["work_dir"] = Path(os.environ["ASSEMBLER_WORK_DIR"])

        storage_kwargs: dict[str, Any] = {}
        storage_path = os.environ.get("ASSEMBLER_STORAGE_PATH") or os.environ.get("STORAGE_PATH")
        if storage_path:
            storage_kwargs["output_path"] = Path(storage_path)
        if os.environ.get("ASSEMBLER_PUBLIC_URL"):
            storage_kwargs["public_base_url"] = os.environ["ASSEMBLER_PUBLIC_URL"]

        render_kwargs: dict[str, Any] = {}
        if os.environ.get("ASSEMBLER_MAX_RENDER_BYTES"):
            render_kwargs["max_render_bytes"] = int(os.environ["ASSEMBLER_MAX_RENDER_BYTES"])

        git_kwargs: dict[str, Any] = {}
        if os.environ.get("ASSEMBLER_GIT_AUTHOR_NAME"):
            git_kwargs["author_name"] = os.environ["ASSEMBLER_GIT_AUTHOR_NAME"]
        if os.environ.get("ASSEMBLER_GIT_AUTHOR_EMAIL"):
            git_kwargs["author_email"] = os.environ["ASSEMBLER_GIT_AUTHOR_EMAIL"]
        if os.environ.get("ASSEMBLER_GITHUB_API_URL"):
            git_kwargs["github_api_url"] = os.environ["ASSEMBLER_GITHUB_API_URL"]

        build_kwargs: dict[str, Any] = {}
        if os.environ.get("ASSEMBLER_BUILD_TIMEOUT"):
            build_kwargs["timeout"] = float(os.environ["ASSEMBLER_BUILD_TIMEOUT"])

        return cls(
            **kwargs,
            storage=StorageConfig(**storage_kwargs),
            render=RenderConfig(**render_kwargs),
            git=GitConfig(**git_kwargs),
            build=BuildConfig(**build_kwargs),
        )
