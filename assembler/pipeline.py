"""Boilerplate Assembler build coordinator.

Drives one build through a fixed sequence of stages:

VALIDATING -- Check the preset / module selection and the request.
RENDERING  -- Render one layer's files into the workspace.
MERGING    -- Merge that layer's dependencies into package.json and collect its env vars.
INJECTING  -- Apply that layer's injection directives.
PACKAGING  -- Zip the workspace or push it to GitHub.

The base preset is the first layer, followed by each selected module in
caller order; every layer goes through RENDERING, MERGING and INJECTING
before the next one starts. The last MERGING step also writes
.env.template and meta.json.

Every build ends in DONE or FAILED and always returns a ``GenerationResult``;
the workspace is removed whichever way the build ends.

Usage::

    python -m assembler.pipeline presets
    python -m assembler.pipeline generate --preset nestjs --module auth --project-name demo
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
import traceback
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field
from rich.panel import Panel
from rich.table import Table

from assembler.catalog import (
    Catalog,
    CatalogError,
    EnvVarSpec,
    InvalidRequestError,
    ModuleDescriptor,
    Preset,
    SelectionError,
    load_catalog,
    validate_selection,
)
from assembler.config import Config
from assembler.packager import (
    ArchiveStorage,
    ArchiveTarget,
    GitHubTarget,
    OutputTarget,
    Packager,
    PackageOutcome,
    PackagingError,
    Workspace,
    WorkspaceError,
)
from assembler.scaffolder import (
    MANIFEST_FILE,
    InjectionEngine,
    InjectionError,
    TemplateRenderer,
    load_manifest,
    merge_env_vars,
    merge_manifest,
    render_tree,
    save_manifest,
    write_env_template,
)
from assembler.utils import (
    console,
    format_duration,
    print_error,
    print_stage_header,
    print_success,
    save_json,
)

PROJECT_META_FILE = "meta.json"


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


class BuildStage(str, Enum):
    VALIDATING = "validating"
    RENDERING = "rendering"
    MERGING = "merging"
    INJECTING = "injecting"
    PACKAGING = "packaging"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: dict[BuildStage, frozenset[BuildStage]] = {
    BuildStage.VALIDATING: frozenset({BuildStage.RENDERING, BuildStage.FAILED}),
    BuildStage.RENDERING: frozenset({BuildStage.MERGING, BuildStage.FAILED}),
    BuildStage.MERGING: frozenset({BuildStage.INJECTING, BuildStage.FAILED}),
    # INJECTING -> RENDERING starts the next module layer.
    BuildStage.INJECTING: frozenset(
        {BuildStage.RENDERING, BuildStage.PACKAGING, BuildStage.FAILED}
    ),
    BuildStage.PACKAGING: frozenset({BuildStage.DONE, BuildStage.FAILED}),
    BuildStage.DONE: frozenset(),
    BuildStage.FAILED: frozenset(),
}


class StageTransitionError(Exception):
    """Raised on a stage change the transition table does not allow."""

    def __init__(self, current: BuildStage, requested: BuildStage) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Illegal stage transition {current.value} -> {requested.value}"
        )


# ---------------------------------------------------------------------------
# Request / result models
# ---------------------------------------------------------------------------


class GenerationRequest(BaseModel):
    """One project to assemble."""

    preset: str = Field(..., min_length=1)
    modules: list[str] = Field(default_factory=list)
    project_name: str
    author: str = Field(default="Generated User")
    description: str = Field(default="")
    variables: dict[str, str] = Field(
        default_factory=dict, description="Extra {{key}} placeholder values"
    )
    output: OutputTarget = Field(default_factory=ArchiveTarget)

    def render_context(self) -> dict[str, Any]:
        """Placeholder values for template rendering."""
        return {
            **self.variables,
            "projectName": self.project_name,
            "author": self.author,
            "description": self.description,
        }


class GenerationResult(BaseModel):
    """Outcome of a build; returned for successes and failures alike."""

    status: Literal["success", "error"]
    build_id: str
    output_url: Optional[str] = None
    file_name: Optional[str] = None
    env_required: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


# ---------------------------------------------------------------------------
# Build context
# ---------------------------------------------------------------------------


def new_build_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class BuildContext:
    """Mutable state of a single build, owned by one coordinator run."""

    request: GenerationRequest
    build_id: str = field(default_factory=new_build_id)
    preset: Preset | None = None
    modules: list[ModuleDescriptor] = field(default_factory=list)
    variables: dict[str, Any] = field(default_factory=dict)
    workspace: Path | None = None
    manifest: dict[str, Any] = field(default_factory=dict)
    env_vars: list[EnvVarSpec] = field(default_factory=list)
    stage: BuildStage = BuildStage.VALIDATING
    history: list[BuildStage] = field(default_factory=list)
    started_at: str | None = None

    def begin(self) -> None:
        """Mark the context as running; a context can only be run once."""
        if self.started_at is not None:
            raise StageTransitionError(self.stage, BuildStage.VALIDATING)
        self.started_at = datetime.now(timezone.utc).isoformat()
        self.history.append(self.stage)

    def advance(self, stage: BuildStage) -> None:
        if stage not in TRANSITIONS[self.stage]:
            raise StageTransitionError(self.stage, stage)
        self.stage = stage
        self.history.append(stage)

    @property
    def env_required(self) -> list[str]:
        return [spec.key for spec in self.env_vars if spec.required]


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------


class AssemblyCoordinator:
    """Runs builds against an immutable catalog.

    The catalog is loaded once by the caller and shared by every build; each
    build gets its own ``BuildContext`` and workspace, so concurrent
    ``generate`` calls do not interfere.

    Attributes:
        catalog: Presets and modules available to builds.
        config: Global configuration.
        packager: Delivers finished workspaces.
        injector: Applies module injection directives.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: Config | None = None,
        packager: Packager | None = None,
        injector: InjectionEngine | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or Config()
        self.packager = packager or Packager.from_config(self.config)
        self.injector = injector or InjectionEngine()
        self.renderer = renderer or TemplateRenderer()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Assemble the project described by *request*."""
        return await self.run(BuildContext(request=request))

    async def run(self, context: BuildContext) -> GenerationResult:
        """Drive *context* through every stage and return its result.

        Never raises for build failures: validation, I/O, injection and
        packaging errors as well as the build timeout all become an
        ``error`` result.

        Raises:
            StageTransitionError: If *context* has already been run.
        """
        context.begin()
        build_start = time.monotonic()
        timeout = self.config.build.timeout
        error: str | None = None
        failed_stage: BuildStage | None = None
        outcome = None

        try:
            outcome = await asyncio.wait_for(self._execute(context), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"Build timed out after {format_duration(timeout)}"
        except (
            SelectionError,
            CatalogError,
            WorkspaceError,
            InjectionError,
            PackagingError,
            OSError,
            ValueError,
        ) as exc:
            error = str(exc)
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            console.print(f"[dim]{traceback.format_exc()}[/dim]")

        if error is None:
            context.advance(BuildStage.DONE)
            result = GenerationResult(
                status="success",
                build_id=context.build_id,
                output_url=outcome.output_url,
                file_name=outcome.file_name,
                env_required=context.env_required,
            )
        else:
            failed_stage = context.stage
            context.advance(BuildStage.FAILED)
            print_error(f"Build {context.build_id} failed during {failed_stage.value}: {error}")
            result = GenerationResult(
                status="error",
                build_id=context.build_id,
                error=error,
                failed_stage=failed_stage.value,
                env_required=context.env_required,
            )

        self._print_final_summary(context, result, time.monotonic() - build_start)
        return result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _execute(self, context: BuildContext) -> PackageOutcome:
        print_stage_header(BuildStage.VALIDATING.value, context.build_id)
        self._validate(context)

        async with Workspace(self.config.work_dir) as workspace:
            context.workspace = workspace.path
            console.print(f"  Workspace: [bold]{workspace.path}[/bold]")

            layers: list[ModuleDescriptor | None] = [None, *context.modules]
            for index, module in enumerate(layers):
                is_last = index == len(layers) - 1
                await self._run_layer(context, module, write_outputs=is_last)

            self._enter(context, BuildStage.PACKAGING)
            return await self.packager.package(
                workspace.path,
                context.request.output,
                project_name=context.request.project_name,
                build_id=context.build_id,
            )

    def _enter(self, context: BuildContext, stage: BuildStage, layer: str = "") -> None:
        context.advance(stage)
        print_stage_header(stage.value, context.build_id, layer)

    async def _run_layer(
        self, context: BuildContext, module: ModuleDescriptor | None, *, write_outputs: bool
    ) -> None:
        """Render, merge and inject one layer: the base preset when *module* is None."""
        layer = module.name if module else "base"

        self._enter(context, BuildStage.RENDERING, layer)
        await self._render(context, module)

        self._enter(context, BuildStage.MERGING, layer)
        await self._merge(context, module)
        if write_outputs:
            await self._write_outputs(context)

        self._enter(context, BuildStage.INJECTING, layer)
        if module is not None and module.inject:
            await self.injector.apply(context.workspace, module.inject, module=module.name)

    def _validate(self, context: BuildContext) -> None:
        request = context.request
        if not request.project_name.strip():
            raise InvalidRequestError("Project name must not be empty")

        preset = validate_selection(self.catalog, request.preset, request.modules)
        context.preset = preset
        context.modules = [preset.modules[name] for name in request.modules]
        context.variables = request.render_context()
        console.print(
            f"  Preset [bold]{preset.name}[/bold] with "
            f"{', '.join(request.modules) or 'no modules'}"
        )

    async def _render(self, context: BuildContext, module: ModuleDescriptor | None) -> None:
        source = module.files_dir if module else context.preset.base_path
        written = await render_tree(
            source, context.workspace, context.variables,
            max_render_bytes=self.config.render.max_render_bytes,
        )
        console.print(
            f"  [green]+[/green] {module.name if module else 'base'}: {len(written)} file(s)"
        )

    async def _merge(self, context: BuildContext, module: ModuleDescriptor | None) -> None:
        # Re-read every time: a module's files may replace package.json.
        manifest_path = context.workspace / MANIFEST_FILE
        on_disk = await asyncio.to_thread(load_manifest, manifest_path)
        if module is None:
            context.manifest = on_disk
            return

        manifest = merge_manifest(on_disk, module)
        context.manifest = manifest
        context.env_vars = merge_env_vars(context.env_vars, module.env)
        if manifest != on_disk:
            await save_manifest(manifest_path, manifest)
            console.print(f"  [green]+[/green] {MANIFEST_FILE} updated")

    async def _write_outputs(self, context: BuildContext) -> None:
        env_path = await write_env_template(context.workspace, context.env_vars, self.renderer)
        if env_path is not None:
            console.print(
                f"  [green]+[/green] {env_path.name}: {len(context.env_vars)} variable(s)"
            )

        await save_json(
            {
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "preset": context.preset.name,
                "modules": [module.name for module in context.modules],
                "envRequired": context.env_required,
                "postInstall": [cmd for module in context.modules for cmd in module.post_install],
            },
            context.workspace / PROJECT_META_FILE,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _print_final_summary(
        self, context: BuildContext, result: GenerationResult, elapsed: float
    ) -> None:
        """Print the final build summary panel."""
        if result.ok:
            border_style = "bold green"
            status_text = "[bold green]BUILD SUCCEEDED[/bold green]"
        else:
            border_style = "bold red"
            status_text = "[bold red]BUILD FAILED[/bold red]"

        detail_lines = [
            status_text,
            "",
            f"Build     : {context.build_id}",
            f"Preset    : {context.request.preset}",
            f"Modules   : {', '.join(context.request.modules) or 'none'}",
            f"Duration  : {format_duration(elapsed)}",
        ]
        if result.ok:
            detail_lines.append(f"Output    : {result.output_url}")
            if result.env_required:
                detail_lines.append(f"Env       : {', '.join(result.env_required)}")
        else:
            detail_lines.append(f"Stage     : {result.failed_stage}")

        console.print()
        console.print(
            Panel(
                "\n".join(detail_lines),
                title="[bold]Assembly Complete[/bold]",
                border_style=border_style,
            )
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_variables(pairs: list[str]) -> dict[str, str]:
    """Turn ``["key=value", ...]`` into a dict; raises ValueError on a bad pair."""
    variables: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid --var '{pair}', expected key=value")
        variables[key.strip()] = value
    return variables


def _print_presets(catalog: Catalog) -> None:
    table = Table(title="Presets", show_header=True, header_style="bold cyan")
    table.add_column("Preset", style="bold", no_wrap=True)
    table.add_column("Module")
    table.add_column("Category", style="dim")
    table.add_column("Conflicts", style="yellow")
    table.add_column("Description")

    for preset in catalog.summaries():
        table.add_row(preset["name"], "", "", "", preset["description"])
        for module in preset["modules"]:
            table.add_row(
                "",
                module["name"],
                module["category"],
                ", ".join(module["conflicts"]),
                module["description"],
            )
    console.print(table)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``boiler-assembler`` / ``python -m assembler.pipeline``."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Boilerplate Assembler -- compose projects from presets and modules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  boiler-assembler presets\n"
            "  boiler-assembler generate --preset nestjs --module auth --project-name demo\n"
            "  boiler-assembler generate --preset react --project-name web \\\n"
            "      --output github --repo web --token $GITHUB_TOKEN --create-repo\n"
        ),
    )
    parser.add_argument(
        "--templates-dir",
        default=None,
        help="Catalog directory containing presets/ (default: $ASSEMBLER_TEMPLATES_DIR or ./boiler-templates)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="JSON configuration file (overrides environment variables)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("presets", help="List presets and their modules")

    cleanup = subparsers.add_parser("cleanup", help="Delete stale archives from the storage directory")
    cleanup.add_argument("--max-age", type=int, default=None, help="Age in seconds (default: config)")

    gen = subparsers.add_parser("generate", help="Assemble one project")
    gen.add_argument("--preset", required=True, help="Preset name")
    gen.add_argument(
        "--module", "-m",
        dest="modules",
        action="append",
        default=[],
        help="Module to include (repeatable, applied in order)",
    )
    gen.add_argument("--project-name", required=True, help="Project name")
    gen.add_argument("--author", default=None, help="Author (default: Generated User)")
    gen.add_argument("--description", default="", help="Project description")
    gen.add_argument(
        "--var",
        dest="variables",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Extra template variable (repeatable)",
    )
    gen.add_argument("--output", choices=["zip", "github"], default="zip", help="Output target")
    gen.add_argument(
        "--file-name", default=None,
        help="Archive name stem; the build id is appended (zip output)",
    )
    gen.add_argument("--repo", default=None, help="Repository name (github output)")
    gen.add_argument("--owner", default=None, help="Repository owner (default: token user)")
    gen.add_argument("--token", default=None, help="GitHub token (default: $GITHUB_TOKEN)")
    gen.add_argument("--create-repo", action="store_true", help="Create the repository first")
    gen.add_argument("--private", action="store_true", help="Create a private repository")
    gen.add_argument("--branch", default="main", help="Branch to push (default: main)")
    gen.add_argument("--commit-message", default=None, help="Commit message")

    args = parser.parse_args(argv)

    config = Config.load(Path(args.config)) if args.config else Config.from_env()
    if args.templates_dir:
        config.templates_dir = Path(args.templates_dir)

    if args.command == "cleanup":
        storage = ArchiveStorage(config.storage.output_path, config.storage.public_base_url)
        max_age = args.max_age if args.max_age is not None else config.storage.max_archive_age
        removed = storage.cleanup(max_age)
        print_success(f"Removed {len(removed)} archive(s)")
        return

    try:
        catalog = load_catalog(config.templates_dir)
    except CatalogError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if args.command == "presets":
        _print_presets(catalog)
        return

    try:
        variables = _parse_variables(args.variables)
    except ValueError as exc:
        parser.error(str(exc))

    if args.output == "github":
        token = args.token or os.environ.get("GITHUB_TOKEN")
        if not args.repo or not token:
            parser.error("--output github requires --repo and --token (or $GITHUB_TOKEN)")
        output: ArchiveTarget | GitHubTarget = GitHubTarget(
            repository_name=args.repo,
            token=token,
            owner=args.owner,
            create_repository=args.create_repo,
            private=args.private,
            description=args.description or None,
            commit_message=args.commit_message,
            branch=args.branch,
        )
    else:
        output = ArchiveTarget(file_name=args.file_name)

    request = GenerationRequest(
        preset=args.preset,
        modules=args.modules,
        project_name=args.project_name,
        author=args.author or config.build.default_author,
        description=args.description,
        variables=variables,
        output=output,
    )

    coordinator = AssemblyCoordinator(catalog, config)
    result = asyncio.run(coordinator.generate(request))

    if result.ok:
        print_success(f"Project ready: {result.output_url}")
    else:
        console.print("[bold red]Assembly failed.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
