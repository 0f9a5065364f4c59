"""Pydantic v2 models for the preset / module catalog.

Defines the read-only data model loaded from a catalog directory: presets,
module descriptors, environment variable declarations, and the per-file
injection directives that modules apply to rendered files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------

class EnvVarSpec(BaseModel):
    """A single environment variable a module needs.

    Descriptors declare either a bare key (``"JWT_SECRET"``) or an object
    (``{"key": "JWT_SECRET", "required": true, "example": "x"}``). ``bare``
    records which form was used so the first declaration can be kept as-is.
    """
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1, description="Variable name, e.g. 'JWT_SECRET'")
    required: bool = Field(default=True, description="Whether the app needs a value to start")
    example: Optional[str] = Field(default=None, description="Example value for the template")
    bare: bool = Field(default=False, description="Declared as a bare string")

    @model_validator(mode="before")
    @classmethod
    def _from_bare_key(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"key": data, "bare": True}
        return data


# ---------------------------------------------------------------------------
# Injection hooks (one model per kind)
# ---------------------------------------------------------------------------

class _LinesHook(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    lines: tuple[str, ...] = Field(..., min_length=1)


class ImportHook(_LinesHook):
    """Import statements inserted at the imports sentinel."""
    kind: Literal["import"] = "import"


class RegisterHook(_LinesHook):
    """Registration entries inserted before the register sentinel."""
    kind: Literal["register"] = "register"


class RouteHook(_LinesHook):
    """Route elements inserted before the routes sentinel."""
    kind: Literal["routes"] = "routes"


class ComponentHook(_LinesHook):
    """Component elements inserted before the components sentinel."""
    kind: Literal["components"] = "components"


class ProviderWrapHook(BaseModel):
    """Wrap the first ``<target>`` element with ``<component>``."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["wrap"] = "wrap"
    component: str = Field(..., pattern=r"^[A-Za-z_][\w.]*$")
    target: str = Field(..., pattern=r"^[A-Za-z_][\w.]*$")


Hook = Annotated[
    Union[ImportHook, RegisterHook, RouteHook, ComponentHook, ProviderWrapHook],
    Field(discriminator="kind"),
]

# Fixed application order; also the descriptor payload keys.
HOOK_ORDER: tuple[str, ...] = ("import", "register", "routes", "components", "wrap")


def _hook_rank(hook: Any) -> int:
    kind = hook.get("kind") if isinstance(hook, dict) else getattr(hook, "kind", None)
    return HOOK_ORDER.index(kind) if kind in HOOK_ORDER else len(HOOK_ORDER)


class InjectionDirective(BaseModel):
    """All edits a module makes to one rendered file.

    Built from the descriptor payload for that file, e.g.::

        {"import": ["import { AuthModule } from './auth/auth.module';"],
         "register": ["AuthModule"]}

    Hooks are stored in fixed application order, at most one per kind.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    target: str = Field(..., min_length=1, description="Workspace-relative file path")
    hooks: tuple[Hook, ...] = Field(default=())
    ensure: bool = Field(default=False, description="Create the file when it is missing")
    seed: str = Field(default="", description="Initial content for an ensured file")

    @model_validator(mode="before")
    @classmethod
    def _from_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if "hooks" in data:
            data = dict(data)
            data["hooks"] = sorted(data["hooks"] or (), key=_hook_rank)
            return data

        payload = dict(data)
        result: dict[str, Any] = {"target": payload.pop("target", None)}

        ensure = payload.pop("ensure", False)
        if isinstance(ensure, str):
            result["ensure"] = True
            result["seed"] = ensure
        else:
            result["ensure"] = bool(ensure)
        if "seed" in payload:
            result["seed"] = payload.pop("seed")

        unknown = sorted(set(payload) - set(HOOK_ORDER))
        if unknown:
            raise ValueError(
                f"Unsupported injection hook(s) {', '.join(unknown)}; "
                f"expected one of: {', '.join(HOOK_ORDER)}"
            )

        hooks: list[dict[str, Any]] = []
        for kind in HOOK_ORDER:
            if kind not in payload:
                continue
            value = payload[kind]
            if kind == "wrap":
                if not isinstance(value, dict):
                    raise ValueError(f"'wrap' for {result['target']} must be an object")
                hooks.append({"kind": kind, **value})
            else:
                if isinstance(value, str):
                    value = [value]
                hooks.append({"kind": kind, "lines": value})
        result["hooks"] = hooks
        return result

    @model_validator(mode="after")
    def _one_hook_per_kind(self) -> "InjectionDirective":
        kinds = [hook.kind for hook in self.hooks]
        if len(set(kinds)) != len(kinds):
            raise ValueError(f"Duplicate hook kinds for {self.target}: {kinds}")
        return self


# ---------------------------------------------------------------------------
# Module descriptor & preset
# ---------------------------------------------------------------------------

class ModuleDescriptor(BaseModel):
    """Metadata for one optional module, loaded from its ``meta.json``."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    category: str = Field(default="general")
    deps: dict[str, str] = Field(default_factory=dict)
    dev_deps: dict[str, str] = Field(default_factory=dict, alias="devDeps")
    env: tuple[EnvVarSpec, ...] = Field(default=())
    files_path: str = Field(default="files", alias="filesPath")
    conflicts: tuple[str, ...] = Field(default=())
    inject: tuple[InjectionDirective, ...] = Field(default=())
    post_install: tuple[str, ...] = Field(
        default=(),
        alias="postInstall",
        description="Commands for an external runner; never executed by the assembler",
    )
    root: Path = Field(default=Path("."), description="Module directory on disk")

    @model_validator(mode="before")
    @classmethod
    def _inject_map(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("inject"), dict):
            data = dict(data)
            data["inject"] = [
                {**payload, "target": target} for target, payload in data["inject"].items()
            ]
        return data

    @property
    def files_dir(self) -> Path:
        """Directory whose contents are rendered into the workspace."""
        return self.root / self.files_path


class Preset(BaseModel):
    """A base file tree plus the modules that can be layered on top of it."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    base_path: Path
    modules: dict[str, ModuleDescriptor] = Field(default_factory=dict)

    def get_module(self, name: str) -> ModuleDescriptor | None:
        return self.modules.get(name)


class Catalog(BaseModel):
    """Every preset available to the assembler.

    Built once with :func:`assembler.catalog.registry.load_catalog` and then
    passed explicitly to whoever needs it; never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    root: Path
    presets: dict[str, Preset] = Field(default_factory=dict)

    def get_preset(self, name: str) -> Preset | None:
        return self.presets.get(name)

    def summaries(self) -> list[dict[str, Any]]:
        """Lightweight listing of presets and their modules (for UIs and the CLI)."""
        return [
            {
                "name": preset.name,
                "description": preset.description,
                "modules": [
                    {
                        "name": module.name,
                        "description": module.description,
                        "category": module.category,
                        "conflicts": list(module.conflicts),
                    }
                    for module in preset.modules.values()
                ],
            }
            for preset in self.presets.values()
        ]
