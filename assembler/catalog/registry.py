"""Preset catalog loading.

Reads the on-disk catalog layout::

    <templates_dir>/presets/<preset>/base/...              base file tree
    <templates_dir>/presets/<preset>/preset.json           optional {"description": ...}
    <templates_dir>/presets/<preset>/modules/<module>/meta.json
    <templates_dir>/presets/<preset>/modules/<module>/files/...

and turns it into an immutable :class:`Catalog`. Loading happens once per
process; the result is shared read-only by every build.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from assembler.utils import load_json, print_warning

from .models import Catalog, ModuleDescriptor, Preset

console = Console()

DESCRIPTOR_FILE = "meta.json"
PRESET_FILE = "preset.json"


class CatalogError(Exception):
    """Raised when the catalog directory or one of its descriptors is malformed."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def load_module(module_dir: Path) -> ModuleDescriptor:
    """Load one module descriptor.

    A module directory without ``meta.json`` is still a valid module: it only
    contributes files from ``files/``.
    """
    meta_path = module_dir / DESCRIPTOR_FILE
    if not meta_path.exists():
        return ModuleDescriptor(name=module_dir.name, root=module_dir)

    try:
        raw = load_json(meta_path)
    except (json.JSONDecodeError, ValueError) as exc:
        raise CatalogError(f"Invalid descriptor {meta_path}: {exc}", path=meta_path) from exc

    raw.setdefault("name", module_dir.name)
    if raw["name"] != module_dir.name:
        print_warning(
            f"Descriptor name '{raw['name']}' differs from directory "
            f"'{module_dir.name}'; using the directory name."
        )
        raw["name"] = module_dir.name

    try:
        return ModuleDescriptor.model_validate({**raw, "root": module_dir})
    except ValidationError as exc:
        raise CatalogError(f"Invalid descriptor {meta_path}:\n{exc}", path=meta_path) from exc


def load_preset(preset_dir: Path) -> Preset:
    """Load a preset directory and all of its modules."""
    description = f"{preset_dir.name} preset"
    preset_meta = preset_dir / PRESET_FILE
    if preset_meta.exists():
        try:
            description = load_json(preset_meta).get("description", description)
        except (json.JSONDecodeError, ValueError) as exc:
            raise CatalogError(f"Invalid preset file {preset_meta}: {exc}", path=preset_meta) from exc

    modules: dict[str, ModuleDescriptor] = {}
    modules_dir = preset_dir / "modules"
    if modules_dir.is_dir():
        for module_dir in sorted(p for p in modules_dir.iterdir() if p.is_dir()):
            descriptor = load_module(module_dir)
            modules[descriptor.name] = descriptor

    return Preset(
        name=preset_dir.name,
        description=description,
        base_path=preset_dir / "base",
        modules=modules,
    )


def load_catalog(templates_dir: str | Path) -> Catalog:
    """Load every preset under ``<templates_dir>/presets``.

    Raises:
        CatalogError: If the presets directory is missing or a descriptor is invalid.
    """
    root = Path(templates_dir).resolve()
    presets_dir = root / "presets"
    if not presets_dir.is_dir():
        raise CatalogError(f"Presets directory not found: {presets_dir}", path=presets_dir)

    presets: dict[str, Preset] = {}
    for preset_dir in sorted(p for p in presets_dir.iterdir() if p.is_dir()):
        presets[preset_dir.name] = load_preset(preset_dir)

    module_count = sum(len(p.modules) for p in presets.values())
    console.print(
        f"[dim]Loaded catalog {root}: {len(presets)} preset(s), {module_count} module(s)[/dim]"
    )
    return Catalog(root=root, presets=presets)
