"""Package manifest and environment variable merging.

Folds each selected module's dependency declarations into the generated
project's ``package.json`` and accumulates the environment variables the
modules need.
"""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from assembler.catalog.models import EnvVarSpec, ModuleDescriptor
from assembler.utils import dump_json, load_json

MANIFEST_FILE = "package.json"


def merge_manifest(base: dict[str, Any], descriptor: ModuleDescriptor) -> dict[str, Any]:
    """Return *base* with the module's dependencies merged in.

    ``dependencies`` and ``devDependencies`` are shallow-merged: a version
    declared by the module replaces any version already present for the
    same package. Sections are only created when the module declares
    something for them. *base* is not modified.
    """
    merged = copy.deepcopy(base)
    if descriptor.deps:
        merged["dependencies"] = {**merged.get("dependencies", {}), **descriptor.deps}
    if descriptor.dev_deps:
        merged["devDependencies"] = {**merged.get("devDependencies", {}), **descriptor.dev_deps}
    return merged


def merge_env_vars(existing: list[EnvVarSpec], declared: Iterable[EnvVarSpec]) -> list[EnvVarSpec]:
    """Append *declared* variables whose key is not already in *existing*.

    The first declaration of a key wins, including its bare/object form.
    """
    merged = list(existing)
    keys = {spec.key for spec in merged}
    for spec in declared:
        if spec.key not in keys:
            merged.append(spec)
            keys.add(spec.key)
    return merged


def load_manifest(path: Path) -> dict[str, Any]:
    """Read ``package.json``; a missing file yields an empty manifest.

    Raises:
        ValueError: If the file exists but is not a JSON object.
    """
    if not path.exists():
        return {}
    try:
        return load_json(path)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid manifest {path}: {exc}") from exc


async def save_manifest(path: Path, manifest: dict[str, Any]) -> None:
    """Write the manifest as 2-space indented JSON."""
    await asyncio.to_thread(path.write_text, dump_json(manifest), "utf-8")
