"""Selection validation.

Checks a requested preset / module selection against the catalog before
anything touches the filesystem. Pure: reads the catalog, raises or returns.
"""

from __future__ import annotations

from .models import Catalog, Preset


class SelectionError(Exception):
    """Base class for requests rejected before any build work starts."""


class NotFoundError(SelectionError):
    """The preset or a module is not in the catalog."""

    def __init__(self, message: str, preset: str, module: str | None = None):
        self.preset = preset
        self.module = module
        super().__init__(message)


class ConflictError(SelectionError):
    """Two selected modules cannot be combined."""

    def __init__(self, module: str, conflicts_with: list[str]):
        self.module = module
        self.conflicts_with = conflicts_with
        super().__init__(f"Module '{module}' conflicts with: {', '.join(conflicts_with)}")


class DuplicateModuleError(SelectionError):
    """A module was selected more than once."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Module '{module}' is selected more than once")


class InvalidRequestError(SelectionError):
    """The build request itself is malformed (e.g. empty project name)."""


def validate_selection(catalog: Catalog, preset_id: str, module_names: list[str]) -> Preset:
    """Validate a preset and an ordered module selection.

    Conflicts are checked in both directions: if either module of a selected
    pair lists the other, the pair is rejected, whichever order they were
    requested in.

    Args:
        catalog: The loaded catalog.
        preset_id: Name of the preset to build from.
        module_names: Selected module names, in build order.

    Returns:
        The resolved ``Preset``.

    Raises:
        NotFoundError: If the preset or any module is unknown.
        DuplicateModuleError: If a module appears twice in the selection.
        ConflictError: If two selected modules conflict.
    """
    preset = catalog.get_preset(preset_id)
    if preset is None:
        raise NotFoundError(f"Preset '{preset_id}' not found", preset=preset_id)

    seen: set[str] = set()
    for name in module_names:
        if preset.get_module(name) is None:
            raise NotFoundError(
                f"Module '{name}' not found in preset '{preset_id}'",
                preset=preset_id,
                module=name,
            )
        if name in seen:
            raise DuplicateModuleError(name)
        seen.add(name)

    for name in module_names:
        declared = preset.modules[name].conflicts
        clashing = [other for other in module_names if other != name and other in declared]
        if clashing:
            raise ConflictError(name, clashing)

    return preset
