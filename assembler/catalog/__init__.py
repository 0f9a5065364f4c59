"""Boilerplate Assembler catalog module.

Loads the preset / module catalog from disk and validates module selections
against it.

Key classes:
    Catalog           - Immutable set of presets, loaded once per process
    ModuleDescriptor  - Metadata for one optional module
    InjectionDirective - Per-file edits a module applies after rendering
"""

from .models import (
    Catalog,
    ComponentHook,
    EnvVarSpec,
    ImportHook,
    InjectionDirective,
    ModuleDescriptor,
    Preset,
    ProviderWrapHook,
    RegisterHook,
    RouteHook,
)
from .registry import CatalogError, load_catalog
from .validator import (
    ConflictError,
    DuplicateModuleError,
    InvalidRequestError,
    NotFoundError,
    SelectionError,
    validate_selection,
)

__all__ = [
    # Models
    "Catalog",
    "Preset",
    "ModuleDescriptor",
    "EnvVarSpec",
    "InjectionDirective",
    "ImportHook",
    "RegisterHook",
    "RouteHook",
    "ComponentHook",
    "ProviderWrapHook",
    # Loading
    "load_catalog",
    "CatalogError",
    # Validation
    "validate_selection",
    "SelectionError",
    "NotFoundError",
    "ConflictError",
    "DuplicateModuleError",
    "InvalidRequestError",
]
