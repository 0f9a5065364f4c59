"""Boilerplate Assembler scaffolder module.

Turns a validated selection into a populated workspace: renders the preset
base and module file trees, merges dependency manifests, writes the
environment template and applies module injections.

Key pieces:
    render_tree        - Copy a file tree with ``{{key}}`` substitution
    merge_manifest     - Fold a module's deps/devDeps into package.json
    InjectionEngine    - Sentinel-anchored edits and provider wrapping
    TemplateRenderer   - Jinja2 rendering of the assembler's own templates
"""

from .env_template import ENV_TEMPLATE_FILE, generate_env_template, write_env_template
from .injector import (
    InjectionEngine,
    InjectionError,
    InjectionTargetMissingError,
    SentinelNotFoundError,
)
from .manifest import MANIFEST_FILE, load_manifest, merge_env_vars, merge_manifest, save_manifest
from .renderer import render_tree, substitute
from .templates import TemplateRenderer

__all__ = [
    # Rendering
    "render_tree",
    "substitute",
    "TemplateRenderer",
    # Manifest / env
    "MANIFEST_FILE",
    "load_manifest",
    "save_manifest",
    "merge_manifest",
    "merge_env_vars",
    "ENV_TEMPLATE_FILE",
    "generate_env_template",
    "write_env_template",
    # Injection
    "InjectionEngine",
    "InjectionError",
    "SentinelNotFoundError",
    "InjectionTargetMissingError",
]
