"""Unit tests for the catalog data model (assembler.catalog.models).

Tests cover:
- EnvVarSpec bare and object declarations
- InjectionDirective payload parsing, hook ordering and rejection rules
- ModuleDescriptor aliases, inject map and derived properties
- Catalog summaries and immutability
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from assembler.catalog.models import (
    HOOK_ORDER,
    Catalog,
    EnvVarSpec,
    ImportHook,
    InjectionDirective,
    ModuleDescriptor,
    Preset,
    ProviderWrapHook,
    RegisterHook,
)


# ---------------------------------------------------------------------------
# EnvVarSpec
# ---------------------------------------------------------------------------

class TestEnvVarSpec:
    @pytest.mark.unit
    def test_bare_string_is_required(self):
        spec = EnvVarSpec.model_validate("JWT_SECRET")
        assert spec.key == "JWT_SECRET"
        assert spec.required is True
        assert spec.bare is True
        assert spec.example is None

    @pytest.mark.unit
    def test_object_form(self):
        spec = EnvVarSpec.model_validate({"key": "DB_POOL_SIZE", "required": False, "example": "10"})
        assert spec.required is False
        assert spec.example == "10"
        assert spec.bare is False

    @pytest.mark.unit
    def test_empty_key_rejected(self):
        with pytest.raises(ValidationError):
            EnvVarSpec(key="")


# ---------------------------------------------------------------------------
# InjectionDirective
# ---------------------------------------------------------------------------

class TestInjectionDirective:
    @pytest.mark.unit
    def test_hooks_follow_fixed_order(self):
        directive = InjectionDirective.model_validate({
            "target": "src/main.tsx",
            "wrap": {"component": "AuthProvider", "target": "App"},
            "register": ["AuthModule"],
            "import": ["import { AuthProvider } from './auth';"],
        })
        assert [hook.kind for hook in directive.hooks] == ["import", "register", "wrap"]
        assert isinstance(directive.hooks[0], ImportHook)
        assert isinstance(directive.hooks[-1], ProviderWrapHook)

    @pytest.mark.unit
    def test_single_string_becomes_one_line(self):
        directive = InjectionDirective.model_validate(
            {"target": "a.ts", "register": "AuthModule"}
        )
        assert directive.hooks == (RegisterHook(lines=("AuthModule",)),)

    @pytest.mark.unit
    def test_unknown_hook_rejected(self):
        with pytest.raises(ValidationError, match="Unsupported injection hook"):
            InjectionDirective.model_validate({"target": "a.ts", "append": ["x"]})

    @pytest.mark.unit
    def test_wrap_must_be_object(self):
        with pytest.raises(ValidationError, match="must be an object"):
            InjectionDirective.model_validate({"target": "a.tsx", "wrap": "AuthProvider"})

    @pytest.mark.unit
    def test_wrap_identifiers_validated(self):
        with pytest.raises(ValidationError):
            ProviderWrapHook(component="Auth Provider", target="App")

    @pytest.mark.unit
    def test_empty_lines_rejected(self):
        with pytest.raises(ValidationError):
            InjectionDirective.model_validate({"target": "a.ts", "import": []})

    @pytest.mark.unit
    def test_ensure_string_is_seed(self):
        directive = InjectionDirective.model_validate(
            {"target": "src/routes.ts", "ensure": "export const routes = [];\n", "import": ["x"]}
        )
        assert directive.ensure is True
        assert directive.seed == "export const routes = [];\n"

    @pytest.mark.unit
    def test_ensure_bool(self):
        directive = InjectionDirective.model_validate(
            {"target": "src/routes.ts", "ensure": True, "import": ["x"]}
        )
        assert directive.ensure is True
        assert directive.seed == ""

    @pytest.mark.unit
    def test_explicit_hooks_are_sorted(self):
        directive = InjectionDirective(
            target="a.tsx",
            hooks=[
                {"kind": "wrap", "component": "P", "target": "App"},
                {"kind": "import", "lines": ["import P from './p';"]},
            ],
        )
        assert [hook.kind for hook in directive.hooks] == ["import", "wrap"]

    @pytest.mark.unit
    def test_duplicate_hook_kinds_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate hook kinds"):
            InjectionDirective(
                target="a.ts",
                hooks=[
                    {"kind": "import", "lines": ["a"]},
                    {"kind": "import", "lines": ["b"]},
                ],
            )

    @pytest.mark.unit
    def test_hook_order_constant(self):
        assert HOOK_ORDER == ("import", "register", "routes", "components", "wrap")


# ---------------------------------------------------------------------------
# ModuleDescriptor
# ---------------------------------------------------------------------------

class TestModuleDescriptor:
    @pytest.mark.unit
    def test_camel_case_aliases(self, tmp_path: Path):
        module = ModuleDescriptor.model_validate({
            "name": "auth",
            "devDeps": {"@types/jsonwebtoken": "9.0.5"},
            "filesPath": "src-files",
            "postInstall": ["npm run migrate"],
            "root": tmp_path,
        })
        assert module.dev_deps == {"@types/jsonwebtoken": "9.0.5"}
        assert module.files_dir == tmp_path / "src-files"
        assert module.post_install == ("npm run migrate",)

    @pytest.mark.unit
    def test_inject_map_becomes_directives(self):
        module = ModuleDescriptor.model_validate({
            "name": "db",
            "inject": {
                "src/app.module.ts": {"import": ["import a;"], "register": ["A"]},
                "src/main.ts": {"import": ["import b;"]},
            },
        })
        assert [d.target for d in module.inject] == ["src/app.module.ts", "src/main.ts"]
        assert len(module.inject[0].hooks) == 2

    @pytest.mark.unit
    def test_defaults(self):
        module = ModuleDescriptor(name="assets")
        assert module.category == "general"
        assert module.files_path == "files"
        assert module.deps == {}
        assert module.inject == ()

    @pytest.mark.unit
    def test_frozen(self):
        module = ModuleDescriptor(name="assets")
        with pytest.raises(ValidationError):
            module.name = "other"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class TestCatalog:
    @pytest.mark.unit
    def test_summaries(self, tmp_path: Path):
        preset = Preset(
            name="base",
            description="Base preset",
            base_path=tmp_path / "base",
            modules={
                "auth-basic": ModuleDescriptor(
                    name="auth-basic", category="auth", conflicts=("auth-oauth",)
                ),
            },
        )
        catalog = Catalog(root=tmp_path, presets={"base": preset})

        summaries = catalog.summaries()
        assert summaries == [
            {
                "name": "base",
                "description": "Base preset",
                "modules": [
                    {
                        "name": "auth-basic",
                        "description": "",
                        "category": "auth",
                        "conflicts": ["auth-oauth"],
                    }
                ],
            }
        ]

    @pytest.mark.unit
    def test_lookup_helpers(self, tmp_path: Path):
        preset = Preset(name="base", base_path=tmp_path, modules={"db": ModuleDescriptor(name="db")})
        catalog = Catalog(root=tmp_path, presets={"base": preset})
        assert catalog.get_preset("base") is preset
        assert catalog.get_preset("nope") is None
        assert preset.get_module("db").name == "db"
        assert preset.get_module("nope") is None
