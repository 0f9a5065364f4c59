"""Shared pytest fixtures for the Boilerplate Assembler test suite.

Provides reusable fixtures for:
- A small on-disk catalog (one ``base`` preset with several modules)
- The loaded ``Catalog`` and a ``Config`` pointing at temp directories
- A real temporary git repository and a local bare remote
- Mock subprocess helpers
"""

from __future__ import annotations

import json
import subprocess
import textwrap
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from assembler.catalog import Catalog, load_catalog
from assembler.config import Config, StorageConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def write_file(path: Path, content: str | bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding="utf-8")
    return path


def write_json(path: Path, data: Any) -> Path:
    return write_file(path, json.dumps(data, indent=2) + "\n")


BASE_PACKAGE_JSON = {
    "name": "{{projectName}}",
    "version": "0.1.0",
    "description": "{{description}}",
    "author": "{{author}}",
    "dependencies": {"express": "^4.19.0"},
    "devDependencies": {"typescript": "^5.4.0"},
}

APP_MODULE_TS = textwrap.dedent("""\
    import { Module } from '@nestjs/common';
    // MODULE_IMPORTS_PLACEHOLDER

    @Module({
      imports: [
        // MODULE_REGISTER_PLACEHOLDER
      ],
    })
    export class AppModule {}
""")

MAIN_TSX = textwrap.dedent("""\
    import { createRoot } from 'react-dom/client';
    import App from './App';

    createRoot(document.getElementById('root')!).render(
      <App />,
    );
""")

APP_TSX = textwrap.dedent("""\
    import { Routes } from 'react-router-dom';
    // IMPORTS_PLACEHOLDER

    export default function App() {
      return (
        <div style={{ padding: 16 }}>
          <Routes>
            {/* ROUTES_PLACEHOLDER */}
          </Routes>
          {/* COMPONENTS_PLACEHOLDER */}
        </div>
      );
    }
""")


def build_catalog(root: Path) -> Path:
    """Write a catalog under *root* and return *root*.

    Layout::

        presets/base/preset.json
        presets/base/base/...                  Node + React sources with sentinels
        presets/base/modules/db                deps, env, import + register
        presets/base/modules/auth              jsonwebtoken@9.0.0, JWT_SECRET
        presets/base/modules/auth-basic        conflicts with auth-oauth
        presets/base/modules/auth-oauth        OAuth env vars
        presets/base/modules/react-auth        import + provider wrap
        presets/base/modules/dashboard         routes + components
        presets/base/modules/assets            no meta.json, files only
        presets/base/modules/broken            targets a file that does not exist
    """
    preset = root / "presets" / "base"
    write_json(preset / "preset.json", {"description": "Node service with a React client"})

    base = preset / "base"
    write_json(base / "package.json", BASE_PACKAGE_JSON)
    write_file(base / "src" / "app.module.ts", APP_MODULE_TS)
    write_file(base / "src" / "main.tsx", MAIN_TSX)
    write_file(base / "src" / "App.tsx", APP_TSX)
    write_file(base / "README.md", "# {{projectName}}\n\nBy {{author}}. {{unknownKey}}\n")
    write_file(base / ".gitignore", "node_modules/\n*.log\n")
    write_file(base / "node_modules" / "left-pad" / "index.js", "module.exports = 1;\n")
    write_file(base / "debug.log", "noise\n")

    modules = preset / "modules"

    write_json(modules / "db" / "meta.json", {
        "name": "db",
        "description": "PostgreSQL via TypeORM",
        "category": "database",
        "deps": {"typeorm": "0.3.20", "pg": "8.11.0"},
        "env": ["DATABASE_URL", {"key": "DB_POOL_SIZE", "required": False, "example": "10"}],
        "inject": {
            "src/app.module.ts": {
                "import": ["import { DatabaseModule } from './database/database.module';"],
                "register": ["DatabaseModule"],
            }
        },
    })
    write_file(
        modules / "db" / "files" / "src" / "database" / "database.module.ts",
        "// Database module for {{projectName}}\nexport class DatabaseModule {}\n",
    )

    write_json(modules / "auth" / "meta.json", {
        "name": "auth",
        "description": "JWT authentication",
        "category": "auth",
        "deps": {"jsonwebtoken": "9.0.0"},
        "devDeps": {"@types/jsonwebtoken": "9.0.5"},
        "env": ["JWT_SECRET", "JWT_EXPIRES_IN", "DATABASE_URL"],
        "inject": {
            "src/app.module.ts": {
                "import": ["import { AuthModule } from './auth/auth.module';"],
                "register": ["AuthModule"],
            }
        },
        "postInstall": ["npm run migrate"],
    })
    write_file(modules / "auth" / "files" / "src" / "auth" / "auth.module.ts", "export class AuthModule {}\n")

    write_json(modules / "auth-basic" / "meta.json", {
        "name": "auth-basic",
        "category": "auth",
        "conflicts": ["auth-oauth"],
    })
    write_json(modules / "auth-oauth" / "meta.json", {
        "name": "auth-oauth",
        "category": "auth",
        "env": ["GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GITHUB_CLIENT_ID"],
    })

    write_json(modules / "react-auth" / "meta.json", {
        "name": "react-auth",
        "category": "frontend",
        "inject": {
            "src/main.tsx": {
                "import": ["import { AuthProvider } from './auth/AuthProvider';"],
                "wrap": {"component": "AuthProvider", "target": "App"},
            }
        },
    })
    write_file(
        modules / "react-auth" / "files" / "src" / "auth" / "AuthProvider.tsx",
        "export function AuthProvider({ children }) { return children; }\n",
    )

    write_json(modules / "dashboard" / "meta.json", {
        "name": "dashboard",
        "category": "frontend",
        "inject": {
            "src/App.tsx": {
                "import": ["import Dashboard from './pages/Dashboard';"],
                "routes": ['<Route path="/dashboard" element={<Dashboard />} />'],
                "components": ["<Toaster />"],
            }
        },
    })

    write_file(modules / "assets" / "files" / "public" / "logo.bin", bytes(range(256)))

    write_json(modules / "broken" / "meta.json", {
        "name": "broken",
        "inject": {"src/missing.ts": {"import": ["import x from 'x';"]}},
    })
    return root


# ---------------------------------------------------------------------------
# Catalog & config
# ---------------------------------------------------------------------------

@pytest.fixture
def catalog_dir(tmp_path: Path) -> Path:
    """Temporary catalog directory (see ``build_catalog``)."""
    return build_catalog(tmp_path / "boiler-templates")


@pytest.fixture
def catalog(catalog_dir: Path) -> Catalog:
    """The sample catalog, loaded."""
    return load_catalog(catalog_dir)


@pytest.fixture
def config(tmp_path: Path, catalog_dir: Path) -> Config:
    """Config with workspaces and archives under the test's temp dir."""
    return Config(
        templates_dir=catalog_dir,
        work_dir=tmp_path / "work",
        storage=StorageConfig(output_path=tmp_path / "output"),
    )


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------

def _git(*args: str, cwd: Path) -> None:
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Temporary git repository with an initial commit."""
    repo_dir = tmp_path / "test-repo"
    repo_dir.mkdir()
    _git("init", cwd=repo_dir)
    _git("config", "user.email", "test@assembler.local", cwd=repo_dir)
    _git("config", "user.name", "Assembler Test", cwd=repo_dir)
    _git("config", "commit.gpgsign", "false", cwd=repo_dir)
    (repo_dir / "README.md").write_text("# Test Project\n", encoding="utf-8")
    _git("add", ".", cwd=repo_dir)
    _git("commit", "-m", "Initial commit", cwd=repo_dir)
    yield repo_dir


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """Empty bare repository usable as a push target."""
    remote = tmp_path / "remote.git"
    subprocess.run(
        ["git", "init", "--bare", str(remote)], check=True, capture_output=True
    )
    return remote


# ---------------------------------------------------------------------------
# Mock subprocess
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", return_value=proc):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
