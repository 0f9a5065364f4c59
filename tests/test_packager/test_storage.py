"""Unit tests for archive storage (assembler.packager.storage)."""

from __future__ import annotations

import os
import time
import zipfile
from pathlib import Path
from unittest.mock import patch

import pytest

from assembler.packager.storage import ArchiveStorage, StorageError


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.ts").write_text("console.log('hi');\n")
    (root / ".env.template").write_text("JWT_SECRET=\n")
    (root / "package.json").write_text("{}\n")
    (root / "empty").mkdir()
    return root


class TestCreateZip:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_contents_at_archive_root(self, tmp_path: Path, project: Path):
        storage = ArchiveStorage(tmp_path / "out")
        archive = await storage.create_zip(project, "demo-1.zip")

        assert archive == tmp_path / "out" / "demo-1.zip"
        with zipfile.ZipFile(archive) as zf:
            names = set(zf.namelist())
            assert {"src/main.ts", ".env.template", "package.json", "empty/"} <= names
            assert zf.read("src/main.ts") == b"console.log('hi');\n"
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_write_failure(self, tmp_path: Path, project: Path):
        storage = ArchiveStorage(tmp_path / "out")
        with patch("assembler.packager.storage._write_zip", side_effect=OSError("disk full")):
            with pytest.raises(StorageError, match="disk full"):
                await storage.create_zip(project, "demo.zip")
        assert not (tmp_path / "out" / "demo.zip").exists()


class TestDownloadUrl:
    @pytest.mark.unit
    def test_public_base_url(self, tmp_path: Path):
        storage = ArchiveStorage(tmp_path, public_base_url="https://cdn.example.com/builds/")
        assert storage.download_url("demo.zip") == "https://cdn.example.com/builds/demo.zip"

    @pytest.mark.unit
    def test_file_uri(self, tmp_path: Path):
        storage = ArchiveStorage(tmp_path)
        url = storage.download_url("demo.zip")
        assert url.startswith("file://")
        assert url.endswith("/demo.zip")


class TestCleanup:
    @pytest.mark.unit
    def test_removes_only_stale_archives(self, tmp_path: Path):
        old = tmp_path / "old.zip"
        fresh = tmp_path / "fresh.zip"
        other = tmp_path / "notes.txt"
        for path in (old, fresh, other):
            path.write_bytes(b"x")
        stale = time.time() - 7200
        os.utime(old, (stale, stale))
        os.utime(other, (stale, stale))

        removed = ArchiveStorage(tmp_path).cleanup(max_age_seconds=3600)
        assert removed == ["old.zip"]
        assert fresh.exists()
        assert other.exists()

    @pytest.mark.unit
    def test_missing_directory(self, tmp_path: Path):
        assert ArchiveStorage(tmp_path / "nope").cleanup() == []
