"""Zip archive storage for finished builds.

Archives are written to a local output directory and addressed either by a
public base URL (when the directory is served over HTTP) or by a
``file://`` URI.
"""

from __future__ import annotations

import asyncio
import time
import zipfile
from pathlib import Path

from rich.console import Console

console = Console()

ARCHIVE_SUFFIX = ".zip"
COMPRESSION_LEVEL = 9


class StorageError(Exception):
    """Raised when an archive cannot be written."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def _write_zip(source_dir: Path, archive_path: Path) -> int:
    count = 0
    with zipfile.ZipFile(
        archive_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL
    ) as zf:
        for path in sorted(source_dir.rglob("*")):
            arcname = path.relative_to(source_dir).as_posix()
            if path.is_dir():
                if not any(path.iterdir()):
                    zf.write(path, arcname + "/")
                continue
            zf.write(path, arcname)
            count += 1
    return count


class ArchiveStorage:
    """Creates, addresses and expires build archives in one directory."""

    def __init__(self, output_path: str | Path, public_base_url: str = "") -> None:
        self.output_path = Path(output_path)
        self.public_base_url = public_base_url.rstrip("/")

    async def create_zip(self, source_dir: str | Path, file_name: str) -> Path:
        """Zip the contents of *source_dir* into ``<output_path>/<file_name>``.

        Paths inside the archive are relative to *source_dir*, so the project
        files sit at the archive root. An existing archive with the same name
        is replaced.

        Raises:
            StorageError: If the archive cannot be written.
        """
        src = Path(source_dir)
        archive_path = self.output_path / file_name
        try:
            await asyncio.to_thread(self.output_path.mkdir, parents=True, exist_ok=True)
            count = await asyncio.to_thread(_write_zip, src, archive_path)
        except OSError as exc:
            archive_path.unlink(missing_ok=True)
            raise StorageError(f"Could not write archive {archive_path}: {exc}", path=archive_path) from exc

        console.print(
            f"  [green]+[/green] {archive_path.name} [dim]({count} files, "
            f"{archive_path.stat().st_size} bytes)[/dim]"
        )
        return archive_path

    def download_url(self, file_name: str) -> str:
        """URL a client can fetch the archive from."""
        if self.public_base_url:
            return f"{self.public_base_url}/{file_name}"
        return (self.output_path / file_name).resolve().as_uri()

    def cleanup(self, max_age_seconds: float = 3600) -> list[str]:
        """Delete archives older than *max_age_seconds*; returns their names."""
        if not self.output_path.is_dir():
            return []

        cutoff = time.time() - max_age_seconds
        removed: list[str] = []
        for path in self.output_path.glob(f"*{ARCHIVE_SUFFIX}"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path.name)
            except FileNotFoundError:
                continue

        if removed:
            console.print(f"[dim]Removed {len(removed)} stale archive(s) from {self.output_path}[/dim]")
        return sorted(removed)
