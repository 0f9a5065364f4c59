"""File-tree rendering with ``{{key}}`` placeholder substitution.

Copies a preset or module file tree into a workspace. Text files up to a
size threshold have their ``{{key}}`` placeholders replaced from the render
context; everything else (binary files, large files) is copied verbatim.

Only tokens naming a context key are replaced; other brace sequences in the
copied JSX/TypeScript sources (``style={{ ... }}`` object literals,
``{/* ... */}`` comments) pass through unchanged.
"""

from __future__ import annotations

import asyncio
import fnmatch
import re
import shutil
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from typing import Any

from assembler.config import DEFAULT_MAX_RENDER_BYTES

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][\w.-]*)\s*\}\}")

# Never copied, regardless of .gitignore.
_ALWAYS_SKIP = {".git"}

_MISSING = object()


# ---------------------------------------------------------------------------
# Placeholder substitution
# ---------------------------------------------------------------------------

def _lookup(context: Mapping[str, Any], key: str) -> Any:
    if key in context:
        return context[key]
    value: Any = context
    for part in key.split("."):
        if isinstance(value, Mapping) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


def substitute(text: str, context: Mapping[str, Any]) -> str:
    """Replace ``{{key}}`` tokens in *text* with values from *context*.

    Dotted keys (``{{author.name}}``) walk nested mappings. Tokens whose key
    cannot be resolved are left exactly as written.
    """

    def _replace(match: re.Match[str]) -> str:
        value = _lookup(context, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER_RE.sub(_replace, text)


# ---------------------------------------------------------------------------
# Ignore rules
# ---------------------------------------------------------------------------

class IgnoreRules:
    """The subset of ``.gitignore`` syntax needed to filter template trees.

    Supports comments, blank lines, ``!`` negation (last match wins),
    directory-only patterns (trailing ``/``), anchored patterns (containing a
    ``/``) and basename glob patterns.
    """

    def __init__(self, patterns: list[str] | None = None) -> None:
        self._rules: list[tuple[str, bool, bool, bool]] = []
        for raw in patterns or []:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            negated = line.startswith("!")
            if negated:
                line = line[1:]
            dir_only = line.endswith("/")
            line = line.strip("/") if dir_only else line.lstrip("/")
            anchored = "/" in line or raw.strip().lstrip("!").startswith("/")
            if line:
                self._rules.append((line, negated, dir_only, anchored))

    @classmethod
    def from_dir(cls, root: Path) -> "IgnoreRules":
        gitignore = root / ".gitignore"
        if not gitignore.is_file():
            return cls()
        return cls(gitignore.read_text(encoding="utf-8", errors="replace").splitlines())

    def _matches(self, rel: PurePosixPath, is_dir: bool, rule: tuple[str, bool, bool, bool]) -> bool:
        pattern, _, dir_only, anchored = rule
        if dir_only and not is_dir:
            return False
        if anchored:
            return fnmatch.fnmatchcase(rel.as_posix(), pattern)
        return fnmatch.fnmatchcase(rel.name, pattern)

    def is_ignored(self, rel: PurePosixPath, is_dir: bool = False) -> bool:
        # A path is ignored when it, or any parent directory, is ignored.
        parents = list(reversed(rel.parents))[1:]
        for parent in parents:
            if self._check(parent, True):
                return True
        return self._check(rel, is_dir)

    def _check(self, rel: PurePosixPath, is_dir: bool) -> bool:
        ignored = False
        for rule in self._rules:
            if self._matches(rel, is_dir, rule):
                ignored = not rule[1]
        return ignored


def iter_source_files(source_dir: Path) -> list[PurePosixPath]:
    """Return every file under *source_dir* (dotfiles included) that is not ignored.

    Paths are relative, POSIX-style, and sorted for a deterministic copy order.
    """
    rules = IgnoreRules.from_dir(source_dir)
    found: list[PurePosixPath] = []
    for path in sorted(source_dir.rglob("*")):
        rel = PurePosixPath(path.relative_to(source_dir).as_posix())
        if _ALWAYS_SKIP.intersection(rel.parts):
            continue
        if not path.is_file():
            continue
        if rules.is_ignored(rel):
            continue
        found.append(rel)
    return found


# ---------------------------------------------------------------------------
# Tree rendering
# ---------------------------------------------------------------------------

def render_file(
    source: Path,
    destination: Path,
    context: Mapping[str, Any],
    max_render_bytes: int = DEFAULT_MAX_RENDER_BYTES,
) -> bool:
    """Render one file; returns ``True`` if placeholders were substituted.

    Files larger than *max_render_bytes* or not valid UTF-8 are copied
    byte-for-byte. An existing destination file is overwritten.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)

    if source.stat().st_size > max_render_bytes:
        shutil.copy2(source, destination)
        return False

    raw = source.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        shutil.copy2(source, destination)
        return False

    # newline="" keeps CRLF files byte-identical apart from substitutions.
    with open(destination, "w", encoding="utf-8", newline="") as fh:
        fh.write(substitute(text, context))
    shutil.copymode(source, destination)
    return True


async def render_tree(
    source_dir: str | Path,
    dest_dir: str | Path,
    context: Mapping[str, Any],
    *,
    max_render_bytes: int = DEFAULT_MAX_RENDER_BYTES,
) -> list[str]:
    """Render every file under *source_dir* into *dest_dir*.

    The directory structure is preserved. Files already present in
    *dest_dir* at the same relative path are overwritten, so rendering the
    base preset first and then each module in selection order lets later
    modules replace earlier files.

    Args:
        source_dir: Tree to copy (a preset ``base`` or a module ``files`` dir).
        dest_dir: Workspace directory.
        context: Placeholder values.
        max_render_bytes: Files above this size are copied verbatim.

    Returns:
        Relative POSIX paths of the files written, in copy order.
    """
    src = Path(source_dir)
    dest = Path(dest_dir)
    if not src.is_dir():
        return []

    files = await asyncio.to_thread(iter_source_files, src)
    for rel in files:
        await asyncio.to_thread(
            render_file, src / rel, dest / rel, context, max_render_bytes
        )
    return [rel.as_posix() for rel in files]
