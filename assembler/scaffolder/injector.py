"""Declarative text injection into rendered files.

Modules describe edits to files that already exist in the workspace (usually
files from the base preset) as hooks anchored on sentinel comments:

    // MODULE_IMPORTS_PLACEHOLDER   (or // IMPORTS_PLACEHOLDER)  import lines
    // MODULE_REGISTER_PLACEHOLDER                               registration lines
    {/* ROUTES_PLACEHOLDER */}                                   route elements
    {/* COMPONENTS_PLACEHOLDER */}                               component elements

plus a provider wrap that surrounds a JSX element with a provider component.
Hooks for one file always run in the order import, register, routes,
components, wrap.

All edits are textual. The provider wrap in particular locates its target
element with a bounded regular expression and is only correct when the
target's attributes do not themselves contain ``<Target`` or ``</Target>``.

Missing sentinels are errors for every hook kind: an import hook falls back
to the line after the last import statement (or the top of an empty file),
and fails when the file has no imports either.
"""

from __future__ import annotations

import asyncio
import errno
import re
from collections.abc import Callable, Iterable
from pathlib import Path

from rich.console import Console

from assembler.catalog.models import (
    ComponentHook,
    ImportHook,
    InjectionDirective,
    ProviderWrapHook,
    RegisterHook,
    RouteHook,
)

console = Console()

IMPORT_SENTINELS: tuple[str, ...] = ("// MODULE_IMPORTS_PLACEHOLDER", "// IMPORTS_PLACEHOLDER")
REGISTER_SENTINEL = "// MODULE_REGISTER_PLACEHOLDER"
ROUTES_SENTINEL = "{/* ROUTES_PLACEHOLDER */}"
COMPONENTS_SENTINEL = "{/* COMPONENTS_PLACEHOLDER */}"

WRAP_INDENT = "  "

# ES module import statements starting at column 0, possibly spanning lines.
_IMPORT_RE = re.compile(
    r"""^import(?!\s*\()\b.*?(?:\bfrom\s*(['"])[^'"\n]+\1|(['"])[^'"\n]+\2)[ \t]*;?[ \t]*$""",
    re.MULTILINE | re.DOTALL,
)

# One JSX attribute region: {expr} (one level of nested braces), quoted
# strings, or any character except tag delimiters.
_JSX_ATTRS = r"""(?:\{(?:[^{}]|\{[^{}]*\})*\}|"[^"]*"|'[^']*'|[^<>{}"'/]|/(?!>))*"""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class InjectionError(Exception):
    """Raised when a hook cannot be applied to its target file."""

    def __init__(self, message: str, target: str = "", hook: str = ""):
        self.target = target
        self.hook = hook
        super().__init__(message)


class SentinelNotFoundError(InjectionError):
    """The anchor a hook needs is not present in the target file."""


class InjectionTargetMissingError(FileNotFoundError):
    """A directive targets a file that does not exist and is not ``ensure``d."""

    def __init__(self, target: str, path: Path):
        self.target = target
        super().__init__(errno.ENOENT, f"Injection target not found: {target}", str(path))


# ---------------------------------------------------------------------------
# Text operations
# ---------------------------------------------------------------------------

def _uses_crlf(content: str) -> bool:
    """True when every line break in *content* is ``\\r\\n``."""
    return "\r\n" in content and "\n" not in content.replace("\r\n", "")


def _line_bounds(content: str, index: int) -> tuple[int, int]:
    start = content.rfind("\n", 0, index) + 1
    end = content.find("\n", index)
    return start, len(content) if end == -1 else end


def insert_before_sentinel(content: str, sentinel: str, lines: Iterable[str]) -> str | None:
    """Insert *lines* right before the first *sentinel*, at its indentation.

    Returns ``None`` if the sentinel is not in *content*.
    """
    index = content.find(sentinel)
    if index == -1:
        return None

    line_start, _ = _line_bounds(content, index)
    prefix = content[line_start:index]
    indent = re.match(r"[ \t]*", prefix).group(0)
    lines = list(lines)

    if prefix.strip():
        # Sentinel shares its line with code: the sentinel moves down a line.
        block = f"\n{indent}".join(lines) + f"\n{indent}"
        return content[:index] + block + content[index:]

    block = "".join(f"{indent}{line}\n" for line in lines)
    return content[:line_start] + block + content[line_start:]


def insert_imports(content: str, lines: Iterable[str]) -> str | None:
    """Add import lines at the imports sentinel, else after the last import.

    Lines already present in the file are skipped. An empty file (such as a
    freshly ensured target) receives the lines at the top. Returns ``None``
    when a non-empty file has neither a sentinel nor an import statement.
    """
    existing = {line.strip() for line in content.splitlines()}
    new_lines = [line for line in lines if line.strip() not in existing]
    if not new_lines:
        return content

    for sentinel in IMPORT_SENTINELS:
        if sentinel in content:
            return insert_before_sentinel(content, sentinel, new_lines)

    if not content.strip():
        return "".join(f"{line}\n" for line in new_lines) + content

    last = None
    for last in _IMPORT_RE.finditer(content):
        pass
    if last is None:
        return None

    end = last.end()
    block = "".join(f"\n{line}" for line in new_lines)
    return content[:end] + block + content[end:]


def _element_pattern(tag: str) -> re.Pattern[str]:
    t = re.escape(tag)
    name_end = r"(?![\w.-])"
    return re.compile(
        rf"<{t}{name_end}{_JSX_ATTRS}(?:/>|>(?:(?!<{t}{name_end}).)*?</{t}\s*>)",
        re.DOTALL,
    )


def wrap_element(content: str, component: str, target: str) -> str | None:
    """Wrap the first ``<target>`` element in ``<component>...</component>``.

    Handles both ``<Target ... />`` and ``<Target ...>...</Target>``. When the
    element starts its own line the wrapped block is re-indented by two
    spaces; otherwise it is wrapped inline. Returns ``None`` if no element
    is found.
    """
    match = _element_pattern(target).search(content)
    if match is None:
        return None

    start, end = match.span()
    line_start, _ = _line_bounds(content, start)
    prefix = content[line_start:start]
    element = match.group(0)

    if prefix.strip():
        return content[:start] + f"<{component}>{element}</{component}>" + content[end:]

    indent = prefix
    first, *rest = element.split("\n")
    body = f"{indent}{WRAP_INDENT}{first}" + "".join(
        f"\n{WRAP_INDENT}{line}" if line.strip() else f"\n{line}" for line in rest
    )
    wrapped = f"<{component}>\n{body}\n{indent}</{component}>"
    return content[:start] + wrapped + content[end:]


# ---------------------------------------------------------------------------
# Hook handlers
# ---------------------------------------------------------------------------

def _apply_import(content: str, hook: ImportHook, target: str) -> str:
    result = insert_imports(content, hook.lines)
    if result is None:
        raise SentinelNotFoundError(
            f"{target}: no '{IMPORT_SENTINELS[0]}' sentinel and no import statement "
            f"to insert after",
            target=target,
            hook=hook.kind,
        )
    return result


def _registration_line(line: str) -> str:
    stripped = line.rstrip()
    return stripped if stripped.endswith(",") else f"{stripped},"


def _apply_register(content: str, hook: RegisterHook, target: str) -> str:
    result = insert_before_sentinel(
        content, REGISTER_SENTINEL, [_registration_line(line) for line in hook.lines]
    )
    if result is None:
        raise SentinelNotFoundError(
            f"{target}: missing '{REGISTER_SENTINEL}' sentinel", target=target, hook=hook.kind
        )
    return result


def _apply_markup(sentinel: str) -> Callable[[str, RouteHook | ComponentHook, str], str]:
    def _apply(content: str, hook: RouteHook | ComponentHook, target: str) -> str:
        result = insert_before_sentinel(content, sentinel, hook.lines)
        if result is None:
            raise SentinelNotFoundError(
                f"{target}: missing '{sentinel}' sentinel", target=target, hook=hook.kind
            )
        return result

    return _apply


def _apply_wrap(content: str, hook: ProviderWrapHook, target: str) -> str:
    result = wrap_element(content, hook.component, hook.target)
    if result is None:
        raise SentinelNotFoundError(
            f"{target}: no <{hook.target}> element to wrap with <{hook.component}>",
            target=target,
            hook=hook.kind,
        )
    return result


_HANDLERS = {
    "import": _apply_import,
    "register": _apply_register,
    "routes": _apply_markup(ROUTES_SENTINEL),
    "components": _apply_markup(COMPONENTS_SENTINEL),
    "wrap": _apply_wrap,
}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class InjectionEngine:
    """Applies a module's injection directives to files in a workspace."""

    def apply_directive(self, workspace_dir: Path, directive: InjectionDirective) -> bool:
        """Apply every hook of *directive*; returns ``True`` if the file changed.

        Raises:
            InjectionTargetMissingError: Target absent and not ``ensure``d.
            SentinelNotFoundError: A hook's anchor is missing.
            InjectionError: The target path escapes the workspace.
        """
        root = Path(workspace_dir).resolve()
        path = (root / directive.target).resolve()
        if not path.is_relative_to(root):
            raise InjectionError(
                f"Injection target escapes the workspace: {directive.target}",
                target=directive.target,
            )

        if not path.exists():
            if not directive.ensure:
                raise InjectionTargetMissingError(directive.target, path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(directive.seed, encoding="utf-8", newline="")

        original = path.read_bytes().decode("utf-8")
        crlf = _uses_crlf(original)
        content = original.replace("\r\n", "\n") if crlf else original
        for hook in directive.hooks:
            content = _HANDLERS[hook.kind](content, hook, directive.target)
        if crlf:
            content = content.replace("\n", "\r\n")

        if content == original:
            return False
        path.write_text(content, encoding="utf-8", newline="")
        return True

    async def apply(
        self,
        workspace_dir: str | Path,
        directives: Iterable[InjectionDirective],
        *,
        module: str = "",
    ) -> list[str]:
        """Apply *directives* in order and return the targets that changed."""
        changed: list[str] = []
        for directive in directives:
            if await asyncio.to_thread(self.apply_directive, Path(workspace_dir), directive):
                changed.append(directive.target)
                console.print(
                    f"  [magenta]~[/magenta] {directive.target}"
                    + (f" [dim]({module})[/dim]" if module else "")
                )
        return changed
