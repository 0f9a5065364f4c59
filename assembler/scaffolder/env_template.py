"""``.env.template`` generation.

Buckets the merged environment variables of a build into fixed categories
and renders them as ``KEY=value`` lines under comment headers, in this
order: database, authentication, OAuth (grouped by provider), mail, cloud
storage, messaging, payments, other.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from assembler.catalog.models import EnvVarSpec

from .templates import TemplateRenderer

ENV_TEMPLATE_FILE = ".env.template"

# (title, keywords) in output order; a key lands in the first match.
CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Database Configuration", ("DB_", "DATABASE_")),
    ("Authentication Configuration", ("JWT_", "AUTH_", "RBAC_")),
    ("OAuth Configuration", ("GOOGLE_", "GITHUB_", "MICROSOFT_")),
    ("Mail Configuration", ("MAIL_", "SMTP_", "RESEND_")),
    ("AWS Configuration", ("AWS_",)),
    ("Twilio Configuration", ("TWILIO_",)),
    ("Stripe Configuration", ("STRIPE_",)),
)
OTHER_CATEGORY = "Other Configuration"
OAUTH_CATEGORY = "OAuth Configuration"

OAUTH_PROVIDERS: tuple[tuple[str, str], ...] = (
    ("Google OAuth", "GOOGLE_"),
    ("GitHub OAuth", "GITHUB_"),
    ("Microsoft OAuth", "MICROSOFT_"),
)

KNOWN_DEFAULTS: dict[str, str] = {
    "JWT_SECRET": "your-jwt-secret-key-here",
    "JWT_EXPIRES_IN": "1h",
    "SMTP_PORT": "587",
    "SMTP_SECURE": "false",
    "AWS_REGION": "us-east-1",
}


def _has_keyword(key: str, keyword: str) -> bool:
    # Keyword at the start of the key or right after an underscore.
    return key.startswith(keyword) or f"_{keyword}" in key


def categorize(key: str) -> str:
    """Return the section title a variable belongs to."""
    for title, keywords in CATEGORIES:
        if any(_has_keyword(key, kw) for kw in keywords):
            return title
    return OTHER_CATEGORY


def default_value(spec: EnvVarSpec) -> str:
    """Placeholder value for *spec*: its example, a known default, or empty."""
    if spec.example is not None:
        return spec.example
    if spec.key in KNOWN_DEFAULTS:
        return KNOWN_DEFAULTS[spec.key]
    for known, value in KNOWN_DEFAULTS.items():
        if spec.key.endswith(f"_{known}"):
            return value
    return ""


def build_sections(env_vars: Iterable[EnvVarSpec]) -> list[dict[str, Any]]:
    """Group variables into the ordered, non-empty sections of the template.

    Duplicate keys keep their first declaration.
    """
    buckets: dict[str, list[EnvVarSpec]] = {title: [] for title, _ in CATEGORIES}
    buckets[OTHER_CATEGORY] = []
    seen: set[str] = set()
    for spec in env_vars:
        if spec.key in seen:
            continue
        seen.add(spec.key)
        buckets[categorize(spec.key)].append(spec)

    sections: list[dict[str, Any]] = []
    for title, specs in buckets.items():
        if not specs:
            continue
        entries = [{"key": s.key, "value": default_value(s)} for s in specs]
        if title == OAUTH_CATEGORY:
            by_provider: dict[str, list[dict[str, str]]] = {t: [] for t, _ in OAUTH_PROVIDERS}
            for entry in entries:
                provider = next(
                    t for t, kw in OAUTH_PROVIDERS if _has_keyword(entry["key"], kw)
                )
                by_provider[provider].append(entry)
            groups = [
                {"title": t, "entries": grouped} for t, grouped in by_provider.items() if grouped
            ]
            sections.append({"title": title, "entries": [], "groups": groups})
        else:
            sections.append({"title": title, "entries": entries, "groups": []})
    return sections


def generate_env_template(
    env_vars: Iterable[EnvVarSpec],
    renderer: TemplateRenderer | None = None,
) -> str:
    """Render the ``.env.template`` content for *env_vars*.

    Returns an empty string when there are no variables.
    """
    sections = build_sections(env_vars)
    if not sections:
        return ""
    renderer = renderer or TemplateRenderer()
    return renderer.render("env.template.j2", {"sections": sections})


async def write_env_template(
    workspace: Path,
    env_vars: list[EnvVarSpec],
    renderer: TemplateRenderer | None = None,
) -> Path | None:
    """Write ``.env.template`` into *workspace*; nothing is written for an empty list."""
    if not env_vars:
        return None
    renderer = renderer or TemplateRenderer()
    sections = build_sections(env_vars)
    return await renderer.render_to_file(
        "env.template.j2", workspace / ENV_TEMPLATE_FILE, {"sections": sections}
    )
