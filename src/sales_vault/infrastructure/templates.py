"""Note templates and token substitution.

Templates are markdown files in the configured templates folder
(``Prospect.md``, ``Campaign.md``, ``Activity.md``).  Two token forms are
expanded:

``{{VALUE:key}}``
    The value of *key* from the supplied mapping.  Unknown keys expand to an
    empty string.
``{{date:FORMAT}}``
    The current UTC time in one of the formats listed in
    :data:`DATE_FORMATS`.  Unrecognised formats are left as written.

A template may carry its own frontmatter; the store merges it underneath
the entity's metadata, so template defaults never override entity fields.
When a template file is missing the built-in default below is used.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sales_vault.domain.enums import EntityKind
from sales_vault.domain.models import format_timestamp
from sales_vault.infrastructure import frontmatter
from sales_vault.infrastructure.files import atomic_write_text, read_text

logger = logging.getLogger(__name__)

_VALUE_RE = re.compile(r"\{\{VALUE:([A-Za-z0-9_]+)\}\}")
_DATE_RE = re.compile(r"\{\{date:([^}]+)\}\}")

DATE_FORMATS: Mapping[str, Callable[[datetime], str]] = {
    "YYYY-MM-DDTHH:mm:ss.SSSZ": format_timestamp,
    "YYYY-MM-DD HH:mm": lambda now: now.strftime("%Y-%m-%d %H:%M"),
    "YYYY-MM-DD": lambda now: now.strftime("%Y-%m-%d"),
    "HH:mm": lambda now: now.strftime("%H:%M"),
}

TEMPLATE_FILES: Mapping[EntityKind, str] = {
    EntityKind.PROSPECT: "Prospect.md",
    EntityKind.CAMPAIGN: "Campaign.md",
    EntityKind.ACTIVITY: "Activity.md",
}

# --------------------------------------------------------------------------- #
#  Built-in templates                                                          #
# --------------------------------------------------------------------------- #

PROSPECT_TEMPLATE = """\
# {{VALUE:company}}

## Business Overview

- **Industry:** {{VALUE:industry}}
- **Location:** {{VALUE:location}}
- **Size:** {{VALUE:business_size}}
- **Website:** {{VALUE:website}}

## Contact

- **Phone:** {{VALUE:phone}}
- **Email:** {{VALUE:email}}
- **Decision maker:** {{VALUE:decision_maker}}

## Qualification

Score: {{VALUE:qualification_score}}/100

## Interaction History

## Notes

{{VALUE:notes}}
"""

CAMPAIGN_TEMPLATE = """\
# {{VALUE:campaign_name}}

{{VALUE:description}}

## Targeting

- **Area:** {{VALUE:target_city}}, {{VALUE:target_state}} ({{VALUE:target_radius}} mi)
- **Industries:** {{VALUE:target_industries}}
- **Employees:** {{VALUE:min_employees}}-{{VALUE:max_employees}}
- **Qualification threshold:** {{VALUE:qualification_threshold}}

## Goals

- **Daily prospects:** {{VALUE:daily_target}}
- **Monthly pipeline:** {{VALUE:monthly_pipeline_target}}

## Log

- {{date:YYYY-MM-DD}} campaign created
"""

ACTIVITY_TEMPLATE = """\
# {{VALUE:activity_type}} with {{VALUE:prospect_name}}

- **Outcome:** {{VALUE:outcome}}
- **Agent:** {{VALUE:agent_responsible}}
- **Date:** {{date:YYYY-MM-DD HH:mm}}

## Summary

{{VALUE:summary}}

## Notes

{{VALUE:notes}}
"""

DEFAULT_TEMPLATES: Mapping[EntityKind, str] = {
    EntityKind.PROSPECT: PROSPECT_TEMPLATE,
    EntityKind.CAMPAIGN: CAMPAIGN_TEMPLATE,
    EntityKind.ACTIVITY: ACTIVITY_TEMPLATE,
}


# --------------------------------------------------------------------------- #
#  Substitution                                                                #
# --------------------------------------------------------------------------- #

def _display(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, (list, tuple)):
        return ", ".join(_display(v) for v in value)
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def substitute(template: str, values: Mapping[str, Any], now: datetime | None = None) -> str:
    """Expand ``{{VALUE:key}}`` and ``{{date:FORMAT}}`` tokens in *template*."""
    now = now or datetime.now(timezone.utc)

    def _value(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            logger.debug("Template token %s has no value, leaving it blank", key)
            return ""
        return _display(values[key])

    def _date(match: re.Match[str]) -> str:
        formatter = DATE_FORMATS.get(match.group(1).strip())
        return formatter(now) if formatter else match.group(0)

    return _DATE_RE.sub(_date, _VALUE_RE.sub(_value, template))


class TemplateLoader:
    """Loads entity templates from a folder, falling back to the built-ins."""

    def __init__(self, templates_dir: Path) -> None:
        self._dir = Path(templates_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, kind: EntityKind | str) -> Path:
        return self._dir / TEMPLATE_FILES[EntityKind(kind)]

    def load(self, kind: EntityKind | str) -> str:
        """Raw template text for *kind*."""
        kind = EntityKind(kind)
        text = read_text(self.path_for(kind))
        if text is None:
            logger.debug("No %s template on disk, using built-in", kind.value)
            return DEFAULT_TEMPLATES[kind]
        return text

    def render(
        self,
        kind: EntityKind | str,
        values: Mapping[str, Any],
        now: datetime | None = None,
    ) -> frontmatter.ParsedNote:
        """Expand the template for *kind*; returns its header and body."""
        expanded = substitute(self.load(kind), values, now)
        return frontmatter.parse(expanded)

    def seed(self, overwrite: bool = False) -> list[Path]:
        """Write the built-in templates to disk; returns the files written."""
        written = []
        for kind, text in DEFAULT_TEMPLATES.items():
            path = self.path_for(kind)
            if path.exists() and not overwrite:
                continue
            atomic_write_text(path, text)
            written.append(path)
            logger.info("Seeded template %s", path)
        return written
