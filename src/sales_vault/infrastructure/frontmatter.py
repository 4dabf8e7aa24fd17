"""Frontmatter codec for markdown notes.

A note is a YAML header block delimited by ``---`` lines, followed by free
markdown text::

    ---
    type: prospect-profile
    company: Test Restaurant LLC
    ---
    # Test Restaurant LLC
    ...

:func:`parse` never raises on bad input: a missing header yields empty
metadata and the full text as body, and a header that is not a YAML mapping
is logged and treated the same way, so one broken note cannot abort a scan
of a whole folder.  :func:`parse_strict` is the raising variant.

The module also carries the small text helpers the rest of the package
shares: tag extraction, date normalisation, slugs, wikilinks, and markdown
tables and checkbox lists.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import yaml

from sales_vault.domain.exceptions import FrontmatterParseError
from sales_vault.domain.models import format_timestamp, parse_timestamp
from sales_vault.domain.values import WikiLink

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<header>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_WIKILINK_RE = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")

#: Fields always treated as dates by :func:`normalize_dates`.
DATE_FIELDS: frozenset[str] = frozenset({
    "created", "updated", "date", "start_date", "end_date", "follow_up_date",
    "score_updated",
})


# --------------------------------------------------------------------------- #
#  Parse / generate                                                            #
# --------------------------------------------------------------------------- #

@dataclass(frozen=True)
class ParsedNote:
    """Metadata map and body text of one note."""

    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""
    has_frontmatter: bool = False


def parse_strict(text: str) -> ParsedNote:
    """Split *text* into metadata and body, raising on a malformed header.

    Text without a header block is not an error: it parses to empty metadata
    with *text* as the body.

    Raises
    ------
    FrontmatterParseError
        If the header is not valid YAML or is not a mapping.
    """
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        return ParsedNote(metadata={}, body=text)

    try:
        loaded = yaml.safe_load(match.group("header"))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else None  # +1 for the opening ---
        raise FrontmatterParseError(
            f"Invalid YAML in frontmatter: {exc}", line=line
        ) from exc

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise FrontmatterParseError(
            f"Frontmatter must be a mapping, got {type(loaded).__name__}"
        )
    return ParsedNote(
        metadata=loaded, body=text[match.end():], has_frontmatter=True
    )


def parse(text: str) -> ParsedNote:
    """Split *text* into metadata and body; never raises.

    A malformed header is logged and yields ``ParsedNote({}, text)`` with
    the original, unmodified text as body.
    """
    try:
        return parse_strict(text)
    except FrontmatterParseError as exc:
        logger.warning("Failed to parse frontmatter: %s", exc.message)
        return ParsedNote(metadata={}, body=text)


def split_header(text: str) -> tuple[str, str]:
    """Raw ``---`` header block and body of *text*, without parsing the YAML.

    The header is returned even when it is malformed, so a caller that
    only edits the body can keep it in place byte for byte.
    """
    match = _FRONTMATTER_RE.match(text)
    if match is None:
        return "", text
    return text[: match.end()], text[match.end():]


def _plain(value: Any) -> Any:
    """Convert enums, tuples and sets into types ``yaml.safe_dump`` accepts."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    return value


def generate(metadata: Mapping[str, Any]) -> str:
    """Render *metadata* as a self-terminated ``---`` header block.

    Key order is preserved.  Strings that YAML would read back as another
    type (``"yes"``, ``"123"``, ISO timestamps, ...) are quoted.
    """
    if not metadata:
        return "---\n---\n"
    dumped = yaml.safe_dump(
        _plain(metadata),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )
    return f"---\n{dumped}---\n"


def render(metadata: Mapping[str, Any], body: str) -> str:
    """Full note text: header block followed by *body*."""
    return generate(metadata) + body


def update(text: str, partial: Mapping[str, Any]) -> str:
    """Shallow-merge *partial* into the header of *text*.

    Keys in *partial* are added or replaced; every other key, known or not,
    is kept with its original value.  The body is re-attached untouched.
    """
    parsed = parse(text)
    merged = {**parsed.metadata, **partial}
    return render(merged, parsed.body)


# --------------------------------------------------------------------------- #
#  Field helpers                                                               #
# --------------------------------------------------------------------------- #

def extract_tags(value: Any) -> list[str]:
    """Tags from a list of strings, a comma-delimited string or a metadata map.

    Non-string list entries and empty fragments are dropped.
    """
    if isinstance(value, Mapping):
        value = value.get("tags")
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, (list, tuple)):
        return [tag for tag in value if isinstance(tag, str)]
    return []


def _is_date_field(key: str) -> bool:
    return key in DATE_FIELDS or key.endswith(("_date", "_at"))


def normalize_dates(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *metadata* with date-like fields as ISO-8601 strings.

    Values that cannot be read as a date are left as they are.
    """
    normalized = dict(metadata)
    for key, value in metadata.items():
        if not _is_date_field(key) or not value:
            continue
        parsed = parse_timestamp(value)
        if parsed is not None:
            normalized[key] = format_timestamp(parsed)
    return normalized


def normalize_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of a header read from disk, in the shape the schemas expect.

    Notes edited by hand may carry ``tags`` as one comma-delimited string
    and dates as bare YAML dates; both are converted.
    """
    normalized = normalize_dates(metadata)
    if isinstance(normalized.get("tags"), str):
        normalized["tags"] = extract_tags(normalized["tags"])
    return normalized


def generate_slug(title: str) -> str:
    """File-name slug: lower-case ``[a-z0-9-]`` only, at most 50 characters."""
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:50]


# --------------------------------------------------------------------------- #
#  Wikilinks                                                                   #
# --------------------------------------------------------------------------- #

def generate_wikilink(target: str, alias: str | None = None) -> str:
    return WikiLink(target, alias).render()


def extract_wikilinks(text: str) -> list[WikiLink]:
    """Every ``[[target]]`` / ``[[target|alias]]`` reference in *text*, in order."""
    return [
        WikiLink(target=m.group(1).strip(), alias=m.group(2))
        for m in _WIKILINK_RE.finditer(text)
    ]


# --------------------------------------------------------------------------- #
#  Markdown helpers                                                            #
# --------------------------------------------------------------------------- #

def _cell(value: Any) -> str:
    return str(value).replace("|", "\\|").replace("\n", " ")


def generate_markdown_table(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """A pipe table, or an empty string when there are no rows."""
    rows = list(rows)
    if not rows:
        return ""
    lines = [
        "| " + " | ".join(_cell(h) for h in headers) + " |",
        "| " + " | ".join("---" for _ in headers) + " |",
    ]
    lines.extend("| " + " | ".join(_cell(c) for c in row) + " |" for row in rows)
    return "\n".join(lines)


def generate_checkbox_list(items: Sequence[str], checked: Sequence[bool] = ()) -> str:
    """``- [ ] item`` lines; ``checked[i]`` ticks item *i*."""
    lines = []
    for index, item in enumerate(items):
        mark = "x" if index < len(checked) and checked[index] else " "
        lines.append(f"- [{mark}] {item}")
    return "\n".join(lines)
