"""Domain exceptions for the sales vault.

All domain-specific exceptions inherit from ``SalesVaultError`` so callers
can catch the full family with a single ``except`` clause when needed.

Only stage-transition violations are raised in normal operation.  Parse
failures are recovered inside the frontmatter codec, validation failures and
missing entities are reported as results by the document store, and the
exceptions below exist for the strict entry points that opt into raising.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .values import ValidationIssue


class SalesVaultError(Exception):
    """Base exception for all sales vault errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}


class FrontmatterParseError(SalesVaultError):
    """Raised when a note header is present but is not a YAML mapping."""

    def __init__(
        self,
        message: str = "Malformed frontmatter",
        line: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.line = line


class EntityValidationError(SalesVaultError):
    """Raised when an entity or input fails one or more validation rules.

    ``issues`` holds every violation found in a single pass.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        issues: list[ValidationIssue] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.issues: list[ValidationIssue] = list(issues or [])


class EntityNotFoundError(SalesVaultError):
    """Raised when a referenced entity file does not exist."""

    def __init__(
        self,
        message: str = "Entity not found",
        kind: str = "",
        entity_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.kind = kind
        self.entity_id = entity_id


class IllegalTransitionError(SalesVaultError):
    """Raised when a stage change is not an edge of the stage graph.

    The request is rejected as a whole; the store never moves a prospect to
    the nearest legal stage instead.
    """

    def __init__(
        self,
        message: str = "Illegal stage transition",
        from_stage: str = "",
        to_stage: str = "",
        entity_id: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.entity_id = entity_id


class ConfigError(SalesVaultError, ValueError):
    """Raised when a configuration file cannot be loaded."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        path: str = "",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path
