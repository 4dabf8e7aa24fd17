"""Infrastructure layer for the sales vault.

Re-exports the public API surface for convenience::

    from sales_vault.infrastructure import (
        VaultConfig, load_config, EventBus, EventStore,
        validate_frontmatter, validate_input,
    )

The frontmatter codec is used as a module::

    from sales_vault.infrastructure import frontmatter
    note = frontmatter.parse(text)
"""

from sales_vault.infrastructure import frontmatter
from sales_vault.infrastructure.config import VaultConfig, load_config
from sales_vault.infrastructure.event_bus import EventBus, EventStore
from sales_vault.infrastructure.templates import TemplateLoader, substitute
from sales_vault.infrastructure.validation import (
    is_legal_transition,
    parse_input,
    validate_frontmatter,
    validate_input,
    validate_update_input,
)

__all__ = [
    # Codec
    "frontmatter",
    # Configuration
    "VaultConfig",
    "load_config",
    # Events
    "EventBus",
    "EventStore",
    # Templates
    "TemplateLoader",
    "substitute",
    # Validation
    "is_legal_transition",
    "parse_input",
    "validate_frontmatter",
    "validate_input",
    "validate_update_input",
]
