"""Sales Vault.

File-backed sales pipeline for a markdown knowledge vault: prospects,
campaigns and activities stored as notes with YAML frontmatter, a stage
state machine, and a Kanban board kept in step with the notes.
"""

__version__ = "0.1.0"

from sales_vault.infrastructure.config import VaultConfig, load_config
from sales_vault.services import DashboardWriter, DocumentStore, KanbanSynchronizer

__all__ = [
    "DashboardWriter",
    "DocumentStore",
    "KanbanSynchronizer",
    "VaultConfig",
    "load_config",
]
