"""Service layer for the sales vault.

Re-exports the public service types::

    from sales_vault.services import (
        DocumentStore, KanbanSynchronizer, DashboardWriter,
    )
"""

from sales_vault.services.dashboard import DashboardWriter
from sales_vault.services.document_store import DocumentStore, replace_section
from sales_vault.services.kanban import (
    LANE_TO_STAGE,
    STAGE_LANES,
    KanbanSynchronizer,
    ReconcileReport,
    conversion_rate,
    generate_card,
    swap_stage_tag,
)

__all__ = [
    # Store
    "DocumentStore",
    "replace_section",
    # Kanban
    "KanbanSynchronizer",
    "ReconcileReport",
    "STAGE_LANES",
    "LANE_TO_STAGE",
    "conversion_rate",
    "generate_card",
    "swap_stage_tag",
    # Dashboard
    "DashboardWriter",
]
