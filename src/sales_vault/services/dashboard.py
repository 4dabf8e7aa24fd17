"""Pipeline dashboard note.

Renders :meth:`KanbanSynchronizer.compute_metrics` into the configured
dashboard note.  The body is regenerated on every write; the note's header
is merged, so keys added by hand survive.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from sales_vault.domain.enums import EntityKind
from sales_vault.domain.models import Prospect, format_timestamp
from sales_vault.domain.pipeline import STAGE_ORDER
from sales_vault.domain.values import PipelineMetrics
from sales_vault.infrastructure import frontmatter
from sales_vault.infrastructure.files import atomic_write_text, read_text
from sales_vault.services.document_store import DocumentStore
from sales_vault.services.kanban import STAGE_LANES, KanbanSynchronizer

logger = logging.getLogger(__name__)

TITLE = "Sales Pipeline Dashboard"


class DashboardWriter:
    """Writes pipeline metrics to ``config.dashboard_file``."""

    def __init__(
        self, store: DocumentStore, synchronizer: KanbanSynchronizer | None = None
    ) -> None:
        self._store = store
        self._sync = synchronizer or KanbanSynchronizer(store)

    @property
    def path(self) -> Path:
        return self._store.config.dashboard_file

    def render_body(self, metrics: PipelineMetrics, prospects: list[Prospect]) -> str:
        by_id = {p.id: p for p in prospects}

        distribution = frontmatter.generate_markdown_table(
            ["Stage", "Prospects"],
            [(STAGE_LANES[s], metrics.count_by_stage.get(s, 0)) for s in STAGE_ORDER],
        )
        averages = frontmatter.generate_markdown_table(
            ["Stage", "Average score"],
            [
                (STAGE_LANES[s], f"{metrics.average_score_by_stage.get(s, 0.0):.1f}")
                for s in STAGE_ORDER
            ],
        )
        conversions = frontmatter.generate_markdown_table(
            ["Conversion", "Rate"],
            [(key, f"{rate}%") for key, rate in metrics.conversion_rates.items()],
        )

        stagnant_lines = []
        for prospect_id in metrics.stagnant_prospect_ids:
            prospect = by_id.get(prospect_id)
            if prospect is None:
                stagnant_lines.append(f"- {prospect_id}")
                continue
            link = frontmatter.generate_wikilink(prospect.file_stem, prospect.name)
            last = prospect.updated.date().isoformat() if prospect.updated else "unknown"
            stagnant_lines.append(
                f"- {link} ({prospect.pipeline_stage.value}, last updated {last})"
            )
        stagnant = "\n".join(stagnant_lines) if stagnant_lines else "_None_"

        sections = [
            f"# {TITLE}",
            f"Total prospects: {metrics.total_prospects}",
            "## Stage Distribution\n\n" + distribution,
            "## Average Score by Stage\n\n" + averages,
            "## Conversion Rates\n\n" + (conversions or "_No data_"),
            "## Stagnant Prospects\n\n" + stagnant,
        ]
        return "\n\n".join(sections) + "\n"

    def write(self, now: datetime | None = None) -> Path:
        """Recompute metrics and rewrite the dashboard note."""
        now = now or self._store.now()
        prospects = [
            p for p in self._store.list(EntityKind.PROSPECT) if isinstance(p, Prospect)
        ]
        metrics = self._sync.compute_metrics(now)

        existing = read_text(self.path)
        meta = dict(frontmatter.parse(existing).metadata) if existing is not None else {}
        meta["type"] = "dashboard"
        meta["updated"] = format_timestamp(now)

        text = frontmatter.render(meta, self.render_body(metrics, prospects))
        atomic_write_text(self.path, text)
        logger.info("Wrote dashboard for %d prospects to %s", metrics.total_prospects, self.path)
        return self.path
