"""Rich console output for the ``sales-vault`` command line."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Any

from rich.console import Console
from rich.table import Table

from sales_vault.domain.enums import QualificationLevel
from sales_vault.domain.models import Activity, Campaign, Entity, Prospect
from sales_vault.domain.pipeline import (
    DEFAULT_BANDS,
    STAGE_ORDER,
    QualificationBands,
    derive_qualification_level,
)
from sales_vault.domain.values import PipelineMetrics, ValidationIssue
from sales_vault.services.kanban import ReconcileReport

_LEVEL_COLOURS = {
    QualificationLevel.HIGH: "green",
    QualificationLevel.MEDIUM: "yellow",
    QualificationLevel.LOW: "orange3",
    QualificationLevel.DISQUALIFIED: "red",
}


class ConsoleView:
    """Tables for metrics, entity listings and reconcile reports.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    bands:
        Qualification bands that pick the colour of a score.
    """

    def __init__(self, file: Any = None, bands: QualificationBands = DEFAULT_BANDS) -> None:
        self._console = Console(file=file or sys.stdout)
        self._bands = bands

    def _score_colour(self, score: float) -> str:
        return _LEVEL_COLOURS[derive_qualification_level(score, self._bands)]

    @property
    def console(self) -> Console:
        return self._console

    # -- metrics -------------------------------------------------------------

    def print_metrics(self, metrics: PipelineMetrics) -> None:
        table = Table(
            title=f"Pipeline ({metrics.total_prospects} prospects)",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Stage", style="bold")
        table.add_column("Prospects", justify="right")
        table.add_column("Avg score", justify="right")
        for stage in STAGE_ORDER:
            avg = metrics.average_score_by_stage.get(stage, 0.0)
            colour = self._score_colour(avg)
            table.add_row(
                stage.value,
                str(metrics.count_by_stage.get(stage, 0)),
                f"[{colour}]{avg:.1f}[/{colour}]",
            )
        self._console.print()
        self._console.print(table)

        if metrics.conversion_rates:
            rates = Table(title="Conversion rates", show_header=True, header_style="bold cyan")
            rates.add_column("Move", style="bold")
            rates.add_column("Rate", justify="right")
            for key, rate in metrics.conversion_rates.items():
                rates.add_row(key, f"{rate}%")
            self._console.print(rates)

        if metrics.stagnant_prospect_ids:
            self._console.print(
                f"[yellow]Stagnant:[/yellow] {', '.join(metrics.stagnant_prospect_ids)}"
            )
        self._console.print()

    # -- listings ------------------------------------------------------------

    def print_entities(self, entities: Sequence[Entity]) -> None:
        if not entities:
            self._console.print("[dim]No entities found.[/dim]")
            return
        first = entities[0]
        if isinstance(first, Prospect):
            table = self._prospect_table(entities)
        elif isinstance(first, Campaign):
            table = self._campaign_table(entities)
        else:
            table = self._activity_table(entities)
        self._console.print(table)

    def _prospect_table(self, prospects: Sequence[Any]) -> Table:
        table = Table(title="Prospects", show_header=True, header_style="bold cyan")
        for column in ("Id", "Business", "Industry", "Location", "Stage"):
            table.add_column(column)
        table.add_column("Score", justify="right")
        for p in prospects:
            if not isinstance(p, Prospect):
                continue
            score = p.qualification_score.total
            colour = self._score_colour(score)
            table.add_row(
                p.id[:8],
                p.name,
                p.business.industry.value,
                p.business.location.display,
                p.pipeline_stage.value,
                f"[{colour}]{score:g}[/{colour}]",
            )
        return table

    def _campaign_table(self, campaigns: Sequence[Any]) -> Table:
        table = Table(title="Campaigns", show_header=True, header_style="bold cyan")
        for column in ("Id", "Name", "Type", "Status", "Target"):
            table.add_column(column)
        for c in campaigns:
            if not isinstance(c, Campaign):
                continue
            target = ", ".join(v for v in (c.targeting.city, c.targeting.state) if v)
            table.add_row(c.id[:8], c.name, c.campaign_type.value, c.status.value, target)
        return table

    def _activity_table(self, activities: Sequence[Any]) -> Table:
        table = Table(title="Activities", show_header=True, header_style="bold cyan")
        for column in ("Date", "Prospect", "Type", "Outcome", "Agent", "Summary"):
            table.add_column(column)
        for a in activities:
            if not isinstance(a, Activity):
                continue
            table.add_row(
                a.date.date().isoformat() if a.date else "",
                a.prospect_id[:8],
                a.activity_type.value,
                a.outcome.value,
                a.agent_responsible.value,
                a.summary,
            )
        return table

    # -- reconcile / errors --------------------------------------------------

    def print_reconcile(self, report: ReconcileReport) -> None:
        for change in report.applied:
            self._console.print(
                f"[green]moved[/green] {change.business_name or change.prospect_id}: "
                f"{change.from_stage.value} -> {change.to_stage.value}"
            )
        for change, reason in report.rejected:
            self._console.print(
                f"[red]rejected[/red] {change.business_name or change.prospect_id}: "
                f"{change.from_stage.value} -> {change.to_stage.value} ({reason})"
            )
        for target in report.orphaned:
            self._console.print(f"[yellow]orphaned card[/yellow] [[{target}]]")
        if not (report.applied or report.rejected or report.orphaned):
            self._console.print("[dim]Board and prospects agree.[/dim]")

    def print_issues(self, issues: Sequence[ValidationIssue]) -> None:
        for issue in issues:
            self._console.print(f"  [red]{issue.field}[/red]: {issue.message} ({issue.code})")
