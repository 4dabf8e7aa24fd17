"""Tests for the rich console view."""

from __future__ import annotations

import io

from sales_vault.domain.pipeline import QualificationBands
from sales_vault.presentation.console import ConsoleView


class TestScoreColours:
    """Score colours follow the qualification bands in use."""

    def test_default_bands(self) -> None:
        view = ConsoleView(file=io.StringIO())
        assert view._score_colour(85) == "green"
        assert view._score_colour(65) == "yellow"
        assert view._score_colour(35) == "orange3"
        assert view._score_colour(10) == "red"

    def test_configured_bands(self) -> None:
        view = ConsoleView(file=io.StringIO(), bands=QualificationBands(high=50, medium=40, low=20))
        assert view._score_colour(55) == "green"
        assert view._score_colour(45) == "yellow"
        assert view._score_colour(25) == "orange3"
        assert view._score_colour(15) == "red"

    def test_metrics_table_renders(self, sync, make_prospect) -> None:
        make_prospect()
        out = io.StringIO()
        ConsoleView(file=out).print_metrics(sync.compute_metrics())
        assert "Pipeline (1 prospects)" in out.getvalue()
