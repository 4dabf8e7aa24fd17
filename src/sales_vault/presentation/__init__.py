"""Presentation layer for the sales vault.

Public API
----------
- :class:`ConsoleView` -- rich tables for metrics, listings and board
  reconciliation reports
"""

from sales_vault.presentation.console import ConsoleView

__all__ = [
    "ConsoleView",
]
