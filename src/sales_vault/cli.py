"""Command-line interface for the sales vault.

Entry point
-----------
The ``main()`` function is registered as a console script in
``pyproject.toml``::

    [project.scripts]
    sales-vault = "sales_vault.cli:main"

Usage examples::

    sales-vault --vault ~/Vault init
    sales-vault --vault ~/Vault list prospect --stage contacted
    sales-vault --config vault.yaml move 3f2c... interested --reason "asked for a demo"
    sales-vault --vault ~/Vault reconcile
    sales-vault --vault ~/Vault metrics --format json
    sales-vault --vault ~/Vault check

Without ``--vault`` or ``--config`` the vault is taken from the
``SALES_VAULT_PATH`` environment variable.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from typing import TYPE_CHECKING, Any, cast

from rich.console import Console
from rich.logging import RichHandler

from sales_vault.domain.enums import EntityKind, PipelineStage, TransitionTrigger
from sales_vault.domain.exceptions import IllegalTransitionError, SalesVaultError
from sales_vault.domain.models import Prospect
from sales_vault.infrastructure.config import VaultConfig, load_config
from sales_vault.infrastructure.event_bus import EventBus, EventStore

if TYPE_CHECKING:
    from sales_vault.services.document_store import DocumentStore


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="sales-vault",
        description="Sales pipeline stored as markdown notes in a knowledge vault.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        default=False,
        help="Show version and exit.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--vault", type=str, default=None, help="Vault root folder.")
    source.add_argument(
        "--config",
        type=str,
        default=None,
        help="Configuration file (.json, .yaml or .yml).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level. (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available subcommands")

    # -- init --------------------------------------------------------------
    subparsers.add_parser(
        "init",
        help="Create vault folders and seed templates.",
    )

    # -- list --------------------------------------------------------------
    list_parser = subparsers.add_parser("list", help="List entities of one kind.")
    list_parser.add_argument("kind", choices=[k.value for k in EntityKind])
    list_parser.add_argument(
        "--stage",
        type=str,
        default=None,
        choices=[s.value for s in PipelineStage],
        help="Only prospects in this pipeline stage.",
    )
    list_parser.add_argument(
        "--format", type=str, default="table", choices=["table", "json"],
        help="Output format. (default: table)",
    )

    # -- sync --------------------------------------------------------------
    subparsers.add_parser("sync", help="Rebuild the Kanban board from the prospects.")

    # -- move --------------------------------------------------------------
    move_parser = subparsers.add_parser("move", help="Move a prospect to another stage.")
    move_parser.add_argument("prospect_id")
    move_parser.add_argument("to_stage", choices=[s.value for s in PipelineStage])
    move_parser.add_argument("--reason", type=str, default="", help="Why the prospect moved.")

    # -- reconcile ---------------------------------------------------------
    subparsers.add_parser(
        "reconcile",
        help="Apply cards moved on the board to the prospect notes.",
    )

    # -- metrics -----------------------------------------------------------
    metrics_parser = subparsers.add_parser("metrics", help="Show pipeline metrics.")
    metrics_parser.add_argument(
        "--format", type=str, default="table", choices=["table", "json"],
        help="Output format. (default: table)",
    )

    # -- dashboard ---------------------------------------------------------
    subparsers.add_parser("dashboard", help="Write the pipeline dashboard note.")

    # -- daily-note --------------------------------------------------------
    daily_parser = subparsers.add_parser(
        "daily-note", help="Write the sales section of a daily note."
    )
    daily_parser.add_argument("--summary", type=str, required=True)
    daily_parser.add_argument(
        "--date", type=date.fromisoformat, default=None,
        help="Day of the note, YYYY-MM-DD. (default: today)",
    )

    # -- check -------------------------------------------------------------
    subparsers.add_parser("check", help="Validate every entity note in the vault.")

    # -- info --------------------------------------------------------------
    subparsers.add_parser("info", help="Show version and resolved vault paths.")

    return parser


# =========================================================================
# Wiring
# =========================================================================

def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False)],
    )


def _load_config(args: argparse.Namespace) -> VaultConfig:
    if args.config:
        return load_config(args.config)
    if args.vault:
        return VaultConfig.from_dict({"vault_path": args.vault})
    return VaultConfig.from_env()


def _make_store(args: argparse.Namespace, bus: EventBus | None = None) -> DocumentStore:
    from sales_vault.services.document_store import DocumentStore

    return DocumentStore(_load_config(args), event_bus=bus)


# =========================================================================
# Subcommand handlers
# =========================================================================

def _cmd_init(args: argparse.Namespace) -> int:
    """Handle the ``init`` subcommand."""
    store = _make_store(args)
    created = store.initialize()
    print(f"Vault ready at {store.config.root} ({len(created)} paths created)")
    for path in created:
        print(f"  + {path}")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    """Handle the ``list`` subcommand."""
    from sales_vault.presentation.console import ConsoleView

    store = _make_store(args)
    predicate = None
    if args.stage is not None:
        stage = PipelineStage(args.stage)

        def predicate(entity: Any) -> bool:
            return isinstance(entity, Prospect) and entity.pipeline_stage is stage

    entities = store.list(args.kind, predicate)
    if args.format == "json":
        payload = [{**e.to_frontmatter(), "file_path": e.file_path} for e in entities]
        print(json.dumps(payload, indent=2, default=str))
    else:
        ConsoleView(bands=store.config.bands).print_entities(entities)
    return 0


def _cmd_sync(args: argparse.Namespace) -> int:
    """Handle the ``sync`` subcommand."""
    from sales_vault.services.kanban import KanbanSynchronizer

    sync = KanbanSynchronizer(_make_store(args))
    count = sync.sync_all()
    print(f"Board {sync.board_path} synced with {count} cards")
    return 0


def _cmd_move(args: argparse.Namespace) -> int:
    """Handle the ``move`` subcommand."""
    from sales_vault.services.kanban import KanbanSynchronizer

    bus = EventBus()
    history = EventStore()
    history.attach(bus)
    store = _make_store(args, bus)
    prospect = cast(Prospect, store.require(EntityKind.PROSPECT, args.prospect_id))

    sync = KanbanSynchronizer(store)
    try:
        moved = sync.handle_stage_transition(
            prospect.id,
            prospect.pipeline_stage,
            args.to_stage,
            triggered_by=TransitionTrigger.MANUAL,
            reason=args.reason,
        )
    except IllegalTransitionError as exc:
        allowed = ", ".join(exc.details.get("allowed", [])) or "none"
        print(f"Error: {exc.message} (allowed: {allowed})", file=sys.stderr)
        return 1
    if not moved:
        print(f"Error: prospect {args.prospect_id} could not be updated", file=sys.stderr)
        return 1
    print(
        f"{prospect.name}: {prospect.pipeline_stage.value} -> {args.to_stage} "
        f"({len(history)} events)"
    )
    return 0


def _cmd_reconcile(args: argparse.Namespace) -> int:
    """Handle the ``reconcile`` subcommand."""
    from sales_vault.presentation.console import ConsoleView
    from sales_vault.services.kanban import KanbanSynchronizer

    report = KanbanSynchronizer(_make_store(args)).apply_board_changes()
    ConsoleView().print_reconcile(report)
    return 1 if report.rejected else 0


def _cmd_metrics(args: argparse.Namespace) -> int:
    """Handle the ``metrics`` subcommand."""
    from sales_vault.presentation.console import ConsoleView
    from sales_vault.services.kanban import KanbanSynchronizer

    store = _make_store(args)
    metrics = KanbanSynchronizer(store).compute_metrics()
    if args.format == "json":
        print(json.dumps(metrics.to_dict(), indent=2))
    else:
        ConsoleView(bands=store.config.bands).print_metrics(metrics)
    return 0


def _cmd_dashboard(args: argparse.Namespace) -> int:
    """Handle the ``dashboard`` subcommand."""
    from sales_vault.services.dashboard import DashboardWriter

    path = DashboardWriter(_make_store(args)).write()
    print(f"Dashboard written to {path}")
    return 0


def _cmd_daily_note(args: argparse.Namespace) -> int:
    """Handle the ``daily-note`` subcommand."""
    store = _make_store(args)
    day = args.date or store.now().date()
    path = store.append_daily_note(day, args.summary)
    print(f"Daily note updated: {path}")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    """Handle the ``check`` subcommand."""
    from sales_vault.presentation.console import ConsoleView

    store = _make_store(args)
    view = ConsoleView(bands=store.config.bands)
    checked = invalid = 0
    for kind in EntityKind:
        for path, result in store.check(kind):
            checked += 1
            if result.is_valid:
                continue
            invalid += 1
            view.console.print(f"[bold]{path}[/bold]")
            view.print_issues(result.errors)
    print(f"{checked} notes checked, {invalid} invalid")
    return 1 if invalid else 0


def _cmd_info(args: argparse.Namespace) -> int:
    """Handle the ``info`` subcommand."""
    from sales_vault import __version__

    print(f"Sales Vault v{__version__}")
    print()
    try:
        config = _load_config(args)
    except SalesVaultError as exc:
        print(f"Vault: not configured ({exc.message})")
        return 0

    print(f"Vault: {config.root}")
    for label, path in (
        ("prospects", config.prospects_dir),
        ("campaigns", config.campaigns_dir),
        ("activities", config.activities_dir),
        ("templates", config.templates_dir),
        ("board", config.kanban_file),
        ("dashboard", config.dashboard_file),
        ("daily notes", config.daily_notes_dir),
    ):
        marker = "ok" if path.exists() else "missing"
        print(f"  {label:<12} {path} [{marker}]")
    bands = config.bands
    print()
    print(f"Qualification bands: high>={bands.high:g} medium>={bands.medium:g} low>={bands.low:g}")
    return 0


# =========================================================================
# Main entry point
# =========================================================================

def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parameters
    ----------
    argv:
        Command-line arguments.  Defaults to ``sys.argv[1:]``.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        from sales_vault import __version__
        print(f"sales-vault {__version__}")
        sys.exit(0)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    _configure_logging(args.log_level)

    handlers: dict[str, Any] = {
        "init": _cmd_init,
        "list": _cmd_list,
        "sync": _cmd_sync,
        "move": _cmd_move,
        "reconcile": _cmd_reconcile,
        "metrics": _cmd_metrics,
        "dashboard": _cmd_dashboard,
        "daily-note": _cmd_daily_note,
        "check": _cmd_check,
        "info": _cmd_info,
    }

    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        exit_code = 130
    except SalesVaultError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        exit_code = 1
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)
