"""Kanban board projection of the prospect pipeline.

The board is a single markdown note with one ``## <lane>`` section per
pipeline stage, in the format of the Obsidian Kanban plugin.  It is owned by
this module and rebuilt in full from the prospect notes on every sync, so a
damaged or hand-mangled board heals on the next sync instead of drifting.

Changes flow both ways:

* entity to board: :meth:`KanbanSynchronizer.sync_all`;
* board to entity: :meth:`KanbanSynchronizer.detect_board_changes` finds
  cards dragged to another lane and :meth:`apply_board_changes` replays them
  as stage transitions.  Illegal moves are reported, not applied, and snap
  back on the closing sync.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from sales_vault.domain.enums import (
    ActivityOutcome,
    ActivityType,
    AgentType,
    EntityKind,
    Industry,
    PipelineStage,
    QualificationLevel,
    TransitionTrigger,
)
from sales_vault.domain.events import BoardSynced, StageTransitioned
from sales_vault.domain.exceptions import IllegalTransitionError
from sales_vault.domain.models import Prospect, format_timestamp
from sales_vault.domain.pipeline import (
    DEFAULT_BANDS,
    STAGE_ORDER,
    TERMINAL_STAGES,
    QualificationBands,
    require_legal_transition,
    score_adjustment,
)
from sales_vault.domain.values import BoardChange, PipelineMetrics, StageTransition
from sales_vault.infrastructure import frontmatter
from sales_vault.infrastructure.files import atomic_write_text, read_text
from sales_vault.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Board vocabulary
# ---------------------------------------------------------------------------

STAGE_LANES: Mapping[PipelineStage, str] = {
    PipelineStage.COLD: "🧊 Cold",
    PipelineStage.CONTACTED: "📞 Contacted",
    PipelineStage.INTERESTED: "💬 Interested",
    PipelineStage.QUALIFIED: "✅ Qualified",
    PipelineStage.CLOSED_WON: "💰 Closed Won",
    PipelineStage.CLOSED_LOST: "❌ Closed Lost",
    PipelineStage.FROZEN: "❄️ Frozen",
}

LANE_TO_STAGE: Mapping[str, PipelineStage] = {label: stage for stage, label in STAGE_LANES.items()}

INDUSTRY_EMOJI: Mapping[Industry, str] = {
    Industry.RESTAURANTS: "🍽️",
    Industry.RETAIL: "🛍️",
    Industry.PROFESSIONAL_SERVICES: "💼",
    Industry.HEALTHCARE: "🏥",
    Industry.REAL_ESTATE: "🏠",
    Industry.AUTOMOTIVE: "🚗",
    Industry.HOME_SERVICES: "🔧",
    Industry.FITNESS: "💪",
    Industry.BEAUTY_SALONS: "💄",
    Industry.LEGAL_SERVICES: "⚖️",
    Industry.OTHER: "🏢",
}

LEVEL_MARKERS: Mapping[QualificationLevel, str] = {
    QualificationLevel.HIGH: "🔥",
    QualificationLevel.MEDIUM: "⭐",
    QualificationLevel.LOW: "👍",
    QualificationLevel.DISQUALIFIED: "🆕",
}

#: Stage pairs reported by ``compute_metrics`` as conversion rates.
CONVERSION_PAIRS: tuple[tuple[PipelineStage, PipelineStage], ...] = (
    (PipelineStage.COLD, PipelineStage.CONTACTED),
    (PipelineStage.CONTACTED, PipelineStage.INTERESTED),
    (PipelineStage.INTERESTED, PipelineStage.QUALIFIED),
    (PipelineStage.QUALIFIED, PipelineStage.CLOSED_WON),
)

DEFAULT_BOARD_HEADER = {"kanban-plugin": "basic"}

SETTINGS_BLOCK = (
    "%% kanban:settings\n"
    "```\n"
    '{"kanban-plugin":"basic"}\n'
    "```\n"
    "%%\n"
)

_LANE_RE = re.compile(r"^##[ \t]+(?P<label>.+?)[ \t]*$")
_CARD_RE = re.compile(r"^[ \t]*- \[[ xX]\][ \t]")


def _format_score(total: float) -> str:
    return str(int(total)) if float(total).is_integer() else f"{total:.1f}"


def _tag(tag: str) -> str:
    return "#" + re.sub(r"\s+", "-", tag.strip())


def _link_alias(name: str) -> str:
    """*name* without the characters that end a wikilink alias."""
    return " ".join(re.sub(r"[\[\]|]", " ", name).split())


def generate_card(prospect: Prospect, bands: QualificationBands = DEFAULT_BANDS) -> str:
    """One-line board card for *prospect*."""
    biz = prospect.business
    marker = LEVEL_MARKERS[prospect.qualification_level(bands)]
    link = frontmatter.generate_wikilink(prospect.file_stem, _link_alias(biz.name))
    tags = " ".join(_tag(t) for t in prospect.tags if t.strip())
    updated = prospect.updated.date().isoformat() if prospect.updated else "unknown"
    parts = [
        f"- [ ] {INDUSTRY_EMOJI.get(biz.industry, '🏢')} **{link}**",
        f"🏷️ {tags}",
        f"📍 {biz.location.display}",
        f"⭐ Score: {_format_score(prospect.qualification_score.total)}/100 {marker}",
        f"📅 Updated: {updated}",
    ]
    return "<br/>".join(parts)


def swap_stage_tag(
    tags: Sequence[str], from_stage: PipelineStage, to_stage: PipelineStage
) -> list[str]:
    """Replace the *from_stage* tag with *to_stage*, keeping the rest in order."""
    swapped = [t for t in tags if t != from_stage.value]
    if to_stage.value not in swapped:
        swapped.append(to_stage.value)
    return swapped


@dataclass(frozen=True)
class ReconcileReport:
    """Outcome of replaying board moves onto prospect notes."""

    applied: tuple[BoardChange, ...] = ()
    rejected: tuple[tuple[BoardChange, str], ...] = ()
    orphaned: tuple[str, ...] = field(default_factory=tuple)


class KanbanSynchronizer:
    """Keeps the Kanban board and the prospects' ``pipeline_stage`` in step.

    Parameters
    ----------
    store:
        Document store holding the prospects; its config names the board
        file and its event bus (if any) receives ``StageTransitioned`` and
        ``BoardSynced``.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._config = store.config

    @property
    def board_path(self) -> Path:
        return self._config.kanban_file

    def generate_card(self, prospect: Prospect) -> str:
        return generate_card(prospect, self._config.bands)

    def _prospects(self) -> list[Prospect]:
        return [p for p in self._store.list(EntityKind.PROSPECT) if isinstance(p, Prospect)]

    # ------------------------------------------------------------------ #
    #  Entity -> board                                                     #
    # ------------------------------------------------------------------ #

    def render_board(self, prospects: Sequence[Prospect], header: str | None = None) -> str:
        """Full board text for *prospects*; deterministic for a given input."""
        by_stage: dict[PipelineStage, list[Prospect]] = defaultdict(list)
        for prospect in prospects:
            by_stage[prospect.pipeline_stage].append(prospect)

        lines: list[str] = []
        for stage in STAGE_ORDER:
            lines.append(f"## {STAGE_LANES[stage]}")
            lines.append("")
            cards = sorted(
                by_stage.get(stage, []),
                key=lambda p: (-p.qualification_score.total, p.name.lower(), p.id),
            )
            for prospect in cards:
                lines.append(self.generate_card(prospect))
            if cards:
                lines.append("")
            lines.append("")

        head = header if header is not None else frontmatter.generate(DEFAULT_BOARD_HEADER)
        return head + "\n" + "\n".join(lines) + SETTINGS_BLOCK

    def _existing_header(self) -> str | None:
        text = read_text(self.board_path)
        if text is None:
            return None
        note = frontmatter.parse(text)
        if not note.has_frontmatter:
            return None
        return text[: len(text) - len(note.body)]

    def sync_all(self) -> int:
        """Rebuild the whole board from the prospect notes.

        Returns the number of cards written.  Two syncs with no change in
        between produce byte-identical boards.
        """
        prospects = self._prospects()
        text = self.render_board(prospects, self._existing_header())
        if read_text(self.board_path) != text:
            atomic_write_text(self.board_path, text)
        logger.info("Synced %d prospects to board %s", len(prospects), self.board_path)
        if self._store.event_bus is not None:
            self._store.event_bus.publish(BoardSynced(
                source_id="kanban", card_count=len(prospects), board_path=str(self.board_path),
            ))
        return len(prospects)

    # ------------------------------------------------------------------ #
    #  Stage transitions                                                   #
    # ------------------------------------------------------------------ #

    def handle_stage_transition(
        self,
        prospect_id: str,
        from_stage: PipelineStage | str,
        to_stage: PipelineStage | str,
        timestamp: datetime | None = None,
        triggered_by: TransitionTrigger | str = TransitionTrigger.MANUAL,
        reason: str = "",
    ) -> bool:
        """Move one prospect along an edge of the stage graph.

        Returns ``False`` when the prospect cannot be found (or its note
        cannot be updated) and ``True`` once the move is persisted.

        Raises
        ------
        IllegalTransitionError
            If the move is not a legal edge, or *from_stage* is not the
            prospect's stored stage.  Nothing is written in that case.
        """
        return self._transition(
            prospect_id, from_stage, to_stage, timestamp,
            TransitionTrigger(triggered_by), reason,
            sync_board=self._config.auto_sync_board,
        )

    def _transition(
        self,
        prospect_id: str,
        from_stage: PipelineStage | str,
        to_stage: PipelineStage | str,
        timestamp: datetime | None,
        triggered_by: TransitionTrigger,
        reason: str,
        sync_board: bool,
    ) -> bool:
        require_legal_transition(from_stage, to_stage, prospect_id)
        src, dst = PipelineStage(from_stage), PipelineStage(to_stage)

        prospect = self._store.get(EntityKind.PROSPECT, prospect_id)
        if not isinstance(prospect, Prospect):
            logger.warning("Stage transition for unknown prospect %s ignored", prospect_id)
            return False
        if prospect.pipeline_stage is not src:
            raise IllegalTransitionError(
                f"Prospect {prospect_id} is in '{prospect.pipeline_stage.value}', "
                f"not '{src.value}'",
                from_stage=src.value,
                to_stage=dst.value,
                entity_id=prospect_id,
                details={"stored_stage": prospect.pipeline_stage.value},
            )

        transition = StageTransition(
            prospect_id=prospect.id,
            from_stage=src,
            to_stage=dst,
            timestamp=timestamp or self._store.now(),
            triggered_by=triggered_by,
            reason=reason,
        )
        result = self._store.update(
            EntityKind.PROSPECT,
            prospect.id,
            {"pipeline_stage": dst.value, "tags": swap_stage_tag(prospect.tags, src, dst)},
            expected_updated=prospect.updated,
            update_reason=reason or f"stage {transition.key}",
        )
        if not result:
            logger.warning("Stage transition %s for %s not applied: %s",
                           transition.key, prospect_id, result.error)
            return False

        logger.info("Stage transition %s for %s (%s)", transition.key, prospect_id,
                    triggered_by.value)
        if self._config.log_stage_transitions:
            self._log_transition(transition)
        if self._store.event_bus is not None:
            self._store.event_bus.publish(StageTransitioned(
                timestamp=transition.timestamp.timestamp(),
                source_id="kanban",
                prospect_id=prospect.id,
                from_stage=src,
                to_stage=dst,
                triggered_by=triggered_by,
                reason=reason,
            ))
        if sync_board:
            self.sync_all()
        return True

    def _log_transition(self, transition: StageTransition) -> None:
        src, dst = transition.from_stage, transition.to_stage
        notes = f"Stage transition triggered by: {transition.triggered_by.value}"
        if transition.reason:
            notes += f". Reason: {transition.reason}"
        manual = transition.triggered_by is TransitionTrigger.MANUAL
        result = self._store.create(EntityKind.ACTIVITY, {
            "prospect_id": transition.prospect_id,
            "activity_type": ActivityType.NOTE.value,
            "outcome": (
                ActivityOutcome.NEGATIVE.value if dst is PipelineStage.CLOSED_LOST
                else ActivityOutcome.POSITIVE.value
            ),
            "agent_responsible": (
                AgentType.HUMAN_SALES_REP.value if manual
                else AgentType.SALES_ORCHESTRATOR_AGENT.value
            ),
            "summary": f"Pipeline stage changed: {src.value} → {dst.value}",
            "notes": notes,
            "date": format_timestamp(transition.timestamp),
            "stage_change_from": src.value,
            "stage_change_to": dst.value,
            "qualification_score_change": score_adjustment(src, dst),
        })
        if not result:
            logger.warning("Could not record stage-change activity for %s: %s",
                           transition.prospect_id, result.error)

    # ------------------------------------------------------------------ #
    #  Board -> entity                                                     #
    # ------------------------------------------------------------------ #

    def read_lanes(self, text: str | None = None) -> dict[PipelineStage, list[str]]:
        """Wikilink targets of the cards in each lane of the board."""
        if text is None:
            text = read_text(self.board_path) or ""
        lanes: dict[PipelineStage, list[str]] = {stage: [] for stage in STAGE_ORDER}
        current: PipelineStage | None = None
        for line in frontmatter.parse(text).body.splitlines():
            lane = _LANE_RE.match(line)
            if lane is not None:
                current = LANE_TO_STAGE.get(lane.group("label"))
                if current is None:
                    logger.debug("Ignoring unknown board lane '%s'", lane.group("label"))
                continue
            if current is None or not _CARD_RE.match(line):
                continue
            links = frontmatter.extract_wikilinks(line)
            if links:
                lanes[current].append(links[0].target)
        return lanes

    def detect_board_changes(self) -> tuple[list[BoardChange], list[str]]:
        """Cards whose lane disagrees with their prospect's stored stage.

        Returns ``(changes, orphaned)`` where *orphaned* lists card targets
        that match no prospect.
        """
        prospects = self._prospects()
        by_ref: dict[str, Prospect] = {}
        for prospect in prospects:
            by_ref.setdefault(prospect.id, prospect)
            by_ref.setdefault(prospect.file_stem, prospect)

        seen: dict[str, list[PipelineStage]] = defaultdict(list)
        orphaned: list[str] = []
        for stage, targets in self.read_lanes().items():
            for target in targets:
                prospect = by_ref.get(target)
                if prospect is None:
                    logger.warning("Board card [[%s]] matches no prospect", target)
                    orphaned.append(target)
                    continue
                seen[prospect.id].append(stage)

        changes = []
        for prospect in prospects:
            lanes = seen.get(prospect.id)
            if not lanes or prospect.pipeline_stage in lanes:
                continue
            changes.append(BoardChange(
                prospect_id=prospect.id,
                file_stem=prospect.file_stem,
                from_stage=prospect.pipeline_stage,
                to_stage=lanes[0],
                business_name=prospect.name,
            ))
        return changes, orphaned

    def apply_board_changes(
        self, triggered_by: TransitionTrigger | str = TransitionTrigger.MANUAL
    ) -> ReconcileReport:
        """Replay board moves onto the prospect notes, then resync the board.

        Legal moves are applied; illegal ones are collected in the report and
        undone on the board by the closing :meth:`sync_all`.
        """
        trigger = TransitionTrigger(triggered_by)
        changes, orphaned = self.detect_board_changes()
        applied: list[BoardChange] = []
        rejected: list[tuple[BoardChange, str]] = []
        for change in changes:
            try:
                ok = self._transition(
                    change.prospect_id, change.from_stage, change.to_stage,
                    None, trigger, "moved on board", sync_board=False,
                )
            except IllegalTransitionError as exc:
                logger.warning("Rejected board move: %s", exc.message)
                rejected.append((change, exc.message))
                continue
            if ok:
                applied.append(change)
            else:
                rejected.append((change, "prospect could not be updated"))
        self.sync_all()
        return ReconcileReport(
            applied=tuple(applied), rejected=tuple(rejected), orphaned=tuple(orphaned)
        )

    # ------------------------------------------------------------------ #
    #  Metrics                                                             #
    # ------------------------------------------------------------------ #

    def compute_metrics(self, now: datetime | None = None) -> PipelineMetrics:
        """Counts, average scores, conversion rates and stagnant prospects."""
        now = now or self._store.now()
        prospects = self._prospects()

        counts = {stage: 0 for stage in STAGE_ORDER}
        scores: dict[PipelineStage, list[float]] = {stage: [] for stage in STAGE_ORDER}
        for prospect in prospects:
            counts[prospect.pipeline_stage] += 1
            scores[prospect.pipeline_stage].append(prospect.qualification_score.total)

        averages = {
            stage: round(sum(values) / len(values), 1) if values else 0.0
            for stage, values in scores.items()
        }
        rates = {
            f"{src.value}->{dst.value}": conversion_rate(counts[src], counts[dst])
            for src, dst in CONVERSION_PAIRS
        }
        threshold = self._config.stagnant_after_days * 86400
        stagnant = sorted(
            p.id for p in prospects
            if p.pipeline_stage not in TERMINAL_STAGES
            and p.updated is not None
            and (now - p.updated).total_seconds() >= threshold
        )
        return PipelineMetrics(
            count_by_stage=counts,
            average_score_by_stage=averages,
            conversion_rates=rates,
            stagnant_prospect_ids=tuple(stagnant),
        )


def conversion_rate(from_count: int, to_count: int) -> int:
    """``to / (from + to)`` as a whole percentage; 0 when *from_count* is 0."""
    if from_count == 0:
        return 0
    return round(to_count / (from_count + to_count) * 100)


__all__ = [
    "INDUSTRY_EMOJI",
    "LANE_TO_STAGE",
    "LEVEL_MARKERS",
    "STAGE_LANES",
    "KanbanSynchronizer",
    "ReconcileReport",
    "conversion_rate",
    "generate_card",
    "swap_stage_tag",
]
