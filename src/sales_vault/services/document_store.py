"""File-backed CRUD for prospects, campaigns and activities.

Each entity is one markdown note under the folder configured for its kind.
The store never keeps an index: every read scans the folder, so edits made
by hand are always visible and there is no cache to invalidate.

Guarantees
----------
* A failed ``create`` or ``update`` leaves the filesystem exactly as it was.
* Writes are atomic (temp file plus rename); readers never see half a note.
* Updates merge into the existing header; keys the caller does not mention,
  including unknown extension keys, are preserved verbatim, and so is the
  note body.
* ``update(..., expected_updated=...)`` turns a lost update into a
  ``conflict`` result instead of silently overwriting a newer version.
* Any change of ``pipeline_stage`` is checked against the stage graph and
  rejected with ``IllegalTransitionError`` if it is not a legal edge.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable, Mapping
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from sales_vault.domain.enums import AgentType, CampaignStatus, EntityKind, PipelineStage
from sales_vault.domain.events import DomainEvent, EntityCreated, EntityDeleted, EntityUpdated
from sales_vault.domain.exceptions import EntityNotFoundError, SalesVaultError
from sales_vault.domain.models import (
    TYPE_DISCRIMINATORS,
    Activity,
    ActivityImpact,
    BusinessInfo,
    Campaign,
    CampaignMetrics,
    ContactInfo,
    DigitalPresence,
    Entity,
    Location,
    Prospect,
    SizeInfo,
    Targeting,
    entity_from_frontmatter,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from sales_vault.domain.pipeline import coerce_stage, require_legal_transition, size_for_employee_count
from sales_vault.domain.values import (
    QualificationScore,
    ScoreBreakdown,
    StoreResult,
    ValidationResult,
)
from sales_vault.infrastructure import frontmatter
from sales_vault.infrastructure.config import VaultConfig
from sales_vault.infrastructure.event_bus import EventBus
from sales_vault.infrastructure.files import (
    atomic_write_text,
    create_exclusive,
    ensure_dir,
    iter_markdown,
    read_text,
)
from sales_vault.infrastructure.schemas import (
    ActivityCreateInput,
    CampaignCreateInput,
    ProspectCreateInput,
)
from sales_vault.infrastructure.templates import TemplateLoader
from sales_vault.infrastructure.validation import (
    INPUT_SCHEMAS,
    validate_frontmatter,
    validate_input,
    validate_update_input,
)

logger = logging.getLogger(__name__)

Predicate = Callable[[Entity], bool]

_ID_PREFIX = 8


def _plain_value(value: Any) -> Any:
    """Convert enums and datetimes in an update to their stored form."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, Mapping):
        return {k: _plain_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain_value(v) for v in value]
    return value


def _same_instant(stored: Any, expected: Any) -> bool:
    a, b = parse_timestamp(stored), parse_timestamp(expected)
    if a is None or b is None:
        return stored == expected
    return a == b


class DocumentStore:
    """CRUD over entity notes in a vault.

    Parameters
    ----------
    config:
        Vault layout.
    event_bus:
        Optional bus; ``EntityCreated``/``EntityUpdated``/``EntityDeleted``
        are published after each successful mutation.
    clock:
        Source of "now" for timestamps; defaults to the UTC wall clock.
    """

    def __init__(
        self,
        config: VaultConfig,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._bus = event_bus
        self._clock = clock or utc_now
        self._templates = TemplateLoader(config.templates_dir)

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def event_bus(self) -> EventBus | None:
        return self._bus

    def now(self) -> datetime:
        return self._clock()

    def directory_for(self, kind: EntityKind | str) -> Path:
        kind = EntityKind(kind)
        if kind is EntityKind.PROSPECT:
            return self._config.prospects_dir
        if kind is EntityKind.CAMPAIGN:
            return self._config.campaigns_dir
        return self._config.activities_dir

    def _publish(self, event: DomainEvent) -> None:
        if self._bus is not None:
            self._bus.publish(event)

    # ------------------------------------------------------------------ #
    #  Setup                                                               #
    # ------------------------------------------------------------------ #

    def initialize(self) -> list[Path]:
        """Create missing folders and seed missing templates.

        Safe to call any number of times.  Returns what was created.
        """
        created = []
        for directory in (
            self._config.prospects_dir,
            self._config.campaigns_dir,
            self._config.activities_dir,
            self._config.templates_dir,
            self._config.daily_notes_dir,
            self._config.kanban_file.parent,
            self._config.dashboard_file.parent,
        ):
            if ensure_dir(directory):
                created.append(directory)
        created.extend(self._templates.seed(overwrite=False))
        if created:
            logger.info("Initialized vault at %s (%d new paths)", self._config.root, len(created))
        return created

    # ------------------------------------------------------------------ #
    #  Reads                                                               #
    # ------------------------------------------------------------------ #

    def _load(self, kind: EntityKind, path: Path) -> Entity | None:
        text = read_text(path)
        if text is None:
            return None
        meta = frontmatter.parse(text).metadata
        if meta.get("type") != TYPE_DISCRIMINATORS[kind]:
            logger.debug("Skipping %s: not a %s note", path, kind.value)
            return None
        meta = frontmatter.normalize_metadata(meta)
        if not meta.get("id"):
            meta["id"] = path.stem
        result = validate_frontmatter(kind, meta)
        if not result.is_valid:
            logger.warning("Skipping invalid %s note %s: %s", kind.value, path, result.summary())
            return None
        return entity_from_frontmatter(kind, meta, str(path))

    def list(self, kind: EntityKind | str, predicate: Predicate | None = None) -> list[Entity]:
        """Every valid entity of *kind*, optionally filtered by *predicate*.

        Notes of another type in the same folder, notes with malformed
        headers and notes that fail validation are skipped.
        """
        kind = EntityKind(kind)
        entities = []
        for path in iter_markdown(self.directory_for(kind)):
            entity = self._load(kind, path)
            if entity is None:
                continue
            if predicate is None or predicate(entity):
                entities.append(entity)
        return entities

    def find_path(self, kind: EntityKind | str, entity_id: str) -> Path | None:
        """Locate the note of *kind* whose ``id`` is *entity_id*.

        Falls back to a note whose file name (without ``.md``) equals
        *entity_id*, so notes created by hand without an id stay reachable.
        """
        kind = EntityKind(kind)
        if not entity_id:
            return None
        by_name = None
        for path in iter_markdown(self.directory_for(kind)):
            text = read_text(path)
            if text is None:
                continue
            meta = frontmatter.parse(text).metadata
            if meta.get("type") != TYPE_DISCRIMINATORS[kind]:
                continue
            if str(meta.get("id") or "") == entity_id:
                return path
            if by_name is None and path.stem == entity_id:
                by_name = path
        return by_name

    def get(self, kind: EntityKind | str, entity_id: str) -> Entity | None:
        """The entity, or ``None`` when it does not exist or is invalid."""
        kind = EntityKind(kind)
        path = self.find_path(kind, entity_id)
        return self._load(kind, path) if path is not None else None

    def check(self, kind: EntityKind | str) -> list[tuple[Path, ValidationResult]]:
        """Validation result of every note of *kind*, invalid ones included."""
        kind = EntityKind(kind)
        results = []
        for path in iter_markdown(self.directory_for(kind)):
            text = read_text(path)
            if text is None:
                continue
            meta = frontmatter.normalize_metadata(frontmatter.parse(text).metadata)
            if meta.get("type") != TYPE_DISCRIMINATORS[kind]:
                continue
            if not meta.get("id"):
                meta["id"] = path.stem
            results.append((path, validate_frontmatter(kind, meta)))
        return results

    def require(self, kind: EntityKind | str, entity_id: str) -> Entity:
        """Like :meth:`get`, raising ``EntityNotFoundError`` instead of ``None``."""
        kind = EntityKind(kind)
        entity = self.get(kind, entity_id)
        if entity is None:
            raise EntityNotFoundError(
                f"{kind.value} '{entity_id}' not found", kind=kind.value, entity_id=entity_id
            )
        return entity

    # ------------------------------------------------------------------ #
    #  Create                                                              #
    # ------------------------------------------------------------------ #

    def create(self, kind: EntityKind | str, data: Mapping[str, Any]) -> StoreResult:
        """Validate *data*, expand the kind's template and write a new note."""
        kind = EntityKind(kind)
        check = validate_input(kind, data)
        if not check.is_valid:
            return StoreResult.failed(
                f"Validation failed: {check.summary()}", "validation", check.errors
            )
        parsed = INPUT_SCHEMAS[kind].model_validate(dict(data))
        now = self.now()
        entity_id = str(uuid.uuid4())

        if kind is EntityKind.PROSPECT:
            entity, extra = self._build_prospect(parsed, entity_id, now)
        elif kind is EntityKind.CAMPAIGN:
            entity, extra = self._build_campaign(parsed, entity_id, now)
        else:
            entity, extra = self._build_activity(parsed, entity_id, now)

        meta = entity.to_frontmatter()
        note = self._templates.render(kind, {**meta, **extra}, now)
        for key, value in note.metadata.items():
            meta.setdefault(key, value)

        result = validate_frontmatter(kind, meta)
        if not result.is_valid:
            return StoreResult.failed(
                f"Validation failed: {result.summary()}", "validation", result.errors
            )

        text = frontmatter.render(meta, note.body)
        path = self._write_new(kind, self._name_candidates(kind, entity, now), text)
        entity.file_path = str(path)
        logger.info("Created %s %s at %s", kind.value, entity_id, path)
        self._publish(EntityCreated(
            source_id="document_store", kind=kind, entity_id=entity_id, file_path=str(path),
        ))
        return StoreResult(success=True, entity=entity, file_path=str(path))

    def _build_prospect(
        self, inp: ProspectCreateInput, entity_id: str, now: datetime
    ) -> tuple[Prospect, dict[str, Any]]:
        breakdown = (
            ScoreBreakdown(**inp.score_breakdown.model_dump())
            if inp.score_breakdown is not None else ScoreBreakdown()
        )
        prospect = Prospect(
            id=entity_id,
            created=now,
            updated=now,
            tags=["prospect", "sales", inp.industry.value, PipelineStage.COLD.value],
            custom_fields={
                k: v for k, v in inp.custom_fields.items() if k not in Prospect.owned_keys
            },
            business=BusinessInfo(
                name=inp.business_name,
                industry=inp.industry,
                location=Location(city=inp.city, state=inp.state, country=inp.country),
                size=SizeInfo(
                    category=size_for_employee_count(inp.employee_count),
                    employee_count=inp.employee_count,
                    estimated_revenue=inp.estimated_revenue,
                ),
                digital_presence=DigitalPresence(
                    has_website=bool(inp.website),
                    has_google_business=inp.has_google_business,
                    has_social_media=inp.has_social_media,
                    has_online_reviews=inp.has_online_reviews,
                ),
            ),
            contact=ContactInfo(
                phone=inp.phone,
                email=inp.email,
                website=inp.website,
                primary_contact=inp.primary_contact,
                contact_title=inp.contact_title,
                decision_maker=inp.decision_maker,
                social_profiles=dict(inp.social_profiles or {}),
            ),
            pipeline_stage=PipelineStage.COLD,
            qualification_score=QualificationScore.from_breakdown(breakdown, last_updated=now),
        )
        return prospect, {"notes": inp.notes}

    def _build_campaign(
        self, inp: CampaignCreateInput, entity_id: str, now: datetime
    ) -> tuple[Campaign, dict[str, Any]]:
        campaign = Campaign(
            id=entity_id,
            created=now,
            updated=now,
            tags=["campaign", "sales", inp.campaign_type.value, CampaignStatus.ACTIVE.value],
            custom_fields={
                k: v for k, v in inp.custom_fields.items() if k not in Campaign.owned_keys
            },
            name=inp.name,
            description=inp.description,
            campaign_type=inp.campaign_type,
            status=CampaignStatus.ACTIVE,
            start_date=inp.start_date or now,
            end_date=inp.end_date,
            targeting=Targeting(
                city=inp.city,
                state=inp.state,
                radius=inp.radius,
                industries=list(inp.industries),
                min_employees=inp.min_employees,
                max_employees=inp.max_employees,
                min_revenue=inp.min_revenue,
                max_revenue=inp.max_revenue,
                qualification_threshold=inp.qualification_threshold,
            ),
            messaging=inp.messaging.model_dump() if inp.messaging is not None else {},
            metrics=CampaignMetrics(),
            daily_target=inp.daily_target,
            monthly_pipeline_target=inp.monthly_pipeline_target,
        )
        return campaign, {}

    def _build_activity(
        self, inp: ActivityCreateInput, entity_id: str, now: datetime
    ) -> tuple[Activity, dict[str, Any]]:
        automated = (
            inp.automated if inp.automated is not None
            else inp.agent_responsible is not AgentType.HUMAN_SALES_REP
        )
        rules = list(inp.automation_rules or [])
        if automated and not rules:
            rules = [f"agent:{inp.agent_responsible.value}"]

        metadata = {
            key: getattr(inp, key).model_dump(mode="json")
            for key in ("call_metadata", "email_metadata", "meeting_metadata", "research_metadata")
            if getattr(inp, key) is not None
        }
        activity = Activity(
            id=entity_id,
            created=now,
            updated=now,
            tags=["activity", "sales", inp.activity_type.value, inp.outcome.value],
            custom_fields={
                k: v for k, v in inp.custom_fields.items() if k not in Activity.owned_keys
            },
            prospect_id=inp.prospect_id,
            campaign_id=inp.campaign_id,
            activity_type=inp.activity_type,
            outcome=inp.outcome,
            date=inp.date or now,
            duration=inp.duration,
            agent_responsible=inp.agent_responsible,
            summary=inp.summary,
            metadata=metadata,
            impact=ActivityImpact(
                stage_change_from=inp.stage_change_from,
                stage_change_to=inp.stage_change_to,
                qualification_score_change=inp.qualification_score_change,
            ),
            follow_up_required=inp.follow_up_required,
            follow_up_date=inp.follow_up_date,
            follow_up_type=inp.follow_up_type,
            automated=automated,
            automation_rules=rules,
        )
        prospect = self.get(EntityKind.PROSPECT, inp.prospect_id)
        prospect_name = prospect.name if isinstance(prospect, Prospect) else inp.prospect_id
        return activity, {"notes": inp.notes, "prospect_name": prospect_name}

    def _name_candidates(self, kind: EntityKind, entity: Entity, now: datetime) -> list[str]:
        short_id = entity.id[:_ID_PREFIX]
        if isinstance(entity, Prospect):
            loc = entity.business.location
            base = frontmatter.generate_slug(entity.name)
            names = [base, frontmatter.generate_slug(f"{entity.name} {loc.city} {loc.state}")]
        elif isinstance(entity, Campaign):
            base = frontmatter.generate_slug(entity.name)
            names = [base]
        elif isinstance(entity, Activity):
            stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
            prospect = frontmatter.generate_slug(entity.prospect_id[:_ID_PREFIX]) or "unknown"
            base = f"{entity.activity_type.value}-{prospect}-{stamp}"
            names = [base]
        else:
            raise SalesVaultError(f"Unsupported entity type {type(entity).__name__}")
        names.append(f"{base}-{short_id}" if base else short_id)
        seen: list[str] = []
        for name in names:
            if name and name not in seen:
                seen.append(name)
        return seen

    def _write_new(self, kind: EntityKind, names: list[str], text: str) -> Path:
        directory = self.directory_for(kind)
        for name in names:
            path = directory / f"{name}.md"
            if create_exclusive(path, text):
                return path
            logger.debug("File name %s taken, trying next candidate", path.name)
        # every candidate taken: the id suffix makes this unique
        path = directory / f"{names[-1]}-{uuid.uuid4().hex[:_ID_PREFIX]}.md"
        atomic_write_text(path, text)
        return path

    # ------------------------------------------------------------------ #
    #  Update / delete                                                     #
    # ------------------------------------------------------------------ #

    def update(
        self,
        kind: EntityKind | str,
        entity_id: str,
        updates: Mapping[str, Any],
        expected_updated: str | datetime | None = None,
        update_reason: str | None = None,
    ) -> StoreResult:
        """Merge *updates* into the entity's header and write it back.

        ``updated`` is always refreshed.  On any failure the note is left
        untouched and the result carries the reason.

        Raises
        ------
        IllegalTransitionError
            If *updates* moves ``pipeline_stage`` along an illegal edge.
        """
        kind = EntityKind(kind)
        request: dict[str, Any] = {"updates": dict(updates)}
        if update_reason is not None:
            request["update_reason"] = update_reason
        check = validate_update_input(request)
        if not check.is_valid:
            return StoreResult.failed(
                f"Invalid update: {check.summary()}", "validation", check.errors
            )

        path = self.find_path(kind, entity_id)
        text = read_text(path) if path is not None else None
        if path is None or text is None:
            return StoreResult.failed(f"{kind.value} '{entity_id}' not found", "not_found")

        current = frontmatter.parse(text).metadata
        if expected_updated is not None and not _same_instant(current.get("updated"), expected_updated):
            logger.warning("Update of %s %s refused: modified since %s", kind.value, entity_id, expected_updated)
            return StoreResult.failed(
                f"{kind.value} '{entity_id}' was modified since {expected_updated}",
                "conflict",
                file_path=str(path),
            )

        changes = {k: _plain_value(v) for k, v in updates.items()}
        if kind is EntityKind.PROSPECT and "pipeline_stage" in changes:
            old = coerce_stage(current.get("pipeline_stage"))
            new = coerce_stage(changes["pipeline_stage"])
            if old is not None and new is not None and old is not new:
                require_legal_transition(old, new, entity_id)

        changes["updated"] = format_timestamp(self.now())
        new_text = frontmatter.update(text, changes)
        merged = frontmatter.normalize_metadata(frontmatter.parse(new_text).metadata)
        if not merged.get("id"):
            merged = {**merged, "id": path.stem}
        result = validate_frontmatter(kind, merged)
        if not result.is_valid:
            return StoreResult.failed(
                f"Validation failed: {result.summary()}", "validation", result.errors,
                file_path=str(path),
            )

        atomic_write_text(path, new_text)
        entity = entity_from_frontmatter(kind, merged, str(path))
        logger.info(
            "Updated %s %s (%s)%s", kind.value, entity_id, ", ".join(updates),
            f": {update_reason}" if update_reason else "",
        )
        self._publish(EntityUpdated(
            source_id="document_store", kind=kind, entity_id=entity.id,
            changed_fields=tuple(updates),
        ))
        return StoreResult(success=True, entity=entity, file_path=str(path))

    def delete(self, kind: EntityKind | str, entity_id: str) -> StoreResult:
        """Remove the entity's note; deleting a missing entity succeeds."""
        kind = EntityKind(kind)
        path = self.find_path(kind, entity_id)
        if path is None:
            logger.debug("Delete of missing %s %s is a no-op", kind.value, entity_id)
            return StoreResult(success=True)
        path.unlink(missing_ok=True)
        logger.info("Deleted %s %s (%s)", kind.value, entity_id, path)
        self._publish(EntityDeleted(source_id="document_store", kind=kind, entity_id=entity_id))
        return StoreResult(success=True, file_path=str(path))

    # ------------------------------------------------------------------ #
    #  Daily notes                                                         #
    # ------------------------------------------------------------------ #

    def daily_note_path(self, day: date | str) -> Path:
        day_str = day.isoformat() if isinstance(day, date) else str(day)
        return self._config.daily_notes_dir / f"{day_str}.md"

    def append_daily_note(
        self, day: date | str, summary_text: str, section: str | None = None
    ) -> Path:
        """Insert or replace one section of the day's note.

        Every other section and the note's own header are kept byte for
        byte.  A missing note is created with just a title and the section.
        """
        if isinstance(day, datetime):
            day = day.date()
        day_str = day.isoformat() if isinstance(day, date) else str(day)
        title = section or self._config.daily_note_section
        block = f"## {title}\n\n{summary_text.strip()}\n"
        path = self.daily_note_path(day_str)

        text = read_text(path)
        if text is None:
            new_text = frontmatter.render(
                {"date": day_str, "tags": ["daily"]}, f"# {day_str}\n\n{block}"
            )
        else:
            header, body = frontmatter.split_header(text)
            new_text = header + replace_section(body, title, block)

        atomic_write_text(path, new_text)
        logger.info("Wrote '%s' section of daily note %s", title, path)
        return path


_NEXT_HEADING_RE = re.compile(r"^#{1,2}[ \t]", re.MULTILINE)
_H1_RE = re.compile(r"\A(?:[ \t]*\r?\n)*#[ \t][^\n]*\n")


def replace_section(body: str, title: str, block: str) -> str:
    """Replace the level-2 section *title* in *body* with *block*.

    The section runs to the next level-1 or level-2 heading.  When it does
    not exist, *block* is inserted at the top, after an H1 title if any.
    """
    heading = re.compile(rf"^##[ \t]+{re.escape(title)}[ \t]*$", re.MULTILINE)
    match = heading.search(body)
    if match is not None:
        nxt = _NEXT_HEADING_RE.search(body, match.end())
        end = nxt.start() if nxt is not None else len(body)
        tail = body[end:]
        return body[: match.start()] + block + ("\n" + tail if tail else "")

    title_match = _H1_RE.match(body)
    cut = title_match.end() if title_match is not None else 0
    head, rest = body[:cut], body[cut:]
    if head and not head.endswith("\n\n"):
        head += "\n"
    return head + block + ("\n" + rest.lstrip("\n") if rest.strip() else "")
