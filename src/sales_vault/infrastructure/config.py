"""Configuration for the sales vault.

``VaultConfig`` is a frozen ``dataclass`` with a ``validate()`` method that
raises ``ValueError`` on invalid combinations, plus ``to_dict`` /
``from_dict`` for round-tripping through JSON or YAML files.  Every relative
path is resolved against ``vault_path``.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path, PurePath
from typing import Any

import yaml

from sales_vault.domain.exceptions import ConfigError
from sales_vault.domain.pipeline import QualificationBands

ENV_PREFIX = "SALES_VAULT_"

_PATH_FIELDS = (
    "prospects_path",
    "campaigns_path",
    "activities_path",
    "templates_path",
    "dashboard_path",
    "kanban_path",
    "daily_notes_path",
)


# ===================================================================== #
#  Vault Configuration                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class VaultConfig:
    """Where entity files live and how the pipeline behaves.

    Attributes
    ----------
    vault_path:
        Root folder of the vault; every other path is relative to it.
    prospects_path, campaigns_path, activities_path:
        One folder per entity kind.
    templates_path:
        Folder holding ``Prospect.md``, ``Campaign.md`` and ``Activity.md``.
    dashboard_path:
        Markdown note that receives the pipeline dashboard.
    kanban_path:
        Markdown note holding the Kanban board.
    daily_notes_path:
        Folder of ``YYYY-MM-DD.md`` daily notes.
    daily_note_section:
        Heading of the section managed in each daily note.
    auto_sync_board:
        Rebuild the board after every stage transition.
    log_stage_transitions:
        Record a ``note`` activity for every stage transition.
    stagnant_after_days:
        A prospect not updated for this many days counts as stagnant.
    bands:
        Qualification level cut points.
    """

    vault_path: str = "."
    prospects_path: str = "Projects/Sales/Prospects"
    campaigns_path: str = "Projects/Sales/Campaigns"
    activities_path: str = "Projects/Sales/Activities"
    templates_path: str = "Resources/Templates/Sales"
    dashboard_path: str = "Projects/Sales/Sales-Dashboard.md"
    kanban_path: str = "Projects/Sales/Sales-Pipeline-Kanban.md"
    daily_notes_path: str = "Resources/Agenda/Daily"
    daily_note_section: str = "Sales Activity Summary"
    auto_sync_board: bool = True
    log_stage_transitions: bool = True
    stagnant_after_days: int = 7
    bands: QualificationBands = field(default_factory=QualificationBands)

    def validate(self) -> None:
        """Raise ``ValueError`` if any field is out of valid range."""
        if not str(self.vault_path).strip():
            raise ValueError("vault_path must not be empty")
        for name in _PATH_FIELDS:
            value = getattr(self, name)
            if not value or PurePath(value).is_absolute():
                raise ValueError(f"{name} must be a non-empty relative path, got {value!r}")
        for name in ("dashboard_path", "kanban_path"):
            if not getattr(self, name).endswith(".md"):
                raise ValueError(f"{name} must be a .md file, got {getattr(self, name)!r}")
        if not self.daily_note_section.strip():
            raise ValueError("daily_note_section must not be empty")
        if self.stagnant_after_days < 1:
            raise ValueError(
                f"stagnant_after_days must be >= 1, got {self.stagnant_after_days}"
            )
        self.bands.validate()

    # -- resolved paths -------------------------------------------------------

    @property
    def root(self) -> Path:
        return Path(self.vault_path).expanduser()

    def resolve(self, relative: str) -> Path:
        return self.root / relative

    @property
    def prospects_dir(self) -> Path:
        return self.resolve(self.prospects_path)

    @property
    def campaigns_dir(self) -> Path:
        return self.resolve(self.campaigns_path)

    @property
    def activities_dir(self) -> Path:
        return self.resolve(self.activities_path)

    @property
    def templates_dir(self) -> Path:
        return self.resolve(self.templates_path)

    @property
    def dashboard_file(self) -> Path:
        return self.resolve(self.dashboard_path)

    @property
    def kanban_file(self) -> Path:
        return self.resolve(self.kanban_path)

    @property
    def daily_notes_dir(self) -> Path:
        return self.resolve(self.daily_notes_path)

    # -- serialization --------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> VaultConfig:
        valid_keys = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_keys}
        bands = filtered.get("bands")
        if isinstance(bands, Mapping):
            filtered["bands"] = QualificationBands.from_dict(bands)
        elif bands is not None and not isinstance(bands, QualificationBands):
            raise ValueError(f"bands must be a mapping, got {type(bands).__name__}")
        cfg = cls(**filtered)
        cfg.validate()
        return cfg

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> VaultConfig:
        """Build from ``SALES_VAULT_PATH`` and ``SALES_VAULT_<FIELD>`` variables.

        Band cut points are read from ``SALES_VAULT_BANDS_HIGH``,
        ``SALES_VAULT_BANDS_MEDIUM`` and ``SALES_VAULT_BANDS_LOW``.
        """
        env = os.environ if environ is None else environ
        vault = env.get(f"{ENV_PREFIX}PATH", "").strip()
        if not vault:
            raise ConfigError(f"{ENV_PREFIX}PATH is not set")

        data: dict[str, Any] = {"vault_path": vault}
        defaults = cls()
        for f in fields(cls):
            if f.name in ("vault_path", "bands"):
                continue
            raw = env.get(f"{ENV_PREFIX}{f.name.upper()}")
            if raw is None:
                continue
            data[f.name] = _coerce(raw, getattr(defaults, f.name), f.name)

        bands: dict[str, Any] = {}
        for name in ("high", "medium", "low"):
            raw = env.get(f"{ENV_PREFIX}BANDS_{name.upper()}")
            if raw is not None:
                bands[name] = _coerce(raw, 0.0, f"bands.{name}")
        if bands:
            data["bands"] = {**defaults.bands.to_dict(), **bands}
        try:
            return cls.from_dict(data)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc


def _coerce(raw: str, default: Any, name: str) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got {raw!r}")
    if isinstance(default, (int, float)):
        try:
            return type(default)(raw)
        except ValueError as exc:
            raise ConfigError(f"{name} must be numeric, got {raw!r}") from exc
    return raw


# ===================================================================== #
#  Loading                                                               #
# ===================================================================== #

def load_config(path: str | Path) -> VaultConfig:
    """Read a ``.json``, ``.yaml`` or ``.yml`` file into a ``VaultConfig``.

    A relative ``vault_path`` inside the file is resolved against the file's
    own folder.

    Raises
    ------
    ConfigError
        If the file is missing, unparseable, or describes an invalid config.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file: {exc}", path=str(path)) from exc

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            raw = json.loads(text)
        elif suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(text)
        else:
            raise ConfigError(f"Unsupported config format '{suffix}'", path=str(path))
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse config file: {exc}", path=str(path)) from exc

    if not isinstance(raw, dict):
        raise ConfigError("Top-level config must be a mapping", path=str(path))

    vault = raw.get("vault_path")
    if isinstance(vault, str) and vault and not Path(vault).expanduser().is_absolute():
        raw = {**raw, "vault_path": str(path.parent / vault)}
    try:
        return VaultConfig.from_dict(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration: {exc}", path=str(path)) from exc
