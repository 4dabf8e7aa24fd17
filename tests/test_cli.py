"""Tests for the sales-vault command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sales_vault import __version__
from sales_vault.cli import main
from sales_vault.domain.enums import EntityKind, PipelineStage
from sales_vault.infrastructure import frontmatter
from sales_vault.services.kanban import STAGE_LANES


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str, str]:
    with pytest.raises(SystemExit) as info:
        main(list(argv))
    captured = capsys.readouterr()
    return info.value.code, captured.out, captured.err


@pytest.fixture
def vault(config) -> str:
    return config.vault_path


class TestBasics:
    """Test version, help, source flags and missing-vault errors."""

    def test_version(self, capsys) -> None:
        code, out, _ = _run(capsys, "--version")
        assert code == 0
        assert out.strip() == f"sales-vault {__version__}"

    def test_no_command_prints_help(self, capsys) -> None:
        code, out, _ = _run(capsys)
        assert code == 0
        assert "usage: sales-vault" in out

    def test_vault_and_config_are_exclusive(self, capsys) -> None:
        with pytest.raises(SystemExit) as info:
            main(["--vault", "a", "--config", "b.yaml", "init"])
        assert info.value.code == 2

    def test_info_without_vault(self, capsys, monkeypatch) -> None:
        monkeypatch.delenv("SALES_VAULT_PATH", raising=False)
        code, out, _ = _run(capsys, "info")
        assert code == 0
        assert "not configured" in out

    def test_missing_vault_is_an_error(self, capsys, monkeypatch) -> None:
        monkeypatch.delenv("SALES_VAULT_PATH", raising=False)
        code, _, err = _run(capsys, "sync")
        assert code == 1
        assert "SALES_VAULT_PATH is not set" in err


class TestInit:
    """Test init and info against vaults from flags, env and config files."""

    def test_init_with_vault(self, capsys, tmp_path: Path) -> None:
        root = tmp_path / "fresh"
        code, out, _ = _run(capsys, "--vault", str(root), "init")
        assert code == 0
        assert "Vault ready" in out
        assert (root / "Projects/Sales/Prospects").is_dir()
        assert (root / "Resources/Templates/Sales/Activity.md").is_file()

    def test_init_from_env(self, capsys, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setenv("SALES_VAULT_PATH", str(tmp_path / "env-vault"))
        code, _, _ = _run(capsys, "init")
        assert code == 0
        assert (tmp_path / "env-vault/Projects/Sales/Campaigns").is_dir()

    def test_init_from_config_file(self, capsys, tmp_path: Path) -> None:
        cfg = tmp_path / "vault.yaml"
        cfg.write_text("vault_path: notes\nprospects_path: Leads\n")
        code, _, _ = _run(capsys, "--config", str(cfg), "init")
        assert code == 0
        assert (tmp_path / "notes/Leads").is_dir()

    def test_info_lists_paths(self, capsys, vault: str, store) -> None:
        code, out, _ = _run(capsys, "--vault", vault, "info")
        assert code == 0
        assert f"Vault: {vault}" in out
        assert "[ok]" in out
        assert "Qualification bands: high>=80 medium>=60 low>=30" in out


class TestProspectCommands:
    """Test listing and moving prospects from the command line."""

    def test_list_json(self, capsys, vault: str, make_prospect) -> None:
        prospect = make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "list", "prospect", "--format", "json")
        assert code == 0
        rows = json.loads(out)
        assert [r["id"] for r in rows] == [prospect.id]
        assert rows[0]["company"] == "Test Restaurant LLC"
        assert rows[0]["file_path"] == prospect.file_path

    def test_list_stage_filter(self, capsys, vault: str, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(
            capsys, "--vault", vault, "list", "prospect", "--stage", "contacted", "--format", "json"
        )
        assert code == 0
        assert json.loads(out) == []

    def test_list_table(self, capsys, vault: str, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "list", "prospect")
        assert code == 0
        assert "Prospects" in out

    def test_list_empty(self, capsys, vault: str, store) -> None:
        code, out, _ = _run(capsys, "--vault", vault, "list", "campaign")
        assert code == 0
        assert "No entities found." in out

    def test_move(self, capsys, vault: str, store, make_prospect) -> None:
        prospect = make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "move", prospect.id, "contacted", "--reason", "called")
        assert code == 0
        assert "Test Restaurant LLC: cold -> contacted" in out
        assert store.get(EntityKind.PROSPECT, prospect.id).pipeline_stage is PipelineStage.CONTACTED
        assert len(store.list(EntityKind.ACTIVITY)) == 1

    def test_illegal_move(self, capsys, vault: str, store, make_prospect) -> None:
        prospect = make_prospect()
        code, _, err = _run(capsys, "--vault", vault, "move", prospect.id, "qualified")
        assert code == 1
        assert "allowed: closed_lost, contacted" in err
        assert store.get(EntityKind.PROSPECT, prospect.id).pipeline_stage is PipelineStage.COLD

    def test_move_unknown_prospect(self, capsys, vault: str, store) -> None:
        code, _, err = _run(capsys, "--vault", vault, "move", "nope", "contacted")
        assert code == 1
        assert "prospect 'nope' not found" in err


class TestBoardCommands:
    """Test sync, reconcile, metrics and dashboard commands."""

    def test_sync(self, capsys, vault: str, config, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "sync")
        assert code == 0
        assert "synced with 1 cards" in out
        assert config.kanban_file.is_file()

    def test_reconcile(self, capsys, vault: str, config, store, sync, make_prospect) -> None:
        prospect = make_prospect()
        sync.sync_all()
        text = config.kanban_file.read_text()
        card = next(line for line in text.splitlines() if "[[test-restaurant-llc|" in line)
        lane = f"## {STAGE_LANES[PipelineStage.CONTACTED]}\n\n"
        config.kanban_file.write_text(text.replace(card + "\n", "").replace(lane, lane + card + "\n"))

        code, out, _ = _run(capsys, "--vault", vault, "reconcile")
        assert code == 0
        assert "moved" in out
        assert store.get(EntityKind.PROSPECT, prospect.id).pipeline_stage is PipelineStage.CONTACTED

        code, out, _ = _run(capsys, "--vault", vault, "reconcile")
        assert code == 0
        assert "Board and prospects agree." in out

    def test_reconcile_rejected_move_exits_1(self, capsys, vault: str, config, sync, make_prospect) -> None:
        make_prospect()
        sync.sync_all()
        text = config.kanban_file.read_text()
        card = next(line for line in text.splitlines() if "[[test-restaurant-llc|" in line)
        lane = f"## {STAGE_LANES[PipelineStage.CLOSED_WON]}\n\n"
        config.kanban_file.write_text(text.replace(card + "\n", "").replace(lane, lane + card + "\n"))

        code, out, _ = _run(capsys, "--vault", vault, "reconcile")
        assert code == 1
        assert "rejected" in out

    def test_metrics_json(self, capsys, vault: str, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "metrics", "--format", "json")
        assert code == 0
        data = json.loads(out)
        assert data["count_by_stage"]["cold"] == 1
        assert data["conversion_rates"]["cold->contacted"] == 0

    def test_metrics_table(self, capsys, vault: str, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "metrics")
        assert code == 0
        assert "Pipeline (1 prospects)" in out

    def test_dashboard(self, capsys, vault: str, config, make_prospect) -> None:
        make_prospect()
        code, _, _ = _run(capsys, "--vault", vault, "dashboard")
        assert code == 0
        note = frontmatter.parse(config.dashboard_file.read_text())
        assert note.metadata["type"] == "dashboard"
        assert "Total prospects: 1" in note.body


class TestNoteCommands:
    """Test daily-note writing and vault checks."""

    def test_daily_note(self, capsys, vault: str, config, store) -> None:
        code, _, _ = _run(
            capsys, "--vault", vault, "daily-note", "--summary", "2 calls", "--date", "2025-03-10"
        )
        assert code == 0
        text = (config.daily_notes_dir / "2025-03-10.md").read_text()
        assert "## Sales Activity Summary\n\n2 calls\n" in text

    def test_daily_note_bad_date(self, capsys, vault: str) -> None:
        with pytest.raises(SystemExit) as info:
            main(["--vault", vault, "daily-note", "--summary", "x", "--date", "tuesday"])
        assert info.value.code == 2

    def test_check_clean_vault(self, capsys, vault: str, make_prospect) -> None:
        make_prospect()
        code, out, _ = _run(capsys, "--vault", vault, "check")
        assert code == 0
        assert "1 notes checked, 0 invalid" in out

    def test_check_reports_invalid_notes(self, capsys, vault: str, config, make_prospect) -> None:
        prospect = make_prospect()
        path = Path(prospect.file_path)
        path.write_text(frontmatter.update(path.read_text(), {"pipeline_stage": "warm"}))

        code, out, _ = _run(capsys, "--vault", vault, "check")
        assert code == 1
        assert "pipeline_stage" in out
        assert "1 notes checked, 1 invalid" in out
