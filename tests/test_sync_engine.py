"""Tests for the PublishEngine.

Uses real source and target trees under tmp_path; nothing is mocked
except where a write failure has to be simulated.

Covers:
- First publish creates files and ledger records
- Re-running is a no-op and leaves the ledger untouched
- Dry run writes nothing
- Source edits become updates
- Target edits block writes unless forced
- Removed sources are reported as orphans, never deleted
- Per-item failures do not abort the run
- Namespace scoping and content type validation
- --force rebuilds the ledger baseline for keys it does not write
- Binary assets compared and recorded by whole-file hash
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from coursekit_sync.config_schema import ContentTypeConfig
from coursekit_sync.sync.engine import PublishEngine
from coursekit_sync.sync.errors import MalformedLedgerError
from coursekit_sync.sync.models import ConflictType, PublishAction
from coursekit_sync.sync.normalize import content_hash, file_hash

TARGET_DIR = "src/content/lessons/py"


def write_markdown(path, front_matter="", body="Body text.\n"):
    path.parent.mkdir(parents=True, exist_ok=True)
    text = f"---\n{front_matter}---\n{body}" if front_matter else body
    path.write_text(text, encoding="utf-8")
    return path


def _actions(report) -> dict[str, PublishAction]:
    return {r.key: r.action for r in report.results}


@pytest.fixture
def seeded(workspace):
    """Workspace with two source lessons."""
    lessons = workspace["source"] / "lessons"
    write_markdown(lessons / "01-intro.md", "title: Intro\n", "Welcome.\n")
    write_markdown(lessons / "02-loops.md", "title: Loops\n", "for x in y\n")
    return workspace


def _ledger_json_for(workspace, content_type: str) -> dict:
    path = workspace["target"] / ".sync" / f"{content_type}.json"
    return json.loads(path.read_text(encoding="utf-8"))


def _ledger_json(workspace) -> dict:
    return _ledger_json_for(workspace, "lessons")


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestPublishEngineInit:
    def test_unknown_content_type_rejected(self, workspace):
        with pytest.raises(ValueError, match="Unknown content type 'videos'"):
            PublishEngine(workspace["config"], "videos")

    def test_ledger_path_per_content_type(self, workspace):
        engine = PublishEngine(workspace["config"], "guides")
        assert engine.ledger_store.path == (
            workspace["target"] / ".sync" / "guides.json"
        )


# ---------------------------------------------------------------------------
# Publish runs
# ---------------------------------------------------------------------------


class TestPublishRun:
    """Tests for PublishEngine.run()."""

    def test_first_publish_creates_files(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")

        report = engine.run()

        assert _actions(report) == {
            "py/intro": PublishAction.CREATE,
            "py/loops": PublishAction.CREATE,
        }
        assert report.success is True
        target_file = seeded["target"] / TARGET_DIR / "01-intro.md"
        assert target_file.read_bytes() == (
            seeded["source"] / "lessons" / "01-intro.md"
        ).read_bytes()

    def test_first_publish_writes_ledger(self, seeded):
        PublishEngine(seeded["config"], "lessons").run()

        data = _ledger_json(seeded)
        assert data["version"] == 1
        assert data["lastSync"] is not None
        record = data["records"]["py/intro"]
        assert record["filePath"] == f"{TARGET_DIR}/01-intro.md"
        assert record["contentHash"] == content_hash("Welcome.\n")
        assert record["sourceOrigin"] == "github.com/example/intro-python"
        assert record["syncedAt"] == data["records"]["py/loops"]["syncedAt"]

    def test_second_run_is_noop(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        before = _ledger_json(seeded)

        report = engine.run()

        assert set(_actions(report).values()) == {PublishAction.SKIP}
        assert report.conflicts.has_conflicts is False
        assert _ledger_json(seeded) == before

    def test_dry_run_writes_nothing(self, seeded):
        report = PublishEngine(seeded["config"], "lessons").run(dry_run=True)

        assert report.dry_run is True
        assert len(report.created) == 2
        assert not (seeded["target"] / "src").exists()
        assert not (seeded["target"] / ".sync").exists()

    def test_source_edit_becomes_update(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        write_markdown(
            seeded["source"] / "lessons" / "02-loops.md",
            "title: Loops and Lists\n",
            "for x in y\n",
        )

        report = engine.run()

        assert _actions(report)["py/loops"] == PublishAction.UPDATE
        assert "Loops and Lists" in (
            seeded["target"] / TARGET_DIR / "02-loops.md"
        ).read_text(encoding="utf-8")

    def test_target_edit_blocks_write(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        target_file = seeded["target"] / TARGET_DIR / "01-intro.md"
        write_markdown(target_file, "title: Intro\n", "Edited on platform.\n")
        write_markdown(
            seeded["source"] / "lessons" / "01-intro.md",
            "title: Intro\n",
            "Rewritten by author.\n",
        )

        report = engine.run()

        assert _actions(report)["py/intro"] == PublishAction.CONFLICT
        assert report.success is False
        assert [c.conflict_type for c in report.conflicts.conflicts] == [
            ConflictType.MODIFIED
        ]
        assert "Edited on platform." in target_file.read_text(encoding="utf-8")

    def test_force_overwrites_conflict(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        target_file = seeded["target"] / TARGET_DIR / "01-intro.md"
        write_markdown(target_file, "title: Intro\n", "Edited on platform.\n")

        report = engine.run(force=True)

        assert _actions(report)["py/intro"] == PublishAction.UPDATE
        assert report.success is True
        assert "Welcome." in target_file.read_text(encoding="utf-8")
        assert engine.check_conflicts().has_conflicts is False

    def test_removed_source_is_orphaned(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        (seeded["source"] / "lessons" / "02-loops.md").unlink()

        report = engine.run()

        assert _actions(report)["py/loops"] == PublishAction.ORPHAN
        assert report.orphaned[0].target_path == f"{TARGET_DIR}/02-loops.md"
        assert (seeded["target"] / TARGET_DIR / "02-loops.md").exists()
        assert report.success is True

    def test_deleted_target_blocks_recreate(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        (seeded["target"] / TARGET_DIR / "01-intro.md").unlink()

        report = engine.run()

        assert _actions(report)["py/intro"] == PublishAction.CONFLICT
        assert report.conflicts.conflicts[0].conflict_type == (
            ConflictType.DELETED
        )

    def test_identical_unsynced_target_is_skipped(self, seeded):
        """Hand-copied content that already matches needs no write."""
        for name in ("01-intro.md", "02-loops.md"):
            src = seeded["source"] / "lessons" / name
            dst = seeded["target"] / TARGET_DIR / name
            dst.parent.mkdir(parents=True, exist_ok=True)
            dst.write_bytes(src.read_bytes())

        report = PublishEngine(seeded["config"], "lessons").run()

        assert set(_actions(report).values()) == {PublishAction.SKIP}
        assert {c.conflict_type for c in report.conflicts.conflicts} == {
            ConflictType.NEW_ON_TARGET
        }

    def test_protected_field_only_change_is_skipped(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        write_markdown(
            seeded["target"] / TARGET_DIR / "01-intro.md",
            "title: Intro\nprice: 49\n",
            "Welcome.\n",
        )

        report = engine.run()

        assert _actions(report)["py/intro"] == PublishAction.SKIP

    def test_nested_source_keeps_subdirectory(self, seeded):
        write_markdown(
            seeded["source"] / "lessons" / "unit-2" / "03-dicts.md",
            "title: Dicts\n",
        )

        report = PublishEngine(seeded["config"], "lessons").run()

        result = next(r for r in report.results if r.key == "py/dicts")
        assert result.target_path == f"{TARGET_DIR}/unit-2/03-dicts.md"
        assert (seeded["target"] / result.target_path).is_file()

    def test_item_failure_does_not_abort(self, seeded):
        from coursekit_sync.file_handler import copy_file as real_copy

        def flaky_copy(source, target):
            if source.name == "01-intro.md":
                raise OSError("permission denied")
            return real_copy(source, target)

        with patch(
            "coursekit_sync.sync.engine.copy_file", side_effect=flaky_copy
        ):
            report = PublishEngine(seeded["config"], "lessons").run()

        assert [r.key for r in report.errors] == ["py/intro"]
        assert report.errors[0].action == PublishAction.CREATE
        assert "permission denied" in report.errors[0].error
        assert [r.key for r in report.created] == ["py/loops"]
        assert set(_ledger_json(seeded)["records"]) == {"py/loops"}
        assert report.success is False

    def test_namespace_scopes_run(self, seeded):
        other = seeded["target"] / "src/content/lessons/js/01-intro.md"
        write_markdown(other, "title: JS\n")

        report = PublishEngine(seeded["config"], "lessons").run(
            namespace="py"
        )

        assert set(_actions(report)) == {"py/intro", "py/loops"}
        assert report.conflicts.total_checked == 0

    def test_malformed_ledger_aborts_before_writing(self, seeded):
        ledger = seeded["target"] / ".sync" / "lessons.json"
        ledger.parent.mkdir(parents=True)
        ledger.write_text("{broken", encoding="utf-8")

        with pytest.raises(MalformedLedgerError):
            PublishEngine(seeded["config"], "lessons").run()

        assert not (seeded["target"] / "src").exists()


# ---------------------------------------------------------------------------
# Read-only helpers
# ---------------------------------------------------------------------------


class TestDiffAndStatus:
    """Tests for PublishEngine.diff() and check_conflicts()."""

    def test_diff_before_first_publish(self, seeded):
        result = PublishEngine(seeded["config"], "lessons").diff()
        assert result.summary.added == 2
        assert result.content_type == "lessons"

    def test_diff_after_publish_is_clean(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()

        assert engine.diff().items == []
        assert len(engine.diff(include_unchanged=True).items) == 2

    def test_check_conflicts_ignores_source(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        write_markdown(
            seeded["source"] / "lessons" / "01-intro.md", "", "Changed.\n"
        )

        assert engine.check_conflicts().has_conflicts is False

    def test_unconfigured_namespace_warns(self, seeded, caplog):
        engine = PublishEngine(seeded["config"], "lessons")
        source_items, target_items = engine.collect("nope")
        assert source_items == [] and target_items == []
        assert "has no configured source" in caplog.text


# ---------------------------------------------------------------------------
# Ledger rebuild under --force
# ---------------------------------------------------------------------------


class TestForceRebuildsLedger:
    """``run(force=True)`` leaves no conflicts behind, even without writes."""

    def _copy_to_target(self, seeded, name, front_matter):
        write_markdown(
            seeded["target"] / TARGET_DIR / name,
            front_matter,
            (seeded["source"] / "lessons" / name)
            .read_text(encoding="utf-8")
            .split("---\n", 2)[2],
        )

    def test_unchanged_unsynced_target_recorded(self, seeded):
        self._copy_to_target(
            seeded, "01-intro.md", "title: Intro\nprice: 10\n"
        )
        engine = PublishEngine(seeded["config"], "lessons")
        assert engine.check_conflicts().keys == {"py/intro"}

        report = engine.run(force=True)

        assert _actions(report)["py/intro"] == PublishAction.SKIP
        assert engine.check_conflicts().has_conflicts is False
        record = _ledger_json(seeded)["records"]["py/intro"]
        assert record["filePath"] == f"{TARGET_DIR}/01-intro.md"
        assert record["contentHash"] == content_hash("Welcome.\n")

    def test_unforced_run_records_nothing_for_unchanged(self, seeded):
        self._copy_to_target(seeded, "01-intro.md", "title: Intro\n")
        engine = PublishEngine(seeded["config"], "lessons")

        engine.run()

        assert "py/intro" not in _ledger_json(seeded)["records"]
        assert engine.check_conflicts().keys == {"py/intro"}

    def test_dry_run_force_leaves_ledger_alone(self, seeded):
        self._copy_to_target(seeded, "01-intro.md", "title: Intro\n")
        (seeded["source"] / "lessons" / "02-loops.md").unlink()
        engine = PublishEngine(seeded["config"], "lessons")

        engine.run(force=True, dry_run=True)

        assert not (seeded["target"] / ".sync").exists()

    def test_hand_authored_orphan_recorded(self, seeded):
        write_markdown(
            seeded["target"] / TARGET_DIR / "09-extra.md", "title: Extra\n"
        )
        engine = PublishEngine(seeded["config"], "lessons")

        report = engine.run(force=True)

        assert _actions(report)["py/extra"] == PublishAction.ORPHAN
        assert (seeded["target"] / TARGET_DIR / "09-extra.md").exists()
        assert engine.check_conflicts().has_conflicts is False

    def test_stale_record_dropped(self, seeded):
        engine = PublishEngine(seeded["config"], "lessons")
        engine.run()
        (seeded["source"] / "lessons" / "02-loops.md").unlink()
        (seeded["target"] / TARGET_DIR / "02-loops.md").unlink()
        assert engine.check_conflicts().keys == {"py/loops"}

        engine.run(force=True)

        assert "py/loops" not in _ledger_json(seeded)["records"]
        assert engine.check_conflicts().has_conflicts is False


# ---------------------------------------------------------------------------
# Binary assets
# ---------------------------------------------------------------------------


ASSET_DIR = "public/courses/py"
PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


@pytest.fixture
def assets(workspace):
    """Workspace with an ``assets`` content type and one image."""
    config = workspace["config"]
    config.content_types["assets"] = ContentTypeConfig(
        source_dir="assets",
        target_dir="public/courses",
        pattern="*",
        kind="asset",
    )
    image = workspace["source"] / "assets" / "images" / "hero.png"
    image.parent.mkdir(parents=True)
    image.write_bytes(PNG)
    return workspace


class TestAssetPublish:
    def test_first_publish_copies_bytes(self, assets):
        report = PublishEngine(assets["config"], "assets").run()

        assert _actions(report) == {
            "py/images/hero.png": PublishAction.CREATE
        }
        written = assets["target"] / ASSET_DIR / "images" / "hero.png"
        assert written.read_bytes() == PNG
        record = _ledger_json_for(assets, "assets")["records"][
            "py/images/hero.png"
        ]
        assert record["contentHash"] == file_hash(written)

    def test_second_run_is_noop(self, assets):
        engine = PublishEngine(assets["config"], "assets")
        engine.run()

        report = engine.run()

        assert _actions(report) == {"py/images/hero.png": PublishAction.SKIP}

    def test_byte_change_becomes_update(self, assets):
        engine = PublishEngine(assets["config"], "assets")
        engine.run()
        image = assets["source"] / "assets" / "images" / "hero.png"
        image.write_bytes(PNG + b"\x00")

        report = engine.run()

        assert _actions(report)["py/images/hero.png"] == PublishAction.UPDATE
        target = assets["target"] / ASSET_DIR / "images" / "hero.png"
        assert target.read_bytes() == PNG + b"\x00"

    def test_line_ending_change_is_a_change(self, assets):
        """Assets are compared byte for byte, with no text normalisation."""
        doc = assets["source"] / "assets" / "notes.txt"
        doc.write_bytes(b"line one\n")
        engine = PublishEngine(assets["config"], "assets")
        engine.run()
        doc.write_bytes(b"line one\r\n")

        diff = engine.diff()

        assert [i.key for i in diff.items] == ["py/notes.txt"]
        assert diff.items[0].body_changed is True

    def test_target_edit_is_a_conflict(self, assets):
        engine = PublishEngine(assets["config"], "assets")
        engine.run()
        target = assets["target"] / ASSET_DIR / "images" / "hero.png"
        target.write_bytes(b"replaced")

        conflicts = engine.check_conflicts()

        assert [c.conflict_type for c in conflicts.conflicts] == [
            ConflictType.MODIFIED
        ]
