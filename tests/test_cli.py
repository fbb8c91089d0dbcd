"""Tests for the coursekit-sync command line.

Drives ``main()`` end to end against real source and target trees, with
the config written to a file and passed via ``--config``.
"""

import json
import textwrap

import pytest

from coursekit_sync.cli import (
    EXIT_CONFLICTS,
    EXIT_ERROR,
    EXIT_OK,
    build_parser,
    format_error,
    main,
)

TARGET_FILE = "src/content/lessons/py/01-intro.md"


@pytest.fixture
def project(tmp_path, monkeypatch):
    """Source and target trees plus a config file pointing at them."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))

    source = tmp_path / "intro-python"
    lessons = source / "lessons"
    lessons.mkdir(parents=True)
    (lessons / "01-intro.md").write_text(
        "---\ntitle: Intro\n---\nWelcome.\n", encoding="utf-8"
    )
    target = tmp_path / "platform"
    target.mkdir()

    config = tmp_path / "sync.yml"
    config.write_text(
        textwrap.dedent(f"""\
        target:
          path: {target}
        sources:
          py:
            path: {source}
            origin: github.com/example/intro-python
        content_types:
          lessons:
            source_dir: lessons
            target_dir: src/content/lessons
        """),
        encoding="utf-8",
    )
    return {"source": source, "target": target, "config": str(config)}


def _run(project, *args):
    return main(["--config", project["config"], *args])


# ---------------------------------------------------------------------------
# Parser and helpers
# ---------------------------------------------------------------------------


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_scope_flags_shared(self):
        args = build_parser().parse_args(
            ["push", "--type", "lessons", "--namespace", "py", "--force"]
        )
        assert args.content_type == "lessons"
        assert args.namespace == "py"
        assert args.force is True
        assert args.dry_run is False

    def test_format_error(self):
        assert format_error("io_error", "disk full", "Free space.") == (
            "Error (io_error): disk full\n\nAction: Free space."
        )


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestInit:
    def test_creates_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))

        assert main(["init"]) == EXIT_OK

        created = tmp_path / ".coursekit" / "config.yml"
        assert created.is_file()
        assert "Created" in capsys.readouterr().out

    def test_existing_config_left_alone(self, project, capsys):
        before = open(project["config"], encoding="utf-8").read()

        assert _run(project, "init") == EXIT_OK

        assert "Config already exists" in capsys.readouterr().out
        assert open(project["config"], encoding="utf-8").read() == before


# ---------------------------------------------------------------------------
# diff / status
# ---------------------------------------------------------------------------


class TestDiff:
    def test_text_output(self, project, capsys):
        assert _run(project, "diff") == EXIT_OK

        out = capsys.readouterr().out
        assert "Diff for 'lessons'" in out
        assert "py/intro" in out

    def test_json_output(self, project, capsys):
        assert _run(project, "diff", "--json") == EXIT_OK

        payload = json.loads(capsys.readouterr().out)
        lessons = payload["lessons"]
        assert lessons["summary"]["added"] == 1
        assert lessons["summary"]["total"] == 1
        assert [i["key"] for i in lessons["items"]] == ["py/intro"]

    def test_diff_writes_nothing(self, project):
        _run(project, "diff")
        assert list(project["target"].iterdir()) == []


class TestStatus:
    def test_clean_after_push(self, project, capsys):
        assert _run(project, "push") == EXIT_OK
        capsys.readouterr()

        assert _run(project, "status") == EXIT_OK
        assert "No conflicts" in capsys.readouterr().out

    def test_conflict_exit_code(self, project, capsys):
        _run(project, "push")
        (project["target"] / TARGET_FILE).write_text(
            "---\ntitle: Intro\n---\nHand edit.\n", encoding="utf-8"
        )
        capsys.readouterr()

        assert _run(project, "status", "--json") == EXIT_CONFLICTS

        payload = json.loads(capsys.readouterr().out)
        conflicts = payload["lessons"]["conflicts"]
        assert conflicts["has_conflicts"] is True
        assert conflicts["conflicts"][0]["conflict_type"] == "modified"

    def test_malformed_ledger(self, project, capsys):
        ledger = project["target"] / ".sync" / "lessons.json"
        ledger.parent.mkdir()
        ledger.write_text("{not json", encoding="utf-8")

        assert _run(project, "status") == EXIT_ERROR
        assert "Error (ledger_error)" in capsys.readouterr().err

    def test_ledger_not_utf8(self, project, capsys):
        ledger = project["target"] / ".sync" / "lessons.json"
        ledger.parent.mkdir()
        ledger.write_bytes(b'{"version": 1, "records": {"\xff": {}}}')

        assert _run(project, "push") == EXIT_ERROR

        err = capsys.readouterr().err
        assert "Error (ledger_error)" in err
        assert "not valid UTF-8" in err


# ---------------------------------------------------------------------------
# push
# ---------------------------------------------------------------------------


class TestPush:
    def test_publishes_and_records(self, project, capsys):
        assert _run(project, "push") == EXIT_OK

        written = project["target"] / TARGET_FILE
        assert written.read_text(encoding="utf-8") == (
            "---\ntitle: Intro\n---\nWelcome.\n"
        )
        assert (project["target"] / ".sync" / "lessons.json").is_file()
        assert "Created" in capsys.readouterr().out

    def test_dry_run_writes_nothing(self, project, capsys):
        assert _run(project, "push", "--dry-run") == EXIT_OK

        assert "DRY RUN" in capsys.readouterr().out
        assert list(project["target"].iterdir()) == []

    def test_conflict_blocks_then_force(self, project, capsys):
        _run(project, "push")
        written = project["target"] / TARGET_FILE
        written.write_text(
            "---\ntitle: Intro\n---\nHand edit.\n", encoding="utf-8"
        )

        assert _run(project, "push") == EXIT_CONFLICTS
        assert "Hand edit." in written.read_text(encoding="utf-8")

        assert _run(project, "push", "--force") == EXIT_OK
        assert "Welcome." in written.read_text(encoding="utf-8")

    def test_json_report(self, project, capsys):
        assert _run(project, "push", "--json") == EXIT_OK

        report = json.loads(capsys.readouterr().out)["lessons"]
        assert report["success"] is True
        assert report["results"][0]["action"] == "create"
        assert report["results"][0]["target_path"] == TARGET_FILE


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


def _with_lesson_schema(project):
    with open(project["config"], "a", encoding="utf-8") as fh:
        fh.write("    front_matter_schema: lesson\n")


class TestValidate:
    def test_invalid_front_matter(self, project, capsys):
        _with_lesson_schema(project)

        assert _run(project, "validate") == EXIT_ERROR

        out = capsys.readouterr().out
        assert "lessons/01-intro.md:" in out
        assert "moduleId is required" in out
        assert "Validation failed" in out

    def test_valid_front_matter_json(self, project, capsys):
        _with_lesson_schema(project)
        (project["source"] / "lessons" / "01-intro.md").write_text(
            "---\ntitle: Intro\nmoduleId: m1\norder: 1\n---\nWelcome.\n",
            encoding="utf-8",
        )

        assert _run(project, "validate", "--json") == EXIT_OK

        payload = json.loads(capsys.readouterr().out)
        assert payload["lessons"]["valid"] is True
        assert payload["lessons"]["total_files"] == 1

    def test_type_without_schema_skipped(self, project, capsys):
        assert _run(project, "validate") == EXIT_OK
        out = capsys.readouterr().out
        assert "No front-matter schema for 'lessons'" in out

    def test_explicit_type_without_schema(self, project, capsys):
        assert _run(project, "validate", "--type", "lessons") == EXIT_ERROR
        assert "Error (invalid_config)" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


class TestErrors:
    def test_missing_config_path(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)

        code = main(["--config", str(tmp_path / "nope.yml"), "diff"])

        assert code == EXIT_ERROR
        assert "Error (config_not_found)" in capsys.readouterr().err

    def test_invalid_yaml(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        bad = tmp_path / "bad.yml"
        bad.write_text("sources: [unclosed\n", encoding="utf-8")

        assert main(["--config", str(bad), "diff"]) == EXIT_ERROR
        assert "Error (invalid_config)" in capsys.readouterr().err

    def test_unknown_content_type(self, project, capsys):
        assert _run(project, "diff", "--type", "videos") == EXIT_ERROR

        err = capsys.readouterr().err
        assert "Error (invalid_config)" in err
        assert "videos" in err

    def test_missing_target(self, project, capsys):
        code = _run(project, "--target", "/definitely/not/here", "diff")

        assert code == EXIT_ERROR
        assert "Target directory not found" in capsys.readouterr().err
