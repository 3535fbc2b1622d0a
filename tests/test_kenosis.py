from __future__ import annotations

import io
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from conftest import make_file

import auxiliary
import kenosis
from artifact_catalog import load_catalog
from confirmation_gate import ConfirmationGate
from deletion_executor import DeletionExecutor
from kenosis import EXIT_FATAL, EXIT_OK, Kenosis, build_parser
from kenosis_config import KenosisConfig


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("SUDO_USER", raising=False)
    monkeypatch.setattr(sys, "stdin", io.StringIO())
    return home


def _app(ui, *argv: str) -> Kenosis:
    args = build_parser().parse_args([*argv, "--no-elevated"])
    return Kenosis(args, ui=ui, config=KenosisConfig(), catalog=load_catalog())


def _workspace(root: Path) -> Path:
    make_file(root / "web" / "node_modules" / "react.js", 300 * 1024)
    make_file(root / "api" / "node_modules" / "express.js", 200 * 1024)
    make_file(root / "py" / "pkg" / "__pycache__" / "mod.pyc", 20 * 1024)
    make_file(root / "py" / "src" / "main.py", 2048)
    return root


def test_clean_system_reports_clean_without_prompting(tmp_path: Path, ui, monkeypatch) -> None:
    make_file(tmp_path / "work" / "notes.txt", 4096)
    make_file(tmp_path / "work" / "src" / "app.py", 4096)

    def fail(*args, **kwargs):
        raise AssertionError("should not be called on a clean system")

    monkeypatch.setattr(ConfirmationGate, "confirm", fail)
    monkeypatch.setattr(DeletionExecutor, "execute", fail)

    code = _app(ui, "clean", str(tmp_path / "work")).cmd_clean(tmp_path / "work")

    assert code == EXIT_OK
    assert "System is clean!" in ui.console.export_text()


def test_forced_clean_removes_artifacts(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")

    code = _app(ui, "clean", str(root), "--force").cmd_clean(root)

    assert code == EXIT_OK
    assert not (root / "web" / "node_modules").exists()
    assert not (root / "api" / "node_modules").exists()
    assert not (root / "py" / "pkg" / "__pycache__").exists()
    assert (root / "py" / "src" / "main.py").exists()
    output = ui.console.export_text()
    assert "Development Artifacts" in output
    assert "Total space freed: 520 KiB" in output


def test_dry_run_keeps_everything(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")

    code = _app(ui, "clean", str(root), "--dry-run").cmd_clean(root)

    assert code == EXIT_OK
    assert (root / "web" / "node_modules" / "react.js").exists()
    assert (root / "py" / "pkg" / "__pycache__" / "mod.pyc").exists()
    assert "Dry run complete: about 520 KiB could be freed" in ui.console.export_text()


def test_without_terminal_destructive_categories_are_skipped(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")

    code = _app(ui, "clean", str(root)).cmd_clean(root)

    assert code == EXIT_OK
    assert (root / "web" / "node_modules").exists()
    assert "Development Artifacts: skipped" in ui.console.export_text()


def test_per_group_confirmation(tmp_path: Path, ui, monkeypatch) -> None:
    root = _workspace(tmp_path / "work")
    subjects = []
    real_confirm = ConfirmationGate.confirm

    def recording_confirm(self, subject, *args, **kwargs):
        subjects.append(subject)
        return real_confirm(self, subject, *args, **kwargs)

    monkeypatch.setattr(ConfirmationGate, "confirm", recording_confirm)

    _app(ui, "clean", str(root), "--force", "--per-group").cmd_clean(root)

    assert subjects == ["node_modules", "__pycache__"]
    assert not (root / "web" / "node_modules").exists()


def test_audit_log_file_records_run(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")
    log_file = tmp_path / "audit.log"

    _app(ui, "clean", str(root), "--force", "--log-file", str(log_file)).cmd_clean(root)

    text = log_file.read_text()
    assert "Cleanup started" in text
    assert "Proceeding with cleanup: Development Artifacts" in text
    assert "Cleanup finished" in text


def test_fixed_home_locations_are_cleaned(tmp_path: Path, ui, isolated_home: Path) -> None:
    make_file(isolated_home / ".cache" / "pip" / "wheel.whl", 64 * 1024)
    make_file(isolated_home / ".local" / "share" / "Trash" / "files" / "old.doc", 8 * 1024)

    code = _app(ui, "clean", str(isolated_home), "--force").cmd_clean(isolated_home)

    assert code == EXIT_OK
    assert (isolated_home / ".cache").is_dir()
    assert list((isolated_home / ".cache").iterdir()) == []
    assert list((isolated_home / ".local" / "share" / "Trash").iterdir()) == []
    output = ui.console.export_text()
    assert output.index("Category: Application Caches") < output.index("Category: Trash")


def test_analyze_lists_folders_and_cleanables(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")

    code = _app(ui, "analyze", str(root), "--count", "5").cmd_analyze(root)

    assert code == EXIT_OK
    output = ui.console.export_text()
    assert "Largest folders" in output
    assert "Cleanable items" in output
    assert "node_modules" in output
    assert "Total reclaimable: 520 KiB" in output
    assert (root / "web" / "node_modules").exists()


def test_analyze_without_cleanables(tmp_path: Path, ui) -> None:
    root = _workspace(tmp_path / "work")

    _app(ui, "analyze", str(root), "--mode", "files", "--no-cleanables").cmd_analyze(root)

    output = ui.console.export_text()
    assert "Largest files" in output
    assert "Cleanable items" not in output


def test_display_count_is_clamped(ui) -> None:
    assert _app(ui, "analyze", "--count", "5").display_count == 10
    assert _app(ui, "analyze", "--count", "9000").display_count == 500
    assert _app(ui, "analyze", "--count", "many").display_count == 50


def test_main_rejects_missing_root(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr(kenosis, "setup_logging", lambda console, verbose: None)
    monkeypatch.setattr(Kenosis, "install_signal_handlers", lambda self: None)

    code = kenosis.main(["clean", str(tmp_path / "missing"), "--no-elevated"])

    assert code == EXIT_FATAL
    assert "does not exist" in capsys.readouterr().out


def test_main_without_command_prints_help(capsys) -> None:
    assert kenosis.main([]) == EXIT_OK
    assert "usage: kenosis" in capsys.readouterr().out


def test_clean_defaults_to_invoking_users_home(tmp_path: Path, ui, monkeypatch) -> None:
    ana = tmp_path / "ana"
    ana.mkdir()
    monkeypatch.setenv("SUDO_USER", "ana")
    monkeypatch.setattr(auxiliary.pwd, "getpwnam", lambda name: SimpleNamespace(pw_dir=str(ana)))
    monkeypatch.setattr(Kenosis, "install_signal_handlers", lambda self: None)
    roots = []
    monkeypatch.setattr(Kenosis, "cmd_clean", lambda self, root: roots.append(root) or EXIT_OK)

    assert _app(ui, "clean").run() == EXIT_OK
    assert roots == [ana]


def test_analyze_files_honours_min_size(tmp_path: Path, ui) -> None:
    make_file(tmp_path / "work" / "disk.img", 300 * 1024)
    make_file(tmp_path / "work" / "notes.txt", 150 * 1024)

    argv = ("analyze", str(tmp_path / "work"), "--mode", "files", "--min-size", "200K", "--no-cleanables")
    _app(ui, *argv).cmd_analyze(tmp_path / "work")

    output = ui.console.export_text()
    assert "disk.img" in output
    assert "notes.txt" not in output
