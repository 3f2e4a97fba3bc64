"""Tests for the CLI entry point, run against real directories."""

import json

import pytest

from opdep.cli import build_parser, main
from opdep.tree import TreeError


# ── Fixtures ──


@pytest.fixture
def disk_workspace(tmp_path):
    """A small Nx-style workspace on disk."""
    web = tmp_path / "apps" / "web"
    (web / "src").mkdir(parents=True)
    (web / "project.json").write_text(json.dumps({"name": "web"}))
    (web / "package.json").write_text(json.dumps({
        "name": "web",
        "version": "0.1.0",
        "dependencies": {"express": "^4.18.0", "cors": "^2.8.5"},
        "devDependencies": {"nodemon": "^3.0.0"},
    }))
    (web / "src" / "server.js").write_text(
        "const express = require('express');\nconst { json } = require('./body');\n"
    )
    (web / "src" / "body.js").write_text("module.exports = { json: express.json };\n")
    return tmp_path


class TestCLI:

    def test_parser(self):
        parser = build_parser()
        assert parser.prog == "opdep"
        args = parser.parse_args(["web", "--target-lib", "libs/a", "--target-lib", "libs/b"])
        assert args.project == "web"
        assert args.target_lib == ["libs/a", "libs/b"]
        assert args.max_depth == 50

    def test_writes_report(self, disk_workspace, capsys):
        exit_code = main(["web", "--workspace", str(disk_workspace)])
        assert exit_code == 0
        report = json.loads((disk_workspace / "apps" / "web" / "opdep.json").read_text())
        assert report["dependencies"] == {"express": "^4.18.0"}
        out = capsys.readouterr().out
        assert "Dependency analysis: web" in out
        assert "Report written: apps/web/opdep.json" in out

    def test_json_output(self, disk_workspace, capsys):
        assert main(["web", "--workspace", str(disk_workspace), "--json"]) == 0
        printed = json.loads(capsys.readouterr().out)
        assert printed["analysis"]["externalImports"] == {"express": ["*"]}

    def test_optimize_manifest(self, disk_workspace, capsys):
        assert main(["web", "--workspace", str(disk_workspace), "--optimize-manifest"]) == 0
        optimized = disk_workspace / "apps" / "web" / "package.optimized.json"
        assert json.loads(optimized.read_text())["dependencies"] == {"express": "^4.18.0"}
        assert "Manifest written: apps/web/package.optimized.json" in capsys.readouterr().out

    def test_unknown_project(self, disk_workspace, capsys):
        assert main(["ghost", "--workspace", str(disk_workspace)]) == 1
        assert "Error: Project ghost not found in workspace" in capsys.readouterr().err

    def test_nonexistent_workspace(self, tmp_path, capsys):
        assert main(["web", "--workspace", str(tmp_path / "nope")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_invalid_pattern(self, disk_workspace, capsys):
        assert main(["web", "--workspace", str(disk_workspace), "--internal-pattern", "("]) == 1
        assert "invalid internal pattern" in capsys.readouterr().err

    def test_unreadable_file_during_analysis(self, disk_workspace, monkeypatch, capsys):
        def fail(tree, config):
            raise TreeError("File not found: apps/web/project.json")

        monkeypatch.setattr("opdep.cli.run_analysis", fail)
        assert main(["web", "--workspace", str(disk_workspace)]) == 1
        assert "Error: File not found: apps/web/project.json" in capsys.readouterr().err
