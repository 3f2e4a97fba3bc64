"""Tests for the Manifest Reducer and report rendering."""

import json

import pytest

from opdep.manifest import PackageManifest
from opdep.report import (
    DependencyReport,
    UsedDependencies,
    build_optimized_manifest,
    reduce_manifest,
)
from opdep.walker import AnalysisState


# ── Fixtures ──


@pytest.fixture
def manifest():
    return PackageManifest(
        name="web",
        version="1.0.0",
        dependencies={"react": "^18.2.0", "lodash": "^4.17.21", "unused-dep": "^1.0.0"},
        dev_dependencies={"typescript": "^5.0.0", "unused-dev-dep": "^1.0.0"},
        peer_dependencies={"react-dom": "^18.2.0"},
        path="apps/web/package.json",
    )


@pytest.fixture
def state():
    return AnalysisState(
        visited={"apps/web/src/index.ts", "apps/web/src/util.ts"},
        external_imports={
            "react": {"useState", "default"},
            "typescript": {"*"},
            "left-pad": {"default"},
        },
        internal_imports={"./util", "@shared"},
        internal_alias_imports={"@app/b", "@app/a"},
        unresolved={"./gone"},
    )


# ── Reducer ──


class TestReduceManifest:

    def test_runtime_and_dev_split(self, manifest, state):
        used = reduce_manifest(state.external_imports, manifest)
        assert used.dependencies == {"react": "^18.2.0"}
        assert used.dev_dependencies == {"typescript": "^5.0.0"}

    def test_unreached_never_included(self, manifest):
        used = reduce_manifest({}, manifest)
        assert used == UsedDependencies()

    def test_undeclared_dropped(self, manifest):
        used = reduce_manifest({"left-pad": {"default"}}, manifest)
        assert used.dependencies == {}
        assert used.dev_dependencies == {}

    def test_runtime_section_wins(self):
        manifest = PackageManifest(
            dependencies={"zod": "^3.0.0"}, dev_dependencies={"zod": "^3.1.0"},
        )
        used = reduce_manifest({"zod": set()}, manifest)
        assert used.dependencies == {"zod": "^3.0.0"}
        assert used.dev_dependencies == {}

    def test_declaration_order_irrelevant(self):
        first = PackageManifest(dependencies={"a": "1", "b": "2", "c": "3"})
        second = PackageManifest(dependencies={"c": "3", "b": "2", "a": "1"})
        reached = {"b": set()}
        assert reduce_manifest(reached, first) == reduce_manifest(reached, second)

    def test_output_sorted(self):
        manifest = PackageManifest(dependencies={"zod": "1", "axios": "2"})
        used = reduce_manifest({"zod": set(), "axios": set()}, manifest)
        assert list(used.dependencies) == ["axios", "zod"]


# ── DependencyReport ──


class TestDependencyReport:

    def test_from_analysis(self, manifest, state):
        report = DependencyReport.from_analysis("web", state, manifest)
        assert report.project_name == "web"
        assert report.modules_analyzed == 2
        assert report.external_imports == {
            "left-pad": ["default"],
            "react": ["default", "useState"],
            "typescript": ["*"],
        }
        assert report.internal_imports == ["./util", "@shared"]
        assert report.internal_alias_imports == ["@app/a", "@app/b"]
        assert report.unresolved_imports == ["./gone"]

    def test_as_dict_shape(self, manifest, state):
        data = DependencyReport.from_analysis("web", state, manifest).as_dict()
        assert data == {
            "dependencies": {"react": "^18.2.0"},
            "devDependencies": {"typescript": "^5.0.0"},
            "analysis": {
                "externalImports": {
                    "left-pad": ["default"],
                    "react": ["default", "useState"],
                    "typescript": ["*"],
                },
                "internalImports": ["./util", "@shared"],
                "internalAliasImports": ["@app/a", "@app/b"],
            },
        }

    def test_as_json(self, manifest, state):
        text = DependencyReport.from_analysis("web", state, manifest).as_json()
        assert text.endswith("\n")
        assert json.loads(text)["dependencies"] == {"react": "^18.2.0"}

    def test_empty_report(self):
        data = DependencyReport().as_dict()
        assert data["dependencies"] == {}
        assert data["devDependencies"] == {}
        assert data["analysis"] == {
            "externalImports": {}, "internalImports": [], "internalAliasImports": [],
        }

    def test_as_text(self, manifest, state):
        text = DependencyReport.from_analysis("web", state, manifest).as_text()
        assert "Dependency analysis: web" in text
        assert "Used dependencies (1)" in text
        assert "react: ^18.2.0" in text
        assert "Used devDependencies (1)" in text
        assert "Reached but not declared" in text
        assert "- left-pad" in text
        assert "Unresolved internal imports" in text
        assert "unused-dep" not in text

    def test_as_text_truncates_unresolved(self):
        report = DependencyReport(unresolved_imports=[f"./m{i}" for i in range(15)])
        assert "+5 more" in report.as_text()

    def test_as_text_depth_note(self):
        assert "cut at the recursion depth limit" in DependencyReport(depth_exceeded=3).as_text()


# ── Optimized Manifest ──


class TestOptimizedManifest:

    def test_build(self, manifest):
        used = UsedDependencies({"react": "^18.2.0"}, {"typescript": "^5.0.0"})
        assert build_optimized_manifest(manifest, used) == {
            "name": "web",
            "version": "1.0.0",
            "dependencies": {"react": "^18.2.0"},
            "devDependencies": {"typescript": "^5.0.0"},
            "peerDependencies": {"react-dom": "^18.2.0"},
        }
