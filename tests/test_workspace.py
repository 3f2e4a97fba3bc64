"""Tests for the Workspace Library Resolver."""

import json

import pytest

from opdep.aliases import AliasResolver
from opdep.parser import ModuleLoader
from opdep.registry import LIBRARY, ProjectConfig, ProjectRegistry
from opdep.tree import MemoryTree
from opdep.workspace import (
    WorkspaceLibrary,
    WorkspaceLibraryIndex,
    WorkspaceLibraryResolver,
)


# ── Fixtures ──


@pytest.fixture
def index():
    return WorkspaceLibraryIndex([
        WorkspaceLibrary("ui", "libs/ui"),
        WorkspaceLibrary("ui/forms", "libs/ui-forms"),
        WorkspaceLibrary("data", "libs/data"),
    ])


@pytest.fixture
def library_tree():
    return MemoryTree({
        "libs/data/tsconfig.json": json.dumps({
            "compilerOptions": {"paths": {"@data/*": ["src/*"]}},
        }),
        "libs/data/src/index.ts": "export * from './client';",
        "libs/data/src/client.ts": "import axios from 'axios';",
        "libs/data/src/client.spec.ts": "import { expect } from 'vitest';",
        "libs/data/dist/index.js": "",
        "libs/empty/README.md": "",
    })


# ── Index ──


class TestWorkspaceLibraryIndex:

    def test_exact_name(self, index):
        assert index.match("@data").name == "data"

    def test_subpath(self, index):
        assert index.match("@data/models/user").name == "data"

    def test_longest_name_wins(self, index):
        assert index.match("@ui/forms/input").name == "ui/forms"
        assert index.match("@ui/button").name == "ui"

    def test_requires_at_prefix(self, index):
        assert index.match("data") is None

    def test_name_must_end_at_segment(self, index):
        assert index.match("@database") is None

    def test_from_registry_keeps_only_libraries(self):
        registry = ProjectRegistry([
            ProjectConfig("web", "apps/web"),
            ProjectConfig("data", "./libs/data", LIBRARY),
        ])
        index = WorkspaceLibraryIndex.from_registry(registry)
        assert len(index) == 1
        assert index.get("data").root == "libs/data"
        assert "web" not in index


# ── Resolver ──


class TestWorkspaceLibraryResolver:

    def test_load_modules_skips_tests_and_build_output(self, library_tree):
        resolver = WorkspaceLibraryResolver(
            ModuleLoader(library_tree), AliasResolver(library_tree)
        )
        modules = resolver.load_modules(WorkspaceLibrary("data", "libs/data"))
        assert [m.path for m in modules] == [
            "libs/data/src/client.ts", "libs/data/src/index.ts",
        ]

    def test_library_alias_table(self, library_tree):
        resolver = WorkspaceLibraryResolver(
            ModuleLoader(library_tree), AliasResolver(library_tree)
        )
        table = resolver.alias_table(WorkspaceLibrary("data", "libs/data"))
        assert table.match("@data/client").substitute("@data/client") == "libs/data/src/client"

    def test_empty_library_warns(self, library_tree, caplog):
        resolver = WorkspaceLibraryResolver(
            ModuleLoader(library_tree), AliasResolver(library_tree)
        )
        with caplog.at_level("WARNING"):
            modules = resolver.load_modules(WorkspaceLibrary("empty", "libs/empty"))
        assert modules == []
        assert "has no source files" in caplog.text
