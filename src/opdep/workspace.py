"""Workspace Library Resolver — sibling libraries addressed as ``@name/...``.

A specifier refers to a workspace library when, after dropping the leading
``@``, it equals the library's name or starts with ``name/``.  Expanding a
library loads every non-test source file under its root, classified with
that library's own alias table.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from opdep.aliases import AliasResolver, AliasTable
from opdep.parser import ModuleLoader, SourceModule, discover_source_files
from opdep.registry import ProjectRegistry
from opdep.tree import normalize_path

logger = logging.getLogger(__name__)


# ── Data Classes ──


@dataclass(frozen=True)
class WorkspaceLibrary:
    """A library project inside the workspace."""

    name: str
    root: str


class WorkspaceLibraryIndex:
    """Library name -> ``WorkspaceLibrary``, built once per run."""

    def __init__(self, libraries: Optional[list[WorkspaceLibrary]] = None):
        self._libraries: dict[str, WorkspaceLibrary] = {
            lib.name: lib for lib in libraries or []
        }

    @classmethod
    def from_registry(cls, registry: ProjectRegistry) -> "WorkspaceLibraryIndex":
        return cls([
            WorkspaceLibrary(name=p.name, root=normalize_path(p.root))
            for p in registry.libraries()
        ])

    def match(self, specifier: str) -> Optional[WorkspaceLibrary]:
        """The library a scoped specifier refers to, if any.

        When several names match (``ui`` and ``ui/forms``), the longest wins.
        """
        if not specifier.startswith("@"):
            return None
        bare = specifier[1:]
        best: Optional[WorkspaceLibrary] = None
        for name, lib in self._libraries.items():
            if bare == name or bare.startswith(name + "/"):
                if best is None or len(name) > len(best.name):
                    best = lib
        return best

    def get(self, name: str) -> Optional[WorkspaceLibrary]:
        return self._libraries.get(name)

    def __iter__(self) -> Iterator[WorkspaceLibrary]:
        return iter(self._libraries.values())

    def __len__(self) -> int:
        return len(self._libraries)

    def __contains__(self, name: object) -> bool:
        return name in self._libraries


# ── Resolver ──


class WorkspaceLibraryResolver:
    """Materializes a library's module set and alias table."""

    def __init__(self, loader: ModuleLoader, aliases: AliasResolver):
        self._loader = loader
        self._aliases = aliases

    @property
    def loader(self) -> ModuleLoader:
        return self._loader

    def alias_table(self, library: WorkspaceLibrary) -> AliasTable:
        return self._aliases.table_for(library.root)

    def load_modules(self, library: WorkspaceLibrary) -> list[SourceModule]:
        """Parse every non-test source file under the library root.

        Unreadable files are skipped.
        """
        modules: list[SourceModule] = []
        files = discover_source_files(self._loader.tree, library.root)
        if not files:
            logger.warning("Workspace library %s has no source files under %s", library.name, library.root)
        for path in files:
            module = self._loader.load(path)
            if module is not None:
                modules.append(module)
        logger.info("Loaded %d module(s) from workspace library %s", len(modules), library.name)
        return modules
