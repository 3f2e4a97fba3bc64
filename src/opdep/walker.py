"""Module Graph Walker — follows a project's references to the packages it reaches.

Starting from entry modules, every import, re-export and namespace
re-export is classified.  Internal targets are resolved to files whose own
references are followed; external targets are accumulated with the
bindings pulled from them.

Traversal is an explicit LIFO worklist of ``(reference, context, depth)``
items, so neither cycles nor deep chains touch the Python call stack:

  - a module key goes into ``visited`` before its references are queued,
    so every module is expanded at most once;
  - items deeper than ``max_depth`` are dropped with a warning;
  - at most ``max_modules`` module keys are ever expanded.

Unresolvable internal targets end their branch silently.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from opdep.classifier import Classification, ResolutionContext, SpecifierKind, classify
from opdep.parser import ModuleReference, SourceModule
from opdep.workspace import WorkspaceLibrary, WorkspaceLibraryResolver

logger = logging.getLogger(__name__)

# ── Constants ──

MAX_DEPTH = 50
MAX_MODULES = 10_000


# ── Data Classes ──


@dataclass
class AnalysisState:
    """Accumulated results of one walk.  Never shared between runs.

    Attributes:
        visited: Module keys (file paths) already expanded.
        external_imports: Package name -> bindings used from it.
        internal_imports: Relative and workspace-library specifiers seen.
        internal_alias_imports: Alias specifiers seen.
        expanded_libraries: Workspace libraries already loaded.
        depth_exceeded: Branches dropped for exceeding the depth bound.
        unresolved: Internal specifiers that matched no file.
    """

    visited: set[str] = field(default_factory=set)
    external_imports: dict[str, set[str]] = field(default_factory=dict)
    internal_imports: set[str] = field(default_factory=set)
    internal_alias_imports: set[str] = field(default_factory=set)
    expanded_libraries: set[str] = field(default_factory=set)
    depth_exceeded: int = 0
    unresolved: set[str] = field(default_factory=set)

    def record_external(self, package: str, bindings: Iterable[str]) -> None:
        self.external_imports.setdefault(package, set()).update(bindings)


@dataclass(frozen=True)
class WorkItem:
    """One pending reference together with where it was found."""

    reference: ModuleReference
    context: ResolutionContext
    depth: int = 0


# ── Walker ──


class ModuleGraphWalker:
    """Depth-first reference walker over one project's module graph.

    Usage::

        walker = ModuleGraphWalker(library_resolver)
        walker.add_entry(module, context)
        state = walker.run()
    """

    def __init__(
        self,
        libraries: WorkspaceLibraryResolver,
        max_depth: int = MAX_DEPTH,
        max_modules: int = MAX_MODULES,
    ):
        self._libraries = libraries
        self._max_depth = max_depth
        self._max_modules = max_modules
        self._state = AnalysisState()
        self._stack: list[WorkItem] = []
        self._budget_warned = False

    @property
    def state(self) -> AnalysisState:
        return self._state

    # ── Public API ──

    def add_entry(self, module: SourceModule, context: ResolutionContext) -> None:
        """Seed the walk with an entry module's references at depth 0."""
        self._state.visited.add(module.path)
        self._push_module(module, context, depth=0)

    def walk(
        self, entries: Iterable[tuple[SourceModule, ResolutionContext]]
    ) -> AnalysisState:
        """Seed every entry, then run to completion."""
        for module, context in entries:
            self.add_entry(module, context)
        return self.run()

    def run(self) -> AnalysisState:
        """Drain the worklist and return the accumulated state."""
        while self._stack:
            self._process(self._stack.pop())
        return self._state

    # ── Worklist ──

    def _push_module(self, module: SourceModule, context: ResolutionContext, depth: int) -> None:
        module_context = replace(context, base_dir=module.directory)
        # Reversed so references pop in source order
        for reference in reversed(module.references):
            self._stack.append(WorkItem(reference, module_context, depth))

    def _process(self, item: WorkItem) -> None:
        specifier = item.reference.specifier
        logger.debug("Analyzing import: %s (depth %d)", specifier, item.depth)

        if item.depth > self._max_depth:
            self._state.depth_exceeded += 1
            logger.warning(
                "Max recursion depth (%d) exceeded: %s", self._max_depth, specifier
            )
            return

        result = classify(specifier, item.context)
        kind = result.kind
        if kind is SpecifierKind.EXTERNAL:
            self._state.record_external(result.package_name, item.reference.bindings)
        elif kind is SpecifierKind.RELATIVE_INTERNAL:
            self._state.internal_imports.add(specifier)
            self._follow(result, result.resolved_path, item)
        elif kind is SpecifierKind.ALIAS_INTERNAL:
            self._state.internal_alias_imports.add(specifier)
            target = result.alias.substitute(specifier)
            logger.debug("Resolving alias import: %s -> %s", specifier, target)
            self._follow(result, target, item)
        elif kind is SpecifierKind.WORKSPACE_INTERNAL:
            self._state.internal_imports.add(specifier)
            if result.library is not None:
                self._expand_library(result.library, item)
        else:
            raise AssertionError(f"Unhandled specifier kind: {kind}")

    def _follow(self, result: Classification, target: Optional[str], item: WorkItem) -> None:
        """Queue the references of the module ``target`` resolves to."""
        loader = item.context.loader
        path = loader.resolve(target) if target else None
        if path is None:
            self._state.unresolved.add(result.specifier)
            logger.debug("Could not find source file for import: %s (%s)", result.specifier, target)
            return
        if path in self._state.visited or not self._claim(path):
            return
        module = loader.load(path)
        if module is not None:
            logger.debug("Recursively exploring file: %s", path)
            self._push_module(module, item.context, item.depth + 1)

    def _expand_library(self, library: WorkspaceLibrary, item: WorkItem) -> None:
        if library.name in self._state.expanded_libraries:
            return
        self._state.expanded_libraries.add(library.name)
        context = replace(item.context, alias_table=self._libraries.alias_table(library))
        for module in self._libraries.load_modules(library):
            if module.path in self._state.visited or not self._claim(module.path):
                continue
            logger.debug("Recursively exploring workspace library file: %s", module.path)
            self._push_module(module, context, item.depth + 1)

    def _claim(self, path: str) -> bool:
        """Mark ``path`` visited unless the module budget is spent."""
        if len(self._state.visited) >= self._max_modules:
            if not self._budget_warned:
                logger.warning(
                    "Module budget (%d) exhausted; remaining modules are skipped",
                    self._max_modules,
                )
                self._budget_warned = True
            return False
        self._state.visited.add(path)
        return True
