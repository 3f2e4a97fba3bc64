"""opdep — find the npm dependencies a workspace project actually uses."""

from opdep.aliases import AliasEntry, AliasResolver, AliasTable
from opdep.analyzer import AnalysisResult, AnalyzeConfig, run_analysis
from opdep.classifier import (
    Classification,
    ResolutionContext,
    SpecifierKind,
    classify,
    package_name,
)
from opdep.manifest import (
    ManifestError,
    ManifestLoader,
    ManifestNotFoundError,
    PackageManifest,
)
from opdep.parser import (
    ModuleLoader,
    ModuleReference,
    ReferenceKind,
    SourceModule,
    parse_module,
)
from opdep.registry import (
    ProjectConfig,
    ProjectNotFoundError,
    ProjectRegistry,
    RegistryError,
)
from opdep.report import DependencyReport, UsedDependencies, reduce_manifest
from opdep.tree import DiskTree, FileTree, MemoryTree, TreeError
from opdep.walker import AnalysisState, ModuleGraphWalker
from opdep.workspace import (
    WorkspaceLibrary,
    WorkspaceLibraryIndex,
    WorkspaceLibraryResolver,
)

__all__ = [
    # File tree
    "FileTree",
    "DiskTree",
    "MemoryTree",
    "TreeError",
    # Source parser
    "parse_module",
    "ModuleLoader",
    "ModuleReference",
    "ReferenceKind",
    "SourceModule",
    # Registry and manifest
    "ProjectRegistry",
    "ProjectConfig",
    "RegistryError",
    "ProjectNotFoundError",
    "PackageManifest",
    "ManifestLoader",
    "ManifestError",
    "ManifestNotFoundError",
    # Specifier Classifier
    "classify",
    "package_name",
    "Classification",
    "ResolutionContext",
    "SpecifierKind",
    # Alias Resolver
    "AliasResolver",
    "AliasTable",
    "AliasEntry",
    # Workspace Library Resolver
    "WorkspaceLibrary",
    "WorkspaceLibraryIndex",
    "WorkspaceLibraryResolver",
    # Module Graph Walker
    "ModuleGraphWalker",
    "AnalysisState",
    # Manifest Reducer
    "reduce_manifest",
    "DependencyReport",
    "UsedDependencies",
    # Analyzer
    "run_analysis",
    "AnalyzeConfig",
    "AnalysisResult",
]
