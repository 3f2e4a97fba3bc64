"""Analyzer — runs one dependency analysis for one workspace project.

Flow:
  1. Look up the project in the registry (fatal if absent)
  2. Load its manifest from the project or workspace root (fatal if absent)
  3. Build the per-run tables: alias tables, library index, module cache
  4. Enumerate entry modules (project sources plus any extra library roots)
  5. Walk the module graph
  6. Reduce against the manifest, write the report
  7. Optionally write an optimized manifest, or replace the original

Every table built here belongs to this one call; nothing is cached at
module level, so separate or concurrent runs never share state.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from opdep.aliases import AliasEntry, AliasResolver, AliasTable
from opdep.classifier import ResolutionContext, compile_patterns
from opdep.manifest import MANIFEST_FILE, ManifestLoader, PackageManifest
from opdep.parser import ModuleLoader, discover_source_files
from opdep.registry import ProjectConfig, ProjectRegistry
from opdep.report import DependencyReport, UsedDependencies, build_optimized_manifest
from opdep.tree import FileTree, join_path, normalize_path, read_json, write_json
from opdep.walker import MAX_DEPTH, MAX_MODULES, ModuleGraphWalker
from opdep.workspace import WorkspaceLibraryIndex, WorkspaceLibraryResolver

logger = logging.getLogger(__name__)

# ── Constants ──

DEFAULT_OUTPUT = "opdep.json"
OPTIMIZED_MANIFEST_FILE = "package.optimized.json"


# ── Data Classes ──


@dataclass
class AnalyzeConfig:
    """Configuration for one analysis run.

    Attributes:
        project_name: Registry name of the project to analyse.
        output_path: Report path, relative to the project root.
        target_libs: Extra workspace-relative roots seeded as entry points.
        internal_module_patterns: Regexes marking specifiers as internal.
        alias_patterns: Extra alias patterns, ``"@app/*"`` or
            ``"@app/*=apps/app/src/*"`` (target relative to the workspace).
        optimize_manifest: Also write an optimized ``package.json`` next to
            the report.
        replace_manifest: Rewrite the project's own ``package.json`` with
            only the used dependencies.  When the manifest is inherited
            from the workspace root, the optimized file is written instead.
        max_depth: Walker depth bound.
        max_modules: Walker module budget.
    """

    project_name: str = ""
    output_path: str = DEFAULT_OUTPUT
    target_libs: list[str] = field(default_factory=list)
    internal_module_patterns: list[str] = field(default_factory=list)
    alias_patterns: list[str] = field(default_factory=list)
    optimize_manifest: bool = False
    replace_manifest: bool = False
    max_depth: int = MAX_DEPTH
    max_modules: int = MAX_MODULES


@dataclass
class AnalysisResult:
    """Outcome of a run.

    Attributes:
        project: The analysed project.
        report: The dependency report.
        manifest: The manifest the report was reduced against.
        report_path: Where the report was written.
        manifest_paths: Manifests written (replaced and/or optimized).
        duration_ms: Wall-clock time for the run.
        warnings: Advisory messages; never fatal.
    """

    project: ProjectConfig
    report: DependencyReport
    manifest: PackageManifest
    report_path: str = ""
    manifest_paths: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    warnings: list[str] = field(default_factory=list)


# ── Analysis ──


def run_analysis(
    tree: FileTree,
    config: AnalyzeConfig,
    registry: Optional[ProjectRegistry] = None,
) -> AnalysisResult:
    """Analyse one project and write its report through ``tree``.

    Args:
        tree: Workspace file access.
        config: Run configuration.
        registry: Pre-built project registry; discovered from ``tree`` if
            not given.

    Returns:
        AnalysisResult with the report and the paths written.

    Raises:
        ProjectNotFoundError: If the project is not in the registry.
        ManifestNotFoundError: If no manifest exists for the project.
        ManifestError: If the manifest is not valid JSON.
        re.error: If an internal-module pattern is not a valid regex.
    """
    start = time.monotonic()
    if registry is None:
        registry = ProjectRegistry.discover(tree)
    project = registry.get(config.project_name)
    logger.info("Project analysis started: %s (%s)", project.name, project.root)

    manifest = ManifestLoader(tree).load(project.root)

    aliases = AliasResolver(tree)
    alias_table = _project_alias_table(aliases, project.root, config.alias_patterns)
    loader = ModuleLoader(tree)
    libraries = WorkspaceLibraryIndex.from_registry(registry)
    context = ResolutionContext(
        loader=loader,
        alias_table=alias_table,
        libraries=libraries,
        manifest=manifest,
        base_dir=project.root,
        internal_patterns=compile_patterns(config.internal_module_patterns),
    )

    walker = ModuleGraphWalker(
        WorkspaceLibraryResolver(loader, aliases),
        max_depth=config.max_depth,
        max_modules=config.max_modules,
    )
    warnings: list[str] = []
    for path in _entry_files(tree, project, config.target_libs, warnings):
        module = loader.load(path)
        if module is not None:
            walker.add_entry(module, context)
    state = walker.run()
    logger.info("Analyzed %d paths", len(state.visited))

    report = DependencyReport.from_analysis(project.name, state, manifest)
    if state.depth_exceeded:
        warnings.append(
            f"{state.depth_exceeded} import branch(es) exceeded the maximum depth of {config.max_depth}"
        )

    report_path = join_path(project.root, config.output_path)
    write_json(tree, report_path, report.as_dict())
    logger.info("Report written to %s", report_path)

    used = UsedDependencies(dict(report.dependencies), dict(report.dev_dependencies))
    manifest_paths: list[str] = []
    replaced = None
    if config.replace_manifest:
        replaced = _replace_manifest(tree, project, manifest, used, warnings)
        if replaced:
            manifest_paths.append(replaced)
    if config.optimize_manifest or (config.replace_manifest and replaced is None):
        optimized_path = join_path(project.root, OPTIMIZED_MANIFEST_FILE)
        write_json(tree, optimized_path, build_optimized_manifest(manifest, used))
        manifest_paths.append(optimized_path)
        logger.info("Optimized manifest written to %s", optimized_path)

    logger.info("Analysis complete for %s", project.name)
    logger.info("Found %d used dependencies", len(report.dependencies))
    logger.info("Found %d used dev dependencies", len(report.dev_dependencies))

    return AnalysisResult(
        project=project,
        report=report,
        manifest=manifest,
        report_path=report_path,
        manifest_paths=manifest_paths,
        duration_ms=(time.monotonic() - start) * 1000,
        warnings=warnings,
    )


# ── Helpers ──


def _project_alias_table(
    aliases: AliasResolver, project_root: str, alias_patterns: list[str]
) -> AliasTable:
    """The project's merged table, with command-line aliases layered last."""
    table = AliasTable(list(aliases.table_for(project_root)))
    for option in alias_patterns:
        entry = AliasEntry.from_option(option)
        if entry.pattern:
            table.add(entry)
    return table


def _entry_files(
    tree: FileTree, project: ProjectConfig, target_libs: list[str], warnings: list[str]
) -> list[str]:
    """Project sources followed by the sources of each extra library root."""
    files = discover_source_files(tree, project.root)
    seen = set(files)
    for lib in target_libs:
        root = normalize_path(lib)
        if not tree.exists(root):
            warnings.append(f"Target library path not found: {lib}")
            logger.warning("Target library path not found: %s", lib)
            continue
        for path in discover_source_files(tree, root):
            if path not in seen:
                seen.add(path)
                files.append(path)
    if not files:
        warnings.append(f"No source files found under {project.root}")
    return files


def _replace_manifest(
    tree: FileTree,
    project: ProjectConfig,
    manifest: PackageManifest,
    used: UsedDependencies,
    warnings: list[str],
) -> Optional[str]:
    """Rewrite the project's own manifest; other fields are preserved.

    A manifest inherited from the workspace root is shared with other
    projects and is left alone.
    """
    if manifest.path != join_path(project.root, MANIFEST_FILE):
        message = (
            f"Not replacing {manifest.path}: it belongs to the workspace, "
            f"not to {project.name}"
        )
        warnings.append(message)
        logger.warning(message)
        return None

    data = read_json(tree, manifest.path)
    data["dependencies"] = dict(used.dependencies)
    data["devDependencies"] = dict(used.dev_dependencies)
    write_json(tree, manifest.path, data)
    logger.info("Replaced manifest %s", manifest.path)
    return manifest.path
