"""Manifest Reducer and report shaping.

Intersects the external packages a walk reached with the project's
declared manifest.  A reached package lands in ``dependencies`` if the
manifest declares it there, else in ``devDependencies`` if declared there,
else it is dropped.  Declared packages never reached are omitted: that
omission is the point of the report, not an error.
"""

import json
import logging
from dataclasses import dataclass, field

from opdep.manifest import PackageManifest
from opdep.walker import AnalysisState

logger = logging.getLogger(__name__)


# ── Data Classes ──


@dataclass
class UsedDependencies:
    """Manifest entries actually reached by the walk."""

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)


@dataclass
class DependencyReport:
    """Complete analysis report for one project.

    Attributes:
        project_name: The analysed project.
        dependencies: Used runtime dependencies, name -> declared range.
        dev_dependencies: Used dev dependencies, name -> declared range.
        external_imports: Every external package reached, with sorted bindings.
        internal_imports: Relative and workspace-library specifiers, sorted.
        internal_alias_imports: Path-alias specifiers, sorted.
        modules_analyzed: Number of module files expanded.
        unresolved_imports: Internal specifiers that matched no file.
        depth_exceeded: Branches cut by the depth bound.
    """

    project_name: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    external_imports: dict[str, list[str]] = field(default_factory=dict)
    internal_imports: list[str] = field(default_factory=list)
    internal_alias_imports: list[str] = field(default_factory=list)
    modules_analyzed: int = 0
    unresolved_imports: list[str] = field(default_factory=list)
    depth_exceeded: int = 0

    @classmethod
    def from_analysis(
        cls, project_name: str, state: AnalysisState, manifest: PackageManifest
    ) -> "DependencyReport":
        used = reduce_manifest(state.external_imports, manifest)
        return cls(
            project_name=project_name,
            dependencies=used.dependencies,
            dev_dependencies=used.dev_dependencies,
            external_imports={
                name: sorted(bindings)
                for name, bindings in sorted(state.external_imports.items())
            },
            internal_imports=sorted(state.internal_imports),
            internal_alias_imports=sorted(state.internal_alias_imports),
            modules_analyzed=len(state.visited),
            unresolved_imports=sorted(state.unresolved),
            depth_exceeded=state.depth_exceeded,
        )

    def as_dict(self) -> dict:
        """The JSON document written to the report path."""
        return {
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "analysis": {
                "externalImports": {k: list(v) for k, v in self.external_imports.items()},
                "internalImports": list(self.internal_imports),
                "internalAliasImports": list(self.internal_alias_imports),
            },
        }

    def as_json(self) -> str:
        return json.dumps(self.as_dict(), indent=2) + "\n"

    def as_text(self) -> str:
        """Render the report as readable plain text."""
        sections: list[str] = []
        sections.append("=" * 60)
        sections.append(f"  Dependency analysis: {self.project_name}")
        sections.append("=" * 60)
        sections.append(
            f"\nModules analyzed: {self.modules_analyzed}, "
            f"external packages reached: {len(self.external_imports)}"
        )

        for title, deps in (
            ("Used dependencies", self.dependencies),
            ("Used devDependencies", self.dev_dependencies),
        ):
            sections.append("\n" + "-" * 40)
            sections.append(f"  {title} ({len(deps)})")
            sections.append("-" * 40)
            if not deps:
                sections.append("  (none)")
            for name, version in deps.items():
                sections.append(f"  {name}: {version}")

        undeclared = [
            name for name in self.external_imports
            if name not in self.dependencies and name not in self.dev_dependencies
        ]
        if undeclared:
            sections.append("\n" + "-" * 40)
            sections.append("  Reached but not declared")
            sections.append("-" * 40)
            for name in undeclared:
                sections.append(f"  - {name}")

        if self.unresolved_imports:
            sections.append("\n" + "-" * 40)
            sections.append("  Unresolved internal imports")
            sections.append("-" * 40)
            shown = self.unresolved_imports[:10]
            for spec in shown:
                sections.append(f"  - {spec}")
            if len(self.unresolved_imports) > len(shown):
                sections.append(f"  +{len(self.unresolved_imports) - len(shown)} more")

        if self.depth_exceeded:
            sections.append(
                f"\n{self.depth_exceeded} branch(es) cut at the recursion depth limit."
            )

        sections.append("\n" + "=" * 60)
        return "\n".join(sections)


# ── Reducer ──


def reduce_manifest(
    external_imports: dict[str, set[str]], manifest: PackageManifest
) -> UsedDependencies:
    """Keep only the manifest entries whose package was reached."""
    used = UsedDependencies()
    for name in sorted(external_imports):
        if name in manifest.dependencies:
            used.dependencies[name] = manifest.dependencies[name]
        elif name in manifest.dev_dependencies:
            used.dev_dependencies[name] = manifest.dev_dependencies[name]
        else:
            logger.debug("External package %s is not declared in the manifest", name)
    return used


def build_optimized_manifest(manifest: PackageManifest, used: UsedDependencies) -> dict:
    """A trimmed ``package.json`` body keeping only the used dependencies.

    Peer dependencies are carried over unchanged.
    """
    return {
        "name": manifest.name,
        "version": manifest.version,
        "dependencies": dict(used.dependencies),
        "devDependencies": dict(used.dev_dependencies),
        "peerDependencies": dict(manifest.peer_dependencies),
    }
