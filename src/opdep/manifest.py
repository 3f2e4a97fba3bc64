"""Package Manifest — the ``package.json`` a project declares its dependencies in.

A project's manifest is looked up at the project root first and at the
workspace root second.  Manifests are memoized per ``ManifestLoader``, and
a loader lives for one analysis run only.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from opdep.tree import FileTree, join_path, read_json

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"


# ── Exceptions ──


class ManifestError(Exception):
    """Base exception for manifest errors."""


class ManifestNotFoundError(ManifestError):
    """Raised when neither the project nor the workspace has a manifest."""


# ── Data Classes ──


@dataclass
class PackageManifest:
    """The dependency-relevant fields of a ``package.json``.

    Attributes:
        name: Package name ("" if the manifest has none).
        version: Package version ("" if the manifest has none).
        dependencies: Runtime dependencies, name -> version range.
        dev_dependencies: Development dependencies, name -> version range.
        peer_dependencies: Peer dependencies, name -> version range.
        path: Where the manifest was read from.
    """

    name: str = ""
    version: str = ""
    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    path: str = ""

    @classmethod
    def from_dict(cls, data: dict, path: str = "") -> "PackageManifest":
        return cls(
            name=data.get("name") or "",
            version=data.get("version") or "",
            dependencies=_ranges(data.get("dependencies")),
            dev_dependencies=_ranges(data.get("devDependencies")),
            peer_dependencies=_ranges(data.get("peerDependencies")),
            path=path,
        )

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "dependencies": dict(self.dependencies),
            "devDependencies": dict(self.dev_dependencies),
            "peerDependencies": dict(self.peer_dependencies),
        }


def _ranges(section: object) -> dict[str, str]:
    """Coerce a dependency section to ``{name: range}``, dropping junk entries."""
    if not isinstance(section, dict):
        return {}
    return {
        name: version
        for name, version in section.items()
        if isinstance(name, str) and isinstance(version, str)
    }


# ── Loader ──


class ManifestLoader:
    """Finds and caches manifests by project root."""

    def __init__(self, tree: FileTree):
        self._tree = tree
        self._cache: dict[str, PackageManifest] = {}

    def find(self, project_root: str) -> Optional[PackageManifest]:
        """Return the project's manifest, falling back to the workspace root's."""
        for path in (join_path(project_root, MANIFEST_FILE), MANIFEST_FILE):
            if not self._tree.is_file(path):
                continue
            try:
                data = read_json(self._tree, path)
            except ValueError as e:
                raise ManifestError(f"Failed to parse {path}: {e}") from e
            logger.debug("Using manifest %s for %s", path, project_root)
            return PackageManifest.from_dict(data, path=path)
        return None

    def load(self, project_root: str) -> PackageManifest:
        """Like ``find`` but memoized and mandatory.

        Raises:
            ManifestNotFoundError: If no manifest exists at the project
                root or the workspace root.
            ManifestError: If the manifest found is not valid JSON.
        """
        if project_root in self._cache:
            return self._cache[project_root]
        manifest = self.find(project_root)
        if manifest is None:
            raise ManifestNotFoundError(
                f"No package.json found for project at {project_root}"
            )
        self._cache[project_root] = manifest
        return manifest
