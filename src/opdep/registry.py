"""Project Registry — the projects a workspace declares.

Projects come from Nx-style ``project.json`` files (``name``, ``root``,
``projectType``) and from ``package.json`` files below the workspace root.
A ``project.json`` wins over a ``package.json`` in the same directory.
"""

import logging
import posixpath
from dataclasses import dataclass
from typing import Iterator, Optional

from opdep.tree import FileTree, iter_files, normalize_path, parent_dir, read_json

logger = logging.getLogger(__name__)

# ── Constants ──

PROJECT_FILE = "project.json"
MANIFEST_FILE = "package.json"

APPLICATION = "application"
LIBRARY = "library"

# Top-level directories whose projects default to libraries
_LIBRARY_DIRS = ("libs", "packages")


# ── Exceptions ──


class RegistryError(Exception):
    """Base exception for project registry errors."""


class ProjectNotFoundError(RegistryError):
    """Raised when the requested project is not in the workspace."""


# ── Data Classes ──


@dataclass(frozen=True)
class ProjectConfig:
    """A project entry in the workspace registry."""

    name: str
    root: str
    project_type: str = APPLICATION

    @property
    def is_library(self) -> bool:
        return self.project_type == LIBRARY


def _default_type(root: str) -> str:
    top = root.split("/", 1)[0]
    return LIBRARY if top in _LIBRARY_DIRS else APPLICATION


# ── Registry ──


class ProjectRegistry:
    """Name-indexed collection of workspace projects.

    Usage::

        registry = ProjectRegistry.discover(tree)
        project = registry.get("web-app")
    """

    def __init__(self, projects: Optional[list[ProjectConfig]] = None):
        self._projects: dict[str, ProjectConfig] = {}
        for project in projects or []:
            self.add(project)

    def add(self, project: ProjectConfig) -> None:
        if project.name in self._projects:
            logger.debug(
                "Duplicate project name %s (%s); keeping %s",
                project.name, project.root, self._projects[project.name].root,
            )
            return
        self._projects[project.name] = project

    def get(self, name: str) -> ProjectConfig:
        """Look up a project by name.

        Raises:
            ProjectNotFoundError: If no project has that name.
        """
        try:
            return self._projects[name]
        except KeyError:
            raise ProjectNotFoundError(
                f"Project {name} not found in workspace"
            ) from None

    def libraries(self) -> list[ProjectConfig]:
        return [p for p in self._projects.values() if p.is_library]

    def __contains__(self, name: object) -> bool:
        return name in self._projects

    def __iter__(self) -> Iterator[ProjectConfig]:
        return iter(self._projects.values())

    def __len__(self) -> int:
        return len(self._projects)

    # ── Discovery ──

    @classmethod
    def discover(cls, tree: FileTree) -> "ProjectRegistry":
        """Scan the workspace for project declarations."""
        registry = cls()
        project_files: list[str] = []
        manifest_files: list[str] = []
        for path in iter_files(tree):
            name = posixpath.basename(path)
            if name == PROJECT_FILE:
                project_files.append(path)
            elif name == MANIFEST_FILE and path != MANIFEST_FILE:
                manifest_files.append(path)

        claimed_roots: set[str] = set()
        for path in project_files:
            project = _project_from_project_json(tree, path)
            if project:
                registry.add(project)
                claimed_roots.add(parent_dir(path))

        for path in manifest_files:
            root = parent_dir(path)
            if root in claimed_roots:
                continue
            project = _project_from_manifest(tree, path)
            if project:
                registry.add(project)

        logger.info("Discovered %d project(s) in %s", len(registry), tree.root)
        return registry


def _project_from_project_json(tree: FileTree, path: str) -> Optional[ProjectConfig]:
    try:
        data = read_json(tree, path)
    except ValueError as e:
        logger.warning("Failed to parse %s: %s", path, e)
        return None

    root = normalize_path(data.get("root") or parent_dir(path))
    name = data.get("name") or posixpath.basename(root)
    if not name or name == ".":
        logger.warning("Skipping %s: project has no name", path)
        return None
    project_type = data.get("projectType") or _default_type(root)
    return ProjectConfig(name=name, root=root, project_type=project_type)


def _project_from_manifest(tree: FileTree, path: str) -> Optional[ProjectConfig]:
    try:
        data = read_json(tree, path)
    except ValueError as e:
        logger.warning("Failed to parse %s: %s", path, e)
        return None

    root = parent_dir(path)
    name = data.get("name") or posixpath.basename(root)
    nx_config = data.get("nx") if isinstance(data.get("nx"), dict) else {}
    project_type = nx_config.get("projectType") or _default_type(root)
    return ProjectConfig(name=name, root=root, project_type=project_type)
