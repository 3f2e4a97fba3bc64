"""File Tree — the workspace file collaborator the analysis reads through.

All paths handed to a tree are logical POSIX paths relative to the
workspace root (``"."`` is the root itself, a leading ``/`` is tolerated).
Two implementations ship:

  - ``DiskTree`` reads and writes a real directory.
  - ``MemoryTree`` keeps everything in a dict, for tests and dry runs.

Writes are visible to subsequent reads within the same tree.
"""

import json
import logging
import posixpath
from pathlib import Path
from typing import Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

# ── Constants ──

# Directories never descended into when listing workspace files
EXCLUDE_DIRS = frozenset({
    "node_modules",
    "dist",
    "build",
    "coverage",
    "tmp",
    "out-tsc",
    "__pycache__",
})

# BOM signatures for UTF-16 variants
_UTF16_LE_BOM = b"\xff\xfe"
_UTF16_BE_BOM = b"\xfe\xff"


# ── Exceptions ──


class TreeError(Exception):
    """Raised when a file the caller requires cannot be read."""


# ── Path Helpers ──


def normalize_path(path: str) -> str:
    """Normalize a logical path to root-relative POSIX form.

    Examples:
        "/package.json"        -> "package.json"
        "./apps/web/../web/src" -> "apps/web/src"
        ""                     -> "."
    """
    path = path.replace("\\", "/").lstrip("/")
    if not path:
        return "."
    return posixpath.normpath(path)


def join_path(*parts: str) -> str:
    """Join logical path segments and normalize the result."""
    return normalize_path(posixpath.join(*parts))


def parent_dir(path: str) -> str:
    """Directory part of a logical path (``"."`` for top-level files)."""
    return posixpath.dirname(normalize_path(path)) or "."


def is_within(path: str, root: str) -> bool:
    """True if ``path`` is ``root`` itself or lies below it."""
    path = normalize_path(path)
    root = normalize_path(root)
    if root == ".":
        return not path.startswith("../") and path != ".."
    return path == root or path.startswith(root + "/")


def _read_text_safe(path: Path) -> str:
    """Read a text file, handling UTF-8, UTF-16 (BOM), and latin-1 gracefully.

    Raises OSError if the file cannot be read at all.
    """
    raw = path.read_bytes()
    if raw[:2] in (_UTF16_LE_BOM, _UTF16_BE_BOM):
        return raw.decode("utf-16")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


# ── Tree Protocol ──


class FileTree(Protocol):
    """Protocol for workspace file access — injectable for testing."""

    @property
    def root(self) -> str:
        """Human-readable location of the workspace root."""
        ...

    def read(self, path: str) -> Optional[str]:
        """Return file content, or None if the file does not exist."""
        ...

    def write(self, path: str, content: str) -> None:
        """Create or overwrite a file."""
        ...

    def exists(self, path: str) -> bool:
        """True if a file or directory exists at ``path``."""
        ...

    def children(self, path: str) -> list[str]:
        """Names of the direct children of a directory (empty for files)."""
        ...

    def is_file(self, path: str) -> bool:
        """True if ``path`` is a file."""
        ...


# ── Implementations ──


class DiskTree:
    """A workspace backed by a directory on disk."""

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        if not self._root.is_dir():
            raise TreeError(
                f"Workspace root does not exist or is not a directory: {self._root}"
            )

    @property
    def root(self) -> str:
        return str(self._root)

    def _abs(self, path: str) -> Path:
        rel = normalize_path(path)
        return self._root if rel == "." else self._root / rel

    def read(self, path: str) -> Optional[str]:
        target = self._abs(path)
        if not target.is_file():
            return None
        try:
            return _read_text_safe(target)
        except OSError as e:
            logger.warning("Could not read %s: %s", target, e)
            return None

    def write(self, path: str, content: str) -> None:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def children(self, path: str) -> list[str]:
        target = self._abs(path)
        if not target.is_dir():
            return []
        return sorted(p.name for p in target.iterdir())

    def is_file(self, path: str) -> bool:
        return self._abs(path).is_file()


class MemoryTree:
    """A workspace held entirely in memory.

    Usage::

        tree = MemoryTree({"package.json": "{}", "src/index.ts": "import 'x';"})
        tree.write("opdep.json", "{}")
    """

    def __init__(self, files: Optional[dict[str, str]] = None, root: str = "/virtual"):
        self._root = root
        self._files: dict[str, str] = {}
        for path, content in (files or {}).items():
            self.write(path, content)

    @property
    def root(self) -> str:
        return self._root

    @property
    def files(self) -> dict[str, str]:
        """Snapshot of all files, keyed by normalized path."""
        return dict(self._files)

    def read(self, path: str) -> Optional[str]:
        return self._files.get(normalize_path(path))

    def write(self, path: str, content: str) -> None:
        self._files[normalize_path(path)] = content

    def exists(self, path: str) -> bool:
        rel = normalize_path(path)
        if rel == "." or rel in self._files:
            return True
        prefix = rel + "/"
        return any(p.startswith(prefix) for p in self._files)

    def children(self, path: str) -> list[str]:
        rel = normalize_path(path)
        prefix = "" if rel == "." else rel + "/"
        names: set[str] = set()
        for p in self._files:
            if p.startswith(prefix):
                names.add(p[len(prefix):].split("/", 1)[0])
        return sorted(names)

    def is_file(self, path: str) -> bool:
        return normalize_path(path) in self._files


# ── Traversal ──


def iter_files(tree: FileTree, start: str = ".") -> Iterator[str]:
    """Yield every file path under ``start``, depth-first, in sorted order.

    Skips ``EXCLUDE_DIRS`` and hidden directories.
    """
    stack = [normalize_path(start)]
    while stack:
        current = stack.pop()
        subdirs: list[str] = []
        for name in tree.children(current):
            path = join_path(current, name)
            if tree.is_file(path):
                yield path
            elif name not in EXCLUDE_DIRS and not name.startswith("."):
                subdirs.append(path)
        stack.extend(reversed(subdirs))


def read_json(tree: FileTree, path: str) -> dict:
    """Read and parse a JSON object file.

    Raises:
        TreeError: If the file does not exist.
        ValueError: If the content is not a JSON object.
    """
    content = tree.read(path)
    if content is None:
        raise TreeError(f"File not found: {path}")
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def write_json(tree: FileTree, path: str, data: dict) -> None:
    """Write ``data`` as two-space indented JSON with a trailing newline."""
    tree.write(path, json.dumps(data, indent=2) + "\n")
