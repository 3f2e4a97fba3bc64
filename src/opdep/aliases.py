"""Alias Resolver — path aliases merged from layered tsconfig files.

Builds a ``PathAliasTable`` for a project from every ``tsconfig*.json`` at
the workspace root and in the project's subtree.  Each file may ``extend``
others; a layer's parents are merged before the layer's own ``paths``.

Merge policy:
  - Later layers overwrite earlier ones per alias key (no array union).
    An overwritten key keeps the position of its first declaration.
  - Workspace-root layers come first, project layers after them ordered by
    depth and then path, so the project-local definition of a key wins.

Match policy: a wildcard key matches any specifier starting with its
wildcard-stripped prefix; an exact key matches the identical specifier or
any `/`-delimited subpath of it.  The alias with the longest prefix wins;
equal prefixes go to the key declared first in the merged table.

Tables are memoized per ``AliasResolver``, which lives for one run.
"""

import json
import logging
import posixpath
import re
from dataclasses import dataclass
from typing import Iterator, Optional

from opdep.parser import SOURCE_EXTENSIONS, strip_comments
from opdep.tree import FileTree, is_within, iter_files, join_path, normalize_path, parent_dir

logger = logging.getLogger(__name__)

# ── Constants ──

CONFIG_FILE_RE = re.compile(r"^tsconfig.*\.json$")

# Root configs applied before any other root-level config, in this order
_ROOT_CONFIG_ORDER = ("tsconfig.base.json", "tsconfig.json")

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


# ── Data Classes ──


@dataclass(frozen=True)
class AliasEntry:
    """One alias pattern with its target templates.

    Attributes:
        pattern: The alias key, e.g. ``"@app/*"``.
        targets: Target templates, e.g. ``("src/*",)``.  May be empty for
            aliases that are recognized but not followed.
        base_dir: Directory the targets are relative to.
        source: The config file (or ``"<config>"``) that declared the alias.
    """

    pattern: str
    targets: tuple[str, ...] = ()
    base_dir: str = "."
    source: str = ""

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.endswith("*")

    @property
    def prefix(self) -> str:
        return self.pattern[:-1] if self.is_wildcard else self.pattern

    def matches(self, specifier: str) -> bool:
        if self.is_wildcard:
            return specifier.startswith(self.prefix)
        return specifier == self.pattern or specifier.startswith(self.pattern + "/")

    def substitute(self, specifier: str) -> Optional[str]:
        """Map ``specifier`` onto the first target; None if there is none."""
        if not self.targets:
            return None
        remainder = specifier[len(self.prefix):]
        if self.is_wildcard:
            target = self.targets[0].replace("*", remainder, 1)
        elif remainder and self.targets[0].endswith(SOURCE_EXTENSIONS):
            # Subpath of an exact key pointing at a file hangs off its directory
            target = parent_dir(self.targets[0]) + remainder
        else:
            target = self.targets[0] + remainder
        return join_path(self.base_dir, target)

    @classmethod
    def from_option(cls, option: str) -> "AliasEntry":
        """Build an entry from ``"@app/*=apps/app/src/*"`` or bare ``"@app/*"``.

        Targets given on the command line are workspace-relative.
        """
        pattern, sep, target = option.partition("=")
        targets = (target.strip(),) if sep and target.strip() else ()
        return cls(pattern=pattern.strip(), targets=targets, base_dir=".", source="<config>")


class AliasTable:
    """Ordered alias pattern -> ``AliasEntry`` map."""

    def __init__(self, entries: Optional[list[AliasEntry]] = None):
        self._entries: dict[str, AliasEntry] = {}
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: AliasEntry) -> None:
        self._entries[entry.pattern] = entry

    def merge(self, other: "AliasTable") -> None:
        """Apply ``other`` on top of this table."""
        for entry in other:
            self.add(entry)

    def match(self, specifier: str) -> Optional[AliasEntry]:
        best: Optional[AliasEntry] = None
        for entry in self._entries.values():
            if entry.matches(specifier) and (
                best is None or len(entry.prefix) > len(best.prefix)
            ):
                best = entry
        return best

    def get(self, pattern: str) -> Optional[AliasEntry]:
        return self._entries.get(pattern)

    @property
    def patterns(self) -> list[str]:
        return list(self._entries)

    def as_dict(self) -> dict[str, list[str]]:
        return {p: list(e.targets) for p, e in self._entries.items()}

    def __iter__(self) -> Iterator[AliasEntry]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._entries


# ── Config Parsing ──


def parse_config(content: str) -> dict:
    """Parse tsconfig-flavoured JSON (comments and trailing commas allowed).

    Raises:
        ValueError: If the content is not a JSON object after cleanup.
    """
    cleaned = _TRAILING_COMMA_RE.sub(r"\1", strip_comments(content))
    data = json.loads(cleaned)
    if not isinstance(data, dict):
        raise ValueError("tsconfig root is not an object")
    return data


def _extends_list(data: dict) -> list[str]:
    value = data.get("extends")
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return []


# ── Resolver ──


class AliasResolver:
    """Builds and caches alias tables keyed by project root.

    Usage::

        resolver = AliasResolver(tree)
        table = resolver.table_for("apps/web")
        entry = table.match("@app/utils")
    """

    def __init__(self, tree: FileTree):
        self._tree = tree
        self._tables: dict[str, AliasTable] = {}
        self._layers: dict[str, AliasTable] = {}

    def table_for(self, project_root: str) -> AliasTable:
        """Merged alias table for a project (memoized)."""
        project_root = normalize_path(project_root)
        if project_root not in self._tables:
            table = AliasTable()
            for path in self.config_files(project_root):
                table.merge(self.load_layer(path))
            logger.debug(
                "Alias table for %s: %s", project_root, ", ".join(table.patterns) or "(empty)"
            )
            self._tables[project_root] = table
        return self._tables[project_root]

    def config_files(self, project_root: str) -> list[str]:
        """Config files applying to a project, in merge order."""
        root_files = [
            name for name in self._tree.children(".")
            if CONFIG_FILE_RE.match(name) and self._tree.is_file(name)
        ]
        ordered = [n for n in _ROOT_CONFIG_ORDER if n in root_files]
        ordered += sorted(n for n in root_files if n not in _ROOT_CONFIG_ORDER)

        project_files = [
            p for p in iter_files(self._tree, project_root)
            if CONFIG_FILE_RE.match(posixpath.basename(p)) and p not in ordered
        ]
        project_files.sort(key=lambda p: (p.count("/"), p))
        return ordered + project_files

    def load_layer(self, path: str, _chain: Optional[set[str]] = None) -> AliasTable:
        """Alias table of one config file with its ``extends`` chain applied.

        A file that cannot be read or parsed contributes an empty table.
        """
        path = normalize_path(path)
        if path in self._layers:
            return self._layers[path]

        chain = set(_chain or ())
        if path in chain:
            logger.warning("Circular tsconfig extends chain at %s", path)
            return AliasTable()
        chain.add(path)

        content = self._tree.read(path)
        if content is None:
            logger.warning("tsconfig %s not found", path)
            return AliasTable()
        try:
            data = parse_config(content)
        except ValueError as e:
            logger.warning("Failed to parse TypeScript config at %s: %s", path, e)
            self._layers[path] = AliasTable()
            return self._layers[path]

        table = AliasTable()
        for parent in _extends_list(data):
            parent_path = self._resolve_extends(path, parent)
            if parent_path:
                table.merge(self.load_layer(parent_path, chain))

        table.merge(self._own_entries(path, data))
        self._layers[path] = table
        return table

    def _resolve_extends(self, path: str, reference: str) -> Optional[str]:
        if not reference.startswith((".", "/")):
            logger.debug("Skipping package tsconfig reference %s in %s", reference, path)
            return None
        if reference.startswith("/"):
            candidate = normalize_path(reference)
        else:
            candidate = join_path(parent_dir(path), reference)
        if not candidate.endswith(".json") and not self._tree.is_file(candidate):
            candidate += ".json"
        if not is_within(candidate, "."):
            logger.debug("tsconfig reference %s escapes the workspace", reference)
            return None
        return candidate

    def _own_entries(self, path: str, data: dict) -> AliasTable:
        options = data.get("compilerOptions")
        if not isinstance(options, dict):
            return AliasTable()
        paths = options.get("paths")
        if not isinstance(paths, dict):
            return AliasTable()

        config_dir = parent_dir(path)
        base_url = options.get("baseUrl")
        base_dir = join_path(config_dir, base_url) if isinstance(base_url, str) else config_dir

        table = AliasTable()
        for pattern, targets in paths.items():
            if isinstance(targets, str):
                targets = [targets]
            if not isinstance(targets, list):
                logger.warning("Ignoring malformed alias %s in %s", pattern, path)
                continue
            table.add(AliasEntry(
                pattern=pattern,
                targets=tuple(t for t in targets if isinstance(t, str)),
                base_dir=base_dir,
                source=path,
            ))
        return table
