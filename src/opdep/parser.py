"""Source Parser — regex-based extraction of JS/TS module references.

Turns file content into a ``SourceModule``: the ordered list of imports,
re-exports and namespace re-exports the file declares, each with its module
specifier and the bindings it pulls in.  Comments are stripped first so
commented-out imports never count.

Recognized forms::

    import x from 'm'                 bindings {"default"}
    import * as ns from 'm'           bindings {"*"}
    import { a, b as c } from 'm'     bindings {"a", "b"}
    import 'm'                        no bindings
    export { a } from 'm'             re-export, bindings {"a"}
    export * from 'm'                 namespace re-export
    export * as ns from 'm'           namespace re-export
    const x = require('m')            bindings {"*"}
    const { a } = require('m')        bindings {"a"}
    require('m') / import('m')        no bindings

Pure Python.  No Node.js dependency.
"""

import enum
import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from opdep.tree import FileTree, iter_files, join_path, normalize_path

logger = logging.getLogger(__name__)

# ── Constants ──

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")

# Extension candidates tried, in order, when resolving an internal specifier
RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

# Binding markers for whole-module imports
DEFAULT_BINDING = "default"
NAMESPACE_BINDING = "*"

_TEST_FILE_RE = re.compile(r"\.(spec|test)\.[cm]?[jt]sx?$")

# ── Import Patterns ──

# import default, { named } from 'module'
_IMPORT_DEFAULT_NAMED_RE = re.compile(
    r"""\bimport\s+(?:type\s+)?[\w$]+\s*,\s*\{([^}]*)\}\s*from\s*['"]([^'"]+)['"]""",
    re.DOTALL,
)

# import default, * as ns from 'module'
_IMPORT_DEFAULT_NAMESPACE_RE = re.compile(
    r"""\bimport\s+[\w$]+\s*,\s*\*\s*as\s+[\w$]+\s+from\s*['"]([^'"]+)['"]"""
)

# import { named } from 'module'
_IMPORT_NAMED_RE = re.compile(
    r"""\bimport\s*(?:type\s*)?\{([^}]*)\}\s*from\s*['"]([^'"]+)['"]""",
    re.DOTALL,
)

# import * as ns from 'module'
_IMPORT_NAMESPACE_RE = re.compile(
    r"""\bimport\s*(?:type\s*)?\*\s*as\s+[\w$]+\s+from\s*['"]([^'"]+)['"]"""
)

# import default from 'module'
_IMPORT_DEFAULT_RE = re.compile(
    r"""\bimport\s+(?:type\s+)?[\w$]+\s+from\s*['"]([^'"]+)['"]"""
)

# import 'module'
_IMPORT_SIDE_EFFECT_RE = re.compile(
    r"""\bimport\s*['"]([^'"]+)['"]"""
)

# ── Export Patterns ──

# export { named } from 'module'
_REEXPORT_NAMED_RE = re.compile(
    r"""\bexport\s*(?:type\s*)?\{([^}]*)\}\s*from\s*['"]([^'"]+)['"]""",
    re.DOTALL,
)

# export * from 'module'  /  export * as ns from 'module'
_REEXPORT_STAR_RE = re.compile(
    r"""\bexport\s*(?:type\s*)?\*\s*(?:as\s+[\w$]+\s+)?from\s*['"]([^'"]+)['"]"""
)

# ── CommonJS / Dynamic Patterns ──

# const x = require('module')
_REQUIRE_CONST_RE = re.compile(
    r"""\b(?:const|let|var)\s+[\w$]+\s*=\s*require\s*\(\s*['"]([^'"]+)['"]\s*\)"""
)

# const { x, y } = require('module')
_REQUIRE_DESTRUCTURE_RE = re.compile(
    r"""\b(?:const|let|var)\s*\{([^}]*)\}\s*=\s*require\s*\(\s*['"]([^'"]+)['"]\s*\)""",
    re.DOTALL,
)

# require('module'), bare form; spans already claimed above are skipped
_REQUIRE_BARE_RE = re.compile(
    r"""\brequire\s*\(\s*['"]([^'"]+)['"]\s*\)"""
)

# import('module') with a string literal
_DYNAMIC_IMPORT_RE = re.compile(
    r"""\bimport\s*\(\s*['"]([^'"]+)['"]\s*\)"""
)


# ── Data Classes ──


class ReferenceKind(enum.Enum):
    """How a module refers to another module."""

    IMPORT = "import"
    RE_EXPORT = "re-export"
    NAMESPACE_RE_EXPORT = "namespace-re-export"


@dataclass(frozen=True)
class ModuleReference:
    """A single import or re-export target declared by a module."""

    specifier: str
    bindings: frozenset[str] = frozenset()
    kind: ReferenceKind = ReferenceKind.IMPORT
    lineno: int = 0


@dataclass(frozen=True)
class SourceModule:
    """A parsed source file: its path plus its ordered references."""

    path: str
    references: tuple[ModuleReference, ...] = field(default_factory=tuple)

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path) or "."


# ── Comment Stripping ──


def strip_comments(source: str) -> str:
    """Remove JS/TS comments while preserving line numbers and string contents.

    Also used for tsconfig files, which allow comments.
    """
    result: list[str] = []
    i = 0
    n = len(source)

    while i < n:
        c = source[i]

        # Quoted string or template literal, copied verbatim
        if c in "'\"`":
            result.append(c)
            i += 1
            while i < n and source[i] != c:
                if source[i] == "\\" and i + 1 < n:
                    result.append(source[i:i + 2])
                    i += 2
                    continue
                if c != "`" and source[i] == "\n":
                    break  # unterminated string
                result.append(source[i])
                i += 1
            if i < n and source[i] == c:
                result.append(c)
                i += 1
            continue

        # Single-line comment
        if c == "/" and i + 1 < n and source[i + 1] == "/":
            i += 2
            while i < n and source[i] != "\n":
                i += 1
            continue

        # Multi-line comment
        if c == "/" and i + 1 < n and source[i + 1] == "*":
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            result.append("\n" * source.count("\n", i, end))
            i = end
            continue

        result.append(c)
        i += 1

    return "".join(result)


# ── Binding Helpers ──


def _named_bindings(names_str: str) -> frozenset[str]:
    """Parse ``a, b as c, type D`` into the exported names ``{a, b, D}``."""
    names: set[str] = set()
    for part in names_str.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("type "):
            part = part[5:].strip()
        name = part.split(" as ")[0].strip()
        if name:
            names.add(name)
    return frozenset(names)


def _destructured_bindings(names_str: str) -> frozenset[str]:
    """Parse ``a, b: c, ...rest`` from a destructuring ``require``."""
    names: set[str] = set()
    for part in names_str.split(","):
        part = part.strip()
        if not part or part.startswith("..."):
            continue
        name = part.split(":")[0].split("=")[0].strip()
        if name:
            names.add(name)
    return frozenset(names)


# ── Parser ──


def parse_module(path: str, source: str) -> SourceModule:
    """Extract every module reference from JS/TS ``source``.

    References come back in source order.  When two patterns match
    overlapping text (``const x = require('m')`` also matches the bare
    ``require`` pattern), the first claimed span wins.
    """
    clean = strip_comments(source)
    found: list[tuple[int, ModuleReference]] = []
    claimed: list[tuple[int, int]] = []

    def _add(m: re.Match, specifier: str, bindings=frozenset(), kind=ReferenceKind.IMPORT):
        text = m.group(0)
        start = m.start() + len(text) - len(text.lstrip())
        for s, e in claimed:
            if s <= start < e:
                return
        claimed.append(m.span())
        lineno = clean.count("\n", 0, start) + 1
        found.append((start, ModuleReference(specifier, frozenset(bindings), kind, lineno)))

    for m in _REEXPORT_NAMED_RE.finditer(clean):
        _add(m, m.group(2), _named_bindings(m.group(1)), ReferenceKind.RE_EXPORT)

    for m in _REEXPORT_STAR_RE.finditer(clean):
        _add(m, m.group(1), {NAMESPACE_BINDING}, ReferenceKind.NAMESPACE_RE_EXPORT)

    for m in _IMPORT_DEFAULT_NAMED_RE.finditer(clean):
        _add(m, m.group(2), _named_bindings(m.group(1)) | {DEFAULT_BINDING})

    for m in _IMPORT_DEFAULT_NAMESPACE_RE.finditer(clean):
        _add(m, m.group(1), {DEFAULT_BINDING, NAMESPACE_BINDING})

    for m in _IMPORT_NAMED_RE.finditer(clean):
        _add(m, m.group(2), _named_bindings(m.group(1)))

    for m in _IMPORT_NAMESPACE_RE.finditer(clean):
        _add(m, m.group(1), {NAMESPACE_BINDING})

    for m in _IMPORT_DEFAULT_RE.finditer(clean):
        _add(m, m.group(1), {DEFAULT_BINDING})

    for m in _IMPORT_SIDE_EFFECT_RE.finditer(clean):
        _add(m, m.group(1))

    for m in _REQUIRE_CONST_RE.finditer(clean):
        _add(m, m.group(1), {NAMESPACE_BINDING})

    for m in _REQUIRE_DESTRUCTURE_RE.finditer(clean):
        _add(m, m.group(2), _destructured_bindings(m.group(1)))

    for m in _REQUIRE_BARE_RE.finditer(clean):
        _add(m, m.group(1))

    for m in _DYNAMIC_IMPORT_RE.finditer(clean):
        _add(m, m.group(1))

    found.sort(key=lambda item: item[0])
    return SourceModule(path=normalize_path(path), references=tuple(ref for _, ref in found))


# ── File Discovery ──


def is_source_file(path: str, include_tests: bool = False) -> bool:
    """True for analysable JS/TS sources; declaration files never count."""
    name = posixpath.basename(path)
    if name.endswith(".d.ts") or not name.endswith(SOURCE_EXTENSIONS):
        return False
    if not include_tests and _TEST_FILE_RE.search(name):
        return False
    return True


def discover_source_files(tree: FileTree, root: str) -> list[str]:
    """All non-test source files under ``root``, sorted."""
    return sorted(p for p in iter_files(tree, root) if is_source_file(p))


# ── Module Loader ──


class ModuleLoader:
    """Resolves candidate paths to source files and parses them.

    Parsed modules are memoized per loader; create one loader per
    analysis run.
    """

    def __init__(
        self,
        tree: FileTree,
        parse: Callable[[str, str], SourceModule] = parse_module,
    ):
        self._tree = tree
        self._parse = parse
        self._modules: dict[str, Optional[SourceModule]] = {}

    @property
    def tree(self) -> FileTree:
        return self._tree

    def resolve(self, path: str) -> Optional[str]:
        """Find the source file a specifier path refers to.

        Tries the path itself, then each of ``RESOLVE_EXTENSIONS`` appended,
        then an ``index`` file inside it as a directory.
        """
        path = normalize_path(path)
        if path == ".." or path.startswith("../"):
            return None
        if self._tree.is_file(path) and path.endswith(SOURCE_EXTENSIONS):
            return path
        for ext in RESOLVE_EXTENSIONS:
            candidate = path + ext
            if self._tree.is_file(candidate):
                return candidate
        for ext in RESOLVE_EXTENSIONS:
            candidate = join_path(path, "index" + ext)
            if self._tree.is_file(candidate):
                return candidate
        return None

    def load(self, path: str) -> Optional[SourceModule]:
        """Parse the file at ``path``; None if it cannot be read."""
        path = normalize_path(path)
        if path in self._modules:
            return self._modules[path]
        source = self._tree.read(path)
        if source is None:
            logger.warning("Could not read source file %s", path)
            module = None
        else:
            module = self._parse(path, source)
        self._modules[path] = module
        return module
