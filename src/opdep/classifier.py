"""Specifier Classifier — sorts a module specifier into one of four buckets.

Rules, first match wins:
  1. ``.`` or ``/`` prefix            -> RELATIVE_INTERNAL
  2. ``@`` prefix matching a path alias -> ALIAS_INTERNAL
  3. ``@name`` / ``@name/...`` of a workspace library -> WORKSPACE_INTERNAL
  4. matches a custom internal pattern -> WORKSPACE_INTERNAL (not followed)
  5. anything else                    -> EXTERNAL

Classification is pure: it never touches the file tree and never raises.
"""

import enum
import posixpath
import re
from dataclasses import dataclass, field
from typing import Optional

from opdep.aliases import AliasEntry, AliasTable
from opdep.manifest import PackageManifest
from opdep.parser import ModuleLoader
from opdep.workspace import WorkspaceLibrary, WorkspaceLibraryIndex
from opdep.tree import join_path, normalize_path


class SpecifierKind(enum.Enum):
    EXTERNAL = "external"
    RELATIVE_INTERNAL = "relative"
    ALIAS_INTERNAL = "alias"
    WORKSPACE_INTERNAL = "workspace"


# ── Data Classes ──


@dataclass(frozen=True)
class ResolutionContext:
    """Everything classification and resolution need for one module.

    Built once per run; the walker derives per-module copies with
    ``dataclasses.replace`` to change ``base_dir`` (and ``alias_table``
    when it crosses into a workspace library).
    """

    loader: ModuleLoader
    alias_table: AliasTable
    libraries: WorkspaceLibraryIndex
    manifest: PackageManifest
    base_dir: str = "."
    internal_patterns: tuple[re.Pattern, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Classification:
    """Tagged classification result.

    Only the field matching ``kind`` is set: ``package_name`` for
    EXTERNAL, ``resolved_path`` for RELATIVE_INTERNAL, ``alias`` for
    ALIAS_INTERNAL, ``library`` for WORKSPACE_INTERNAL (None when a
    custom internal pattern matched).
    """

    kind: SpecifierKind
    specifier: str
    package_name: Optional[str] = None
    resolved_path: Optional[str] = None
    alias: Optional[AliasEntry] = None
    library: Optional[WorkspaceLibrary] = None


# ── Helpers ──


def package_name(specifier: str) -> str:
    """Package a bare specifier belongs to.

    Examples:
        "lodash/fp"               -> "lodash"
        "@scope/package/sub/path" -> "@scope/package"
    """
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) > 1:
        return "/".join(parts[:2])
    return parts[0]


def compile_patterns(patterns: list[str]) -> tuple[re.Pattern, ...]:
    """Compile custom internal-module patterns.

    Raises:
        re.error: If a pattern is not a valid regular expression.
    """
    return tuple(re.compile(p) for p in patterns)


# ── Classifier ──


def classify(specifier: str, context: ResolutionContext) -> Classification:
    """Classify ``specifier`` as seen from ``context.base_dir``."""
    if specifier.startswith("."):
        return Classification(
            kind=SpecifierKind.RELATIVE_INTERNAL,
            specifier=specifier,
            resolved_path=normalize_path(posixpath.join(context.base_dir, specifier)),
        )
    if specifier.startswith("/"):
        return Classification(
            kind=SpecifierKind.RELATIVE_INTERNAL,
            specifier=specifier,
            resolved_path=join_path(specifier),
        )

    if specifier.startswith("@"):
        alias = context.alias_table.match(specifier)
        if alias is not None:
            return Classification(
                kind=SpecifierKind.ALIAS_INTERNAL, specifier=specifier, alias=alias,
            )

        library = context.libraries.match(specifier)
        if library is not None:
            return Classification(
                kind=SpecifierKind.WORKSPACE_INTERNAL, specifier=specifier, library=library,
            )

    if any(p.search(specifier) for p in context.internal_patterns):
        return Classification(kind=SpecifierKind.WORKSPACE_INTERNAL, specifier=specifier)

    return Classification(
        kind=SpecifierKind.EXTERNAL,
        specifier=specifier,
        package_name=package_name(specifier),
    )
