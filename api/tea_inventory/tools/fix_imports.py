# api/tea_inventory/tools/fix_imports.py
"""
Move enum imports off the ORM module.

Rewrites ``from <client module> import ...`` statements so that the names
listed in ``constants.ENUM_NAMES`` are imported from the constants module
instead, leaving every other name where it was. For example, with the
default modules a statement importing ``Product`` and ``UserRole`` from
the models module turns into one importing ``Product`` from the models
module followed by one importing ``UserRole`` from the constants module.

Statements are located with ``ast``, so continuation lines, parentheses,
``;``-separated statements and nested imports are all handled, and text in
strings or docstrings is never touched. Relative imports are resolved
against the file's package (its directory under the scanned root) and the
constants import is written in the same relative form. Files are only
written when their content changes, so a second run is a no-op.
"""
from __future__ import annotations

import ast
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..constants import ENUM_NAMES
from ..logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_CLIENT_MODULE = "tea_inventory.models"
DEFAULT_CONSTANTS_MODULE = "tea_inventory.constants"

SKIP_DIRS = frozenset(
    {
        "node_modules",
        ".venv",
        "venv",
        "site-packages",
        "__pycache__",
        ".git",
        ".tox",
        "build",
        "dist",
    }
)

PathLike = Union[str, "os.PathLike[str]"]


def _resolve(node: ast.ImportFrom, package: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Return (absolute module, base package) for an ImportFrom node.

    The base package is what the leading dots refer to ("" for absolute
    imports). None when a relative import cannot be resolved.
    """
    if not node.level:
        return node.module or "", ""
    if package is None:
        return None
    parts = package.split(".") if package else []
    up = node.level - 1
    if up > len(parts):
        return None
    base = parts[: len(parts) - up]
    module = ".".join(base + ([node.module] if node.module else []))
    return module, ".".join(base)


def _target_module(constants_module: str, level: int, base: str) -> str:
    if level and base and constants_module.startswith(base + "."):
        return "." * level + constants_module[len(base) + 1:]
    if level and not base:
        return "." * level + constants_module
    return constants_module


def _alias(a: ast.alias) -> str:
    return f"{a.name} as {a.asname}" if a.asname else a.name


def _char_offset(line_starts: List[int], lines: List[str], lineno: int, col: int) -> int:
    # ast columns are UTF-8 byte offsets
    line = lines[lineno - 1]
    return line_starts[lineno - 1] + len(line.encode("utf-8")[:col].decode("utf-8", "ignore"))


def rewrite_source(
    text: str,
    *,
    client_module: str = DEFAULT_CLIENT_MODULE,
    constants_module: str = DEFAULT_CONSTANTS_MODULE,
    enum_names: Iterable[str] = ENUM_NAMES,
    package: Optional[str] = None,
) -> str:
    """
    Return ``text`` with enum names split out of client-module imports.

    ``package`` is the dotted package the source lives in; relative imports
    are only rewritten when it is given. Raises ``SyntaxError`` if ``text``
    does not parse.
    """
    enums = frozenset(enum_names)
    tree = ast.parse(text)

    lines = text.split("\n")
    line_starts = []
    pos = 0
    for line in lines:
        line_starts.append(pos)
        pos += len(line) + 1

    edits = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.ImportFrom):
            continue
        resolved = _resolve(node, package)
        if resolved is None or resolved[0] != client_module:
            continue

        moved = [a for a in node.names if a.name in enums]
        if not moved:
            continue
        kept = [a for a in node.names if a.name not in enums]

        source = "." * node.level + (node.module or "")
        target = _target_module(constants_module, node.level, resolved[1])

        statements = []
        if kept:
            statements.append(f"from {source} import {', '.join(_alias(a) for a in kept)}")
        statements.append(f"from {target} import {', '.join(_alias(a) for a in moved)}")

        start = _char_offset(line_starts, lines, node.lineno, node.col_offset)
        end = _char_offset(line_starts, lines, node.end_lineno, node.end_col_offset)

        prefix = text[line_starts[node.lineno - 1]:start]
        first_end = line_starts[node.end_lineno - 1] + len(lines[node.end_lineno - 1])
        suffix = text[end:first_end].strip()
        if prefix.strip() == "" and (not suffix or suffix.startswith("#")):
            separator = "\n" + prefix
        else:
            separator = "; "

        edits.append((start, end, separator.join(statements)))

    for start, end, replacement in sorted(edits, reverse=True):
        text = text[:start] + replacement + text[end:]
    return text


def package_for(path: PathLike, root: PathLike) -> str:
    """Dotted package of ``path`` taken from its directories under ``root``."""
    rel = Path(path).resolve().relative_to(Path(root).resolve())
    return ".".join(rel.parent.parts)


def fix_file(
    path: PathLike,
    *,
    client_module: str = DEFAULT_CLIENT_MODULE,
    constants_module: str = DEFAULT_CONSTANTS_MODULE,
    enum_names: Iterable[str] = ENUM_NAMES,
    package: Optional[str] = None,
) -> bool:
    """Rewrite one file in place. Returns True if it changed."""
    p = Path(path)
    before = p.read_text(encoding="utf-8")
    try:
        updated = rewrite_source(
            before,
            client_module=client_module,
            constants_module=constants_module,
            enum_names=enum_names,
            package=package,
        )
    except SyntaxError as e:
        logger.warning("Skipping %s: not valid Python (%s)", p, e.msg)
        return False
    if updated == before:
        return False

    p.write_text(updated, encoding="utf-8")
    logger.info("Fixed imports in: %s", p)
    return True


def iter_source_files(root: PathLike, skip_dirs: Sequence[str] = tuple(SKIP_DIRS)) -> Iterable[Path]:
    skip = set(skip_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for name in sorted(filenames):
            if name.endswith(".py"):
                yield Path(dirpath) / name


def fix_tree(
    root: PathLike,
    *,
    client_module: str = DEFAULT_CLIENT_MODULE,
    constants_module: str = DEFAULT_CONSTANTS_MODULE,
    enum_names: Optional[Iterable[str]] = None,
) -> List[Path]:
    """
    Rewrite every Python file under ``root``; returns the files that changed.

    ``root`` is treated as an import root: ``root/pkg/sub/mod.py`` lives in
    package ``pkg.sub``.
    """
    names = tuple(enum_names) if enum_names is not None else ENUM_NAMES
    changed = [
        path
        for path in iter_source_files(root)
        if fix_file(
            path,
            client_module=client_module,
            constants_module=constants_module,
            enum_names=names,
            package=package_for(path, root),
        )
    ]
    logger.info("Import fixes completed: %d file(s) changed under %s", len(changed), root)
    return changed
