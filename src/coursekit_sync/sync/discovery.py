"""Content discovery for source and target trees.

Turns files on disk into ``ContentItem`` values for the engine.

Layout:

- **Source**: ``<source_root>/<source_dir>/**/<pattern>``; the namespace
  is the source's config key.
- **Target**: ``<target_root>/<target_dir>/<namespace>/**/<pattern>``;
  each top-level directory under ``target_dir`` is one namespace.

Slugs come from filenames: ``03-loops.md`` becomes ``loops``; files
without an order prefix use their lowercased stem.  Hidden files and
directories are skipped.  Front-matter problems are logged and the item
is still returned with empty front matter, so one bad file never hides
the rest of the tree.

Asset content types (``kind: asset``) are not parsed at all: the slug is
the path below the content directory (``images/hero.png``) and the item
carries a whole-file hash instead of a body.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

import yaml

from coursekit_sync.file_handler import read_file_with_encoding
from coursekit_sync.sync.models import ContentItem
from coursekit_sync.sync.normalize import file_hash

if TYPE_CHECKING:
    from coursekit_sync.config_schema import ContentTypeConfig

logger = logging.getLogger(__name__)

_FRONT_MATTER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)^---[ \t]*\r?$\n?",
    re.DOTALL | re.MULTILINE,
)

_ORDERED_STEM_RE = re.compile(r"^\d{2,}-([a-z0-9][a-z0-9-]*)$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _to_json_value(value: Any) -> Any:
    """Coerce YAML scalars that JSON cannot hold (dates, sets)."""
    match value:
        case datetime() | date():
            return value.isoformat()
        case dict():
            return {str(k): _to_json_value(v) for k, v in value.items()}
        case list() | tuple():
            return [_to_json_value(v) for v in value]
        case set() | frozenset():
            return sorted((_to_json_value(v) for v in value), key=repr)
        case str() | int() | float() | bool() | None:
            return value
        case bytes():
            return value.decode("utf-8", errors="replace")
        case _:
            return str(value)


def split_front_matter(
    text: str,
) -> tuple[dict[str, Any], str, str | None]:
    """Split a Markdown document into front matter and body.

    Never raises.

    Returns:
        Tuple of (front_matter, body, error).  *error* is ``None`` on
        success or when there is no front-matter block at all.
    """
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text.removeprefix("\ufeff"), None

    body = text[match.end():]
    raw = match.group(1)
    if not raw.strip():
        return {}, body, None

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        return {}, body, f"invalid YAML front matter: {exc}"

    if parsed is None:
        return {}, body, None
    if not isinstance(parsed, dict):
        return {}, body, "front matter must be a mapping"

    return _to_json_value(parsed), body, None


def slug_from_filename(name: str) -> str:
    """Derive a slug from a filename.

    >>> slug_from_filename("03-Loops-and-Lists.md")
    'loops-and-lists'
    >>> slug_from_filename("cheatsheet.md")
    'cheatsheet'
    """
    stem = PurePosixPath(name).stem
    match = _ORDERED_STEM_RE.match(stem)
    if match:
        return match.group(1).lower()
    return stem.lower()


def _is_hidden(rel: Path) -> bool:
    return any(part.startswith(".") for part in rel.parts)


def _scan(base: Path, pattern: str) -> list[Path]:
    """Files under *base* matching *pattern* at any depth, sorted."""
    if not base.is_dir():
        return []
    return sorted(
        p
        for p in base.rglob(pattern)
        if p.is_file() and not _is_hidden(p.relative_to(base))
    )


def read_item(root: Path, path: Path, namespace: str) -> ContentItem:
    """Read one file into a ``ContentItem``.

    Args:
        root: Directory the item's ``path`` is recorded relative to.
        path: Absolute path of the file.
        namespace: Namespace the item belongs to.
    """
    content, _ = read_file_with_encoding(path)
    front_matter, body, error = split_front_matter(content)
    if error:
        logger.warning("%s: %s", path, error)

    return ContentItem(
        namespace=namespace,
        slug=slug_from_filename(path.name),
        path=path.relative_to(root).as_posix(),
        root=str(root),
        front_matter=front_matter,
        body=body,
    )


def read_asset(
    root: Path, path: Path, namespace: str, base: Path
) -> ContentItem:
    """Read one binary asset into a ``ContentItem``.

    Args:
        root: Directory the item's ``path`` is recorded relative to.
        path: Absolute path of the file.
        namespace: Namespace the item belongs to.
        base: Content directory; the slug is *path* relative to it.
    """
    return ContentItem(
        namespace=namespace,
        slug=path.relative_to(base).as_posix(),
        path=path.relative_to(root).as_posix(),
        root=str(root),
        file_hash=file_hash(path),
    )


def _read(
    content_type: ContentTypeConfig,
    root: Path,
    path: Path,
    namespace: str,
    base: Path,
) -> ContentItem:
    if content_type.kind == "asset":
        return read_asset(root, path, namespace, base)
    return read_item(root, path, namespace)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_source_items(
    source_root: Path,
    namespace: str,
    content_type: ContentTypeConfig,
) -> list[ContentItem]:
    """Discover items of one content type in a source tree.

    Args:
        source_root: Root of the source tree.
        namespace: Namespace (course id) for every item found.
        content_type: Where the content lives and which files to match.

    Returns:
        Items sorted by relative path; empty if the directory is missing.
    """
    base = source_root / content_type.source_dir
    if not base.is_dir():
        logger.info("No %s directory in source %s", base.name, source_root)
        return []

    items = [
        _read(content_type, source_root, path, namespace, base)
        for path in _scan(base, content_type.pattern)
    ]
    logger.debug(
        "Discovered %d source items in %s", len(items), base
    )
    return items


def discover_target_items(
    target_root: Path,
    content_type: ContentTypeConfig,
    namespace: str | None = None,
) -> list[ContentItem]:
    """Discover items of one content type in the target tree.

    Args:
        target_root: Root of the target tree.
        content_type: Where the content lives and which files to match.
        namespace: If given, only that namespace directory is scanned.

    Returns:
        Items sorted by namespace then relative path.
    """
    base = target_root / content_type.target_dir
    if not base.is_dir():
        logger.info("Target content directory not found: %s", base)
        return []

    if namespace is not None:
        namespaces = [namespace]
    else:
        namespaces = sorted(
            d.name
            for d in base.iterdir()
            if d.is_dir() and not d.name.startswith(".")
        )

    items: list[ContentItem] = []
    for ns in namespaces:
        ns_dir = base / ns
        for path in _scan(ns_dir, content_type.pattern):
            items.append(_read(content_type, target_root, path, ns, ns_dir))

    logger.debug("Discovered %d target items in %s", len(items), base)
    return items
