"""Pair source and target items by canonical key.

The key is ``namespace/slug``; slugs are scoped by namespace so two
courses may both have an ``intro`` lesson without colliding.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from coursekit_sync.sync.models import ContentItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemPair:
    """Source and target item sharing one key; either side may be ``None``."""

    source: ContentItem | None = None
    target: ContentItem | None = None


def canonical_key(namespace: str, slug: str) -> str:
    """Return the canonical ``namespace/slug`` key."""
    return f"{namespace}/{slug}"


def match_items(
    source_items: Iterable[ContentItem],
    target_items: Iterable[ContentItem],
) -> dict[str, ItemPair]:
    """Build an insertion-ordered map of key to ``ItemPair``.

    Source items are inserted first, then target items are merged into
    existing entries or appended.  If one side lists the same key twice
    the later item wins.

    Args:
        source_items: Items discovered in the source trees.
        target_items: Items discovered in the target tree.

    Returns:
        Dict keyed by canonical key; every key from either input appears
        exactly once.
    """
    pairs: dict[str, ItemPair] = {}

    for item in source_items:
        key = canonical_key(item.namespace, item.slug)
        if key in pairs:
            logger.warning(
                "Duplicate source key %s (%s replaces %s)",
                key,
                item.path,
                pairs[key].source.path,  # type: ignore[union-attr]
            )
        pairs[key] = ItemPair(source=item)

    seen_target: set[str] = set()
    for item in target_items:
        key = canonical_key(item.namespace, item.slug)
        if key in seen_target:
            logger.warning(
                "Duplicate target key %s (%s replaces %s)",
                key,
                item.path,
                pairs[key].target.path,  # type: ignore[union-attr]
            )
        seen_target.add(key)
        existing = pairs.get(key)
        source = existing.source if existing else None
        pairs[key] = ItemPair(source=source, target=item)

    return pairs
