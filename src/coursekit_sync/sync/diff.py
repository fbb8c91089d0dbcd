"""Source-vs-target diff calculation.

Runs the matcher and classifier over already-discovered items and
returns a deterministic ``DiffResult``.  No I/O happens here.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Collection, Sequence
from datetime import datetime, timezone

from coursekit_sync.sync.classifier import classify
from coursekit_sync.sync.matcher import match_items
from coursekit_sync.sync.models import (
    STATUS_ORDER,
    ContentItem,
    DiffItem,
    DiffResult,
    DiffStatus,
    DiffSummary,
)


def sort_diff_items(items: list[DiffItem]) -> list[DiffItem]:
    """Sort by status (added, modified, removed, unchanged) then key."""
    return sorted(items, key=lambda i: (STATUS_ORDER[i.status], i.key))


def calculate_diff(
    source_items: Sequence[ContentItem],
    target_items: Sequence[ContentItem],
    protected_fields: Collection[str],
    *,
    content_type: str = "lessons",
    namespace: str | None = None,
    include_unchanged: bool = False,
    now: datetime | None = None,
) -> DiffResult:
    """Compare source items against target items.

    Args:
        source_items: Items from the source trees.
        target_items: Items from the target tree.
        protected_fields: Target-owned front-matter fields to ignore.
        content_type: Label recorded on the result.
        namespace: If given, only items in this namespace are compared.
        include_unchanged: Keep ``UNCHANGED`` items in ``items``.
        now: Timestamp to record; defaults to the current UTC time.

    Returns:
        ``DiffResult`` whose summary counts every classified item even
        when unchanged items are filtered out of ``items``.
    """
    if namespace is not None:
        source_items = [i for i in source_items if i.namespace == namespace]
        target_items = [i for i in target_items if i.namespace == namespace]

    pairs = match_items(source_items, target_items)

    classified = [
        classify(key, pair, protected_fields) for key, pair in pairs.items()
    ]
    counts = Counter(item.status for item in classified)

    items = [
        item
        for item in classified
        if include_unchanged or item.status != DiffStatus.UNCHANGED
    ]

    return DiffResult(
        content_type=content_type,
        items=sort_diff_items(items),
        summary=DiffSummary(
            added=counts[DiffStatus.ADDED],
            modified=counts[DiffStatus.MODIFIED],
            removed=counts[DiffStatus.REMOVED],
            unchanged=counts[DiffStatus.UNCHANGED],
        ),
        calculated_at=now or datetime.now(timezone.utc),
    )
