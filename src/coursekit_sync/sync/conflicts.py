"""Target-vs-ledger conflict detection.

A conflict means the target no longer looks the way we left it after
the last publish.  Source items are never consulted, so "nothing to
push" and "target was edited by hand" are reported independently.

Conflict types:

- ``MODIFIED``: the target item's hash differs from the ledger's.
- ``DELETED``: the ledger has a record but the target item is gone.
- ``NEW_ON_TARGET``: the target item has no ledger record at all
  (hand-authored, or published before the ledger existed).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from coursekit_sync.sync.ledger import get_record
from coursekit_sync.sync.matcher import canonical_key
from coursekit_sync.sync.models import (
    ConflictItem,
    ConflictResult,
    ConflictType,
    ContentItem,
    SyncLedger,
    SyncRecord,
)
from coursekit_sync.sync.normalize import short_hash

logger = logging.getLogger(__name__)


def body_hash(item: ContentItem) -> str:
    """Default hasher: ``ContentItem.digest``."""
    return item.digest


def classify_conflict(
    key: str,
    record: SyncRecord | None,
    target: ContentItem | None,
    current_hash: str | None = None,
) -> ConflictItem | None:
    """Classify a single key as a conflict or not.

    Args:
        key: Canonical key.
        record: Ledger record (``None`` if never synced).
        target: Target item (``None`` if missing from the target tree).
        current_hash: Hash of *target*; its ``digest`` if omitted.

    Returns:
        ``ConflictItem`` if the key conflicts, ``None`` if it is clean.
    """
    if record is None and target is None:
        return None

    if record is None:
        current = current_hash or body_hash(target)  # type: ignore[arg-type]
        return ConflictItem(
            key=key,
            target_path=target.path,  # type: ignore[union-attr]
            current_hash=current,
            conflict_type=ConflictType.NEW_ON_TARGET,
            summary="exists on target but was never synced",
        )

    if target is None:
        return ConflictItem(
            key=key,
            target_path=record.file_path,
            expected_hash=record.content_hash,
            last_synced_at=record.synced_at,
            conflict_type=ConflictType.DELETED,
            summary="deleted from target since last sync",
        )

    current = current_hash or body_hash(target)
    if current == record.content_hash:
        return None

    return ConflictItem(
        key=key,
        target_path=target.path,
        expected_hash=record.content_hash,
        current_hash=current,
        last_synced_at=record.synced_at,
        conflict_type=ConflictType.MODIFIED,
        summary=(
            f"target modified since last sync "
            f"(expected {short_hash(record.content_hash)}, "
            f"found {short_hash(current)})"
        ),
    )


def detect_conflicts(
    target_items: Sequence[ContentItem],
    ledger: SyncLedger,
    *,
    namespace: str | None = None,
    hasher: Callable[[ContentItem], str] = body_hash,
) -> ConflictResult:
    """Compare every target item against the ledger baseline.

    Args:
        target_items: Items currently in the target tree.
        ledger: The baseline from the last successful publish.
        namespace: If given, only this namespace is checked.
        hasher: Computes an item's current hash.

    Returns:
        ``ConflictResult`` with conflicts sorted by key.  ``total_checked``
        counts the target items examined, clean ones included.
    """
    if namespace is not None:
        target_items = [i for i in target_items if i.namespace == namespace]

    conflicts: list[ConflictItem] = []
    by_key = {
        canonical_key(item.namespace, item.slug): item
        for item in target_items
    }

    for key, item in by_key.items():
        conflict = classify_conflict(
            key, get_record(ledger, key), item, hasher(item)
        )
        if conflict is not None:
            conflicts.append(conflict)

    prefix = f"{namespace}/" if namespace is not None else ""
    for key, record in ledger.records.items():
        if not key.startswith(prefix) or key in by_key:
            continue
        conflict = classify_conflict(key, record, None)
        if conflict is not None:
            conflicts.append(conflict)

    conflicts.sort(key=lambda c: c.key)

    if conflicts:
        logger.info(
            "%d of %d target items conflict with the ledger",
            len(conflicts),
            len(target_items),
        )

    return ConflictResult(
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        total_checked=len(target_items),
    )
