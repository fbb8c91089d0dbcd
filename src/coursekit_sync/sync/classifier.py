"""Classify a matched pair into a diff status.

Decision table:

============== ============== ============= ========== ==========
source present target present field changes body equal status
============== ============== ============= ========== ==========
no             yes            --            --         REMOVED
yes            no             --            --         ADDED
yes            yes            none          yes        UNCHANGED
yes            yes            any           --         MODIFIED
yes            yes            none          no         MODIFIED
============== ============== ============= ========== ==========

Bodies are compared by ``ContentItem.digest``: the normalised content
hash for text, the whole-file hash for assets.
"""

from __future__ import annotations

from collections.abc import Collection

from coursekit_sync.sync.differ import diff_fields
from coursekit_sync.sync.errors import ClassificationError
from coursekit_sync.sync.matcher import ItemPair
from coursekit_sync.sync.models import DiffItem, DiffStatus


def classify(
    key: str,
    pair: ItemPair,
    protected_fields: Collection[str],
) -> DiffItem:
    """Build the ``DiffItem`` for one canonical key.

    Raises:
        ClassificationError: If neither side of *pair* is present.
    """
    source, target = pair.source, pair.target
    if source is None and target is None:
        raise ClassificationError(f"No source or target item for {key}")

    present = source if source is not None else target
    namespace, slug = present.namespace, present.slug  # type: ignore[union-attr]
    source_path = source.path if source is not None else None
    target_path = target.path if target is not None else None

    if target is None:
        status = DiffStatus.ADDED
        changes = []
        body_changed = False
    elif source is None:
        status = DiffStatus.REMOVED
        changes = []
        body_changed = False
    else:
        changes = diff_fields(
            source.front_matter, target.front_matter, protected_fields
        )
        body_changed = source.digest != target.digest
        if changes or body_changed:
            status = DiffStatus.MODIFIED
        else:
            status = DiffStatus.UNCHANGED

    return DiffItem(
        key=key,
        namespace=namespace,
        slug=slug,
        status=status,
        source_path=source_path,
        target_path=target_path,
        changes=changes,
        body_changed=body_changed,
    )
