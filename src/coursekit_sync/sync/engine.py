"""Publish engine: one-way sync of one content type into the target.

The ``PublishEngine`` ties together discovery, diff, ledger and conflict
detection into a complete publish run.  It:

1. Discovers source items (every configured source, or one namespace)
   and the target items.
2. Diffs source against target.
3. Loads the ledger and checks the target against it for conflicts.
4. Decides an action per key and executes it (unless dry-run).
5. With ``force``, rebuilds the ledger baseline for conflicting keys
   that need no write, so the next check starts clean.
6. Saves the ledger once if it changed.
7. Builds and returns a ``PublishReport``.

Error handling is per-item: a single file failure does not abort the
run.  Ledger load failures do, before anything is written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from coursekit_sync.file_handler import copy_file
from coursekit_sync.sync.conflicts import detect_conflicts
from coursekit_sync.sync.diff import calculate_diff
from coursekit_sync.sync.discovery import (
    discover_source_items,
    discover_target_items,
)
from coursekit_sync.sync.ledger import (
    SyncLedgerStore,
    put_record,
    remove_record,
    with_last_sync,
)
from coursekit_sync.sync.models import (
    ConflictResult,
    ConflictType,
    ContentItem,
    DiffItem,
    DiffResult,
    DiffStatus,
    PublishAction,
    PublishReport,
    PublishResult,
    SyncLedger,
    SyncRecord,
    ValidationReport,
)
from coursekit_sync.sync.validation import validate_items

if TYPE_CHECKING:
    from coursekit_sync.config import Config

logger = logging.getLogger(__name__)


class PublishEngine:
    """Publish one content type from the source trees to the target.

    Args:
        config: Runtime configuration.
        content_type: Key into ``config.content_types``.

    Raises:
        ValueError: If *content_type* is not configured.
    """

    def __init__(self, config: Config, content_type: str) -> None:
        if content_type not in config.content_types:
            known = ", ".join(sorted(config.content_types)) or "none"
            raise ValueError(
                f"Unknown content type '{content_type}' (configured: {known})"
            )

        self.config = config
        self.content_type = content_type
        self.type_config = config.content_types[content_type]
        self.ledger_store = SyncLedgerStore(config.ledger_path(content_type))

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def collect(
        self, namespace: str | None = None
    ) -> tuple[list[ContentItem], list[ContentItem]]:
        """Discover ``(source_items, target_items)``.

        Args:
            namespace: If given, only that namespace is read on both sides.
        """
        sources = self.config.sources
        if namespace is not None:
            if namespace not in sources:
                logger.warning(
                    "Namespace '%s' has no configured source", namespace
                )
            sources = {k: v for k, v in sources.items() if k == namespace}

        source_items: list[ContentItem] = []
        for source in sources.values():
            source_items.extend(
                discover_source_items(
                    source.root, source.namespace, self.type_config
                )
            )

        target_items = discover_target_items(
            self.config.target_root, self.type_config, namespace
        )
        return source_items, target_items

    def diff(
        self,
        namespace: str | None = None,
        include_unchanged: bool = False,
    ) -> DiffResult:
        """Discover both sides and diff them."""
        source_items, target_items = self.collect(namespace)
        return calculate_diff(
            source_items,
            target_items,
            self.config.protected_fields,
            content_type=self.content_type,
            namespace=namespace,
            include_unchanged=include_unchanged,
        )

    def validate(self, namespace: str | None = None) -> ValidationReport:
        """Validate source front matter against the type's schema.

        Raises:
            ValueError: If the content type has no front-matter schema.
        """
        schema = self.type_config.front_matter_schema
        if schema is None:
            raise ValueError(
                f"Content type '{self.content_type}' has no front-matter schema"
            )
        source_items, _ = self.collect(namespace)
        return validate_items(
            source_items, schema, content_type=self.content_type
        )

    def check_conflicts(self, namespace: str | None = None) -> ConflictResult:
        """Compare the target tree against the ledger."""
        target_items = discover_target_items(
            self.config.target_root, self.type_config, namespace
        )
        return detect_conflicts(
            target_items, self.ledger_store.load(), namespace=namespace
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        dry_run: bool = False,
        force: bool = False,
        namespace: str | None = None,
    ) -> PublishReport:
        """Execute a publish run.

        Args:
            dry_run: If ``True``, compute actions but do not execute them.
            force: Overwrite target items even when they conflict.
            namespace: If given, only that namespace is published.

        Returns:
            A ``PublishReport`` summarising what was (or would be) done.
        """
        started_at = datetime.now(timezone.utc)

        source_items, target_items = self.collect(namespace)
        sources_by_key = {item.key: item for item in source_items}
        targets_by_key = {item.key: item for item in target_items}

        diff = calculate_diff(
            source_items,
            target_items,
            self.config.protected_fields,
            content_type=self.content_type,
            namespace=namespace,
            include_unchanged=True,
            now=started_at,
        )

        ledger = initial_ledger = self.ledger_store.load()
        conflicts = detect_conflicts(
            target_items, ledger, namespace=namespace
        )
        conflicted = conflicts.keys
        if conflicted and force:
            logger.warning(
                "Overwriting %d conflicting target items (--force)",
                len(conflicted),
            )

        results: list[PublishResult] = []
        written = 0
        for item in diff.items:
            try:
                result, ledger = self._publish_item(
                    item,
                    sources_by_key.get(item.key),
                    targets_by_key.get(item.key),
                    ledger,
                    blocked=item.key in conflicted and not force,
                    adopt=item.key in conflicted and force,
                    dry_run=dry_run,
                    synced_at=started_at,
                )
            except Exception as exc:
                logger.error("Error publishing %s: %s", item.key, exc)
                result = PublishResult(
                    key=item.key,
                    action=_planned_action(item),
                    success=False,
                    source_path=item.source_path,
                    target_path=item.target_path,
                    error=str(exc),
                )
            else:
                if not dry_run and result.action in (
                    PublishAction.CREATE,
                    PublishAction.UPDATE,
                ):
                    written += 1
            results.append(result)

        if force and not dry_run:
            # Records for keys gone from both sides are stale baselines.
            listed = {item.key for item in diff.items}
            for conflict in conflicts.conflicts:
                if (
                    conflict.conflict_type == ConflictType.DELETED
                    and conflict.key not in listed
                ):
                    ledger = remove_record(ledger, conflict.key)

        if ledger is not initial_ledger:
            self.ledger_store.save(with_last_sync(ledger, started_at))
            logger.info(
                "Published %d %s item(s) to %s",
                written,
                self.content_type,
                self.config.target_root,
            )

        return PublishReport(
            content_type=self.content_type,
            dry_run=dry_run,
            force=force,
            results=results,
            conflicts=conflicts,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------
    # Per-item publish
    # ------------------------------------------------------------------

    def _publish_item(
        self,
        item: DiffItem,
        source: ContentItem | None,
        target: ContentItem | None,
        ledger: SyncLedger,
        *,
        blocked: bool,
        adopt: bool,
        dry_run: bool,
        synced_at: datetime,
    ) -> tuple[PublishResult, SyncLedger]:
        """Decide and (unless dry-run) execute the action for one key.

        *adopt* records the current target of a conflicting key that
        needs no write (unchanged or orphaned) as the new baseline.

        Returns the result and the ledger, updated if a file was written
        or a baseline adopted.
        """
        if adopt and not dry_run and target is not None and item.status in (
            DiffStatus.UNCHANGED,
            DiffStatus.REMOVED,
        ):
            ledger = put_record(
                ledger,
                self._record_for(item.key, target, target.path, synced_at),
            )
            logger.debug("Recorded target baseline for %s", item.key)

        if item.status == DiffStatus.UNCHANGED:
            return (
                PublishResult(
                    key=item.key,
                    action=PublishAction.SKIP,
                    source_path=item.source_path,
                    target_path=item.target_path,
                ),
                ledger,
            )

        if item.status == DiffStatus.REMOVED:
            return (
                PublishResult(
                    key=item.key,
                    action=PublishAction.ORPHAN,
                    target_path=item.target_path,
                    error="source removed; target left in place",
                ),
                ledger,
            )

        if source is None:
            raise RuntimeError(f"No source item for {item.key}")

        target_path = item.target_path or self._target_path_for(source)
        action = _planned_action(item)

        if blocked:
            logger.warning(
                "Not writing %s: target conflicts with last sync",
                target_path,
            )
            return (
                PublishResult(
                    key=item.key,
                    action=PublishAction.CONFLICT,
                    source_path=item.source_path,
                    target_path=target_path,
                    error="target changed since last sync; use --force",
                ),
                ledger,
            )

        if not dry_run:
            copy_file(source.full_path, self.config.target_root / target_path)
            ledger = put_record(
                ledger,
                self._record_for(item.key, source, target_path, synced_at),
            )
            logger.debug("%s %s -> %s", action.value, item.key, target_path)

        return (
            PublishResult(
                key=item.key,
                action=action,
                source_path=item.source_path,
                target_path=target_path,
            ),
            ledger,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _target_path_for(self, source: ContentItem) -> str:
        """Target-relative path for a source item with no target yet.

        ``lessons/sub/01-intro.md`` from namespace ``py`` becomes
        ``<target_dir>/py/sub/01-intro.md``.
        """
        rel = PurePosixPath(source.path).relative_to(
            PurePosixPath(Path(self.type_config.source_dir).as_posix())
        )
        return str(
            PurePosixPath(self.type_config.target_dir)
            / source.namespace
            / rel
        )

    def _record_for(
        self,
        key: str,
        content: ContentItem,
        target_path: str,
        synced_at: datetime,
    ) -> SyncRecord:
        """Ledger record saying *target_path* now hashes like *content*."""
        return SyncRecord(
            key=key,
            file_path=target_path,
            content_hash=content.digest,
            synced_at=synced_at,
            source_origin=self._origin_for(content.namespace),
        )

    def _origin_for(self, namespace: str) -> str:
        source = self.config.sources.get(namespace)
        return source.origin if source is not None else namespace


def _planned_action(item: DiffItem) -> PublishAction:
    match item.status:
        case DiffStatus.ADDED:
            return PublishAction.CREATE
        case DiffStatus.MODIFIED:
            return PublishAction.UPDATE
        case DiffStatus.REMOVED:
            return PublishAction.ORPHAN
        case _:
            return PublishAction.SKIP
