"""Pydantic models for the one-way content sync engine.

Defines the core data contracts used across all sync modules:

- ``ContentItem``: One lesson or guide as read from a source or target tree.
- ``FieldChange``: A single front-matter difference.
- ``DiffItem`` / ``DiffResult``: Source-vs-target comparison output.
- ``SyncRecord`` / ``SyncLedger``: The persisted baseline of the last publish.
- ``ConflictItem`` / ``ConflictResult``: Target-vs-ledger comparison output.
- ``PublishResult`` / ``PublishReport``: Outcome of a publish run.
- ``ValidationIssue`` / ``FileValidation`` / ``ValidationReport``: Front-matter
  checks on source items.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, JsonValue

from coursekit_sync.sync.normalize import content_hash

# Bumped only together with a migration path in ``SyncLedgerStore.load``.
LEDGER_VERSION = 1


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class ContentItem(BaseModel):
    """A content file on either side of the sync.

    Attributes:
        namespace: Owning namespace (course id); scopes the slug.
        slug: Canonical slug within the namespace.
        path: File path relative to ``root``.
        root: Directory that ``path`` is relative to (may be empty).
        front_matter: Parsed YAML front matter.
        body: Text following the front-matter block.
        file_hash: Whole-file hash, set for binary assets only.
    """

    namespace: str
    slug: str
    path: str
    root: str = ""
    front_matter: dict[str, JsonValue] = {}
    body: str = ""
    file_hash: str | None = None

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        """Canonical ``namespace/slug`` key."""
        return f"{self.namespace}/{self.slug}"

    @property
    def full_path(self) -> Path:
        """``root / path`` as a ``Path``."""
        return Path(self.root) / self.path

    @property
    def digest(self) -> str:
        """Hash compared against the other side and stored in the ledger.

        The file hash for assets, otherwise the normalised body hash.
        """
        return self.file_hash or content_hash(self.body)


# ---------------------------------------------------------------------------
# Diff
# ---------------------------------------------------------------------------


class ChangeKind(str, Enum):
    """How a front-matter field differs between source and target."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class DiffStatus(str, Enum):
    """Sync status of a matched source/target pair."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


# Fixed presentation order for diff items.
STATUS_ORDER: dict[DiffStatus, int] = {
    DiffStatus.ADDED: 0,
    DiffStatus.MODIFIED: 1,
    DiffStatus.REMOVED: 2,
    DiffStatus.UNCHANGED: 3,
}


class FieldChange(BaseModel):
    """One non-protected front-matter field that differs.

    The side a value is absent from is implied by ``kind``: ``ADDED``
    has no target value and ``REMOVED`` has no source value.  A present
    ``None`` is a real value and is only meaningful for ``MODIFIED``.
    """

    field: str
    source_value: JsonValue = None
    target_value: JsonValue = None
    kind: ChangeKind

    model_config = {"frozen": True}


class DiffItem(BaseModel):
    """Classification of one canonical key."""

    key: str
    namespace: str
    slug: str
    status: DiffStatus
    source_path: str | None = None
    target_path: str | None = None
    changes: list[FieldChange] = []
    body_changed: bool = False

    model_config = {"frozen": True}


class DiffSummary(BaseModel):
    """Counts over every classified item, filtered or not."""

    added: int = 0
    modified: int = 0
    removed: int = 0
    unchanged: int = 0

    model_config = {"frozen": True}

    @property
    def total(self) -> int:
        return self.added + self.modified + self.removed + self.unchanged


class DiffResult(BaseModel):
    """Snapshot of a source-vs-target comparison."""

    content_type: str
    items: list[DiffItem] = []
    summary: DiffSummary = Field(default_factory=DiffSummary)
    calculated_at: datetime

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class SyncRecord(BaseModel):
    """What the target looked like right after one key was last written.

    Serialised with camelCase aliases to match the on-disk ledger format.
    The ``key`` is the map key in the file, not a field of the record.
    """

    key: str = Field(exclude=True)
    file_path: str = Field(alias="filePath")
    content_hash: str = Field(alias="contentHash")
    synced_at: datetime = Field(alias="syncedAt")
    source_origin: str = Field(alias="sourceOrigin")

    model_config = {"frozen": True, "populate_by_name": True}


class SyncLedger(BaseModel):
    """Versioned, immutable snapshot of the sync baseline."""

    version: int = LEDGER_VERSION
    records: dict[str, SyncRecord] = {}
    last_sync: datetime | None = Field(default=None, alias="lastSync")

    model_config = {"frozen": True, "populate_by_name": True}


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictType(str, Enum):
    """Why a target item no longer matches the ledger baseline."""

    MODIFIED = "modified"
    DELETED = "deleted"
    NEW_ON_TARGET = "new_on_target"


class ConflictItem(BaseModel):
    """A target item that diverged from the ledger."""

    key: str
    target_path: str | None = None
    expected_hash: str | None = None
    current_hash: str | None = None
    last_synced_at: datetime | None = None
    conflict_type: ConflictType
    summary: str

    model_config = {"frozen": True}


class ConflictResult(BaseModel):
    """Outcome of comparing the target tree against the ledger."""

    has_conflicts: bool
    conflicts: list[ConflictItem] = []
    total_checked: int = 0

    model_config = {"frozen": True}

    @property
    def keys(self) -> set[str]:
        return {c.key for c in self.conflicts}


# ---------------------------------------------------------------------------
# Publish
# ---------------------------------------------------------------------------


class PublishAction(str, Enum):
    """What the publish executor did (or would do) with one key."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    CONFLICT = "conflict"
    ORPHAN = "orphan"


class PublishResult(BaseModel):
    """Result of publishing one key.

    Attributes:
        key: Canonical key.
        action: Action taken (or planned, in a dry run).
        success: Whether the action succeeded.
        source_path: Source file, relative to its source root.
        target_path: Target file, relative to the target root.
        error: Error or explanatory message.
    """

    key: str
    action: PublishAction
    success: bool = True
    source_path: str | None = None
    target_path: str | None = None
    error: str | None = None

    model_config = {"frozen": True}


class PublishReport(BaseModel):
    """Aggregate report for a publish run."""

    content_type: str
    dry_run: bool = False
    force: bool = False
    results: list[PublishResult] = []
    conflicts: ConflictResult = Field(
        default_factory=lambda: ConflictResult(has_conflicts=False)
    )
    started_at: datetime
    completed_at: datetime | None = None

    model_config = {"frozen": True}

    def _with_action(self, action: PublishAction) -> list[PublishResult]:
        return [
            r for r in self.results if r.action == action and r.success
        ]

    @property
    def created(self) -> list[PublishResult]:
        """Successful (or planned) CREATE results."""
        return self._with_action(PublishAction.CREATE)

    @property
    def updated(self) -> list[PublishResult]:
        """Successful (or planned) UPDATE results."""
        return self._with_action(PublishAction.UPDATE)

    @property
    def skipped(self) -> list[PublishResult]:
        """Keys that were already up to date."""
        return self._with_action(PublishAction.SKIP)

    @property
    def blocked(self) -> list[PublishResult]:
        """Writes withheld because the target conflicts with the ledger."""
        return self._with_action(PublishAction.CONFLICT)

    @property
    def orphaned(self) -> list[PublishResult]:
        """Target items whose source is gone; left in place."""
        return self._with_action(PublishAction.ORPHAN)

    @property
    def errors(self) -> list[PublishResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.blocked and not self.errors

    def summary(self) -> str:
        """Format a human-readable summary of the publish run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Publish report for '{self.content_type}'"
            + (" (dry run)" if self.dry_run else ""),
            f"  Created:   {len(self.created)}",
            f"  Updated:   {len(self.updated)}",
            f"  Unchanged: {len(self.skipped)}",
            f"  Conflicts: {len(self.blocked)}",
            f"  Orphaned:  {len(self.orphaned)}",
            f"  Errors:    {len(self.errors)}",
            f"  Total:     {len(self.results)}",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationIssue(BaseModel):
    """One front-matter problem in one file."""

    field: str
    message: str
    suggestion: str | None = None

    model_config = {"frozen": True}


class FileValidation(BaseModel):
    """Validation outcome for one source file."""

    key: str
    path: str
    errors: list[ValidationIssue] = []

    model_config = {"frozen": True}

    @property
    def valid(self) -> bool:
        return not self.errors


class ValidationWarning(BaseModel):
    """A problem spanning several files that does not fail validation."""

    code: str
    message: str
    files: list[str] = []

    model_config = {"frozen": True}


class ValidationReport(BaseModel):
    """Front-matter validation of one content type's source items.

    Attributes:
        content_type: Content type that was validated.
        total_files: Number of source files checked.
        files: Only the files that failed, in discovery order.
        warnings: Cross-file warnings such as duplicate ``order`` values.
    """

    content_type: str
    total_files: int = 0
    files: list[FileValidation] = []
    warnings: list[ValidationWarning] = []

    model_config = {"frozen": True}

    @property
    def invalid_files(self) -> int:
        return len(self.files)

    @property
    def valid_files(self) -> int:
        return self.total_files - self.invalid_files

    @property
    def valid(self) -> bool:
        return not self.files
