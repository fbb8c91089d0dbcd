"""One-way content sync engine.

Public API for publishing authored course content (Markdown with YAML
front matter) from one or more source trees into a target tree, while
detecting edits made on the target since the last publish.

Architecture
------------
Two independent comparisons drive every run:

- **Diff** (source vs target): what would change if we published now.
  Target-owned *protected* front-matter fields are ignored, and bodies
  are compared after whitespace normalisation.
- **Conflicts** (target vs ledger): whether the target still looks the
  way the last publish left it.  The ledger stores a body hash per key.

Modules:

- ``normalize``   -- content normalisation and hashing.
- ``matcher``     -- pair source and target items by ``namespace/slug``.
- ``differ``      -- front-matter field comparison.
- ``classifier``  -- per-key diff status.
- ``diff``        -- ``calculate_diff``: the full diff.
- ``ledger``      -- ``SyncLedgerStore``: load/save the JSON ledger.
- ``conflicts``   -- ``detect_conflicts``: target-vs-ledger check.
- ``discovery``   -- read items from source and target trees.
- ``engine``      -- ``PublishEngine``: a full publish run.
- ``validation``  -- front-matter schemas for source items.
- ``reporter``    -- human-readable and JSON report formatting.
- ``models``      -- pydantic data contracts.
- ``errors``      -- exception hierarchy.

Usage example
-------------
::

    from coursekit_sync.sync import PublishEngine, format_publish_report

    engine = PublishEngine(config, "lessons")

    # Dry-run first to preview changes
    preview = engine.run(dry_run=True)
    print(format_publish_report(preview))

    # Execute the publish
    report = engine.run()
    print(format_publish_report(report))
"""

from .conflicts import classify_conflict, detect_conflicts
from .diff import calculate_diff
from .engine import PublishEngine
from .errors import (
    ClassificationError,
    LedgerError,
    MalformedLedgerError,
    ProtectedFieldError,
    SyncError,
    UnsupportedLedgerVersion,
)
from .ledger import SyncLedgerStore
from .models import (
    ConflictItem,
    ConflictResult,
    ConflictType,
    ContentItem,
    DiffItem,
    DiffResult,
    DiffStatus,
    FieldChange,
    PublishAction,
    PublishReport,
    PublishResult,
    SyncLedger,
    SyncRecord,
    ValidationReport,
)
from .normalize import content_hash, normalize_content
from .reporter import (
    conflicts_to_json,
    diff_to_json,
    format_conflict_report,
    format_diff_report,
    format_publish_report,
    format_validation_report,
    report_to_json,
    validation_to_json,
)
from .validation import validate_item, validate_items

__all__ = [
    "ClassificationError",
    "ConflictItem",
    "ConflictResult",
    "ConflictType",
    "ContentItem",
    "DiffItem",
    "DiffResult",
    "DiffStatus",
    "FieldChange",
    "LedgerError",
    "MalformedLedgerError",
    "ProtectedFieldError",
    "PublishAction",
    "PublishEngine",
    "PublishReport",
    "PublishResult",
    "SyncError",
    "SyncLedger",
    "SyncLedgerStore",
    "SyncRecord",
    "UnsupportedLedgerVersion",
    "ValidationReport",
    "calculate_diff",
    "classify_conflict",
    "conflicts_to_json",
    "content_hash",
    "detect_conflicts",
    "diff_to_json",
    "format_conflict_report",
    "format_diff_report",
    "format_publish_report",
    "format_validation_report",
    "normalize_content",
    "report_to_json",
    "validate_item",
    "validate_items",
    "validation_to_json",
]
