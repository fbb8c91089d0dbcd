"""Sync ledger persistence layer.

The ledger records, per canonical key, the content hash the target had
right after it was last published.  The conflict detector compares the
live target against it to spot out-of-band edits.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so a crash leaves either the old or the new ledger,
  never a half-written one.
* **Immutable snapshots** -- ``SyncLedger`` is a frozen model;
  ``put_record()`` and ``remove_record()`` return a new ledger.
* **Strict versioning** -- a ledger with an unknown ``version`` is
  rejected outright; unknown top-level keys are ignored.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from coursekit_sync.sync.errors import (
    MalformedLedgerError,
    UnsupportedLedgerVersion,
)
from coursekit_sync.sync.models import LEDGER_VERSION, SyncLedger, SyncRecord

logger = logging.getLogger(__name__)


class SyncLedgerStore:
    """Load and save the sync ledger at a fixed path.

    Args:
        path: Ledger file location (typically
            ``<target>/.sync/<content_type>.json``).
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> SyncLedger:
        """Load the ledger from disk.

        Returns:
            The ledger.  If the file does not exist an empty ledger with
            the current version is returned.

        Raises:
            MalformedLedgerError: The file is not a JSON object or a
                record does not match the schema.
            UnsupportedLedgerVersion: ``version`` is missing or not
                supported.
        """
        if not self.path.exists():
            logger.debug("No ledger at %s, starting empty", self.path)
            return SyncLedger()

        data = self.path.read_bytes()
        try:
            raw = json.loads(data.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise MalformedLedgerError(
                str(self.path), f"not valid UTF-8 ({exc})"
            ) from exc
        except json.JSONDecodeError as exc:
            raise MalformedLedgerError(
                str(self.path), f"invalid JSON ({exc})"
            ) from exc

        if not isinstance(raw, dict):
            raise MalformedLedgerError(
                str(self.path), "top level must be a JSON object"
            )

        version = raw.get("version")
        if (
            not isinstance(version, int)
            or isinstance(version, bool)
            or version != LEDGER_VERSION
        ):
            raise UnsupportedLedgerVersion(
                str(self.path), version, LEDGER_VERSION
            )

        raw_records = raw.get("records") or {}
        if not isinstance(raw_records, dict):
            raise MalformedLedgerError(
                str(self.path), "'records' must be a JSON object"
            )

        try:
            records = {}
            for key, value in raw_records.items():
                if not isinstance(value, dict):
                    raise MalformedLedgerError(
                        str(self.path), f"record {key!r} is not an object"
                    )
                records[key] = SyncRecord.model_validate(
                    {**value, "key": key}
                )
            return SyncLedger(
                version=version,
                records=records,
                last_sync=raw.get("lastSync"),
            )
        except ValidationError as exc:
            raise MalformedLedgerError(str(self.path), str(exc)) from exc

    def save(self, ledger: SyncLedger) -> None:
        """Persist *ledger* to disk atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates the parent directory if needed.
        """
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        payload = ledger.model_dump(mode="json", by_alias=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(directory), suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2, sort_keys=False)
                fh.write("\n")
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.debug(
            "Saved ledger with %d records to %s",
            len(ledger.records),
            self.path,
        )


# ----------------------------------------------------------------------
# Record helpers
# ----------------------------------------------------------------------


def get_record(ledger: SyncLedger, key: str) -> SyncRecord | None:
    """Return the record for *key*, or ``None`` if absent."""
    return ledger.records.get(key)


def put_record(ledger: SyncLedger, record: SyncRecord) -> SyncLedger:
    """Return a copy of *ledger* with *record* upserted under its key."""
    records = {**ledger.records, record.key: record}
    return ledger.model_copy(update={"records": records})


def remove_record(ledger: SyncLedger, key: str) -> SyncLedger:
    """Return a copy of *ledger* without *key*.  No-op if absent."""
    if key not in ledger.records:
        return ledger
    records = {k: v for k, v in ledger.records.items() if k != key}
    return ledger.model_copy(update={"records": records})


def with_last_sync(ledger: SyncLedger, when: datetime) -> SyncLedger:
    """Return a copy of *ledger* stamped with *when* as ``last_sync``."""
    return ledger.model_copy(update={"last_sync": when})
