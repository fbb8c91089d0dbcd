"""Typed errors raised by the diff and conflict engine.

Conflicts are never raised: they are returned as ``ConflictResult``
values.  Only caller mistakes (a bad ledger, a bad protected-field set)
and internal consistency failures surface as exceptions.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all engine errors."""


class LedgerError(SyncError):
    """The sync ledger could not be used."""


class MalformedLedgerError(LedgerError):
    """The ledger file is not valid JSON or does not match the schema."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed sync ledger {path}: {reason}")


class UnsupportedLedgerVersion(LedgerError):
    """The ledger was written by an incompatible version of the tool."""

    def __init__(self, path: str, found: object, supported: int) -> None:
        self.path = path
        self.found = found
        self.supported = supported
        super().__init__(
            f"Unsupported sync ledger version {found!r} in {path}. "
            f"Supported version: {supported}"
        )


class ProtectedFieldError(SyncError, ValueError):
    """A protected-field set names the same field with different casing."""

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(
            "Protected fields differ only by case: "
            + ", ".join(fields)
        )


class ClassificationError(SyncError):
    """A pair reached the classifier with neither side present."""
