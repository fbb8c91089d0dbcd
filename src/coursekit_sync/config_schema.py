"""Unified configuration schema for coursekit_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the target tree, source trees, content types, sync
behaviour and logging.

Usage:
    from coursekit_sync.config_schema import build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .sync.differ import DEFAULT_PROTECTED_FIELDS, protected_field_set

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TargetConfig(BaseModel):
    """Deployment target settings.

    ``path`` is optional so that ``--target`` or ``COURSEKIT_TARGET`` can
    supply it at runtime instead.
    """

    path: str | None = Field(
        default=None, description="Target (platform) root directory"
    )
    ledger_dir: str = Field(
        default=".sync",
        description="Ledger directory, relative to the target root",
    )

    model_config = {"frozen": True}


class SourceConfig(BaseModel):
    """One authored source tree; its config key is the namespace."""

    path: str = Field(description="Source root directory")
    origin: str | None = Field(
        default=None,
        description="Identifier recorded in the ledger (repo URL, name)",
    )

    model_config = {"frozen": True}


class ContentTypeConfig(BaseModel):
    """Where one kind of content lives on each side.

    Attributes:
        source_dir: Directory under each source root.
        target_dir: Directory under the target root; one subdirectory
            per namespace.
        pattern: Glob (relative, applied recursively) selecting files.
        kind: ``markdown`` files are split into front matter and body;
            ``asset`` files are opaque and compared by whole-file hash.
        front_matter_schema: Schema checked by ``validate`` (``lesson``
            or ``guide``); ``None`` skips validation.
    """

    source_dir: str
    target_dir: str
    pattern: str = "*.md"
    kind: Literal["markdown", "asset"] = "markdown"
    front_matter_schema: Literal["lesson", "guide"] | None = None

    model_config = {"frozen": True}


def _default_content_types() -> dict[str, ContentTypeConfig]:
    return {
        "lessons": ContentTypeConfig(
            source_dir="lessons",
            target_dir="src/content/lessons",
            front_matter_schema="lesson",
        ),
        "guides": ContentTypeConfig(
            source_dir="guides",
            target_dir="src/content/guides",
            front_matter_schema="guide",
        ),
        "assets": ContentTypeConfig(
            source_dir="assets",
            target_dir="public/courses",
            pattern="*",
            kind="asset",
        ),
    }


class SyncSettings(BaseModel):
    """Sync behaviour.

    Attributes:
        protected_fields: Front-matter fields owned by the target.
    """

    protected_fields: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PROTECTED_FIELDS),
        description="Target-owned front-matter fields",
    )

    model_config = {"frozen": True}

    @field_validator("protected_fields")
    @classmethod
    def _check_casing(cls, value: list[str]) -> list[str]:
        protected_field_set(value)
        return value


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    target: TargetConfig = Field(default_factory=TargetConfig)
    sources: dict[str, SourceConfig] = Field(default_factory=dict)
    content_types: dict[str, ContentTypeConfig] = Field(
        default_factory=_default_content_types
    )
    sync: SyncSettings = Field(default_factory=SyncSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
