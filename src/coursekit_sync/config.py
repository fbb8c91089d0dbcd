"""Runtime configuration for a sync run.

Resolves the target root and source trees from CLI args, environment
variables, .env files, and the YAML config.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    COURSEKIT_TARGET: Target (platform) root directory
    COURSEKIT_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .config_schema import ContentTypeConfig, UnifiedConfig
from .sync.differ import protected_field_set

logger = logging.getLogger(__name__)


@dataclass
class SourceTree:
    namespace: str
    root: Path
    origin: str


@dataclass
class Config:
    target_root: Path
    sources: dict[str, SourceTree]
    content_types: dict[str, ContentTypeConfig]
    protected_fields: frozenset[str] = field(default_factory=frozenset)
    ledger_dir: str = ".sync"
    debug: bool = False

    def ledger_path(self, content_type: str) -> Path:
        """Ledger file for *content_type* under the target root."""
        return self.target_root / self.ledger_dir / f"{content_type}.json"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the target directory is missing or no sources
            are configured.
    """
    if not config.target_root.is_dir():
        raise ValueError(
            f"Target directory not found: {config.target_root}"
        )

    if not config.sources:
        raise ValueError(
            "No sources configured. Add a 'sources' section to "
            ".coursekit/config.yml."
        )

    for source in config.sources.values():
        if not source.root.is_dir():
            logger.warning(
                "Source directory for '%s' not found: %s",
                source.namespace,
                source.root,
            )


def load_config(
    unified: UnifiedConfig,
    target: str | None = None,
    debug: bool = False,
) -> Config:
    """Build a validated runtime ``Config``.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > YAML config > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        unified: Config produced by ``build_config()``.
        target: Override target root (CLI ``--target``).
        debug: Enable debug logging (CLI flag).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the target root is missing after checking all
            sources, or fails validation.
    """
    target_path = (
        target or os.getenv("COURSEKIT_TARGET") or unified.target.path
    )
    if not target_path:
        raise ValueError(
            "Target directory not set. Set COURSEKIT_TARGET environment "
            "variable, pass --target, or add 'target.path' to config.yml."
        )

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("COURSEKIT_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = unified.logging.level.upper() == "DEBUG"

    sources = {
        name: SourceTree(
            namespace=name,
            root=Path(src.path).expanduser().resolve(),
            origin=src.origin or name,
        )
        for name, src in unified.sources.items()
    }

    config = Config(
        target_root=Path(target_path).expanduser().resolve(),
        sources=sources,
        content_types=dict(unified.content_types),
        protected_fields=protected_field_set(
            unified.sync.protected_fields
        ),
        ledger_dir=unified.target.ledger_dir,
        debug=final_debug,
    )

    validate_config(config)

    return config
