"""
Config file discovery and loading for coursekit_sync.

Config files are looked up by convention, merged section by section
with the project file winning, and may pull a section from a sibling
file with ``!include``.  Environment references like ``${PLATFORM_DIR}``
are expanded in the path settings only.

Usage:
    from coursekit_sync.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "COURSEKIT_CONFIG"
PROJECT_CONFIG_DIR = ".coursekit"

# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """SafeLoader that resolves ``!include`` relative to the including file.

    ``chain`` holds the files being loaded, outermost first.
    """

    def __init__(self, stream, chain: tuple[Path, ...]) -> None:
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        path = (current.parent / self.construct_scalar(node)).resolve()
        if path in self.chain:
            chain = " -> ".join(str(p) for p in (*self.chain, path))
            raise ValueError(f"Circular include detected: {chain}")
        if not path.is_file():
            raise FileNotFoundError(
                f"Include file not found: {path} (referenced from {current})"
            )
        return read_yaml(path, self.chain)


IncludeLoader.add_constructor("!include", IncludeLoader.include)


def read_yaml(path: Path, chain: tuple[Path, ...] = ()) -> Any:
    """Load one YAML file, following ``!include`` tags."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = IncludeLoader(fh, (*chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Env references in paths
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def expand_env(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` references in *value*.

    Unset or empty variables fall back to the default, or to "".
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m.group(1)) or m.group(2) or "", value
    )


def _expand_path_of(section: Any) -> Any:
    if isinstance(section, dict) and isinstance(section.get("path"), str):
        return {**section, "path": expand_env(section["path"])}
    return section


def expand_paths(raw: dict[str, Any]) -> dict[str, Any]:
    """Return *raw* with env references expanded in ``target.path``,
    every ``sources.<namespace>.path`` and ``logging.file``."""
    result = dict(raw)
    if "target" in result:
        result["target"] = _expand_path_of(result["target"])
    if isinstance(result.get("sources"), dict):
        result["sources"] = {
            ns: _expand_path_of(src) for ns, src in result["sources"].items()
        }
    log = result.get("logging")
    if isinstance(log, dict) and isinstance(log.get("file"), str):
        result["logging"] = {**log, "file": expand_env(log["file"])}
    return result


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files(explicit: str | None = None) -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. *explicit* path (CLI ``--config``); must exist.
        2. ``COURSEKIT_CONFIG`` env var.
        3. ``.coursekit/config.yml``, then ``.coursekit/config.yaml``, in CWD.
        4. ``~/.config/coursekit/config.yml``.
    """
    candidates: list[Path] = []
    if explicit:
        explicit_path = Path(explicit).expanduser().resolve()
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        candidates.append(explicit_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / PROJECT_CONFIG_DIR
    candidates += [project_dir / "config.yml", project_dir / "config.yaml"]
    candidates.append(Path.home() / ".config" / "coursekit" / "config.yml")

    existing = [p for p in candidates if p.exists()]
    return list(dict.fromkeys(existing))


# ---------------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# coursekit-sync configuration
#
# The target root can also be set via the COURSEKIT_TARGET environment
# variable or the --target flag.  Paths may use ${VAR} or ${VAR:-default}.
#
# target:
#   path: ../platform
#   ledger_dir: .sync
#
# One entry per source tree; the key is the namespace (course id).
# A long list can live in its own file: sources: !include sources.yml
#
# sources:
#   intro-python:
#     path: ../intro-python
#     origin: github.com/example/intro-python
#
# kind is "markdown" (default) or "asset" (binary files, compared by
# whole-file hash).  front_matter_schema ("lesson" or "guide") enables
# the validate command for that type.
#
# content_types:
#   lessons:
#     source_dir: lessons
#     target_dir: src/content/lessons
#     pattern: "*.md"
#     front_matter_schema: lesson
#   guides:
#     source_dir: guides
#     target_dir: src/content/guides
#     front_matter_schema: guide
#   assets:
#     source_dir: assets
#     target_dir: public/courses
#     pattern: "*"
#     kind: asset
#
# Front-matter fields owned by the target; never diffed or overwritten.
#
# sync:
#   protected_fields: [price, productId, enrollmentCount, publishedAt]
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the highest-precedence existing config file, or the
    default ``CWD / .coursekit / config.yml`` if there is none."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> tuple[Path, bool]:
    """Write the starter config unless a config file already exists.

    Args:
        target: Path to create; defaults to ``resolve_config_path()``.

    Returns:
        Tuple of (config path, created).
    """
    config_path = target or resolve_config_path()
    if config_path.exists():
        logger.debug("Config file already exists: %s", config_path)
        return config_path, False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path, True


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_hierarchical_config(explicit: str | None = None) -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest precedence to highest; each file's
    top-level sections replace (not deep-merge) earlier ones.  Returns
    an empty dict when no config file exists.

    Raises:
        FileNotFoundError: *explicit* or an included file is missing.
        yaml.YAMLError: A file is not valid YAML.
        ValueError: A file's root is not a mapping, or includes loop.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files(explicit)):
        logger.debug("Loading config: %s", path)
        data = read_yaml(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            raise ValueError(
                f"Config file {path} must contain a mapping, "
                f"not {type(data).__name__}"
            )
        merged.update(data)

    if not merged:
        logger.debug("No config found: using zero-config defaults")
    return expand_paths(merged)
