"""Shared pytest fixtures for coursekit-sync tests."""

import pytest
from dotenv import load_dotenv

from coursekit_sync.config import Config, SourceTree
from coursekit_sync.config_schema import ContentTypeConfig
from coursekit_sync.sync.differ import DEFAULT_PROTECTED_FIELDS
from coursekit_sync.sync.models import ContentItem

load_dotenv()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep a developer's COURSEKIT_* and LOG_LEVEL settings out of tests."""
    for var in (
        "COURSEKIT_CONFIG",
        "COURSEKIT_TARGET",
        "COURSEKIT_DEBUG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_item():
    """Factory fixture for ``ContentItem`` values."""

    def _make(
        key: str,
        front_matter: dict | None = None,
        body: str = "Body text.\n",
        path: str | None = None,
    ) -> ContentItem:
        namespace, slug = key.split("/", 1)
        return ContentItem(
            namespace=namespace,
            slug=slug,
            path=path or f"{namespace}/{slug}.md",
            front_matter=front_matter or {},
            body=body,
        )

    return _make


@pytest.fixture
def workspace(tmp_path):
    """A source tree and an empty target tree on disk.

    Returns a dict with ``source`` and ``target`` roots and a ``config``
    wired to them with one source (namespace ``py``).
    """
    source = tmp_path / "intro-python"
    target = tmp_path / "platform"
    (source / "lessons").mkdir(parents=True)
    target.mkdir()

    config = Config(
        target_root=target,
        sources={
            "py": SourceTree(
                namespace="py",
                root=source,
                origin="github.com/example/intro-python",
            )
        },
        content_types={
            "lessons": ContentTypeConfig(
                source_dir="lessons", target_dir="src/content/lessons"
            ),
            "guides": ContentTypeConfig(
                source_dir="guides", target_dir="src/content/guides"
            ),
        },
        protected_fields=frozenset(DEFAULT_PROTECTED_FIELDS),
    )
    return {"source": source, "target": target, "config": config}
