"""
Shared pytest fixtures for the manuscript engine test suite.

Provides:
    - novel: a temporary project with contents/ and settings/ directories,
      sidecars, cross references and markdown links
    - ctx: a ProjectContext opened on that project
    - read_meta: helper returning a directory's raw sidecar dict
    - nested: a second project inside the sample novel under side/
"""

import os
import sys
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Ensure manuscript_engine/ is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from manuscript_engine.context import ProjectContext  # noqa: E402

META = ".dialogoi-meta.yaml"


def _write_yaml(path, data):
    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(data, fh, sort_keys=False, allow_unicode=True)


def _write(path, text):
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def novel(tmp_path):
    """Create a temporary novel project and return its root as a string.

    Layout::

        dialogoi.yaml
        .dialogoi-meta.yaml       contents/, settings/
        README.md
        contents/
            chapter1.txt          tags [draft], references settings/world.md
            chapter2.txt
            .chapter1.txt.comments.yaml
        settings/
            world.md              references contents/chapter1.txt, links to it
            hero.md               character record, references contents/chapter2.txt
            places.md             foreshadowing record, review counts
        notes.txt                 untracked
    """
    root = tmp_path / "harbor"
    contents = root / "contents"
    settings = root / "settings"
    contents.mkdir(parents=True)
    settings.mkdir()

    _write_yaml(root / "dialogoi.yaml", {
        "title": "Harbor Lights",
        "author": "A. Writer",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "tags": ["mystery"],
        "project_settings": {
            "readme_filename": "README.md",
            "exclude_patterns": [".*", "*.tmp", "build"],
        },
    })
    _write_yaml(root / META, {
        "readme": "README.md",
        "files": [
            {"name": "contents", "type": "subdirectory"},
            {"name": "settings", "type": "subdirectory"},
        ],
    })
    _write(root / "README.md", "# Harbor Lights\n")
    _write(root / "notes.txt", "loose notes\n")

    _write(contents / "chapter1.txt", "Chapter One\n\nThe lighthouse was dark.\n")
    _write(contents / "chapter2.txt", "Chapter Two\n\nSee [the world](settings/world.md).\n")
    _write(contents / ".chapter1.txt.comments.yaml", "comments: []\n")
    _write_yaml(contents / META, {
        "files": [
            {
                "name": "chapter1.txt",
                "type": "content",
                "hash": "sha256:0",
                "tags": ["draft"],
                "references": ["settings/world.md"],
                "comments": ".chapter1.txt.comments.yaml",
            },
            {
                "name": "chapter2.txt",
                "type": "content",
                "hash": "sha256:0",
                "tags": [],
                "references": [],
            },
        ],
    })

    _write(settings / "world.md",
           "# World\n\nThe story opens in [chapter one](../contents/chapter1.txt).\n"
           "Background: [wiki](https://example.com/harbor).\n")
    _write(settings / "hero.md", "# Captain Mara Voss\n\nThe harbor master.\n")
    _write(settings / "places.md", "# Places\n")
    _write_yaml(settings / META, {
        "files": [
            {
                "name": "world.md",
                "type": "setting",
                "hash": "sha256:0",
                "tags": ["world"],
                "references": ["contents/chapter1.txt"],
            },
            {
                "name": "hero.md",
                "type": "setting",
                "hash": "sha256:0",
                "tags": [],
                "references": ["contents/chapter2.txt"],
                "character": {
                    "importance": "main",
                    "multiple_characters": False,
                    "display_name": "Captain Mara Voss",
                },
            },
            {
                "name": "places.md",
                "type": "setting",
                "hash": "sha256:0",
                "tags": [],
                "references": [],
                "review_count": {"open": 2, "resolved": 1},
                "foreshadowing": {
                    "plants": [{"location": "contents/chapter1.txt", "comment": "dark lamp"}],
                    "payoff": {"location": "", "comment": ""},
                },
            },
        ],
    })
    return str(root)


@pytest.fixture
def ctx(novel):
    """Return a ProjectContext opened on the sample novel."""
    return ProjectContext.open(novel)


@pytest.fixture
def read_meta():
    """Return a function that reads a directory's raw sidecar dict."""

    def _read(directory):
        with open(os.path.join(str(directory), META), "r", encoding="utf-8") as fh:
            return yaml.safe_load(fh)

    return _read


@pytest.fixture
def nested(novel):
    """Create a separate project under ``side/`` and return its root.

    It reuses the outer project's relative paths so that an outer rename
    would match its references if the two projects were not kept apart.
    """
    root = os.path.join(novel, "side")
    os.makedirs(os.path.join(root, "contents"))
    _write_yaml(os.path.join(root, "dialogoi.yaml"), {
        "title": "Side Story",
        "author": "A. Writer",
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
    })
    _write_yaml(os.path.join(root, META), {
        "files": [
            {
                "name": "notes.md",
                "type": "setting",
                "hash": "sha256:0",
                "tags": [],
                "references": ["contents/chapter1.txt"],
            },
        ],
    })
    _write(os.path.join(root, "notes.md"), "See [c](contents/chapter1.txt).\n")
    _write(os.path.join(root, "contents", "chapter1.txt"), "Side chapter\n")
    return root
