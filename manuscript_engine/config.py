"""
manuscript_engine/config.py -- Engine-wide file names and defaults.

Project-specific settings (readme name, exclude patterns) live in the
project descriptor and take precedence over the defaults here.
"""

from __future__ import annotations

from dataclasses import dataclass, field

META_FILENAME = ".dialogoi-meta.yaml"
DESCRIPTOR_FILENAME = "dialogoi.yaml"
DEFAULT_README = "README.md"

DEFAULT_EXCLUDE_PATTERNS = (
    ".*",
    ".DS_Store",
    "Thumbs.db",
    "desktop.ini",
    "$RECYCLE.BIN",
    ".Trash",
    ".git",
    ".gitignore",
    ".hg",
    ".svn",
    "*.tmp",
    "*.temp",
    "*.log",
    "*.bak",
    "*.old",
    "node_modules",
    "dist",
    "build",
)


@dataclass(frozen=True)
class EngineConfig:
    """File naming and scanning options shared by every engine component.

    Parameters
    ----------
    meta_filename : str
        Name of the per-directory sidecar metadata file.
    descriptor_filename : str
        Name of the project descriptor marking a project root.
    default_readme : str
        Readme file name used for new subdirectories when the descriptor
        does not name one.
    exclude_patterns : tuple[str, ...]
        Fallback patterns for names skipped by directory walks.
    link_scan_extensions : tuple[str, ...]
        File suffixes whose content is scanned for hyperlinks.
    """

    meta_filename: str = META_FILENAME
    descriptor_filename: str = DESCRIPTOR_FILENAME
    default_readme: str = DEFAULT_README
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    link_scan_extensions: tuple[str, ...] = field(default=(".md", ".txt"))

    def comments_filename(self, entry_name: str) -> str:
        """Return the comments file name attached to *entry_name*."""
        return f".{entry_name}.comments.yaml"

    def is_control_file(self, name: str) -> bool:
        """True for engine-owned files that never appear as entries."""
        return name in (self.meta_filename, self.descriptor_filename) or (
            name.startswith(".") and name.endswith(".comments.yaml")
        )
