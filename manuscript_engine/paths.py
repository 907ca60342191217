"""
manuscript_engine/paths.py -- Project-relative path handling.

All stored and scanned reference strings are normalized to
project-root-relative POSIX paths (``contents/chapter1.txt``) before they
are compared, so references written from different directories or on
different platforms still match.

Resolution rules for a raw reference string:

    * ``http://``, ``https://``, ``ftp://``, ``mailto:``, ``tel:``  external, ignored
    * ``./x`` or ``../x``   relative to the referencing file's directory
    * absolute paths        must lie inside the project root
    * anything else         already project-root relative
"""

from __future__ import annotations

import os
import posixpath
from pathlib import Path

from manuscript_engine.config import DESCRIPTOR_FILENAME

_EXTERNAL_PREFIXES = ("http://", "https://", "ftp://", "mailto:", "tel:")


def is_external_link(link: str) -> bool:
    return link.startswith(_EXTERNAL_PREFIXES)


def to_posix(path: str) -> str:
    """Normalize separators to ``/``."""
    return path.replace("\\", "/")


def _is_root_relative(link: str) -> bool:
    return not (
        link.startswith("./")
        or link.startswith("../")
        or link in (".", "..")
        or os.path.isabs(link)
        or is_external_link(link)
    )


def find_project_root(start, descriptor_filename: str = DESCRIPTOR_FILENAME) -> Path | None:
    """Walk upward from *start* to the nearest directory holding a descriptor.

    *start* may be a file or a directory.  Returns ``None`` if no ancestor
    is a project root.
    """
    current = Path(start).resolve()
    if not current.is_dir():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / descriptor_filename).is_file():
            return candidate
    return None


class ProjectPaths:
    """Converts between absolute paths and project-relative paths.

    Parameters
    ----------
    project_root : str or pathlib.Path
        Absolute path to the directory holding the project descriptor.
    """

    def __init__(self, project_root):
        self.root = Path(project_root).resolve()
        self._root_str = str(self.root)

    def relative(self, absolute_path) -> str | None:
        """Project-relative POSIX path of *absolute_path*, or ``None`` if outside."""
        rel = os.path.relpath(os.path.realpath(str(absolute_path)), self._root_str)
        rel = to_posix(rel)
        if rel == ".." or rel.startswith("../"):
            return None
        return "" if rel == "." else rel

    def absolute(self, project_relative: str) -> str:
        return os.path.join(self._root_str, *project_relative.split("/"))

    def normalize(self, link: str, referencing_file) -> str | None:
        """Resolve *link* as written inside *referencing_file*.

        Returns the project-relative target, or ``None`` for external links,
        empty strings, and targets outside the project.
        """
        if not link or not link.strip():
            return None
        link = to_posix(link.strip())
        if is_external_link(link):
            return None

        if _is_root_relative(link):
            target = posixpath.normpath(link)
            if target == ".." or target.startswith("../"):
                return None
            return None if target == "." else target

        if os.path.isabs(link):
            return self.relative(link) or None

        base = os.path.dirname(os.path.abspath(str(referencing_file)))
        return self.relative(os.path.normpath(os.path.join(base, link))) or None

    def is_inside(self, absolute_path) -> bool:
        return self.relative(absolute_path) is not None

    @staticmethod
    def same_path(a: str, b: str) -> bool:
        return posixpath.normpath(to_posix(a)) == posixpath.normpath(to_posix(b))

    @staticmethod
    def rebase(path: str, old_prefix: str, new_prefix: str) -> str | None:
        """Rewrite *path* if it is *old_prefix* or lies under it.

        Returns the rewritten path, or ``None`` when *path* is unaffected.
        Used when a whole subdirectory moves.
        """
        path = posixpath.normpath(to_posix(path))
        old_prefix = posixpath.normpath(to_posix(old_prefix))
        if path == old_prefix:
            return new_prefix
        if path.startswith(old_prefix + "/"):
            return new_prefix + path[len(old_prefix):]
        return None
