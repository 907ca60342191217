"""
manuscript_engine/file_status.py -- Compare a directory's sidecar with its disk state.

Produces the list a tree view shows for one directory:

    * entries in the sidecar whose object exists          (tracked)
    * entries in the sidecar whose object is gone          ``is_missing``
    * disk objects not in the sidecar and not excluded     ``is_untracked``

The readme named by the sidecar and engine control files (sidecar,
descriptor, comments files) are managed implicitly and never listed.
"""

import logging
import os

from manuscript_engine.errors import EngineError
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.models.entries import SettingEntry, SubdirectoryEntry
from manuscript_engine.project import Project

logger = logging.getLogger(__name__)

_LAST = float("inf")


class FileStatusService:
    """Lists tracked, untracked and missing entries of a directory.

    Parameters
    ----------
    project : Project
        Supplies the exclude patterns.
    store : MetadataStore
        Reads the sidecar.
    """

    def __init__(self, project: Project, store: MetadataStore):
        self.project = project
        self.store = store

    def list_entries(self, directory) -> list:
        """Return the directory's entries with status flags set.

        Directories come first.  Files keep their sidecar order; anything
        not in the sidecar follows, sorted by name.

        Raises
        ------
        ValidationError
            If the directory's sidecar exists but is invalid.
        """
        directory = str(directory)
        meta = self.store.load(directory)
        entries = list(meta.files) if meta is not None else []
        known = {entry.name for entry in entries}
        order = {entry.name: i for i, entry in enumerate(entries)}
        hidden = {meta.readme} if meta is not None and meta.readme else set()

        for entry in entries:
            entry.is_untracked = False
            entry.is_missing = not os.path.lexists(entry.path)

        try:
            names = sorted(os.listdir(directory))
        except FileNotFoundError:
            names = []
        for name in names:
            if name in known or name in hidden:
                continue
            if self.project.config.is_control_file(name) or self.project.is_excluded(name):
                continue
            path = os.path.join(directory, name)
            try:
                if os.path.isdir(path):
                    entry = SubdirectoryEntry(name=name, is_untracked=True)
                else:
                    entry = SettingEntry(name=name, is_untracked=True)
            except ValueError:
                logger.debug("Ignoring unrepresentable name %r in %s", name, directory)
                continue
            entry.bind(directory)
            entries.append(entry)

        def _sort_key(entry):
            is_dir = entry.is_directory or os.path.isdir(entry.path)
            return (0 if is_dir else 1, order.get(entry.name, _LAST), entry.name)

        return sorted(entries, key=_sort_key)

    def untracked(self, directory) -> list:
        return [e for e in self.list_entries(directory) if e.is_untracked]

    def missing(self, directory) -> list:
        return [e for e in self.list_entries(directory) if e.is_missing]

    def project_summary(self) -> dict:
        """Untracked and missing project-relative paths across the whole project."""
        summary = {"untracked": [], "missing": [], "invalid": []}
        for directory in self.project.walk_directories():
            try:
                entries = self.list_entries(directory)
            except EngineError as exc:
                summary["invalid"].append({"path": directory, "error": str(exc)})
                continue
            for entry in entries:
                rel = self.project.relative(entry.path)
                if entry.is_untracked:
                    summary["untracked"].append(rel)
                elif entry.is_missing:
                    summary["missing"].append(rel)
        return summary
