"""
manuscript_engine/link_rewriter.py -- Propagate a path change project-wide.

Called after a rename or move has been committed.  Two kinds of reference
are rewritten:

    * ``references`` lists in every sidecar, saved back through the
      metadata store (so validation and locking apply);
    * markdown links in every scanned text file.

A reference is rewritten when it resolves to the old path or, for a moved
directory, to anything beneath it.  Failures are collected per file in
the returned :class:`RewriteReport`; the rewrite itself never raises for
them, because the change that triggered it is already on disk.
"""

import logging
import os
import posixpath

from manuscript_engine.errors import EngineError, RewriteReport
from manuscript_engine.links import rewrite_links
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.paths import ProjectPaths, to_posix
from manuscript_engine.project import Project
from manuscript_engine.utils import read_text, safe_write_text

logger = logging.getLogger(__name__)


class LinkRewriter:
    """Rewrites stored and textual references after a path change.

    Parameters
    ----------
    project : Project
        The project to scan.
    store : MetadataStore
        Store used to load and save sidecars.
    """

    def __init__(self, project: Project, store: MetadataStore):
        self.project = project
        self.store = store

    def _project_path(self, path) -> str | None:
        path = str(path)
        if os.path.isabs(path):
            return self.project.relative(path) or None
        return posixpath.normpath(to_posix(path))

    def rewrite(self, old_path, new_path) -> RewriteReport:
        """Point every reference to *old_path* at *new_path*.

        Paths may be absolute or project-relative.  Paths outside the
        project are not rewritten.

        Returns
        -------
        RewriteReport
            Updated files, failed files (``{"path", "error"}``) and the
            number of files scanned.
        """
        report = RewriteReport()
        old = self._project_path(old_path)
        new = self._project_path(new_path)
        if not old or not new:
            logger.warning("Not rewriting %s -> %s: outside project %s",
                           old_path, new_path, self.project.root)
            return report
        if old == new:
            return report

        for file_path in self.project.walk_files(self.project.config.link_scan_extensions):
            report.total_scanned_files += 1
            try:
                if self._rewrite_text_file(file_path, old, new):
                    report.updated_files.append(file_path)
            except (OSError, UnicodeDecodeError) as exc:
                report.failed_files.append({"path": file_path, "error": str(exc)})

        for directory in self.project.walk_directories():
            if not self.store.is_managed(directory):
                continue
            meta_path = self.store.meta_path(directory)
            report.total_scanned_files += 1
            try:
                if self._rewrite_meta(directory, old, new):
                    report.updated_files.append(meta_path)
            except (EngineError, OSError) as exc:
                report.failed_files.append({"path": meta_path, "error": str(exc)})

        if report.failed_files:
            logger.warning(
                "Rewrote %s -> %s in %d files; %d files failed",
                old, new, len(report.updated_files), len(report.failed_files),
            )
        else:
            logger.info("Rewrote %s -> %s in %d of %d files",
                        old, new, len(report.updated_files), report.total_scanned_files)
        return report

    def _previous_location(self, file_path, old: str, new: str) -> str | None:
        """Absolute path *file_path* had before *old* became *new*, if it moved."""
        rel = self.project.relative(file_path)
        before = ProjectPaths.rebase(rel, new, old) if rel else None
        return self.project.paths.absolute(before) if before else None

    def _rewrite_text_file(self, file_path, old: str, new: str) -> bool:
        content = read_text(file_path)
        updated, changed = rewrite_links(
            content, file_path, self.project.paths, old, new,
            previous_path=self._previous_location(file_path, old, new),
        )
        if not changed:
            return False
        safe_write_text(file_path, updated)
        return True

    def _rewrite_meta(self, directory, old: str, new: str) -> bool:
        paths = self.project.paths
        with self.store.locks.hold(directory):
            meta = self.store.load(directory)
            if meta is None:
                return False

            changed = False
            for entry in meta.files:
                if entry.is_directory or not entry.references:
                    continue
                rewritten: list[str] = []
                base = self._previous_location(entry.path, old, new) or entry.path
                for ref in entry.references:
                    written_for = paths.normalize(ref, base)
                    if written_for:
                        rebased = ProjectPaths.rebase(written_for, old, new)
                        target = written_for if rebased is None else rebased
                        if paths.normalize(ref, entry.path) != target:
                            changed = True
                            ref = target
                    if ref not in rewritten:
                        rewritten.append(ref)
                entry.references = rewritten

            if changed:
                self.store.save(directory, meta)
            return changed
