"""
manuscript_engine/orchestrator.py -- Create, delete, rename, move and reorder entries.

The orchestrator is the single entry point for operations that change both
the filesystem and sidecar metadata.  Each operation runs under the locks
of the directories it touches and either commits completely or undoes what
it already did:

    create   filesystem object first, then metadata; a failed save deletes
             the new object again
    delete   metadata first, then the filesystem object
    rename   metadata, then filesystem; a failed filesystem rename restores
             the metadata.  References are rewritten afterwards.
    move     both sidecars, then filesystem; a failed filesystem move
             restores both sidecars.  References are rewritten afterwards.
    reorder  metadata only

Reference rewriting happens after the locks are released.  A rewrite that
leaves some files unchanged does not undo the rename or move; the result
reports ``PartialRewriteFailure`` with the files needing attention.

Every public method returns an :class:`OperationResult` instead of raising.

Usage:
    from manuscript_engine.context import ProjectContext

    ctx = ProjectContext.open("/novels/harbor")
    result = ctx.orchestrator.rename_entry(contents_dir, "chapter1.txt", "chapter1_draft.txt")
    if not result:
        print(result.message)
"""

import logging
import os
import shutil

from manuscript_engine.errors import (
    AlreadyExists,
    InvalidIndex,
    IOFailure,
    NotFound,
    OperationResult,
    PartialRewriteFailure,
    ValidationError,
    returns_result,
)
from manuscript_engine.link_rewriter import LinkRewriter
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.models.entries import (
    ENTRY_KINDS,
    CharacterInfo,
    DirectoryMeta,
    ForeshadowingInfo,
    check_entry_name,
    convert_entry,
    new_entry,
)
from manuscript_engine.project import Project
from manuscript_engine.utils import extract_display_name, file_hash, safe_write_text, stem

logger = logging.getLogger(__name__)

SUBTYPES = ("character", "foreshadowing", "glossary")


def default_content(name: str, kind: str) -> str:
    """Starting text for a newly created file."""
    if kind == "content" and name.endswith(".txt"):
        return f"{stem(name)}\n\n"
    if kind == "setting" and name.endswith(".md"):
        return f"# {stem(name)}\n\n"
    return ""


def _remove_path(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.unlink(path)


class FileMutationOrchestrator:
    """Coordinates filesystem changes with sidecar metadata.

    Parameters
    ----------
    project : Project
        The project being edited.
    store : MetadataStore
        Sidecar access; its lock registry guards every operation.
    rewriter : LinkRewriter
        Propagates path changes after rename and move.
    graph : ReferenceGraph, optional
        Marked dirty after every committed change.
    """

    def __init__(self, project: Project, store: MetadataStore,
                 rewriter: LinkRewriter, graph=None):
        self.project = project
        self.store = store
        self.rewriter = rewriter
        self.graph = graph
        self.config = project.config

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _touched(self) -> None:
        if self.graph is not None:
            self.graph.mark_dirty()

    def _load_or_empty(self, directory) -> DirectoryMeta:
        meta = self.store.load(directory)
        return meta if meta is not None else DirectoryMeta(files=[]).bind(str(directory))

    def _require_directory(self, directory) -> str:
        directory = os.path.abspath(str(directory))
        if not os.path.isdir(directory):
            raise NotFound(f"Directory {directory} does not exist.")
        return directory

    def _comments_path(self, directory: str, name: str) -> str:
        return os.path.join(directory, self.config.comments_filename(name))

    def _relocate_comments(self, old_dir, old_name, new_dir, new_name) -> None:
        source = self._comments_path(old_dir, old_name)
        if not os.path.exists(source):
            return
        target = self._comments_path(new_dir, new_name)
        if os.path.exists(target):
            logger.warning("Comments file %s already exists; leaving %s in place", target, source)
            return
        try:
            os.replace(source, target)
        except OSError:
            logger.warning("Could not move comments file %s", source, exc_info=True)

    def _finish_path_change(self, old_path: str, new_path: str,
                            message: str, directory: str) -> OperationResult:
        """Rewrite references after a committed rename/move and build the result."""
        report = self.rewriter.rewrite(old_path, new_path)
        self._touched()
        meta = self.store.load(directory)
        entries = meta.files if meta is not None else []
        if report.success:
            return OperationResult.ok(message, entries)

        partial = PartialRewriteFailure(
            f"{message} References in {len(report.failed_files)} file(s) could not be updated: "
            + ", ".join(f["path"] for f in report.failed_files),
            report.failed_files,
        )
        logger.warning("%s", partial)
        return OperationResult(True, str(partial), entries,
                               error=partial.code, failed_files=partial.failed_files)

    # ------------------------------------------------------------------
    # Create / delete
    # ------------------------------------------------------------------

    @returns_result
    def create_entry(self, directory, name: str, kind: str, content: str = "",
                     tags=None, subtype: str | None = None) -> OperationResult:
        """Create a file or subdirectory and register it in the sidecar.

        Parameters
        ----------
        directory : str
            Parent directory (must exist).
        name : str
            New entry name.
        kind : str
            ``"content"``, ``"setting"`` or ``"subdirectory"``.
        content : str, optional
            Initial file text; a kind-specific default is used when empty.
        tags : list[str], optional
            Initial tags (files only).
        subtype : str, optional
            ``"character"``, ``"foreshadowing"`` or ``"glossary"``.
        """
        directory = self._require_directory(directory)
        if kind not in ENTRY_KINDS:
            raise ValidationError(f"Unknown entry kind '{kind}'.", [f"kind must be one of {', '.join(ENTRY_KINDS)}"])
        if subtype is not None and (subtype not in SUBTYPES or kind == "subdirectory"):
            raise ValidationError(f"Subtype '{subtype}' is not valid for a {kind} entry.")
        if subtype == "glossary" and kind != "setting":
            raise ValidationError("Only setting entries can be glossaries.")
        if tags and kind == "subdirectory":
            raise ValidationError("Subdirectory entries cannot carry tags.")

        fields = {}
        if kind != "subdirectory":
            fields["tags"] = list(dict.fromkeys(tags or []))
        # Validates the name before anything touches the disk.
        entry = new_entry(kind, name, **fields)
        path = os.path.join(directory, name)

        with self.store.locks.hold(directory):
            meta = self._load_or_empty(directory)
            if meta.get(name) is not None or os.path.lexists(path):
                raise AlreadyExists(f"{name} already exists in {directory}.")

            if kind == "subdirectory":
                os.mkdir(path)
                try:
                    readme = self.project.readme_filename
                    self.store.create_default(path, readme=readme)
                    safe_write_text(os.path.join(path, readme), f"# {name}\n\n")
                except BaseException:
                    shutil.rmtree(path, ignore_errors=True)
                    raise
            else:
                safe_write_text(path, content or default_content(name, kind))
                entry.hash = file_hash(path)
                if subtype == "character":
                    entry.character = CharacterInfo(
                        importance="main",
                        multiple_characters=False,
                        display_name=extract_display_name(path),
                    )
                elif subtype == "foreshadowing":
                    entry.foreshadowing = ForeshadowingInfo()
                elif subtype == "glossary":
                    entry.glossary = True

            meta.files.append(entry)
            try:
                saved = self.store.save(directory, meta)
            except BaseException:
                logger.warning("Metadata save failed; removing newly created %s", path)
                _remove_path(path)
                raise

        self._touched()
        logger.info("Created %s %s", kind, path)
        return OperationResult.ok(f"Created {name}.", saved.files)

    @returns_result
    def delete_entry(self, directory, name: str) -> OperationResult:
        """Remove an entry from the sidecar, then delete it from disk.

        Subdirectories are removed recursively together with their own
        sidecar.  The entry's comments file is deleted as well.
        """
        directory = os.path.abspath(str(directory))
        path = os.path.join(directory, name)

        with self.store.locks.hold(directory):
            meta = self.store.load(directory)
            entry = meta.get(name) if meta is not None else None
            on_disk = os.path.lexists(path)
            if entry is None and not on_disk:
                raise NotFound(f"{name} not found in {directory}.")

            entries = meta.files if meta is not None else []
            if entry is not None:
                meta.files.remove(entry)
                entries = self.store.save(directory, meta).files

            if on_disk:
                _remove_path(path)
            comments = self._comments_path(directory, name)
            if os.path.exists(comments):
                os.unlink(comments)

        self._touched()
        logger.info("Deleted %s", path)
        return OperationResult.ok(f"Deleted {name}.", entries)

    # ------------------------------------------------------------------
    # Rename / move / reorder
    # ------------------------------------------------------------------

    @returns_result
    def rename_entry(self, directory, old_name: str, new_name: str) -> OperationResult:
        """Rename an entry in place and propagate the new path project-wide.

        Only ``name`` (and the derived ``path``) change; tags, references,
        character, foreshadowing and review data are carried over.
        """
        directory = os.path.abspath(str(directory))
        try:
            check_entry_name(new_name)
        except ValueError as exc:
            raise ValidationError(f"Invalid name '{new_name}': {exc}") from None
        old_path = os.path.join(directory, old_name)
        new_path = os.path.join(directory, new_name)

        with self.store.locks.hold(directory):
            meta = self.store.load(directory)
            entry = meta.get(old_name) if meta is not None else None
            if entry is None or not os.path.lexists(old_path):
                raise NotFound(f"{old_name} not found in {directory}.")
            if old_name == new_name:
                return OperationResult.ok(f"{old_name} already has that name.", meta.files)
            if meta.get(new_name) is not None or os.path.lexists(new_path):
                raise AlreadyExists(f"{new_name} already exists in {directory}.")

            entry.name = new_name
            original_comments = getattr(entry, "comments", None)
            if (original_comments == self.config.comments_filename(old_name)
                    and not os.path.exists(self._comments_path(directory, new_name))):
                entry.comments = self.config.comments_filename(new_name)
            self.store.save(directory, meta)

            try:
                os.rename(old_path, new_path)
            except OSError as exc:
                entry.name = old_name
                if original_comments is not None:
                    entry.comments = original_comments
                self.store.save(directory, meta)
                logger.warning("Rename of %s failed; metadata restored", old_path)
                raise IOFailure(f"Could not rename {old_name} to {new_name}: {exc}") from exc

            self._relocate_comments(directory, old_name, directory, new_name)

        logger.info("Renamed %s -> %s", old_path, new_path)
        return self._finish_path_change(
            old_path, new_path, f"Renamed {old_name} to {new_name}.", directory,
        )

    @returns_result
    def move_entry(self, source_dir, name: str, target_dir,
                   insert_index: int | None = None) -> OperationResult:
        """Move an entry to another directory, keeping all of its metadata.

        The entry is inserted at *insert_index* in the target list, or
        appended when the index is ``None`` or past the end.  Moving within
        one directory is a reorder.
        """
        source_dir = os.path.abspath(str(source_dir))
        target_dir = self._require_directory(target_dir)
        source_path = os.path.join(source_dir, name)
        target_path = os.path.join(target_dir, name)

        if os.path.realpath(source_dir) == os.path.realpath(target_dir):
            meta = self.store.load(source_dir)
            index = meta.index_of(name) if meta is not None else -1
            if index < 0:
                raise NotFound(f"{name} not found in {source_dir}.")
            to_index = len(meta.files) - 1
            if insert_index is not None:
                to_index = min(insert_index, to_index)
            return self.reorder_entries(source_dir, index, to_index)

        if insert_index is not None and insert_index < 0:
            raise InvalidIndex(f"Insert position {insert_index} is negative.")
        real_source = os.path.realpath(source_path)
        real_target = os.path.realpath(target_dir)
        if real_target == real_source or real_target.startswith(real_source + os.sep):
            raise ValidationError(f"Cannot move {name} into itself.")

        with self.store.locks.hold(source_dir, target_dir):
            source_meta = self.store.load(source_dir)
            entry = source_meta.get(name) if source_meta is not None else None
            if entry is None or not os.path.lexists(source_path):
                raise NotFound(f"{name} not found in {source_dir}.")
            target_managed = self.store.is_managed(target_dir)
            target_meta = self._load_or_empty(target_dir)
            if target_meta.get(name) is not None or os.path.lexists(target_path):
                raise AlreadyExists(f"{name} already exists in {target_dir}.")

            source_before = source_meta.model_copy(deep=True)
            target_before = target_meta.model_copy(deep=True)

            source_meta.files.remove(entry)
            moved = entry.model_copy(deep=True)
            moved.bind(target_dir)
            if insert_index is None or insert_index >= len(target_meta.files):
                target_meta.files.append(moved)
            else:
                target_meta.files.insert(insert_index, moved)

            errors = self.store.validate(source_meta) + self.store.validate(target_meta)
            if errors:
                raise ValidationError(f"Refusing to move {name}:", errors)

            self.store.save(source_dir, source_meta)
            try:
                self.store.save(target_dir, target_meta)
                shutil.move(source_path, target_path)
            except BaseException:
                logger.warning("Move of %s failed; restoring metadata", source_path)
                self.store.save(source_dir, source_before)
                if target_managed:
                    self.store.save(target_dir, target_before)
                elif self.store.is_managed(target_dir):
                    os.unlink(self.store.meta_path(target_dir))
                raise

            self._relocate_comments(source_dir, name, target_dir, name)

        logger.info("Moved %s -> %s", source_path, target_path)
        return self._finish_path_change(
            source_path, target_path, f"Moved {name} to {target_dir}.", target_dir,
        )

    @returns_result
    def reorder_entries(self, directory, from_index: int, to_index: int) -> OperationResult:
        """Move the entry at *from_index* to *to_index* within one sidecar."""
        directory = os.path.abspath(str(directory))

        def _splice(meta: DirectoryMeta) -> None:
            count = len(meta.files)
            for label, index in (("from", from_index), ("to", to_index)):
                if not isinstance(index, int) or not 0 <= index < count:
                    raise InvalidIndex(
                        f"Invalid {label} index {index} for {count} entries in {directory}."
                    )
            meta.files.insert(to_index, meta.files.pop(from_index))

        saved = self.store.update(directory, _splice)
        return OperationResult.ok("Entries reordered.", saved.files)

    # ------------------------------------------------------------------
    # Tracking and kind changes
    # ------------------------------------------------------------------

    @returns_result
    def track_entry(self, directory, name: str, kind: str) -> OperationResult:
        """Add an existing, untracked disk object to the sidecar."""
        directory = self._require_directory(directory)
        path = os.path.join(directory, name)
        if kind not in ENTRY_KINDS:
            raise ValidationError(f"Unknown entry kind '{kind}'.")
        if not os.path.lexists(path):
            raise NotFound(f"{name} does not exist in {directory}.")
        if (kind == "subdirectory") != os.path.isdir(path):
            raise ValidationError(f"{name} cannot be tracked as a {kind} entry.")

        entry = new_entry(kind, name)
        if kind != "subdirectory":
            entry.hash = file_hash(path)

        with self.store.locks.hold(directory):
            meta = self._load_or_empty(directory)
            if meta.get(name) is not None:
                raise AlreadyExists(f"{name} is already tracked in {directory}.")
            meta.files.append(entry)
            saved = self.store.save(directory, meta)

        self._touched()
        return OperationResult.ok(f"Now tracking {name}.", saved.files)

    @returns_result
    def untrack_entry(self, directory, name: str) -> OperationResult:
        """Drop an entry from the sidecar without touching the disk."""

        def _drop(meta: DirectoryMeta) -> None:
            entry = meta.get(name)
            if entry is None:
                raise NotFound(f"{name} is not tracked in {directory}.")
            meta.files.remove(entry)

        saved = self.store.update(os.path.abspath(str(directory)), _drop)
        self._touched()
        return OperationResult.ok(f"Stopped tracking {name}.", saved.files)

    @returns_result
    def convert_kind(self, directory, name: str, new_kind: str) -> OperationResult:
        """Switch a file entry between ``content`` and ``setting``."""
        if new_kind not in ("content", "setting"):
            raise ValidationError(f"Cannot convert to '{new_kind}'; use content or setting.")

        def _convert(meta: DirectoryMeta) -> None:
            index = meta.index_of(name)
            if index < 0:
                raise NotFound(f"{name} not found in {directory}.")
            entry = meta.files[index]
            if entry.is_directory:
                raise ValidationError("Subdirectory entries cannot change kind.")
            if entry.type != new_kind:
                meta.files[index] = convert_entry(entry, new_kind)

        saved = self.store.update(os.path.abspath(str(directory)), _convert)
        return OperationResult.ok(f"{name} is now a {new_kind} entry.", saved.files)
