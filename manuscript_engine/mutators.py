"""
manuscript_engine/mutators.py -- Narrow read-modify-write setters for entry attributes.

Every mutator locates one named entry in a directory's sidecar, applies a
single change and saves it through the metadata store while holding the
directory lock, so the change is validated before it reaches disk.
Missing entries fail with ``NotFound``; removing something that is
already absent (a tag, a reference, the review summary) succeeds
without writing anything.

Subdirectory entries carry no attributes; every mutator rejects them with
``ValidationError``.
"""

import logging
import os

from manuscript_engine.errors import (
    InvalidIndex,
    NotFound,
    OperationResult,
    ValidationError,
    returns_result,
)
from manuscript_engine.meta_store import MetadataStore
from manuscript_engine.models.entries import (
    CharacterInfo,
    ForeshadowingInfo,
    ForeshadowingPoint,
    ReviewSummary,
)
from manuscript_engine.project import Project
from manuscript_engine.utils import extract_display_name, file_hash

logger = logging.getLogger(__name__)


class _NoChange(Exception):
    """Raised inside a mutation to skip the save."""


class AttributeMutators:
    """Tag, reference, character, foreshadowing and review setters.

    Parameters
    ----------
    project : Project
        Used to normalize references to project-relative paths.
    store : MetadataStore
        Sidecar access.
    graph : ReferenceGraph, optional
        Marked dirty when references change.
    """

    def __init__(self, project: Project, store: MetadataStore, graph=None):
        self.project = project
        self.store = store
        self.graph = graph

    # ------------------------------------------------------------------
    # Core read-modify-write
    # ------------------------------------------------------------------

    def _apply(self, directory, name: str, change, message: str) -> OperationResult:
        """Run *change(entry)* on the file entry *name* and save.

        *change* may raise :class:`_NoChange` to report success without a
        write.
        """
        directory = os.path.abspath(str(directory))

        with self.store.locks.hold(directory):
            meta = self.store.load(directory)
            if meta is None:
                raise NotFound(f"{directory} is not a managed directory.")
            entry = meta.get(name)
            if entry is None:
                raise NotFound(f"{name} not found in {directory}.")
            if entry.is_directory:
                raise ValidationError(f"{name} is a subdirectory and has no attributes.")
            try:
                change(entry)
            except _NoChange:
                return OperationResult.ok(f"{name}: nothing to change.", meta.files)
            saved = self.store.save(directory, meta)

        logger.debug("%s: %s", os.path.join(directory, name), message)
        return OperationResult.ok(f"{name}: {message}", saved.files)

    def _references_changed(self) -> None:
        if self.graph is not None:
            self.graph.mark_dirty()

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @returns_result
    def add_tag(self, directory, name: str, tag: str) -> OperationResult:
        tag = (tag or "").strip()
        if not tag:
            raise ValidationError("Tag must not be empty.")

        def change(entry):
            if tag in entry.tags:
                raise _NoChange
            entry.tags = entry.tags + [tag]

        return self._apply(directory, name, change, f"added tag '{tag}'.")

    @returns_result
    def remove_tag(self, directory, name: str, tag: str) -> OperationResult:
        def change(entry):
            if tag not in entry.tags:
                raise _NoChange
            entry.tags = [t for t in entry.tags if t != tag]

        return self._apply(directory, name, change, f"removed tag '{tag}'.")

    @returns_result
    def set_tags(self, directory, name: str, tags) -> OperationResult:
        tags = list(tags)
        cleaned = [t.strip() for t in tags if isinstance(t, str)]
        if len(cleaned) != len(tags) or not all(cleaned):
            raise ValidationError("Tags must be non-empty strings.")
        cleaned = list(dict.fromkeys(cleaned))

        def change(entry):
            entry.tags = cleaned

        return self._apply(directory, name, change, f"tags set to {cleaned}.")

    # ------------------------------------------------------------------
    # References
    # ------------------------------------------------------------------

    def _normalize_reference(self, directory, name: str, reference: str) -> str:
        target = self.project.paths.normalize(reference, os.path.join(str(directory), name))
        if not target:
            raise ValidationError(f"'{reference}' is not a path inside the project.")
        return target

    @returns_result
    def add_reference(self, directory, name: str, reference: str) -> OperationResult:
        """Record a manual reference, stored project-root relative."""
        target = self._normalize_reference(directory, name, reference)

        def change(entry):
            if target in entry.references:
                raise _NoChange
            entry.references = entry.references + [target]

        result = self._apply(directory, name, change, f"added reference {target}.")
        self._references_changed()
        return result

    @returns_result
    def remove_reference(self, directory, name: str, reference: str) -> OperationResult:
        target = self.project.paths.normalize(reference, os.path.join(str(directory), name))

        def change(entry):
            kept = [r for r in entry.references if r != reference and r != target]
            if len(kept) == len(entry.references):
                raise _NoChange
            entry.references = kept

        result = self._apply(directory, name, change, f"removed reference {reference}.")
        self._references_changed()
        return result

    @returns_result
    def set_references(self, directory, name: str, references) -> OperationResult:
        targets = list(dict.fromkeys(
            self._normalize_reference(directory, name, ref) for ref in references
        ))

        def change(entry):
            entry.references = targets

        result = self._apply(directory, name, change, f"references set to {targets}.")
        self._references_changed()
        return result

    # ------------------------------------------------------------------
    # Character
    # ------------------------------------------------------------------

    def _character(self, directory, name: str, entry, importance: str) -> CharacterInfo:
        if entry.character is None:
            entry.character = CharacterInfo(
                importance=importance,
                multiple_characters=False,
                display_name=extract_display_name(os.path.join(str(directory), name)),
            )
        return entry.character

    @returns_result
    def set_character_importance(self, directory, name: str, importance: str) -> OperationResult:
        if importance not in ("main", "sub", "background"):
            raise ValidationError(f"Unknown importance '{importance}'; use main, sub or background.")

        def change(entry):
            character = self._character(directory, name, entry, importance)
            entry.character = character.model_copy(update={"importance": importance})

        return self._apply(directory, name, change, f"character importance set to {importance}.")

    @returns_result
    def set_multiple_characters(self, directory, name: str, multiple: bool) -> OperationResult:
        if not isinstance(multiple, bool):
            raise ValidationError("The multiple-characters flag must be true or false.")

        def change(entry):
            character = self._character(directory, name, entry, "sub")
            entry.character = character.model_copy(update={"multiple_characters": multiple})

        return self._apply(directory, name, change, f"multiple characters set to {multiple}.")

    @returns_result
    def remove_character(self, directory, name: str) -> OperationResult:
        def change(entry):
            if entry.character is None:
                raise _NoChange
            entry.character = None

        return self._apply(directory, name, change, "character record removed.")

    # ------------------------------------------------------------------
    # Foreshadowing
    # ------------------------------------------------------------------

    @staticmethod
    def _foreshadowing(entry) -> ForeshadowingInfo:
        return entry.foreshadowing.model_copy(deep=True) if entry.foreshadowing else ForeshadowingInfo()

    @returns_result
    def add_plant(self, directory, name: str, location: str, comment: str = "") -> OperationResult:
        point = ForeshadowingPoint(location=location, comment=comment)

        def change(entry):
            info = self._foreshadowing(entry)
            info.plants.append(point)
            entry.foreshadowing = info

        return self._apply(directory, name, change, f"plant added at {location}.")

    @returns_result
    def update_plant(self, directory, name: str, index: int,
                     location: str, comment: str = "") -> OperationResult:
        point = ForeshadowingPoint(location=location, comment=comment)

        def change(entry):
            info = self._foreshadowing(entry)
            if not 0 <= index < len(info.plants):
                raise InvalidIndex(f"No plant at index {index} ({len(info.plants)} plants).")
            info.plants[index] = point
            entry.foreshadowing = info

        return self._apply(directory, name, change, f"plant {index} updated.")

    @returns_result
    def remove_plant(self, directory, name: str, index: int) -> OperationResult:
        def change(entry):
            info = self._foreshadowing(entry)
            if not 0 <= index < len(info.plants):
                raise InvalidIndex(f"No plant at index {index} ({len(info.plants)} plants).")
            del info.plants[index]
            entry.foreshadowing = info

        return self._apply(directory, name, change, f"plant {index} removed.")

    @returns_result
    def set_payoff(self, directory, name: str, location: str, comment: str = "") -> OperationResult:
        point = ForeshadowingPoint(location=location, comment=comment)

        def change(entry):
            info = self._foreshadowing(entry)
            info.payoff = point
            entry.foreshadowing = info

        return self._apply(directory, name, change, f"payoff set to {location}.")

    @returns_result
    def remove_payoff(self, directory, name: str) -> OperationResult:
        def change(entry):
            if entry.foreshadowing is None or entry.foreshadowing.payoff == ForeshadowingPoint():
                raise _NoChange
            info = self._foreshadowing(entry)
            info.payoff = ForeshadowingPoint()
            entry.foreshadowing = info

        return self._apply(directory, name, change, "payoff cleared.")

    @returns_result
    def remove_foreshadowing(self, directory, name: str) -> OperationResult:
        def change(entry):
            if entry.foreshadowing is None:
                raise _NoChange
            entry.foreshadowing = None

        return self._apply(directory, name, change, "foreshadowing removed.")

    # ------------------------------------------------------------------
    # Review summary, glossary, hash
    # ------------------------------------------------------------------

    @returns_result
    def update_review_summary(self, directory, name: str, counts=None) -> OperationResult:
        """Store the four review counts; ``None`` or all zeros removes them."""
        summary = None
        if counts is not None:
            summary = counts if isinstance(counts, ReviewSummary) else ReviewSummary(**counts)
            if summary.is_empty():
                summary = None

        def change(entry):
            if summary is None and entry.review_count is None:
                raise _NoChange
            entry.review_count = summary

        message = "review summary removed." if summary is None else "review summary updated."
        return self._apply(directory, name, change, message)

    @returns_result
    def set_glossary(self, directory, name: str, enabled: bool = True) -> OperationResult:
        def change(entry):
            if entry.type != "setting":
                raise ValidationError("Only setting entries can be glossaries.")
            value = True if enabled else None
            if entry.glossary == value:
                raise _NoChange
            entry.glossary = value

        return self._apply(directory, name, change, f"glossary set to {bool(enabled)}.")

    @returns_result
    def refresh_hash(self, directory, name: str) -> OperationResult:
        """Recompute the stored content hash after the file was edited."""
        path = os.path.join(str(directory), name)

        def change(entry):
            digest = file_hash(path)
            if entry.hash == digest:
                raise _NoChange
            entry.hash = digest

        return self._apply(directory, name, change, "hash refreshed.")
