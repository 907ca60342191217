"""
manuscript_engine/meta_store.py -- Load, validate and persist directory sidecars.

Each managed directory holds exactly one ``.dialogoi-meta.yaml``.  The
store is the only component that reads or writes those files:

    * ``load`` returns ``None`` for an unmanaged directory (no sidecar).
    * ``save`` validates the whole entry list first and replaces the file
      atomically only when validation passes; a rejected save leaves the
      previous file byte-identical.
    * ``update`` wraps load -> mutate -> save in the directory's lock.

Usage:
    from manuscript_engine.meta_store import MetadataStore

    store = MetadataStore(locks=DirectoryLockRegistry())
    meta = store.load("/novel/contents")
    store.update("/novel/contents", lambda meta: meta.files.reverse())
"""

import logging
import os

import yaml

from manuscript_engine.config import EngineConfig
from manuscript_engine.errors import IOFailure, NotFound, ValidationError
from manuscript_engine.locks import DirectoryLockRegistry
from manuscript_engine.models.entries import DirectoryMeta
from manuscript_engine.models.validators import build_meta
from manuscript_engine.utils import dump_yaml, read_yaml, safe_write_text

logger = logging.getLogger(__name__)


class MetadataStore:
    """Reads and writes per-directory sidecar metadata.

    Parameters
    ----------
    locks : DirectoryLockRegistry
        Shared lock registry; the same instance must be handed to every
        component mutating the same project.
    config : EngineConfig, optional
        File naming options.
    """

    def __init__(self, locks: DirectoryLockRegistry, config: EngineConfig | None = None):
        self.locks = locks
        self.config = config or EngineConfig()

    def meta_path(self, directory) -> str:
        return os.path.join(str(directory), self.config.meta_filename)

    def is_managed(self, directory) -> bool:
        return os.path.isfile(self.meta_path(directory))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self, directory) -> DirectoryMeta | None:
        """Return the directory's metadata, or ``None`` when unmanaged.

        Entry paths are recomputed from *directory*; stored ``path`` values
        are ignored.

        Raises
        ------
        ValidationError
            If the sidecar exists but is not valid YAML or fails validation.
        IOFailure
            If the sidecar exists but cannot be read.
        """
        path = self.meta_path(directory)
        try:
            raw = read_yaml(path)
        except FileNotFoundError:
            return None
        except yaml.YAMLError as exc:
            raise ValidationError(f"{path}: invalid YAML ({exc})") from exc
        except OSError as exc:
            raise IOFailure(f"Could not read {path}: {exc}") from exc

        meta, errors = build_meta(raw)
        if errors:
            raise ValidationError(f"Metadata file {path} is invalid:", errors)
        return meta.bind(str(directory))

    def validate(self, meta) -> list[str]:
        """Return every problem with *meta* (a model or raw dict); empty when valid."""
        raw = meta.to_storage() if isinstance(meta, DirectoryMeta) else meta
        return build_meta(raw)[1]

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, directory, meta) -> DirectoryMeta:
        """Validate *meta* and atomically replace the directory's sidecar.

        *meta* may be a :class:`DirectoryMeta` or a raw dict.  Returns the
        validated model with paths bound to *directory*.

        Raises
        ------
        ValidationError
            If any entry violates the schema.  Nothing is written.
        IOFailure
            If the file cannot be written.  The previous file is intact.
        """
        raw = meta.to_storage() if isinstance(meta, DirectoryMeta) else meta
        validated, errors = build_meta(raw)
        if errors:
            logger.warning("Rejected metadata for %s (%d problems)", directory, len(errors))
            raise ValidationError(f"Refusing to save invalid metadata for {directory}:", errors)

        path = self.meta_path(directory)
        with self.locks.hold(directory):
            try:
                safe_write_text(path, dump_yaml(validated.to_storage()))
            except OSError as exc:
                raise IOFailure(f"Could not write {path}: {exc}") from exc
        logger.debug("Saved %d entries to %s", len(validated.files), path)
        return validated.bind(str(directory))

    def create_default(self, directory, readme: str | None = None) -> DirectoryMeta:
        """Write a fresh, empty sidecar for *directory*."""
        return self.save(directory, DirectoryMeta(readme=readme, files=[]))

    def update(self, directory, mutate) -> DirectoryMeta:
        """Load, apply *mutate* and save, all under the directory's lock.

        *mutate* receives the loaded :class:`DirectoryMeta` and may either
        modify it in place (returning ``None``) or return a replacement.

        Raises
        ------
        NotFound
            If the directory has no sidecar.
        """
        with self.locks.hold(directory):
            meta = self.load(directory)
            if meta is None:
                raise NotFound(f"{directory} has no {self.config.meta_filename}.")
            result = mutate(meta)
            return self.save(directory, meta if result is None else result)
