"""
manuscript_engine/project.py -- The project root and its descriptor.

A project is the directory holding ``dialogoi.yaml``.  This module loads,
creates and updates that descriptor, answers which names are excluded from
tracking, and walks the project's directory tree for the components that
scan the whole project (reference graph, link rewriter).

Usage:
    from manuscript_engine.project import Project

    project = Project.create("/novels/harbor", "Harbor Lights", "A. Writer")
    project = Project.open("/novels/harbor/contents/chapter1.txt")
    for directory in project.walk_directories():
        ...
"""

import fnmatch
import logging
import os
from pathlib import Path

import pydantic
import yaml

from manuscript_engine.config import EngineConfig
from manuscript_engine.errors import AlreadyExists, IOFailure, NotFound, ValidationError
from manuscript_engine.models.project import ProjectDescriptor, now_iso
from manuscript_engine.models.validators import humanize_pydantic_error
from manuscript_engine.paths import ProjectPaths, find_project_root
from manuscript_engine.utils import read_yaml, safe_write_yaml

logger = logging.getLogger(__name__)


def matches_pattern(name: str, pattern: str) -> bool:
    """Match a single file name against one exclude pattern.

    ``.*`` means "any dotfile"; other patterns are exact names or
    shell-style wildcards.
    """
    if pattern == ".*":
        return name.startswith(".")
    if name == pattern:
        return True
    return "*" in pattern and fnmatch.fnmatchcase(name, pattern)


class Project:
    """A project root plus its parsed descriptor.

    Parameters
    ----------
    root : str or pathlib.Path
        Directory holding the project descriptor.
    config : EngineConfig, optional
        File naming options (defaults are used when omitted).
    """

    def __init__(self, root, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.root = Path(root).resolve()
        self.paths = ProjectPaths(self.root)
        self.descriptor_path = self.root / self.config.descriptor_filename
        self._descriptor: ProjectDescriptor | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def open(cls, start, config: EngineConfig | None = None) -> "Project":
        """Open the project enclosing *start* (a file or directory).

        Raises
        ------
        NotFound
            If no ancestor of *start* holds a project descriptor.
        """
        config = config or EngineConfig()
        root = find_project_root(start, config.descriptor_filename)
        if root is None:
            raise NotFound(f"No {config.descriptor_filename} found above {start}.")
        project = cls(root, config)
        project.load_descriptor()
        return project

    @classmethod
    def create(cls, root, title: str, author: str, tags=None,
               config: EngineConfig | None = None) -> "Project":
        """Write a new descriptor and a root sidecar under *root*.

        Raises
        ------
        AlreadyExists
            If *root* already holds a descriptor.
        ValidationError
            If *title* or *author* is empty.
        """
        project = cls(root, config)
        if project.descriptor_path.exists():
            raise AlreadyExists(f"{project.descriptor_path} already exists.")

        stamp = now_iso()
        descriptor = project._validate({
            "title": title,
            "author": author,
            "created_at": stamp,
            "updated_at": stamp,
            "tags": list(tags or []),
            "project_settings": {
                "readme_filename": project.config.default_readme,
                "exclude_patterns": list(project.config.exclude_patterns),
            },
        })
        project._write(descriptor)

        meta_path = project.root / project.config.meta_filename
        if not meta_path.exists():
            safe_write_yaml(meta_path, {"readme": project.config.default_readme, "files": []})
        logger.info("Created project '%s' at %s", title, project.root)
        return project

    # ------------------------------------------------------------------
    # Descriptor
    # ------------------------------------------------------------------

    @property
    def descriptor(self) -> ProjectDescriptor:
        if self._descriptor is None:
            self.load_descriptor()
        return self._descriptor  # type: ignore[return-value]

    def load_descriptor(self) -> ProjectDescriptor:
        """(Re)read and validate ``dialogoi.yaml``."""
        try:
            raw = read_yaml(self.descriptor_path)
        except FileNotFoundError:
            raise NotFound(f"Project descriptor not found: {self.descriptor_path}") from None
        except yaml.YAMLError as exc:
            raise ValidationError(f"{self.descriptor_path}: invalid YAML ({exc})") from exc
        except OSError as exc:
            raise IOFailure(f"Could not read {self.descriptor_path}: {exc}") from exc

        self._descriptor = self._validate(raw)
        return self._descriptor

    def update_descriptor(self, **changes) -> ProjectDescriptor:
        """Apply *changes* to the descriptor, stamp ``updated_at`` and save."""
        data = self.descriptor.to_storage()
        data.update(changes)
        data["updated_at"] = now_iso()
        descriptor = self._validate(data)
        self._write(descriptor)
        return descriptor

    def _validate(self, raw) -> ProjectDescriptor:
        if not isinstance(raw, dict):
            raise ValidationError(f"{self.descriptor_path}: expected a mapping at the top level.")
        try:
            return ProjectDescriptor.model_validate(raw)
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Project descriptor {self.descriptor_path} is invalid:",
                [humanize_pydantic_error(err) for err in exc.errors()],
            ) from None

    def _write(self, descriptor: ProjectDescriptor) -> None:
        try:
            safe_write_yaml(self.descriptor_path, descriptor.to_storage())
        except OSError as exc:
            raise IOFailure(f"Could not write {self.descriptor_path}: {exc}") from exc
        self._descriptor = descriptor

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def readme_filename(self) -> str:
        return self.descriptor.project_settings.readme_filename or self.config.default_readme

    @property
    def exclude_patterns(self) -> list[str]:
        patterns = self.descriptor.project_settings.exclude_patterns
        if patterns is None:
            return list(self.config.exclude_patterns)
        return list(patterns)

    def is_excluded(self, name: str) -> bool:
        return any(matches_pattern(name, p) for p in self.exclude_patterns)

    # ------------------------------------------------------------------
    # Walking
    # ------------------------------------------------------------------

    def walk_directories(self):
        """Yield every non-excluded directory under the root, root first.

        Subdirectories holding their own project descriptor belong to a
        nested project and are skipped along with everything below them.
        """
        for dirpath, dirnames, _filenames in os.walk(self.root):
            dirnames[:] = sorted(
                d for d in dirnames
                if not self.is_excluded(d) and not self._is_nested_project(os.path.join(dirpath, d))
            )
            yield dirpath

    def _is_nested_project(self, directory: str) -> bool:
        return os.path.isfile(os.path.join(directory, self.config.descriptor_filename))

    def walk_files(self, extensions=None):
        """Yield absolute paths of non-excluded files, optionally by suffix."""
        for directory in self.walk_directories():
            try:
                names = sorted(os.listdir(directory))
            except OSError:
                logger.debug("Skipping unreadable directory %s", directory, exc_info=True)
                continue
            for name in names:
                if self.is_excluded(name) or self.config.is_control_file(name):
                    continue
                path = os.path.join(directory, name)
                if not os.path.isfile(path):
                    continue
                if extensions and not name.endswith(tuple(extensions)):
                    continue
                yield path

    def relative(self, absolute_path) -> str | None:
        return self.paths.relative(absolute_path)
