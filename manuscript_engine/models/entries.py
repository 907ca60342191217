"""
manuscript_engine/models/entries.py -- Pydantic v2 models for sidecar entries.

An entry is one tracked file or subdirectory.  The three variants form a
discriminated union on ``type`` so that callers branch on the class rather
than checking for optional attributes:

    ContentEntry        manuscript text; tags, references, sub-records
    SettingEntry        world/setting notes; same fields plus ``glossary``
    SubdirectoryEntry   a nested directory; name and path only

``path`` is runtime-only.  It is recomputed from the owning directory every
time a sidecar is loaded and is never written back, so a stale stored
value cannot survive a rename of any ancestor directory.
"""

from __future__ import annotations

import os
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

ENTRY_KINDS: tuple[str, ...] = ("content", "setting", "subdirectory")

# Serialized key order.
_KEY_ORDER = (
    "name", "type", "hash", "tags", "references", "comments",
    "review_count", "glossary", "character", "foreshadowing",
)


# ------------------------------------------------------------------
# Sub-records
# ------------------------------------------------------------------

class ForeshadowingPoint(BaseModel):
    """A location in the manuscript plus a free-text note."""

    model_config = ConfigDict(extra="forbid")

    location: str = ""
    comment: str = ""


class ForeshadowingInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plants: list[ForeshadowingPoint] = Field(default_factory=list)
    payoff: ForeshadowingPoint = Field(default_factory=ForeshadowingPoint)


class CharacterInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    importance: Literal["main", "sub", "background"] = "main"
    multiple_characters: bool = False
    display_name: str = ""


class ReviewSummary(BaseModel):
    """The four review counts kept in the sidecar.

    The detailed review records live elsewhere; the engine only stores
    these totals.
    """

    model_config = ConfigDict(extra="forbid")

    open: int = Field(default=0, ge=0)
    in_progress: int = Field(default=0, ge=0)
    resolved: int = Field(default=0, ge=0)
    dismissed: int = Field(default=0, ge=0)

    def is_empty(self) -> bool:
        return not (self.open or self.in_progress or self.resolved or self.dismissed)

    def to_storage(self) -> dict[str, int]:
        # ``open`` is always written; the other counts only when non-zero.
        data = {"open": self.open}
        for key in ("in_progress", "resolved", "dismissed"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


# ------------------------------------------------------------------
# Entries
# ------------------------------------------------------------------

def check_entry_name(value: str) -> str:
    """Return *value* if it is a usable entry name, else raise ``ValueError``."""
    if not value or not value.strip():
        raise ValueError("name must not be blank")
    if "/" in value or "\\" in value or value in (".", ".."):
        raise ValueError(f"'{value}' is not a plain file name")
    return value


class EntryBase(BaseModel):
    """Fields shared by every entry variant."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    name: str = Field(min_length=1)
    path: str = Field(default="", exclude=True)
    is_untracked: bool = Field(default=False, exclude=True)
    is_missing: bool = Field(default=False, exclude=True)

    @field_validator("name")
    @classmethod
    def _plain_name(cls, value: str) -> str:
        return check_entry_name(value)

    @property
    def is_directory(self) -> bool:
        return self.type == "subdirectory"  # type: ignore[attr-defined]

    def bind(self, directory: str) -> None:
        """Recompute ``path`` from the owning *directory*."""
        self.path = os.path.join(directory, self.name)

    def to_storage(self) -> dict[str, Any]:
        """Plain dict in sidecar key order, runtime-only fields dropped."""
        raw = self.model_dump(exclude_none=True)
        review = getattr(self, "review_count", None)
        if review is not None:
            raw["review_count"] = review.to_storage()
        return {key: raw[key] for key in _KEY_ORDER if key in raw}


class _FileEntry(EntryBase):
    hash: str = ""
    tags: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)
    comments: Optional[str] = None
    review_count: Optional[ReviewSummary] = None
    character: Optional[CharacterInfo] = None
    foreshadowing: Optional[ForeshadowingInfo] = None


class ContentEntry(_FileEntry):
    type: Literal["content"] = "content"


class SettingEntry(_FileEntry):
    type: Literal["setting"] = "setting"
    glossary: Optional[bool] = None


class SubdirectoryEntry(EntryBase):
    type: Literal["subdirectory"] = "subdirectory"


Entry = Annotated[
    Union[ContentEntry, SettingEntry, SubdirectoryEntry],
    Field(discriminator="type"),
]
FileEntry = Union[ContentEntry, SettingEntry]

_ENTRY_ADAPTER: TypeAdapter = TypeAdapter(Entry)


def parse_entry(data: dict[str, Any]) -> ContentEntry | SettingEntry | SubdirectoryEntry:
    """Validate one raw entry dict into its concrete variant."""
    return _ENTRY_ADAPTER.validate_python(data)


def new_entry(kind: str, name: str, **fields: Any):
    """Build a fresh entry of *kind* named *name*."""
    return parse_entry({"type": kind, "name": name, **fields})


def convert_entry(entry: FileEntry, new_kind: str) -> FileEntry:
    """Return a copy of a file entry re-typed as *new_kind*.

    Setting-only fields are dropped when converting to ``content``.
    """
    data = entry.model_dump(exclude_none=True)
    data["type"] = new_kind
    if new_kind == "content":
        data.pop("glossary", None)
    converted = parse_entry(data)
    converted.path = entry.path
    return converted


# ------------------------------------------------------------------
# Directory metadata
# ------------------------------------------------------------------

class DirectoryMeta(BaseModel):
    """Contents of one sidecar file: an optional readme and ordered entries."""

    model_config = ConfigDict(extra="forbid")

    readme: Optional[str] = None
    files: list[Entry] = Field(default_factory=list)

    def bind(self, directory: str) -> "DirectoryMeta":
        for entry in self.files:
            entry.bind(directory)
        return self

    def index_of(self, name: str) -> int:
        """Position of the entry called *name*, or ``-1``."""
        for i, entry in enumerate(self.files):
            if entry.name == name:
                return i
        return -1

    def get(self, name: str):
        i = self.index_of(name)
        return self.files[i] if i >= 0 else None

    def names(self) -> list[str]:
        return [entry.name for entry in self.files]

    def to_storage(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.readme is not None:
            data["readme"] = self.readme
        data["files"] = [entry.to_storage() for entry in self.files]
        return data
