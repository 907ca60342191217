"""
manuscript_engine/models/ -- Pydantic v2 models for the manuscript engine.

Submodules:
    entries     Entry variants, sub-records and DirectoryMeta.
    project     The project descriptor.
    validators  JSON Schema + Pydantic validation of sidecar data.
"""

from manuscript_engine.models.entries import (
    CharacterInfo,
    ContentEntry,
    DirectoryMeta,
    ForeshadowingInfo,
    ForeshadowingPoint,
    ReviewSummary,
    SettingEntry,
    SubdirectoryEntry,
)
from manuscript_engine.models.project import ProjectDescriptor

__all__ = [
    "CharacterInfo",
    "ContentEntry",
    "DirectoryMeta",
    "ForeshadowingInfo",
    "ForeshadowingPoint",
    "ProjectDescriptor",
    "ReviewSummary",
    "SettingEntry",
    "SubdirectoryEntry",
]
