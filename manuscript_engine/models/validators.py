"""
manuscript_engine/models/validators.py -- Sidecar validation.

Validation runs in three layers, and a sidecar is accepted only if every
layer is clean:

    1. JSON Schema (``jsonschema``) checks the raw structure: ``files`` is
       an array, ``type`` is one of the three kinds, ``tags`` and
       ``references`` are arrays of strings, sub-records are well typed.
    2. Pydantic builds the typed entry models (catches anything the schema
       cannot express, such as path separators inside names).
    3. Semantic checks that span entries: names unique within the list.

Every layer returns plain-English messages rather than raising, so the
store can report all problems at once.

Usage::

    from manuscript_engine.models.validators import validate_meta_dict

    errors = validate_meta_dict(raw)
    if errors:
        ...
"""

from __future__ import annotations

import logging
from typing import Any

import jsonschema
import pydantic

from manuscript_engine.models.entries import ENTRY_KINDS, DirectoryMeta

logger = logging.getLogger(__name__)


_POINT_SCHEMA = {
    "type": "object",
    "properties": {
        "location": {"type": "string"},
        "comment": {"type": "string"},
    },
}

_STRING_ARRAY = {"type": "array", "items": {"type": "string"}}

META_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["files"],
    "properties": {
        "readme": {"type": ["string", "null"]},
        "files": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["name", "type"],
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "type": {"enum": list(ENTRY_KINDS)},
                    "path": {"type": "string"},
                    "hash": {"type": "string"},
                    "tags": _STRING_ARRAY,
                    "references": _STRING_ARRAY,
                    "comments": {"type": "string"},
                    "glossary": {"type": "boolean"},
                    "review_count": {
                        "type": "object",
                        "properties": {
                            key: {"type": "integer", "minimum": 0}
                            for key in ("open", "in_progress", "resolved", "dismissed")
                        },
                    },
                    "character": {
                        "type": "object",
                        "properties": {
                            "importance": {"enum": ["main", "sub", "background"]},
                            "multiple_characters": {"type": "boolean"},
                            "display_name": {"type": "string"},
                        },
                    },
                    "foreshadowing": {
                        "type": "object",
                        "properties": {
                            "plants": {"type": "array", "items": _POINT_SCHEMA},
                            "payoff": _POINT_SCHEMA,
                        },
                    },
                },
            },
        },
    },
}

_VALIDATOR = jsonschema.Draft202012Validator(META_SCHEMA)


# ------------------------------------------------------------------
# Error humanization
# ------------------------------------------------------------------

def humanize_schema_error(error: jsonschema.ValidationError) -> str:
    """Convert a ``jsonschema.ValidationError`` into plain English."""
    path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "(root)"
    msg = error.message
    if error.validator == "required":
        return f"Missing required field at {path}: {msg}"
    if error.validator == "type":
        return f"Wrong data type at '{path}': {msg}"
    if error.validator == "enum":
        return f"Invalid value at '{path}': {msg}"
    if error.validator == "minLength":
        return f"Empty value at '{path}': {msg}"
    return f"Issue at '{path}': {msg}"


def humanize_pydantic_error(err: dict) -> str:
    """Convert a single Pydantic error dict to a human-friendly message."""
    # Discriminated-union locations carry the tag ("content") as a step.
    loc = [str(part) for part in err.get("loc", ()) if part not in ENTRY_KINDS]
    field_path = " -> ".join(loc) or "(root)"
    msg = err.get("msg", "Validation error")
    err_type = err.get("type", "")

    if err_type == "missing":
        return f"The field '{field_path}' is required but was not provided."
    if err_type == "extra_forbidden":
        return f"The field '{field_path}' is not allowed here."
    if err_type == "literal_error":
        return f"The field '{field_path}' has an invalid value. {msg}."
    if "type" in err_type:
        return f"The field '{field_path}' has the wrong type. {msg}."
    return f"Field '{field_path}': {msg}."


# ------------------------------------------------------------------
# Validation entry points
# ------------------------------------------------------------------

def validate_schema(data: Any) -> list[str]:
    """Layer 1: structural JSON Schema validation of a raw sidecar dict."""
    errors = sorted(_VALIDATOR.iter_errors(data), key=lambda e: list(e.absolute_path))
    return [humanize_schema_error(e) for e in errors]


def validate_name_uniqueness(names: list[str]) -> list[str]:
    """Layer 3: every entry name appears once in its directory list."""
    issues: list[str] = []
    seen: set[str] = set()
    for i, name in enumerate(names):
        if name in seen:
            issues.append(f"files -> {i}: the name '{name}' is already used in this directory.")
        seen.add(name)
    return issues


def build_meta(data: Any) -> tuple[DirectoryMeta | None, list[str]]:
    """Run all three layers over a raw sidecar dict.

    Returns
    -------
    tuple[DirectoryMeta | None, list[str]]
        The parsed model (``None`` when invalid) and the list of problems.
    """
    errors = validate_schema(data)
    if errors:
        return None, errors

    try:
        meta = DirectoryMeta.model_validate(data)
    except pydantic.ValidationError as exc:
        return None, [humanize_pydantic_error(err) for err in exc.errors()]

    errors = validate_name_uniqueness(meta.names())
    if errors:
        return None, errors
    return meta, []


def validate_meta_dict(data: Any) -> list[str]:
    """Return every problem with *data* as a sidecar (empty when valid)."""
    return build_meta(data)[1]
