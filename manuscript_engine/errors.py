"""
manuscript_engine/errors.py -- Error taxonomy and structured operation results.

Lower layers (store, paths, rewriter) raise the exceptions below.  The
orchestrator and attribute mutators catch them at their public boundary
and hand an :class:`OperationResult` back to the caller instead, so a UI
layer can render failures without unwinding.
"""

from __future__ import annotations

import functools
import logging
from typing import Any

import pydantic

from manuscript_engine.models.validators import humanize_pydantic_error

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for every failure the engine reports as a result."""

    code = "EngineError"


class NotFound(EngineError):
    code = "NotFound"


class AlreadyExists(EngineError):
    code = "AlreadyExists"


class ValidationError(EngineError):
    """Schema violation.  Nothing was persisted.

    Parameters
    ----------
    message : str
        Summary line.
    errors : list[str], optional
        Individual human-readable problems.
    """

    code = "ValidationError"

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = list(errors or [])
        if self.errors:
            message = message + "\n" + "\n".join(
                f"  {i}. {err}" for i, err in enumerate(self.errors, 1)
            )
        super().__init__(message)


class InvalidIndex(EngineError):
    code = "InvalidIndex"


class IOFailure(EngineError):
    """An underlying read, write, rename or delete failed."""

    code = "IOFailure"


class PartialRewriteFailure(EngineError):
    """Reference propagation after a committed rename/move was incomplete."""

    code = "PartialRewriteFailure"

    def __init__(self, message: str, failed_files: list[dict[str, str]]):
        self.failed_files = failed_files
        super().__init__(message)


# ---------------------------------------------------------------------------
# Structured results
# ---------------------------------------------------------------------------

class OperationResult:
    """Outcome of one orchestrator or mutator call.

    Attributes
    ----------
    success : bool
        Whether the operation committed.
    message : str
        Human-readable summary, always present.
    updated_entries : list | None
        The directory's entry list after the change, when it changed.
    error : str | None
        Name of the taxonomy class on failure, or ``"PartialRewriteFailure"``
        on a committed rename/move whose reference rewrite was incomplete.
    failed_files : list[dict]
        Files still needing attention after a partial rewrite.
    """

    __slots__ = ("success", "message", "updated_entries", "error", "failed_files")

    def __init__(
        self,
        success: bool,
        message: str,
        updated_entries: list | None = None,
        error: str | None = None,
        failed_files: list[dict[str, str]] | None = None,
    ):
        self.success = success
        self.message = message
        self.updated_entries = updated_entries
        self.error = error
        self.failed_files = failed_files or []

    @classmethod
    def ok(cls, message: str, updated_entries: list | None = None) -> "OperationResult":
        return cls(True, message, updated_entries)

    @classmethod
    def fail(cls, exc: EngineError) -> "OperationResult":
        """Build a failed result from a taxonomy exception."""
        return cls(False, str(exc), error=exc.code)

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        return f"OperationResult(success={self.success!r}, message={self.message!r}, error={self.error!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the plain dict shape consumed by a UI layer."""
        data: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.updated_entries is not None:
            data["updatedEntries"] = [
                entry.to_storage() for entry in self.updated_entries
            ]
        if self.error:
            data["error"] = self.error
        if self.failed_files:
            data["failedFiles"] = list(self.failed_files)
        return data


def returns_result(method):
    """Convert taxonomy exceptions raised by *method* into a failed result.

    ``OSError`` becomes ``IOFailure`` and a Pydantic validation error
    becomes ``ValidationError``.  Anything else propagates.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except EngineError as exc:
            failure = exc
        except pydantic.ValidationError as exc:
            failure = ValidationError(
                "Invalid entry data:",
                [humanize_pydantic_error(err) for err in exc.errors()],
            )
        except OSError as exc:
            failure = IOFailure(str(exc))
        logger.info("%s failed (%s): %s", method.__name__, failure.code, failure)
        return OperationResult.fail(failure)

    return wrapper


class RewriteReport:
    """Result of propagating one path change across the project."""

    __slots__ = ("updated_files", "failed_files", "total_scanned_files")

    def __init__(self):
        self.updated_files: list[str] = []
        self.failed_files: list[dict[str, str]] = []
        self.total_scanned_files = 0

    @property
    def success(self) -> bool:
        return not self.failed_files

    def to_dict(self) -> dict[str, Any]:
        return {
            "updatedFiles": list(self.updated_files),
            "failedFiles": list(self.failed_files),
            "totalScannedFiles": self.total_scanned_files,
        }
