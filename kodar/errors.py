"""Error taxonomy shared by all pipeline stages.

Every stage raises one of these; nothing is caught between stages, so the
first failure aborts the run and reaches the caller unchanged.
"""

from __future__ import annotations

import typing as t


class KodarError(Exception):
    """Base class for pipeline failures."""


class MalformedInputError(KodarError):
    """A dataset row has fewer fields than its header declares."""

    def __init__(self, message: str, *, line: t.Optional[int] = None):
        super().__init__(message)
        self.line = line


class NoFinalPartitionError(KodarError):
    """The clustering engine left no entry named like a final partition."""


class FieldExtractionError(KodarError):
    """A document block is missing one of the fixed field markers."""

    def __init__(self, message: str, *, marker: str):
        super().__init__(message)
        self.marker = marker


class StorageError(KodarError):
    """I/O against the record store failed."""


class ExternalEngineError(KodarError):
    """A vectorize, cluster, evaluate, categorize or label call failed."""

    def __init__(self, message: str, *, operation: str):
        super().__init__(message)
        self.operation = operation


T = t.TypeVar("T")


def call_engine(operation: str, fn: t.Callable[..., T], *args: t.Any, **kwargs: t.Any) -> T:
    """Invoke an external collaborator, normalising its failures.

    Taxonomy errors pass through untouched; anything else becomes an
    ``ExternalEngineError`` chained to the original exception.
    """
    try:
        return fn(*args, **kwargs)
    except KodarError:
        raise
    except Exception as e:
        raise ExternalEngineError(f"{operation} failed: {e}", operation=operation) from e
