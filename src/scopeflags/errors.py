"""
Structured error types for scopeflags.

Flag resolution must always produce *some* coherent value, so most failures
are recovered inside the service and only logged. The errors below exist for
the two places where a failure does cross the API boundary (writes) and for
the gateway/codec layers to signal what went wrong in a way the service can
classify.

Manifesto:
    - **Typed hierarchy:** Read, write and decode failures are distinct types
    - **Explicit retry semantics:** Reads are transient, decodes never retry
    - **Rich context:** Errors carry the scope and settings key they touched
    - **Error chaining:** Driver exceptions are kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                        FlagError                             │
        │  (category, retryable, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  PersistenceError (DATABASE)       FlagDecodeError (PARSE)   │
        │       │                                                      │
        │  FlagReadError (retryable)                                   │
        │  FlagWriteError                                              │
        │                                                              │
        │  UnknownFlagError (VALIDATION)                               │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> try:
    ...     raise sqlite3.OperationalError("database is locked")
    ... except sqlite3.OperationalError as e:
    ...     raise FlagWriteError("Failed to save feature flags", cause=e)
    Traceback (most recent call last):
    ...
    FlagWriteError: Failed to save feature flags

Guardrails:
    ❌ DON'T: Raise FlagReadError out of the service (reads degrade to defaults)
    ✅ DO: Raise FlagWriteError from gateways and let the service propagate it

Tags:
    error-handling, exception-hierarchy, feature-flags, persistence
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for classification and routing."""

    DATABASE = "DATABASE"
    PARSE = "PARSE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to a :class:`FlagError`.

    Attributes:
        scope_id: User or company id the operation targeted
        scope_type: ``"user"`` or ``"company"``
        settings_key: Global settings key (e.g. ``"feature_flags"``)
        flag_key: Single flag key, when the failure is about one flag
        metadata: Anything else worth logging
    """

    scope_id: str | None = None
    scope_type: str | None = None
    settings_key: str | None = None
    flag_key: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize non-empty fields for logging."""
        result: dict[str, Any] = {}
        for name in ("scope_id", "scope_type", "settings_key", "flag_key"):
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FlagError(Exception):
    """
    Base exception for all scopeflags errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass a message and, when wrapping, the original exception.

    Examples:
        >>> error = FlagError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(flag_key="beta_search").context.flag_key
        'beta_search'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FlagError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================


class PersistenceError(FlagError):
    """Error talking to the backing store."""

    default_category = ErrorCategory.DATABASE


class FlagReadError(PersistenceError):
    """Reading the global snapshot or a scope record failed.

    Recovered by the service: it logs a warning and keeps the last known
    in-memory state.
    """

    default_retryable = True


class FlagWriteError(PersistenceError):
    """Persisting a snapshot or scope record failed.

    Surfaced to the caller. The in-memory store is left untouched.
    """


# =============================================================================
# DATA ERRORS
# =============================================================================


class FlagDecodeError(FlagError):
    """A stored value is not a valid encoded flag mapping."""

    default_category = ErrorCategory.PARSE


class UnknownFlagError(FlagError):
    """A flag key has no definition in the catalog."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, key: str):
        super().__init__(f"Feature flag not defined: {key}", context=ErrorContext(flag_key=key))
        self.key = key


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FlagError",
    "PersistenceError",
    "FlagReadError",
    "FlagWriteError",
    "FlagDecodeError",
    "UnknownFlagError",
]
