"""
Structured error types for dataex.

Only failures that dataex itself detects are modelled here. Connection and
execution failures belong to the database driver: they surface as
``mysql.connector.Error`` subclasses, untouched, so the server diagnostic
(errno, sqlstate, message) reaches the caller intact.

Architecture:
    ::

        ┌───────────────────────────────────────────────────────────┐
        │                      DataExError                           │
        │          (category, context, cause)                        │
        ├───────────────────────────────────────────────────────────┤
        │  ConfigError        CoercionError        MappingError      │
        │  (CONFIG)           (COERCION,           (MAPPING)         │
        │                      also TypeError)                       │
        └───────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Wrap ``mysql.connector.Error`` in a DataExError
    ✅ DO: Let driver errors propagate unchanged

    ❌ DON'T: Put parameter values into error context
    ✅ DO: Name the procedure, parameter, field or column instead

Usage:
    from dataex.errors import MappingError

    try:
        users = source.get_records(User, "sp_list_users")
    except MappingError as e:
        log.error("mapping_failed", **e.to_dict())

Tags:
    error-handling, exception-hierarchy, error-context, dataex
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories raised by dataex itself."""

    CONFIG = "CONFIG"  # Connection string, settings
    COERCION = "COERCION"  # Scalar type mismatch
    MAPPING = "MAPPING"  # Row -> record shape mismatch


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only set what is relevant; ``to_dict()`` skips ``None`` fields.

    Examples:
        >>> ErrorContext(procedure="sp_list_users", field="age").to_dict()
        {'procedure': 'sp_list_users', 'field': 'age'}
    """

    procedure: str | None = None
    parameter: str | None = None
    field: str | None = None
    column: str | int | None = None

    metadata: dict[str, Any] = dataclasses.field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["procedure", "parameter", "field", "column"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DataExError(Exception):
    """
    Base exception for all dataex errors.

    Every instance carries a category, an ``ErrorContext`` and an optional
    chained cause. Subclasses set ``default_category``.
    """

    default_category: ErrorCategory = ErrorCategory.CONFIG

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DataExError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MappingError("Column missing").with_context(
                procedure="sp_list_users", column="email"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
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
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(DataExError):
    """
    Configuration error (connection string, settings).

    Raised at construction time, before any connection is attempted.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# RESULT SHAPING ERRORS
# =============================================================================


class CoercionError(DataExError, TypeError):
    """A value cannot be converted to the requested type."""

    default_category = ErrorCategory.COERCION

    def __init__(
        self,
        value: Any,
        target: Any,
        message: str | None = None,
        **kwargs: Any,
    ):
        self.value = value
        self.target = target
        target_name = getattr(target, "__name__", repr(target))
        super().__init__(
            message or f"Cannot convert {type(value).__name__} value {value!r} to {target_name}",
            **kwargs,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["value_type"] = type(self.value).__name__
        result["target"] = getattr(self.target, "__name__", repr(self.target))
        return result


class MappingError(DataExError):
    """A row cannot populate the target record shape."""

    default_category = ErrorCategory.MAPPING


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DataExError",
    "ConfigError",
    "InvalidConfigError",
    "CoercionError",
    "MappingError",
]
