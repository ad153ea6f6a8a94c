"""Custom exception hierarchy for SorionLib.

Provides precise error classification across the dispatch core,
registries, builders and storage backends, so callers can tell
configuration mistakes (raised immediately) apart from runtime
failures (caught, logged and reported by the dispatch core).
"""

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Classification of errors for retry decisions."""
    TRANSIENT = "transient"          # Worth retrying (timeout, network hiccup)
    PERMANENT = "permanent"          # Not worth retrying (bad input, bad handler)
    INFRASTRUCTURE = "infrastructure"  # Missing token, unreachable storage


class SorionError(Exception):
    """Base exception for all SorionLib errors.

    Attributes:
        message: Human-readable error description.
        category: Error classification for retry/escalation decisions.
        module: Originating module name (e.g. "events").
        context: Arbitrary key-value pairs for structured logging.
    """

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.message = message
        self.category = category
        self.module = module
        self.context = context
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error is worth retrying."""
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message or self.__class__.__name__]
        if self.module:
            parts.append(f"[module={self.module}]")
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"({ctx})")
        return " ".join(parts)

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        return (
            f"{cls}({self.message!r}, category={self.category.value!r}, "
            f"module={self.module!r})"
        )


# ---------------------------------------------------------------------------
# Configuration exceptions
# ---------------------------------------------------------------------------

class ConfigurationError(SorionError):
    """Invalid or missing configuration.

    Defaults to INFRASTRUCTURE because config issues are environmental
    and won't resolve by retrying.
    """

    def __init__(
        self,
        message: str = "",
        *,
        setting_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.INFRASTRUCTURE,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.setting_name = setting_name
        super().__init__(
            message, category=category, module=module or "config", **context
        )


# ---------------------------------------------------------------------------
# Event dispatch exceptions
# ---------------------------------------------------------------------------

class EventRegistrationError(SorionError):
    """An event could not be registered, found, or toggled.

    Attributes:
        event_name: Name of the event involved.
    """

    def __init__(
        self,
        message: str = "",
        *,
        event_name: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.event_name = event_name
        super().__init__(
            message, category=category, module=module or "events", **context
        )


class EventLimitError(EventRegistrationError):
    """The event registry is full.

    Attributes:
        limit: The configured registry ceiling.
    """

    def __init__(
        self,
        message: str = "",
        *,
        event_name: Optional[str] = None,
        limit: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.limit = limit
        super().__init__(
            message,
            event_name=event_name,
            category=category,
            module=module,
            **context,
        )


class HandlerTimeoutError(SorionError):
    """A handler did not complete within its configured window.

    The handler itself keeps running; only the firing is reported as
    failed.

    Attributes:
        event_name: Event whose handler overran.
        timeout_ms: The window that elapsed.
    """

    def __init__(
        self,
        message: str = "",
        *,
        event_name: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.event_name = event_name
        self.timeout_ms = timeout_ms
        super().__init__(
            message, category=category, module=module or "events", **context
        )


# ---------------------------------------------------------------------------
# Builder exceptions
# ---------------------------------------------------------------------------

class ComponentLimitError(SorionError):
    """A builder would exceed its structural limit.

    Attributes:
        limit: Maximum number of components (or fields) allowed.
    """

    def __init__(
        self,
        message: str = "",
        *,
        limit: Optional[int] = None,
        category: ErrorCategory = ErrorCategory.PERMANENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.limit = limit
        super().__init__(
            message, category=category, module=module or "builders", **context
        )


# ---------------------------------------------------------------------------
# Platform exceptions
# ---------------------------------------------------------------------------

class DeploymentError(SorionError):
    """Structured command definitions could not be pushed to the platform."""

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message, category=category, module=module or "interactions", **context
        )


# ---------------------------------------------------------------------------
# Database exceptions
# ---------------------------------------------------------------------------

class DatabaseError(SorionError):
    """Error during storage operations.

    Attributes:
        operation: The operation that failed (e.g. "insert", "connect").
        table: The table involved (if known).
    """

    def __init__(
        self,
        message: str = "",
        *,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        module: Optional[str] = None,
        **context: Any,
    ) -> None:
        self.operation = operation
        self.table = table
        super().__init__(
            message, category=category, module=module or "storage", **context
        )
