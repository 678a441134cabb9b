"""
Structured error types for edgehost.

Every failure the binary manager, module loader, bundler, and process
supervisor can raise is an ``EdgeError`` subclass.  Errors carry a category
for routing, an explicit ``retryable`` flag consumed by
:mod:`edgehost.core.retry`, and an ``ErrorContext`` with the URL, HTTP
status, specifier, or version that was involved.

Manifesto:
    - **Typed hierarchy:** One class per failure mode of the core
    - **Explicit retry semantics:** The retry utility asks the error, not the caller
    - **Rich context:** Errors carry metadata for structured logging
    - **Error chaining:** The underlying exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          EdgeError                               │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  VersionFetchError     RangeMismatchError    DownloadError       │
        │  (NETWORK)             (VERSION)             (NETWORK, retry)    │
        │                                                                  │
        │  ModuleLoadError       VirtualModuleNotFoundError                │
        │  (MODULE, transient?)  (MODULE)                                  │
        │                                                                  │
        │  BundleError           DuplicateNameError    CommandError        │
        │  (BUNDLE)              (VALIDATION)          (PROCESS)           │
        │                                                                  │
        │  ConfigError                                                     │
        │  (CONFIG)                                                        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = DownloadError("Download failed with status code 500", status_code=500)
    >>> error.retryable
    True
    >>> error.context.http_status
    500

    >>> error = ModuleLoadError("Not found", specifier="https://x/y.ts", transient=False)
    >>> error.retryable
    False

Guardrails:
    ❌ DON'T: Raise plain Exception for an expected failure mode
    ✅ DO: Use the matching EdgeError subclass

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, retry-logic, edgehost
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    NETWORK = "NETWORK"
    VERSION = "VERSION"
    MODULE = "MODULE"
    BUNDLE = "BUNDLE"
    PROCESS = "PROCESS"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that are set end up in ``to_dict()``, so the same context
    type serves HTTP failures (url, http_status), module failures
    (specifier) and version failures (version, version_range).
    """

    url: str | None = None
    http_status: int | None = None
    specifier: str | None = None
    version: str | None = None
    version_range: str | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["url", "http_status", "specifier", "version", "version_range", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class EdgeError(Exception):
    """
    Base exception for all edgehost errors.

    Subclasses set ``default_category`` and ``default_retryable``; both can
    be overridden per instance.

    Examples:
        >>> error = EdgeError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(url="https://dl.example").context.url
        'https://dl.example'
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

    def with_context(self, **kwargs: Any) -> EdgeError:
        """
        Add context to this error (fluent API).

        Usage:
            raise VersionFetchError("unreachable").with_context(url=url)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
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
# BINARY MANAGER ERRORS
# =============================================================================


class VersionFetchError(EdgeError):
    """The latest-version pointer could not be fetched."""

    default_category = ErrorCategory.NETWORK


class RangeMismatchError(EdgeError):
    """No discoverable version satisfies the requested range."""

    default_category = ErrorCategory.VERSION

    def __init__(self, version: str, version_range: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f"Version {version} does not satisfy range {version_range}",
            **kwargs,
        )
        self.context.version = version
        self.context.version_range = version_range


class DownloadError(EdgeError):
    """
    A release archive download attempt failed.

    The message is the last failure verbatim: either
    ``"Download failed with status code N"`` or the stream error's text.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.context.http_status = status_code


# =============================================================================
# MODULE / BUNDLE ERRORS
# =============================================================================


class VirtualModuleNotFoundError(EdgeError):
    """A virtual-root specifier maps to a file that does not exist."""

    default_category = ErrorCategory.MODULE

    def __init__(self, specifier: str, path: str, **kwargs: Any):
        super().__init__(f"Could not find file {path} for specifier {specifier}", **kwargs)
        self.context.specifier = specifier
        self.context.path = path


class ModuleLoadError(EdgeError):
    """
    A network or filesystem module could not be loaded.

    ``transient`` is True for timeouts, connection failures and 5xx
    responses (retried by the loader), False for 4xx responses and
    malformed content (raised immediately).
    """

    default_category = ErrorCategory.MODULE

    def __init__(
        self,
        message: str,
        *,
        specifier: str,
        transient: bool = False,
        status_code: int | None = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("retryable", transient)
        super().__init__(message, **kwargs)
        self.transient = transient
        self.status_code = status_code
        self.context.specifier = specifier
        if status_code is not None:
            self.context.http_status = status_code


class BundleError(EdgeError):
    """The bundler reported an error (syntax, unresolvable specifier)."""

    default_category = ErrorCategory.BUNDLE


class DuplicateNameError(EdgeError):
    """Two function declarations export the same name."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, name: str, **kwargs: Any):
        super().__init__(f"Duplicate function name: {name!r}", **kwargs)
        self.name = name


# =============================================================================
# PROCESS / CONFIG ERRORS
# =============================================================================


class CommandError(EdgeError):
    """A foreground runtime command exited with a non-zero status."""

    default_category = ErrorCategory.PROCESS

    def __init__(self, args: list[str], returncode: int, stderr: str = "", **kwargs: Any):
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        super().__init__(
            f"Command {' '.join(args)!r} exited with code {returncode}: {detail}",
            **kwargs,
        )
        self.returncode = returncode
        self.stderr = stderr


class ConfigError(EdgeError):
    """Malformed manifest, import map, or settings."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, EdgeError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, EdgeError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (FileNotFoundError, PermissionError)):
        return ErrorCategory.PROCESS
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "EdgeError",
    "VersionFetchError",
    "RangeMismatchError",
    "DownloadError",
    "VirtualModuleNotFoundError",
    "ModuleLoadError",
    "BundleError",
    "DuplicateNameError",
    "CommandError",
    "ConfigError",
    "is_retryable",
    "categorize_error",
]
