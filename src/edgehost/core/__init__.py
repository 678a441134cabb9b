"""Core primitives: errors, logging, settings, and the shared retry utility."""

from edgehost.core.errors import (
    BundleError,
    CommandError,
    ConfigError,
    DownloadError,
    DuplicateNameError,
    EdgeError,
    ErrorCategory,
    ErrorContext,
    ModuleLoadError,
    RangeMismatchError,
    VersionFetchError,
    VirtualModuleNotFoundError,
)
from edgehost.core.logging import configure_logging, get_logger
from edgehost.core.retry import ConstantBackoff, ExponentialBackoff, RetryContext, retry_async
from edgehost.core.settings import EdgeSettings, get_settings

__all__ = [
    "BundleError",
    "CommandError",
    "ConfigError",
    "DownloadError",
    "DuplicateNameError",
    "EdgeError",
    "ErrorCategory",
    "ErrorContext",
    "ModuleLoadError",
    "RangeMismatchError",
    "VersionFetchError",
    "VirtualModuleNotFoundError",
    "configure_logging",
    "get_logger",
    "ConstantBackoff",
    "ExponentialBackoff",
    "RetryContext",
    "retry_async",
    "EdgeSettings",
    "get_settings",
]
