"""
Configuration module for wrapscope.

This module handles all configuration for the wrapper, supporting both
environment variables and programmatic configuration.

Configuration Priority (highest to lowest):
    1. Programmatic configuration via configure()
    2. Environment variables
    3. Default values

Environment Variables:
    WRAPSCOPE_ENABLED: Emit spans from wrapped callables (default: true)
    WRAPSCOPE_FILE: Colon-separated name-list files or globs (default: none)
    WRAPSCOPE_WARN_UNRESOLVED: Warn at exit about names never found (default: true)
    WRAPSCOPE_HIDE_FRAMES: Hide wrapper frames from inspect.stack (default: false)
    WRAPSCOPE_LOG_SPANS: Log every finished span as JSON (default: false)
    WRAPSCOPE_MAX_TAG_LENGTH: Truncation limit for rendered tag values (default: 1000)
    WRAPSCOPE_TRACER_NAME: Instrumentation scope name (default: wrapscope)
    WRAPSCOPE_LOG_LEVEL: Logging verbosity (default: WARNING)
"""

from __future__ import annotations

import os
import logging
from dataclasses import dataclass, field, replace
from typing import Any
from enum import Enum

__all__ = [
    "LogLevel",
    "WrapScopeConfig",
    "get_config",
    "configure",
    "lock_config",
    "reset_config",
]


class LogLevel(str, Enum):
    """Log level enum matching Python logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _get_bool_env(key: str, default: bool) -> bool:
    """Parse boolean from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def _get_int_env(key: str, default: int) -> int:
    """Parse int from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_path_list_env(key: str) -> list[str]:
    """Parse a colon-separated list of paths, dropping empty entries."""
    value = os.getenv(key, "")
    return [part for part in value.split(":") if part.strip()]


@dataclass
class WrapScopeConfig:
    """
    Configuration for wrapscope.

    Attributes:
        enabled: Master switch; when off, wrapped callables run without spans.
        files: Name-list files or glob patterns to load.
        warn_unresolved: Emit the end-of-run warning for names never found.
        hide_wrapper_frames: Install the process-wide stack shim with the first wrapper.
        log_spans: Log finished spans on the ``wrapscope.spans`` logger.
        max_tag_length: Truncation limit for non-scalar tag values.
        tracer_name: Instrumentation scope name for the default tracer.
        log_level: Internal logging level.

    Examples:
        !!! example "Configure via environment"
            ```bash
            export WRAPSCOPE_FILE="conf/wrap.txt:conf/extra/*.txt"
            export WRAPSCOPE_WARN_UNRESOLVED=0
            ```

        !!! example "Configure programmatically"
            ```python
            from wrapscope import configure

            configure(warn_unresolved=False, max_tag_length=200)
            ```
    """

    enabled: bool = True
    files: list[str] = field(default_factory=list)

    # Diagnostics
    warn_unresolved: bool = True

    # Caller-chain shim
    hide_wrapper_frames: bool = False

    # Spans
    log_spans: bool = False
    max_tag_length: int = 1000
    tracer_name: str = "wrapscope"

    # Logging
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> 'WrapScopeConfig':
        """Create configuration from environment variables."""
        return cls(
            enabled=_get_bool_env("WRAPSCOPE_ENABLED", True),
            files=_get_path_list_env("WRAPSCOPE_FILE"),
            warn_unresolved=_get_bool_env("WRAPSCOPE_WARN_UNRESOLVED", True),
            hide_wrapper_frames=_get_bool_env("WRAPSCOPE_HIDE_FRAMES", False),
            log_spans=_get_bool_env("WRAPSCOPE_LOG_SPANS", False),
            max_tag_length=_get_int_env("WRAPSCOPE_MAX_TAG_LENGTH", 1000),
            tracer_name=os.getenv("WRAPSCOPE_TRACER_NAME", "wrapscope"),
            log_level=os.getenv("WRAPSCOPE_LOG_LEVEL", "WARNING"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If any configuration value is invalid
        """
        if self.max_tag_length < 16:
            raise ValueError(f"max_tag_length must be at least 16, got {self.max_tag_length}")

        if not self.tracer_name:
            raise ValueError("tracer_name must not be empty")

        if self.log_level.upper() not in LogLevel.__members__:
            raise ValueError(f"log_level must be one of {', '.join(LogLevel.__members__)}, got {self.log_level}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/debugging."""
        return {
            'enabled': self.enabled,
            'files': list(self.files),
            'warn_unresolved': self.warn_unresolved,
            'hide_wrapper_frames': self.hide_wrapper_frames,
            'log_spans': self.log_spans,
            'max_tag_length': self.max_tag_length,
            'tracer_name': self.tracer_name,
            'log_level': self.log_level,
        }


# Global configuration instance
_config: WrapScopeConfig | None = None
_config_lock = False  # Simple flag, not thread lock (config happens at init)


def get_config() -> WrapScopeConfig:
    """
    Get the current configuration.

    If not explicitly configured, loads from environment variables.

    Returns:
        Current WrapScopeConfig instance
    """
    global _config
    if _config is None:
        _config = WrapScopeConfig.from_env()
    return _config


def configure(
    *,
    enabled: bool | None = None,
    files: list[str] | None = None,
    warn_unresolved: bool | None = None,
    hide_wrapper_frames: bool | None = None,
    log_spans: bool | None = None,
    max_tag_length: int | None = None,
    tracer_name: str | None = None,
    log_level: str | None = None,
) -> WrapScopeConfig:
    """
    Configure wrapscope programmatically.

    Call this before installing wrappers; tracers and registries read the
    configuration when they are created.

    Args:
        enabled: Enable/disable span emission
        files: Name-list files or globs (replaces the current list)
        warn_unresolved: Warn at exit about unresolved names
        hide_wrapper_frames: Install the process-wide stack shim with the first wrapper
        log_spans: Log finished spans as JSON
        max_tag_length: Truncation limit for rendered tag values
        tracer_name: Default tracer scope name
        log_level: Logging level

    Returns:
        The updated WrapScopeConfig instance

    Example:
        >>> from wrapscope import configure
        >>> configure(warn_unresolved=False, log_level="DEBUG")
    """
    global _config, _config_lock

    if _config_lock:
        logging.getLogger("wrapscope").warning(
            "Configuration modified after instrumentation started. "
            "Some settings may not take effect."
        )

    # A rejected value leaves the current config in place
    config = replace(get_config())

    # Override with provided values
    if enabled is not None:
        config.enabled = enabled
    if files is not None:
        config.files = list(files)
    if warn_unresolved is not None:
        config.warn_unresolved = warn_unresolved
    if hide_wrapper_frames is not None:
        config.hide_wrapper_frames = hide_wrapper_frames
    if log_spans is not None:
        config.log_spans = log_spans
    if max_tag_length is not None:
        config.max_tag_length = max_tag_length
    if tracer_name is not None:
        config.tracer_name = tracer_name
    if log_level is not None:
        config.log_level = log_level.upper()

    config.validate()

    logging.getLogger("wrapscope").setLevel(getattr(logging, config.log_level.upper()))

    _config = config
    return config


def lock_config() -> None:
    """
    Lock configuration to prevent further changes.

    Called internally when the first span starts.
    """
    global _config_lock
    _config_lock = True


def reset_config() -> None:
    """
    Reset configuration to defaults.

    Primarily for testing purposes.
    """
    global _config, _config_lock
    _config = None
    _config_lock = False
