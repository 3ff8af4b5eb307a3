"""Fatal setup errors.

These abort a CI run before any task outcome is recorded. Task failures are
never raised; they are collected as ``FailureRecord`` values instead.
"""


class SetupError(RuntimeError):
    """Base class for errors that make a CI run impossible to start."""


class EventPayloadError(SetupError):
    """CI event payload is missing, unreadable, or lacks a required key."""


class ConfigError(SetupError):
    """Repository configuration file is malformed or violates its schema."""


class ToolchainError(SetupError):
    """Running toolchain version could not be determined."""
