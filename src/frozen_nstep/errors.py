"""
errors.py - Exception types shared by the environment, tables and engine.

- FrozenNStepError   : base class for everything raised by this package
- InvariantViolation : fatal programming error, aborts the current tick
- ConfigError        : rejected hyperparameters / world settings
"""


class FrozenNStepError(Exception):
    """Base class for all package errors."""


class InvariantViolation(FrozenNStepError, RuntimeError):
    """
    A state, action or table entry outside the declared spaces was used.

    Never recoverable: it means `init()` was skipped or a bad index leaked in.
    """


class ConfigError(FrozenNStepError, ValueError):
    """Invalid configuration. The previous valid configuration is kept."""
