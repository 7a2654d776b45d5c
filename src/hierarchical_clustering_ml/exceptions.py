# exceptions.py
"""
Error types raised by the clustering engines.

ConfigurationError derives from ValueError and InvariantViolation from
RuntimeError, so callers catching the builtins keep working.
"""

from typing import Optional

__all__ = ["ClusteringError", "ConfigurationError", "InvariantViolation"]


class ClusteringError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(ClusteringError, ValueError):
    """
    Invalid distance/linkage combination, parameter or input matrix.

    Raised before any clustering work starts.

    @param message: human readable description
    @param argument: name of the offending argument, if known
    """

    def __init__(self, message: str, argument: Optional[str] = None) -> None:
        if argument is not None:
            message = f"{argument}: {message}"
        super().__init__(message)
        self.argument = argument


class InvariantViolation(ClusteringError, RuntimeError):
    """Internal bookkeeping is inconsistent (a defect, not a user error)."""
