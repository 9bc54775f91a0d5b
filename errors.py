"""
Error taxonomy for the contribution engine.
Each class maps to one failure scope: resource, file, project or single ledger update.
"""


class ContribError(Exception):
    """Base class for all contribution engine errors."""


class MissingDependencyError(ContribError):
    """An upstream metric (line counts) required for a commit is unavailable.

    The whole resource is aborted and nothing is recorded for it.
    """


class RepositoryAccessError(ContribError):
    """Diff retrieval failed for one file; only that file's line attribution is skipped."""

    def __init__(self, path: str, message: str = ''):
        self.path = path
        super().__init__(message or f"Could not retrieve diff for {path}")


class ConfigurationError(ContribError):
    """A required configuration value is missing or non-positive. Aborts the whole run."""


class InvariantViolation(ContribError):
    """A ledger update could not be resolved (unknown action type, bad polarity, ...)."""
