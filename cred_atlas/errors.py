"""
cred_atlas/errors.py — Error kinds raised by the load pipeline.

Every failure the pipeline reports is one of these. Adapter exceptions that
are not already CredAtlasErrors are wrapped in SourceIOError with the original
exception chained as __cause__.
"""


class CredAtlasError(Exception):
    """Base class for all Cred Atlas errors."""
    pass


class ConfigurationError(CredAtlasError):
    """Raised when an applicable source lacks a credential or directory."""
    pass


class CompatError(CredAtlasError):
    """Raised when a persisted document has an unknown type or version tag."""
    pass


class GraphMergeError(CredAtlasError):
    """Raised when two graphs being merged claim the same address."""
    pass


class SourceIOError(CredAtlasError):
    """Raised when a source adapter's mirror or graph call fails."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
