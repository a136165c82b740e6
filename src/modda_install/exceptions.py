"""Module installation exceptions.

Per IMPLEMENTATION_PHILOSOPHY: Clear, actionable error messages, with the full
causal chain preserved through ``raise ... from``.
"""

from typing import Self


class ModuleInstallError(Exception):
    """Base exception for module acquisition and installation."""

    def __init__(self, message: str, context: dict | None = None):
        """Initialize with message and optional context.

        Args:
            message: Human-readable error message
            context: Optional dict with additional context (archive, module name, paths...)
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def wrap(self, message: str, **context) -> Self:
        """Build an error of the same kind describing the enclosing operation.

        The caller raises the result ``from`` this error so the chain is kept.

        Example:
            >>> try:
            ...     extractor.extract_files(archive, "mymod", location)
            ... except ModuleInstallError as e:
            ...     raise e.wrap("install failed for module mymod", module="mymod") from e
        """
        return type(self)(f"{message}\n -> {self.message}", context={**self.context, **context})


class SourceResolutionError(ModuleInstallError):
    """Source descriptor could not be turned into a cache location or archive name."""


class ConfigurationError(ModuleInstallError):
    """Configuration is missing or invalid (e.g. no extractor for an extension)."""


class ArchiveFormatError(ModuleInstallError):
    """Archive type is unknown or unsupported."""


class ExtractionError(ModuleInstallError):
    """Archive decoding or external extractor tool failed."""


class HookError(ModuleInstallError):
    """Pre-copy command failed."""


class SelectionError(ModuleInstallError):
    """No usable file pattern to select files from an archive."""


class PlacementError(ModuleInstallError):
    """Moving or copying files to their destination failed.

    ``context["placed"]`` lists destination paths written before the failure.
    """


class PathSafetyError(ModuleInstallError):
    """A manifest path is absolute, escapes its root, or is otherwise unsafe."""


class UpstreamError(ModuleInstallError):
    """Download, patch or replace collaborator failed."""
