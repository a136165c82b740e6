"""Protocols for the installation pipeline's collaborators.

Per KERNEL_PHILOSOPHY: Protocol-based extensibility over configuration.
Per IMPLEMENTATION_PHILOSOPHY: Composition over inheritance.

The library never fetches over the network, patches or rewrites files itself;
apps provide these implementations.
"""

from pathlib import Path
from pathlib import PurePath
from typing import Protocol

from .schema import PatchDesc
from .schema import ReplaceSpec


class DownloaderProtocol(Protocol):
    """Fetches archives over the network (http and GitHub).

    Implementations may resume partial transfers; that is opaque to the pipeline.
    """

    async def download(self, url: str, dest_dir: Path, filename: PurePath) -> Path:
        """Download ``url`` into ``dest_dir / filename``.

        Args:
            url: URL to fetch
            dest_dir: Cache directory for this source (may not exist yet)
            filename: Name to save the archive under

        Returns:
            Path to the downloaded (or already cached) archive

        Raises:
            Exception: On any transport or I/O problem
        """
        ...


class CacheProtocol(Protocol):
    """Maps cache keys (relative subdirectories) to on-disk locations."""

    def join(self, subdir: PurePath) -> Path:
        """Absolute directory for a relative cache key."""
        ...


class PatchEngineProtocol(Protocol):
    """Applies a module's patch specification to its installed files."""

    async def apply(self, destination_dir: Path, module_name: str, patch: PatchDesc) -> None:
        """Apply ``patch`` to module ``module_name`` installed under ``destination_dir``.

        Raises:
            Exception: If the patch doesn't apply
        """
        ...


class ReplaceEngineProtocol(Protocol):
    """Runs one regex search/replace specification over a module's files."""

    def apply(self, module_dir: Path, spec: ReplaceSpec) -> None:
        """Apply ``spec`` to the files of the module in ``module_dir``.

        Raises:
            Exception: If the replacement fails
        """
        ...
