"""modda-install - Declarative module acquisition and installation.

Public API: resolve a module's source, fetch or locate its archive, extract the
layout's files into a game directory, and copy files from on-disk origins.

Per KERNEL_PHILOSOPHY: This is library mechanism, apps inject policy (downloader,
cache location, patch and replace engines).
"""

from .cache import DirectoryCache
from .exceptions import ArchiveFormatError
from .exceptions import ConfigurationError
from .exceptions import ExtractionError
from .exceptions import HookError
from .exceptions import ModuleInstallError
from .exceptions import PathSafetyError
from .exceptions import PlacementError
from .exceptions import SelectionError
from .exceptions import SourceResolutionError
from .exceptions import UpstreamError
from .extractor import Extractor
from .file_installer import FileInstaller
from .installer import ModuleInstaller
from .installer import ModuleResult
from .layout import GlobDesc
from .layout import Layout
from .protocols import CacheProtocol
from .protocols import DownloaderProtocol
from .protocols import PatchEngineProtocol
from .protocols import ReplaceEngineProtocol
from .resolver import default_strip_leading
from .resolver import download_url
from .resolver import save_name
from .resolver import save_subdir
from .schema import AbsoluteOrigin
from .schema import AbsoluteSource
from .schema import BranchDescriptor
from .schema import CommitDescriptor
from .schema import ConcreteLocation
from .schema import GithubSource
from .schema import Global
from .schema import HttpSource
from .schema import LocalOrigin
from .schema import LocalSource
from .schema import Module
from .schema import PatchDesc
from .schema import PrecopyCommand
from .schema import RefLocation
from .schema import RefreshPolicy
from .schema import ReleaseDescriptor
from .schema import ReplaceSpec
from .schema import TagDescriptor
from .settings import Config
from .settings import ExtractorCommand

__all__ = [
    # Manifest records
    "Module",
    "ConcreteLocation",
    "RefLocation",
    "HttpSource",
    "GithubSource",
    "AbsoluteSource",
    "LocalSource",
    "ReleaseDescriptor",
    "CommitDescriptor",
    "BranchDescriptor",
    "TagDescriptor",
    "RefreshPolicy",
    "PrecopyCommand",
    "PatchDesc",
    "ReplaceSpec",
    "AbsoluteOrigin",
    "LocalOrigin",
    "Global",
    "Layout",
    "GlobDesc",
    # Source resolution
    "save_subdir",
    "save_name",
    "default_strip_leading",
    "download_url",
    # Installation
    "Extractor",
    "FileInstaller",
    "ModuleInstaller",
    "ModuleResult",
    "DownloaderProtocol",
    "CacheProtocol",
    "PatchEngineProtocol",
    "ReplaceEngineProtocol",
    "DirectoryCache",
    # Configuration
    "Config",
    "ExtractorCommand",
    # Exceptions
    "ModuleInstallError",
    "SourceResolutionError",
    "ConfigurationError",
    "ArchiveFormatError",
    "ExtractionError",
    "HookError",
    "SelectionError",
    "PlacementError",
    "PathSafetyError",
    "UpstreamError",
]

__version__ = "0.1.0"
