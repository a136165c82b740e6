"""Module installation - Retrieve, extract, patch and replace one module.

Per KERNEL_PHILOSOPHY: Mechanism not policy - the library doesn't know HOW to
download or patch, apps provide DownloaderProtocol / PatchEngineProtocol /
ReplaceEngineProtocol implementations and the cache location.

Process per module (linear, no retry):
1. Resolve cache directory and archive name from the source
2. Retrieve the archive (download, or locate it on disk)
3. Extract the layout's files into the game directory
4. Apply the patch (if any)
5. Apply replace specs in order (if any)

A failure stops the module's install; nothing already placed is rolled back.
Retrieval of several modules may overlap (see get_modules); steps 3-5 are
serialized per installer, since they all write to the game directory.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import assert_never

from .exceptions import ModuleInstallError
from .exceptions import SourceResolutionError
from .exceptions import UpstreamError
from .extractor import Extractor
from .protocols import CacheProtocol
from .protocols import DownloaderProtocol
from .protocols import PatchEngineProtocol
from .protocols import ReplaceEngineProtocol
from .resolver import download_url
from .resolver import save_name
from .resolver import save_subdir
from .schema import AbsoluteSource
from .schema import ConcreteLocation
from .schema import GithubSource
from .schema import Global
from .schema import HttpSource
from .schema import LocalSource
from .schema import Module
from .schema import RefLocation
from .settings import Config
from .utils import manifest_root
from .utils import safe_join

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleResult:
    """Outcome of one module install in a batch."""

    name: str
    error: ModuleInstallError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ModuleInstaller:
    """
    Installs modules from their manifest locations into a game directory.

    Args:
        config: Installer config (extraction location, external extractors)
        global_: Manifest-wide settings (``local_mods``)
        manifest_path: Manifest path; local archives resolve next to it
        downloader: Network retrieval (app-provided)
        cache: Cache location for downloaded archives (app-provided)
        game_dir: Destination root, defaults to the canonical current directory
        patch_engine: Applies ``patch`` specs; required only by modules that have one
        replace_engine: Applies ``replace`` specs; required only by modules that have them

    Example:
        >>> installer = ModuleInstaller(
        ...     config=Config.from_toml(Path("~/.config/modda/modda.toml").expanduser()),
        ...     global_=Global(local_mods="mods"),
        ...     manifest_path="/home/me/install.yml",
        ...     downloader=my_downloader,
        ...     cache=DirectoryCache.from_config(config),
        ... )
        >>> await installer.get_module(module)
    """

    def __init__(
        self,
        config: Config,
        global_: Global,
        manifest_path: str | Path | None,
        downloader: DownloaderProtocol,
        cache: CacheProtocol,
        game_dir: Path | None = None,
        patch_engine: PatchEngineProtocol | None = None,
        replace_engine: ReplaceEngineProtocol | None = None,
    ):
        self.global_ = global_
        self.manifest_path = manifest_path
        self.downloader = downloader
        self.cache = cache
        self.game_dir = game_dir if game_dir is not None else Path.cwd().resolve()
        self.patch_engine = patch_engine
        self.replace_engine = replace_engine
        self.extractor = Extractor(self.game_dir, config)
        self._placement_lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None

    def _get_placement_lock(self) -> asyncio.Lock:
        """Placement lock for the running event loop (an installer may outlive a loop)."""
        loop = asyncio.get_running_loop()
        if self._placement_lock is None or self._lock_loop is not loop:
            self._placement_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._placement_lock

    async def get_module(self, module: Module) -> None:
        """
        Retrieve and install one module.

        Args:
            module: Module with a concrete location

        Raises:
            SourceResolutionError: No location, unresolved reference, or bad source
            PathSafetyError: Local archive path escapes the manifest directory
            UpstreamError: Download, patch or replace failed
            ModuleInstallError: Any extraction failure (see Extractor.extract_files)
        """
        location = module.location
        match location:
            case None:
                raise SourceResolutionError(
                    f"No location provided to retrieve missing module {module.name}", context={"module": module.name}
                )
            case RefLocation(ref=ref):
                raise SourceResolutionError(
                    f"Location reference '{ref}' of module {module.name} must be resolved before install",
                    context={"module": module.name, "ref": ref},
                )
            case ConcreteLocation():
                pass
            case _:
                assert_never(location)

        logger.info(f"Installing module {module.name}")
        try:
            archive = await self.retrieve_location(location, module)
        except ModuleInstallError as e:
            raise e.wrap(f"retrieve archive failed for module {module.name}", module=module.name) from e
        logger.debug(f"Archive for {module.name}: {archive}")

        async with self._get_placement_lock():
            try:
                await asyncio.to_thread(self.extractor.extract_files, archive, module.name, location)
            except ModuleInstallError as e:
                raise e.wrap(
                    f"Extraction failed for module {module.name}", module=module.name, archive=str(archive)
                ) from e
            await self._patch_module(module.name, location)
            self._replace_module(module.name, location)

        logger.info(f"Successfully installed module: {module.name}")

    async def get_modules(self, modules: Sequence[Module], max_concurrent: int = 1) -> list[ModuleResult]:
        """
        Install several modules, each independently of the others' failures.

        Up to ``max_concurrent`` modules are in flight at once; their downloads
        overlap but extraction/patch/replace still run one module at a time.
        The default of 1 installs strictly in the given order.

        Returns:
            One ModuleResult per module, in input order
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        semaphore = asyncio.Semaphore(max_concurrent)

        async def run(module: Module) -> ModuleResult:
            async with semaphore:
                try:
                    await self.get_module(module)
                except Exception as e:
                    if isinstance(e, ModuleInstallError):
                        error = e
                    else:
                        error = ModuleInstallError(
                            f"Unexpected failure installing module {module.name}\n -> {e!r}",
                            context={"module": module.name},
                        )
                        error.__cause__ = e
                    logger.error(f"Failed to install module {module.name}: {error.message}")
                    return ModuleResult(name=module.name, error=error)
            return ModuleResult(name=module.name)

        return list(await asyncio.gather(*(run(module) for module in modules)))

    async def retrieve_location(self, location: ConcreteLocation, module: Module) -> Path:
        """
        Path of the module's archive, downloading it first for network sources.

        Returns:
            ``cache/<subdir>/<name>`` as returned by the downloader, the literal
            absolute path, or ``<manifest dir>/<local_mods>/<local>``
        """
        source = location.source
        dest = self.cache.join(save_subdir(source))
        name = save_name(source, module.name)

        match source:
            case HttpSource() | GithubSource():
                url = download_url(source)
                logger.debug(f"Downloading {url} to {dest / name}")
                try:
                    return await self.downloader.download(url, dest, name)
                except Exception as e:
                    if isinstance(e, ModuleInstallError):
                        raise
                    raise UpstreamError(
                        f"Download failed for {url}\n -> {e}", context={"url": url, "dest": str(dest)}
                    ) from e
            case AbsoluteSource(path=path):
                return Path(path)
            case LocalSource(local=local):
                return self._local_mod_path(local)
            case _:
                assert_never(source)

    def _local_mod_path(self, local: str) -> Path:
        root = manifest_root(self.manifest_path, self.game_dir)
        return safe_join(root, self.global_.local_mods, local, subdir_label="local_mods")

    async def _patch_module(self, module_name: str, location: ConcreteLocation) -> None:
        if location.patch is None:
            return
        if self.patch_engine is None:
            raise UpstreamError(
                f"Module {module_name} has a patch but no patch engine is configured", context={"module": module_name}
            )
        try:
            await self.patch_engine.apply(self.game_dir, module_name, location.patch)
        except Exception as e:
            if isinstance(e, ModuleInstallError):
                raise e.wrap(f"Patch failed for module {module_name}", module=module_name) from e
            raise UpstreamError(f"Patch failed for module {module_name}\n -> {e}", context={"module": module_name}) from e

    def _replace_module(self, module_name: str, location: ConcreteLocation) -> None:
        if not location.replace:
            return
        if self.replace_engine is None:
            raise UpstreamError(
                f"Module {module_name} has replace specs but no replace engine is configured",
                context={"module": module_name},
            )
        module_dir = self.game_dir / module_name
        for index, spec in enumerate(location.replace):
            try:
                self.replace_engine.apply(module_dir, spec)
            except Exception as e:
                raise UpstreamError(
                    f"Replace #{index} failed for module {module_name}\n -> {e}",
                    context={"module": module_name, "replace_index": index},
                ) from e
