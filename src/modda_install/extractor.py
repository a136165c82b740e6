"""Archive extraction - Unpack a module archive and place the selected files.

Process (every archive format):
1. Unpack into a fresh temporary directory
2. Run the location's precopy command in it (if any)
3. Select entries with the layout's patterns at depth ``strip + 1``
4. Move the selection into the game directory (no overwrite)

The temporary directory is removed on every exit path.
"""

import logging
import shutil
import subprocess
import tarfile
import tempfile
import zipfile
from collections.abc import Callable
from functools import partial
from pathlib import Path
from pathlib import PurePath

from .exceptions import ArchiveFormatError
from .exceptions import ConfigurationError
from .exceptions import ExtractionError
from .exceptions import HookError
from .exceptions import ModuleInstallError
from .exceptions import PlacementError
from .exceptions import SelectionError
from .schema import ConcreteLocation
from .schema import PrecopyCommand
from .settings import Config
from .settings import ExtractorCommand
from .utils import glob_matches
from .utils import place_files
from .utils import plan_tree
from .utils import walk_at_depth

logger = logging.getLogger(__name__)

Unpacker = Callable[[Path, Path], None]


def _path_text(path: Path, what: str) -> str:
    """Path as text usable on a command line."""
    text = str(path)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValueError(f"Error extracting {what} {path!r}: {e}") from e
    return text


class Extractor:
    """Extracts module archives into the game directory.

    Args:
        game_dir: Destination root (files are moved here)
        config: Installer config (extraction location, external extractors)
    """

    def __init__(self, game_dir: Path, config: Config):
        self.game_dir = game_dir
        self.config = config

    def extract_files(self, archive: Path, module_name: str, location: ConcreteLocation) -> None:
        """
        Extract the files of one module from its archive.

        Args:
            archive: Archive path (format chosen by extension)
            module_name: Module being installed
            location: Module location (layout, precopy, source)

        Raises:
            ArchiveFormatError: Unknown or unsupported extension
            ConfigurationError: No external extractor configured for the extension
            ExtractionError: Archive couldn't be unpacked
            HookError: Precopy command failed
            SelectionError: Layout has no usable pattern
            PlacementError: Selected files collide with existing ones, or moving failed

        Example:
            >>> extractor = Extractor(game_dir=Path("/games/bg2"), config=Config())
            >>> extractor.extract_files(Path("cache/mymod-v1.zip"), "mymod", location)
        """
        logger.debug(f"extract_files from archive {archive} for {module_name}")
        try:
            self._extract_files(archive, module_name, location)
        except ModuleInstallError:
            logger.debug("done extracting files, ended in failure")
            raise
        logger.debug("done extracting files, ended in success")

    def _extract_files(self, archive: Path, module_name: str, location: ConcreteLocation) -> None:
        unpack = self._unpacker(archive)

        with self._create_temp_dir(module_name) as temp_name:
            temp_dir = Path(temp_name)
            logger.debug(f"extracting {archive} into {temp_dir}")
            unpack(archive, temp_dir)

            if location.precopy is not None:
                try:
                    self._run_precopy_command(temp_dir, location.precopy)
                except HookError as e:
                    raise e.wrap(
                        f"Couldn't run precopy command for mod {module_name}", module=module_name
                    ) from e

            try:
                self._move_from_temp_dir(temp_dir, module_name, location)
            except (SelectionError, PlacementError) as e:
                raise e.wrap(
                    f"Failed to copy files for archive {archive} from temp dir to game dir",
                    archive=str(archive),
                    module=module_name,
                ) from e

    def _unpacker(self, archive: Path) -> Unpacker:
        """Choose how to unpack ``archive`` from its (case-sensitive) extension."""
        if not archive.suffix:
            raise ArchiveFormatError(
                f"Couldn't determine archive type for file {archive} (no extension)", context={"archive": str(archive)}
            )
        extension = archive.suffix[1:]
        match extension:
            case "zip" | "iemod":
                return self._unpack_zip
            case "tgz":
                return self._unpack_tgz
            case "gz":
                if PurePath(archive.stem).suffix == ".tar":
                    return self._unpack_tgz
                raise ArchiveFormatError(f"unsupported .gz file for archive {archive}", context={"archive": str(archive)})
            case _:
                return partial(self._unpack_external, command=self._extractor_command(extension))

    def _extractor_command(self, extension: str) -> ExtractorCommand:
        command = self.config.extractors.get(extension)
        if command is None:
            raise ConfigurationError(
                f"No extractor configured for {extension}", context={"extension": extension}
            )
        return command

    def _create_temp_dir(self, module_name: str) -> tempfile.TemporaryDirectory:
        root = self.config.extract_root()
        try:
            if root is not None:
                logger.debug(f"using {root} for extraction location")
                root.mkdir(parents=True, exist_ok=True)
            return tempfile.TemporaryDirectory(prefix=f"modda-{module_name}-", dir=root)
        except OSError as e:
            raise ExtractionError(
                f"Could not create temp dir for archive extraction of mod {module_name}\n -> {e}",
                context={"extract_location": str(root)},
            ) from e

    def _unpack_zip(self, archive: Path, target: Path) -> None:
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(path=target)
                logger.debug(f"zip extracted {len(zf.namelist())} members")
        except Exception as e:
            # zipfile also raises zlib.error, RuntimeError and NotImplementedError
            raise ExtractionError(f"Zip extraction failed for {archive}\n -> {e}", context={"archive": str(archive)}) from e

    def _unpack_tgz(self, archive: Path, target: Path) -> None:
        try:
            with tarfile.open(archive, mode="r:gz") as tf:
                tf.extractall(path=target, filter="data")
        except Exception as e:
            raise ExtractionError(f"Tgz extraction failed for {archive}\n -> {e}", context={"archive": str(archive)}) from e

    def _unpack_external(self, archive: Path, target: Path, command: ExtractorCommand) -> None:
        args = []
        failures = []
        for arg in command.args:
            try:
                if "${input}" in arg:
                    arg = arg.replace("${input}", _path_text(archive.absolute(), "archive path"))
                if "${target}" in arg:
                    arg = arg.replace("${target}", _path_text(target.absolute(), "target path"))
            except ValueError as e:
                failures.append(str(e))
            args.append(arg)
        if failures:
            raise ExtractionError(
                "Could not prepare external extraction command\n  " + "\n  ".join(failures),
                context={"archive": str(archive), "command": command.command},
            )

        logger.info(f"Running external extractor: {command.command} {' '.join(args)}")
        try:
            completed = subprocess.run([command.command, *args], check=False)
        except OSError as e:
            raise ExtractionError(
                f"Extraction with external tool {command.command} failed for {archive}\n -> {e}",
                context={"archive": str(archive), "command": command.command},
            ) from e
        if completed.returncode != 0:
            raise ExtractionError(
                f"Extraction with external tool {command.command} failed for {archive} "
                f"(exit status {completed.returncode})",
                context={"archive": str(archive), "command": command.command},
            )

    def _run_precopy_command(self, temp_dir: Path, precopy: PrecopyCommand) -> None:
        workdir = temp_dir / precopy.subdir if precopy.subdir else temp_dir
        args = precopy.args or []
        logger.info(f"Running precopy command `{precopy.command}` with args {args} from {workdir}")
        try:
            completed = subprocess.run([precopy.command, *args], cwd=workdir, check=False)
        except OSError as e:
            raise HookError(
                f"failure running precopy command {precopy.command}\n -> {e}", context={"command": precopy.command}
            ) from e
        if completed.returncode != 0:
            raise HookError(
                f"precopy command {precopy.command} failed with status {completed.returncode}",
                context={"command": precopy.command},
            )

    def _files_to_move(self, base: Path, module_name: str, location: ConcreteLocation) -> set[Path]:
        glob_desc = location.layout.to_glob(module_name, location.source)
        if not glob_desc.patterns or all(not pattern.strip() for pattern in glob_desc.patterns):
            raise SelectionError(
                f"No file patterns to copy from archive for module {module_name}", context={"module": module_name}
            )
        logger.debug(f"Copy files from patterns: {glob_desc.patterns} (strip {glob_desc.strip})")

        # One level below the stripped prefix: each match is a layout root
        return {
            entry
            for entry in walk_at_depth(base, glob_desc.strip + 1)
            if any(glob_matches(pattern, entry.relative_to(base), entry.is_dir()) for pattern in glob_desc.patterns)
        }

    def _move_from_temp_dir(self, temp_dir: Path, module_name: str, location: ConcreteLocation) -> None:
        items = self._files_to_move(temp_dir, module_name, location)
        if not items:
            logger.warning(f"No files matched the layout of module {module_name}")
            return

        plan = [pair for item in sorted(items) for pair in plan_tree(item, self.game_dir / item.name)]
        placed = place_files(plan, shutil.move)
        logger.info(f"Moved {len(placed)} files of {module_name} into {self.game_dir}")
