"""File installation - Copy files from on-disk origins (no archive involved).

Origins are either absolute directories or directories relative to the
manifest's ``local_files`` setting, optionally restricted by a glob.
"""

import logging
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import assert_never

from .exceptions import PathSafetyError
from .exceptions import PlacementError
from .schema import AbsoluteOrigin
from .schema import FileModuleOrigin
from .schema import Global
from .schema import LocalOrigin
from .utils import check_absolute
from .utils import manifest_root
from .utils import place_files
from .utils import plan_tree
from .utils import safe_join
from .utils import walk_matching

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyGlob:
    """Resolved origin: base directory plus optional glob."""

    base: Path
    glob: str | None = None


class FileInstaller:
    """
    Copies files from file origins into a target directory.

    Args:
        global_: Manifest-wide settings (``local_files``)
        manifest_path: Path of the manifest; local origins resolve next to it
        game_dir: Game directory (fallback root when no manifest path is known)

    Example:
        >>> installer = FileInstaller(Global(local_files="files"), "/home/me/install.yml", Path("/games/bg2"))
        >>> installer.copy_from_origin(LocalOrigin(local="itm", glob="*.itm"), Path("/games/bg2/override"), False)
    """

    def __init__(self, global_: Global, manifest_path: str | Path | None, game_dir: Path):
        self.global_ = global_
        self.manifest_path = manifest_path
        self.game_dir = game_dir

    def copy_from_origin(self, origin: FileModuleOrigin, target: Path, allow_overwrite: bool) -> None:
        """Copy files from a single origin. See copy_from_origins."""
        self.copy_from_origins([origin], target, allow_overwrite)

    def copy_from_origins(self, origins: Sequence[FileModuleOrigin], target: Path, allow_overwrite: bool) -> None:
        """
        Copy files from all origins into ``target``.

        Every origin is resolved before anything is copied. Files copied from
        earlier origins are left in place if a later one fails.

        Args:
            origins: File origins, copied in order
            target: Destination directory (created if needed)
            allow_overwrite: Replace existing files instead of failing

        Raises:
            PathSafetyError: If an origin path is unsafe or missing
            PlacementError: On collision or copy failure (``context["placed"]`` lists copied files)
        """
        globs = self._get_file_globs(origins)
        self._copy_from_globs(globs, target, allow_overwrite)

    def local_files_location(self) -> Path:
        """Directory that local origins are resolved against."""
        return safe_join(self._manifest_root(), self.global_.local_files, "", subdir_label="local_files")

    def _manifest_root(self) -> Path:
        return manifest_root(self.manifest_path, self.game_dir)

    def _get_file_globs(self, origins: Sequence[FileModuleOrigin]) -> list[CopyGlob]:
        globs = []
        errors = []
        for origin in origins:
            try:
                globs.append(self._get_copy_glob(origin))
            except PathSafetyError as e:
                errors.append(e.message)
        if errors:
            raise PathSafetyError(
                "Could not assemble file origins\n  " + "\n  ".join(errors), context={"errors": errors}
            )
        return globs

    def _get_copy_glob(self, origin: FileModuleOrigin) -> CopyGlob:
        match origin:
            case AbsoluteOrigin(absolute=absolute):
                return CopyGlob(base=check_absolute(absolute))
            case LocalOrigin(local=local, glob=glob):
                base = safe_join(self._manifest_root(), self.global_.local_files, local, subdir_label="local_files")
                return CopyGlob(base=base, glob=glob)
            case _:
                assert_never(origin)

    def _copy_from_globs(self, globs: list[CopyGlob], target: Path, allow_overwrite: bool) -> None:
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PlacementError(
                f"ensure_dirs: error creating destination {target}\n -> {e}", context={"target": str(target)}
            ) from e

        placed: list[str] = []
        for copy_glob in globs:
            try:
                placed.extend(str(path) for path in self._copy_from_glob(copy_glob, target, allow_overwrite))
            except PlacementError as e:
                raise e.wrap(
                    f"Failed to copy files from {copy_glob.base} to {target}",
                    placed=placed + e.context.get("placed", []),
                ) from e
        logger.info(f"Copied {len(placed)} files into {target}")

    def _copy_from_glob(self, copy_glob: CopyGlob, target: Path, allow_overwrite: bool) -> list[Path]:
        base = copy_glob.base
        if not base.exists():
            raise PlacementError(f"origin {base} doesn't exist", context={"base": str(base)})

        if copy_glob.glob is None:
            if base.is_dir():
                plan = [pair for child in sorted(base.iterdir()) for pair in plan_tree(child, target / child.name)]
            else:
                plan = [(base, target / base.name)]
        else:
            # Matched files land directly in target
            matches = walk_matching(base, copy_glob.glob)
            logger.debug(f"{len(matches)} files under {base} match {copy_glob.glob}")
            plan = [(path, target / path.name) for path in matches]

        return place_files(plan, shutil.copy2, allow_overwrite=allow_overwrite)
