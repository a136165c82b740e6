"""Path safety, glob selection and file placement helpers.

Per DRY: One "safe join" for every manifest-relative path, one placement
routine for both archive extraction (move) and file origins (copy).
"""

import logging
import os
from collections.abc import Callable
from collections.abc import Iterable
from fnmatch import fnmatchcase
from pathlib import Path
from pathlib import PurePath

from .exceptions import PathSafetyError
from .exceptions import PlacementError

logger = logging.getLogger(__name__)


def clean_path(path: str | PurePath) -> PurePath:
    """Remove ``.`` and ``..`` components syntactically (no filesystem access).

    Example:
        >>> clean_path("mods/./a/../b")
        PurePosixPath('mods/b')
        >>> clean_path("a/../../escape")
        PurePosixPath('../escape')
    """
    text = os.fspath(path)
    if not text:
        return PurePath()
    return PurePath(os.path.normpath(text))


def _check_relative(path: PurePath, original: str, label: str) -> None:
    if path.is_absolute() or path.parts[:1] == ("..",):
        raise PathSafetyError(
            f"Invalid {label} value {original!r}: must be a relative path that stays inside its root",
            context={label: original},
        )


def safe_join(root: Path, configured_subdir: str | None, user_relative: str, subdir_label: str = "subdir") -> Path:
    """Join a manifest-relative path under ``root / configured_subdir``.

    Each segment is cleaned independently; the configured subdirectory and the
    user-supplied path must both be relative and must not start with ``..``.

    Args:
        root: Manifest root directory
        configured_subdir: Manifest-wide subdirectory (``local_mods``, ``local_files``), may be None
        user_relative: Path written in the module entry
        subdir_label: Name of the configured setting, for error messages

    Returns:
        ``root / configured_subdir / user_relative``

    Raises:
        PathSafetyError: If either relative segment is absolute or escapes upward
    """
    subdir = clean_path(configured_subdir or "")
    _check_relative(subdir, configured_subdir or "", subdir_label)
    relative = clean_path(user_relative)
    _check_relative(relative, user_relative, "local")
    return Path(clean_path(root)) / subdir / relative


def manifest_root(manifest_path: str | Path | None, game_dir: Path) -> Path:
    """Directory holding the manifest; the game directory when no manifest path is known."""
    if not manifest_path:
        return game_dir
    return Path(manifest_path).parent


def check_absolute(path: str) -> Path:
    """Canonicalize an absolute origin path and refuse unsafe ones.

    Raises:
        PathSafetyError: If the path doesn't exist, isn't absolute once resolved,
            or is the filesystem root
    """
    try:
        resolved = Path(path).resolve(strict=True)
    except OSError as e:
        raise PathSafetyError(f"path {path} doesn't exist\n -> {e}", context={"path": path}) from e
    if not resolved.is_absolute():
        raise PathSafetyError(f"path {path} is not absolute", context={"path": path})
    if resolved.parent == resolved:
        # root is too broad a base location
        raise PathSafetyError(
            f"path {path} is not allowed as 'absolute' origin base; use a subdirectory", context={"path": path}
        )
    return resolved


def _match_parts(pattern_parts: list[str], path_parts: list[str]) -> bool:
    if not pattern_parts:
        return not path_parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(_match_parts(rest, path_parts[i:]) for i in range(len(path_parts) + 1))
    if not path_parts:
        return False
    return fnmatchcase(path_parts[0], head) and _match_parts(rest, path_parts[1:])


def glob_matches(pattern: str, relative: PurePath, is_dir: bool = False) -> bool:
    """Case-insensitive gitignore-style match of a path relative to the walk root.

    A pattern without ``/`` matches the base name at any depth; a pattern
    with ``/`` is anchored and matched per component (``**`` spans components).
    A trailing ``/`` restricts the pattern to directories.

    Example:
        >>> glob_matches("*.TP2", PurePath("mymod/setup-mymod.tp2"))
        True
        >>> glob_matches("*/data", PurePath("repo-v1/data"))
        True
        >>> glob_matches("*/data", PurePath("repo-v1/mod/data"))
        False
        >>> glob_matches("data/", PurePath("data"), is_dir=False)
        False
    """
    pattern = pattern.strip().lower()
    if pattern.endswith("/") and not is_dir:
        return False
    pattern = pattern.strip("/")
    parts = [part.lower() for part in relative.parts]
    if not pattern or not parts:
        return False
    if "/" not in pattern:
        return fnmatchcase(parts[-1], pattern)
    return _match_parts([part for part in pattern.split("/") if part], parts)


def walk_at_depth(base: Path, depth: int) -> list[Path]:
    """Entries exactly ``depth`` levels below ``base`` (depth 1 = direct children)."""
    level = [base]
    for _ in range(depth):
        level = [child for parent in level if parent.is_dir() for child in sorted(parent.iterdir())]
    return level


def walk_matching(base: Path, pattern: str) -> list[Path]:
    """Files anywhere under ``base`` matching ``pattern``."""
    return [
        path for path in sorted(base.rglob("*")) if not path.is_dir() and glob_matches(pattern, path.relative_to(base))
    ]


def plan_tree(source: Path, dest: Path) -> list[tuple[Path, Path]]:
    """(source, destination) pairs for a file, or a directory and everything under it."""
    if not source.is_dir():
        return [(source, dest)]
    return [(source, dest)] + [(path, dest / path.relative_to(source)) for path in sorted(source.rglob("*"))]


def place_files(
    plan: Iterable[tuple[Path, Path]],
    operation: Callable[[Path, Path], object],
    allow_overwrite: bool = False,
) -> list[Path]:
    """Place planned entries with ``operation`` (e.g. shutil.move, shutil.copy2).

    Directories are created (merging with existing ones); files are handed to
    ``operation``. Collisions are checked for the whole plan before anything is
    written, so a collision leaves the destination untouched.

    Args:
        plan: (source, destination) pairs, parents before children
        operation: Callable placing one file
        allow_overwrite: Replace existing destination files

    Returns:
        Destination files written

    Raises:
        PlacementError: On collision (nothing written) or I/O failure
            (``context["placed"]`` lists files already written)
    """
    plan = list(plan)
    collisions = []
    planned: set[Path] = set()
    for src, dst in plan:
        if src.is_dir():
            if dst.exists() and not dst.is_dir():
                collisions.append(dst)
            continue
        if dst.is_dir() or (not allow_overwrite and (dst.exists() or dst.is_symlink() or dst in planned)):
            collisions.append(dst)
        planned.add(dst)

    if collisions:
        raise PlacementError(
            "Destination already exists:\n  " + "\n  ".join(str(path) for path in collisions),
            context={"collisions": [str(path) for path in collisions], "placed": []},
        )

    placed: list[Path] = []
    for src, dst in plan:
        try:
            if src.is_dir():
                dst.mkdir(parents=True, exist_ok=True)
                continue
            dst.parent.mkdir(parents=True, exist_ok=True)
            operation(src, dst)
        except OSError as e:
            raise PlacementError(
                f"Failed to place {src} at {dst}\n -> {e}",
                context={"placed": [str(path) for path in placed]},
            ) from e
        placed.append(dst)

    logger.debug(f"Placed {len(placed)} files")
    return placed
