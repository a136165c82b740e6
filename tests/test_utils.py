"""Tests for path safety, glob matching and file placement helpers."""

import shutil
import tempfile
from pathlib import Path
from pathlib import PurePath

import pytest
from modda_install import PathSafetyError
from modda_install import PlacementError
from modda_install.utils import check_absolute
from modda_install.utils import clean_path
from modda_install.utils import glob_matches
from modda_install.utils import manifest_root
from modda_install.utils import place_files
from modda_install.utils import plan_tree
from modda_install.utils import safe_join
from modda_install.utils import walk_at_depth
from modda_install.utils import walk_matching


def test_clean_path():
    """Dot components are folded without touching the filesystem."""
    assert clean_path("mods/./a/../b") == PurePath("mods/b")
    assert clean_path("a/../../escape") == PurePath("../escape")
    assert clean_path("") == PurePath()


def test_safe_join_local_mod():
    """Manifest dir, configured subdir and the module's path are joined in order."""
    result = safe_join(Path("/home/me"), "my_mods", "some/path/file.zip", subdir_label="local_mods")
    assert result == Path("/home/me/my_mods/some/path/file.zip")


def test_safe_join_without_configured_subdir():
    """A missing configured subdir joins directly under the root."""
    assert safe_join(Path("/home/me"), None, "mod.zip") == Path("/home/me/mod.zip")


@pytest.mark.parametrize("configured", ["../escape", "/etc", "a/../../escape"])
def test_safe_join_rejects_unsafe_configured_subdir(configured):
    """The configured subdir must stay inside the manifest dir."""
    with pytest.raises(PathSafetyError, match="local_mods"):
        safe_join(Path("/home/me"), configured, "mod.zip", subdir_label="local_mods")


@pytest.mark.parametrize("relative", ["../../etc/passwd", "/etc/passwd", "a/../../x.zip"])
def test_safe_join_rejects_unsafe_user_path(relative):
    """The module's own path must stay inside the configured subdir."""
    with pytest.raises(PathSafetyError):
        safe_join(Path("/home/me"), "my_mods", relative)


def test_safe_join_allows_inner_dotdot():
    """``..`` that stays inside its segment is fine."""
    assert safe_join(Path("/home/me"), "mods", "a/../b.zip") == Path("/home/me/mods/b.zip")


def test_manifest_root(tmp_path):
    """Paths resolve next to the manifest, or in the game dir without one."""
    assert manifest_root("/home/me/install.yml", tmp_path) == Path("/home/me")
    assert manifest_root(None, tmp_path) == tmp_path


def test_check_absolute(tmp_path):
    """Existing absolute paths are canonicalized."""
    (tmp_path / "files").mkdir()
    assert check_absolute(str(tmp_path / "files" / ".." / "files")) == (tmp_path / "files").resolve()


def test_check_absolute_refuses_root_and_missing(tmp_path):
    """Filesystem root and missing paths are refused."""
    with pytest.raises(PathSafetyError, match="not allowed"):
        check_absolute("/")

    with pytest.raises(PathSafetyError, match="doesn't exist"):
        check_absolute(str(tmp_path / "missing"))


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("mymod", "mymod", True),
        ("mymod", "MyMod", True),
        ("MYMOD.TP2", "mymod.tp2", True),
        ("setup-mymod.tp2", "other/setup-mymod.tp2", True),
        ("*/mymod", "repo-v1/mymod", True),
        ("*/mymod", "repo-v1/inner/mymod", False),
        ("*/mymod", "mymod", False),
        ("*/*", "modname/data", True),
        ("**/*.tra", "mod/lang/en/setup.tra", True),
        ("mymod", "mymod.tp2", False),
        ("", "mymod", False),
        ("   ", "mymod", False),
    ],
)
def test_glob_matches(pattern, path, expected):
    """Case-insensitive, basename-matching for slashless patterns, anchored otherwise."""
    assert glob_matches(pattern, PurePath(path)) is expected


def test_walk_helpers(tmp_path):
    """Depth walk returns entries at exactly that depth; pattern walk returns files."""
    (tmp_path / "a" / "b").mkdir(parents=True)
    (tmp_path / "a" / "b" / "x.itm").write_text("x")
    (tmp_path / "a" / "y.itm").write_text("y")
    (tmp_path / "top.txt").write_text("t")

    assert walk_at_depth(tmp_path, 1) == [tmp_path / "a", tmp_path / "top.txt"]
    assert walk_at_depth(tmp_path, 2) == [tmp_path / "a" / "b", tmp_path / "a" / "y.itm"]
    assert walk_matching(tmp_path, "*.itm") == [tmp_path / "a" / "b" / "x.itm", tmp_path / "a" / "y.itm"]


def test_place_files_merges_into_existing_dirs():
    """Directories merge; new files are placed."""
    with tempfile.TemporaryDirectory() as tmpdir:
        src = Path(tmpdir) / "src" / "mod"
        (src / "sub").mkdir(parents=True)
        (src / "sub" / "new.txt").write_text("new")
        dest = Path(tmpdir) / "dest" / "mod"
        (dest / "sub").mkdir(parents=True)
        (dest / "sub" / "old.txt").write_text("old")

        placed = place_files(plan_tree(src, dest), shutil.copy2)

        assert placed == [dest / "sub" / "new.txt"]
        assert (dest / "sub" / "old.txt").read_text() == "old"
        assert (dest / "sub" / "new.txt").read_text() == "new"


def test_place_files_collision_writes_nothing():
    """A single collision aborts the whole plan before any write."""
    with tempfile.TemporaryDirectory() as tmpdir:
        src = Path(tmpdir) / "src"
        src.mkdir()
        (src / "a.txt").write_text("new a")
        (src / "b.txt").write_text("new b")
        dest = Path(tmpdir) / "dest"
        dest.mkdir()
        (dest / "b.txt").write_text("original")

        plan = [(src / "a.txt", dest / "a.txt"), (src / "b.txt", dest / "b.txt")]
        with pytest.raises(PlacementError) as exc_info:
            place_files(plan, shutil.copy2)

        assert exc_info.value.context["collisions"] == [str(dest / "b.txt")]
        assert exc_info.value.context["placed"] == []
        assert not (dest / "a.txt").exists()
        assert (dest / "b.txt").read_text() == "original"


def test_place_files_overwrite_allowed():
    """With overwrite allowed, existing files are replaced."""
    with tempfile.TemporaryDirectory() as tmpdir:
        src = Path(tmpdir) / "a.txt"
        src.write_text("new")
        dest = Path(tmpdir) / "out" / "a.txt"
        dest.parent.mkdir()
        dest.write_text("old")

        place_files([(src, dest)], shutil.copy2, allow_overwrite=True)

        assert dest.read_text() == "new"


def test_place_files_duplicate_destination_collides(tmp_path):
    """Two sources mapped onto one destination is a collision without overwrite."""
    (tmp_path / "x").mkdir()
    (tmp_path / "y").mkdir()
    (tmp_path / "x" / "same.txt").write_text("x")
    (tmp_path / "y" / "same.txt").write_text("y")
    out = tmp_path / "out"

    with pytest.raises(PlacementError):
        place_files(
            [(tmp_path / "x" / "same.txt", out / "same.txt"), (tmp_path / "y" / "same.txt", out / "same.txt")],
            shutil.copy2,
        )
    assert not out.exists()


def test_place_files_reports_partial_progress(tmp_path):
    """An I/O failure mid-plan reports the files already written."""
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "b.txt").write_text("b")
    out = tmp_path / "out"
    calls = []

    def flaky_copy(src, dst):
        if calls:
            raise OSError("disk full")
        calls.append(dst)
        shutil.copy2(src, dst)

    with pytest.raises(PlacementError, match="disk full") as exc_info:
        place_files([(tmp_path / "a.txt", out / "a.txt"), (tmp_path / "b.txt", out / "b.txt")], flaky_copy)

    assert exc_info.value.context["placed"] == [str(out / "a.txt")]


def test_glob_trailing_slash_matches_directories_only():
    """``data/`` selects a directory named data, never a file of that name."""
    assert glob_matches("data/", PurePath("data"), is_dir=True)
    assert not glob_matches("data/", PurePath("data"), is_dir=False)
    assert glob_matches("*/data/", PurePath("repo-v1/data"), is_dir=True)
    assert not glob_matches("*/data/", PurePath("repo-v1/data"))
    assert glob_matches("data", PurePath("data"), is_dir=False)
