"""Tests for manifest records (source discrimination, locations, origins)."""

import pytest
from modda_install import AbsoluteOrigin
from modda_install import AbsoluteSource
from modda_install import BranchDescriptor
from modda_install import ConcreteLocation
from modda_install import GithubSource
from modda_install import HttpSource
from modda_install import LocalOrigin
from modda_install import LocalSource
from modda_install import Module
from modda_install import RefLocation
from modda_install import RefreshPolicy
from modda_install import ReleaseDescriptor
from modda_install import TagDescriptor
from modda_install.schema import FileModuleOrigin
from pydantic import TypeAdapter
from pydantic import ValidationError


def test_github_tag_location_from_flat_keys():
    """Flat manifest keys fold into a GitHub source with a tag descriptor."""
    location = ConcreteLocation.model_validate(
        {"github_user": "my_user", "repository": "my_repo", "tag": "v1.0", "layout": ["my_repo"]}
    )

    assert location.source == GithubSource(
        github_user="my_user", repository="my_repo", descriptor=TagDescriptor(tag="v1.0")
    )
    assert location.layout.layout == ["my_repo"]


def test_github_branch_and_release_descriptors():
    """Branch carries a refresh policy; release may omit the release name."""
    branch = ConcreteLocation.model_validate(
        {"github_user": "u", "repository": "r", "branch": "main", "refresh": "always"}
    )
    assert branch.source.descriptor == BranchDescriptor(branch="main", refresh=RefreshPolicy.ALWAYS)

    release = ConcreteLocation.model_validate({"github_user": "u", "repository": "r", "asset": "r.zip"})
    assert release.source.descriptor == ReleaseDescriptor(release=None, asset="r.zip")


def test_http_absolute_and_local_sources():
    """Each source kind is selected by its own key."""
    http = ConcreteLocation.model_validate({"http": "http://example.com/mod.zip", "rename": "m.zip"})
    assert http.source == HttpSource(http="http://example.com/mod.zip", rename="m.zip")

    absolute = ConcreteLocation.model_validate({"path": "/some/path/file.zip"})
    assert absolute.source == AbsoluteSource(path="/some/path/file.zip")

    local = ConcreteLocation.model_validate({"local": "mod.zip"})
    assert local.source == LocalSource(local="mod.zip")


def test_location_without_source_defaults_to_local():
    """No source keys at all means an empty local source."""
    location = ConcreteLocation.model_validate({"layout": ["mod"]})
    assert location.source == LocalSource(local="")


def test_ambiguous_source_rejected():
    """Exactly one source kind may be present."""
    with pytest.raises(ValidationError, match="exactly one"):
        ConcreteLocation.model_validate({"http": "http://example.com/a.zip", "local": "a.zip"})


def test_ambiguous_github_descriptor_rejected():
    """Exactly one GitHub descriptor may be present."""
    with pytest.raises(ValidationError, match="exactly one"):
        ConcreteLocation.model_validate({"github_user": "u", "repository": "r", "tag": "v1", "branch": "main"})

    with pytest.raises(ValidationError, match="exactly one"):
        ConcreteLocation.model_validate({"github_user": "u", "repository": "r"})


def test_location_with_replace_and_precopy():
    """Replace specs keep their order; precopy is parsed."""
    location = ConcreteLocation.model_validate(
        {
            "github_user": "pseudo",
            "repository": "my-big-project",
            "tag": "v1",
            "replace": [
                {"file_globs": ["README.md"], "replace": "typpo", "with": "typo"},
                {"file_globs": ["*.tra"], "replace": "a", "with": "b"},
            ],
            "precopy": {"command": "./prepare.sh", "args": ["--fast"], "subdir": "tools"},
        }
    )

    assert [spec.replace for spec in location.replace] == ["typpo", "a"]
    assert location.replace[0].with_ == "typo"
    assert location.precopy.command == "./prepare.sh"
    assert location.precopy.subdir == "tools"


def test_module_location_kinds():
    """A mapping with ``ref`` is a reference, anything else is concrete."""
    module = Module.model_validate({"name": "MyMod", "location": {"ref": "shared"}})
    assert module.name == "mymod"
    assert module.location == RefLocation(ref="shared")

    module = Module.model_validate({"name": "aaa", "location": {"http": "http://example.com/my-mod"}})
    assert isinstance(module.location, ConcreteLocation)

    assert Module(name="bbb").location is None


def test_records_are_immutable():
    """Manifest records can't be modified after parsing."""
    source = HttpSource(http="http://example.com/a.zip")
    with pytest.raises(ValidationError):
        source.http = "http://other.example/b.zip"


def test_file_module_origins():
    """Origins are selected by key; local origins may carry a glob."""
    adapter = TypeAdapter(FileModuleOrigin)

    assert adapter.validate_python({"absolute": "/data/files"}) == AbsoluteOrigin(absolute="/data/files")
    assert adapter.validate_python({"local": "my_subdir", "glob": "*.itm"}) == LocalOrigin(
        local="my_subdir", glob="*.itm"
    )
    with pytest.raises(ValidationError):
        adapter.validate_python({"absolute": "/a", "local": "b"})
