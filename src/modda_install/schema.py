"""Module manifest schema - Modules, locations and sources.

Per KERNEL_PHILOSOPHY: Manifest parsing is the app's job; this library only
defines the immutable records the installation pipeline consumes.

Sources are a closed set of variants. In the manifest they are written as flat
keys inside a location mapping, e.g.::

    location:
      github_user: some-user
      repository: some-mod
      tag: v1.2
      layout: ["some-mod"]

The active variant is chosen by which keys are present; exactly one must match.
"""

from enum import Enum
from typing import Annotated
from typing import Any
from typing import ClassVar

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Discriminator
from pydantic import Field
from pydantic import Tag
from pydantic import field_validator
from pydantic import model_validator

from .layout import Layout

# Key(s) whose presence selects a variant
_SOURCE_KEYS = {
    "http": {"http"},
    "github": {"github_user"},
    "absolute": {"path"},
    "local": {"local"},
}
_SOURCE_FIELDS = {
    "http",
    "rename",
    "github_user",
    "repository",
    "release",
    "asset",
    "commit",
    "branch",
    "refresh",
    "tag",
    "path",
    "local",
}
_DESCRIPTOR_KEYS = {
    "release": {"release", "asset"},
    "commit": {"commit"},
    "branch": {"branch"},
    "tag": {"tag"},
}
_DESCRIPTOR_FIELDS = {"release", "asset", "commit", "branch", "refresh", "tag"}
_ORIGIN_KEYS = {
    "absolute": {"absolute"},
    "local": {"local"},
}


def _kinds_present(data: dict, keys_by_kind: dict[str, set[str]]) -> list[str]:
    return [kind for kind, keys in keys_by_kind.items() if keys & data.keys()]


def _discriminator(keys_by_kind: dict[str, set[str]]):
    """Build a pydantic discriminator selecting a variant by key presence."""

    def pick(value: Any) -> str | None:
        if isinstance(value, dict):
            kinds = _kinds_present(value, keys_by_kind)
            return kinds[0] if len(kinds) == 1 else None
        return getattr(value, "kind", None)

    return Discriminator(pick)


class RefreshPolicy(str, Enum):
    """When a cached branch archive should be fetched again (downloader policy)."""

    NEVER = "never"
    ALWAYS = "always"


class ReleaseDescriptor(BaseModel):
    """GitHub release asset."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "release"
    release: str | None = None
    asset: str


class CommitDescriptor(BaseModel):
    """GitHub archive of a commit."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "commit"
    commit: str


class BranchDescriptor(BaseModel):
    """GitHub archive of a branch head."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "branch"
    branch: str
    refresh: RefreshPolicy = RefreshPolicy.NEVER


class TagDescriptor(BaseModel):
    """GitHub archive of a tag."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "tag"
    tag: str


GithubDescriptor = Annotated[
    Annotated[ReleaseDescriptor, Tag("release")]
    | Annotated[CommitDescriptor, Tag("commit")]
    | Annotated[BranchDescriptor, Tag("branch")]
    | Annotated[TagDescriptor, Tag("tag")],
    _discriminator(_DESCRIPTOR_KEYS),
]


class HttpSource(BaseModel):
    """Archive at a plain http(s) URL."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "http"
    http: str
    rename: str | None = None


class GithubSource(BaseModel):
    """Archive hosted on GitHub (release asset, or generated commit/branch/tag zip)."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "github"
    github_user: str
    repository: str
    descriptor: GithubDescriptor

    @model_validator(mode="before")
    @classmethod
    def _fold_descriptor(cls, data: Any) -> Any:
        """Accept descriptor keys written flat next to github_user/repository."""
        if not isinstance(data, dict) or "descriptor" in data:
            return data
        kinds = _kinds_present(data, _DESCRIPTOR_KEYS)
        if len(kinds) != 1:
            raise ValueError(
                f"github source needs exactly one of release/asset, commit, branch, tag (found {kinds or 'none'})"
            )
        data = dict(data)
        data["descriptor"] = {key: data.pop(key) for key in list(data) if key in _DESCRIPTOR_FIELDS}
        return data


class AbsoluteSource(BaseModel):
    """Archive already on disk at an absolute path."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "absolute"
    path: str


class LocalSource(BaseModel):
    """Archive relative to the manifest's local mods directory."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "local"
    local: str = ""


Source = Annotated[
    Annotated[HttpSource, Tag("http")]
    | Annotated[GithubSource, Tag("github")]
    | Annotated[AbsoluteSource, Tag("absolute")]
    | Annotated[LocalSource, Tag("local")],
    _discriminator(_SOURCE_KEYS),
]


class PrecopyCommand(BaseModel):
    """Command run inside the unpacked archive before files are selected."""

    model_config = ConfigDict(frozen=True)

    command: str
    args: list[str] | None = None
    subdir: str | None = None


class PatchDesc(BaseModel):
    """Patch specification, interpreted by the patch engine only."""

    model_config = ConfigDict(frozen=True, extra="allow")


class ReplaceSpec(BaseModel):
    """Regex search/replace specification, interpreted by the replace engine only."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_globs: list[str] = Field(default_factory=list)
    replace: str
    with_: str = Field(alias="with")


class ConcreteLocation(BaseModel):
    """Where a module's archive comes from and how its files are laid out."""

    model_config = ConfigDict(frozen=True)

    source: Source = Field(default_factory=LocalSource)
    layout: Layout = Field(default_factory=Layout)
    patch: PatchDesc | None = None
    # Applied in order, after patch
    replace: list[ReplaceSpec] | None = None
    precopy: PrecopyCommand | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_source(cls, data: Any) -> Any:
        """Collect flat source keys into ``source``, enforcing exactly one variant."""
        if not isinstance(data, dict) or "source" in data:
            return data
        source = {key: value for key, value in data.items() if key in _SOURCE_FIELDS}
        if not source:
            return data
        kinds = _kinds_present(source, _SOURCE_KEYS)
        if len(kinds) != 1:
            raise ValueError(
                f"location needs exactly one of http, github_user, path, local (found {kinds or 'none'})"
            )
        rest = {key: value for key, value in data.items() if key not in _SOURCE_FIELDS}
        return {**rest, "source": source}


class RefLocation(BaseModel):
    """Named reference to a location defined elsewhere in the manifest."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "ref"
    ref: str


def _location_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "ref" if "ref" in value else "concrete"
    return "ref" if isinstance(value, RefLocation) else "concrete"


Location = Annotated[
    Annotated[RefLocation, Tag("ref")] | Annotated[ConcreteLocation, Tag("concrete")],
    Discriminator(_location_kind),
]


class Module(BaseModel):
    """One installable unit of content."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: Location | None = None

    @field_validator("name")
    @classmethod
    def _lowercase_name(cls, value: str) -> str:
        return value.lower()


class AbsoluteOrigin(BaseModel):
    """Files copied from an absolute directory."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "absolute"
    absolute: str


class LocalOrigin(BaseModel):
    """Files copied from a directory under the manifest's local files directory."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = "local"
    local: str
    glob: str | None = None


FileModuleOrigin = Annotated[
    Annotated[AbsoluteOrigin, Tag("absolute")] | Annotated[LocalOrigin, Tag("local")],
    _discriminator(_ORIGIN_KEYS),
]


class Global(BaseModel):
    """Manifest-wide settings used to resolve manifest-relative paths."""

    model_config = ConfigDict(frozen=True)

    local_mods: str | None = None
    local_files: str | None = None
