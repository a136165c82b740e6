"""Source resolver - Map source descriptors to cache keys and archive names.

Pure functions: no filesystem or network access. The cache root itself is app
policy (injected through CacheProtocol); only the relative key is derived here.

Every function matches all Source variants so that adding a variant shows up
as an unhandled case in each of them.
"""

from pathlib import PurePath
from typing import assert_never
from urllib.parse import unquote
from urllib.parse import urlsplit

from .exceptions import SourceResolutionError
from .schema import AbsoluteSource
from .schema import BranchDescriptor
from .schema import CommitDescriptor
from .schema import GithubSource
from .schema import HttpSource
from .schema import LocalSource
from .schema import ReleaseDescriptor
from .schema import Source
from .schema import TagDescriptor


GITHUB_BASE = "https://github.com"


def _url_host(url: str) -> str:
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError as e:
        raise SourceResolutionError(
            f"Couldn't parse location url {url}\n -> {e}", context={"url": url}
        ) from e
    if not parts.scheme or not host:
        raise SourceResolutionError(f"Invalid http source {url}", context={"url": url})
    return host


def _url_file_name(url: str) -> str:
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise SourceResolutionError(f"Couldn't parse url {url}\n -> {e}", context={"url": url}) from e
    if not parts.scheme:
        raise SourceResolutionError(f"Couldn't parse url {url}", context={"url": url})
    last_segment = parts.path.rsplit("/", 1)[-1]
    if not last_segment:
        raise SourceResolutionError(
            f"Couldn't decide archive name for url {url} - provide one with 'rename' field",
            context={"url": url},
        )
    return unquote(last_segment, errors="replace")


def save_subdir(source: Source) -> PurePath:
    """Cache subdirectory for a source.

    Args:
        source: Source descriptor

    Returns:
        ``http/<host>`` or ``github/<user>/<repository>``; empty path for
        on-disk sources (they are not cached)

    Raises:
        SourceResolutionError: If an http URL can't be parsed or has no host
    """
    match source:
        case HttpSource(http=url):
            return PurePath("http") / _url_host(url)
        case GithubSource(github_user=user, repository=repository):
            return PurePath("github") / user / repository
        case AbsoluteSource() | LocalSource():
            return PurePath()
        case _:
            assert_never(source)


def save_name(source: Source, module_name: str) -> PurePath:
    """File name the archive is saved under in the cache.

    Args:
        source: Source descriptor
        module_name: Module name (used for GitHub generated archives)

    Returns:
        Archive file name; empty path for on-disk sources

    Raises:
        SourceResolutionError: If an http URL has no file name and no ``rename``

    Example:
        >>> save_name(HttpSource(http="http://example.com/dir/pkg_v1.zip"), "m1")
        PurePosixPath('pkg_v1.zip')
        >>> save_name(GithubSource(github_user="u", repository="r", tag="v2"), "m2")
        PurePosixPath('m2-v2.zip')
    """
    match source:
        case HttpSource(rename=str() as rename):
            return PurePath(rename)
        case HttpSource(http=url):
            return PurePath(_url_file_name(url))
        case GithubSource(descriptor=descriptor):
            match descriptor:
                case ReleaseDescriptor(asset=asset):
                    return PurePath(asset)
                case CommitDescriptor(commit=commit):
                    return PurePath(f"{module_name}-{commit}.zip")
                case BranchDescriptor(branch=branch):
                    return PurePath(f"{module_name}-{branch}.zip")
                case TagDescriptor(tag=tag):
                    return PurePath(f"{module_name}-{tag}.zip")
                case _:
                    assert_never(descriptor)
        case AbsoluteSource() | LocalSource():
            return PurePath()
        case _:
            assert_never(source)


def default_strip_leading(source: Source) -> int:
    """Leading directories to strip when the layout doesn't say.

    GitHub-generated commit/branch/tag zips wrap everything in a single
    ``<repo>-<ref>/`` directory; release assets carry no such guarantee.
    """
    match source:
        case GithubSource(descriptor=CommitDescriptor() | BranchDescriptor() | TagDescriptor()):
            return 1
        case GithubSource() | HttpSource() | AbsoluteSource() | LocalSource():
            return 0
        case _:
            assert_never(source)


def download_url(source: Source) -> str:
    """URL the downloader fetches for a network source.

    Raises:
        SourceResolutionError: If the source is not downloadable (absolute/local)
    """
    match source:
        case HttpSource(http=url):
            return url
        case GithubSource(github_user=user, repository=repository, descriptor=descriptor):
            repo_url = f"{GITHUB_BASE}/{user}/{repository}"
            match descriptor:
                case ReleaseDescriptor(release=None, asset=asset):
                    return f"{repo_url}/releases/latest/download/{asset}"
                case ReleaseDescriptor(release=release, asset=asset):
                    return f"{repo_url}/releases/download/{release}/{asset}"
                case CommitDescriptor(commit=commit):
                    return f"{repo_url}/archive/{commit}.zip"
                case BranchDescriptor(branch=branch):
                    return f"{repo_url}/archive/refs/heads/{branch}.zip"
                case TagDescriptor(tag=tag):
                    return f"{repo_url}/archive/refs/tags/{tag}.zip"
                case _:
                    assert_never(descriptor)
        case AbsoluteSource() | LocalSource():
            raise SourceResolutionError(
                f"Source {source!r} is on disk and has no download url", context={"source": repr(source)}
            )
        case _:
            assert_never(source)
