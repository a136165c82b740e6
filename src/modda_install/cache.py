"""Archive cache location.

Per KERNEL_PHILOSOPHY: Where the cache lives is app policy (config); eviction
is not handled here at all.
"""

import logging
import tempfile
from pathlib import Path
from pathlib import PurePath

from .settings import Config

logger = logging.getLogger(__name__)


class DirectoryCache:
    """Cache rooted at a single directory (implements CacheProtocol)."""

    def __init__(self, root: Path):
        self.root = root

    def join(self, subdir: PurePath) -> Path:
        return self.root / subdir

    @classmethod
    def from_config(cls, config: Config) -> "DirectoryCache":
        """Cache at ``archive_cache`` if configured, else under the system temp dir.

        Example:
            >>> cache = DirectoryCache.from_config(Config(archive_cache="~/.cache/modda"))
            >>> cache.join(PurePath("http/example.com"))
            PosixPath('/home/me/.cache/modda/http/example.com')
        """
        if config.archive_cache is None:
            root = Path(tempfile.gettempdir()) / "modda-cache"
            logger.debug(f"No archive_cache configured, using {root}")
        else:
            root = Path(config.archive_cache).expanduser()
        return cls(root)
