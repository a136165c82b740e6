"""Archive layout - Which archived entries become installed files.

A layout is a set of glob patterns plus a strip depth. The strip depth is the
number of leading directories (e.g. the ``repo-v1.0/`` wrapper GitHub adds to
generated zips) between the archive root and the entries to install.
"""

from typing import TYPE_CHECKING
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import field_validator

if TYPE_CHECKING:
    from .schema import Source


class GlobDesc(BaseModel):
    """Resolved patterns and strip depth for one module."""

    model_config = ConfigDict(frozen=True)

    patterns: list[str]
    strip: int


class Layout(BaseModel):
    """Layout as written in the manifest.

    Without explicit patterns, the conventional WeiDU mod layout is used: the
    module directory plus its ``.tp2`` files at the archive's top level.
    """

    model_config = ConfigDict(frozen=True)

    strip_leading: int | None = None
    layout: list[str] | None = None

    @field_validator("layout", mode="before")
    @classmethod
    def _single_pattern(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    def to_glob(self, module_name: str, source: "Source") -> GlobDesc:
        """Compute patterns addressing entries at depth ``strip + 1``.

        Args:
            module_name: Module name (used by the default layout)
            source: Module source (provides the default strip depth)

        Returns:
            GlobDesc with one ``*/`` prefix per stripped level on each non-blank pattern

        Example:
            >>> Layout(strip_leading=1, layout=["data"]).to_glob("mymod", source)
            GlobDesc(patterns=['*/data'], strip=1)
        """
        from .resolver import default_strip_leading

        strip = self.strip_leading if self.strip_leading is not None else default_strip_leading(source)
        if self.layout is None:
            patterns = [module_name, f"{module_name}.tp2", f"setup-{module_name}.tp2"]
        else:
            patterns = list(self.layout)
        prefix = "*/" * strip
        return GlobDesc(
            patterns=[f"{prefix}{pattern.strip().lstrip('/')}" if pattern.strip() else pattern for pattern in patterns],
            strip=strip,
        )
