"""Installer configuration - Parse the user's TOML config file.

Per AGENTS.md: Ruthless simplicity - standard library (tomllib), minimal fields.

Example config::

    archive_cache = "~/.cache/modda"
    extract_location = "~/.cache/modda/extract"

    [extractors.rar]
    command = "unrar"
    args = ["x", "${input}", "${target}"]
"""

import tomllib
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError

from .exceptions import ConfigurationError


class ExtractorCommand(BaseModel):
    """External extraction tool for one archive extension.

    ``${input}`` in args is replaced by the archive path, ``${target}`` by the
    extraction directory.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    args: list[str] = Field(default_factory=list)


class Config(BaseModel):
    """Installer configuration."""

    model_config = ConfigDict(frozen=True)

    archive_cache: str | None = None
    extract_location: str | None = None
    # Keyed by exact file extension, without the dot
    extractors: dict[str, ExtractorCommand] = Field(default_factory=dict)

    def extract_root(self) -> Path | None:
        """Configured extraction workspace root, ``~`` expanded."""
        if self.extract_location is None:
            return None
        return Path(self.extract_location).expanduser()

    @classmethod
    def from_toml(cls, config_path: Path) -> "Config":
        """
        Load configuration from a TOML file.

        Args:
            config_path: Path to config file

        Returns:
            Config instance

        Raises:
            ConfigurationError: If the file is missing, not valid TOML, or has invalid values
        """
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}", context={"path": str(config_path)})

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)
        except (tomllib.TOMLDecodeError, ValidationError) as e:
            raise ConfigurationError(
                f"Invalid config file {config_path}\n -> {e}", context={"path": str(config_path)}
            ) from e
