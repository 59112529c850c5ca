"""Configuration models for gtdorg."""

from pydantic import BaseModel, Field, field_validator, model_validator
from pathlib import Path
import yaml

from org_outline.headings import DEFAULT_KEYWORDS
from org_outline.identity import DEFAULT_ID_KEY


class GtdConfig(BaseModel):
    """Configuration for the GTD document tree."""

    root: str = Field(
        default="~/Documents/GTD",
        description="Directory holding the .org documents"
    )

    inbox_file: str = Field(
        default="Inbox.org",
        description="Inbox document, relative to root"
    )

    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["Archive*", "*.archive.org", "Deleted*", ".*"],
        description="Glob patterns (matched against path parts) skipped by corpus scans"
    )

    @field_validator("root")
    @classmethod
    def expand_root(cls, v: str) -> str:
        """Expand ~ in the root path (existence is checked when it is used)."""
        return str(Path(v).expanduser())

    @property
    def root_path(self) -> Path:
        return Path(self.root).expanduser()

    @property
    def inbox_path(self) -> Path:
        return self.root_path / self.inbox_file

    model_config = {"frozen": True}


class OutlineConfig(BaseModel):
    """Configuration for heading state keywords."""

    keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_KEYWORDS),
        min_length=1,
        description="Closed set of state keywords"
    )

    done_keywords: list[str] = Field(
        default_factory=lambda: ["DONE", "CANCELLED"],
        description="Keywords that mark a heading as finished"
    )

    @field_validator("keywords")
    @classmethod
    def validate_keywords(cls, v: list[str]) -> list[str]:
        """Keywords must be single uppercase-ish tokens without whitespace."""
        for keyword in v:
            if not keyword or any(ch.isspace() for ch in keyword):
                raise ValueError(f"Invalid state keyword: {keyword!r}")
        return v

    @model_validator(mode="after")
    def done_keywords_are_keywords(self) -> "OutlineConfig":
        """Every done keyword has to be one of the configured keywords."""
        unknown = [k for k in self.done_keywords if k not in self.keywords]
        if unknown:
            raise ValueError(
                f"done_keywords not listed in keywords: {', '.join(unknown)}"
            )
        return self

    @property
    def default_done(self) -> str:
        """Keyword a completed, non-repeating heading switches to."""
        return self.done_keywords[0] if self.done_keywords else "DONE"

    model_config = {"frozen": True}


class IdentityConfig(BaseModel):
    """Configuration for heading identifiers."""

    property_key: str = Field(
        default=DEFAULT_ID_KEY,
        pattern=r"^[^:\s]+$",
        description="Properties key holding the identifier"
    )

    cache_max_age_seconds: int = Field(
        default=300,
        ge=0,
        description="How long a corpus identifier index is trusted before a rescan"
    )

    max_attempts: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Regeneration attempts before giving up on a colliding identifier"
    )

    cache_file: str = Field(
        default="~/.cache/gtdorg/identity.json",
        description="Where the corpus identifier index is kept between runs"
    )

    @field_validator("cache_file")
    @classmethod
    def expand_cache_file(cls, v: str) -> str:
        return str(Path(v).expanduser())

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_file).expanduser()

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for gtdorg."""

    gtd: GtdConfig = Field(default_factory=GtdConfig, description="Document tree settings")
    outline: OutlineConfig = Field(default_factory=OutlineConfig, description="Keyword settings")
    identity: IdentityConfig = Field(default_factory=IdentityConfig, description="Identifier settings")

    @classmethod
    def load(cls, path: Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            path: Path to config.yaml file

        Returns:
            Validated Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        if not path.exists():
            raise FileNotFoundError(
                f"Configuration file not found at {path}\n\n"
                f"Please create the file with the following format:\n\n"
                f"gtd:\n"
                f"  root: ~/Documents/GTD\n"
                f"  inbox_file: Inbox.org\n\n"
                f"outline:\n"
                f"  keywords: [NEXT, TODO, WAITING, SOMEDAY, DONE, PROJECT, CANCELLED]\n\n"
                f"identity:\n"
                f"  property_key: TASK_ID\n"
            )

        with open(path) as f:
            data = yaml.safe_load(f)

        return cls(**(data or {}))

    model_config = {"frozen": True}
