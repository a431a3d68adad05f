"""Configuration module for the Bear Notes MCP server."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from bear_mcp import __version__
from bear_mcp.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls
_USER_ENV = Path.home() / ".bear-mcp" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

# Bear's Core Data store on macOS
_DEFAULT_BEAR_DB = (
    Path.home()
    / "Library"
    / "Group Containers"
    / "9K33E3U3T4.net.shinyfrog.bear"
    / "Application Data"
    / "database.sqlite"
)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class BearMcpConfig(BaseModel):
    """Configuration for the Bear Notes MCP server."""

    # Database configuration (opened read-only)
    bear_db_path: Path = Field(
        default_factory=lambda: Path(os.getenv("BEAR_DB_PATH", str(_DEFAULT_BEAR_DB)))
    )
    # Server configuration
    server_name: str = Field(default=os.getenv("BEAR_MCP_SERVER_NAME", "bear-notes-mcp"))
    server_version: str = Field(default=__version__)
    # Logging
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("BEAR_MCP_LOG_DIR")) if os.getenv("BEAR_MCP_LOG_DIR") else None
        )
    )

    # Search limits
    default_search_limit: int = Field(
        default_factory=lambda: _env_int("BEAR_MCP_DEFAULT_SEARCH_LIMIT", 20)
    )
    max_search_limit: int = Field(
        default_factory=lambda: _env_int("BEAR_MCP_MAX_SEARCH_LIMIT", 100)
    )
    # Upper bound on notes pulled from the repository per call
    max_candidates: int = Field(
        default_factory=lambda: _env_int("BEAR_MCP_MAX_CANDIDATES", 5000)
    )

    # Relevance scoring
    title_weight: float = Field(
        default_factory=lambda: _env_float("BEAR_MCP_TITLE_WEIGHT", 3.0)
    )
    content_weight: float = Field(
        default_factory=lambda: _env_float("BEAR_MCP_CONTENT_WEIGHT", 1.0)
    )
    phrase_bonus: float = Field(
        default_factory=lambda: _env_float("BEAR_MCP_PHRASE_BONUS", 2.0)
    )
    # Added once per note tag that contains a query term
    tag_weight: float = Field(
        default_factory=lambda: _env_float("BEAR_MCP_TAG_WEIGHT", 4.5)
    )

    # Snippets
    snippet_max_chars: int = Field(
        default_factory=lambda: _env_int("BEAR_MCP_SNIPPET_MAX_CHARS", 160)
    )
    max_snippets: int = Field(default_factory=lambda: _env_int("BEAR_MCP_MAX_SNIPPETS", 3))

    # Similarity
    signature_size: int = Field(
        default_factory=lambda: _env_int("BEAR_MCP_SIGNATURE_SIZE", 10)
    )
    default_min_similarity: float = Field(
        default_factory=lambda: _env_float("BEAR_MCP_MIN_SIMILARITY", 0.1)
    )

    @model_validator(mode="after")
    def _validate_search_config(self) -> "BearMcpConfig":
        """Reject settings that would break ranking or result bounds."""
        for name in (
            "default_search_limit",
            "max_search_limit",
            "max_candidates",
            "max_snippets",
            "signature_size",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.default_search_limit > self.max_search_limit:
            raise ValueError("default_search_limit cannot exceed max_search_limit")
        if self.title_weight <= 0 or self.content_weight <= 0:
            raise ValueError("title_weight and content_weight must be > 0")
        if self.phrase_bonus < 0:
            raise ValueError("phrase_bonus must be >= 0")
        if self.tag_weight < 0:
            raise ValueError("tag_weight must be >= 0")
        if self.snippet_max_chars < 40:
            raise ValueError("snippet_max_chars must be >= 40")
        if not 0.0 <= self.default_min_similarity <= 1.0:
            raise ValueError("default_min_similarity must be between 0 and 1")

        if self.title_weight < self.content_weight:
            logger.warning(
                "title_weight (%.2f) is lower than content_weight (%.2f); "
                "title hits will rank below body hits.",
                self.title_weight,
                self.content_weight,
            )
        return self

    def get_absolute_db_path(self) -> Path:
        """Get the Bear database path with ``~`` expanded."""
        return self.bear_db_path.expanduser().resolve()

    def require_db_path(self) -> Path:
        """Return the Bear database path, failing if the file is missing.

        Raises:
            ConfigurationError: If no database exists at the configured path.
        """
        db_path = self.get_absolute_db_path()
        if not db_path.is_file():
            raise ConfigurationError(
                f"Bear database not found: {db_path}", config_key="bear_db_path"
            )
        return db_path

    def get_db_url(self) -> str:
        """Get a read-only SQLite URL for the Bear database."""
        return f"sqlite:///file:{self.get_absolute_db_path()}?mode=ro&uri=true"


# Create a global config instance
config = BearMcpConfig()
