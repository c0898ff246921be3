"""Configuration management with environment variables and CLI overrides."""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.table import Table

from verse_copilot.errors import ConfigurationInvalidError

logger = structlog.get_logger()

# Tier -> (surrounding verses, similar pairs)
CONTEXT_SIZE_COUNTS: dict[str, tuple[int, int]] = {
    "small": (3, 5),
    "medium": (5, 7),
    "large": (7, 10),
}

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class LLMConfig(BaseSettings):
    """Completion backend (OpenAI-compatible) configuration."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = Field(default="", description="API key sent as bearer token")
    base_url: str = Field(default="https://api.openai.com/v1", description="Endpoint base URL")
    model: str = Field(default="gpt-4o", description="Model name")
    max_tokens: int = Field(default=2048, description="Max tokens per completion")
    temperature: float = Field(default=0.8, description="Temperature for generation")


class CompletionConfig(BaseSettings):
    """Verse completion configuration."""

    model_config = SettingsConfigDict(env_prefix="COMPLETION_")

    context_size: str = Field(
        default="large", description="Context tier: small, medium or large"
    )
    source_text: str = Field(
        default="",
        description="Source corpus file name under .project/sourceTextBibles, or absolute path",
    )
    resources_dir: str = Field(
        default="", description="Directory of additional free-text resources"
    )
    dump_messages: bool = Field(
        default=False, description="Write the last prompt to messages.txt in the project"
    )


class SimilarityConfig(BaseSettings):
    """Similar-pairs service configuration."""

    model_config = SettingsConfigDict(env_prefix="SIMILARITY_")

    url: str = Field(default="", description="Similarity service base URL (empty = disabled)")
    timeout_seconds: float = Field(default=2.0, description="Deadline for a similarity lookup")
    cache_ttl_seconds: float = Field(default=600.0, description="Cached result lifetime")
    sweep_interval_seconds: float = Field(
        default=120.0, description="Interval between expired-entry sweeps"
    )


# ---------------------------------------------------------------------------
# Main AppConfig with SECTIONS registry
# ---------------------------------------------------------------------------

# Maps section key → AppConfig attribute name.
# ConfigService uses this to auto-generate serialization and prefix maps.
SECTIONS: dict[str, str] = {
    "llm": "llm",
    "completion": "completion",
    "similarity": "similarity",
}


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")
    project_dir: Path = Field(default=Path("."), description="Translation project directory")

    # Sub-configs
    llm: LLMConfig = Field(default_factory=LLMConfig)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    similarity: SimilarityConfig = Field(default_factory=SimilarityConfig)

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "AppConfig":
        """Load configuration from environment and .env file."""
        from dotenv import load_dotenv

        if env_file and env_file.exists():
            load_dotenv(env_file)
        else:
            # Try to find .env in current directory or parent directories
            load_dotenv()

        return cls(
            llm=LLMConfig(),
            completion=CompletionConfig(),
            similarity=SimilarityConfig(),
        )

    def validate_for_completion(self) -> None:
        """Check the settings a completion request cannot run without.

        Raises:
            ConfigurationInvalidError: naming every missing setting
        """
        missing = []
        if not self.llm.base_url:
            missing.append("endpoint (OPENAI_BASE_URL)")
        if not self.llm.model:
            missing.append("model (OPENAI_MODEL)")
        if not self.llm.api_key:
            missing.append("API key (OPENAI_API_KEY)")
        if self.llm.max_tokens <= 0:
            missing.append("max tokens (OPENAI_MAX_TOKENS > 0)")
        if missing:
            raise ConfigurationInvalidError("Missing or invalid settings: " + ", ".join(missing))

    def similarity_signature(self) -> tuple:
        """Settings whose change makes cached similarity results stale."""
        return (
            self.similarity.url,
            self.completion.context_size,
            str(self.project_dir),
        )


def context_size_counts(context_size: str) -> tuple[int, int]:
    """Map a context tier to (surrounding verse count, similar pair count).

    Unknown tiers fall back to medium.
    """
    counts = CONTEXT_SIZE_COUNTS.get(context_size)
    if counts is None:
        logger.warning("unknown_context_size", context_size=context_size, fallback="medium")
        return CONTEXT_SIZE_COUNTS["medium"]
    return counts


# ---------------------------------------------------------------------------
# Global config singleton (CLI and API entry points only)
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def mask_key(value: str) -> str:
    """Show only the start of an API key."""
    return value[:8] + "..." if len(value) > 8 else "***"


def log_config_summary(config: AppConfig, console: Optional[Console] = None) -> None:
    """Print a table of the effective settings."""
    console = console or Console()

    console.print("\n[bold blue]=== verse-copilot Configuration ===[/bold blue]")

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Source", style="dim")

    neighbors, pairs = context_size_counts(config.completion.context_size)
    rows = [
        ("Project", str(config.project_dir), "PROJECT_DIR"),
        ("Endpoint", config.llm.base_url, "OPENAI_BASE_URL"),
        ("Model", config.llm.model, "OPENAI_MODEL"),
        ("API Key", mask_key(config.llm.api_key) if config.llm.api_key else "(not set)", "OPENAI_API_KEY"),
        ("Max Tokens", str(config.llm.max_tokens), "OPENAI_MAX_TOKENS"),
        ("Temperature", str(config.llm.temperature), "OPENAI_TEMPERATURE"),
        (
            "Context Size",
            f"{config.completion.context_size} ({neighbors} verses, {pairs} pairs)",
            "COMPLETION_CONTEXT_SIZE",
        ),
        ("Source Text", config.completion.source_text or "(first *.bible)", "COMPLETION_SOURCE_TEXT"),
        ("Resources", config.completion.resources_dir or "(none)", "COMPLETION_RESOURCES_DIR"),
        ("Similarity", config.similarity.url or "(disabled)", "SIMILARITY_URL"),
        ("Similarity Timeout", f"{config.similarity.timeout_seconds}s", "SIMILARITY_TIMEOUT_SECONDS"),
    ]
    for row in rows:
        table.add_row(*row)

    console.print(table)
    console.print()
