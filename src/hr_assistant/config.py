"""Configuration for the HR assistant, read from the environment."""

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from .prompts import CHAT_SYSTEM_PROMPT, DATA_QUESTION_PATTERN, DEFAULT_SCHEMA_DESCRIPTION
from .providers import DEFAULT_PROVIDER, DEFAULT_PROVIDERS, ProviderConfig

logger = logging.getLogger(__name__)


def load_env_file() -> Optional[str]:
    """Load the first .env file found in the usual locations.

    Returns:
        Path of the loaded file, or None if none was found.
    """
    # 1. Directory of the main entry point
    main_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
    # 2. Parent directory of main (in case we're in a subdirectory)
    parent_dir = os.path.dirname(main_dir)
    # 3. Current working directory
    cwd = os.getcwd()
    # 4. Package directory (where this file is)
    package_dir = os.path.dirname(os.path.abspath(__file__))

    for directory in (main_dir, parent_dir, cwd, package_dir):
        env_path = os.path.join(directory, ".env")
        if os.path.exists(env_path):
            logger.info(f"Loading .env from {env_path}")
            load_dotenv(env_path)
            return env_path

    logger.info("No .env file found in expected locations")
    return None


def _env_seconds(name: str, default_ms: str) -> float:
    """Read a millisecond duration from the environment as seconds."""
    raw = os.getenv(name, default_ms)
    try:
        return float(raw) / 1000
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using {default_ms}ms")
        return float(default_ms) / 1000


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}, using {default}")
        return default


@dataclass
class AssistantConfig:
    """Every tunable of the chat pipeline."""

    providers: Dict[str, ProviderConfig] = field(default_factory=lambda: dict(DEFAULT_PROVIDERS))
    active_provider: str = DEFAULT_PROVIDER
    llm_timeout: float = 45.0
    query_timeout: float = 5.0
    max_rows: int = 50
    max_tool_rounds: int = 3
    window_size: int = 16
    summary_slack: int = 4
    refresh_trigger: int = 8
    refresh_lag: int = 6
    max_summary_merges: int = 8
    chat_temperature: float = 0.7
    chat_max_tokens: int = 4096
    stream_max_tokens: int = 8192
    token_chunk_size: int = 20
    chat_system_prompt: str = CHAT_SYSTEM_PROMPT
    schema_description: str = DEFAULT_SCHEMA_DESCRIPTION
    data_question_pattern: str = DATA_QUESTION_PATTERN
    database_url: Optional[str] = None

    @classmethod
    def from_env(cls, load_env: bool = True) -> "AssistantConfig":
        """Build a configuration from environment variables.

        Args:
            load_env: Load a .env file first.
        """
        if load_env:
            load_env_file()

        config = cls(
            active_provider=os.getenv("HR_ASSISTANT_PROVIDER", DEFAULT_PROVIDER) or DEFAULT_PROVIDER,
            llm_timeout=_env_seconds("HR_ASSISTANT_TIMEOUT", "45000"),
            query_timeout=_env_seconds("HR_ASSISTANT_QUERY_TIMEOUT", "5000"),
            window_size=_env_int("HR_ASSISTANT_WINDOW", 16),
            database_url=os.getenv("DATABASE_URL") or None,
        )

        if config.active_provider not in config.providers:
            logger.warning(
                f"Unknown provider {config.active_provider!r}, falling back to {DEFAULT_PROVIDER}"
            )
            config.active_provider = DEFAULT_PROVIDER

        configured = [name for name, p in config.providers.items() if p.is_configured]
        if configured:
            logger.info(f"Configured providers: {', '.join(configured)}")
        else:
            logger.warning("No AI provider API key found. Please check your .env file.")
        return config
