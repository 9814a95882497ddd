"""Configuration management for The Signal ingestion pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    Credentials (checked at call time, not at startup):
        PERPLEXITY_API_KEY: Bearer token for the search upstream
        SOCIALDATA_API_KEY: Bearer token for the account-timeline upstream
        GEMINI_API_KEY: Google Gemini API key for the scorer

    Models:
        PERPLEXITY_MODEL: Search model name (default: sonar)
        SCORER_MODEL: PydanticAI model string for scoring (provider:model)

    Sources:
        SEARCH_QUERIES: ';'-separated topic queries (overrides built-in list)
        TWITTER_ACCOUNTS: ','-separated handles to monitor (overrides built-in list)

    Storage:
        DB_PATH: SQLite database file path

    Pipeline Behavior:
        POLL_INTERVAL_SECONDS: Delay between runs in continuous mode
        REQUEST_TIMEOUT_SECONDS: Timeout per upstream HTTP request
        SCORER_TIMEOUT_SECONDS: Timeout for the scoring request
        MAX_WORKERS: Connection pool limit for the fetch fan-out

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing

    Logging:
        LOG_LEVEL: Logging verbosity (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_BACKUP_COUNT: Number of rotated log files to keep
        LOG_MAX_BYTES: Max log file size in bytes (0 = time-based rotation)
        LOG_FORMAT: Log format ('text' or 'json' for structured logging)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Environment variable value or default
    """
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name
        default: Value to return if not set

    Returns:
        Parsed integer or default value

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _env_list(key: str, default: list[str], sep: str) -> list[str]:
    """Get a separator-delimited list from the environment.

    Blank entries are dropped. An unset or blank variable yields a copy
    of the default list.
    """
    val = os.environ.get(key, "")
    items = [part.strip() for part in val.split(sep) if part.strip()]
    return items or list(default)


# Topic queries sent to the search upstream, one request each
DEFAULT_SEARCH_QUERIES = [
    "AI model release announcement site:openai.com OR site:anthropic.com OR site:deepmind.com OR site:mistral.ai",
    "large language model research paper 2026",
    "AI policy regulation news 2026",
    "artificial intelligence industry news today",
    "AI agent autonomous systems 2026",
    "AI safety alignment research",
]

# Monitored X/Twitter accounts, one timeline request each
DEFAULT_TWITTER_ACCOUNTS = [
    # === AI Research / General ===
    "aiedge_", "levie", "omooretweets", "mreflow", "carlvellotti",
    "slow_developer", "petergyang", "rubenhassid", "minchoi", "heyshrutimishra",

    # === AI Agents ===
    "openclaw", "steipete", "AlexFinn", "MatthewBerman", "johann_sath", "DeRonin_",

    # === Industry / Business ===
    "Codie_Sanchez", "alliekmiller", "ideabrowser", "eptwts", "gregisenberg",
    "startupideaspod", "Lukealexxander", "vasuman", "eyad_khrais", "damianplayer",
    "EXM7777", "VibeMarketer_", "boringmarketer", "viktoroddy", "Salmaaboukarr",
    "AndrewBolis",

    # === Technical Expertise ===
    "frankdegods", "bcherny", "dani_avila7", "karpathy", "geoffreyhinton",
    "MoonDevOnYT", "Hesamation", "kloss_xyz", "GithubProjects", "tom_doerr",
    "googleaidevs", "OpenAIDevs",

    # === Prompt Engineering ===
    "PromptLLM", "godofprompt", "alex_prompter", "promptcowboy", "Prompt_Perfect",
]


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables. Use Config.load()
    to create an instance with values from the environment.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Credentials ===
    perplexity_api_key: str = ""  # PERPLEXITY_API_KEY
    socialdata_api_key: str = ""  # SOCIALDATA_API_KEY
    gemini_api_key: str = ""  # GEMINI_API_KEY

    # === Sources ===
    search_queries: list[str] = field(default_factory=lambda: DEFAULT_SEARCH_QUERIES.copy())
    twitter_accounts: list[str] = field(default_factory=lambda: DEFAULT_TWITTER_ACCOUNTS.copy())

    # === AI Models ===
    perplexity_model: str = "sonar"  # PERPLEXITY_MODEL
    # PydanticAI format: provider:model, or openai:{name}@{base_url} for a local server
    scorer_model: str = "google-gla:gemini-2.5-flash"  # SCORER_MODEL

    # === Database ===
    db_path: Path = field(default_factory=lambda: Path("signal.db"))  # DB_PATH

    # === Pipeline Behavior ===
    poll_interval_seconds: int = 10800  # POLL_INTERVAL_SECONDS - every 3 hours
    request_timeout_seconds: int = 30  # REQUEST_TIMEOUT_SECONDS
    scorer_timeout_seconds: float = 120.0  # SCORER_TIMEOUT_SECONDS
    max_workers: int = 8  # MAX_WORKERS - Concurrent upstream connections

    # === Output Directories ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR

    # === Logging Configuration ===
    log_level: str = "INFO"  # LOG_LEVEL - DEBUG, INFO, WARNING, ERROR
    log_backup_count: int = 30  # LOG_BACKUP_COUNT
    log_max_bytes: int = 0  # LOG_MAX_BYTES - 0 = time-based rotation
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json'

    # === Optional: Observability ===
    # Requires: pip install logfire
    enable_logfire: bool = False  # ENABLE_LOGFIRE
    logfire_token: str = ""  # LOGFIRE_TOKEN

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            perplexity_api_key=_env("PERPLEXITY_API_KEY"),
            socialdata_api_key=_env("SOCIALDATA_API_KEY"),
            gemini_api_key=_env("GEMINI_API_KEY"),
            search_queries=_env_list("SEARCH_QUERIES", DEFAULT_SEARCH_QUERIES, ";"),
            twitter_accounts=_env_list("TWITTER_ACCOUNTS", DEFAULT_TWITTER_ACCOUNTS, ","),
            perplexity_model=_env("PERPLEXITY_MODEL", "sonar"),
            scorer_model=_env("SCORER_MODEL", "google-gla:gemini-2.5-flash"),
            db_path=Path(_env("DB_PATH", "signal.db")),
            poll_interval_seconds=_env_int("POLL_INTERVAL_SECONDS", 10800),
            request_timeout_seconds=_env_int("REQUEST_TIMEOUT_SECONDS", 30),
            scorer_timeout_seconds=_env_float("SCORER_TIMEOUT_SECONDS", 120.0),
            max_workers=_env_int("MAX_WORKERS", 8),
            log_dir=Path(_env("LOG_DIR", "log")),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
        )

    def missing_credentials(self) -> list[str]:
        """List credential variables that are not set.

        Missing credentials do not stop a run: each one degrades the
        stage that needs it. The CLI reports them as warnings.
        """
        missing = []
        if not self.perplexity_api_key:
            missing.append("PERPLEXITY_API_KEY")
        if not self.socialdata_api_key:
            missing.append("SOCIALDATA_API_KEY")
        if self.scorer_model.startswith("google-gla:") and not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        return missing

    def validate(self) -> str | None:
        """Validate configuration values.

        Checks:
            - At least one search query is configured
            - Numeric values are positive
            - Logging settings are recognized

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.search_queries:
            return "No search queries configured"
        if self.poll_interval_seconds <= 0:
            return "POLL_INTERVAL_SECONDS must be positive"
        if self.request_timeout_seconds <= 0:
            return "REQUEST_TIMEOUT_SECONDS must be positive"
        if self.scorer_timeout_seconds <= 0:
            return "SCORER_TIMEOUT_SECONDS must be positive"
        if self.max_workers <= 0:
            return "MAX_WORKERS must be positive"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
