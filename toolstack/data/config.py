"""
ToolStack Configuration Module
==============================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    TOOLSTACK_ENV: Deployment environment, PROD or DEV (alias: PROJECT_ENV)
    TOOLSTACK_ROOT_URL: Public site root used in tool deep links

    OPENAI_API_KEY: OpenAI API key (alias: GPT_API_KEY)
    OPENAI_EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
    OPENAI_EMBEDDING_DIMENSIONS: Embedding size (default: 1536)
    OPENAI_CHAT_MODEL: Chat completion model (default: gpt-4)

    DATABASE_HOST / DATABASE_PORT / DATABASE_NAME / DATABASE_USER /
    DATABASE_PASSWORD: Source store (PostgreSQL)
    VECTOR_DATABASE_URL: pgvector DSN (default: same database as source store)

    ELASTICSEARCH_URL: Text index endpoint (default: http://localhost:9200)
    ELASTIC_USER / ELASTIC_PASSWORD: Optional basic auth

    TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID: Notification sink
    ENABLE_NOTIFICATIONS: "true" to send sync reports

    SYNC_BATCH_SIZE: Records per bulk batch (default: 50)
    SYNC_BATCH_DELAY_SECONDS: Pause between batches (default: 1.0)
    SYNC_PROGRESS_LINES: Log lines buffered before a progress message (default: 100)
    SYNC_TIME_BUDGET_SECONDS: Invocation ceiling for a bulk run (default: 540)

    CHAT_TOP_K / CHAT_TEMPERATURE / CHAT_MAX_TOKENS: RAG query tuning
    AUTH_JWT_SECRET: HS256 secret for chat callers
    SYNC_API_TOKEN: Optional shared token for sync endpoints
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


class DeploymentEnvironment(str, Enum):
    """Which set of indexes a deployment writes to."""
    PROD = "prod"
    DEV = "dev"

    @classmethod
    def parse(cls, value: Optional[str]) -> "DeploymentEnvironment":
        if value and value.strip().lower() in ("prod", "production"):
            return cls.PROD
        return cls.DEV

    @classmethod
    def from_env(cls) -> "DeploymentEnvironment":
        return cls.parse(os.getenv("TOOLSTACK_ENV") or os.getenv("PROJECT_ENV"))

    @property
    def vector_namespace(self) -> str:
        return f"toolstack-tools-{self.value}"

    @property
    def text_index_name(self) -> str:
        return f"dev_tools_{self.value}"

    @property
    def root_url(self) -> str:
        if self is DeploymentEnvironment.PROD:
            return "https://www.toolstack.pro"
        return "http://localhost:3000"


@dataclass
class OpenAIConfig:
    """OpenAI configuration for embeddings and chat completions."""

    # Support both OPENAI_API_KEY and GPT_API_KEY
    api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    embedding_model: str = field(
        default_factory=lambda: get_env("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    )
    embedding_dimensions: int = field(
        default_factory=lambda: get_env_int("OPENAI_EMBEDDING_DIMENSIONS", 1536)
    )
    chat_model: str = field(default_factory=lambda: get_env("OPENAI_CHAT_MODEL", "gpt-4"))
    request_timeout: float = field(default_factory=lambda: get_env_float("OPENAI_REQUEST_TIMEOUT", 60.0))

    def __post_init__(self):
        if self.embedding_dimensions <= 0:
            raise ValueError("embedding_dimensions must be positive")


@dataclass
class DatabaseConfig:
    """PostgreSQL source store configuration."""

    host: str = field(default_factory=lambda: get_env("DATABASE_HOST", "localhost"))
    port: int = field(default_factory=lambda: get_env_int("DATABASE_PORT", 5432))
    name: str = field(default_factory=lambda: get_env("DATABASE_NAME", "toolstack"))
    user: str = field(default_factory=lambda: get_env("DATABASE_USER", "postgres"))
    password: str = field(default_factory=lambda: get_env("DATABASE_PASSWORD", ""))

    # Connection pool settings
    pool_min_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MIN", 1))
    pool_max_size: int = field(default_factory=lambda: get_env_int("DATABASE_POOL_MAX", 10))

    connect_timeout: int = field(default_factory=lambda: get_env_int("DATABASE_CONNECT_TIMEOUT", 10))

    # SSL mode: disable, allow, prefer, require, verify-ca, verify-full
    ssl_mode: str = field(default_factory=lambda: get_env("DATABASE_SSL_MODE", "prefer"))

    @property
    def connection_dict(self) -> dict:
        """Connection parameters as dictionary for psycopg2."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.name,
            "user": self.user,
            "password": self.password,
            "sslmode": self.ssl_mode,
            "connect_timeout": self.connect_timeout,
        }

    def __post_init__(self):
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("pool_min_size cannot exceed pool_max_size")


@dataclass
class VectorIndexConfig:
    """pgvector index configuration."""

    # Empty means: reuse the source store connection parameters
    dsn: Optional[str] = field(default_factory=lambda: get_env("VECTOR_DATABASE_URL"))
    table: str = field(default_factory=lambda: get_env("VECTOR_TABLE", "tool_embeddings"))
    pool_max_size: int = field(default_factory=lambda: get_env_int("VECTOR_POOL_MAX", 10))


@dataclass
class TextIndexConfig:
    """Elasticsearch text index configuration."""

    url: str = field(default_factory=lambda: get_env("ELASTICSEARCH_URL", "http://localhost:9200"))
    user: Optional[str] = field(default_factory=lambda: get_env("ELASTIC_USER", "elastic"))
    password: Optional[str] = field(default_factory=lambda: get_env("ELASTIC_PASSWORD"))
    max_retries: int = field(default_factory=lambda: get_env_int("ES_MAX_RETRIES", 3))
    request_timeout: int = field(default_factory=lambda: get_env_int("ES_REQUEST_TIMEOUT", 30))


@dataclass
class NotificationConfig:
    """Telegram notification sink configuration."""

    bot_token: Optional[str] = field(default_factory=lambda: get_env("TELEGRAM_BOT_TOKEN"))
    chat_id: Optional[str] = field(default_factory=lambda: get_env("TELEGRAM_CHAT_ID"))
    enabled: bool = field(default_factory=lambda: get_env_bool("ENABLE_NOTIFICATIONS", False))


@dataclass
class SyncConfig:
    """Bulk resync tuning."""

    batch_size: int = field(default_factory=lambda: get_env_int("SYNC_BATCH_SIZE", 50))
    batch_delay_seconds: float = field(default_factory=lambda: get_env_float("SYNC_BATCH_DELAY_SECONDS", 1.0))

    # Flush buffered log lines to the sink once this many accumulate
    progress_lines: int = field(default_factory=lambda: get_env_int("SYNC_PROGRESS_LINES", 100))

    # Invocation ceiling, with a margin kept for the summary and consistency check
    time_budget_seconds: float = field(default_factory=lambda: get_env_float("SYNC_TIME_BUDGET_SECONDS", 540.0))
    time_margin_seconds: float = field(default_factory=lambda: get_env_float("SYNC_TIME_MARGIN_SECONDS", 30.0))

    state_dir: Path = field(default_factory=lambda: Path(
        get_env("SYNC_STATE_DIR", str(Path(__file__).parent.parent.parent / "data"))
    ))

    def __post_init__(self):
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.batch_delay_seconds < 0:
            raise ValueError("batch_delay_seconds cannot be negative")
        if self.progress_lines <= 0:
            raise ValueError("progress_lines must be positive")


@dataclass
class ChatConfig:
    """RAG query tuning."""

    top_k: int = field(default_factory=lambda: get_env_int("CHAT_TOP_K", 5))
    temperature: float = field(default_factory=lambda: get_env_float("CHAT_TEMPERATURE", 0.7))
    max_tokens: int = field(default_factory=lambda: get_env_int("CHAT_MAX_TOKENS", 500))
    root_url: Optional[str] = field(default_factory=lambda: get_env("TOOLSTACK_ROOT_URL"))

    def __post_init__(self):
        if self.top_k <= 0:
            raise ValueError("top_k must be positive")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0 and 2")


@dataclass
class AuthConfig:
    """Caller authentication."""

    jwt_secret: Optional[str] = field(default_factory=lambda: get_env("AUTH_JWT_SECRET"))
    jwt_algorithm: str = field(default_factory=lambda: get_env("AUTH_JWT_ALGORITHM", "HS256"))
    jwt_audience: Optional[str] = field(default_factory=lambda: get_env("AUTH_JWT_AUDIENCE"))
    sync_token: Optional[str] = field(default_factory=lambda: get_env("SYNC_API_TOKEN"))


@dataclass
class SchedulerConfig:
    """Scheduled full-sync configuration."""

    cron_hour: int = field(default_factory=lambda: get_env_int("SCHEDULER_CRON_HOUR", 12))
    cron_minute: int = field(default_factory=lambda: get_env_int("SCHEDULER_CRON_MINUTE", 0))
    timezone: str = field(default_factory=lambda: get_env("SCHEDULER_TIMEZONE", "Europe/Paris"))
    base_url: str = field(default_factory=lambda: get_env("SYNC_BASE_URL", "http://localhost:8000"))
    request_timeout: int = field(default_factory=lambda: get_env_int("SCHEDULER_REQUEST_TIMEOUT", 600))
    misfire_grace_time: int = field(default_factory=lambda: get_env_int("SCHEDULER_MISFIRE_GRACE", 3600))

    def get_cron_expression(self) -> str:
        """Get cron expression for logging."""
        return f"{self.cron_minute} {self.cron_hour} * * *"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """Main application settings container."""

    environment: DeploymentEnvironment = field(default_factory=DeploymentEnvironment.from_env)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    vector_index: VectorIndexConfig = field(default_factory=VectorIndexConfig)
    text_index: TextIndexConfig = field(default_factory=TextIndexConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_name: str = "toolstack-sync"

    @property
    def root_url(self) -> str:
        return (self.chat.root_url or self.environment.root_url).rstrip("/")

    def is_production(self) -> bool:
        return self.environment is DeploymentEnvironment.PROD


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    The deployment environment is resolved here, once per process.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
