# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class StoreSettings(BaseSettings):
    """Session store selection.

    The backend decides which SessionStore adapter the entry points build.
    The collection name is used as the key prefix (Valkey) or table name
    (PostgreSQL) for session documents.
    """

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: Literal["memory", "valkey", "postgresql"] = Field(
        default="valkey",
        description="Session store backend (memory, valkey, postgresql)",
    )
    collection_name: str = Field(
        default="sdlc-events", description="Collection holding session documents"
    )


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for the session store."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")
    socket_timeout: int = Field(default=10, description="Socket timeout in seconds")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        # Use rediss:// scheme for SSL connections
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""

    model_config = SettingsConfigDict(env_prefix="PG_")

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL username")
    password: str = Field(default="postgres", description="PostgreSQL password")
    database: str = Field(default="sessionlog", description="Database name")
    schema_name: str = Field(default="sessionlog", description="Schema name")
    sslmode: str = Field(default="prefer", description="SSL mode")

    @property
    def connection_string(self) -> str:
        """Build PostgreSQL connection string."""
        return (
            f"postgresql://{self.user}:{self.password}@"
            f"{self.host}:{self.port}/{self.database}?sslmode={self.sslmode}"
        )


class KafkaSettings(BaseSettings):
    """Kafka connection settings for the queue ingress channel."""

    model_config = SettingsConfigDict(env_prefix="KAFKA_")

    bootstrap_servers: str = Field(
        default="localhost:9092", description="Kafka bootstrap servers"
    )
    security_protocol: str = Field(
        default="PLAINTEXT", description="Security protocol (PLAINTEXT or SSL)"
    )

    # SSL settings for mTLS authentication
    ssl_ca_file: Optional[str] = Field(default=None, description="Path to CA certificate file")
    ssl_cert_file: Optional[str] = Field(
        default=None, description="Path to client certificate file"
    )
    ssl_key_file: Optional[str] = Field(default=None, description="Path to client private key file")

    events_topic: str = Field(default="session-events", description="Events topic name")


class ConsumerSettings(BaseSettings):
    """Kafka consumer settings."""

    model_config = SettingsConfigDict(env_prefix="CONSUMER_")

    group_id: str = Field(default="sessionlog", description="Kafka consumer group ID")
    auto_offset_reset: str = Field(
        default="earliest",
        description="Auto offset reset policy (earliest, latest, none)",
    )
    batch_size: int = Field(
        default=100,
        description="Number of messages to fetch per Kafka poll",
    )
    poll_timeout_ms: int = Field(
        default=1000,
        description="Kafka poll timeout in milliseconds",
    )
    retry_backoff_seconds: float = Field(
        default=5.0,
        description="Pause before re-polling a batch that had retryable failures",
    )
    max_redeliveries: int = Field(
        default=5,
        description="Times a failing batch is re-polled before its failing records are skipped",
    )


class IngressSettings(BaseSettings):
    """Ingress dispatcher settings (queue source tags and CORS headers)."""

    model_config = SettingsConfigDict(env_prefix="INGRESS_")

    queue_event_sources: list[str] = Field(
        default_factory=lambda: ["aws:sqs", "kafka"],
        description="eventSource tags accepted for queue records",
    )
    cors_allow_origin: str = Field(default="*", description="Access-Control-Allow-Origin")
    cors_allow_headers: str = Field(
        default="Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
        description="Access-Control-Allow-Headers",
    )
    cors_allow_methods: str = Field(
        default="POST,OPTIONS", description="Access-Control-Allow-Methods"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    kafka: KafkaSettings = Field(default_factory=KafkaSettings)
    consumer: ConsumerSettings = Field(default_factory=ConsumerSettings)
    ingress: IngressSettings = Field(default_factory=IngressSettings)

    # General settings
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
