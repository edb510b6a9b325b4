from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationMissing


class Settings(BaseSettings):
    # Read from OS env and optional .env file in project root.
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # WhatsApp Cloud API
    whatsapp_token: Optional[str] = Field(None, alias="WHATSAPP_TOKEN")
    whatsapp_phone_id: Optional[str] = Field(None, alias="WHATSAPP_PHONE_ID")
    verify_token: Optional[str] = Field(
        None,
        alias="VERIFY_TOKEN",
        description="Token configured in the Meta portal for webhook verification",
    )
    whatsapp_graph_url: str = Field(
        "https://graph.facebook.com/v18.0", alias="WHATSAPP_GRAPH_URL"
    )

    # OpenAI Assistants API
    openai_api_key: Optional[str] = Field(None, alias="OPENAI_API_KEY")
    openai_assistant_id: Optional[str] = Field(None, alias="OPENAI_ASSISTANT_ID")
    openai_organization: Optional[str] = Field(None, alias="OPENAI_ORGANIZATION")
    openai_project: Optional[str] = Field(None, alias="OPENAI_PROJECT")
    openai_base_url: str = Field("https://api.openai.com/v1", alias="OPENAI_BASE_URL")

    # Session persistence
    redis_url: str = Field(
        "redis://localhost:6379/0",
        alias="REDIS_URL",
        description="Redis connection URL, e.g. 'redis://redis:6379/0'",
    )
    session_backend: str = Field(
        "redis",
        alias="SESSION_BACKEND",
        description="Where sessions live: 'redis' or 'memory'",
    )
    session_ttl_seconds: int = Field(12 * 60 * 60, alias="SESSION_TTL_SECONDS", gt=0)
    session_sliding_expiration: bool = Field(
        False,
        alias="SESSION_SLIDING_EXPIRATION",
        description="Reset the session TTL every time the session is read",
    )
    session_memory_max_entries: int = Field(
        10_000, alias="SESSION_MEMORY_MAX_ENTRIES", gt=0
    )
    provision_locking: bool = Field(
        True,
        alias="PROVISION_LOCKING",
        description="Serialise thread provisioning per user and write sessions with SET NX",
    )

    # Run polling
    run_initial_delay_seconds: float = Field(2.0, alias="RUN_INITIAL_DELAY_SECONDS", ge=0)
    run_poll_interval_seconds: float = Field(3.0, alias="RUN_POLL_INTERVAL_SECONDS", ge=0)
    run_max_poll_attempts: int = Field(15, alias="RUN_MAX_POLL_ATTEMPTS", ge=0)
    run_rate_limit_cooldown_seconds: float = Field(
        5.0, alias="RUN_RATE_LIMIT_COOLDOWN_SECONDS", ge=0
    )
    run_rate_limited_poll_counts: bool = Field(
        True,
        alias="RUN_RATE_LIMITED_POLL_COUNTS",
        description="Whether a rate-limited poll consumes one of the poll attempts",
    )
    run_max_rate_limited_polls: int = Field(15, alias="RUN_MAX_RATE_LIMITED_POLLS", ge=0)

    # HTTP timeouts (seconds)
    http_timeout_seconds: float = Field(15.0, alias="HTTP_TIMEOUT_SECONDS", gt=0)
    poll_timeout_seconds: float = Field(10.0, alias="POLL_TIMEOUT_SECONDS", gt=0)

    welcome_message_delay_seconds: float = Field(
        0.5, alias="WELCOME_MESSAGE_DELAY_SECONDS", ge=0
    )

    # Application log level for our relay logger.
    # Can be overridden via LOG_LEVEL env var, e.g. "DEBUG" while debugging.
    log_level: str = Field(
        "INFO",
        alias="LOG_LEVEL",
        description="Application log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_timezone: Optional[str] = Field(
        default=None,
        alias="LOG_TIMEZONE",
        description="Timezone name for log timestamps, e.g. 'America/Sao_Paulo'. Defaults to system local time.",
    )
    log_dir: Path = Field(Path("logs"), alias="LOG_DIR")
    log_file_prefix: str = Field("relay", alias="LOG_FILE_PREFIX")
    log_backup_count: int = Field(7, alias="LOG_BACKUP_COUNT", ge=0)

    # HTTP server
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(3000, alias="PORT")

    def missing_credentials(self) -> List[str]:
        """
        Return the env var names of required credentials that are not set.
        """
        required = {
            "WHATSAPP_TOKEN": self.whatsapp_token,
            "WHATSAPP_PHONE_ID": self.whatsapp_phone_id,
            "OPENAI_API_KEY": self.openai_api_key,
            "OPENAI_ASSISTANT_ID": self.openai_assistant_id,
        }
        return [name for name, value in required.items() if not value]

    def require_credentials(self) -> None:
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationMissing(missing)


settings = Settings()  # Reads from environment if available


def build_openai_headers(config: Settings) -> Dict[str, str]:
    """
    Build headers for the Assistants API (v2 beta header included).
    """
    headers: Dict[str, str] = {
        "Authorization": f"Bearer {config.openai_api_key}",
        "OpenAI-Beta": "assistants=v2",
        "Content-Type": "application/json",
    }
    if config.openai_organization:
        headers["OpenAI-Organization"] = config.openai_organization
    if config.openai_project:
        headers["OpenAI-Project"] = config.openai_project
    return headers
