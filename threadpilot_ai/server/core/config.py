"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and the
.env file without explicit dotenv loading.
"""

from typing import Dict, Literal, Optional

from pydantic import Field, PositiveFloat
from pydantic_settings import BaseSettings, SettingsConfigDict

from threadpilot_ai.capability_core.schemas.config import (
    CollaboratorConfig,
    DispatchConfig,
    ExecutionLogConfig,
)
from threadpilot_ai.capability_core.schemas.domain import CapabilityName

# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )

    # =====================================================================
    # ThreadPilot-AI Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="ThreadPilot-AI server host address to bind to",
        alias="THREADPILOT_AI_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="ThreadPilot-AI server port number",
        alias="THREADPILOT_AI_SERVER_PORT",
    )
    caller_header: str = Field(
        default="X-Authenticated-User",
        description="Trusted header carrying the caller id set by the authentication gateway",
        alias="THREADPILOT_AI_CALLER_HEADER",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="THREADPILOT_AI_LOG_LEVEL",
    )
    log_format: str = Field(
        default="detailed", description="Log line format (simple, detailed, json)", alias="THREADPILOT_AI_LOG_FORMAT"
    )
    log_file_dir: str = Field(default="logs", alias="THREADPILOT_AI_LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, alias="THREADPILOT_AI_ENABLE_FILE_LOGGING")

    # =====================================================================
    # Dispatch Configuration
    # =====================================================================
    deadline_seconds: float = Field(default=2.0, alias="THREADPILOT_AI_DEADLINE_SECONDS")
    capability_deadlines: Dict[CapabilityName, PositiveFloat] = Field(
        default_factory=dict,
        description="JSON object of capability name -> deadline seconds (positive, known names only)",
        alias="THREADPILOT_AI_CAPABILITY_DEADLINES",
    )
    permission_timeout_seconds: float = Field(default=0.5, alias="THREADPILOT_AI_PERMISSION_TIMEOUT_SECONDS")
    fallback_reserve_seconds: float = Field(default=0.25, alias="THREADPILOT_AI_FALLBACK_RESERVE_SECONDS")

    # =====================================================================
    # Execution Log Configuration
    # =====================================================================
    execution_log_queue_size: int = Field(default=1000, alias="THREADPILOT_AI_EXECUTION_LOG_QUEUE_SIZE")
    execution_log_max_retries: int = Field(default=2, alias="THREADPILOT_AI_EXECUTION_LOG_MAX_RETRIES")
    execution_log_retry_backoff_seconds: float = Field(
        default=0.1, alias="THREADPILOT_AI_EXECUTION_LOG_RETRY_BACKOFF_SECONDS"
    )
    execution_log_database_url: Optional[str] = Field(default=None, alias="THREADPILOT_AI_EXECUTION_LOG_DATABASE_URL")

    # =====================================================================
    # Collaborator Configuration
    # =====================================================================
    collaborator_mode: Literal["memory", "http"] = Field(default="memory", alias="THREADPILOT_AI_COLLABORATOR_MODE")
    message_store_url: str = Field(default="http://message-store:8080", alias="THREADPILOT_AI_MESSAGE_STORE_URL")
    membership_url: str = Field(default="http://membership:8080", alias="THREADPILOT_AI_MEMBERSHIP_URL")
    retrieval_url: str = Field(default="http://retrieval:8080", alias="THREADPILOT_AI_RETRIEVAL_URL")
    calendar_url: str = Field(default="http://calendar:8080", alias="THREADPILOT_AI_CALENDAR_URL")
    collaborator_auth_token: Optional[str] = Field(default=None, alias="THREADPILOT_AI_COLLABORATOR_AUTH_TOKEN")
    generation_model: str = Field(default="openai:gpt-4o", alias="THREADPILOT_AI_GENERATION_MODEL")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def dispatch(self) -> DispatchConfig:
        """Get the orchestrator deadline configuration."""
        return DispatchConfig(
            deadline_seconds=self.deadline_seconds,
            capability_deadlines=dict(self.capability_deadlines),
            permission_timeout_seconds=self.permission_timeout_seconds,
            fallback_reserve_seconds=self.fallback_reserve_seconds,
        )

    @property
    def execution_log(self) -> ExecutionLogConfig:
        """Get the execution log configuration."""
        return ExecutionLogConfig(
            queue_size=self.execution_log_queue_size,
            max_retries=self.execution_log_max_retries,
            retry_backoff_seconds=self.execution_log_retry_backoff_seconds,
            database_url=self.execution_log_database_url,
        )

    @property
    def collaborators(self) -> CollaboratorConfig:
        """Get the collaborator endpoint configuration."""
        return CollaboratorConfig(
            mode=self.collaborator_mode,
            message_store_url=self.message_store_url,
            membership_url=self.membership_url,
            retrieval_url=self.retrieval_url,
            calendar_url=self.calendar_url,
            auth_token=self.collaborator_auth_token,
            generation_model=self.generation_model,
        )


settings = Settings()
