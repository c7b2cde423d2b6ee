"""Server configuration.

All settings can be overridden via environment variables with the
SSHLLM_ prefix, e.g. ``SSHLLM_PORT=2022``. Command line flags take
precedence over the environment (see ``sshllm.main``).
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant. Be concise and friendly."


class Settings(BaseSettings):
    """Resolved configuration for the SSH chat server."""

    model_config = SettingsConfigDict(
        env_prefix="SSHLLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Transport
    host: str = Field(default="0.0.0.0", description="Address to listen on")
    port: int = Field(default=2222, ge=1, le=65535, description="Port to listen on")
    host_key_path: Path = Field(
        default=Path("keys/host_ed25519"),
        description="SSH host key, generated on first start if missing",
    )

    # Chat backend
    api_url: str = Field(
        default="http://localhost:8080/v1",
        description="OpenAI-compatible API base URL",
    )
    model: str = Field(default="default", description="Model name")
    api_key: Optional[SecretStr] = Field(default=None, description="Backend API key")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)
    backend_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds to wait for a backend reply; unset waits indefinitely",
    )

    # Conversation memory
    logs_dir: Path = Field(default=Path("logs"), description="Per-identity logs")
    history_limit: int = Field(default=40, ge=1)
    reload_limit: int = Field(default=20, ge=0)
    escape_transcript_newlines: bool = Field(
        default=True,
        description="Encode newlines in transcript lines so multi-line turns reload intact",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["console", "json"] = Field(default="console")

    @field_validator("api_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()

    @property
    def api_key_str(self) -> Optional[str]:
        """Plain API key, or None when not configured."""
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value() or None
