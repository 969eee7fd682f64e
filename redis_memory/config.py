"""Application settings loaded from environment variables or plugin config."""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ExtractionStrategy = Literal["discrete", "summary", "preferences", "custom"]

DEFAULT_SERVER_URL = "http://localhost:8000"
DEFAULT_SUMMARY_GROUP_BY: list[str] = ["user_id"]
DEFAULT_RECALL_DESCRIPTION = (
    "Search through long-term memories. Use when you need context about user "
    "preferences, past decisions, or previously discussed topics."
)
DEFAULT_STORE_DESCRIPTION = (
    "Save important information in long-term memory. Use for preferences, facts, decisions."
)
DEFAULT_FORGET_DESCRIPTION = "Delete specific memories. GDPR-compliant."

_ENV_REF_RE = re.compile(r"\$\{([^}]+)\}")
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")
_VALID_GROUP_BY = ("user_id", "namespace")


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


def resolve_env_vars(value: str) -> str:
    """Expand ``${VAR}`` references from the environment.

    Raises ``ValueError`` if a referenced variable is unset or empty.
    """

    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        env_value = os.environ.get(name)
        if not env_value:
            msg = f"Environment variable {name} is not set"
            raise ValueError(msg)
        return env_value

    return _ENV_REF_RE.sub(_sub, value)


class Settings(BaseSettings):
    """Memory plugin configuration. All values come from environment variables."""

    # Server connection
    server_url: str = Field(default=DEFAULT_SERVER_URL)
    api_key: str = Field(default="")
    bearer_token: str = Field(default="")
    timeout: int = Field(default=30000)  # milliseconds

    # Server-side filters
    namespace: str = Field(default="default")
    # Only sent when explicitly configured
    user_id: str | None = Field(default=None)

    # Working memory
    working_memory_session_id: str | None = Field(default=None)
    session_state_path: Path = Field(default=Path("data/memory_sessions.json"))

    # Hooks
    auto_capture: bool = Field(default=True)
    auto_recall: bool = Field(default=True)

    # Relevance thresholds (all on score = 1 - distance)
    min_score: float = Field(default=0.3)
    recall_limit: int = Field(default=3)
    duplicate_score: float = Field(default=0.95)
    auto_delete_score: float = Field(default=0.9)

    # Background extraction
    extraction_strategy: ExtractionStrategy | None = Field(default=None)
    custom_prompt: str | None = Field(default=None)

    # Summary view
    summary_view_name: str = Field(default="agent_user_summary")
    summary_time_window_days: int = Field(default=30)
    summary_group_by: list[str] = Field(default_factory=lambda: list(DEFAULT_SUMMARY_GROUP_BY))

    # Tool descriptions
    recall_description: str = Field(default=DEFAULT_RECALL_DESCRIPTION)
    store_description: str = Field(default=DEFAULT_STORE_DESCRIPTION)
    forget_description: str = Field(default=DEFAULT_FORGET_DESCRIPTION)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    @field_validator("server_url", "api_key", "bearer_token")
    @classmethod
    def _resolve_env_refs(cls, value: str) -> str:
        return resolve_env_vars(value)

    @field_validator("min_score", "duplicate_score", "auto_delete_score")
    @classmethod
    def _clamp_score(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @field_validator("recall_limit", "summary_time_window_days")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        return max(1, value)

    @field_validator("summary_group_by", mode="before")
    @classmethod
    def _filter_group_by(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        if not isinstance(value, (list, tuple)):
            return list(DEFAULT_SUMMARY_GROUP_BY)
        parsed = [f for f in value if isinstance(f, str) and f in _VALID_GROUP_BY]
        return parsed or list(DEFAULT_SUMMARY_GROUP_BY)

    @model_validator(mode="after")
    def _require_custom_prompt(self) -> "Settings":
        if self.extraction_strategy == "custom" and not self.custom_prompt:
            msg = 'custom_prompt is required when extraction_strategy is "custom"'
            raise ValueError(msg)
        return self

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    def get_long_term_memory_strategy(self) -> dict[str, Any] | None:
        """Build the working-memory extraction strategy payload, if configured."""
        if self.extraction_strategy is None:
            return None
        config: dict[str, Any] = {}
        if self.extraction_strategy == "custom" and self.custom_prompt:
            config["prompt"] = self.custom_prompt
        return {"strategy": self.extraction_strategy, "config": config}


def parse_plugin_config(value: Any) -> Settings:
    """Build Settings from a host-supplied plugin config mapping.

    Keys may be camelCase (``serverUrl``) or snake_case. Unknown keys,
    invalid strategies and a ``custom`` strategy without a prompt all
    raise at parse time.
    """
    if not isinstance(value, dict):
        msg = "memory config required"
        raise ValueError(msg)  # noqa: TRY004
    normalized = {_CAMEL_RE.sub("_", key).lower(): item for key, item in value.items()}
    return Settings(**normalized)


settings = Settings()
