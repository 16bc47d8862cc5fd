"""
Configuration for the exporter.

Values come from (highest priority first) explicit arguments / CLI options,
CHATGPT_EXPORTER_* environment variables, then the defaults below.
Credentials are resolved separately by readers.credentials.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHATGPT_EXPORTER_"

DEFAULT_API_BASE_URL = "https://chatgpt.com/backend-api"


class ExporterConfig(BaseModel):
    """
    Tunables for pacing, retries, pagination and asset download.

    The default delay window (100-3300 ms) is the randomized pacing applied
    before every request after the first one in a session.
    """

    model_config = ConfigDict(validate_assignment=True)

    api_base_url: str = DEFAULT_API_BASE_URL
    account_id: Optional[str] = Field(
        None, description="Workspace id sent as ChatGPT-Account-Id (team accounts)"
    )
    min_delay_ms: int = Field(100, ge=0)
    max_delay_ms: int = Field(3300, ge=0)
    max_retries: int = Field(3, ge=1, description="Total attempts for failing requests")
    max_rate_limit_retries: int = Field(5, ge=0, description="429 retries per request")
    max_auth_refreshes: int = Field(1, ge=0)
    max_retry_after: float = Field(
        120.0, gt=0, description="Longest Retry-After wait honoured, in seconds"
    )
    request_timeout: float = Field(60.0, gt=0)
    page_size: int = Field(100, ge=1, le=1000)
    max_conversations: Optional[int] = Field(
        None, ge=1, description="Cap on listed conversations (None = uncapped)"
    )
    download_assets: bool = True

    @model_validator(mode="after")
    def _check_delay_window(self) -> "ExporterConfig":
        if self.min_delay_ms > self.max_delay_ms:
            raise ValueError(
                f"min_delay_ms ({self.min_delay_ms}) must not exceed "
                f"max_delay_ms ({self.max_delay_ms})"
            )
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "ExporterConfig":
        """
        Build a config from CHATGPT_EXPORTER_* environment variables.

        Parameters
        ----------
        **overrides
            Explicit values; None values are ignored so unset CLI options
            fall through to the environment.

        Returns
        -------
        ExporterConfig
            Validated configuration
        """
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            env_value = os.getenv(ENV_PREFIX + name.upper())
            if env_value is not None and env_value != "":
                values[name] = env_value

        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls.model_validate(values)
        logger.debug(
            "Loaded config: delay=%d-%dms retries=%d page_size=%d cap=%s",
            config.min_delay_ms,
            config.max_delay_ms,
            config.max_retries,
            config.page_size,
            config.max_conversations,
        )
        return config


def get_default_output_dir() -> Path:
    """Default directory for saved artifacts: ./exports"""
    env_value = os.getenv(ENV_PREFIX + "OUTPUT_DIR")
    if env_value:
        return Path(env_value).expanduser()
    return Path.cwd() / "exports"
