from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Time server settings.

    Settings are read from environment variables with the prefix MCP_TIME_
    (and from a .env file when present). The listen port also honours the
    conventional PORT variable, e.g. PORT=8080.
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_TIME_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # HTTP settings
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "MCP_TIME_PORT"))
    mcp_path: str = "/mcp"

    # Server settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    shutdown_timeout: float = 5.0
