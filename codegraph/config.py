from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CODEGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Traversal limits
    path_max_depth: int = Field(default=10)
    transitive_max_depth: int = Field(default=50)
    call_chain_max_depth: int = Field(default=20)
    max_cycles: int = Field(default=100)
    hot_paths_limit: int = Field(default=10)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default="logs/codegraph.log")

    @field_validator('path_max_depth', 'transitive_max_depth', 'call_chain_max_depth',
                     'max_cycles', 'hot_paths_limit')
    @classmethod
    def non_negative(cls, v):
        if v < 0:
            raise ValueError("limits must be non-negative")
        return v

    @field_validator('log_level')
    @classmethod
    def known_level(cls, v):
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"unknown log level: {v}")
        return v

    @property
    def log_dir(self) -> Optional[Path]:
        """Get log directory path."""
        if not self.log_file:
            return None
        return Path(self.log_file).parent


settings = Settings()
