"""
FlowMind configuration.

Defaults live here; every field can be overridden through a FLOWMIND_
prefixed environment variable (e.g. FLOWMIND_MAX_CONCURRENT=8).
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlowMindSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FLOWMIND_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Engine
    max_retries: int = Field(default=2, ge=1)
    batch_size: int = Field(default=5, ge=1)
    max_concurrent: int = Field(default=3, ge=1)
    sampling_epsilon: float = Field(default=0.01, ge=0)
    error_max_length: int = Field(default=250, ge=16)

    # Outer loop and persistence
    worker_interval: float = Field(default=2.0, gt=0)
    save_debounce: float = Field(default=5.0, ge=0)
    data_dir: Path = Path.home() / ".flowmind"
    state_filename: str = "flowmind_state.json"

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"
    service_name: str = "flowmind"

    # Memory
    memory_limit: Optional[int] = Field(default=1000, ge=1)
    memory_search_limit: int = Field(default=3, ge=1)

    @property
    def state_file(self) -> Path:
        return self.data_dir / self.state_filename


@lru_cache(maxsize=1)
def get_settings() -> FlowMindSettings:
    return FlowMindSettings()
