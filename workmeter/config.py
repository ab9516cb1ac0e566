from __future__ import annotations
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExecutorConfig(BaseModel):
    """Explicit construction parameters for a bounded worker pool."""

    name: str = Field(default="executor", min_length=1, description="Metrics prefix for the pool.")
    max_workers: int = Field(default=4, ge=1)
    queue_size: int = Field(default=16, ge=0, description="Tasks that may wait beyond the busy workers.")
    thread_name_prefix: str = Field(default="")

    @property
    def capacity(self) -> int:
        return self.max_workers + self.queue_size


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WM_", env_file=".env", extra="ignore")

    # Executors
    metrics_prefix: str = Field(default="executor", description="Namespace for executor instruments.")
    max_workers: int = Field(default=4, ge=1)
    queue_size: int = Field(default=16, ge=0)
    scheduler_workers: int = Field(default=2, ge=1)

    # Metrics
    reservoir_size: int = Field(default=1028, ge=1, description="Samples kept per histogram/timer.")

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    def executor_config(self) -> ExecutorConfig:
        return ExecutorConfig(
            name=self.metrics_prefix,
            max_workers=self.max_workers,
            queue_size=self.queue_size,
            thread_name_prefix=self.metrics_prefix,
        )


def load_settings() -> Settings:
    return Settings()
