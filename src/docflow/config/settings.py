"""Configuration management using Pydantic Settings."""

from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="DOCFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    data_dir: Path = Field(Path(".docflow"), description="Directory holding workspace snapshots")
    workspace_file: str = Field("workspace.json", description="Snapshot file name inside data_dir")

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("json", pattern="^(json|text)$")

    # Review pipeline
    check_enabled: bool = Field(True, description="Run the automated pre-check on submit")
    reject_requires_comment: bool = Field(True, description="Rejections must carry a reason")

    # Web API
    api_title: str = Field("Document Collaboration Workflow")

    @field_validator("data_dir")
    @classmethod
    def _create_dirs(cls, v: Path) -> Path:
        v.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def workspace_path(self) -> Path:
        return self.data_dir / self.workspace_file


# Instantiate global settings
settings = Settings()
