"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from project root
# config.py is at: backend/adjudication/core/config.py
# Project root is: backend/adjudication/core/../../../
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: try in backend/ directory if not found in project root
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)

DEFAULT_MATRIX_ID = "your-matrix-id-from-supabase"
DEFAULT_COLLABORATOR_EMAIL = "hiring.manager@example.com"


class SessionConfig(BaseModel):
    """Identity of the operating session (constant for the session's lifetime)"""
    model_config = ConfigDict(frozen=True)

    matrix_id: str = Field(..., min_length=1, description="Classification matrix identifier")
    collaborator_email: str = Field(..., min_length=1, description="Acting operator identity")


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Pre-Adjudication Matrix"
    app_env: str = Field(default="development", description="Application environment")
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:8000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"adjudication.services": "DEBUG"})'
    )
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/adjudication.log",
        description="Path to log file (relative to project root)"
    )
    log_file_retention: int = Field(
        default=30,
        ge=1,
        description="Number of days to keep log files"
    )
    log_sensitive_data: bool = Field(
        default=False,
        description="Enable logging of sensitive data (passwords, tokens) - NOT RECOMMENDED"
    )

    # Database
    database_url: str = Field(
        default=f"sqlite:///{_project_root / 'adjudication.db'}",
        description="SQLAlchemy database URL (PostgreSQL in production)"
    )
    database_pool_size: int = Field(default=10, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=5, ge=0, description="Database max overflow")
    database_create_tables: bool = Field(
        default=True,
        description="Create missing tables on application startup"
    )

    # Session identity
    matrix_id: str = Field(
        default=DEFAULT_MATRIX_ID,
        validation_alias=AliasChoices("matrix_id", "vite_matrix_id"),
        description="Matrix the session classifies decisions under"
    )
    collaborator_email: str = Field(
        default=DEFAULT_COLLABORATOR_EMAIL,
        validation_alias=AliasChoices("collaborator_email", "vite_collaborator_email"),
        description="Operator identity recorded on submitted decisions"
    )

    @property
    def session_config(self) -> SessionConfig:
        """Build the session identity passed into each component"""
        return SessionConfig(
            matrix_id=self.matrix_id,
            collaborator_email=self.collaborator_email,
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
