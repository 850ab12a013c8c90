from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, overridable through ``FORGE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Freelance Forge"
    api_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    secret_key: str = "CHANGE_ME"
    access_token_expire_minutes: int = 30
    database_url: str = "sqlite:///./freelance_forge.db"

    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    pdf_backend: Literal["native", "external"] = Field(
        default="native",
        description="native: in-process reportlab layout; external: HTML-to-PDF converter process",
    )
    pdf_converter_command: str = Field(
        default="wkhtmltopdf --quiet - -",
        description="Converter command line; reads HTML on stdin and writes PDF to stdout",
    )
    pdf_converter_timeout_seconds: float = 30.0
    pdf_font_path: Optional[str] = Field(
        default=None,
        description="TrueType font for the native backend; a system DejaVu Sans is used when unset",
    )
    pdf_bold_font_path: Optional[str] = None
    pdf_reject_degraded: bool = Field(
        default=False,
        description="Reject renders whose template failed to expand instead of emitting raw template text",
    )
    template_escape_fields: bool = False


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
