"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. A ``.env`` file in the working directory (local development)

Field names map to upper-cased variable names automatically.  Only secrets
and deployment values live here; tuning knobs (thresholds, batch sizes,
chunk sizes) live in ``config/config.yaml`` and are frozen into
:class:`~talon.config.tuning.TalonConfig` at startup.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """TALON application settings.

    Environment variables override defaults.  Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Generation / embedding providers ===
    # Empty string means "not configured"; provider selection in main.py
    # skips providers with empty keys.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_chat_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""

    # === Document conversion service ===
    unstructured_api_key: str = ""
    unstructured_api_url: str = "https://api.unstructured.io/general/v0/general"

    # === Persistence ===
    database_path: str = "data/talon.db"
    storage_dir: str = "data/uploads"
    config_path: str = "config/config.yaml"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = ""

    def get_cors_origins(self) -> list[str] | None:
        """Parse the comma-separated ``CORS_ORIGINS`` value; ``None`` means allow all."""
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or None
