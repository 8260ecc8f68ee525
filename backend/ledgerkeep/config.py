"""
Application configuration using Pydantic settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App
    app_name: str = "Ledgerkeep"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./data/ledger.sqlite"

    # Import paths
    import_inbox_path: str = "./data/imports/inbox"
    import_processed_path: str = "./data/imports/processed"
    import_failed_path: str = "./data/imports/failed"

    # Format detection (0-100 scale)
    detection_match_threshold: float = 80.0
    detection_min_threshold: float = 50.0

    # Ingestion
    import_batch_size: int = 20
    auto_rule_min_confidence: float = 0.8
    auto_create_accounts: bool = True

    # Integrity policy
    duplicate_description_prefix: int = 20
    large_transaction_threshold: float = 100000.0

    # Backups
    auto_backup_interval_minutes: int = 30

    # AI Provider
    ai_provider: str = "openrouter"  # openrouter, ollama, openai, anthropic
    ai_model: str = "anthropic/claude-3-haiku"
    ai_base_url: Optional[str] = None  # For Ollama: http://localhost:11434

    # API Keys (optional based on provider)
    openrouter_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # AI Feature Flags
    ai_auto_categorize: bool = False
    ai_batch_size: int = 10

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    frontend_url: str = "http://localhost:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEDGERKEEP_",
        case_sensitive=False
    )


# Global settings instance
settings = Settings()
