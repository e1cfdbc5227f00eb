"""
Centralized Configuration System
Environment-aware settings for the forensics engine, its probes and the API.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # MODEL SELECTION
    # ============================================
    forensics_model: str = "google-gla:gemini-2.0-flash"
    chat_model: str = "google-gla:gemini-2.0-flash"

    # ============================================
    # SERPER (LIVE RANKING VERIFICATION)
    # ============================================
    serper_api_key: Optional[str] = None
    serper_api_url: str = "https://google.serper.dev/search"
    serper_default_gl: str = "us"
    serper_num_results: int = 10
    serper_timeout_seconds: float = 15.0

    # ============================================
    # EVIDENCE GATHERING
    # ============================================
    algo_lookback_days: int = 30
    algo_calendar_path: Optional[str] = None  # JSON file overriding the built-in calendar
    max_competitors_in_context: int = 5

    # ============================================
    # HANDBOOK RULES
    # ============================================
    optimization_lockout_months: int = 9  # Re-optimization blocked after a substantive update
    new_page_lockout_months: int = 6      # Fresh pages are left alone
    queue_lead_time_months: int = 3       # Work is scheduled this far out

    # ============================================
    # RATE LIMITING
    # ============================================
    rate_limit_max_requests: int = 30
    rate_limit_window_seconds: int = 60
    rate_limit_backend: Literal["memory", "mongodb"] = "memory"

    # ============================================
    # MONGODB (AUDIT TRAIL)
    # ============================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "ticket_forensics"
    mongodb_max_pool_size: int = 20
    mongodb_min_pool_size: int = 1
    mongodb_server_selection_timeout_ms: int = 5000
    enable_audit_log: bool = True

    # ============================================
    # CHAT
    # ============================================
    history_window_size: int = 20  # Max prior turns forwarded to the model

    # ============================================
    # AUTHENTICATION
    # ============================================
    require_authentication: bool = False

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"

    @property
    def serper_configured(self) -> bool:
        return bool(self.serper_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()
