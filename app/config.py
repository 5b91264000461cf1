# =============================================================================
# Application Configuration - Pydantic Settings
# =============================================================================
#
# DESIGN DECISION: Pydantic V2 `BaseSettings` for configuration.
# Type-safe, loaded from environment variables and an optional .env file,
# with defaults suitable for local development.
#
# Priority order (highest first):
#   1. Environment variables (e.g., `SPREADSHEET_ID=...`)
#   2. Values from the .env file
#   3. Default values defined below
#
# Secrets (API keys, Google service account) have empty defaults. They are
# checked at the point of first use and raise ConfigurationError there,
# before any model or spreadsheet call is attempted.
#
# USAGE:
#   from app.config import settings
#   print(settings.spreadsheet_id)
# =============================================================================

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    In production, override via environment variables or a .env file.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Spreadsheet Financial Q&A"
    app_version: str = "0.1.0"
    debug: bool = True

    # -------------------------------------------------------------------------
    # LLM Configuration - Multi-Provider
    # -------------------------------------------------------------------------
    # Two model roles:
    #   - selector_model: cheap, fast model that picks which tabs to read
    #     and returns strict JSON
    #   - answer_model: tool-calling model that reads the tabs and writes
    #     the streamed answer
    #
    # Providers:
    #   - "openai_compatible": OpenAI or any OpenAI-compatible API
    #   - "anthropic": Claude via native Anthropic SDK
    #
    # llm_temperature is optional because some reasoning models only accept
    # their default temperature.
    # -------------------------------------------------------------------------
    llm_provider: str = "openai_compatible"
    llm_base_url: str | None = None
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    selector_model: str = "gpt-4.1-nano"
    answer_model: str = "gpt-5-nano"
    llm_temperature: float | None = None
    llm_max_tokens: int = 4096

    # -------------------------------------------------------------------------
    # Google Sheets - Data Provider
    # -------------------------------------------------------------------------
    # The private key is usually stored in .env with literal "\n" sequences;
    # the fetcher unescapes them before building credentials.
    # -------------------------------------------------------------------------
    spreadsheet_id: str = ""
    google_client_email: str = ""
    google_private_key: str = ""

    # -------------------------------------------------------------------------
    # Source Catalog
    # -------------------------------------------------------------------------
    # JSON produced by scripts/generate_catalog.py. Loaded once at startup;
    # a missing or malformed file stops the service from starting.
    # -------------------------------------------------------------------------
    catalog_path: str = "tabs_mindmap.json"

    # -------------------------------------------------------------------------
    # Orchestration Limits
    # -------------------------------------------------------------------------
    # max_selected_sources: upper bound on tabs the selector may return
    # fallback_source_count: tabs used when the selector returns none
    # max_tool_steps: generation rounds before the run is abandoned
    # request_timeout_seconds: wall-clock ceiling for one run
    # -------------------------------------------------------------------------
    max_selected_sources: int = 8
    fallback_source_count: int = 5
    max_tool_steps: int = 5
    request_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Catalog Generation (scripts/generate_catalog.py)
    # -------------------------------------------------------------------------
    # Tab CSV is truncated to this many tokens before summarisation, leaving
    # headroom in a ~131k context for the prompt scaffolding.
    # -------------------------------------------------------------------------
    catalog_model: str = "gpt-4.1-nano"
    catalog_max_tokens: int = 120_000
    export_path: str = "sheets_export.json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
