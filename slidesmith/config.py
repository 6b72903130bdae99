"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"
    template_dir: str = "templates"  # relative template ids resolve here
    output_dir: str = "output"  # relative destination ids resolve here

    # --- Airtable (tabular source) ---
    airtable_api_key: str = ""
    airtable_api_url: str = "https://api.airtable.com/v0"
    airtable_ready_filter: str = "{Ready for preso} = 1"
    airtable_timeout_seconds: int = 30
    airtable_page_size: int = 100

    # --- Spreadsheet CSV export ---
    sheets_export_url_template: str = (
        "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/gviz/tq?tqx=out:csv&sheet={sheet_name}"
    )
    sheets_timeout_seconds: int = 30

    # --- Completion service (OpenAI-compatible endpoint) ---
    # Up to three rotated credentials, plus an optional comma-separated list.
    gemini_api_key_1: str = ""
    gemini_api_key_2: str = ""
    gemini_api_key_3: str = ""
    llm_api_keys: str = ""
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.0-flash"
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.4
    llm_timeout_seconds: int = 60

    # --- Content refinement ---
    refinement_enabled: bool = True
    refinement_min_length: int = 20  # shorter content is left as-is unless forced

    # --- LLM data mapping (raw data -> template fields) ---
    llm_mapping_enabled: bool = False
    mapping_analysis_max_chars: int = 8000
    mapping_prompt_max_chars: int = 6000

    # --- Images ---
    image_fetch_timeout_seconds: int = 15
    placeholder_image_url_template: str = "https://placehold.co/{width}x{height}/png?text={text}"
    blob_store_dir: str | None = None  # directory of <id>.<ext> image files
    blob_store_url_template: str = "https://drive.google.com/uc?export=download&id={id}"

    @property
    def completion_api_keys(self) -> list[str]:
        """Non-empty completion credentials, in rotation order."""
        keys = [self.gemini_api_key_1, self.gemini_api_key_2, self.gemini_api_key_3]
        keys.extend(k for k in self.llm_api_keys.split(","))
        return [k.strip() for k in keys if k and k.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
