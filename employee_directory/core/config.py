from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DuplicatePolicy = Literal["append", "skip_existing"]
ImageStrategy = Literal["ocr", "model"]

DEFAULT_STOP_HEADINGS = [
    "about",
    "skills",
    "education",
    "certifications",
    "projects",
    "volunteering",
    "languages",
    "honors & awards",
    "publications",
]


class Settings(BaseSettings):
    app_name: str = "Employee Directory API"
    debug: bool = False
    log_level: str = "INFO"
    # Longest slice of document or model text that may appear in a log line
    log_preview_chars: int = 2000

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:5173"

    # OpenAI
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "vite_openai_key"),
    )
    openai_model: str = "gpt-4o"
    openai_base_url: Optional[str] = None
    openai_json_mode: bool = True

    # Airtable
    airtable_base_id: str = Field(
        default="",
        validation_alias=AliasChoices("airtable_base_id", "vite_airtable_base_id"),
    )
    airtable_pat: str = Field(
        default="",
        validation_alias=AliasChoices("airtable_pat", "vite_airtable_pat"),
    )
    airtable_api_url: str = "https://api.airtable.com/v0"
    employee_table: str = "Employee Database"
    skill_table: str = "Skills"
    trait_table: str = "Traits"
    work_experience_table: str = "Work Experience"
    skill_level_table: str = "Skill Levels"
    work_experience_link_field: str = "Employee Database"
    # Employee-table fields holding linked record ids
    employee_work_experience_field: str = "Work Experience"
    employee_traits_field: str = "Personality Traits"

    # Google Cloud Vision (service-account JSON text, or a path to the key file)
    google_application_credentials_json: str = ""
    google_application_credentials: str = ""

    # Section extraction
    section_heading: str = "experience"
    section_strong_heading: str = "more experience"
    section_stop_headings: List[str] = Field(default_factory=lambda: list(DEFAULT_STOP_HEADINGS))
    section_pattern_search_offset: int = 500
    section_char_cap: int = 12000
    section_fallback_char_cap: int = 10000
    min_section_chars: int = 50

    # Line reconstruction
    line_tolerance_ratio: float = 0.5
    space_gap_ratio: float = 0.15

    # Import
    upsert_batch_size: int = Field(default=10, ge=1, le=10)
    duplicate_policy: DuplicatePolicy = "append"
    include_years_worked: bool = False
    image_strategy: ImageStrategy = "ocr"

    # Deadline applied to every outbound call (seconds)
    http_timeout_seconds: float = 60.0
    max_upload_bytes: int = 20 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    def get_cors_origins(self) -> list:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
