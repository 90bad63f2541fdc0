"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # procmatch/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenRouter credential; checked at call time, not at startup
    openrouter_api_key: str | None = None

    # Models routed by the aggregation endpoint
    procmatch_extraction_model: str = "deepseek/deepseek-r1-0528:free"
    procmatch_matching_model: str = "nvidia/nemotron-nano-12b-v2-vl:free"
    procmatch_conversation_model: str = "deepseek/deepseek-r1-0528:free"
    procmatch_reasoning_enabled: bool = True

    # Gateway endpoint and identification headers
    procmatch_gateway_base_url: str = "https://openrouter.ai/api/v1"
    procmatch_gateway_referer: str = "https://offshorebrucke.com"
    procmatch_gateway_title: str = "Offshore Brucke Reasoning"
    procmatch_gateway_timeout: float = Field(default=90.0, gt=0)

    # Matching
    procmatch_match_cap: int = Field(default=20, ge=1)

    # External supplier scout (keyless HTML search restricted per directory)
    procmatch_scout_timeout: float = Field(default=10.0, gt=0)
    procmatch_scout_search_url: str = "https://html.duckduckgo.com/html/"
    procmatch_scout_directories: str = "indiamart.com,tradeindia.com,exportersindia.com"
    procmatch_scout_max_results: int = Field(default=5, ge=1)

    # Extra model turns allowed to repair an undecodable extraction answer
    procmatch_extraction_repair_attempts: int = Field(default=1, ge=0)
    procmatch_default_destination: str = "Germany"

    # Attachment text (PDF, spreadsheet) is cut to this many characters per prompt
    procmatch_attachment_max_chars: int = Field(default=20_000, ge=1)

    # Collaborator data (JSON files); unset means empty directory / fallback catalog
    procmatch_supplier_directory_path: str | None = None
    procmatch_category_catalog_path: str | None = None

    # CORS origins (comma-separated). Defaults to localhost dev.
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    # Optional regex to allow origins (e.g. https://.*\.vercel\.app)
    cors_origin_regex: str | None = None

    # Runtime environment; "development" enables auto-reload
    procmatch_env: str = "development"

    # Server port
    port: int = 8000

    @property
    def scout_directory_list(self) -> list[str]:
        """Parse comma-separated directory domains into a list."""
        return [d.strip() for d in self.procmatch_scout_directories.split(",") if d.strip()]

    @property
    def reload_enabled(self) -> bool:
        return self.procmatch_env.strip().lower() == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def supplier_directory_path(self) -> Path | None:
        """Supplier directory file, resolved against the project root when relative."""
        return _resolve(self.procmatch_supplier_directory_path)

    @property
    def category_catalog_path(self) -> Path | None:
        return _resolve(self.procmatch_category_catalog_path)


def _resolve(value: str | None) -> Path | None:
    if not value:
        return None
    p = Path(value)
    if not p.is_absolute():
        return (_PROJECT_ROOT / p).resolve()
    return p.resolve()


def get_settings() -> Settings:
    return Settings()
