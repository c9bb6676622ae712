from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Notetaker vendor (Nylas v3) API access.
    nylas_api_key: Optional[str] = os.getenv("NYLAS_API_KEY")
    nylas_api_url: str = os.getenv("NYLAS_API_URL", "https://api.us.nylas.com")

    # Upper bounds for outbound calls. Vendor API calls are expected to be
    # quick; media downloads (transcripts, recordings) can be much larger.
    notetaker_timeout_seconds: float = float(os.getenv("NOTETAKER_TIMEOUT_SECONDS", "10"))
    media_timeout_seconds: float = float(os.getenv("MEDIA_TIMEOUT_SECONDS", "30"))

    # A session read polls the vendor only when no update has been recorded
    # for at least this many seconds.
    resync_stale_seconds: float = float(os.getenv("RESYNC_STALE_SECONDS", "30"))

    # Summary backend selection: "basic", "llm" or "auto" (default). "auto"
    # uses the LLM backend whenever an OpenAI key is configured.
    summary_backend: str = os.getenv("SUMMARY_BACKEND", "auto")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # Optional database configuration for the SQL-backed session store.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Recording archival. Disabled by default, in which case the vendor's
    # recording URL is stored as-is.
    archive_recordings: bool = os.getenv("ARCHIVE_RECORDINGS", "false").lower() == "true"
    recordings_dir: Path = Path(os.getenv("RECORDINGS_DIR", "recordings"))

    # CORS configuration: comma-separated origins. Default is "*" (allow all)
    # which is acceptable for local development but should be tightened in
    # production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
