from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class Settings:
    """Process-wide settings for the consular API, read from the environment once at import."""

    # "development" (default), "test" or "production". Production switches
    # logging to JSON lines.
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Public base URL of the web front-end, used to build links in
    # notifications (e.g. "https://consulat.example.org").
    app_url: str = os.getenv("APP_URL", "http://localhost:3000")

    # Directory where uploaded user documents are stored.
    upload_dir: Path = Path(os.getenv("UPLOAD_DIR", "uploads"))
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

    # Relational store. In-memory repositories are used unless USE_SQL_REPOS=true.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"

    # Optional MongoDB mirror for user/profile documents. Disabled when unset.
    mongodb_url: Optional[str] = os.getenv("MONGODB_URL")
    mongodb_db_name: str = os.getenv("MONGODB_DB_NAME", "consular")

    # Email delivery through the Resend HTTP API. When EMAIL_API_KEY is unset
    # emails are only logged.
    email_api_key: Optional[str] = os.getenv("EMAIL_API_KEY")
    email_api_url: str = os.getenv("EMAIL_API_URL", "https://api.resend.com/emails")
    email_from: str = os.getenv("EMAIL_FROM", "Consulat <no-reply@example.org>")

    # SMS delivery through the Twilio REST API. When the credentials are unset
    # SMS messages are only logged.
    twilio_account_sid: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_from_number: Optional[str] = os.getenv("TWILIO_FROM_NUMBER")

    # Timeout applied to outbound provider HTTP calls.
    provider_timeout_seconds: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

    # Form assistant backend: "demo", "llm" or "auto" (default). "auto" picks
    # the LLM backend whenever OPENAI_API_KEY is set.
    assistant_backend: str = os.getenv("ASSISTANT_BACKEND", "auto")
    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    llm_model: str = os.getenv("LLM_MODEL", "gpt-4.1-mini")

    # Comma-separated origins allowed to call the API from a browser.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
