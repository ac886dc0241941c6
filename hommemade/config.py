"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False
    cors_origin: str = "http://localhost:3000"

    # Blob storage
    blob_backend: str = "vercel"  # vercel | memory
    blob_read_write_token: str = ""
    blob_api_url: str = "https://blob.vercel-storage.com"
    blob_timeout_seconds: float = 10.0

    # Admin dashboard
    admin_username: str = ""
    admin_password: str = ""

    # Email notifications
    enable_email_notifications: bool = True
    email_from: str = "hello@hommemade.xyz"
    email_to: str = "hello@hommemade.xyz"
    resend_api_key: str = ""
    resend_api_url: str = "https://api.resend.com/emails"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    email_timeout_seconds: float = 10.0

    # Rate limiting
    rate_limit_window_minutes: int = 15
    rate_limit_max: int = 5
    rate_limit_cleanup_interval_ms: int = 60_000
    chat_rate_limit_window_ms: int = 60_000
    chat_rate_limit_max: int = 20

    # Uploads
    enable_file_upload: bool = True
    max_file_size: int = 52_428_800  # 50MB
    allowed_file_types: str = "pdf,doc,docx,txt,jpg,jpeg,png,gif,zip"

    # Intake
    sanitize_input: bool = True

    # Chat assistants
    chat_primary_provider: str = "openrouter"  # openrouter | groq | anthropic
    chat_fallback_provider: str = "groq"
    openrouter_api_key: str = ""
    openrouter_api_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_model: str = "qwen/qwen3-235b-a22b-07-25:free"
    groq_api_key: str = ""
    groq_api_url: str = "https://api.groq.com/openai/v1/chat/completions"
    groq_model: str = "llama3-8b-8192"
    anthropic_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 1500
    llm_temperature: float = 0.65
    chat_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def rate_limit_window_ms(self) -> int:
        return self.rate_limit_window_minutes * 60 * 1000

    @property
    def allowed_file_type_list(self) -> list[str]:
        return [t.strip().lower() for t in self.allowed_file_types.split(",") if t.strip()]

    @property
    def has_admin_auth(self) -> bool:
        return bool(self.admin_username and self.admin_password)

    def config_errors(self) -> list[str]:
        """Problems that make the intake endpoints unusable."""
        errors = []
        if self.blob_backend == "vercel" and not self.blob_read_write_token:
            errors.append("BLOB_READ_WRITE_TOKEN is required for storing submissions")
        return errors

    def config_warnings(self) -> list[str]:
        """Problems that only degrade optional features."""
        warnings = []
        if not self.has_admin_auth:
            warnings.append("Admin authentication not configured - admin dashboard is unprotected")
        if self.enable_email_notifications and not (self.resend_api_key or self.smtp_host):
            warnings.append("No email provider configured - notifications will be skipped")
        return warnings

    def config_summary(self) -> dict:
        """Configuration overview safe for logs (no secret values)."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "blob_backend": self.blob_backend,
            "email_enabled": self.enable_email_notifications,
            "file_upload_enabled": self.enable_file_upload,
            "has_admin_auth": self.has_admin_auth,
            "has_email_config": bool(self.resend_api_key or self.smtp_host),
            "has_blob_token": bool(self.blob_read_write_token),
            "chat_providers": [self.chat_primary_provider, self.chat_fallback_provider],
        }


settings = Settings()
