"""
Application configuration.
All settings are loaded from environment variables (or a .env file).
Use env.example as a reference for required variables.
"""
import json
import sys

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings


REQUIRED_CREDENTIALS = ("telegram_bot_token", "key_api_token")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # TELEGRAM BOT
    # ===========================================
    telegram_bot_token: str  # Required, no default
    # Bot username without @ (used in "open a private chat" hints). Example: KeyGateBot
    telegram_bot_username: str = ""

    # ===========================================
    # HTTP SERVER
    # ===========================================
    http_host: str = "0.0.0.0"
    http_port: int = 3000
    # Static credential for GET /key (query ?api_key= or X-API-Key header)
    key_api_token: str  # Required, no default

    # ===========================================
    # STORAGE
    # ===========================================
    data_dir: str = "data"

    # ===========================================
    # KEY LIFECYCLE
    # ===========================================
    key_length: int = 27
    key_ttl_hours: float = 12.0

    # ===========================================
    # ELIGIBILITY POLICY (both disabled = everyone may read the key)
    # ===========================================
    min_qualifying_messages: int = 0
    require_verification: bool = False

    # ===========================================
    # ANTI-SPAM
    # ===========================================
    anti_spam_enabled: bool = False
    anti_spam_window_seconds: int = 10
    anti_spam_max_messages: int = 5
    anti_spam_timeout_minutes: int = 5

    # ===========================================
    # AUTO-RESPONSES & POSTS
    # ===========================================
    # JSON object {"trigger": "reply"}; matched as case-insensitive substring
    autoresponses: str = "{}"
    # JSON object {"name": {"title": ..., "body": ..., "footer": ...}}; merged over built-ins
    post_templates: str = "{}"

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("telegram_bot_token", "key_api_token")
    @classmethod
    def validate_required_credential(cls, v: str) -> str:
        """An empty credential counts as unset."""
        if not v.strip():
            raise ValueError("environment variable is not set")
        return v

    @field_validator("key_length", "anti_spam_window_seconds", "anti_spam_max_messages", "anti_spam_timeout_minutes")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("key_ttl_hours")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("key_ttl_hours must be positive")
        return v

    @field_validator("min_qualifying_messages")
    @classmethod
    def validate_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_qualifying_messages must be >= 0")
        return v

    @field_validator("autoresponses", "post_templates")
    @classmethod
    def validate_json_object(cls, v: str) -> str:
        """Fail at startup rather than on the first message."""
        try:
            parsed = json.loads(v or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"invalid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError("must be a JSON object")
        return v or "{}"

    @property
    def autoresponses_map(self) -> dict[str, str]:
        return {str(k): str(v) for k, v in json.loads(self.autoresponses).items()}

    @property
    def post_templates_map(self) -> dict[str, dict[str, str]]:
        raw = json.loads(self.post_templates)
        return {str(k): v for k, v in raw.items() if isinstance(v, dict)}

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def load_settings() -> Settings:
    """Build settings or terminate the process with a readable message."""
    try:
        return Settings()
    except ValidationError as e:
        lines = []
        for err in e.errors():
            field = ".".join(str(part) for part in err.get("loc", ())) or "settings"
            if err.get("type") == "missing" or field in REQUIRED_CREDENTIALS:
                lines.append(f"ERROR: {field.upper()} environment variable is not set")
            else:
                lines.append(f"ERROR: {field.upper()}: {err.get('msg')}")
        sys.stderr.write("\n".join(lines) + "\n")
        raise SystemExit(1)


settings = load_settings()
