from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "FinAI Personal Finance Manager"
    gemini_api_key: str = ""
    # must support generateContent; override via GEMINI_MODEL in .env if needed
    gemini_model: str = "gemini-2.5-pro"
    gemini_timeout_seconds: int = 60
    gemini_max_retries: int = 2
    database_url: str = ""
    # Comma-separated origins for CORS.
    cors_allow_origins: str = "*"
    jwt_secret_key: str
    jwt_algorithm: str
    log_level: str = "INFO"
    # Used for the DB session and for "this month"; keep both on one clock.
    timezone: str = "UTC"

    # Chat tuning knobs.
    chat_history_limit: int = 10
    chat_page_limit: int = 100
    message_max_length: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
