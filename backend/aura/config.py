from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Aura Habits API"
    gemini_api_key: str = ""
    # flash is enough for picking one of four function calls; override via GEMINI_MODEL
    gemini_model: str = "gemini-2.5-flash"
    # Empty selects the in-memory store (local, non-durable).
    database_url: str = ""
    # Comma-separated origins for CORS. Use "*" only for demo environments.
    cors_allow_origins: str = "*"
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str = ""
    habit_cap: int = 3
    serialize_mutations: bool = True
    # Resident months of users idle this long are dropped from memory.
    session_idle_seconds: int = 1800
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
