from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./allergycare.db"
    anthropic_api_key: str = ""

    advisory_model: str = "claude-sonnet-4-5-20250929"
    advisory_max_tokens: int = 500

    # Advisory call timeout settings (seconds)
    advisory_timeout: float = 10.0
    advisory_connect_timeout: float = 5.0

    # "development" allows the illustrative advisory response without an API key
    environment: str = "development"

    # Backup document format version written on export
    backup_version: str = "1.0"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
