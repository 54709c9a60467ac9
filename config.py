from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Mortgage Approver API"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./mortgage_approver.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Load-merge-save attempts before a concurrent writer wins
    merge_max_retries: int = 3

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
