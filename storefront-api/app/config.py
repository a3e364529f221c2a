from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./storefront.db"
    debug: bool = False
    log_level: str = "INFO"

    openai_api_key: str = ""
    llm_model: str = "gpt-5-mini"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 800
    llm_temperature: float = 0.7
    llm_history_messages: int = 20

    max_response_delay_seconds: float = 10.0

    shop_cache_worker_enabled: bool = True
    shop_cache_refresh_seconds: float = 60.0

    cors_allow_origins: str = "*"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
