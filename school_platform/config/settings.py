from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Required for table access and app_metadata backfill

    # Auth
    auth_cache_ttl_sec: int = 60
    auth_cache_max_size: int = 500

    # App
    app_name: str = "school-platform-api"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:4200,http://127.0.0.1:3000,http://127.0.0.1:4200"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    default_page_size: int = 100

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
