from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    
    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./fleetcal.db",
        alias="DATABASE_URL"
    )
    
    # CORS - Operator UI origins (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
        alias="ALLOWED_ORIGINS"
    )
    
    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: Optional[bool] = Field(default=None, alias="LOG_JSON")  # None = JSON in production only
    
    # Public URL used when building calendar feed links
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    
    # ==============================================
    # Inbound feed ingestion
    # ==============================================
    # Hard timeout for fetching an external calendar
    feed_fetch_timeout_seconds: float = Field(default=10.0, alias="FEED_FETCH_TIMEOUT_SECONDS")
    
    # Documents larger than this are rejected
    feed_max_bytes: int = Field(default=5_000_000, alias="FEED_MAX_BYTES")
    
    # Scheduled sweep of all registered feeds
    feed_sync_enabled: bool = Field(default=True, alias="FEED_SYNC_ENABLED")
    feed_sync_interval_minutes: int = Field(default=30, alias="FEED_SYNC_INTERVAL_MINUTES")
    feed_sync_max_parallel: int = Field(default=4, alias="FEED_SYNC_MAX_PARALLEL")
    
    # ==============================================
    # Outbound feed export
    # ==============================================
    # Entropy of issued feed tokens, in bytes
    feed_token_bytes: int = Field(default=32, alias="FEED_TOKEN_BYTES")
    
    calendar_product_id: str = Field(
        default="-//Fleetcal//Vehicle Calendar//EN",
        alias="CALENDAR_PRODUCT_ID"
    )
    calendar_uid_domain: str = Field(default="fleetcal", alias="CALENDAR_UID_DOMAIN")
    
    # Rate limit on the public calendar endpoint
    calendar_feed_rate_limit: str = Field(default="60/minute", alias="CALENDAR_FEED_RATE_LIMIT")
    
    # Key the limit on X-Forwarded-For; enable only behind our own reverse proxy
    trust_proxy_headers: bool = Field(default=False, alias="TRUST_PROXY_HEADERS")
    
    @field_validator('database_url')
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosted PostgreSQL hands out postgres:// but SQLAlchemy needs postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v
    
    @field_validator('feed_token_bytes')
    @classmethod
    def validate_token_bytes(cls, v: int) -> int:
        if v < 16:
            raise ValueError("FEED_TOKEN_BYTES must be at least 16")
        return v
    
    @field_validator('feed_sync_max_parallel')
    @classmethod
    def validate_parallelism(cls, v: int) -> int:
        if v < 1:
            raise ValueError("FEED_SYNC_MAX_PARALLEL must be at least 1")
        return v
    
    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
    
    @property
    def use_json_logs(self) -> bool:
        if self.log_json is None:
            return self.is_production
        return self.log_json
    
    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        if not self.allowed_origins:
            return ["http://localhost:5173"]
        
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        
        return origins or ["http://localhost:5173"]
    
    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
