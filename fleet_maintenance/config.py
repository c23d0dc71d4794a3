from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # ─── Application ───────────────────────────────────────────────────────────
    APP_NAME: str = "Fleet Maintenance Tracker"
    APP_ENV:  str = "development"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    # ─── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL:          str  = "sqlite:///./fleet_maintenance.db"
    DATABASE_POOL_SIZE:    int  = 10
    DATABASE_MAX_OVERFLOW: int  = 20
    DATABASE_POOL_TIMEOUT: int  = 30
    DATABASE_ECHO:         bool = False

    # ─── Pagination ────────────────────────────────────────────────────────────
    FETCH_SIZE:         int = 10    # nested maintenance records per equipment
    MILEAGE_FETCH_SIZE: int = 30    # nested mileage records per equipment
    MAX_PAGE_LIMIT:     int = 100

    # ─── Association limits ────────────────────────────────────────────────────
    BULK_MAX_ITEMS:     int = 50
    MIN_QUANTITY:       int = 1
    MAX_QUANTITY:       int = 1000
    MAX_UNIT_PRICE:     int = 100000

    # ─── API client ────────────────────────────────────────────────────────────
    API_BASE_URL: str   = "http://localhost:8000/api/v1"
    API_TIMEOUT:  float = 30.0

    # ─── CORS ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000,http://127.0.0.1:3000"

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    model_config = {"env_file": ".env", "case_sensitive": True, "extra": "ignore"}


settings = Settings()
