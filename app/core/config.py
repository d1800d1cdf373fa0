from typing import List, Optional, Union
from pydantic import AnyHttpUrl, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    PROJECT_NAME: str = "Finance Back-Office"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # URLs
    BACKEND_URL: str = "http://localhost:8000"
    FRONTEND_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./backoffice.db"
    TEST_DATABASE_URL: str = "sqlite+aiosqlite://"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Mercado Livre
    ML_CLIENT_ID: str = ""
    ML_CLIENT_SECRET: str = ""
    ML_REDIRECT_URI: str = "http://localhost:3000/integrations/mercadolivre/callback"
    ML_API_URL: str = "https://api.mercadolibre.com"
    ML_AUTH_URL: str = "https://auth.mercadolivre.com.br/authorization"
    ML_INTEGRATION_VALIDITY_DAYS: int = 365
    ML_CONNECTION_TOKEN_TTL_MINUTES: int = 60
    ML_PAGE_SIZE: int = 50
    ML_ITEMS_BATCH_SIZE: int = 20
    ML_MAX_FETCH_ITEMS: int = 50000

    # Merchant calendar
    MERCHANT_TIMEZONE: str = "America/Sao_Paulo"

    # Object storage (S3-compatible bucket)
    S3_BUCKET: str = "backoffice-assets"
    S3_ENDPOINT_URL: Optional[str] = None
    S3_REGION: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
