from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    PASSWORD_HASH_ROUNDS: int = 10
    REFRESH_COOKIE_NAME: str = "refreshToken"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret(cls, value):
        if not value or not value.strip():
            raise ValueError('SECRET_KEY must be set to sign tokens')
        return value

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
