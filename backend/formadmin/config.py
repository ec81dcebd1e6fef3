from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGO_URI: str = "mongodb://localhost:27017"
    DB_NAME: str = "formily_admin"
    REGISTRY_DB_NAME: str = "formily_registry"
    CORS_ORIGINS: str = "*"  # comma separated
    LOG_LEVEL: str = "INFO"
    PORT: int = 3000
    REGISTRY_PORT: int = 3001
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    class Config:
        env_file = ".env"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
