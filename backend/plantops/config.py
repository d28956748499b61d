from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    environment: str = "development"
    debug: bool = True
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    # Remote data service (spreadsheet web app). Empty = in-memory backend.
    data_service_url: str = ""
    data_service_timeout: float = 30.0

    # Plants: the first-listed plant is not special, `base_plant` is.
    plants: str = "NPK2,NPK1"
    base_plant: str = "NPK2"
    approval_partition: str = "approval_requests"
    notification_partition: str = "notifications"

    # Auth / JWT
    secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 480

    # Redis (only used when decision_lock_backend == "redis")
    redis_url: str = "redis://localhost:6379/0"
    decision_lock_backend: str = "memory"
    decision_lock_ttl_ms: int = 30000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def plant_list(self) -> list[str]:
        return [p.strip() for p in self.plants.split(",") if p.strip()]


settings = Settings()
