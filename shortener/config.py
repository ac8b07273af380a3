import os
from dataclasses import dataclass

STORE_BACKENDS = ("memory", "sql", "redis")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./data/links.db"
    redis_url: str = "redis://localhost:6379/0"
    store_backend: str = "sql"
    base_url: str = "http://localhost:8000"
    code_length: int = 6
    default_validity_minutes: int = 30
    max_generation_attempts: int = 10
    max_update_attempts: int = 50
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("STORE_BACKEND", cls.store_backend).lower()
        if backend not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {backend!r}")
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            redis_url=os.getenv("REDIS_URL", cls.redis_url),
            store_backend=backend,
            base_url=os.getenv("BASE_URL", cls.base_url).rstrip("/"),
            code_length=int(os.getenv("CODE_LENGTH", str(cls.code_length))),
            default_validity_minutes=int(
                os.getenv("DEFAULT_VALIDITY_MINUTES", str(cls.default_validity_minutes))
            ),
            max_generation_attempts=int(
                os.getenv("MAX_GENERATION_ATTEMPTS", str(cls.max_generation_attempts))
            ),
            max_update_attempts=int(os.getenv("MAX_UPDATE_ATTEMPTS", str(cls.max_update_attempts))),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
        )
