from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    db_path: str = os.getenv("NEBRESULT_DB_PATH", "data/nebresult.db")
    log_level: str = os.getenv("NEBRESULT_LOG_LEVEL", "INFO")
    debug: bool = _flag(os.getenv("NEBRESULT_DEBUG", "false"))

    # Accepted Bikram Sambat year window for date input.
    bs_min_year: int = int(os.getenv("NEBRESULT_BS_MIN_YEAR", "2000"))
    bs_max_year: int = int(os.getenv("NEBRESULT_BS_MAX_YEAR", "2200"))

    api_host: str = os.getenv("NEBRESULT_API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("NEBRESULT_API_PORT", "8000"))
    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("NEBRESULT_CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )


settings = Settings()
