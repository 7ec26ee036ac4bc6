import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class AppConfig:
    """Application settings read from the environment"""

    # Generative models
    CHAT_MODEL = os.getenv("CHAT_MODEL", "google_genai:gemini-2.5-flash")
    PLANNER_MODEL = os.getenv("PLANNER_MODEL", "google_genai:gemini-2.5-flash")

    # History store
    DATABASE_URL = os.getenv("DATABASE_URL")
    POSTGRES_USER = os.getenv("POSTGRES_USER")
    POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")
    POSTGRES_DB = os.getenv("POSTGRES_DB")
    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

    # Hosted auth
    SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET", "")
    SUPABASE_JWT_AUDIENCE = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")

    # Logging
    LOG_FILE = os.getenv("LOG_FILE", "logs/app.log")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Timers
    TIMER_TICK_SECONDS = float(os.getenv("TIMER_TICK_SECONDS", "1.0"))

    CORS_ORIGINS = _env_list(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://localhost:8080",
    )


class CacheConfig:
    """Cache configuration settings"""

    # Cache TTL settings (in seconds)
    HISTORY_CACHE_TTL = 120  # 2 minutes

    # Memory cache settings
    MAX_MEMORY_CACHE_SIZE = 1000
    MEMORY_CACHE_TTL = 300  # 5 minutes

    # Redis settings
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
    REDIS_DB = int(os.getenv("REDIS_DB", "0"))
    REDIS_KEY_PREFIX = "focusflow:"
