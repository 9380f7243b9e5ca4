from pydantic_settings import BaseSettings
import os

class Settings(BaseSettings):
    seed: int = int(os.getenv("SEED", 0))
    word_length_min: int = int(os.getenv("WORD_LENGTH_MIN", 4))
    word_length_max: int = int(os.getenv("WORD_LENGTH_MAX", 15))
    imitation_count: int = int(os.getenv("IMITATION_COUNT", 10))
    chunk_size: int = int(os.getenv("CHUNK_SIZE", 64))
    tick_budget_ms: float = float(os.getenv("TICK_BUDGET_MS", 8.0))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_key: str | None = os.getenv("API_KEY")

settings = Settings()
