from pydantic_settings import BaseSettings
from pydantic import SecretStr
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    app_name: str = "PinQuiz API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = "INFO"
    timezone: str = "UTC"

    # Supabase Configuration
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_anon_key: SecretStr = os.getenv("SUPABASE_ANON_KEY", "")
    supabase_service_role_key: SecretStr = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Game pin
    pin_min: int = 100000
    pin_max: int = 999999
    pin_max_attempts: int = 20

    # Quiz authoring limits
    min_time_limit: int = 5
    max_time_limit: int = 120
    default_time_limit: int = 30
    max_questions_per_quiz: int = 50
    max_player_name_length: int = 15

    # Scoring
    base_points: int = 1000
    time_bonus_per_second: int = 50
    leaderboard_size: int = 5

    # Realtime
    tick_seconds: float = 1.0
    ws_send_retries: int = 2

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
