# callintel/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

# load callintel/.env first, then anything in the working dir
load_dotenv(Path(__file__).with_name(".env"))
load_dotenv()


def _csv(name: str, default: str) -> list[str]:
    return [v.strip().lower() for v in os.getenv(name, default).split(",") if v.strip()]


class Settings:
    DATABASE_URL: str | None = os.getenv("DATABASE_URL")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---- LLM ----
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    MODEL_NAME: str = os.getenv("MODEL_NAME") or "gpt-4o-mini"
    LLM_RETRIES: int = int(os.getenv("LLM_RETRIES", "3"))
    LLM_TIMEOUT_S: int = int(os.getenv("LLM_TIMEOUT_S", "60"))

    # ---- classification ----
    TRANSCRIPT_CHAR_BUDGET: int = int(os.getenv("TRANSCRIPT_CHAR_BUDGET", "15000"))
    AUTO_ASSIGN_THRESHOLD: float = float(os.getenv("AUTO_ASSIGN_THRESHOLD", "0.75"))
    REVIEW_THRESHOLD: float = float(os.getenv("REVIEW_THRESHOLD", "0.50"))
    FALLBACK_CONFIDENCE: float = float(os.getenv("FALLBACK_CONFIDENCE", "0.45"))
    STRONG_SIGNAL_WEIGHT: int = int(os.getenv("STRONG_SIGNAL_WEIGHT", "2"))
    WEAK_SIGNAL_PENALTY: int = int(os.getenv("WEAK_SIGNAL_PENALTY", "1"))
    TOP_CANDIDATES: int = int(os.getenv("TOP_CANDIDATES", "3"))
    PLAYBOOK_PROMPT_CHARS: int = int(os.getenv("PLAYBOOK_PROMPT_CHARS", "700"))

    # ---- external/internal classification ----
    INTERNAL_DOMAINS: list[str] = _csv("INTERNAL_DOMAINS", "scandiweb.com,scandipwa.com")

    # ---- calendar / drive matching ----
    TIME_MATCH_WINDOW_MINUTES: int = int(os.getenv("TIME_MATCH_WINDOW_MINUTES", "120"))
    MATCH_TITLE_WORD_WEIGHT: int = int(os.getenv("MATCH_TITLE_WORD_WEIGHT", "50"))
    MATCH_TRANSCRIPT_BONUS: int = int(os.getenv("MATCH_TRANSCRIPT_BONUS", "30"))
    MATCH_MIN_SCORE: int = int(os.getenv("MATCH_MIN_SCORE", "20"))
    SYNC_WINDOW_DAYS: int = int(os.getenv("SYNC_WINDOW_DAYS", "7"))
    CALENDAR_MAX_RESULTS: int = int(os.getenv("CALENDAR_MAX_RESULTS", "100"))
    AUTO_IMPORT_ON_SYNC: bool = os.getenv("AUTO_IMPORT_ON_SYNC", "1") == "1"

    # ---- batches ----
    BATCH_DELAY_S: float = float(os.getenv("BATCH_DELAY_S", "0.5"))
    CRON_USER_DELAY_S: float = float(os.getenv("CRON_USER_DELAY_S", "1.0"))
    CRON_SECRET: str | None = os.getenv("CRON_SECRET") or None

    # ---- web ----
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    ]
    UPLOAD_MAX_BYTES: int = int(os.getenv("UPLOAD_MAX_BYTES", str(50 * 1024 * 1024)))
    FRONTEND_AFTER_AUTH: str = os.getenv("FRONTEND_AFTER_AUTH", "http://localhost:3000/dashboard")

settings = Settings()
