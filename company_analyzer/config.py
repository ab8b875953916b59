import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if not raw:
        return None
    return float(raw)


class Settings:
    llm_api_key = os.getenv("OPENAI_API_KEY")
    llm_base_url = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1/chat/completions")
    llm_model = os.getenv("LLM_MODEL", "gpt-4o")
    llm_timeout = _optional_float("LLM_TIMEOUT_SECONDS")

    plan_store_backend = os.getenv("PLAN_STORE_BACKEND", "sqlite").lower()
    plan_db_path = os.getenv("PLAN_DB_PATH", os.path.join("data", "business-plans.db"))

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "3001"))


settings = Settings()
