import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # Firebase service account (JSON file path); empty means Firestore is unavailable
    FIREBASE_CREDENTIALS = os.environ.get("FIREBASE_CREDENTIALS", "")
    FIREBASE_PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID", "")

    # Currency used when a group is created without one
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Whether /recompute caches balances and settlements back to Firestore
    PERSIST_RESULTS = _env_flag("PERSIST_RESULTS", "true")


settings = Settings()
