"""Runtime settings read from the environment."""
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".safety_tutor" / "tutor.db")
DEFAULT_MODEL = "gemini-flash-lite-latest"


@dataclass
class Settings:
    db_path: str = DEFAULT_DB_PATH
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_MODEL
    gemini_timeout: float = 30.0
    log_level: str = "WARNING"
    regenerate_delay: float = 2.0

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            db_path=env.get("SAFETY_TUTOR_DB", DEFAULT_DB_PATH),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            gemini_model=env.get("GEMINI_MODEL", DEFAULT_MODEL),
            gemini_timeout=float(env.get("GEMINI_TIMEOUT", "30")),
            log_level=env.get("SAFETY_TUTOR_LOG_LEVEL", "WARNING").upper(),
            regenerate_delay=float(env.get("REGENERATE_DELAY", "2")),
        )
