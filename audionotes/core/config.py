import os
from dataclasses import dataclass
from pathlib import Path

try:
    from dotenv import load_dotenv

    # Always load .env from the project root (stable, regardless of CWD)
    BASE_DIR = Path(__file__).resolve().parents[2]
    dotenv_path = BASE_DIR / ".env"
    load_dotenv(dotenv_path=dotenv_path, override=False)
except ImportError:
    # dotenv is optional; if not installed, env vars still work
    pass


def _env(name: str, default: str) -> str:
    v = os.getenv(name)
    return v if v and v.strip() else default


@dataclass(frozen=True)
class Settings:
    database_url: str = _env("DATABASE_URL", "sqlite:///./data/audionotes.db")
    env: str = _env("ENV", "local")
    log_level: str = _env("LOG_LEVEL", "INFO")

    # uploaded audio, converted mp3, output.md / output.txt live under here
    data_dir: str = _env("DATA_DIR", "./data")

    ffmpeg_bin: str = _env("FFMPEG_BIN", "ffmpeg")
    ffprobe_bin: str = _env("FFPROBE_BIN", "ffprobe")

    # external endpoint timeouts
    stt_timeout_sec: float = float(_env("STT_TIMEOUT_SEC", "600"))
    llm_timeout_sec: float = float(_env("LLM_TIMEOUT_SEC", "300"))

    # pipeline retry knobs
    stt_max_retries: int = int(_env("STT_MAX_RETRIES", "3"))
    llm_max_retries: int = int(_env("LLM_MAX_RETRIES", "3"))
    full_max_retries: int = int(_env("FULL_MAX_RETRIES", "1"))
    step_retry_base_sec: float = float(_env("STEP_RETRY_BASE_SEC", "2.0"))
    full_retry_delay_sec: float = float(_env("FULL_RETRY_DELAY_SEC", "3.0"))

    # comma separated user ids allowed to change model settings
    admin_user_ids: str = os.getenv("ADMIN_USER_IDS", "")

    # finished jobs kept in memory so late progress polls still resolve
    job_history_limit: int = int(_env("JOB_HISTORY_LIMIT", "200"))


settings = Settings()
