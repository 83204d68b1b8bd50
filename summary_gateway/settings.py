# summary_gateway/settings.py - environment-driven configuration (read once)
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
REPO_ROOT = BASE_DIR.parent

# Load .env next to the package, then the repo root one; real env vars win
load_dotenv(BASE_DIR / ".env")
load_dotenv(REPO_ROOT / ".env")

DEFAULT_ALLOWED_ORIGINS = (
    "https://blog.alearn.org.tw",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:8787",
)
DEFAULT_CACHE_PREFIX = "summary-cache/v1"
DEFAULT_MODEL_TAG = "gpt-oss-120b"

CACHE_BACKENDS = ("auto", "none", "sql", "s3")
CACHE_WRITE_MODES = ("background", "thread")

_TRUTHY = {"1", "true", "yes", "on"}


def require_env(name: str, default: str | None = None) -> str:
    val = os.getenv(name, default)
    if val is None or (isinstance(val, str) and val.strip() == ""):
        raise RuntimeError(f"Missing required env var: {name}")
    return val


def env_flag(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    return val.strip().lower() in _TRUTHY


def env_number(name: str, default, cast=int):
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return default
    try:
        return cast(val.strip())
    except ValueError:
        raise RuntimeError(f"Env var {name} must be a number, got {val!r}") from None


def env_choice(name: str, default: str, choices: Tuple[str, ...]) -> str:
    val = (os.getenv(name) or default).strip().lower()
    if val not in choices:
        raise RuntimeError(f"Env var {name} must be one of {', '.join(choices)}, got {val!r}")
    return val


def parse_origins(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated allowlist, dropping blanks and keeping order."""
    if raw is None:
        return DEFAULT_ALLOWED_ORIGINS
    origins = []
    for item in raw.split(","):
        item = item.strip()
        if item and item not in origins:
            origins.append(item)
    return tuple(origins)


def _optional(name: str) -> Optional[str]:
    val = os.getenv(name)
    if val is None or val.strip() == "":
        return None
    return val.strip()


@dataclass(frozen=True)
class Settings:
    allowed_origins: Tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    cache_prefix: str = DEFAULT_CACHE_PREFIX
    model_tag: str = DEFAULT_MODEL_TAG

    cache_enabled: bool = True
    cache_backend: str = "auto"
    cache_write_mode: str = "background"
    database_url: Optional[str] = None
    cache_bucket: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None

    summarizer_base_url: str = "https://api.openai.com/v1"
    summarizer_api_key: Optional[str] = field(default=None, repr=False)
    summarizer_model: Optional[str] = None
    summarizer_timeout_s: float = 60.0
    summarizer_max_retries: int = 2
    summarizer_max_tokens: Optional[int] = None

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            allowed_origins=parse_origins(os.getenv("ALLOWED_ORIGINS")),
            cache_prefix=os.getenv("SUMMARY_CACHE_PREFIX", DEFAULT_CACHE_PREFIX).strip().strip("/"),
            model_tag=os.getenv("SUMMARY_MODEL_TAG", DEFAULT_MODEL_TAG).strip(),
            cache_enabled=env_flag("SUMMARY_CACHE_ENABLED", True),
            cache_backend=env_choice("SUMMARY_CACHE_BACKEND", "auto", CACHE_BACKENDS),
            cache_write_mode=env_choice("CACHE_WRITE_MODE", "background", CACHE_WRITE_MODES),
            database_url=_optional("DATABASE_URL"),
            cache_bucket=_optional("SUMMARY_CACHE_BUCKET"),
            s3_endpoint_url=_optional("S3_ENDPOINT_URL"),
            s3_region=_optional("S3_REGION"),
            summarizer_base_url=os.getenv("SUMMARIZER_BASE_URL", "https://api.openai.com/v1").strip(),
            summarizer_api_key=_optional("SUMMARIZER_API_KEY"),
            summarizer_model=_optional("SUMMARIZER_MODEL"),
            summarizer_timeout_s=env_number("SUMMARIZER_TIMEOUT_S", 60.0, float),
            summarizer_max_retries=env_number("SUMMARIZER_MAX_RETRIES", 2),
            summarizer_max_tokens=env_number("SUMMARIZER_MAX_TOKENS", None),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def resolved_cache_backend(self) -> str:
        """Backend actually in use: 'none', 'sql' or 's3'."""
        if not self.cache_enabled:
            return "none"
        if self.cache_backend != "auto":
            return self.cache_backend
        if self.cache_bucket:
            return "s3"
        if self.database_url:
            return "sql"
        return "none"
