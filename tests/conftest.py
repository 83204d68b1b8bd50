import pytest
from fastapi.testclient import TestClient

from summary_gateway.main import create_app
from summary_gateway.settings import Settings
from summary_gateway.storage import MemoryObjectStore, SummaryCache

ALLOWED = "https://blog.alearn.org.tw"


class FakeSummarizer:
    """Counts calls and returns a deterministic outline for the text."""

    def __init__(self, reply=None, error=None):
        self.calls = []
        self.reply = reply
        self.error = error

    def __call__(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if self.reply is not None:
            return self.reply
        return f"- outline of {len(text)} chars"


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def store():
    return MemoryObjectStore()


@pytest.fixture
def cache(store, settings):
    return SummaryCache(store, settings.model_tag)


@pytest.fixture
def app(settings, summarizer, cache):
    return create_app(settings, summarizer=summarizer, cache=cache)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


ENV_VARS = [
    "ALLOWED_ORIGINS", "SUMMARY_CACHE_PREFIX", "SUMMARY_MODEL_TAG", "SUMMARY_CACHE_ENABLED",
    "SUMMARY_CACHE_BACKEND", "CACHE_WRITE_MODE", "DATABASE_URL", "SUMMARY_CACHE_BUCKET",
    "S3_ENDPOINT_URL", "S3_REGION", "SUMMARIZER_BASE_URL", "SUMMARIZER_API_KEY",
    "SUMMARIZER_MODEL", "SUMMARIZER_TIMEOUT_S", "SUMMARIZER_MAX_RETRIES",
    "SUMMARIZER_MAX_TOKENS", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
