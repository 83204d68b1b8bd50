import pytest
import requests

from summary_gateway.summarizer import (
    OUTLINE_SYSTEM_PROMPT,
    OutlineSummarizer,
    SummarizerConfigurationError,
    SummarizerError,
    SummarizerUnavailableError,
)


class FakeResponse:
    def __init__(self, status_code=200, data=None, headers=None, bad_json=False):
        self.status_code = status_code
        self._data = data
        self.headers = headers or {}
        self._bad_json = bad_json

    def json(self):
        if self._bad_json:
            raise ValueError("no json")
        return self._data


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        pass


def completion(content):
    return FakeResponse(200, {"choices": [{"message": {"role": "assistant", "content": content}}]})


def make(session, **kwargs):
    kwargs.setdefault("max_retries", 2)
    return OutlineSummarizer("https://llm.example/v1/", "sk-test", "gpt-oss-120b",
                             session=session, sleep=lambda s: None, **kwargs)


def test_posts_chat_completion_and_returns_trimmed_content():
    session = FakeSession(completion("  # Outline\n- a\n  "))
    summarizer = make(session, max_tokens=800, timeout=12)
    assert summarizer("Article body") == "# Outline\n- a"

    sent = session.posts[0]
    assert sent["url"] == "https://llm.example/v1/chat/completions"
    assert sent["headers"]["Authorization"] == "Bearer sk-test"
    assert sent["timeout"] == 12
    assert sent["json"]["model"] == "gpt-oss-120b"
    assert sent["json"]["max_tokens"] == 800
    assert sent["json"]["messages"] == [
        {"role": "system", "content": OUTLINE_SYSTEM_PROMPT},
        {"role": "user", "content": "Article body"},
    ]


def test_missing_api_key_fails_without_calling_out():
    session = FakeSession()
    summarizer = OutlineSummarizer("https://llm.example/v1", None, "m", session=session)
    with pytest.raises(SummarizerConfigurationError):
        summarizer("text")
    assert session.posts == []


def test_retries_transient_status_then_succeeds():
    session = FakeSession(FakeResponse(503), FakeResponse(429, headers={"Retry-After": "1"}), completion("ok"))
    assert make(session)("text") == "ok"
    assert len(session.posts) == 3


def test_retries_network_errors_then_gives_up():
    session = FakeSession(*[requests.Timeout("slow")] * 3)
    with pytest.raises(SummarizerUnavailableError, match="timed out"):
        make(session)("text")
    assert len(session.posts) == 3


def test_persistent_5xx_is_unavailable():
    session = FakeSession(FakeResponse(502), FakeResponse(502), FakeResponse(502))
    with pytest.raises(SummarizerUnavailableError):
        make(session)("text")


@pytest.mark.parametrize("status", [401, 403])
def test_auth_failures_are_not_retried(status):
    session = FakeSession(FakeResponse(status))
    with pytest.raises(SummarizerConfigurationError):
        make(session)("text")
    assert len(session.posts) == 1


def test_other_client_errors():
    with pytest.raises(SummarizerError):
        make(FakeSession(FakeResponse(400, {"error": {"message": "bad"}})))("text")


@pytest.mark.parametrize("response", [
    FakeResponse(200, bad_json=True),
    FakeResponse(200, ["not", "an", "object"]),
    FakeResponse(200, {"choices": []}),
    FakeResponse(200, {"choices": [{"message": {"content": None}}]}),
])
def test_unexpected_payloads(response):
    with pytest.raises(SummarizerConfigurationError):
        make(FakeSession(response))("text")


def test_empty_summary_is_an_error():
    with pytest.raises(SummarizerError):
        make(FakeSession(completion("   ")))("text")


def test_retry_after_is_capped():
    summarizer = make(FakeSession())
    delay = summarizer._backoff_seconds(0, FakeResponse(429, headers={"Retry-After": "3600"}))
    assert delay <= 1.5 + OutlineSummarizer._MAX_RETRY_AFTER_S


def test_close_releases_session():
    class ClosingSession(FakeSession):
        closed = False

        def close(self):
            self.closed = True

    session = ClosingSession()
    make(session).close()
    assert session.closed
