# summary_gateway/summarizer.py - outline generation through an OpenAI-compatible chat endpoint
import logging
import random
import time
from typing import Any, Callable, Dict, Mapping, Optional

import requests

logger = logging.getLogger(__name__)

Summarize = Callable[[str], str]

OUTLINE_SYSTEM_PROMPT = (
    "You summarize articles and transcripts. Produce a concise outline of the "
    "user's text: a one-sentence overview followed by a nested bullet list of "
    "the main points in the order they appear. Write in the same language as "
    "the input. Do not add facts that are not in the text. Return plain "
    "Markdown without a preamble."
)


class SummarizerError(RuntimeError):
    """Base error for summarization failures."""


class SummarizerConfigurationError(SummarizerError):
    """Missing/rejected API key or an unexpected upstream payload."""


class SummarizerUnavailableError(SummarizerError):
    """Network errors, timeouts, 429 and 5xx after retries."""


class OutlineSummarizer:
    _RETRY_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
    _MAX_RETRY_AFTER_S = 30.0

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        model: str,
        *,
        timeout: float = 60.0,
        max_retries: int = 2,
        max_tokens: Optional[int] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.max_tokens = max_tokens
        self._session = session or requests.Session()
        self._sleep = sleep

    def __call__(self, text: str) -> str:
        return self.summarize(text)

    def summarize(self, text: str) -> str:
        if not self.api_key:
            raise SummarizerConfigurationError("SUMMARIZER_API_KEY is not configured")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": OUTLINE_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
            "temperature": 0.2,
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens

        started = time.monotonic()
        data = self._post_with_retries("/chat/completions", payload)
        summary = self._parse_content(data)
        logger.info("[SUMMARIZE] model=%s chars_in=%d chars_out=%d took=%.2fs",
                    self.model, len(text), len(summary), time.monotonic() - started)
        return summary

    def close(self) -> None:
        self._session.close()

    # ------------------------------
    # HTTP helpers
    # ------------------------------
    def _post_with_retries(self, path: str, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        url = self.base_url + path
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = self._session.post(url, json=payload, headers=headers, timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = exc
                logger.warning("[SUMMARIZE] attempt %d failed: %s", attempt + 1, exc)
                if attempt < self.max_retries:
                    self._sleep(self._backoff_seconds(attempt))
                continue

            if response.status_code in (401, 403):
                raise SummarizerConfigurationError(
                    f"summarizer rejected credentials ({response.status_code})")

            if response.status_code in self._RETRY_STATUS_CODES:
                last_error = SummarizerUnavailableError(
                    f"summarizer returned {response.status_code}")
                if attempt < self.max_retries:
                    self._sleep(self._backoff_seconds(attempt, response))
                    continue
                raise last_error

            if response.status_code >= 400:
                raise SummarizerError(f"summarizer request failed ({response.status_code})")

            try:
                data = response.json()
            except ValueError as exc:
                raise SummarizerConfigurationError("summarizer returned a non-JSON response") from exc
            if not isinstance(data, Mapping):
                raise SummarizerConfigurationError("summarizer response was not a JSON object")
            return data

        if isinstance(last_error, requests.Timeout):
            raise SummarizerUnavailableError("summarizer timed out after retries") from last_error
        raise SummarizerUnavailableError("summarizer request failed after retries") from last_error

    def _backoff_seconds(self, attempt: int, response: Optional[requests.Response] = None) -> float:
        base = min(2 ** attempt, 16)
        jitter = random.uniform(0.5, 1.5)
        retry_after = 0.0
        if response is not None:
            header = response.headers.get("Retry-After")
            if header:
                try:
                    retry_after = min(max(float(header), 0.0), self._MAX_RETRY_AFTER_S)
                except ValueError:
                    pass
        return max(0.5, base * jitter + retry_after)

    @staticmethod
    def _parse_content(data: Mapping[str, Any]) -> str:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices:
            raise SummarizerConfigurationError("summarizer response missing choices")
        message = choices[0].get("message") if isinstance(choices[0], Mapping) else None
        content = message.get("content") if isinstance(message, Mapping) else None
        if not isinstance(content, str):
            raise SummarizerConfigurationError("summarizer response missing text content")
        content = content.strip()
        if not content:
            raise SummarizerError("summarizer returned an empty summary")
        return content
