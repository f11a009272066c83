import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from readiness.errors import AIServiceError, ErrorKind
from readiness.services.gemini_service import GeminiService, classify_error, extract_json


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FlakyModel:
    """Fails with the given exceptions before answering"""

    def __init__(self, *failures, text="[]"):
        self.failures = list(failures)
        self.text = text
        self.calls = 0

    async def generate_content_async(self, prompt, generation_config=None):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return FakeResponse(self.text)


def service_with(model, max_retries=1):
    service = GeminiService(model_name="test-model", max_retries=max_retries)
    service._model = lambda system_instruction=None: model
    return service


def test_extract_json_from_fenced_block():
    text = '```json\n[{"id": "q-1"}]\n```'
    assert extract_json(text) == [{"id": "q-1"}]


def test_extract_json_from_surrounding_prose():
    text = 'Here you go: {"level": "Ready", "confidence": 80} Good luck!'
    assert extract_json(text, expect=dict) == {"level": "Ready", "confidence": 80}


@pytest.mark.parametrize("text", ["", "   ", "no json here", '{"a": 1}'])
def test_extract_json_parse_errors(text):
    with pytest.raises(AIServiceError) as err:
        extract_json(text, expect=list)
    assert err.value.kind == ErrorKind.PARSE_ERROR


def test_classify_rate_limit():
    error = classify_error(google_exceptions.TooManyRequests("slow down"))
    assert error.kind == ErrorKind.RATE_LIMITED
    assert error.status_code == 429
    assert error.retry_after == 30


def test_classify_payment_required():
    error = classify_error(google_exceptions.from_http_status(402, "pay up"))
    assert error.kind == ErrorKind.QUOTA_EXHAUSTED
    assert error.status_code == 402


def test_classify_everything_else_as_unavailable():
    assert classify_error(google_exceptions.ServiceUnavailable("down")).kind == ErrorKind.UNAVAILABLE
    assert classify_error(ConnectionError("reset")).kind == ErrorKind.UNAVAILABLE


def test_transport_failure_retried_once():
    model = FlakyModel(google_exceptions.ServiceUnavailable("blip"), text='["ok"]')
    text = asyncio.run(service_with(model).complete("prompt"))
    assert text == '["ok"]'
    assert model.calls == 2


def test_retries_exhausted():
    model = FlakyModel(ConnectionError("reset"), ConnectionError("reset"))
    with pytest.raises(AIServiceError) as err:
        asyncio.run(service_with(model).complete("prompt"))
    assert err.value.kind == ErrorKind.UNAVAILABLE
    assert model.calls == 2


def test_rate_limit_not_retried():
    model = FlakyModel(google_exceptions.TooManyRequests("slow down"))
    with pytest.raises(AIServiceError) as err:
        asyncio.run(service_with(model).complete("prompt"))
    assert err.value.kind == ErrorKind.RATE_LIMITED
    assert model.calls == 1
