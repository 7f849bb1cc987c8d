import json

import httpx
import pytest

from moments_roast.llm_client import LLMError, call_llm
from moments_roast.settings import Settings


SETTINGS = Settings(api_key="sk-test", model_id="doubao-vision", base_url="https://llm.example/api/v3/")

PARTS = [
    {"type": "text", "text": "roast please"},
    {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA"}},
    {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,BBB"}},
]


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def test_call_llm_posts_single_user_message():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion('{"danger_index": 1.5}'))

    out = call_llm(PARTS, SETTINGS, transport=httpx.MockTransport(handler))

    assert out == '{"danger_index": 1.5}'
    assert len(seen) == 1
    request = seen[0]
    assert str(request.url) == "https://llm.example/api/v3/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"

    body = json.loads(request.content)
    assert body["model"] == "doubao-vision"
    assert body["temperature"] == 0.8
    assert "stream" not in body
    assert body["messages"] == [{"role": "user", "content": PARTS}]


def test_call_llm_temperature_override():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_completion("{}"))

    call_llm(PARTS, SETTINGS, temperature=0.2, transport=httpx.MockTransport(handler))
    assert seen[0]["temperature"] == 0.2


def test_call_llm_raises_on_error_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="invalid api key"))

    with pytest.raises(LLMError) as exc:
        call_llm(PARTS, SETTINGS, transport=transport)
    assert "401" in str(exc.value)
    assert "invalid api key" in str(exc.value)


def test_call_llm_raises_on_transport_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LLMError) as exc:
        call_llm(PARTS, SETTINGS, transport=httpx.MockTransport(handler))
    assert "connection refused" in str(exc.value)


@pytest.mark.parametrize("payload", [{"choices": []}, _completion(""), {"unexpected": True}])
def test_call_llm_raises_on_empty_reply(payload):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))

    with pytest.raises(LLMError):
        call_llm(PARTS, SETTINGS, transport=transport)


def test_call_llm_requires_credentials_before_network():
    def handler(request):
        raise AssertionError("network must not be used")

    with pytest.raises(LLMError, match="ARK_API_KEY"):
        call_llm(PARTS, Settings(model_id="m"), transport=httpx.MockTransport(handler))

    with pytest.raises(LLMError, match="ARK_MODEL_ID"):
        call_llm(PARTS, Settings(api_key="k"), transport=httpx.MockTransport(handler))
