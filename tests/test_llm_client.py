import json
from types import SimpleNamespace

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from openai import APIConnectionError, APIStatusError

from gchat.entities import decode_chat_response
from gchat.errors import ConfigError, ResponseDecodeError, TransportError
from gchat.llm_client import (
    Backoff,
    ChatTransport,
    build_chat_request,
    call_with_retries_sync,
    to_openai_messages,
)
from gchat.settings import Settings


_REQUEST = httpx.Request("POST", "https://api.x.ai/v1/chat/completions")


def _body(content="hi", finish_reason="stop"):
    return json.dumps({"id": "x", "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": finish_reason}]})


class FakeCompletions:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []
        self.with_raw_response = self

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)


def _transport(*outcomes, retries=1):
    completions = FakeCompletions(*outcomes)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return ChatTransport("key", client=client, retries=retries), completions


def _request():
    return build_chat_request("grok-4-0709", [HumanMessage(content="q")], 0.5, 2048)


def test_decode_valid_body():
    resp = decode_chat_response(_body("hello", "length"))
    choice = resp.first_choice()
    assert choice.message.content == "hello"
    assert choice.truncated


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        json.dumps({"data": []}),
        json.dumps({"choices": [{"message": {"role": "assistant"}}]}),
        json.dumps({"choices": []}),
    ],
)
def test_decode_rejects_unexpected_shapes(body):
    with pytest.raises(ResponseDecodeError):
        decode_chat_response(body)


def test_messages_are_mapped_to_api_roles():
    payload = to_openai_messages([SystemMessage(content="s"), HumanMessage(content="u"), AIMessage(content="a")])
    assert [(m.role, m.content) for m in payload] == [("system", "s"), ("user", "u"), ("assistant", "a")]


def test_request_carries_model_messages_temperature_and_budget():
    transport, completions = _transport(_body("answer"))

    resp = transport.complete(_request())

    assert resp.first_choice().message.content == "answer"
    assert completions.calls == [
        {
            "model": "grok-4-0709",
            "messages": [{"role": "user", "content": "q"}],
            "temperature": 0.5,
            "max_tokens": 2048,
        }
    ]


def test_status_error_becomes_transport_error():
    error = APIStatusError("bad", response=httpx.Response(401, text="no key", request=_REQUEST), body=None)
    transport, _ = _transport(error)

    with pytest.raises(TransportError) as exc_info:
        transport.complete(_request())

    assert exc_info.value.status_code == 401
    assert exc_info.value.body == "no key"


def test_connection_error_becomes_transport_error():
    transport, _ = _transport(APIConnectionError(request=_REQUEST))
    with pytest.raises(TransportError):
        transport.complete(_request())


def test_rate_limit_is_retried_then_succeeds():
    limited = TransportError("API error: 429", status_code=429)
    outcomes = [limited, limited, "ok"]
    delays = []

    def fn():
        item = outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    result = call_with_retries_sync(fn, retries=3, backoff=Backoff(base_seconds=1.0), sleep=delays.append)

    assert result == "ok"
    assert len(delays) == 2
    assert delays[1] > delays[0]


def test_non_retryable_errors_are_not_retried():
    calls = []

    def fn():
        calls.append(1)
        raise TransportError("API error: 500", status_code=500)

    with pytest.raises(TransportError):
        call_with_retries_sync(fn, retries=5, sleep=lambda s: None)
    assert len(calls) == 1


def test_missing_key_is_a_config_error():
    with pytest.raises(ConfigError):
        ChatTransport.from_settings(Settings(), environ={})


def test_transport_from_settings():
    transport = ChatTransport.from_settings(Settings(base_url="http://localhost:9999/v1", api_retries=2), environ={"XAI_API_KEY": "k"})
    assert transport.base_url == "http://localhost:9999/v1"
    assert transport.retries == 2
