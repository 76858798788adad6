# gchat/llm_client.py

import logging
import os
import random
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from gchat.entities import ChatMessagePayload, ChatRequest, ChatResponse, decode_chat_response
from gchat.errors import ConfigError, TransportError


logger = logging.getLogger("gchat")

T = TypeVar("T")

XAI_BASE_URL = "https://api.x.ai/v1"
DEFAULT_MODEL = "grok-4-0709"


class Backoff:
    """
    Jittered exponential backoff for 429/timeout answers.
    Owned by one transport; grows on every retryable failure, shrinks on success.
    """

    def __init__(self, base_seconds: float = 2.0, max_seconds: float = 600.0):
        self.base_seconds = base_seconds
        self.max_seconds = max_seconds
        self._current = base_seconds

    def next_delay(self) -> float:
        base = self._current
        self._current = min(self._current * 2, self.max_seconds)
        return random.uniform(base * 0.95, base * 1.35)

    def reset(self) -> None:
        self._current = max(self.base_seconds, self._current * 0.5)


def is_retryable(e: Exception) -> bool:
    if not isinstance(e, TransportError):
        return False
    if e.is_rate_limited:
        return True
    return isinstance(e.__cause__, APITimeoutError)


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 1,
    backoff: Optional[Backoff] = None,
    sleep: Callable[[float], None] = time.sleep,
    log: Callable[[str], None] | None = None,
) -> T:
    """
    Run fn, retrying 429/timeout transport failures up to `retries` attempts in total.
    Any other error, or the last retryable one, propagates unchanged.
    """
    backoff = backoff or Backoff()
    attempts = max(1, retries)

    for attempt in range(attempts):
        start_time = time.time()
        try:
            result = fn()
            backoff.reset()
            return result
        except Exception as e:
            if not is_retryable(e) or attempt + 1 >= attempts:
                raise
            elapsed = time.time() - start_time
            delay = backoff.next_delay()
            if log:
                log(f"Attempt {attempt+1} got 429/timeout, backing off ~{delay:.1f}s. (elapsed={elapsed:.2f}s): {e}")
            sleep(delay)

    raise AssertionError("unreachable")


def to_openai_messages(messages: List[BaseMessage]) -> List[ChatMessagePayload]:
    out: List[ChatMessagePayload] = []
    for m in messages:
        if isinstance(m, SystemMessage):
            role = "system"
        elif isinstance(m, HumanMessage):
            role = "user"
        elif isinstance(m, AIMessage):
            role = "assistant"
        else:
            role = "user"
        out.append(ChatMessagePayload(role=role, content=str(m.content)))
    return out


def build_chat_request(
    model: str,
    messages: List[BaseMessage],
    temperature: float,
    max_tokens: int,
) -> ChatRequest:
    return ChatRequest(
        model=model,
        messages=to_openai_messages(messages),
        temperature=temperature,
        max_tokens=max_tokens,
    )


class ChatTransport:
    """
    Chat-completions transport:

        resp = transport.complete(build_chat_request(...))

    Under the hood the OpenAI SDK talks to an OpenAI-compatible endpoint (xAI by
    default). The raw body is decoded by our own ChatResponse model so a
    malformed answer is reported instead of half-parsed.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = XAI_BASE_URL,
        timeout: float | None = None,
        retries: int = 1,
        client: Any = None,
    ):
        self.base_url = base_url
        self.retries = retries
        self._backoff = Backoff()

        if client is not None:
            self._client = client
        else:
            client_kwargs: Dict[str, Any] = {"api_key": api_key, "base_url": base_url, "max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            self._client = OpenAI(**client_kwargs)

    @classmethod
    def from_settings(cls, settings, environ=None) -> "ChatTransport":
        environ = os.environ if environ is None else environ
        api_key = environ.get(settings.api_key_env)
        if not api_key:
            raise ConfigError(f"{settings.api_key_env} not set")
        return cls(
            api_key,
            base_url=settings.base_url,
            timeout=settings.api_timeout,
            retries=settings.api_retries,
        )

    def _complete_once(self, request: ChatRequest) -> ChatResponse:
        """
        Single HTTP call without retries/backoff.
        """
        try:
            raw = self._client.chat.completions.with_raw_response.create(**request.model_dump())
        except APIStatusError as e:
            body = e.response.text if e.response is not None else ""
            raise TransportError(
                f"API error: {e.status_code} - Body: {body}",
                status_code=e.status_code,
                body=body,
            ) from e
        except APIConnectionError as e:
            raise TransportError(f"Request error: {e!r}") from e

        return decode_chat_response(raw.text)

    def complete(self, request: ChatRequest) -> ChatResponse:
        """
        Synchronous chat call with 429/timeout backoff + retries.
        """
        return call_with_retries_sync(
            lambda: self._complete_once(request),
            retries=self.retries,
            backoff=self._backoff,
            log=lambda msg: logger.warning(f"[CHAT-LLM-RETRY] {msg}"),
        )
