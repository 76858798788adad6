# gchat/entities.py
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from gchat.errors import ResponseDecodeError


FINISH_REASON_LENGTH = "length"


class ChatMessagePayload(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: List[ChatMessagePayload]
    temperature: float
    max_tokens: int


class ChoiceMessage(BaseModel):
    role: Optional[str] = None
    content: str


class Choice(BaseModel):
    message: ChoiceMessage
    finish_reason: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.finish_reason == FINISH_REASON_LENGTH


class ChatResponse(BaseModel):
    choices: List[Choice]

    def first_choice(self) -> Choice:
        if not self.choices:
            raise ResponseDecodeError("Response carried no completion choices")
        return self.choices[0]


def decode_chat_response(body: str) -> ChatResponse:
    """
    Decode a raw response body into a ChatResponse.

    A body that does not match the expected shape, or that carries an empty
    choice list, raises ResponseDecodeError.
    """
    try:
        resp = ChatResponse.model_validate_json(body)
    except ValidationError as e:
        preview = (body or "")[:200]
        raise ResponseDecodeError(f"Malformed response body: {e.error_count()} error(s); body starts with {preview!r}") from e
    resp.first_choice()
    return resp
