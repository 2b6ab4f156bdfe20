from typing import Literal, Optional

from pydantic import BaseModel, ValidationError

from .errors import MalformedResponseError


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: float = 1.0
    top_p: float = 1.0
    max_tokens: int = 512

    def to_payload(self) -> dict:
        """JSON body sent to the proxy; message order is preserved."""
        return self.model_dump()


class ChatChoice(BaseModel):
    message: ChatMessage
    finish_reason: Optional[str] = None
    index: int = 0


class ChatResponse(BaseModel):
    choices: list[ChatChoice]

    @classmethod
    def parse(cls, data) -> "ChatResponse":
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"Invalid chat completion body: {e}") from e

    def first_content(self) -> str:
        if not self.choices:
            raise MalformedResponseError("Chat completion has no choices")
        return self.choices[0].message.content
