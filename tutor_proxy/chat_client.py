"""
Chat Client Service - builds tutor and code-review prompts and calls the chat proxy.

Both public operations always return a display-ready string. Failures are
logged and turned into an apologetic message that still names the topic,
so the presentation layer never has to handle an error.
"""

import json
import logging
from typing import Any, Iterable, List, Union

import requests

from .config import (
    FALLBACK_MAX_TOKENS,
    FALLBACK_TEMPERATURE,
    FALLBACK_TOP_P,
    PRIMARY_MAX_TOKENS,
    PRIMARY_TEMPERATURE,
    PRIMARY_TOP_P,
    Settings,
)
from .errors import ChatServiceError, ChatTimeoutError, MalformedResponseError, UpstreamStatusError
from .http_utils import deadline_after, read_body
from .models import ChatMessage, ChatRequest, ChatResponse

logger = logging.getLogger(__name__)

MessageLike = Union[ChatMessage, dict, str]

TUTOR_SYSTEM_PROMPT = (
    "You are an expert tutor in {technology}. Provide helpful, accurate, and educational "
    "responses to help the user learn {technology}. Include code examples when relevant. "
    "Keep your responses concise but informative."
)

CODE_REVIEW_SYSTEM_PROMPT = (
    "You are an expert coding tutor specializing in {language}. Analyze the provided code, "
    "identify potential issues, suggest improvements for best practices, and provide "
    "constructive feedback. Be specific and educational in your feedback."
)

CODE_REVIEW_USER_PROMPT = "Please review this {language} code and provide feedback:\n\n```{language}\n{code}\n```"

TUTOR_APOLOGY = (
    "I'm having trouble connecting right now, but I'll try to help with your question "
    "about {technology}. Could you please try again or rephrase your question?"
)

CODE_FEEDBACK_APOLOGY = (
    "I'm having trouble analyzing your {language} code right now. "
    "Please try again in a moment."
)


def _coerce_message(message: MessageLike) -> ChatMessage:
    if isinstance(message, ChatMessage):
        return message
    if isinstance(message, str):
        return ChatMessage(role="user", content=message)
    return ChatMessage.model_validate(message)


class ChatClientService:
    """Client side of the chat proxy: prompt construction, timeout and fallback model."""

    def __init__(self, settings: Settings, session: requests.Session = None):
        self.settings = settings
        self.session = session or requests.Session()

    def build_request(self, messages: List[ChatMessage]) -> ChatRequest:
        return ChatRequest(
            model=self.settings.chat_model,
            messages=messages,
            temperature=PRIMARY_TEMPERATURE,
            top_p=PRIMARY_TOP_P,
            max_tokens=PRIMARY_MAX_TOKENS,
        )

    def build_fallback_request(self, messages: List[ChatMessage]) -> ChatRequest:
        """Same conversation against the smaller, faster fallback model."""
        return ChatRequest(
            model=self.settings.fallback_model,
            messages=messages,
            temperature=FALLBACK_TEMPERATURE,
            top_p=FALLBACK_TOP_P,
            max_tokens=FALLBACK_MAX_TOKENS,
        )

    def _post(self, chat_request: ChatRequest) -> str:
        url = self.settings.proxy_url
        timeout = self.settings.client_timeout
        deadline = deadline_after(timeout)
        try:
            with self.session.post(
                url,
                json=chat_request.to_payload(),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                timeout=timeout,
                stream=True,
            ) as response:
                status_code = response.status_code
                content = read_body(response, deadline, timeout)
        except requests.exceptions.Timeout as e:
            raise ChatTimeoutError(f"Request to {url} timed out after {timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise ChatServiceError(f"Request to {url} failed: {e}") from e

        if status_code == 504:
            # The proxy gave up on the upstream model; same recovery as a local timeout
            raise ChatTimeoutError(
                f"Proxy timed out waiting for the model: {content.decode('utf-8', errors='replace')}"
            )
        if not 200 <= status_code < 300:
            raise UpstreamStatusError(status_code, content.decode("utf-8", errors="replace"))
        try:
            data: Any = json.loads(content)
        except ValueError as e:
            raise MalformedResponseError(f"Response is not JSON: {e}") from e

        return ChatResponse.parse(data).first_content()

    def _complete(self, messages: List[ChatMessage]) -> str:
        try:
            return self._post(self.build_request(messages))
        except ChatTimeoutError as e:
            logger.warning(f"{e}; retrying once with fallback model {self.settings.fallback_model}")
            return self._post(self.build_fallback_request(messages))

    def generate_tutor_response(self, messages: Iterable[MessageLike], technology: str) -> str:
        """
        Answer the conversation as a tutor for ``technology``.

        Args:
            messages: Chronological conversation; bare strings are user messages
            technology: Topic the tutor specializes in

        Returns:
            The model's reply, or an apology naming the topic if the call failed
        """
        try:
            system_message = ChatMessage(
                role="system", content=TUTOR_SYSTEM_PROMPT.format(technology=technology)
            )
            all_messages = [system_message] + [_coerce_message(m) for m in messages]
            return self._complete(all_messages)
        except Exception as e:
            logger.error(f"Error generating tutor response: {e}")
            return TUTOR_APOLOGY.format(technology=technology)

    def generate_code_feedback(self, code: str, language: str) -> str:
        """Review ``code`` written in ``language``; never raises."""
        try:
            messages = [
                ChatMessage(role="system", content=CODE_REVIEW_SYSTEM_PROMPT.format(language=language)),
                ChatMessage(
                    role="user",
                    content=CODE_REVIEW_USER_PROMPT.format(language=language, code=code),
                ),
            ]
            return self._complete(messages)
        except Exception as e:
            logger.error(f"Error generating code feedback: {e}")
            return CODE_FEEDBACK_APOLOGY.format(language=language)
