class TutorProxyError(Exception):
    """Base class for all errors raised by tutor_proxy."""


class ConfigError(TutorProxyError):
    """Invalid or missing configuration value."""


class ChatServiceError(TutorProxyError):
    """A call from the chat client to the proxy failed."""


class ChatTimeoutError(ChatServiceError):
    """The proxy did not answer within the client timeout."""


class UpstreamStatusError(ChatServiceError):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API request failed with status {status_code}: {body}")


class MalformedResponseError(ChatServiceError):
    """Response body is not a usable chat completion."""
