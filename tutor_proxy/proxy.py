import json
import logging

import requests
from fastapi import Request
from fastapi.responses import JSONResponse, Response
from fastapi.concurrency import run_in_threadpool

from .config import Settings
from .http_utils import deadline_after, read_body

logger = logging.getLogger(__name__)

REDACTED_HEADERS = {"authorization", "cookie", "proxy-authorization"}


def _log_request_headers(request: Request):
    try:
        if logger.isEnabledFor(logging.DEBUG):
            headers = {
                k: ("<redacted>" if k.lower() in REDACTED_HEADERS else v)
                for k, v in request.headers.items()
            }
            logger.debug(f"Request headers: {json.dumps(headers)}")
    except Exception:  # header logging must never fail the request
        pass


class ChatProxy:
    """
    Forwards chat-completion requests to the upstream LLM API.

    The upstream credential is owned by the server: any Authorization header
    sent by the caller is ignored and never forwarded.
    """

    def __init__(self, settings: Settings, session: requests.Session = None):
        self.settings = settings
        # Handlers run on threadpool threads; without an injected session each
        # call goes through requests.post and its own short-lived session
        self.session = session

    def _forward(self, body: bytes, api_key: str):
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        http = self.session or requests
        timeout = self.settings.upstream_timeout
        deadline = deadline_after(timeout)
        # Leaving the with block closes the connection on every exit path,
        # including a deadline hit halfway through the body
        with http.post(
            self.settings.upstream_endpoint,
            data=body,
            headers=headers,
            timeout=timeout,
            stream=True,
        ) as response:
            return response.status_code, read_body(response, deadline, timeout)

    async def handle(self, request: Request) -> Response:
        if request.method != "POST":
            return JSONResponse(
                status_code=405,
                content={"error": "Method not allowed"},
                headers={"Allow": "POST"},
            )

        api_key = self.settings.api_key
        if not api_key:
            logger.error("Upstream API key is not configured")
            return JSONResponse(status_code=500, content={"error": "API key not configured"})

        _log_request_headers(request)

        try:
            body = await request.body()
            # Reject bodies that are not JSON, but forward the original bytes
            json.loads(body)

            status_code, content = await run_in_threadpool(self._forward, body, api_key)

            if not 200 <= status_code < 300:
                error_text = content.decode("utf-8", errors="replace")
                logger.error(f"Upstream API error: {status_code} - {error_text}")
                return JSONResponse(
                    status_code=status_code,
                    content={
                        "error": f"Upstream API returned {status_code}",
                        "details": error_text,
                    },
                )

            json.loads(content)
            logger.info(f"Proxied chat completion ({len(content)} bytes)")
            return Response(content=content, status_code=200, media_type="application/json")

        except requests.exceptions.Timeout as e:
            logger.error(f"Upstream API timed out after {self.settings.upstream_timeout}s: {e}")
            return JSONResponse(
                status_code=504,
                content={"error": "Upstream request timed out", "message": str(e)},
            )
        except Exception as e:
            logger.error(f"Proxy error: {e}")
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to proxy request", "message": str(e)},
            )
