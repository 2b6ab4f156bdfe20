import logging

import requests
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .logging_config import setup_logging
from .proxy import ChatProxy

logger = logging.getLogger(__name__)

CHAT_ROUTE = "/api/chat"
# Every verb is routed to the handler so non-POST requests get the JSON 405 body
CHAT_ROUTE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(settings: Settings = None, session: requests.Session = None) -> FastAPI:
    """Application factory."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = FastAPI(title="Code Tutor Chat Proxy")
    app.state.settings = settings
    proxy = ChatProxy(settings, session=session)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    @app.on_event("startup")
    async def startup():
        if not settings.has_credential:
            logger.warning("NVIDIA_API_KEY not set, /api/chat will answer 500 until it is configured")
        logger.info(f"Forwarding {CHAT_ROUTE} to {settings.upstream_endpoint}")

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "credential_configured": settings.has_credential}

    @app.api_route(CHAT_ROUTE, methods=CHAT_ROUTE_METHODS)
    async def chat(request: Request):
        return await proxy.handle(request)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tutor_proxy.main:app",
        host=app.state.settings.host,
        port=app.state.settings.port,
        reload=True,
    )
