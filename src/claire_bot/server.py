"""FastAPI channel that feeds HTTP messages into the conversation service."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .config import AppSettings
from .dialogs import ConfigurationError, MalformedFrame
from .sessions import ConversationService
from .store import StorageUnavailable

logger = logging.getLogger(__name__)


class MessageRequest(BaseModel):
    text: Optional[str] = None


class MessageResponse(BaseModel):
    conversation_id: str
    responses: List[str]


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    service: Optional[ConversationService] = None,
    allow_origins: Sequence[str] | None = None,
) -> FastAPI:
    """Create the FastAPI app; pass ``service`` to reuse an existing one."""

    if service is None:
        if settings is None:
            raise ConfigurationError("create_app needs settings or a service")
        service = ConversationService.create(settings)
    conversations = service

    app = FastAPI(title="Claire Enquiry Bot")

    origins = list(allow_origins) if allow_origins else ["*"]
    allow_credentials = origins != ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/conversations/{conversation_id}/messages")
    def post_message(conversation_id: str, payload: MessageRequest) -> MessageResponse:
        try:
            responses = conversations.handle_message(conversation_id, payload.text)
        except StorageUnavailable as exc:
            logger.error("Turn failed for %s: %s", conversation_id, exc)
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        except MalformedFrame as exc:
            logger.error("Rejected turn for %s: %s", conversation_id, exc)
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        except ConfigurationError as exc:
            logger.exception("Configuration error handling %s", conversation_id)
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return MessageResponse(conversation_id=conversation_id, responses=responses)

    @app.delete("/conversations/{conversation_id}", status_code=204)
    def delete_conversation(conversation_id: str) -> Response:
        try:
            conversations.reset(conversation_id)
        except StorageUnavailable as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        return Response(status_code=204)

    @app.get("/health")
    def health() -> dict[str, str]:  # pragma: no cover - simple health probe
        return {"status": "ok"}

    return app


def run_server(
    settings: AppSettings,
    *,
    host: str = "127.0.0.1",
    port: int = 8080,
    allow_origins: Sequence[str] | None = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server."""

    app = create_app(settings, allow_origins=allow_origins)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="claire-bot serve",
        description="Serve the enquiry bot over HTTP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface for the server (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the server (default: 8080).",
    )
    parser.add_argument(
        "--allow-origin",
        action="append",
        dest="allow_origin",
        help="Optional CORS origin(s) to allow. Defaults to '*' if not provided.",
    )
    parser.add_argument(
        "--redis-url",
        help="Redis URL for conversation state. Overrides CLAIRE_REDIS_URL.",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        help="Logging level for uvicorn (default: info).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    try:
        settings = AppSettings.load()
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc
    if args.redis_url:
        settings = replace(settings, redis_url=args.redis_url)

    run_server(
        settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
