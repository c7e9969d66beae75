from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from .catalog import CatalogLoader
from .completion import CompletionClient, ContentGenerator
from .config import Settings, load_settings
from .gemini_client import GeminiClient
from .models import ChatResponse, ErrorResponse
from .pipeline import ChatPipeline
from .pricing import PRICING
from .prompts import PromptComposer

BASE_DIR = Path(__file__).resolve().parent
ENV_PATH = BASE_DIR.parent / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH, override=False)

log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_name, logging.INFO)
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

logging.getLogger("oclaria").setLevel(log_level)
logger = logging.getLogger("oclaria.app")

HEALTH_TEXT = "Oclaria chatbot is running ✅"
GENERIC_ERROR = "request failed"


def create_app(
    settings: Optional[Settings] = None,
    generator: Optional[ContentGenerator] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """Purpose: Build the FastAPI app with its read-only collaborators.
    Inputs/Outputs: Inputs are optional Settings, a content generator (defaults to
        GeminiClient), and the retry sleep; output is a configured FastAPI app.
    Side Effects / State: Loads the catalog once and renders the system prompt.
    Dependencies: CatalogLoader, PromptComposer, CompletionClient, ChatPipeline.
    Failure Modes: Catalog problems degrade to an empty catalog; a missing prompt
        template raises at startup.
    If Removed: No HTTP surface and no way to inject fakes in tests.
    Testing Notes: Pass a fake generator and a no-op sleep, then use TestClient.
    """
    settings = settings or load_settings()
    catalog = CatalogLoader(settings.catalog_path, pricing=PRICING).load()
    composer = PromptComposer(catalog, pricing=PRICING, history_window=settings.history_window)
    completion = CompletionClient(generator or GeminiClient(settings), settings, sleep=sleep)
    pipeline = ChatPipeline(
        composer,
        completion,
        pricing=PRICING,
        detection_window=settings.detection_window,
    )

    app = FastAPI(title="Oclaria Assistant")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.pipeline = pipeline

    @app.get("/", response_class=PlainTextResponse)
    def health() -> str:
        return HEALTH_TEXT

    @app.post("/chat", response_model=ChatResponse, responses={500: {"model": ErrorResponse}})
    async def chat(request: Request) -> Any:
        """Purpose: Handle a chat request and return the assistant reply.
        Inputs/Outputs: Input is the JSON body {messages: [...]}; output is
            ChatResponse, or 500 ErrorResponse on any failure.
        Side Effects / State: One or two upstream completion calls; no persistence.
        Dependencies: Uses ChatPipeline.handle.
        Failure Modes: Every exception is logged and collapsed into a generic 500.
        If Removed: The browser widget has nothing to talk to.
        Testing Notes: Send 10 messages and verify only the last 6 reach the model.
        """
        try:
            payload = await request.json()
        except ValueError:
            payload = {}
        raw_messages = payload.get("messages") if isinstance(payload, dict) else None
        try:
            reply = await run_in_threadpool(pipeline.handle, raw_messages)
        except Exception as exc:
            logger.exception("/chat error: status=%s %s", getattr(exc, "code", ""), exc)
            return JSONResponse({"error": GENERIC_ERROR}, status_code=500)
        return ChatResponse(reply=reply)

    return app
