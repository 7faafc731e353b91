"""
Newsletter RAG - Web API Server
--------------------------------
FastAPI server that wraps NewsletterRAGPipeline for the chat front end.

Endpoints:
  GET  /api/health    -> pipeline status, chunk count, backend availability
  POST /api/chat      -> {"query": "..."} -> {"answer": "...", "sources": [...]}

Run from the project root:
    uvicorn app.server:app --reload --port 8000

The pipeline resolves data/ relative to CWD unless config/config.yaml
says otherwise.  The embedding cache is loaded (or built) lazily on the
first chat request.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from newsletter_rag.config import Settings, load_settings
from newsletter_rag.errors import ConfigurationError, NewsletterRAGError, RequestError
from newsletter_rag.serving.pipeline import NewsletterRAGPipeline
from newsletter_rag.utils.logger import setup_logger


# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------

class ChatRequest(BaseModel):
    query: Optional[str] = None


class ChatResponse(BaseModel):
    answer: str
    sources: list[str]


class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(
    pipeline: Optional[NewsletterRAGPipeline] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Pass a ready pipeline to skip settings/pipeline construction at startup
    (used by tests and embedding hosts).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create the pipeline once at startup; drop it on shutdown."""
        if pipeline is not None:
            app.state.pipeline = pipeline
        else:
            cfg = settings or load_settings()
            setup_logger(log_level=cfg.log_level, log_file=cfg.log_file)
            app.state.pipeline = NewsletterRAGPipeline.from_settings(cfg)
            logger.info(
                f"[Server] Pipeline ready | corpus={cfg.corpus_path} | cache={cfg.cache_path} | "
                f"backends={app.state.pipeline.generator.available_backends}"
            )
        yield
        app.state.pipeline = None
        logger.info("[Server] Pipeline unloaded.")

    app = FastAPI(
        title="Newsletter RAG API",
        description="Grounded question answering over a newsletter archive",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error mapping ---------------------------------------------------------

    @app.exception_handler(RequestError)
    async def _request_error(request: Request, exc: RequestError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ConfigurationError)
    async def _configuration_error(request: Request, exc: ConfigurationError):
        logger.error(f"[API] Configuration error: {exc}")
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(NewsletterRAGError)
    async def _pipeline_error(request: Request, exc: NewsletterRAGError):
        logger.error(f"[API] {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # -- Routes ----------------------------------------------------------------

    @app.get("/api/health")
    async def health(request: Request):
        """Return pipeline status and backend availability."""
        active: Optional[NewsletterRAGPipeline] = getattr(request.app.state, "pipeline", None)
        if active is None:
            return JSONResponse(status_code=503, content={"error": "Pipeline not ready"})
        return {
            "status": "ok",
            "initialized": active.is_initialized,
            "chunks": len(active.chunks),
            "top_k": active.top_k,
            "embedding_configured": active.embedder.is_configured,
            "generation_backends": active.generator.available_backends,
        }

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    async def chat(request: Request, body: Optional[ChatRequest] = None):
        """
        Answer one question from the newsletter archive.

        The blocking pipeline.answer() call runs in a thread-pool executor to
        avoid stalling the event loop; the first call may also build the
        embedding cache.
        """
        active: Optional[NewsletterRAGPipeline] = getattr(request.app.state, "pipeline", None)
        if active is None:
            return JSONResponse(status_code=503, content={"error": "Pipeline not ready"})

        if body is None or not body.query or not body.query.strip():
            raise RequestError("Query required")

        logger.info(f"[API] Chat | query={body.query[:80]!r}")

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, partial(active.answer, body.query))
        except NewsletterRAGError:
            raise
        except Exception as exc:
            logger.exception(f"[API] Unhandled error: {exc}")
            return JSONResponse(status_code=500, content={"error": str(exc)})

        return ChatResponse(answer=result.answer, sources=result.sources)

    return app


app = create_app()
