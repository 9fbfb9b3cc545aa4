from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
from pydantic import BaseModel, Field

from config.settings import Settings, get_settings
from relay import __version__
from relay.core import ProgressStore, TurnCoordinator
from relay.credentials import CredentialPool, load_credentials, mask
from relay.upstream import ChatBackend, GeminiChatBackend


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("relay")


class QueryRequest(BaseModel):
    prompt: str = Field(..., description="User's message")
    cookie: Optional[str] = Field(None, description="Pin a credential instead of a random one")


class ConvoRequest(QueryRequest):
    last_resp: Dict[str, Any] = Field(
        default_factory=dict,
        description="Record returned by the previous turn (conversation context)",
    )


class ProgressRequest(BaseModel):
    prompt: Optional[str] = None
    cookie: Optional[str] = None
    last_resp: Optional[Dict[str, Any]] = Field(
        None,
        description="Without 'id': options for a new turn. With 'id': poll that turn.",
    )


def build_backend(settings: Settings) -> ChatBackend:
    return GeminiChatBackend(
        model=settings.gemini_model,
        temperature=settings.temperature,
        top_p=settings.top_p,
        system_prompt=settings.system_prompt,
        history_turns=settings.history_turns,
    )


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[ChatBackend] = None,
    credentials: Optional[Iterable[str]] = None,
) -> FastAPI:
    settings = settings or get_settings()
    if credentials is None:
        credentials = load_credentials(settings.cookies_file)
    pool = CredentialPool(credentials)
    store = ProgressStore(settled_ttl=settings.settled_ttl)
    coordinator = TurnCoordinator(
        backend or build_backend(settings),
        store,
        timeout=settings.progress_timeout,
    )
    logger.info(
        "Config: model=%s credentials=%s progress_timeout=%ss",
        settings.gemini_model,
        len(pool),
        settings.progress_timeout,
    )

    app = FastAPI(title="Chat Progress Relay", version=__version__)
    app.state.credentials = pool
    app.state.store = store
    app.state.coordinator = coordinator

    # CORS: allow local frontend during development
    if settings.app_env.lower() in {"dev", "development", "local"}:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.post("/newbing/query")
    async def query(req: QueryRequest, request: Request) -> Dict[str, Any]:
        cookie = request.app.state.credentials.select(req.cookie)
        logger.info("Query: prompt_len=%s credential=%s", len(req.prompt), mask(cookie))
        try:
            result = await request.app.state.coordinator.query(req.prompt, cookie)
        except Exception as e:
            logger.exception("Query failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e))
        logger.info("Query answered: %s chars", len(result["resp"].get("text") or ""))
        return result

    @app.post("/newbing/convo")
    async def convo(req: ConvoRequest, request: Request) -> Dict[str, Any]:
        cookie = request.app.state.credentials.select(req.cookie)
        logger.info(
            "Convo: prompt_len=%s history_turns=%s credential=%s",
            len(req.prompt),
            len(req.last_resp.get("history") or []),
            mask(cookie),
        )
        try:
            result = await request.app.state.coordinator.converse(req.prompt, req.last_resp, cookie)
        except Exception as e:
            logger.exception("Convo failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e))
        logger.info("Convo answered: %s chars", len(result["resp"].get("text") or ""))
        return result

    @app.post("/newbing/onprogress")
    async def onprogress(req: ProgressRequest, request: Request) -> Dict[str, Any]:
        cookie = request.app.state.credentials.select(req.cookie)
        if req.last_resp is None or "id" not in req.last_resp:
            logger.info("New turn: prompt_len=%s credential=%s", len(req.prompt or ""), mask(cookie))
        return await request.app.state.coordinator.start_or_resume(
            req.prompt, req.last_resp, cookie
        )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:create_app", factory=True, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
