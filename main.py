import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from core import settings
from core.errors import InvalidMessage, ProviderUnavailable, error_response
from core.headers import apply_standard_headers
from core.logging_config import setup_logging
from core.validation import validate_budget, validate_chat_payload, validate_sampling
from chat_runtime import ChatRuntime
from context_manager import ContextManager
from conversation.models import Budget
from conversation.store import InMemoryConversationStore, RedisConversationStore
from conversation.tokens import get_token_counter
from model_engine import OpenAICompletionProvider, ProviderSummarizer

logger = logging.getLogger(__name__)


# ==========================================================
# REQUEST MODELS
# ==========================================================
class ChatRequest(BaseModel):
    messages: Any = None
    temperature: float = settings.DEFAULT_TEMPERATURE
    max_tokens: int = settings.DEFAULT_MAX_TOKENS
    model: Optional[str] = None
    max_context_tokens: Optional[int] = None
    recent_keep: Optional[int] = None


class TurnRequest(BaseModel):
    content: str
    temperature: float = settings.DEFAULT_TEMPERATURE
    max_tokens: int = settings.DEFAULT_MAX_TOKENS
    model: Optional[str] = None
    max_context_tokens: Optional[int] = None
    recent_keep: Optional[int] = None


# ==========================================================
# WIRING
# ==========================================================
def build_runtime() -> ChatRuntime:
    provider = OpenAICompletionProvider(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
        model=settings.CHAT_MODEL,
        timeout=settings.PROVIDER_TIMEOUT
    )
    summarizer = ProviderSummarizer(provider, model=settings.SUMMARY_MODEL) if settings.SUMMARIZATION_ENABLED else None
    budget = Budget(max_tokens=settings.MAX_CONTEXT_TOKENS, recent_keep=settings.RECENT_KEEP)
    manager = ContextManager(
        token_counter=get_token_counter(settings.CHAT_MODEL),
        summarizer=summarizer,
        default_budget=budget
    )
    if settings.REDIS_URL:
        store = RedisConversationStore(url=settings.REDIS_URL, ttl=settings.CONVERSATION_TTL)
    else:
        store = InMemoryConversationStore()
    return ChatRuntime(manager, provider, store, budget=budget, model=settings.CHAT_MODEL)


def request_budget(runtime: ChatRuntime, req) -> Budget:
    validate_budget(req.max_context_tokens, req.recent_keep)
    return Budget(
        max_tokens=req.max_context_tokens or runtime.budget.max_tokens,
        recent_keep=req.recent_keep if req.recent_keep is not None else runtime.budget.recent_keep
    )


def create_app(runtime: Optional[ChatRuntime] = None) -> FastAPI:
    runtime = runtime or build_runtime()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await runtime.store.connect()
        logger.info(f"Chat wrapper ready (model={runtime.model}, store={type(runtime.store).__name__})")
        yield
        await runtime.store.close()

    app = FastAPI(title="chatwrap", version=settings.VERSION, lifespan=lifespan)
    app.state.runtime = runtime

    # ==========================================================
    # ERRORS
    # ==========================================================
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return error_response(exc.detail, status=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        fields = ", ".join(str(e["loc"][-1]) for e in exc.errors() if e.get("loc"))
        logger.info(f"Rejected request body on {request.url.path}: {fields}")
        return error_response("Invalid payload", status=400, details=fields or None)

    @app.exception_handler(InvalidMessage)
    async def invalid_message(request: Request, exc: InvalidMessage):
        return error_response(str(exc), status=400)

    @app.exception_handler(ProviderUnavailable)
    async def provider_unavailable(request: Request, exc: ProviderUnavailable):
        logger.error(f"Completion provider unavailable on {request.url.path}: {exc}")
        details = str(exc) if settings.is_development() else None
        return error_response("Completion provider unavailable", status=502, details=details)

    def unexpected(path, exc):
        logger.exception(f"Error in {path}: {exc}")
        details = str(exc) if settings.is_development() else None
        return error_response("Something went wrong", status=500, details=details)

    # ==========================================================
    # ENDPOINTS
    # ==========================================================
    @app.get("/")
    async def root():
        return {"status": "ok", "message": "Chat wrapper is running"}

    @app.get("/health")
    @app.get("/v1/health")
    async def health():
        return {"status": "ok", "version": settings.VERSION, "model": runtime.model}

    @app.post("/chat")
    async def chat(req: ChatRequest, response: Response):
        validate_chat_payload(req.model_dump())
        budget = request_budget(runtime, req)

        try:
            result = await runtime.complete_messages(
                req.messages,
                temperature=req.temperature,
                max_tokens=req.max_tokens,
                model=req.model,
                budget=budget
            )
        except (InvalidMessage, ProviderUnavailable):
            raise
        except Exception as e:
            return unexpected("/chat", e)

        apply_standard_headers(response, result.usage, result.reduction)
        return {
            "reply": result.completion.reply,
            "usage": result.completion.usage,
            "context": result.reduction.stats(),
            "raw": result.completion.raw
        }

    @app.post("/v1/conversations")
    async def new_conversation():
        return {"conversation_id": uuid.uuid4().hex}

    @app.get("/v1/conversations/{conversation_id}")
    async def get_conversation(conversation_id: str):
        messages = await runtime.store.get(conversation_id)
        if messages is None:
            raise StarletteHTTPException(status_code=404, detail=f"Conversation '{conversation_id}' not found")
        return {"conversation_id": conversation_id, "messages": messages}

    @app.post("/v1/conversations/{conversation_id}/messages")
    async def conversation_turn(conversation_id: str, req: TurnRequest, response: Response):
        validate_sampling(req.temperature, req.max_tokens)
        budget = request_budget(runtime, req)

        try:
            result = await runtime.run_turn(
                conversation_id,
                req.content,
                temperature=req.temperature,
                max_tokens=req.max_tokens,
                model=req.model,
                budget=budget
            )
        except (InvalidMessage, ProviderUnavailable):
            raise
        except Exception as e:
            return unexpected(f"/v1/conversations/{conversation_id}/messages", e)

        apply_standard_headers(response, result.usage, result.reduction)
        return {
            "conversation_id": conversation_id,
            "reply": result.completion.reply,
            "usage": result.completion.usage,
            "context": result.reduction.stats(),
            "messages": len(result.conversation)
        }

    return app


app = create_app()


def run():
    import uvicorn

    setup_logging(settings.LOG_DIR, settings.LOG_LEVEL)
    logger.info(f"Chat wrapper server listening on http://{settings.HOST}:{settings.PORT}")
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
