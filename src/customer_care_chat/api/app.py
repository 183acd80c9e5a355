"""
FastAPI Application Module

HTTP surface for the customer care chat. A client opens a session, sends
messages and gets the bot's reply for each one. Every message goes through the
intent router; the chat service acts on the result against the complaint
backend.

Key Features:
- Per-session request queue so one session never has two messages in flight
- Structured logging and Prometheus metrics
- CORS and OpenTelemetry support
"""

from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from pydantic import BaseModel, Field
from structlog import get_logger

from ..config import Settings, get_settings
from ..domain.errors import ConversationNotFound, InvalidInput
from ..domain.models import (
    ChatTurn,
    ConversationState,
    IntentClassification,
    Message,
    SessionFlags,
)
from ..repositories.base import ComplaintRepository, ConversationRepository
from ..repositories.memory import InMemoryComplaintRepository, InMemoryConversationRepository
from ..services.chat import ChatService
from .request_queue import RequestQueue

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total requests", registry=CUSTOM_REGISTRY)
ERRORS = Counter("errors_total", "Total failed requests", registry=CUSTOM_REGISTRY)
INTENTS = Counter("intents_total", "Classified messages by intent", ["intent"], registry=CUSTOM_REGISTRY)

logger = get_logger()


class SessionCreate(BaseModel):
    """Body for opening a chat session"""
    user_id: str = Field(min_length=1)
    prefetched_complaint_id: Optional[str] = None


class MessageCreate(BaseModel):
    """Body for sending a chat message"""
    content: str


class ClassifyRequest(BaseModel):
    """Body for a dry-run classification"""
    message: str = Field(min_length=1)
    state: ConversationState = ConversationState.IDLE
    is_complaint_mode: bool = False
    has_prefetched_complaint_id: bool = False


class SessionView(BaseModel):
    """Public view of a chat session"""
    id: UUID
    user_id: str
    state: ConversationState
    is_complaint_mode: bool
    messages: List[Message]


def session_view(conversation) -> SessionView:
    return SessionView(
        id=conversation.id,
        user_id=conversation.context.user_id,
        state=conversation.state,
        is_complaint_mode=conversation.context.is_complaint_mode,
        messages=conversation.transcript,
    )


def get_chat_service(request: Request) -> ChatService:
    """Returns the chat service bound to the app"""
    return request.app.state.chat_service


def get_queue(request: Request) -> RequestQueue:
    """Returns the per-session request queue"""
    return request.app.state.request_queue


async def require_session(session_id: UUID, service: ChatService) -> None:
    """Raises 404 before any work is queued for an unknown session"""
    try:
        await service.get_conversation(session_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Session not found")


def create_app(
    settings: Optional[Settings] = None,
    conversations: Optional[ConversationRepository] = None,
    complaints: Optional[ComplaintRepository] = None,
) -> FastAPI:
    """Build the API with its own repositories and queue."""
    settings = settings or get_settings()
    chat_service = ChatService(
        conversations or InMemoryConversationRepository(),
        complaints or InMemoryComplaintRepository(),
        settings=settings,
    )
    request_queue = RequestQueue(
        max_concurrent=settings.max_concurrent_requests,
        queue_timeout=settings.request_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Releases queue workers on shutdown"""
        logger.info("application_startup_complete")
        yield
        await request_queue.cleanup()
        logger.info("application_shutdown_complete")

    app = FastAPI(
        title="Customer Care Chat API",
        description="Rule-based customer care chat with complaint tracking",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.chat_service = chat_service
    app.state.request_queue = request_queue

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    FastAPIInstrumentor.instrument_app(app)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Counts and logs requests"""
        REQUESTS.inc()
        logger.info("request_started", path=request.url.path, method=request.method)
        try:
            response = await call_next(request)
        except Exception as e:
            ERRORS.inc()
            logger.error("request_failed", path=request.url.path, error=str(e))
            raise
        if response.status_code >= 500:
            ERRORS.inc()
        return response

    @app.post("/sessions", response_model=SessionView)
    async def open_session(
        body: SessionCreate,
        service: ChatService = Depends(get_chat_service)
    ) -> SessionView:
        """Opens a chat session and returns the greeting"""
        try:
            conversation = await service.open_session(body.user_id, body.prefetched_complaint_id)
            return session_view(conversation)
        except Exception as e:
            logger.error("open_session_error", user_id=body.user_id, error=str(e))
            raise HTTPException(status_code=500, detail="Failed to open session")

    @app.get("/sessions", response_model=List[SessionView])
    async def list_sessions(
        limit: int = 100,
        offset: int = 0,
        service: ChatService = Depends(get_chat_service)
    ) -> List[SessionView]:
        """Lists open sessions, most recently active first"""
        conversations = await service.conversations.list_conversations(limit=limit, offset=offset)
        return [session_view(c) for c in conversations]

    @app.get("/sessions/{session_id}", response_model=SessionView)
    async def get_session(
        session_id: UUID,
        service: ChatService = Depends(get_chat_service)
    ) -> SessionView:
        """Retrieves a session with its transcript"""
        try:
            return session_view(await service.get_conversation(session_id))
        except ConversationNotFound:
            raise HTTPException(status_code=404, detail="Session not found")

    @app.get("/sessions/{session_id}/messages", response_model=List[Message])
    async def get_messages(
        session_id: UUID,
        limit: int = 100,
        offset: int = 0,
        service: ChatService = Depends(get_chat_service)
    ) -> List[Message]:
        """Gets paginated transcript for a session"""
        try:
            conversation = await service.get_conversation(session_id)
        except ConversationNotFound:
            raise HTTPException(status_code=404, detail="Session not found")
        return conversation.transcript[offset : offset + limit]

    @app.post("/sessions/{session_id}/messages", response_model=ChatTurn)
    async def send_message(
        session_id: UUID,
        message: MessageCreate,
        service: ChatService = Depends(get_chat_service),
        queue: RequestQueue = Depends(get_queue)
    ) -> ChatTurn:
        """Handles one user message and returns the bot's reply"""
        await require_session(session_id, service)
        try:
            turn = await queue.enqueue_request(session_id, service.handle_message, session_id, message.content)
        except InvalidInput as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ConversationNotFound:
            raise HTTPException(status_code=404, detail="Session not found")
        except TimeoutError:
            raise HTTPException(status_code=408, detail="Request timeout")
        except Exception as e:
            logger.error("send_message_error", session_id=str(session_id), error=str(e))
            raise HTTPException(status_code=500, detail="Failed to process message")

        INTENTS.labels(intent=turn.intent.value).inc()
        return turn

    @app.post("/sessions/{session_id}/reset", response_model=SessionView)
    async def reset_session(
        session_id: UUID,
        service: ChatService = Depends(get_chat_service),
        queue: RequestQueue = Depends(get_queue)
    ) -> SessionView:
        """Clears the session and greets again"""
        await require_session(session_id, service)
        try:
            conversation = await queue.enqueue_request(session_id, service.reset_session, session_id)
        except ConversationNotFound:
            raise HTTPException(status_code=404, detail="Session not found")
        except TimeoutError:
            raise HTTPException(status_code=408, detail="Request timeout")
        return session_view(conversation)

    @app.delete("/sessions/{session_id}", status_code=204)
    async def close_session(
        session_id: UUID,
        service: ChatService = Depends(get_chat_service),
        queue: RequestQueue = Depends(get_queue)
    ) -> Response:
        """Closes the session, saving its transcript if it concerned a complaint"""
        await require_session(session_id, service)
        try:
            await queue.enqueue_request(session_id, service.close_session, session_id)
        except ConversationNotFound:
            raise HTTPException(status_code=404, detail="Session not found")
        except TimeoutError:
            raise HTTPException(status_code=408, detail="Request timeout")
        finally:
            await queue.discard(session_id)
        return Response(status_code=204)

    @app.post("/classify", response_model=IntentClassification)
    async def classify(
        body: ClassifyRequest,
        service: ChatService = Depends(get_chat_service)
    ) -> IntentClassification:
        """Runs the intent router without touching any session"""
        message = body.message.strip()
        if not message:
            raise HTTPException(status_code=422, detail="Message cannot be empty")
        flags = SessionFlags(
            is_complaint_mode=body.is_complaint_mode,
            has_prefetched_complaint_id=body.has_prefetched_complaint_id,
        )
        return service.router.classify(message, body.state, flags)

    @app.get("/metrics")
    async def metrics():
        """Provides Prometheus metrics for system monitoring"""
        return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")

    return app


app = create_app()
