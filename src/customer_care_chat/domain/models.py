"""Domain models for the customer care chat."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    """Return a 24 character hex id shaped like the document store's ids."""
    return uuid4().hex[:24]


class ConversationState(str, Enum):
    """Where the user stands in the continue-or-new complaint dialogue."""

    IDLE = "idle"
    WAITING_FOR_CHOICE = "waiting_for_choice"
    COMPLAINT_MODE = "complaint_mode"
    NEW_COMPLAINT = "new_complaint"


class Intent(str, Enum):
    """Classified purpose of one inbound chat message."""

    REJECTED_ABUSIVE = "rejected_abusive"
    SUBMIT_COMPLAINT = "submit_complaint"
    FEEDBACK_CHECK = "feedback_check"
    ACKNOWLEDGED_THANKS = "acknowledged_thanks"
    CONTINUE_EXISTING_COMPLAINT = "continue_existing_complaint"
    START_NEW_COMPLAINT = "start_new_complaint"
    COMPLAINT_KEYWORD_DETECTED = "complaint_keyword_detected"
    AFFIRMATIVE_GENERIC = "affirmative_generic"
    NEGATIVE_GENERIC = "negative_generic"
    GENERAL_FALLBACK = "general_fallback"


class Origin(str, Enum):
    USER = "user"
    BOT = "bot"


class ComplaintStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"


ACTIVE_STATUSES = (ComplaintStatus.PENDING, ComplaintStatus.IN_PROGRESS)

MAX_NOTE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 2000


class ComplaintCategory(str, Enum):
    TECHNICAL = "technical"
    PAYROLL = "payroll"
    HR = "hr"
    CUSTOMER_CARE = "customer_care"
    SALES = "sales"
    PROCUREMENT = "procurement"
    INVENTORY = "inventory"
    EQUIPMENT = "equipment"
    ACCESS = "access"
    POLICY = "policy"
    TRAINING = "training"
    FACILITIES = "facilities"
    SECURITY = "security"
    OTHER = "other"


class ComplaintPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Message(BaseModel):
    """One line of chat history."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    origin: Origin
    text: str
    timestamp: datetime = Field(default_factory=utcnow)


class ChatSession(BaseModel):
    """User lines gathered while composing a complaint."""

    messages: List[Message] = []

    def add(self, message: Message) -> None:
        self.messages.append(message)

    def clear(self) -> None:
        self.messages = []

    def is_empty(self) -> bool:
        return not self.messages

    def description(self) -> str:
        return "\n".join(message.text for message in self.messages)


class SessionFlags(BaseModel):
    """Session facts the router is allowed to see."""

    model_config = ConfigDict(frozen=True)

    is_complaint_mode: bool = False
    has_prefetched_complaint_id: bool = False


class SessionContext(BaseModel):
    """Per-session values that would otherwise live in browser storage."""

    user_id: str
    prefetched_complaint_id: Optional[str] = None
    target_complaint_id: Optional[str] = None
    is_complaint_mode: bool = False

    def flags(self) -> SessionFlags:
        return SessionFlags(
            is_complaint_mode=self.is_complaint_mode,
            has_prefetched_complaint_id=self.prefetched_complaint_id is not None,
        )


class IntentClassification(BaseModel):
    """Result of routing one message. Computed fresh for every message."""

    model_config = ConfigDict(frozen=True)

    intent: Intent
    matched_rule: str
    next_state: ConversationState
    response_key: str
    complaint_mode: Optional[bool] = None  # None leaves the flag untouched


class ComplaintNote(BaseModel):
    note: str = Field(max_length=MAX_NOTE_LENGTH)
    added_by: str
    added_at: datetime = Field(default_factory=utcnow)


class Complaint(BaseModel):
    """Complaint record as returned by the complaint collaborator."""

    id: str = Field(default_factory=new_object_id)
    title: str = Field(max_length=200)
    description: str = Field(max_length=MAX_DESCRIPTION_LENGTH)
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    status: str = ComplaintStatus.PENDING.value
    submitted_by: str
    assigned_to: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
    sla_deadline: Optional[datetime] = None
    notes: List[ComplaintNote] = []

    @computed_field  # type: ignore[misc]
    @property
    def complaint_number(self) -> str:
        return f"CC-{self.id[-6:].upper()}"


class ComplaintDraft(BaseModel):
    """Payload for creating a complaint."""

    title: str
    description: str
    category: ComplaintCategory = ComplaintCategory.OTHER
    priority: ComplaintPriority = ComplaintPriority.MEDIUM


class ComplaintFilter(BaseModel):
    submitted_by: Optional[str] = None
    assigned_to: Optional[str] = None
    status: Optional[List[str]] = None
    submitted_after: Optional[datetime] = None
    sort_by: str = "submitted_at"
    sort_order: str = "desc"
    limit: Optional[int] = None


class SessionRecord(BaseModel):
    """Transcript of a finished chat session, saved against a complaint."""

    complaint_id: str
    responder_id: str
    transcript: List[Message]
    start_time: datetime
    end_time: datetime
    status: str = "completed"
    resolution: str = "pending"


class CollaboratorResponse(BaseModel):
    """Envelope every collaborator call answers with."""

    success: bool
    data: Any = None
    message: Optional[str] = None


class UserHistorySnapshot(BaseModel):
    """Complaints on file when the chat opened, newest first."""

    active_complaints: List[Complaint] = []
    recent_complaints: List[Complaint] = []


class Conversation(BaseModel):
    """Server-side state of one chat session."""

    id: UUID = Field(default_factory=uuid4)
    context: SessionContext
    state: ConversationState = ConversationState.IDLE
    transcript: List[Message] = []
    draft: ChatSession = Field(default_factory=ChatSession)
    history: UserHistorySnapshot = Field(default_factory=UserHistorySnapshot)
    greeted_complaint_id: Optional[str] = None
    linked_complaint_id: Optional[str] = None  # complaint the transcript is saved against
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def record(self, origin: Origin, text: str) -> Message:
        message = Message(origin=origin, text=text)
        self.transcript.append(message)
        self.updated_at = message.timestamp
        return message


class ChatTurn(BaseModel):
    """Outcome of handling one inbound message."""

    conversation_id: UUID
    intent: Intent
    state: ConversationState
    is_complaint_mode: bool
    user_message: Message
    reply: Message
