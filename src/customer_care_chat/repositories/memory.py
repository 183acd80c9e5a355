"""In-memory repository implementations."""

import asyncio
from datetime import timedelta
from typing import Dict, List, Optional
from uuid import UUID

import structlog

from ..domain.models import (
    CollaboratorResponse,
    Complaint,
    ComplaintDraft,
    ComplaintFilter,
    ComplaintNote,
    ComplaintPriority,
    Conversation,
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTE_LENGTH,
    SessionRecord,
    utcnow,
)
from .base import ComplaintRepository, ConversationRepository

logger = structlog.get_logger()

SLA_WINDOWS = {
    ComplaintPriority.HIGH: timedelta(days=1),
    ComplaintPriority.MEDIUM: timedelta(days=3),
    ComplaintPriority.LOW: timedelta(days=7),
}


class InMemoryConversationRepository(ConversationRepository):
    """Async-safe in-memory store for chat sessions."""

    def __init__(self) -> None:
        self._conversations: Dict[UUID, Conversation] = {}
        self._lock = asyncio.Lock()
        logger.info("conversation_repository_initialized")

    async def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        async with self._lock:
            conversation = self._conversations.get(conversation_id)
            if conversation is None:
                logger.warning("conversation_not_found", conversation_id=str(conversation_id))
            return conversation

    async def list_conversations(self, limit: int = 100, offset: int = 0) -> List[Conversation]:
        async with self._lock:
            conversations = sorted(
                self._conversations.values(),
                key=lambda c: c.updated_at,
                reverse=True
            )
            return conversations[offset : offset + limit]

    async def create_conversation(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            self._conversations[conversation.id] = conversation
            logger.info("conversation_created", conversation_id=str(conversation.id))
        return conversation

    async def save_conversation(self, conversation: Conversation) -> Conversation:
        async with self._lock:
            if conversation.id not in self._conversations:
                raise ValueError(f"Conversation {conversation.id} not found")
            self._conversations[conversation.id] = conversation
        return conversation

    async def delete_conversation(self, conversation_id: UUID) -> bool:
        async with self._lock:
            removed = self._conversations.pop(conversation_id, None)
            if removed is not None:
                logger.info("conversation_deleted", conversation_id=str(conversation_id))
            return removed is not None


class InMemoryComplaintRepository(ComplaintRepository):
    """Complaint backend kept in process memory."""

    def __init__(self, complaints: Optional[List[Complaint]] = None) -> None:
        self._complaints: Dict[str, Complaint] = {c.id: c for c in complaints or []}
        self.reminders: List[Dict[str, object]] = []
        self.sessions: List[SessionRecord] = []
        self._lock = asyncio.Lock()

    async def list_complaints(self, complaint_filter: ComplaintFilter) -> CollaboratorResponse:
        async with self._lock:
            complaints = list(self._complaints.values())

        if complaint_filter.submitted_by is not None:
            complaints = [c for c in complaints if c.submitted_by == complaint_filter.submitted_by]
        if complaint_filter.assigned_to is not None:
            complaints = [c for c in complaints if c.assigned_to == complaint_filter.assigned_to]
        if complaint_filter.status:
            complaints = [c for c in complaints if c.status in complaint_filter.status]
        if complaint_filter.submitted_after is not None:
            complaints = [c for c in complaints if c.submitted_at >= complaint_filter.submitted_after]

        complaints.sort(
            key=lambda c: getattr(c, complaint_filter.sort_by),
            reverse=complaint_filter.sort_order == "desc"
        )
        if complaint_filter.limit is not None:
            complaints = complaints[: complaint_filter.limit]
        return CollaboratorResponse(success=True, data=complaints)

    async def get_complaint_by_id(self, complaint_id: str) -> CollaboratorResponse:
        async with self._lock:
            complaint = self._complaints.get(complaint_id)
        if complaint is None:
            logger.warning("complaint_not_found", complaint_id=complaint_id)
            return CollaboratorResponse(success=False, message="Complaint not found")
        return CollaboratorResponse(success=True, data=complaint)

    async def create_complaint(self, user_id: str, draft: ComplaintDraft) -> CollaboratorResponse:
        if len(draft.description) > MAX_DESCRIPTION_LENGTH:
            return CollaboratorResponse(
                success=False,
                message=f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )
        now = utcnow()
        complaint = Complaint(
            title=draft.title,
            description=draft.description,
            category=draft.category,
            priority=draft.priority,
            submitted_by=user_id,
            submitted_at=now,
            last_updated=now,
            sla_deadline=now + SLA_WINDOWS[draft.priority],
        )
        async with self._lock:
            self._complaints[complaint.id] = complaint
        logger.info(
            "complaint_created",
            complaint_id=complaint.id,
            complaint_number=complaint.complaint_number,
            category=complaint.category.value
        )
        return CollaboratorResponse(success=True, data=complaint, message="Complaint submitted successfully")

    async def add_complaint_note(self, complaint_id: str, user_id: str, note: str) -> CollaboratorResponse:
        if len(note) > MAX_NOTE_LENGTH:
            return CollaboratorResponse(success=False, message=f"Note cannot exceed {MAX_NOTE_LENGTH} characters")
        async with self._lock:
            complaint = self._complaints.get(complaint_id)
            if complaint is None:
                return CollaboratorResponse(success=False, message="Complaint not found")
            complaint.notes.append(ComplaintNote(note=note, added_by=user_id))
            complaint.last_updated = utcnow()
        return CollaboratorResponse(success=True, data=complaint, message="Note added successfully")

    async def send_reminder_notification(self, complaint_id: str, user_id: str) -> CollaboratorResponse:
        async with self._lock:
            complaint = self._complaints.get(complaint_id)
            if complaint is None:
                return CollaboratorResponse(success=False, message="Complaint not found")
            reminder = {
                "complaint_id": complaint.id,
                "complaint_number": complaint.complaint_number,
                "requested_by": user_id,
                "status": complaint.status,
                "sent_at": utcnow(),
            }
            self.reminders.append(reminder)
        logger.info("reminder_sent", complaint_id=complaint_id, complaint_number=reminder["complaint_number"])
        return CollaboratorResponse(success=True, data=reminder, message="Reminder notifications sent successfully")

    async def save_session(self, record: SessionRecord) -> CollaboratorResponse:
        async with self._lock:
            self.sessions.append(record)
        logger.info(
            "session_saved",
            complaint_id=record.complaint_id,
            transcript_length=len(record.transcript)
        )
        return CollaboratorResponse(success=True, data=record, message="Session saved successfully")
