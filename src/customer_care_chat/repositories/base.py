"""Base repository interfaces."""

from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from ..domain.models import (
    CollaboratorResponse,
    ComplaintDraft,
    ComplaintFilter,
    Conversation,
    SessionRecord,
)


class ConversationRepository(ABC):
    """Storage for live chat sessions."""

    @abstractmethod
    async def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        """Retrieve a conversation by ID."""
        pass

    @abstractmethod
    async def list_conversations(self, limit: int = 100, offset: int = 0) -> List[Conversation]:
        """List conversations, most recently active first."""
        pass

    @abstractmethod
    async def create_conversation(self, conversation: Conversation) -> Conversation:
        """Store a new conversation."""
        pass

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> Conversation:
        """Persist changes to an existing conversation."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: UUID) -> bool:
        """Remove a conversation. Returns False if it did not exist."""
        pass


class ComplaintRepository(ABC):
    """Complaint backend the chat talks to.

    Every call answers with a ``CollaboratorResponse``; ``success=False`` means
    the backend handled the request but could not satisfy it (for example an
    unknown complaint id). Transport failures surface as exceptions.
    """

    @abstractmethod
    async def list_complaints(self, complaint_filter: ComplaintFilter) -> CollaboratorResponse:
        """List complaints matching the filter; ``data`` is a list of Complaint."""
        pass

    @abstractmethod
    async def get_complaint_by_id(self, complaint_id: str) -> CollaboratorResponse:
        """Fetch one complaint; ``data`` is a Complaint."""
        pass

    @abstractmethod
    async def create_complaint(self, user_id: str, draft: ComplaintDraft) -> CollaboratorResponse:
        """Create a complaint on behalf of the user; ``data`` is the new Complaint."""
        pass

    @abstractmethod
    async def add_complaint_note(self, complaint_id: str, user_id: str, note: str) -> CollaboratorResponse:
        """Append a note to a complaint; ``data`` is the updated Complaint."""
        pass

    @abstractmethod
    async def send_reminder_notification(self, complaint_id: str, user_id: str) -> CollaboratorResponse:
        """Nudge the people responsible for a complaint."""
        pass

    @abstractmethod
    async def save_session(self, record: SessionRecord) -> CollaboratorResponse:
        """Store a chat transcript against a complaint."""
        pass
