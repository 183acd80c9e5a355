"""
Chat Service

Applies intent router decisions to a live chat session: moves the
conversation state, keeps the complaint draft, calls the complaint backend and
renders the bot's reply.

Backend failures never end the conversation. They are logged here and turned
into a fixed fallback reply.
"""

from datetime import timedelta
from typing import Any, Awaitable, Callable, List, Optional
from uuid import UUID

import structlog

from ..config import Settings, get_settings
from ..domain.errors import (
    CollaboratorUnavailable,
    ConversationNotFound,
    InvalidInput,
    NoMatchingComplaint,
)
from ..domain.models import (
    ACTIVE_STATUSES,
    MAX_DESCRIPTION_LENGTH,
    MAX_NOTE_LENGTH,
    ChatSession,
    ChatTurn,
    Complaint,
    ComplaintCategory,
    ComplaintDraft,
    ComplaintFilter,
    ComplaintPriority,
    Conversation,
    ConversationState,
    Intent,
    IntentClassification,
    Message,
    Origin,
    SessionContext,
    SessionRecord,
    UserHistorySnapshot,
    utcnow,
)
from ..repositories.base import ComplaintRepository, ConversationRepository
from . import keywords
from .responses import complaint_values, render, render_status, select_greeting
from .router import AbuseFilter, IntentRouter, contains_any

logger = structlog.get_logger()


def infer_category(text: str, default: str = ComplaintCategory.OTHER.value) -> ComplaintCategory:
    """First category whose keywords appear in the text."""
    lowered = text.lower()
    for category, words in keywords.CATEGORY_KEYWORDS.items():
        if contains_any(lowered, words):
            return ComplaintCategory(category)
    return ComplaintCategory(default)


def build_title(first_line: str, max_length: int) -> str:
    title = " ".join(first_line.split())
    if len(title) <= max_length:
        return title
    return title[: max_length - 3].rstrip() + "..."


def split_notes(lines: List[str], max_length: int = MAX_NOTE_LENGTH) -> List[str]:
    """Pack draft lines into notes of at most max_length characters.

    Lines are kept whole where they fit; only a line longer than a note is cut
    into pieces. Nothing is dropped.
    """
    notes: List[str] = []
    current = ""
    for line in lines:
        for start in range(0, len(line), max_length):
            piece = line[start : start + max_length]
            candidate = f"{current}\n{piece}" if current else piece
            if len(candidate) <= max_length:
                current = candidate
            else:
                notes.append(current)
                current = piece
    if current:
        notes.append(current)
    return notes


def fits_description(session: ChatSession, line: str) -> bool:
    """Whether one more line keeps the assembled description within its limit."""
    if session.is_empty():
        return len(line) <= MAX_DESCRIPTION_LENGTH
    return len(session.description()) + 1 + len(line) <= MAX_DESCRIPTION_LENGTH


class ChatService:
    """Runs customer care chat sessions on top of the intent router."""

    def __init__(
        self,
        conversations: ConversationRepository,
        complaints: ComplaintRepository,
        router: Optional[IntentRouter] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.conversations = conversations
        self.complaints = complaints
        self.router = router or IntentRouter(AbuseFilter.from_settings(self.settings))

    async def _call(self, operation: str, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Await a collaborator and unwrap its envelope."""
        try:
            response = await func(*args)
        except Exception as e:
            logger.error("collaborator_call_failed", operation=operation, error=str(e))
            raise CollaboratorUnavailable(operation, str(e)) from e

        if not response.success:
            logger.warning("collaborator_call_unsuccessful", operation=operation, detail=response.message)
            raise CollaboratorUnavailable(operation, response.message or "")
        return response.data

    async def _fetch_complaint(self, complaint_id: str) -> Complaint:
        try:
            response = await self.complaints.get_complaint_by_id(complaint_id)
        except Exception as e:
            logger.error("collaborator_call_failed", operation="get_complaint_by_id", error=str(e))
            raise CollaboratorUnavailable("get_complaint_by_id", str(e)) from e

        if not response.success or response.data is None:
            raise NoMatchingComplaint(f"Complaint {complaint_id} not found")
        return response.data

    async def get_conversation(self, conversation_id: UUID) -> Conversation:
        conversation = await self.conversations.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFound(f"Conversation {conversation_id} not found")
        return conversation

    async def load_history(self, user_id: str) -> UserHistorySnapshot:
        """Active and recent complaints for the greeting. Empty on backend failure."""
        since = utcnow() - timedelta(hours=self.settings.recent_window_hours)
        try:
            active = await self._call(
                "list_complaints",
                self.complaints.list_complaints,
                ComplaintFilter(submitted_by=user_id, status=[s.value for s in ACTIVE_STATUSES]),
            )
            recent = await self._call(
                "list_complaints",
                self.complaints.list_complaints,
                ComplaintFilter(submitted_by=user_id, submitted_after=since),
            )
        except CollaboratorUnavailable:
            logger.warning("history_unavailable", user_id=user_id)
            return UserHistorySnapshot()
        return UserHistorySnapshot(active_complaints=active, recent_complaints=recent)

    async def _greet(self, conversation: Conversation) -> None:
        context = conversation.context
        conversation.history = await self.load_history(context.user_id)
        greeting = select_greeting(conversation.history)
        conversation.state = greeting.state
        conversation.greeted_complaint_id = greeting.complaint.id if greeting.complaint else None
        conversation.record(Origin.BOT, greeting.text())

        if context.prefetched_complaint_id:
            conversation.linked_complaint_id = context.prefetched_complaint_id
            try:
                complaint = await self._fetch_complaint(context.prefetched_complaint_id)
                text = render("greeting_prefetched", **complaint_values(complaint))
            except (CollaboratorUnavailable, NoMatchingComplaint) as e:
                logger.warning(
                    "prefetched_complaint_unavailable",
                    complaint_id=context.prefetched_complaint_id,
                    error=str(e)
                )
                text = render("greeting_prefetched_unavailable")
            conversation.record(Origin.BOT, text)

        logger.info(
            "conversation_greeted",
            conversation_id=str(conversation.id),
            state=conversation.state.value,
            active=len(conversation.history.active_complaints),
            recent=len(conversation.history.recent_complaints)
        )

    async def open_session(self, user_id: str, prefetched_complaint_id: Optional[str] = None) -> Conversation:
        """Start a chat session and greet the user from their complaint history."""
        conversation = Conversation(
            context=SessionContext(user_id=user_id, prefetched_complaint_id=prefetched_complaint_id)
        )
        await self._greet(conversation)
        return await self.conversations.create_conversation(conversation)

    async def reset_session(self, conversation_id: UUID) -> Conversation:
        """Forget everything said so far and greet again."""
        conversation = await self.get_conversation(conversation_id)
        conversation.context = SessionContext(user_id=conversation.context.user_id)
        conversation.state = ConversationState.IDLE
        conversation.transcript = []
        conversation.draft = ChatSession()
        conversation.history = UserHistorySnapshot()
        conversation.greeted_complaint_id = None
        conversation.linked_complaint_id = None
        await self._greet(conversation)
        logger.info("conversation_reset", conversation_id=str(conversation_id))
        return await self.conversations.save_conversation(conversation)

    async def close_session(self, conversation_id: UUID) -> bool:
        """End a session, saving its transcript when it concerned a complaint.

        Returns whether a transcript was saved.
        """
        conversation = await self.get_conversation(conversation_id)
        saved = False
        if conversation.linked_complaint_id:
            record = SessionRecord(
                complaint_id=conversation.linked_complaint_id,
                responder_id=self.settings.responder_id,
                transcript=list(conversation.transcript),
                start_time=conversation.created_at,
                end_time=utcnow(),
            )
            try:
                await self._call("save_session", self.complaints.save_session, record)
                saved = True
            except CollaboratorUnavailable:
                logger.warning("session_transcript_not_saved", conversation_id=str(conversation_id))

        await self.conversations.delete_conversation(conversation_id)
        logger.info("conversation_closed", conversation_id=str(conversation_id), transcript_saved=saved)
        return saved

    async def handle_message(self, conversation_id: UUID, text: str) -> ChatTurn:
        """Classify one user message, act on it and record the reply."""
        message = (text or "").strip()
        if not message:
            raise InvalidInput("Message cannot be empty")

        conversation = await self.get_conversation(conversation_id)
        context = conversation.context
        user_message = conversation.record(Origin.USER, message)

        result = self.router.classify(message, conversation.state, context.flags())

        drafting = context.is_complaint_mode and result.intent not in (
            Intent.REJECTED_ABUSIVE,
            Intent.SUBMIT_COMPLAINT,
        )
        # Notes on an existing complaint are split on submit; a new complaint's
        # description has a hard limit.
        draft_full = (
            drafting
            and context.target_complaint_id is None
            and not fits_description(conversation.draft, message)
        )
        if draft_full:
            logger.info("draft_line_refused", conversation_id=str(conversation_id), length=len(message))
        elif drafting:
            conversation.draft.add(user_message)

        conversation.state = result.next_state
        if result.complaint_mode is not None:
            context.is_complaint_mode = result.complaint_mode

        if draft_full:
            reply_text = render("complaint_draft_full")
        else:
            reply_text = await self._respond(conversation, result)
        reply = conversation.record(Origin.BOT, reply_text)
        await self.conversations.save_conversation(conversation)

        logger.info(
            "message_handled",
            conversation_id=str(conversation_id),
            intent=result.intent.value,
            rule=result.matched_rule,
            state=conversation.state.value,
            complaint_mode=context.is_complaint_mode,
            draft_lines=len(conversation.draft.messages)
        )
        return ChatTurn(
            conversation_id=conversation.id,
            intent=result.intent,
            state=conversation.state,
            is_complaint_mode=context.is_complaint_mode,
            user_message=user_message,
            reply=reply,
        )

    async def _respond(self, conversation: Conversation, result: IntentClassification) -> str:
        if result.intent == Intent.SUBMIT_COMPLAINT:
            return await self._submit(conversation)
        if result.intent == Intent.FEEDBACK_CHECK:
            return await self._check_feedback(conversation)
        if result.intent == Intent.CONTINUE_EXISTING_COMPLAINT:
            return await self._continue_existing(conversation)
        if result.intent == Intent.START_NEW_COMPLAINT:
            conversation.context.target_complaint_id = None
        return render(result.response_key)

    async def _continue_existing(self, conversation: Conversation) -> str:
        """Target the prefetched complaint if there is one, else the one the greeting named."""
        context = conversation.context
        complaint: Optional[Complaint] = None
        complaint_id = conversation.greeted_complaint_id

        if context.prefetched_complaint_id:
            try:
                complaint = await self._fetch_complaint(context.prefetched_complaint_id)
                complaint_id = complaint.id
            except NoMatchingComplaint:
                logger.warning("prefetched_complaint_missing", complaint_id=context.prefetched_complaint_id)
            except CollaboratorUnavailable:
                complaint_id = context.prefetched_complaint_id

        context.target_complaint_id = complaint_id
        if complaint_id is None:
            return render("continue_existing_generic")

        conversation.linked_complaint_id = complaint_id
        if complaint is None:
            history = conversation.history.active_complaints + conversation.history.recent_complaints
            complaint = next((c for c in history if c.id == complaint_id), None)
        if complaint is None:
            return render("continue_existing_generic")
        return render("continue_existing", **complaint_values(complaint))

    def build_draft(self, session: ChatSession) -> ComplaintDraft:
        """Turn the accumulated chat lines into a complaint payload."""
        description = session.description()
        return ComplaintDraft(
            title=build_title(session.messages[0].text, self.settings.complaint_title_length),
            description=description,
            category=infer_category(description, self.settings.default_category),
            priority=ComplaintPriority(self.settings.default_priority),
        )

    async def _add_notes(self, conversation: Conversation) -> Complaint:
        """Attach the draft to the target complaint, one note per packed chunk.

        If a note fails, the draft keeps only the chunks not yet added so a
        retry does not repeat them.
        """
        context = conversation.context
        notes = split_notes([m.text for m in conversation.draft.messages])
        complaint = None
        for index, note in enumerate(notes):
            try:
                complaint = await self._call(
                    "add_complaint_note",
                    self.complaints.add_complaint_note,
                    context.target_complaint_id,
                    context.user_id,
                    note,
                )
            except CollaboratorUnavailable:
                if index:
                    conversation.draft = ChatSession(
                        messages=[Message(origin=Origin.USER, text=text) for text in notes[index:]]
                    )
                raise
        return complaint

    async def _submit(self, conversation: Conversation) -> str:
        context = conversation.context
        if conversation.draft.is_empty():
            return render("complaint_draft_empty")

        try:
            if context.target_complaint_id:
                complaint = await self._add_notes(conversation)
                key = "complaint_note_added"
            else:
                complaint = await self._call(
                    "create_complaint",
                    self.complaints.create_complaint,
                    context.user_id,
                    self.build_draft(conversation.draft),
                )
                key = "complaint_submitted"
        except CollaboratorUnavailable:
            return render("complaint_submit_failed")

        conversation.draft.clear()
        conversation.linked_complaint_id = complaint.id
        context.target_complaint_id = None
        context.is_complaint_mode = False
        conversation.state = ConversationState.IDLE
        logger.info(
            "complaint_submitted_from_chat",
            conversation_id=str(conversation.id),
            complaint_id=complaint.id,
            complaint_number=complaint.complaint_number
        )
        return render(key, **complaint_values(complaint))

    async def _feedback_target(self, context: SessionContext) -> Complaint:
        if context.prefetched_complaint_id:
            return await self._fetch_complaint(context.prefetched_complaint_id)

        complaints = await self._call(
            "list_complaints",
            self.complaints.list_complaints,
            ComplaintFilter(submitted_by=context.user_id, sort_by="submitted_at", sort_order="desc", limit=1),
        )
        if not complaints:
            raise NoMatchingComplaint(f"No complaints submitted by {context.user_id}")
        return complaints[0]

    async def _remind(self, complaint_id: str, user_id: str) -> bool:
        try:
            await self._call("send_reminder_notification", self.complaints.send_reminder_notification, complaint_id, user_id)
            return True
        except CollaboratorUnavailable:
            logger.warning("reminder_not_sent", complaint_id=complaint_id)
            return False

    async def _check_feedback(self, conversation: Conversation) -> str:
        context = conversation.context
        try:
            complaint = await self._feedback_target(context)
        except NoMatchingComplaint:
            return render("feedback_no_complaint")
        except CollaboratorUnavailable:
            reminded = bool(context.prefetched_complaint_id) and await self._remind(
                context.prefetched_complaint_id, context.user_id
            )
            return render("feedback_unavailable" if reminded else "feedback_lookup_failed")

        await self._remind(complaint.id, context.user_id)
        conversation.linked_complaint_id = conversation.linked_complaint_id or complaint.id
        return render_status(complaint)
