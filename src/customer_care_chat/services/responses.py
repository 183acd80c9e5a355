"""Canned bot replies, the complaint status responder and the greeting selector."""

from dataclasses import dataclass
from typing import Any, Optional

from ..domain.models import Complaint, ComplaintStatus, ConversationState, UserHistorySnapshot

TEMPLATES = {
    # Greetings
    "greeting_default": "Hi! I'm here to help with your concerns. How can I assist you today?",
    "greeting_active": (
        'Welcome back! I see your complaint "{title}" ({number}) is currently {status}. '
        "Is your message related to this complaint, or would you like to raise a new one?"
    ),
    "greeting_recent": (
        'Welcome back! You recently submitted "{title}" ({number}). '
        "Would you like to continue with that complaint or start a new one?"
    ),
    "greeting_prefetched": (
        'I see you want to continue discussing your complaint "{title}" ({number}). '
        "Current status: {status}. How can I help you with this issue?"
    ),
    "greeting_prefetched_unavailable": (
        "I see you want to continue discussing a complaint. How can I help you with this issue?"
    ),
    # Router outcomes
    "abuse_warning": (
        "Please keep our conversation respectful and free of spam. "
        "I'm happy to help once you describe your concern calmly."
    ),
    "thanks_acknowledged": "You're welcome! Is there anything else I can help you with?",
    "continue_existing": (
        'Alright, let\'s continue with "{title}" ({number}). Please share the additional '
        'details, then type "submit" when you are done.'
    ),
    "continue_existing_generic": (
        'Alright, let\'s continue with your existing complaint. Please share the additional '
        'details, then type "submit" when you are done.'
    ),
    "start_new": (
        'No problem, let\'s start a new complaint. Please describe the issue in as much detail '
        'as you can, then type "submit" when you are done.'
    ),
    "offer_complaint": (
        "I understand you have a concern. Would you like me to help you submit a formal "
        "complaint? This will ensure it gets tracked and resolved properly."
    ),
    "request_details": (
        'Great! Please describe your complaint in detail. When you are finished, type "submit" '
        "and I will file it for you."
    ),
    "reassure": (
        "No worries. If you change your mind or have a specific concern, just let me know "
        "and I can help you submit it formally."
    ),
    "general_help": (
        "Thank you for your message. I'm here to help! If you have a specific concern or "
        "complaint, please let me know and I can help you submit it formally."
    ),
    "complaint_detail_received": (
        'Got it, I have noted that. Add any other details you want to include, or type "submit" '
        "to send your complaint."
    ),
    # Submission
    "complaint_submitted": (
        'Great! I\'ve submitted your complaint "{title}". You\'ll receive a confirmation email '
        "shortly with your complaint number: {number}."
    ),
    "complaint_note_added": (
        'Thanks, I\'ve added your update to complaint "{title}" ({number}). '
        "The team handling it will be notified."
    ),
    "complaint_draft_empty": (
        'I don\'t have any details for your complaint yet. Please describe the issue first, '
        'then type "submit".'
    ),
    "complaint_submit_failed": (
        "Sorry, I couldn't submit your complaint right now. Your details are saved in this chat, "
        'so please try typing "submit" again in a moment.'
    ),
    "complaint_draft_full": (
        "Your complaint has reached the maximum length, so I couldn't add that last message. "
        'Please type "submit" to send what you have so far.'
    ),
    # Feedback and status
    "status_pending": (
        'Your complaint "{title}" ({number}) is still pending review. I\'ve sent a reminder to '
        "the customer care team so they can attend to it."
    ),
    "status_in_progress": (
        'Your complaint "{title}" ({number}) is currently being worked on. I\'ve reminded the '
        "assigned team member to send you an update."
    ),
    "status_resolved": (
        'Good news! Your complaint "{title}" ({number}) has been resolved. If you are not '
        "satisfied with the resolution, let me know and I can help you follow up."
    ),
    "status_closed": (
        'Your complaint "{title}" ({number}) has been closed. If the issue persists, '
        "I can help you raise a new complaint."
    ),
    "status_default": (
        'Your complaint "{title}" ({number}) currently has the status "{status}". '
        "I've sent a reminder to the team for an update."
    ),
    "feedback_no_complaint": (
        "I couldn't find any complaint on your account. Would you like to submit one now?"
    ),
    "feedback_unavailable": (
        "I'm having trouble checking the status right now, but a reminder has been sent to "
        "our team and they will get back to you soon."
    ),
    "feedback_lookup_failed": (
        "I'm having trouble checking the status of your complaint right now. "
        "Please try again in a few minutes."
    ),
}

_STATUS_KEYS = {
    ComplaintStatus.PENDING.value: "status_pending",
    ComplaintStatus.IN_PROGRESS.value: "status_in_progress",
    ComplaintStatus.RESOLVED.value: "status_resolved",
    ComplaintStatus.CLOSED.value: "status_closed",
}


def render(key: str, **values: Any) -> str:
    """Fill a template; raises KeyError for unknown keys."""
    return TEMPLATES[key].format(**values)


def complaint_values(complaint: Complaint) -> dict:
    return {
        "title": complaint.title,
        "number": complaint.complaint_number,
        "status": complaint.status.replace("_", " "),
    }


def status_template_key(status: str) -> str:
    return _STATUS_KEYS.get(status, "status_default")


def render_status(complaint: Complaint) -> str:
    """Status reply for a feedback check against a concrete complaint."""
    values = complaint_values(complaint)
    values["status"] = complaint.status
    return render(status_template_key(complaint.status), **values)


@dataclass(frozen=True)
class Greeting:
    """Opening line chosen from the user's complaint history."""

    response_key: str
    state: ConversationState
    complaint: Optional[Complaint] = None

    def text(self) -> str:
        if self.complaint is None:
            return render(self.response_key)
        return render(self.response_key, **complaint_values(self.complaint))


def select_greeting(snapshot: UserHistorySnapshot) -> Greeting:
    """Pick the opening greeting. Lists are already sorted newest first."""
    if snapshot.active_complaints:
        return Greeting("greeting_active", ConversationState.WAITING_FOR_CHOICE, snapshot.active_complaints[0])
    if snapshot.recent_complaints:
        return Greeting("greeting_recent", ConversationState.WAITING_FOR_CHOICE, snapshot.recent_complaints[0])
    return Greeting("greeting_default", ConversationState.IDLE)
