"""
Intent Router

Routes one free-text chat message to an intent using an ordered table of
keyword rules. The first rule whose predicate holds wins, so the order of
``IntentRouter.rules`` is part of the behaviour: later rules only see messages
every earlier rule rejected.

Classification is pure. It never performs I/O and never raises; anything no
rule claims falls through to ``general_fallback``. Applying the result (moving
the conversation state, calling complaint collaborators) is the caller's job.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

import structlog

from ..config import Settings
from ..domain.models import (
    ConversationState,
    Intent,
    IntentClassification,
    SessionFlags,
)
from . import keywords

logger = structlog.get_logger()


def contains_any(text: str, candidates: Iterable[str]) -> bool:
    """True when any keyword occurs in the already lowercased text."""
    return any(keyword in text for keyword in candidates)


@dataclass(frozen=True)
class AbuseVerdict:
    """Which abuse heuristics a message tripped."""

    reasons: List[str] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return bool(self.reasons)


class AbuseFilter:
    """Spam and abusive-language heuristics run ahead of every other rule."""

    def __init__(
        self,
        spam_keywords: Sequence[str] = keywords.SPAM_KEYWORDS,
        abuse_keywords: Sequence[str] = keywords.ABUSE_KEYWORDS,
        max_token_repeats: int = 3,
        max_length: int = 500,
        caps_min_length: int = 10,
    ) -> None:
        self.spam_keywords = [k.lower() for k in spam_keywords]
        self.abuse_keywords = [k.lower() for k in abuse_keywords]
        self.max_token_repeats = max_token_repeats
        self.max_length = max_length
        self.caps_min_length = caps_min_length

    @classmethod
    def from_settings(cls, settings: Settings) -> "AbuseFilter":
        return cls(
            max_token_repeats=settings.max_token_repeats,
            max_length=settings.max_message_length,
            caps_min_length=settings.caps_min_length,
        )

    def has_repetition(self, message: str) -> bool:
        counts = Counter(token.lower() for token in message.split())
        return any(count > self.max_token_repeats for count in counts.values())

    def is_shouting(self, message: str) -> bool:
        return message == message.upper() and len(message) > self.caps_min_length

    def inspect(self, message: str) -> AbuseVerdict:
        lowered = message.lower()
        reasons = []
        if contains_any(lowered, self.spam_keywords):
            reasons.append("spam_keyword")
        if contains_any(lowered, self.abuse_keywords):
            reasons.append("abusive_keyword")
        if self.has_repetition(message):
            reasons.append("repetition")
        if len(message) > self.max_length:
            reasons.append("too_long")
        if self.is_shouting(message):
            reasons.append("all_caps")
        return AbuseVerdict(reasons)


@dataclass(frozen=True)
class RoutingInput:
    message: str
    lowered: str
    state: ConversationState
    flags: SessionFlags


@dataclass(frozen=True)
class Rule:
    """One row of the routing table."""

    name: str
    intent: Intent
    response_key: str
    predicate: Callable[[RoutingInput], bool]
    next_state: Optional[ConversationState] = None  # None keeps the current state
    complaint_mode: Optional[bool] = None

    def apply(self, state: ConversationState) -> IntentClassification:
        return IntentClassification(
            intent=self.intent,
            matched_rule=self.name,
            next_state=self.next_state or state,
            response_key=self.response_key,
            complaint_mode=self.complaint_mode,
        )


def keyword_rule(name: str, intent: Intent, response_key: str, words: Sequence[str], **kwargs) -> Rule:
    return Rule(
        name=name,
        intent=intent,
        response_key=response_key,
        predicate=lambda item: contains_any(item.lowered, words),
        **kwargs,
    )


def waiting_for_choice(words: Sequence[str]) -> Callable[[RoutingInput], bool]:
    def predicate(item: RoutingInput) -> bool:
        return item.state == ConversationState.WAITING_FOR_CHOICE and contains_any(item.lowered, words)
    return predicate


class IntentRouter:
    """Priority-ordered keyword classifier for customer care chat messages."""

    def __init__(self, abuse_filter: Optional[AbuseFilter] = None) -> None:
        self.abuse_filter = abuse_filter or AbuseFilter()
        self.rules: List[Rule] = [
            Rule(
                name="abuse_filter",
                intent=Intent.REJECTED_ABUSIVE,
                response_key="abuse_warning",
                predicate=lambda item: self.abuse_filter.inspect(item.message).rejected,
            ),
            Rule(
                name="submit_command",
                intent=Intent.SUBMIT_COMPLAINT,
                response_key="complaint_submitted",
                predicate=lambda item: item.flags.is_complaint_mode
                and keywords.SUBMIT_KEYWORD in item.lowered,
            ),
            keyword_rule(
                "feedback_inquiry", Intent.FEEDBACK_CHECK, "feedback_check",
                keywords.FEEDBACK_KEYWORDS,
            ),
            keyword_rule(
                "gratitude", Intent.ACKNOWLEDGED_THANKS, "thanks_acknowledged",
                keywords.GRATITUDE_KEYWORDS,
            ),
            Rule(
                name="continue_choice",
                intent=Intent.CONTINUE_EXISTING_COMPLAINT,
                response_key="continue_existing",
                predicate=waiting_for_choice(keywords.CONTINUE_KEYWORDS),
                next_state=ConversationState.COMPLAINT_MODE,
                complaint_mode=True,
            ),
            Rule(
                name="new_choice",
                intent=Intent.START_NEW_COMPLAINT,
                response_key="start_new",
                predicate=waiting_for_choice(keywords.NEW_COMPLAINT_KEYWORDS),
                next_state=ConversationState.NEW_COMPLAINT,
                complaint_mode=True,
            ),
            keyword_rule(
                "complaint_keyword", Intent.COMPLAINT_KEYWORD_DETECTED, "offer_complaint",
                keywords.COMPLAINT_KEYWORDS,
            ),
            keyword_rule(
                "affirmative", Intent.AFFIRMATIVE_GENERIC, "request_details",
                keywords.AFFIRMATIVE_KEYWORDS,
                complaint_mode=True,
            ),
            keyword_rule(
                "negative", Intent.NEGATIVE_GENERIC, "reassure",
                keywords.NEGATIVE_KEYWORDS,
            ),
        ]

    @property
    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]

    def classify(
        self,
        message: str,
        state: ConversationState = ConversationState.IDLE,
        flags: Optional[SessionFlags] = None,
    ) -> IntentClassification:
        """Classify a trimmed, non-empty message. Always returns a result."""
        flags = flags or SessionFlags()
        item = RoutingInput(message=message, lowered=message.lower(), state=state, flags=flags)

        for rule in self.rules:
            if rule.predicate(item):
                result = rule.apply(state)
                break
        else:
            result = IntentClassification(
                intent=Intent.GENERAL_FALLBACK,
                matched_rule="fallback",
                next_state=state,
                response_key="complaint_detail_received" if flags.is_complaint_mode else "general_help",
            )

        logger.debug(
            "message_classified",
            intent=result.intent.value,
            rule=result.matched_rule,
            state=state.value,
            next_state=result.next_state.value,
        )
        return result
