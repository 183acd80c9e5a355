"""Test suite for the intent router."""

import pytest

from customer_care_chat.domain.models import ConversationState, Intent, SessionFlags
from customer_care_chat.services.router import AbuseFilter, IntentRouter

ALL_STATES = list(ConversationState)
ALL_FLAGS = [
    SessionFlags(),
    SessionFlags(is_complaint_mode=True),
    SessionFlags(has_prefetched_complaint_id=True),
    SessionFlags(is_complaint_mode=True, has_prefetched_complaint_id=True),
]


def test_rule_priority_order(router):
    """Rules are evaluated in a fixed order."""
    assert router.rule_names == [
        "abuse_filter",
        "submit_command",
        "feedback_inquiry",
        "gratitude",
        "continue_choice",
        "new_choice",
        "complaint_keyword",
        "affirmative",
        "negative",
    ]


@pytest.mark.parametrize("message", [
    "You are so stupid",
    "this service is rubbish",
    "click here for free money",
    "submit this useless form",
])
@pytest.mark.parametrize("state", ALL_STATES)
@pytest.mark.parametrize("flags", ALL_FLAGS)
def test_abusive_keywords_rejected_everywhere(router, message, state, flags):
    """Spam and abuse keywords win regardless of state and flags."""
    result = router.classify(message, state, flags)
    assert result.intent == Intent.REJECTED_ABUSIVE
    assert result.matched_rule == "abuse_filter"
    assert result.response_key == "abuse_warning"
    assert result.next_state == state
    assert result.complaint_mode is None


def test_repeated_token_rejected(router):
    """A token appearing more than three times is spam."""
    result = router.classify("test test test test")
    assert result.intent == Intent.REJECTED_ABUSIVE
    assert "repetition" in AbuseFilter().inspect("test test test test").reasons


def test_repetition_is_case_insensitive():
    assert AbuseFilter().has_repetition("Test test TEST tEsT")


def test_three_repeats_allowed(router):
    result = router.classify("test test test")
    assert result.intent == Intent.GENERAL_FALLBACK


def test_length_limit(router):
    assert router.classify("a" * 500).intent == Intent.GENERAL_FALLBACK
    assert router.classify("a" * 501).intent == Intent.REJECTED_ABUSIVE
    assert AbuseFilter().inspect("a" * 501).reasons == ["too_long"]


def test_all_caps_rejected(router):
    """Shouting is rejected even without an abusive keyword."""
    assert router.classify("I HATE THIS SERVICE SO MUCH").intent == Intent.REJECTED_ABUSIVE
    assert router.classify("WHERE IS MY SALARY").intent == Intent.REJECTED_ABUSIVE
    assert AbuseFilter().inspect("WHERE IS MY SALARY").reasons == ["all_caps"]


def test_short_caps_allowed(router):
    assert router.classify("HELLO").intent == Intent.GENERAL_FALLBACK
    assert router.classify("ABCDEFGHIJ").intent == Intent.GENERAL_FALLBACK


def test_abuse_thresholds_configurable():
    strict = IntentRouter(AbuseFilter(max_token_repeats=1, max_length=20, caps_min_length=3))
    assert strict.classify("my my salary").intent == Intent.REJECTED_ABUSIVE
    assert strict.classify("HEY!").intent == Intent.REJECTED_ABUSIVE
    assert strict.classify("this message is longer than twenty").intent == Intent.REJECTED_ABUSIVE


def test_submit_in_complaint_mode(router):
    result = router.classify("please submit", ConversationState.IDLE, SessionFlags(is_complaint_mode=True))
    assert result.intent == Intent.SUBMIT_COMPLAINT
    assert result.matched_rule == "submit_command"


def test_submit_outside_complaint_mode(router):
    result = router.classify("please submit", ConversationState.IDLE, SessionFlags())
    assert result.intent == Intent.GENERAL_FALLBACK


def test_submit_beats_later_rules(router):
    """Submit wins over gratitude and complaint keywords."""
    flags = SessionFlags(is_complaint_mode=True)
    result = router.classify("thanks, submit my complaint", ConversationState.COMPLAINT_MODE, flags)
    assert result.intent == Intent.SUBMIT_COMPLAINT


@pytest.mark.parametrize("message", [
    "any update on my complaint?",
    "What is the status of my issue",
    "I haven't heard anything back",
    "still no response from your team",
])
def test_feedback_inquiry(router, message):
    """Status questions win over complaint keywords."""
    assert router.classify(message).intent == Intent.FEEDBACK_CHECK


def test_gratitude(router):
    result = router.classify("thanks a lot")
    assert result.intent == Intent.ACKNOWLEDGED_THANKS
    assert result.next_state == ConversationState.IDLE
    assert result.complaint_mode is None


def test_continue_when_waiting_for_choice(router):
    result = router.classify("yes please continue", ConversationState.WAITING_FOR_CHOICE)
    assert result.intent == Intent.CONTINUE_EXISTING_COMPLAINT
    assert result.next_state == ConversationState.COMPLAINT_MODE
    assert result.complaint_mode is True


def test_pidgin_continue(router):
    result = router.classify("na the same matter abi", ConversationState.WAITING_FOR_CHOICE)
    assert result.intent == Intent.CONTINUE_EXISTING_COMPLAINT


def test_continue_checked_before_new(router):
    """The continue phrase "no wahala" also contains the new-complaint keyword "no"."""
    result = router.classify("no wahala", ConversationState.WAITING_FOR_CHOICE)
    assert result.intent == Intent.CONTINUE_EXISTING_COMPLAINT


def test_new_complaint_when_waiting_for_choice(router):
    result = router.classify("new one please", ConversationState.WAITING_FOR_CHOICE)
    assert result.intent == Intent.START_NEW_COMPLAINT
    assert result.next_state == ConversationState.NEW_COMPLAINT
    assert result.complaint_mode is True


def test_choice_rules_need_waiting_state(router):
    """Outside waiting_for_choice the generic affirmative handles "yes"."""
    result = router.classify("yes", ConversationState.IDLE)
    assert result.intent == Intent.AFFIRMATIVE_GENERIC
    assert result.next_state == ConversationState.IDLE
    assert result.complaint_mode is True


def test_complaint_keyword(router):
    result = router.classify("my salary payment has a problem", ConversationState.IDLE)
    assert result.intent == Intent.COMPLAINT_KEYWORD_DETECTED
    assert result.response_key == "offer_complaint"
    assert result.next_state == ConversationState.IDLE


def test_negative(router):
    result = router.classify("nope")
    assert result.intent == Intent.NEGATIVE_GENERIC
    assert result.response_key == "reassure"
    assert result.complaint_mode is None


def test_negative_matches_inside_words(router):
    """Substring matching: "cannot" contains "no"."""
    assert router.classify("I cannot access payroll").intent == Intent.NEGATIVE_GENERIC


def test_fallback(router):
    result = router.classify("hello there")
    assert result.intent == Intent.GENERAL_FALLBACK
    assert result.matched_rule == "fallback"
    assert result.response_key == "general_help"


def test_fallback_in_complaint_mode_asks_for_submit(router):
    flags = SessionFlags(is_complaint_mode=True)
    result = router.classify("My March salary was paid short", ConversationState.COMPLAINT_MODE, flags)
    assert result.intent == Intent.GENERAL_FALLBACK
    assert result.response_key == "complaint_detail_received"
    assert result.next_state == ConversationState.COMPLAINT_MODE


@pytest.mark.parametrize("state", ALL_STATES)
def test_classification_is_idempotent(router, state):
    flags = SessionFlags(is_complaint_mode=True)
    for message in ["yes please continue", "hello", "status?", "test test test test"]:
        assert router.classify(message, state, flags) == router.classify(message, state, flags)
