"""Shared fixtures for the customer care chat tests."""

from datetime import timedelta

import pytest

from customer_care_chat.config import Settings
from customer_care_chat.domain.models import Complaint, utcnow
from customer_care_chat.repositories.memory import (
    InMemoryComplaintRepository,
    InMemoryConversationRepository,
)
from customer_care_chat.services.chat import ChatService
from customer_care_chat.services.router import IntentRouter

USER_ID = "665f1c2ab4e8a1d2c3b4e5f6"


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def settings():
    """Settings with defaults only."""
    return Settings(_env_file=None)


@pytest.fixture
def router():
    return IntentRouter()


@pytest.fixture
def make_complaint():
    """Build a complaint submitted by the test user some hours ago."""
    def factory(title="Salary not paid", status="pending", hours_ago=1.0, **kwargs):
        submitted_at = utcnow() - timedelta(hours=hours_ago)
        kwargs.setdefault("submitted_by", USER_ID)
        return Complaint(
            title=title,
            description=f"{title} in detail",
            status=status,
            submitted_at=submitted_at,
            last_updated=submitted_at,
            **kwargs
        )
    return factory


@pytest.fixture
def conversations():
    return InMemoryConversationRepository()


@pytest.fixture
def complaints():
    return InMemoryComplaintRepository()


@pytest.fixture
def chat_service(conversations, complaints, settings):
    return ChatService(conversations, complaints, settings=settings)
