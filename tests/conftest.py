import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("RECALCULATION_INTERVAL_SECONDS", "0")
os.environ.setdefault("DEADLINE_POLICY_PATH", "missing-deadline-policy.yaml")

import pytest

from asksync.availability.domain import Identity
from asksync.config import HOUR_MS
from asksync.deadlines.application.services import StaticPolicyProvider
from asksync.deadlines.domain import DeadlinePolicy

from tests.helpers import MONDAY, ORG, FixedClock


@pytest.fixture
def policy_provider():
    return StaticPolicyProvider(DeadlinePolicy())


@pytest.fixture
def alice():
    return Identity(user_id="alice", org_id=ORG)


@pytest.fixture
def bob():
    return Identity(user_id="bob", org_id=ORG)


@pytest.fixture
def clock():
    """Monday 08:00 UTC."""
    return FixedClock(MONDAY + 8 * HOUR_MS)
