"""Pytest configuration and shared fixtures."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from aderm.core.config import Settings
from aderm.core.context import AppContext
from aderm.db.kv_store import InMemoryKVStore
from aderm.db.schemas import CreateRequestBody, OTPPurpose, UserProfile, UserRole
from aderm.main import create_app
from aderm.utils.helpers import generate_id


class FrozenClock:
    """Callable clock the services read instead of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        ALLOWED_EMAIL_DOMAINS="ecobank.com,corp.com,x.com",
        KV_BACKEND="memory",
        STORAGE_PROVIDER="dev",
        EMAIL_PROVIDER="dev",
        ARCHIVE_PROVIDER="dev",
        JWT_SECRET_KEY="test-secret",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def ctx(settings, clock) -> AppContext:
    """Fresh context over an in-memory store, with a frozen clock."""
    return AppContext.build(settings, kv=InMemoryKVStore(), clock=clock)


def make_user(ctx: AppContext, email: str, role: UserRole, name: str = "") -> UserProfile:
    user = UserProfile(
        id=generate_id("user"),
        email=email,
        name=name or email.split("@")[0].title(),
        role=role,
        created_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        email_verified=True,
    )
    return ctx.repos.users.save(user)


def request_body(**overrides) -> CreateRequestBody:
    fields = {
        "title": "Q3 Financials",
        "description": "Trial balance and bank reconciliations for Q3",
        "due_date": date(2026, 4, 30),
        "assigned_to_email": "jane@corp.com",
        "department": "Finance",
        "cc_emails": [],
    }
    fields.update(overrides)
    return CreateRequestBody(**fields)


def issued_code(ctx: AppContext, purpose: OTPPurpose, email: str) -> str:
    record = ctx.repos.otps.get(purpose, email)
    assert record is not None
    return record.code


@pytest.fixture
def auditor(ctx) -> UserProfile:
    return make_user(ctx, "alice.auditor@ecobank.com", UserRole.auditor, "Alice Auditor")


@pytest.fixture
def manager(ctx) -> UserProfile:
    return make_user(ctx, "mike.manager@ecobank.com", UserRole.manager, "Mike Manager")


@pytest.fixture
def auditee(ctx) -> UserProfile:
    return make_user(ctx, "bob@corp.com", UserRole.auditee, "Bob Auditee")


@pytest.fixture
def api_ctx(settings) -> AppContext:
    """Context for HTTP tests; real clock so JWT expiry checks line up."""
    return AppContext.build(settings, kv=InMemoryKVStore())


@pytest.fixture
def client(api_ctx):
    app = create_app(context=api_ctx)
    with TestClient(app) as test_client:
        yield test_client
