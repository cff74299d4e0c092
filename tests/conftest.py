"""Pytest fixtures: an app wired to in-memory storage and fake providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.db.store import USERS, InMemoryDocumentStore
from app.services.assistant_service import AssistantService
from app.services.auth_service import AuthService
from app.services.container import Services
from app.services.data_service import DataService
from app.services.generative_service import GenerativeService
from app.services.history_service import HistoryService
from app.services.payments_service import PaymentsService
from app.services.transcription_service import TranscriptionService
from main import create_app
from tests.fakes import fake_verify_id_token, gemini_response, run


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def genai_client():
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=gemini_response(""))
    return client


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.beta.threads.create = AsyncMock(return_value=SimpleNamespace(id="thread_new"))
    client.beta.threads.messages.create = AsyncMock()
    client.beta.threads.messages.list = AsyncMock(
        return_value=SimpleNamespace(data=[], has_more=False)
    )
    client.beta.threads.runs.create = AsyncMock(
        return_value=SimpleNamespace(id="run_1", status="completed", last_error=None)
    )
    client.beta.threads.runs.retrieve = AsyncMock()
    client.beta.threads.runs.cancel = AsyncMock()
    client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text="hello world"))
    return client


@pytest.fixture
def services(store, genai_client, openai_client):
    auth = AuthService(store, verify_id_token=fake_verify_id_token)
    data = DataService(store)
    assistant = AssistantService(
        openai_client,
        "asst_test",
        poll_interval=0,
        max_poll_interval=0,
        run_timeout=5,
    )
    return Services(
        store=store,
        auth=auth,
        data=data,
        generative=GenerativeService(genai_client, "gemini-test", data),
        assistant=assistant,
        transcription=TranscriptionService(openai_client),
        payments=PaymentsService(
            store,
            auth,
            api_key="sk_test",
            webhook_secret="whsec_test",
            price_id="price_test",
            trial_period_days=7,
        ),
        history=HistoryService(store, assistant),
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def add_user(store):
    """Insert a user record directly into the store."""
    def _add_user(uid, role="user", **fields):
        record = {"uid": uid, "email": f"{uid}@example.com", "role": role, **fields}
        run(store.put(USERS, uid, record))
        return record
    return _add_user
