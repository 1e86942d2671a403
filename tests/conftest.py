import uuid
from collections import deque

import pytest
from fastapi.testclient import TestClient

from pediaquiz.config import Settings
from pediaquiz.context import AppContext
from pediaquiz.database.models import GenerationJob, Mcq
from pediaquiz.generation.gpt_client import AIBackendError, GptClient
from pediaquiz.main import create_app

ADMIN_EMAIL = "admin@pediaquiz.org"
ADMIN_PASSWORD = "admin-pass"
EVENT_TOKEN = "event-secret"

SAMPLE_TEXT = (
    "Kawasaki disease is a medium-vessel vasculitis of childhood. Diagnosis requires fever "
    "for at least five days plus four of five principal clinical features. Intravenous "
    "immunoglobulin given within ten days of fever onset reduces coronary artery aneurysms."
)


class FakeAI(GptClient):
    """Serves queued responses in order; an Exception in the queue is raised instead."""

    def __init__(self, *responses):
        super().__init__(api_key=None)
        self.responses = deque(responses)
        self.prompts = []

    def queue(self, *responses):
        self.responses.extend(responses)

    async def _next(self, prompt):
        self.prompts.append(prompt)
        if not self.responses:
            raise AIBackendError("no canned response queued")
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response

    async def generate_text(self, prompt, **kwargs):
        return await self._next(prompt)

    async def generate_json(self, prompt, **kwargs):
        return await self._next(prompt)


def mcq_payload(n, prefix="Q"):
    return {
        "mcqs": [
            {
                "question": f"{prefix}{i}: Which finding is diagnostic?",
                "options": ["Fever", "Rash", "Cough", "Limp"],
                "answer": "A",
                "explanation": f"Explanation {i}",
            }
            for i in range(1, n + 1)
        ]
    }


def flashcard_payload(n):
    return {"flashcards": [{"front": f"Term {i}", "back": f"Definition {i}"} for i in range(1, n + 1)]}


def make_job(db, status="processed", text=SAMPLE_TEXT, staged=None, path=None, owner_id=None):
    job = GenerationJob(
        owner_id=owner_id,
        file_name="notes.txt",
        original_file_path=path or f"uploads/1/{uuid.uuid4().hex}_notes.txt",
        content_type="text/plain",
        extracted_text=text,
        status=status,
        staged_content=staged,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def make_mcq(db, topic="Cardiology", chapter="Vasculitis", answer="B", explanation=None):
    mcq = Mcq(
        question="Which drug is first-line?",
        options=["Aspirin", "IVIG", "Steroids", "Infliximab"],
        answer=answer,
        explanation=explanation,
        topic=topic,
        chapter=chapter,
    )
    db.add(mcq)
    db.commit()
    db.refresh(mcq)
    return mcq


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        jwt_secret_key="test-secret",
        storage_root=str(tmp_path / "storage"),
        event_token=EVENT_TOKEN,
        stage_timeout_seconds=5.0,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def ctx(settings, fake_ai):
    context = AppContext.from_settings(settings, ai=fake_ai)
    context.create_tables()
    yield context
    context.close()


@pytest.fixture
def db(ctx):
    with ctx.session_factory() as session:
        yield session


@pytest.fixture
def client(ctx):
    app = create_app(context=ctx)
    with TestClient(app) as c:
        yield c


def login(client, email, password):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client):
    response = client.post(
        "/auth/register",
        json={"email": "learner@pediaquiz.org", "password": "learner-pass", "full_name": "Learner"},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
