import os
import tempfile
from types import SimpleNamespace

import pytest

# The app reads its configuration at import time
_tmp_dir = tempfile.mkdtemp(prefix="recruitment-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_tmp_dir, "test.db")
os.environ["UPLOAD_FOLDER"] = os.path.join(_tmp_dir, "uploads")
os.environ["OPENAI_API_KEY"] = ""
os.environ["MATCH_REQUEST_DELAY"] = "0"
os.environ["LOG_LEVEL"] = "INFO"

import ai_client  # noqa: E402
from app import app as flask_app  # noqa: E402
from database import db  # noqa: E402
from models import Organization, Job, Candidate, JobStatus, ProcessingStatus  # noqa: E402


RESUME_TEXT = """Jane Doe
jane.doe@example.com | +1 555 123 4567
Senior software engineer with 6 years of experience building Python and React applications.
Skills: Python, React, Docker, PostgreSQL, AWS
"""


class FakeOpenAI:
    """Stands in for openai.OpenAI; replies are returned in order, the last one repeats"""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


@pytest.fixture
def app():
    return flask_app


@pytest.fixture(autouse=True)
def database():
    with flask_app.app_context():
        db.drop_all()
        db.create_all()
        yield db
        db.session.remove()


@pytest.fixture
def client():
    return flask_app.test_client()


@pytest.fixture
def openai_stub(monkeypatch):
    """Install a fake chat client: ``openai_stub('{"score": 80}', ...)``"""
    def install(*replies):
        fake = FakeOpenAI(replies)
        monkeypatch.setattr(ai_client, "get_openai_client", lambda: fake)
        return fake
    return install


@pytest.fixture
def organization(database):
    org = Organization(name="TechCorp Inc.", slug="techcorp-inc")
    database.session.add(org)
    database.session.commit()
    return org


@pytest.fixture
def job(database, organization):
    job = Job(
        organization_id=organization.id,
        title="Backend Engineer",
        description="Build Python APIs with Flask",
        requirements={"skills": ["Python", "Flask"], "experience": "3+ years", "location": "Remote"},
        status=JobStatus.ACTIVE
    )
    database.session.add(job)
    database.session.commit()
    return job


@pytest.fixture
def make_candidate(database, job):
    def make(name="Jane Doe", status=ProcessingStatus.COMPLETED, **fields):
        fields.setdefault("organization_id", job.organization_id)
        fields.setdefault("job_id", job.id)
        fields.setdefault("ai_data", {"skills": ["Python"], "summary": "Backend developer", "experience": []})
        candidate = Candidate(name=name, processing_status=status, **fields)
        database.session.add(candidate)
        database.session.commit()
        return candidate
    return make


@pytest.fixture
def resume_text():
    return RESUME_TEXT
