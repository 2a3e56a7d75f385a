# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# Nothing here talks to PostgreSQL, S3 or an LLM:
#   - FakeSession records adds/commits and returns canned query results
#   - FakeObjectStore keeps objects in a dict
#   - FakeLLM returns a canned reply (or raises / stalls)
#
# The `client` fixture wires all three into the FastAPI app through
# dependency_overrides. The app is used without its lifespan, so no tables
# are created and no connection pool is opened.
# =============================================================================

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from filing_qa.api.deps import get_access_policy, get_llm, get_store
from filing_qa.db.engine import get_async_session
from filing_qa.db.models import Document, DocumentStatus, Question
from filing_qa.errors import NotFoundError, UpstreamServiceError
from filing_qa.main import app
from filing_qa.services.auth import SharedKeyPolicy
from filing_qa.services.llm import LLMResponse

BUCKET = "test-bucket"

SAMPLE_FILING = (
    "ACME CORP ANNUAL REPORT\n\n"
    "Item 7. Management's Discussion and Analysis\n\n"
    "Total net sales were $391.0 billion for fiscal 2024, "
    "compared to $383.3 billion in fiscal 2023.\n\n"
    "Research and development expense was $31.4 billion."
)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class _Result:
    def __init__(self, value):
        self._value = value

    def scalar_one_or_none(self):
        return self._value

    def scalars(self):
        result = MagicMock()
        result.all.return_value = list(self._value or [])
        return result


class FakeSession:
    """Stand-in for AsyncSession that keeps rows in memory."""

    def __init__(self):
        self.rows: dict[tuple[type, uuid.UUID], object] = {}
        self.added: list = []
        self.deleted: list = []
        self.executed: list = []
        self.execute_returns = None
        self.commit_error: Exception | None = None
        self.commits = 0
        self.flushes = 0
        # Status of every added Document at each commit
        self.committed_statuses: list[DocumentStatus] = []

    def add(self, obj) -> None:
        if obj.id is None:
            obj.id = uuid.uuid4()
        now = datetime.now(UTC)
        if obj.created_at is None:
            obj.created_at = now
        if obj.updated_at is None:
            obj.updated_at = now
        if isinstance(obj, Question) and obj.citations is None:
            obj.citations = []
        self.added.append(obj)
        self.rows[(type(obj), obj.id)] = obj

    async def commit(self) -> None:
        if self.commit_error:
            raise self.commit_error
        self.commits += 1
        for obj in self.added:
            if isinstance(obj, Document):
                self.committed_statuses.append(obj.status)

    async def flush(self) -> None:
        self.flushes += 1

    async def rollback(self) -> None:
        pass

    async def get(self, cls, ident):
        return self.rows.get((cls, ident))

    async def delete(self, obj) -> None:
        self.deleted.append(obj)
        self.rows.pop((type(obj), obj.id), None)
        if isinstance(obj, Document):
            # ON DELETE CASCADE
            for key, row in list(self.rows.items()):
                if isinstance(row, Question) and row.document_id == obj.id:
                    del self.rows[key]

    async def execute(self, stmt):
        self.executed.append(stmt)
        return _Result(self.execute_returns)


class FakeObjectStore:
    """In-memory ObjectStore."""

    def __init__(self, bucket: str = BUCKET):
        self.bucket = bucket
        self.objects: dict[str, bytes] = {}
        self.put_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.deleted: list[str] = []

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.put_error:
            raise self.put_error
        self.objects[key] = data

    async def get(self, key: str) -> bytes:
        if key not in self.objects:
            raise NotFoundError(f"Stored file '{key}' does not exist.")
        return self.objects[key]

    async def delete(self, key: str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.deleted.append(key)
        self.objects.pop(key, None)

    def url_for(self, key: str) -> str:
        return f"https://{self.bucket}.s3.us-east-1.amazonaws.com/{key}"

    def key_from_url(self, url: str) -> str | None:
        for prefix in (f"s3://{self.bucket}/", self.url_for("")):
            if url.startswith(prefix):
                return url[len(prefix):] or None
        return None


class FakeLLM:
    """LLMProvider returning a fixed reply."""

    def __init__(self, content: str | None = None, error: Exception | None = None, delay: float = 0):
        self.content = content if content is not None else json.dumps({
            "answer": "Total net sales were $391.0 billion [1].",
            "citations": [{"quote": "Total net sales were $391.0 billion", "page": None}],
        })
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def complete(self, messages, system=None):
        self.calls.append({"messages": messages, "system": system})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return LLMResponse(
            content=self.content, model="fake-model", input_tokens=120, output_tokens=30,
        )


def make_document(
    status: DocumentStatus = DocumentStatus.READY,
    text: str | None = SAMPLE_FILING,
    created_at: datetime | None = None,
    **overrides,
) -> Document:
    doc_id = overrides.pop("id", uuid.uuid4())
    created = created_at or datetime(2024, 11, 1, tzinfo=UTC)
    fields = dict(
        id=doc_id,
        title="ACME 10-K",
        company_ticker="ACME",
        document_type="10-K",
        file_url=f"https://{BUCKET}.s3.us-east-1.amazonaws.com/documents/{doc_id}/acme.txt",
        file_name="acme.txt",
        file_size=len(SAMPLE_FILING),
        content_type="text/plain",
        storage_key=f"documents/{doc_id}/acme.txt",
        status=status,
        extracted_text=text if status is DocumentStatus.READY else None,
        content_preview=(text or "")[:200] if status is DocumentStatus.READY else None,
        page_count=1 if status is DocumentStatus.READY else None,
        created_at=created,
        updated_at=created + timedelta(seconds=5),
    )
    fields.update(overrides)
    return Document(**fields)


def make_question(document_id: uuid.UUID, **overrides) -> Question:
    created = overrides.pop("created_at", datetime(2024, 11, 2, tzinfo=UTC))
    fields = dict(
        id=uuid.uuid4(),
        document_id=document_id,
        question="What were total net sales?",
        answer="Total net sales were $391.0 billion [1].",
        citations=[{"quote": "Total net sales were $391.0 billion", "start": 70, "end": 105, "page": None, "note": None}],
        processing_time=1.25,
        model="fake-model",
        created_at=created,
        updated_at=created,
    )
    fields.update(overrides)
    return Question(**fields)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def policy() -> SharedKeyPolicy:
    return SharedKeyPolicy()


@pytest.fixture
def client(session, store, llm, policy):
    async def _session():
        yield session

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: llm
    app.dependency_overrides[get_access_policy] = lambda: policy
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def storage_down() -> UpstreamServiceError:
    return UpstreamServiceError("Object storage upload failed: boom", service="storage")
