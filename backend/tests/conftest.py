"""
Shared test fixtures for the DocSign backend test suite.

Each test gets its own SQLite database file, FastAPI dependencies pointed at
it, an in-memory replacement for object storage, and reportlab-generated PDFs
to upload.
"""

import os
import uuid
from io import BytesIO

import factory
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# ---- Environment overrides MUST come before any app imports ----
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests"
os.environ["ENVIRONMENT"] = "test"
os.environ["PUBLIC_SIGNING_BASE_URL"] = "http://signing.test/sign"

from docsign.auth.models import User  # noqa: E402
from docsign.auth.service import create_access_token, hash_password  # noqa: E402
from docsign.common import storage  # noqa: E402
from docsign.common.errors import CollaboratorFailure, NotFound  # noqa: E402
from docsign.database import Base, build_engine, get_db  # noqa: E402
from docsign.dependencies import get_embedder, get_viewers  # noqa: E402
from docsign.documents.viewer import ViewerRegistry  # noqa: E402
from docsign.main import app  # noqa: E402
from docsign.signatures.embedding import PdfSignatureEmbedder  # noqa: E402


# ---------------------------------------------------------------------------
# PDFs
# ---------------------------------------------------------------------------
def make_pdf(pages: int = 1, pagesize=letter) -> bytes:
    """Build a PDF with ``pages`` numbered pages."""
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=pagesize)
    for number in range(1, pages + 1):
        c.drawString(72, pagesize[1] - 72, f"Page {number}")
        c.showPage()
    c.save()
    return buf.getvalue()


# ---------------------------------------------------------------------------
# Database lifecycle
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """A fresh SQLite database file with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'docsign.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncSession:
    """Provide a DB session for direct service-layer tests."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Storage: an in-memory dict instead of MinIO
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def mock_storage(monkeypatch) -> dict[str, bytes]:
    store: dict[str, bytes] = {}

    async def fake_put_bytes(key: str, data: bytes, content_type: str = "application/octet-stream"):
        store[key] = bytes(data)

    async def fake_get_bytes(key: str) -> bytes:
        if key not in store:
            raise NotFound("Stored file not found")
        return store[key]

    async def fake_delete_object(key: str):
        store.pop(key, None)

    monkeypatch.setattr(storage, "put_bytes", fake_put_bytes)
    monkeypatch.setattr(storage, "get_bytes", fake_get_bytes)
    monkeypatch.setattr(storage, "delete_object", fake_delete_object)
    return store


# ---------------------------------------------------------------------------
# Embedders
# ---------------------------------------------------------------------------
class RecordingEmbedder(PdfSignatureEmbedder):
    """Real embedder that remembers every call it receives."""

    def __init__(self):
        self.calls: list[tuple[uuid.UUID, list]] = []

    async def embed(self, request_id, document, placements):
        self.calls.append((request_id, list(placements)))
        return await super().embed(request_id, document, placements)


class FailingEmbedder(PdfSignatureEmbedder):
    def __init__(self):
        self.calls = 0

    async def embed(self, request_id, document, placements):
        self.calls += 1
        raise CollaboratorFailure("Embedding backend is down")


@pytest.fixture
def embedder() -> RecordingEmbedder:
    return RecordingEmbedder()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()


# ---------------------------------------------------------------------------
# Dependency overrides + HTTP client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def override_dependencies(session_factory, embedder):
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_embedder] = lambda: embedder
    viewers = ViewerRegistry()
    app.dependency_overrides[get_viewers] = lambda: viewers
    yield
    viewers.close()
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(override_dependencies) -> AsyncClient:
    """Unauthenticated httpx async client wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
async def _create_test_user(session_factory, email: str, password: str = "SecurePass123!", full_name: str = "Test User") -> User:
    """Insert a user into the test database and return it."""
    user = User(
        id=uuid.uuid4(),
        email=email,
        password_hash=hash_password(password),
        full_name=full_name,
        is_active=True,
    )
    async with session_factory() as session:
        session.add(user)
        await session.commit()
        await session.refresh(user)
    return user


def _auth_header(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def owner_user(session_factory) -> User:
    return await _create_test_user(session_factory, "owner@example.com", full_name="Olivia Owner")


@pytest_asyncio.fixture
async def signer_user(session_factory) -> User:
    return await _create_test_user(session_factory, "signer@example.com", full_name="Sam Signer")


@pytest_asyncio.fixture
async def outsider_user(session_factory) -> User:
    return await _create_test_user(session_factory, "outsider@b.com", full_name="Oscar Outsider")


@pytest_asyncio.fixture
async def owner_client(override_dependencies, owner_user: User) -> AsyncClient:
    """AsyncClient pre-authenticated as the document owner."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(_auth_header(owner_user))
        yield ac


@pytest_asyncio.fixture
async def signer_client(override_dependencies, signer_user: User) -> AsyncClient:
    """AsyncClient pre-authenticated as the designated signer."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(_auth_header(signer_user))
        yield ac


@pytest_asyncio.fixture
async def outsider_client(override_dependencies, outsider_user: User) -> AsyncClient:
    """AsyncClient for a user who is party to nothing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(_auth_header(outsider_user))
        yield ac


# ---------------------------------------------------------------------------
# Factory Boy factories
# ---------------------------------------------------------------------------
class UserFactory(factory.Factory):
    class Meta:
        model = dict

    email = factory.LazyFunction(lambda: f"user-{uuid.uuid4().hex[:8]}@example.com")
    password = "SecurePass123!"
    full_name = factory.Faker("name")


class SignatureRequestFactory(factory.Factory):
    class Meta:
        model = dict

    document_id = None
    signer_email = "signer@example.com"
    page = 1


class PlacementFactory(factory.Factory):
    class Meta:
        model = dict

    x = factory.Faker("pyfloat", min_value=0, max_value=600)
    y = factory.Faker("pyfloat", min_value=0, max_value=900)


# ---------------------------------------------------------------------------
# Convenience fixtures: a document and a request already in the DB
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def sample_document(owner_client: AsyncClient) -> dict:
    """Upload a 5-page PDF as the owner."""
    files = {"file": ("contract.pdf", make_pdf(5), "application/pdf")}
    resp = await owner_client.post("/api/docs/upload", files=files)
    assert resp.status_code == 201
    return resp.json()


@pytest_asyncio.fixture
async def sample_request(owner_client: AsyncClient, sample_document: dict) -> dict:
    """Create a pending signature request for signer@example.com."""
    data = SignatureRequestFactory(document_id=sample_document["id"])
    resp = await owner_client.post("/api/signatures", json=data)
    assert resp.status_code == 201
    return resp.json()
