"""Shared test fixtures and configuration."""
import pytest
import os
from pathlib import Path
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("ACS_CONNECTION_STRING", "endpoint=https://test.communication.azure.com/;accesskey=dGVzdA==")
os.environ.setdefault("CALLBACK_URI", "https://voice.example.com")
os.environ.setdefault("AZURE_OPENAI_SERVICE_ENDPOINT", "https://test.openai.azure.com")
os.environ.setdefault("AZURE_OPENAI_SERVICE_KEY", "test-key")
os.environ.setdefault("AZURE_OPENAI_DEPLOYMENT_MODEL_NAME", "gpt-4o-realtime-preview")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("PINECONE_API_KEY", "test-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.main import app
from app.db.models import Base
from app.core.dependencies import get_call_registry, get_session_manager
from app.services.call_session.registry import CallRegistry
from app.services.knowledge.retriever import RetrievedPassage
from app.services.profiles.models import CallerProfile
from app.services.profiles.repository import CallerProfileRepository
from app.services.tools.gateway import ToolInvocationGateway
from tests.fakes import FakeRealtimeConnection, FakeRetriever


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TRANSLATOR_NUMBER = "+12515382263"
ASSISTANT_NUMBER = "+18777108468"


@pytest.fixture
def fake_connection():
    """Realtime connection fake."""
    return FakeRealtimeConnection()


@pytest.fixture
def fake_retriever():
    return FakeRetriever(
        passages=[
            RetrievedPassage(content="Opening hours are 9 to 5.", relevance_score=0.82),
            RetrievedPassage(content="Unrelated passage.", relevance_score=0.31),
            RetrievedPassage(content="Support line is open weekdays.", relevance_score=0.5),
        ]
    )


@pytest.fixture
def tool_gateway(fake_retriever):
    return ToolInvocationGateway(fake_retriever, collection_id="tenant-a", relevance_threshold=0.5)


@pytest.fixture
def profile_repository():
    """Caller profiles for the two configured numbers."""
    return CallerProfileRepository(
        [
            CallerProfile(
                phone_number=TRANSLATOR_NUMBER,
                system_prompt="You are a translator.",
            ),
            CallerProfile(
                phone_number=ASSISTANT_NUMBER,
                system_prompt="You are an assistant.",
                tools=[
                    {
                        "type": "function",
                        "name": "referToAICompanion",
                        "parameters": {
                            "type": "object",
                            "properties": {"user_query": {"type": "string"}},
                            "required": ["user_query"],
                        },
                    }
                ],
            ),
        ]
    )


@pytest.fixture
def profiles_file_path():
    """Return path to test caller profiles YAML file."""
    return Path(__file__).parent / "fixtures" / "test_caller_profiles.yaml"


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_session_factory(test_db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    """Create test database session."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def mock_session_manager():
    """Call session manager double for the HTTP layer."""
    manager = Mock()
    manager.handle_incoming_call = AsyncMock(return_value="token-123")
    manager.process_callback_event = AsyncMock()
    manager.forward_caller_audio = AsyncMock()
    manager.detach_media_socket = AsyncMock()
    manager.attach_media_socket = Mock(return_value=None)
    return manager


@pytest.fixture
def test_registry():
    return CallRegistry()


@pytest.fixture
def test_client(mock_session_manager, test_registry):
    """Create FastAPI test client with overrides."""
    app.dependency_overrides[get_session_manager] = lambda: mock_session_manager
    app.dependency_overrides[get_call_registry] = lambda: test_registry

    client = TestClient(app)

    yield client

    # Clear overrides
    app.dependency_overrides.clear()
