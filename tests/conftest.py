"""
Pytest configuration and shared fixtures for Edovia AI tests.
"""
import pytest
import os
import sys
import json
from unittest.mock import Mock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


US_PARTNERS = [
    {"name": "Alpha School", "city": "Boston", "tuition_per_week": 200, "housing_per_week": 100, "fees": 300, "notes": "Accademico"},
    {"name": "Beta School", "city": "San Diego", "tuition_per_week": 150, "housing_per_week": 100, "fees": 200, "notes": "Spiaggia"},
    {"name": "Gamma School", "city": "New York", "tuition_per_week": 300, "housing_per_week": 200, "fees": 500, "notes": ""},
    {"name": "Delta School", "city": "Los Angeles", "tuition_per_week": 100, "housing_per_week": 50, "fees": 100, "notes": "Economica"},
]

CANADA_PARTNERS = [
    {"name": "Maple College", "city": "Toronto", "tuition_per_week": 200, "housing_per_week": 150, "fees": 400, "notes": "Pathway"},
]


@pytest.fixture(autouse=True)
def mock_environment():
    """Ensure environment variables are set for testing."""
    env_vars = {
        'OPENAI_API_KEY': 'test-openai-key',
        'OPENAI_MODEL': 'gpt-4.1-mini',
        'RATE_LIMIT_ENABLED': 'false',
        'LOG_LEVEL': 'WARNING',
        'SESSION_STORE': 'memory',
        'SLOT_EXTRACTION_STRATEGY': 'deterministic',
        'ENVIRONMENT': 'test',
    }
    with patch.dict(os.environ, env_vars):
        yield


@pytest.fixture
def partners_dir(tmp_path):
    """Directory with small, known partner files."""
    (tmp_path / "us.json").write_text(json.dumps(US_PARTNERS), encoding="utf-8")
    (tmp_path / "canada.json").write_text(json.dumps(CANADA_PARTNERS), encoding="utf-8")
    return tmp_path


@pytest.fixture
def repository(partners_dir):
    from app.services.reference_data import PartnerRepository
    return PartnerRepository(str(partners_dir))


@pytest.fixture
def engine(repository):
    from app.services.comparison_engine import ComparisonEngine
    return ComparisonEngine(repository, max_results=3)


@pytest.fixture
def store():
    from app.services.session_store import InMemorySessionStore
    return InMemorySessionStore(ttl_seconds=3600, max_entries=100)


@pytest.fixture
def responder():
    """Generic responder that answers without calling a model."""
    mock = Mock()
    mock.answer.return_value = "Sono Edovia AI, posso aiutarti a confrontare programmi."
    return mock


@pytest.fixture
def controller(store, engine, responder):
    """Controller with the deterministic extractor and in-memory store."""
    from app.services.dialogue_controller import DialogueController
    from app.services.slot_extraction import DeterministicSlotExtractor
    return DialogueController(
        store=store,
        extractor=DeterministicSlotExtractor(),
        engine=engine,
        responder=responder,
    )


@pytest.fixture
def mock_openai_client():
    """Return a mocked OpenAI client."""
    mock_client = Mock()
    mock_response = Mock()
    mock_response.choices = [Mock(message=Mock(content="{}"))]
    mock_client.chat.completions.create.return_value = mock_response
    return mock_client


@pytest.fixture
def mock_redis():
    """Return a mocked Redis client."""
    mock_client = Mock()
    mock_client.ping.return_value = True
    mock_client.get.return_value = None
    mock_client.setex.return_value = True
    mock_client.delete.return_value = 1
    return mock_client
