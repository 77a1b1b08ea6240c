import os

os.environ["TEST_MODE"] = "1"

import json
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from typing import Any, Generator

from llm_vocab_board import db


@pytest.fixture(scope="function")
def temp_db(tmp_path) -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    path = str(tmp_path / "test_vocab.db")
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield
    db.engine.dispose()


@pytest.fixture
def account(temp_db: Any) -> db.Account:
    return db.create_account(api_key="test-key", name="tester")


@pytest.fixture
def store(account: db.Account) -> db.WordStore:
    return db.WordStore(account.id)


ENRICHMENT_JSON = {
    "word": "cat",
    "phonetic": "/kæt/",
    "meanings": [
        {
            "partOfSpeech": "noun",
            "definitions": ["a small domesticated carnivorous mammal"],
            "translation": "猫",
            "examples": [{"sentence": "The cat purred.", "translation": "猫发出呼噜声。"}],
        }
    ],
    "root": "cattus",
    "rootMeaning": "cat (Late Latin)",
    "wordFamily": ["catty", "kitten"],
    "explanation": "From Late Latin cattus.",
}


class MockAIModel:
    """Mock AI model for consistent testing without actual API calls."""

    def __init__(self, reply: str = json.dumps(ENRICHMENT_JSON)) -> None:
        self.reply = reply
        self.prompts: list = []

    def prompt(self, prompt_text: str, system: str = "") -> Any:
        self.prompts.append(prompt_text)
        reply = self.reply

        class MockResponse:
            def text(self) -> str:
                return reply
        return MockResponse()


class FailingAIModel:
    def prompt(self, prompt_text: str, system: str = "") -> Any:
        raise TimeoutError("Request timed out.")


@pytest.fixture
def mock_model() -> MockAIModel:
    """Provide a mock AI model for testing."""
    return MockAIModel()
