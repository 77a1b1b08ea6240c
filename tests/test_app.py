"""
Tests for the Flask JSON API: authentication, word CRUD, the two-step
capture flow, review toggles and the analyze endpoint.
"""

import os
import pytest
from typing import Any, Dict

from conftest import FailingAIModel, MockAIModel
from llm_vocab_board import db
from llm_vocab_board.scheduler import DAY_MS
from llm_vocab_board.structured import VocabularyEntry, now_ms

HEADERS = {"X-API-Key": "test-key"}


@pytest.fixture
def flask_app(account: db.Account, monkeypatch: pytest.MonkeyPatch) -> Any:
    os.environ["TEST_MODE"] = "1"
    # Import app after setting TEST_MODE
    import app as flask_app
    flask_app.app.config["TESTING"] = True
    flask_app.app.config["SECRET_KEY"] = "test-secret"
    monkeypatch.setattr(flask_app, "ai_model", None)
    return flask_app


@pytest.fixture
def client(flask_app: Any) -> Any:
    """Create a Flask test client."""
    with flask_app.app.test_client() as c:
        yield c


def post(client: Any, url: str, body: Dict[str, Any], headers: Dict[str, str] = HEADERS) -> Any:
    return client.post(url, json=body, headers=headers)


def test_requests_without_key_are_rejected(client: Any) -> None:
    assert client.get("/api/words").status_code == 401
    assert client.get("/api/words", headers={"X-API-Key": "wrong"}).status_code == 401
    assert post(client, "/api/capture", {"text": "cat"}, headers={}).status_code == 401
    assert client.get("/api/review").status_code == 401


def test_bearer_token_is_accepted(client: Any) -> None:
    resp = client.get("/api/words", headers={"Authorization": "Bearer test-key"})
    assert resp.status_code == 200
    assert resp.get_json() == {"words": [], "count": 0}


def test_create_account(client: Any) -> None:
    resp = post(client, "/api/accounts", {"name": "new reader"}, headers={})
    assert resp.status_code == 201
    key = resp.get_json()["account"]["api_key"]
    assert client.get("/api/words", headers={"X-API-Key": key}).status_code == 200
    assert post(client, "/api/accounts", {"api_key": "test-key"}, headers={}).status_code == 409


def test_word_crud(client: Any) -> None:
    resp = post(client, "/api/words", {"word": "Cat", "sentences": ["A cat."], "rootMeaning": "cat"})
    assert resp.status_code == 201
    created = resp.get_json()
    assert created["word"] == "cat"
    assert created["rootMeaning"] == "cat"

    assert post(client, "/api/words", {"word": "cat"}).status_code == 409

    resp = client.get("/api/words?word=CAT", headers=HEADERS)
    assert resp.get_json()["id"] == created["id"]
    assert client.get("/api/words?word=dog", headers=HEADERS).status_code == 404

    resp = client.put("/api/words", json={"id": created["id"], "notes": {"A cat.": "cute"}}, headers=HEADERS)
    assert resp.status_code == 200
    assert resp.get_json()["notes"] == {"A cat.": "cute"}
    assert resp.get_json()["sentences"] == ["A cat."]

    assert client.put("/api/words", json={"id": "missing", "title": "x"}, headers=HEADERS).status_code == 404

    resp = client.get("/api/words", headers=HEADERS)
    assert resp.get_json()["count"] == 1

    resp = client.delete("/api/words", json={"id": created["id"]}, headers=HEADERS)
    assert resp.status_code == 200
    assert client.delete("/api/words", json={"id": created["id"]}, headers=HEADERS).status_code == 404


def test_create_word_requires_word(client: Any) -> None:
    assert post(client, "/api/words", {"word": "  "}).status_code == 400


def test_manual_add_with_enrichment(client: Any, flask_app: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(flask_app, "ai_model", MockAIModel())
    resp = post(client, "/api/words", {"word": "cat", "enrich": True})
    assert resp.status_code == 201
    assert resp.get_json()["phonetic"] == "/kæt/"
    assert post(client, "/api/words", {"word": "a whole sentence.", "enrich": True}).status_code == 400


def test_capture_word_then_sentence(client: Any) -> None:
    resp = post(client, "/api/capture", {"text": "cat", "url": "https://example.com", "title": "Pets"})
    body = resp.get_json()
    assert body["status"] == "created"
    assert body["kind"] == "word"
    assert body["word"]["url"] == "https://example.com"

    assert post(client, "/api/capture", {"text": "Cat"}).get_json()["status"] == "already_exists"

    body = post(client, "/api/capture", {"text": "The cat sat on the mat."}).get_json()
    assert body["status"] == "sentence_attached"
    assert body["word"]["sentences"] == ["The cat sat on the mat."]

    body = post(client, "/api/capture", {"text": "The cat sat on the mat."}).get_json()
    assert body["status"] == "sentence_duplicate"


def test_capture_asks_for_a_word(client: Any) -> None:
    body = post(client, "/api/capture", {"text": "The dog sat on the mat."}).get_json()
    assert body["status"] == "choose"
    assert body["candidates"] == ["the", "dog", "sat", "on", "mat"]
    assert client.get("/api/words", headers=HEADERS).get_json()["count"] == 0

    body = post(client, "/api/capture", {"text": "The dog sat on the mat.", "cancel": True}).get_json()
    assert body["status"] == "cancelled"

    body = post(client, "/api/capture", {"text": "The dog sat on the mat.", "pick": "dog"}).get_json()
    assert body["status"] == "created_with_sentence"
    assert body["word"]["word"] == "dog"
    assert body["word"]["sentences"] == ["The dog sat on the mat."]


def test_capture_rejects_bad_input(client: Any) -> None:
    assert post(client, "/api/capture", {"text": "   "}).status_code == 400
    resp = post(client, "/api/capture", {"text": "The dog sat on the mat.", "pick": "zebra"})
    assert resp.status_code == 400


def test_capture_survives_enrichment_failure(client: Any, flask_app: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(flask_app, "ai_model", FailingAIModel())
    body = post(client, "/api/capture", {"text": "cat"}).get_json()
    assert body["status"] == "created"
    assert body["word"]["meanings"] == []


def test_capture_store_failure_is_503(client: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(self: Any, word: str) -> None:
        raise db.StoreUnavailable("database is locked")

    monkeypatch.setattr(db.WordStore, "find_by_word", broken)
    resp = post(client, "/api/capture", {"text": "cat"})
    assert resp.status_code == 503
    assert resp.get_json()["status"] == "error"


def test_capture_notifies_open_views(client: Any, flask_app: Any, account: db.Account) -> None:
    q = flask_app.notifier.subscribe(account.id)
    try:
        post(client, "/api/capture", {"text": "cat"})
        assert q.get_nowait() == "refresh-words"
        post(client, "/api/capture", {"text": "cat"})
        assert q.empty()
    finally:
        flask_app.notifier.unsubscribe(account.id, q)


def test_review_toggle(client: Any, store: db.WordStore) -> None:
    now = now_ms()
    saved = store.create(VocabularyEntry(id="", word="cat", created_at=now - DAY_MS))

    views = client.get("/api/review", headers=HEADERS).get_json()
    assert [w["id"] for w in views["today"]] == [saved.id]

    resp = post(client, "/api/review", {"id": saved.id, "date": now, "checked": True})
    assert resp.status_code == 200
    assert len(resp.get_json()["reviewTimes"]) == 1

    views = client.get("/api/review", headers=HEADERS).get_json()
    assert views["today"] == []
    assert [w["id"] for w in views["checked"]] == [saved.id]

    resp = post(client, "/api/review", {"id": saved.id, "date": now, "checked": False})
    assert resp.get_json()["reviewTimes"] == []
    views = client.get("/api/review", headers=HEADERS).get_json()
    assert [w["id"] for w in views["today"]] == [saved.id]
    assert views["checked"] == []


def test_review_toggle_errors(client: Any) -> None:
    assert post(client, "/api/review", {}).status_code == 400
    assert post(client, "/api/review", {"id": "missing"}).status_code == 404
    assert post(client, "/api/review", {"id": "x", "date": "soon"}).status_code == 400


def test_analyze(client: Any, flask_app: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    assert post(client, "/api/analyze", {}).status_code == 400
    assert post(client, "/api/analyze", {"word": "cat"}).status_code == 502

    monkeypatch.setattr(flask_app, "ai_model", MockAIModel())
    body = post(client, "/api/analyze", {"word": "cat"}).get_json()
    assert body["phonetic"] == "/kæt/"
    assert body["relatedWords"] == ["catty", "kitten"]


def test_events_require_key(client: Any) -> None:
    assert client.get("/api/events").status_code == 401


def test_review_toggle_requires_boolean(client: Any, store: db.WordStore) -> None:
    saved = store.create(VocabularyEntry(id="", word="cat", created_at=now_ms() - DAY_MS))
    for value in ("false", "0", 0, None):
        resp = post(client, "/api/review", {"id": saved.id, "checked": value})
        assert resp.status_code == 400
    assert store.get(saved.id).review_times == []


def test_review_store_failure_is_503(client: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(api_key: str) -> None:
        raise db.StoreUnavailable("database is locked")

    monkeypatch.setattr(db, "get_account_by_api_key", broken)
    resp = client.get("/api/review", headers=HEADERS)
    assert resp.status_code == 503
    assert resp.get_json()["status"] == "error"


def test_word_sentences_must_be_a_list(client: Any) -> None:
    created = post(client, "/api/words", {"word": "cat"}).get_json()
    resp = client.put("/api/words", json={"id": created["id"], "sentences": "A cat sat."}, headers=HEADERS)
    assert resp.status_code == 400
    resp = client.put("/api/words", json={"id": created["id"], "sentences": ["A cat.", 3]}, headers=HEADERS)
    assert resp.status_code == 400
    assert post(client, "/api/words", {"word": "dog", "sentences": "A dog."}).status_code == 400
