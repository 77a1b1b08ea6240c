#!/usr/bin/env python3
"""
Vocab Board - Flask JSON API
Word store, capture and review endpoints used by the browser extension and
the board page. AI enrichment uses the OpenAI API when a key is configured.
"""

import os
import sys
import queue
import traceback
from typing import Any, Optional

from flask import Flask, Response, jsonify, request, session, stream_with_context

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_vocab_board import db, capture, scheduler
from llm_vocab_board.ai import init_ai
from llm_vocab_board.capture import ChoiceRequired
from llm_vocab_board.enrichment import EnrichmentUnavailable, analyze_word
from llm_vocab_board.notifier import RefreshNotifier
from llm_vocab_board.structured import VocabularyEntry, fields_from_api
from llm_vocab_board.text import ValidationError

TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"
DEBUG = os.environ.get("DEBUG", "0") == "1"

# Heartbeat interval for the refresh event stream, in seconds
EVENT_KEEPALIVE = 15

ai_model: Any = None
notifier = RefreshNotifier()

app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

if not TEST_MODE:
    ai_model = init_ai()


@app.before_request
def initialize_app() -> None:
    """Initialize the database if needed."""
    if not hasattr(app, '_database_initialized'):
        try:
            if not db.is_db_initialized():
                db.init_db()
                print("✅ Database initialized on startup")
        except Exception as e:
            print(f"❌ Database startup check failed: {str(e)}")
        setattr(app, "_database_initialized", True)


def _error(message: str, status: int) -> Any:
    return jsonify({'status': 'error', 'error': message}), status


def _api_key() -> str:
    key = request.headers.get('X-API-Key') or ''
    if not key:
        auth = request.headers.get('Authorization') or ''
        if auth.startswith('Bearer '):
            key = auth[len('Bearer '):]
    return key.strip()


def _current_account() -> Optional[db.Account]:
    return db.get_account_by_api_key(_api_key())


def _toggles(account_id: int) -> scheduler.LocalToggles:
    return scheduler.LocalToggles(session.get(f'toggles:{account_id}', []))


def _save_toggles(account_id: int, toggles: scheduler.LocalToggles) -> None:
    session[f'toggles:{account_id}'] = toggles.to_list()


def _unexpected(context: str, e: Exception) -> Any:
    if DEBUG:
        print(f"Error {context}: {e}")
        traceback.print_exc()
    return _error(f'Internal server error: {str(e)}', 500)


@app.route('/api/accounts', methods=['POST'])
def api_create_account() -> Any:
    data = request.get_json(silent=True) or {}
    try:
        account = db.create_account(api_key=data.get('api_key'), name=data.get('name'))
    except db.DuplicateKey:
        return _error('API key already in use', 409)
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    return jsonify({
        'message': 'Account created',
        'account': {
            'id': account.id,
            'name': account.name,
            'api_key': account.api_key,
            'created_at': account.created_at.isoformat(),
        },
    }), 201


@app.route('/api/words', methods=['GET'])
def api_get_words() -> Any:
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        store = db.WordStore(account.id)

        word = request.args.get('word')
        entry_id = request.args.get('id')
        if word or entry_id:
            entry = store.find_by_word(word) if word else store.get(entry_id or '')
            if entry is None:
                return _error('Word not found', 404)
            return jsonify(entry.to_dict())

        entries = store.list_all()
        return jsonify({'words': [e.to_dict() for e in entries], 'count': len(entries)})
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('listing words', e)


@app.route('/api/words', methods=['POST'])
def api_create_word() -> Any:
    """Manual add. With ``"enrich": true`` the word is analyzed first."""
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        store = db.WordStore(account.id)
        data = request.get_json(silent=True) or {}
        word = (data.get('word') or '').strip()
        if not word:
            return _error('Missing "word" in request body', 400)

        def on_change() -> None:
            notifier.notify(account.id)

        if data.get('enrich'):
            result = capture.add_word(store, word, data.get('url', ''), data.get('title', ''),
                                      model=ai_model, on_change=on_change)
            if result.outcome is capture.CaptureOutcome.ALREADY_EXISTS:
                return _error('Word already exists. Use PUT to update.', 409)
            return jsonify(result.entry.to_dict() if result.entry else {}), 201

        fields = fields_from_api(data)
        fields.pop('word', None)
        entry = VocabularyEntry(id='', word=word, created_at=0, **fields)
        created = store.create(entry)
        on_change()
        return jsonify(created.to_dict()), 201
    except ValidationError as e:
        return _error(str(e), 400)
    except (TypeError, ValueError) as e:
        return _error(f'Invalid word fields: {e}', 400)
    except db.DuplicateKey:
        return _error('Word already exists. Use PUT to update.', 409)
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('creating word', e)


@app.route('/api/words', methods=['PUT'])
def api_update_word() -> Any:
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        data = request.get_json(silent=True) or {}
        entry_id = data.get('id')
        if not entry_id:
            return _error('Missing "id" in request body', 400)

        updated = db.WordStore(account.id).update(entry_id, fields_from_api(data))
        if updated is None:
            return _error('Word not found', 404)
        notifier.notify(account.id)
        return jsonify(updated.to_dict())
    except ValueError as e:
        return _error(str(e), 400)
    except db.DuplicateKey:
        return _error('Another entry already uses that word', 409)
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('updating word', e)


@app.route('/api/words', methods=['DELETE'])
def api_delete_word() -> Any:
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        data = request.get_json(silent=True) or {}
        entry_id = data.get('id')
        if not entry_id:
            return _error('Missing "id" in request body', 400)

        deleted = db.WordStore(account.id).delete(entry_id)
        if deleted is None:
            return _error('Word not found', 404)
        notifier.notify(account.id)
        return jsonify({'message': 'Word deleted successfully', 'word': deleted.to_dict()})
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('deleting word', e)


@app.route('/api/capture', methods=['POST'])
def api_capture() -> Any:
    """Capture a selection from the extension.

    When a sentence has no saved word the response lists candidate words;
    the client repeats the request with ``pick`` set, or ``cancel: true``.
    """
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        data = request.get_json(silent=True) or {}
        pick = data.get('pick')
        cancel = bool(data.get('cancel'))

        def chooser(candidates: list) -> Optional[str]:
            if cancel:
                return None
            if pick:
                return str(pick)
            raise ChoiceRequired(candidates)

        result = capture.resolve_selection(
            db.WordStore(account.id),
            data.get('text') or '',
            data.get('url') or '',
            data.get('title') or '',
            model=ai_model,
            chooser=chooser,
            on_change=lambda: notifier.notify(account.id),
        )
        return jsonify(result.to_dict())
    except ChoiceRequired as e:
        return jsonify({
            'status': 'choose',
            'message': 'Choose a word to save this sentence under',
            'candidates': e.candidates,
        })
    except ValidationError as e:
        return _error(str(e), 400)
    except db.StoreUnavailable as e:
        return _error(f'Save failed: {e}', 503)
    except Exception as e:
        return _unexpected('capturing selection', e)


@app.route('/api/review', methods=['GET'])
def api_review() -> Any:
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        views = scheduler.review_views(db.WordStore(account.id), toggles=_toggles(account.id))
        return jsonify(views.to_dict())
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('loading review lists', e)


@app.route('/api/review', methods=['POST'])
def api_toggle_review() -> Any:
    try:
        account = _current_account()
        if account is None:
            return _error('Missing or invalid API key', 401)
        data = request.get_json(silent=True) or {}
        entry_id = data.get('id')
        if not entry_id:
            return _error('Missing "id" in request body', 400)
        date = data.get('date')

        checked = data.get('checked', True)
        if not isinstance(checked, bool):
            return _error('"checked" must be true or false', 400)

        toggles = _toggles(account.id)
        updated = scheduler.set_reviewed(
            db.WordStore(account.id), entry_id,
            date=int(date) if date is not None else None,
            checked=checked,
            toggles=toggles,
        )
        if updated is None:
            return _error('Word not found', 404)
        _save_toggles(account.id, toggles)
        notifier.notify(account.id)
        return jsonify(updated.to_dict())
    except (TypeError, ValueError) as e:
        return _error(f'Invalid review request: {e}', 400)
    except db.StoreUnavailable as e:
        return _error(f'Store unavailable: {e}', 503)
    except Exception as e:
        return _unexpected('toggling review', e)


@app.route('/api/analyze', methods=['POST'])
def api_analyze() -> Any:
    data = request.get_json(silent=True) or {}
    word = (data.get('word') or '').strip()
    if not word:
        return _error("Missing 'word'", 400)
    try:
        return jsonify(analyze_word(word, ai_model).to_dict())
    except EnrichmentUnavailable as e:
        return _error(f'LLM error: {e}', 502)


@app.route('/api/events')
def api_events() -> Any:
    """Server-sent refresh events for an open board page. EventSource cannot
    send headers, so the key may also come from ``?api_key=``."""
    account = _current_account() or db.get_account_by_api_key(request.args.get('api_key', ''))
    if account is None:
        return _error('Missing or invalid API key', 401)
    account_id = account.id
    q = notifier.subscribe(account_id)

    def stream() -> Any:
        try:
            yield ": connected\n\n"
            while True:
                try:
                    event = q.get(timeout=EVENT_KEEPALIVE)
                except queue.Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {event}\n\n"
        finally:
            notifier.unsubscribe(account_id, q)

    return Response(stream_with_context(stream()), mimetype='text/event-stream',
                    headers={'Cache-Control': 'no-cache'})


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Vocab Board API')
    parser.add_argument('--host', default='127.0.0.1', help='Host IP to bind to (default: 127.0.0.1)')
    parser.add_argument('--port', type=int, default=3000, help='Port to bind to (default: 3000)')
    parser.add_argument('--openai-key', help='OpenAI API Key')
    parser.add_argument('--base-url', help='OpenAI-compatible API base URL')
    parser.add_argument('--model', help='Enrichment model name')
    parser.add_argument('--timeout', type=float, help='Enrichment timeout in seconds')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    # Re-initialize AI if arguments are provided
    if args.openai_key or args.base_url or args.model or args.timeout:
        ai_kwargs: dict = {'api_key': args.openai_key, 'base_url': args.base_url}
        if args.model:
            ai_kwargs['model_name'] = args.model
        if args.timeout:
            ai_kwargs['timeout'] = args.timeout
        ai_model = init_ai(**ai_kwargs)

    try:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
    except Exception as e:
        print(f"❌ Database initialization failed: {str(e)}")

    print(f"🚀 Starting server on http://{args.host}:{args.port}")
    app.run(debug=DEBUG, host=args.host, port=args.port, threaded=True)
