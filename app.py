#!/usr/bin/env python3
"""
Song Cards - Flask JSON API
Import Japanese song lyrics, annotate them with readings and translations,
and turn lyric lines into vocabulary cards to study.
Uses an OpenAI-compatible API, or a mock when no API key is configured.
"""

import os
import sys
import traceback
import argparse
from typing import List, Optional, Dict, Any, Tuple

from flask import Flask, request, session, jsonify
from werkzeug.exceptions import HTTPException

# Check for test mode
TEST_MODE = os.environ.get("TEST_MODE", "0") == "1"

# Add the current directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from llm_song_cards import db, lrc
from llm_song_cards.ai import load_config
from llm_song_cards.exceptions import AIConfigurationError, SongCardsError
from llm_song_cards.importer import ImportOptions, MAX_CARDS_PER_LINE, MIN_CARDS_PER_LINE, import_song
from llm_song_cards.cards import MAX_CARDS, MIN_CARDS
from llm_song_cards.services import ConversationRecorder, LyricsAI, create_lyrics_ai
from llm_song_cards.structured import CARD_STATUSES, normalize_part_of_speech
from llm_song_cards.study import DatabaseProgressStore, LearningStateTracker, StudySession

# Check for debug mode
DEBUG = os.environ.get("DEBUG", "0") == "1"

MAX_PARSE_LINES = 100
MAX_PAGE_SIZE = 100
MAX_STUDY_CARDS = 500

# Global AI capability, real or mock
lyrics_ai: Optional[LyricsAI] = None


def init_ai(api_key: Optional[str] = None,
            base_url: Optional[str] = None,
            model_name: Optional[str] = None) -> None:
    """Initialize the lyrics/cards AI from the environment plus overrides."""
    global lyrics_ai

    if TEST_MODE:
        return

    config = load_config()
    if api_key:
        config.api_key = api_key
    if base_url:
        config.base_url = base_url
    if model_name:
        config.card_generation.model = model_name
        config.lyrics_parser.model = model_name

    try:
        lyrics_ai = create_lyrics_ai(config)
    except Exception as e:
        print(f"❌ Failed to initialize AI: {e}")


app = Flask(__name__)
app.secret_key = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['MAX_CONTENT_LENGTH'] = 2 * 1024 * 1024  # lyrics only, no audio

# Try to initialize with environment variables by default
if not TEST_MODE:
    init_ai()


class RequestError(Exception):
    """Invalid request payload or parameters."""

    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


@app.errorhandler(RequestError)
def handle_request_error(e: RequestError) -> Any:
    return jsonify({'error': str(e)}), e.status


@app.errorhandler(AIConfigurationError)
def handle_ai_configuration_error(e: AIConfigurationError) -> Any:
    print(f"❌ AI configuration error: {e}")
    return jsonify({'error': 'AI service is misconfigured, please contact the administrator'}), 503


@app.errorhandler(SongCardsError)
def handle_song_cards_error(e: SongCardsError) -> Any:
    print(f"❌ {request.method} {request.path} failed: {e}")
    return jsonify({'error': str(e)}), 500


@app.errorhandler(Exception)
def handle_unexpected_error(e: Exception) -> Any:
    if isinstance(e, HTTPException):
        return jsonify({'error': e.description}), e.code
    print(f"❌ {request.method} {request.path} failed: {e}")
    if DEBUG:
        traceback.print_exc()
    return jsonify({'error': str(e) or 'Internal server error'}), 500


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


@app.before_request
def ensure_username() -> None:
    """Ensure username is set in session."""
    if 'username' not in session:
        session['username'] = 'default_user'


# ----------------------------------------------------------------------
# Request helpers
# ----------------------------------------------------------------------
def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequestError('Request body must be a JSON object')
    return data


def _int_value(value: Any, name: str, low: Optional[int] = None, high: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise RequestError(f'{name} must be an integer')
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise RequestError(f'{name} must be an integer')
    if high is None and low is not None and number < low:
        raise RequestError(f'{name} must be at least {low}')
    if (low is not None and number < low) or (high is not None and number > high):
        raise RequestError(f'{name} must be between {low} and {high}')
    return number


def _optional_int(value: Any, name: str, low: Optional[int] = None, high: Optional[int] = None) -> Optional[int]:
    if value is None:
        return None
    return _int_value(value, name, low, high)


def _bool_value(value: Any, name: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise RequestError(f'{name} must be a boolean')
    return value


def _string_value(value: Any, name: str, max_length: Optional[int] = None, required: bool = False) -> Optional[str]:
    if value is None:
        if required:
            raise RequestError(f'{name} is required')
        return None
    if not isinstance(value, str) or (required and not value.strip()):
        raise RequestError(f'{name} must be a non-empty string')
    if max_length is not None and len(value) > max_length:
        raise RequestError(f'{name} must be at most {max_length} characters')
    return value


def _lyric_lines(value: Any, max_lines: Optional[int] = None) -> List[str]:
    if not isinstance(value, list) or not value:
        raise RequestError('lyrics must be a non-empty list of strings')
    if not all(isinstance(line, str) and line.strip() for line in value):
        raise RequestError('lyrics must be a non-empty list of strings')
    if max_lines is not None and len(value) > max_lines:
        raise RequestError(f'At most {max_lines} lyric lines can be parsed at once')
    return value


def _page_args(default_limit: int = 20) -> Tuple[int, int]:
    limit = _int_value(request.args.get('limit', default_limit), 'limit', 1, MAX_PAGE_SIZE)
    offset = _int_value(request.args.get('offset', 0), 'offset', 0)
    return limit, offset


def _require_ai() -> LyricsAI:
    if lyrics_ai is None:
        raise AIConfigurationError("AI service is not configured")
    return lyrics_ai


def _mock_mode() -> bool:
    return bool(lyrics_ai is not None and lyrics_ai.mock_mode)


def _not_found(what: str) -> Any:
    return jsonify({'error': f'{what} not found'}), 404


def _accessible_song(song_id: int, owner_only: bool = False) -> db.Song:
    """Load a song the session user may see; ``owner_only`` also requires its creator."""
    song = db.get_song(song_id)
    if not song:
        raise RequestError('Song not found', status=404)
    user = session['username']
    if not song.is_visible_to(user):
        raise RequestError('You do not have access to this song', status=403)
    if owner_only and song.creator != user:
        raise RequestError('Only the creator of this song can change it', status=403)
    return song


def _server_error(action: str, e: Exception) -> Any:
    print(f"❌ {action} failed: {e}")
    if DEBUG:
        traceback.print_exc()
    return jsonify({'error': f'{action} failed, please try again later'}), 500


# ----------------------------------------------------------------------
# Songs
# ----------------------------------------------------------------------
@app.route('/api/songs/import', methods=['POST'])
def api_import_song() -> Any:
    """Create a song from lyrics, annotate it and optionally generate cards."""
    data = _json_body()
    title = _string_value(data.get('title'), 'title', max_length=200, required=True)
    artist = _string_value(data.get('artist'), 'artist', max_length=100)
    duration = _optional_int(data.get('duration'), 'duration', 0)
    source = data.get('source', 'platform')
    if source not in db.SONG_SOURCES:
        raise RequestError(f"source must be one of: {', '.join(db.SONG_SOURCES)}")

    timestamps: Optional[List[Dict[str, Optional[int]]]] = None
    if data.get('lrc') is not None:
        lrc_text = _string_value(data.get('lrc'), 'lrc', required=True)
        entries = lrc.parse_lrc(lrc_text or '', duration_ms=duration * 1000 if duration else None)
        if not entries:
            raise RequestError('lrc contains no timed lyric lines')
        lyrics = [entry.text for entry in entries]
        timestamps = [{'start_time': e.start_time, 'end_time': e.end_time} for e in entries]
    else:
        lyrics = _lyric_lines(data.get('lyrics'))
        raw_stamps = data.get('timestamps')
        if raw_stamps is not None:
            if not isinstance(raw_stamps, list) or not all(isinstance(s, dict) for s in raw_stamps):
                raise RequestError('timestamps must be a list of {startTime, endTime}')
            timestamps = [
                {
                    'start_time': _int_value(s.get('startTime'), 'startTime', 0),
                    'end_time': _int_value(s.get('endTime'), 'endTime', 0),
                }
                for s in raw_stamps
            ]
            for stamp in timestamps:
                if stamp['start_time'] > stamp['end_time']:
                    raise RequestError('startTime must not be after endTime')

    raw_options = data.get('options') or {}
    if not isinstance(raw_options, dict):
        raise RequestError('options must be an object')
    options = ImportOptions(
        parse_with_ai=_bool_value(raw_options.get('parseWithAI'), 'parseWithAI', True),
        generate_cards=_bool_value(raw_options.get('generateCards'), 'generateCards', False),
        cards_per_line=_int_value(
            raw_options.get('cardsPerLine', 1), 'cardsPerLine', MIN_CARDS_PER_LINE, MAX_CARDS_PER_LINE
        ),
        record_conversations=_bool_value(raw_options.get('recordConversations'), 'recordConversations', False),
    )
    if (options.parse_with_ai or options.generate_cards) and lyrics_ai is None:
        raise AIConfigurationError("AI service is not configured")

    song_fields = {
        'duration': duration,
        'cover_url': _string_value(data.get('coverUrl'), 'coverUrl'),
        'source': source,
        'source_ref': _string_value(data.get('sourceRef'), 'sourceRef', max_length=255),
        'is_public': _bool_value(data.get('isPublic'), 'isPublic', True),
    }

    try:
        result = import_song(
            lyrics_ai,
            title or '',
            lyrics,
            artist=artist,
            timestamps=timestamps,
            options=options,
            user=session['username'],
            **song_fields,
        )
    except ValueError as e:
        raise RequestError(str(e))
    except Exception as e:
        return _server_error('Song import', e)

    return jsonify({
        'data': result.to_dict(),
        'meta': {
            'linesCount': len(result.lines),
            'cardsCount': result.cards_count,
            'mockMode': _mock_mode(),
            'parseWithAI': options.parse_with_ai,
            'generateCards': options.generate_cards,
        },
    })


@app.route('/api/songs/parse-lyrics', methods=['POST'])
def api_parse_lyrics() -> Any:
    """Annotate a batch of lines, or a single line given as ``contentJa``."""
    data = _json_body()
    ai = _require_ai()

    if isinstance(data.get('lyrics'), list):
        lyrics = _lyric_lines(data['lyrics'], max_lines=MAX_PARSE_LINES)
        parsed = ai.parse_lyrics(lyrics)
        return jsonify({
            'data': [line.to_dict() for line in parsed],
            'meta': {'total': len(parsed), 'mockMode': _mock_mode(), 'userId': session['username']},
        })

    content_ja = _string_value(data.get('contentJa'), 'contentJa', required=True) or ''
    result = ai.parse_single_line(content_ja)
    return jsonify({
        'data': {
            'contentJa': content_ja,
            'contentZh': result.content_zh,
            'furigana': [span.to_dict() for span in result.furigana],
            'tokens': [token.to_dict() for token in result.tokens],
        },
        'meta': {'mockMode': _mock_mode(), 'userId': session['username']},
    })


@app.route('/api/songs')
def api_list_songs() -> Any:
    limit, offset = _page_args()
    songs, total = db.get_songs(session['username'], search=request.args.get('search'), limit=limit, offset=offset)
    return jsonify({
        'data': [song.to_dict() for song in songs],
        'meta': {'total': total, 'limit': limit, 'offset': offset},
    })


@app.route('/api/songs/<int:song_id>')
def api_get_song(song_id: int) -> Any:
    song = _accessible_song(song_id)
    favorites = db.get_favorite_line_ids(session['username'])
    lines = []
    for line in db.get_lines_by_song_id(song_id):
        item = line.to_dict()
        item['isFavorite'] = line.id in favorites
        lines.append(item)
    return jsonify({'data': {**song.to_dict(), 'lines': lines}})


@app.route('/api/songs/<int:song_id>', methods=['PATCH'])
def api_update_song(song_id: int) -> Any:
    _accessible_song(song_id, owner_only=True)
    data = _json_body()
    fields: Dict[str, Any] = {}
    if 'title' in data:
        fields['title'] = _string_value(data['title'], 'title', max_length=200, required=True)
    if 'artist' in data:
        fields['artist'] = _string_value(data['artist'], 'artist', max_length=100)
    if 'duration' in data:
        fields['duration'] = _optional_int(data['duration'], 'duration', 0)
    if 'coverUrl' in data:
        fields['cover_url'] = _string_value(data['coverUrl'], 'coverUrl')
    if 'sourceRef' in data:
        fields['source_ref'] = _string_value(data['sourceRef'], 'sourceRef', max_length=255)
    if 'isPublic' in data:
        fields['is_public'] = _bool_value(data['isPublic'], 'isPublic', True)
    try:
        song = db.update_song(song_id, **fields)
    except ValueError as e:
        raise RequestError(str(e))
    if not song:
        return _not_found('Song')
    return jsonify({'data': song.to_dict()})


@app.route('/api/songs/<int:song_id>', methods=['DELETE'])
def api_delete_song(song_id: int) -> Any:
    _accessible_song(song_id, owner_only=True)
    if not db.delete_song(song_id):
        return _not_found('Song')
    return jsonify({'data': {'id': song_id, 'deleted': True}})


@app.route('/api/songs/<int:song_id>/lines')
def api_song_lines(song_id: int) -> Any:
    _accessible_song(song_id)
    lines = db.get_lines_by_song_id(song_id)
    return jsonify({'data': [line.to_dict() for line in lines], 'meta': {'total': len(lines)}})


@app.route('/api/songs/<int:song_id>/cards')
def api_song_cards(song_id: int) -> Any:
    _accessible_song(song_id)
    cards = db.get_cards_by_song(song_id)
    progress = db.get_progress_map(session['username'], [card.id for card in cards])
    data = []
    for card in cards:
        item = card.to_dict()
        item['status'] = progress[card.id].status if card.id in progress else 'new'
        data.append(item)
    return jsonify({'data': data, 'meta': {'total': len(data)}})


@app.route('/api/lines/<int:line_id>/favorite', methods=['POST'])
def api_toggle_favorite(line_id: int) -> Any:
    if not db.get_line(line_id):
        return _not_found('Line')
    favorite = db.toggle_favorite_line(session['username'], line_id)
    return jsonify({'data': {'lineId': line_id, 'isFavorite': favorite}})


# ----------------------------------------------------------------------
# Cards
# ----------------------------------------------------------------------
@app.route('/api/cards/generate', methods=['POST'])
def api_generate_cards() -> Any:
    """Generate cards for one line and save them in the order the model gave."""
    data = _json_body()
    line_id = _int_value(data.get('lineId'), 'lineId', 1)
    count = _int_value(data.get('count', 1), 'count', MIN_CARDS, MAX_CARDS)
    record = _bool_value(data.get('recordConversation'), 'recordConversation', False)

    line = db.get_line(line_id)
    if not line:
        return _not_found('Line')

    ai = _require_ai()
    recorder = None
    if record:
        recorder = ConversationRecorder(
            session['username'], f"Cards: line {line.line_number}", 'card_generate', song_id=line.song_id
        )
    generated = ai.generate_cards(line.content_ja, line.content_zh, count=count, on_exchange=recorder)
    to_create = generated[:count]
    saved = [
        db.create_card(
            line.id,
            word=card.word,
            reading=card.reading,
            meaning=card.meaning,
            part_of_speech=normalize_part_of_speech(card.part_of_speech),
            example_sentence=line.content_ja,
            example_translation=line.content_zh,
            word_position=card.word_position,
        )
        for card in to_create
    ]
    return jsonify({
        'data': [card.to_dict() for card in saved],
        'meta': {
            'generated': len(to_create),
            'saved': len(saved),
            'mockMode': _mock_mode(),
            'userId': session['username'],
        },
    })


@app.route('/api/cards')
def api_list_cards() -> Any:
    limit, offset = _page_args(default_limit=10)
    status = request.args.get('status')
    if status and status not in CARD_STATUSES:
        raise RequestError(f"status must be one of: {', '.join(CARD_STATUSES)}")
    cards, total = db.get_cards(
        user=session['username'],
        status=status,
        song_id=request.args.get('songId', type=int),
        line_id=request.args.get('lineId', type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        'data': [card.to_dict() for card in cards],
        'meta': {'total': total, 'limit': limit, 'offset': offset},
    })


@app.route('/api/cards/stats')
def api_card_stats() -> Any:
    return jsonify({'data': db.get_card_stats(session['username'])})


@app.route('/api/cards/<int:card_id>')
def api_get_card(card_id: int) -> Any:
    card = db.get_card(card_id)
    if not card:
        return _not_found('Card')
    progress = db.get_progress_map(session['username'], [card_id]).get(card_id)
    return jsonify({'data': {**card.to_dict(), 'progress': progress.to_dict() if progress else None}})


@app.route('/api/cards/<int:card_id>', methods=['DELETE'])
def api_delete_card(card_id: int) -> Any:
    if not db.delete_card(card_id):
        return _not_found('Card')
    return jsonify({'data': {'id': card_id, 'deleted': True}})


@app.route('/api/cards/<int:card_id>/progress', methods=['GET'])
def api_get_progress(card_id: int) -> Any:
    if not db.get_card(card_id):
        return _not_found('Card')
    progress = db.get_or_create_progress(session['username'], card_id)
    return jsonify({'data': progress.to_dict()})


@app.route('/api/cards/<int:card_id>/progress', methods=['POST', 'PATCH'])
def api_update_progress(card_id: int) -> Any:
    data = _json_body()
    status = data.get('status')
    if status not in CARD_STATUSES:
        raise RequestError(f"status must be one of: {', '.join(CARD_STATUSES)}")
    if not db.get_card(card_id):
        return _not_found('Card')
    progress = db.update_card_status(session['username'], card_id, status)
    return jsonify({'data': progress.to_dict()})


# ----------------------------------------------------------------------
# Study sessions
# ----------------------------------------------------------------------
def _tracker() -> LearningStateTracker:
    return LearningStateTracker(session['username'], DatabaseProgressStore())


def _current_study() -> StudySession:
    state = session.get('study')
    if not state:
        raise RequestError('No study session in progress', status=404)
    return StudySession.from_dict(_tracker(), state)


@app.route('/api/study/session', methods=['POST'])
def api_start_study() -> Any:
    """Start a study session: cards not yet mastered first, optionally capped."""
    data = request.get_json(silent=True) or {}
    song_id = _optional_int(data.get('songId'), 'songId', 1)
    limit = _optional_int(data.get('limit'), 'limit', 1, MAX_PAGE_SIZE)

    if song_id is not None:
        _accessible_song(song_id)
        cards = db.get_cards_by_song(song_id)
    else:
        cards, _ = db.get_cards(user=session['username'], limit=MAX_STUDY_CARDS)

    study = StudySession(_tracker(), [card.id for card in cards], limit=limit)
    session['study'] = study.to_dict()
    by_id = {card.id: card for card in cards}
    return jsonify({
        'data': {
            'cards': [by_id[card_id].to_dict() for card_id in study.card_ids],
            'current': study.current(),
        },
        'meta': {'total': len(study.card_ids)},
    })


@app.route('/api/study/mark', methods=['POST'])
def api_study_mark() -> Any:
    data = _json_body()
    card_id = _int_value(data.get('cardId'), 'cardId', 1)
    status = data.get('status')
    if status not in CARD_STATUSES:
        raise RequestError(f"status must be one of: {', '.join(CARD_STATUSES)}")

    study = _current_study()
    try:
        state = study.mark(card_id, status)
    except ValueError as e:
        raise RequestError(str(e))
    session['study'] = study.to_dict()
    return jsonify({
        'data': {'card': state.to_dict(), 'current': study.current(), 'complete': study.is_complete},
    })


@app.route('/api/study/summary')
def api_study_summary() -> Any:
    study = _current_study()
    return jsonify({'data': study.summary()})


# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------
@app.route('/api/conversations')
def api_list_conversations() -> Any:
    limit, offset = _page_args()
    conversations, total = db.get_conversations(
        session['username'],
        search=request.args.get('search'),
        purpose=request.args.get('purpose'),
        song_id=request.args.get('songId', type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        'data': [conversation.to_dict() for conversation in conversations],
        'meta': {'total': total, 'limit': limit, 'offset': offset},
    })


@app.route('/api/conversations', methods=['POST'])
def api_create_conversation() -> Any:
    data = _json_body()
    title = _string_value(data.get('title'), 'title', max_length=200, required=True) or ''
    purpose = data.get('purpose', 'chat')
    if purpose not in db.CONVERSATION_PURPOSES:
        raise RequestError(f"purpose must be one of: {', '.join(db.CONVERSATION_PURPOSES)}")
    song_id = _optional_int(data.get('songId'), 'songId', 1)
    if song_id is not None and not db.get_song(song_id):
        return _not_found('Song')
    conversation = db.start_conversation(
        session['username'],
        title,
        system_prompt=_string_value(data.get('systemPrompt'), 'systemPrompt'),
        song_id=song_id,
        purpose=purpose,
        model=_string_value(data.get('model'), 'model'),
    )
    return jsonify({'data': conversation.to_dict()}), 201


def _owned_conversation(conversation_id: int) -> Optional[Tuple[db.Conversation, List[db.ConversationMessage]]]:
    result = db.get_conversation_with_messages(conversation_id)
    if result is None or result[0].user != session['username']:
        return None
    return result


@app.route('/api/conversations/<int:conversation_id>')
def api_get_conversation(conversation_id: int) -> Any:
    result = _owned_conversation(conversation_id)
    if result is None:
        return _not_found('Conversation')
    conversation, messages = result
    return jsonify({'data': {**conversation.to_dict(), 'messages': [m.to_dict() for m in messages]}})


@app.route('/api/conversations/<int:conversation_id>', methods=['DELETE'])
def api_delete_conversation(conversation_id: int) -> Any:
    if _owned_conversation(conversation_id) is None:
        return _not_found('Conversation')
    db.delete_conversation(conversation_id)
    return jsonify({'data': {'id': conversation_id, 'deleted': True}})


@app.route('/api/conversations/<int:conversation_id>/messages', methods=['POST'])
def api_add_message(conversation_id: int) -> Any:
    data = _json_body()
    role = data.get('role', 'user')
    if role not in db.MESSAGE_ROLES:
        raise RequestError(f"role must be one of: {', '.join(db.MESSAGE_ROLES)}")
    content = _string_value(data.get('content'), 'content', required=True) or ''
    result = _owned_conversation(conversation_id)
    if result is None:
        return _not_found('Conversation')
    conversation, messages = result

    message = db.add_message(
        conversation_id,
        role,
        content,
        tokens=_optional_int(data.get('tokens'), 'tokens', 0),
        model=_string_value(data.get('model'), 'model'),
    )
    if role == 'user' and not conversation.summary:
        db.generate_summary(conversation_id)
    return jsonify({'data': message.to_dict()}), 201


# ----------------------------------------------------------------------
# AI status
# ----------------------------------------------------------------------
@app.route('/api/ai_status')
def api_ai_status() -> Any:
    if lyrics_ai is None:
        return jsonify({'data': {'configured': False, 'mockMode': False}})
    return jsonify({'data': {'configured': True, **lyrics_ai.status()}})


def get_local_ip():
    """Attempt to determine the local network IP address."""
    import socket
    try:
        # Connect to an external server (doesn't actually send data)
        # to determine the interface used for internet access
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        local_ip = s.getsockname()[0]
        s.close()
        return local_ip
    except Exception:
        return "127.0.0.1"


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Song Cards API')
    parser.add_argument('--host', help='Host IP to bind to (default: auto-detect local IP)')
    parser.add_argument('--port', type=int, default=5000, help='Port to bind to (default: 5000)')
    parser.add_argument('--openai-key', help='OpenAI API Key')
    parser.add_argument('--base-url', help='OpenAI-compatible API base URL')
    parser.add_argument('--model', help='Model name for both lyric parsing and card generation')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')

    args = parser.parse_args()

    if args.debug:
        DEBUG = True

    # Re-initialize AI if arguments are provided
    if args.openai_key or args.base_url or args.model:
        init_ai(api_key=args.openai_key, base_url=args.base_url, model_name=args.model)

    # Initialize database
    try:
        if not db.is_db_initialized():
            db.init_db()
            print("✅ Database initialized")
    except Exception as e:
        print(f"❌ Database initialization failed: {str(e)}")

    host = args.host or get_local_ip()
    print(f"🚀 Starting server on http://{host}:{args.port}")
    app.run(debug=DEBUG, host=host, port=args.port)
