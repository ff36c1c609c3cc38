from __future__ import annotations
from sqlalchemy import (
    create_engine, event, ForeignKey, Integer, String, DateTime, Text, Boolean,
    UniqueConstraint, Index, func, or_,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column, relationship
import datetime
import json
import os
from typing import Optional, List, Any, Dict, Iterable, Sequence

from .structured import PART_OF_SPEECH, CARD_STATUSES, FuriganaSpan, sanitize_furigana, validate_furigana

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

SONG_SOURCES = ("local", "platform")
CONVERSATION_PURPOSES = ("lyrics_parse", "card_generate", "chat")
MESSAGE_ROLES = ("user", "assistant", "system")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class Base(DeclarativeBase):
    pass


DB_PATH: str = os.environ.get("LLM_SONGS_DB", "song_cards.db")
engine = create_engine(f"sqlite:///{DB_PATH}")
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    if dbapi_connection.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Song(Base):
    __tablename__ = "songs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    artist: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    cover_url: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="platform")
    source_ref: Mapped[Optional[str]] = mapped_column(String(255))  # platform id, never audio
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    creator: Mapped[Optional[str]] = mapped_column(String, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    lines: Mapped[List["Line"]] = relationship(
        back_populates="song", cascade="all, delete-orphan", order_by="Line.line_number"
    )

    def is_visible_to(self, user: Optional[str]) -> bool:
        return self.is_public or (user is not None and self.creator == user)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "duration": self.duration,
            "coverUrl": self.cover_url,
            "source": self.source,
            "sourceRef": self.source_ref,
            "isPublic": self.is_public,
            "creator": self.creator,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Line(Base):
    __tablename__ = "lines"
    __table_args__ = (Index("lines_song_line_idx", "song_id", "line_number"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    song_id: Mapped[int] = mapped_column(ForeignKey("songs.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    content_ja: Mapped[str] = mapped_column(Text, nullable=False)
    content_zh: Mapped[Optional[str]] = mapped_column(Text)
    furigana: Mapped[Optional[str]] = mapped_column(Text)  # JSON list of spans
    tokens: Mapped[Optional[str]] = mapped_column(Text)  # JSON list of tokens
    start_time: Mapped[Optional[int]] = mapped_column(Integer)  # ms
    end_time: Mapped[Optional[int]] = mapped_column(Integer)  # ms
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)

    song: Mapped[Song] = relationship(back_populates="lines")
    cards: Mapped[List["Card"]] = relationship(back_populates="line", cascade="all, delete-orphan")
    favorites: Mapped[List["Favorite"]] = relationship(cascade="all, delete-orphan")

    def furigana_spans(self) -> List[FuriganaSpan]:
        if not self.furigana:
            return []
        return [FuriganaSpan(**item) for item in json.loads(self.furigana)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "songId": self.song_id,
            "lineNumber": self.line_number,
            "contentJa": self.content_ja,
            "contentZh": self.content_zh,
            "furigana": json.loads(self.furigana) if self.furigana else [],
            "tokens": json.loads(self.tokens) if self.tokens else [],
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


class Card(Base):
    __tablename__ = "cards"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    line_id: Mapped[int] = mapped_column(ForeignKey("lines.id", ondelete="CASCADE"), nullable=False, index=True)
    word: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    reading: Mapped[Optional[str]] = mapped_column(String(100))
    meaning: Mapped[str] = mapped_column(Text, nullable=False, default="")
    part_of_speech: Mapped[str] = mapped_column(String(20), nullable=False, default="other")
    example_sentence: Mapped[Optional[str]] = mapped_column(Text)
    example_translation: Mapped[Optional[str]] = mapped_column(Text)
    word_start: Mapped[Optional[int]] = mapped_column(Integer)
    word_end: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)

    line: Mapped[Line] = relationship(back_populates="cards")
    progress: Mapped[List["CardProgress"]] = relationship(back_populates="card", cascade="all, delete-orphan")

    def to_dict(self) -> Dict[str, Any]:
        position = None
        if self.word_start is not None and self.word_end is not None:
            position = {"start": self.word_start, "end": self.word_end}
        return {
            "id": self.id,
            "lineId": self.line_id,
            "word": self.word,
            "reading": self.reading,
            "meaning": self.meaning,
            "partOfSpeech": self.part_of_speech,
            "exampleSentence": self.example_sentence,
            "exampleTranslation": self.example_translation,
            "wordPosition": position,
            "createdAt": _iso(self.created_at),
        }


class CardProgress(Base):
    __tablename__ = "card_progress"
    __table_args__ = (
        UniqueConstraint("user", "card_id", name="card_progress_user_card_idx"),
        Index("card_progress_status_idx", "user", "status"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    review_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    mastered_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    card: Mapped[Card] = relationship(back_populates="progress")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cardId": self.card_id,
            "user": self.user,
            "status": self.status,
            "reviewCount": self.review_count,
            "lastReviewedAt": _iso(self.last_reviewed_at),
            "masteredAt": _iso(self.mastered_at),
        }


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user", "line_id", name="favorites_user_line_idx"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False, index=True)
    line_id: Mapped[int] = mapped_column(ForeignKey("lines.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class Conversation(Base):
    __tablename__ = "conversations"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user: Mapped[str] = mapped_column(String, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    song_id: Mapped[Optional[int]] = mapped_column(ForeignKey("songs.id", ondelete="SET NULL"))
    purpose: Mapped[str] = mapped_column(String(20), nullable=False, default="chat")
    model: Mapped[Optional[str]] = mapped_column(String)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    total_tokens: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    messages: Mapped[List["ConversationMessage"]] = relationship(
        back_populates="conversation", cascade="all, delete-orphan", order_by="ConversationMessage.position"
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user": self.user,
            "title": self.title,
            "songId": self.song_id,
            "purpose": self.purpose,
            "model": self.model,
            "summary": self.summary,
            "totalTokens": self.total_tokens,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class ConversationMessage(Base):
    __tablename__ = "conversation_messages"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tokens: Mapped[Optional[int]] = mapped_column(Integer)
    model: Mapped[Optional[str]] = mapped_column(String)
    finish_reason: Mapped[Optional[str]] = mapped_column(String)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)

    conversation: Mapped[Conversation] = relationship(back_populates="messages")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "role": self.role,
            "content": self.content,
            "tokens": self.tokens,
            "model": self.model,
            "finishReason": self.finish_reason,
            "createdAt": _iso(self.created_at),
        }


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()

    required_tables = {"songs", "lines", "cards", "card_progress", "conversations"}
    return required_tables.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


__all__ = [
    "get_session", "init_db", "is_db_initialized",
    "Song", "Line", "Card", "CardProgress", "Favorite", "Conversation", "ConversationMessage",
    "create_song", "get_song", "get_songs", "update_song", "delete_song",
    "create_lines", "get_lines_by_song_id", "get_line", "update_line",
    "create_card", "get_card", "get_cards", "update_card", "delete_card", "get_cards_by_song",
    "get_or_create_progress", "update_card_status", "get_card_stats",
    "get_progress_map",
    "toggle_favorite_line", "get_favorite_line_ids",
    "create_conversation", "start_conversation", "add_message", "get_conversation_with_messages",
    "get_conversations", "update_conversation", "delete_conversation", "generate_summary",
]


# ----------------------------------------------------------------------
# Songs
# ----------------------------------------------------------------------
def create_song(
    title: str,
    artist: Optional[str] = None,
    duration: Optional[int] = None,
    cover_url: Optional[str] = None,
    source: str = "platform",
    source_ref: Optional[str] = None,
    is_public: bool = True,
    creator: Optional[str] = None,
) -> Song:
    """Create a song. Only metadata and a platform reference are stored."""
    if not title or not title.strip():
        raise ValueError("Song title is required")
    if source not in SONG_SOURCES:
        raise ValueError(f"Unknown song source: {source}")

    session: Session = get_session()
    song = Song(
        title=title.strip(),
        artist=artist,
        duration=duration,
        cover_url=cover_url,
        source=source,
        source_ref=source_ref,
        is_public=is_public,
        creator=creator,
    )
    session.add(song)
    session.commit()
    session.close()
    return song


def get_song(song_id: int) -> Optional[Song]:
    session: Session = get_session()
    song = session.get(Song, song_id)
    session.close()
    return song


def _visible_songs(user: Optional[str]) -> Any:
    if user is None:
        return Song.is_public.is_(True)
    return or_(Song.is_public.is_(True), Song.creator == user)


def get_songs(
    user: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[List[Song], int]:
    """List songs visible to ``user`` (public ones plus their own), newest first."""
    session: Session = get_session()
    query = session.query(Song).filter(_visible_songs(user))
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Song.title.ilike(pattern), Song.artist.ilike(pattern)))

    total = query.count()
    songs = query.order_by(Song.created_at.desc(), Song.id.desc()).offset(offset).limit(limit).all()
    session.close()
    return songs, total


def update_song(song_id: int, **fields: Any) -> Optional[Song]:
    allowed = {"title", "artist", "duration", "cover_url", "source", "source_ref", "is_public"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update song fields: {', '.join(sorted(unknown))}")
    if "source" in fields and fields["source"] not in SONG_SOURCES:
        raise ValueError(f"Unknown song source: {fields['source']}")

    session: Session = get_session()
    song = session.get(Song, song_id)
    if song:
        for key, value in fields.items():
            setattr(song, key, value)
        session.commit()
    session.close()
    return song


def delete_song(song_id: int) -> bool:
    """Delete a song together with its lines, cards and their progress."""
    session: Session = get_session()
    song = session.get(Song, song_id)
    if song is None:
        session.close()
        return False
    session.delete(song)
    session.commit()
    session.close()
    return True


# ----------------------------------------------------------------------
# Lines
# ----------------------------------------------------------------------
def _check_time_range(start_time: Optional[int], end_time: Optional[int]) -> None:
    if start_time is not None and end_time is not None and start_time > end_time:
        raise ValueError(f"Line start_time {start_time} is after end_time {end_time}")


def _encode_furigana(content_ja: str, furigana: Any) -> Optional[str]:
    if furigana is None:
        return None
    if isinstance(furigana, str):
        furigana = json.loads(furigana) if furigana else []
    spans = [item if isinstance(item, FuriganaSpan) else FuriganaSpan(**item) for item in furigana]
    validate_furigana(content_ja, spans)
    return json.dumps([span.to_dict() for span in spans], ensure_ascii=False)


def _encode_tokens(tokens: Any) -> Optional[str]:
    if tokens is None or isinstance(tokens, str):
        return tokens
    return json.dumps(tokens, ensure_ascii=False)


def create_lines(song_id: int, lines: Iterable[Dict[str, Any]]) -> List[Line]:
    """Insert lines for a song.

    Each item needs ``line_number`` and ``content_ja``; ``content_zh``,
    ``furigana``, ``tokens``, ``start_time`` and ``end_time`` are optional.
    """
    session: Session = get_session()
    created: List[Line] = []
    try:
        for item in lines:
            _check_time_range(item.get("start_time"), item.get("end_time"))
            line = Line(
                song_id=song_id,
                line_number=item["line_number"],
                content_ja=item["content_ja"],
                content_zh=item.get("content_zh"),
                furigana=_encode_furigana(item["content_ja"], item.get("furigana")),
                tokens=_encode_tokens(item.get("tokens")),
                start_time=item.get("start_time"),
                end_time=item.get("end_time"),
            )
            session.add(line)
            created.append(line)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    return created


def get_lines_by_song_id(song_id: int) -> List[Line]:
    session: Session = get_session()
    lines = session.query(Line).filter_by(song_id=song_id).order_by(Line.line_number).all()
    session.close()
    return lines


def get_line(line_id: int) -> Optional[Line]:
    session: Session = get_session()
    line = session.get(Line, line_id)
    session.close()
    return line


def update_line(line_id: int, **fields: Any) -> Optional[Line]:
    """Update annotation or timing of a line, re-checking its invariants."""
    session: Session = get_session()
    line = session.get(Line, line_id)
    if line is None:
        session.close()
        return None

    try:
        if "content_ja" in fields:
            line.content_ja = fields["content_ja"]
            if "furigana" not in fields and line.furigana:
                # old spans are relocated onto the new text or dropped
                spans = sanitize_furigana(line.content_ja, line.furigana)
                line.furigana = json.dumps([span.to_dict() for span in spans], ensure_ascii=False)
            length = len(line.content_ja)
            for card in session.query(Card).filter_by(line_id=line.id):
                if card.word_start is not None and not (
                    card.word_end is not None and 0 <= card.word_start < card.word_end <= length
                ):
                    card.word_start = card.word_end = None
        if "content_zh" in fields:
            line.content_zh = fields["content_zh"]
        if "furigana" in fields:
            line.furigana = _encode_furigana(line.content_ja, fields["furigana"])
        if "tokens" in fields:
            line.tokens = _encode_tokens(fields["tokens"])
        if "start_time" in fields:
            line.start_time = fields["start_time"]
        if "end_time" in fields:
            line.end_time = fields["end_time"]
        _check_time_range(line.start_time, line.end_time)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    return line


# ----------------------------------------------------------------------
# Cards
# ----------------------------------------------------------------------
def create_card(
    line_id: int,
    word: str,
    meaning: str,
    reading: Optional[str] = None,
    part_of_speech: str = "other",
    example_sentence: Optional[str] = None,
    example_translation: Optional[str] = None,
    word_position: Optional[Dict[str, int]] = None,
) -> Card:
    """Create a card on a line. The example defaults to the line itself."""
    if part_of_speech not in PART_OF_SPEECH:
        raise ValueError(f"Unknown part of speech: {part_of_speech}")

    session: Session = get_session()
    line = session.get(Line, line_id)
    if line is None:
        session.close()
        raise ValueError(f"Line {line_id} does not exist")

    word_start = word_end = None
    if word_position:
        word_start, word_end = int(word_position["start"]), int(word_position["end"])
        if not 0 <= word_start < word_end <= len(line.content_ja):
            if DEBUG_MODE:
                print(f"⚠️ Dropping out-of-range word position {word_position} for '{word}'")
            word_start = word_end = None

    card = Card(
        line_id=line_id,
        word=word,
        reading=reading,
        meaning=meaning or "",
        part_of_speech=part_of_speech,
        example_sentence=example_sentence if example_sentence is not None else line.content_ja,
        example_translation=example_translation if example_translation is not None else line.content_zh,
        word_start=word_start,
        word_end=word_end,
    )
    session.add(card)
    session.commit()
    session.close()
    return card


def get_card(card_id: int) -> Optional[Card]:
    session: Session = get_session()
    card = session.get(Card, card_id)
    session.close()
    return card


def get_cards(
    user: Optional[str] = None,
    status: Optional[str] = None,
    song_id: Optional[int] = None,
    line_id: Optional[int] = None,
    limit: int = 10,
    offset: int = 0,
) -> tuple[List[Card], int]:
    """Query cards, newest first. With ``user``, only cards of songs that user
    can see are returned. ``status`` only applies together with ``user``;
    cards without a progress row count as ``new``."""
    session: Session = get_session()
    query = session.query(Card).join(Line, Card.line_id == Line.id)
    if user is not None:
        query = query.join(Song, Line.song_id == Song.id).filter(_visible_songs(user))
    if line_id is not None:
        query = query.filter(Card.line_id == line_id)
    if song_id is not None:
        query = query.filter(Line.song_id == song_id)
    if status and user:
        query = query.outerjoin(
            CardProgress, (CardProgress.card_id == Card.id) & (CardProgress.user == user)
        )
        if status == "new":
            query = query.filter(or_(CardProgress.status == "new", CardProgress.id.is_(None)))
        else:
            query = query.filter(CardProgress.status == status)

    total = query.count()
    cards = query.order_by(Card.created_at.desc(), Card.id.desc()).offset(offset).limit(limit).all()
    session.close()
    return cards, total


def get_cards_by_song(song_id: int) -> List[Card]:
    """All cards of a song in lyric order."""
    session: Session = get_session()
    cards = (
        session.query(Card)
        .join(Line, Card.line_id == Line.id)
        .filter(Line.song_id == song_id)
        .order_by(Line.line_number, Card.id)
        .all()
    )
    session.close()
    return cards


def update_card(card_id: int, **fields: Any) -> Optional[Card]:
    allowed = {"word", "reading", "meaning", "part_of_speech", "example_sentence", "example_translation"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update card fields: {', '.join(sorted(unknown))}")
    if "part_of_speech" in fields and fields["part_of_speech"] not in PART_OF_SPEECH:
        raise ValueError(f"Unknown part of speech: {fields['part_of_speech']}")

    session: Session = get_session()
    card = session.get(Card, card_id)
    if card:
        for key, value in fields.items():
            setattr(card, key, value)
        session.commit()
    session.close()
    return card


def delete_card(card_id: int) -> bool:
    session: Session = get_session()
    card = session.get(Card, card_id)
    if card is None:
        session.close()
        return False
    session.delete(card)
    session.commit()
    session.close()
    return True


# ----------------------------------------------------------------------
# Learning progress
# ----------------------------------------------------------------------
def _get_or_create_progress(session: Session, user: str, card_id: int) -> CardProgress:
    progress = session.query(CardProgress).filter_by(user=user, card_id=card_id).first()
    if progress is None:
        if session.get(Card, card_id) is None:
            raise ValueError(f"Card {card_id} does not exist")
        progress = CardProgress(user=user, card_id=card_id, status="new", review_count=0)
        session.add(progress)
        session.flush()
    return progress


def get_or_create_progress(user: str, card_id: int) -> CardProgress:
    session: Session = get_session()
    try:
        progress = _get_or_create_progress(session, user, card_id)
        session.commit()
    finally:
        session.close()
    return progress


def update_card_status(user: str, card_id: int, status: str) -> CardProgress:
    """Record a review: set the status, bump the counter, stamp the time.

    Every status may follow every other one; there is no scheduling.
    """
    if status not in CARD_STATUSES:
        raise ValueError(f"Unknown card status: {status}")

    session: Session = get_session()
    try:
        progress = _get_or_create_progress(session, user, card_id)
        now = _utcnow()
        progress.status = status
        progress.review_count = progress.review_count + 1
        progress.last_reviewed_at = now
        progress.updated_at = now
        if status == "mastered":
            progress.mastered_at = now
        session.commit()
    finally:
        session.close()
    return progress


def get_progress_map(user: str, card_ids: Sequence[int]) -> Dict[int, CardProgress]:
    if not card_ids:
        return {}
    session: Session = get_session()
    rows = (
        session.query(CardProgress)
        .filter(CardProgress.user == user, CardProgress.card_id.in_(list(card_ids)))
        .all()
    )
    session.close()
    return {row.card_id: row for row in rows}


def get_card_stats(user: str) -> Dict[str, int]:
    session: Session = get_session()
    rows = (
        session.query(CardProgress.status, func.count(CardProgress.id))
        .filter(CardProgress.user == user)
        .group_by(CardProgress.status)
        .all()
    )
    session.close()

    stats = {"total": 0, "new": 0, "learning": 0, "mastered": 0}
    for status, count in rows:
        stats[status] = count
        stats["total"] += count
    return stats


# ----------------------------------------------------------------------
# Favorites
# ----------------------------------------------------------------------
def toggle_favorite_line(user: str, line_id: int) -> bool:
    """Flip the favorite flag of a line. Returns the new state."""
    session: Session = get_session()
    existing = session.query(Favorite).filter_by(user=user, line_id=line_id).first()
    if existing:
        session.delete(existing)
        session.commit()
        session.close()
        return False

    if session.get(Line, line_id) is None:
        session.close()
        raise ValueError(f"Line {line_id} does not exist")
    session.add(Favorite(user=user, line_id=line_id))
    session.commit()
    session.close()
    return True


def get_favorite_line_ids(user: str) -> set[int]:
    session: Session = get_session()
    rows = session.query(Favorite.line_id).filter_by(user=user).all()
    session.close()
    return {row[0] for row in rows}


# ----------------------------------------------------------------------
# Conversations
# ----------------------------------------------------------------------
def create_conversation(
    user: str,
    title: str,
    song_id: Optional[int] = None,
    purpose: str = "chat",
    model: Optional[str] = None,
) -> Conversation:
    if purpose not in CONVERSATION_PURPOSES:
        raise ValueError(f"Unknown conversation purpose: {purpose}")
    session: Session = get_session()
    conversation = Conversation(user=user, title=title, song_id=song_id, purpose=purpose, model=model)
    session.add(conversation)
    session.commit()
    session.close()
    return conversation


def add_message(
    conversation_id: int,
    role: str,
    content: str,
    tokens: Optional[int] = None,
    model: Optional[str] = None,
    finish_reason: Optional[str] = None,
) -> ConversationMessage:
    """Append a message; token usage is added to the conversation total."""
    if role not in MESSAGE_ROLES:
        raise ValueError(f"Unknown message role: {role}")

    session: Session = get_session()
    conversation = session.get(Conversation, conversation_id)
    if conversation is None:
        session.close()
        raise ValueError(f"Conversation {conversation_id} does not exist")

    position = (
        session.query(func.count(ConversationMessage.id))
        .filter(ConversationMessage.conversation_id == conversation_id)
        .scalar()
    )
    message = ConversationMessage(
        conversation_id=conversation_id,
        position=position,
        role=role,
        content=content,
        tokens=tokens,
        model=model,
        finish_reason=finish_reason,
    )
    session.add(message)
    conversation.total_tokens = (conversation.total_tokens or 0) + (tokens or 0)
    conversation.updated_at = _utcnow()
    session.commit()
    session.close()
    return message


def start_conversation(
    user: str,
    title: str,
    system_prompt: Optional[str] = None,
    song_id: Optional[int] = None,
    purpose: str = "chat",
    model: Optional[str] = None,
) -> Conversation:
    """Create a conversation, seeded with a system message when given."""
    conversation = create_conversation(user, title, song_id=song_id, purpose=purpose, model=model)
    if system_prompt:
        add_message(conversation.id, "system", system_prompt)
    return conversation


def get_conversation_with_messages(conversation_id: int) -> Optional[tuple[Conversation, List[ConversationMessage]]]:
    session: Session = get_session()
    conversation = session.get(Conversation, conversation_id)
    if conversation is None:
        session.close()
        return None
    messages = list(conversation.messages)
    session.close()
    return conversation, messages


def get_conversations(
    user: str,
    search: Optional[str] = None,
    purpose: Optional[str] = None,
    song_id: Optional[int] = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[List[Conversation], int]:
    session: Session = get_session()
    query = session.query(Conversation).filter(Conversation.user == user)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Conversation.title.ilike(pattern), Conversation.summary.ilike(pattern)))
    if purpose:
        query = query.filter(Conversation.purpose == purpose)
    if song_id is not None:
        query = query.filter(Conversation.song_id == song_id)

    total = query.count()
    conversations = (
        query.order_by(Conversation.updated_at.desc(), Conversation.id.desc()).offset(offset).limit(limit).all()
    )
    session.close()
    return conversations, total


def update_conversation(conversation_id: int, **fields: Any) -> Optional[Conversation]:
    allowed = {"title", "summary", "total_tokens"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Cannot update conversation fields: {', '.join(sorted(unknown))}")
    session: Session = get_session()
    conversation = session.get(Conversation, conversation_id)
    if conversation:
        for key, value in fields.items():
            setattr(conversation, key, value)
        session.commit()
    session.close()
    return conversation


def delete_conversation(conversation_id: int) -> bool:
    session: Session = get_session()
    conversation = session.get(Conversation, conversation_id)
    if conversation is None:
        session.close()
        return False
    session.delete(conversation)
    session.commit()
    session.close()
    return True


def generate_summary(conversation_id: int) -> str:
    """Use the first user message (up to 100 characters) as the summary."""
    result = get_conversation_with_messages(conversation_id)
    if result is None:
        return ""
    _, messages = result
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return ""
    summary = first_user.content[:100]
    update_conversation(conversation_id, summary=summary)
    return summary
