from __future__ import annotations
from sqlalchemy import create_engine, BigInteger, Integer, String, DateTime, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session, Mapped, mapped_column
from contextlib import contextmanager
import datetime
import os
import secrets
from typing import Optional, List, Any, Dict, Iterator

from .structured import VocabularyEntry, now_ms
from .text import normalize, normalize_word, same_text

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

MAX_SENTENCES = 20


class Base(DeclarativeBase):
    pass


DB_PATH: str = os.environ.get("LLM_VOCAB_DB", "vocab_board.db")
DB_URL: str = os.environ.get("DATABASE_URL") or f"sqlite:///{DB_PATH}"
engine = create_engine(DB_URL)
# Prevent attribute expiration on commit so returned objects remain accessible
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class StoreError(Exception):
    """Base class for word store failures."""


class DuplicateKey(StoreError):
    """The account already has an entry for this word."""


class StoreUnavailable(StoreError):
    """The database could not be reached or the statement failed."""


class Account(Base):
    __tablename__ = "accounts"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    api_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))


class Word(Base):
    __tablename__ = "words"
    __table_args__ = (UniqueConstraint("account_id", "word", name="uq_words_account_word"),)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[int] = mapped_column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    word: Mapped[str] = mapped_column(String(255), nullable=False, index=True)  # normalized key
    original_word: Mapped[Optional[str]] = mapped_column(Text)  # raw selection, for display
    url: Mapped[str] = mapped_column(Text, default="")
    title: Mapped[str] = mapped_column(Text, default="")
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    phonetic: Mapped[Optional[str]] = mapped_column(String(255))
    audio_url: Mapped[Optional[str]] = mapped_column(Text)
    meanings: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON)
    root: Mapped[Optional[str]] = mapped_column(String(255))
    root_meaning: Mapped[Optional[str]] = mapped_column(Text)
    explanation: Mapped[Optional[str]] = mapped_column(Text)
    related_words: Mapped[Optional[List[str]]] = mapped_column(JSON)
    sentences: Mapped[List[str]] = mapped_column(JSON, default=list)  # most recent first
    notes: Mapped[Optional[Dict[str, str]]] = mapped_column(JSON)  # keyed by sentence
    review_times: Mapped[List[int]] = mapped_column(JSON, default=list)  # epoch ms
    db_created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC))
    db_updated_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=lambda: datetime.datetime.now(datetime.UTC), onupdate=lambda: datetime.datetime.now(datetime.UTC))


def is_db_initialized() -> bool:
    """Check if the database is already initialized by checking if tables exist."""
    from sqlalchemy import inspect
    inspector = inspect(engine)
    table_names = inspector.get_table_names()
    return {"accounts", "words"}.issubset(set(table_names))


def init_db() -> None:
    """Initialize the database by creating all tables."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    return SessionLocal()


@contextmanager
def _store_session() -> Iterator[Session]:
    """Session scope that maps SQLAlchemy failures onto store errors."""
    session: Session = get_session()
    try:
        yield session
    except IntegrityError as e:
        session.rollback()
        raise DuplicateKey(str(e.orig)) from e
    except SQLAlchemyError as e:
        session.rollback()
        if DEBUG_MODE:
            print(f"❌ Word store failure: {e}")
        raise StoreUnavailable(str(e)) from e
    finally:
        session.close()


# ----------------------------------------------------------------------
# Accounts
# ----------------------------------------------------------------------
def create_account(api_key: Optional[str] = None, name: Optional[str] = None) -> Account:
    """Create an account. A random API key is generated when none is given."""
    with _store_session() as session:
        account = Account(api_key=api_key or secrets.token_urlsafe(24), name=name)
        session.add(account)
        session.commit()
        return account


def get_account_by_api_key(api_key: str) -> Optional[Account]:
    if not api_key:
        return None
    with _store_session() as session:
        return session.query(Account).filter_by(api_key=api_key).first()


# ----------------------------------------------------------------------
# Vocabulary entries
# ----------------------------------------------------------------------
def new_entry_id(created_at: Optional[int] = None) -> str:
    """``<epoch-ms>-<random>`` identifier for a new entry."""
    return f"{created_at or now_ms()}-{secrets.token_hex(4)}"


def clean_sentences(sentences: Optional[List[str]]) -> List[str]:
    """Drop blanks and case-insensitive repeats (first one wins), then cap
    the list at MAX_SENTENCES."""
    if sentences is None:
        return []
    if not isinstance(sentences, list) or not all(isinstance(s, str) for s in sentences):
        raise ValueError("sentences must be a list of strings")
    kept: List[str] = []
    for sentence in sentences:
        if not normalize(sentence):
            continue
        if any(same_text(sentence, s) for s in kept):
            continue
        kept.append(sentence)
    return kept[:MAX_SENTENCES]


def _to_entry(row: Word) -> VocabularyEntry:
    return VocabularyEntry(
        id=row.id,
        word=row.word,
        created_at=row.created_at_ms,
        original_word=row.original_word,
        url=row.url or "",
        title=row.title or "",
        sentences=list(row.sentences or []),
        review_times=[int(t) for t in row.review_times or []],
        notes=dict(row.notes or {}),
        phonetic=row.phonetic,
        audio_url=row.audio_url,
        meanings=list(row.meanings or []),
        root=row.root,
        root_meaning=row.root_meaning,
        explanation=row.explanation,
        related_words=list(row.related_words or []),
    )


# Fields a caller may set through update(); id and created_at are immutable.
UPDATABLE_FIELDS = {
    "word", "original_word", "url", "title", "phonetic", "audio_url", "meanings",
    "root", "root_meaning", "explanation", "related_words", "sentences", "notes",
    "review_times",
}


def _apply_fields(row: Word, fields: Dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown entry fields: {', '.join(sorted(unknown))}")
    for name, value in fields.items():
        if name == "word":
            value = normalize_word(value)
        elif name == "sentences":
            value = clean_sentences(value)
        elif name == "review_times":
            value = [int(t) for t in value or []]
        setattr(row, name, value)


class WordStore:
    """Vocabulary lookup port backed by the ``words`` table, scoped to one
    account.

    ``update`` replaces every field it is given; list fields are not merged.
    Two read-modify-write writers on the same field of the same entry can
    therefore lose one of the updates (last write wins).
    """

    def __init__(self, account_id: int) -> None:
        self.account_id = account_id

    def find_by_word(self, word: str) -> Optional[VocabularyEntry]:
        key = normalize_word(word)
        if not key:
            return None
        with _store_session() as session:
            row = session.query(Word).filter_by(account_id=self.account_id, word=key).first()
            return _to_entry(row) if row else None

    def get(self, entry_id: str) -> Optional[VocabularyEntry]:
        with _store_session() as session:
            row = session.query(Word).filter_by(account_id=self.account_id, id=entry_id).first()
            return _to_entry(row) if row else None

    def create(self, entry: VocabularyEntry) -> VocabularyEntry:
        """Insert a new entry. Raises DuplicateKey if the word is taken."""
        key = normalize_word(entry.word)
        if not key:
            raise ValueError("Entry word must not be empty")
        with _store_session() as session:
            existing = session.query(Word.id).filter_by(account_id=self.account_id, word=key).first()
            if existing:
                raise DuplicateKey(f"'{key}' already exists")
            created_at = entry.created_at or now_ms()
            row = Word(
                id=entry.id or new_entry_id(created_at),
                account_id=self.account_id,
                word=key,
                created_at_ms=created_at,
            )
            _apply_fields(row, {
                "original_word": entry.original_word,
                "url": entry.url,
                "title": entry.title,
                "sentences": entry.sentences,
                "review_times": entry.review_times,
                "notes": entry.notes,
                "phonetic": entry.phonetic,
                "audio_url": entry.audio_url,
                "meanings": entry.meanings,
                "root": entry.root,
                "root_meaning": entry.root_meaning,
                "explanation": entry.explanation,
                "related_words": entry.related_words,
            })
            session.add(row)
            session.commit()
            if DEBUG_MODE:
                print(f"✅ Created entry '{key}' ({row.id})")
            return _to_entry(row)

    def update(self, entry_id: str, fields: Dict[str, Any]) -> Optional[VocabularyEntry]:
        with _store_session() as session:
            row = session.query(Word).filter_by(account_id=self.account_id, id=entry_id).first()
            if row is None:
                return None
            _apply_fields(row, fields)
            session.commit()
            return _to_entry(row)

    def list_all(self) -> List[VocabularyEntry]:
        with _store_session() as session:
            rows = (
                session.query(Word)
                .filter_by(account_id=self.account_id)
                .order_by(Word.db_updated_at.desc())
                .all()
            )
            return [_to_entry(r) for r in rows]

    def delete(self, entry_id: str) -> Optional[VocabularyEntry]:
        with _store_session() as session:
            row = session.query(Word).filter_by(account_id=self.account_id, id=entry_id).first()
            if row is None:
                return None
            entry = _to_entry(row)
            session.delete(row)
            session.commit()
            return entry


__all__ = [
    "Base", "Account", "Word", "WordStore",
    "StoreError", "DuplicateKey", "StoreUnavailable",
    "init_db", "is_db_initialized", "get_session",
    "create_account", "get_account_by_api_key",
    "new_entry_id", "clean_sentences", "MAX_SENTENCES",
]
