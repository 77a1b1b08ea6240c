"""
Capture of selected text into the vocabulary.

A selection that classifies as a word becomes a new entry. A sentence is
attached to the first of its words that is already saved; when none is, the
user picks which word to file it under.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional

from .db import DuplicateKey, StoreUnavailable, WordStore, MAX_SENTENCES
from .enrichment import safe_enrich
from .structured import VocabularyEntry
from .text import Kind, ValidationError, classify, normalize, normalize_word, same_text, tokenize

MAX_SENTENCE_LENGTH = 500
MAX_CANDIDATES = 20

# Receives the candidate words, returns the chosen one or None to cancel.
Chooser = Callable[[List[str]], Optional[str]]
OnChange = Callable[[], Any]


class CaptureOutcome(str, Enum):
    ALREADY_EXISTS = "already_exists"
    CREATED = "created"
    SENTENCE_ATTACHED = "sentence_attached"
    SENTENCE_DUPLICATE = "sentence_duplicate"
    CREATED_WITH_SENTENCE = "created_with_sentence"
    CANCELLED = "cancelled"


@dataclass
class CaptureResult:
    outcome: CaptureOutcome
    entry: Optional[VocabularyEntry] = None
    kind: Optional[Kind] = None

    @property
    def changed(self) -> bool:
        return self.outcome in (CaptureOutcome.CREATED,
                                CaptureOutcome.SENTENCE_ATTACHED,
                                CaptureOutcome.CREATED_WITH_SENTENCE)

    @property
    def message(self) -> str:
        word = self.entry.word if self.entry else ""
        if self.outcome is CaptureOutcome.ALREADY_EXISTS:
            return f"'{word}' is already in your vocabulary"
        if self.outcome is CaptureOutcome.CREATED:
            return f"Saved '{word}' to your vocabulary"
        if self.outcome is CaptureOutcome.SENTENCE_ATTACHED:
            return f"Sentence added to '{word}'"
        if self.outcome is CaptureOutcome.SENTENCE_DUPLICATE:
            return "Sentence already saved"
        if self.outcome is CaptureOutcome.CREATED_WITH_SENTENCE:
            return f"Saved '{word}' and attached the sentence to it"
        return "Cancelled"

    def to_dict(self) -> dict:
        return {
            "status": self.outcome.value,
            "kind": self.kind.value if self.kind else None,
            "message": self.message,
            "word": self.entry.to_dict() if self.entry else None,
        }


class ChoiceRequired(Exception):
    """Raised by a chooser that cannot ask the user right now.

    Nothing has been written when this propagates, so the capture can be
    replayed later with the user's pick.
    """

    def __init__(self, candidates: List[str]) -> None:
        super().__init__("A word must be chosen for this sentence")
        self.candidates = candidates


def _notify(on_change: Optional[OnChange]) -> None:
    if on_change is None:
        return
    try:
        on_change()
    except Exception as e:
        print(f"⚠️ Could not notify open views: {e}")


def _new_entry(word: str, model: Any, url: str, title: str,
               original_word: Optional[str] = None,
               sentences: Optional[List[str]] = None) -> VocabularyEntry:
    enrichment = safe_enrich(word, model)
    return VocabularyEntry(
        id="",
        word=word,
        created_at=0,
        original_word=original_word,
        url=url or "",
        title=title or "",
        sentences=list(sentences or []),
        **enrichment.entry_fields(),
    )


def attach_sentence(store: WordStore, entry: VocabularyEntry, sentence: str,
                    on_change: Optional[OnChange] = None) -> CaptureResult:
    """Put ``sentence`` at the head of the entry's sentences.

    The list comes from ``entry`` as the caller read it, so another capture
    writing sentences to the same entry in between can be overwritten.
    """
    if any(same_text(s, sentence) for s in entry.sentences):
        return CaptureResult(CaptureOutcome.SENTENCE_DUPLICATE, entry, Kind.SENTENCE)

    sentences = [sentence] + list(entry.sentences)
    updated = store.update(entry.id, {"sentences": sentences[:MAX_SENTENCES]})
    if updated is None:
        raise StoreUnavailable(f"'{entry.word}' disappeared while attaching a sentence")
    _notify(on_change)
    return CaptureResult(CaptureOutcome.SENTENCE_ATTACHED, updated, Kind.SENTENCE)


def _first_saved_word(store: WordStore, tokens: List[str]) -> Optional[VocabularyEntry]:
    # one lookup at a time, in token order: the first hit wins
    for token in tokens:
        existing = store.find_by_word(token)
        if existing:
            return existing
    return None


def _resolve_word(store: WordStore, text: str, url: str, title: str,
                  model: Any, on_change: Optional[OnChange]) -> CaptureResult:
    key = normalize_word(text)
    existing = store.find_by_word(key)
    if existing:
        return CaptureResult(CaptureOutcome.ALREADY_EXISTS, existing, Kind.WORD)

    entry = _new_entry(key, model, url, title, original_word=text)
    try:
        created = store.create(entry)
    except DuplicateKey:
        # another capture created it between our lookup and insert
        return CaptureResult(CaptureOutcome.ALREADY_EXISTS, store.find_by_word(key), Kind.WORD)
    _notify(on_change)
    return CaptureResult(CaptureOutcome.CREATED, created, Kind.WORD)


def _resolve_sentence(store: WordStore, text: str, url: str, title: str, model: Any,
                      chooser: Optional[Chooser], on_change: Optional[OnChange]) -> CaptureResult:
    sentence = text[:MAX_SENTENCE_LENGTH]
    tokens = tokenize(text)
    if not tokens:
        raise ValidationError("The sentence contains no English words")

    matched = _first_saved_word(store, tokens)
    if matched:
        return attach_sentence(store, matched, sentence, on_change)

    candidates = tokens[:MAX_CANDIDATES]
    pick = chooser(candidates) if chooser else None
    if not pick or not normalize(pick):
        return CaptureResult(CaptureOutcome.CANCELLED, None, Kind.SENTENCE)
    picked = normalize_word(pick)
    if picked not in candidates:
        raise ValidationError(f"'{pick}' is not one of the offered words")

    existing = store.find_by_word(picked)
    if existing:
        return attach_sentence(store, existing, sentence, on_change)

    entry = _new_entry(picked, model, url, title, sentences=[sentence])
    try:
        created = store.create(entry)
    except DuplicateKey:
        existing = store.find_by_word(picked)
        if existing is None:
            raise
        return attach_sentence(store, existing, sentence, on_change)
    _notify(on_change)
    return CaptureResult(CaptureOutcome.CREATED_WITH_SENTENCE, created, Kind.SENTENCE)


def resolve_selection(store: WordStore, selected_text: str, url: str = "", title: str = "", *,
                      model: Any = None, chooser: Optional[Chooser] = None,
                      on_change: Optional[OnChange] = None) -> CaptureResult:
    """Capture a text selection for one account.

    Raises ValidationError for empty selections, StoreUnavailable when the
    store cannot be reached. Enrichment failures are absorbed and the entry
    is saved without dictionary data. ``on_change`` runs after every write.
    """
    text = normalize(selected_text)
    if not text:
        raise ValidationError("Nothing selected")

    if classify(text) is Kind.WORD:
        return _resolve_word(store, text, url, title, model, on_change)
    return _resolve_sentence(store, text, url, title, model, chooser, on_change)


def add_word(store: WordStore, word: str, url: str = "", title: str = "", *,
             model: Any = None, on_change: Optional[OnChange] = None) -> CaptureResult:
    """Manual add from the board: like a word capture, but refuses
    sentences instead of trying to attach them."""
    text = normalize(word)
    if not text:
        raise ValidationError("Word must not be empty")
    if classify(text) is Kind.SENTENCE:
        raise ValidationError("That looks like a sentence, not a word")
    return _resolve_word(store, text, url, title, model, on_change)
