import time
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


@dataclass
class Example:
    sentence: str
    translation: str = ""


def _as_list(value: Any) -> List[Any]:
    """Provider fields that should be lists; a lone string counts as one
    item and anything else as nothing."""
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value:
        return [value]
    return []


@dataclass
class Meaning:
    part_of_speech: str
    definitions: List[str] = field(default_factory=list)
    translation: Optional[str] = None
    examples: List[Example] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Meaning":
        definitions = _as_list(data.get("definitions"))
        examples = []
        for ex in _as_list(data.get("examples")):
            if isinstance(ex, dict) and ex.get("sentence"):
                examples.append(Example(str(ex["sentence"]), str(ex.get("translation") or "")))
            elif isinstance(ex, str):
                examples.append(Example(ex))
        translation = data.get("translation")
        return cls(
            part_of_speech=str(data.get("partOfSpeech") or data.get("part_of_speech") or ""),
            definitions=[str(d) for d in definitions],
            translation=str(translation) if translation else None,
            examples=examples,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "partOfSpeech": self.part_of_speech,
            "definitions": list(self.definitions),
            "examples": [asdict(ex) for ex in self.examples],
        }
        if self.translation:
            data["translation"] = self.translation
        return data


@dataclass
class Enrichment:
    """Dictionary data returned by the analysis provider.

    Every field may be missing. When the provider answers with something that
    is not the expected JSON object, the text is kept in ``raw_text`` and the
    structured fields stay empty.
    """
    phonetic: Optional[str] = None
    audio_url: Optional[str] = None
    meanings: List[Meaning] = field(default_factory=list)
    root: Optional[str] = None
    root_meaning: Optional[str] = None
    explanation: Optional[str] = None
    related_words: List[str] = field(default_factory=list)
    raw_text: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Enrichment":
        meanings = [Meaning.from_dict(m) for m in _as_list(data.get("meanings")) if isinstance(m, dict)]
        related = data.get("wordFamily") or data.get("relatedWords") or data.get("family")
        if isinstance(related, str):
            related = [w.strip() for w in related.split(",") if w.strip()]
        related = [w for w in _as_list(related) if isinstance(w, (str, int, float))]
        return cls(
            phonetic=_opt_str(data.get("phonetic")),
            audio_url=_opt_str(data.get("audioUrl")),
            meanings=meanings,
            root=_opt_str(data.get("root") or data.get("lemma")),
            root_meaning=_opt_str(data.get("rootMeaning")),
            explanation=_opt_str(data.get("explanation")),
            related_words=[str(w) for w in related],
        )

    @property
    def is_empty(self) -> bool:
        return not (self.phonetic or self.audio_url or self.meanings or self.root
                    or self.root_meaning or self.explanation or self.related_words
                    or self.raw_text)

    def entry_fields(self) -> Dict[str, Any]:
        """Fields to store on a vocabulary entry. The raw-text variant is
        kept as the explanation so it is not lost."""
        return {
            "phonetic": self.phonetic,
            "audio_url": self.audio_url,
            "meanings": [m.to_dict() for m in self.meanings],
            "root": self.root,
            "root_meaning": self.root_meaning,
            "explanation": self.explanation or self.raw_text,
            "related_words": list(self.related_words),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phonetic": self.phonetic,
            "audioUrl": self.audio_url,
            "meanings": [m.to_dict() for m in self.meanings],
            "root": self.root,
            "rootMeaning": self.root_meaning,
            "explanation": self.explanation,
            "relatedWords": list(self.related_words),
            "text": self.raw_text,
        }


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class VocabularyEntry:
    id: str
    word: str
    created_at: int
    original_word: Optional[str] = None
    url: str = ""
    title: str = ""
    sentences: List[str] = field(default_factory=list)
    review_times: List[int] = field(default_factory=list)
    notes: Dict[str, str] = field(default_factory=dict)
    # enrichment, opaque to capture and review
    phonetic: Optional[str] = None
    audio_url: Optional[str] = None
    meanings: List[Dict[str, Any]] = field(default_factory=list)
    root: Optional[str] = None
    root_meaning: Optional[str] = None
    explanation: Optional[str] = None
    related_words: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """camelCase shape used by the JSON API."""
        return {
            "id": self.id,
            "word": self.word,
            "originalWord": self.original_word,
            "url": self.url,
            "title": self.title,
            "createdAt": self.created_at,
            "phonetic": self.phonetic,
            "audioUrl": self.audio_url,
            "meanings": self.meanings,
            "root": self.root,
            "rootMeaning": self.root_meaning,
            "explanation": self.explanation,
            "relatedWords": self.related_words,
            "sentences": self.sentences,
            "notes": self.notes,
            "reviewTimes": self.review_times,
        }


# Maps the camelCase API names onto entry fields accepted by WordStore.update
API_FIELD_NAMES: Dict[str, str] = {
    "word": "word",
    "originalWord": "original_word",
    "url": "url",
    "title": "title",
    "phonetic": "phonetic",
    "audioUrl": "audio_url",
    "meanings": "meanings",
    "root": "root",
    "rootMeaning": "root_meaning",
    "explanation": "explanation",
    "relatedWords": "related_words",
    "sentences": "sentences",
    "notes": "notes",
    "reviewTimes": "review_times",
}


def fields_from_api(data: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a camelCase request body into entry field names, dropping
    anything unknown."""
    return {API_FIELD_NAMES[k]: v for k, v in data.items() if k in API_FIELD_NAMES}


ENRICHMENT_SYSTEM_PROMPT = "You are an English dictionary and morphological analyzer. Return ONLY valid JSON."

ENRICHMENT_PROMPT = """Analyze the English word "{word}" comprehensively.

Requirements:
1. Identify every part of speech (noun, verb, adjective, adverb, ...).
2. For each part of speech give:
   - English definitions
   - a Chinese translation (several translations separated by semicolons, e.g. "普遍的; 常见的")
   - 1-2 English example sentences containing "{word}", each with a Chinese translation
3. Give the IPA phonetic transcription.
4. Identify the root / etymology and what the root means.
5. List the word family (same-root and derived words).
6. Briefly explain the root and its origin.

Return a JSON object shaped like:
{{
  "word": "{word}",
  "phonetic": "/ˈkɒmən/",
  "meanings": [
    {{
      "partOfSpeech": "adjective",
      "definitions": ["occurring, found, or done often"],
      "translation": "普遍的; 常见的",
      "examples": [{{"sentence": "This is a common problem.", "translation": "这是一个常见的问题。"}}]
    }}
  ],
  "root": "...",
  "rootMeaning": "...",
  "wordFamily": ["...", "..."],
  "explanation": "..."
}}

Return only the JSON object, no other text."""


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)
