import json
import re
from typing import Any, Optional

from .structured import Enrichment, ENRICHMENT_PROMPT, ENRICHMENT_SYSTEM_PROMPT
from .text import normalize_word

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class EnrichmentUnavailable(Exception):
    """The analysis provider could not produce anything for a word."""


def _strip_code_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        lines = raw.split("\n")
        lines = [l for l in lines if not l.strip().startswith("```")]
        raw = "\n".join(lines)
    return raw.strip()


def parse_enrichment(raw: str) -> Enrichment:
    """Turn a provider reply into an Enrichment.

    Replies that do not contain a JSON object fall back to the raw-text
    variant instead of failing.
    """
    text = _strip_code_fences(raw)
    if not text:
        raise EnrichmentUnavailable("empty provider response")
    candidates = [text]
    match = _JSON_OBJECT_RE.search(text)
    if match and match.group(0) != text:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return Enrichment.from_payload(data)
    return Enrichment(raw_text=text)


def analyze_word(word: str, model: Any) -> Enrichment:
    """Ask the model for phonetics, meanings, root and word family."""
    key = normalize_word(word)
    if not key:
        raise EnrichmentUnavailable("no word to analyze")
    if model is None:
        raise EnrichmentUnavailable("AI model not configured")
    try:
        response = model.prompt(ENRICHMENT_PROMPT.format(word=key), system=ENRICHMENT_SYSTEM_PROMPT)
        raw = response.text()
    except Exception as e:
        # openai timeouts and connection errors end up here too
        raise EnrichmentUnavailable(f"analysis of '{key}' failed: {e}") from e
    return parse_enrichment(raw)


def safe_enrich(word: str, model: Optional[Any]) -> Enrichment:
    """Best-effort enrichment: any failure yields an empty Enrichment."""
    try:
        return analyze_word(word, model)
    except EnrichmentUnavailable as e:
        print(f"⚠️ Enrichment unavailable for '{word}': {e}")
        return Enrichment()
