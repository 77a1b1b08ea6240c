"""
Fixed-checkpoint review scheduling.

Every entry is due 1, 3, 7, 15 and 30 days after it was created. A checkpoint
counts as done when the entry has a review timestamp in the same local
calendar day. Day windows are half-open: ``[midnight, midnight + 24h)``.
"""

import datetime
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set

from .db import StoreUnavailable, WordStore
from .structured import VocabularyEntry, now_ms

REVIEW_OFFSETS_DAYS = (1, 3, 7, 15, 30)
DAY_MS = 24 * 60 * 60 * 1000


def day_start(ts_ms: int, tz: Optional[datetime.tzinfo] = None) -> int:
    """Epoch ms of the midnight that starts the day containing ``ts_ms``.

    Without ``tz`` the machine's local time zone is used.
    """
    moment = datetime.datetime.fromtimestamp(ts_ms / 1000, tz)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp() * 1000)


def in_window(ts_ms: int, start_ms: int) -> bool:
    return start_ms <= ts_ms < start_ms + DAY_MS


def reviewed_in_window(review_times: Iterable[int], start_ms: int) -> bool:
    return any(in_window(t, start_ms) for t in review_times)


def checkpoints(created_at: int) -> List[int]:
    return [created_at + days * DAY_MS for days in REVIEW_OFFSETS_DAYS]


def is_due(entry: VocabularyEntry, start_ms: int) -> bool:
    """A checkpoint falls in the day window and nothing was reviewed in it."""
    if not entry.created_at:
        return False
    hit = any(in_window(cp, start_ms) for cp in checkpoints(entry.created_at))
    return hit and not reviewed_in_window(entry.review_times, start_ms)


def due_today(entries: Iterable[VocabularyEntry], now: Optional[int] = None,
              tz: Optional[datetime.tzinfo] = None) -> List[VocabularyEntry]:
    start = day_start(now if now is not None else now_ms(), tz)
    return [e for e in entries if is_due(e, start)]


@dataclass
class OverdueItem:
    entry: VocabularyEntry
    checkpoint: int

    def to_dict(self) -> dict:
        return {"word": self.entry.to_dict(), "checkpoint": self.checkpoint}


def overdue_history(entries: Iterable[VocabularyEntry], now: Optional[int] = None,
                    tz: Optional[datetime.tzinfo] = None) -> List[OverdueItem]:
    """Past checkpoints that were not reviewed on their own day.

    An entry appears at most once, with its earliest missed checkpoint.
    """
    today = day_start(now if now is not None else now_ms(), tz)
    oldest: dict = {}
    for entry in entries:
        if not entry.created_at:
            continue
        for cp in checkpoints(entry.created_at):
            if cp >= today:
                continue
            if reviewed_in_window(entry.review_times, day_start(cp, tz)):
                continue
            current = oldest.get(entry.id)
            if current is None or cp < current.checkpoint:
                oldest[entry.id] = OverdueItem(entry, cp)
    return list(oldest.values())


class LocalToggles:
    """Entry ids the user ticked during this session.

    These stay listed (as checked) in today's view until the next full
    reload, instead of vanishing the moment the server records the review.
    """

    def __init__(self, ids: Optional[Iterable[str]] = None) -> None:
        self._ids: Set[str] = set(ids or [])

    def mark(self, entry_id: str, checked: bool) -> None:
        if checked:
            self._ids.add(entry_id)
        else:
            self._ids.discard(entry_id)

    def clear(self) -> None:
        self._ids.clear()

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def to_list(self) -> List[str]:
        return sorted(self._ids)


@dataclass
class ReviewViews:
    today: List[VocabularyEntry] = field(default_factory=list)
    history: List[OverdueItem] = field(default_factory=list)
    # due today, already reviewed, but ticked in this session
    checked: List[VocabularyEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "today": [e.to_dict() for e in self.today],
            "checked": [e.to_dict() for e in self.checked],
            "history": [item.to_dict() for item in self.history],
        }


def review_views(store: WordStore, now: Optional[int] = None,
                 tz: Optional[datetime.tzinfo] = None,
                 toggles: Optional[LocalToggles] = None) -> ReviewViews:
    """Both review lists for the account. A store failure yields empty
    lists rather than an error."""
    now = now if now is not None else now_ms()
    try:
        entries = store.list_all()
    except StoreUnavailable as e:
        print(f"⚠️ Could not load vocabulary for review: {e}")
        return ReviewViews()

    views = ReviewViews(today=due_today(entries, now, tz), history=overdue_history(entries, now, tz))
    if toggles:
        start = day_start(now, tz)
        views.checked = [
            e for e in entries
            if e.id in toggles and e.created_at
            and any(in_window(cp, start) for cp in checkpoints(e.created_at))
            and reviewed_in_window(e.review_times, start)
        ]
    return views


def set_reviewed(store: WordStore, entry_id: str, date: Optional[int] = None, checked: bool = True,
                 now: Optional[int] = None, tz: Optional[datetime.tzinfo] = None,
                 toggles: Optional[LocalToggles] = None) -> Optional[VocabularyEntry]:
    """Record or clear the review for the day containing ``date``.

    Checking adds ``now`` only when that day has no review yet; unchecking
    removes every timestamp in the day. The entry is re-read right before
    the write, but the read and the write are not atomic: another toggle of
    the same entry in between can be overwritten (last write wins).

    Returns the updated entry, or None if it no longer exists.
    """
    now = now if now is not None else now_ms()
    start = day_start(date if date is not None else now, tz)

    current = store.get(entry_id)
    if current is None:
        return None

    if checked:
        if reviewed_in_window(current.review_times, start):
            updated: Optional[VocabularyEntry] = current
        else:
            updated = store.update(entry_id, {"review_times": current.review_times + [now]})
    else:
        kept = [t for t in current.review_times if not in_window(t, start)]
        updated = store.update(entry_id, {"review_times": kept})

    if updated is not None and toggles is not None:
        toggles.mark(entry_id, checked)
    return updated
