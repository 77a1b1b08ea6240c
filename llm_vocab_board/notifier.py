import queue
import threading
from typing import Dict, List

REFRESH_EVENT = "refresh-words"


class RefreshNotifier:
    """Fire-and-forget "refresh vocabulary" broadcast to open board views.

    Each subscriber owns a small queue. Delivery never blocks the sender: a
    full queue drops the event, and a view that already has a pending refresh
    does not need a second one. There is no ordering across notifications and
    consumers must treat repeated refreshes as harmless.
    """

    def __init__(self, maxsize: int = 8) -> None:
        self.maxsize = maxsize
        self._subscribers: Dict[int, List["queue.Queue[str]"]] = {}
        self._lock = threading.Lock()

    def subscribe(self, account_id: int) -> "queue.Queue[str]":
        q: "queue.Queue[str]" = queue.Queue(maxsize=self.maxsize)
        with self._lock:
            self._subscribers.setdefault(account_id, []).append(q)
        return q

    def unsubscribe(self, account_id: int, q: "queue.Queue[str]") -> None:
        with self._lock:
            subs = self._subscribers.get(account_id, [])
            if q in subs:
                subs.remove(q)
            if not subs:
                self._subscribers.pop(account_id, None)

    def subscriber_count(self, account_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(account_id, []))

    def notify(self, account_id: int) -> int:
        """Send a refresh to every view of the account. Returns how many
        views got it; failures are printed, never raised."""
        with self._lock:
            targets = list(self._subscribers.get(account_id, []))
        delivered = 0
        for q in targets:
            try:
                q.put_nowait(REFRESH_EVENT)
                delivered += 1
            except queue.Full:
                continue
            except Exception as e:
                print(f"⚠️ Refresh notification failed: {e}")
        return delivered
