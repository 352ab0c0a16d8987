# shopsdk/filters.py
"""Search/filter/page state for the product list.

One object owns the state and moves through explicit phases:

    idle -> pending-debounce -> fetching -> settled

Typing only arms the debounce timer; the effective filter changes when the
timer elapses. Every fetch is tagged with a sequence number and a response
is applied only if no newer fetch has been issued since.
"""
import json
import logging
import threading
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

FILTERS_KEY = "productsFilters"
DEFAULT_DELAY = 0.5
SORT_KEYS = ("", "price_low", "price_high", "name")


class Phase(str, Enum):
    IDLE = "idle"
    PENDING = "pending-debounce"
    FETCHING = "fetching"
    SETTLED = "settled"


@dataclass(frozen=True)
class FilterState:
    search: str = ""
    category: str = "all"
    sort: str = ""
    page: int = 1
    limit: int = 6

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> "FilterState":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("saved filters are not an object")
        state = cls(
            search=str(data.get("search", "")),
            category=str(data.get("category", "all")) or "all",
            sort=str(data.get("sort", "")),
            page=int(data.get("page", 1)),
            limit=int(data.get("limit", 6)),
        )
        if state.page < 1 or state.limit < 1:
            raise ValueError("saved page window is out of range")
        return state


class Debouncer:
    """Runs ``callback`` once input has been quiet for ``delay`` seconds.

    Each ``trigger`` cancels the previously armed timer.
    """

    def __init__(self, delay: float, callback: Callable[[], None], timer_factory=threading.Timer):
        self.delay = delay
        self.callback = callback
        self.timer_factory = timer_factory
        self._timer = None
        self._generation = 0
        self._lock = threading.Lock()

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            self._timer = self.timer_factory(self.delay, self._fire, args=[self._generation])
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # a timer cancelled while already running must not fire
            if generation != self._generation or self._timer is None:
                return
            self._timer = None
        self.callback()


def _run_inline(job: Callable[[], None]) -> None:
    job()


class FilterSync:
    def __init__(self, fetch: Callable[[FilterState], Any], storage, key: str = FILTERS_KEY,
                 delay: float = DEFAULT_DELAY, limit: int = 6, timer_factory=threading.Timer,
                 runner: Callable[[Callable[[], None]], None] = _run_inline,
                 on_change: Optional[Callable[["FilterSync"], None]] = None):
        self.fetch = fetch
        self.storage = storage
        self.key = key
        self.runner = runner
        self.on_change = on_change
        self.limit = limit

        self.state = FilterState(limit=limit)
        self.search_text = ""
        self.phase = Phase.IDLE
        self.result: Any = None
        self.error: Optional[Exception] = None
        self.seq = 0
        self.applied_seq = 0

        self._lock = threading.RLock()
        self._quiet = threading.Event()
        self._quiet.set()
        self._debouncer = Debouncer(delay, self._debounce_elapsed, timer_factory)

    # ---------------------------
    # Inputs
    # ---------------------------
    def restore(self) -> FilterState:
        """Load the saved filters for this view (if any) and fetch them."""
        raw = self.storage.get(self.key)
        with self._lock:
            if raw:
                try:
                    self.state = FilterState.from_json(raw)
                except (ValueError, TypeError) as exc:
                    logger.warning("Discarding unreadable saved filters: %s", exc)
                    self.storage.remove(self.key)
            self.search_text = self.state.search
            job = self._dispatch()
        self.runner(job)
        return self.state

    def type_search(self, text: str) -> None:
        with self._lock:
            self.search_text = text
            self.phase = Phase.PENDING
            self._quiet.clear()
        self._debouncer.trigger()

    def set_category(self, category: str) -> None:
        self._change(category=category or "all", page=1)

    def set_sort(self, sort: str) -> None:
        self._change(sort=sort if sort in SORT_KEYS else "", page=1)

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError("page must be >= 1")
        self._change(page=page)

    def clear(self) -> None:
        self._debouncer.cancel()
        with self._lock:
            self.search_text = ""
            self.state = FilterState(limit=self.limit)
            self.storage.remove(self.key)
            job = self._dispatch()
        self.runner(job)

    def refresh(self) -> None:
        with self._lock:
            job = self._dispatch()
        self.runner(job)

    # ---------------------------
    # Transitions
    # ---------------------------
    def _debounce_elapsed(self) -> None:
        with self._lock:
            if self.search_text == self.state.search:
                self.phase = Phase.SETTLED if self.applied_seq == self.seq else Phase.FETCHING
                if self.seq == 0:
                    self.phase = Phase.IDLE
                if self.phase is not Phase.FETCHING:
                    self._quiet.set()
                return
        self._change(search=self.search_text, page=1)

    def _change(self, **fields) -> None:
        with self._lock:
            new_state = replace(self.state, **fields)
            if new_state == self.state:
                return
            self.state = new_state
            self.storage.set(self.key, new_state.to_json())
            job = self._dispatch()
        self.runner(job)

    def _dispatch(self) -> Callable[[], None]:
        self.seq += 1
        self.phase = Phase.FETCHING
        self._quiet.clear()
        seq, snapshot = self.seq, self.state

        def job():
            try:
                result = self.fetch(snapshot)
            except Exception as exc:
                self.resolve(seq, error=exc)
            else:
                self.resolve(seq, result=result)
        return job

    def resolve(self, seq: int, result: Any = None, error: Optional[Exception] = None) -> bool:
        """Apply a fetch outcome. Outcomes of superseded fetches are dropped."""
        with self._lock:
            if seq != self.seq:
                logger.debug("Dropping stale response #%d (latest #%d)", seq, self.seq)
                return False
            self.applied_seq = seq
            if error is not None:
                # keep showing the previous page
                self.error = error
            else:
                self.result = result
                self.error = None
            if self.phase is not Phase.PENDING:
                self.phase = Phase.SETTLED
                self._quiet.set()
        if self.on_change:
            self.on_change(self)
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no debounce is armed and the latest fetch has resolved."""
        return self._quiet.wait(timeout)
