# tests/test_filters.py
import pytest

from shopsdk.filters import FILTERS_KEY, Debouncer, FilterState, FilterSync, Phase
from shopsdk.storage import MemoryStorage


class FakeTimer:
    """Stands in for threading.Timer; tests fire it by hand."""

    created = []

    def __init__(self, interval, function, args=None):
        self.interval = interval
        self.function = function
        self.args = args or []
        self.cancelled = False
        self.started = False
        self.daemon = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function(*self.args)


def live_timers():
    return [t for t in FakeTimer.created if t.started and not t.cancelled]


def make_sync(storage=None, runner=None):
    FakeTimer.created = []
    fetched = []

    def fetch(state):
        fetched.append(state)
        return f"page for {state}"

    kwargs = {"timer_factory": FakeTimer}
    if runner is not None:
        kwargs["runner"] = runner
    sync = FilterSync(fetch, storage if storage is not None else MemoryStorage(), **kwargs)
    return sync, fetched


def test_debounce_collapses_fast_typing():
    sync, fetched = make_sync()
    for text in ("a", "ab", "abc"):
        sync.type_search(text)
    assert sync.phase is Phase.PENDING
    assert fetched == []

    timers = live_timers()
    assert len(timers) == 1
    assert timers[0].interval == 0.5
    timers[0].fire()

    assert [s.search for s in fetched] == ["abc"]
    assert sync.state.search == "abc"
    assert sync.phase is Phase.SETTLED
    assert sync.wait(0)


def test_cancelled_timer_never_fires():
    calls = []
    FakeTimer.created = []
    debouncer = Debouncer(0.5, lambda: calls.append(1), FakeTimer)
    debouncer.trigger()
    first = FakeTimer.created[0]
    debouncer.trigger()
    first.function(*first.args)
    assert calls == []
    FakeTimer.created[1].fire()
    assert calls == [1]
    assert not debouncer.pending


def test_typing_back_to_current_search_does_not_refetch():
    sync, fetched = make_sync()
    sync.restore()
    sync.type_search("x")
    sync.type_search("")
    live_timers()[0].fire()
    assert len(fetched) == 1
    assert sync.phase is Phase.SETTLED


def test_category_and_sort_reset_page_but_page_keeps_filters():
    sync, fetched = make_sync()
    sync.set_page(3)
    assert sync.state.page == 3

    sync.set_category("Books")
    assert sync.state.page == 1
    assert sync.state.category == "Books"

    sync.set_page(2)
    sync.set_sort("price_high")
    assert sync.state.page == 1
    assert sync.state.sort == "price_high"

    sync.set_page(4)
    assert (sync.state.category, sync.state.sort, sync.state.page) == ("Books", "price_high", 4)

    sync.set_sort("bogus")
    assert sync.state.sort == ""
    with pytest.raises(ValueError):
        sync.set_page(0)


def test_settled_search_resets_page():
    sync, _ = make_sync()
    sync.set_page(5)
    sync.type_search("lamp")
    live_timers()[0].fire()
    assert sync.state.page == 1


def test_state_survives_leaving_and_returning():
    storage = MemoryStorage()
    sync, _ = make_sync(storage)
    sync.set_category("Sports")
    sync.set_page(2)
    sync.type_search("ball")
    live_timers()[0].fire()
    sync.set_page(3)

    returned, fetched = make_sync(storage)
    state = returned.restore()
    assert state == FilterState(search="ball", category="Sports", sort="", page=3, limit=6)
    assert returned.search_text == "ball"
    assert fetched == [state]


def test_clear_resets_and_forgets_saved_state():
    storage = MemoryStorage()
    sync, fetched = make_sync(storage)
    sync.set_category("Books")
    sync.type_search("pending text")
    assert storage.get(FILTERS_KEY)

    sync.clear()
    assert sync.state == FilterState()
    assert sync.search_text == ""
    assert storage.get(FILTERS_KEY) is None
    assert live_timers() == []
    assert fetched[-1] == FilterState()


def test_corrupt_saved_filters_are_ignored():
    storage = MemoryStorage()
    storage.set(FILTERS_KEY, '{"page": -4}')
    sync, _ = make_sync(storage)
    assert sync.restore() == FilterState()
    assert storage.get(FILTERS_KEY) is None


def test_stale_responses_are_dropped():
    jobs = []
    sync, fetched = make_sync(runner=jobs.append)
    sync.set_category("Books")
    sync.set_category("Sports")
    assert len(jobs) == 2

    # the newer request finishes first, then the older one straggles in
    jobs[1]()
    jobs[0]()
    assert [s.category for s in fetched] == ["Sports", "Books"]
    assert "Sports" in sync.result
    assert sync.applied_seq == sync.seq == 2
    assert sync.resolve(1, result="late") is False
    assert "Sports" in sync.result


def test_fetch_error_keeps_previous_result():
    calls = {"n": 0}

    def fetch(state):
        calls["n"] += 1
        if calls["n"] > 1:
            raise ConnectionError("offline")
        return "first page"

    changes = []
    sync = FilterSync(fetch, MemoryStorage(), timer_factory=FakeTimer, on_change=changes.append)
    sync.restore()
    sync.set_page(2)
    assert sync.result == "first page"
    assert isinstance(sync.error, ConnectionError)
    assert sync.phase is Phase.SETTLED
    assert len(changes) == 2
