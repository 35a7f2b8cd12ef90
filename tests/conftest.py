import pytest

from voicedial.capture import SpeechCapture
from voicedial.contacts import FALLBACK_CONTACTS, ContactStore
from voicedial.models import MatchVerdict
from voicedial.orchestrator import CommandOrchestrator
from voicedial.resolver import FuzzyContactResolver, ResolutionService


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Virtual clock; ``advance`` fires due timers in order."""

    def __init__(self, honour_cancel=True):
        self.now = 0.0
        self.timers = []
        self.honour_cancel = honour_cancel
        self.deferred = []
        self.defer_blocking = False

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def call_soon_threadsafe(self, callback):
        callback()

    def run_blocking(self, fn, on_done, on_error):
        def _run():
            try:
                result = fn()
            except Exception as exc:
                on_error(exc)
            else:
                on_done(result)

        if self.defer_blocking:
            self.deferred.append(_run)
        else:
            _run()

    def flush_blocking(self):
        """Run the jobs queued so far; jobs they queue wait for the next flush."""
        pending, self.deferred = self.deferred, []
        for job in pending:
            job()

    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds):
        self.now += seconds
        while True:
            due = [
                t
                for t in self.timers
                if t.when <= self.now and (not t.cancelled or not self.honour_cancel)
            ]
            if not due:
                return
            timer = min(due, key=lambda t: t.when)
            self.timers.remove(timer)
            timer.callback()


class FakeEngine:
    def __init__(self, text="call mom", begin_error=None, finish_error=None):
        self.text = text
        self.begin_error = begin_error
        self.finish_error = finish_error
        self.begun = []
        self.finished = 0
        self.cancelled = 0

    def begin(self, capture, token):
        self.begun.append(token)
        if self.begin_error is not None:
            raise self.begin_error

    def finish(self):
        self.finished += 1
        text, error = self.text, self.finish_error

        def _recognize():
            if error is not None:
                raise error
            return text

        return _recognize

    def cancel(self):
        self.cancelled += 1


class RecordingDialer:
    def __init__(self):
        self.calls = []

    def dial(self, phone):
        self.calls.append(phone)


class StubResolver:
    def __init__(self, verdict=None, error=None):
        self.verdict = verdict or MatchVerdict.none()
        self.error = error
        self.calls = []

    def resolve(self, transcript, candidate_names):
        self.calls.append((transcript, list(candidate_names)))
        if self.error is not None:
            raise self.error
        return self.verdict


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def capture(engine, scheduler):
    return SpeechCapture(engine, scheduler, silence_timeout_s=2.0)


@pytest.fixture
def dialer():
    return RecordingDialer()


@pytest.fixture
def store():
    return ContactStore(FALLBACK_CONTACTS)


@pytest.fixture
def make_orchestrator(capture, dialer, scheduler, store):
    def _make(backend=None, contacts_store=None):
        service = ResolutionService(backend or FuzzyContactResolver())
        return CommandOrchestrator(
            contacts_store if contacts_store is not None else store,
            capture,
            service,
            dialer,
            scheduler,
            auto_dial_delay_s=1.5,
        )

    return _make
