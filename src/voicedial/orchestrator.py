"""Voice command orchestration: capture -> resolution -> dial."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .capture import SpeechCapture
from .contacts import ContactPicker, ContactStore, acquire_contacts
from .dialer import Dialer
from .errors import ContactsAccessError, ContactsUnsupportedError, ResolutionError
from .models import (
    CallDirection,
    CaptureErrorKind,
    Contact,
    MatchVerdict,
    Notification,
    SessionState,
    VerdictKind,
)
from .resolver import ResolutionService
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger("voicedial")

DEFAULT_AUTO_DIAL_DELAY_S = 1.5

STATUS_READY = "Tap the mic to start"
STATUS_LISTENING = "Listening..."
STATUS_THINKING = "Thinking..."
STATUS_NO_CONTACTS = "Please load your contacts first."
STATUS_CHOOSE = "Who should I call?"
STATUS_NO_MATCH = "Sorry, I couldn't find anyone by that name."
STATUS_RESOLUTION_FAILED = "There was an error. Please try again."

CAPTURE_ERRORS: Dict[CaptureErrorKind, Tuple[str, str]] = {
    CaptureErrorKind.PERMISSION_DENIED: (
        "Voice Recognition Error",
        "Microphone access denied. Please allow microphone permissions in "
        "your system settings.",
    ),
    CaptureErrorKind.UNSUPPORTED: (
        "Unsupported Feature",
        "Voice recognition not supported.",
    ),
    CaptureErrorKind.NO_SPEECH: (
        "Voice Recognition Error",
        "No speech detected. Please try again.",
    ),
    CaptureErrorKind.UNKNOWN: (
        "Voice Recognition Error",
        "An unknown error occurred.",
    ),
}

StateListener = Callable[[SessionState], None]
StatusListener = Callable[[str], None]
NotificationListener = Callable[[Notification], None]


class CommandOrchestrator:
    """Owns the session state and sequences one voice command at a time.

    Every transition happens on the scheduler's timeline. Resolution results
    and the auto-dial timer carry the session number they were issued for and
    are dropped once the session has moved on.
    """

    def __init__(
        self,
        store: ContactStore,
        capture: SpeechCapture,
        resolver: ResolutionService,
        dialer: Dialer,
        scheduler: Scheduler,
        auto_dial_delay_s: float = DEFAULT_AUTO_DIAL_DELAY_S,
    ) -> None:
        self._store = store
        self._capture = capture
        self._resolver = resolver
        self._dialer = dialer
        self._scheduler = scheduler
        self._auto_dial_delay_s = auto_dial_delay_s
        self._state = SessionState.IDLE
        self._status = STATUS_READY
        self._session = 0
        self._candidates: Tuple[Contact, ...] = ()
        self._dial_timer: Optional[TimerHandle] = None
        self._state_listeners: List[StateListener] = []
        self._status_listeners: List[StatusListener] = []
        self._notification_listeners: List[NotificationListener] = []

        capture.on_transcript(self._handle_transcript)
        capture.on_error(self._handle_capture_error)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def candidates(self) -> Tuple[Contact, ...]:
        return self._candidates

    @property
    def awaiting_choice(self) -> bool:
        """True while candidates are shown and only ``select``/``dismiss`` move on."""
        return (
            self._state is SessionState.PRESENTING
            and self._dial_timer is None
            and bool(self._candidates)
        )

    @property
    def store(self) -> ContactStore:
        return self._store

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def on_status(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def on_notification(self, listener: NotificationListener) -> None:
        self._notification_listeners.append(listener)

    def load_contacts(self, picker: ContactPicker) -> bool:
        try:
            contacts = acquire_contacts(picker)
        except ContactsUnsupportedError as exc:
            logger.warning("Contact picking unsupported: %s", exc)
            self._notify(
                "Unsupported Feature",
                "Contact picking is not supported in this environment.",
            )
            return False
        except ContactsAccessError as exc:
            logger.error("Contact access failed: %s", exc)
            self._notify(
                "Contacts Error", "Failed to access your contacts. Please try again."
            )
            return False
        if contacts:
            self._store.load(contacts)
        return True

    def start(self) -> bool:
        if self._state is not SessionState.IDLE:
            logger.debug("Start ignored in state %s", self._state.value)
            return False
        if self._store.is_empty():
            logger.info("Start rejected: no contacts loaded")
            self._set_status(STATUS_NO_CONTACTS)
            self._notify(
                "No Contacts", "Please load your contacts before using voice dialing."
            )
            return False

        self._session += 1
        self._candidates = ()
        self._set_state(SessionState.LISTENING)
        self._set_status(STATUS_LISTENING)
        if not self._capture.start():
            logger.warning("Capture engine busy; session %s dropped", self._session)
            self._set_state(SessionState.IDLE)
            self._set_status(STATUS_READY)
            return False
        return True

    def stop_listening(self) -> None:
        if self._state is SessionState.LISTENING:
            self._capture.stop()

    def select(self, contact_id: str) -> bool:
        if self._state is not SessionState.PRESENTING:
            return False
        for contact in self._candidates:
            if contact.id == contact_id:
                self._cancel_dial_timer()
                self._dial(contact)
                return True
        logger.debug("Selected contact %s is not a candidate", contact_id)
        return False

    def dismiss(self) -> None:
        if self._state is not SessionState.PRESENTING:
            return
        self._cancel_dial_timer()
        self._candidates = ()
        self._set_state(SessionState.IDLE)
        self._set_status(STATUS_READY)

    cancel = dismiss

    def acknowledge(self) -> None:
        if self._state is SessionState.ERROR:
            self._set_state(SessionState.IDLE)
            self._set_status(STATUS_READY)

    def close(self) -> None:
        self._session += 1
        self._cancel_dial_timer()
        self._capture.abort()
        self._candidates = ()
        self._set_state(SessionState.IDLE)

    def _handle_transcript(self, text: str) -> None:
        if self._state is not SessionState.LISTENING:
            logger.debug("Transcript ignored in state %s", self._state.value)
            return
        session = self._session
        self._set_status(f'You said: "{text}"')
        names = self._store.names()
        if not names:
            self._enter_error(STATUS_NO_CONTACTS)
            return
        self._set_state(SessionState.THINKING)
        self._set_status(STATUS_THINKING)
        self._scheduler.run_blocking(
            lambda: self._resolver.resolve(text, names),
            lambda verdict: self._handle_verdict(session, verdict),
            lambda exc: self._handle_resolution_failure(session, exc),
        )

    def _handle_capture_error(self, kind: CaptureErrorKind) -> None:
        if self._state is not SessionState.LISTENING:
            return
        title, description = CAPTURE_ERRORS.get(
            kind, CAPTURE_ERRORS[CaptureErrorKind.UNKNOWN]
        )
        self._enter_error(description, Notification(title, description))

    def _handle_verdict(self, session: int, verdict: MatchVerdict) -> None:
        if session != self._session or self._state is not SessionState.THINKING:
            logger.debug("Stale verdict for session %s dropped", session)
            return
        contacts = self._contacts_for(verdict)
        if not contacts:
            self._enter_error(STATUS_NO_MATCH)
            return
        if verdict.kind is VerdictKind.SINGLE and len(contacts) == 1:
            self._present_single(session, contacts[0])
            return
        self._candidates = tuple(contacts)
        self._set_status(STATUS_CHOOSE)
        self._set_state(SessionState.PRESENTING)

    def _handle_resolution_failure(self, session: int, exc: BaseException) -> None:
        if session != self._session or self._state is not SessionState.THINKING:
            return
        if isinstance(exc, ResolutionError):
            logger.error("Contact resolution failed: %s", exc)
        else:
            logger.error("Contact resolution crashed", exc_info=exc)
        self._enter_error(
            STATUS_RESOLUTION_FAILED,
            Notification(
                "Resolution Error", "Could not get a contact match. Please try again."
            ),
        )

    def _contacts_for(self, verdict: MatchVerdict) -> List[Contact]:
        contacts: List[Contact] = []
        for name in verdict.names:
            contacts.extend(c for c in self._store.all() if c.name == name)
        return contacts

    def _present_single(self, session: int, contact: Contact) -> None:
        self._candidates = (contact,)
        self._set_status(f"Calling {contact.name}...")
        self._dial_timer = self._scheduler.call_later(
            self._auto_dial_delay_s, lambda: self._auto_dial(session, contact)
        )
        self._set_state(SessionState.PRESENTING)

    def _auto_dial(self, session: int, contact: Contact) -> None:
        if session != self._session or self._state is not SessionState.PRESENTING:
            logger.debug("Stale auto-dial for session %s dropped", session)
            return
        self._dial_timer = None
        self._dial(contact)

    def _dial(self, contact: Contact) -> None:
        self._candidates = ()
        try:
            self._dialer.dial(contact.phone)
        except Exception:
            logger.exception("Dial failed for %s", contact.name)
            self._notify("Call Failed", f"Could not call {contact.name}.")
        else:
            self._store.record_call(contact, CallDirection.OUTGOING)
        self._set_state(SessionState.IDLE)

    def _enter_error(
        self, status: str, notification: Optional[Notification] = None
    ) -> None:
        self._candidates = ()
        self._set_state(SessionState.ERROR)
        self._set_status(status)
        if notification is not None:
            self._emit(notification)

    def _cancel_dial_timer(self) -> None:
        if self._dial_timer is not None:
            self._dial_timer.cancel()
            self._dial_timer = None

    def _notify(self, title: str, description: str) -> None:
        self._emit(Notification(title, description))

    def _emit(self, notification: Notification) -> None:
        logger.info("Notify: %s - %s", notification.title, notification.description)
        for listener in list(self._notification_listeners):
            listener(notification)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)

    def _set_status(self, text: str) -> None:
        self._status = text
        for listener in list(self._status_listeners):
            listener(text)
