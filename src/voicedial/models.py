"""Data models for voicedial."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Contact:
    id: str
    name: str
    phone: str
    initials: str
    image: Optional[str] = None


class CallDirection(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    MISSED = "missed"


@dataclass(frozen=True)
class CallRecord:
    id: str
    contact: Contact
    direction: CallDirection
    timestamp: str


class VerdictKind(str, Enum):
    SINGLE = "single"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


@dataclass(frozen=True)
class MatchVerdict:
    """Outcome of one contact resolution.

    Holds contact *names*; the orchestrator maps them back to store entries.
    Use the ``single``/``ambiguous``/``none`` constructors so that ``names``
    always agrees with ``kind``.
    """

    kind: VerdictKind
    names: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def single(cls, name: str) -> "MatchVerdict":
        return cls(kind=VerdictKind.SINGLE, names=(name,))

    @classmethod
    def ambiguous(cls, names) -> "MatchVerdict":
        return cls(kind=VerdictKind.AMBIGUOUS, names=tuple(names))

    @classmethod
    def none(cls) -> "MatchVerdict":
        return cls(kind=VerdictKind.NONE)

    @property
    def name(self) -> Optional[str]:
        if self.kind is VerdictKind.SINGLE:
            return self.names[0]
        return None


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    PRESENTING = "presenting"
    ERROR = "error"


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    AWAITING_SILENCE = "awaiting_silence"


class CaptureErrorKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    NO_SPEECH = "no-speech"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    destructive: bool = True


@dataclass(frozen=True)
class SpamVerdict:
    is_spam: bool
    reason: Optional[str] = None
