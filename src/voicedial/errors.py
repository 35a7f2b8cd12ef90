"""Exception types."""

from __future__ import annotations

from .models import CaptureErrorKind


class VoiceDialError(Exception):
    pass


class ConfigError(VoiceDialError):
    pass


class CaptureError(VoiceDialError):
    def __init__(self, kind: CaptureErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class ResolutionError(VoiceDialError):
    """The resolution backend failed; distinct from a no-match verdict."""


class ContactsUnsupportedError(VoiceDialError):
    pass


class ContactsAccessError(VoiceDialError):
    pass
