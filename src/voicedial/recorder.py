"""Input device discovery."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .errors import CaptureError
from .models import CaptureErrorKind


def list_input_devices() -> List[Dict[str, Any]]:
    try:
        import sounddevice as sd
    except Exception as exc:  # pragma: no cover - environment-dependent
        raise CaptureError(
            CaptureErrorKind.UNSUPPORTED, "sounddevice is required for capture."
        ) from exc

    devices = sd.query_devices()
    return [dict(d) for d in devices if d.get("max_input_channels", 0) > 0]


def select_preferred_device(
    candidates: List[Dict[str, Any]],
    prefer_name: Optional[str] = None,
) -> Dict[str, Any]:
    if not candidates:
        raise CaptureError(CaptureErrorKind.UNSUPPORTED, "No input devices found.")
    if prefer_name:
        preferred = [
            d for d in candidates if prefer_name.lower() in d.get("name", "").lower()
        ]
        if preferred:
            return preferred[0]
    return candidates[0]


def find_input_device(prefer_name: Optional[str] = None) -> Dict[str, Any]:
    candidates = list_input_devices()
    return select_preferred_device(candidates, prefer_name=prefer_name)
