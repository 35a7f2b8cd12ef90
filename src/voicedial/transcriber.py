"""Transcription with Faster-Whisper."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .errors import CaptureError
from .models import CaptureErrorKind

logger = logging.getLogger("voicedial")

_MODELS: Dict[Tuple[str, Optional[str], Optional[str]], Any] = {}


def load_model(
    model_name: str = "tiny",
    device: str | None = None,
    compute_type: str | None = None,
):
    key = (model_name, device, compute_type)
    if key in _MODELS:
        return _MODELS[key]
    try:
        from faster_whisper import WhisperModel
    except Exception as exc:  # pragma: no cover - optional dependency
        raise CaptureError(
            CaptureErrorKind.UNSUPPORTED,
            "faster-whisper is required for transcription.",
        ) from exc

    kwargs = {}
    if device:
        kwargs["device"] = device
    if compute_type:
        kwargs["compute_type"] = compute_type
    logger.info("Loading whisper model %s", model_name)
    _MODELS[key] = WhisperModel(model_name, **kwargs)
    return _MODELS[key]


def transcribe_samples(
    samples: np.ndarray,
    model_name: str = "tiny",
    language: str | None = None,
    device: str | None = None,
    compute_type: str | None = None,
) -> str:
    """Transcribe mono float32 samples at 16 kHz; returns the best text."""
    if samples.size == 0:
        return ""
    model = load_model(model_name, device=device, compute_type=compute_type)
    segments, _info = model.transcribe(
        samples, language=language, beam_size=1, best_of=1
    )
    return " ".join(seg.text.strip() for seg in segments).strip()
