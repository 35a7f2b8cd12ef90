"""Speech capture state machine and the microphone recognition engine."""

from __future__ import annotations

import importlib.util
import logging
import time
from typing import Any, Callable, List, Optional, Protocol

from .audio_utils import chunk_level, resample, to_mono
from .errors import CaptureError
from .models import CaptureErrorKind, CaptureState
from .recorder import find_input_device
from .scheduler import Scheduler, TimerHandle
from .transcriber import transcribe_samples

logger = logging.getLogger("voicedial")

DEFAULT_SILENCE_TIMEOUT_S = 2.0
WHISPER_SAMPLE_RATE_HZ = 16000

TranscriptListener = Callable[[str], None]
ErrorListener = Callable[[CaptureErrorKind], None]
StateListener = Callable[[CaptureState], None]


class RecognitionEngine(Protocol):
    """Audio source feeding a :class:`SpeechCapture`.

    ``begin`` starts capturing and may report back through the capture's
    token-tagged inputs (``activity``, ``speech_ended``, ``request_stop``,
    ``recognized``, ``failed``). ``finish`` ends capture and hands back a
    recognition job producing the text; the job runs off the event loop and
    may block. ``cancel`` discards everything.
    """

    def begin(self, capture: "SpeechCapture", token: int) -> None:
        ...

    def finish(self) -> Callable[[], str]:
        ...

    def cancel(self) -> None:
        ...


class SpeechCapture:
    """One-shot speech capture with a post-speech silence debounce.

    Each ``start()`` opens a cycle tagged with a new token. A cycle ends with
    exactly one transcript or error event; inputs tagged with an older token
    are dropped.
    """

    def __init__(
        self,
        engine: RecognitionEngine,
        scheduler: Scheduler,
        silence_timeout_s: float = DEFAULT_SILENCE_TIMEOUT_S,
    ) -> None:
        self._engine = engine
        self._scheduler = scheduler
        self._silence_timeout_s = silence_timeout_s
        self._state = CaptureState.IDLE
        self._token = 0
        self._timer: Optional[TimerHandle] = None
        self._finalizing = False
        self._transcript_listeners: List[TranscriptListener] = []
        self._error_listeners: List[ErrorListener] = []
        self._state_listeners: List[StateListener] = []

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def token(self) -> int:
        return self._token

    def on_transcript(self, listener: TranscriptListener) -> None:
        self._transcript_listeners.append(listener)

    def on_error(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def on_state_change(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def start(self) -> bool:
        if self._state is not CaptureState.IDLE:
            logger.debug("Capture start ignored in state %s", self._state.value)
            return False
        self._token += 1
        token = self._token
        self._set_state(CaptureState.LISTENING)
        logger.info("Capture started (session %s)", token)
        try:
            self._engine.begin(self, token)
        except CaptureError as exc:
            logger.warning("Capture failed to start: %s", exc)
            self._finish_error(token, exc.kind)
        except Exception:
            logger.exception("Capture failed to start")
            self._finish_error(token, CaptureErrorKind.UNKNOWN)
        return True

    def stop(self) -> None:
        """Finalize the current cycle.

        The engine's recognition job runs through ``scheduler.run_blocking``;
        the outcome comes back tagged with the cycle's token, so a cycle
        aborted in the meantime never reports.
        """
        if self._state is CaptureState.IDLE or self._finalizing:
            return
        token = self._token
        self._cancel_timer()
        self._finalizing = True
        try:
            job = self._engine.finish()
        except Exception as exc:
            self._finalize_failed(token, exc)
            return
        self._scheduler.run_blocking(
            job,
            lambda text: self._finish_text(token, text),
            lambda exc: self._finalize_failed(token, exc),
        )

    def abort(self) -> None:
        if self._state is CaptureState.IDLE:
            return
        self._cancel_timer()
        self._finalizing = False
        self._engine.cancel()
        self._set_state(CaptureState.IDLE)
        logger.info("Capture aborted (session %s)", self._token)

    # Engine inputs. All are tagged with the session token.

    def speech_ended(self, token: int) -> None:
        if not self._is_current(token) or self._state is not CaptureState.LISTENING:
            return
        self._set_state(CaptureState.AWAITING_SILENCE)
        self._cancel_timer()
        self._timer = self._scheduler.call_later(
            self._silence_timeout_s, lambda: self._silence_elapsed(token)
        )

    def activity(self, token: int) -> None:
        if not self._is_current(token):
            return
        if self._state is CaptureState.AWAITING_SILENCE:
            self._cancel_timer()
            self._set_state(CaptureState.LISTENING)

    def request_stop(self, token: int) -> None:
        if self._is_current(token):
            self.stop()

    def recognized(self, token: int, text: str) -> None:
        if not self._is_current(token):
            return
        self._cancel_timer()
        self._engine.cancel()
        self._finish_text(token, text)

    def failed(self, token: int, kind: CaptureErrorKind) -> None:
        if not self._is_current(token):
            return
        self._cancel_timer()
        self._engine.cancel()
        self._finish_error(token, kind)

    def _is_current(self, token: int) -> bool:
        return (
            token == self._token
            and self._state is not CaptureState.IDLE
            and not self._finalizing
        )

    def _finalize_failed(self, token: int, exc: BaseException) -> None:
        if isinstance(exc, CaptureError):
            logger.warning("Capture failed: %s", exc)
            self._finish_error(token, exc.kind)
        else:
            logger.error("Capture failed", exc_info=exc)
            self._finish_error(token, CaptureErrorKind.UNKNOWN)

    def _silence_elapsed(self, token: int) -> None:
        if token != self._token or self._state is not CaptureState.AWAITING_SILENCE:
            logger.debug("Stale silence timer for session %s ignored", token)
            return
        self._timer = None
        logger.debug("Silence timeout reached (session %s)", token)
        self.stop()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _finish_text(self, token: int, text: str) -> None:
        text = (text or "").strip()
        if not text:
            self._finish_error(token, CaptureErrorKind.NO_SPEECH)
            return
        if not self._end_cycle(token):
            return
        logger.info("Transcript (session %s): %s", token, text)
        for listener in list(self._transcript_listeners):
            listener(text)

    def _finish_error(self, token: int, kind: CaptureErrorKind) -> None:
        if not self._end_cycle(token):
            return
        logger.info("Capture error (session %s): %s", token, kind.value)
        for listener in list(self._error_listeners):
            listener(kind)

    def _end_cycle(self, token: int) -> bool:
        if token != self._token or self._state is CaptureState.IDLE:
            return False
        self._cancel_timer()
        self._finalizing = False
        self._set_state(CaptureState.IDLE)
        return True

    def _set_state(self, state: CaptureState) -> None:
        if state is self._state:
            return
        logger.debug("Capture state %s -> %s", self._state.value, state.value)
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)


def _require_module(module_name: str, install_hint: str) -> None:
    if importlib.util.find_spec(module_name) is None:
        raise CaptureError(
            CaptureErrorKind.UNSUPPORTED,
            f"Missing dependency '{module_name}'. Install with: {install_hint}",
        )


class WhisperRecognitionEngine:
    """Microphone capture via sounddevice, recognition via faster-whisper.

    Voice activity is an RMS threshold on each block; the stream callback
    posts transitions to the scheduler so the capture only ever sees them on
    its own timeline.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        model_name: str = "tiny",
        language: Optional[str] = "en",
        device_name: Optional[str] = None,
        sample_rate_hz: int = WHISPER_SAMPLE_RATE_HZ,
        channels: int = 1,
        activity_threshold: float = 0.02,
        max_listen_s: float = 10.0,
        quiet_blocks: int = 3,
        compute_device: Optional[str] = None,
        compute_type: Optional[str] = None,
    ) -> None:
        self._scheduler = scheduler
        self.model_name = model_name
        self.language = language
        self.device_name = device_name
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self.activity_threshold = activity_threshold
        self.max_listen_s = max_listen_s
        self.quiet_blocks = quiet_blocks
        self.compute_device = compute_device
        self.compute_type = compute_type
        self._stream: Any = None
        self._chunks: List[Any] = []

    def begin(self, capture: SpeechCapture, token: int) -> None:
        _require_module("sounddevice", "pip install sounddevice")
        _require_module("faster_whisper", "pip install faster-whisper")

        import sounddevice as sd

        device = find_input_device(self.device_name)
        self._chunks = []
        started = time.monotonic()
        flags = {"speaking": False, "quiet": 0, "deadline": False}

        def _post(callback: Callable[[], None]) -> None:
            self._scheduler.call_soon_threadsafe(callback)

        def _callback(indata, _frames, _time, status):
            if status:
                logger.debug("Capture stream status: %s", status)
            self._chunks.append(indata.copy())
            if chunk_level(indata) >= self.activity_threshold:
                flags["quiet"] = 0
                if not flags["speaking"]:
                    flags["speaking"] = True
                    _post(lambda: capture.activity(token))
            elif flags["speaking"]:
                flags["quiet"] += 1
                if flags["quiet"] >= self.quiet_blocks:
                    flags["speaking"] = False
                    _post(lambda: capture.speech_ended(token))
            if not flags["deadline"] and time.monotonic() - started >= self.max_listen_s:
                flags["deadline"] = True
                _post(lambda: capture.request_stop(token))

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate_hz,
                channels=self.channels,
                dtype="int16",
                device=device.get("index"),
                blocksize=int(self.sample_rate_hz * 0.1),
                callback=_callback,
            )
            self._stream.start()
        except sd.PortAudioError as exc:
            self._stream = None
            raise CaptureError(
                CaptureErrorKind.PERMISSION_DENIED, f"Microphone unavailable: {exc}"
            ) from exc
        logger.debug("Capture stream open on %s", device.get("name"))

    def finish(self) -> Callable[[], str]:
        self._close_stream()
        chunks, self._chunks = self._chunks, []
        source_rate = self.sample_rate_hz

        def _recognize() -> str:
            samples = resample(to_mono(chunks), source_rate, WHISPER_SAMPLE_RATE_HZ)
            try:
                return transcribe_samples(
                    samples,
                    model_name=self.model_name,
                    language=self.language,
                    device=self.compute_device,
                    compute_type=self.compute_type,
                )
            except CaptureError:
                raise
            except Exception as exc:
                raise CaptureError(CaptureErrorKind.UNKNOWN, str(exc)) from exc

        return _recognize

    def cancel(self) -> None:
        self._close_stream()
        self._chunks = []

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.debug("Capture stream close failed: %s", exc)
