import argparse
import asyncio
import os
import sys
import time

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from voicedial.capture import SpeechCapture, WhisperRecognitionEngine
from voicedial.scheduler import AsyncioScheduler


async def _run(args) -> int:
    loop = asyncio.get_running_loop()
    scheduler = AsyncioScheduler(loop)
    engine = WhisperRecognitionEngine(
        scheduler,
        model_name=args.model,
        language=args.language,
        device_name=args.device,
        activity_threshold=args.threshold,
        max_listen_s=args.max_seconds,
    )
    capture = SpeechCapture(engine, scheduler, silence_timeout_s=args.silence)
    done = loop.create_future()

    capture.on_state_change(lambda state: print(f"State: {state.value}"))
    capture.on_transcript(lambda text: done.set_result(f"Transcript: {text}"))
    capture.on_error(lambda kind: done.set_result(f"Error: {kind.value}"))

    started = time.time()
    capture.start()
    print(await done)
    print(f"Elapsed: {time.time() - started:.2f}s")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", default="tiny", help="Whisper model name.")
    parser.add_argument("--language", default="en", help="Language code.")
    parser.add_argument("--device", help="Input device name substring.")
    parser.add_argument("--threshold", type=float, default=0.02, help="RMS level.")
    parser.add_argument("--silence", type=float, default=2.0, help="Silence timeout.")
    parser.add_argument("--max-seconds", type=float, default=10.0, help="Hard stop.")
    args = parser.parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
