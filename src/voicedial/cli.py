"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os

from .capture import SpeechCapture, WhisperRecognitionEngine
from .config import Config, load_config, save_config
from .contacts import (
    FALLBACK_CONTACTS,
    ContactStore,
    FileContactPicker,
    acquire_contacts,
)
from .dialer import PrintDialer, SystemDialer
from .errors import (
    CaptureError,
    ConfigError,
    ContactsAccessError,
    ContactsUnsupportedError,
    ResolutionError,
)
from .logging_utils import setup_logging
from .models import SessionState
from .orchestrator import CommandOrchestrator
from .recorder import list_input_devices
from .resolver import ResolutionService, build_resolver
from .scheduler import AsyncioScheduler
from .spam import OpenAISpamClassifier

DEFAULT_CONFIG = "voicedial_config.yml"


def _resolution_service(cfg: Config) -> ResolutionService:
    return build_resolver(
        backend=cfg.resolver.backend,
        model=cfg.resolver.model,
        api_key=cfg.resolver.api_key,
        base_url=cfg.resolver.base_url,
        timeout_s=cfg.resolver.timeout_s,
        fuzzy_cutoff=cfg.resolver.fuzzy_cutoff,
    )


def _load_store(
    cfg: Config, orchestrator: CommandOrchestrator | None = None
) -> ContactStore:
    store = orchestrator.store if orchestrator else ContactStore()
    if not cfg.contacts_path:
        store.load(FALLBACK_CONTACTS)
        return store
    picker = FileContactPicker(cfg.contacts_path)
    if orchestrator is not None:
        orchestrator.load_contacts(picker)
    else:
        store.load(acquire_contacts(picker))
    return store


async def _listen(cfg: Config, dial: bool) -> int:
    loop = asyncio.get_running_loop()
    scheduler = AsyncioScheduler(loop)
    engine = WhisperRecognitionEngine(
        scheduler,
        model_name=cfg.capture.whisper_model,
        language=cfg.capture.language,
        device_name=cfg.capture.device_name,
        sample_rate_hz=cfg.capture.sample_rate_hz,
        channels=cfg.capture.channels,
        activity_threshold=cfg.capture.activity_threshold,
        max_listen_s=cfg.capture.max_listen_s,
    )
    capture = SpeechCapture(
        engine, scheduler, silence_timeout_s=cfg.capture.silence_timeout_s
    )
    orchestrator = CommandOrchestrator(
        ContactStore(),
        capture,
        _resolution_service(cfg),
        SystemDialer() if dial else PrintDialer(),
        scheduler,
        auto_dial_delay_s=cfg.dial.auto_dial_delay_s,
    )
    orchestrator.on_status(print)
    orchestrator.on_notification(lambda n: print(f"[{n.title}] {n.description}"))
    _load_store(cfg, orchestrator)

    done = asyncio.Event()
    prompts = []

    async def _choose() -> None:
        options = orchestrator.candidates
        for idx, contact in enumerate(options, start=1):
            print(f"  {idx}. {contact.name} ({contact.phone})")
        try:
            answer = await loop.run_in_executor(
                None, input, f"Choose 1-{len(options)} (blank to cancel): "
            )
        except EOFError:
            answer = ""
        answer = answer.strip()
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            orchestrator.select(options[int(answer) - 1].id)
        else:
            orchestrator.dismiss()

    def _on_state(state: SessionState) -> None:
        if orchestrator.awaiting_choice:
            prompts.append(loop.create_task(_choose()))
        elif state in (SessionState.IDLE, SessionState.ERROR):
            done.set()

    orchestrator.on_state_change(_on_state)
    if not orchestrator.start():
        return 1
    await done.wait()
    failed = orchestrator.state is SessionState.ERROR
    orchestrator.acknowledge()
    orchestrator.close()
    return 1 if failed else 0


def main() -> int:
    parser = argparse.ArgumentParser(prog="voicedial")
    sub = parser.add_subparsers(dest="command")

    contacts_cmd = sub.add_parser("contacts")
    contacts_cmd.add_argument("--config", default=DEFAULT_CONFIG, help="Config.")

    resolve_cmd = sub.add_parser("resolve")
    resolve_cmd.add_argument("text", help='Spoken command, e.g. "call mom".')
    resolve_cmd.add_argument("--config", default=DEFAULT_CONFIG, help="Config.")

    listen_cmd = sub.add_parser("listen")
    listen_cmd.add_argument("--config", default=DEFAULT_CONFIG, help="Config.")
    listen_cmd.add_argument(
        "--no-dial",
        action="store_true",
        help="Print the number instead of handing it to the system dialer.",
    )

    spam_cmd = sub.add_parser("spam")
    spam_cmd.add_argument("number", help="Phone number to classify.")
    spam_cmd.add_argument("--config", default=DEFAULT_CONFIG, help="Config.")

    devices_cmd = sub.add_parser("devices")
    devices_cmd.add_argument("--match", help="Filter device names by substring.")

    config_cmd = sub.add_parser("config")
    config_cmd.add_argument("--path", default=DEFAULT_CONFIG, help="Output path.")

    args = parser.parse_args()

    cfg = Config()
    if getattr(args, "config", None):
        try:
            cfg = load_config(args.config)
        except ConfigError as exc:
            print(f"Config error: {exc}")
            return 2
    logger, _log_path = setup_logging(
        log_dir=cfg.log_dir,
        level=logging.DEBUG if cfg.debug_logging else logging.INFO,
        console=True,
    )

    if args.command == "contacts":
        try:
            store = _load_store(cfg)
        except (ContactsUnsupportedError, ContactsAccessError) as exc:
            print(f"Contacts error: {exc}")
            return 1
        for contact in store.all():
            print(f"[{contact.initials:>2}] {contact.name}: {contact.phone}")
        return 0

    if args.command == "resolve":
        try:
            store = _load_store(cfg)
            if store.is_empty():
                print("No contacts loaded.")
                return 1
            verdict = _resolution_service(cfg).resolve(args.text, store.names())
        except (ContactsUnsupportedError, ContactsAccessError) as exc:
            print(f"Contacts error: {exc}")
            return 1
        except ResolutionError as exc:
            print(f"Resolution failed: {exc}")
            return 1
        except Exception as exc:
            logger.exception("Resolve command failed")
            print(f"Error: {exc}")
            return 1
        print(f"{verdict.kind.value}: {', '.join(verdict.names) or '-'}")
        return 0

    if args.command == "listen":
        return asyncio.run(_listen(cfg, dial=not args.no_dial))

    if args.command == "spam":
        classifier = OpenAISpamClassifier(
            model=cfg.resolver.model,
            api_key=cfg.resolver.api_key,
            base_url=cfg.resolver.base_url,
            timeout_s=cfg.resolver.timeout_s,
        )
        try:
            result = classifier.classify(args.number)
        except ResolutionError as exc:
            print(f"Spam check failed: {exc}")
            return 1
        label = "spam" if result.is_spam else "not spam"
        print(f"{args.number}: {label}" + (f" ({result.reason})" if result.reason else ""))
        return 0

    if args.command == "devices":
        try:
            devices = list_input_devices()
        except CaptureError as exc:
            print(str(exc))
            return 1
        if args.match:
            devices = [
                d for d in devices if args.match.lower() in d.get("name", "").lower()
            ]
        for device in devices:
            name = device.get("name", "Unknown")
            index = device.get("index", "?")
            channels = device.get("max_input_channels", 0)
            print(f"[{index}] {name} (inputs: {channels})")
        return 0

    if args.command == "config":
        if os.path.exists(args.path):
            print(f"{args.path} already exists")
            return 1
        save_config(args.path, Config())
        print(f"Wrote {args.path}")
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
