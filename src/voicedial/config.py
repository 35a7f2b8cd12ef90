"""Configuration handling."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
import yaml

from .errors import ConfigError


@dataclass
class CaptureConfig:
    language: Optional[str] = "en"
    whisper_model: str = "tiny"
    device_name: Optional[str] = None
    sample_rate_hz: int = 16000
    channels: int = 1
    silence_timeout_s: float = 2.0
    activity_threshold: float = 0.02
    max_listen_s: float = 10.0


@dataclass
class ResolverConfig:
    backend: str = "fuzzy"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout_s: float = 15.0
    fuzzy_cutoff: float = 0.8


@dataclass
class DialConfig:
    auto_dial_delay_s: float = 1.5


@dataclass
class Config:
    contacts_path: Optional[str] = None
    log_dir: str = "logs"
    debug_logging: bool = False
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    dial: DialConfig = field(default_factory=DialConfig)


def load_config(path: str) -> Config:
    if not os.path.exists(path):
        return Config()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a mapping.")

    try:
        capture = CaptureConfig(**(data.get("capture") or {}))
        resolver = ResolverConfig(**(data.get("resolver") or {}))
        dial = DialConfig(**(data.get("dial") or {}))
    except TypeError as exc:
        raise ConfigError(f"Unknown config key in {path}: {exc}") from exc

    return Config(
        contacts_path=data.get("contacts_path"),
        log_dir=data.get("log_dir", "logs"),
        debug_logging=bool(data.get("debug_logging", False)),
        capture=capture,
        resolver=resolver,
        dial=dial,
    )


def save_config(path: str, config: Config) -> None:
    data = {
        "contacts_path": config.contacts_path,
        "log_dir": config.log_dir,
        "debug_logging": config.debug_logging,
        "capture": {
            "language": config.capture.language,
            "whisper_model": config.capture.whisper_model,
            "device_name": config.capture.device_name,
            "sample_rate_hz": config.capture.sample_rate_hz,
            "channels": config.capture.channels,
            "silence_timeout_s": config.capture.silence_timeout_s,
            "activity_threshold": config.capture.activity_threshold,
            "max_listen_s": config.capture.max_listen_s,
        },
        "resolver": {
            "backend": config.resolver.backend,
            "model": config.resolver.model,
            "api_key": config.resolver.api_key,
            "base_url": config.resolver.base_url,
            "timeout_s": config.resolver.timeout_s,
            "fuzzy_cutoff": config.resolver.fuzzy_cutoff,
        },
        "dial": {
            "auto_dial_delay_s": config.dial.auto_dial_delay_s,
        },
    }
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
