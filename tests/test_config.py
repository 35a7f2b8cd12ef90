import os
import tempfile

import pytest

from voicedial.config import Config, load_config, save_config
from voicedial.errors import ConfigError


def test_save_and_load_config_roundtrip():
    cfg = Config(contacts_path="~/contacts.yml")
    cfg.resolver.backend = "openai"
    cfg.capture.silence_timeout_s = 1.25

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "voicedial_config.yml")
        save_config(path, cfg)
        loaded = load_config(path)

    assert loaded.contacts_path == "~/contacts.yml"
    assert loaded.resolver.backend == "openai"
    assert loaded.capture.silence_timeout_s == 1.25
    assert loaded.dial.auto_dial_delay_s == 1.5


def test_missing_config_gives_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yml"))
    assert cfg.capture.silence_timeout_s == 2.0
    assert cfg.resolver.backend == "fuzzy"


def test_unknown_key_is_config_error(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("capture:\n  volume: 11\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_malformed_yaml_is_config_error(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("capture: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_empty_sections_fall_back_to_defaults(tmp_path):
    path = tmp_path / "sparse.yml"
    path.write_text("capture:\nresolver:\n  backend: openai\ndial:\n", encoding="utf-8")
    cfg = load_config(str(path))
    assert cfg.capture.silence_timeout_s == 2.0
    assert cfg.resolver.backend == "openai"
    assert cfg.dial.auto_dial_delay_s == 1.5
