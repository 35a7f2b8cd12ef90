import pytest

from voicedial.errors import CaptureError
from voicedial.models import CaptureErrorKind
from voicedial.recorder import select_preferred_device


def test_select_preferred_device_prefers_name():
    candidates = [
        {"name": "Built-in Mic", "index": 1},
        {"name": "USB Headset Microphone", "index": 2},
    ]
    result = select_preferred_device(candidates, prefer_name="headset")
    assert result["name"] == "USB Headset Microphone"


def test_select_preferred_device_falls_back_to_first():
    candidates = [
        {"name": "Built-in Mic", "index": 1},
        {"name": "USB Headset Microphone", "index": 2},
    ]
    assert select_preferred_device(candidates, prefer_name="webcam")["index"] == 1
    assert select_preferred_device(candidates)["index"] == 1


def test_no_devices_is_unsupported():
    with pytest.raises(CaptureError) as info:
        select_preferred_device([])
    assert info.value.kind is CaptureErrorKind.UNSUPPORTED
