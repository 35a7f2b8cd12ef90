from voicedial import dialer
from voicedial.dialer import SystemDialer, tel_uri


def test_tel_uri_keeps_dialable_characters():
    assert tel_uri("(234) 567-8901") == "tel:2345678901"
    assert tel_uri("+1 555 010*9#") == "tel:+1555010*9#"


def test_system_dialer_opens_tel_uri(monkeypatch):
    opened = []
    monkeypatch.setattr(dialer.webbrowser, "open", lambda uri: opened.append(uri) or True)
    SystemDialer().dial("123-456-7890")
    assert opened == ["tel:1234567890"]
