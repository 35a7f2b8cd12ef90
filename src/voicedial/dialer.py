"""Hand-off of a phone number to the platform dialer."""

from __future__ import annotations

import logging
import re
import webbrowser
from typing import Protocol

logger = logging.getLogger("voicedial")


def tel_uri(phone: str) -> str:
    digits = re.sub(r"[^\d+*#]", "", phone or "")
    return f"tel:{digits}"


class Dialer(Protocol):
    def dial(self, phone: str) -> None:
        ...


class SystemDialer:
    """Opens a ``tel:`` URI with whatever handler the OS has registered."""

    def dial(self, phone: str) -> None:
        uri = tel_uri(phone)
        logger.info("Dialing %s", uri)
        try:
            opened = webbrowser.open(uri)
        except webbrowser.Error as exc:
            logger.warning("Dial hand-off failed for %s: %s", uri, exc)
            return
        if not opened:
            logger.warning("No handler accepted %s", uri)


class PrintDialer:
    def dial(self, phone: str) -> None:
        print(f"Dial: {tel_uri(phone)}")
