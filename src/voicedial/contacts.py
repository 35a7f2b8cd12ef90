"""Contact store and contact acquisition."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import yaml

from .errors import ContactsAccessError, ContactsUnsupportedError
from .models import CallDirection, CallRecord, Contact

logger = logging.getLogger("voicedial")

NO_NAME = "No Name"


def make_initials(name: str) -> str:
    words = (name or "").split()
    return "".join(word[0] for word in words).upper()


def _first(value: Any) -> str:
    # Picker exports may hold several names/numbers per contact.
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    return str(value).strip() if value is not None else ""


def contacts_from_entries(entries: Iterable[Dict[str, Any]]) -> List[Contact]:
    contacts: List[Contact] = []
    for index, entry in enumerate(entries):
        name = _first(entry.get("name")) or NO_NAME
        phone = _first(entry.get("phone", entry.get("tel")))
        contacts.append(
            Contact(
                id=f"contact-{index}",
                name=name,
                phone=phone,
                initials=make_initials(name) or "NN",
                image=entry.get("image"),
            )
        )
    return contacts


FALLBACK_CONTACTS: Tuple[Contact, ...] = (
    Contact(id="1", name="Mom", phone="123-456-7890", initials="M"),
    Contact(id="2", name="John Smith", phone="234-567-8901", initials="JS"),
    Contact(id="3", name="Jane Doe", phone="345-678-9012", initials="JD"),
    Contact(id="4", name="Dr. Anya Sharma", phone="456-789-0123", initials="AS"),
)


class ContactStore:
    """In-memory contacts and call history for one session."""

    def __init__(self, contacts: Optional[Sequence[Contact]] = None) -> None:
        self._contacts: List[Contact] = list(contacts or [])
        self._history: List[CallRecord] = []

    def load(self, contacts: Sequence[Contact]) -> None:
        self._contacts = list(contacts)
        logger.info("Loaded %s contacts", len(self._contacts))

    def all(self) -> Tuple[Contact, ...]:
        return tuple(self._contacts)

    def is_empty(self) -> bool:
        return not self._contacts

    def names(self) -> List[str]:
        return [contact.name for contact in self._contacts]

    def get(self, contact_id: str) -> Optional[Contact]:
        for contact in self._contacts:
            if contact.id == contact_id:
                return contact
        return None

    def find_by_name(self, name: str) -> Optional[Contact]:
        for contact in self._contacts:
            if contact.name == name:
                return contact
        return None

    def record_call(
        self,
        contact: Contact,
        direction: CallDirection = CallDirection.OUTGOING,
        when: datetime | None = None,
    ) -> CallRecord:
        stamp = (when or datetime.now()).strftime("%Y-%m-%d %H:%M")
        record = CallRecord(
            id=f"call-{len(self._history) + 1}",
            contact=contact,
            direction=direction,
            timestamp=stamp,
        )
        self._history.append(record)
        return record

    def history(self) -> Tuple[CallRecord, ...]:
        return tuple(self._history)


class ContactPicker(Protocol):
    def supported(self) -> bool:
        ...

    def select(self) -> List[Dict[str, Any]]:
        ...


class FileContactPicker:
    """Reads an exported address book (YAML list of name/phone entries)."""

    def __init__(self, path: Optional[str]) -> None:
        self.path = path

    def supported(self) -> bool:
        return bool(self.path)

    def select(self) -> List[Dict[str, Any]]:
        if not self.supported():
            raise ContactsUnsupportedError("No contacts source configured.")
        path = os.path.expanduser(str(self.path))
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or []
        except (OSError, yaml.YAMLError) as exc:
            raise ContactsAccessError(f"Failed to read contacts: {exc}") from exc

        if isinstance(data, dict):
            data = data.get("contacts", [])
        if not isinstance(data, list):
            raise ContactsAccessError("Contacts file must hold a list of entries.")
        return [entry for entry in data if isinstance(entry, dict)]


def acquire_contacts(picker: ContactPicker) -> List[Contact]:
    if not picker.supported():
        raise ContactsUnsupportedError("Contact picking is not supported.")
    return contacts_from_entries(picker.select())
