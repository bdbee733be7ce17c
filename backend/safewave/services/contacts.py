"""
SafeWave - Contact Store

Persisted list of emergency contacts. The alert core only reads the
current list; add/remove/clear exist for the contacts API.

Implementations:
    - InMemoryContactStore: Process-lifetime list (default)
    - JsonFileContactStore: JSON file, same shape as the browser's
      ``safe_contacts`` key
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import abstractmethod
from pathlib import Path
from typing import List, Protocol, runtime_checkable

from safewave.config import Settings
from safewave.core.exceptions import ConfigurationError, InvalidContactError, InvalidPhoneNumberError
from safewave.core.types import Contact
from safewave.telephony.privacy import is_valid_contact_phone, strip_whitespace

logger = logging.getLogger(__name__)


def validate_contact(contact: Contact) -> Contact:
    """
    Validate and normalize a contact for entry.

    Rules:
        - name is required
        - at least one of email/phone
        - phone, if present, must be ``+?`` followed by 7-15 digits
          (whitespace is stripped)

    Returns:
        Normalized contact (trimmed fields, whitespace-free phone)

    Raises:
        InvalidContactError: Missing name or no channel
        InvalidPhoneNumberError: Phone fails the format rule
    """
    name = (contact.name or "").strip()
    email = (contact.email or "").strip() or None
    phone = strip_whitespace(contact.phone) if contact.phone else None

    if not name:
        raise InvalidContactError("Contact name is required")
    if not email and not phone:
        raise InvalidContactError("Contact needs an email or a phone number")
    if phone and not is_valid_contact_phone(phone):
        raise InvalidPhoneNumberError(
            "Please enter a valid phone number with country code (e.g. +919876543210)"
        )

    return Contact(name=name, email=email, phone=phone)


# =============================================================================
# Protocol
# =============================================================================

@runtime_checkable
class ContactStore(Protocol):
    """Protocol for contact storage."""

    @abstractmethod
    async def list_contacts(self) -> List[Contact]:
        """Current contacts in entry order."""
        ...

    @abstractmethod
    async def add_contact(self, contact: Contact) -> Contact:
        """Validate and append a contact."""
        ...

    @abstractmethod
    async def remove_contact(self, index: int) -> Contact:
        """Remove the contact at ``index``."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every contact."""
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================

class InMemoryContactStore:
    """Contacts held for the lifetime of the process."""

    def __init__(self, contacts: List[Contact] | None = None):
        # Seeded contacts are not validated
        self._contacts: List[Contact] = list(contacts or [])
        self._lock = asyncio.Lock()

    async def list_contacts(self) -> List[Contact]:
        async with self._lock:
            return list(self._contacts)

    async def add_contact(self, contact: Contact) -> Contact:
        contact = validate_contact(contact)
        async with self._lock:
            self._contacts.append(contact)
        logger.info("Contact added: %s", contact.name)
        return contact

    async def remove_contact(self, index: int) -> Contact:
        async with self._lock:
            if not 0 <= index < len(self._contacts):
                raise IndexError(f"No contact at index {index}")
            removed = self._contacts.pop(index)
        logger.info("Contact removed: %s", removed.name)
        return removed

    async def clear(self) -> None:
        async with self._lock:
            self._contacts.clear()
        logger.info("Contacts cleared")


# =============================================================================
# JSON File Implementation
# =============================================================================

class JsonFileContactStore(InMemoryContactStore):
    """
    Contacts persisted to a JSON array file.

    The file is read once at construction and rewritten after each change.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[Contact]:
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Could not read contacts file {self._path}: {e}") from e
        if not isinstance(raw, list):
            raise ConfigurationError(f"Contacts file {self._path} must hold a JSON array")
        return [Contact.from_dict(item) for item in raw if isinstance(item, dict)]

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = [c.to_dict() for c in self._contacts]
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    async def add_contact(self, contact: Contact) -> Contact:
        contact = await super().add_contact(contact)
        async with self._lock:
            self._save()
        return contact

    async def remove_contact(self, index: int) -> Contact:
        removed = await super().remove_contact(index)
        async with self._lock:
            self._save()
        return removed

    async def clear(self) -> None:
        await super().clear()
        async with self._lock:
            self._save()


def create_contact_store(settings: Settings) -> ContactStore:
    """JSON file store when ``contacts_path`` is set, otherwise in-memory."""
    if settings.contacts_path:
        logger.info("Using JsonFileContactStore (%s)", settings.contacts_path)
        return JsonFileContactStore(settings.contacts_path)
    return InMemoryContactStore()
