import logging
from typing import Dict, List, Optional, Tuple

from common.constants import PREDEFINED_CONTACTS, TRUSTED_CONTACTS_KEY, USER_CONTACTS_KEY
from common.errors import (
    ContactNotFoundError,
    DuplicateContactError,
    PredefinedNumberError,
    SafeWordsError,
    StorageFailureError,
)
from common.storage import BaseStore
from models.contact import Contact, PredefinedContact, normalize_number

logger = logging.getLogger(__name__)


class ContactStore:
    """
    Trusted contacts: user-verified numbers plus the predefined emergency
    numbers the user switched on. Every number appears at most once, compared
    by normalized form.

    publish() freezes the current trusted numbers into the "active" list read
    by the dispatch pipeline, so later edits do not change what an emergency
    session messages until the list is published again.
    """

    def __init__(self, store: BaseStore, predefined: Optional[List[dict]] = None):
        self._store = store
        self._predefined = [
            PredefinedContact(**c) for c in (predefined if predefined is not None else PREDEFINED_CONTACTS)
        ]
        self._contacts: List[Contact] = []
        self._active: Optional[List[str]] = None

    # ========= Persistence =========

    async def load(self) -> List[Contact]:
        raw = await self._store.get_json(USER_CONTACTS_KEY, default=[])
        contacts: List[Contact] = []
        for item in raw or []:
            # Older builds stored bare number strings
            if isinstance(item, str):
                if item.strip():
                    contacts.append(
                        Contact(name=f"Contact {len(contacts) + 1}", number=item.strip(), verified=True)
                    )
                continue
            try:
                contacts.append(Contact.model_validate(item))
            except ValueError:
                logger.warning("Skipping malformed stored contact: %r", item)
        self._contacts = contacts
        return self.contacts()

    async def _save(self) -> None:
        try:
            await self._store.set_json(
                USER_CONTACTS_KEY, [c.model_dump() for c in self._contacts]
            )
        except StorageFailureError:
            logger.exception("Failed to save contacts")

    # ========= Queries =========

    def contacts(self) -> List[Contact]:
        return list(self._contacts)

    def predefined(self) -> List[PredefinedContact]:
        return list(self._predefined)

    def get(self, index: int) -> Contact:
        if index < 0 or index >= len(self._contacts):
            raise ContactNotFoundError(index)
        return self._contacts[index]

    def index_of(self, number: str) -> Optional[int]:
        key = normalize_number(number)
        for i, contact in enumerate(self._contacts):
            if contact.key == key:
                return i
        return None

    def _predefined_keys(self) -> Dict[str, PredefinedContact]:
        return {normalize_number(p.number): p for p in self._predefined}

    def is_predefined_enabled(self, contact: PredefinedContact) -> bool:
        key = normalize_number(contact.number)
        return any(c.key == key for c in self._contacts)

    def user_contacts(self) -> List[Tuple[int, Contact]]:
        """User-added contacts with their store index, predefined numbers excluded."""
        predefined = self._predefined_keys()
        return [(i, c) for i, c in enumerate(self._contacts) if c.key not in predefined]

    def trusted_numbers(self) -> List[str]:
        seen = set()
        numbers = []
        for contact in self._contacts:
            key = contact.key
            if not key or key in seen:
                continue
            seen.add(key)
            numbers.append(key)
        return numbers

    # ========= Mutations =========

    async def add_or_update(self, contact: Contact, index: Optional[int] = None) -> Contact:
        """Insert a verified contact, or replace the one at index."""
        if index is not None:
            self.get(index)

        contact = Contact(name=contact.name, number=contact.number.strip(), verified=True)
        if not contact.key:
            raise SafeWordsError(
                "Please enter a phone number", status_code=400, error_code="EMPTY_NUMBER"
            )
        if contact.key in self._predefined_keys():
            raise PredefinedNumberError(contact.number)

        for i, existing in enumerate(self._contacts):
            if i != index and existing.key == contact.key:
                raise DuplicateContactError(contact.number)

        if index is None:
            self._contacts.append(contact)
        else:
            self._contacts[index] = contact
        await self._save()
        return contact

    async def remove(self, index: int) -> Contact:
        removed = self.get(index)
        del self._contacts[index]
        await self._save()
        return removed

    async def toggle(self, contact: PredefinedContact) -> bool:
        """
        Switch a predefined number on or off.

        Returns:
            True if the number is enabled afterwards
        """
        key = normalize_number(contact.number)
        predefined = self._predefined_keys().get(key)
        if predefined is None:
            raise SafeWordsError(
                f"{contact.number} is not a predefined emergency number",
                status_code=400,
                error_code="NOT_PREDEFINED",
            )

        if self.is_predefined_enabled(predefined):
            self._contacts = [c for c in self._contacts if c.key != key]
            enabled = False
        else:
            self._contacts.append(
                Contact(name=predefined.name, number=predefined.number, verified=True)
            )
            enabled = True
        await self._save()
        return enabled

    async def publish(self) -> List[str]:
        """Snapshot trusted numbers into the active list used by dispatch."""
        numbers = self.trusted_numbers()
        self._active = list(numbers)
        try:
            await self._store.set_json(TRUSTED_CONTACTS_KEY, numbers)
        except StorageFailureError:
            # The in-memory snapshot still serves the current session
            logger.exception("Failed to persist published contacts")
        logger.info("Published %d trusted contacts", len(numbers))
        return numbers

    async def active_numbers(self) -> List[str]:
        """Last published snapshot."""
        if self._active is not None:
            return list(self._active)
        try:
            raw = await self._store.get_json(TRUSTED_CONTACTS_KEY, default=[])
        except StorageFailureError:
            logger.exception("Failed to read published contacts")
            return []
        numbers = [
            normalize_number(n if isinstance(n, str) else n.get("number", ""))
            for n in raw or []
        ]
        return [n for n in dict.fromkeys(numbers) if n]
