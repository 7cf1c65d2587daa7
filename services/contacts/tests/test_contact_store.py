# pytest services/contacts/tests/test_contact_store.py -q

import pytest

from common.constants import TRUSTED_CONTACTS_KEY, USER_CONTACTS_KEY
from common.errors import (
    ContactNotFoundError,
    DuplicateContactError,
    PredefinedNumberError,
    SafeWordsError,
)
from common.storage import MemoryStore
from models.contact import Contact, PredefinedContact, format_number, normalize_number
from services.contacts.store import ContactStore

POLICE = PredefinedContact(name="🚓 Police", number="107")
AMBULANCE = PredefinedContact(name="🚑 Ambulance", number="104")


def test_normalize_number_strips_separators():
    assert normalize_number(" (555) 123-4567 ") == "5551234567"
    assert normalize_number("+353 86.123 4567") == "+353861234567"
    assert normalize_number("++1 555") == "+1555"
    assert normalize_number(None) == ""


def test_format_number():
    assert format_number("5551234567") == "(555) 123-4567"
    assert format_number("+353861234567") == "+353861234567"


@pytest.mark.asyncio
async def test_add_persists_verified_contact(contacts, store):
    await contacts.add_or_update(Contact(name="Mum", number=" 555-123-4567 "))

    saved = await store.get_json(USER_CONTACTS_KEY)
    assert saved == [{"name": "Mum", "number": "555-123-4567", "verified": True}]
    assert contacts.trusted_numbers() == ["5551234567"]


@pytest.mark.asyncio
async def test_duplicate_normalized_number_rejected(contacts):
    await contacts.add_or_update(Contact(name="Mum", number="555 123 4567"))

    with pytest.raises(DuplicateContactError):
        await contacts.add_or_update(Contact(name="Also Mum", number="(555) 123-4567"))
    assert len(contacts.contacts()) == 1


@pytest.mark.asyncio
async def test_update_in_place_may_keep_same_number(contacts):
    await contacts.add_or_update(Contact(name="Mum", number="5551234567"))
    await contacts.add_or_update(Contact(name="Mother", number="555-123-4567"), index=0)

    assert [c.name for c in contacts.contacts()] == ["Mother"]


@pytest.mark.asyncio
async def test_update_cannot_take_another_contacts_number(contacts):
    await contacts.add_or_update(Contact(name="A", number="111"))
    await contacts.add_or_update(Contact(name="B", number="222"))

    with pytest.raises(DuplicateContactError):
        await contacts.add_or_update(Contact(name="B", number="111"), index=1)


@pytest.mark.asyncio
async def test_empty_number_rejected(contacts):
    with pytest.raises(SafeWordsError) as exc:
        await contacts.add_or_update(Contact(name="Nobody", number="   "))
    assert exc.value.error_code == "EMPTY_NUMBER"


@pytest.mark.asyncio
async def test_index_out_of_range(contacts):
    with pytest.raises(ContactNotFoundError):
        await contacts.remove(0)
    with pytest.raises(ContactNotFoundError):
        await contacts.add_or_update(Contact(name="X", number="999"), index=3)


@pytest.mark.asyncio
async def test_toggle_predefined_on_and_off(contacts):
    assert await contacts.toggle(POLICE) is True
    assert contacts.is_predefined_enabled(POLICE)
    assert contacts.trusted_numbers() == ["107"]
    # Predefined numbers do not show up as user contacts
    assert contacts.user_contacts() == []

    assert await contacts.toggle(POLICE) is False
    assert contacts.trusted_numbers() == []


@pytest.mark.asyncio
async def test_toggle_rejects_non_predefined_number(contacts):
    with pytest.raises(SafeWordsError) as exc:
        await contacts.toggle(PredefinedContact(name="Pizza", number="5550000"))
    assert exc.value.error_code == "NOT_PREDEFINED"


@pytest.mark.asyncio
async def test_predefined_numbers_cannot_be_added_as_user_contacts(contacts):
    with pytest.raises(PredefinedNumberError):
        await contacts.add_or_update(Contact(name="Ambulance", number="104"))

    await contacts.toggle(AMBULANCE)
    with pytest.raises(PredefinedNumberError):
        await contacts.add_or_update(Contact(name="Ambulance", number=" 1-0-4 "))

    # Switching the emergency number off leaves nothing behind
    await contacts.toggle(AMBULANCE)
    assert contacts.contacts() == []


@pytest.mark.asyncio
async def test_index_of_uses_normalized_number(contacts):
    await contacts.add_or_update(Contact(name="A", number="111"))
    await contacts.add_or_update(Contact(name="B", number="555 123 4567"))

    assert contacts.index_of("(555) 123-4567") == 1
    assert contacts.index_of("999") is None


@pytest.mark.asyncio
async def test_trusted_numbers_never_duplicate_under_mixed_edits(contacts):
    await contacts.add_or_update(Contact(name="A", number="111"))
    await contacts.toggle(POLICE)
    await contacts.add_or_update(Contact(name="B", number="222"))
    await contacts.remove(0)
    await contacts.toggle(AMBULANCE)
    await contacts.toggle(POLICE)
    await contacts.add_or_update(Contact(name="A", number="1-1-1"))
    await contacts.toggle(POLICE)

    numbers = contacts.trusted_numbers()
    assert len(numbers) == len(set(numbers))
    assert set(numbers) == {"222", "104", "111", "107"}


@pytest.mark.asyncio
async def test_publish_snapshots_active_list(contacts, store):
    await contacts.add_or_update(Contact(name="A", number="111"))
    numbers = await contacts.publish()

    assert numbers == ["111"]
    assert await store.get_json(TRUSTED_CONTACTS_KEY) == ["111"]

    # Later edits do not reach the active list until published again
    await contacts.add_or_update(Contact(name="B", number="222"))
    assert await contacts.active_numbers() == ["111"]
    await contacts.publish()
    assert await contacts.active_numbers() == ["111", "222"]


@pytest.mark.asyncio
async def test_load_lifts_legacy_string_entries():
    store = MemoryStore(
        {
            USER_CONTACTS_KEY: [
                "555 123 4567",
                {"name": "Dad", "number": "222", "verified": True},
                {"bogus": True},
            ]
        }
    )
    contacts = ContactStore(store)
    loaded = await contacts.load()

    assert [c.name for c in loaded] == ["Contact 1", "Dad"]
    assert all(c.verified for c in loaded)


@pytest.mark.asyncio
async def test_active_numbers_read_from_storage_after_restart(store):
    await store.set_json(TRUSTED_CONTACTS_KEY, ["111", "1 1 1", {"number": "222"}, ""])
    contacts = ContactStore(store)

    assert await contacts.active_numbers() == ["111", "222"]
