"""
Tests for lead listing, link-candidate search and lead edits
"""
from datetime import date, datetime

import pytest

from chatly.schemas import ContactFilters
from chatly.services.contact_service import (
    escape_like,
    get_contacts,
    link_contacts,
    search_contacts_for_linking,
    update_contact,
)
from chatly.services.errors import InvalidOperationError, NotFoundError


def _ids(contacts):
    return [c.id for c in contacts]


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
    assert escape_like("plain") == "plain"


class TestSearchContactsForLinking:

    def test_case_insensitive_match_on_name_or_display_name(self, db, tenant, make_contact):
        by_name = make_contact("whatsapp", "Francesca Bianchi", display_name="Fra")
        by_display = make_contact("instagram", None, display_name="FRANCESCA.fit")
        make_contact("messenger", "Giorgio")

        found = search_contacts_for_linking(db, tenant.id, "francesca")

        assert set(_ids(found)) == {by_name.id, by_display.id}

    def test_excludes_the_contact_being_linked(self, db, tenant, make_contact):
        current = make_contact("whatsapp", "Mario")
        other = make_contact("instagram", "Mario R")

        found = search_contacts_for_linking(db, tenant.id, "mario", exclude_contact_id=current.id)

        assert _ids(found) == [other.id]

    def test_returns_at_most_ten_rows(self, db, tenant, make_contact):
        for n in range(15):
            make_contact("whatsapp", f"Lead {n}")

        assert len(search_contacts_for_linking(db, tenant.id, "lead")) == 10
        assert len(search_contacts_for_linking(db, tenant.id, "lead", limit=50)) == 10
        assert len(search_contacts_for_linking(db, tenant.id, "lead", limit=3)) == 3

    def test_wildcards_match_literally(self, db, tenant, make_contact):
        literal = make_contact("whatsapp", "promo_100%")
        make_contact("instagram", "promoX100 discount")

        assert _ids(search_contacts_for_linking(db, tenant.id, "o_1")) == [literal.id]
        assert _ids(search_contacts_for_linking(db, tenant.id, "100%")) == [literal.id]
        assert search_contacts_for_linking(db, tenant.id, "%discount") == []

    def test_scoped_to_tenant(self, db, tenant, other_tenant, make_contact):
        make_contact("whatsapp", "Chiara", platform_client=other_tenant)
        ours = make_contact("instagram", "Chiara")

        assert _ids(search_contacts_for_linking(db, tenant.id, "chiara")) == [ours.id]


class TestGetContacts:

    def test_lists_masters_by_last_interaction(self, db, tenant, make_contact):
        old = make_contact("whatsapp", "Old", last_interaction=datetime(2025, 2, 1))
        recent = make_contact("instagram", "Recent", last_interaction=datetime(2025, 3, 1))
        silent = make_contact("messenger", "Silent")
        child = make_contact("instagram", "Old on IG")
        link_contacts(db, child.id, old.id)

        contacts = get_contacts(db, ContactFilters(platform_client_id=tenant.id))

        assert _ids(contacts) == [recent.id, old.id, silent.id]

    def test_channel_filter_matches_through_linked_contacts(self, db, tenant, make_contact):
        wa_master = make_contact("whatsapp", "Tommaso")
        ig_child = make_contact("instagram", "tommy")
        link_contacts(db, ig_child.id, wa_master.id)
        ig_master = make_contact("instagram", "Bea")
        make_contact("messenger", "Carlo")

        contacts = get_contacts(db, ContactFilters(platform_client_id=tenant.id, channels=["instagram"]))

        assert set(_ids(contacts)) == {wa_master.id, ig_master.id}

    def test_channel_filter_without_matches(self, db, tenant, make_contact):
        make_contact("whatsapp", "Only WA")

        assert get_contacts(db, ContactFilters(platform_client_id=tenant.id, channels=["messenger"])) == []

    def test_date_range_is_inclusive_by_day(self, db, tenant, make_contact):
        make_contact("whatsapp", "Before", first_contact=datetime(2025, 1, 9, 23, 59))
        first_day = make_contact("whatsapp", "First day", first_contact=datetime(2025, 1, 10, 0, 0))
        last_day = make_contact("whatsapp", "Last day", first_contact=datetime(2025, 1, 20, 23, 30))
        make_contact("whatsapp", "After", first_contact=datetime(2025, 1, 21, 0, 1))

        contacts = get_contacts(
            db,
            ContactFilters(platform_client_id=tenant.id, start_date=date(2025, 1, 10), end_date=date(2025, 1, 20)),
        )

        assert set(_ids(contacts)) == {first_day.id, last_day.id}

    def test_search_query(self, db, tenant, make_contact):
        hit = make_contact("whatsapp", "Valentina")
        make_contact("whatsapp", "Roberto")

        contacts = get_contacts(db, ContactFilters(platform_client_id=tenant.id, search_query="  valen "))

        assert _ids(contacts) == [hit.id]


class TestUpdateContact:

    def test_updates_lead_fields(self, db, tenant, make_contact, published):
        contact = make_contact("whatsapp", "Irene")

        updated = update_contact(
            db,
            contact.id,
            {"qualification_status": "qualified", "lead_score": 80, "goal": {"target": "weight loss"}},
            platform_client_id=tenant.id,
        )

        assert updated.qualification_status == "qualified"
        assert updated.lead_score == 80
        assert updated.goal == {"target": "weight loss"}
        assert len(published.messages) == 1

    def test_grouping_fields_are_not_editable(self, db, make_contact):
        a = make_contact("whatsapp", "A")
        b = make_contact("instagram", "B")

        with pytest.raises(InvalidOperationError):
            update_contact(db, a.id, {"master_contact_id": b.id})

    def test_unknown_contact(self, db):
        with pytest.raises(NotFoundError):
            update_contact(db, 4242, {"name": "Ghost"})

    def test_empty_update_publishes_nothing(self, db, tenant, make_contact, published):
        contact = make_contact("whatsapp", "Irene")

        unchanged = update_contact(db, contact.id, {}, platform_client_id=tenant.id)

        assert unchanged.id == contact.id
        assert unchanged.name == "Irene"
        assert published.messages == []
