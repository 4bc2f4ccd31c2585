"""
Tests for conversation listing and message services
"""
import json
from datetime import date, datetime

import pytest

from chatly.models import Conversation, Message, SocialContact
from chatly.services.conversation_service import get_conversations
from chatly.services.errors import InvalidOperationError, NotFoundError
from chatly.services.message_service import get_messages, search_messages, send_message


@pytest.fixture
def conversation(db, tenant, make_contact):
    contact = make_contact("whatsapp", "Alessia")
    conv = Conversation(
        platform_client_id=tenant.id,
        social_contact_id=contact.id,
        channel="whatsapp",
        started_at=datetime(2025, 1, 1, 9, 0),
    )
    db.add(conv)
    db.commit()
    db.refresh(conv)
    return conv


def _add_messages(db, conv, texts, day=1):
    for n, text in enumerate(texts):
        db.add(
            Message(
                conversation_id=conv.id,
                social_contact_id=conv.social_contact_id,
                direction="inbound",
                sender_type="user",
                content_text=text,
                created_at=datetime(2025, 1, day, 10, n),
            )
        )
    db.commit()


def test_conversations_carry_only_their_latest_message(db, tenant, make_contact, conversation):
    _add_messages(db, conversation, ["ciao", "info sui prezzi?", "grazie"])
    other_contact = make_contact("whatsapp", "Bruno")
    newer = Conversation(
        platform_client_id=tenant.id,
        social_contact_id=other_contact.id,
        channel="whatsapp",
        started_at=datetime(2025, 1, 5, 9, 0),
    )
    ig = Conversation(
        platform_client_id=tenant.id,
        social_contact_id=other_contact.id,
        channel="instagram",
        started_at=datetime(2025, 1, 6, 9, 0),
    )
    db.add_all([newer, ig])
    db.commit()

    result = get_conversations(db, tenant.id, "whatsapp")

    assert [c.id for c in result] == [newer.id, conversation.id]
    assert result[0].messages == []
    assert [m.content_text for m in result[1].messages] == ["grazie"]
    assert result[1].social_contact.name == "Alessia"


def test_no_conversations(db, tenant):
    assert get_conversations(db, tenant.id, "messenger") == []


def test_messages_page_backwards_in_ascending_order(db, conversation):
    _add_messages(db, conversation, [f"m{n}" for n in range(6)])

    latest = get_messages(db, conversation.id, limit=4)
    assert [m.content_text for m in latest] == ["m2", "m3", "m4", "m5"]

    older = get_messages(db, conversation.id, limit=4, before=latest[0].created_at)
    assert [m.content_text for m in older] == ["m0", "m1"]


def test_messages_of_unknown_conversation(db):
    with pytest.raises(NotFoundError):
        get_messages(db, 12345)


def test_search_messages(db, conversation):
    _add_messages(db, conversation, ["Vorrei un PREVENTIVO", "sconto 20%", "ok"], day=3)
    _add_messages(db, conversation, ["altro preventivo"], day=8)

    assert [m.content_text for m in search_messages(db, conversation.id, "preventivo")] == [
        "Vorrei un PREVENTIVO",
        "altro preventivo",
    ]
    assert [m.content_text for m in search_messages(db, conversation.id, "20%")] == ["sconto 20%"]
    assert [
        m.content_text
        for m in search_messages(db, conversation.id, "preventivo", start_date=date(2025, 1, 4), end_date=date(2025, 1, 8))
    ] == ["altro preventivo"]


def test_send_message(db, tenant, conversation, published):
    message = send_message(db, conversation.id, "Ti richiamo domani")

    assert message.direction == "outbound"
    assert message.sender_type == "human_agent"
    assert message.social_contact_id == conversation.social_contact_id

    db.expire_all()
    assert db.get(SocialContact, conversation.social_contact_id).last_interaction is not None

    channel, payload = published.messages[-1]
    assert channel == f"realtime:messages:{tenant.id}"
    event = json.loads(payload)
    assert event["event"] == "INSERT"
    assert event["new"]["content_text"] == "Ti richiamo domani"


@pytest.mark.parametrize("content,sender", [("   ", "human_agent"), ("hello", "user"), ("hello", "robot")])
def test_send_message_rejects_bad_input(db, conversation, content, sender):
    with pytest.raises(InvalidOperationError):
        send_message(db, conversation.id, content, sender)
