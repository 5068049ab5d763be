# tests/integration/services/test_inbound_service.py
# -*- coding: utf-8 -*-
"""Integration tests for InboundService: routing, contact creation, dedup and fan-out."""
from datetime import datetime, timezone

import pytest

from chatdesk.database.models import (
    ContactModel, InboundMessageModel, MessageModel, ClientAssignmentModel, ChatroomModel
)
from chatdesk.services import inbound_service
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.services.inbound_service import InboundService
from chatdesk.services.line_service import LineService
from chatdesk.utils.exceptions import UnroutableDestination, ValidationError

from conftest import SUPPORT_NUMBER, CUSTOMER_NUMBER


def _count(session, model, **filters):
    return session.query(model).filter_by(**filters).count()


def test_support_scenario_creates_contact_and_mirrored_message(session, support):
    """
    GIVEN sender number +15550001 bound to chatroom "Support"
    WHEN an inbound {from: +15557777, to: +15550001, body: "Hi"} is resolved
    THEN a contact for +15557777 exists in Support and one inbound timeline message reads "Hi".
    """
    result = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Hi")
    session.commit()

    assert result.duplicate is False
    assert result.contact_created is True
    assert result.chatroom_id == support.chatroom.id

    contacts = session.query(ContactModel).filter_by(chatroom_id=support.chatroom.id, phone_number="+15557777").all()
    assert len(contacts) == 1
    assert contacts[0].last_message_preview == "Hi"

    assert _count(session, InboundMessageModel, from_address="+15557777") == 1
    mirrored = session.query(MessageModel).filter_by(direction='inbound').all()
    assert len(mirrored) == 1
    assert mirrored[0].body == "Hi"
    assert mirrored[0].status is None
    assert mirrored[0].is_read is False
    assert mirrored[0].contact_id == contacts[0].id
    assert mirrored[0].inbound_message_id == result.inbound_message.id


def test_repeated_inbound_reuses_single_contact(session, support):
    for text in ("one", "two", "three"):
        InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, text)
    session.commit()

    assert _count(session, ContactModel, chatroom_id=support.chatroom.id, phone_number="+15557777") == 1
    assert _count(session, InboundMessageModel, chatroom_id=support.chatroom.id) == 3
    assert _count(session, MessageModel, direction='inbound', chatroom_id=support.chatroom.id) == 3


def test_existing_contact_is_not_recreated(session, support):
    result = InboundService.resolve_inbound(CUSTOMER_NUMBER, SUPPORT_NUMBER, "Hello again")
    session.commit()

    assert result.contact_created is False
    assert result.contact.id == support.contact.id


def test_redelivery_with_same_provider_id_changes_nothing(session, support):
    first = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Hi", provider_message_id="SMdup1")
    session.commit()
    second = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Hi", provider_message_id="SMdup1")
    session.commit()

    assert first.duplicate is False
    assert second.duplicate is True
    assert second.inbound_message.id == first.inbound_message.id
    assert second.message.id == first.message.id
    assert _count(session, InboundMessageModel) == 1
    assert _count(session, MessageModel, direction='inbound') == 1


def test_unroutable_destination_creates_nothing(session, support):
    with pytest.raises(UnroutableDestination):
        InboundService.resolve_inbound("+15557777", "+19999999", "Hi")
    session.rollback()

    assert _count(session, ContactModel, phone_number="+15557777") == 0
    assert _count(session, InboundMessageModel) == 0
    assert _count(session, MessageModel) == 0


@pytest.mark.parametrize("from_address, to_address, body", [
    ("", SUPPORT_NUMBER, "Hi"),
    ("+15557777", "", "Hi"),
    ("+15557777", SUPPORT_NUMBER, "   "),
    (None, SUPPORT_NUMBER, "Hi"),
])
def test_missing_fields_are_rejected(session, support, from_address, to_address, body):
    with pytest.raises(ValidationError):
        InboundService.resolve_inbound(from_address, to_address, body)


def test_addresses_are_trimmed_before_matching(session, support):
    result = InboundService.resolve_inbound("  +15557777 ", f" {SUPPORT_NUMBER}  ", " Hi ")
    session.commit()

    assert result.chatroom_id == support.chatroom.id
    assert result.inbound_message.body == "Hi"
    assert result.contact.phone_number == "+15557777"


def test_duplicate_binding_prefers_active_chatroom(session, support):
    """An inactive chatroom sharing the sender number never wins over the active one."""
    ChatroomService.create_chatroom('Support archive', sender_number_id=support.sender.id, is_active=False)
    session.commit()

    result = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Which room?")
    session.commit()

    assert result.chatroom_id == support.chatroom.id


def _bind_directly(session, name, sender_number_id, created_at):
    """Bind a second active chatroom to a number, bypassing the admin uniqueness check."""
    chatroom = ChatroomModel(name=name, provider_type='sms', sender_number_id=sender_number_id,
                             is_active=True, created_at=created_at)
    session.add(chatroom)
    session.commit()
    return chatroom


def test_duplicate_binding_prefers_most_recently_created(session, support):
    older = _bind_directly(session, 'Support 2000', support.sender.id, datetime(2000, 1, 1, tzinfo=timezone.utc))
    newest = _bind_directly(session, 'Support 2099', support.sender.id, datetime(2099, 1, 1, tzinfo=timezone.utc))

    result = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Newest wins")
    session.commit()

    assert result.chatroom_id == newest.id
    assert result.chatroom_id not in (older.id, support.chatroom.id)


def test_duplicate_binding_with_equal_timestamps_prefers_highest_id(session, support):
    same_time = datetime(2099, 6, 1, tzinfo=timezone.utc)
    first = _bind_directly(session, 'Twin A', support.sender.id, same_time)
    second = _bind_directly(session, 'Twin B', support.sender.id, same_time)

    assert InboundService.resolve_chatroom(SUPPORT_NUMBER).id == max(first.id, second.id)


def test_failed_timeline_mirror_keeps_the_inbound_record(session, support, monkeypatch):
    """
    GIVEN a timeline write that violates a NOT NULL constraint
    WHEN an inbound message is resolved
    THEN the raw inbound record is still stored and the result carries no mirrored message.
    """
    real_model = inbound_service.MessageModel

    def broken_message(**kwargs):
        return real_model(**{**kwargs, 'body': None})

    monkeypatch.setattr(inbound_service, 'MessageModel', broken_message)

    result = InboundService.resolve_inbound("+15557777", SUPPORT_NUMBER, "Still stored", provider_message_id="SMmirror1")
    session.commit()

    assert result.message is None
    assert result.duplicate is False
    stored = session.query(InboundMessageModel).filter_by(provider_message_id="SMmirror1").one()
    assert stored.body == "Still stored"
    assert _count(session, MessageModel) == 0
    assert result.contact.last_message_preview == "Still stored"


def test_inbound_bumps_unread_on_line_threads(session, support, member):
    line = LineService.create_line(member.id, "+15553333", assigned_chatroom_id=support.chatroom.id)
    assignment, _ = LineService.find_or_create_assignment(line, support.contact)
    session.commit()

    InboundService.resolve_inbound(CUSTOMER_NUMBER, SUPPORT_NUMBER, "First")
    InboundService.resolve_inbound(CUSTOMER_NUMBER, SUPPORT_NUMBER, "Second")
    session.commit()

    refreshed = session.get(ClientAssignmentModel, assignment.id)
    assert refreshed.unread_count == 2
    assert refreshed.last_message_content == "Second"


def test_find_or_create_contact_is_idempotent(session, support):
    contact, created = InboundService.find_or_create_contact(support.chatroom.id, "+15556666")
    again, created_again = InboundService.find_or_create_contact(support.chatroom.id, "+15556666")
    session.commit()

    assert created is True
    assert created_again is False
    assert again.id == contact.id
