# tests/integration/services/test_access_service.py
# -*- coding: utf-8 -*-
"""Integration tests for chatroom and line access checks."""
import pytest

from chatdesk.database.models import MessageModel
from chatdesk.services.access_service import AccessService
from chatdesk.services.chatroom_service import ChatroomService
from chatdesk.services.line_service import LineService
from chatdesk.utils.exceptions import AccessDenied


def test_assigned_user_may_access_chatroom(session, support, member):
    assert AccessService.can_access_chatroom(member, support.chatroom.id) is True
    AccessService.require_chatroom(member, support.chatroom.id)


def test_unassigned_user_is_denied(session, support, make_user):
    outsider = make_user()
    assert AccessService.can_access_chatroom(outsider, support.chatroom.id) is False
    with pytest.raises(AccessDenied):
        AccessService.require_chatroom(outsider, support.chatroom.id)


def test_admin_bypasses_assignment(session, support, admin_user):
    assert AccessService.can_access_chatroom(admin_user, support.chatroom.id) is True


def test_unassigning_revokes_access(session, support, member):
    ChatroomService.unassign_user(support.chatroom.id, member.id)
    session.commit()

    assert AccessService.can_access_chatroom(member, support.chatroom.id) is False


def test_line_is_usable_by_owner_only(session, support, member, make_user, admin_user):
    line = LineService.create_line(member.id, "+15553333", assigned_chatroom_id=support.chatroom.id)
    session.commit()
    other = make_user()

    assert AccessService.can_use_line(member, line) is True
    assert AccessService.can_use_line(admin_user, line) is True
    assert AccessService.can_use_line(other, line) is False
    with pytest.raises(AccessDenied):
        AccessService.require_line(other, line)


def test_scope_to_accessible_hides_foreign_chatrooms(session, support, make_user, admin_user):
    other_room = ChatroomService.create_chatroom('Billing')
    session.add_all([
        MessageModel(direction='inbound', from_address='+1', to_address='+2', body='support',
                     chatroom_id=support.chatroom.id, is_read=False),
        MessageModel(direction='inbound', from_address='+1', to_address='+3', body='billing',
                     chatroom_id=other_room.id, is_read=False),
    ])
    outsider = make_user()
    ChatroomService.assign_users(other_room.id, [outsider.id])
    session.commit()

    base = session.query(MessageModel)
    visible = AccessService.scope_to_accessible(base, outsider, MessageModel.chatroom_id).all()
    assert [m.body for m in visible] == ['billing']
    assert AccessService.scope_to_accessible(base, admin_user, MessageModel.chatroom_id).count() == 2
    assert AccessService.accessible_chatroom_ids(outsider) == [other_room.id]
