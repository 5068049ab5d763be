# tests/integration/services/test_resource_pool_service.py
# -*- coding: utf-8 -*-
"""Integration tests for the resource pool: admin assignment and user imports."""
import pytest

from chatdesk.database.models import ContactModel, ClientAssignmentModel, ResourcePoolModel
from chatdesk.services.line_service import LineService
from chatdesk.services.resource_pool_service import ResourcePoolService
from chatdesk.utils.exceptions import AccessDenied, ConflictError, ValidationError, ResourceNotFound

from conftest import CUSTOMER_NUMBER


@pytest.fixture
def pool(session):
    entries = ResourcePoolService.add_entries([
        {'phone_number': '+15554001', 'first_name': 'Ada', 'tags': ['vip']},
        {'phone_number': '+15554002', 'first_name': 'Grace'},
        {'phone_number': CUSTOMER_NUMBER, 'first_name': 'Existing'},
    ])
    session.commit()
    return entries


def test_add_entries_start_available(session, pool):
    assert [r.import_status for r in pool] == ['available'] * 3
    assert pool[0].tags == ['vip']


def test_add_entries_rejects_entry_without_phone(session):
    with pytest.raises(ValidationError):
        ResourcePoolService.add_entries([{'phone_number': '+15554001'}, {'first_name': 'nobody'}])


def test_assign_and_unassign(session, pool, member):
    ids = [r.id for r in pool]
    assert ResourcePoolService.assign(ids, member.id) == 3
    session.commit()
    assert {r.import_status for r in ResourcePoolService.my_resources(member)} == {'assigned'}

    assert ResourcePoolService.unassign(ids[:1]) == 1
    session.commit()
    returned = session.get(ResourcePoolModel, ids[0])
    assert returned.import_status == 'available'
    assert returned.assigned_to_user_id is None


def test_assign_to_unknown_user_is_not_found(session, pool):
    with pytest.raises(ResourceNotFound):
        ResourcePoolService.assign([pool[0].id], 424242)


def test_import_to_chatroom_skips_existing_contacts(session, support, pool, member):
    ids = [r.id for r in pool]
    ResourcePoolService.assign(ids, member.id)
    session.commit()

    summary = ResourcePoolService.import_to_chatroom(member, ids, support.chatroom.id)
    session.commit()

    assert (summary.imported, summary.skipped) == (2, 1)
    assert summary.message == "Imported 2 clients, skipped 1 (already exist)"
    assert session.query(ContactModel).filter_by(chatroom_id=support.chatroom.id).count() == 3
    ada = session.query(ContactModel).filter_by(phone_number='+15554001').one()
    assert ada.name == 'Ada'
    assert ada.added_via == 'import'
    assert {r.import_status for r in ResourcePoolService.my_resources(member)} == {'imported'}


def test_imported_entries_are_not_reassigned(session, support, pool, member, make_user):
    ids = [r.id for r in pool]
    ResourcePoolService.assign(ids, member.id)
    ResourcePoolService.import_to_chatroom(member, ids[:1], support.chatroom.id)
    session.commit()

    other = make_user()
    assert ResourcePoolService.assign(ids, other.id) == 2
    assert session.get(ResourcePoolModel, ids[0]).assigned_to_user_id == member.id


def test_import_of_foreign_resources_is_denied(session, support, pool, member):
    with pytest.raises(AccessDenied):
        ResourcePoolService.import_to_chatroom(member, [pool[0].id], support.chatroom.id)


def test_import_to_line_creates_threads(session, support, pool, member):
    ids = [r.id for r in pool[:2]]
    ResourcePoolService.assign(ids, member.id)
    line = LineService.create_line(member.id, "+15553333", assigned_chatroom_id=support.chatroom.id)
    session.commit()

    summary = ResourcePoolService.import_to_line(member, ids, line.id)
    session.commit()

    assert summary.imported == 2
    threads = session.query(ClientAssignmentModel).filter_by(line_id=line.id).all()
    assert sorted(t.label for t in threads) == ['Ada', 'Grace']
    assert {t.source_resource_id for t in threads} == set(ids)


def test_import_to_line_without_chatroom_is_rejected(session, pool, member):
    ResourcePoolService.assign([pool[0].id], member.id)
    line = LineService.create_line(member.id, "+15553333")
    session.commit()

    with pytest.raises(ValidationError):
        ResourcePoolService.import_to_line(member, [pool[0].id], line.id)


def test_add_own_resource_rejects_duplicates(session, member):
    ResourcePoolService.add_own_resource(member, '+15554999', first_name='Mine')
    session.commit()

    with pytest.raises(ConflictError):
        ResourcePoolService.add_own_resource(member, '+15554999')
