# tests/integration/api/test_resources_api.py
# -*- coding: utf-8 -*-
"""
Integration tests for the resource pool: admin loading and assignment
(/api/admin/resources) and user imports (/api/resources).
"""
import logging

from chatdesk.services.line_service import LineService

from conftest import CUSTOMER_NUMBER

log = logging.getLogger(__name__)


def _load_pool(client, admin_headers):
    response = client.post('/api/admin/resources', headers=admin_headers, json={'resources': [
        {'phoneNumber': '+15554001', 'firstName': 'Ada', 'tags': ['vip']},
        {'phoneNumber': '+15554002', 'firstName': 'Grace', 'email': 'grace@example.com'},
        {'phoneNumber': CUSTOMER_NUMBER},
    ]})
    assert response.status_code == 201, response.data.decode()
    return [item['id'] for item in response.get_json()]


def test_admin_loads_and_lists_pool(client, admin_headers):
    ids = _load_pool(client, admin_headers)

    page = client.get('/api/admin/resources?status=available&per_page=2', headers=admin_headers).get_json()

    assert page['total'] == 3
    assert page['perPage'] == 2
    assert [item['id'] for item in page['items']] == ids[:2]
    assert page['items'][0]['importStatus'] == 'available'


def test_admin_pool_validation(client, admin_headers):
    response = client.post('/api/admin/resources', headers=admin_headers,
                           json={'resources': [{'firstName': 'No phone'}]})

    assert response.status_code == 400


def test_assign_then_return_to_pool(client, admin_headers, member, member_headers):
    ids = _load_pool(client, admin_headers)

    assigned = client.post('/api/admin/resources/assign', headers=admin_headers,
                           json={'resourceIds': ids, 'userId': member.id})
    assert assigned.get_json() == {'updated': 3, 'userId': member.id}
    assert len(client.get('/api/resources', headers=member_headers).get_json()) == 3

    returned = client.post('/api/admin/resources/assign', headers=admin_headers,
                           json={'resourceIds': ids[:1], 'userId': None})
    assert returned.get_json() == {'updated': 1, 'userId': None}
    mine = client.get('/api/resources?status=assigned', headers=member_headers).get_json()
    assert [item['id'] for item in mine] == ids[1:]


def test_import_to_chatroom(client, support, admin_headers, member, member_headers):
    """
    GIVEN three pool entries assigned to a member, one already a Support contact
    WHEN the member imports them into Support
    THEN two contacts are created, one is skipped, and all three are marked imported.
    """
    ids = _load_pool(client, admin_headers)
    client.post('/api/admin/resources/assign', headers=admin_headers, json={'resourceIds': ids, 'userId': member.id})

    response = client.post('/api/resources/import-to-chatroom', headers=member_headers,
                           json={'resourceIds': ids, 'chatroomId': support.chatroom.id})

    assert response.status_code == 200
    assert response.get_json() == {'imported': 2, 'skipped': 1,
                                    'message': "Imported 2 clients, skipped 1 (already exist)"}
    imported = client.get('/api/resources?status=imported', headers=member_headers).get_json()
    assert len(imported) == 3


def test_import_of_someone_elses_resources_is_403(client, support, admin_headers, member_headers):
    ids = _load_pool(client, admin_headers)

    response = client.post('/api/resources/import-to-chatroom', headers=member_headers,
                           json={'resourceIds': ids, 'chatroomId': support.chatroom.id})

    assert response.status_code == 403


def test_import_to_line(client, session, support, admin_headers, member, member_headers):
    ids = _load_pool(client, admin_headers)
    client.post('/api/admin/resources/assign', headers=admin_headers, json={'resourceIds': ids, 'userId': member.id})
    line = LineService.create_line(member.id, "+15553333", assigned_chatroom_id=support.chatroom.id)
    session.commit()

    response = client.post('/api/resources/import-to-line', headers=member_headers,
                           json={'resourceIds': ids, 'lineId': line.id})

    assert response.status_code == 200
    assert response.get_json()['imported'] == 3
    clients = client.get(f'/api/inbox/lines/{line.id}/clients', headers=member_headers).get_json()
    assert len(clients) == 3


def test_user_adds_own_resource(client, member_headers):
    created = client.post('/api/resources', headers=member_headers,
                          json={'phoneNumber': '+15554999', 'firstName': 'Mine'})
    duplicate = client.post('/api/resources', headers=member_headers, json={'phoneNumber': '+15554999'})

    assert created.status_code == 201
    assert created.get_json()['importStatus'] == 'assigned'
    assert duplicate.status_code == 409
